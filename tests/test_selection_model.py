"""Tests for SelectionModel and selection regions."""

import pytest

from conftest import build_sequence_data
from src.models.selection import (
    SelectionConstraints,
    SelectionModel,
    SelectionRegion,
    SequenceSelection,
    make_region,
)
from src.models.sequence import SequenceResidue


class TestSelectionRegion:
    """Tests for SelectionRegion and make_region."""

    def test_make_region_labels(self):
        assert make_region("A", 10, 20).id == "A:10-20"
        assert make_region("A", 5, 5).label == "A:5"

    def test_custom_id(self):
        region = make_region("A", 1, 3, region_id="r1")
        assert region.id == "r1"
        assert region.label == "A:1-3"

    def test_contains_and_length(self):
        region = make_region("B", 3, 6)
        assert region.length == 4
        assert region.contains("B", 3)
        assert region.contains("B", 6)
        assert not region.contains("B", 7)
        assert not region.contains("A", 4)

    def test_touches(self):
        """Test overlap and adjacency detection on one chain."""
        assert make_region("A", 1, 5).touches(make_region("A", 6, 8))
        assert make_region("A", 1, 5).touches(make_region("A", 3, 4))
        assert not make_region("A", 1, 5).touches(make_region("A", 7, 8))
        assert not make_region("A", 1, 5).touches(make_region("B", 1, 5))

    def test_selection_dict_roundtrip(self):
        selection = SequenceSelection(
            regions=[make_region("A", 1, 3, "AGS")], active_region="A:1-3", clipboard="AGS"
        )
        restored = SequenceSelection.from_dict(selection.to_dict())
        assert restored == selection


class TestAddRegion:
    """Tests for SelectionModel.add_region."""

    def test_add_inserts_and_activates(self, model):
        region = make_region("A", 10, 20)
        assert model.add_region(region) is True
        assert model.regions == [region]
        assert model.active_region == region.id

    def test_add_preserves_existing_regions(self, model):
        """Test that adding keeps every region with a different id."""
        first = make_region("A", 1, 5)
        second = make_region("B", 1, 5)
        model.add_region(first)
        model.add_region(second)
        assert model.regions == [first, second]
        assert model.active_region == second.id

    def test_add_same_id_replaces_in_place(self, model):
        model.add_region(make_region("A", 1, 5, region_id="r1"))
        model.add_region(make_region("B", 1, 2, region_id="r2"))
        replacement = make_region("A", 30, 40, region_id="r1")

        assert model.add_region(replacement) is True
        assert [r.id for r in model.regions] == ["r1", "r2"]
        assert model.get_region("r1") == replacement

    def test_reversed_region_rejected(self, model, listener):
        """Test that an invalid region leaves the state unchanged."""
        model.add_listener(listener)
        bad = SelectionRegion(id="bad", chain_id="A", start=9, end=3)

        assert model.add_region(bad) is False
        assert model.regions == []
        assert listener.count == 0

    def test_sequence_length_mismatch_rejected(self, model):
        region = SelectionRegion(id="r", chain_id="A", start=1, end=3, sequence="AG")
        assert model.add_region(region) is False

    def test_single_mode_keeps_only_new_region(self, sequence_data):
        model = SelectionModel(mode="single", sequence_data=sequence_data)
        model.add_region(make_region("A", 1, 5))
        latest = make_region("B", 1, 5)
        model.add_region(latest)
        assert model.regions == [latest]

    def test_range_mode_replaces_region_on_same_chain(self, sequence_data):
        model = SelectionModel(mode="range", sequence_data=sequence_data)
        model.add_region(make_region("A", 1, 5))
        model.add_region(make_region("B", 1, 5))
        model.add_region(make_region("A", 10, 12))
        assert [r.id for r in model.regions] == ["B:1-5", "A:10-12"]

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            SelectionModel(mode="lasso")


class TestReplaceAndClear:
    """Tests for replace_selection, remove_region and clear_selection."""

    def test_replace_is_exact(self, model):
        model.add_region(make_region("A", 1, 5))
        regions = [make_region("B", 1, 2), make_region("B", 10, 12)]

        assert model.replace_selection(regions) is True
        assert model.regions == regions
        assert model.active_region == "B:10-12"

    def test_replace_with_single_region(self, model):
        region = make_region("A", 4, 4)
        assert model.replace_selection(region) is True
        assert model.regions == [region]

    def test_replace_duplicate_ids_rejected(self, model):
        """Test that a replacement with repeated ids is rejected atomically."""
        model.add_region(make_region("A", 1, 5))
        regions = [make_region("A", 1, 2, region_id="x"), make_region("A", 5, 6, region_id="x")]

        assert model.replace_selection(regions) is False
        assert [r.id for r in model.regions] == ["A:1-5"]

    def test_replace_with_empty_list_clears(self, model):
        model.add_region(make_region("A", 1, 5))
        assert model.replace_selection([]) is True
        assert model.regions == []
        assert model.active_region is None

    def test_remove_region(self, model):
        model.add_region(make_region("A", 1, 5))
        model.add_region(make_region("B", 1, 5))

        assert model.remove_region("B:1-5") is True
        assert [r.id for r in model.regions] == ["A:1-5"]
        assert model.active_region is None

    def test_remove_missing_region(self, model, listener):
        model.add_listener(listener)
        assert model.remove_region("nope") is False
        assert listener.count == 0

    def test_clear_keeps_clipboard(self, model):
        model.add_region(make_region("A", 1, 5))
        model.set_clipboard("AGSKL")
        model.clear_selection()

        selection = model.get_selection()
        assert selection.is_empty
        assert selection.active_region is None
        assert selection.clipboard == "AGSKL"


class TestMembership:
    """Tests for residue membership queries."""

    def test_residue_selected_iff_covered(self, model):
        """Test that membership follows the union of regions on the residue's chain."""
        model.replace_selection([make_region("A", 10, 20), make_region("A", 15, 30)])

        assert model.is_residue_selected(SequenceResidue("A", 10, "A"))
        assert model.is_residue_selected(SequenceResidue("A", 30, "A"))
        assert not model.is_residue_selected(SequenceResidue("A", 9, "A"))
        assert not model.is_residue_selected(SequenceResidue("B", 15, "A"))

    def test_get_residue_region(self, model):
        region = make_region("B", 5, 8)
        model.add_region(region)
        assert model.get_residue_region(SequenceResidue("B", 6, "K")) == region
        assert model.get_residue_region(SequenceResidue("B", 9, "K")) is None

    def test_selected_residues_deduplicated(self, model):
        model.replace_selection([make_region("A", 1, 3), make_region("A", 2, 4)])
        assert model.get_selected_residues() == [("A", 1), ("A", 2), ("A", 3), ("A", 4)]

    def test_region_sequence_sliced_from_data(self, model):
        region = make_region("A", 1, 5)
        assert model.get_region_sequence(region) == "AGSKL"

    def test_region_sequence_prefers_own(self, model):
        region = make_region("A", 1, 2, "XX")
        assert model.get_region_sequence(region) == "XX"


class TestConstraints:
    """Tests for selection constraints."""

    def test_max_selections(self, sequence_data):
        model = SelectionModel(
            constraints=SelectionConstraints(max_selections=1), sequence_data=sequence_data
        )
        assert model.add_region(make_region("A", 1, 5)) is True
        assert model.add_region(make_region("B", 1, 5)) is False
        assert len(model.regions) == 1

    def test_max_range_size(self, model):
        model.set_constraints(SelectionConstraints(max_range_size=10))
        assert model.add_region(make_region("A", 1, 10)) is True
        assert model.add_region(make_region("A", 20, 40)) is False

    def test_allowed_chains(self, model):
        model.set_constraints(SelectionConstraints(allowed_chains=["B"]))
        assert model.add_region(make_region("A", 1, 5)) is False
        assert model.add_region(make_region("B", 1, 5)) is True

    def test_new_constraints_trim_selection(self, model):
        model.replace_selection([make_region("A", 1, 5), make_region("B", 1, 5)])
        model.set_constraints(SelectionConstraints(allowed_chains=["A"]))
        assert [r.chain_id for r in model.regions] == ["A"]


class TestMergeOverlapping:
    """Tests for merge_overlapping."""

    def test_merges_overlapping_and_adjacent(self, model):
        model.replace_selection([
            make_region("A", 10, 20),
            make_region("A", 15, 25),
            make_region("A", 26, 30),
            make_region("B", 1, 3),
        ])

        assert model.merge_overlapping() is True
        assert [(r.chain_id, r.start, r.end) for r in model.regions] == [
            ("A", 10, 30),
            ("B", 1, 3),
        ]
        merged = model.get_region("A:10-30")
        assert len(merged.sequence) == merged.length

    def test_nothing_to_merge(self, model, listener):
        model.replace_selection([make_region("A", 1, 3), make_region("A", 10, 12)])
        model.add_listener(listener)
        assert model.merge_overlapping() is False
        assert listener.count == 0


class TestSelectionEvents:
    """Tests for selection-changed notifications."""

    def test_one_event_per_mutation(self, model, listener):
        """Test that each mutation emits exactly one complete snapshot."""
        model.add_listener(listener)

        model.add_region(make_region("A", 1, 5))
        model.replace_selection([make_region("A", 1, 2), make_region("B", 1, 2)])
        model.clear_selection()

        assert listener.count == 3
        assert [r.id for r in listener.events[1].regions] == ["A:1-2", "B:1-2"]
        assert listener.last.is_empty

    def test_remove_listener(self, model, listener):
        model.add_listener(listener)
        model.remove_listener(listener)
        model.add_region(make_region("A", 1, 5))
        assert listener.count == 0

    def test_set_sequence_data_clears_selection(self, model, listener):
        model.add_region(make_region("A", 1, 5))
        model.add_listener(listener)

        model.set_sequence_data(build_sequence_data({"A": 30}, "2XYZ"))

        assert model.regions == []
        assert listener.count == 1


class TestRestore:
    """Tests for restoring a persisted selection."""

    def test_restore_drops_unknown_chains(self, model, listener):
        model.add_listener(listener)
        saved = SequenceSelection(
            regions=[make_region("A", 1, 5), make_region("Z", 1, 5)],
            active_region="A:1-5",
            clipboard="AGSKL",
        )

        assert model.restore(saved) is True
        assert [r.id for r in model.regions] == ["A:1-5"]
        assert model.active_region == "A:1-5"
        assert model.clipboard == "AGSKL"
        assert listener.count == 1

    def test_set_mode_trims_selection(self, model):
        model.replace_selection([make_region("A", 1, 5), make_region("A", 8, 9), make_region("B", 1, 2)])
        model.set_mode("range")
        assert [r.id for r in model.regions] == ["A:8-9", "B:1-2"]
        model.set_mode("single")
        assert [r.id for r in model.regions] == ["B:1-2"]
