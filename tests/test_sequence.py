"""Tests for the sequence data model."""

import pytest

from conftest import AUTH_OFFSET_B, build_sequence_data, build_structure
from src.models.addressing import AddressingMode
from src.models.sequence import (
    SECONDARY_STRUCTURE_TYPES,
    SequenceChain,
    SequenceData,
    SequenceResidue,
    sequence_from_structure,
)


def _chain(chain_id: str, positions: list[int], codes: str) -> SequenceChain:
    return SequenceChain(
        id=chain_id,
        residues=[SequenceResidue(chain_id, p, c) for p, c in zip(positions, codes)],
    )


class TestSequenceChain:
    """Tests for SequenceChain."""

    def test_residues_sorted_by_position(self):
        chain = _chain("A", [3, 1, 2], "CAB")
        assert [r.position for r in chain.residues] == [1, 2, 3]
        assert chain.sequence == "ABC"

    def test_get_residue(self):
        chain = _chain("A", [1, 2], "MK")
        assert chain.get_residue(2).code == "K"
        assert chain.get_residue(5) is None

    def test_slice_sequence(self):
        chain = _chain("A", [1, 2, 3, 4], "MKTA")
        assert chain.slice_sequence(2, 3) == "KT"

    def test_slice_fills_gaps(self):
        """Test that missing positions are filled so the length matches the interval."""
        chain = _chain("A", [1, 2, 5], "MKA")
        assert chain.slice_sequence(1, 5) == "MK--A"
        assert len(chain.slice_sequence(1, 6)) == 6

    def test_residues_in_range(self):
        chain = _chain("A", [1, 2, 5, 9], "MKAL")
        assert [r.position for r in chain.residues_in_range(2, 6)] == [2, 5]


class TestSequenceData:
    """Tests for SequenceData."""

    def test_duplicate_chain_ids_rejected(self):
        with pytest.raises(ValueError):
            SequenceData(id="X", name="X", chains=[_chain("A", [1], "M"), _chain("A", [1], "K")])

    def test_lookup(self, sequence_data):
        assert sequence_data.chain_ids == ["A", "B"]
        assert sequence_data.get_chain("B").id == "B"
        assert sequence_data.get_chain("Z") is None
        assert sequence_data.get_residue("A", 1).code == "A"
        assert sequence_data.get_residue("A", 101) is None

    def test_get_stats(self, sequence_data):
        stats = sequence_data.get_stats()
        assert stats["total_chains"] == 2
        assert stats["total_residues"] == 150
        assert stats["chain_lengths"] == {"A": 100, "B": 50}
        assert stats["average_chain_length"] == 75.0

    def test_stats_of_empty_data(self):
        stats = SequenceData(id="X", name="X").get_stats()
        assert stats["total_residues"] == 0
        assert stats["average_chain_length"] == 0.0

    def test_dict_roundtrip(self):
        """Test that to_dict/from_dict preserve chains, residues and mode."""
        data = build_sequence_data({"A": 3})
        restored = SequenceData.from_dict(data.to_dict())
        assert restored.id == data.id
        assert restored.mode is AddressingMode.LABEL
        assert restored.get_chain("A").sequence == data.get_chain("A").sequence


class TestSequenceFromStructure:
    """Tests for sequence_from_structure."""

    def test_label_mode(self):
        data = sequence_from_structure(build_structure(), "1ABC", with_secondary_structure=False)

        assert data.mode is AddressingMode.LABEL
        assert data.chain_ids == ["A", "B"]
        chain_b = data.get_chain("B")
        assert len(chain_b) == 50
        assert chain_b.residues[0].position == 1
        assert data.get_chain("A").sequence.startswith("AGSKL")

    def test_auth_mode_uses_author_numbering(self):
        """Test that auth mode reads chain_id/res_id."""
        data = sequence_from_structure(
            build_structure(), "1ABC", mode="auth", with_secondary_structure=False
        )

        chain_b = data.get_chain("B")
        assert chain_b.residues[0].position == 1 + AUTH_OFFSET_B
        assert data.mode is AddressingMode.AUTH

    def test_ligand_and_water_excluded(self):
        data = sequence_from_structure(build_structure(), "1ABC", with_secondary_structure=False)
        assert data.get_chain("C") is None
        assert data.get_chain("D") is None
        assert data.get_stats()["total_residues"] == 150

    def test_secondary_structure_assigned(self):
        """Test that every residue gets a helix/sheet/loop assignment."""
        data = sequence_from_structure(build_structure({"A": 20}, False, False), "X")
        assert all(
            r.secondary_structure in SECONDARY_STRUCTURE_TYPES
            for r in data.get_chain("A").residues
        )

    def test_structure_without_protein(self):
        data = sequence_from_structure(build_structure({}, ligand=True, water=True), "X")
        assert data.chains == []
