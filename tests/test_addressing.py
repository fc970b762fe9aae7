"""Tests for residue addressing and query descriptors."""

import pytest

from src.models.addressing import (
    AddressingMode,
    MoleculeTypeQuery,
    QueryUnion,
    ResidueNameQuery,
    ResidueRange,
    build_query,
    describe_query,
    range_query,
    union_query,
)


class TestAddressingMode:
    """Tests for AddressingMode parsing."""

    def test_from_string(self):
        assert AddressingMode.from_value("label") is AddressingMode.LABEL
        assert AddressingMode.from_value("auth") is AddressingMode.AUTH

    def test_from_enum(self):
        assert AddressingMode.from_value(AddressingMode.AUTH) is AddressingMode.AUTH

    def test_unknown_raises(self):
        """Test that an unknown scheme is rejected."""
        with pytest.raises(ValueError):
            AddressingMode.from_value("pdb")


class TestResidueRange:
    """Tests for the ResidueRange value type."""

    def test_whole_chain(self):
        target = ResidueRange("A")
        assert target.is_whole_chain
        assert target.last is None
        assert str(target) == "A"

    def test_single_residue(self):
        """Test that a range with only a start covers one residue."""
        target = ResidueRange("A", 5)
        assert not target.is_whole_chain
        assert target.last == 5
        assert str(target) == "A:5"

    def test_interval(self):
        target = ResidueRange("B", 10, 20)
        assert target.last == 20
        assert str(target) == "B:10-20"

    def test_empty_chain_rejected(self):
        with pytest.raises(ValueError):
            ResidueRange("")

    def test_end_without_start_rejected(self):
        with pytest.raises(ValueError):
            ResidueRange("A", None, 10)

    def test_reversed_interval_rejected(self):
        """Test that end < start is rejected."""
        with pytest.raises(ValueError):
            ResidueRange("A", 20, 10)


class TestBuildQuery:
    """Tests for build_query and range_query."""

    def test_chain_query(self):
        query = build_query("A")
        assert query.chain_id == "A"
        assert query.start is None
        assert query.end is None
        assert query.mode is AddressingMode.LABEL

    def test_single_residue_sets_end(self):
        """Test that a single-residue query ends at its start."""
        query = build_query("A", 7)
        assert (query.start, query.end) == (7, 7)

    def test_interval_with_auth_mode(self):
        query = build_query("B", 3, 9, mode="auth")
        assert (query.start, query.end) == (3, 9)
        assert query.mode is AddressingMode.AUTH

    def test_invalid_interval_raises(self):
        with pytest.raises(ValueError):
            build_query("A", 9, 3)

    def test_range_query_matches_build_query(self):
        target = ResidueRange("A", 1, 4)
        assert range_query(target, AddressingMode.LABEL) == build_query("A", 1, 4)


class TestUnionQuery:
    """Tests for union_query."""

    def test_union_keeps_parts_in_order(self):
        parts = [build_query("A", 1, 5), build_query("B", 10, 12)]
        union = union_query(parts)
        assert isinstance(union, QueryUnion)
        assert list(union.parts) == parts
        assert union.mode is AddressingMode.LABEL

    def test_empty_union_rejected(self):
        with pytest.raises(ValueError):
            union_query([])

    def test_mixed_modes_rejected(self):
        """Test that label and auth identifiers cannot be combined."""
        with pytest.raises(ValueError):
            union_query([build_query("A", 1, 5), build_query("A", 1, 5, mode="auth")])


class TestMoleculeTypeQuery:
    """Tests for MoleculeTypeQuery."""

    def test_known_types(self):
        for molecule_type in ("polymer", "ligand", "water"):
            assert MoleculeTypeQuery(molecule_type).molecule_type == molecule_type

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            MoleculeTypeQuery("ion")


class TestResidueNameQuery:
    """Tests for ResidueNameQuery."""

    def test_names_kept(self):
        assert ResidueNameQuery(("ZN", "MG")).names == ("ZN", "MG")

    def test_empty_names_rejected(self):
        with pytest.raises(ValueError):
            ResidueNameQuery(())


class TestDescribeQuery:
    """Tests for describe_query."""

    def test_descriptions(self):
        assert describe_query(build_query("A")) == "chain A (label)"
        assert describe_query(build_query("A", 5)) == "A:5 (label)"
        assert describe_query(build_query("A", 5, 9, mode="auth")) == "A:5-9 (auth)"
        assert describe_query(MoleculeTypeQuery("water")) == "water"
        assert describe_query(ResidueNameQuery(("ZN", "MG"))) == "residues ZN,MG"

    def test_union_description(self):
        union = union_query([build_query("A", 1, 2), build_query("B", 3)])
        assert describe_query(union) == "A:1-2 (label) | B:3 (label)"
