"""Shared fixtures: synthetic structures and sequence data."""

import biotite.structure as struc
import numpy as np
import pytest

from src.models.addressing import AddressingMode
from src.models.selection import SelectionModel
from src.models.sequence import SequenceChain, SequenceData, SequenceResidue
from src.models.structure_adapter import AtomArrayAdapter
from src.models.visibility import ChainVisibilityEngine

BACKBONE = ("N", "CA", "C", "O")
BACKBONE_ELEMENTS = ("N", "C", "C", "O")
RESIDUE_CYCLE = ("ALA", "GLY", "SER", "LYS", "LEU")
CODE_CYCLE = "AGSKL"

# Auth residue numbers of chain B are offset from its label numbers
AUTH_OFFSET_B = 200


def build_structure(
    chain_lengths: dict[str, int] | None = None,
    ligand: bool = True,
    water: bool = True,
    ions: int = 0,
) -> struc.AtomArray:
    """Build a small synthetic protein.

    Polymer chains carry the same label and auth chain ids; label residue
    numbers run 1..n, auth numbers equal label numbers except on chain B
    where they are shifted by AUTH_OFFSET_B. The ligand (HEM) and the waters
    have auth chain A and their own label chains C and D; zinc ions (auth
    A/701.., label chain E) are added when ``ions`` is set.
    """
    if chain_lengths is None:
        chain_lengths = {"A": 100, "B": 50}

    rows = []  # (auth chain, auth res, label chain, label res, res name, atom, element, hetero)
    for chain_id, length in chain_lengths.items():
        offset = AUTH_OFFSET_B if chain_id == "B" else 0
        for i in range(1, length + 1):
            res_name = RESIDUE_CYCLE[(i - 1) % len(RESIDUE_CYCLE)]
            for atom_name, element in zip(BACKBONE, BACKBONE_ELEMENTS):
                rows.append((chain_id, i + offset, chain_id, i, res_name, atom_name, element, False))

    if ligand:
        for j in range(5):
            rows.append(("A", 500, "C", -1, "HEM", f"C{j + 1}", "C", True))
    if water:
        for k in range(3):
            rows.append(("A", 601 + k, "D", -1, "HOH", "O", "O", True))
    for k in range(ions):
        rows.append(("A", 701 + k, "E", -1, "ZN", "ZN", "ZN", True))

    atoms = struc.AtomArray(len(rows))
    atoms.coord = np.array(
        [[3.8 * i, 0.0, 0.0] for i in range(len(rows))], dtype=np.float32
    )
    atoms.chain_id = np.array([r[0] for r in rows])
    atoms.res_id = np.array([r[1] for r in rows])
    atoms.res_name = np.array([r[4] for r in rows])
    atoms.atom_name = np.array([r[5] for r in rows])
    atoms.element = np.array([r[6] for r in rows])
    atoms.hetero = np.array([r[7] for r in rows])

    atoms.add_annotation("label_chain_id", dtype="U4")
    atoms.set_annotation("label_chain_id", np.array([r[2] for r in rows]))
    atoms.add_annotation("label_res_id", dtype=int)
    atoms.set_annotation("label_res_id", np.array([r[3] for r in rows]))
    return atoms


class StructureLoader:
    """Loader callable serving synthetic structures by id.

    '1ABC' has chains A (100) and B (50) plus ligand and water; '2XYZ' has a
    single 30-residue chain A; '3ION' has a 20-residue chain A and two zinc
    ions. Unknown ids raise FileNotFoundError.
    """

    STRUCTURES = {
        "1ABC": {"chain_lengths": {"A": 100, "B": 50}},
        "2XYZ": {"chain_lengths": {"A": 30}, "ligand": False, "water": False},
        "3ION": {"chain_lengths": {"A": 20}, "ligand": False, "water": False, "ions": 2},
    }

    def __init__(self):
        self.calls: list[str] = []

    def __call__(self, source_id: str) -> struc.AtomArray:
        self.calls.append(source_id)
        kwargs = self.STRUCTURES.get(source_id.upper())
        if kwargs is None:
            raise FileNotFoundError(f"Structure source not found: {source_id}")
        return build_structure(**kwargs)


def build_sequence_data(chain_lengths: dict[str, int] | None = None, structure_id: str = "1ABC") -> SequenceData:
    """Label-mode sequence data matching build_structure."""
    if chain_lengths is None:
        chain_lengths = {"A": 100, "B": 50}
    chains = []
    for chain_id, length in chain_lengths.items():
        residues = [
            SequenceResidue(chain_id=chain_id, position=i, code=CODE_CYCLE[(i - 1) % len(CODE_CYCLE)])
            for i in range(1, length + 1)
        ]
        chains.append(SequenceChain(id=chain_id, residues=residues, name=f"Chain {chain_id}"))
    return SequenceData(id=structure_id, name=structure_id, chains=chains, mode=AddressingMode.LABEL)


@pytest.fixture
def structure() -> struc.AtomArray:
    return build_structure()


@pytest.fixture
def loader() -> StructureLoader:
    return StructureLoader()


@pytest.fixture
def adapter(loader) -> AtomArrayAdapter:
    return AtomArrayAdapter(loader=loader)


@pytest.fixture
def engine(adapter) -> ChainVisibilityEngine:
    return ChainVisibilityEngine(adapter)


@pytest.fixture
def sequence_data() -> SequenceData:
    return build_sequence_data()


@pytest.fixture
def model(sequence_data) -> SelectionModel:
    return SelectionModel(sequence_data=sequence_data)


class RecordingListener:
    """Collects every payload it is called with."""

    def __init__(self):
        self.events = []

    def __call__(self, payload):
        self.events.append(payload)

    @property
    def count(self) -> int:
        return len(self.events)

    @property
    def last(self):
        return self.events[-1] if self.events else None


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()
