"""Sequence data model for structures shown in the sequence view."""

import logging
from dataclasses import dataclass, field
from typing import Any

import biotite.structure as struc
import numpy as np

from src.config.settings import GAP_CODE
from src.models.addressing import AddressingMode

logger = logging.getLogger(__name__)

# Three-letter to one-letter amino acid code mapping
THREE_TO_ONE = {
    "ALA": "A", "ARG": "R", "ASN": "N", "ASP": "D", "CYS": "C",
    "GLN": "Q", "GLU": "E", "GLY": "G", "HIS": "H", "ILE": "I",
    "LEU": "L", "LYS": "K", "MET": "M", "PHE": "F", "PRO": "P",
    "SER": "S", "THR": "T", "TRP": "W", "TYR": "Y", "VAL": "V",
    # Non-standard but common
    "MSE": "M",  # Selenomethionine
    "SEC": "U",  # Selenocysteine
    "PYL": "O",  # Pyrrolysine
}

SECONDARY_STRUCTURE_TYPES = ("helix", "sheet", "loop")


@dataclass(frozen=True)
class SequenceResidue:
    """One residue of a chain sequence. Identity is (chain_id, position)."""

    chain_id: str
    position: int
    code: str
    secondary_structure: str | None = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.chain_id, self.position)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "position": self.position,
            "code": self.code,
            "secondary_structure": self.secondary_structure,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SequenceResidue":
        return cls(
            chain_id=data["chain_id"],
            position=int(data["position"]),
            code=data["code"],
            secondary_structure=data.get("secondary_structure"),
        )


@dataclass
class SequenceChain:
    """A chain's residues, sorted by position (positions may have gaps).

    Attributes:
        id: Chain identifier.
        residues: Residues sorted by position.
        name: Optional display name (e.g. molecule name).
    """

    id: str
    residues: list[SequenceResidue] = field(default_factory=list)
    name: str | None = None

    def __post_init__(self):
        self.residues = sorted(self.residues, key=lambda r: r.position)
        self._by_position = {r.position: r for r in self.residues}

    def __len__(self) -> int:
        return len(self.residues)

    def get_residue(self, position: int) -> SequenceResidue | None:
        """Get the residue at a position, or None if absent."""
        return self._by_position.get(position)

    def residues_in_range(self, start: int, end: int) -> list[SequenceResidue]:
        """Get residues whose position lies in [start, end]."""
        return [r for r in self.residues if start <= r.position <= end]

    def slice_sequence(self, start: int, end: int) -> str:
        """Get one-letter codes for every position in [start, end].

        Positions missing from the chain are filled with the gap code so the
        result always has ``end - start + 1`` characters.
        """
        return "".join(
            self._by_position[pos].code if pos in self._by_position else GAP_CODE
            for pos in range(start, end + 1)
        )

    @property
    def sequence(self) -> str:
        """One-letter sequence of the residues present (no gap filling)."""
        return "".join(r.code for r in self.residues)


@dataclass
class SequenceData:
    """Sequence data for a loaded structure.

    Replaced wholesale when a new structure is loaded, never partially mutated.

    Attributes:
        id: Structure identifier.
        name: Display name.
        chains: Chains with unique ids.
        mode: Addressing mode the chain ids and positions are expressed in.
    """

    id: str
    name: str
    chains: list[SequenceChain] = field(default_factory=list)
    mode: AddressingMode = AddressingMode.LABEL

    def __post_init__(self):
        ids = [c.id for c in self.chains]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate chain ids in sequence data {self.id}: {ids}")

    @property
    def chain_ids(self) -> list[str]:
        return [c.id for c in self.chains]

    def get_chain(self, chain_id: str) -> SequenceChain | None:
        """Get a chain by id, or None if absent."""
        for chain in self.chains:
            if chain.id == chain_id:
                return chain
        return None

    def get_residue(self, chain_id: str, position: int) -> SequenceResidue | None:
        chain = self.get_chain(chain_id)
        return chain.get_residue(position) if chain else None

    def get_stats(self) -> dict[str, Any]:
        """Get sequence statistics.

        Returns:
            Dict with total_chains, total_residues, chain_lengths and
            average_chain_length.
        """
        chain_lengths = {c.id: len(c) for c in self.chains}
        total = sum(chain_lengths.values())
        return {
            "total_chains": len(self.chains),
            "total_residues": total,
            "chain_lengths": chain_lengths,
            "average_chain_length": total / len(self.chains) if self.chains else 0.0,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "mode": self.mode.value,
            "chains": [
                {
                    "id": c.id,
                    "name": c.name,
                    "residues": [r.to_dict() for r in c.residues],
                }
                for c in self.chains
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SequenceData":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            mode=AddressingMode.from_value(data.get("mode", "label")),
            chains=[
                SequenceChain(
                    id=c["id"],
                    name=c.get("name"),
                    residues=[SequenceResidue.from_dict(r) for r in c.get("residues", [])],
                )
                for c in data.get("chains", [])
            ],
        )


def _chain_annotations(mode: AddressingMode) -> tuple[str, str]:
    """Annotation names holding chain id and residue number for a mode."""
    if mode == AddressingMode.LABEL:
        return "label_chain_id", "label_res_id"
    return "chain_id", "res_id"


def _secondary_structure(chain_atoms: struc.AtomArray) -> list[str]:
    """Per-residue helix/sheet/loop assignment for one chain."""
    n_residues = struc.get_residue_count(chain_atoms)
    try:
        sse = struc.annotate_sse(chain_atoms)
    except Exception as e:
        logger.debug(f"SSE annotation failed, using loop: {e}")
        return ["loop"] * n_residues

    mapping = {"a": "helix", "b": "sheet"}
    assigned = [mapping.get(str(code), "loop") for code in sse]
    if len(assigned) != n_residues:
        return ["loop"] * n_residues
    return assigned


def sequence_from_structure(
    structure: struc.AtomArray,
    structure_id: str,
    mode: AddressingMode | str = AddressingMode.LABEL,
    name: str | None = None,
    with_secondary_structure: bool = True,
) -> SequenceData:
    """Build SequenceData from the amino acid residues of a structure.

    The structure must carry the annotations used by the chosen addressing
    mode: ``chain_id``/``res_id`` for auth, ``label_chain_id``/``label_res_id``
    for label (see structure_adapter.ensure_label_annotations).

    Args:
        structure: Biotite AtomArray.
        structure_id: Identifier for the resulting SequenceData.
        mode: Addressing mode for chain ids and positions.
        name: Display name, defaults to the structure id.
        with_secondary_structure: Annotate helix/sheet/loop per residue.

    Returns:
        SequenceData with one chain per chain id, in order of appearance.
    """
    mode = AddressingMode.from_value(mode)
    chain_field, res_field = _chain_annotations(mode)

    aa_structure = structure[struc.filter_amino_acids(structure)]
    chains: list[SequenceChain] = []

    if len(aa_structure) > 0:
        chain_values = aa_structure.get_annotation(chain_field)
        _, first_index = np.unique(chain_values, return_index=True)
        ordered_chain_ids = [str(chain_values[i]) for i in sorted(first_index)]

        for chain_id in ordered_chain_ids:
            chain_atoms = aa_structure[chain_values == chain_id]
            starts = struc.get_residue_starts(chain_atoms)
            positions = chain_atoms.get_annotation(res_field)[starts]
            res_names = chain_atoms.res_name[starts]

            if with_secondary_structure:
                ss = _secondary_structure(chain_atoms)
            else:
                ss = [None] * len(starts)

            residues = []
            seen = set()
            for position, res_name, ss_type in zip(positions, res_names, ss):
                position = int(position)
                # Insertion codes share a residue number; keep the first
                if position in seen:
                    continue
                seen.add(position)
                residues.append(SequenceResidue(
                    chain_id=chain_id,
                    position=position,
                    code=THREE_TO_ONE.get(str(res_name), "X"),
                    secondary_structure=ss_type,
                ))

            chains.append(SequenceChain(id=chain_id, residues=residues, name=f"Chain {chain_id}"))

    logger.debug(
        f"sequence_from_structure: {structure_id} -> {len(chains)} chains ({mode.value})"
    )
    return SequenceData(id=structure_id, name=name or structure_id, chains=chains, mode=mode)
