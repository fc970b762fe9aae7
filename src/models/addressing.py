"""Chain/residue addressing for structure queries.

Maps a (chain, residue range) in sequence space onto a query descriptor that
a structure adapter can resolve into a locus. Two identifier schemes exist in
macromolecular files:

- label: ``label_asym_id``/``label_seq_id``, assigned by the file format and
  numbered 1..n along each entity sequence.
- auth: ``auth_asym_id``/``auth_seq_id``, assigned by the depositing authors;
  may differ from the label ids for the same chain.

A query always uses exactly one scheme. Mixing them can select zero atoms or
the wrong atoms.
"""

from dataclasses import dataclass
from enum import Enum


class AddressingMode(str, Enum):
    """Identifier scheme used for chain and residue numbers."""

    LABEL = "label"
    AUTH = "auth"

    @classmethod
    def from_value(cls, value: "str | AddressingMode") -> "AddressingMode":
        """Parse a mode from a config string.

        Raises:
            ValueError: If the value is not a known mode.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown addressing mode: {value}") from None


@dataclass(frozen=True)
class ResidueRange:
    """A chain, optionally narrowed to an inclusive residue interval.

    Attributes:
        chain_id: Chain identifier.
        start: First residue number, None for the whole chain.
        end: Last residue number, None for a single residue (or whole chain).
    """

    chain_id: str
    start: int | None = None
    end: int | None = None

    def __post_init__(self):
        if not self.chain_id:
            raise ValueError("ResidueRange requires a chain id")
        if self.start is None and self.end is not None:
            raise ValueError("ResidueRange end given without start")
        if self.start is not None and self.end is not None and self.end < self.start:
            raise ValueError(f"Invalid residue range {self.start}-{self.end}")

    @property
    def is_whole_chain(self) -> bool:
        return self.start is None

    @property
    def last(self) -> int | None:
        """Last residue number covered (start when end is omitted)."""
        return self.end if self.end is not None else self.start

    def __str__(self) -> str:
        if self.is_whole_chain:
            return self.chain_id
        if self.last == self.start:
            return f"{self.chain_id}:{self.start}"
        return f"{self.chain_id}:{self.start}-{self.last}"


@dataclass(frozen=True)
class ResidueQuery:
    """Atoms of one chain, optionally within a residue number interval."""

    chain_id: str
    mode: AddressingMode
    start: int | None = None
    end: int | None = None


@dataclass(frozen=True)
class QueryUnion:
    """Atoms matching any of several residue queries of the same mode."""

    parts: tuple[ResidueQuery, ...]
    mode: AddressingMode


@dataclass(frozen=True)
class MoleculeTypeQuery:
    """Atoms by molecule type: 'polymer', 'ligand' or 'water'."""

    molecule_type: str

    TYPES = ("polymer", "ligand", "water")

    def __post_init__(self):
        if self.molecule_type not in self.TYPES:
            raise ValueError(f"Unknown molecule type: {self.molecule_type}")


@dataclass(frozen=True)
class ResidueNameQuery:
    """Atoms of every residue whose name (component id) is in ``names``."""

    names: tuple[str, ...]

    def __post_init__(self):
        if not self.names:
            raise ValueError("ResidueNameQuery requires at least one residue name")


QueryDescriptor = ResidueQuery | QueryUnion | MoleculeTypeQuery | ResidueNameQuery


def build_query(
    chain_id: str,
    start: int | None = None,
    end: int | None = None,
    mode: AddressingMode | str = AddressingMode.LABEL,
) -> ResidueQuery:
    """Build a query for a chain, a residue, or a residue interval.

    With only ``chain_id`` the whole chain is matched; with ``start`` alone
    exactly that residue; with both, every residue in ``[start, end]``.

    Args:
        chain_id: Chain identifier in the chosen scheme.
        start: First residue number.
        end: Last residue number (inclusive).
        mode: Identifier scheme for both chain and residue numbers.

    Returns:
        ResidueQuery descriptor.

    Raises:
        ValueError: If the arguments do not describe a valid interval.
    """
    target = ResidueRange(chain_id, start, end)
    return ResidueQuery(
        chain_id=target.chain_id,
        mode=AddressingMode.from_value(mode),
        start=target.start,
        end=target.last,
    )


def range_query(target: ResidueRange, mode: AddressingMode | str) -> ResidueQuery:
    """Build the query for a ResidueRange."""
    return build_query(target.chain_id, target.start, target.end, mode)


def union_query(queries: list[ResidueQuery]) -> QueryUnion:
    """Combine residue queries into one descriptor.

    Raises:
        ValueError: If the list is empty or mixes label and auth queries.
    """
    if not queries:
        raise ValueError("Cannot build a union of zero queries")

    modes = {q.mode for q in queries}
    if len(modes) > 1:
        raise ValueError("Cannot mix label and auth identifiers in one query")

    return QueryUnion(parts=tuple(queries), mode=queries[0].mode)


def describe_query(query: QueryDescriptor) -> str:
    """Human-readable form of a query, used in logs and result labels."""
    if isinstance(query, MoleculeTypeQuery):
        return query.molecule_type
    if isinstance(query, ResidueNameQuery):
        return "residues " + ",".join(query.names)
    if isinstance(query, QueryUnion):
        return " | ".join(describe_query(part) for part in query.parts)
    if query.start is None:
        text = f"chain {query.chain_id}"
    elif query.end is None or query.end == query.start:
        text = f"{query.chain_id}:{query.start}"
    else:
        text = f"{query.chain_id}:{query.start}-{query.end}"
    return f"{text} ({query.mode.value})"
