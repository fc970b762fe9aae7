"""Sequence selection model.

A selection is an ordered list of single-chain, contiguous regions. Regions
may overlap; a residue counts as selected if any region of its chain covers
it. Every successful mutation emits one ``selection-changed`` event whose
payload is the complete new SequenceSelection.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from src.config.settings import DEFAULT_SELECTION_MODE, SELECTION_MODES
from src.models.sequence import SequenceData, SequenceResidue
from src.utils.events import EventEmitter, SELECTION_CHANGED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionRegion:
    """A contiguous residue interval on one chain.

    Attributes:
        id: Unique region identifier.
        chain_id: Chain the region belongs to.
        start: First residue position (inclusive).
        end: Last residue position (inclusive), ``start <= end``.
        sequence: One-letter codes for [start, end], empty if unknown.
        label: Optional display label.
    """

    id: str
    chain_id: str
    start: int
    end: int
    sequence: str = ""
    label: str | None = None

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def contains(self, chain_id: str, position: int) -> bool:
        return chain_id == self.chain_id and self.start <= position <= self.end

    def touches(self, other: "SelectionRegion") -> bool:
        """Check if two regions on the same chain overlap or are adjacent."""
        return (
            self.chain_id == other.chain_id
            and self.start <= other.end + 1
            and other.start <= self.end + 1
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "chain_id": self.chain_id,
            "start": self.start,
            "end": self.end,
            "sequence": self.sequence,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SelectionRegion":
        return cls(
            id=data["id"],
            chain_id=data["chain_id"],
            start=int(data["start"]),
            end=int(data["end"]),
            sequence=data.get("sequence", ""),
            label=data.get("label"),
        )


def make_region(
    chain_id: str,
    start: int,
    end: int,
    sequence: str = "",
    region_id: str | None = None,
) -> SelectionRegion:
    """Create a region with a default id and label of the form 'A:10-20'."""
    label = f"{chain_id}:{start}" if start == end else f"{chain_id}:{start}-{end}"
    return SelectionRegion(
        id=region_id or label,
        chain_id=chain_id,
        start=start,
        end=end,
        sequence=sequence,
        label=label,
    )


@dataclass
class SequenceSelection:
    """Snapshot of the selection state.

    Attributes:
        regions: Regions in insertion order, unique ids.
        active_region: Id of the active region, or None.
        clipboard: Last copied sequence, or None.
    """

    regions: list[SelectionRegion] = field(default_factory=list)
    active_region: str | None = None
    clipboard: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.regions

    def to_dict(self) -> dict[str, Any]:
        return {
            "regions": [r.to_dict() for r in self.regions],
            "active_region": self.active_region,
            "clipboard": self.clipboard,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SequenceSelection":
        return cls(
            regions=[SelectionRegion.from_dict(r) for r in data.get("regions", [])],
            active_region=data.get("active_region"),
            clipboard=data.get("clipboard"),
        )


@dataclass
class SelectionConstraints:
    """Limits applied to selection mutations. None means unlimited."""

    max_selections: int | None = None
    max_range_size: int | None = None
    allowed_chains: list[str] | None = None


class SelectionModel:
    """Holds the current SequenceSelection and applies mutations to it.

    Mutations never raise for invalid input: they return False and leave the
    state untouched.
    """

    def __init__(
        self,
        mode: str = DEFAULT_SELECTION_MODE,
        constraints: SelectionConstraints | None = None,
        sequence_data: SequenceData | None = None,
    ):
        if mode not in SELECTION_MODES:
            raise ValueError(f"Unknown selection mode: {mode}")
        self._mode = mode
        self._constraints = constraints or SelectionConstraints()
        self._sequence_data = sequence_data
        self._regions: list[SelectionRegion] = []
        self._active_region: str | None = None
        self._clipboard: str | None = None
        self._by_chain: dict[str, list[SelectionRegion]] = {}
        self._events = EventEmitter()

    # Listeners

    def add_listener(self, callback: Callable[[SequenceSelection], None]) -> None:
        """Add a selection-changed listener."""
        self._events.add_listener(SELECTION_CHANGED, callback)

    def remove_listener(self, callback: Callable[[SequenceSelection], None]) -> None:
        """Remove a selection-changed listener."""
        self._events.remove_listener(SELECTION_CHANGED, callback)

    # State access

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def constraints(self) -> SelectionConstraints:
        return self._constraints

    @property
    def regions(self) -> list[SelectionRegion]:
        return list(self._regions)

    @property
    def active_region(self) -> str | None:
        return self._active_region

    @property
    def clipboard(self) -> str | None:
        return self._clipboard

    @property
    def sequence_data(self) -> SequenceData | None:
        return self._sequence_data

    def get_selection(self) -> SequenceSelection:
        """Get a snapshot of the current selection."""
        return SequenceSelection(
            regions=list(self._regions),
            active_region=self._active_region,
            clipboard=self._clipboard,
        )

    def get_region(self, region_id: str) -> SelectionRegion | None:
        for region in self._regions:
            if region.id == region_id:
                return region
        return None

    # Mutations

    def add_region(self, region: SelectionRegion) -> bool:
        """Insert a region, or replace the region with the same id.

        The region becomes the active region. In 'single' mode it replaces
        the whole selection; in 'range' mode it replaces any region on the
        same chain.

        Returns:
            True on success, False if the region is invalid or a constraint
            would be exceeded (state unchanged).
        """
        if not self._validate_region(region):
            return False

        if self._mode == "single":
            new_regions = [region]
        else:
            new_regions = [r for r in self._regions if r.id != region.id]
            if self._mode == "range":
                new_regions = [r for r in new_regions if r.chain_id != region.chain_id]
            index = self._index_of(region.id)
            if index is not None and self._mode == "multiple":
                new_regions.insert(index, region)
            else:
                new_regions.append(region)

        if not self._check_constraints(new_regions):
            return False

        self._set_regions(new_regions, active=region.id)
        logger.debug(f"SelectionModel.add_region: {region.id} ({len(new_regions)} regions)")
        return True

    def remove_region(self, region_id: str) -> bool:
        """Remove a region by id.

        Returns:
            True if removed, False if no region has that id.
        """
        if self._index_of(region_id) is None:
            logger.debug(f"SelectionModel.remove_region: {region_id} not found")
            return False

        active = None if self._active_region == region_id else self._active_region
        self._set_regions([r for r in self._regions if r.id != region_id], active=active)
        return True

    def replace_selection(self, regions: SelectionRegion | list[SelectionRegion]) -> bool:
        """Atomically set the selection to exactly the given regions.

        The last given region becomes active.

        Returns:
            True on success, False if any region is invalid, ids repeat, or a
            constraint would be exceeded (state unchanged).
        """
        if isinstance(regions, SelectionRegion):
            regions = [regions]
        regions = list(regions)

        if not self._accepts(regions):
            return False

        self._set_regions(regions, active=regions[-1].id if regions else None)
        return True

    def clear_selection(self) -> None:
        """Remove all regions. The clipboard is preserved."""
        self._set_regions([], active=None)

    def merge_overlapping(self) -> bool:
        """Merge overlapping or adjacent regions within each chain.

        Merged regions get an id/label of the form 'A:10-30' and a sequence
        re-sliced from the attached sequence data (empty without it).

        Returns:
            True if any regions were merged.
        """
        merged: list[SelectionRegion] = []
        changed = False

        for chain_id in self._chain_order():
            chain_regions = sorted(self._by_chain[chain_id], key=lambda r: (r.start, r.end))
            current = chain_regions[0]
            for region in chain_regions[1:]:
                if current.touches(region):
                    start = current.start
                    end = max(current.end, region.end)
                    current = make_region(chain_id, start, end, self._slice(chain_id, start, end))
                    changed = True
                else:
                    merged.append(current)
                    current = region
            merged.append(current)

        if not changed:
            return False

        ids = {r.id for r in merged}
        active = self._active_region if self._active_region in ids else None
        self._set_regions(merged, active=active)
        return True

    def set_active_region(self, region_id: str | None) -> bool:
        """Set the active region (None clears it).

        Returns:
            False if the id does not match a region.
        """
        if region_id is not None and self._index_of(region_id) is None:
            return False
        self._active_region = region_id
        self._emit()
        return True

    def set_clipboard(self, text: str | None) -> None:
        self._clipboard = text
        self._emit()

    def set_mode(self, mode: str) -> None:
        """Change the selection mode, trimming the selection to fit it."""
        if mode not in SELECTION_MODES:
            raise ValueError(f"Unknown selection mode: {mode}")
        if mode == self._mode:
            return
        self._mode = mode
        regions = self._regions
        if mode == "single" and len(regions) > 1:
            regions = regions[-1:]
        elif mode == "range":
            # keep the last region per chain
            last_per_chain = {r.chain_id: r for r in regions}
            regions = [r for r in regions if last_per_chain[r.chain_id] is r]
        ids = {r.id for r in regions}
        self._set_regions(regions, active=self._active_region if self._active_region in ids else None)

    def set_constraints(self, constraints: SelectionConstraints) -> None:
        """Replace the constraints, dropping regions that no longer satisfy them."""
        self._constraints = constraints
        valid = [r for r in self._regions if self._validate_region(r)]
        if constraints.max_selections is not None:
            valid = valid[-constraints.max_selections:] if constraints.max_selections > 0 else []
        if valid != self._regions:
            ids = {r.id for r in valid}
            self._set_regions(valid, active=self._active_region if self._active_region in ids else None)

    def set_sequence_data(self, data: SequenceData | None) -> None:
        """Attach sequence data for a newly loaded structure.

        Clears the selection since regions refer to the previous structure.
        """
        self._sequence_data = data
        self.clear_selection()

    def restore(self, selection: SequenceSelection) -> bool:
        """Restore a persisted selection snapshot.

        Regions on chains missing from the attached sequence data are dropped.
        """
        regions = selection.regions
        if self._sequence_data is not None:
            chain_ids = set(self._sequence_data.chain_ids)
            regions = [r for r in regions if r.chain_id in chain_ids]
        if not self._accepts(regions):
            return False

        ids = {r.id for r in regions}
        self._clipboard = selection.clipboard
        self._set_regions(
            regions,
            active=selection.active_region if selection.active_region in ids else None,
        )
        return True

    # Queries

    def is_residue_selected(self, residue: SequenceResidue) -> bool:
        """Check if any region of the residue's chain covers its position."""
        return self.is_position_selected(residue.chain_id, residue.position)

    def is_position_selected(self, chain_id: str, position: int) -> bool:
        return any(r.start <= position <= r.end for r in self._by_chain.get(chain_id, ()))

    def get_residue_region(self, residue: SequenceResidue) -> SelectionRegion | None:
        """Get the first region covering a residue, or None."""
        for region in self._by_chain.get(residue.chain_id, ()):
            if region.start <= residue.position <= region.end:
                return region
        return None

    def get_selected_residues(self) -> list[tuple[str, int]]:
        """Get (chain_id, position) for every selected position, without duplicates."""
        seen: set[tuple[str, int]] = set()
        result = []
        for region in self._regions:
            for pos in range(region.start, region.end + 1):
                key = (region.chain_id, pos)
                if key not in seen:
                    seen.add(key)
                    result.append(key)
        return result

    def get_region_sequence(self, region: SelectionRegion) -> str:
        """Get a region's sequence, slicing sequence data when it is unset."""
        if region.sequence:
            return region.sequence
        return self._slice(region.chain_id, region.start, region.end)

    # Internals

    def _index_of(self, region_id: str) -> int | None:
        for i, region in enumerate(self._regions):
            if region.id == region_id:
                return i
        return None

    def _chain_order(self) -> list[str]:
        order: list[str] = []
        for region in self._regions:
            if region.chain_id not in order:
                order.append(region.chain_id)
        return order

    def _slice(self, chain_id: str, start: int, end: int) -> str:
        if self._sequence_data is None:
            return ""
        chain = self._sequence_data.get_chain(chain_id)
        return chain.slice_sequence(start, end) if chain else ""

    def _validate_region(self, region: SelectionRegion) -> bool:
        if not region.id or not region.chain_id:
            logger.debug(f"Rejected region {region!r}: missing id or chain")
            return False
        if region.end < region.start:
            logger.debug(f"Rejected region {region.id}: end < start")
            return False
        if region.sequence and len(region.sequence) != region.length:
            logger.debug(f"Rejected region {region.id}: sequence length mismatch")
            return False

        c = self._constraints
        if c.allowed_chains is not None and region.chain_id not in c.allowed_chains:
            logger.debug(f"Rejected region {region.id}: chain {region.chain_id} not allowed")
            return False
        if c.max_range_size is not None and region.length > c.max_range_size:
            logger.debug(f"Rejected region {region.id}: exceeds max range size {c.max_range_size}")
            return False
        return True

    def _accepts(self, regions: list[SelectionRegion]) -> bool:
        """Validate a complete replacement region list."""
        if len({r.id for r in regions}) != len(regions):
            logger.debug("Rejected selection: duplicate region ids")
            return False
        if not all(self._validate_region(r) for r in regions):
            return False
        return self._check_constraints(regions)

    def _check_constraints(self, regions: list[SelectionRegion]) -> bool:
        max_selections = self._constraints.max_selections
        if max_selections is not None and len(regions) > max_selections:
            logger.debug(f"Rejected selection: {len(regions)} regions > max {max_selections}")
            return False
        return True

    def _set_regions(self, regions: list[SelectionRegion], active: str | None) -> None:
        self._regions = list(regions)
        self._active_region = active
        self._rebuild_index()
        self._emit()

    def _rebuild_index(self) -> None:
        by_chain: dict[str, list[SelectionRegion]] = {}
        for region in self._regions:
            by_chain.setdefault(region.chain_id, []).append(region)
        self._by_chain = by_chain

    def _emit(self) -> None:
        self._events.emit(SELECTION_CHANGED, self.get_selection())
