"""Drag-to-range selection state machine for the sequence view.

States are Idle and Dragging. Pointer events produce a transient candidate
region that is only written into the SelectionModel on release:

    Idle     --pointer_down(r)--------------> Dragging
    Dragging --pointer_enter(r) same chain--> Dragging (candidate grows)
    Dragging --pointer_enter(r) other chain-> Dragging (ignored)
    Dragging --pointer_up(add)--------------> Idle     (commit)
    Dragging --open_context_menu------------> Idle     (no commit)

Hovering while Idle only updates the highlighted residues list.
"""

import logging
from enum import Enum
from typing import Callable

from src.models.selection import SelectionModel, SelectionRegion, make_region
from src.models.sequence import SequenceData, SequenceResidue
from src.utils.events import EventEmitter, HIGHLIGHTED_RESIDUES_CHANGED

logger = logging.getLogger(__name__)


class DragState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class DragSelectionController:
    """Turns pointer events on residues into committed selection regions.

    The candidate region spans the drag start and every residue of the same
    chain entered during the drag, so its bounds are the minimum and maximum
    of those positions regardless of the order the residues were entered.
    """

    def __init__(
        self,
        model: SelectionModel,
        sequence_data: SequenceData | None = None,
        read_only: bool = False,
    ):
        self._model = model
        self._sequence_data = sequence_data
        self._read_only = read_only
        self._state = DragState.IDLE
        self._drag_start: SequenceResidue | None = None
        self._extent: tuple[int, int] | None = None
        self._candidate: SelectionRegion | None = None
        self._highlighted: list[SequenceResidue] = []
        self._events = EventEmitter()

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def is_dragging(self) -> bool:
        return self._state == DragState.DRAGGING

    @property
    def candidate_region(self) -> SelectionRegion | None:
        """The transient region of the drag in progress."""
        return self._candidate

    @property
    def highlighted_residues(self) -> list[SequenceResidue]:
        return list(self._highlighted)

    @property
    def read_only(self) -> bool:
        return self._read_only

    def set_read_only(self, read_only: bool) -> None:
        self._read_only = read_only
        if read_only:
            self.cancel()

    def add_highlight_listener(self, callback: Callable[[list[SequenceResidue]], None]) -> None:
        """Add a highlighted-residues-changed listener."""
        self._events.add_listener(HIGHLIGHTED_RESIDUES_CHANGED, callback)

    def remove_highlight_listener(self, callback: Callable[[list[SequenceResidue]], None]) -> None:
        self._events.remove_listener(HIGHLIGHTED_RESIDUES_CHANGED, callback)

    def set_sequence_data(self, data: SequenceData | None) -> None:
        """Attach sequence data for a new structure, dropping any drag in progress."""
        self.cancel()
        self._set_highlighted([])
        self._sequence_data = data

    # Pointer events

    def pointer_down(self, residue: SequenceResidue) -> None:
        """Start a drag on a residue."""
        if self._read_only:
            return
        self._state = DragState.DRAGGING
        self._drag_start = residue
        self._extent = (residue.position, residue.position)
        self._candidate = self._build_region(residue.chain_id, residue.position, residue.position)
        logger.debug(f"Drag started at {residue.chain_id}:{residue.position}")

    def pointer_enter(self, residue: SequenceResidue) -> None:
        """Extend the drag, or update the hover highlight when idle."""
        if self._state == DragState.DRAGGING:
            if residue.chain_id != self._drag_start.chain_id:
                return
            lo, hi = self._extent
            self._extent = (min(lo, residue.position), max(hi, residue.position))
            self._candidate = self._build_region(residue.chain_id, *self._extent)
        elif not self._read_only:
            self._set_highlighted([residue])

    def pointer_leave(self) -> None:
        """Clear the hover highlight when the pointer leaves the sequence view."""
        if self._state == DragState.IDLE:
            self._set_highlighted([])

    def pointer_up(self, add_modifier: bool = False) -> bool:
        """Finish the drag and commit the candidate region.

        Args:
            add_modifier: Whether the add-to-selection modifier is held;
                without it the candidate replaces the selection.

        Returns:
            True if a region was committed.
        """
        if self._state != DragState.DRAGGING:
            return False

        candidate = self._candidate
        self._reset()

        if candidate is None:
            return False
        if add_modifier:
            committed = self._model.add_region(candidate)
        else:
            committed = self._model.replace_selection([candidate])

        logger.debug(
            f"Drag committed {candidate.id} ({'add' if add_modifier else 'replace'}): {committed}"
        )
        return committed

    def open_context_menu(self) -> None:
        """A context menu opened; abandon any drag without committing."""
        if self._state == DragState.DRAGGING:
            logger.debug("Drag cancelled by context menu")
        self._reset()

    def cancel(self) -> None:
        """Abandon any drag in progress without committing."""
        self._reset()

    def is_in_candidate(self, residue: SequenceResidue) -> bool:
        """Check if a residue is inside the drag in progress (for preview)."""
        c = self._candidate
        return c is not None and c.contains(residue.chain_id, residue.position)

    # Internals

    def _reset(self) -> None:
        self._state = DragState.IDLE
        self._drag_start = None
        self._extent = None
        self._candidate = None

    def _build_region(self, chain_id: str, start: int, end: int) -> SelectionRegion:
        sequence = ""
        if self._sequence_data is not None:
            chain = self._sequence_data.get_chain(chain_id)
            if chain is not None:
                sequence = chain.slice_sequence(start, end)
        elif start == end and self._drag_start is not None:
            sequence = self._drag_start.code
        return make_region(chain_id, start, end, sequence, region_id=f"drag-{chain_id}-{start}-{end}")

    def _set_highlighted(self, residues: list[SequenceResidue]) -> None:
        if residues == self._highlighted:
            return
        self._highlighted = list(residues)
        self._events.emit(HIGHLIGHTED_RESIDUES_CHANGED, list(residues))
