"""Bidirectional synchronization between the sequence selection and the 3D view.

Sequence -> structure: every selection change is sent to the adapter as one
complete highlight (the adapter replaces, never accumulates, highlights).

Structure -> sequence: a 3D pick can be promoted into a selection region.
While that happens the bridge ignores the resulting selection change so it
does not bounce back into the engine.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable

from src.models.addressing import AddressingMode, build_query, union_query
from src.models.drag_selection import DragSelectionController
from src.models.errors import SequenceFetchError
from src.models.selection import SelectionModel, SelectionRegion, SequenceSelection, make_region
from src.models.sequence import SequenceData, SequenceResidue
from src.models.sequence_provider import SequenceProvider
from src.models.structure_adapter import StructureAdapter
from src.models.visibility import ChainVisibilityEngine, VisibilityResult
from src.utils.events import EventEmitter, VISIBILITY_OPERATION_RESULT

logger = logging.getLogger(__name__)

# Actions accepted by perform_residue_action
RESIDUE_ACTIONS = ("hide", "isolate", "highlight", "copy")


class Clipboard(ABC):
    """Text clipboard."""

    @abstractmethod
    async def write_text(self, text: str) -> None:
        pass


class MemoryClipboard(Clipboard):
    """Clipboard kept in process memory."""

    def __init__(self):
        self.text: str | None = None

    async def write_text(self, text: str) -> None:
        self.text = text


class SelectionSyncBridge:
    """Connects SelectionModel, DragSelectionController and the structure side.

    Args:
        model: Selection model to mirror into the 3D view.
        adapter: Structure adapter used for highlights.
        engine: Visibility engine for hide/isolate actions.
        drag: Drag controller reset on new structure requests.
        clipboard: Clipboard for the copy action.
        sequence_provider: Source of sequence data for requested structures.
        promote_picks: Whether 3D picks become selection regions.
    """

    def __init__(
        self,
        model: SelectionModel,
        adapter: StructureAdapter,
        engine: ChainVisibilityEngine,
        drag: DragSelectionController | None = None,
        clipboard: Clipboard | None = None,
        sequence_provider: SequenceProvider | None = None,
        promote_picks: bool = True,
    ):
        self._model = model
        self._adapter = adapter
        self._engine = engine
        self._drag = drag
        self._clipboard = clipboard or MemoryClipboard()
        self._sequence_provider = sequence_provider
        self._promote_picks = promote_picks
        self._applying_pick = False
        self._attached = False
        self._events = EventEmitter()

    @property
    def mode(self) -> AddressingMode:
        return self._engine.mode

    @property
    def is_attached(self) -> bool:
        return self._attached

    def attach(self) -> None:
        """Start mirroring selection changes and engine results."""
        if self._attached:
            return
        self._model.add_listener(self._on_selection_changed)
        self._engine.add_listener(self._on_visibility_result)
        if self._drag is not None:
            self._drag.add_highlight_listener(self._on_hover_changed)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        self._model.remove_listener(self._on_selection_changed)
        self._engine.remove_listener(self._on_visibility_result)
        if self._drag is not None:
            self._drag.remove_highlight_listener(self._on_hover_changed)
        self._attached = False

    def add_result_listener(self, callback: Callable[[VisibilityResult], None]) -> None:
        """Add a visibility-operation-result listener (all actions)."""
        self._events.add_listener(VISIBILITY_OPERATION_RESULT, callback)

    def remove_result_listener(self, callback: Callable[[VisibilityResult], None]) -> None:
        self._events.remove_listener(VISIBILITY_OPERATION_RESULT, callback)

    # Structure lifecycle

    async def request_structure(self, source_id: str) -> VisibilityResult:
        """Load a new structure.

        Selection and drag state are cleared before anything is awaited.
        Sequence data is fetched after the structure and discarded if another
        structure was requested in the meantime.
        """
        self._model.set_sequence_data(None)
        if self._drag is not None:
            self._drag.set_sequence_data(None)

        result = await self._engine.load_structure(source_id)
        if not result.success or self._sequence_provider is None:
            return result

        generation = self._engine.session.generation
        try:
            data = await self._sequence_provider.fetch_sequence(source_id)
        except SequenceFetchError as e:
            logger.warning(f"No sequence data for {source_id} ({e.kind}): {e}")
            return result

        if not self._engine.session.is_current(generation):
            logger.debug(f"Discarding sequence data for superseded structure {source_id}")
            return result

        self.set_sequence_data(data)
        return result

    def set_sequence_data(self, data: SequenceData | None) -> None:
        """Attach sequence data to the model and drag controller."""
        if data is not None and data.mode != self.mode:
            logger.warning(
                f"Sequence data for {data.id} uses {data.mode.value} ids, "
                f"structure queries use {self.mode.value}"
            )
        self._model.set_sequence_data(data)
        if self._drag is not None:
            self._drag.set_sequence_data(data)

    # Sequence -> structure

    def _on_selection_changed(self, selection: SequenceSelection) -> None:
        if self._applying_pick:
            return
        self.sync_selection(selection)

    def sync_selection(self, selection: SequenceSelection | None = None) -> bool:
        """Send the complete selection to the adapter as highlights.

        Returns:
            False if the adapter rejected the call.
        """
        selection = selection or self._model.get_selection()
        if not self._adapter.is_loaded:
            return False

        try:
            if selection.is_empty:
                self._adapter.clear_highlights()
                return True
            queries = [
                build_query(r.chain_id, r.start, r.end, self.mode) for r in selection.regions
            ]
            locus = self._adapter.query_locus(union_query(queries))
            self._adapter.highlight_only(locus)
            return True
        except Exception as e:
            logger.error(f"Failed to sync selection to structure: {e}")
            return False

    def _on_hover_changed(self, residues: list[SequenceResidue]) -> None:
        if residues:
            self.highlight_residues(residues)
        else:
            self.sync_selection()

    def highlight_residues(self, residues: list[SequenceResidue]) -> bool:
        """Show a transient highlight of residues (e.g. under the pointer).

        Replaces the selection highlight until the next selection change or
        until the hover ends.

        Returns:
            False if nothing is loaded or the adapter rejected the call.
        """
        if not residues or not self._adapter.is_loaded:
            return False
        try:
            queries = [build_query(r.chain_id, r.position, mode=self.mode) for r in residues]
            self._adapter.highlight_only(self._adapter.query_locus(union_query(queries)))
            return True
        except Exception as e:
            logger.error(f"Failed to highlight hovered residues: {e}")
            return False

    # Structure -> sequence

    def handle_pick(self, chain_id: str, position: int, add: bool = False) -> bool:
        """Promote a residue picked in the 3D view into the selection.

        Args:
            chain_id: Picked residue's chain id (bridge addressing mode).
            position: Picked residue's number.
            add: Add to the selection instead of replacing it.

        Returns:
            True if the selection was updated.
        """
        if not self._promote_picks:
            return False

        data = self._model.sequence_data
        sequence = ""
        if data is not None:
            residue = data.get_residue(chain_id, position)
            if residue is None:
                logger.debug(f"Ignoring pick outside sequence data: {chain_id}:{position}")
                return False
            sequence = residue.code

        region = make_region(chain_id, position, position, sequence, region_id=f"pick-{chain_id}-{position}")

        self._applying_pick = True
        try:
            if add:
                return self._model.add_region(region)
            return self._model.replace_selection([region])
        finally:
            self._applying_pick = False

    # Region actions

    async def perform_residue_action(self, action: str, region: SelectionRegion) -> bool:
        """Apply a context action to a region.

        Failures are logged and reported through the result listeners; they
        never raise.

        Returns:
            True if the action succeeded.
        """
        target = region.label or region.id
        try:
            if action == "hide":
                result = await self._engine.hide_residue_range(region.chain_id, region.start, region.end)
                return result.success
            if action == "isolate":
                result = await self._engine.isolate_range(region.chain_id, region.start, region.end)
                return result.success
            if action == "highlight":
                return self._finish(action, target, self._highlight_region(region))
            if action == "copy":
                return self._finish(action, target, await self._copy_region(region))
        except Exception as e:
            logger.error(f"Residue action {action} on {target} failed: {e}")
            return self._finish(action, target, False, "adapter-failure")

        logger.warning(f"Unknown residue action: {action}")
        return self._finish(action, target, False, "unknown-action")

    def _highlight_region(self, region: SelectionRegion) -> bool:
        if not self._adapter.is_loaded:
            return False
        query = build_query(region.chain_id, region.start, region.end, self.mode)
        self._adapter.highlight_only(self._adapter.query_locus(query))
        return True

    async def _copy_region(self, region: SelectionRegion) -> bool:
        text = self._model.get_region_sequence(region)
        if not text:
            logger.warning(f"No sequence to copy for {region.id}")
            return False
        await self._clipboard.write_text(text)
        self._model.set_clipboard(text)
        return True

    def _finish(self, action: str, target: str, success: bool, reason: str | None = None) -> bool:
        if not success and reason is None:
            reason = "failed"
        self._events.emit(
            VISIBILITY_OPERATION_RESULT,
            VisibilityResult(action=action, target=target, success=success, reason=reason),
        )
        return success

    def _on_visibility_result(self, result: VisibilityResult) -> None:
        self._events.emit(VISIBILITY_OPERATION_RESULT, result)
