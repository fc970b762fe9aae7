"""Chain and residue-range visibility control.

Hiding uses a selection-then-subtract protocol against the adapter's
component tree: resolve the target query to a locus, make it the current
selection, subtract the current selection from every component, then clear
the selection. Hiding is monotonic; the only way back is show_all(), which
reloads the structure from its source.

Component-tree mutations are never issued concurrently. Every subtract step
is awaited before the next one starts, and every step first checks that the
structure it was planned against is still the current one.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from src.config.settings import (
    COMMON_LIGAND_NAMES,
    ION_RESIDUE_NAMES,
    MAX_RESIDUE_NUMBER,
    MIN_RESIDUE_NUMBER,
)
from src.models.addressing import (
    AddressingMode,
    MoleculeTypeQuery,
    QueryDescriptor,
    ResidueNameQuery,
    ResidueRange,
    describe_query,
    range_query,
)
from src.models.errors import (
    AdapterFailureError,
    EmptyMatchError,
    NotFoundError,
    NotInitializedError,
    StaleStructureError,
    StructureSyncError,
)
from src.models.structure_adapter import StructureAdapter
from src.utils.events import EventEmitter, VISIBILITY_OPERATION_RESULT

logger = logging.getLogger(__name__)

# Actions whose success with zero atoms hidden is reported as an empty match
HIDING_ACTIONS = (
    "hide", "isolate", "isolate-range", "hide-water", "hide-ligand",
    "hide-ions", "hide-residues", "hide-unwanted",
)


@dataclass
class VisibilityResult:
    """Result of a visibility operation.

    Attributes:
        action: Operation name ('hide', 'isolate', 'isolate-range', ...).
        target: Description of the target.
        success: Whether the operation succeeded (empty matches count).
        reason: Short reason code for soft successes and failures.
        atoms_hidden: Atoms removed from components by this operation.
    """

    action: str
    target: str
    success: bool
    reason: str | None = None
    atoms_hidden: int = 0


@dataclass
class IsolationStatus:
    """Visibility summary of the component tree."""

    has_isolation: bool
    total_components: int
    visible_components: int


class StructureSession:
    """Tracks the current structure source and its load generation.

    The generation increases every time a structure load is requested, so
    work planned against an older structure can detect that it is stale.
    """

    def __init__(self):
        self._structure_id: str | None = None
        self._generation = 0

    @property
    def structure_id(self) -> str | None:
        return self._structure_id

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self, structure_id: str) -> int:
        """Record a new load request and return its generation."""
        self._structure_id = structure_id
        self._generation += 1
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation


class ChainVisibilityEngine:
    """Hides, isolates and restores chains and residue ranges.

    Args:
        adapter: Structure adapter for the 3D engine.
        session: Shared structure session; a new one is created if omitted.
        mode: Addressing mode for all chain/residue queries.
    """

    def __init__(
        self,
        adapter: StructureAdapter,
        session: StructureSession | None = None,
        mode: AddressingMode | str = AddressingMode.LABEL,
    ):
        self._adapter = adapter
        self._session = session or StructureSession()
        self._mode = AddressingMode.from_value(mode)
        self._loaded_id: str | None = None
        self._loaded_generation: int | None = None
        self._events = EventEmitter()

    @property
    def session(self) -> StructureSession:
        return self._session

    @property
    def mode(self) -> AddressingMode:
        return self._mode

    @property
    def loaded_structure_id(self) -> str | None:
        """Source of the structure currently shown."""
        return self._loaded_id

    def add_listener(self, callback: Callable[[VisibilityResult], None]) -> None:
        """Add a visibility-operation-result listener."""
        self._events.add_listener(VISIBILITY_OPERATION_RESULT, callback)

    def remove_listener(self, callback: Callable[[VisibilityResult], None]) -> None:
        self._events.remove_listener(VISIBILITY_OPERATION_RESULT, callback)

    # Structure lifecycle

    async def load_structure(self, source_id: str) -> VisibilityResult:
        """Load a structure, superseding any operation still in flight."""
        return await self._load(source_id, "load")

    async def _load(self, source_id: str, action: str) -> VisibilityResult:
        generation = self._session.begin(source_id)

        async def steps() -> int:
            try:
                await self._adapter.load_structure(source_id)
            except Exception:
                if self._session.is_current(generation):
                    # The adapter still holds the previous structure
                    self._loaded_generation = generation
                raise
            self._ensure_current(generation)
            self._loaded_id = source_id
            self._loaded_generation = generation
            return 0

        return await self._run(action, source_id, steps, require_structure=False)

    async def show_all(self) -> VisibilityResult:
        """Restore full visibility by reloading the structure from its source."""
        source_id = self._loaded_id
        if source_id is None or not self._adapter.is_loaded:
            return self._finish(VisibilityResult(
                "show-all", "structure", False, NotInitializedError.kind
            ))
        return await self._load(source_id, "show-all")

    def get_available_chains(self) -> list[str]:
        """Chain ids of the current structure; hidden chains stay listed."""
        if not self._adapter.is_loaded:
            return []
        return self._adapter.get_chain_ids(self._mode)

    def get_isolation_status(self) -> IsolationStatus:
        components = self._adapter.list_components() if self._adapter.is_loaded else []
        visible = sum(1 for c in components if not c.hidden and c.atom_count > 0)
        return IsolationStatus(
            has_isolation=bool(components) and visible < len(components),
            total_components=len(components),
            visible_components=visible,
        )

    # Visibility operations

    async def hide(self, target: ResidueRange) -> VisibilityResult:
        """Hide the atoms of a chain or residue range."""
        async def steps(generation: int) -> int:
            self._require_chain(target.chain_id)
            return await self._hide_step(range_query(target, self._mode), generation)

        return await self._run_on_structure("hide", str(target), steps)

    async def hide_chain(self, chain_id: str) -> VisibilityResult:
        try:
            target = ResidueRange(chain_id)
        except ValueError as e:
            return self._invalid("hide", repr(chain_id), e)
        return await self.hide(target)

    async def hide_residue_range(self, chain_id: str, start: int, end: int) -> VisibilityResult:
        try:
            target = ResidueRange(chain_id, start, end)
        except ValueError as e:
            return self._invalid("hide", f"{chain_id}:{start}-{end}", e)
        return await self.hide(target)

    async def isolate(self, chain_id: str) -> VisibilityResult:
        """Hide every chain except the target, one chain at a time."""
        async def steps(generation: int) -> int:
            complement = self._complement(chain_id)
            if not complement:
                raise _NothingToDo("no-isolation-needed")
            return await self._hide_chains(complement, generation)

        return await self._run_on_structure("isolate", chain_id, steps)

    async def isolate_range(self, chain_id: str, start: int, end: int) -> VisibilityResult:
        """Hide everything except residues [start, end] of one chain."""
        try:
            target = ResidueRange(chain_id, start, end)
        except ValueError as e:
            return self._invalid("isolate-range", f"{chain_id}:{start}-{end}", e)

        async def steps(generation: int) -> int:
            complement = self._complement(chain_id)
            hidden = await self._hide_chains(complement, generation)
            if start > MIN_RESIDUE_NUMBER:
                hidden += await self._hide_step_soft(
                    range_query(ResidueRange(chain_id, MIN_RESIDUE_NUMBER, start - 1), self._mode),
                    generation,
                )
            if end < MAX_RESIDUE_NUMBER:
                hidden += await self._hide_step_soft(
                    range_query(ResidueRange(chain_id, end + 1, MAX_RESIDUE_NUMBER), self._mode),
                    generation,
                )
            return hidden

        return await self._run_on_structure("isolate-range", str(target), steps)

    async def hide_water(self) -> VisibilityResult:
        return await self._hide_molecule_type("water")

    async def hide_ligands(self) -> VisibilityResult:
        return await self._hide_molecule_type("ligand")

    async def hide_ions(self, names: tuple[str, ...] | list[str] = ION_RESIDUE_NAMES) -> VisibilityResult:
        """Hide ions, matched by residue name."""
        return await self._hide_residue_names("hide-ions", names)

    async def hide_residues_by_name(self, names: tuple[str, ...] | list[str]) -> VisibilityResult:
        """Hide every residue whose name is in ``names`` (e.g. HEM, SO4)."""
        return await self._hide_residue_names("hide-residues", names)

    async def hide_common_unwanted(
        self,
        ligand_names: tuple[str, ...] | list[str] = COMMON_LIGAND_NAMES,
        ion_names: tuple[str, ...] | list[str] = ION_RESIDUE_NAMES,
    ) -> VisibilityResult:
        """Hide water, common ligands and ions in one operation.

        Each part is a separate select-then-subtract step; parts with nothing
        left to hide are skipped.
        """
        try:
            ligands = _residue_name_query(ligand_names)
            ions = _residue_name_query(ion_names)
        except ValueError as e:
            return self._invalid("hide-unwanted", "water,ligands,ions", e)

        async def steps(generation: int) -> int:
            hidden = 0
            for query in (MoleculeTypeQuery("water"), ligands, ions):
                hidden += await self._hide_step_soft(query, generation)
            return hidden

        return await self._run_on_structure("hide-unwanted", "water,ligands,ions", steps)

    async def set_component_visibility(self, ref: str, visible: bool) -> VisibilityResult:
        """Show or hide a whole component without changing its atoms."""
        async def steps(generation: int) -> int:
            if ref not in {c.ref for c in self._adapter.list_components()}:
                raise NotFoundError(f"Component {ref} not found")
            await self._adapter.set_component_visibility(ref, visible)
            self._ensure_current(generation)
            return 0

        action = "show-component" if visible else "hide-component"
        return await self._run_on_structure(action, ref, steps)

    # Internals

    async def _hide_molecule_type(self, molecule_type: str) -> VisibilityResult:
        async def steps(generation: int) -> int:
            return await self._hide_step(MoleculeTypeQuery(molecule_type), generation)

        return await self._run_on_structure(f"hide-{molecule_type}", molecule_type, steps)

    async def _hide_residue_names(self, action: str, names: tuple[str, ...] | list[str]) -> VisibilityResult:
        try:
            query = _residue_name_query(names)
        except ValueError as e:
            return self._invalid(action, repr(names), e)

        async def steps(generation: int) -> int:
            return await self._hide_step(query, generation)

        return await self._run_on_structure(action, ",".join(query.names), steps)

    async def _hide_chains(self, chain_ids: list[str], generation: int) -> int:
        hidden = 0
        for chain_id in chain_ids:
            hidden += await self._hide_step_soft(
                range_query(ResidueRange(chain_id), self._mode), generation
            )
        return hidden

    async def _hide_step_soft(self, query: QueryDescriptor, generation: int) -> int:
        """Hide step where an empty match just contributes nothing."""
        try:
            return await self._hide_step(query, generation)
        except EmptyMatchError:
            logger.debug(f"Nothing left to hide for {describe_query(query)}")
            return 0

    async def _hide_step(self, query: QueryDescriptor, generation: int) -> int:
        """Select the query's atoms and subtract them from all components."""
        self._ensure_current(generation)

        locus = self._adapter.query_locus(query)
        if locus.is_empty:
            raise EmptyMatchError(f"No atoms match {describe_query(query)}")

        components = self._adapter.list_components()
        self._adapter.set_current_selection(locus)
        try:
            result = await self._adapter.subtract_current_selection_from_components(components)
        finally:
            self._adapter.clear_selection()

        self._ensure_current(generation)
        logger.debug(
            f"Subtracted {describe_query(query)}: {result.atoms_removed} atoms "
            f"from {result.modified}"
        )
        return result.atoms_removed

    def _complement(self, chain_id: str) -> list[str]:
        chains = self._require_chain(chain_id)
        return [c for c in chains if c != chain_id]

    def _require_chain(self, chain_id: str) -> list[str]:
        chains = self._adapter.get_chain_ids(self._mode)
        if chain_id not in chains:
            raise NotFoundError(f"Chain {chain_id} not found ({self._mode.value} ids: {chains})")
        return chains

    def _ensure_current(self, generation: int) -> None:
        if not self._session.is_current(generation):
            raise StaleStructureError("Structure was replaced during the operation")

    async def _run_on_structure(
        self,
        action: str,
        target: str,
        steps: Callable[[int], Awaitable[int]],
    ) -> VisibilityResult:
        generation = self._session.generation
        if self._adapter.is_loaded and generation != self._loaded_generation:
            logger.warning(f"{action} {target}: discarded, a new structure is loading")
            return self._finish(VisibilityResult(action, target, False, StaleStructureError.kind))

        async def bound_steps() -> int:
            return await steps(generation)

        return await self._run(action, target, bound_steps, require_structure=True)

    async def _run(
        self,
        action: str,
        target: str,
        steps: Callable[[], Awaitable[int]],
        require_structure: bool,
    ) -> VisibilityResult:
        """Run operation steps, converting every failure into a result."""
        if require_structure and not self._adapter.is_loaded:
            logger.warning(f"{action} {target}: no structure loaded")
            return self._finish(VisibilityResult(action, target, False, NotInitializedError.kind))

        try:
            hidden = await steps()
            result = VisibilityResult(action, target, True, atoms_hidden=hidden)
            if hidden == 0 and action in HIDING_ACTIONS:
                result.reason = EmptyMatchError.kind
        except _NothingToDo as e:
            result = VisibilityResult(action, target, True, e.reason)
        except EmptyMatchError:
            result = VisibilityResult(action, target, True, EmptyMatchError.kind)
        except StaleStructureError:
            logger.warning(f"{action} {target}: discarded, structure was replaced")
            result = VisibilityResult(action, target, False, StaleStructureError.kind)
        except StructureSyncError as e:
            logger.error(f"{action} {target} failed: {e}")
            result = VisibilityResult(action, target, False, e.kind)
        except Exception as e:
            logger.error(f"{action} {target} failed in adapter: {e}")
            result = VisibilityResult(action, target, False, AdapterFailureError.kind)

        if result.success:
            logger.info(f"{action} {target}: {result.atoms_hidden} atoms hidden")
        return self._finish(result)

    def _invalid(self, action: str, target: str, error: ValueError) -> VisibilityResult:
        logger.warning(f"{action} {target}: {error}")
        return self._finish(VisibilityResult(action, target, False, "invalid-target"))

    def _finish(self, result: VisibilityResult) -> VisibilityResult:
        self._events.emit(VISIBILITY_OPERATION_RESULT, result)
        return result


def _residue_name_query(names: tuple[str, ...] | list[str]) -> ResidueNameQuery:
    return ResidueNameQuery(tuple(str(n).strip().upper() for n in names if str(n).strip()))


class _NothingToDo(Exception):
    """Operation has no work to do; reported as a soft success."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
