"""Structure adapter: the narrow interface to the 3D engine.

The selection and visibility code never touches the engine's scene tree
directly. It resolves queries to loci, sets/clears the engine's current
selection, subtracts that selection from components, and reads component and
chain listings, all through StructureAdapter.

AtomArrayAdapter implements the interface over a biotite AtomArray. Each
component is a boolean atom mask; subtracting removes atoms from the mask.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import biotite.database.rcsb as rcsb
import biotite.structure as struc
import biotite.structure.io.pdb as pdb
import biotite.structure.io.pdbx as pdbx
import numpy as np

from src.config.settings import WATER_RESIDUE_NAMES
from src.models.addressing import (
    AddressingMode,
    MoleculeTypeQuery,
    QueryDescriptor,
    QueryUnion,
    ResidueNameQuery,
    ResidueQuery,
    describe_query,
)
from src.models.errors import AdapterFailureError, NotInitializedError
from src.utils.file_utils import get_file_format, is_file_too_large, is_pdb_id, validate_file_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Locus:
    """A concrete set of atoms in the loaded structure.

    Attributes:
        indices: Sorted atom indices.
        label: Description of the query that produced the locus.
    """

    indices: tuple[int, ...]
    label: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.indices

    @property
    def size(self) -> int:
        return len(self.indices)


@dataclass
class Component:
    """A persistent, named subset of the structure's atoms.

    Attributes:
        ref: Persistent identifier.
        label: Display label ('polymer', 'water', ...).
        hidden: Whether the component is hidden as a whole.
        atom_count: Atoms currently in the component.
    """

    ref: str
    label: str
    hidden: bool = False
    atom_count: int = 0


@dataclass
class ModifyResult:
    """Outcome of a component modification.

    Attributes:
        modified: Refs of components that lost atoms.
        atoms_removed: Total atoms removed across components.
    """

    modified: list[str] = field(default_factory=list)
    atoms_removed: int = 0


class StructureAdapter(ABC):
    """Abstract interface to a 3D structure engine."""

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        """Whether a structure is currently loaded."""
        pass

    @abstractmethod
    async def load_structure(self, source_id: str) -> None:
        """Load a structure, replacing all prior structures and components."""
        pass

    @abstractmethod
    def query_locus(self, descriptor: QueryDescriptor) -> Locus:
        """Resolve a query descriptor to the atoms still shown by some component."""
        pass

    @abstractmethod
    def set_current_selection(self, locus: Locus) -> None:
        pass

    @abstractmethod
    def clear_selection(self) -> None:
        pass

    @abstractmethod
    async def subtract_current_selection_from_components(
        self, components: list[Component]
    ) -> ModifyResult:
        """Remove the current selection's atoms from the given components."""
        pass

    @abstractmethod
    def highlight_only(self, locus: Locus) -> None:
        """Replace all highlights with the given locus."""
        pass

    @abstractmethod
    def clear_highlights(self) -> None:
        pass

    @abstractmethod
    def list_components(self) -> list[Component]:
        pass

    @abstractmethod
    def get_chain_ids(self, mode: AddressingMode = AddressingMode.LABEL) -> list[str]:
        """Chain identifiers of the loaded structure in the given scheme."""
        pass

    @abstractmethod
    async def set_component_visibility(self, ref: str, visible: bool) -> None:
        pass


def ensure_label_annotations(structure: struc.AtomArray) -> struc.AtomArray:
    """Make sure a structure has label_chain_id/label_res_id annotations.

    PDB-format files only carry author identifiers, so the label annotations
    fall back to copies of chain_id/res_id there.
    """
    categories = structure.get_annotation_categories()
    if "label_chain_id" not in categories:
        structure.add_annotation("label_chain_id", dtype="U4")
        structure.set_annotation("label_chain_id", structure.chain_id.copy())
    if "label_res_id" not in categories:
        structure.add_annotation("label_res_id", dtype=int)
        structure.set_annotation("label_res_id", structure.res_id.copy())
    return structure


def _read_cif(source) -> struc.AtomArray:
    cif_file = pdbx.CIFFile.read(source)
    auth = pdbx.get_structure(cif_file, model=1, use_author_fields=True)
    label = pdbx.get_structure(cif_file, model=1, use_author_fields=False)
    if len(auth) != len(label):
        raise ValueError("Label and author atom records differ in length")
    auth.add_annotation("label_chain_id", dtype="U4")
    auth.set_annotation("label_chain_id", label.chain_id)
    auth.add_annotation("label_res_id", dtype=int)
    auth.set_annotation("label_res_id", label.res_id)
    return auth


def load_atom_array(source_id: str) -> struc.AtomArray:
    """Load the first model of a structure from a file path or PDB id.

    Local .pdb/.cif files are read directly; four-character PDB ids are
    fetched from RCSB as mmCIF.

    Args:
        source_id: File path or PDB identifier.

    Returns:
        AtomArray with auth identifiers in chain_id/res_id and label
        identifiers in label_chain_id/label_res_id.

    Raises:
        FileNotFoundError: If the source is neither a file nor a PDB id.
        ValueError: If the file format is not supported.
    """
    path = Path(source_id)
    if validate_file_path(path):
        file_format = get_file_format(path)
        if is_file_too_large(path):
            logger.warning(f"Large structure file, loading may be slow: {path}")
        if file_format == ".cif":
            structure = _read_cif(str(path))
        else:
            pdb_file = pdb.PDBFile.read(str(path))
            structure = pdb_file.get_structure(model=1)
    elif is_pdb_id(source_id):
        logger.info(f"Fetching {source_id} from RCSB")
        structure = _read_cif(rcsb.fetch(source_id, "cif"))
    else:
        raise FileNotFoundError(f"Structure source not found: {source_id}")

    if isinstance(structure, struc.AtomArrayStack):
        structure = structure[0]

    return ensure_label_annotations(structure)


def _molecule_type_mask(structure: struc.AtomArray, molecule_type: str) -> np.ndarray:
    water = np.isin(structure.res_name, WATER_RESIDUE_NAMES)
    polymer = struc.filter_amino_acids(structure) | struc.filter_nucleotides(structure)
    if molecule_type == "water":
        return water
    if molecule_type == "polymer":
        return polymer & ~water
    return ~polymer & ~water


class AtomArrayAdapter(StructureAdapter):
    """In-memory StructureAdapter backed by a biotite AtomArray.

    On load, the structure is split into 'polymer', 'ligand' and 'water'
    components (empty ones are skipped). Queries only match atoms that are
    still part of some component, so hiding the same atoms twice matches
    nothing the second time.

    Args:
        loader: Callable mapping a source id to an AtomArray. Defaults to
            load_atom_array; it runs in a worker thread.
    """

    COMPONENT_TYPES = ("polymer", "ligand", "water")

    def __init__(self, loader: Callable[[str], struc.AtomArray] | None = None):
        self._loader = loader or load_atom_array
        self._structure: struc.AtomArray | None = None
        self._source_id: str | None = None
        self._masks: dict[str, np.ndarray] = {}
        self._components: dict[str, Component] = {}
        self._current_selection: Locus | None = None
        self._highlight: Locus | None = None
        self._load_requests = 0

    @property
    def is_loaded(self) -> bool:
        return self._structure is not None

    @property
    def structure(self) -> struc.AtomArray | None:
        """The loaded AtomArray (read-only use)."""
        return self._structure

    @property
    def source_id(self) -> str | None:
        return self._source_id

    @property
    def current_selection(self) -> Locus | None:
        return self._current_selection

    @property
    def highlighted(self) -> Locus | None:
        return self._highlight

    async def load_structure(self, source_id: str) -> None:
        """Load a structure; when loads overlap, the last requested one wins."""
        self._load_requests += 1
        request = self._load_requests
        try:
            structure = await asyncio.to_thread(self._loader, source_id)
        except Exception as e:
            raise AdapterFailureError(f"Failed to load {source_id}: {e}") from e

        if request != self._load_requests:
            logger.debug(f"Dropping superseded load of {source_id}")
            return

        structure = ensure_label_annotations(structure)
        masks = {}
        components = {}
        for molecule_type in self.COMPONENT_TYPES:
            mask = _molecule_type_mask(structure, molecule_type)
            if mask.any():
                masks[molecule_type] = mask.copy()
                components[molecule_type] = Component(
                    ref=molecule_type, label=molecule_type, atom_count=int(mask.sum())
                )

        self._structure = structure
        self._source_id = source_id
        self._masks = masks
        self._components = components
        self._current_selection = None
        self._highlight = None
        logger.info(
            f"Loaded {source_id}: {len(structure)} atoms, components {list(components)}"
        )

    def query_locus(self, descriptor: QueryDescriptor) -> Locus:
        structure = self._require_structure()
        mask = self._query_mask(structure, descriptor) & self._displayed_mask()
        return Locus(
            indices=tuple(int(i) for i in np.flatnonzero(mask)),
            label=describe_query(descriptor),
        )

    def set_current_selection(self, locus: Locus) -> None:
        self._require_structure()
        self._current_selection = locus

    def clear_selection(self) -> None:
        self._current_selection = None

    async def subtract_current_selection_from_components(
        self, components: list[Component]
    ) -> ModifyResult:
        self._require_structure()
        if self._current_selection is None:
            raise AdapterFailureError("No current selection to subtract")

        selected = np.zeros(len(self._structure), dtype=bool)
        selected[list(self._current_selection.indices)] = True

        result = ModifyResult()
        for component in components:
            mask = self._masks.get(component.ref)
            if mask is None:
                raise AdapterFailureError(f"Unknown component: {component.ref}")
            removed = int((mask & selected).sum())
            if removed:
                mask &= ~selected
                self._components[component.ref].atom_count = int(mask.sum())
                result.modified.append(component.ref)
                result.atoms_removed += removed

        # Yield to the event loop like a real render commit would
        await asyncio.sleep(0)
        return result

    def highlight_only(self, locus: Locus) -> None:
        self._require_structure()
        self._highlight = locus

    def clear_highlights(self) -> None:
        self._highlight = None

    def list_components(self) -> list[Component]:
        return [
            Component(ref=c.ref, label=c.label, hidden=c.hidden, atom_count=c.atom_count)
            for c in self._components.values()
        ]

    def get_chain_ids(self, mode: AddressingMode = AddressingMode.LABEL) -> list[str]:
        if self._structure is None:
            return []
        chain_field = "label_chain_id" if mode == AddressingMode.LABEL else "chain_id"
        values = self._structure.get_annotation(chain_field)
        return sorted(str(c) for c in np.unique(values) if str(c))

    def get_chain_id_map(self) -> dict[str, str]:
        """Map label chain ids to auth chain ids."""
        if self._structure is None:
            return {}
        pairs = zip(self._structure.label_chain_id, self._structure.chain_id)
        return {str(label): str(auth) for label, auth in pairs}

    async def set_component_visibility(self, ref: str, visible: bool) -> None:
        if ref not in self._components:
            raise AdapterFailureError(f"Unknown component: {ref}")
        self._components[ref].hidden = not visible
        await asyncio.sleep(0)

    def visible_mask(self) -> np.ndarray:
        """Atoms shown by at least one non-hidden component."""
        structure = self._require_structure()
        visible = np.zeros(len(structure), dtype=bool)
        for ref, mask in self._masks.items():
            if not self._components[ref].hidden:
                visible |= mask
        return visible

    def count_visible(self, descriptor: QueryDescriptor) -> int:
        """Number of visible atoms matching a query."""
        structure = self._require_structure()
        return int((self._query_mask(structure, descriptor) & self.visible_mask()).sum())

    # Internals

    def _require_structure(self) -> struc.AtomArray:
        if self._structure is None:
            raise NotInitializedError("No structure loaded")
        return self._structure

    def _displayed_mask(self) -> np.ndarray:
        displayed = np.zeros(len(self._structure), dtype=bool)
        for mask in self._masks.values():
            displayed |= mask
        return displayed

    def _query_mask(self, structure: struc.AtomArray, descriptor: QueryDescriptor) -> np.ndarray:
        if isinstance(descriptor, MoleculeTypeQuery):
            return _molecule_type_mask(structure, descriptor.molecule_type)

        if isinstance(descriptor, ResidueNameQuery):
            return np.isin(structure.res_name, descriptor.names)

        if isinstance(descriptor, QueryUnion):
            mask = np.zeros(len(structure), dtype=bool)
            for part in descriptor.parts:
                mask |= self._query_mask(structure, part)
            return mask

        if not isinstance(descriptor, ResidueQuery):
            raise AdapterFailureError(f"Unsupported query descriptor: {descriptor!r}")

        if descriptor.mode == AddressingMode.LABEL:
            chains, res_ids = structure.label_chain_id, structure.label_res_id
        else:
            chains, res_ids = structure.chain_id, structure.res_id

        mask = chains == descriptor.chain_id
        if descriptor.start is not None:
            end = descriptor.end if descriptor.end is not None else descriptor.start
            mask &= (res_ids >= descriptor.start) & (res_ids <= end)
        return mask
