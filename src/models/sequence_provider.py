"""Sequence data providers.

PDBeSequenceProvider reads entity sequences from the PDBe REST API.
StructureSequenceProvider derives sequences from the structure's own atoms.
FallbackSequenceProvider chains providers; default_sequence_provider builds
the chain the application uses.
All implement SequenceProvider (``async fetch_sequence(structure_id)``) and
raise SequenceFetchError with kind 'network', 'not-found' or 'parse'.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

import biotite.structure as struc
import httpx

from src.config.settings import HTTP_TIMEOUT, PDBE_MOLECULES_URL
from src.models.addressing import AddressingMode
from src.models.errors import SequenceFetchError
from src.models.sequence import (
    SequenceChain,
    SequenceData,
    SequenceResidue,
    sequence_from_structure,
)
from src.models.structure_adapter import ensure_label_annotations, load_atom_array
from src.utils.file_utils import is_pdb_id

logger = logging.getLogger(__name__)


class SequenceProvider(ABC):
    """Source of SequenceData for a structure id."""

    @abstractmethod
    async def fetch_sequence(self, structure_id: str) -> SequenceData:
        """Fetch sequence data.

        Raises:
            SequenceFetchError: kind 'network', 'not-found' or 'parse'.
        """
        pass


class PDBeSequenceProvider(SequenceProvider):
    """Fetches polypeptide sequences for a PDB entry from PDBe.

    Positions are entity sequence numbers (1..n), which are label_seq_id
    values, and chains are struct asym (label) ids, so the resulting data is
    in label addressing mode. Results are cached per lower-case id and
    concurrent requests for the same id share one HTTP call.

    Args:
        url_template: URL with a ``{pdb_id}`` placeholder.
        timeout: HTTP timeout in seconds.
        transport: Optional httpx transport (used for testing).
    """

    def __init__(
        self,
        url_template: str = PDBE_MOLECULES_URL,
        timeout: float = HTTP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url_template = url_template
        self._timeout = timeout
        self._transport = transport
        self._cache: dict[str, SequenceData] = {}
        self._pending: dict[str, asyncio.Task] = {}

    async def fetch_sequence(self, structure_id: str) -> SequenceData:
        normalized = structure_id.lower()

        cached = self._cache.get(normalized)
        if cached is not None:
            return cached

        task = self._pending.get(normalized)
        if task is None:
            task = asyncio.ensure_future(self._fetch(normalized))
            self._pending[normalized] = task
            task.add_done_callback(lambda _: self._pending.pop(normalized, None))

        data = await task
        self._cache[normalized] = data
        return data

    def get_cached(self, structure_id: str) -> SequenceData | None:
        return self._cache.get(structure_id.lower())

    def clear_cache(self, structure_id: str | None = None) -> None:
        """Clear the cache for one structure or for all."""
        if structure_id is None:
            self._cache.clear()
        else:
            self._cache.pop(structure_id.lower(), None)

    async def _fetch(self, pdb_id: str) -> SequenceData:
        url = self._url_template.format(pdb_id=pdb_id)
        logger.debug(f"Fetching sequence data from {url}")

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(url)
        except httpx.HTTPError as e:
            raise SequenceFetchError("network", pdb_id, str(e)) from e

        if resp.status_code == 404:
            raise SequenceFetchError("not-found", pdb_id, f"No PDBe entry for {pdb_id}")
        if resp.is_error:
            raise SequenceFetchError("network", pdb_id, f"HTTP {resp.status_code} from PDBe")

        try:
            payload = resp.json()
        except ValueError as e:
            raise SequenceFetchError("parse", pdb_id, f"Invalid JSON: {e}") from e

        if not isinstance(payload, dict) or pdb_id not in payload:
            raise SequenceFetchError("not-found", pdb_id, f"No data found for {pdb_id}")

        return parse_pdbe_molecules(pdb_id, payload[pdb_id])


def parse_pdbe_molecules(pdb_id: str, molecules: list[dict[str, Any]]) -> SequenceData:
    """Convert a PDBe molecules listing into SequenceData.

    Only polypeptide entities with a sequence are kept; an entity present in
    several struct asyms yields one chain per asym.

    Raises:
        SequenceFetchError: With kind 'parse' if the listing is malformed.
    """
    if not isinstance(molecules, list):
        raise SequenceFetchError("parse", pdb_id, "Molecule listing is not a list")

    chains: list[SequenceChain] = []
    seen: set[str] = set()

    try:
        for molecule in molecules:
            if not str(molecule.get("molecule_type", "")).startswith("polypeptide"):
                continue
            sequence = molecule.get("sequence")
            if not sequence:
                continue

            names = molecule.get("molecule_name") or []
            chain_ids = molecule.get("in_struct_asyms") or molecule.get("in_chains") or []
            for chain_id in chain_ids:
                if chain_id in seen:
                    continue
                seen.add(chain_id)
                residues = [
                    SequenceResidue(chain_id=chain_id, position=i + 1, code=code)
                    for i, code in enumerate(sequence)
                ]
                chains.append(SequenceChain(
                    id=chain_id,
                    residues=residues,
                    name=names[0] if names else f"Chain {chain_id}",
                ))
    except (AttributeError, TypeError) as e:
        raise SequenceFetchError("parse", pdb_id, f"Malformed molecule entry: {e}") from e

    logger.debug(f"Parsed {len(chains)} polypeptide chains for {pdb_id}")
    return SequenceData(
        id=pdb_id.upper(),
        name=f"PDB {pdb_id.upper()}",
        chains=chains,
        mode=AddressingMode.LABEL,
    )


class StructureSequenceProvider(SequenceProvider):
    """Builds sequence data from the structure file itself.

    Args:
        mode: Addressing mode for chain ids and positions.
        loader: Callable mapping a structure id to an AtomArray.
        with_secondary_structure: Annotate helix/sheet/loop per residue.
    """

    def __init__(
        self,
        mode: AddressingMode | str = AddressingMode.LABEL,
        loader: Callable[[str], struc.AtomArray] | None = None,
        with_secondary_structure: bool = True,
    ):
        self._mode = AddressingMode.from_value(mode)
        self._loader = loader or load_atom_array
        self._with_ss = with_secondary_structure

    async def fetch_sequence(self, structure_id: str) -> SequenceData:
        try:
            structure = await asyncio.to_thread(self._loader, structure_id)
        except FileNotFoundError as e:
            raise SequenceFetchError("not-found", structure_id, str(e)) from e
        except (ValueError, KeyError) as e:
            raise SequenceFetchError("parse", structure_id, str(e)) from e
        except OSError as e:
            raise SequenceFetchError("network", structure_id, str(e)) from e

        return sequence_from_structure(
            ensure_label_annotations(structure),
            structure_id,
            mode=self._mode,
            with_secondary_structure=self._with_ss,
        )


class FallbackSequenceProvider(SequenceProvider):
    """Tries several providers in order and returns the first success.

    Args:
        providers: Providers to try, in order.
    """

    def __init__(self, providers: list[SequenceProvider]):
        if not providers:
            raise ValueError("At least one sequence provider is required")
        self._providers = list(providers)

    async def fetch_sequence(self, structure_id: str) -> SequenceData:
        error: SequenceFetchError | None = None
        for provider in self._providers:
            try:
                return await provider.fetch_sequence(structure_id)
            except SequenceFetchError as e:
                logger.debug(f"{type(provider).__name__} failed for {structure_id}: {e}")
                error = e
        raise error


def default_sequence_provider(
    mode: AddressingMode | str = AddressingMode.LABEL,
    loader: Callable[[str], struc.AtomArray] | None = None,
) -> FallbackSequenceProvider:
    """Provider used by the application.

    In label mode PDB ids are looked up on PDBe first, which also covers
    residues missing from the model; everything else is read from the
    structure itself.
    """
    mode = AddressingMode.from_value(mode)
    providers: list[SequenceProvider] = []
    if mode == AddressingMode.LABEL:
        providers.append(_PDBIdOnly(PDBeSequenceProvider()))
    providers.append(StructureSequenceProvider(mode=mode, loader=loader))
    return FallbackSequenceProvider(providers)


class _PDBIdOnly(SequenceProvider):
    """Restricts a provider to sources that look like PDB ids."""

    def __init__(self, provider: SequenceProvider):
        self._provider = provider

    async def fetch_sequence(self, structure_id: str) -> SequenceData:
        if not is_pdb_id(structure_id):
            raise SequenceFetchError("not-found", structure_id, "Not a PDB id")
        return await self._provider.fetch_sequence(structure_id)
