"""Error taxonomy for selection and visibility operations."""


class StructureSyncError(Exception):
    """Base class for selection/visibility failures."""

    kind = "error"


class NotInitializedError(StructureSyncError):
    """No structure has been loaded yet."""

    kind = "not-initialized"


class NotFoundError(StructureSyncError):
    """A chain, region or residue does not exist in the current structure."""

    kind = "not-found"


class EmptyMatchError(StructureSyncError):
    """A query matched zero atoms. Treated as a soft success."""

    kind = "empty-match"


class AdapterFailureError(StructureSyncError):
    """The structure adapter rejected an operation."""

    kind = "adapter-failure"


class ConstraintViolationError(StructureSyncError):
    """A selection mutation exceeded a configured limit."""

    kind = "constraint-violation"


class StaleStructureError(StructureSyncError):
    """The structure was replaced while the operation was in flight."""

    kind = "stale-structure"


class SequenceFetchError(Exception):
    """Failure to obtain sequence data for a structure.

    Attributes:
        kind: One of 'network', 'not-found', 'parse'.
        structure_id: The requested structure identifier.
    """

    KINDS = ("network", "not-found", "parse")

    def __init__(self, kind: str, structure_id: str, message: str = ""):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown sequence fetch error kind: {kind}")
        self.kind = kind
        self.structure_id = structure_id
        super().__init__(message or f"{kind} error fetching sequence for {structure_id}")
