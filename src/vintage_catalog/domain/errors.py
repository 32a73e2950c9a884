"""Error taxonomy for staging and ingestion."""


class CatalogError(Exception):
    """Base class for catalog intake errors."""


class ClusteringInputError(CatalogError):
    """Raised when there are no photos to group."""


class SessionInvariantError(CatalogError):
    """Raised when a staging session would own a photo twice or lose one."""


class StackEditError(CatalogError):
    """Base class for invalid staging edits."""


class MergeError(StackEditError):
    """Raised when fewer than two stacks are selected for a merge."""


class StackNotFoundError(StackEditError):
    """Raised when a stack id is not part of the session."""


class PhotoIndexError(StackEditError):
    """Raised when a photo index falls outside a stack."""


class UploadError(CatalogError):
    """Raised when a photo could not be stored."""


class AnalysisError(CatalogError):
    """Raised when AI analysis fails or returns unusable data."""


class RecordStoreError(CatalogError):
    """Raised when a catalog record could not be created or updated."""


class InvalidTransitionError(CatalogError):
    """Raised when an ingestion task is moved to an unreachable state."""


class IngestionFailedError(CatalogError):
    """Raised when a single-item ingestion ends in the failed state."""


class EmptyBatchError(CatalogError, ValueError):
    """Raised when ingestion is started without any stacks."""
