"""Error definitions for parameter synchronization."""


class ParamSyncError(RuntimeError):
    """Base class for all parameter sync failures."""


class PreconditionError(ParamSyncError):
    """Raised before any mutation when the run cannot start."""


class NoActiveDocument(PreconditionError):
    """Raised when there is no host document to write into."""


class LinkNotFound(PreconditionError):
    """Raised when no link matches the configured model name."""


class LinkDocumentUnavailable(PreconditionError):
    """Raised when a link exists but its document cannot be accessed."""


class InvalidInput(PreconditionError, ValueError):
    """Raised when the requested parameter list is unusable."""


class OperationCancelled(PreconditionError):
    """Raised when cancellation was requested before the run started."""


class TransactionFailure(ParamSyncError):
    """Raised when the host rejects the write-back transaction."""
