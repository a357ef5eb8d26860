"""Custom exception hierarchy for the journal sync toolkit."""


class JournalSyncError(Exception):
    """Base exception for all journal sync errors."""


# --- Configuration ---
class ConfigError(JournalSyncError):
    """Invalid or missing configuration."""


class MissingDataSourceError(ConfigError):
    """No remote data source id configured for the requested collection."""


class MissingTokenError(ConfigError):
    """Remote journal API token is not set."""


# --- Remote journal ---
class RemoteJournalError(JournalSyncError):
    """Remote journal communication error."""


class TransportError(RemoteJournalError):
    """Network or timeout failure talking to the remote journal."""


class RemoteHTTPError(RemoteJournalError):
    """Remote journal answered with a non-success status."""

    def __init__(self, status: int, body: object = None):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body!r}")


class RecordNotFoundError(RemoteJournalError):
    """Requested record does not exist remotely. Not a failure for existence checks."""


class UnexpectedResponseError(RemoteJournalError):
    """Response body did not have the expected shape."""


# --- Reconciliation ---
class ReconciliationError(JournalSyncError):
    """Reconciliation engine error."""


class MissingRelationError(ReconciliationError):
    """A relation page (ticker / date) required for creation is not known."""

    def __init__(self, missing: dict[str, str]):
        self.missing = missing
        names = ", ".join(f"{dim} page '{key}'" for dim, key in missing.items())
        super().__init__(f"Missing Notion relation: {names}")


class IndexLoadError(ReconciliationError):
    """Bulk existence / relation listing failed."""


class JobInProgressError(ReconciliationError):
    """A job of the same kind is already running."""
