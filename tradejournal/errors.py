"""Exception types for TradeJournal."""


class TradeJournalError(Exception):
    """Base class for all TradeJournal errors."""


class ConfigError(TradeJournalError):
    """Raised when the configuration file cannot be read or is invalid."""


class StorageError(TradeJournalError):
    """Raised when the ledger store fails to read or write."""


class FingerprintConflict(StorageError):
    """Raised when an insert violates the unique (owner, fingerprint) index."""

    def __init__(self, owner: str, fingerprint: str):
        self.owner = owner
        self.fingerprint = fingerprint
        super().__init__(
            f"Trade with fingerprint {fingerprint[:12]}... already exists for {owner}"
        )


class ReconciliationInProgress(TradeJournalError):
    """Raised when a reconciliation pass is already running for an owner."""

    def __init__(self, owner: str):
        self.owner = owner
        super().__init__(f"Reconciliation already running for {owner}")
