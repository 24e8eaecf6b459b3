"""Exception taxonomy shared by the client, state store and sync engine.

The engine is the only component that decides whether a failure aborts
the run or is recorded and skipped:

- ``UnauthorizedError`` -- bad or missing credential; fatal, never retried.
- ``TransientError`` -- network, timeout or rate-limit failure; the run
  aborts without committing state and the next trigger retries.
- ``CorruptStateError`` -- persisted sync state cannot be parsed; treated
  as a first run.
- ``NoteWriteError`` -- a single note write failed; the item is left out
  of the committed state and the run continues.
"""


class OmnivoreSyncError(Exception):
    """Base class for all omnivore-sync errors."""


class UnauthorizedError(OmnivoreSyncError):
    """The Omnivore API rejected the credential."""


class TransientError(OmnivoreSyncError):
    """A retryable failure talking to the Omnivore API."""


class CorruptStateError(OmnivoreSyncError):
    """Persisted sync state exists but cannot be decoded."""


class NoteWriteError(OmnivoreSyncError):
    """Writing a note to the host note store failed."""

    def __init__(self, notebook: str, title: str, reason: str) -> None:
        super().__init__(
            f"Failed to write note '{title}' in '{notebook}': {reason}"
        )
        self.notebook = notebook
        self.title = title
        self.reason = reason


class ConfigurationError(OmnivoreSyncError, ValueError):
    """Configuration is missing or invalid."""
