"""promptevo exceptions."""


class PromptEvoError(Exception):
    """Base exception for all promptevo errors."""


class NotFoundError(PromptEvoError):
    """Unknown experiment or variant id."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class InvalidArgumentError(PromptEvoError):
    """Malformed configuration, e.g. variants from different content types."""


class ConflictError(PromptEvoError):
    """Operation clashes with another live experiment."""

    def __init__(self, message: str, content_type: str, active_id: str):
        self.content_type = content_type
        self.active_id = active_id
        super().__init__(message)


class InvalidStateError(PromptEvoError):
    """Illegal state transition."""

    def __init__(
        self,
        message: str,
        current_status: str | None = None,
    ):
        self.current_status = current_status
        super().__init__(message)


class PersistenceError(PromptEvoError):
    """Experiment store could not be read or written."""
