"""Core utilities: exceptions, logging and settings."""

from promptevo.core.exceptions import (
    ConflictError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    PromptEvoError,
)

__all__ = [
    "ConflictError",
    "InvalidArgumentError",
    "InvalidStateError",
    "NotFoundError",
    "PersistenceError",
    "PromptEvoError",
]
