"""Nested set exceptions.

Every error raised by the hierarchy layer is a caller-side contract
violation (misconfiguration or misuse), never a transient fault. None of
them are retried; they propagate to the caller unchanged.
"""
from __future__ import annotations

from typing import Any


class NestedSetError(Exception):
    """Base exception for nested set operations.

    Carries a human readable message plus structured details that are
    rendered into ``str(error)`` and can be attached to log records.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize nested set error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(NestedSetError):
    """Invalid or conflicting column configuration.

    Raised while configuring a model, before any query is built, and when a
    collection query filters on scope columns the model does not have.
    """

    def __init__(self, message: str, model_name: str | None = None, **details: Any):
        """Initialize configuration error.

        Args:
            message: Error description
            model_name: Name of the model being configured (if known)
            **details: Offending option names and values
        """
        if model_name is not None:
            details = {"model": model_name, **details}
        self.model_name = model_name
        super().__init__(message, details=details)


class UnauthorizedMutationError(NestedSetError):
    """Direct assignment to a boundary column.

    Only the renumbering procedure may change left/right values, since it
    rewrites every affected row of the partition consistently.

    Attributes:
        field: Name of the boundary attribute that was assigned
    """

    def __init__(self, field: str, model_name: str | None = None):
        """Initialize unauthorized mutation error.

        Args:
            field: Boundary attribute name (e.g. "lft")
            model_name: Name of the model class
        """
        self.field = field
        self.model_name = model_name
        message = (
            f"Unauthorized assignment to {field}: "
            "use the move_to_* methods to change a node's position"
        )
        details: dict[str, Any] = {"field": field}
        if model_name is not None:
            details["model"] = model_name
        super().__init__(message, details=details)


class IncompleteNodeError(NestedSetError):
    """Structural query issued against a node lacking required values.

    Typically the node has not been placed in a tree yet, so its boundaries
    (or primary key, or scope values) are still unset. Retrying cannot
    succeed until the node is inserted.

    Attributes:
        model_name: Name of the model class
        missing: Attribute names that were unset
    """

    def __init__(self, model_name: str, missing: list[str]):
        """Initialize incomplete node error.

        Args:
            model_name: Name of the model (e.g., "Category")
            missing: Unset attribute names required by the query
        """
        self.model_name = model_name
        self.missing = list(missing)
        message = f"{model_name} node is missing {', '.join(self.missing)}"
        super().__init__(message, details={"model": model_name, "missing": self.missing})


class InvalidMoveError(NestedSetError):
    """Requested insert or move would break the tree.

    Raised for moves onto the node itself or into its own subtree, moves
    across scope partitions, and inserts of nodes already in a tree.
    """


class TreeIntegrityError(NestedSetError):
    """Stored rows do not describe a forest.

    Raised when a rebuild finds rows unreachable from any root, which means
    the parent references contain a cycle.
    """


__all__ = [
    "ConfigurationError",
    "IncompleteNodeError",
    "InvalidMoveError",
    "NestedSetError",
    "TreeIntegrityError",
    "UnauthorizedMutationError",
]
