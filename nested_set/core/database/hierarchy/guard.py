"""Write protection for boundary columns.

Left and right boundaries may only change through the renumbering
procedure, which rewrites every affected row of a partition at once. A
direct assignment on a single instance would silently corrupt the tree, so
the guard rejects it at the attribute level.

The guard hooks SQLAlchemy's attribute ``set`` event. Values loaded from the
database and values written with ``set_committed_value`` or bulk statements
do not pass through that event, which is how the renumbering procedure
bypasses it. Assigning the value an attribute already holds is allowed, so
``session.merge`` of a detached node still works.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import event

from nested_set.core.database.exceptions import UnauthorizedMutationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import InstrumentedAttribute

    from nested_set.core.database.hierarchy.config import NestedSetColumns

logger = logging.getLogger(__name__)


class BoundaryWriteGuard:
    """Rejects direct assignment to a model's left and right attributes.

    Example:
        >>> guard = BoundaryWriteGuard(columns)
        >>> guard.install()
        >>> node.lft = 99
        Traceback (most recent call last):
        UnauthorizedMutationError: Unauthorized assignment to lft: ...
    """

    __slots__ = ("_listeners", "columns")

    def __init__(self, columns: NestedSetColumns) -> None:
        self.columns = columns
        self._listeners: list[tuple[InstrumentedAttribute[Any], Callable[..., Any]]] = []

    @property
    def installed(self) -> bool:
        return bool(self._listeners)

    def install(self) -> None:
        """Register set listeners on the boundary attributes (idempotent)."""
        if self._listeners:
            return
        for attr in (self.columns.left, self.columns.right):
            listener = self._reject(attr.key)
            event.listen(attr, "set", listener, propagate=True)
            self._listeners.append((attr, listener))
        logger.debug(
            "Installed boundary write guard",
            extra={"model": self.columns.model_name, "fields": [a.key for a, _ in self._listeners]},
        )

    def uninstall(self) -> None:
        """Remove the listeners registered by ``install``."""
        for attr, listener in self._listeners:
            if event.contains(attr, "set", listener):
                event.remove(attr, "set", listener)
        self._listeners.clear()

    def _reject(self, field: str) -> Callable[..., Any]:
        model_name = self.columns.model_name

        def reject(target: Any, value: Any, oldvalue: Any, initiator: Any) -> Any:  # noqa: ARG001
            # Re-assigning the loaded value (session.merge) leaves the tree intact
            if value is not None and value == oldvalue:
                return value
            raise UnauthorizedMutationError(field, model_name)

        return reject


__all__ = [
    "BoundaryWriteGuard",
]
