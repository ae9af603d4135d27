"""Atomic document store interface.

The coordination core only needs one addressable mutable document per key
with two kinds of writes:

1. ``transact`` - optimistic read-modify-write. The caller supplies a pure
   function of the current value that returns the new value or ``ABORT``.
   The store re-evaluates the function whenever a concurrent writer changes
   the document between read and commit.
2. ``set_field`` / ``update_fields`` - unconditional field writes that do not
   read the current value.

Documents are flat JSON objects (``dict[str, Any]``); a missing document is
represented as ``None``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

DEFAULT_MAX_RETRIES = 25

Document = dict[str, Any]


class Abort:
    """Sentinel returned by a transaction function to commit nothing."""

    _instance: Abort | None = None

    def __new__(cls) -> Abort:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABORT"

    def __bool__(self) -> bool:
        return False


ABORT = Abort()

UpdateResult = Document | Abort
UpdateFunction = Callable[[Document | None], UpdateResult]


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of a transaction.

    ``value`` is the committed document when ``committed`` is True, otherwise
    the document as it was last read.
    """

    committed: bool
    value: Document | None


class AtomicDocumentStore(ABC):
    """Abstract base class for shared document stores."""

    @abstractmethod
    async def get(self, key: str) -> Document | None:
        """Read a whole document, or None if it does not exist."""
        ...

    @abstractmethod
    async def get_fields(self, key: str, fields: Iterable[str]) -> dict[str, Any]:
        """Read selected fields of a document.

        Fields that are not present are omitted from the result.
        """
        ...

    @abstractmethod
    async def transact(self, key: str, update: UpdateFunction) -> TransactionResult:
        """Atomically apply ``update`` to the current document.

        Args:
            key: Document key
            update: Pure function of the current document (or None) returning
                the replacement document or ``ABORT``. It may be called more
                than once and receives a private copy each time.

        Returns:
            TransactionResult describing whether anything was committed

        Raises:
            StoreError: If the store is unreachable
            TransactionConflictError: If conflicts persist past the retry limit
        """
        ...

    @abstractmethod
    async def set_field(self, key: str, field: str, value: Any) -> None:
        """Unconditionally write a single field."""
        ...

    @abstractmethod
    async def update_fields(self, key: str, values: dict[str, Any]) -> None:
        """Unconditionally write several fields in one request."""
        ...

    async def close(self) -> None:
        """Release any connections held by the store."""
        return None
