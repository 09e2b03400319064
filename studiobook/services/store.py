"""
Backing store contract used by the booking services.

The services depend only on this protocol, so the in-memory adapter (tests,
CLI) and any real transactional document store can be plugged in.
"""

from __future__ import annotations

import logging
import operator
import time
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    ContextManager,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
)

from ..domain.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

RESERVATIONS = "reservations"
OCCUPANCY = "occupancy"
BLACKOUTS = "blackouts"

Filter = Tuple[str, str, Any]

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass(frozen=True)
class Document:
    id: str
    data: Dict[str, Any]


@dataclass
class QuerySnapshot:
    """Full current result set plus the diff since the previous delivery."""
    documents: List[Document]
    added: List[Document] = field(default_factory=list)
    modified: List[Document] = field(default_factory=list)
    removed: List[Document] = field(default_factory=list)


def matches(data: Dict[str, Any], filters: Sequence[Filter]) -> bool:
    """Evaluate ``(field, op, value)`` filters against a document body."""
    for name, op, value in filters:
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported filter operator: {op}")
        current = data.get(name)
        if current is None and op not in ("==", "!="):
            return False
        if not _OPERATORS[op](current, value):
            return False
    return True


class TransactionProtocol(Protocol):
    """Reads and buffered writes committed atomically on context exit."""

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    def query(self, collection: str, filters: Sequence[Filter] = ()) -> List[Document]:
        ...

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        ...

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...


class DocumentStoreProtocol(Protocol):
    """Protocol describing the document store behaviour the services need."""

    def new_id(self, collection: str) -> str:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Sequence[str] = (),
    ) -> List[Document]:
        ...

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        ...

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into an existing document; DocumentNotFoundError if missing."""

    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document; returns False when it did not exist."""

    def transaction(self) -> ContextManager[TransactionProtocol]:
        ...

    def subscribe(
        self,
        collection: str,
        callback: Callable[[QuerySnapshot], None],
        filters: Sequence[Filter] = (),
    ) -> Callable[[], None]:
        """Deliver the current result set now and on every change; returns unsubscribe."""


T = TypeVar("T")


def call_with_retry(
    func: Callable[[], T],
    *,
    attempts: int = 3,
    base_delay: float = 0.2,
    description: str = "store operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``func`` and retry on TransientStoreError with exponential backoff.

    Any other exception propagates immediately. The last transient error is
    re-raised once attempts are exhausted.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except TransientStoreError as exc:
            if attempt == attempts:
                logger.error("%s failed after %d attempts: %s", description, attempts, exc)
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                description,
                attempt,
                attempts,
                delay,
                exc,
            )
            sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
