"""
Document store contract.

Documents are plain JSON-compatible dicts grouped into collections and
addressed by a string id. Reads return copies with the id injected under
``"id"``; writes never see it. The store guarantees per-document atomicity
only: there are no multi-document transactions.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from dutytrack.core.errors import InvalidArgument

# (field, operator, value); e.g. ("employeeId", "==", "42")
Filter = tuple[str, str, Any]

_OPERATORS = {"==", "!=", "<", "<=", ">", ">=", "in"}


class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> dict | None: ...

    async def query(
        self, collection: str, filters: Iterable[Filter] = ()
    ) -> list[dict]: ...

    async def set(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None: ...

    async def update(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> None: ...

    async def add(self, collection: str, fields: Mapping[str, Any]) -> str: ...


def validate_filters(filters: Iterable[Filter]) -> list[Filter]:
    checked = list(filters)
    for field, op, _ in checked:
        if op not in _OPERATORS:
            raise InvalidArgument(f"Unsupported filter operator {op!r} on {field!r}")
    return checked


def matches(doc: Mapping[str, Any], filters: Iterable[Filter]) -> bool:
    """Evaluate filters against a document. Missing fields read as None."""
    for field, op, expected in filters:
        actual = doc.get(field)
        if op == "==":
            ok = actual == expected
        elif op == "!=":
            ok = actual != expected
        elif op == "in":
            ok = actual in expected
        else:
            if actual is None or expected is None:
                return False
            try:
                if op == "<":
                    ok = actual < expected
                elif op == "<=":
                    ok = actual <= expected
                elif op == ">":
                    ok = actual > expected
                else:
                    ok = actual >= expected
            except TypeError:
                return False
        if not ok:
            return False
    return True


# Collection names
ATTENDANCE = "attendance"
LEAVES = "leaves"
DUTY_STATUS = "duty_status"
