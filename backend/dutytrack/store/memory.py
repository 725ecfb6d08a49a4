import copy
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from dutytrack.core.errors import NotFound
from dutytrack.store.base import Filter, matches, validate_filters


class InMemoryDocumentStore:
    """Process-local document store. Used by the test suite and STORE_BACKEND=memory."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict]] = {}

    def _bucket(self, collection: str) -> dict[str, dict]:
        return self._collections.setdefault(collection, {})

    async def get(self, collection: str, doc_id: str) -> dict | None:
        doc = self._bucket(collection).get(doc_id)
        if doc is None:
            return None
        return {**copy.deepcopy(doc), "id": doc_id}

    async def query(self, collection: str, filters: Iterable[Filter] = ()) -> list[dict]:
        checked = validate_filters(filters)
        return [
            {**copy.deepcopy(doc), "id": doc_id}
            for doc_id, doc in self._bucket(collection).items()
            if matches(doc, checked)
        ]

    async def set(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        bucket = self._bucket(collection)
        data = _strip_id(fields)
        if merge and doc_id in bucket:
            bucket[doc_id] = {**bucket[doc_id], **data}
        else:
            bucket[doc_id] = data

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        bucket = self._bucket(collection)
        if doc_id not in bucket:
            raise NotFound(f"{collection}/{doc_id} does not exist")
        bucket[doc_id] = {**bucket[doc_id], **_strip_id(fields)}

    async def add(self, collection: str, fields: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self._bucket(collection)[doc_id] = _strip_id(fields)
        return doc_id


def _strip_id(fields: Mapping[str, Any]) -> dict:
    return {k: copy.deepcopy(v) for k, v in fields.items() if k != "id"}
