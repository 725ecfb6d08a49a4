"""
Document store on top of the ``documents`` table.

Each operation runs in its own short-lived session so that callers outliving
an HTTP request (location watchers) can still write. Equality filters on
string values are pushed down to the database; every filter is then
re-checked in Python so both backends agree on semantics.
"""

import logging
import uuid
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dutytrack.core.errors import NotFound, UpstreamUnavailable
from dutytrack.db.models import Document
from dutytrack.store.base import Filter, matches, validate_filters

logger = logging.getLogger(__name__)


class SqlDocumentStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessionmaker() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.warning("Document store %s failed: %s", operation, exc)
            raise UpstreamUnavailable(f"document store {operation} failed") from exc

    async def get(self, collection: str, doc_id: str) -> dict | None:
        async with self._session("get") as session:
            doc = await session.get(Document, (collection, doc_id))
        if doc is None:
            return None
        return {**doc.data, "id": doc.id}

    async def query(self, collection: str, filters: Iterable[Filter] = ()) -> list[dict]:
        checked = validate_filters(filters)
        stmt = select(Document).where(Document.collection == collection)
        for field, op, value in checked:
            if op == "==" and isinstance(value, str):
                stmt = stmt.where(Document.data[field].as_string() == value)

        async with self._session("query") as session:
            result = await session.execute(stmt)
            docs = result.scalars().all()

        return [{**d.data, "id": d.id} for d in docs if matches(d.data, checked)]

    async def set(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        data = _strip_id(fields)
        async with self._session("set") as session:
            doc = await session.get(Document, (collection, doc_id))
            if doc is None:
                session.add(Document(collection=collection, id=doc_id, data=data))
            elif merge:
                doc.data = {**doc.data, **data}
            else:
                doc.data = data
            await session.commit()

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        async with self._session("update") as session:
            doc = await session.get(Document, (collection, doc_id))
            if doc is None:
                raise NotFound(f"{collection}/{doc_id} does not exist")
            doc.data = {**doc.data, **_strip_id(fields)}
            await session.commit()

    async def add(self, collection: str, fields: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        async with self._session("add") as session:
            session.add(Document(collection=collection, id=doc_id, data=_strip_id(fields)))
            await session.commit()
        return doc_id


def _strip_id(fields: Mapping[str, Any]) -> dict:
    return {k: v for k, v in fields.items() if k != "id"}
