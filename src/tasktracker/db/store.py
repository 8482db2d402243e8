"""Document store — the persistence collaborator behind the services.

Learn: Services never touch SQL directly. They talk to a DocumentStore
through a small query/command interface over named collections
("users", "tasks"), passing plain dict documents and `where` predicates:

    {"id": task_id, "owner_id": user_id}           # equality, ANDed
    {"owner_id": user_id, "title": Contains("rep")} # + case-insensitive substring

Two backends:
- SqlDocumentStore: SQLAlchemy async, one statement per call, so
  update_one/delete_one are atomic per document.
- MemoryDocumentStore: dicts in process memory, for tests and
  TASKTRACKER_STORE_BACKEND=memory.

Both enforce unique fields (users.username, users.email) and raise
DuplicateKeyError, which the services report as a Conflict.
"""

import itertools
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy import and_, delete, or_, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from tasktracker.db.engine import create_session_factory
from tasktracker.db.models import COLLECTIONS, Base

Document = dict[str, Any]
Where = Mapping[str, Any]

# Fields that must be unique per collection (mirrors the SQL unique indexes).
UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    "users": ("username", "email"),
}


class DuplicateKeyError(Exception):
    """Raised when an insert/update would violate a unique field."""

    def __init__(self, collection: str, field: Optional[str] = None):
        self.collection = collection
        self.field = field
        super().__init__(f"duplicate key in {collection}" + (f".{field}" if field else ""))


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring predicate for a where clause."""

    value: str


class DocumentStore(ABC):
    """Query/command interface over named collections of dict documents."""

    @abstractmethod
    async def find_one(self, collection: str, where: Where) -> Optional[Document]:
        """Return the first document matching every predicate, or None."""

    @abstractmethod
    async def find_any(
        self, collection: str, alternatives: Sequence[Where]
    ) -> Optional[Document]:
        """Return the first document matching at least one of the alternatives."""

    @abstractmethod
    async def find(
        self,
        collection: str,
        where: Where,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[Document]:
        """Return every matching document, sorted."""

    @abstractmethod
    async def insert(self, collection: str, document: Document) -> Document:
        """Insert a document that already carries its id."""

    @abstractmethod
    async def update_one(
        self, collection: str, where: Where, changes: Mapping[str, Any]
    ) -> Optional[Document]:
        """Apply changes to the first match and return it, or None if nothing matched."""

    @abstractmethod
    async def delete_one(self, collection: str, where: Where) -> bool:
        """Delete the first match. Return True if something was deleted."""

    @abstractmethod
    async def ping(self) -> None:
        """Raise if the backend is unreachable."""

    async def close(self) -> None:
        return None


# ═══════════════════════════════════════════════════════════
# In-memory backend
# ═══════════════════════════════════════════════════════════


def _matches(document: Document, where: Where) -> bool:
    for field, expected in where.items():
        actual = document.get(field)
        if isinstance(expected, Contains):
            if actual is None or expected.value.lower() not in str(actual).lower():
                return False
        elif actual != expected:
            return False
    return True


class MemoryDocumentStore(DocumentStore):
    """In-memory store suitable for testing and single-process dev runs.

    Every method completes without yielding to the event loop, so each call
    is atomic with respect to other requests, like a single SQL statement.
    """

    def __init__(self, unique_fields: Optional[Mapping[str, Iterable[str]]] = None):
        unique = UNIQUE_FIELDS if unique_fields is None else unique_fields
        self._unique = {name: tuple(fields) for name, fields in unique.items()}
        # collection -> id -> (insertion sequence, document)
        self._rows: dict[str, dict[Any, tuple[int, Document]]] = defaultdict(dict)
        self._seq = itertools.count()

    def _check_unique(
        self, collection: str, candidate: Mapping[str, Any], exclude_id: Any = None
    ) -> None:
        fields = [f for f in self._unique.get(collection, ()) if f in candidate]
        for key, (_, doc) in self._rows[collection].items():
            if key == exclude_id:
                continue
            for field in fields:
                if doc.get(field) == candidate[field]:
                    raise DuplicateKeyError(collection, field)

    def _first(self, collection: str, where: Where) -> Optional[Document]:
        for _, doc in self._rows[collection].values():
            if _matches(doc, where):
                return doc
        return None

    async def find_one(self, collection: str, where: Where) -> Optional[Document]:
        doc = self._first(collection, where)
        return None if doc is None else doc.copy()

    async def find_any(
        self, collection: str, alternatives: Sequence[Where]
    ) -> Optional[Document]:
        for _, doc in self._rows[collection].values():
            if any(_matches(doc, where) for where in alternatives):
                return doc.copy()
        return None

    async def find(
        self,
        collection: str,
        where: Where,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[Document]:
        rows = [
            (seq, doc)
            for seq, doc in self._rows[collection].values()
            if _matches(doc, where)
        ]
        # Insertion order breaks ties between equal sort keys.
        rows.sort(key=lambda row: (row[1].get(order_by), row[0]), reverse=descending)
        return [doc.copy() for _, doc in rows]

    async def insert(self, collection: str, document: Document) -> Document:
        rows = self._rows[collection]
        if document["id"] in rows:
            raise DuplicateKeyError(collection, "id")
        self._check_unique(collection, document)
        rows[document["id"]] = (next(self._seq), document.copy())
        return document.copy()

    async def update_one(
        self, collection: str, where: Where, changes: Mapping[str, Any]
    ) -> Optional[Document]:
        doc = self._first(collection, where)
        if doc is None:
            return None
        self._check_unique(collection, changes, exclude_id=doc["id"])
        doc.update(changes)
        return doc.copy()

    async def delete_one(self, collection: str, where: Where) -> bool:
        doc = self._first(collection, where)
        if doc is None:
            return False
        del self._rows[collection][doc["id"]]
        return True

    async def ping(self) -> None:
        return None


# ═══════════════════════════════════════════════════════════
# SQL backend
# ═══════════════════════════════════════════════════════════


class SqlDocumentStore(DocumentStore):
    """DocumentStore over SQLAlchemy async sessions, one session per call."""

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._sessions = create_session_factory(engine)

    @staticmethod
    def _model(collection: str) -> type[Base]:
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    @staticmethod
    def _clauses(model: type[Base], where: Where) -> list:
        clauses = []
        for field, expected in where.items():
            column = getattr(model, field)
            if isinstance(expected, Contains):
                clauses.append(column.icontains(expected.value, autoescape=True))
            else:
                clauses.append(column == expected)
        return clauses

    @staticmethod
    def _to_document(obj: Base) -> Document:
        return {column.name: getattr(obj, column.name) for column in obj.__table__.columns}

    async def find_one(self, collection: str, where: Where) -> Optional[Document]:
        model = self._model(collection)
        query = select(model).where(*self._clauses(model, where)).limit(1)
        async with self._sessions() as session:
            result = await session.execute(query)
            obj = result.scalars().first()
        return None if obj is None else self._to_document(obj)

    async def find_any(
        self, collection: str, alternatives: Sequence[Where]
    ) -> Optional[Document]:
        model = self._model(collection)
        predicate = or_(*(and_(*self._clauses(model, where)) for where in alternatives))
        async with self._sessions() as session:
            result = await session.execute(select(model).where(predicate).limit(1))
            obj = result.scalars().first()
        return None if obj is None else self._to_document(obj)

    async def find(
        self,
        collection: str,
        where: Where,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[Document]:
        model = self._model(collection)
        column = getattr(model, order_by)
        query = (
            select(model)
            .where(*self._clauses(model, where))
            .order_by(column.desc() if descending else column.asc())
        )
        async with self._sessions() as session:
            result = await session.execute(query)
            return [self._to_document(obj) for obj in result.scalars().all()]

    async def insert(self, collection: str, document: Document) -> Document:
        model = self._model(collection)
        obj = model(**document)
        async with self._sessions() as session:
            session.add(obj)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateKeyError(collection) from e
        return self._to_document(obj)

    async def update_one(
        self, collection: str, where: Where, changes: Mapping[str, Any]
    ) -> Optional[Document]:
        model = self._model(collection)
        stmt = (
            update(model)
            .where(*self._clauses(model, where))
            .values(**changes)
            .returning(model)
        )
        async with self._sessions() as session:
            try:
                result = await session.execute(stmt)
                obj = result.scalars().first()
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateKeyError(collection) from e
        return None if obj is None else self._to_document(obj)

    async def delete_one(self, collection: str, where: Where) -> bool:
        model = self._model(collection)
        stmt = delete(model).where(*self._clauses(model, where))
        async with self._sessions() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount > 0

    async def ping(self) -> None:
        async with self._engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def close(self) -> None:
        await self._engine.dispose()
