"""
Document store used by every component.

The surface is shaped like a Firestore client: collections hold keyed
documents, queries chain `where` / `order_by` and finish with `get`.
Two backends sit behind it: an in-memory one for development and tests,
and a SQLModel one that keeps every document as a JSON row.
"""

from __future__ import annotations

import copy
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine, select

from errors import InternalError, NotFoundError
from models import DocumentRow

logger = logging.getLogger(__name__)

ASCENDING = "ASCENDING"
DESCENDING = "DESCENDING"

_OPERATORS = ("==", "in")

Filter = Tuple[str, str, Any]
Order = Tuple[str, str]


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    data: Optional[dict]

    @property
    def exists(self) -> bool:
        return self.data is not None

    def to_dict(self) -> Optional[dict]:
        if self.data is None:
            return None
        return copy.deepcopy(self.data)


class _Backend(Protocol):
    def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        ...

    def set_document(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    def update_document(self, collection: str, doc_id: str, changes: dict) -> None:
        ...

    def delete_document(self, collection: str, doc_id: str) -> None:
        ...

    def run_query(
        self, collection: str, filters: Sequence[Filter], orders: Sequence[Order]
    ) -> List[DocumentSnapshot]:
        ...


class DocumentReference:
    def __init__(self, backend: _Backend, collection: str, doc_id: str):
        self._backend = backend
        self.collection = collection
        self.id = doc_id

    def get(self) -> DocumentSnapshot:
        return self._backend.get_document(self.collection, self.id)

    def set(self, data: dict) -> None:
        self._backend.set_document(self.collection, self.id, data)

    def update(self, changes: dict) -> None:
        """Merge `changes` into the stored document. Raises NotFoundError if absent."""
        self._backend.update_document(self.collection, self.id, changes)

    def delete(self) -> None:
        self._backend.delete_document(self.collection, self.id)


class Query:
    """Immutable query; each call returns a new, narrower query."""

    def __init__(
        self,
        backend: _Backend,
        collection: str,
        filters: Tuple[Filter, ...] = (),
        orders: Tuple[Order, ...] = (),
    ):
        self._backend = backend
        self._collection = collection
        self._filters = filters
        self._orders = orders

    def where(self, field: str, op: str, value: Any) -> "Query":
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported operator {op!r}")
        if op == "in":
            value = list(value)
        return Query(
            self._backend,
            self._collection,
            self._filters + ((field, op, value),),
            self._orders,
        )

    def order_by(self, field: str, direction: str = ASCENDING) -> "Query":
        if direction not in (ASCENDING, DESCENDING):
            raise ValueError(f"Unsupported direction {direction!r}")
        return Query(
            self._backend,
            self._collection,
            self._filters,
            self._orders + ((field, direction),),
        )

    def get(self) -> List[DocumentSnapshot]:
        return self._backend.run_query(self._collection, self._filters, self._orders)


class CollectionReference(Query):
    def doc(self, doc_id: str) -> DocumentReference:
        return DocumentReference(self._backend, self._collection, doc_id)

    def add(self, data: dict) -> DocumentReference:
        """Store `data` under a new generated id."""
        ref = self.doc(uuid.uuid4().hex)
        ref.set(data)
        return ref


class DocumentStore(Protocol):
    """What the components need from the database."""

    def collection(self, name: str) -> CollectionReference:
        ...

    def create_all(self) -> None:
        ...


def _matches(data: dict, filters: Sequence[Filter]) -> bool:
    for field, op, value in filters:
        if field not in data:
            return False
        if op == "==" and data[field] != value:
            return False
        if op == "in" and data[field] not in value:
            return False
    return True


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}

    def collection(self, name: str) -> CollectionReference:
        return CollectionReference(self, name)

    def create_all(self) -> None:
        return None

    def _docs(self, collection: str) -> Dict[str, dict]:
        return self.collections.setdefault(collection, {})

    def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        data = self._docs(collection).get(doc_id)
        return DocumentSnapshot(doc_id, copy.deepcopy(data))

    def set_document(self, collection: str, doc_id: str, data: dict) -> None:
        self._docs(collection)[doc_id] = copy.deepcopy(data)

    def update_document(self, collection: str, doc_id: str, changes: dict) -> None:
        docs = self._docs(collection)
        if doc_id not in docs:
            raise NotFoundError(f"Document {collection}/{doc_id} not found")
        docs[doc_id].update(copy.deepcopy(changes))

    def delete_document(self, collection: str, doc_id: str) -> None:
        docs = self._docs(collection)
        if doc_id not in docs:
            raise NotFoundError(f"Document {collection}/{doc_id} not found")
        del docs[doc_id]

    def run_query(
        self, collection: str, filters: Sequence[Filter], orders: Sequence[Order]
    ) -> List[DocumentSnapshot]:
        rows = [
            (doc_id, data)
            for doc_id, data in self._docs(collection).items()
            if _matches(data, filters)
        ]
        # Documents without an ordered field are left out, as Firestore does.
        for field, _ in orders:
            rows = [row for row in rows if row[1].get(field) is not None]
        for field, direction in reversed(orders):
            rows.sort(key=lambda row: row[1][field], reverse=direction == DESCENDING)
        return [DocumentSnapshot(doc_id, copy.deepcopy(data)) for doc_id, data in rows]


def _format_datetime(value: datetime) -> str:
    # Fixed width so string order equals time order.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _encode(data: Any) -> Any:
    return jsonable_encoder(data, custom_encoder={datetime: _format_datetime})


class SqlDocumentStore:
    """
    SQLModel-backed implementation. Accepts any SQLAlchemy URL
    (Postgres in production, SQLite for tests).
    """

    def __init__(self, database_url: str, echo: bool = False):
        if not database_url:
            raise ValueError("database_url is required for SqlDocumentStore")
        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine = create_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
            connect_args=connect_args,
        )

    def create_all(self) -> None:
        """Create the documents table if it doesn't exist."""
        try:
            SQLModel.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            logger.exception("Could not create document tables")
            raise InternalError("Storage layer failure") from exc

    def collection(self, name: str) -> CollectionReference:
        return CollectionReference(self, name)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with Session(self.engine) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.exception("Document store query failed")
            raise InternalError("Storage layer failure") from exc

    @staticmethod
    def _key(collection: str, doc_id: str) -> dict:
        return {"collection": collection, "id": doc_id}

    def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        with self._session() as session:
            row = session.get(DocumentRow, self._key(collection, doc_id))
            if row is None:
                return DocumentSnapshot(doc_id, None)
            return DocumentSnapshot(doc_id, dict(row.data))

    def set_document(self, collection: str, doc_id: str, data: dict) -> None:
        with self._session() as session:
            session.merge(
                DocumentRow(collection=collection, id=doc_id, data=_encode(data))
            )
            session.commit()

    def update_document(self, collection: str, doc_id: str, changes: dict) -> None:
        with self._session() as session:
            row = session.get(DocumentRow, self._key(collection, doc_id))
            if row is None:
                raise NotFoundError(f"Document {collection}/{doc_id} not found")
            # Reassign so the JSON column is flagged dirty.
            row.data = {**row.data, **_encode(changes)}
            session.add(row)
            session.commit()

    def delete_document(self, collection: str, doc_id: str) -> None:
        with self._session() as session:
            row = session.get(DocumentRow, self._key(collection, doc_id))
            if row is None:
                raise NotFoundError(f"Document {collection}/{doc_id} not found")
            session.delete(row)
            session.commit()

    def run_query(
        self, collection: str, filters: Sequence[Filter], orders: Sequence[Order]
    ) -> List[DocumentSnapshot]:
        query = select(DocumentRow).where(DocumentRow.collection == collection)
        for field, op, value in filters:
            column = DocumentRow.data[field].as_string()
            if op == "==":
                query = query.where(column == _encode(value))
            else:
                query = query.where(column.in_([_encode(v) for v in value]))
        for field, direction in orders:
            column = DocumentRow.data[field].as_string()
            query = query.where(column.is_not(None))
            query = query.order_by(column.desc() if direction == DESCENDING else column.asc())

        with self._session() as session:
            rows = session.exec(query).all()
            return [DocumentSnapshot(row.id, dict(row.data)) for row in rows]
