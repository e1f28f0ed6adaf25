import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId, errors
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app.config import logger
from app.core.errors import DependencyFailure

_session: ContextVar = ContextVar("store_session", default=None)


def serialize_document(document: Optional[dict]) -> Optional[dict]:
    if document is None:
        return None
    record = dict(document)
    record["id"] = str(record.pop("_id"))
    return record


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (errors.InvalidId, TypeError):
        return None


class MongoEntityStore:
    """Record store for the moderation entities, one collection per entity.

    Records come back as plain dicts with a string ``id``. Filters use the
    MongoDB query language; an ``id`` key is translated to ``_id``.
    """

    def __init__(self, database, use_transactions: bool = False):
        self.database = database
        self.use_transactions = use_transactions
        self._locks: Dict[str, list] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _store_call(self, operation: str, entity: str):
        try:
            yield
        except PyMongoError as e:
            logger.error(f"Store {operation} on {entity} failed: {str(e)}")
            raise DependencyFailure(
                f"Store {operation} on {entity} failed", {"error": str(e)}
            ) from e

    def _session_kwargs(self) -> dict:
        session = _session.get()
        return {"session": session} if session is not None else {}

    def _translate_where(self, where: Optional[dict]) -> dict:
        query = dict(where or {})
        if "id" in query:
            value = query.pop("id")
            if isinstance(value, dict) and "$in" in value:
                query["_id"] = {"$in": [to_object_id(v) for v in value["$in"]]}
            else:
                query["_id"] = to_object_id(value)
        return query

    def create(self, entity: str, fields: dict) -> dict:
        document = dict(fields)
        with self._store_call("create", entity):
            result = self.database[entity].insert_one(document, **self._session_kwargs())
        document["_id"] = result.inserted_id
        return serialize_document(document)

    def get_by_id(self, entity: str, record_id: str) -> Optional[dict]:
        object_id = to_object_id(record_id)
        if object_id is None:
            return None
        with self._store_call("get_by_id", entity):
            document = self.database[entity].find_one(
                {"_id": object_id}, **self._session_kwargs()
            )
        return serialize_document(document)

    def find(
        self,
        entity: str,
        where: Optional[dict] = None,
        order: Optional[Sequence[Tuple[str, int]]] = None,
    ) -> List[dict]:
        with self._store_call("find", entity):
            cursor = self.database[entity].find(
                self._translate_where(where), **self._session_kwargs()
            )
            if order:
                cursor = cursor.sort(list(order))
            return [serialize_document(document) for document in cursor]

    def find_one(self, entity: str, where: dict) -> Optional[dict]:
        with self._store_call("find_one", entity):
            document = self.database[entity].find_one(
                self._translate_where(where), **self._session_kwargs()
            )
        return serialize_document(document)

    def count(self, entity: str, where: Optional[dict] = None) -> int:
        with self._store_call("count", entity):
            return self.database[entity].count_documents(
                self._translate_where(where), **self._session_kwargs()
            )

    def update(self, entity: str, record_id: str, patch: dict) -> Optional[dict]:
        object_id = to_object_id(record_id)
        if object_id is None:
            return None
        with self._store_call("update", entity):
            document = self.database[entity].find_one_and_update(
                {"_id": object_id},
                {"$set": patch},
                return_document=ReturnDocument.AFTER,
                **self._session_kwargs(),
            )
        return serialize_document(document)

    def update_where(self, entity: str, patch: dict, where: dict) -> int:
        with self._store_call("update_where", entity):
            result = self.database[entity].update_many(
                self._translate_where(where), {"$set": patch}, **self._session_kwargs()
            )
        return result.modified_count

    def destroy(
        self, entity: str, record_id: Optional[str] = None, where: Optional[dict] = None
    ) -> int:
        if record_id is not None:
            where = {"id": record_id}
        if not where:
            raise ValueError("destroy needs a record id or a filter")
        with self._store_call("destroy", entity):
            result = self.database[entity].delete_many(
                self._translate_where(where), **self._session_kwargs()
            )
        return result.deleted_count

    @contextmanager
    def _held(self, key: str):
        # entries live only while a section on the key is running or waiting
        with self._locks_guard:
            entry = self._locks.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    @contextmanager
    def transaction(self, key: str):
        """Serialize a read-modify-write section on ``key``.

        Inside one process the section runs under a per-key lock. With
        ``use_transactions`` the section also runs in a MongoDB transaction so
        that several API workers stay consistent.
        """
        with self._held(key):
            if not self.use_transactions or _session.get() is not None:
                yield
                return
            with self._store_call("transaction", key):
                with self.database.client.start_session() as session:
                    with session.start_transaction():
                        token = _session.set(session)
                        try:
                            yield
                        finally:
                            _session.reset(token)
