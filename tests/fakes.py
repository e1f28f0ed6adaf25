import copy
import threading
import time
from collections import defaultdict
from contextlib import contextmanager

from bson import ObjectId

from app.core.errors import DependencyFailure


def _matches(value, condition) -> bool:
    if isinstance(condition, dict):
        for op, operand in condition.items():
            if op == "$in":
                if isinstance(value, list):
                    if not set(value) & set(operand):
                        return False
                elif value not in operand:
                    return False
            elif op == "$nin":
                if value in operand:
                    return False
            elif op == "$ne":
                if value == operand:
                    return False
            else:
                raise NotImplementedError(op)
        return True
    if isinstance(value, list):
        return condition in value
    return value == condition


class InMemoryStore:
    """Dict-backed stand-in for MongoEntityStore."""

    def __init__(self):
        self.tables = defaultdict(dict)
        self.operations = []
        self.failing = set()
        self.transaction_keys = []
        self._locks = defaultdict(threading.RLock)
        self._locks_guard = threading.Lock()
        self.read_delay = 0

    def _record(self, operation, entity):
        self.operations.append((operation, entity))
        if (operation, entity) in self.failing:
            raise DependencyFailure(f"Store {operation} on {entity} failed")

    def _filter(self, entity, where):
        where = where or {}
        for record in self.tables[entity].values():
            if all(_matches(record.get(field), condition) for field, condition in where.items()):
                yield record

    def create(self, entity, fields):
        self._record("create", entity)
        record = copy.deepcopy(dict(fields))
        record["id"] = str(ObjectId())
        self.tables[entity][record["id"]] = record
        return copy.deepcopy(record)

    def get_by_id(self, entity, record_id):
        self._record("get_by_id", entity)
        record = self.tables[entity].get(record_id)
        return copy.deepcopy(record) if record else None

    def find(self, entity, where=None, order=None):
        self._record("find", entity)
        records = [copy.deepcopy(r) for r in self._filter(entity, where)]
        for field, direction in reversed(list(order or [])):
            records.sort(key=lambda r: (r.get(field) is None, r.get(field) or 0), reverse=direction < 0)
        return records

    def find_one(self, entity, where):
        self._record("find_one", entity)
        found = next((copy.deepcopy(r) for r in self._filter(entity, where)), None)
        # widens the gap between a check and the write that follows it
        time.sleep(self.read_delay)
        return found

    def count(self, entity, where=None):
        self._record("count", entity)
        return sum(1 for _ in self._filter(entity, where))

    def update(self, entity, record_id, patch):
        self._record("update", entity)
        record = self.tables[entity].get(record_id)
        if record is None:
            return None
        record.update(copy.deepcopy(patch))
        return copy.deepcopy(record)

    def update_where(self, entity, patch, where):
        self._record("update_where", entity)
        matched = list(self._filter(entity, where))
        for record in matched:
            record.update(copy.deepcopy(patch))
        return len(matched)

    def destroy(self, entity, record_id=None, where=None):
        self._record("destroy", entity)
        if record_id is not None:
            return 1 if self.tables[entity].pop(record_id, None) else 0
        doomed = [r["id"] for r in self._filter(entity, where)]
        for key in doomed:
            del self.tables[entity][key]
        return len(doomed)

    @contextmanager
    def transaction(self, key):
        with self._locks_guard:
            lock = self._locks[key]
        with lock:
            self.transaction_keys.append(key)
            yield

    def writes(self):
        return [op for op in self.operations if op[0] in ("create", "update", "update_where", "destroy")]


class FakePushSink:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_message(self, recipient_id, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append((recipient_id, message))
        return True


def notifications_for(store, user_id):
    return [n for n in store.tables["notifications"].values() if n["user_id"] == user_id]
