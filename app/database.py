# app/database.py
import asyncio
import copy
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

# In-process document store. Collections hold plain dict documents keyed by
# id and understand a small Mongo-style query language: filter documents,
# (field, direction) sort keys, skip/limit windows and grouping pipelines.

logger = logging.getLogger(__name__)

SortKeys = Sequence[Tuple[str, int]]

_ID_RE = re.compile(r"[0-9a-f]{32}")


class StoreError(Exception):
    pass


def new_id() -> str:
    return uuid.uuid4().hex


def is_valid_id(value: str) -> bool:
    return bool(_ID_RE.fullmatch(value or ""))


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------
# Filter evaluation
# ---------------------------
def _regex(pattern: str, options: str) -> "re.Pattern[str]":
    flags = re.IGNORECASE if "i" in options else 0
    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise StoreError(f"invalid $regex {pattern!r}: {exc}") from exc


def _compare(op: str, value: Any, arg: Any) -> bool:
    if value is None:
        return False
    try:
        if op == "$gt":
            return value > arg
        if op == "$gte":
            return value >= arg
        if op == "$lt":
            return value < arg
        return value <= arg
    except TypeError:
        return False


def _match_operators(value: Any, ops: Dict[str, Any]) -> bool:
    for op, arg in ops.items():
        if op == "$options":
            continue
        if op == "$regex":
            if not isinstance(value, str) or not _regex(arg, ops.get("$options", "")).search(value):
                return False
        elif op == "$eq":
            if value != arg:
                return False
        elif op == "$ne":
            if value == arg:
                return False
        elif op == "$in":
            if value not in arg:
                return False
        elif op == "$nin":
            if value in arg:
                return False
        elif op in ("$gt", "$gte", "$lt", "$lte"):
            if not _compare(op, value, arg):
                return False
        else:
            raise StoreError(f"unsupported operator {op}")
    return True


def matches(doc: Dict[str, Any], flt: Optional[Dict[str, Any]]) -> bool:
    for key, cond in (flt or {}).items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in cond):
                return False
        elif key == "$and":
            if not all(matches(doc, sub) for sub in cond):
                return False
        elif isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            if not _match_operators(doc.get(key), cond):
                return False
        elif doc.get(key) != cond:
            return False
    return True


def _sort_value(value: Any) -> Tuple[int, Any]:
    # missing fields sort first, as in Mongo
    return (0, 0) if value is None else (1, value)


def sort_documents(docs: List[Dict[str, Any]], keys: Optional[SortKeys]) -> List[Dict[str, Any]]:
    out = list(docs)
    # stable sorts applied from the least significant key
    for field, direction in reversed(list(keys or ())):
        out.sort(key=lambda d: _sort_value(d.get(field)), reverse=direction < 0)
    return out


# ---------------------------
# Aggregation
# ---------------------------
def _resolve(doc: Dict[str, Any], expr: Any) -> Any:
    if isinstance(expr, str) and expr.startswith("$"):
        return doc.get(expr[1:])
    return expr


def _numbers(values: Iterable[Any]) -> List[float]:
    return [v for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]


def _avg(values: List[Any]) -> Optional[float]:
    nums = _numbers(values)
    return sum(nums) / len(nums) if nums else None


_ACCUMULATORS: Dict[str, Callable[[List[Any]], Any]] = {
    "$sum": lambda values: sum(_numbers(values)),
    "$avg": _avg,
    "$min": lambda values: min((v for v in values if v is not None), default=None),
    "$max": lambda values: max((v for v in values if v is not None), default=None),
}


def _group(docs: List[Dict[str, Any]], stage: Dict[str, Any]) -> List[Dict[str, Any]]:
    groups: Dict[Any, List[Dict[str, Any]]] = {}
    for doc in docs:
        groups.setdefault(_resolve(doc, stage["_id"]), []).append(doc)

    out = []
    for key, members in groups.items():
        row: Dict[str, Any] = {"_id": key}
        for field, accumulator in stage.items():
            if field == "_id":
                continue
            (op, expr), = accumulator.items()
            if op not in _ACCUMULATORS:
                raise StoreError(f"unsupported accumulator {op}")
            row[field] = _ACCUMULATORS[op]([_resolve(m, expr) for m in members])
        out.append(row)
    return out


# ---------------------------
# Collection
# ---------------------------
class Collection:
    """One named collection. Writes are serialized by a per-collection lock."""

    def __init__(self, name: str):
        self.name = name
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def insert_one(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            now = _now()
            stored = {**copy.deepcopy(doc), "id": new_id(), "createdAt": now, "updatedAt": now}
            self._docs[stored["id"]] = stored
            return copy.deepcopy(stored)

    async def find_one(self, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find(self, flt: Optional[Dict[str, Any]] = None, sort: Optional[SortKeys] = None,
                   skip: int = 0, limit: int = 0) -> List[Dict[str, Any]]:
        docs = sort_documents([d for d in self._docs.values() if matches(d, flt)], sort)
        docs = docs[skip:skip + limit] if limit else docs[skip:]
        return copy.deepcopy(docs)

    async def count(self, flt: Optional[Dict[str, Any]] = None) -> int:
        return sum(1 for d in self._docs.values() if matches(d, flt))

    async def replace_one(self, doc_id: str, doc: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Replace a document's fields, keeping id and createdAt."""
        async with self._lock:
            current = self._docs.get(doc_id)
            if current is None:
                return None
            fields = {k: v for k, v in doc.items() if k not in ("id", "createdAt", "updatedAt")}
            stored = {
                **copy.deepcopy(fields),
                "id": doc_id,
                "createdAt": current["createdAt"],
                "updatedAt": _now(),
            }
            self._docs[doc_id] = stored
            return copy.deepcopy(stored)

    async def delete_one(self, doc_id: str) -> bool:
        async with self._lock:
            return self._docs.pop(doc_id, None) is not None

    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        docs = list(self._docs.values())
        for stage in pipeline:
            (op, arg), = stage.items()
            if op == "$match":
                docs = [d for d in docs if matches(d, arg)]
            elif op == "$group":
                docs = _group(docs, arg)
            elif op == "$sort":
                docs = sort_documents(docs, list(arg.items()))
            else:
                raise StoreError(f"unsupported pipeline stage {op}")
        return copy.deepcopy(docs)


class Database:
    def __init__(self, name: str):
        self.name = name
        self._collections: Dict[str, Collection] = {}

    def __getitem__(self, name: str) -> Collection:
        if name not in self._collections:
            self._collections[name] = Collection(name)
        return self._collections[name]


def connect(settings) -> Database:
    db = Database(settings.database_name)
    logger.info("Database '%s' ready (%s)", db.name, settings.database_url)
    return db
