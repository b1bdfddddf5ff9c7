# app/query.py
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT = "-createdAt"

SORTABLE_FIELDS = {"name", "description", "price", "category", "inStock", "createdAt", "updatedAt"}


@dataclass
class ProductQuery:
    filter: Dict[str, Any] = field(default_factory=dict)
    sort: List[Tuple[str, int]] = field(default_factory=list)
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def _to_number(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _to_int(raw: Optional[str]) -> Optional[int]:
    value = _to_number(raw)
    return int(value) if value is not None else None


def _contains(term: str) -> Dict[str, str]:
    return {"$regex": re.escape(term), "$options": "i"}


def build_search_filter(term: str) -> Dict[str, Any]:
    """Case-insensitive substring match against name OR description."""
    return {"$or": [{"name": _contains(term)}, {"description": _contains(term)}]}


def parse_sort(raw: Optional[str]) -> List[Tuple[str, int]]:
    """
    "-price,name" -> [("price", -1), ("name", 1)].

    Commas and spaces both separate fields. Unknown fields are dropped; when
    none survive the default sort (newest first) is used.
    """
    keys = []
    for token in re.split(r"[,\s]+", raw or ""):
        direction = 1
        if token.startswith("-"):
            direction, token = -1, token[1:]
        elif token.startswith("+"):
            token = token[1:]
        if token in SORTABLE_FIELDS:
            keys.append((token, direction))
    if not keys and raw != DEFAULT_SORT:
        return parse_sort(DEFAULT_SORT)
    return keys


def build_query(params: Mapping[str, str], max_limit: int = 100) -> ProductQuery:
    flt: Dict[str, Any] = {}

    name = params.get("name")
    if name:
        flt["name"] = _contains(name)

    category = params.get("category")
    if category:
        wanted = [c.strip().lower() for c in category.split(",") if c.strip()]
        if wanted:
            flt["category"] = {"$in": wanted}

    in_stock = params.get("inStock")
    if in_stock in ("true", "false"):
        flt["inStock"] = in_stock == "true"

    price: Dict[str, float] = {}
    min_price = _to_number(params.get("minPrice"))
    max_price = _to_number(params.get("maxPrice"))
    if min_price is not None:
        price["$gte"] = min_price
    if max_price is not None:
        price["$lte"] = max_price
    if price:
        flt["price"] = price

    search = params.get("search")
    if search:
        flt.update(build_search_filter(search))

    page = _to_int(params.get("page"))
    if page is None or page < 1:
        page = DEFAULT_PAGE
    limit = _to_int(params.get("limit"))
    if limit is None or limit < 1:
        limit = DEFAULT_LIMIT
    limit = min(limit, max_limit)

    return ProductQuery(
        filter=flt,
        sort=parse_sort(params.get("sort", DEFAULT_SORT)),
        page=page,
        limit=limit,
    )
