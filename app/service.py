# app/service.py
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .database import Collection, StoreError, is_valid_id
from .errors import BadRequest, InternalError, NotFound
from .query import build_query, build_search_filter
from .validation import validate_product

# This file contains the core logic behind the product endpoints.

logger = logging.getLogger(__name__)

STATS_PIPELINE = [
    {
        "$group": {
            "_id": "$category",
            "count": {"$sum": 1},
            "avgPrice": {"$avg": "$price"},
            "minPrice": {"$min": "$price"},
            "maxPrice": {"$max": "$price"},
            "totalValue": {"$sum": "$price"},
        }
    },
    {"$sort": {"_id": 1}},
]


def serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(doc)
    for key in ("createdAt", "updatedAt"):
        if isinstance(out.get(key), datetime):
            out[key] = out[key].isoformat()
    return out


class ProductService:
    def __init__(self, products: Collection, max_page_size: int = 100):
        self.products = products
        self.max_page_size = max_page_size

    async def _fetch(self, product_id: str) -> Dict[str, Any]:
        doc = await self.products.find_one(product_id) if is_valid_id(product_id) else None
        if doc is None:
            raise NotFound("Product not found")
        return doc

    async def list(self, params: Mapping[str, str]) -> Dict[str, Any]:
        query = build_query(params, self.max_page_size)
        try:
            total = await self.products.count(query.filter)
            docs = await self.products.find(query.filter, query.sort, query.skip, query.limit)
        except StoreError as exc:
            logger.error("Store failure while listing products: %s", exc)
            raise InternalError("Failed to list products") from exc

        total_pages = math.ceil(total / query.limit)
        return {
            "items": [serialize(d) for d in docs],
            "total": total,
            "page": query.page,
            "limit": query.limit,
            "totalPages": total_pages,
            "hasNextPage": query.page < total_pages,
            "hasPreviousPage": query.page > 1,
        }

    async def get_by_id(self, product_id: str) -> Dict[str, Any]:
        return serialize(await self._fetch(product_id))

    async def create(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        product = validate_product(payload)
        doc = await self.products.insert_one(product.to_document())
        logger.info("Created product %s (%s)", doc["id"], doc["category"])
        return serialize(doc)

    async def update(self, product_id: str, partial: Mapping[str, Any]) -> Dict[str, Any]:
        current = await self._fetch(product_id)
        merged = validate_product({**current, **partial})
        doc = await self.products.replace_one(product_id, merged.to_document())
        if doc is None:
            # deleted between fetch and write
            raise NotFound("Product not found")
        logger.info("Updated product %s fields=%s", product_id, sorted(partial))
        return serialize(doc)

    async def delete(self, product_id: str) -> None:
        await self._fetch(product_id)
        if not await self.products.delete_one(product_id):
            raise NotFound("Product not found")
        logger.info("Deleted product %s", product_id)

    async def stats(self) -> Dict[str, Any]:
        try:
            groups = await self.products.aggregate(STATS_PIPELINE)
            in_stock = await self.products.count({"inStock": True})
        except StoreError as exc:
            logger.error("Store failure while computing statistics: %s", exc)
            raise InternalError("Failed to compute statistics") from exc

        by_category: List[Dict[str, Any]] = [{"category": row.pop("_id"), **row} for row in groups]
        total = sum(row["count"] for row in by_category)
        return {
            "totalProducts": total,
            "inStock": in_stock,
            "outOfStock": total - in_stock,
            "byCategory": by_category,
        }

    async def search(self, q: Optional[str]) -> Dict[str, Any]:
        if not q or not q.strip():
            raise BadRequest('Search query parameter "q" is required')
        try:
            docs = await self.products.find(build_search_filter(q.strip()), [("createdAt", -1)])
        except StoreError as exc:
            logger.error("Store failure while searching %r: %s", q, exc)
            raise InternalError("Search failed") from exc
        return {"count": len(docs), "items": [serialize(d) for d in docs]}
