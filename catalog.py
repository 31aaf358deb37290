"""
Product catalog backed by the ``products`` collection.

Besides the admin CRUD surface, the catalog answers the batch price lookups
that order pricing depends on.
"""
import logging
import math
import re
from typing import Any, Dict, Iterable, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from database import PRODUCTS, create_document, serialize_doc, to_object_id, utcnow
from errors import Conflict, NotFound
from schemas import ProductCreateRequest, ProductUpdateRequest

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {"createdAt", "updatedAt", "name", "price", "stock", "category"}


def sort_spec(sort_by: str, sort_order: str, allowed: Iterable[str], default: str = "createdAt"):
    field = sort_by if sort_by in allowed else default
    return field, DESCENDING if sort_order == "desc" else ASCENDING


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


class ProductCatalog:
    def __init__(self, db: Database):
        self.db = db
        self.collection = db[PRODUCTS]

    def find_by_ids(self, ids: Iterable[ObjectId]) -> Dict[ObjectId, dict]:
        distinct = list(dict.fromkeys(ids))
        if not distinct:
            return {}
        return {doc["_id"]: doc for doc in self.collection.find({"_id": {"$in": distinct}})}

    def list(
        self,
        page: int = 1,
        limit: int = 10,
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if category:
            query["category"] = category
        if search:
            pattern = re.escape(search)
            query["$or"] = [
                {"name": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
            ]
        field, direction = sort_spec(sort_by, sort_order, SORTABLE_FIELDS)
        total = self.collection.count_documents(query)
        cursor = self.collection.find(query).sort(field, direction).skip((page - 1) * limit).limit(limit)
        return {
            "products": [serialize_doc(p) for p in cursor],
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
        }

    def _get_doc(self, product_id: str) -> dict:
        oid = to_object_id(product_id)
        doc = self.collection.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFound("Product not found")
        return doc

    def get(self, product_id: str) -> dict:
        return serialize_doc(self._get_doc(product_id))

    def _check_sku(self, sku: Optional[str], exclude_id: Optional[ObjectId] = None):
        if not sku:
            return
        query: Dict[str, Any] = {"sku": sku}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if self.collection.find_one(query):
            raise Conflict("SKU already exists")

    def create(self, req: ProductCreateRequest) -> dict:
        self._check_sku(req.sku)
        _id = create_document(self.db, PRODUCTS, req)
        logger.info("Created product %s", _id)
        return serialize_doc(self.collection.find_one({"_id": _id}))

    def update(self, product_id: str, req: ProductUpdateRequest) -> dict:
        oid = self._get_doc(product_id)["_id"]
        updates = req.model_dump(by_alias=True, exclude_none=True)
        self._check_sku(updates.get("sku"), exclude_id=oid)
        updates["updatedAt"] = utcnow()
        doc = self.collection.find_one_and_update(
            {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
        if not doc:
            raise NotFound("Product not found")
        return serialize_doc(doc)

    def delete(self, product_id: str):
        oid = to_object_id(product_id)
        result = self.collection.delete_one({"_id": oid}) if oid else None
        if result is None or result.deleted_count == 0:
            raise NotFound("Product not found")
        logger.info("Deleted product %s", oid)
