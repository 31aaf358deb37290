"""
Order pricing and lifecycle.

Line items are always priced from the catalog: clients send product ids and
quantities, never amounts. Fulfilment status is changed only by admins through
``update_status``; everything else an owner may amend goes through ``update``.
"""
import logging
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from auth import AuthContext
from catalog import ProductCatalog, sort_spec, total_pages
from database import ORDERS, create_document, serialize_doc, to_object_id, utcnow
from errors import Forbidden, NotFound, ProductNotFound, ValidationFailed
from schemas import (
    LineItemRequest,
    Order,
    OrderCreateRequest,
    OrderItem,
    OrderStatus,
    OrderUpdateRequest,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
UNKNOWN_PRODUCT = "Unknown Product"
SEARCH_FIELDS = ("street", "city", "state", "country")
SORTABLE_FIELDS = {"createdAt", "updatedAt", "totalAmount", "status"}
MAX_PAGE_SIZE = 100


def to_money(value: Any) -> Decimal:
    return Decimal(str(value))


def round_money(value: Decimal) -> float:
    return float(value.quantize(CENT, rounding=ROUND_HALF_UP))


class OrderManager:
    def __init__(self, db: Database, catalog: Optional[ProductCatalog] = None):
        self.db = db
        self.collection = db[ORDERS]
        self.catalog = catalog or ProductCatalog(db)

    # Pricing

    def price_line_items(self, items: Sequence[LineItemRequest]) -> Tuple[List[OrderItem], float]:
        """
        Resolve unit prices for ``items`` with one catalog lookup.

        Returns the priced line items and their total. Raises ProductNotFound
        for the first reference the catalog cannot resolve, before anything
        is written.
        """
        refs = []
        for item in items:
            oid = to_object_id(item.product)
            if oid is None:
                raise ProductNotFound(item.product)
            refs.append((oid, item.quantity))

        products = self.catalog.find_by_ids(oid for oid, _ in refs)

        lines = []
        total = Decimal("0")
        for oid, quantity in refs:
            product = products.get(oid)
            if product is None:
                logger.warning("Price resolution failed for product %s", oid)
                raise ProductNotFound(oid)
            unit_price = to_money(product.get("price", 0))
            total += unit_price * quantity
            lines.append(OrderItem(product=oid, quantity=quantity, price=float(unit_price)))
        return lines, round_money(total)

    # Rendering

    def _render(self, docs: List[dict]) -> List[dict]:
        refs = [item["product"] for doc in docs for item in doc.get("products", [])]
        products = self.catalog.find_by_ids(refs)
        rendered = []
        for doc in docs:
            items = []
            for item in doc.get("products", []):
                product = products.get(item["product"])
                items.append({
                    "product": serialize_doc(product) if product else None,
                    "productId": str(item["product"]),
                    "productName": product["name"] if product else UNKNOWN_PRODUCT,
                    "quantity": item["quantity"],
                    "price": item.get("price", product.get("price", 0) if product else 0),
                })
            order = serialize_doc(doc, exclude=("products",))
            order["products"] = items
            rendered.append(order)
        return rendered

    def _render_one(self, doc: dict) -> dict:
        return self._render([doc])[0]

    # Access

    def _find(self, order_id: str) -> dict:
        oid = to_object_id(order_id)
        doc = self.collection.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFound("Order not found")
        return doc

    def _authorized(self, actor: AuthContext, order_id: str, action: str) -> dict:
        doc = self._find(order_id)
        if not actor.is_admin and str(doc["user"]) != actor.id:
            logger.warning("User %s denied %s on order %s", actor.id, action, doc["_id"])
            raise Forbidden(f"Not authorized to {action} this order")
        return doc

    # Operations

    def create(self, actor: AuthContext, req: OrderCreateRequest) -> dict:
        lines, total = self.price_line_items(req.products)
        order = Order(
            user=ObjectId(actor.id),
            products=lines,
            total_amount=total,
            status=OrderStatus.PENDING,
            shipping_address=req.shipping_address,
            payment_method=req.payment_method,
        )
        _id = create_document(self.db, ORDERS, order)
        logger.info("User %s created order %s (total %.2f)", actor.id, _id, total)
        return self._render_one(self.collection.find_one({"_id": _id}))

    def list(
        self,
        actor: AuthContext,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        if page < 1:
            raise ValidationFailed.single("page", "Page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationFailed.single("limit", f"Limit must be between 1 and {MAX_PAGE_SIZE}")

        query: Dict[str, Any] = {}
        if not actor.is_admin:
            query["user"] = ObjectId(actor.id)
        if search:
            pattern = re.escape(search)
            query["$or"] = [
                {f"shippingAddress.{field}": {"$regex": pattern, "$options": "i"}}
                for field in SEARCH_FIELDS
            ]
        if status:
            query["status"] = status

        logger.debug("Listing orders for %s (%s): %s", actor.id, actor.role, query)
        field, direction = sort_spec(sort_by, sort_order, SORTABLE_FIELDS)
        total = self.collection.count_documents(query)
        cursor = self.collection.find(query).sort(field, direction).skip((page - 1) * limit).limit(limit)
        return {
            "orders": self._render(list(cursor)),
            "total": total,
            "totalPages": total_pages(total, limit),
            "currentPage": page,
        }

    def list_mine(self, actor: AuthContext) -> List[dict]:
        cursor = self.collection.find({"user": ObjectId(actor.id)}).sort("createdAt", DESCENDING)
        return self._render(list(cursor))

    def get(self, actor: AuthContext, order_id: str) -> dict:
        return self._render_one(self._authorized(actor, order_id, "view"))

    def update(self, actor: AuthContext, order_id: str, req: OrderUpdateRequest) -> dict:
        doc = self._authorized(actor, order_id, "update")

        updates: Dict[str, Any] = {}
        if req.products is not None:
            lines, total = self.price_line_items(req.products)
            updates["products"] = [line.model_dump(by_alias=True) for line in lines]
            updates["totalAmount"] = total
        if req.shipping_address is not None:
            updates["shippingAddress"] = req.shipping_address.model_dump(by_alias=True)
        if req.payment_method is not None:
            updates["paymentMethod"] = req.payment_method
        if req.payment_status is not None and actor.is_admin:
            updates["paymentStatus"] = req.payment_status

        if not updates:
            return self._render_one(doc)

        updates["updatedAt"] = utcnow()
        updated = self.collection.find_one_and_update(
            {"_id": doc["_id"]}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
        if not updated:
            raise NotFound("Order not found")
        return self._render_one(updated)

    def update_status(self, actor: AuthContext, order_id: str, status: str) -> dict:
        if not actor.is_admin:
            logger.warning("User %s denied status change on order %s", actor.id, order_id)
            raise Forbidden("Not authorized to update order status")
        try:
            status = OrderStatus(status).value
        except ValueError:
            raise ValidationFailed.single("status", f"Invalid status: {status}")

        oid = to_object_id(order_id)
        updated = self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": {"status": status, "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        ) if oid else None
        if not updated:
            raise NotFound("Order not found")
        logger.info("Order %s status set to %s by %s", oid, status, actor.id)
        return self._render_one(updated)

    def delete(self, actor: AuthContext, order_id: str):
        doc = self._authorized(actor, order_id, "delete")
        self.collection.delete_one({"_id": doc["_id"]})
        logger.info("Order %s deleted by %s", doc["_id"], actor.id)

    def summary(self) -> Dict[str, Any]:
        by_status = {status.value: 0 for status in OrderStatus}
        revenue = Decimal("0")
        for row in self.collection.aggregate([
            {"$group": {"_id": "$status", "count": {"$sum": 1}, "revenue": {"$sum": "$totalAmount"}}},
        ]):
            by_status[row["_id"]] = row["count"]
            if row["_id"] != OrderStatus.CANCELLED.value:
                revenue += to_money(row["revenue"])
        return {"ordersByStatus": by_status, "revenue": round_money(revenue)}
