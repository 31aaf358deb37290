"""
MongoDB access helpers.

The database handle is opened once from ``Settings`` and handed to the app
factory; managers receive it explicitly instead of importing a global.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from config import Settings

logger = logging.getLogger(__name__)

USERS = "users"
PRODUCTS = "products"
ORDERS = "orders"


def connect(settings: Settings) -> Database:
    client = MongoClient(settings.database_url)
    logger.info("Using MongoDB database %s", settings.database_name)
    return client[settings.database_name]


def ensure_indexes(db: Database):
    db[USERS].create_index("email", unique=True)
    db[PRODUCTS].create_index("category")
    db[ORDERS].create_index("user")
    db[ORDERS].create_index("status")
    db[ORDERS].create_index([("createdAt", -1)])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id string into an ObjectId, returning None when malformed."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> ObjectId:
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    now = utcnow()
    doc = {**data, "createdAt": now, "updatedAt": now}
    return db[collection_name].insert_one(doc).inserted_id


def serialize_doc(doc: Optional[Dict[str, Any]], exclude: Iterable[str] = ()):
    if not doc:
        return doc
    doc = {k: v for k, v in doc.items() if k not in exclude}
    doc["id"] = str(doc.pop("_id"))
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
        elif isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc
