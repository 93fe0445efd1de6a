"""
MongoDB connection and the Store handed to every request handler.
"""
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from fastapi import Request
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from errors import NotFoundError, StoreError
from schemas import ProductType, utcnow

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "plantopia")

client: Optional[MongoClient] = MongoClient(DATABASE_URL) if DATABASE_URL else None
db: Optional[Database] = client[DATABASE_NAME] if client is not None else None


def to_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as exc:
        raise StoreError("Invalid identifier") from exc


def create_document(collection: Collection, data: Dict[str, Any]) -> str:
    """Insert a copy of data stamped with createdAt/updatedAt and return the new id."""
    now = utcnow()
    doc = dict(data)
    doc.pop("_id", None)
    doc.update({"createdAt": now, "updatedAt": now})
    return str(collection.insert_one(doc).inserted_id)


def get_documents(collection: Collection, filter_dict: Optional[Dict[str, Any]] = None,
                  sort_by: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return matching documents, newest first when sort_by names a timestamp field."""
    cursor = collection.find(filter_dict or {})
    if sort_by:
        cursor = cursor.sort(sort_by, -1)
    return list(cursor)


class Store:
    """Named handles onto the collections of one database."""

    def __init__(self, database: Database):
        self.db = database
        self.users: Collection = database["users"]
        self.orders: Collection = database["orders"]
        self.blogs: Collection = database["blogs"]
        self._products: Dict[ProductType, Collection] = {t: database[t.value] for t in ProductType}

    def products(self, product_type: Any) -> Collection:
        try:
            return self._products[ProductType(product_type)]
        except ValueError:
            raise NotFoundError("Invalid product type")

    def collection_names(self) -> List[str]:
        return self.db.list_collection_names()


def get_store(request: Request) -> Store:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise StoreError("Database not available")
    return store


def timestamp_key(value: Any) -> float:
    """Sort key for createdAt values written by this service or sent by clients."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return float("-inf")
    if isinstance(value, datetime):
        if value.tzinfo is None:
            # the driver hands back naive UTC
            return (value - datetime(1970, 1, 1)).total_seconds()
        return value.timestamp()
    return float("-inf")
