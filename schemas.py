"""
Database Schemas for the Plantopia storefront

Each Pydantic model describes a document (or an embedded sub-document) stored
in MongoDB. Field names are camelCase to match what the storefront client
sends and reads back.

Collections: users, orders, blogs, and one collection per ProductType
(plants, tools, soils, fertilizers).
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProductType(str, Enum):
    plants = "plants"
    tools = "tools"
    soils = "soils"
    fertilizers = "fertilizers"


class OrderStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class Role(str, Enum):
    user = "user"
    admin = "admin"


class DocumentModel(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True, use_enum_values=True,
                              validate_default=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# Comments

class AuthorSnapshot(DocumentModel):
    """Copy of the author's profile taken when the comment or reply is written."""
    uid: Optional[str] = None
    displayName: Optional[str] = None
    photoURL: Optional[str] = None


class Reply(DocumentModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    user: AuthorSnapshot
    text: str
    createdAt: datetime = Field(default_factory=utcnow)


class Comment(Reply):
    replies: List[Reply] = Field(default_factory=list)


# Users

class WishlistEntry(DocumentModel):
    productId: str
    productType: ProductType
    addedAt: datetime = Field(default_factory=utcnow)


# Orders

class Order(DocumentModel):
    userId: str
    items: List[Dict[str, Any]]
    shipping: Dict[str, Any]
    summary: Dict[str, Any]
    status: OrderStatus = OrderStatus.pending
    paymentMethod: str = "cod"
    paymentStatus: str = "pending"
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)
