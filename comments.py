import logging
from typing import Any, Dict, List, Optional

from database import Store, to_object_id
from errors import ForbiddenError, NotFoundError, ValidationError
from schemas import AuthorSnapshot, Comment, Reply

logger = logging.getLogger(__name__)


def _snapshot(author) -> AuthorSnapshot:
    return AuthorSnapshot(uid=author.get("uid"), displayName=author.get("displayName"),
                          photoURL=author.get("photoURL"))


def _require_author_and_text(author, text) -> None:
    if not author or not text or not isinstance(author, dict):
        raise ValidationError("Missing required fields")


def list_comments(store: Store, product_type: str, product_id: str) -> List[Dict[str, Any]]:
    collection = store.products(product_type)
    product = collection.find_one({"_id": to_object_id(product_id)}, {"comments": 1})
    if not product:
        raise NotFoundError("Product not found")
    return product.get("comments") or []


def add_comment(store: Store, product_type: str, product_id: str, author, text) -> Dict[str, Any]:
    """Newest comments go first."""
    _require_author_and_text(author, text)
    collection = store.products(product_type)

    comment = Comment(user=_snapshot(author), text=text).to_document()
    result = collection.update_one(
        {"_id": to_object_id(product_id)},
        {"$push": {"comments": {"$each": [comment], "$position": 0}}},
    )
    if result.matched_count == 0:
        raise NotFoundError("Product not found")
    return comment


def add_reply(store: Store, product_type: str, product_id: str, comment_id: str, author, text) -> Dict[str, Any]:
    """Replies are appended, so they read oldest first."""
    _require_author_and_text(author, text)
    collection = store.products(product_type)

    reply = Reply(user=_snapshot(author), text=text).to_document()
    result = collection.update_one(
        {"_id": to_object_id(product_id), "comments": {"$elemMatch": {"_id": to_object_id(comment_id)}}},
        {"$push": {"comments.$.replies": reply}},
    )
    if result.matched_count == 0:
        raise NotFoundError("Product or comment not found")
    return reply


def delete_comment(store: Store, product_type: str, product_id: str, comment_id: str,
                   requester_uid: Optional[str]) -> None:
    if not requester_uid:
        raise ValidationError("User ID required")
    collection = store.products(product_type)

    oid = to_object_id(product_id)
    product = collection.find_one({"_id": oid})
    if not product:
        raise NotFoundError("Product not found")

    comment = next((c for c in product.get("comments") or [] if str(c.get("_id")) == comment_id), None)
    if comment is None:
        raise NotFoundError("Comment not found")

    # ownership is checked against the author snapshot, not the live user
    if (comment.get("user") or {}).get("uid") != requester_uid:
        raise ForbiddenError("You can only delete your own comments")

    result = collection.update_one({"_id": oid}, {"$pull": {"comments": {"_id": comment["_id"]}}})
    if result.matched_count == 0:
        raise NotFoundError("Product not found")
    logger.info("Deleted comment %s on %s %s", comment_id, product_type, product_id)
