"""
Orders are written twice: the canonical document in the orders collection and
a copy embedded in the owner's users.orders array (keyed by the string form of
the canonical _id). There is no transaction around the two writes. The
canonical write always happens first and is never rolled back; sync_order_copy
rebuilds the embedded copy from the canonical one.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from pymongo.errors import PyMongoError

from database import Store, get_documents, timestamp_key, to_object_id
from errors import ForbiddenError, NotFoundError, StoreError, ValidationError
from schemas import Order, OrderStatus, utcnow

logger = logging.getLogger(__name__)

VALID_STATUSES = [s.value for s in OrderStatus]


def _format_item(item: Mapping[str, Any]) -> Dict[str, Any]:
    formatted = {k: v for k, v in item.items() if k != "_id"}
    formatted["productId"] = item.get("_id", item.get("productId"))
    return formatted


def _user_copy(order: Dict[str, Any]) -> Dict[str, Any]:
    copy = dict(order)
    copy["_id"] = str(order["_id"])
    return copy


def _push_user_copy(store: Store, copy: Dict[str, Any], shipping: Optional[Dict[str, Any]] = None) -> bool:
    update: Dict[str, Any] = {"$push": {"orders": copy}, "$set": {"updatedAt": utcnow()}}
    if shipping is not None:
        update["$set"]["shippingAddress"] = shipping
    # the $ne guard keeps a repeated push from duplicating the copy
    result = store.users.update_one({"uid": copy["userId"], "orders._id": {"$ne": copy["_id"]}}, update)
    return result.matched_count > 0


def sort_newest_first(orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(orders, key=lambda o: timestamp_key(o.get("createdAt")), reverse=True)


def create_order(store: Store, user_id, items, shipping, summary, payment_method: Optional[str] = None) -> str:
    if not user_id or not items or not shipping or not summary:
        raise ValidationError("Missing required fields")
    if not isinstance(items, list) or not all(isinstance(item, Mapping) for item in items):
        raise ValidationError("Order items must be objects")

    order = Order(
        userId=user_id,
        items=[_format_item(item) for item in items],
        shipping=shipping,
        summary=summary,
        paymentMethod=payment_method or "cod",
    ).to_document()

    result = store.orders.insert_one(order)
    if not result.acknowledged:
        raise StoreError("Failed to create order")
    order_id = str(result.inserted_id)
    logger.info("Created order %s for user %s", order_id, user_id)

    try:
        if not _push_user_copy(store, _user_copy(order), shipping=shipping):
            logger.warning("Order %s created but no user %s to hold its copy", order_id, user_id)
    except PyMongoError as exc:
        logger.error("Order %s created but copying it to user %s failed", order_id, user_id, exc_info=exc)
        raise StoreError("Order was saved but the user record could not be updated") from exc

    return order_id


def update_order_status(store: Store, order_id: str, status) -> Dict[str, Any]:
    if status not in VALID_STATUSES:
        raise ValidationError("Invalid status value")

    oid = to_object_id(order_id)
    now = utcnow()
    result = store.orders.update_one({"_id": oid}, {"$set": {"status": status, "updatedAt": now}})
    if result.matched_count == 0:
        raise NotFoundError("Order not found")

    order = store.orders.find_one({"_id": oid})
    if order and order.get("userId"):
        try:
            propagated = store.users.update_one(
                {"uid": order["userId"], "orders": {"$elemMatch": {"_id": str(oid)}}},
                {"$set": {"orders.$.status": status, "updatedAt": now}},
            )
            if propagated.matched_count == 0:
                logger.warning("Order %s has no embedded copy under user %s", oid, order["userId"])
        except PyMongoError:
            logger.exception("Could not propagate status %s of order %s to user %s", status, oid, order["userId"])
    return order


def delete_order(store: Store, order_id: str, requester_user_id: Optional[str]) -> None:
    if not requester_user_id:
        raise ValidationError("User ID required")

    oid = to_object_id(order_id)
    order = store.orders.find_one({"_id": oid})
    if not order:
        raise NotFoundError("Order not found")
    if order.get("userId") != requester_user_id:
        raise ForbiddenError("You can only delete your own orders")

    result = store.orders.delete_one({"_id": oid})
    if result.deleted_count == 0:
        raise NotFoundError("Order not found")

    try:
        store.users.update_one(
            {"uid": order["userId"]},
            {"$pull": {"orders": {"_id": str(oid)}}, "$set": {"updatedAt": utcnow()}},
        )
    except PyMongoError:
        logger.exception("Order %s deleted but its copy under user %s was not removed", oid, order["userId"])


def list_orders_for_user(store: Store, uid: str) -> List[Dict[str, Any]]:
    user = store.users.find_one({"uid": uid}, {"orders": 1})
    if not user:
        raise NotFoundError("User not found")
    return sort_newest_first(user.get("orders") or [])


def list_all_orders(store: Store) -> List[Dict[str, Any]]:
    return get_documents(store.orders, sort_by="createdAt")


def sync_order_copy(store: Store, order_id: str) -> Dict[str, Any]:
    """Replace the owner's embedded copy with one rebuilt from the canonical order."""
    oid = to_object_id(order_id)
    order = store.orders.find_one({"_id": oid})
    if not order:
        raise NotFoundError("Order not found")

    copy = _user_copy(order)
    pulled = store.users.update_one({"uid": order["userId"]}, {"$pull": {"orders": {"_id": copy["_id"]}}})
    if pulled.matched_count == 0:
        raise NotFoundError("User not found")
    _push_user_copy(store, copy)
    logger.info("Resynced embedded copy of order %s for user %s", copy["_id"], order["userId"])
    return copy
