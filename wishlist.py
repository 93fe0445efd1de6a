import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from database import Store, to_object_id
from errors import ApiError, NotFoundError, ValidationError
from schemas import WishlistEntry, utcnow

logger = logging.getLogger(__name__)

MAX_LOOKUP_WORKERS = 8


def add_to_wishlist(store: Store, uid: str, product_id: Optional[str], product_type: Optional[str]) -> None:
    if not product_id or not product_type:
        raise ValidationError("Product ID and type are required")

    collection = store.products(product_type)
    if not collection.find_one({"_id": to_object_id(product_id)}, {"_id": 1}):
        raise NotFoundError("Product not found")

    # addedAt is part of the compared value, so $addToSet only drops exact repeats
    entry = WishlistEntry(productId=product_id, productType=product_type).to_document()
    result = store.users.update_one(
        {"uid": uid},
        {"$addToSet": {"wishlist": entry}, "$set": {"updatedAt": utcnow()}},
    )
    if result.matched_count == 0:
        raise NotFoundError("User not found")


def remove_from_wishlist(store: Store, uid: str, product_id: str) -> None:
    result = store.users.update_one(
        {"uid": uid},
        {"$pull": {"wishlist": {"productId": product_id}}, "$set": {"updatedAt": utcnow()}},
    )
    if result.matched_count == 0:
        raise NotFoundError("User not found")


def _with_product(store: Store, entry: Dict[str, Any]) -> Dict[str, Any]:
    try:
        product = store.products(entry.get("productType")).find_one({"_id": to_object_id(entry.get("productId"))})
    except ApiError as exc:
        logger.warning("Skipping wishlist entry %s: %s", entry.get("productId"), exc.message)
        product = None
    except PyMongoError:
        logger.exception("Error fetching product %s", entry.get("productId"))
        product = None
    return {**entry, "product": product}


def get_wishlist(store: Store, uid: str) -> List[Dict[str, Any]]:
    user = store.users.find_one({"uid": uid}, {"wishlist": 1})
    if not user:
        raise NotFoundError("User not found")

    entries = user.get("wishlist") or []
    if not entries:
        return []

    with ThreadPoolExecutor(max_workers=min(MAX_LOOKUP_WORKERS, len(entries))) as pool:
        joined = list(pool.map(lambda entry: _with_product(store, entry), entries))
    return [item for item in joined if item["product"] is not None]
