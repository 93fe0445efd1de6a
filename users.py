from typing import Any, Dict, List

from database import Store
from errors import NotFoundError, ValidationError
from orders import sort_newest_first
from schemas import Role, utcnow

# Fields a client may not write through the profile endpoints. Orders and the
# wishlist have their own endpoints; role only changes through promote_to_admin.
PROTECTED_FIELDS = ("_id", "role", "orders", "wishlist", "createdAt")


def _client_fields(data: Dict[str, Any], *server_owned: str) -> Dict[str, Any]:
    """Drop protected fields, including dotted paths into them."""
    protected = PROTECTED_FIELDS + server_owned
    fields = {}
    for key, value in data.items():
        if key.startswith("$"):
            raise ValidationError(f"Invalid field name: {key}")
        if key.split(".", 1)[0] in protected:
            continue
        fields[key] = value
    return fields


def upsert_user(store: Store, data: Dict[str, Any]) -> bool:
    """Create or refresh the profile keyed by uid. Returns True when a user was created."""
    if not data.get("uid"):
        raise ValidationError("User uid is required")

    now = utcnow()
    fields = _client_fields(data, "uid", "cart", "updatedAt")
    fields.update({"uid": data["uid"], "cart": data.get("cart") or [], "updatedAt": now})
    result = store.users.update_one(
        {"uid": data["uid"]},
        {"$set": fields, "$setOnInsert": {"role": Role.user.value, "createdAt": now}},
        upsert=True,
    )
    return result.upserted_id is not None


def get_user(store: Store, uid: str) -> Dict[str, Any]:
    user = store.users.find_one({"uid": uid})
    if not user:
        raise NotFoundError("User not found")
    if user.get("orders"):
        user["orders"] = sort_newest_first(user["orders"])
    return user


def update_user(store: Store, uid: str, data: Dict[str, Any]) -> None:
    fields = _client_fields(data, "uid", "updatedAt")
    fields["updatedAt"] = utcnow()
    result = store.users.update_one({"uid": uid}, {"$set": fields})
    if result.matched_count == 0:
        raise NotFoundError("User not found")


def get_cart(store: Store, uid: str) -> List[Dict[str, Any]]:
    user = store.users.find_one({"uid": uid}, {"cart": 1})
    if not user:
        raise NotFoundError("User not found")
    return user.get("cart") or []


def update_cart(store: Store, uid: str, cart) -> None:
    if not isinstance(cart, list):
        raise ValidationError("Cart must be a list")
    result = store.users.update_one({"uid": uid}, {"$set": {"cart": cart, "updatedAt": utcnow()}})
    if result.matched_count == 0:
        raise NotFoundError("User not found")


def promote_to_admin(store: Store, email: str) -> bool:
    """Give the user with this email the admin role. Returns False if they already had it."""
    result = store.users.update_one(
        {"email": email, "role": {"$ne": Role.admin.value}},
        {"$set": {"role": Role.admin.value, "updatedAt": utcnow()}},
    )
    if result.matched_count:
        return True
    if not store.users.find_one({"email": email}, {"_id": 1}):
        raise NotFoundError("User not found with this email")
    return False
