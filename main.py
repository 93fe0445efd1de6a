import logging
import math
import os
import shutil
import tempfile
from typing import Any, Dict, List, Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import stripe
from bson import ObjectId
from fastapi import Body, Depends, FastAPI, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, EmailStr

import comments
import orders
import users
import wishlist
from database import DATABASE_NAME, DATABASE_URL, Store, create_document, db, get_documents, get_store, to_object_id
from errors import NotFoundError, ValidationError, error_response, register_error_handlers
from schemas import utcnow

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# App setup
app = FastAPI(title="Plantopia API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)
app.state.store = Store(db) if db is not None else None

stripe.api_key = os.getenv("STRIPE_SECRET_KEY")
cloudinary.config(
    cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
    api_key=os.getenv("CLOUDINARY_API_KEY"),
    api_secret=os.getenv("CLOUDINARY_API_SECRET"),
    secure=True,
)
IMAGE_FOLDER = "plantopia"
IMAGE_TRANSFORMATION = [{"width": 800, "height": 600, "crop": "limit"}, {"quality": "auto"}]


# Utilities
def serialize_doc(value: Any) -> Any:
    """Render ObjectIds (at any depth) as strings so the result is JSON-safe."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize_doc(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize_doc(v) for v in value]
    return value


def ok(message: Optional[str] = None, data: Any = None, **extra) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = serialize_doc(data)
    body.update(extra)
    return body


# Schemas (request)
class CartUpdate(BaseModel):
    cart: List[Dict[str, Any]]


class WishlistIn(BaseModel):
    productId: Optional[str] = None
    productType: Optional[str] = None


class OrderIn(BaseModel):
    userId: Optional[str] = None
    items: Optional[List[Dict[str, Any]]] = None
    shipping: Optional[Dict[str, Any]] = None
    summary: Optional[Dict[str, Any]] = None
    paymentMethod: Optional[str] = None


class OrderStatusIn(BaseModel):
    status: Optional[str] = None


class OwnerIn(BaseModel):
    userId: Optional[str] = None


class CommentIn(BaseModel):
    user: Optional[Dict[str, Any]] = None
    text: Optional[str] = None


class CommentDeleteIn(BaseModel):
    userUid: Optional[str] = None


class PaymentIntentIn(BaseModel):
    amount: float
    currency: str


class MakeAdminIn(BaseModel):
    email: Optional[EmailStr] = None


# Health and helpers
@app.get("/")
def root():
    return {"message": "Plantopia API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if DATABASE_URL else "❌ Not Set",
        "database_name": DATABASE_NAME,
        "connection_status": "Not Connected",
        "collections": []
    }
    store = app.state.store
    try:
        if store is not None:
            response["collections"] = store.collection_names()[:10]
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
    except Exception as e:
        response["database"] = f"⚠️ Connected but error: {str(e)[:80]}"
    return response


# Users
@app.post("/api/users")
def upsert_user(payload: Dict[str, Any] = Body(...), store: Store = Depends(get_store)):
    created = users.upsert_user(store, payload)
    return ok("User created successfully" if created else "User updated successfully")


@app.get("/api/users/{uid}")
def get_user(uid: str, store: Store = Depends(get_store)):
    return ok(data=users.get_user(store, uid))


@app.put("/api/users/{uid}")
def update_user(uid: str, payload: Dict[str, Any] = Body(...), store: Store = Depends(get_store)):
    users.update_user(store, uid, payload)
    return ok("User updated successfully")


# Wishlist
@app.post("/api/users/{uid}/wishlist")
def add_to_wishlist(uid: str, payload: WishlistIn, store: Store = Depends(get_store)):
    wishlist.add_to_wishlist(store, uid, payload.productId, payload.productType)
    return ok("Product added to wishlist")


@app.delete("/api/users/{uid}/wishlist/{product_id}")
def remove_from_wishlist(uid: str, product_id: str, store: Store = Depends(get_store)):
    wishlist.remove_from_wishlist(store, uid, product_id)
    return ok("Product removed from wishlist")


@app.get("/api/users/{uid}/wishlist")
def get_wishlist(uid: str, store: Store = Depends(get_store)):
    return ok(data=wishlist.get_wishlist(store, uid))


@app.get("/api/users/{uid}/orders")
def list_user_orders(uid: str, store: Store = Depends(get_store)):
    return ok(data=orders.list_orders_for_user(store, uid))


# Cart
@app.get("/api/cart/{uid}")
def get_cart(uid: str, store: Store = Depends(get_store)):
    return ok(data=users.get_cart(store, uid))


@app.put("/api/cart/{uid}")
def update_cart(uid: str, payload: CartUpdate, store: Store = Depends(get_store)):
    users.update_cart(store, uid, payload.cart)
    return ok("Cart updated successfully")


# Orders
@app.post("/api/orders")
def create_order(payload: OrderIn, store: Store = Depends(get_store)):
    order_id = orders.create_order(store, payload.userId, payload.items, payload.shipping, payload.summary,
                                   payment_method=payload.paymentMethod)
    return ok("Order created successfully", orderId=order_id)


@app.get("/api/orders")
def list_orders(store: Store = Depends(get_store)):
    return ok(data=orders.list_all_orders(store))


@app.put("/api/orders/{order_id}/status")
def update_order_status(order_id: str, payload: OrderStatusIn, store: Store = Depends(get_store)):
    order = orders.update_order_status(store, order_id, payload.status)
    return ok("Order status updated successfully", data=order)


@app.post("/api/orders/{order_id}/sync")
def sync_order(order_id: str, store: Store = Depends(get_store)):
    return ok("Order copy resynced", data=orders.sync_order_copy(store, order_id))


@app.delete("/api/orders/{order_id}")
def delete_order(order_id: str, payload: Optional[OwnerIn] = None, store: Store = Depends(get_store)):
    orders.delete_order(store, order_id, payload.userId if payload else None)
    return ok("Order deleted successfully")


# Blogs
@app.post("/api/blogs", status_code=201)
def create_blog(payload: Dict[str, Any] = Body(...), store: Store = Depends(get_store)):
    inserted_id = create_document(store.blogs, payload)
    return ok("Blog post created successfully", insertedId=inserted_id)


@app.get("/api/blogs")
def list_blogs(store: Store = Depends(get_store)):
    return ok(data=get_documents(store.blogs, sort_by="createdAt"))


@app.get("/api/blogs/{blog_id}")
def get_blog(blog_id: str, store: Store = Depends(get_store)):
    blog = store.blogs.find_one({"_id": to_object_id(blog_id)})
    if not blog:
        raise NotFoundError("Blog post not found")
    return ok(data=blog)


@app.put("/api/blogs/{blog_id}")
def update_blog(blog_id: str, payload: Dict[str, Any] = Body(...), store: Store = Depends(get_store)):
    oid = to_object_id(blog_id)
    update = {k: v for k, v in payload.items() if k not in ("_id", "createdAt")}
    update["updatedAt"] = utcnow()
    result = store.blogs.update_one({"_id": oid}, {"$set": update})
    if result.matched_count == 0:
        raise NotFoundError("Blog post not found")
    return ok("Blog post updated successfully", data=store.blogs.find_one({"_id": oid}))


@app.delete("/api/blogs/{blog_id}")
def delete_blog(blog_id: str, store: Store = Depends(get_store)):
    result = store.blogs.delete_one({"_id": to_object_id(blog_id)})
    if result.deleted_count == 0:
        raise NotFoundError("Blog post not found")
    return ok("Blog post deleted successfully")


# Payments & admin
@app.post("/api/create-payment-intent")
def create_payment_intent(payload: PaymentIntentIn):
    if not payload.currency:
        raise ValidationError("Currency is required")
    try:
        intent = stripe.PaymentIntent.create(
            amount=int(math.floor(payload.amount + 0.5)),
            currency=payload.currency,
            payment_method_types=["card"],
        )
    except stripe.StripeError as e:
        logger.error("Stripe error creating payment intent: %s", e)
        return error_response(500, "Failed to create payment intent", error=str(e))
    return ok(clientSecret=intent.client_secret)


@app.post("/api/upload-image")
def upload_image(image: Optional[UploadFile] = File(None)):
    if image is None or not image.filename:
        raise ValidationError("No image file provided")

    # the uploader reads from a path
    suffix = os.path.splitext(image.filename)[1]
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as staged:
        shutil.copyfileobj(image.file, staged)
    try:
        result = cloudinary.uploader.upload(staged.name, folder=IMAGE_FOLDER, transformation=IMAGE_TRANSFORMATION)
    except cloudinary.exceptions.Error as e:
        logger.error("Error uploading image: %s", e)
        return error_response(500, "Failed to upload image")
    finally:
        try:
            os.remove(staged.name)
        except OSError:
            logger.warning("Could not delete staged upload %s", staged.name)
    return ok(imageUrl=result["secure_url"], publicId=result["public_id"])


@app.post("/api/make-admin")
def make_admin(payload: MakeAdminIn, store: Store = Depends(get_store)):
    if not payload.email:
        raise ValidationError("Email is required")
    users.promote_to_admin(store, payload.email)
    return ok(f"User with email {payload.email} is now an admin")


# Products
@app.post("/api/{product_type}", status_code=201)
def create_product(product_type: str, payload: Dict[str, Any] = Body(...), store: Store = Depends(get_store)):
    collection = store.products(product_type)
    inserted_id = create_document(collection, {**payload, "comments": []})
    return ok(f"{product_type[:-1]} added successfully", insertedId=inserted_id)


@app.get("/api/{product_type}")
def list_products(product_type: str, store: Store = Depends(get_store)):
    return ok(data=get_documents(store.products(product_type)))


@app.get("/api/{product_type}/{product_id}")
def get_product(product_type: str, product_id: str, store: Store = Depends(get_store)):
    product = store.products(product_type).find_one({"_id": to_object_id(product_id)})
    if not product:
        raise NotFoundError("Product not found")
    return ok(data=product)


@app.put("/api/{product_type}/{product_id}")
def update_product(product_type: str, product_id: str, payload: Dict[str, Any] = Body(...),
                   store: Store = Depends(get_store)):
    collection = store.products(product_type)
    oid = to_object_id(product_id)
    # comments are only changed through the comment endpoints
    update = {k: v for k, v in payload.items() if k not in ("_id", "comments", "createdAt")}
    update["updatedAt"] = utcnow()
    result = collection.update_one({"_id": oid}, {"$set": update})
    if result.matched_count == 0:
        raise NotFoundError("Product not found")
    return ok("Product updated successfully", data=collection.find_one({"_id": oid}))


@app.delete("/api/{product_type}/{product_id}")
def delete_product(product_type: str, product_id: str, store: Store = Depends(get_store)):
    result = store.products(product_type).delete_one({"_id": to_object_id(product_id)})
    if result.deleted_count == 0:
        raise NotFoundError("Product not found")
    return ok("Product deleted successfully", deletedId=product_id)


# Comments
@app.get("/api/{product_type}/{product_id}/comments")
def list_comments(product_type: str, product_id: str, store: Store = Depends(get_store)):
    return ok(data=comments.list_comments(store, product_type, product_id))


@app.post("/api/{product_type}/{product_id}/comments", status_code=201)
def add_comment(product_type: str, product_id: str, payload: CommentIn, store: Store = Depends(get_store)):
    comment = comments.add_comment(store, product_type, product_id, payload.user, payload.text)
    return ok("Comment added successfully", data=comment)


@app.post("/api/{product_type}/{product_id}/comments/{comment_id}/replies", status_code=201)
def add_reply(product_type: str, product_id: str, comment_id: str, payload: CommentIn,
              store: Store = Depends(get_store)):
    reply = comments.add_reply(store, product_type, product_id, comment_id, payload.user, payload.text)
    return ok("Reply added successfully", data=reply)


@app.delete("/api/{product_type}/{product_id}/comments/{comment_id}")
def delete_comment(product_type: str, product_id: str, comment_id: str, payload: Optional[CommentDeleteIn] = None,
                   store: Store = Depends(get_store)):
    comments.delete_comment(store, product_type, product_id, comment_id, payload.userUid if payload else None)
    return ok("Comment deleted successfully")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
