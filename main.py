import logging
import os
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo import DESCENDING, ReturnDocument

import aggregator
import catalog
import database
from auth import optional_user, require_admin, require_user
from composer import checkout_response, create_order
from database import count_documents, get_db, get_documents, now_utc
from errors import AuthError, ForbiddenError, InternalError, NotFoundError, StoreError, ValidationError
from notifications import notify_new_order
from schemas import (
    CATALOG_COLLECTIONS,
    Apparel,
    CatalogItemUpdate,
    CheckoutRequest,
    Shoe,
    StatusUpdate,
    WishlistRequest,
    reconcile_price_split,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes()
    yield


app = FastAPI(title="Sole Store API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------- Errors -------------------------
ERROR_STATUS_CODES: Dict[type, int] = {
    ValidationError: 400,
    AuthError: 401,
    ForbiddenError: 403,
    NotFoundError: 404,
    InternalError: 500,
}


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    if status_code == 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})
    content: Dict[str, Any] = {"message": exc.message}
    if isinstance(exc, ValidationError) and exc.field:
        content["field"] = exc.field
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request data gets the same 400 {message, field} body as a ValidationError."""
    error = exc.errors()[0]
    location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "header")]
    field = ".".join(location)
    content: Dict[str, Any] = {"message": f"Invalid {field}: {error['msg']}" if field else error["msg"]}
    if field:
        content["field"] = field
    return JSONResponse(status_code=400, content=content)


# ------------------------- Utilities -------------------------
def to_jsonable(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    return value


def object_id(value: str, label: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise ValidationError(f"Invalid {label} ID")
    return ObjectId(value)


def parse_day(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD", field="date")


def orders_newest_first(filter_dict: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    return get_documents("orders", filter_dict, sort=[("createdAt", DESCENDING)])


@app.get("/")
def read_root():
    return {"brand": "Sole Store", "status": "running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }

    if database.db is None:
        return response
    try:
        response["collections"] = database.db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except Exception as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"

    return response


# ------------------------- Catalog -------------------------
def list_catalog(item_type: str, brand: Optional[str], featured: Optional[bool]) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {"hidden": {"$ne": True}}
    if brand:
        query["brand"] = brand
    if featured is not None:
        query["featured"] = featured
    items = get_documents(CATALOG_COLLECTIONS[item_type], query, sort=[("createdAt", DESCENDING)])
    return to_jsonable(items)


def get_catalog_item(item_type: str, item_id: str) -> Dict[str, Any]:
    item = get_db()[CATALOG_COLLECTIONS[item_type]].find_one({"_id": object_id(item_id, item_type)})
    if item is None:
        raise NotFoundError(f"{item_type.capitalize()} not found")
    return to_jsonable(item)


@app.get("/api/shoes")
def list_shoes(brand: Optional[str] = None, featured: Optional[bool] = None):
    return list_catalog("shoe", brand, featured)


@app.get("/api/shoes/{shoe_id}")
def get_shoe(shoe_id: str):
    return get_catalog_item("shoe", shoe_id)


@app.get("/api/apparel")
def list_apparel(brand: Optional[str] = None, featured: Optional[bool] = None):
    return list_catalog("apparel", brand, featured)


@app.get("/api/apparel/{apparel_id}")
def get_apparel(apparel_id: str):
    return get_catalog_item("apparel", apparel_id)


@app.get("/api/brands")
def list_brands():
    return catalog.brand_counts()


@app.get("/api/brands/popular")
def list_popular_brands():
    return catalog.popular_brands()


# ------------------------- Admin catalog -------------------------
def add_catalog_item(item_type: str, payload) -> Dict[str, Any]:
    new_id = database.create_document(CATALOG_COLLECTIONS[item_type], payload)
    return {"message": f"{item_type.capitalize()} added successfully", "id": new_id}


def update_catalog_item(item_type: str, item_id: str, payload: CatalogItemUpdate) -> Dict[str, Any]:
    collection = get_db()[CATALOG_COLLECTIONS[item_type]]
    oid = object_id(item_id, item_type)
    current = collection.find_one({"_id": oid})
    if current is None:
        raise NotFoundError(f"{item_type.capitalize()} not found")

    changes = payload.model_dump(by_alias=True, exclude_unset=True)
    changes.pop("_id", None)
    merged = {**current, **changes}
    # re-split only when the edit touches pricing
    if {"price", "retailPrice", "profit"} & changes.keys():
        retail = changes.get("retailPrice")
        profit = changes.get("profit")
        if retail is None and profit is None:
            retail = current.get("retailPrice")
        try:
            changes["retailPrice"], changes["profit"] = reconcile_price_split(merged.get("price"), retail, profit)
        except ValueError as exc:
            raise ValidationError(str(exc), field="price")
    changes["updatedAt"] = now_utc()

    updated = collection.find_one_and_update(
        {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    return to_jsonable(updated)


def delete_catalog_item(item_type: str, item_id: str) -> Dict[str, Any]:
    result = get_db()[CATALOG_COLLECTIONS[item_type]].delete_one({"_id": object_id(item_id, item_type)})
    if result.deleted_count == 0:
        raise NotFoundError(f"{item_type.capitalize()} not found")
    return {"message": f"{item_type.capitalize()} deleted successfully"}


@app.post("/api/admin/shoes", status_code=201)
def admin_add_shoe(payload: Shoe, admin: dict = Depends(require_admin)):
    return add_catalog_item("shoe", payload)


@app.patch("/api/admin/shoes/{shoe_id}")
def admin_update_shoe(shoe_id: str, payload: CatalogItemUpdate, admin: dict = Depends(require_admin)):
    return update_catalog_item("shoe", shoe_id, payload)


@app.delete("/api/admin/shoes/{shoe_id}")
def admin_delete_shoe(shoe_id: str, admin: dict = Depends(require_admin)):
    return delete_catalog_item("shoe", shoe_id)


@app.post("/api/admin/apparel", status_code=201)
def admin_add_apparel(payload: Apparel, admin: dict = Depends(require_admin)):
    return add_catalog_item("apparel", payload)


@app.patch("/api/admin/apparel/{apparel_id}")
def admin_update_apparel(apparel_id: str, payload: CatalogItemUpdate, admin: dict = Depends(require_admin)):
    return update_catalog_item("apparel", apparel_id, payload)


@app.delete("/api/admin/apparel/{apparel_id}")
def admin_delete_apparel(apparel_id: str, admin: dict = Depends(require_admin)):
    return delete_catalog_item("apparel", apparel_id)


# ------------------------- Orders -------------------------
@app.post("/api/orders/create")
def checkout(payload: CheckoutRequest, background_tasks: BackgroundTasks,
             user: Optional[dict] = Depends(optional_user)):
    order = create_order(payload, user)
    background_tasks.add_task(notify_new_order, order)
    return to_jsonable(checkout_response(order))


@app.get("/api/orders/user/{user_id}")
def list_user_orders(user_id: str, user: dict = Depends(require_user)):
    if str(user["_id"]) != user_id and not user.get("isAdmin"):
        raise ForbiddenError()
    orders = orders_newest_first({"userId": object_id(user_id, "user")})
    return to_jsonable([aggregator.decorate(o) for o in orders])


# ------------------------- Wishlist -------------------------
@app.get("/api/wishlist")
def my_wishlist(user: dict = Depends(require_user)):
    return to_jsonable(catalog.wishlist_for(user["_id"]))


@app.get("/api/wishlist/{user_id}")
def user_wishlist(user_id: str, user: dict = Depends(require_user)):
    if str(user["_id"]) != user_id and not user.get("isAdmin"):
        raise ForbiddenError()
    return to_jsonable(catalog.wishlist_for(object_id(user_id, "user")))


@app.post("/api/wishlist")
def add_wishlist_item(payload: WishlistRequest, user: dict = Depends(require_user)):
    return catalog.add_to_wishlist(user, payload)


@app.delete("/api/wishlist")
def remove_wishlist_item(payload: WishlistRequest, user: dict = Depends(require_user)):
    return catalog.remove_from_wishlist(user, payload)


# ------------------------- Admin orders -------------------------
def with_customer(order: Dict[str, Any], users: Dict[Any, Dict[str, Any]]) -> Dict[str, Any]:
    """Fill blank customer fields of older orders from the purchaser's profile."""
    user = users.get(order.get("userId"))
    if not user:
        return order
    name = " ".join(p for p in (user.get("firstName"), user.get("lastName")) if p)
    order.setdefault("customerName", "")
    order["customerName"] = order["customerName"] or name
    order["customerPhone"] = order.get("customerPhone") or user.get("phone", "")
    order["customerEmail"] = order.get("customerEmail") or user.get("email", "")
    return order


def admin_order_view(search: Optional[str], status: Optional[str], day: Optional[str]) -> List[Dict[str, Any]]:
    orders = orders_newest_first()
    user_ids = list({o["userId"] for o in orders if o.get("userId")})
    users = {u["_id"]: u for u in get_documents("users", {"_id": {"$in": user_ids}})} if user_ids else {}
    orders = [with_customer(o, users) for o in orders]
    return aggregator.filter_orders(orders, search=search, status=status, day=parse_day(day))


@app.get("/api/admin/orders")
def admin_list_orders(search: Optional[str] = None, status: Optional[str] = None,
                      day: Optional[str] = Query(None, alias="date"),
                      admin: dict = Depends(require_admin)):
    orders = admin_order_view(search, status, day)
    return to_jsonable([aggregator.decorate(o) for o in orders])


@app.get("/api/admin/orders/summary")
def admin_orders_summary(search: Optional[str] = None, status: Optional[str] = None,
                         day: Optional[str] = Query(None, alias="date"),
                         admin: dict = Depends(require_admin)):
    return aggregator.summarize(admin_order_view(search, status, day))


@app.patch("/api/admin/orders/{order_id}")
def admin_update_order(order_id: str, payload: StatusUpdate, admin: dict = Depends(require_admin)):
    orders = get_db()["orders"]
    oid = object_id(order_id, "order")
    current = orders.find_one({"_id": oid}, {"status": 1})
    if current is None:
        raise NotFoundError("Order not found")
    status = aggregator.transition(current.get("status"), payload.status)
    orders.update_one({"_id": oid}, {"$set": {"status": status, "updatedAt": now_utc()}})
    logger.info("Order %s status %s -> %s", order_id, current.get("status"), status)
    return {"message": "Order updated successfully", "status": status}


@app.get("/api/admin/stats")
def admin_stats(admin: dict = Depends(require_admin)):
    orders = orders_newest_first()
    month_start = now_utc().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    return to_jsonable({
        "totalShoes": count_documents("shoes"),
        "totalApparel": count_documents("apparel"),
        "totalOrders": len(orders),
        "totalUsers": count_documents("users"),
        "totalRevenue": aggregator.revenue(orders),
        "totalProfit": aggregator.total_profit(orders),
        "monthlyRevenue": aggregator.revenue(aggregator.created_since(orders, month_start)),
        "featuredShoes": count_documents("shoes", {"featured": True}),
        "recentOrders": [aggregator.decorate(o) for o in orders[:10]],
        "topItems": aggregator.top_items(orders, limit=5),
    })


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
