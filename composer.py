"""
Checkout: turn a cart (or a single "buy now" item) into one persisted order.

Every referenced catalog item is resolved before anything is written, so a
missing item rejects the whole order and no partial orders are stored.
"""
import logging
import os
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from pydantic import ValidationError as ModelValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import count_documents, create_document, get_db, next_sequence
from errors import InternalError, NotFoundError, ValidationError
from pricing import first_amount, line_profit, line_total, optional_amount, to_number
from schemas import (
    CATALOG_COLLECTIONS,
    CheckoutItem,
    CheckoutRequest,
    ItemSnapshot,
    LegacyOrder,
    LineItem,
    Order,
)

logger = logging.getLogger(__name__)

ORDER_ID_WIDTH = 6
MAX_ORDER_ID_ATTEMPTS = 3

STATUS_BY_PAYMENT_METHOD = {
    "full": "pending_full_payment",
    "installments": "pending_installment",
}

# Candidate keys, in priority order, looked up in the shipping address and
# then in the purchaser's stored profile.
NAME_KEYS = ("fullName", "name")
PHONE_KEYS = ("phone", "mobile", "contact")
EMAIL_KEYS = ("email",)

ITEM_LABELS = {"shoe": "Shoe", "apparel": "Apparel"}


def order_id_prefix() -> str:
    return os.getenv("ORDER_ID_PREFIX", "OG")


def initial_status(payment_method: Optional[str]) -> str:
    return STATUS_BY_PAYMENT_METHOD.get(payment_method or "", "pending")


def first_present(*candidates: Any) -> str:
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return ""


def _lookup(source: Mapping, keys) -> List[Any]:
    return [source.get(k) for k in keys]


def _profile_name(user: Mapping) -> str:
    parts = [user.get("firstName"), user.get("lastName")]
    return " ".join(p for p in parts if isinstance(p, str) and p.strip())


def profile_address(user: Optional[Mapping]) -> Dict[str, Any]:
    if not user:
        return {}
    for key in ("shippingAddress", "address"):
        stored = user.get(key)
        if isinstance(stored, Mapping):
            return dict(stored)
    return {}


def merge_profile_address(address: Mapping, user: Optional[Mapping]) -> Dict[str, Any]:
    """Fill fields missing from the submitted address with the purchaser's stored address."""
    merged = dict(address)
    for key, value in profile_address(user).items():
        if value in (None, "") or merged.get(key) not in (None, ""):
            continue
        merged[key] = value
    return merged


def resolve_customer(payload: CheckoutRequest, address: Mapping, user: Optional[Mapping] = None) -> Dict[str, str]:
    """Explicit fields first, then the shipping address, then the stored profile."""
    profile = user or {}
    return {
        "customerName": first_present(
            payload.customer_name, *_lookup(address, NAME_KEYS), _profile_name(profile)
        ),
        "customerPhone": first_present(
            payload.customer_contact, payload.customer_phone, *_lookup(address, PHONE_KEYS), profile.get("phone")
        ),
        "customerEmail": first_present(
            payload.customer_email, *_lookup(address, EMAIL_KEYS), profile.get("email")
        ),
    }


# ------------------------- Catalog -------------------------
def catalog_object_id(item_type: str, item_id: Optional[str]) -> ObjectId:
    label = ITEM_LABELS[item_type]
    if not item_id:
        raise ValidationError(f"{label} ID required", field=f"{item_type}Id")
    if not ObjectId.is_valid(item_id):
        raise ValidationError(f"Invalid {label.lower()} ID", field=f"{item_type}Id")
    return ObjectId(item_id)


def find_catalog_item(item_type: str, item_id: Optional[str]) -> Dict[str, Any]:
    item = get_db()[CATALOG_COLLECTIONS[item_type]].find_one({"_id": catalog_object_id(item_type, item_id)})
    if item is None:
        raise NotFoundError(f"{ITEM_LABELS[item_type]} not found")
    return item


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ("" if value is None else str(value))


def snapshot_of(item: Mapping) -> ItemSnapshot:
    # catalog records predate validation: blanks and stray types are common
    return ItemSnapshot(
        id=str(item["_id"]),
        name=_text(item.get("name")),
        brand=_text(item.get("brand")),
        image=_text(item.get("image")),
        price=to_number(item.get("price")),
        retail_price=optional_amount(item.get("retailPrice")),
        profit=optional_amount(item.get("profit")),
    )


def build_line_item(entry: CheckoutItem) -> LineItem:
    item_id = entry.apparel_id if entry.type == "apparel" else entry.shoe_id
    catalog_item = find_catalog_item(entry.type, item_id)
    total = line_total(catalog_item.get("price"), entry.quantity, entry.total_price)
    return LineItem(
        item_type=entry.type,
        item=snapshot_of(catalog_item),
        size=entry.size,
        quantity=entry.quantity,
        unit_price=total / entry.quantity,
        total_price=total,
        profit=line_profit(catalog_item.get("profit"), entry.quantity, entry.profit),
    )


def legacy_item_type(payload: CheckoutRequest) -> str:
    if payload.type:
        return payload.type
    if payload.apparel_id and not payload.shoe_id:
        return "apparel"
    return "shoe"


# ------------------------- Composition -------------------------
def compose_order(payload: CheckoutRequest, user: Optional[Mapping] = None) -> Dict[str, Any]:
    """
    Build the order document (without orderId) for a checkout request.

    A non-empty `items` list produces a modern order; otherwise the single-item
    fields produce a legacy order with the snapshot under `shoe` or `apparel`.
    """
    address = payload.shipping_address.model_dump(by_alias=True, exclude_none=True) if payload.shipping_address else {}
    address = merge_profile_address(address, user)

    envelope = dict(
        order_id="",
        user_id=user.get("_id") if user else None,
        shipping_address=address,
        payment_method=payload.payment_method,
        status=initial_status(payload.payment_method),
    )
    customer = resolve_customer(payload, address, user)

    if payload.items is not None:
        if not payload.items:
            raise ValidationError("At least one item is required", field="items")
        lines = [build_line_item(entry) for entry in payload.items]
        order = Order(
            **envelope,
            items=lines,
            total_price=sum(line.total_price for line in lines),
            total_profit=sum(line.profit for line in lines),
        )
    else:
        item_type = legacy_item_type(payload)
        item_id = payload.apparel_id if item_type == "apparel" else payload.shoe_id
        catalog_item = find_catalog_item(item_type, item_id)
        order = LegacyOrder(
            **envelope,
            **{item_type: snapshot_of(catalog_item)},
            size=payload.size,
            quantity=payload.quantity,
            retail_price=first_amount(payload.retail_price, catalog_item.get("retailPrice")) or None,
            profit=first_amount(payload.profit, catalog_item.get("profit")),
            total_price=line_total(catalog_item.get("price"), payload.quantity, payload.total_price),
        )

    document = order.model_dump(by_alias=True)
    document.update(customer)
    if order.shape == "legacy":
        for key in ("shoe", "apparel"):
            if document.get(key) is None:
                document.pop(key, None)
    return document


def allocate_order_id() -> str:
    """
    Next order number from the atomic counter. The counter is seeded from the
    current order count so numbering continues after pre-existing orders.
    """
    seq = next_sequence("orderId", seed=count_documents("orders"))
    return f"{order_id_prefix()}{seq:0{ORDER_ID_WIDTH}d}"


def persist_order(document: Dict[str, Any]) -> Dict[str, Any]:
    for attempt in range(1, MAX_ORDER_ID_ATTEMPTS + 1):
        try:
            document["orderId"] = allocate_order_id()
            document["_id"] = create_document("orders", document)
            return document
        except DuplicateKeyError:
            logger.warning("Order number %s already taken (attempt %d)", document["orderId"], attempt)
        except (PyMongoError, RuntimeError) as exc:
            raise InternalError(f"Could not store order: {exc}") from exc
    raise InternalError("Could not allocate a unique order number", retryable=True)


def create_order(payload: CheckoutRequest, user: Optional[Mapping] = None) -> Dict[str, Any]:
    """Compose and store one order. Returns the stored document with its string `_id`."""
    try:
        document = compose_order(payload, user)
    except PyMongoError as exc:
        raise InternalError(f"Catalog lookup failed: {exc}") from exc
    except RuntimeError as exc:
        raise InternalError(str(exc)) from exc
    except ModelValidationError as exc:
        raise InternalError(f"Could not build order document: {exc}") from exc
    order = persist_order(document)
    logger.info(
        "Created order %s (%s, %d item(s), total %.2f, user %s)",
        order["orderId"],
        order["shape"],
        len(order["items"]) if order["shape"] == "modern" else 1,
        order["totalPrice"],
        order.get("userId") or "guest",
    )
    return order


def checkout_response(order: Mapping) -> Dict[str, Any]:
    response = {
        "message": "Order created successfully",
        "orderId": order["orderId"],
        "_id": str(order["_id"]),
        "total": order["totalPrice"],
    }
    if order.get("shape") == "modern":
        response["profit"] = order["totalProfit"]
    return response
