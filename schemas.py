"""
Database Schemas for the sneaker & apparel storefront

Catalog models map to the "shoes" and "apparel" collections, orders to "orders".
Stored field names are camelCase (the aliases below) so records written by
earlier releases of the storefront stay readable.
"""
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from pricing import price_matches, to_number

ItemType = Literal["shoe", "apparel"]

OrderStatus = Literal[
    "pending",
    "pending_full_payment",
    "pending_installment",
    "payment_received",
    "installment_received",
    "shipped",
    "delivered",
    "cancelled",
]

ORDER_STATUSES = (
    "pending",
    "pending_full_payment",
    "pending_installment",
    "payment_received",
    "installment_received",
    "shipped",
    "delivered",
    "cancelled",
)

CATALOG_COLLECTIONS: Dict[str, str] = {"shoe": "shoes", "apparel": "apparel"}


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ------------------------- Catalog -------------------------
class CatalogItem(CamelModel):
    """
    A sellable item. `price` is what the customer pays and should equal
    retailPrice + profit; a missing half of the split is derived from price.
    """
    name: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, description="Customer-facing unit price")
    retail_price: Optional[float] = Field(None, alias="retailPrice", ge=0)
    profit: Optional[float] = Field(None)
    description: str = Field("")
    image: str = Field("", description="Primary image URL")
    images: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)
    featured: bool = Field(False)
    hidden: bool = Field(False)

    @field_validator("sizes")
    @classmethod
    def unique_sizes(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(str(s) for s in v))

    @model_validator(mode="after")
    def split_price(self):
        self.retail_price, self.profit = reconcile_price_split(self.price, self.retail_price, self.profit)
        return self


class Shoe(CatalogItem):
    pass


class Apparel(CatalogItem):
    category: Optional[str] = Field(None, description="e.g. hoodie, tee, jacket")


class CatalogItemUpdate(CamelModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    retail_price: Optional[float] = Field(None, alias="retailPrice", ge=0)
    profit: Optional[float] = None
    sizes: Optional[List[str]] = None


def reconcile_price_split(price: Any, retail_price: Optional[float], profit: Optional[float]):
    """
    Return (retailPrice, profit) consistent with price.

    Raises ValueError when both halves are given and do not add up.
    """
    if retail_price is not None and profit is not None:
        if not price_matches(price, retail_price, profit):
            raise ValueError("price must equal retailPrice + profit")
        return retail_price, profit
    if retail_price is not None:
        return retail_price, to_number(price) - retail_price
    if profit is not None:
        return to_number(price) - profit, profit
    return None, None


# ------------------------- Orders -------------------------
class ShippingAddress(CamelModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    full_name: Optional[str] = Field(None, alias="fullName")
    name: Optional[str] = None
    street: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = Field(None, alias="zipCode")
    country: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None


class ItemSnapshot(CamelModel):
    """Copy of the catalog item taken at order time."""
    id: Optional[str] = Field(None, alias="_id")
    name: str = ""
    brand: str = ""
    image: str = ""
    price: float = 0
    retail_price: Optional[float] = Field(None, alias="retailPrice")
    profit: Optional[float] = None


class LineItem(CamelModel):
    item_type: ItemType = Field(..., alias="itemType")
    item: ItemSnapshot
    size: Optional[str] = None
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., alias="unitPrice")
    total_price: float = Field(..., alias="totalPrice", description="quantity * unitPrice unless overridden")
    profit: float = Field(0, description="quantity * unit profit")


class OrderEnvelope(CamelModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    order_id: str = Field(..., alias="orderId")
    user_id: Optional[ObjectId] = Field(None, alias="userId")
    customer_name: str = Field("", alias="customerName")
    customer_phone: str = Field("", alias="customerPhone")
    customer_email: str = Field("", alias="customerEmail")
    shipping_address: Dict[str, Any] = Field(default_factory=dict, alias="shippingAddress")
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    status: OrderStatus = "pending"


class Order(OrderEnvelope):
    """
    Collection: "orders"
    Multi-item order. totalPrice / totalProfit are the sums over items.
    """
    shape: Literal["modern"] = "modern"
    items: List[LineItem] = Field(..., min_length=1)
    total_price: float = Field(..., alias="totalPrice")
    total_profit: float = Field(..., alias="totalProfit")


class LegacyOrder(OrderEnvelope):
    """
    Collection: "orders"
    Single-item order with the catalog snapshot embedded under "shoe" or "apparel".
    """
    shape: Literal["legacy"] = "legacy"
    shoe: Optional[ItemSnapshot] = None
    apparel: Optional[ItemSnapshot] = None
    size: Optional[str] = None
    quantity: int = Field(..., ge=1)
    retail_price: Optional[float] = Field(None, alias="retailPrice")
    profit: Optional[float] = None
    total_price: float = Field(..., alias="totalPrice")

    @model_validator(mode="after")
    def one_embedded_item(self):
        if (self.shoe is None) == (self.apparel is None):
            raise ValueError("legacy order embeds exactly one of shoe or apparel")
        return self


# ------------------------- Requests -------------------------
class CheckoutItem(CamelModel):
    type: ItemType = "shoe"
    shoe_id: Optional[str] = Field(None, alias="shoeId")
    apparel_id: Optional[str] = Field(None, alias="apparelId")
    size: Optional[str] = None
    quantity: int = Field(1, ge=1)
    total_price: Optional[float] = Field(None, alias="totalPrice")
    profit: Optional[float] = None


class CheckoutRequest(CamelModel):
    items: Optional[List[CheckoutItem]] = None

    # single-item checkout
    shoe_id: Optional[str] = Field(None, alias="shoeId")
    apparel_id: Optional[str] = Field(None, alias="apparelId")
    type: Optional[ItemType] = None
    size: Optional[str] = None
    quantity: int = Field(1, ge=1)
    retail_price: Optional[float] = Field(None, alias="retailPrice")
    profit: Optional[float] = None
    total_price: Optional[float] = Field(None, alias="totalPrice")

    customer_name: Optional[str] = Field(None, alias="customerName")
    customer_contact: Optional[str] = Field(None, alias="customerContact")
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
    customer_email: Optional[EmailStr] = Field(None, alias="customerEmail")
    shipping_address: Optional[ShippingAddress] = Field(None, alias="shippingAddress")
    payment_method: Optional[str] = Field(None, alias="paymentMethod")

    @field_validator("customer_email", mode="before")
    @classmethod
    def blank_email(cls, v):
        return v or None


class StatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: OrderStatus


class WishlistRequest(CamelModel):
    """Body of POST/DELETE /api/wishlist. Older clients send only `shoeId`."""
    type: ItemType = "shoe"
    shoe_id: Optional[str] = Field(None, alias="shoeId")
    apparel_id: Optional[str] = Field(None, alias="apparelId")

    @model_validator(mode="before")
    @classmethod
    def infer_type(cls, data: Any):
        if isinstance(data, dict) and not data.get("type"):
            data = {k: v for k, v in data.items() if k != "type"}
            if data.get("apparelId") and not data.get("shoeId"):
                data["type"] = "apparel"
        return data

    @property
    def item_id(self) -> Optional[str]:
        return self.apparel_id if self.type == "apparel" else self.shoe_id
