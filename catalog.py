"""
Shopper-facing catalog extras: brand listings and per-user wishlists.

Brands are not maintained separately from the catalog; they are counted from
the visible shoes and apparel. A `brands` collection, when present, only
supplies logos (and lists brands that have nothing in stock yet).
"""
import logging
from typing import Any, Dict, List, Mapping

from pymongo import DESCENDING

from composer import catalog_object_id, find_catalog_item
from database import create_document, get_db, get_documents
from errors import ValidationError
from schemas import CATALOG_COLLECTIONS, WishlistRequest

logger = logging.getLogger(__name__)

DEFAULT_BRAND_LOGO = "/placeholder.svg?height=100&width=100"
POPULAR_BRAND_LIMIT = 6


# ------------------------- Brands -------------------------
def _brand_logos() -> Dict[str, str]:
    logos = {}
    for brand in get_documents("brands"):
        name = brand.get("name")
        if isinstance(name, str) and name.strip() and brand.get("logo"):
            logos[name.strip()] = brand["logo"]
    return logos


def brand_counts() -> List[Dict[str, Any]]:
    """One row per brand with its shoe, apparel and total counts, sorted by name."""
    logos = _brand_logos()
    brands: Dict[str, Dict[str, Any]] = {
        name: {"name": name, "logo": logo, "shoeCount": 0, "apparelCount": 0, "count": 0}
        for name, logo in logos.items()
    }
    for item_type, collection in CATALOG_COLLECTIONS.items():
        for item in get_documents(collection, {"hidden": {"$ne": True}}):
            name = item.get("brand")
            if not isinstance(name, str) or not name.strip():
                continue
            name = name.strip()
            row = brands.setdefault(
                name, {"name": name, "logo": None, "shoeCount": 0, "apparelCount": 0, "count": 0}
            )
            row[f"{item_type}Count"] += 1
            row["count"] += 1
            if not row["logo"] and item.get("brandLogo"):
                row["logo"] = item["brandLogo"]

    for row in brands.values():
        row["logo"] = row["logo"] or DEFAULT_BRAND_LOGO
    return sorted(brands.values(), key=lambda row: row["name"].lower())


def popular_brands(limit: int = POPULAR_BRAND_LIMIT) -> List[Dict[str, Any]]:
    stocked = [row for row in brand_counts() if row["count"]]
    stocked.sort(key=lambda row: -row["count"])
    return stocked[:limit]


# ------------------------- Wishlist -------------------------
# Rows are {userId, shoeId} or {userId, apparelId}, keyed by catalog ObjectId.
def wishlist_key(user: Mapping, item_type: str, item_id: Any) -> Dict[str, Any]:
    return {"userId": user["_id"], f"{item_type}Id": item_id}


def add_to_wishlist(user: Mapping, payload: WishlistRequest) -> Dict[str, str]:
    item = find_catalog_item(payload.type, payload.item_id)
    key = wishlist_key(user, payload.type, item["_id"])
    if get_db()["wishlist"].find_one(key) is not None:
        raise ValidationError("Item already in wishlist")
    create_document("wishlist", key)
    logger.info("User %s saved %s %s", user["_id"], payload.type, item["_id"])
    return {"message": "Added to wishlist"}


def remove_from_wishlist(user: Mapping, payload: WishlistRequest) -> Dict[str, str]:
    # the catalog item may already be gone; removal only needs a well-formed id
    item_id = catalog_object_id(payload.type, payload.item_id)
    get_db()["wishlist"].delete_one(wishlist_key(user, payload.type, item_id))
    return {"message": "Removed from wishlist"}


def wishlist_for(user_id: Any) -> List[Dict[str, Any]]:
    """Saved rows, newest first, each joined with its current catalog record (None once deleted)."""
    rows = get_documents("wishlist", {"userId": user_id}, sort=[("createdAt", DESCENDING)])
    database = get_db()
    for row in rows:
        for item_type, collection in CATALOG_COLLECTIONS.items():
            item_id = row.get(f"{item_type}Id")
            if item_id is not None:
                row["itemType"] = item_type
                row[item_type] = database[collection].find_one({"_id": item_id})
                break
    return rows
