"""
Derived values over stored orders.

Orders exist in two shapes: "modern" (an `items` list of line items with
order-level totalPrice/totalProfit) and "legacy" (one catalog snapshot
embedded under `shoe` or `apparel` with top-level size/quantity/totalPrice).
New orders carry an explicit `shape` tag; older records are classified once
by structure in `order_shape`, and every function below dispatches on that.

These functions read historical data for listings and dashboards, so they
never raise on malformed records: unknown shapes give 0 or a placeholder.
"""
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pricing import first_amount, to_number, to_quantity
from schemas import ORDER_STATUSES

MODERN = "modern"
LEGACY = "legacy"
UNKNOWN = "unknown"

UNKNOWN_ITEM_NAME = "Unknown Item"
PLACEHOLDER_IMAGE = "/placeholder.svg"

EMBEDDED_ITEM_KEYS = ("shoe", "apparel")


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _line_items(order: Mapping) -> List[Dict[str, Any]]:
    items = order.get("items")
    if not isinstance(items, list):
        return []
    return [i for i in items if isinstance(i, Mapping)]


def _embedded_item(order: Mapping) -> Dict[str, Any]:
    for key in EMBEDDED_ITEM_KEYS:
        item = order.get(key)
        if isinstance(item, Mapping) and item:
            return item
    return {}


def _line_snapshot(line: Mapping) -> Dict[str, Any]:
    # early multi-item orders stored the snapshot under the item type key
    for key in ("item",) + EMBEDDED_ITEM_KEYS:
        snapshot = line.get(key)
        if isinstance(snapshot, Mapping):
            return snapshot
    return {}


def order_shape(order: Any) -> str:
    """Classify an order record as MODERN, LEGACY or UNKNOWN."""
    if not isinstance(order, Mapping):
        return UNKNOWN
    tag = order.get("shape")
    if tag == MODERN:
        return MODERN if _line_items(order) else UNKNOWN
    if tag == LEGACY:
        return LEGACY if _embedded_item(order) else UNKNOWN
    if _line_items(order):
        return MODERN
    if _embedded_item(order):
        return LEGACY
    return UNKNOWN


# ------------------------- Line items -------------------------
def line_total_of(line: Mapping) -> float:
    quantity = to_quantity(line.get("quantity"))
    return first_amount(line.get("totalPrice"), to_number(_line_snapshot(line).get("price")) * quantity)


def line_profit_of(line: Mapping) -> float:
    if "profit" in line:
        return to_number(line.get("profit"))
    quantity = to_quantity(line.get("quantity"))
    return to_number(_line_snapshot(line).get("profit")) * quantity


# ------------------------- Per order -------------------------
def total_of(order: Any) -> float:
    shape = order_shape(order)
    if shape == MODERN:
        if order.get("totalPrice") is not None:
            return to_number(order["totalPrice"])
        return sum(line_total_of(line) for line in _line_items(order))
    if shape == LEGACY:
        quantity = to_quantity(order.get("quantity"))
        return first_amount(
            order.get("totalPrice"),
            order.get("total"),
            to_number(_embedded_item(order).get("price")) * quantity,
        )
    return 0.0


def profit_of(order: Any) -> float:
    shape = order_shape(order)
    if shape == MODERN:
        if order.get("totalProfit") is not None:
            return to_number(order["totalProfit"])
        return sum(line_profit_of(line) for line in _line_items(order))
    if shape == LEGACY:
        # snapshot profit is per unit; the top-level figure only covers snapshots without one
        unit_profit = first_amount(_embedded_item(order).get("profit"), order.get("profit"))
        return unit_profit * to_quantity(order.get("quantity"))
    return 0.0


def display_name(order: Any) -> str:
    shape = order_shape(order)
    name = None
    if shape == MODERN:
        lines = _line_items(order)
        if len(lines) > 1:
            return f"{len(lines)} items"
        name = _line_snapshot(lines[0]).get("name")
    elif shape == LEGACY:
        name = _embedded_item(order).get("name")
    if isinstance(name, str) and name.strip():
        return name
    return UNKNOWN_ITEM_NAME


def display_image(order: Any) -> str:
    shape = order_shape(order)
    image = None
    if shape == MODERN:
        for line in _line_items(order):
            image = _line_snapshot(line).get("image")
            if image:
                break
    elif shape == LEGACY:
        image = _embedded_item(order).get("image")
    if isinstance(image, str) and image.strip():
        return image
    return PLACEHOLDER_IMAGE


def item_names(order: Any) -> List[str]:
    shape = order_shape(order)
    if shape == MODERN:
        names = [_line_snapshot(line).get("name") for line in _line_items(order)]
    elif shape == LEGACY:
        names = [_embedded_item(order).get("name")]
    else:
        names = []
    return [n for n in names if isinstance(n, str) and n]


def short_order_id(order: Mapping) -> str:
    """orderId, or the tail of the database id for records created before order numbers."""
    order_id = order.get("orderId")
    if order_id:
        return str(order_id)
    return str(order.get("_id", ""))[-8:].upper()


def decorate(order: Mapping) -> Dict[str, Any]:
    """Copy of the order with the derived values listings show."""
    decorated = dict(order)
    decorated.update(
        orderId=short_order_id(order),
        total=total_of(order),
        profit=profit_of(order),
        displayName=display_name(order),
        displayImage=display_image(order),
        shape=order_shape(order),
    )
    return decorated


# ------------------------- Status -------------------------
def transition(current: Optional[str], new_status: str) -> str:
    """
    Admin status change. Any status may follow any other; only membership in
    the known set is checked.
    """
    if new_status not in ORDER_STATUSES:
        raise ValueError(f"Unknown order status: {new_status}")
    return new_status


# ------------------------- Collections -------------------------
def _created_on(order: Mapping) -> Optional[date]:
    created = order.get("createdAt")
    if isinstance(created, datetime):
        return created.date()
    if isinstance(created, str):
        try:
            return datetime.fromisoformat(created.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def matches_search(order: Mapping, term: str) -> bool:
    """Case-insensitive substring match over customer, order id, item names, phone and email."""
    needle = term.strip().lower()
    if not needle:
        return True
    haystack = [
        order.get("orderId"),
        order.get("customerName"),
        order.get("customerPhone"),
        order.get("customerContact"),
        order.get("customerEmail"),
    ] + item_names(order)
    return any(isinstance(v, str) and needle in v.lower() for v in haystack)


def filter_orders(orders: Iterable[Any], search: Optional[str] = None, status: Optional[str] = None,
                  day: Optional[date] = None) -> List[Mapping]:
    selected = []
    for order in orders:
        if not isinstance(order, Mapping):
            continue
        if search and not matches_search(order, search):
            continue
        if status and order.get("status") != status:
            continue
        if day is not None and _created_on(order) != day:
            continue
        selected.append(order)
    return selected


def created_since(orders: Iterable[Any], since: datetime) -> List[Mapping]:
    since = since.replace(tzinfo=None)
    selected = []
    for order in orders:
        created = order.get("createdAt") if isinstance(order, Mapping) else None
        if isinstance(created, datetime) and created.replace(tzinfo=None) >= since:
            selected.append(order)
    return selected


def revenue(orders: Iterable[Any]) -> float:
    return sum(total_of(o) for o in orders)


def total_profit(orders: Iterable[Any]) -> float:
    return sum(profit_of(o) for o in orders)


def distinct_customers(orders: Iterable[Any]) -> int:
    names = set()
    for order in orders:
        name = order.get("customerName") if isinstance(order, Mapping) else None
        if isinstance(name, str) and name.strip():
            names.add(name.strip())
    return len(names)


def average_order_value(orders: List[Any]) -> float:
    if not orders:
        return 0.0
    return revenue(orders) / len(orders)


def summarize(orders: List[Any]) -> Dict[str, Any]:
    return {
        "count": len(orders),
        "revenue": revenue(orders),
        "profit": total_profit(orders),
        "customers": distinct_customers(orders),
        "averageOrderValue": average_order_value(orders),
    }


def top_items(orders: Iterable[Any], limit: int = 5) -> List[Dict[str, Any]]:
    """Best sellers by units across both order shapes, keyed by snapshot id."""
    by_item: Dict[str, Dict[str, Any]] = {}

    def add(snapshot: Mapping, item_type: str, quantity: int, amount: float):
        item_id = snapshot.get("_id") or snapshot.get("id")
        if not item_id:
            return
        entry = by_item.setdefault(str(item_id), {
            "_id": str(item_id),
            "type": item_type,
            "name": snapshot.get("name", UNKNOWN_ITEM_NAME),
            "brand": snapshot.get("brand", ""),
            "price": to_number(snapshot.get("price")),
            "orderCount": 0,
            "revenue": 0.0,
        })
        entry["orderCount"] += quantity
        entry["revenue"] += amount

    for order in orders:
        shape = order_shape(order)
        if shape == MODERN:
            for line in _line_items(order):
                add(_line_snapshot(line), line.get("itemType", "shoe"),
                    to_quantity(line.get("quantity")), line_total_of(line))
        elif shape == LEGACY:
            item_type = "apparel" if isinstance(order.get("apparel"), Mapping) and order.get("apparel") else "shoe"
            add(_embedded_item(order), item_type, to_quantity(order.get("quantity")), total_of(order))

    ranked = sorted(by_item.values(), key=lambda e: e["orderCount"], reverse=True)
    return ranked[:limit]
