"""Price and profit arithmetic shared by the order composer and aggregator."""
from typing import Any, Optional


def to_number(value: Any) -> float:
    """Coerce a stored or submitted amount to float; anything unusable is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return number


def first_amount(*candidates: Any) -> float:
    """First candidate that is a non-zero number, else 0."""
    for candidate in candidates:
        number = to_number(candidate)
        if number:
            return number
    return 0.0


def to_quantity(value: Any, default: int = 1) -> int:
    number = to_number(value)
    if number <= 0:
        return default
    return int(number)


def line_total(catalog_price: Any, quantity: int, caller_total: Optional[Any] = None) -> float:
    """Caller-supplied line total wins, else catalog price times quantity."""
    supplied = to_number(caller_total)
    if supplied:
        return supplied
    return to_number(catalog_price) * quantity


def line_profit(catalog_profit: Any, quantity: int, caller_profit: Optional[Any] = None) -> float:
    """Per-unit profit (caller's, else catalog's, else 0) times quantity."""
    return first_amount(caller_profit, catalog_profit) * quantity


def price_matches(price: Any, retail_price: Any, profit: Any, tolerance: float = 0.01) -> bool:
    return abs(to_number(price) - (to_number(retail_price) + to_number(profit))) <= tolerance


def optional_amount(value: Any) -> Optional[float]:
    """Like to_number, but a missing or blank stored value stays None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return to_number(value)
