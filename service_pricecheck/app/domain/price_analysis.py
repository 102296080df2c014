"""
Deal analysis over recent marketplace sales.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


SOURCE_NAME = "eBay Marketplace Insights API"

LOW_VALUE_KEYWORDS = (
    "case", "cover", "charger", "cable", "earbuds", "headphones", "earphones",
    "card", "collectible", "sticker", "accessory", "adapter", "screen protector",
    "mount", "holder", "strap", "band", "keychain", "patch", "figurine", "pin",
    "decal", "wallet", "pouch", "sleeve", "lens cap", "cleaning kit",
)
HIGH_VALUE_KEYWORDS = (
    "pro", "max", "ultra", "plus", "smartphone", "laptop", "tablet", "console",
    "camera", "drone", "watch", "desktop", "monitor", "graphics card", "ssd",
    "processor", "memory", "tv", "projector", "amplifier", "speaker system",
)
LOW_VALUE_CATEGORIES = (
    "cell phone accessories", "collectibles", "trading card games",
    "jewelry & watches", "health & beauty", "crafts", "home & garden",
    "toys & hobbies",
)
HIGH_VALUE_CATEGORIES = (
    "cell phones & smartphones", "computers/tablets & networking",
    "consumer electronics", "cameras & photo", "video games & consoles",
    "musical instruments & gear",
)

LIMITED_DATA_WARNING = "Limited data available; results may be less reliable"
NO_DATA_WARNING = "Insufficient relevant items found"


@dataclass(frozen=True)
class ItemCategory:
    """Price floor and minimum sample size for a class of items."""

    name: str
    min_price: float
    min_items: int


LOW_VALUE = ItemCategory("low-value", 0.0, 1)
MID_VALUE = ItemCategory("mid-value", 10.0, 2)
HIGH_VALUE = ItemCategory("high-value", 50.0, 3)


def classify_item(item_name: str, item_specifics: Optional[Dict[str, Any]] = None) -> ItemCategory:
    """Pick a category from keywords in the name and an optional Category/Type hint."""
    name = item_name.lower()
    specifics = item_specifics or {}
    hint = str(specifics.get("Category") or specifics.get("Type") or "").lower()

    if any(cat in hint for cat in LOW_VALUE_CATEGORIES) or any(word in name for word in LOW_VALUE_KEYWORDS):
        return LOW_VALUE
    if any(cat in hint for cat in HIGH_VALUE_CATEGORIES) or any(word in name for word in HIGH_VALUE_KEYWORDS):
        return HIGH_VALUE
    return MID_VALUE


def drop_low_outliers(prices: List[float]) -> List[float]:
    """Remove prices below ``q1 - 1.5 * IQR``; lists shorter than three are returned unchanged."""
    if len(prices) < 3:
        return list(prices)
    ordered = sorted(prices)
    q1 = ordered[len(ordered) // 4]
    q3 = ordered[(3 * len(ordered)) // 4]
    lower_bound = q1 - 1.5 * (q3 - q1)
    return [price for price in prices if price >= lower_bound]


def _sale_price(item: Dict[str, Any]) -> Optional[float]:
    price = item.get("price") or {}
    value = price.get("value") if isinstance(price, dict) else None
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def summarize_sales(
    item_name: str,
    items: List[Dict[str, Any]],
    item_specifics: Optional[Dict[str, Any]] = None,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Build the price-check payload from marketplace item summaries."""
    now = now or datetime.now(timezone.utc)
    today = now.date().isoformat()
    category = classify_item(item_name, item_specifics)

    priced = [(item, _sale_price(item)) for item in items]
    eligible = [(item, price) for item, price in priced if price is not None and price >= category.min_price]
    prices = drop_low_outliers([price for _, price in eligible])

    average = round(sum(prices) / len(prices), 2) if prices else 0
    summary: Dict[str, Any] = {
        "average_price": average,
        "item_count": len(prices),
        "price_range": {
            "min": round(min(prices), 2) if prices else 0,
            "max": round(max(prices), 2) if prices else 0,
        },
        "price_history": [
            {"date": item.get("lastSoldDate") or today, "price": price}
            for item, price in eligible
        ],
        "sample_size": len(prices),
        "date_range": (
            f"{items[-1].get('lastSoldDate') or 'Unknown'} - {items[0].get('lastSoldDate') or 'Unknown'}"
            if items else None
        ),
        "category": category.name,
        "source": SOURCE_NAME,
        "timestamp": now.isoformat(),
    }

    if len(prices) < category.min_items:
        summary["warning"] = LIMITED_DATA_WARNING if prices else NO_DATA_WARNING

    return summary
