"""
=============================================================================
SHOP_ITEMS.PY — Static item catalog and item references
=============================================================================
The shop sells a fixed set of catalog items. Users can also create their own
items (CustomSticker rows); those are referenced from the ledger as
"custom-<id>". That prefix is decoded ONCE, here, into an ItemRef so the
rest of the code never does string surgery on item ids.

Prices and descriptions live with the shop; this side only needs what an
inventory entry displays.
"""

from dataclasses import dataclass
from typing import Optional, Union

from models import ItemCategory

CUSTOM_PREFIX = "custom-"


@dataclass(frozen=True)
class ShopItem:
    id: str
    name: str
    emoji: str


SHOP_ITEMS = [
    # ── Food ──
    ShopItem("food1", "Fish", "🐟"),
    ShopItem("food2", "Bowl", "🍽️"),
    ShopItem("food3", "Treat", "🍖"),

    # ── Decorations ──
    ShopItem("toy1", "Ball", "⚽"),
    ShopItem("toy2", "Yarn", "🧶"),
    ShopItem("toy3", "Mouse", "🐭"),
    ShopItem("dec1", "Rug", "⬜"),
    ShopItem("dec2", "Poster", "🖼️"),
    ShopItem("dec3", "Plant", "🌿"),

    # ── Accessories ──
    ShopItem("acc1", "Collar", "🎀"),
    ShopItem("acc2", "Hat", "🎩"),
]

SHOP_ITEM_MAP = {item.id: item for item in SHOP_ITEMS}

# Items that show up in old ledgers but are no longer sold
FALLBACK_EMOJI = {
    "water": "💧",
    "cat": "🐱",
}

CUSTOM_EMOJI = "🖼️"

# Shown when an id resolves to nothing at all
PLACEHOLDERS = {
    ItemCategory.food: ("Food", "⬛"),
    ItemCategory.decoration: ("Sticker", "⬛"),
    ItemCategory.accessory: ("Accessory", "🎀"),
}


def get_item_emoji(item_id: str) -> str:
    item = SHOP_ITEM_MAP.get(item_id)
    if item:
        return item.emoji
    return FALLBACK_EMOJI.get(item_id, "⬛")


# =============================================================================
# ===================== ITEM REFERENCES =======================================
# =============================================================================

@dataclass(frozen=True)
class CatalogItem:
    id: str


@dataclass(frozen=True)
class CustomItem:
    sticker_id: str
    # sticker_id → CustomSticker.id as text (may be garbage in a corrupt row)


ItemRef = Union[CatalogItem, CustomItem]


def parse_item_ref(item_id: str) -> ItemRef:
    if item_id.startswith(CUSTOM_PREFIX):
        return CustomItem(item_id[len(CUSTOM_PREFIX):])
    return CatalogItem(item_id)


def custom_sticker_pk(ref: CustomItem) -> Optional[int]:
    """
    Primary key to look up, or None when the id can't be one.
    Lookups are keyed by this int, so "custom-007" finds sticker 7.
    """
    return int(ref.sticker_id) if ref.sticker_id.isdecimal() else None
