"""
=============================================================================
INVENTORY.PY — What the user owns and can still place
=============================================================================
There is no inventory table. Everything is derived on each read:

    remaining(item) = Σ purchased quantity(item) − count(placement rows for item)

  - Decorations → placements are RoomSticker rows
  - Accessories → placements are PetAccessory rows
  - Food        → never placed; feeding decrements the ledger row itself,
                  so remaining is just the quantity left on the ledger

Items with nothing left are omitted, never shown with a count ≤ 0.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import CustomSticker, ItemCategory, PetAccessory, PetPurchase, RoomSticker
from shop_items import (
    CUSTOM_EMOJI, PLACEHOLDERS, SHOP_ITEM_MAP, CatalogItem, CustomItem,
    custom_sticker_pk, get_item_emoji, parse_item_ref,
)

logger = logging.getLogger("pawledger.inventory")


@dataclass
class InventoryEntry:
    item_id: str
    name: str
    emoji: str
    count: int
    image_url: Optional[str] = None


# =============================================================================
# ===================== PURE DERIVATION =======================================
# =============================================================================

def total_by_item(purchases: Iterable[PetPurchase]) -> dict[str, int]:
    """Σ quantity per item id, in first-purchase order"""
    totals = {}
    for purchase in purchases:
        totals[purchase.item_id] = totals.get(purchase.item_id, 0) + (purchase.quantity or 0)
    return totals


def remaining_counts(purchased: Mapping[str, int], placed: Mapping[str, int]) -> dict[str, int]:
    remaining = {}
    for item_id, total in purchased.items():
        left = total - placed.get(item_id, 0)
        if left > 0:
            remaining[item_id] = left
    return remaining


# =============================================================================
# ===================== DISPLAY METADATA ======================================
# =============================================================================

def describe_item(
    item_id: str,
    category: ItemCategory,
    custom_stickers: Mapping[int, CustomSticker],
    purchased_name: Optional[str] = None,
) -> tuple[str, str, Optional[str]]:
    """
    (name, emoji, image_url) for an item id.
    Unknown ids get a placeholder: one stale ledger row must not break the page.
    """
    placeholder_name, placeholder_emoji = PLACEHOLDERS[category]
    ref = parse_item_ref(item_id)

    if isinstance(ref, CustomItem):
        sticker = custom_stickers.get(custom_sticker_pk(ref))
        if sticker:
            return sticker.name, CUSTOM_EMOJI, sticker.image_url
        logger.warning(f"⚠️ Custom item {item_id} not found, using placeholder")
        return purchased_name or f"Custom {placeholder_name}", CUSTOM_EMOJI, None

    meta = SHOP_ITEM_MAP.get(ref.id)
    if meta:
        return meta.name, meta.emoji, None
    emoji = get_item_emoji(ref.id)
    if emoji == "⬛":
        emoji = placeholder_emoji
    return purchased_name or placeholder_name, emoji, None


def build_inventory(
    purchases: Iterable[PetPurchase],
    category: ItemCategory,
    placed: Mapping[str, int],
    custom_stickers: Mapping[int, CustomSticker],
) -> list[InventoryEntry]:
    """Catalog items first, then custom items, each in purchase order."""
    rows = [p for p in purchases if p.category == category.value]
    names = {}
    for row in rows:
        if row.item_name and row.item_id not in names:
            names[row.item_id] = row.item_name

    remaining = remaining_counts(total_by_item(rows), placed)
    catalog_ids = [i for i in remaining if isinstance(parse_item_ref(i), CatalogItem)]
    custom_ids = [i for i in remaining if isinstance(parse_item_ref(i), CustomItem)]

    entries = []
    for item_id in catalog_ids + custom_ids:
        name, emoji, image_url = describe_item(item_id, category, custom_stickers, names.get(item_id))
        entries.append(InventoryEntry(item_id, name, emoji, remaining[item_id], image_url))
    return entries


# =============================================================================
# ===================== STORE QUERIES =========================================
# =============================================================================

def load_custom_stickers(db: Session, item_ids: Iterable[str]) -> dict[int, CustomSticker]:
    """One query for every custom-<id> among item_ids, keyed by primary key."""
    pks = set()
    for item_id in item_ids:
        ref = parse_item_ref(item_id)
        if isinstance(ref, CustomItem):
            pk = custom_sticker_pk(ref)
            if pk is not None:
                pks.add(pk)
    if not pks:
        return {}
    stickers = db.query(CustomSticker).filter(CustomSticker.id.in_(pks)).all()
    return {s.id: s for s in stickers}


def placed_sticker_counts(db: Session, pet_id: int) -> dict[str, int]:
    rows = (
        db.query(RoomSticker.sticker_id, func.count(RoomSticker.id))
        .filter(RoomSticker.pet_id == pet_id)
        .group_by(RoomSticker.sticker_id)
        .all()
    )
    return {item_id: count for item_id, count in rows}


def placed_accessory_counts(db: Session, pet_id: int) -> dict[str, int]:
    rows = (
        db.query(PetAccessory.accessory_id, func.count(PetAccessory.id))
        .filter(PetAccessory.pet_id == pet_id)
        .group_by(PetAccessory.accessory_id)
        .all()
    )
    return {item_id: count for item_id, count in rows}


def available_count(db: Session, pet_id: int, item_id: str, category: ItemCategory) -> int:
    """How many more units of item_id can be placed right now."""
    purchases = db.query(PetPurchase).filter(
        PetPurchase.pet_id == pet_id,
        PetPurchase.item_id == item_id,
        PetPurchase.category == category.value,
    ).all()
    bought = sum(p.quantity or 0 for p in purchases)

    if category == ItemCategory.decoration:
        placed = placed_sticker_counts(db, pet_id).get(item_id, 0)
    elif category == ItemCategory.accessory:
        placed = placed_accessory_counts(db, pet_id).get(item_id, 0)
    else:
        placed = 0
    return max(0, bought - placed)


def placement_counter(item_ids: Iterable[str]) -> dict[str, int]:
    """Placed counts from rows already loaded in memory"""
    return dict(Counter(item_ids))
