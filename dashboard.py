"""
=============================================================================
DASHBOARD.PY — One payload per screen
=============================================================================
Each screen of the web client gets everything it needs in a single call:

  build_dashboard_data() → GET /api/dashboard-data
  build_pet_room_data()  → GET /api/pet-room-data
  build_summary()        → GET /api/dashboard/summary[/fast]

Common steps, for a user:
  1. Load (or create) the pet and apply the daily transition
  2. Load placements, the purchase ledger and the custom stickers they use
  3. Derive the three inventories
  4. Add whatever else the screen shows (balance, missions, invitations,
     monthly statistics...)

Nothing is cached between requests: every call recomputes from the DB.
The "fast" summary skips the month-to-date statistics so first paint does
not wait for the heaviest query.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from clock import month_range
from friends import pending_invitation_count
from inventory import build_inventory, load_custom_stickers, placement_counter
from missions import count_unclaimed, unclaimed_missions
from models import CustomSticker, ItemCategory, Pet, PetAccessory, PetPurchase, RoomSticker, Transaction, TransactionType, User
from pet_state import DEFAULT_PET_IMAGE, HUNGRY_BELOW, UNHAPPY_BELOW, PetState, load_pet
from schemas import (
    AccessoryInventoryItem, CustomStickerResponse, DailyStat, DashboardData,
    DashboardPet, DashboardSummary, DashboardSummaryFast, FoodInventoryItem,
    InvitationCount, MissionSummary, MonthlyStats, PetRoomData, PlacedAccessory,
    PlacedSticker, PublicStickerResponse, RoomPet, StickerInventoryItem,
    TransactionResponse, UnclaimedMissions, UserSummary,
)
from shop_items import CustomItem, custom_sticker_pk, parse_item_ref
from transactions import recent_transactions

logger = logging.getLogger("pawledger.dashboard")

NEEDS_ATTENTION_DAYS = 3


# =============================================================================
# ===================== ROOM SNAPSHOT =========================================
# =============================================================================

@dataclass
class RoomSnapshot:
    stickers: list[PlacedSticker]
    accessories: list[PlacedAccessory]
    sticker_inventory: list[StickerInventoryItem]
    food_inventory: list[FoodInventoryItem]
    accessory_inventory: list[AccessoryInventoryItem]


def _custom_image(item_id: str, custom_stickers: dict) -> str:
    ref = parse_item_ref(item_id)
    if isinstance(ref, CustomItem):
        sticker = custom_stickers.get(custom_sticker_pk(ref))
        return sticker.image_url if sticker else None
    return None


def load_room(db: Session, pet: Pet) -> RoomSnapshot:
    room_stickers = (
        db.query(RoomSticker).filter(RoomSticker.pet_id == pet.id)
        .order_by(RoomSticker.created_at, RoomSticker.id).all()
    )
    accessories = (
        db.query(PetAccessory).filter(PetAccessory.pet_id == pet.id)
        .order_by(PetAccessory.created_at, PetAccessory.id).all()
    )
    purchases = (
        db.query(PetPurchase).filter(PetPurchase.pet_id == pet.id)
        .order_by(PetPurchase.purchased_at, PetPurchase.id).all()
    )

    # A single lookup for every custom item referenced anywhere in the room
    custom_stickers = load_custom_stickers(
        db,
        [s.sticker_id for s in room_stickers]
        + [a.accessory_id for a in accessories]
        + [p.item_id for p in purchases],
    )

    placed_stickers = placement_counter(s.sticker_id for s in room_stickers)
    placed_accessories = placement_counter(a.accessory_id for a in accessories)

    stickers = [
        PlacedSticker(
            id=s.id, sticker_id=s.sticker_id,
            position_x=s.position_x, position_y=s.position_y,
            rotation=s.rotation, scale=s.scale, layer=s.layer,
            image_url=_custom_image(s.sticker_id, custom_stickers),
        )
        for s in room_stickers
    ]
    placed = [
        PlacedAccessory(
            id=a.id, accessory_id=a.accessory_id,
            position_x=a.position_x, position_y=a.position_y,
            rotation=a.rotation, scale=a.scale,
            image_url=_custom_image(a.accessory_id, custom_stickers),
        )
        for a in accessories
    ]

    sticker_inventory = [
        StickerInventoryItem(sticker_id=e.item_id, name=e.name, emoji=e.emoji, count=e.count, image_url=e.image_url)
        for e in build_inventory(purchases, ItemCategory.decoration, placed_stickers, custom_stickers)
    ]
    food_inventory = [
        FoodInventoryItem(item_id=e.item_id, name=e.name, emoji=e.emoji, count=e.count, image_url=e.image_url)
        for e in build_inventory(purchases, ItemCategory.food, {}, custom_stickers)
    ]
    accessory_inventory = [
        AccessoryInventoryItem(accessory_id=e.item_id, name=e.name, emoji=e.emoji, count=e.count, image_url=e.image_url)
        for e in build_inventory(purchases, ItemCategory.accessory, placed_accessories, custom_stickers)
    ]

    return RoomSnapshot(stickers, placed, sticker_inventory, food_inventory, accessory_inventory)


# =============================================================================
# ===================== PET VIEWS =============================================
# =============================================================================

def _pet_fields(pet: Pet) -> dict:
    return {
        "id": pet.id,
        "name": pet.name,
        "image_url": pet.image_url or DEFAULT_PET_IMAGE,
        "points": pet.points,
        "fullness": pet.fullness,
        "mood": pet.mood,
        "last_login_date": pet.last_login_date,
        "last_daily_reset": pet.last_daily_reset,
        "consecutive_login_days": pet.consecutive_login_days,
    }


def room_pet(pet: Pet) -> RoomPet:
    return RoomPet(
        **_pet_fields(pet),
        is_unhappy=pet.mood < UNHAPPY_BELOW,
        is_hungry=pet.fullness < HUNGRY_BELOW,
    )


def dashboard_pet(pet: Pet, before: PetState, now: datetime) -> DashboardPet:
    # Measured from the visit BEFORE this one, otherwise it would always be 0
    days = (now - before.last_login_date).days if before.last_login_date else 0
    return DashboardPet(
        **_pet_fields(pet),
        needs_attention=days >= NEEDS_ATTENTION_DAYS,
        days_since_interaction=max(0, days),
    )


def user_summary(user: User) -> UserSummary:
    return UserSummary(id=user.id, email=user.email, public_id=user.public_id, name=user.name, image=user.image)


# =============================================================================
# ===================== STATISTICS ============================================
# =============================================================================

def monthly_stats(db: Session, user_id: int, now: datetime) -> MonthlyStats:
    """Income / expense totals for the current month, recomputed from rows"""
    start, end = month_range(now)
    rows = db.query(Transaction).filter(
        Transaction.user_id == user_id,
        Transaction.date >= start,
        Transaction.date < end,
    ).all()

    total_expense = Decimal("0")
    total_income = Decimal("0")
    daily = {}
    for t in rows:
        day = daily.setdefault(t.date.strftime("%Y-%m-%d"), DailyStat())
        if t.type_id == TransactionType.expense:
            total_expense += t.amount
            day.expense += t.amount
        elif t.type_id == TransactionType.income:
            total_income += t.amount
            day.income += t.amount

    return MonthlyStats(
        year=start.year,
        month=start.month,
        total_expense=total_expense,
        total_income=total_income,
        daily_stats=dict(sorted(daily.items())),
        transaction_count=len(rows),
    )


# =============================================================================
# ===================== PAYLOADS ==============================================
# =============================================================================

def build_dashboard_data(db: Session, user: User, now: datetime) -> DashboardData:
    pet, before = load_pet(db, user.id, now)
    room = load_room(db, pet)

    return DashboardData(
        user_balance=user.balance or 0,
        pet=dashboard_pet(pet, before, now),
        stickers=room.stickers,
        sticker_inventory=room.sticker_inventory,
        food_inventory=room.food_inventory,
        accessories=room.accessories,
        accessory_inventory=room.accessory_inventory,
        has_unclaimed_missions=count_unclaimed(db, user.id, now) > 0,
    )


def build_pet_room_data(db: Session, user: User, now: datetime) -> PetRoomData:
    pet, _ = load_pet(db, user.id, now)
    room = load_room(db, pet)

    own = (
        db.query(CustomSticker).filter(CustomSticker.user_id == user.id)
        .order_by(CustomSticker.created_at.desc(), CustomSticker.id.desc()).all()
    )
    public = (
        db.query(CustomSticker, User.name)
        .join(User, CustomSticker.user_id == User.id)
        .filter(CustomSticker.is_public == True, CustomSticker.user_id != user.id)
        .order_by(CustomSticker.created_at.desc(), CustomSticker.id.desc()).all()
    )

    return PetRoomData(
        pet=room_pet(pet),
        custom_stickers=[CustomStickerResponse.model_validate(s) for s in own],
        public_stickers=[
            PublicStickerResponse(
                id=s.id, name=s.name, image_url=s.image_url, category=s.category,
                price=s.price, user_id=s.user_id, creator_name=creator,
            )
            for s, creator in public
        ],
        stickers=room.stickers,
        sticker_inventory=room.sticker_inventory,
        food_inventory=room.food_inventory,
        accessories=room.accessories,
        accessory_inventory=room.accessory_inventory,
    )


def build_summary(db: Session, user: User, now: datetime, full: bool = True):
    pet, _ = load_pet(db, user.id, now)
    room = load_room(db, pet)

    fields = {
        "pet": room_pet(pet),
        "stickers": room.stickers,
        "sticker_inventory": room.sticker_inventory,
        "food_inventory": room.food_inventory,
        "accessories": room.accessories,
        "accessory_inventory": room.accessory_inventory,
        "unclaimed_missions": UnclaimedMissions(
            missions=[MissionSummary(**m) for m in unclaimed_missions(db, user.id, now)]
        ),
        "invitation_count": InvitationCount(count=pending_invitation_count(db, user.id)),
        "user": user_summary(user),
    }
    if not full:
        return DashboardSummaryFast(**fields)

    return DashboardSummary(
        **fields,
        monthly=monthly_stats(db, user.id, now),
        recent_transactions=[TransactionResponse.from_row(t) for t in recent_transactions(db, user.id)],
    )
