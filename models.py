"""
=============================================================================
MODELS.PY — Every database table
=============================================================================
Each class is a table, each attribute a column.

RELATIONSHIPS:
  USER
  ├── pet (1:1) ──→ purchases[] (ledger), room_stickers[], accessories[]
  ├── transactions[] ──→ category
  ├── categories[] (own; global ones have user_id = NULL)
  ├── custom_stickers[]
  ├── mission_progress[] ──→ mission
  ├── friendships (directed edges: requester → recipient)
  └── friend_interactions[] (what the user did to a friend's pet, and when)

There is no inventory table: "how many of item X can I still place" is
always derived from purchases minus placements (see inventory.py).
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, Float, Numeric, Text,
    DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from database import Base
import enum


# =============================================================================
# ===================== ENUMS =================================================
# =============================================================================

class TransactionType(int, enum.Enum):
    """Stored in transactions.type_id"""
    expense = 1
    income = 2

class ItemCategory(str, enum.Enum):
    """Shop item families. Only decorations and accessories get placed."""
    food = "food"
    decoration = "decoration"
    accessory = "accessory"

class StickerLayer(str, enum.Enum):
    floor = "floor"
    wall_left = "wall-left"
    wall_right = "wall-right"

class MissionType(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"

class FriendStatus(str, enum.Enum):
    pending = "PENDING"
    accepted = "ACCEPTED"

class FriendAction(str, enum.Enum):
    pet = "pet"


# =============================================================================
# ===================== TABLE 1: USERS ========================================
# =============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)

    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)
    # nullable → accounts provisioned by an external login have no password
    public_id = Column(String(50), unique=True, nullable=True)
    # public_id → the "userID" friends search for. Set once, never changed.
    name = Column(String(100), nullable=True)
    image = Column(String(500), nullable=True)

    balance = Column(Numeric(12, 2), default=0, nullable=False)
    # balance → running total of income − expense, updated on every
    # transaction write (never recomputed on read)

    created_at = Column(DateTime, default=datetime.utcnow)

    pet = relationship("Pet", back_populates="user", uselist=False, cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="user", cascade="all, delete-orphan")
    categories = relationship("Category", back_populates="user", cascade="all, delete-orphan")
    custom_stickers = relationship("CustomSticker", back_populates="user", cascade="all, delete-orphan")
    mission_progress = relationship("MissionUser", back_populates="user", cascade="all, delete-orphan")


# =============================================================================
# ===================== TABLE 2: PETS =========================================
# =============================================================================

class Pet(Base):
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    name = Column(String(50), default="My Pet")
    image_url = Column(String(500), nullable=True)

    points = Column(Integer, default=50)
    # points → shop currency
    fullness = Column(Integer, default=70)
    mood = Column(Integer, default=70)
    # fullness, mood → always within 0..100

    last_login_date = Column(DateTime, nullable=True)
    last_daily_reset = Column(DateTime, nullable=True)
    # last_daily_reset → midnight of the last day decay was applied; only moves forward
    consecutive_login_days = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="pet")
    purchases = relationship("PetPurchase", back_populates="pet", cascade="all, delete-orphan")
    room_stickers = relationship("RoomSticker", back_populates="pet", cascade="all, delete-orphan")
    accessories = relationship("PetAccessory", back_populates="pet", cascade="all, delete-orphan")


# =============================================================================
# ===================== TABLE 3: CATEGORIES ===================================
# =============================================================================
# user_id NULL → global default shared by everyone.

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    name = Column(String(50), nullable=False)
    type_id = Column(Integer, nullable=False)
    icon = Column(String(10), default="📝")
    sort_order = Column(Integer, default=0)
    is_default = Column(Boolean, default=False)
    # is_default → the "Other" fallback of its type

    __table_args__ = (
        UniqueConstraint('user_id', 'name', 'type_id', name='uq_category_scope'),
    )

    user = relationship("User", back_populates="categories")


# =============================================================================
# ===================== TABLE 4: TRANSACTIONS =================================
# =============================================================================

class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    # amount → always positive, two decimals; the sign comes from type_id
    type_id = Column(Integer, nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    # date → chosen by the user, may differ from created_at
    note = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="transactions")
    category = relationship("Category")


# =============================================================================
# ===================== TABLE 5: PET_PURCHASES (ledger) =======================
# =============================================================================
# One row per buy action. Source of truth for "how many of X were bought".

class PetPurchase(Base):
    __tablename__ = "pet_purchases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pet_id = Column(Integer, ForeignKey("pets.id"), nullable=False)

    item_id = Column(String(100), nullable=False, index=True)
    # item_id → "toy1", "acc2", "food1" or "custom-<custom_sticker.id>"
    item_name = Column(String(100), nullable=True)
    category = Column(String(20), nullable=False)
    quantity = Column(Integer, default=1)
    cost = Column(Integer, default=0)

    purchased_at = Column(DateTime, default=datetime.utcnow)

    pet = relationship("Pet", back_populates="purchases")


# =============================================================================
# ===================== TABLE 6: ROOM_STICKERS (placements) ===================
# =============================================================================
# Each row is one placed decoration and consumes one purchased unit.

class RoomSticker(Base):
    __tablename__ = "room_stickers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pet_id = Column(Integer, ForeignKey("pets.id"), nullable=False)

    sticker_id = Column(String(100), nullable=False, index=True)
    position_x = Column(Float, default=0.5)
    position_y = Column(Float, default=0.5)
    rotation = Column(Float, default=0)
    scale = Column(Float, default=1)
    layer = Column(String(20), default=StickerLayer.floor.value)

    created_at = Column(DateTime, default=datetime.utcnow)

    pet = relationship("Pet", back_populates="room_stickers")


# =============================================================================
# ===================== TABLE 7: PET_ACCESSORIES (placements) =================
# =============================================================================

class PetAccessory(Base):
    __tablename__ = "pet_accessories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pet_id = Column(Integer, ForeignKey("pets.id"), nullable=False)

    accessory_id = Column(String(100), nullable=False, index=True)
    position_x = Column(Float, default=0.5)
    position_y = Column(Float, default=0.5)
    rotation = Column(Float, default=0)
    scale = Column(Float, default=1)

    created_at = Column(DateTime, default=datetime.utcnow)

    pet = relationship("Pet", back_populates="accessories")


# =============================================================================
# ===================== TABLE 8: CUSTOM_STICKERS ==============================
# =============================================================================
# User-made items. Public ones can be bought by other users.

class CustomSticker(Base):
    __tablename__ = "custom_stickers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    name = Column(String(100), nullable=False)
    image_url = Column(String(500), nullable=False)
    category = Column(String(20), default=ItemCategory.decoration.value)
    price = Column(Integer, default=0)
    is_public = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="custom_stickers")


# =============================================================================
# ===================== TABLE 9: MISSIONS (catalog) ===========================
# =============================================================================

class Mission(Base):
    __tablename__ = "missions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    code = Column(String(50), unique=True, nullable=False)
    # code → "record_transaction", "record_5_days"...
    title = Column(String(200), nullable=False)
    description = Column(String(300), nullable=True)
    type = Column(String(20), nullable=False)
    target = Column(Integer, default=1)
    reward = Column(Integer, default=0)
    active = Column(Boolean, default=True)


# =============================================================================
# ===================== TABLE 10: MISSION_USERS (progress) ====================
# =============================================================================
# One row per user, mission and period (day or week).

class MissionUser(Base):
    __tablename__ = "mission_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    mission_id = Column(Integer, ForeignKey("missions.id"), nullable=False)

    period_start = Column(DateTime, nullable=False)
    progress = Column(Integer, default=0)
    completed = Column(Boolean, default=False)
    claimed = Column(Boolean, default=False)
    # claimed → points paid out; the only transition that awards them
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'mission_id', 'period_start', name='uq_mission_period'),
    )

    user = relationship("User", back_populates="mission_progress")
    mission = relationship("Mission")


# =============================================================================
# ===================== TABLE 11: FRIENDS =====================================
# =============================================================================
# Directed edge: user_id invited friend_id. ACCEPTED edges are read both ways.

class Friend(Base):
    __tablename__ = "friends"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    friend_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    status = Column(String(20), default=FriendStatus.pending.value)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'friend_id', name='uq_friend_edge'),
    )

    requester = relationship("User", foreign_keys=[user_id])
    recipient = relationship("User", foreign_keys=[friend_id])


# =============================================================================
# ===================== TABLE 12: FRIEND_INTERACTIONS =========================
# =============================================================================
# One row per time user_id petted friend_id's pet. The weekly
# "interact with 3 friends" mission counts distinct friend_id per week.

class FriendInteraction(Base):
    __tablename__ = "friend_interactions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    friend_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    pet_id = Column(Integer, ForeignKey("pets.id"), nullable=False)

    action = Column(String(20), default=FriendAction.pet.value)
    created_at = Column(DateTime, nullable=False, index=True)
    # created_at → local wall-clock time, compared against week_start()
