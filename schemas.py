"""
=============================================================================
SCHEMAS.PY — Request/response validation (Pydantic)
=============================================================================
Models (SQLAlchemy) define the TABLES; schemas define what the API accepts
and returns. The web client speaks camelCase, so every schema serializes
with camelCase aliases while Python code keeps snake_case names.

Naming convention:
  XxxCreate → request body for POST
  XxxResponse / XxxItem → what the API returns
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, PlainSerializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from clock import to_local_naive
from models import TransactionType


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}


# Exact in Python and in the DB, a plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# =============================================================================
# ===================== AUTH ==================================================
# =============================================================================

class UserRegister(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6, description="At least 6 characters")
    name: Optional[str] = Field(None, max_length=100)
    public_id: Optional[str] = Field(None, alias="userID", min_length=3, max_length=50)

class UserLogin(CamelModel):
    email: EmailStr
    password: str

class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    name: Optional[str] = None

class UserSummary(CamelModel):
    id: int
    email: str
    public_id: Optional[str] = Field(None, alias="userID")
    name: Optional[str] = None
    image: Optional[str] = None


# =============================================================================
# ===================== PET ===================================================
# =============================================================================

class PetResponse(CamelModel):
    id: int
    name: str
    image_url: Optional[str] = None
    points: int
    fullness: int
    mood: int
    last_login_date: Optional[datetime] = None
    last_daily_reset: Optional[datetime] = None
    consecutive_login_days: int

class DashboardPet(PetResponse):
    needs_attention: bool
    days_since_interaction: int

class RoomPet(PetResponse):
    is_unhappy: bool
    is_hungry: bool


# =============================================================================
# ===================== ROOM & INVENTORY ======================================
# =============================================================================

StickerLayerName = Literal["floor", "wall-left", "wall-right"]

class PlacedSticker(CamelModel):
    id: int
    sticker_id: str
    position_x: float
    position_y: float
    rotation: float
    scale: float
    layer: str
    image_url: Optional[str] = None

class PlacedAccessory(CamelModel):
    id: int
    accessory_id: str
    position_x: float
    position_y: float
    rotation: float
    scale: float
    image_url: Optional[str] = None

class StickerInventoryItem(CamelModel):
    sticker_id: str
    name: str
    emoji: str
    count: int
    image_url: Optional[str] = None

class FoodInventoryItem(CamelModel):
    item_id: str
    name: str
    emoji: str
    count: int
    image_url: Optional[str] = None

class AccessoryInventoryItem(CamelModel):
    accessory_id: str
    name: str
    emoji: str
    count: int
    image_url: Optional[str] = None

class CustomStickerResponse(CamelModel):
    id: int
    name: str
    image_url: str
    category: str
    price: int

class PublicStickerResponse(CustomStickerResponse):
    user_id: int
    creator_name: Optional[str] = None

class StickerPlace(CamelModel):
    sticker_id: str = Field(min_length=1)
    position_x: float = 0.5
    position_y: float = 0.5
    rotation: float = 0
    scale: float = Field(1, gt=0)
    layer: StickerLayerName = "floor"

class AccessoryPlace(CamelModel):
    accessory_id: str = Field(min_length=1)
    position_x: float = 0.5
    position_y: float = 0.5
    rotation: float = 0
    scale: float = Field(1, gt=0)


# =============================================================================
# ===================== MISSIONS ==============================================
# =============================================================================

class MissionSummary(CamelModel):
    mission_id: str
    mission_code: str
    name: str
    points: int
    type: str

class MissionProgress(MissionSummary):
    progress: int
    target: int
    completed: bool
    claimed: bool
    week_start: Optional[datetime] = None

class MissionProgressUpdate(CamelModel):
    type: Literal["daily", "weekly"]
    mission_code: Optional[str] = None
    mission_id: Optional[str] = None
    # mission_id → older clients send the code under this name
    progress: int = Field(1, ge=1)

    @model_validator(mode="after")
    def require_code(self):
        if not (self.mission_code or self.mission_id):
            raise ValueError("missionCode is required")
        return self

    @property
    def code(self) -> str:
        return self.mission_code or self.mission_id

class MissionProgressResponse(CamelModel):
    mission: MissionProgress
    completed: bool

class MissionClaim(CamelModel):
    mission_code: Optional[str] = None
    mission_id: Optional[str] = None
    type: Optional[Literal["daily", "weekly"]] = None

    @model_validator(mode="after")
    def require_code(self):
        if not (self.mission_code or self.mission_id):
            raise ValueError("missionCode is required")
        return self

    @property
    def code(self) -> str:
        return self.mission_code or self.mission_id

class MissionClaimResponse(CamelModel):
    message: str
    points: int

class UnclaimedMissions(CamelModel):
    missions: list[MissionSummary]


# =============================================================================
# ===================== TRANSACTIONS ==========================================
# =============================================================================

class TransactionCreate(CamelModel):
    """
    The type can come as a name ("EXPENSE"/"INCOME") or as typeId (1/2),
    the category as a name or as categoryId.
    """
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    type: Optional[Literal["EXPENSE", "INCOME"]] = None
    type_id: Optional[Literal[1, 2]] = None
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    category_id: Optional[int] = None
    date: Optional[datetime] = None
    note: Optional[str] = Field(None, max_length=500)

    @field_validator("date")
    @classmethod
    def localize_date(cls, value):
        return to_local_naive(value) if value else value

    @model_validator(mode="after")
    def require_type_and_category(self):
        if self.type is None and self.type_id is None:
            raise ValueError("Either type or typeId is required")
        if self.category is None and self.category_id is None:
            raise ValueError("Either category or categoryId is required")
        return self

    @property
    def resolved_type_id(self) -> int:
        if self.type_id is not None:
            return self.type_id
        return TransactionType[self.type.lower()].value

class TransactionResponse(CamelModel):
    id: int
    amount: Money
    type_id: int
    type: str
    category_id: int
    category: Optional[str] = None
    date: datetime
    note: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_row(cls, transaction) -> "TransactionResponse":
        return cls(
            id=transaction.id,
            amount=transaction.amount,
            type_id=transaction.type_id,
            type=TransactionType(transaction.type_id).name.capitalize(),
            category_id=transaction.category_id,
            category=transaction.category.name if transaction.category else None,
            date=transaction.date,
            note=transaction.note,
            created_at=transaction.created_at,
        )

class TransactionCreated(TransactionResponse):
    new_balance: Money
    mission_completed: Optional[MissionSummary] = None

class TransactionDeleted(CamelModel):
    message: str
    new_balance: Money


# =============================================================================
# ===================== FRIENDS ===============================================
# =============================================================================

class FriendInvite(CamelModel):
    public_id: str = Field(alias="userID", min_length=1)

class InvitationResponse(CamelModel):
    id: int
    user_id: int
    friend_id: int
    status: str
    created_at: datetime

class InvitationCount(CamelModel):
    count: int

class FriendVisit(CamelModel):
    """GET /api/friends/{friendId}: the friend's pet, as seen by a visitor"""
    pet: RoomPet
    user: UserSummary
    mission_completed: Optional[MissionSummary] = None

class FriendPetResponse(CamelModel):
    message: str
    mood_gain: int
    mission_completed: Optional[MissionSummary] = None


# =============================================================================
# ===================== DASHBOARD =============================================
# =============================================================================

class DashboardData(CamelModel):
    """GET /api/dashboard-data"""
    user_balance: Money
    pet: DashboardPet
    stickers: list[PlacedSticker]
    sticker_inventory: list[StickerInventoryItem]
    food_inventory: list[FoodInventoryItem]
    accessories: list[PlacedAccessory]
    accessory_inventory: list[AccessoryInventoryItem]
    has_unclaimed_missions: bool

class PetRoomData(CamelModel):
    """GET /api/pet-room-data"""
    pet: RoomPet
    custom_stickers: list[CustomStickerResponse]
    public_stickers: list[PublicStickerResponse]
    stickers: list[PlacedSticker]
    sticker_inventory: list[StickerInventoryItem]
    food_inventory: list[FoodInventoryItem]
    accessories: list[PlacedAccessory]
    accessory_inventory: list[AccessoryInventoryItem]

class DailyStat(CamelModel):
    expense: Money = Decimal("0")
    income: Money = Decimal("0")

class MonthlyStats(CamelModel):
    year: int
    month: int
    total_expense: Money
    total_income: Money
    daily_stats: dict[str, DailyStat]
    transaction_count: int

class DashboardSummaryFast(CamelModel):
    """GET /api/dashboard/summary/fast: everything needed for first paint"""
    pet: RoomPet
    stickers: list[PlacedSticker]
    sticker_inventory: list[StickerInventoryItem]
    food_inventory: list[FoodInventoryItem]
    accessories: list[PlacedAccessory]
    accessory_inventory: list[AccessoryInventoryItem]
    unclaimed_missions: UnclaimedMissions
    invitation_count: InvitationCount
    user: UserSummary

class DashboardSummary(DashboardSummaryFast):
    """GET /api/dashboard/summary: adds month-to-date statistics"""
    monthly: MonthlyStats
    recent_transactions: list[TransactionResponse]
