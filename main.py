"""
=============================================================================
MAIN.PY — The PawLedger API
=============================================================================
Every REST endpoint lives here. The logic lives in the domain modules;
endpoints only authenticate, validate and delegate.

Sections:
  1. AUTH         → Register, login
  2. DASHBOARD    → One payload per screen (dashboard, pet room, summary)
  3. TRANSACTIONS → Record, list, delete income/expenses
  4. MISSIONS     → Progress, listing, claiming rewards
  5. FRIENDS      → Invitations, the friends list, visiting and petting
  6. PET ROOM     → Placing / removing stickers and accessories

Every "now" comes from clock.local_now(), the app's local wall clock.
"""

import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

import clock
from auth import create_access_token, get_current_user, hash_password, verify_password
from dashboard import build_dashboard_data, build_pet_room_data, build_summary, room_pet, user_summary
from database import SessionLocal, get_db, init_db
from friends import (
    PET_MOOD_GAIN, accept_invitation, list_friends, pending_invitation_count, pet_friend,
    reject_invitation, send_invitation, visit_friend,
)
from inventory import available_count
from missions import claim_mission, get_or_create_mission, list_missions, seed_missions, update_mission_progress
from models import ItemCategory, Pet, PetAccessory, RoomSticker, User
from pet_state import load_pet
from schemas import (
    AccessoryPlace, DashboardData, DashboardSummary, DashboardSummaryFast,
    FriendInvite, FriendPetResponse, FriendVisit, InvitationCount,
    InvitationResponse, MissionClaim, MissionClaimResponse, MissionProgress,
    MissionProgressResponse,
    MissionProgressUpdate, PetRoomData, PlacedAccessory, PlacedSticker,
    StickerPlace, TokenResponse, TransactionCreate, TransactionCreated,
    TransactionDeleted, TransactionResponse, UserLogin, UserRegister, UserSummary,
)
from transactions import TYPE_NAMES, create_transaction, delete_transaction, list_transactions, seed_default_categories

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("pawledger.api")

APP_VERSION = "1.0.0"


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN (startup and shutdown)
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Create tables that do not exist yet
      2. Seed the mission catalog and the default categories
    """
    logger.info("🚀 Starting PawLedger...")

    init_db()
    logger.info("✅ Database initialized")

    db = SessionLocal()
    try:
        seed_missions(db)
        seed_default_categories(db)
    finally:
        db.close()

    logger.info("🎉 PawLedger ready")

    yield

    logger.info("👋 PawLedger stopped")


# ─────────────────────────────────────────────────────────────────────────────
# FASTAPI APPLICATION
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="PawLedger API",
    description="Personal finance tracker with a virtual pet",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# ERROR HANDLERS
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies → 400 with one entry per offending field"""
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    logger.info(f"⚠️ Validation failed on {request.url.path}: {details}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation failed", "details": details},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything unhandled: log the full traceback, answer a generic 500"""
    error_trace = traceback.format_exc()
    logger.error(f"❌ Unhandled error on {request.url}: {exc}\n{error_trace}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "type": type(exc).__name__,
            "path": str(request.url.path),
        }
    )


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
def health_check():
    return {
        "status": "ok",
        "app": "PawLedger",
        "version": APP_VERSION,
        "timestamp": clock.local_now().isoformat()
    }


# =============================================================================
# ===================== SECTION 1: AUTH =======================================
# =============================================================================

@app.post("/auth/register", response_model=TokenResponse, tags=["Auth"])
def register(data: UserRegister, db: Session = Depends(get_db)):
    """
    Creates an account. The pet is not created here: the first dashboard
    read creates it with default stats.
    """
    if db.query(User).filter(User.email == data.email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An account with this email already exists")
    if data.public_id and db.query(User).filter(User.public_id == data.public_id).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This userID is already taken")

    user = User(
        email=data.email,
        password_hash=hash_password(data.password),
        name=data.name,
        public_id=data.public_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"👤 New user registered: {user.name} ({user.email})")
    return TokenResponse(
        access_token=create_access_token(user.id, user.email),
        user_id=user.id,
        name=user.name,
    )


@app.post("/auth/login", response_model=TokenResponse, tags=["Auth"])
def login(data: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email).first()

    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Wrong email or password")

    return TokenResponse(
        access_token=create_access_token(user.id, user.email),
        user_id=user.id,
        name=user.name,
    )


# =============================================================================
# ===================== SECTION 2: DASHBOARD ==================================
# =============================================================================

@app.get("/api/dashboard-data", response_model=DashboardData, tags=["Dashboard"])
def dashboard_data(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Balance, pet, room and inventories for the home screen"""
    return build_dashboard_data(db, user, clock.local_now())


@app.get("/api/pet-room-data", response_model=PetRoomData, tags=["Dashboard"])
def pet_room_data(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Room editor: the room plus the sticker library"""
    return build_pet_room_data(db, user, clock.local_now())


@app.get("/api/dashboard/summary", response_model=DashboardSummary, tags=["Dashboard"])
def dashboard_summary(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return build_summary(db, user, clock.local_now(), full=True)


@app.get("/api/dashboard/summary/fast", response_model=DashboardSummaryFast, tags=["Dashboard"])
def dashboard_summary_fast(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Same as /summary without the monthly statistics"""
    return build_summary(db, user, clock.local_now(), full=False)


# =============================================================================
# ===================== SECTION 3: TRANSACTIONS ===============================
# =============================================================================

@app.post("/api/transactions", response_model=TransactionCreated, tags=["Transactions"])
def create_transaction_endpoint(
    data: TransactionCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Records an income or expense. Besides the row itself the balance
    moves, the pet's mood is nudged and transaction missions advance.
    """
    result = create_transaction(
        db, user,
        type_id=data.resolved_type_id,
        amount=data.amount,
        now=clock.local_now(),
        category_id=data.category_id,
        category_name=data.category,
        date=data.date,
        note=data.note,
    )
    return TransactionCreated(
        **TransactionResponse.from_row(result["transaction"]).model_dump(),
        new_balance=result["new_balance"],
        mission_completed=result["mission_completed"],
    )


@app.get("/api/transactions", response_model=list[TransactionResponse], tags=["Transactions"])
def list_transactions_endpoint(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    type: Optional[str] = Query(None, description="EXPENSE or INCOME"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    type_id = None
    if type:
        if type.upper() not in TYPE_NAMES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="type must be EXPENSE or INCOME")
        type_id = TYPE_NAMES[type.upper()].value

    rows = list_transactions(
        db, user.id,
        start_date=clock.to_local_naive(start_date) if start_date else None,
        end_date=clock.to_local_naive(end_date) if end_date else None,
        type_id=type_id,
    )
    return [TransactionResponse.from_row(t) for t in rows]


@app.delete("/api/transactions/{transaction_id}", response_model=TransactionDeleted, tags=["Transactions"])
def delete_transaction_endpoint(
    transaction_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    new_balance = delete_transaction(db, user, transaction_id)
    return TransactionDeleted(message="Transaction deleted", new_balance=new_balance)


# =============================================================================
# ===================== SECTION 4: MISSIONS ===================================
# =============================================================================

@app.get("/api/missions", response_model=list[MissionProgress], tags=["Missions"])
def get_missions(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Every active mission with this period's progress"""
    return [MissionProgress(**m) for m in list_missions(db, user.id, clock.local_now())]


@app.post("/api/missions", response_model=MissionProgressResponse, tags=["Missions"])
def report_mission_progress(
    data: MissionProgressUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    now = clock.local_now()
    if not get_or_create_mission(db, data.code, data.type):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mission not found")

    completed = update_mission_progress(db, user.id, data.type, data.code, now, progress=data.progress)
    current = next(m for m in list_missions(db, user.id, now) if m["mission_code"] == data.code)
    return MissionProgressResponse(mission=MissionProgress(**current), completed=completed is not None)


@app.post("/api/missions/claim", response_model=MissionClaimResponse, tags=["Missions"])
def claim_mission_reward(
    data: MissionClaim,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Pays the reward of a completed mission into the pet's points (once)"""
    mission = claim_mission(db, user.id, data.code, clock.local_now())
    pet = db.query(Pet).filter(Pet.user_id == user.id).first()
    return MissionClaimResponse(
        message=f"Claimed {mission.reward} points for '{mission.title}'",
        points=pet.points if pet else 0,
    )


# =============================================================================
# ===================== SECTION 5: FRIENDS ====================================
# =============================================================================

@app.get("/api/friends", response_model=list[UserSummary], tags=["Friends"])
def get_friends(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [user_summary(friend) for friend in list_friends(db, user.id)]


@app.post("/api/friends/invitations", response_model=InvitationResponse, tags=["Friends"])
def invite_friend(data: FriendInvite, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return send_invitation(db, user, data.public_id)


@app.post("/api/friends/invitations/{invitation_id}/accept", response_model=InvitationResponse, tags=["Friends"])
def accept_friend(invitation_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return accept_invitation(db, user, invitation_id)


@app.post("/api/friends/invitations/{invitation_id}/reject", tags=["Friends"])
def reject_friend(invitation_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    reject_invitation(db, user, invitation_id)
    return {"message": "Invitation rejected"}


@app.get("/api/friends/invitations/count", response_model=InvitationCount, tags=["Friends"])
def invitation_count(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return InvitationCount(count=pending_invitation_count(db, user.id))


@app.get("/api/friends/{friend_id}", response_model=FriendVisit, tags=["Friends"])
def visit_friend_room(friend_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """A friend's pet, read-only. Counts toward the daily visit mission."""
    friend, pet, completed = visit_friend(db, user, friend_id, clock.local_now())
    return FriendVisit(pet=room_pet(pet), user=user_summary(friend), mission_completed=completed)


@app.post("/api/friends/{friend_id}/pet", response_model=FriendPetResponse, tags=["Friends"])
def pet_friend_pet(friend_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    completed = pet_friend(db, user, friend_id, clock.local_now())
    return FriendPetResponse(
        message="Your friend's pet enjoyed that!",
        mood_gain=PET_MOOD_GAIN,
        mission_completed=completed,
    )


# =============================================================================
# ===================== SECTION 6: PET ROOM ===================================
# =============================================================================
# Placing an item uses up one unit of inventory, removing it gives it back.
# Inventory itself is never stored: it is purchases minus placements.

def _require_available(db: Session, pet: Pet, item_id: str, category: ItemCategory):
    if available_count(db, pet.id, item_id, category) <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"No '{item_id}' left in inventory")


@app.post("/api/pet/stickers", response_model=PlacedSticker, tags=["Pet Room"])
def place_sticker(data: StickerPlace, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    pet, _ = load_pet(db, user.id, clock.local_now())
    _require_available(db, pet, data.sticker_id, ItemCategory.decoration)

    sticker = RoomSticker(
        pet_id=pet.id,
        sticker_id=data.sticker_id,
        position_x=data.position_x,
        position_y=data.position_y,
        rotation=data.rotation,
        scale=data.scale,
        layer=data.layer,
    )
    db.add(sticker)
    db.commit()
    db.refresh(sticker)

    logger.info(f"🖼️ Sticker {data.sticker_id} placed (pet: {pet.id})")
    return PlacedSticker.model_validate(sticker)


@app.delete("/api/pet/stickers/{placement_id}", tags=["Pet Room"])
def remove_sticker(placement_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    sticker = (
        db.query(RoomSticker).join(Pet, RoomSticker.pet_id == Pet.id)
        .filter(RoomSticker.id == placement_id, Pet.user_id == user.id).first()
    )
    if not sticker:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sticker not found")

    db.delete(sticker)
    db.commit()
    return {"message": "Sticker removed"}


@app.post("/api/pet/accessories", response_model=PlacedAccessory, tags=["Pet Room"])
def place_accessory(data: AccessoryPlace, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    pet, _ = load_pet(db, user.id, clock.local_now())
    _require_available(db, pet, data.accessory_id, ItemCategory.accessory)

    accessory = PetAccessory(
        pet_id=pet.id,
        accessory_id=data.accessory_id,
        position_x=data.position_x,
        position_y=data.position_y,
        rotation=data.rotation,
        scale=data.scale,
    )
    db.add(accessory)
    db.commit()
    db.refresh(accessory)

    logger.info(f"🎀 Accessory {data.accessory_id} placed (pet: {pet.id})")
    return PlacedAccessory.model_validate(accessory)


@app.delete("/api/pet/accessories/{placement_id}", tags=["Pet Room"])
def remove_accessory(placement_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    accessory = (
        db.query(PetAccessory).join(Pet, PetAccessory.pet_id == Pet.id)
        .filter(PetAccessory.id == placement_id, Pet.user_id == user.id).first()
    )
    if not accessory:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Accessory not found")

    db.delete(accessory)
    db.commit()
    return {"message": "Accessory removed"}
