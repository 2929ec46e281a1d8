"""
=============================================================================
PET_STATE.PY — Pet mood, fullness and the daily login loop
=============================================================================
The pet "suffers" from neglect and is rewarded for daily visits:

  - Once per calendar day, mood and fullness decay.
  - The first visit of the day cheers the pet up a little.
  - Visiting on consecutive days builds a streak; the 5th day pays out
    bonus points and the streak starts over.

Every entry point (dashboard, pet room, summaries) goes through the same
pure function, apply_daily_transition(). Calling it again on the same day
changes nothing, so it is safe to run on every read.
"""

import os
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from clock import day_start
from models import Pet, TransactionType

logger = logging.getLogger("pawledger.pet")

# ─────────────────────────────────────────────────────────────────────────────
# CONSTANTS
# ─────────────────────────────────────────────────────────────────────────────

MOOD_DAILY_DECAY = int(os.getenv("PET_MOOD_DAILY_DECAY", "25"))
FULLNESS_DAILY_DECAY = 10
FIRST_LOGIN_MOOD_BONUS = 5

STREAK_BONUS_DAYS = 5
STREAK_BONUS_POINTS = 20

STAT_MIN = 0
STAT_MAX = 100

UNHAPPY_BELOW = 30
HUNGRY_BELOW = 30

DEFAULT_PET = {
    "name": "My Pet",
    "points": 50,
    "fullness": 70,
    "mood": 70,
    "consecutive_login_days": 1,
    # the creation visit is day 1 of the streak
}
DEFAULT_PET_IMAGE = "/cat.png"


def clamp(value: int) -> int:
    return max(STAT_MIN, min(STAT_MAX, value))


# =============================================================================
# ===================== DAILY TRANSITION (pure) ===============================
# =============================================================================

@dataclass(frozen=True)
class PetState:
    mood: int
    fullness: int
    points: int
    last_login_date: Optional[datetime]
    last_daily_reset: Optional[datetime]
    consecutive_login_days: int

    @classmethod
    def from_pet(cls, pet: Pet) -> "PetState":
        return cls(
            mood=pet.mood,
            fullness=pet.fullness,
            points=pet.points or 0,
            last_login_date=pet.last_login_date,
            last_daily_reset=pet.last_daily_reset,
            consecutive_login_days=pet.consecutive_login_days or 0,
        )


@dataclass(frozen=True)
class DailyTransition:
    """
    Result of one evaluation.

    changes is empty → nothing happened (already visited today).
    Otherwise it maps Pet column names to their new values.
    """
    state: PetState
    changes: dict = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.changes)


def apply_daily_transition(state: PetState, now: datetime) -> DailyTransition:
    today = day_start(now)
    changes = {}

    # 1. Daily decay
    if state.last_daily_reset is None or state.last_daily_reset < today:
        changes["mood"] = max(STAT_MIN, state.mood - MOOD_DAILY_DECAY)
        changes["fullness"] = max(STAT_MIN, state.fullness - FULLNESS_DAILY_DECAY)
        changes["last_daily_reset"] = today

    # 2. First visit of the day
    last_login = state.last_login_date
    if last_login is None or last_login < today:
        mood = changes.get("mood", state.mood)
        changes["mood"] = min(STAT_MAX, mood + FIRST_LOGIN_MOOD_BONUS)
        changes["last_login_date"] = now

        yesterday = today - timedelta(days=1)
        if last_login is not None and day_start(last_login) == yesterday:
            streak = state.consecutive_login_days + 1
            if streak >= STREAK_BONUS_DAYS:
                changes["points"] = state.points + STREAK_BONUS_POINTS
                streak = 0
            changes["consecutive_login_days"] = streak
        else:
            changes["consecutive_login_days"] = 1

    return DailyTransition(state=replace(state, **changes), changes=changes)


# =============================================================================
# ===================== STORE HELPERS =========================================
# =============================================================================

def get_or_create_pet(db: Session, user_id: int, now: datetime) -> Pet:
    """Every user has a pet; the first read creates it with default stats."""
    pet = db.query(Pet).filter(Pet.user_id == user_id).first()
    if pet:
        return pet

    pet = Pet(user_id=user_id, last_login_date=now, last_daily_reset=now, **DEFAULT_PET)
    db.add(pet)
    db.commit()
    db.refresh(pet)
    logger.info(f"🐱 Pet created for user {user_id}")
    return pet


def refresh_pet(db: Session, pet: Pet, now: datetime) -> DailyTransition:
    """
    Runs the daily transition and persists it with a single UPDATE,
    only when something changed.
    """
    transition = apply_daily_transition(PetState.from_pet(pet), now)
    if transition.changed:
        db.query(Pet).filter(Pet.id == pet.id).update(transition.changes, synchronize_session=False)
        db.commit()
        db.refresh(pet)
        if "points" in transition.changes:
            logger.info(f"🔥 Pet {pet.id}: {STREAK_BONUS_DAYS}-day streak, +{STREAK_BONUS_POINTS} points")
    return transition


def load_pet(db: Session, user_id: int, now: datetime) -> tuple[Pet, PetState]:
    """
    Pet ready to display: created if missing, daily transition applied.
    Also returns the state as it was BEFORE the transition.
    """
    pet = get_or_create_pet(db, user_id, now)
    before = PetState.from_pet(pet)
    refresh_pet(db, pet, now)
    return pet, before


# =============================================================================
# ===================== TRANSACTION NUDGE =====================================
# =============================================================================
# Income cheers the pet up a little, spending makes it a little sad.
# Deltas are small on purpose: at most +3 / −2 per transaction.

def transaction_mood_delta(type_id: int, amount: Decimal) -> int:
    if type_id == TransactionType.income:
        return min(3, int(amount // 1000))
    if type_id == TransactionType.expense:
        return -min(2, int(amount // 500))
    return 0


def nudge_pet_for_transaction(db: Session, user_id: int, type_id: int, amount: Decimal) -> Optional[Pet]:
    pet = db.query(Pet).filter(Pet.user_id == user_id).first()
    if not pet:
        return None

    delta = transaction_mood_delta(type_id, amount)
    if delta:
        pet.mood = clamp(pet.mood + delta)
        db.commit()
    return pet
