"""
=============================================================================
MISSIONS.PY — Daily and weekly missions
=============================================================================
A mission is a small goal ("record 1 transaction today"). Progress is kept
per user and per period (the day, or the week starting Monday). Completing
a mission does NOT pay anything: the user has to claim it, and claiming is
the only thing that adds the reward to the pet's points.

Progress updates are side effects of other actions, so they never raise:
a broken mission update must not break the action that triggered it.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from clock import day_start, week_start
from models import Mission, MissionType, MissionUser, Pet, Transaction

logger = logging.getLogger("pawledger.missions")

RECORD_TRANSACTION = "record_transaction"
RECORD_5_DAYS = "record_5_days"

UNCLAIMED_WINDOW = timedelta(hours=24)


# =============================================================================
# ===================== CATALOG ===============================================
# =============================================================================

MISSION_DEFINITIONS = [
    # ── Daily ──
    {"code": RECORD_TRANSACTION, "type": "daily", "title": "Record 1 Transaction Today", "description": "Record one transaction", "target": 1, "reward": 10},
    {"code": "visit_friend", "type": "daily", "title": "Visit 1 Friend", "description": "Visit one friend", "target": 1, "reward": 5},
    {"code": "pet_friend", "type": "daily", "title": "Pet Friend's Pet", "description": "Interact with a friend's pet", "target": 1, "reward": 5},

    # ── Weekly ──
    {"code": RECORD_5_DAYS, "type": "weekly", "title": "Record Transactions for 5 Days This Week", "description": "Record transactions for 5 days this week", "target": 5, "reward": 40},
    {"code": "interact_3_friends", "type": "weekly", "title": "Interact with 3 Friends", "description": "Interact with 3 different friends", "target": 3, "reward": 30},
]

# Known but not seeded: created the first time something reports progress
ON_DEMAND_DEFINITIONS = {
    "check_pet": {"title": "Check on Your Pet", "description": "Look at your pet", "target": 1, "reward": 5},
    "edit_transaction": {"title": "Tidy Up (edit any transaction)", "description": "Edit any transaction", "target": 1, "reward": 5},
}


def seed_missions(db: Session):
    """Inserts or refreshes the catalog. Runs on startup."""
    for definition in MISSION_DEFINITIONS:
        mission = db.query(Mission).filter(Mission.code == definition["code"]).first()
        if not mission:
            mission = Mission(code=definition["code"])
            db.add(mission)
        mission.type = definition["type"]
        mission.title = definition["title"]
        mission.description = definition["description"]
        mission.target = definition["target"]
        mission.reward = definition["reward"]
        mission.active = True
    db.commit()
    logger.info(f"✅ {len(MISSION_DEFINITIONS)} missions verified in DB")


def get_or_create_mission(db: Session, code: str, mission_type: str) -> Optional[Mission]:
    mission = db.query(Mission).filter(Mission.code == code).first()
    if mission:
        return mission

    config = ON_DEMAND_DEFINITIONS.get(code)
    if not config:
        for definition in MISSION_DEFINITIONS:
            if definition["code"] == code:
                config = definition
                mission_type = definition["type"]
                break
    if not config:
        return None

    mission = Mission(
        code=code,
        type=mission_type,
        title=config["title"],
        description=config["description"],
        target=config["target"],
        reward=config["reward"],
        active=True,
    )
    db.add(mission)
    db.commit()
    db.refresh(mission)
    return mission


def period_start(mission_type: str, now: datetime) -> datetime:
    return week_start(now) if mission_type == MissionType.weekly.value else day_start(now)


def mission_summary(mission: Mission) -> dict:
    """Shape shared by "mission completed" toasts and the unclaimed list"""
    return {
        "mission_id": mission.code,
        "mission_code": mission.code,
        "name": mission.title,
        "points": mission.reward,
        "type": mission.type,
    }


# =============================================================================
# ===================== PROGRESS ==============================================
# =============================================================================

def recorded_days_this_week(db: Session, user_id: int, now: datetime) -> int:
    """Distinct calendar days with at least one transaction since Monday"""
    start = week_start(now)
    dates = db.query(Transaction.date).filter(
        Transaction.user_id == user_id,
        Transaction.date >= start,
        Transaction.date < start + timedelta(days=7),
    ).all()
    return len({d.date() for (d,) in dates})


def _get_or_create_progress(db: Session, user_id: int, mission: Mission, start: datetime) -> MissionUser:
    row = db.query(MissionUser).filter(
        MissionUser.user_id == user_id,
        MissionUser.mission_id == mission.id,
        MissionUser.period_start == start,
    ).first()
    if row:
        return row
    row = MissionUser(
        user_id=user_id, mission_id=mission.id, period_start=start,
        progress=0, completed=False, claimed=False,
    )
    db.add(row)
    db.flush()
    return row


def _set_progress(row: MissionUser, mission: Mission, progress: int, now: datetime) -> bool:
    """Returns True when this update is the one that completes the mission."""
    was_completed = bool(row.completed)
    row.progress = progress
    if progress >= mission.target and not was_completed:
        row.completed = True
        row.completed_at = now
        return True
    return False


def update_mission_progress(
    db: Session,
    user_id: int,
    mission_type: str,
    code: str,
    now: datetime,
    progress: int = 1,
) -> Optional[dict]:
    """
    Adds progress to a mission for the current period.

    record_5_days is special: its progress is the number of distinct days
    with a transaction this week, recomputed rather than incremented.

    Returns the mission summary if this call completed it, else None.
    Never raises.
    """
    try:
        mission = get_or_create_mission(db, code, mission_type)
        if not mission:
            logger.error(f"Unknown mission code: {code}")
            return None

        row = _get_or_create_progress(db, user_id, mission, period_start(mission.type, now))
        if mission.code == RECORD_5_DAYS:
            new_progress = recorded_days_this_week(db, user_id, now)
        else:
            new_progress = (row.progress or 0) + progress

        newly_completed = _set_progress(row, mission, new_progress, now)
        db.commit()

        if newly_completed:
            logger.info(f"🎯 User {user_id} completed mission {mission.code}")
            return mission_summary(mission)
        return None
    except Exception:
        db.rollback()
        logger.exception(f"❌ Error updating mission {code} for user {user_id}")
        return None


def list_missions(db: Session, user_id: int, now: datetime) -> list[dict]:
    """Every active mission with this period's progress (rows created as needed)."""
    missions = db.query(Mission).filter(Mission.active == True).order_by(Mission.type, Mission.code).all()

    result = []
    for mission in missions:
        start = period_start(mission.type, now)
        row = _get_or_create_progress(db, user_id, mission, start)
        if mission.code == RECORD_5_DAYS:
            _set_progress(row, mission, recorded_days_this_week(db, user_id, now), now)

        result.append({
            **mission_summary(mission),
            "progress": row.progress,
            "target": mission.target,
            "completed": row.completed,
            "claimed": row.claimed,
            "week_start": start if mission.type == MissionType.weekly.value else None,
        })
    db.commit()
    return result


# =============================================================================
# ===================== CLAIMING ==============================================
# =============================================================================

def _unclaimed_row(db: Session, user_id: int, mission_id: int, now: datetime) -> Optional[MissionUser]:
    """Latest completed, unclaimed row inside the unclaimed window"""
    return (
        db.query(MissionUser)
        .filter(
            MissionUser.user_id == user_id,
            MissionUser.mission_id == mission_id,
            MissionUser.completed == True,
            MissionUser.claimed == False,
            MissionUser.completed_at >= now - UNCLAIMED_WINDOW,
        )
        .order_by(MissionUser.completed_at.desc())
        .first()
    )


def claim_mission(db: Session, user_id: int, code: str, now: datetime) -> Mission:
    """
    Pays a completed mission's reward into the pet's points.
    The claimed flag and the points change are committed together.

    Claims the current period's row, or else whatever the unclaimed list
    shows: a mission completed at 23:50 is still claimable at 00:10.
    """
    mission = db.query(Mission).filter(Mission.code == code).first()
    if not mission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mission not found")

    row = db.query(MissionUser).filter(
        MissionUser.user_id == user_id,
        MissionUser.mission_id == mission.id,
        MissionUser.period_start == period_start(mission.type, now),
    ).first()
    if not (row and row.completed):
        row = _unclaimed_row(db, user_id, mission.id, now) or row
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No progress for this mission")
    if not row.completed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Mission not completed yet")
    if row.claimed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reward already claimed")

    row.claimed = True
    updated = db.query(Pet).filter(Pet.user_id == user_id).update(
        {Pet.points: Pet.points + mission.reward}, synchronize_session=False
    )
    if not updated:
        logger.warning(f"⚠️ User {user_id} has no pet, reward for {code} not credited")
    db.commit()

    logger.info(f"💰 User {user_id} claimed {mission.code}: +{mission.reward} points")
    return mission


def unclaimed_missions(db: Session, user_id: int, now: datetime) -> list[dict]:
    """Completed, not yet claimed, completed within the last 24 hours"""
    rows = (
        db.query(MissionUser)
        .join(Mission, MissionUser.mission_id == Mission.id)
        .filter(
            MissionUser.user_id == user_id,
            MissionUser.completed == True,
            MissionUser.claimed == False,
            MissionUser.completed_at >= now - UNCLAIMED_WINDOW,
        )
        .order_by(MissionUser.completed_at.desc())
        .all()
    )
    return [mission_summary(row.mission) for row in rows]


def count_unclaimed(db: Session, user_id: int, now: datetime) -> int:
    return db.query(func.count(MissionUser.id)).filter(
        MissionUser.user_id == user_id,
        MissionUser.completed == True,
        MissionUser.claimed == False,
        MissionUser.completed_at >= now - UNCLAIMED_WINDOW,
    ).scalar()
