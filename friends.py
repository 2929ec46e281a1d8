"""
=============================================================================
FRIENDS.PY — Invitations, the friends list and friend visits
=============================================================================
A Friend row is a directed edge: user_id invited friend_id.
  PENDING  → an invitation waiting for friend_id to answer
  ACCEPTED → a friendship, read in both directions

Friends can visit each other's room and pet each other's pet. Those two
actions are what drive the social missions:
  visit_friend        (daily)  → any visit
  pet_friend          (daily)  → any petting
  interact_3_friends  (weekly) → petting a friend not petted yet this week
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from clock import week_start
from missions import update_mission_progress
from models import Friend, FriendAction, FriendInteraction, FriendStatus, Pet, User
from pet_state import clamp

logger = logging.getLogger("pawledger.friends")

PET_MOOD_GAIN = 1


def pending_invitation_count(db: Session, user_id: int) -> int:
    return db.query(func.count(Friend.id)).filter(
        Friend.friend_id == user_id,
        Friend.status == FriendStatus.pending.value,
    ).scalar()


def _edge_between(db: Session, a: int, b: int):
    return db.query(Friend).filter(
        or_(
            and_(Friend.user_id == a, Friend.friend_id == b),
            and_(Friend.user_id == b, Friend.friend_id == a),
        )
    ).first()


# =============================================================================
# ===================== INVITATIONS ===========================================
# =============================================================================

def send_invitation(db: Session, user: User, public_id: str) -> Friend:
    target = db.query(User).filter(User.public_id == public_id).first()
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if target.id == user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot invite yourself")
    if _edge_between(db, user.id, target.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Invitation or friendship already exists")

    invitation = Friend(user_id=user.id, friend_id=target.id, status=FriendStatus.pending.value)
    db.add(invitation)
    db.commit()
    db.refresh(invitation)
    logger.info(f"✉️ Invitation {invitation.id}: {user.id} → {target.id}")
    return invitation


def accept_invitation(db: Session, user: User, invitation_id: int) -> Friend:
    invitation = db.query(Friend).filter(
        Friend.id == invitation_id,
        Friend.friend_id == user.id,
        Friend.status == FriendStatus.pending.value,
    ).first()
    if not invitation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")

    invitation.status = FriendStatus.accepted.value
    db.commit()
    db.refresh(invitation)
    logger.info(f"🤝 Invitation {invitation.id} accepted")
    return invitation


def reject_invitation(db: Session, user: User, invitation_id: int):
    """
    Deletes a pending invitation addressed to the user, so the sender can
    invite again later.
    """
    invitation = db.query(Friend).filter(Friend.id == invitation_id).first()
    if not invitation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
    if invitation.friend_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This invitation is not addressed to you")
    if invitation.status != FriendStatus.pending.value:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invitation already answered")

    db.delete(invitation)
    db.commit()
    logger.info(f"🚫 Invitation {invitation_id} rejected by user {user.id}")


def list_friends(db: Session, user_id: int) -> list[User]:
    """Accepted friendships, whichever side sent the invitation"""
    edges = db.query(Friend).filter(
        Friend.status == FriendStatus.accepted.value,
        or_(Friend.user_id == user_id, Friend.friend_id == user_id),
    ).all()
    friend_ids = [e.friend_id if e.user_id == user_id else e.user_id for e in edges]
    if not friend_ids:
        return []
    return db.query(User).filter(User.id.in_(friend_ids)).order_by(User.name).all()


# =============================================================================
# ===================== VISITS ================================================
# =============================================================================

def require_friend(db: Session, user_id: int, friend_id: int) -> User:
    """The friend's User row, or 403 unless the friendship is accepted."""
    edge = _edge_between(db, user_id, friend_id)
    if not edge or edge.status != FriendStatus.accepted.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not friends with this user")
    return db.query(User).filter(User.id == friend_id).first()


def _friend_pet(db: Session, friend_id: int) -> Pet:
    # A visit never creates the friend's pet nor runs their daily transition:
    # those belong to the friend's own logins.
    pet = db.query(Pet).filter(Pet.user_id == friend_id).first()
    if not pet:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Your friend has no pet yet")
    return pet


def visit_friend(db: Session, user: User, friend_id: int, now: datetime) -> tuple[User, Pet, Optional[dict]]:
    """Returns (friend, friend's pet, completed mission or None)."""
    friend = require_friend(db, user.id, friend_id)
    pet = _friend_pet(db, friend_id)

    completed = update_mission_progress(db, user.id, "daily", "visit_friend", now)
    logger.info(f"👀 User {user.id} visited user {friend_id}")
    return friend, pet, completed


def _petted_this_week(db: Session, user_id: int, friend_id: int, now: datetime) -> bool:
    start = week_start(now)
    return db.query(FriendInteraction.id).filter(
        FriendInteraction.user_id == user_id,
        FriendInteraction.friend_id == friend_id,
        FriendInteraction.action == FriendAction.pet.value,
        FriendInteraction.created_at >= start,
        FriendInteraction.created_at < start + timedelta(days=7),
    ).first() is not None


def pet_friend(db: Session, user: User, friend_id: int, now: datetime) -> Optional[dict]:
    """
    Cheers up the friend's pet (+1 mood, clamped) and logs the interaction.
    Returns the mission this completed, if any.
    """
    require_friend(db, user.id, friend_id)
    pet = _friend_pet(db, friend_id)
    first_this_week = not _petted_this_week(db, user.id, friend_id, now)

    pet.mood = clamp(pet.mood + PET_MOOD_GAIN)
    db.add(FriendInteraction(
        user_id=user.id, friend_id=friend_id, pet_id=pet.id,
        action=FriendAction.pet.value, created_at=now,
    ))
    db.commit()
    logger.info(f"🐾 User {user.id} petted pet {pet.id} (mood: {pet.mood})")

    completed = [update_mission_progress(db, user.id, "daily", "pet_friend", now)]
    if first_this_week:
        completed.append(update_mission_progress(db, user.id, "weekly", "interact_3_friends", now))
    return next((m for m in completed if m), None)
