"""
=============================================================================
TRANSACTIONS.PY — Recording income and expenses
=============================================================================
Creating a transaction sets off a small chain:

  1. The transaction row is saved          ← the only step that must succeed
  2. user.balance moves by ±amount         (single atomic UPDATE)
  3. The pet's mood is nudged              (income up, expense down)
  4. "Record a transaction" missions advance (daily + weekly)

Steps 2-4 run after step 1 is committed and are best effort: if one fails
it is logged and skipped, the transaction is NOT rolled back.

Amounts are Decimal end to end (Numeric(12, 2) columns), so the running
balance never picks up binary float noise.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from models import Category, Transaction, TransactionType, User
from missions import RECORD_5_DAYS, RECORD_TRANSACTION, update_mission_progress
from pet_state import nudge_pet_for_transaction

logger = logging.getLogger("pawledger.transactions")

FALLBACK_CATEGORY = "Other"

TYPE_NAMES = {
    "EXPENSE": TransactionType.expense,
    "INCOME": TransactionType.income,
}


def type_label(type_id: int) -> str:
    return TransactionType(type_id).name.capitalize()


def signed_amount(type_id: int, amount: Decimal) -> Decimal:
    return amount if type_id == TransactionType.income else -amount


# =============================================================================
# ===================== CATEGORIES ============================================
# =============================================================================

DEFAULT_CATEGORIES = [
    # (name, type, icon)
    ("Food", TransactionType.expense, "🍜"),
    ("Transport", TransactionType.expense, "🚌"),
    ("Shopping", TransactionType.expense, "🛍️"),
    ("Entertainment", TransactionType.expense, "🎮"),
    ("Bills", TransactionType.expense, "🧾"),
    (FALLBACK_CATEGORY, TransactionType.expense, "📝"),
    ("Salary", TransactionType.income, "💼"),
    ("Bonus", TransactionType.income, "🎁"),
    ("Investment", TransactionType.income, "📈"),
    (FALLBACK_CATEGORY, TransactionType.income, "📝"),
]


def seed_default_categories(db: Session):
    """Global categories (user_id NULL). Only inserts the missing ones."""
    existing = {
        (c.name, c.type_id)
        for c in db.query(Category).filter(Category.user_id == None).all()
    }
    added = 0
    for order, (name, type_id, icon) in enumerate(DEFAULT_CATEGORIES):
        if (name, type_id.value) in existing:
            continue
        db.add(Category(
            name=name, type_id=type_id.value, icon=icon,
            is_default=name == FALLBACK_CATEGORY, sort_order=order,
        ))
        added += 1
    db.commit()
    if added:
        logger.info(f"🌱 {added} default categories created")


def _visible_categories(db: Session, user_id: int, type_id: int):
    """Global defaults plus the user's own categories of one type"""
    return db.query(Category).filter(
        Category.type_id == type_id,
        or_(Category.user_id == None, Category.user_id == user_id),
    )


def resolve_category(
    db: Session,
    user_id: int,
    type_id: int,
    category_id: Optional[int] = None,
    category_name: Optional[str] = None,
) -> Category:
    """
    By id → must exist and be visible to the user, else 404.
    By name → the user's own category wins over a global one; an unknown
    name falls back to "Other" of the same type (created if missing).
    """
    categories = _visible_categories(db, user_id, type_id)

    if category_id is not None:
        category = categories.filter(Category.id == category_id).first()
        if not category:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
        return category

    if category_name:
        matches = categories.filter(Category.name == category_name).all()
        if matches:
            return sorted(matches, key=lambda c: c.user_id is None)[0]

    fallback = categories.filter(Category.name == FALLBACK_CATEGORY).first()
    if fallback:
        return fallback

    fallback = Category(name=FALLBACK_CATEGORY, type_id=type_id, icon="📝", is_default=True, sort_order=len(DEFAULT_CATEGORIES))
    db.add(fallback)
    db.commit()
    db.refresh(fallback)
    logger.info(f"📝 Created fallback '{FALLBACK_CATEGORY}' category for type {type_id}")
    return fallback


# =============================================================================
# ===================== CREATE ================================================
# =============================================================================

def create_transaction(
    db: Session,
    user: User,
    type_id: int,
    amount: Decimal,
    now: datetime,
    category_id: Optional[int] = None,
    category_name: Optional[str] = None,
    date: Optional[datetime] = None,
    note: Optional[str] = None,
) -> dict:
    """
    Returns {"transaction", "new_balance", "mission_completed"}.
    """
    category = resolve_category(db, user.id, type_id, category_id, category_name)

    # 1. Durability boundary
    transaction = Transaction(
        user_id=user.id,
        category_id=category.id,
        amount=amount,
        type_id=type_id,
        date=date or now,
        note=note,
    )
    db.add(transaction)
    db.commit()
    db.refresh(transaction)
    logger.info(f"➕ Transaction {transaction.id}: {type_label(type_id)} {amount} (user: {user.id})")

    # 2. Balance
    try:
        db.query(User).filter(User.id == user.id).update(
            {User.balance: User.balance + signed_amount(type_id, amount)},
            synchronize_session=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"❌ Balance update failed for transaction {transaction.id}")

    # 3. Pet mood
    try:
        nudge_pet_for_transaction(db, user.id, type_id, amount)
    except Exception:
        db.rollback()
        logger.exception(f"❌ Pet update failed for transaction {transaction.id}")

    # 4. Missions
    mission_completed = None
    try:
        completed = [
            update_mission_progress(db, user.id, "daily", RECORD_TRANSACTION, now),
            update_mission_progress(db, user.id, "weekly", RECORD_5_DAYS, now),
        ]
        mission_completed = next((m for m in completed if m), None)
    except Exception:
        db.rollback()
        logger.exception(f"❌ Mission update failed for transaction {transaction.id}")

    db.refresh(user)
    db.refresh(transaction)
    return {
        "transaction": transaction,
        "new_balance": user.balance,
        "mission_completed": mission_completed,
    }


# =============================================================================
# ===================== READ / DELETE =========================================
# =============================================================================

def list_transactions(
    db: Session,
    user_id: int,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    type_id: Optional[int] = None,
) -> list[Transaction]:
    query = db.query(Transaction).options(joinedload(Transaction.category)).filter(Transaction.user_id == user_id)
    if start_date:
        query = query.filter(Transaction.date >= start_date)
    if end_date:
        query = query.filter(Transaction.date <= end_date)
    if type_id:
        query = query.filter(Transaction.type_id == type_id)
    return query.order_by(Transaction.date.desc()).all()


def recent_transactions(db: Session, user_id: int, limit: int = 10) -> list[Transaction]:
    return (
        db.query(Transaction)
        .options(joinedload(Transaction.category))
        .filter(Transaction.user_id == user_id)
        .order_by(Transaction.date.desc())
        .limit(limit)
        .all()
    )


def delete_transaction(db: Session, user: User, transaction_id: int) -> Decimal:
    """Deletes the row and takes its amount back out of the balance."""
    transaction = db.query(Transaction).filter(
        Transaction.id == transaction_id, Transaction.user_id == user.id
    ).first()
    if not transaction:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    reversal = -signed_amount(transaction.type_id, transaction.amount)
    db.delete(transaction)
    db.query(User).filter(User.id == user.id).update(
        {User.balance: User.balance + reversal}, synchronize_session=False
    )
    db.commit()
    db.refresh(user)

    logger.info(f"🗑️ Transaction {transaction_id} deleted (user: {user.id})")
    return user.balance
