import os

# Must be set before database.py is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

import clock
import models  # noqa: F401  (registers every table on Base)
from auth import create_access_token, hash_password
from database import Base, SessionLocal, engine
from main import app
from missions import seed_missions
from models import Pet, PetPurchase, User
from transactions import seed_default_categories

# A Wednesday, mid-month
START = datetime(2026, 3, 11, 10, 0)


class FrozenClock:
    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs):
        self.moment = self.moment + timedelta(**kwargs)
        return self.moment


@pytest.fixture
def frozen_clock(monkeypatch):
    fake = FrozenClock(START)
    monkeypatch.setattr(clock, "local_now", fake)
    return fake


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_missions(session)
    seed_default_categories(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db, frozen_clock):
    return TestClient(app)


def make_user(db, email="alice@example.com", name="Alice", public_id="alice") -> User:
    user = User(email=email, password_hash=hash_password("secret123"), name=name, public_id=public_id)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}


def make_pet(db, user: User, now: datetime = START, **overrides) -> Pet:
    """A pet that already visited today, so reads do not move its stats"""
    fields = {
        "name": "My Pet", "points": 50, "fullness": 70, "mood": 70,
        "last_login_date": now, "last_daily_reset": clock.day_start(now),
        "consecutive_login_days": 1,
    }
    fields.update(overrides)
    pet = Pet(user_id=user.id, **fields)
    db.add(pet)
    db.commit()
    db.refresh(pet)
    return pet


def buy(db, pet: Pet, item_id: str, category: str, quantity: int = 1, item_name=None) -> PetPurchase:
    purchase = PetPurchase(pet_id=pet.id, item_id=item_id, item_name=item_name, category=category, quantity=quantity)
    db.add(purchase)
    db.commit()
    return purchase


@pytest.fixture
def user(db) -> User:
    return make_user(db)


@pytest.fixture
def headers(user) -> dict:
    return auth_headers(user)
