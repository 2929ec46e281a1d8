from decimal import Decimal

import transactions
from conftest import auth_headers, make_pet, make_user
from models import Category, Pet, Transaction, User


def post(client, headers, **body):
    return client.post("/api/transactions", headers=headers, json=body)


# ─────────────────────────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────────────────────────

def test_requires_authentication(client):
    response = client.post("/api/transactions", json={"amount": 10, "type": "EXPENSE", "category": "Food"})
    assert response.status_code == 401


def test_invalid_body_is_400_with_details(client, headers):
    response = post(client, headers, amount=-5, type="EXPENSE", category="Food")

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert any(d["field"] == "amount" for d in body["details"])


def test_type_is_required(client, headers):
    response = post(client, headers, amount=10, category="Food")
    assert response.status_code == 400


def test_unknown_type_name_is_rejected(client, headers):
    response = post(client, headers, amount=10, type="GIFT", category="Food")
    assert response.status_code == 400


def test_unknown_category_id_is_404(client, headers):
    response = post(client, headers, amount=10, typeId=1, categoryId=9999)
    assert response.status_code == 404


# ─────────────────────────────────────────────────────────────────────────────
# Side effects
# ─────────────────────────────────────────────────────────────────────────────

def test_balance_moves_with_every_transaction(client, db, user, headers):
    first = post(client, headers, amount=1000, type="INCOME", category="Salary").json()
    second = post(client, headers, amount=300, type="EXPENSE", category="Food").json()

    assert first["newBalance"] == 1000
    assert second["newBalance"] == 700

    db.expire_all()
    stored = db.query(User).filter(User.id == user.id).one()
    rows = db.query(Transaction).filter(Transaction.user_id == user.id).all()
    signed = sum(t.amount if t.type_id == 2 else -t.amount for t in rows)
    assert stored.balance == signed == 700


def test_first_transaction_of_the_day_completes_daily_mission(client, headers):
    first = post(client, headers, amount=50, type="EXPENSE", category="Food").json()
    second = post(client, headers, amount=50, type="EXPENSE", category="Food").json()

    assert first["missionCompleted"]["missionCode"] == "record_transaction"
    assert first["missionCompleted"]["points"] == 10
    assert second["missionCompleted"] is None


def test_expense_nudges_pet_mood_down(client, db, user, headers):
    pet = make_pet(db, user, mood=60)

    post(client, headers, amount=5000, type="EXPENSE", category="Food")

    db.refresh(pet)
    assert pet.mood == 58


def test_income_nudge_is_clamped_at_100(client, db, user, headers):
    pet = make_pet(db, user, mood=99)

    post(client, headers, amount=50000, type="INCOME", category="Salary")

    db.refresh(pet)
    assert pet.mood == 100


def test_unknown_category_name_falls_back_to_other(client, db, headers):
    body = post(client, headers, amount=12, type="EXPENSE", category="Unicorns").json()

    assert body["category"] == "Other"
    other = db.query(Category).filter(Category.id == body["categoryId"]).one()
    assert other.type_id == 1


def test_users_own_category_wins_over_global(client, db, user, headers):
    own = Category(user_id=user.id, name="Food", type_id=1, icon="🥗")
    db.add(own)
    db.commit()

    body = post(client, headers, amount=12, type="EXPENSE", category="Food").json()
    assert body["categoryId"] == own.id


def test_transaction_does_not_create_a_pet(client, db, user, headers):
    response = post(client, headers, amount=12, type="EXPENSE", category="Food")

    assert response.status_code == 200
    assert db.query(Pet).filter(Pet.user_id == user.id).count() == 0


def test_aware_dates_are_stored_as_local_time(client, headers):
    body = post(
        client, headers, amount=12, type="EXPENSE", category="Food", date="2026-03-10T16:30:00Z",
    ).json()
    # Asia/Taipei is UTC+8
    assert body["date"].startswith("2026-03-11T00:30:00")


# ─────────────────────────────────────────────────────────────────────────────
# Listing and deleting
# ─────────────────────────────────────────────────────────────────────────────

def test_list_filters_by_type(client, headers):
    post(client, headers, amount=1000, type="INCOME", category="Salary")
    post(client, headers, amount=20, type="EXPENSE", category="Food")

    incomes = client.get("/api/transactions", headers=headers, params={"type": "INCOME"}).json()
    assert [t["type"] for t in incomes] == ["Income"]

    response = client.get("/api/transactions", headers=headers, params={"type": "LOAN"})
    assert response.status_code == 400


def test_list_filters_by_date_range(client, headers):
    post(client, headers, amount=1, type="EXPENSE", category="Food", date="2026-03-01T12:00:00")
    post(client, headers, amount=2, type="EXPENSE", category="Food", date="2026-03-09T12:00:00")

    rows = client.get(
        "/api/transactions", headers=headers,
        params={"startDate": "2026-03-05T00:00:00", "endDate": "2026-03-31T00:00:00"},
    ).json()
    assert [t["amount"] for t in rows] == [2]


def test_other_users_do_not_see_my_transactions(client, db, headers):
    post(client, headers, amount=20, type="EXPENSE", category="Food")
    bob = make_user(db, email="bob@example.com", name="Bob", public_id="bob")

    assert client.get("/api/transactions", headers=auth_headers(bob)).json() == []


def test_delete_reverses_the_balance(client, headers):
    post(client, headers, amount=500, type="INCOME", category="Salary")
    expense = post(client, headers, amount=200, type="EXPENSE", category="Food").json()

    response = client.delete(f"/api/transactions/{expense['id']}", headers=headers)

    assert response.status_code == 200
    assert response.json()["newBalance"] == 500
    assert client.delete(f"/api/transactions/{expense['id']}", headers=headers).status_code == 404


# ─────────────────────────────────────────────────────────────────────────────
# Money
# ─────────────────────────────────────────────────────────────────────────────

def test_cents_add_up_exactly(client, db, user, headers):
    post(client, headers, amount=0.1, type="INCOME", category="Salary")
    second = post(client, headers, amount=0.2, type="INCOME", category="Salary").json()

    assert second["newBalance"] == 0.3
    assert client.get("/api/dashboard-data", headers=headers).json()["userBalance"] == 0.3
    assert client.get("/api/dashboard/summary", headers=headers).json()["monthly"]["totalIncome"] == 0.3

    db.expire_all()
    assert db.query(User).filter(User.id == user.id).one().balance == Decimal("0.30")


def test_more_than_two_decimals_is_400(client, headers):
    response = post(client, headers, amount=1.005, type="EXPENSE", category="Food")
    assert response.status_code == 400


# ─────────────────────────────────────────────────────────────────────────────
# Best-effort side effects
# ─────────────────────────────────────────────────────────────────────────────

def broken(*args, **kwargs):
    raise RuntimeError("side effect store is down")


def test_failing_pet_update_keeps_the_transaction(client, db, user, headers, monkeypatch):
    make_pet(db, user, mood=60)
    monkeypatch.setattr(transactions, "nudge_pet_for_transaction", broken)

    response = post(client, headers, amount=100, type="INCOME", category="Salary")

    assert response.status_code == 200
    assert response.json()["newBalance"] == 100
    assert response.json()["missionCompleted"]["missionCode"] == "record_transaction"
    assert db.query(Transaction).filter(Transaction.user_id == user.id).count() == 1


def test_failing_mission_update_keeps_the_transaction(client, db, user, headers, monkeypatch):
    monkeypatch.setattr(transactions, "update_mission_progress", broken)

    response = post(client, headers, amount=100, type="EXPENSE", category="Food")

    assert response.status_code == 200
    assert response.json()["newBalance"] == -100
    assert response.json()["missionCompleted"] is None
    assert db.query(Transaction).filter(Transaction.user_id == user.id).count() == 1
