from conftest import START


def expense(client, headers, date=None):
    body = {"amount": 10, "type": "EXPENSE", "category": "Food"}
    if date:
        body["date"] = date
    return client.post("/api/transactions", headers=headers, json=body).json()


def mission(missions, code):
    return next(m for m in missions if m["missionCode"] == code)


def test_catalog_is_listed_with_zero_progress(client, headers):
    missions = client.get("/api/missions", headers=headers).json()

    codes = {m["missionCode"] for m in missions}
    assert {"record_transaction", "visit_friend", "pet_friend", "record_5_days", "interact_3_friends"} <= codes
    daily = mission(missions, "record_transaction")
    assert (daily["progress"], daily["target"], daily["points"]) == (0, 1, 10)
    assert daily["completed"] is False
    weekly = mission(missions, "record_5_days")
    assert weekly["weekStart"].startswith("2026-03-09T00:00:00")


def test_claim_pays_reward_exactly_once(client, headers):
    client.get("/api/dashboard-data", headers=headers)
    expense(client, headers)

    response = client.post("/api/missions/claim", headers=headers, json={"missionCode": "record_transaction"})
    assert response.status_code == 200
    assert response.json()["points"] == 50 + 10

    again = client.post("/api/missions/claim", headers=headers, json={"missionCode": "record_transaction"})
    assert again.status_code == 400

    pet = client.get("/api/dashboard-data", headers=headers).json()["pet"]
    assert pet["points"] == 60


def test_claimed_mission_is_no_longer_unclaimed(client, headers):
    client.get("/api/dashboard-data", headers=headers)
    expense(client, headers)
    client.post("/api/missions/claim", headers=headers, json={"missionCode": "record_transaction"})

    data = client.get("/api/dashboard-data", headers=headers).json()
    assert data["hasUnclaimedMissions"] is False


def test_cannot_claim_incomplete_mission(client, headers):
    client.get("/api/missions", headers=headers)

    response = client.post("/api/missions/claim", headers=headers, json={"missionCode": "visit_friend"})
    assert response.status_code == 400


def test_cannot_claim_unknown_mission(client, headers):
    response = client.post("/api/missions/claim", headers=headers, json={"missionCode": "fly_to_moon"})
    assert response.status_code == 404


def test_report_progress_completes_mission(client, headers):
    response = client.post("/api/missions", headers=headers, json={"type": "daily", "missionCode": "visit_friend"})

    assert response.status_code == 200
    body = response.json()
    assert body["completed"] is True
    assert body["mission"]["progress"] == 1


def test_on_demand_mission_is_created_when_reported(client, headers):
    response = client.post("/api/missions", headers=headers, json={"type": "daily", "missionId": "check_pet"})

    assert response.status_code == 200
    assert response.json()["mission"]["missionCode"] == "check_pet"


def test_report_unknown_mission_is_404(client, headers):
    response = client.post("/api/missions", headers=headers, json={"type": "daily", "missionCode": "nope"})
    assert response.status_code == 404


def test_daily_mission_resets_the_next_day(client, headers, frozen_clock):
    expense(client, headers)
    frozen_clock.advance(days=1)

    daily = mission(client.get("/api/missions", headers=headers).json(), "record_transaction")
    assert daily["progress"] == 0
    assert daily["completed"] is False


def test_weekly_mission_counts_distinct_days(client, headers):
    # START is a Wednesday; the week began on Monday the 9th
    for day in (9, 9, 10, 11, 12):
        result = expense(client, headers, date=f"2026-03-{day:02d}T12:00:00")
    assert result["missionCompleted"] is None

    weekly = mission(client.get("/api/missions", headers=headers).json(), "record_5_days")
    assert weekly["progress"] == 4

    result = expense(client, headers, date="2026-03-13T12:00:00")
    assert result["missionCompleted"]["missionCode"] == "record_5_days"


def test_last_weeks_transactions_do_not_count(client, headers):
    expense(client, headers, date="2026-03-06T12:00:00")
    expense(client, headers, date=START.isoformat())

    weekly = mission(client.get("/api/missions", headers=headers).json(), "record_5_days")
    assert weekly["progress"] == 1


def test_mission_completed_before_midnight_can_be_claimed_after(client, headers, frozen_clock):
    frozen_clock.advance(hours=13, minutes=50)
    client.get("/api/dashboard-data", headers=headers)
    expense(client, headers)
    frozen_clock.advance(minutes=20)

    unclaimed = client.get("/api/dashboard/summary/fast", headers=headers).json()["unclaimedMissions"]
    assert [m["missionCode"] for m in unclaimed["missions"]] == ["record_transaction"]

    response = client.post("/api/missions/claim", headers=headers, json={"missionCode": "record_transaction"})
    assert response.status_code == 200
    assert response.json()["points"] == 60

    again = client.post("/api/missions/claim", headers=headers, json={"missionCode": "record_transaction"})
    assert again.status_code == 404
    assert client.get("/api/dashboard-data", headers=headers).json()["hasUnclaimedMissions"] is False
