import pytest

from conftest import auth_headers, make_pet, make_user
from models import Friend, FriendInteraction, Pet


@pytest.fixture
def bob(db):
    return make_user(db, email="bob@example.com", name="Bob", public_id="bob")


def test_invite_and_accept(client, headers, bob):
    invite = client.post("/api/friends/invitations", headers=headers, json={"userID": "bob"})
    assert invite.status_code == 200
    assert invite.json()["status"] == "PENDING"

    bob_headers = auth_headers(bob)
    assert client.get("/api/friends/invitations/count", headers=bob_headers).json() == {"count": 1}
    # The sender has nothing to answer
    assert client.get("/api/friends/invitations/count", headers=headers).json() == {"count": 0}

    accepted = client.post(f"/api/friends/invitations/{invite.json()['id']}/accept", headers=bob_headers)
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "ACCEPTED"

    assert [f["userID"] for f in client.get("/api/friends", headers=headers).json()] == ["bob"]
    assert [f["userID"] for f in client.get("/api/friends", headers=bob_headers).json()] == ["alice"]
    assert client.get("/api/friends/invitations/count", headers=bob_headers).json() == {"count": 0}


def test_pending_invitation_is_not_a_friendship(client, headers, bob):
    client.post("/api/friends/invitations", headers=headers, json={"userID": "bob"})
    assert client.get("/api/friends", headers=headers).json() == []


def test_cannot_invite_yourself(client, headers):
    response = client.post("/api/friends/invitations", headers=headers, json={"userID": "alice"})
    assert response.status_code == 400


def test_unknown_user_is_404(client, headers):
    response = client.post("/api/friends/invitations", headers=headers, json={"userID": "nobody"})
    assert response.status_code == 404


def test_duplicate_invitation_in_either_direction_is_409(client, headers, bob):
    client.post("/api/friends/invitations", headers=headers, json={"userID": "bob"})

    again = client.post("/api/friends/invitations", headers=headers, json={"userID": "bob"})
    reverse = client.post("/api/friends/invitations", headers=auth_headers(bob), json={"userID": "alice"})
    assert again.status_code == 409
    assert reverse.status_code == 409


def test_only_the_recipient_can_accept(client, headers, bob):
    invite = client.post("/api/friends/invitations", headers=headers, json={"userID": "bob"}).json()

    response = client.post(f"/api/friends/invitations/{invite['id']}/accept", headers=headers)
    assert response.status_code == 404


# ─────────────────────────────────────────────────────────────────────────────
# Rejecting
# ─────────────────────────────────────────────────────────────────────────────

def test_recipient_can_reject_and_be_invited_again(client, db, headers, bob):
    invite = client.post("/api/friends/invitations", headers=headers, json={"userID": "bob"}).json()
    bob_headers = auth_headers(bob)

    response = client.post(f"/api/friends/invitations/{invite['id']}/reject", headers=bob_headers)

    assert response.status_code == 200
    assert db.query(Friend).count() == 0
    assert client.get("/api/friends/invitations/count", headers=bob_headers).json() == {"count": 0}
    again = client.post("/api/friends/invitations", headers=headers, json={"userID": "bob"})
    assert again.status_code == 200


def test_only_the_recipient_can_reject(client, headers, bob):
    invite = client.post("/api/friends/invitations", headers=headers, json={"userID": "bob"}).json()

    response = client.post(f"/api/friends/invitations/{invite['id']}/reject", headers=headers)
    assert response.status_code == 403


def test_rejecting_unknown_or_answered_invitation(client, headers, bob):
    bob_headers = auth_headers(bob)
    assert client.post("/api/friends/invitations/999/reject", headers=bob_headers).status_code == 404

    invite = client.post("/api/friends/invitations", headers=headers, json={"userID": "bob"}).json()
    client.post(f"/api/friends/invitations/{invite['id']}/accept", headers=bob_headers)
    response = client.post(f"/api/friends/invitations/{invite['id']}/reject", headers=bob_headers)
    assert response.status_code == 400


# ─────────────────────────────────────────────────────────────────────────────
# Visiting and petting
# ─────────────────────────────────────────────────────────────────────────────

def befriend(db, user, other):
    db.add(Friend(user_id=user.id, friend_id=other.id, status="ACCEPTED"))
    db.commit()


def mission(client, headers, code):
    missions = client.get("/api/missions", headers=headers).json()
    return next(m for m in missions if m["missionCode"] == code)


def test_visit_shows_the_friends_pet_and_completes_daily_mission(client, db, user, headers, bob):
    befriend(db, user, bob)
    make_pet(db, bob, mood=40)

    first = client.get(f"/api/friends/{bob.id}", headers=headers)
    assert first.status_code == 200
    body = first.json()
    assert body["pet"]["mood"] == 40
    assert body["user"]["userID"] == "bob"
    assert body["missionCompleted"]["missionCode"] == "visit_friend"

    second = client.get(f"/api/friends/{bob.id}", headers=headers).json()
    assert second["missionCompleted"] is None
    assert mission(client, headers, "visit_friend")["completed"] is True


def test_friendship_works_from_the_accepting_side(client, db, user, bob):
    befriend(db, user, bob)
    make_pet(db, user)

    response = client.get(f"/api/friends/{user.id}", headers=auth_headers(bob))
    assert response.status_code == 200


def test_visiting_a_non_friend_is_403(client, db, headers, bob):
    make_pet(db, bob)
    assert client.get(f"/api/friends/{bob.id}", headers=headers).status_code == 403
    assert client.post(f"/api/friends/{bob.id}/pet", headers=headers).status_code == 403


def test_pending_invitation_does_not_allow_visits(client, db, headers, bob):
    make_pet(db, bob)
    client.post("/api/friends/invitations", headers=headers, json={"userID": "bob"})

    assert client.get(f"/api/friends/{bob.id}", headers=headers).status_code == 403


def test_friend_without_a_pet_is_404(client, db, user, headers, bob):
    befriend(db, user, bob)

    assert client.get(f"/api/friends/{bob.id}", headers=headers).status_code == 404
    assert client.post(f"/api/friends/{bob.id}/pet", headers=headers).status_code == 404
    assert db.query(Pet).filter(Pet.user_id == bob.id).count() == 0


def test_petting_cheers_up_the_friends_pet(client, db, user, headers, bob):
    befriend(db, user, bob)
    pet = make_pet(db, bob, mood=99)

    first = client.post(f"/api/friends/{bob.id}/pet", headers=headers)
    assert first.status_code == 200
    assert first.json()["moodGain"] == 1
    assert first.json()["missionCompleted"]["missionCode"] == "pet_friend"

    client.post(f"/api/friends/{bob.id}/pet", headers=headers)
    db.refresh(pet)
    assert pet.mood == 100
    assert db.query(FriendInteraction).filter(FriendInteraction.friend_id == bob.id).count() == 2


def test_weekly_mission_counts_distinct_friends(client, db, user, headers, bob):
    carol = make_user(db, email="carol@example.com", name="Carol", public_id="carol")
    dave = make_user(db, email="dave@example.com", name="Dave", public_id="dave")
    for friend in (bob, carol, dave):
        befriend(db, user, friend)
        make_pet(db, friend)

    client.post(f"/api/friends/{bob.id}/pet", headers=headers)
    client.post(f"/api/friends/{bob.id}/pet", headers=headers)
    assert mission(client, headers, "interact_3_friends")["progress"] == 1

    client.post(f"/api/friends/{carol.id}/pet", headers=headers)
    last = client.post(f"/api/friends/{dave.id}/pet", headers=headers).json()

    assert last["missionCompleted"]["missionCode"] == "interact_3_friends"
    assert mission(client, headers, "interact_3_friends")["completed"] is True


def test_same_friend_counts_again_next_week(client, db, user, headers, bob, frozen_clock):
    befriend(db, user, bob)
    make_pet(db, bob)

    client.post(f"/api/friends/{bob.id}/pet", headers=headers)
    frozen_clock.advance(days=7)
    client.post(f"/api/friends/{bob.id}/pet", headers=headers)

    assert mission(client, headers, "interact_3_friends")["progress"] == 1
