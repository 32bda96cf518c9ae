from fastapi.testclient import TestClient
from sqlmodel import Session


def test_request_and_accept_flow(
    client: TestClient, login_as, test_session: Session, alice, bob
):
    # As Alice
    login_as(alice)

    # Nothing yet
    r = client.get("/friend-requests")
    assert r.status_code == 200
    assert r.json()["data"] == {"received": [], "sent": []}

    # Send request, email lookup ignores case
    r = client.post("/friend-requests", json={"email": "B@X.COM"})
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["friendRequest"]["status"] == "pending"
    assert data["receiver"] == {"id": bob.id, "name": "Bob", "email": "b@x.com"}
    request_id = data["friendRequest"]["id"]

    # Outgoing for Alice
    r = client.get("/friend-requests")
    assert [s["receiver_id"] for s in r.json()["data"]["sent"]] == [bob.id]

    # Duplicate, in either direction, conflicts
    r = client.post("/friend-requests", json={"email": "b@x.com"})
    assert r.status_code == 409

    # Alice cannot accept her own request
    r = client.post(f"/friend-requests/{request_id}/accept")
    assert r.status_code == 403

    # Switch to Bob
    login_as(bob)
    r = client.post("/friend-requests", json={"email": "a@x.com"})
    assert r.status_code == 409

    r = client.get("/friend-requests")
    received = r.json()["data"]["received"]
    assert len(received) == 1
    assert received[0]["sender_name"] == "Alice"

    r = client.post(f"/friend-requests/{request_id}/accept")
    assert r.status_code == 200
    friendship = r.json()["data"]["friendship"]
    assert (friendship["user1_id"], friendship["user2_id"]) == (alice.id, bob.id)

    # Accepting twice is a conflict, the request is resolved
    r = client.post(f"/friend-requests/{request_id}/accept")
    assert r.status_code == 409
    r = client.post(f"/friend-requests/{request_id}/reject")
    assert r.status_code == 409

    # Friends from both perspectives
    r = client.get("/friend-requests/friends")
    assert [f["friend_id"] for f in r.json()["data"]["friends"]] == [alice.id]
    login_as(alice)
    r = client.get("/friend-requests/friends")
    assert [f["friend_id"] for f in r.json()["data"]["friends"]] == [bob.id]

    # Nothing pending anymore
    r = client.get("/friend-requests")
    assert r.json()["data"] == {"received": [], "sent": []}


def test_reject_flow(client: TestClient, login_as, alice, bob):
    login_as(alice)
    request_id = client.post("/friend-requests", json={"email": bob.email}).json()[
        "data"
    ]["friendRequest"]["id"]

    login_as(bob)
    r = client.post(f"/friend-requests/{request_id}/reject")
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Friend request rejected"}
    assert client.get("/friend-requests/friends").json()["data"]["friends"] == []

    # A new request may follow a rejection
    r = client.post("/friend-requests", json={"email": alice.email})
    assert r.status_code == 201


def test_request_errors(client: TestClient, login_as, alice):
    login_as(alice)

    r = client.post("/friend-requests", json={"email": "ghost@x.com"})
    assert r.status_code == 404
    assert r.json()["success"] is False

    r = client.post("/friend-requests", json={"email": alice.email})
    assert r.status_code == 400

    r = client.post("/friend-requests", json={"email": ""})
    assert r.status_code == 400

    r = client.post("/friend-requests/999/accept")
    assert r.status_code == 404


def test_remove_friend(client: TestClient, login_as, alice, bob, befriend):
    befriend(alice, bob)
    login_as(bob)

    r = client.delete(f"/friend-requests/friends/{alice.id}")
    assert r.status_code == 200
    assert client.get("/friend-requests/friends").json()["data"]["friends"] == []

    r = client.delete(f"/friend-requests/friends/{alice.id}")
    assert r.status_code == 404


def test_routes_require_authentication(client: TestClient):
    for method, url in [
        ("get", "/friend-requests"),
        ("post", "/friend-requests/1/accept"),
        ("get", "/friend-requests/friends"),
        ("delete", "/friend-requests/friends/u1"),
    ]:
        r = getattr(client, method)(url)
        assert r.status_code == 401, url
