"""
API tests for profiles, friend codes and the friend graph.
"""
from wishqr.core.codes import DATA_URL_PREFIX


def _setup(client, headers, **body) -> dict:
    response = client.post("/api/users/setup", json=body, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def _friend_ids(client, headers) -> list[str]:
    response = client.get("/api/friends", headers=headers)
    assert response.status_code == 200
    return [f["id"] for f in response.json()["friends"]]


class TestUserSetup:
    def test_first_setup_creates_profile(self, client, auth):
        body = _setup(client, auth("alice"), displayName="Alice", email="alice@example.com")
        assert body["isNew"] is True
        assert body["user"]["id"] == "alice"
        assert body["user"]["displayName"] == "Alice"
        assert body["user"]["email"] == "alice@example.com"
        assert body["user"]["wishlistId"] is None

    def test_repeat_setup_returns_existing(self, client, auth):
        headers = auth("alice")
        _setup(client, headers, displayName="Alice")
        body = _setup(client, headers, displayName="Someone else")
        assert body["isNew"] is False
        assert body["user"]["displayName"] == "Alice"

    def test_display_name_from_token_email(self, client, auth):
        body = _setup(client, auth("alice", email="alice.w@example.com"))
        assert body["user"]["email"] == "alice.w@example.com"
        assert body["user"]["displayName"] == "alice.w"

    def test_display_name_from_token_name(self, client, auth):
        body = _setup(client, auth("alice", name="Alice Token", email="alice.w@example.com"))
        assert body["user"]["displayName"] == "Alice Token"

    def test_body_display_name_wins_over_token(self, client, auth):
        body = _setup(client, auth("alice", name="Alice Token"), displayName="Alice")
        assert body["user"]["displayName"] == "Alice"

    def test_setup_without_body(self, client, auth):
        response = client.post("/api/users/setup", headers=auth("alice"))
        assert response.status_code == 200
        assert response.json()["user"]["displayName"] == "User"

    def test_invalid_email_rejected(self, client, auth):
        response = client.post("/api/users/setup", json={"email": "not-an-email"}, headers=auth("alice"))
        assert response.status_code == 400
        assert "error" in response.json()


class TestFriendCode:
    def test_friend_code(self, client, auth):
        headers = auth("alice")
        _setup(client, headers, displayName="Alice")
        response = client.get("/api/users/me/qr", headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["userId"] == "alice"
        assert body["deepLink"] == "wishlist://friend/alice"
        assert body["qrCode"].startswith(DATA_URL_PREFIX)

    def test_friend_code_requires_profile(self, client, auth):
        response = client.get("/api/users/me/qr", headers=auth("ghost"))
        assert response.status_code == 404


class TestAddFriends:
    def test_email_then_code_is_symmetric(self, client, auth):
        alice, bob = auth("alice"), auth("bob")
        _setup(client, alice, displayName="Alice", email="alice@example.com")
        _setup(client, bob, displayName="Bob", email="bob@example.com")

        response = client.post("/api/friends/add-by-email", json={"email": "bob@example.com"}, headers=alice)
        assert response.status_code == 200
        assert response.json()["friend"]["id"] == "bob"

        response = client.post("/api/friends/add-by-qr", json={"friendId": "alice"}, headers=bob)
        assert response.status_code == 400
        assert response.json() == {"error": "Already friends"}

        assert _friend_ids(client, alice) == ["bob"]
        assert _friend_ids(client, bob) == ["alice"]

    def test_code_then_email_is_idempotent(self, client, auth):
        alice, bob = auth("alice"), auth("bob")
        _setup(client, alice, displayName="Alice", email="alice@example.com")
        _setup(client, bob, displayName="Bob", email="bob@example.com")

        assert client.post("/api/friends/add-by-qr", json={"friendId": "bob"}, headers=alice).status_code == 200
        assert client.post("/api/friends/add-by-email", json={"email": "alice@example.com"}, headers=bob).status_code == 200
        assert client.post("/api/friends/add-by-email", json={"email": "bob@example.com"}, headers=alice).status_code == 200

        assert _friend_ids(client, alice) == ["bob"]
        assert _friend_ids(client, bob) == ["alice"]

    def test_email_lookup_ignores_case(self, client, auth):
        alice, bob = auth("alice"), auth("bob")
        _setup(client, alice, displayName="Alice", email="alice@example.com")
        _setup(client, bob, displayName="Bob", email="Bob@Example.com")

        response = client.post("/api/friends/add-by-email", json={"email": "  BOB@example.COM "}, headers=alice)
        assert response.status_code == 200
        assert response.json()["friend"]["displayName"] == "Bob"

    def test_friend_listing_fields(self, client, auth):
        alice, bob = auth("alice"), auth("bob")
        _setup(client, alice, displayName="Alice", email="alice@example.com")
        _setup(client, bob, displayName="Bob", email="bob@example.com")
        client.post("/api/friends/add-by-qr", json={"friendId": "bob"}, headers=alice)

        friend = client.get("/api/friends", headers=alice).json()["friends"][0]
        assert friend["displayName"] == "Bob"
        assert friend["email"] == "bob@example.com"
        assert friend["addedAt"] is not None

    def test_cannot_add_self(self, client, auth):
        alice = auth("alice")
        _setup(client, alice, displayName="Alice", email="alice@example.com")

        by_email = client.post("/api/friends/add-by-email", json={"email": "alice@example.com"}, headers=alice)
        by_code = client.post("/api/friends/add-by-qr", json={"friendId": "alice"}, headers=alice)
        for response in (by_email, by_code):
            assert response.status_code == 400
            assert response.json() == {"error": "You cannot add yourself"}
        assert _friend_ids(client, alice) == []

    def test_missing_fields(self, client, auth):
        alice = auth("alice")
        _setup(client, alice, displayName="Alice")

        response = client.post("/api/friends/add-by-email", json={}, headers=alice)
        assert response.status_code == 400
        assert response.json() == {"error": "Email is required"}

        response = client.post("/api/friends/add-by-qr", json={"friendId": ""}, headers=alice)
        assert response.status_code == 400
        assert response.json() == {"error": "Friend id is required"}

    def test_unknown_friend(self, client, auth):
        alice = auth("alice")
        _setup(client, alice, displayName="Alice")

        response = client.post("/api/friends/add-by-email", json={"email": "nobody@example.com"}, headers=alice)
        assert response.status_code == 404
        assert response.json() == {"error": "No user found with this email"}

        response = client.post("/api/friends/add-by-qr", json={"friendId": "nobody"}, headers=alice)
        assert response.status_code == 404

    def test_requester_without_profile(self, client, auth):
        _setup(client, auth("bob"), displayName="Bob", email="bob@example.com")
        response = client.post("/api/friends/add-by-email", json={"email": "bob@example.com"}, headers=auth("ghost"))
        assert response.status_code == 404
        assert response.json() == {"error": "User not found"}

    def test_requires_auth(self, client):
        assert client.get("/api/friends").status_code == 401
        assert client.post("/api/friends/add-by-qr", json={"friendId": "x"}).status_code == 401
