"""
API tests for wishlist items and the running total they drive.
"""
import pytest


def _create(client, headers, **body) -> str:
    response = client.post("/api/wishlists", json=body, headers=headers)
    assert response.status_code == 201
    return response.json()["wishlist"]["id"]


def _add(client, headers, wishlist_id, **body) -> dict:
    response = client.post(f"/api/wishlists/{wishlist_id}/items", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["item"]


def _total(client, wishlist_id) -> float:
    return client.get(f"/api/wishlists/{wishlist_id}").json()["wishlist"]["totalAmount"]


class TestItemTotals:
    def test_add_update_delete_scenario(self, client, auth):
        headers = auth("owner-1")
        wishlist_id = _create(client, headers, name="Birthday")

        a = _add(client, headers, wishlist_id, name="Headphones", price=50)
        b = _add(client, headers, wishlist_id, name="Book", price=30)
        assert _total(client, wishlist_id) == 80

        response = client.put(
            f"/api/wishlists/{wishlist_id}/items/{a['id']}",
            json={"name": "Headphones", "price": 20},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["item"]["price"] == 20
        assert _total(client, wishlist_id) == 50

        response = client.delete(f"/api/wishlists/{wishlist_id}/items/{b['id']}", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Item deleted"}
        assert _total(client, wishlist_id) == 20

        items = client.get(f"/api/wishlists/{wishlist_id}").json()["wishlist"]["items"]
        assert [item["name"] for item in items] == ["Headphones"]

    def test_items_keep_insertion_order(self, client, auth):
        headers = auth("owner-1")
        wishlist_id = _create(client, headers)
        for name in ("One", "Two", "Three"):
            _add(client, headers, wishlist_id, name=name, price=1)

        items = client.get(f"/api/wishlists/{wishlist_id}").json()["wishlist"]["items"]
        assert [item["name"] for item in items] == ["One", "Two", "Three"]

    def test_cents_are_exact(self, client, auth):
        headers = auth("owner-1")
        wishlist_id = _create(client, headers)
        for _ in range(3):
            _add(client, headers, wishlist_id, name="Sticker", price=0.1)
        assert _total(client, wishlist_id) == 0.3


class TestItemCoercion:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("12.5", 12.5),
            ("19.99 USD", 19.99),
            ("abc", 0),
            (-10, 0),
            (None, 0),
            (5.005, 5.01),
            ("9999999999.99", 9999999999.99),
            ("10000000000", 0),
            ("1e30", 0),
            (10**40, 0),
        ],
    )
    def test_price_coercion(self, client, auth, raw, expected):
        headers = auth("owner-1")
        wishlist_id = _create(client, headers)
        item = _add(client, headers, wishlist_id, name="Thing", price=raw)
        assert item["price"] == expected
        assert _total(client, wishlist_id) == expected

    def test_item_defaults(self, client, auth):
        headers = auth("owner-1")
        wishlist_id = _create(client, headers)
        item = _add(client, headers, wishlist_id)
        assert item["name"] == "Unnamed item"
        assert item["price"] == 0
        assert item["description"] == ""
        assert item["imageUrl"] is None
        assert item["collectedAmount"] == 0
        assert item["isCompleted"] is False

    def test_update_empty_name_keeps_previous(self, client, auth):
        headers = auth("owner-1")
        wishlist_id = _create(client, headers)
        item = _add(client, headers, wishlist_id, name="Lamp", price=10, description="Desk lamp")

        response = client.put(
            f"/api/wishlists/{wishlist_id}/items/{item['id']}",
            json={"name": "", "price": 15},
            headers=headers,
        )
        updated = response.json()["item"]
        assert updated["name"] == "Lamp"
        assert updated["price"] == 15
        assert updated["description"] == ""

    def test_update_invalid_price_becomes_zero(self, client, auth):
        headers = auth("owner-1")
        wishlist_id = _create(client, headers)
        item = _add(client, headers, wishlist_id, name="Lamp", price=10)

        client.put(
            f"/api/wishlists/{wishlist_id}/items/{item['id']}",
            json={"name": "Lamp", "price": "free"},
            headers=headers,
        )
        assert _total(client, wishlist_id) == 0


class TestItemAccess:
    def test_add_forbidden(self, client, auth):
        wishlist_id = _create(client, auth("owner-1"))
        response = client.post(
            f"/api/wishlists/{wishlist_id}/items", json={"name": "x", "price": 5}, headers=auth("owner-2")
        )
        assert response.status_code == 403
        assert _total(client, wishlist_id) == 0

    def test_add_missing_wishlist(self, client, auth):
        response = client.post("/api/wishlists/nope/items", json={"name": "x"}, headers=auth("owner-1"))
        assert response.status_code == 404

    def test_update_missing_item(self, client, auth):
        headers = auth("owner-1")
        wishlist_id = _create(client, headers)
        response = client.put(f"/api/wishlists/{wishlist_id}/items/nope", json={"price": 1}, headers=headers)
        assert response.status_code == 404
        assert response.json() == {"error": "Item not found"}

    def test_item_of_other_wishlist_not_found(self, client, auth):
        headers = auth("owner-1")
        first = _create(client, headers)
        second = _create(client, headers)
        item = _add(client, headers, first, name="Lamp", price=10)

        response = client.delete(f"/api/wishlists/{second}/items/{item['id']}", headers=headers)
        assert response.status_code == 404
        assert _total(client, first) == 10

    def test_delete_forbidden(self, client, auth):
        headers = auth("owner-1")
        wishlist_id = _create(client, headers)
        item = _add(client, headers, wishlist_id, name="Lamp", price=10)

        response = client.delete(f"/api/wishlists/{wishlist_id}/items/{item['id']}", headers=auth("owner-2"))
        assert response.status_code == 403
        assert _total(client, wishlist_id) == 10

    def test_requires_auth(self, client, auth):
        wishlist_id = _create(client, auth("owner-1"))
        response = client.post(f"/api/wishlists/{wishlist_id}/items", json={"name": "x"})
        assert response.status_code == 401


class TestCurrentWishlistItems:
    def test_item_routes_on_current_wishlist(self, client, auth):
        headers = auth("owner-1")
        client.post("/api/users/setup", json={"displayName": "Alice"}, headers=headers)
        wishlist_id = _create(client, headers)

        response = client.post("/api/my-wishlist/items", json={"name": "Kettle", "price": 45}, headers=headers)
        assert response.status_code == 201
        item_id = response.json()["item"]["id"]

        response = client.put(f"/api/my-wishlist/items/{item_id}", json={"name": "Kettle", "price": 40}, headers=headers)
        assert response.status_code == 200

        current = client.get("/api/my-wishlist", headers=headers).json()["wishlist"]
        assert current["id"] == wishlist_id
        assert current["totalAmount"] == 40

        response = client.delete(f"/api/my-wishlist/items/{item_id}", headers=headers)
        assert response.status_code == 200
        assert _total(client, wishlist_id) == 0

    def test_current_items_without_wishlist(self, client, auth):
        headers = auth("owner-1")
        client.post("/api/users/setup", json={"displayName": "Alice"}, headers=headers)
        response = client.post("/api/my-wishlist/items", json={"name": "Kettle"}, headers=headers)
        assert response.status_code == 404
