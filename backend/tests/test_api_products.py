"""
HTTP tests for product routes.
"""
import pytest

from conftest import auth_headers, make_product, make_user, stock_of


NEW_PRODUCT = {
    "name": "Bicycle",
    "description": "City bike, barely used",
    "price": 250.5,
    "quantity": 2,
    "condition": "used",
}


class TestProductRoutes:

    @pytest.mark.asyncio
    async def test_create_and_read(self, client, seller_a):
        created = await client.post("/api/products", json=NEW_PRODUCT, headers=auth_headers(seller_a))

        assert created.status_code == 201
        product = created.json()
        assert product["price"] == 250.5
        assert product["photo"] is False
        assert product["seller"] == {"username": "seller_a"}

        fetched = await client.get(f"/api/products/{product['id']}")
        assert fetched.json()["name"] == "Bicycle"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field, value", [
        ("price", 0),
        ("price", 1_000_001),
        ("quantity", 0),
        ("quantity", 100_001),
        ("name", "x" * 151),
        ("condition", "broken"),
    ])
    async def test_create_validation(self, client, seller_a, field, value):
        body = dict(NEW_PRODUCT, **{field: value})
        resp = await client.post("/api/products", json=body, headers=auth_headers(seller_a))
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_only_owner_can_modify(self, client, db, seller_a, seller_b):
        lamp = await make_product(db, seller_a, "Lamp")

        other = await client.patch(f"/api/products/{lamp.id}", json={"price": 1}, headers=auth_headers(seller_b))
        owner = await client.patch(f"/api/products/{lamp.id}", json={"price": 12.5}, headers=auth_headers(seller_a))

        assert other.status_code == 403
        assert owner.json()["price"] == 12.5

    @pytest.mark.asyncio
    async def test_delete(self, client, db, seller_a):
        lamp = await make_product(db, seller_a, "Lamp")

        resp = await client.delete(f"/api/products/{lamp.id}", headers=auth_headers(seller_a))

        assert resp.status_code == 200
        assert await stock_of(db, lamp.id) is None
        assert (await client.get(f"/api/products/{lamp.id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_admin_can_delete_any_listing(self, client, db, seller_a):
        admin = await make_user(db, "admin", is_admin=True)
        lamp = await make_product(db, seller_a, "Lamp")
        headers = auth_headers(admin)

        edit = await client.patch(f"/api/products/{lamp.id}", json={"price": 1}, headers=headers)
        resp = await client.delete(f"/api/products/{lamp.id}", headers=headers)

        assert edit.status_code == 403
        assert resp.status_code == 200
        assert await stock_of(db, lamp.id) is None

    @pytest.mark.asyncio
    async def test_list_with_search_and_paging(self, client, db, seller_a):
        for i in range(3):
            await make_product(db, seller_a, f"Lamp {i}")
        await make_product(db, seller_a, "Chair")

        resp = await client.get("/api/products", params={"search": "lamp", "sortBy": "name:asc"})

        body = resp.json()
        assert body["productCount"] == 3
        assert [p["name"] for p in body["products"]] == ["Lamp 0", "Lamp 1", "Lamp 2"]

    @pytest.mark.asyncio
    async def test_photo_upload_and_download(self, client, db, seller_a):
        lamp = await make_product(db, seller_a, "Lamp")
        headers = auth_headers(seller_a)

        uploaded = await client.post(
            f"/api/products/{lamp.id}/photo",
            files={"photo": ("lamp.png", b"\x89PNG-data", "image/png")},
            headers=headers,
        )
        rejected = await client.post(
            f"/api/products/{lamp.id}/photo",
            files={"photo": ("notes.txt", b"hello", "text/plain")},
            headers=headers,
        )
        photo = await client.get(f"/api/products/{lamp.id}/photo")

        assert uploaded.json()["photo"] is True
        assert rejected.status_code == 400
        assert photo.content == b"\x89PNG-data"
