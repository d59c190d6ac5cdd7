"""HTTP tests for the place directory and admin place management."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from shared.models.location_report import LocationReport
from shared.models.place import SubPlace


@pytest.fixture
async def admin(make_user):
    return await make_user(name="Admin", role="admin")


class TestListPlaces:
    @pytest.mark.asyncio
    async def test_active_places_in_order(
        self, client, make_place, make_sub_place, make_user, auth_headers
    ):
        owner = await make_user(name="Owner")
        lobby = await make_place(name="Lobby", display_order=2)
        garden = await make_place(name="Garden", display_order=1)
        await make_place(name="Closed wing", is_active=False)
        await make_sub_place(lobby, name="Mailroom", display_order=1)
        await make_sub_place(lobby, name="Apt 1", owner_id=owner.id, display_order=0)

        resp = await client.get("/api/places", headers=auth_headers(owner))

        assert resp.status_code == 200
        places = resp.json()
        assert [p["name"] for p in places] == ["Garden", "Lobby"]
        assert places[0]["id"] == str(garden.id)
        assert [sp["name"] for sp in places[1]["subPlaces"]] == ["Apt 1", "Mailroom"]
        assert places[1]["subPlaces"][0]["ownerName"] == "Owner"
        assert places[1]["subPlaces"][1]["ownerId"] is None


class TestAdminPlaces:
    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, client, make_user, auth_headers):
        user = await make_user()

        resp = await client.post(
            "/api/admin/places", json={"name": "Roof"}, headers=auth_headers(user)
        )

        assert resp.status_code == 403
        assert resp.json() == {"error": "Admin permission required"}

    @pytest.mark.asyncio
    async def test_create_update_place(self, client, admin, auth_headers):
        headers = auth_headers(admin)

        resp = await client.post(
            "/api/admin/places",
            json={"name": "Roof", "placeType": "outdoor", "externalId": "roof", "displayOrder": 3},
            headers=headers,
        )
        assert resp.status_code == 201
        place = resp.json()
        assert place["type"] == "outdoor"
        assert place["externalId"] == "roof"
        assert place["subPlaces"] == []

        resp = await client.patch(
            f"/api/admin/places/{place['id']}", json={"name": "Roof terrace"}, headers=headers
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Roof terrace"
        assert resp.json()["displayOrder"] == 3

    @pytest.mark.asyncio
    async def test_duplicate_external_id_conflicts(self, client, admin, make_place, auth_headers):
        await make_place(name="Building 10", external_id="building-10")

        resp = await client.post(
            "/api/admin/places",
            json={"name": "Another", "externalId": "building-10"},
            headers=auth_headers(admin),
        )

        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_update_missing_place(self, client, admin, auth_headers):
        resp = await client.patch(
            f"/api/admin/places/{uuid.uuid4()}", json={"name": "x"}, headers=auth_headers(admin)
        )

        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_place_cascades(
        self, client, admin, make_place, make_sub_place, location_service, session_factory, auth_headers
    ):
        place = await make_place(name="Garden")
        await make_sub_place(place, name="Pond")
        await location_service.report_location("rocky", place.id, str(admin.id))

        resp = await client.delete(f"/api/admin/places/{place.id}", headers=auth_headers(admin))

        assert resp.status_code == 204
        async with session_factory() as session:
            sub_places = (await session.execute(select(SubPlace))).scalars().all()
            reports = (await session.execute(select(LocationReport))).scalars().all()
        assert sub_places == []
        assert reports == []


class TestAdminSubPlaces:
    @pytest.mark.asyncio
    async def test_create_with_owner(self, client, admin, make_place, make_user, auth_headers):
        place = await make_place(name="Building 10", place_type="unit")
        owner = await make_user()

        resp = await client.post(
            f"/api/admin/places/{place.id}/sub-places",
            json={"name": "Apt 4", "ownerId": str(owner.id)},
            headers=auth_headers(admin),
        )

        assert resp.status_code == 201
        assert resp.json()["ownerId"] == str(owner.id)
        assert resp.json()["placeId"] == str(place.id)

    @pytest.mark.asyncio
    async def test_unknown_owner(self, client, admin, make_place, auth_headers):
        place = await make_place()

        resp = await client.post(
            f"/api/admin/places/{place.id}/sub-places",
            json={"name": "Apt 4", "ownerId": str(uuid.uuid4())},
            headers=auth_headers(admin),
        )

        assert resp.status_code == 404
        assert resp.json() == {"error": "Owner not found"}

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client, admin, make_place, make_sub_place, auth_headers):
        place = await make_place()
        sub_place = await make_sub_place(place, name="Stairs")
        headers = auth_headers(admin)

        resp = await client.patch(
            f"/api/admin/sub-places/{sub_place.id}", json={"name": "Stairwell"}, headers=headers
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Stairwell"

        resp = await client.delete(f"/api/admin/sub-places/{sub_place.id}", headers=headers)
        assert resp.status_code == 204

        resp = await client.delete(f"/api/admin/sub-places/{sub_place.id}", headers=headers)
        assert resp.status_code == 404
