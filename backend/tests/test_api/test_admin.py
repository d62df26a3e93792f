"""Tests for the admin (host calendar) endpoints."""

import uuid
from datetime import date, datetime, timedelta

import pytest
from httpx import AsyncClient

from directstay.config import settings
from directstay.models.blocked_date import BlockedDate
from directstay.models.booking import CANCELLED, CONFIRMED, PENDING

pytestmark = pytest.mark.asyncio


class TestAdminAuth:
    async def test_wrong_key(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.post(
            "/api/v1/admin/properties",
            json={"name": "X", "base_price_per_night": "10"},
            headers={"X-Admin-Key": "wrong"},
        )
        assert response.status_code == 401

    async def test_missing_key(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.post("/api/v1/admin/holds/expire")
        assert response.status_code == 401

    async def test_disabled_without_configured_key(self, client: AsyncClient, monkeypatch) -> None:
        monkeypatch.setattr(settings, "admin_api_key", "")
        response = await client.post("/api/v1/admin/holds/expire", headers={"X-Admin-Key": "anything"})
        assert response.status_code == 503


class TestProperties:
    async def test_create_property(self, client: AsyncClient, admin_headers: dict, fake_db) -> None:
        response = await client.post(
            "/api/v1/admin/properties",
            json={
                "name": "Pine Ridge Cabin",
                "max_guests": 2,
                "base_price_per_night": "95.00",
                "weekend_price_per_night": "120.00",
                "min_stay_nights": 2,
                "host_email": "host@example.com",
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Pine Ridge Cabin"
        assert data["min_stay_nights"] == 2
        assert uuid.UUID(data["id"]) in fake_db.properties

    async def test_create_property_validation(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.post(
            "/api/v1/admin/properties",
            json={"name": "", "base_price_per_night": "-1"},
            headers=admin_headers,
        )
        assert response.status_code == 422


class TestBlockedDates:
    async def test_block_and_unblock(self, client: AsyncClient, admin_headers: dict, make_property, fake_db) -> None:
        prop = make_property()
        url = f"/api/v1/admin/properties/{prop.id}/blocked-dates"
        body = {"dates": ["2024-08-01", "2024-08-02"], "reason": "Repairs"}

        response = await client.post(url, json=body, headers=admin_headers)
        assert response.json() == {"count": 2}
        response = await client.post(url, json=body, headers=admin_headers)
        assert response.json() == {"count": 0}

        response = await client.request("DELETE", url, json={"dates": ["2024-08-01"]}, headers=admin_headers)
        assert response.json() == {"count": 1}
        assert [day for (_, day) in fake_db.blocked] == [date(2024, 8, 2)]

    async def test_blocked_night_shows_up_as_unavailable(
        self, client: AsyncClient, admin_headers: dict, make_property
    ) -> None:
        prop = make_property()
        day = date.today() + timedelta(days=5)
        await client.post(
            f"/api/v1/admin/properties/{prop.id}/blocked-dates",
            json={"dates": [day.isoformat()]},
            headers=admin_headers,
        )
        response = await client.get(f"/api/v1/properties/{prop.id}/unavailable-dates")
        assert [d["date"] for d in response.json()["dates"]] == [day.isoformat()]

    async def test_unknown_property(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.post(
            f"/api/v1/admin/properties/{uuid.uuid4()}/blocked-dates",
            json={"dates": ["2024-08-01"]},
            headers=admin_headers,
        )
        assert response.status_code == 404


class TestPriceOverrides:
    async def test_set_and_clear(self, client: AsyncClient, admin_headers: dict, make_property) -> None:
        prop = make_property()
        url = f"/api/v1/admin/properties/{prop.id}/price-overrides"
        response = await client.put(
            url, json={"prices": {"2024-12-24": "250.00", "2024-12-25": "300.00"}}, headers=admin_headers
        )
        assert response.status_code == 200
        assert {k: float(v) for k, v in response.json()["prices"].items()} == {
            "2024-12-24": 250.0,
            "2024-12-25": 300.0,
        }

        response = await client.put(url, json={"prices": {"2024-12-25": None}}, headers=admin_headers)
        assert response.json()["prices"] == {}


class TestHostCancel:
    async def test_cancel_confirmed_reopens_nights(
        self, client: AsyncClient, admin_headers: dict, make_property, make_booking, fake_db, notifier
    ) -> None:
        prop = make_property()
        event_id = uuid.uuid4()
        booking = make_booking(prop, date(2024, 7, 5), date(2024, 7, 7), CONFIRMED, blocked_event_id=event_id)
        for day in (date(2024, 7, 5), date(2024, 7, 6)):
            fake_db.blocked[(prop.id, day)] = BlockedDate(
                id=uuid.uuid4(), property_id=prop.id, date=day, reason="Booked", event_id=event_id
            )

        response = await client.post(f"/api/v1/admin/bookings/{booking.id}/cancel", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == CANCELLED
        assert fake_db.blocked == {}
        assert notifier.sent == [("booking_cancelled", booking.id)]


class TestExpireHolds:
    async def test_expire(self, client: AsyncClient, admin_headers: dict, make_property, make_booking) -> None:
        prop = make_property()
        stale = make_booking(
            prop, date(2024, 7, 1), date(2024, 7, 3), PENDING, created_at=datetime.now() - timedelta(hours=5)
        )
        fresh = make_booking(prop, date(2024, 7, 5), date(2024, 7, 7), PENDING)

        response = await client.post("/api/v1/admin/holds/expire", headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {"expired_booking_ids": [str(stale.id)]}
        assert stale.status == CANCELLED
        assert fresh.status == PENDING

    async def test_custom_age(self, client: AsyncClient, admin_headers: dict, make_property, make_booking) -> None:
        prop = make_property()
        old = make_booking(
            prop, date(2024, 7, 1), date(2024, 7, 3), PENDING, created_at=datetime.now() - timedelta(hours=3)
        )
        younger = make_booking(
            prop, date(2024, 7, 5), date(2024, 7, 7), PENDING, created_at=datetime.now() - timedelta(minutes=100)
        )
        response = await client.post(
            "/api/v1/admin/holds/expire", params={"older_than_minutes": 120}, headers=admin_headers
        )
        assert response.json() == {"expired_booking_ids": [str(old.id)]}
        assert younger.status == PENDING

    async def test_age_below_checkout_lifetime_rejected(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.post(
            "/api/v1/admin/holds/expire", params={"older_than_minutes": 5}, headers=admin_headers
        )
        assert response.status_code == 422

    async def test_age_is_raised_to_grace_floor(
        self, client: AsyncClient, admin_headers: dict, make_property, make_booking
    ) -> None:
        prop = make_property()
        booking = make_booking(
            prop,
            date(2024, 7, 1),
            date(2024, 7, 3),
            PENDING,
            payment_reference="cs_test_open",
            created_at=datetime.now() - timedelta(minutes=40),
        )
        response = await client.post(
            "/api/v1/admin/holds/expire", params={"older_than_minutes": 30}, headers=admin_headers
        )
        assert response.json() == {"expired_booking_ids": []}
        assert booking.status == PENDING

    async def test_checkout_expired_before_release(
        self, client: AsyncClient, admin_headers: dict, make_property, make_booking, gateway
    ) -> None:
        prop = make_property()
        booking = make_booking(
            prop,
            date(2024, 7, 1),
            date(2024, 7, 3),
            PENDING,
            payment_reference="cs_test_abandoned",
            created_at=datetime.now() - timedelta(hours=5),
        )
        response = await client.post("/api/v1/admin/holds/expire", headers=admin_headers)
        assert response.json() == {"expired_booking_ids": [str(booking.id)]}
        assert gateway.expired == ["cs_test_abandoned"]
