"""Tests for the warehouse staff booking list."""

import pytest
import pytest_asyncio
from httpx import AsyncClient

from warebook.models.booking import Booking

from conftest import days_ahead

URL = "/api/v1/warehouse-staff/bookings"


def make_booking(warehouse, customer, code: str, status: str, start_in: int, total: float = 50) -> Booking:
    return Booking(
        booking_code=code,
        type="pallet",
        status=status,
        customer_id=customer.id,
        customer_name=customer.full_name,
        customer_email=customer.email,
        warehouse_id=warehouse.id,
        start_date=days_ahead(start_in),
        end_date=days_ahead(start_in + 3),
        pallet_count=2,
        total_amount=total,
    )


@pytest_asyncio.fixture
async def bookings(db_session, warehouse, other_warehouse, customer_user, other_customer):
    rows = [
        make_booking(warehouse, customer_user, "BK-A-001", "pre_order", 2, total=30),
        make_booking(warehouse, customer_user, "BK-A-002", "confirmed", 10, total=90),
        make_booking(warehouse, other_customer, "BK-A-003", "awaiting_time_slot", 20, total=60),
        make_booking(other_warehouse, customer_user, "BK-B-001", "pre_order", 2),
    ]
    db_session.add_all(rows)
    await db_session.flush()
    return rows


@pytest.mark.api
@pytest.mark.asyncio
class TestStaffBookingList:

    async def test_staff_sees_only_assigned_warehouse(
        self, client: AsyncClient, bookings, staff_user, auth_headers
    ):
        response = await client.get(URL, headers=auth_headers(staff_user))

        assert response.status_code == 200
        page = response.json()["data"]
        assert page["total"] == 3
        assert {b["booking_code"] for b in page["items"]} == {"BK-A-001", "BK-A-002", "BK-A-003"}
        assert "set_awaiting_time_slot" in next(
            b["allowed_actions"] for b in page["items"] if b["status"] == "pre_order"
        )

    async def test_admin_sees_everything(self, client: AsyncClient, bookings, admin_user, auth_headers):
        response = await client.get(URL, headers=auth_headers(admin_user))
        assert response.json()["data"]["total"] == 4

    async def test_status_filter_accepts_a_list(
        self, client: AsyncClient, bookings, owner_user, auth_headers
    ):
        response = await client.get(
            URL, params={"status": "pre_order, awaiting_time_slot"}, headers=auth_headers(owner_user),
        )
        codes = sorted(b["booking_code"] for b in response.json()["data"]["items"])
        assert codes == ["BK-A-001", "BK-A-003"]

    async def test_unknown_status(self, client: AsyncClient, bookings, owner_user, auth_headers):
        response = await client.get(URL, params={"status": "shipped"}, headers=auth_headers(owner_user))

        assert response.status_code == 422
        assert "status" in response.json()["details"]["fields"]

    async def test_customer_search(self, client: AsyncClient, bookings, owner_user, auth_headers):
        response = await client.get(
            URL, params={"customerSearch": "JORDAN"}, headers=auth_headers(owner_user),
        )
        items = response.json()["data"]["items"]
        assert [b["booking_code"] for b in items] == ["BK-A-003"]

    async def test_date_window_overlap(self, client: AsyncClient, bookings, owner_user, auth_headers):
        response = await client.get(
            URL,
            params={"startDate": days_ahead(9).isoformat(), "endDate": days_ahead(14).isoformat()},
            headers=auth_headers(owner_user),
        )
        assert [b["booking_code"] for b in response.json()["data"]["items"]] == ["BK-A-002"]

    async def test_sort_and_paginate(self, client: AsyncClient, bookings, owner_user, auth_headers):
        response = await client.get(
            URL,
            params={"sortBy": "total_amount", "sortOrder": "asc", "limit": 2, "offset": 1},
            headers=auth_headers(owner_user),
        )
        page = response.json()["data"]
        assert page["total"] == 3
        assert page["limit"] == 2
        assert [b["total_amount"] for b in page["items"]] == [60, 90]

    async def test_unknown_sort_field(self, client: AsyncClient, bookings, owner_user, auth_headers):
        response = await client.get(URL, params={"sortBy": "password"}, headers=auth_headers(owner_user))
        assert response.status_code == 422
        assert "sortBy" in response.json()["details"]["fields"]

    async def test_foreign_warehouse_filter(
        self, client: AsyncClient, bookings, other_warehouse, staff_user, auth_headers
    ):
        response = await client.get(
            URL, params={"warehouseId": other_warehouse.id}, headers=auth_headers(staff_user),
        )
        assert response.status_code == 403
        assert response.json()["code"] == "PERMISSION_DENIED"

    async def test_customers_are_refused(self, client: AsyncClient, customer_user, auth_headers):
        response = await client.get(URL, headers=auth_headers(customer_user))
        assert response.status_code == 403
