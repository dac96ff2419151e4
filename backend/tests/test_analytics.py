"""
Integration tests for admin analytics and report exports.
"""

import csv
import io

import pytest

from backend.app.services.reports import CSV_COLUMNS


@pytest.fixture
async def mixed_parcels(client, admin_headers, customer, agent, parcel_payload):
    """One delivered prepaid parcel and one pending COD parcel."""
    first = (await client.post("/v1/parcels", json=parcel_payload, headers=customer["headers"])).json()

    cod_payload = dict(parcel_payload, payment_method="cod", cod_amount=500, delivery_charge=40)
    second = (await client.post("/v1/parcels", json=cod_payload, headers=customer["headers"])).json()

    await client.patch(
        f"/v1/parcels/{first['id']}/assign", json={"agent_id": agent["id"]}, headers=admin_headers
    )
    for status in ("picked_up", "in_transit", "delivered"):
        await client.patch(
            f"/v1/parcels/{first['id']}/status", json={"status": status}, headers=agent["headers"]
        )

    return first, second


@pytest.mark.asyncio
async def test_dashboard_figures(client, admin_headers, mixed_parcels):
    response = await client.get("/v1/analytics/dashboard", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["by_status"] == {"delivered": 1, "pending": 1}
    assert data["by_payment_method"] == {"prepaid": 1, "cod": 1}
    assert data["total_revenue"] == 100
    assert data["total_cod"] == 500
    assert data["delivery_rate"] == "50.00"
    assert data["date_range"]["start"] is not None


@pytest.mark.asyncio
async def test_dashboard_empty(client, admin_headers):
    response = await client.get("/v1/analytics/dashboard", headers=admin_headers)

    data = response.json()
    assert data["total"] == 0
    assert data["delivery_rate"] == "0.00"


@pytest.mark.asyncio
async def test_dashboard_window_excludes_outside_parcels(client, admin_headers, mixed_parcels):
    response = await client.get(
        "/v1/analytics/dashboard",
        params={"startDate": "2000-01-01T00:00:00", "endDate": "2000-12-31T00:00:00"},
        headers=admin_headers
    )
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_dashboard_admin_only(client, customer):
    response = await client.get("/v1/analytics/dashboard", headers=customer["headers"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_csv_export(client, admin_headers, mixed_parcels):
    first, second = mixed_parcels
    response = await client.get("/v1/analytics/export/csv", headers=admin_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=\"parcels-report-" in response.headers["content-disposition"]

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == [title for title, _ in CSV_COLUMNS]
    # Newest first
    assert [row[0] for row in rows[1:]] == [second["tracking_number"], first["tracking_number"]]
    assert rows[1][3] == "Not Assigned"
    assert rows[2][3] == "Andy Agent"
    assert rows[2][6] == "delivered"


@pytest.mark.asyncio
async def test_pdf_export(client, admin_headers, mixed_parcels):
    response = await client.get("/v1/analytics/export/pdf", headers=admin_headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
