"""
API Integration Tests — upload, audit, reports, and billing endpoints.
"""

from datetime import datetime

import pytest
from httpx import AsyncClient

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ROWS = [
    ["INV-1", datetime(2024, 10, 19), None, "ACME", 10, 2, 30_000_000],
    ["INV-2", "bad date", None, "ACME", 5, 1, 500],
]


async def _upload(client, content, file_type="outbound", filename="october.xlsx", **params):
    return await client.post(
        f"/api/v1/uploads/{file_type}",
        files={"file": (filename, content, XLSX)},
        params=params,
    )


@pytest.mark.asyncio
class TestUploadsAPI:

    async def test_health_check(self, client: AsyncClient):
        """Sanity check that the test client works."""
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_upload_outbound(self, client: AsyncClient, outbound_workbook):
        """A workbook with one bad row uploads with a rejection count."""
        response = await _upload(client, outbound_workbook(ROWS))
        assert response.status_code == 201
        data = response.json()
        assert data["row_count"] == 1
        assert data["rejected_count"] == 1
        assert data["status"] == "SUCCESS"

    async def test_upload_with_no_valid_rows_is_unprocessable(self, client: AsyncClient, outbound_workbook):
        response = await _upload(client, outbound_workbook(ROWS[1:]))
        assert response.status_code == 422
        data = response.json()
        assert data["status"] == "FAILED"
        assert data["message"] == "All 1 rows were rejected"

        rejected = (await client.get(f"/api/v1/uploads/{data['upload_id']}/rejected-rows")).json()
        assert rejected["total"] == 1

    async def test_duplicate_upload_conflict(self, client: AsyncClient, outbound_workbook):
        content = outbound_workbook(ROWS)
        first = await _upload(client, content)
        second = await _upload(client, content)
        assert second.status_code == 409
        assert second.json()["detail"]["existing_upload_id"] == first.json()["upload_id"]

    async def test_replace_upload(self, client: AsyncClient, outbound_workbook):
        content = outbound_workbook(ROWS)
        await _upload(client, content)
        response = await _upload(client, content, replace="true")
        assert response.status_code == 201
        assert response.json()["replaced_count"] == 1

    async def test_missing_sheet_is_bad_request(self, client: AsyncClient, outbound_workbook):
        response = await _upload(client, outbound_workbook(ROWS, sheet="Sheet1"))
        assert response.status_code == 400
        assert "Outward MIS" in response.json()["detail"]

    async def test_unknown_file_type(self, client: AsyncClient, outbound_workbook):
        response = await _upload(client, outbound_workbook(ROWS), file_type="returns")
        assert response.status_code == 404

    async def test_upload_log_and_rejected_rows(self, client: AsyncClient, outbound_workbook):
        upload_id = (await _upload(client, outbound_workbook(ROWS))).json()["upload_id"]

        log = (await client.get("/api/v1/uploads", params={"file_type": "outbound"})).json()
        assert [entry["id"] for entry in log] == [upload_id]
        assert log[0]["status"] == "SUCCESS"

        rejected = (await client.get(f"/api/v1/uploads/{upload_id}/rejected-rows")).json()
        assert rejected["total"] == 1
        assert rejected["rows"][0]["row_number"] == 4

        everything = (await client.get("/api/v1/rejected-rows")).json()
        assert everything["total"] == 1

    async def test_export_rejected_rows(self, client: AsyncClient, outbound_workbook):
        upload_id = (await _upload(client, outbound_workbook(ROWS))).json()["upload_id"]
        response = await client.get(f"/api/v1/uploads/{upload_id}/rejected-rows/export")
        assert response.status_code == 200
        assert response.headers["content-type"] == XLSX
        assert "rejected-rows-october-" in response.headers["content-disposition"]

    async def test_export_unknown_upload(self, client: AsyncClient):
        response = await client.get("/api/v1/uploads/00000000-0000-0000-0000-000000000099/rejected-rows/export")
        assert response.status_code == 404


@pytest.mark.asyncio
class TestDataAPI:

    async def test_delete_outbound(self, client: AsyncClient, outbound_workbook):
        await _upload(client, outbound_workbook(ROWS))
        response = await client.delete("/api/v1/data", params={"type": "outbound"})
        assert response.status_code == 200
        assert response.json()["deleted_count"] == 1

    async def test_delete_invalid_type(self, client: AsyncClient):
        response = await client.delete("/api/v1/data", params={"type": "everything"})
        assert response.status_code == 422


@pytest.mark.asyncio
class TestReportsAPI:

    async def test_kpi_after_upload(self, client: AsyncClient, outbound_workbook):
        await _upload(client, outbound_workbook(ROWS))
        response = await client.get("/api/v1/reports/kpi", params={"from": "2024-10-01", "to": "2024-10-31"})
        assert response.status_code == 200
        data = response.json()
        assert data["gross_sale"] == 30_000_000
        assert data["revenue"] == pytest.approx(525_000)
        assert data["invoice_count"] == 1

    async def test_kpi_flat_mode(self, client: AsyncClient, outbound_workbook):
        await _upload(client, outbound_workbook(ROWS))
        response = await client.get(
            "/api/v1/reports/kpi", params={"from": "2024-10-01", "to": "2024-10-31", "mode": "flat"}
        )
        assert response.json()["revenue"] == pytest.approx(525_000)

    async def test_inverted_range(self, client: AsyncClient):
        response = await client.get("/api/v1/reports/kpi", params={"from": "2024-10-31", "to": "2024-10-01"})
        assert response.status_code == 400

    async def test_missing_range(self, client: AsyncClient):
        response = await client.get("/api/v1/reports/daily")
        assert response.status_code == 422

    async def test_inbound_kpi_empty(self, client: AsyncClient):
        response = await client.get("/api/v1/reports/inbound-kpi", params={"from": "2024-10-01", "to": "2024-10-31"})
        assert response.status_code == 200
        assert response.json()["invoice_count"] == 0

    async def test_daily_and_monthly_series(self, client: AsyncClient, outbound_workbook):
        await _upload(client, outbound_workbook(ROWS))

        daily = (await client.get("/api/v1/reports/daily", params={"from": "2024-10-19", "to": "2024-10-19"})).json()
        assert [point["date"] for point in daily] == ["2024-10-19"]

        monthly = (await client.get("/api/v1/reports/monthly-revenue")).json()
        assert monthly == [
            {
                "label": "Oct 2024",
                "date": "2024-10",
                "gross_sale": 30_000_000,
                "revenue": pytest.approx(525_000),
                "slab_breakdown": [
                    {"slab": "0-5 cr", "amount": pytest.approx(30_000_000), "rate": 1.75, "revenue": pytest.approx(525_000)}
                ],
            }
        ]


@pytest.mark.asyncio
class TestBillingAPI:

    async def test_billing_floors_to_guarantee(self, client: AsyncClient, outbound_workbook):
        """3 crore of sales is billed on the 6 crore minimum guarantee."""
        await _upload(client, outbound_workbook(ROWS))
        response = await client.get("/api/v1/billing", params={"month": "2024-10"})
        assert response.status_code == 200
        data = response.json()
        assert data["grossSale"] == 30_000_000
        assert data["minGuarantee"] == 60_000_000
        assert data["totalRevenue"] == pytest.approx(1_040_000)
        assert [line["range"] for line in data["slabBreakdown"]] == ["0 - 50000000", "50000000 - 80000000"]

    async def test_billing_empty_month(self, client: AsyncClient):
        response = await client.get("/api/v1/billing", params={"month": "2023-01"})
        assert response.status_code == 200
        assert response.json()["grossSale"] == 0

    async def test_billing_bad_month(self, client: AsyncClient):
        response = await client.get("/api/v1/billing", params={"month": "October"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid month format. Use YYYY-MM"
