"""
Тесты HTTP API (httpx + ASGITransport, in-memory SQLite):
клиенты, действия, история стадий, услуги, импорт/экспорт Excel, аналитика, auth.
Запуск: python -m pytest test_api_clients.py -v
"""
import io
import unittest

import httpx
from openpyxl import Workbook

from main import create_app
from salescrm.core.config import Settings
from salescrm.database.session import Database
from salescrm.services.excel_import import HEADERS, XLSX_MIME_TYPE


def client_payload(**overrides) -> dict:
    payload = {
        "companyName": "Acme Corporation",
        "contactPerson": "John Smith",
        "email": "john@acme.com",
        "phone": "+1 234-567-8900",
        "stage": "Lead",
        "status": None,
        "value": 250000,
        "priority": "High",
        "country": "United States",
        "responsiblePerson": "Sarah Johnson",
        "service": "CRM",
        "lastFollowUp": "2025-11-15T00:00:00",
        "nextFollowUp": "2025-11-22T00:00:00",
    }
    payload.update(overrides)
    return payload


def xlsx_bytes(rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(HEADERS)
    for values in rows:
        ws.append([values.get(h) for h in HEADERS])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def excel_row(company: str, email: str) -> dict:
    return {
        "Company Name": company,
        "Contact Person": "Jane Doe",
        "Email": email,
        "Phone": "+91 98765 43210",
        "Stage": "Qualified",
        "Value": 500000,
        "Priority": "Medium",
        "Country": "India",
    }


class APITestCase(unittest.IsolatedAsyncioTestCase):
    settings_overrides: dict = {}

    async def asyncSetUp(self):
        settings = Settings(
            database_url="sqlite+aiosqlite:///:memory:", secret_key="test-secret", **self.settings_overrides,
        )
        self.database = Database(settings, with_sync_engine=False)
        await self.database.init()
        app = create_app(settings, self.database, enable_admin=False)
        self.http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self):
        await self.http.aclose()
        await self.database.dispose()

    async def create_client(self, **overrides) -> dict:
        response = await self.http.post("/api/clients", json=client_payload(**overrides))
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()


class ClientsAPITest(APITestCase):
    async def test_create_and_get_client(self):
        created = await self.create_client()

        self.assertEqual(created["companyName"], "Acme Corporation")
        self.assertEqual(created["responsiblePerson"], "Sarah Johnson")
        self.assertEqual(created["service"], "CRM")
        self.assertEqual(created["currency"], "USD")
        self.assertEqual(created["activityHistory"], [])

        response = await self.http.get(f"/api/clients/{created['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], created["id"])

        listing = await self.http.get("/api/clients")
        self.assertEqual([c["id"] for c in listing.json()], [created["id"]])

    async def test_defaults_applied_on_manual_create(self):
        created = await self.create_client(responsiblePerson="", service="")
        self.assertEqual(created["responsiblePerson"], "Unassigned")
        self.assertEqual(created["service"], "Product Development")

    async def test_invalid_payload_returns_400(self):
        response = await self.http.post("/api/clients", json=client_payload(email="not-an-email"))
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["ok"])
        self.assertEqual(body["code"], "VALIDATION_ERROR")
        self.assertIn("request_id", body)

        response = await self.http.post("/api/clients", json=client_payload(companyName="", value=-1))
        self.assertEqual(response.status_code, 400)

    async def test_timezone_aware_dates_stored_as_naive_utc(self):
        created = await self.create_client(
            lastFollowUp="2025-11-15T10:00:00+05:00", nextFollowUp="2025-11-22T00:00:00Z",
        )
        self.assertEqual(created["lastFollowUp"], "2025-11-15T05:00:00")
        self.assertEqual(created["nextFollowUp"], "2025-11-22T00:00:00")

        stored = (await self.http.get(f"/api/clients/{created['id']}")).json()
        self.assertEqual(stored["lastFollowUp"], "2025-11-15T05:00:00")

    async def test_value_above_integer_column_returns_400(self):
        response = await self.http.post("/api/clients", json=client_payload(value=2**31))
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["code"], "VALIDATION_ERROR")
        self.assertEqual([d["field"] for d in body["details"]], ["value"])

    async def test_unknown_client_returns_404(self):
        response = await self.http.get("/api/clients/does-not-exist")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "CLIENT_NOT_FOUND")

        response = await self.http.put("/api/clients/does-not-exist", json=client_payload())
        self.assertEqual(response.status_code, 404)

    async def test_update_stage_records_history(self):
        created = await self.create_client()
        response = await self.http.put(
            f"/api/clients/{created['id']}", json=client_payload(stage="Qualified", status="Under Evaluation"),
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["stage"], "Qualified")

        history = (await self.http.get(f"/api/clients/{created['id']}/stage-history")).json()
        self.assertEqual([h["stage"] for h in history], ["Qualified", "Lead"])
        self.assertIsNone(history[0]["exitedAt"])
        self.assertIsNotNone(history[1]["durationSeconds"])

    async def test_delete_client(self):
        created = await self.create_client()
        response = await self.http.delete(f"/api/clients/{created['id']}")
        self.assertEqual(response.status_code, 204)

        self.assertEqual((await self.http.get(f"/api/clients/{created['id']}")).status_code, 404)
        self.assertEqual((await self.http.delete(f"/api/clients/{created['id']}")).status_code, 404)

    async def test_activities(self):
        created = await self.create_client()
        response = await self.http.post(
            f"/api/clients/{created['id']}/activities", json={"action": "Discovery call", "user": "Tom"},
        )
        self.assertEqual(response.status_code, 200)
        [activity] = response.json()["activityHistory"]
        self.assertEqual(activity["action"], "Discovery call")
        self.assertEqual(activity["user"], "Tom")

        response = await self.http.delete(f"/api/clients/{created['id']}/activities/{activity['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["activityHistory"], [])

        response = await self.http.delete(f"/api/clients/{created['id']}/activities/{activity['id']}")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "ACTIVITY_NOT_FOUND")

        response = await self.http.post("/api/clients/missing/activities", json={"action": "x", "user": "y"})
        self.assertEqual(response.status_code, 404)

    async def test_timeline(self):
        created = await self.create_client()
        response = await self.http.get(f"/api/clients/{created['id']}/timeline")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["clientId"], created["id"])
        self.assertEqual(body["currentStage"], "Lead")
        [stage] = body["stages"]
        self.assertTrue(stage["isCurrent"])
        self.assertEqual(stage["status"], "on-track")
        self.assertTrue(stage["durationLabel"].endswith("(ongoing)"))

    async def test_request_id_header(self):
        response = await self.http.get("/api/health", headers={"X-Request-ID": "abc-123"})
        self.assertEqual(response.headers["X-Request-ID"], "abc-123")
        self.assertTrue(response.json()["ok"])


class ServicesAPITest(APITestCase):
    async def test_services_and_conflict(self):
        services = (await self.http.get("/api/services")).json()
        self.assertEqual(len(services), 7)

        response = await self.http.post("/api/services", json={"name": "Cloud Migration"})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["name"], "Cloud Migration")

        response = await self.http.post("/api/services", json={"name": "Cloud Migration"})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "CONFLICT")

    async def test_users_created_on_first_use(self):
        await self.create_client(responsiblePerson="Mike Davis")
        users = (await self.http.get("/api/users")).json()
        self.assertEqual([u["name"] for u in users], ["Mike Davis"])

    async def test_reference_data(self):
        stages = (await self.http.get("/api/reference/stages")).json()
        self.assertEqual(len(stages["stages"]), 10)
        self.assertEqual(stages["stages"][0]["stage"], "Lead")
        self.assertEqual(stages["stages"][-1]["allowedStatuses"], [])

        countries = (await self.http.get("/api/reference/countries", params={"q": "india"})).json()
        self.assertEqual(countries[0]["currency"], "INR")


class ImportAPITest(APITestCase):
    async def upload(self, content: bytes, content_type: str = XLSX_MIME_TYPE):
        return await self.http.post(
            "/api/clients/import", files={"file": ("clients.xlsx", content, content_type)},
        )

    async def test_import_template(self):
        template = await self.http.get("/api/clients/export/template")
        self.assertEqual(template.status_code, 200)
        self.assertTrue(template.headers["content-type"].startswith(XLSX_MIME_TYPE))

        response = await self.upload(template.content)
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual((body["imported"], body["total"]), (1, 1))
        self.assertEqual(body["errors"], [])
        [client] = body["clients"]
        self.assertEqual(client["stage"], "Lead")
        self.assertEqual(client["value"], 100000)
        self.assertEqual(client["service"], "CRM")

    async def test_import_reports_row_errors_and_continues(self):
        content = xlsx_bytes([
            excel_row("Alpha", "alpha@alpha.com"),
            excel_row("Beta", "not-an-email"),
            excel_row("Gamma", "gamma@gamma.com"),
        ])
        body = (await self.upload(content)).json()

        self.assertEqual(body["total"], 3)
        self.assertEqual(body["imported"], 2)
        [error] = body["errors"]
        self.assertEqual(error["row"], 3)
        self.assertEqual(error["field"], "Email")
        self.assertEqual([c["companyName"] for c in body["clients"]], ["Alpha", "Gamma"])

        clients = (await self.http.get("/api/clients")).json()
        self.assertEqual(len(clients), 2)
        history = (await self.http.get(f"/api/clients/{clients[0]['id']}/stage-history")).json()
        self.assertEqual(len(history), 1)

    async def test_oversized_value_is_a_row_error(self):
        huge = excel_row("Beta", "beta@beta.com")
        huge["Value"] = 10**20
        content = xlsx_bytes([excel_row("Alpha", "alpha@alpha.com"), huge, excel_row("Gamma", "gamma@gamma.com")])
        response = await self.upload(content)

        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual((body["imported"], body["total"]), (2, 3))
        [error] = body["errors"]
        self.assertEqual((error["row"], error["field"]), (3, "Value"))

    async def test_import_returns_status_warnings(self):
        row = excel_row("Omega", "omega@omega.com")
        row.update({"Stage": "Won", "Status": "In Negotiation"})
        body = (await self.upload(xlsx_bytes([row]))).json()

        self.assertEqual(body["imported"], 1)
        [warning] = body["warnings"]
        self.assertEqual((warning["row"], warning["field"]), (2, "Status"))

    async def test_import_rejects_bad_uploads(self):
        response = await self.upload(b"a,b,c", content_type="text/csv")
        self.assertEqual(response.status_code, 400)
        self.assertIn("Invalid file type", response.json()["message"])

        response = await self.upload(b"not really a workbook")
        self.assertEqual(response.status_code, 400)

        response = await self.http.post("/api/clients/import")
        self.assertEqual(response.status_code, 400)

    async def test_export_clients(self):
        await self.create_client()
        response = await self.http.get("/api/clients/export")
        self.assertEqual(response.status_code, 200)
        self.assertIn("attachment", response.headers["content-disposition"])


class ImportLimitAPITest(APITestCase):
    settings_overrides = {"import_max_bytes": 1024}

    async def test_upload_over_limit_rejected(self):
        template = (await self.http.get("/api/clients/export/template")).content
        self.assertGreater(len(template), 1024)
        response = await self.http.post(
            "/api/clients/import", files={"file": ("clients.xlsx", template, XLSX_MIME_TYPE)},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("too large", response.json()["message"])
        self.assertEqual((await self.http.get("/api/clients")).json(), [])


class AnalyticsAPITest(APITestCase):
    async def test_stage_analytics_and_backfill(self):
        await self.create_client()
        await self.create_client(companyName="Beta", stage="Qualified")

        rows = (await self.http.get("/api/analytics/stages")).json()
        self.assertEqual([r["stage"] for r in rows], ["Lead", "Qualified"])
        self.assertEqual(rows[0]["totalClients"], 1)

        body = (await self.http.post("/api/analytics/backfill-stage-history")).json()
        self.assertEqual(body, {"success": True, "message": body["message"], "count": 0})

    async def test_overview_and_summary(self):
        await self.create_client(stage="Won", value=1000, country="India")
        await self.create_client(companyName="Beta", stage="Proposal Sent", status="In Negotiation")

        overview = (await self.http.get("/api/analytics/overview")).json()
        self.assertEqual(overview["totals"]["clients"], 2)
        self.assertEqual(overview["totals"]["won"], 1)
        self.assertEqual(overview["winRate"], 100)

        summary = (await self.http.get("/api/reports/summary")).json()
        self.assertEqual(summary["totalClients"], 2)
        self.assertEqual(summary["inNegotiationCount"], 1)
        self.assertEqual(summary["totalPipelineINR"], 1000 + 250000 * 83.5)

    async def test_overdue_empty_for_fresh_clients(self):
        await self.create_client()
        self.assertEqual((await self.http.get("/api/analytics/overdue")).json(), [])


class AuthAPITest(APITestCase):
    async def test_login_stub_and_me(self):
        response = await self.http.post("/api/auth/login", data={"username": "sarah", "password": "anything"})
        self.assertEqual(response.status_code, 200)
        token = response.json()["access_token"]

        me = await self.http.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(me.json(), {"username": "sarah"})

        self.assertEqual((await self.http.get("/api/auth/me")).status_code, 401)
        bad = await self.http.get("/api/auth/me", headers={"Authorization": "Bearer forged"})
        self.assertEqual(bad.status_code, 401)


if __name__ == "__main__":
    unittest.main()
