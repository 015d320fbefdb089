from __future__ import annotations

import unittest
from collections.abc import Generator
from datetime import date, time
from unittest.mock import patch

from fastapi.testclient import TestClient

from app.db import get_db
from app.main import app
from app.services.reconcile_types import Shift, WorkDayStatus

MORNING = Shift(id=1, name="Morning", start_time=time(8, 0), end_time=time(17, 0))

LOG_RECORDS = [
    {"id": 1, "employee_id": "E1", "timestamp": "2026-01-12T08:20:00", "source": "gate"},
    {"id": 2, "employee_id": "E1", "timestamp": "2026-01-12T17:30:00", "source": "gate"},
    {"id": 3, "employee_id": "E1", "timestamp": "2026-01-13T08:00:00", "source": "gate"},
    {"id": 4, "employee_id": "E1", "timestamp": "2026-01-13T17:00:00", "source": "gate"},
    {"id": 5, "employee_id": "E2", "timestamp": "2026-01-13T09:00:00", "source": None},
    {"id": 6, "employee_id": "E1", "timestamp": "2026-01-14T09:00:00", "source": "gate"},
    {"id": 7, "employee_id": "E3", "timestamp": None, "source": "gate"},
]


class _FakeDB:
    def commit(self) -> None:
        return None

    def rollback(self) -> None:
        return None


def _override_get_db(fake_db: _FakeDB):
    def _override() -> Generator[_FakeDB, None, None]:
        yield fake_db

    return _override


class AttendanceEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        app.dependency_overrides[get_db] = _override_get_db(_FakeDB())
        self.client = TestClient(app)
        patchers = [
            patch("app.routers.attendance.list_attendance_logs", return_value=list(LOG_RECORDS)),
            patch("app.routers.attendance.list_active_shifts", return_value=[MORNING]),
            patch("app.routers.attendance.list_assigned_shifts", return_value={}),
        ]
        for patcher in patchers:
            patcher.start()
            self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_list_work_days_newest_first(self) -> None:
        response = self.client.get("/api/logs", params={"start_date": "2026-01-12", "end_date": "2026-01-13"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["locale"], "th")
        keys = [(item["work_date"], item["employee_id"]) for item in body["items"]]
        self.assertEqual(keys, [("2026-01-13", "E1"), ("2026-01-13", "E2"), ("2026-01-12", "E1")])

        late_day = body["items"][2]
        self.assertEqual(late_day["status"], "LATE")
        self.assertEqual(late_day["status_label"], "มาสาย")
        self.assertEqual(late_day["late_minutes"], 20)
        self.assertEqual(late_day["matched_shift_id"], "1")
        self.assertEqual(body["items"][1]["status"], "MISSING_OUT")

        self.assertEqual(len(body["dropped_scans"]), 1)
        self.assertEqual(body["dropped_scans"][0]["reason"], "MISSING_TIMESTAMP")
        self.assertEqual(body["dropped_scans"][0]["record"]["employee_id"], "E3")
        self.assertEqual(body["warnings"], [])

    def test_list_work_days_for_one_employee_in_english(self) -> None:
        response = self.client.get(
            "/api/logs",
            params={"start_date": "2026-01-13", "end_date": "2026-01-13", "employee_id": "E2", "locale": "en"},
        )

        self.assertEqual(response.status_code, 200)
        items = response.json()["items"]
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]["status_label"], "Missing check-out")

    def test_inverted_range_is_rejected(self) -> None:
        response = self.client.get(
            "/api/logs",
            params={"start_date": "2026-01-13", "end_date": "2026-01-12"},
            headers={"X-Request-Id": "req-42"},
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json(),
            {
                "error": {
                    "code": "INVALID_DATE_RANGE",
                    "message": "start_date cannot be greater than end_date.",
                    "request_id": "req-42",
                }
            },
        )
        self.assertEqual(response.headers["X-Request-Id"], "req-42")

    def test_oversized_range_is_rejected(self) -> None:
        response = self.client.get("/api/logs", params={"start_date": "2025-01-01", "end_date": "2026-01-01"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "DATE_RANGE_TOO_LARGE")

    def test_missing_query_parameter(self) -> None:
        response = self.client.get("/api/logs", params={"start_date": "2026-01-12"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_empty_shift_table_warning(self) -> None:
        with patch("app.routers.attendance.list_active_shifts", return_value=[]):
            response = self.client.get("/api/logs", params={"start_date": "2026-01-12", "end_date": "2026-01-13"})

        body = response.json()
        self.assertEqual(body["warnings"], ["EMPTY_SHIFT_TABLE"])
        self.assertTrue(all(item["matched_shift_id"] is None for item in body["items"]))

    def test_analytics(self) -> None:
        response = self.client.get(
            "/api/logs/analytics",
            params={"start_date": "2026-01-12", "end_date": "2026-01-13"},
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        stats = body["stats"]
        self.assertEqual(stats["total_days"], 3)
        self.assertEqual(stats["complete_like_days"], 2)
        self.assertEqual(stats["days_by_status"]["MISSING_OUT"], 1)
        self.assertEqual(stats["by_employee"]["E1"]["late_days"], 1)

        activity = {item["employee_id"]: item for item in body["scan_activity"]}
        self.assertEqual(activity["E1"]["daily_counts"], {"2026-01-12": 2, "2026-01-13": 2})
        self.assertEqual(activity["E1"]["total_days_scanned"], 2)
        self.assertEqual(activity["E2"]["monthly_counts"], {"2026-01": 1})

    def test_attendance_report(self) -> None:
        with patch(
            "app.routers.attendance.list_roster_employee_ids",
            return_value=["E1", "E2", "E3"],
        ), patch(
            "app.routers.attendance.list_holiday_dates",
            return_value={date(2026, 1, 13)},
        ):
            response = self.client.get(
                "/api/reports/attendance",
                params={"start_date": "2026-01-12", "end_date": "2026-01-13", "locale": "en"},
            )

        self.assertEqual(response.status_code, 200)
        rows = [(row["employee_id"], row["work_date"], row["status"], row["status_label"]) for row in response.json()["rows"]]
        self.assertEqual(
            rows,
            [
                ("E1", "2026-01-12", "LATE", "Late"),
                ("E1", "2026-01-13", "COMPLETE", "Complete"),
                ("E2", "2026-01-12", "ABSENT", "Absent"),
                ("E2", "2026-01-13", "MISSING_OUT", "Missing check-out"),
                ("E3", "2026-01-12", "ABSENT", "Absent"),
                ("E3", "2026-01-13", "HOLIDAY", "Holiday"),
            ],
        )

    def test_reconcile_persists_and_reports_outcomes(self) -> None:
        previous = {("E1", date(2026, 1, 12)): WorkDayStatus.LATE}
        with patch(
            "app.routers.attendance.load_work_day_statuses",
            return_value=previous,
        ), patch(
            "app.routers.attendance.upsert_work_days",
            return_value=(2, 1),
        ) as upsert_mock, patch(
            "app.routers.attendance.record_reconcile_run",
            return_value=True,
        ) as audit_mock:
            with self.assertLogs("app.work_days", level="INFO") as logs:
                response = self.client.post(
                    "/api/work-days/reconcile",
                    json={"start_date": "2026-01-12", "end_date": "2026-01-13"},
                )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["created"], 2)
        self.assertEqual(body["updated"], 1)
        self.assertEqual(body["dropped_scans"], 1)
        self.assertEqual(
            [(item["kind"], item["employee_id"], item["work_date"]) for item in body["outcomes"]],
            [("CREATED", "E1", "2026-01-13"), ("CREATED", "E2", "2026-01-13")],
        )

        persisted = upsert_mock.call_args.args[1]
        self.assertEqual(len(persisted), 3)
        audit_kwargs = audit_mock.call_args.kwargs
        self.assertEqual(audit_kwargs["counts"]["created"], 2)
        self.assertEqual(audit_kwargs["start_date"], date(2026, 1, 12))
        self.assertTrue(audit_kwargs["success"])
        self.assertEqual(len(logs.records), 2)

    def test_health_reports_schema_guard_state(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "ok")
        self.assertIn("schema_guard", body)


if __name__ == "__main__":
    unittest.main()
