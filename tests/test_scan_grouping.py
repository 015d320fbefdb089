from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo
import unittest

from app.services.reconcile_types import (
    InvalidScanError,
    RawScan,
    ReconcileConfig,
    WorkDateRule,
)
from app.services.scan_grouping import group_by_work_date, parse_raw_scan, parse_raw_scans

BANGKOK = ZoneInfo("Asia/Bangkok")


def _scan(employee_id: str, text: str, source: str | None = None) -> RawScan:
    return RawScan(
        employee_id=employee_id,
        timestamp=datetime.fromisoformat(text).replace(tzinfo=BANGKOK),
        source=source,
    )


class _LogRow:
    def __init__(self, employee_id, timestamp, source=None, id=None):  # type: ignore[no-untyped-def]
        self.employee_id = employee_id
        self.timestamp = timestamp
        self.source = source
        self.id = id


class ParseRawScanTests(unittest.TestCase):
    def test_naive_timestamp_is_local_time(self) -> None:
        scan = parse_raw_scan({"employee_id": "E1", "timestamp": "2026-01-12T11:05:00"}, tz=BANGKOK)
        self.assertEqual(scan.timestamp, datetime(2026, 1, 12, 11, 5, tzinfo=BANGKOK))
        self.assertIsNone(scan.source)

    def test_utc_timestamp_is_converted_to_local_time(self) -> None:
        scan = parse_raw_scan({"employee_id": "E1", "timestamp": "2026-01-12T04:05:00Z"}, tz=BANGKOK)
        self.assertEqual(scan.timestamp.hour, 11)
        self.assertEqual(scan.calendar_date, date(2026, 1, 12))

    def test_attribute_records_and_device_alias(self) -> None:
        row = _LogRow("E7", datetime(2026, 1, 12, 1, 0, tzinfo=timezone.utc), source="gate", id=55)
        scan = parse_raw_scan(row, tz=BANGKOK)
        self.assertEqual(scan.employee_id, "E7")
        self.assertEqual(scan.source, "gate")
        self.assertEqual(scan.scan_id, "55")
        self.assertEqual(scan.timestamp.hour, 8)

        from_device = parse_raw_scan(
            {"employee_id": 42, "timestamp": "2026-01-12T08:00:00", "device": "D-1"},
            tz=BANGKOK,
        )
        self.assertEqual(from_device.employee_id, "42")
        self.assertEqual(from_device.source, "D-1")

    def test_invalid_records_raise(self) -> None:
        cases = [
            ({"timestamp": "2026-01-12T08:00:00"}, "MISSING_EMPLOYEE_ID"),
            ({"employee_id": "  ", "timestamp": "2026-01-12T08:00:00"}, "MISSING_EMPLOYEE_ID"),
            ({"employee_id": "E1"}, "MISSING_TIMESTAMP"),
            ({"employee_id": "E1", "timestamp": ""}, "MISSING_TIMESTAMP"),
            ({"employee_id": "E1", "timestamp": "12/01/2026 08:00"}, "UNPARSEABLE_TIMESTAMP"),
            ({"employee_id": "E1", "timestamp": 1736668800}, "UNPARSEABLE_TIMESTAMP"),
            ({"employee_id": "E1", "timestamp": "0001-01-01T01:00:00"}, "UNPARSEABLE_TIMESTAMP"),
            ({"employee_id": "E1", "timestamp": "9999-12-31T23:00:00-05:00"}, "UNPARSEABLE_TIMESTAMP"),
        ]
        for record, reason in cases:
            with self.subTest(record=record):
                with self.assertRaises(InvalidScanError) as ctx:
                    parse_raw_scan(record, tz=BANGKOK)
                self.assertEqual(str(ctx.exception), reason)

    def test_raw_scan_input_is_validated_like_mappings(self) -> None:
        timestamp = datetime(2026, 1, 12, 8, 0, tzinfo=BANGKOK)
        for employee_id in ("", "   "):
            with self.subTest(employee_id=employee_id):
                with self.assertRaises(InvalidScanError) as ctx:
                    parse_raw_scan(RawScan(employee_id=employee_id, timestamp=timestamp), tz=BANGKOK)
                self.assertEqual(str(ctx.exception), "MISSING_EMPLOYEE_ID")

        parsed = parse_raw_scan(RawScan(employee_id=" E1 ", timestamp=timestamp), tz=BANGKOK)
        self.assertEqual(parsed.employee_id, "E1")

        with self.assertLogs("app.reconcile", level="WARNING"):
            scans, dropped = parse_raw_scans([RawScan(employee_id="", timestamp=timestamp)])
        self.assertEqual(scans, [])
        self.assertEqual([item.reason for item in dropped], ["MISSING_EMPLOYEE_ID"])

    def test_parse_raw_scans_drops_and_reports_bad_records(self) -> None:
        records = [
            {"employee_id": "E1", "timestamp": "2026-01-12T08:00:00"},
            {"employee_id": "E1", "timestamp": "not-a-time"},
            {"timestamp": "2026-01-12T17:00:00"},
            {"employee_id": "E1", "timestamp": "2026-01-12T17:00:00"},
        ]
        with self.assertLogs("app.reconcile", level="WARNING") as logs:
            scans, dropped = parse_raw_scans(records)

        self.assertEqual(len(scans), 2)
        self.assertEqual([item.index for item in dropped], [1, 2])
        self.assertEqual([item.reason for item in dropped], ["UNPARSEABLE_TIMESTAMP", "MISSING_EMPLOYEE_ID"])
        self.assertIs(dropped[0].record, records[1])
        self.assertEqual(len(logs.records), 2)


class GroupByWorkDateTests(unittest.TestCase):
    def test_groups_are_chronological_whatever_the_input_order(self) -> None:
        scans = [
            _scan("E1", "2026-01-12T19:31:00"),
            _scan("E2", "2026-01-12T08:00:00"),
            _scan("E1", "2026-01-12T11:05:00"),
            _scan("E1", "2026-01-12T13:00:00"),
        ]
        grouping = group_by_work_date(scans)

        self.assertEqual(sorted(grouping.groups), [("E1", date(2026, 1, 12)), ("E2", date(2026, 1, 12))])
        e1_times = [item.timestamp.strftime("%H:%M") for item in grouping.groups[("E1", date(2026, 1, 12))]]
        self.assertEqual(e1_times, ["11:05", "13:00", "19:31"])
        self.assertEqual(grouping.scan_count, 4)

    def test_identical_time_of_day_is_collapsed_keeping_first(self) -> None:
        scans = [
            _scan("E1", "2026-01-12T08:00:00", source="door-2"),
            _scan("E1", "2026-01-12T08:00:00", source="door-1"),
            _scan("E1", "2026-01-12T08:00:30", source="door-1"),
            _scan("E2", "2026-01-12T08:00:00", source="door-1"),
        ]
        with self.assertLogs("app.reconcile", level="INFO"):
            grouping = group_by_work_date(scans)

        self.assertEqual(len(grouping.duplicates), 1)
        self.assertEqual(grouping.duplicates[0].source, "door-2")
        kept = grouping.groups[("E1", date(2026, 1, 12))]
        self.assertEqual([item.source for item in kept], ["door-1", "door-1"])
        self.assertEqual(len(grouping.groups[("E2", date(2026, 1, 12))]), 1)

    def test_same_time_on_different_days_is_not_a_duplicate(self) -> None:
        scans = [_scan("E1", "2026-01-12T08:00:00"), _scan("E1", "2026-01-13T08:00:00")]
        grouping = group_by_work_date(scans)
        self.assertEqual(grouping.duplicates, [])
        self.assertEqual(len(grouping.groups), 2)

    def test_overnight_checkout_joins_previous_work_date(self) -> None:
        scans = [_scan("E1", "2026-01-12T20:00:00"), _scan("E1", "2026-01-13T02:55:00")]
        grouping = group_by_work_date(scans)
        self.assertEqual(list(grouping.groups), [("E1", date(2026, 1, 12))])

    def test_ordinal_is_counted_per_employee_and_calendar_day(self) -> None:
        scans = [
            _scan("E1", "2026-01-13T01:00:00"),
            _scan("E2", "2026-01-13T02:20:00"),
            _scan("E1", "2026-01-13T02:30:00"),
        ]
        grouping = group_by_work_date(scans)

        # E1 02:30 is the second scan of its calendar day, E2 02:20 the first.
        self.assertEqual(len(grouping.groups[("E1", date(2026, 1, 12))]), 1)
        self.assertEqual(len(grouping.groups[("E1", date(2026, 1, 13))]), 1)
        self.assertEqual(len(grouping.groups[("E2", date(2026, 1, 12))]), 1)

    def test_uniform_rule_keeps_early_scans_together(self) -> None:
        scans = [_scan("E1", "2026-01-13T01:00:00"), _scan("E1", "2026-01-13T02:30:00")]
        grouping = group_by_work_date(
            scans,
            config=ReconcileConfig(work_date_rule=WorkDateRule.UNIFORM_EARLY_MORNING),
        )
        self.assertEqual(list(grouping.groups), [("E1", date(2026, 1, 12))])
        self.assertEqual(len(grouping.groups[("E1", date(2026, 1, 12))]), 2)


if __name__ == "__main__":
    unittest.main()
