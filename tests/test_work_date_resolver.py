from datetime import date, datetime
from zoneinfo import ZoneInfo
import unittest

from app.services.reconcile_types import ReconcileConfig, WorkDateRule
from app.services.work_date import is_carried_over, resolve_work_date

BANGKOK = ZoneInfo("Asia/Bangkok")
UNIFORM = ReconcileConfig(work_date_rule=WorkDateRule.UNIFORM_EARLY_MORNING)


def _local(hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2026, 1, 13, hour, minute, second, tzinfo=BANGKOK)


class WorkDateResolverTests(unittest.TestCase):
    def test_daytime_scan_keeps_its_calendar_date(self) -> None:
        self.assertEqual(resolve_work_date(_local(9, 0), 0), date(2026, 1, 13))
        self.assertEqual(resolve_work_date(_local(23, 59), 4), date(2026, 1, 13))

    def test_work_day_start_hour_is_inclusive(self) -> None:
        self.assertEqual(resolve_work_date(_local(6, 0), 0), date(2026, 1, 13))
        self.assertEqual(resolve_work_date(_local(5, 59, 59), 0), date(2026, 1, 12))

    def test_after_midnight_scan_goes_to_previous_date(self) -> None:
        self.assertEqual(resolve_work_date(_local(0, 15), 0), date(2026, 1, 12))
        self.assertEqual(resolve_work_date(_local(1, 59), 3), date(2026, 1, 12))

    def test_first_scan_at_0230_goes_to_previous_date(self) -> None:
        self.assertEqual(resolve_work_date(_local(2, 30), 0), date(2026, 1, 12))

    def test_second_scan_at_0230_keeps_its_calendar_date(self) -> None:
        self.assertEqual(resolve_work_date(_local(2, 30), 1), date(2026, 1, 13))

    def test_uniform_rule_moves_second_scan_at_0230_to_previous_date(self) -> None:
        self.assertEqual(resolve_work_date(_local(2, 30), 1, config=UNIFORM), date(2026, 1, 12))
        self.assertEqual(resolve_work_date(_local(2, 30), 0, config=UNIFORM), date(2026, 1, 12))

    def test_0300_is_outside_carve_out_but_before_work_day_start(self) -> None:
        self.assertEqual(resolve_work_date(_local(3, 0), 0), date(2026, 1, 12))
        self.assertEqual(resolve_work_date(_local(3, 0), 2), date(2026, 1, 12))

    def test_boundary_hours_follow_config(self) -> None:
        config = ReconcileConfig(work_day_start_hour=4)
        self.assertEqual(resolve_work_date(_local(4, 30), 0, config=config), date(2026, 1, 13))
        self.assertEqual(resolve_work_date(_local(3, 59), 0, config=config), date(2026, 1, 12))

    def test_month_boundary(self) -> None:
        scan = datetime(2026, 3, 1, 2, 10, tzinfo=BANGKOK)
        self.assertEqual(resolve_work_date(scan, 0), date(2026, 2, 28))

    def test_negative_ordinal_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            resolve_work_date(_local(9, 0), -1)

    def test_is_carried_over(self) -> None:
        self.assertTrue(is_carried_over(_local(2, 30), date(2026, 1, 12)))
        self.assertFalse(is_carried_over(_local(9, 0), date(2026, 1, 13)))


if __name__ == "__main__":
    unittest.main()
