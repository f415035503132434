from __future__ import annotations

import unittest
from datetime import timedelta

from storehub.errors import InvalidInputError
from storehub.models import ReadingStatus
from storehub.services.event_log_service import recent_events
from storehub.services.temperature_service import (
    create_equipment,
    equipment_status,
    list_equipment,
    out_of_range_readings,
    record_reading,
    update_equipment,
)
from tests.db_support import T0, add_employee, make_session_factory


class TemperatureServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory(self)()
        self.employee = add_employee(self.db, 'Alice')
        self.cooler = create_equipment(self.db, name='Beer Walk-in', min_temp=33, max_temp=38, interval_hours=4)

    def tearDown(self) -> None:
        self.db.close()

    def _read(self, value: int, minutes: int = 0, equipment_id: int | None = None):
        return record_reading(
            self.db,
            equipment_id=equipment_id or self.cooler.id,
            value=value,
            taken_by=self.employee.id,
            now=T0 + timedelta(minutes=minutes),
        )

    def test_readings_are_classified_with_inclusive_bounds(self) -> None:
        self.assertEqual(self._read(33).status, ReadingStatus.OK)
        self.assertEqual(self._read(38).status, ReadingStatus.OK)
        self.assertEqual(self._read(32).status, ReadingStatus.LOW)
        self.assertEqual(self._read(41).status, ReadingStatus.HIGH)

    def test_out_of_range_readings_raise_alerts(self) -> None:
        self._read(36)
        self._read(45, minutes=1)
        self.assertEqual([reading.value for reading in out_of_range_readings(self.db)], [45])
        alerts = recent_events(self.db, event_type='alert')
        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0]['detail']['kind'], 'temperature_high')

    def test_equipment_limits_are_validated(self) -> None:
        bad = [
            {'name': 'x', 'min_temp': 40, 'max_temp': 40},
            {'name': 'x', 'min_temp': -60, 'max_temp': 0},
            {'name': 'x', 'min_temp': 0, 'max_temp': 250},
            {'name': 'x', 'min_temp': 0, 'max_temp': 10, 'interval_hours': 0},
            {'name': 'x', 'min_temp': 0, 'max_temp': 10, 'interval_hours': 169},
            {'name': ' ', 'min_temp': 0, 'max_temp': 10},
        ]
        for kwargs in bad:
            with self.assertRaises(InvalidInputError, msg=str(kwargs)):
                create_equipment(self.db, **kwargs)

    def test_update_validates_merged_values(self) -> None:
        with self.assertRaises(InvalidInputError):
            update_equipment(self.db, self.cooler.id, max_temp=30)
        updated = update_equipment(self.db, self.cooler.id, min_temp=30, max_temp=36)
        self.assertEqual((updated.min_temp, updated.max_temp), (30, 36))
        self.assertIsNone(update_equipment(self.db, 9999, name='x'))

    def test_inactive_or_missing_equipment_rejects_readings(self) -> None:
        self.assertIsNone(self._read(35, equipment_id=9999))
        update_equipment(self.db, self.cooler.id, active=False)
        self.assertIsNone(self._read(35))
        self.assertEqual(list_equipment(self.db), [])

    def test_reading_value_is_range_checked(self) -> None:
        with self.assertRaises(InvalidInputError):
            self._read(500)

    def test_status_tracks_reading_interval(self) -> None:
        [row] = equipment_status(self.db, T0)
        self.assertTrue(row['reading_due'])
        self.assertIsNone(row['next_due_at'])

        self._read(35)
        [row] = equipment_status(self.db, T0 + timedelta(hours=3))
        self.assertFalse(row['reading_due'])
        self.assertEqual(row['next_due_at'], T0 + timedelta(hours=4))

        [row] = equipment_status(self.db, T0 + timedelta(hours=4))
        self.assertTrue(row['reading_due'])


if __name__ == '__main__':
    unittest.main()
