from __future__ import annotations

import unittest
from datetime import timedelta

from storehub.auth import Role
from storehub.errors import InvalidInputError
from storehub.services.employee_service import (
    active_check_ins,
    authenticate_pin,
    check_in,
    check_out,
    create_employee,
    list_employees,
    serialize_employee,
    update_employee,
)
from tests.db_support import T0, make_session_factory


class EmployeeServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory(self)()
        self.sarah = create_employee(self.db, name='Sarah', pin='5678', role='shift_lead')
        self.mike = create_employee(self.db, name='Mike', pin='9999')

    def tearDown(self) -> None:
        self.db.close()

    def test_pin_login_finds_active_employee(self) -> None:
        self.assertEqual(authenticate_pin(self.db, '5678').id, self.sarah.id)
        self.assertIsNone(authenticate_pin(self.db, '0000'))
        self.assertIsNone(authenticate_pin(self.db, ''))

        update_employee(self.db, self.mike.id, active=False)
        self.assertIsNone(authenticate_pin(self.db, '9999'))

    def test_pin_is_hashed_and_never_serialized(self) -> None:
        self.assertNotEqual(self.sarah.pin_hash, '5678')
        self.assertNotIn('pin_hash', serialize_employee(self.sarah))
        self.assertEqual(serialize_employee(self.sarah)['role'], 'shift_lead')

    def test_pin_format_and_uniqueness(self) -> None:
        for pin in ('12', '123456789', 'abcd'):
            with self.assertRaises(InvalidInputError):
                create_employee(self.db, name='New', pin=pin)
        with self.assertRaises(InvalidInputError):
            create_employee(self.db, name='New', pin='5678')
        with self.assertRaises(InvalidInputError):
            update_employee(self.db, self.mike.id, pin='5678')
        update_employee(self.db, self.mike.id, pin='9999')

    def test_unknown_role_is_rejected(self) -> None:
        with self.assertRaises(InvalidInputError):
            create_employee(self.db, name='New', pin='1111', role='owner')
        updated = update_employee(self.db, self.mike.id, role=Role.ADMIN)
        self.assertEqual(updated.role, Role.ADMIN)

    def test_inactive_employees_are_hidden_by_default(self) -> None:
        update_employee(self.db, self.mike.id, active=False)
        self.assertEqual([e.name for e in list_employees(self.db)], ['Sarah'])
        self.assertEqual([e.name for e in list_employees(self.db, include_inactive=True)], ['Mike', 'Sarah'])

    def test_check_in_reuses_open_record(self) -> None:
        first = check_in(self.db, self.mike.id, now=T0)
        again = check_in(self.db, self.mike.id, now=T0 + timedelta(minutes=5))
        self.assertEqual(first.id, again.id)
        self.assertEqual([log.employee_id for log in active_check_ins(self.db)], [self.mike.id])

        closed = check_out(self.db, self.mike.id, now=T0 + timedelta(hours=8))
        self.assertEqual(closed.ts_out, T0 + timedelta(hours=8))
        self.assertEqual(active_check_ins(self.db), [])
        self.assertIsNone(check_out(self.db, self.mike.id))

    def test_check_in_requires_active_employee(self) -> None:
        self.assertIsNone(check_in(self.db, 9999))
        update_employee(self.db, self.mike.id, active=False)
        self.assertIsNone(check_in(self.db, self.mike.id))


if __name__ == '__main__':
    unittest.main()
