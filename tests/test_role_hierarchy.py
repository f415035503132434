from __future__ import annotations

import unittest

from storehub.auth import ROLE_LEVELS, Role, has_access, role_level


class RoleHierarchyTests(unittest.TestCase):
    def test_levels_are_strictly_ordered(self) -> None:
        self.assertEqual(role_level(Role.EMPLOYEE), 1)
        self.assertEqual(role_level(Role.SHIFT_LEAD), 2)
        self.assertEqual(role_level(Role.ADMIN), 3)
        self.assertEqual(role_level(Role.MANAGER), 4)

    def test_unknown_roles_rank_zero(self) -> None:
        self.assertEqual(role_level('cashier'), 0)
        self.assertEqual(role_level(None), 0)
        self.assertFalse(has_access('cashier', Role.EMPLOYEE))
        self.assertFalse(has_access(None))

    def test_unknown_requirement_is_met_by_any_role(self) -> None:
        self.assertTrue(has_access('cashier', 'unknown'))
        self.assertTrue(has_access(None, 'unknown'))
        self.assertTrue(has_access(Role.EMPLOYEE, 'unknown'))

    def test_roles_accept_their_string_values(self) -> None:
        self.assertTrue(has_access('shift_lead', 'employee'))
        self.assertFalse(has_access('employee', 'shift_lead'))

    def test_manager_passes_every_check(self) -> None:
        for required in list(Role) + [None, 'unknown']:
            self.assertTrue(has_access(Role.MANAGER, required))

    def test_missing_requirement_means_employee(self) -> None:
        self.assertTrue(has_access(Role.EMPLOYEE, None))

    def test_access_matches_level_comparison(self) -> None:
        for held in Role:
            for required in Role:
                expected = held == Role.MANAGER or ROLE_LEVELS[held] >= ROLE_LEVELS[required]
                self.assertEqual(has_access(held, required), expected, f'{held} vs {required}')

    def test_access_is_monotone(self) -> None:
        ordered = sorted(Role, key=role_level)
        for index, held in enumerate(ordered):
            for higher in ordered[index:]:
                for required in Role:
                    if has_access(held, required):
                        self.assertTrue(has_access(higher, required))


if __name__ == '__main__':
    unittest.main()
