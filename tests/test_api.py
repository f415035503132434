from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from storehub.config import Settings
from storehub.main import create_app
from storehub.models import TaskSourceType
from storehub.services.employee_service import create_employee
from storehub.services.event_log_service import log_event, recent_events
from storehub.services.task_service import create_task_log
from tests.db_support import make_session_factory

PINS = {
    'manager': '1234',
    'admin': '4321',
    'shift_lead': '5678',
    'employee': '9999',
    'other': '2468',
}


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory(self)
        with self.session_factory() as db:
            self.ids = {
                'manager': create_employee(db, name='Morgan', pin=PINS['manager'], role='manager').id,
                'admin': create_employee(db, name='Dana', pin=PINS['admin'], role='admin').id,
                'shift_lead': create_employee(db, name='Sarah', pin=PINS['shift_lead'], role='shift_lead').id,
                'employee': create_employee(db, name='Mike', pin=PINS['employee']).id,
                'other': create_employee(db, name='Riley', pin=PINS['other']).id,
            }
            db.commit()
        settings = Settings(seed_demo_data=False, scheduler_enabled=False)
        self.app = create_app(settings, session_factory=self.session_factory, configure_logging=False)
        self.client = TestClient(self.app)
        self._tokens: dict[str, str] = {}

    def auth(self, who: str) -> dict[str, str]:
        if who not in self._tokens:
            response = self.client.post('/api/auth/login', json={'pin': PINS[who]})
            self.assertEqual(response.status_code, 200, response.text)
            self._tokens[who] = response.json()['token']
        return {'Authorization': f'Bearer {self._tokens[who]}'}


class AuthApiTests(ApiTestCase):
    def test_login_returns_employee_without_pin(self) -> None:
        response = self.client.post('/api/auth/login', json={'pin': PINS['shift_lead']})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['employee']['name'], 'Sarah')
        self.assertEqual(body['employee']['role'], 'shift_lead')
        self.assertNotIn('pin_hash', body['employee'])
        self.assertTrue(body['token'])

    def test_bad_pin_is_rejected_with_error_envelope(self) -> None:
        response = self.client.post('/api/auth/login', json={'pin': '0000'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error']['code'], 'UNAUTHORIZED')
        self.assertIn('X-Request-Id', response.headers)

    def test_protected_routes_require_login(self) -> None:
        response = self.client.get('/api/cartons', headers={'Authorization': 'Bearer not-a-token'})
        self.assertEqual(response.status_code, 401)

    def test_me_and_logout(self) -> None:
        headers = self.auth('employee')
        self.assertEqual(self.client.get('/api/auth/me', headers=headers).json()['name'], 'Mike')
        self.assertEqual(self.client.post('/api/auth/logout', headers=headers).status_code, 200)
        self.assertEqual(self.client.get('/api/auth/me', headers=headers).status_code, 401)

    def test_health(self) -> None:
        response = self.client.get('/api/health')
        self.assertEqual(response.json(), {'status': 'ok', 'carton_total': 0})


class CartonApiTests(ApiTestCase):
    def test_append_remove_and_history(self) -> None:
        headers = self.auth('employee')
        first = self.client.post('/api/cartons/adjust', json={'action': 'add', 'amount': 150}, headers=headers)
        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.json()['total'], 150)
        self.assertEqual(first.json()['entry']['employee_name'], 'Mike')

        second = self.client.post('/api/cartons/adjust', json={'action': 'remove', 'amount': 200}, headers=headers)
        self.assertEqual(second.json()['entry']['delta'], -200)
        self.assertEqual(second.json()['total'], 0)

        body = self.client.get('/api/cartons', headers=headers).json()
        self.assertEqual(body['total'], 0)
        self.assertEqual([entry['action'] for entry in body['history']], ['remove', 'add'])
        self.assertTrue(body['can_undo'])

    def test_adjust_accepts_dashboard_payload(self) -> None:
        headers = self.auth('employee')
        response = self.client.post(
            '/api/cartons/adjust',
            json={'action': 'add', 'amount': 12, 'delta': 999, 'employee': 'Sarah', 'note': 'Delivery'},
            headers=headers,
        )
        self.assertEqual(response.status_code, 201)
        entry = response.json()['entry']
        self.assertEqual(entry['employee_name'], 'Sarah')
        self.assertEqual(entry['delta'], 12)
        self.assertEqual(response.json()['total'], 12)

        ledger = self.client.get('/api/cartons/ledger', headers=headers)
        self.assertEqual(ledger.status_code, 200)
        self.assertEqual([(row['employee_name'], row['total_after']) for row in ledger.json()], [('Sarah', 12)])
        self.assertEqual(self.client.get('/api/cartons/ledger?limit=0', headers=headers).json(), [])

    def test_invalid_requests(self) -> None:
        headers = self.auth('employee')
        bogus = self.client.post('/api/cartons/adjust', json={'action': 'bogus', 'amount': 1}, headers=headers)
        self.assertEqual(bogus.status_code, 422)
        missing = self.client.post('/api/cartons/adjust', json={'action': 'add'}, headers=headers)
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json()['error']['code'], 'INVALID_INPUT')
        long_note = self.client.post(
            '/api/cartons/adjust', json={'action': 'add', 'amount': 1, 'note': 'x' * 121}, headers=headers
        )
        self.assertEqual(long_note.status_code, 422)
        self.assertEqual(self.client.get('/api/cartons/total', headers=headers).json(), {'total': 0})

    def test_undo_needs_shift_lead(self) -> None:
        self.client.post('/api/cartons/adjust', json={'action': 'add', 'amount': 10}, headers=self.auth('employee'))
        self.client.post('/api/cartons/adjust', json={'action': 'set', 'amount': 4}, headers=self.auth('employee'))

        forbidden = self.client.post('/api/cartons/undo', headers=self.auth('employee'))
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(forbidden.json()['error']['code'], 'FORBIDDEN')

        lead = self.auth('shift_lead')
        self.assertEqual(self.client.post('/api/cartons/undo', headers=lead).json()['total'], 10)
        self.assertEqual(self.client.post('/api/cartons/undo', headers=lead).json()['total'], 0)
        self.assertEqual(self.client.post('/api/cartons/undo', headers=lead).status_code, 404)


class TaskApiTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        now = datetime.now(tz=timezone.utc)
        with self.session_factory() as db:
            log = create_task_log(
                db,
                source_type=TaskSourceType.REGULAR,
                source_id=1,
                title='Clean restrooms',
                due_at=now + timedelta(minutes=30),
                assigned_to=self.ids['employee'],
                created_at=now,
            )
            db.commit()
            self.task_log_id = log.id

    def test_assignee_completes_task(self) -> None:
        headers = self.auth('employee')
        mine = self.client.get('/api/task-logs/mine', headers=headers).json()
        self.assertEqual([row['id'] for row in mine], [self.task_log_id])

        response = self.client.patch(
            f'/api/task-logs/{self.task_log_id}/status', json={'status': 'done'}, headers=headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'done')
        self.assertIsNotNone(response.json()['completed_at'])
        self.assertEqual(self.client.get('/api/task-logs/mine', headers=headers).json(), [])

    def test_other_employee_cannot_update_task(self) -> None:
        response = self.client.patch(
            f'/api/task-logs/{self.task_log_id}/status', json={'status': 'done'}, headers=self.auth('other')
        )
        self.assertEqual(response.status_code, 403)

    def test_shift_lead_can_update_any_task(self) -> None:
        response = self.client.patch(
            f'/api/task-logs/{self.task_log_id}/status', json={'status': 'help'}, headers=self.auth('shift_lead')
        )
        self.assertEqual(response.json()['status'], 'help')

    def test_unknown_task_and_status(self) -> None:
        headers = self.auth('shift_lead')
        missing = self.client.patch('/api/task-logs/9999/status', json={'status': 'done'}, headers=headers)
        self.assertEqual(missing.status_code, 404)
        invalid = self.client.patch(
            f'/api/task-logs/{self.task_log_id}/status', json={'status': 'finished'}, headers=headers
        )
        self.assertEqual(invalid.status_code, 422)

    def test_status_update_trims_events_to_configured_retention(self) -> None:
        headers = self.auth('employee')
        self.app.state.settings = Settings(seed_demo_data=False, scheduler_enabled=False, event_log_retention=2)
        with self.session_factory() as db:
            for index in range(3):
                log_event(db, 'tick', {'n': index}, retention=5000)
            db.commit()

        response = self.client.patch(
            f'/api/task-logs/{self.task_log_id}/status', json={'status': 'done'}, headers=headers
        )
        self.assertEqual(response.status_code, 200)
        with self.session_factory() as db:
            types = [event['type'] for event in recent_events(db, limit=10)]
        self.assertEqual(types, ['task:done', 'tick'])

    def test_scheduler_run_requires_admin(self) -> None:
        self.assertEqual(self.client.post('/api/scheduler/run', headers=self.auth('shift_lead')).status_code, 403)
        self.assertEqual(self.client.post('/api/scheduler/run', headers=self.auth('admin')).status_code, 200)


class RoleGateApiTests(ApiTestCase):
    def test_manager_passes_every_gate(self) -> None:
        headers = self.auth('manager')
        for path in ('/api/manager/dashboard', '/api/manager/performance', '/api/settings', '/api/events'):
            self.assertEqual(self.client.get(path, headers=headers).status_code, 200, path)

    def test_dashboard_is_admin_only(self) -> None:
        self.assertEqual(self.client.get('/api/manager/dashboard', headers=self.auth('admin')).status_code, 200)
        self.assertEqual(self.client.get('/api/manager/dashboard', headers=self.auth('shift_lead')).status_code, 403)
        self.assertEqual(self.client.get('/api/manager/performance', headers=self.auth('admin')).status_code, 403)

    def test_admin_cannot_grant_manager(self) -> None:
        response = self.client.post(
            '/api/employees',
            json={'name': 'New', 'pin': '1357', 'role': 'manager'},
            headers=self.auth('admin'),
        )
        self.assertEqual(response.status_code, 403)
        created = self.client.post(
            '/api/employees',
            json={'name': 'New', 'pin': '1357', 'role': 'shift_lead'},
            headers=self.auth('admin'),
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()['role'], 'shift_lead')

    def test_duplicate_pin_is_invalid_input(self) -> None:
        response = self.client.post(
            '/api/employees',
            json={'name': 'Copy', 'pin': PINS['employee']},
            headers=self.auth('admin'),
        )
        self.assertEqual(response.status_code, 400)


class StoreFloorApiTests(ApiTestCase):
    def test_broadcast_needs_shift_lead(self) -> None:
        employee = self.auth('employee')
        response = self.client.post('/api/messages', json={'content': 'Hello all'}, headers=employee)
        self.assertEqual(response.status_code, 403)

        direct = self.client.post(
            '/api/messages',
            json={'type': 'direct', 'recipient_id': self.ids['other'], 'content': 'Cover me at 5?'},
            headers=employee,
        )
        self.assertEqual(direct.status_code, 201)

        inbox = self.client.get('/api/messages', headers=self.auth('other')).json()
        self.assertEqual(inbox['unread'], 1)
        message_id = inbox['messages'][0]['id']
        self.assertEqual(self.client.post(f'/api/messages/{message_id}/read', headers=employee).status_code, 404)
        self.assertEqual(
            self.client.post(f'/api/messages/{message_id}/read', headers=self.auth('other')).status_code, 200
        )

    def test_broadcast_stays_unread_for_other_recipients(self) -> None:
        lead = self.auth('shift_lead')
        sent = self.client.post('/api/messages', json={'content': 'Truck at 3'}, headers=lead)
        self.assertEqual(sent.status_code, 201)
        message_id = sent.json()['id']

        read = self.client.post(f'/api/messages/{message_id}/read', headers=self.auth('employee'))
        self.assertEqual(read.status_code, 200)
        self.assertIsNotNone(read.json()['read_at'])

        mike = self.client.get('/api/messages', headers=self.auth('employee')).json()
        riley = self.client.get('/api/messages', headers=self.auth('other')).json()
        self.assertEqual((mike['unread'], riley['unread']), (0, 1))
        self.assertIsNotNone(mike['messages'][0]['read_at'])
        self.assertIsNone(riley['messages'][0]['read_at'])

        [outgoing] = self.client.get('/api/messages/sent', headers=lead).json()
        self.assertEqual(outgoing['read_count'], 1)

    def test_out_of_range_reading_shows_in_alerts(self) -> None:
        equipment = self.client.post(
            '/api/temperature/equipment',
            json={'name': 'Kitchen Freezer', 'min_temp': -10, 'max_temp': 0},
            headers=self.auth('admin'),
        )
        self.assertEqual(equipment.status_code, 201)
        equipment_id = equipment.json()['id']

        reading = self.client.post(
            '/api/temperature/readings',
            json={'equipment_id': equipment_id, 'value': 12},
            headers=self.auth('employee'),
        )
        self.assertEqual(reading.status_code, 201)
        self.assertEqual(reading.json()['status'], 'high')

        alerts = self.client.get('/api/temperature/alerts', headers=self.auth('shift_lead')).json()
        self.assertEqual([row['value'] for row in alerts], [12])

    def test_bad_equipment_limits_are_invalid_input(self) -> None:
        response = self.client.post(
            '/api/temperature/equipment',
            json={'name': 'Cooler', 'min_temp': 40, 'max_temp': 35},
            headers=self.auth('admin'),
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error']['code'], 'INVALID_INPUT')


if __name__ == '__main__':
    unittest.main()
