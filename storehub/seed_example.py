from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from storehub.auth import Role
from storehub.models import Employee, InventoryItem, RegularTask, Shortcut, TemperatureEquipment
from storehub.security.pins import hash_pin

DEMO_EMPLOYEES = [
    {'name': 'Store Manager', 'pin': '1234', 'role': Role.MANAGER},
    {'name': 'Dana Ortiz', 'pin': '4321', 'role': Role.ADMIN},
    {'name': 'Sarah Johnson', 'pin': '5678', 'role': Role.SHIFT_LEAD},
    {'name': 'Mike Chen', 'pin': '9999', 'role': Role.EMPLOYEE},
]

DEMO_REGULAR_TASKS = [
    {'title': 'Check cigarette inventory', 'frequency_minutes': 120},
    {'title': 'Clean restrooms', 'frequency_minutes': 90},
    {'title': 'Restock coffee station', 'frequency_minutes': 60},
    {'title': 'Check cooler temperatures', 'frequency_minutes': 180},
]

DEMO_INVENTORY = [
    {'sku': 'CIG-001', 'name': 'Marlboro Red', 'count': 15, 'min_threshold': 10},
    {'sku': 'CIG-002', 'name': 'Camel Blue', 'count': 8, 'min_threshold': 5},
    {'sku': 'CIG-003', 'name': 'Newport Menthol', 'count': 3, 'min_threshold': 5},
    {'sku': 'MISC-001', 'name': 'Lottery Tickets', 'count': 50, 'min_threshold': 20},
]

DEMO_EQUIPMENT = [
    {'name': 'Beer Walk-in', 'min_temp': 33, 'max_temp': 38, 'interval_hours': 14},
    {'name': 'Kitchen Freezer', 'min_temp': -10, 'max_temp': 0, 'interval_hours': 14},
]

DEMO_SHORTCUTS = [
    {'name': 'Lottery Portal', 'url': 'https://www.example.com/lottery', 'icon': 'ticket', 'sort_order': 1},
    {'name': 'Vendor Orders', 'url': 'https://www.example.com/orders', 'icon': 'truck', 'sort_order': 2},
]


def _is_empty(db: Session, model) -> bool:
    return db.execute(select(func.count()).select_from(model)).scalar_one() == 0


def seed(session_factory: sessionmaker[Session]) -> None:
    with session_factory() as db:
        if _is_empty(db, Employee):
            db.add_all(
                [
                    Employee(name=item['name'], pin_hash=hash_pin(item['pin']), role=item['role'], active=True)
                    for item in DEMO_EMPLOYEES
                ]
            )
        if _is_empty(db, RegularTask):
            db.add_all([RegularTask(active=True, **item) for item in DEMO_REGULAR_TASKS])
        if _is_empty(db, InventoryItem):
            db.add_all([InventoryItem(**item) for item in DEMO_INVENTORY])
        if _is_empty(db, TemperatureEquipment):
            db.add_all([TemperatureEquipment(active=True, **item) for item in DEMO_EQUIPMENT])
        if _is_empty(db, Shortcut):
            db.add_all([Shortcut(visible=True, **item) for item in DEMO_SHORTCUTS])
        db.commit()


if __name__ == '__main__':
    from storehub.config import settings
    from storehub.db import session_factory_from_settings

    seed(session_factory_from_settings(settings))
    print('Seed data inserted/verified.')
