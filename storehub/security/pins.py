import re

from pwdlib import PasswordHash

from storehub.errors import InvalidInputError

PIN_PATTERN = re.compile(r'^\d{4,8}$')

pin_hash = PasswordHash.recommended()


def validate_pin(raw_pin: str) -> str:
    pin = (raw_pin or '').strip()
    if not PIN_PATTERN.match(pin):
        raise InvalidInputError('PIN must be 4 to 8 digits')
    return pin


def hash_pin(raw_pin: str) -> str:
    return pin_hash.hash(validate_pin(raw_pin))


def verify_pin(raw_pin: str, hashed_pin: str) -> bool:
    return pin_hash.verify(raw_pin, hashed_pin)
