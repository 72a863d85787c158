"""Identifiers: every row and request id is a ULID in canonical Crockford form."""

import ulid

ULID_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def generate_ulid() -> str:
    return str(ulid.ULID())


def is_valid_ulid(value: str) -> bool:
    try:
        ulid.ULID.from_str(value)
    except ValueError:
        return False
    return True
