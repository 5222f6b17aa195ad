"""
utils/validators.py — Input validation helpers for the conductor routes.

Validates:
- Roles (short key or full interval label)
- Crop / bed identifiers
- Override flags sent as JSON booleans or form strings
- Brix readings and bed dimensions
- Inoculant types

Each helper returns (value, None) on success or (None, error_message).
"""

import math

from models import parse_role
from zones import INOCULANT_OPTIONS

MAX_BRIX = 40
MAX_BED_DIMENSION_FT = 500

TRUE_STRINGS = {'1', 'true', 'yes', 'on'}


def validate_role(value, allowed=None):
    role = parse_role(value)
    if role is None:
        return None, f"Unknown role: {value!r}"
    if allowed is not None and role not in allowed:
        return None, f"Role {role.value} is not allowed here."
    return role, None


def validate_id(value, label='id'):
    if isinstance(value, bool):
        return None, f"Invalid {label}."
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None, f"Invalid {label}."
    if parsed <= 0:
        return None, f"Invalid {label}."
    return parsed, None


def parse_flag(value):
    """Lenient boolean parsing; anything unrecognized counts as False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return False


def validate_brix(value):
    """A brix reading in degrees, or None to clear it."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, None
    if isinstance(value, bool):
        return None, "Brix must be a number."
    try:
        brix = float(value)
    except (TypeError, ValueError):
        return None, "Brix must be a number."
    if not math.isfinite(brix):
        return None, "Brix must be a number."
    if brix < 0 or brix > MAX_BRIX:
        return None, f"Brix must be between 0 and {MAX_BRIX}."
    return brix, None


def validate_dimension(value, label):
    if isinstance(value, bool):
        return None, f"{label} must be a number."
    try:
        feet = float(value)
    except (TypeError, ValueError):
        return None, f"{label} must be a number."
    if not math.isfinite(feet):
        return None, f"{label} must be a number."
    if feet <= 0 or feet > MAX_BED_DIMENSION_FT:
        return None, f"{label} must be between 0 and {MAX_BED_DIMENSION_FT} ft."
    return feet, None


def validate_inoculant(value):
    """One of INOCULANT_OPTIONS, or None to clear the overlay."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, None
    if value not in INOCULANT_OPTIONS:
        return None, f"Unknown inoculant type: {value!r}"
    return value, None
