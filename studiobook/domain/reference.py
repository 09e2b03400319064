"""
Human-facing booking reference numbers, e.g. ``IOS-251220-A3F7``.
"""

import re
import secrets

import pendulum
from pendulum import DateTime

# No 0/O or 1/I: references get read out over the phone
REFERENCE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
SUFFIX_LENGTH = 4


def generate_reference(prefix: str = "IOS", now: DateTime | None = None) -> str:
    """Build ``PREFIX-YYMMDD-XXXX`` using the creation day and a random suffix."""
    now = now or pendulum.now()
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}-{now.format('YYMMDD')}-{suffix}"


def is_valid_reference(reference: str, prefix: str = "IOS") -> bool:
    pattern = rf"^{re.escape(prefix)}-\d{{6}}-[A-Z0-9]{{{SUFFIX_LENGTH}}}$"
    return re.match(pattern, reference or "") is not None
