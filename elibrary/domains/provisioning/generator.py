# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Temporary password and enrollment identifier generation.

Passwords are built, not sampled: one character is taken from each
required class, the remainder is drawn from the full alphabet, and the
result is shuffled. Every draw uses the ``secrets`` CSPRNG, so the
complexity policy holds for every output.

Glyphs that are easy to confuse on a printed credential slip
(I, O, l, 0, 1) are left out of the alphabets.

Example:
    >>> secret = generate_secret()
    >>> enrollment_id = generate_enrollment_id(Role.STUDENT)
    >>> enrollment_id[:3]
    'STU'
"""

import re
import secrets
from datetime import datetime

from elibrary.models.provisioning import Role
from elibrary.utils.datetime import epoch_millis

UPPERCASE = "ABCDEFGHJKLMNPQRSTUVWXYZ"
LOWERCASE = "abcdefghijkmnpqrstuvwxyz"
DIGITS = "23456789"
SYMBOLS = "!@#$%^&*"

REQUIRED_CLASSES = (UPPERCASE, LOWERCASE, DIGITS, SYMBOLS)
ALPHABET = "".join(REQUIRED_CLASSES)

MIN_SECRET_LENGTH = 10
DEFAULT_SECRET_LENGTH = 12

ENROLLMENT_ID_PATTERN = re.compile(r"^(STU|STF|LIB)[A-Za-z0-9]+$")

_system_random = secrets.SystemRandom()


def generate_secret(length: int = DEFAULT_SECRET_LENGTH) -> str:
    """Generate a temporary password satisfying the complexity policy.

    The result always contains at least one uppercase letter, one lowercase
    letter, one digit and one symbol from SYMBOLS.

    Args:
        length: Password length, at least MIN_SECRET_LENGTH.

    Returns:
        The generated password.

    Raises:
        ValueError: If length is below MIN_SECRET_LENGTH.
    """
    if length < MIN_SECRET_LENGTH:
        raise ValueError(
            f"Secret length must be at least {MIN_SECRET_LENGTH}, got {length}"
        )

    chars = [secrets.choice(charset) for charset in REQUIRED_CLASSES]
    chars.extend(secrets.choice(ALPHABET) for _ in range(length - len(chars)))
    _system_random.shuffle(chars)
    return "".join(chars)


def meets_complexity(secret: str, min_length: int = MIN_SECRET_LENGTH) -> bool:
    """Check a secret against the complexity policy."""
    if len(secret) < min_length:
        return False
    return all(any(c in charset for c in secret) for charset in REQUIRED_CLASSES)


def generate_enrollment_id(role: Role, now: datetime | None = None) -> str:
    """Generate a human-readable enrollment identifier.

    Format: ``{PREFIX}{last 8 digits of epoch ms}{3 random digits}``, e.g.
    ``STU53077528042``. The record store enforces uniqueness; callers
    regenerate on a uniqueness violation.

    Args:
        role: Identity role, selects the STU / STF / LIB prefix.
        now: Timestamp source, defaults to the current UTC time.

    Returns:
        The enrollment identifier.
    """
    timestamp = str(epoch_millis(now))[-8:]
    padding = f"{secrets.randbelow(1000):03d}"
    return f"{role.enrollment_prefix}{timestamp}{padding}"
