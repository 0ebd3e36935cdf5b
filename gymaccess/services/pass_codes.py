"""
Pass code generation and normalisation.

Codes look like PASS-7K4QM2XH9RTA: a fixed prefix followed by random
characters from an alphabet without look-alikes (no 0/O, 1/I/L), so codes
read back over a front desk survive transcription.

Uniqueness is enforced by the unique constraint on gym_passes.pass_code;
generate_pass_code only makes collisions unlikely.
"""

import secrets
from urllib.parse import quote

from gymaccess.platform.errors import ValidationError

CANONICAL_PREFIX = "PASS-"

CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"


def generate_pass_code(prefix: str = CANONICAL_PREFIX, length: int = 12) -> str:
    """Return a new random pass code."""
    body = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix}{body}"


def normalize_pass_code(presented: str, prefix: str = CANONICAL_PREFIX) -> str:
    """
    Normalise a code typed or scanned at the front desk.

    "abc123"      -> "PASS-ABC123"
    "pass-abc123" -> "PASS-ABC123"
    " PASS-X9 "   -> "PASS-X9"

    Raises:
        ValidationError: blank input
    """
    code = (presented or "").strip()
    if not code:
        raise ValidationError("Pass code is required")

    if code[:len(prefix)].upper() == prefix.upper():
        code = code[len(prefix):]

    remainder = code.strip().upper()
    if not remainder:
        raise ValidationError("Pass code is required")
    return f"{prefix}{remainder}"


def qr_code_url(pass_code: str, template: str) -> str:
    """Build the QR image URL for a pass code."""
    return template.format(code=quote(pass_code, safe=""))
