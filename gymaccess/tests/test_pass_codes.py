"""Tests for pass code generation, normalisation and QR urls."""

import pytest

from gymaccess.platform.errors import ValidationError
from gymaccess.services.pass_codes import (
    CODE_ALPHABET,
    generate_pass_code,
    normalize_pass_code,
    qr_code_url,
)


def test_generated_code_shape():
    code = generate_pass_code("PASS-", 12)

    assert code.startswith("PASS-")
    body = code[len("PASS-"):]
    assert len(body) == 12
    assert set(body) <= set(CODE_ALPHABET)


def test_alphabet_has_no_look_alikes():
    for ambiguous in "01OIL":
        assert ambiguous not in CODE_ALPHABET


def test_generated_codes_differ():
    codes = {generate_pass_code() for _ in range(200)}
    assert len(codes) == 200


@pytest.mark.parametrize("presented,expected", [
    ("abc123", "PASS-ABC123"),
    ("pass-abc123", "PASS-ABC123"),
    ("  PASS-X9  ", "PASS-X9"),
    ("PaSs-k7m", "PASS-K7M"),
    ("passport", "PASS-PASSPORT"),
])
def test_normalize_pass_code(presented, expected):
    assert normalize_pass_code(presented) == expected


@pytest.mark.parametrize("presented", ["", "  ", None, "PASS-", "pass- "])
def test_normalize_rejects_blank(presented):
    with pytest.raises(ValidationError):
        normalize_pass_code(presented)


def test_qr_code_url_quotes_code():
    template = "https://qr.example/create?data={code}"

    assert qr_code_url("PASS-AB CD", template) == "https://qr.example/create?data=PASS-AB%20CD"
    assert qr_code_url("PASS-K7M", template) == "https://qr.example/create?data=PASS-K7M"
