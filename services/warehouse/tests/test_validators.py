"""
Tests for input and state-transition validation.
"""
import pytest

from app.exceptions import ValidationError
from app.validators import (
    APPROVED,
    PENDING,
    ensure,
    statuses_leading_to,
    validate_quantity,
    validate_return_reason,
    validate_return_status_transition,
    validate_stock_level,
)


@pytest.mark.parametrize("value, valid", [(1, True), (0, False), (-1, False), (2.5, False), (True, False), ("3", False)])
def test_validate_quantity(value, valid):
    assert validate_quantity(value)[0] is valid


@pytest.mark.parametrize("value, valid", [(0, True), (7, True), (-1, False), (None, False)])
def test_validate_stock_level(value, valid):
    assert validate_stock_level(value, "min_stock")[0] is valid


@pytest.mark.parametrize("reason", ["reject", "defective", "unsold"])
def test_known_return_reasons(reason):
    assert validate_return_reason(reason) == (True, "")


def test_unknown_return_reason():
    is_valid, message = validate_return_reason("stolen")

    assert not is_valid
    assert "stolen" in message


def test_return_transitions():
    assert validate_return_status_transition(PENDING, APPROVED) == (True, "")
    assert validate_return_status_transition(APPROVED, PENDING)[0] is False
    assert validate_return_status_transition(APPROVED, APPROVED)[0] is False
    assert validate_return_status_transition("rejected", APPROVED)[0] is False


def test_only_pending_leads_to_approved():
    assert statuses_leading_to(APPROVED) == [PENDING]
    assert statuses_leading_to(PENDING) == []


def test_ensure_raises_with_message():
    with pytest.raises(ValidationError, match="quantity must be positive"):
        ensure(validate_quantity(0))
