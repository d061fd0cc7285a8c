"""
Validation utilities for the Warehouse service.

Provides business rule validation beyond schema validation. Each check
returns ``(is_valid, error_message)``; ``ensure`` turns a failed check into
a ``ValidationError``.
"""
from typing import List, Tuple

from .exceptions import ValidationError

RETURN_REASONS = ("reject", "defective", "unsold")

PENDING = "pending"
APPROVED = "approved"

# Valid return status transitions
RETURN_TRANSITIONS = {
    PENDING: [APPROVED],
    APPROVED: [],  # Terminal state
}


def validate_quantity(quantity, field: str = "quantity") -> Tuple[bool, str]:
    """
    Validate a quantity that must move stock.

    Args:
        quantity: Value to check
        field: Name used in the error message

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return False, f"{field} must be an integer"
    if quantity <= 0:
        return False, f"{field} must be positive"
    return True, ""


def validate_stock_level(value, field: str) -> Tuple[bool, str]:
    """
    Validate an absolute stock figure (quantity or minimum) set by an admin.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{field} must be an integer"
    if value < 0:
        return False, f"{field} cannot be negative"
    return True, ""


def validate_return_reason(reason: str) -> Tuple[bool, str]:
    """
    Validate a return reason.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if reason not in RETURN_REASONS:
        return False, f"Unknown return reason '{reason}'. Expected one of: {', '.join(RETURN_REASONS)}"
    return True, ""


def validate_return_status_transition(old_status: str, new_status: str) -> Tuple[bool, str]:
    """
    Validate that a return status transition is allowed.

    Args:
        old_status: Current return status
        new_status: Requested return status

    Returns:
        Tuple of (is_valid, error_message)
    """
    if old_status not in RETURN_TRANSITIONS:
        return False, f"Unknown status: {old_status}"

    if new_status not in RETURN_TRANSITIONS:
        return False, f"Unknown status: {new_status}"

    if new_status not in RETURN_TRANSITIONS[old_status]:
        return False, f"Invalid status transition: {old_status} -> {new_status}"

    return True, ""


def statuses_leading_to(new_status: str) -> List[str]:
    """Statuses from which ``new_status`` can be reached in one step."""
    return [status for status, targets in RETURN_TRANSITIONS.items() if new_status in targets]


def ensure(result: Tuple[bool, str]) -> None:
    """Raise ValidationError for a failed check."""
    is_valid, message = result
    if not is_valid:
        raise ValidationError(message)
