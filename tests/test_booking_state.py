import pytest

from driverhire.errors import InvalidTransition
from driverhire.models.enums import BookingStatus
from driverhire.utils.booking_state import ALLOWED_TRANSITIONS, is_terminal, validate_transition

LEGAL = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "ongoing"),
    ("confirmed", "cancelled"),
    ("ongoing", "completed"),
    ("ongoing", "cancelled"),
}


@pytest.mark.parametrize("current", [s.value for s in BookingStatus])
@pytest.mark.parametrize("new", [s.value for s in BookingStatus])
def test_transition_table(current: str, new: str):
    if (current, new) in LEGAL:
        validate_transition(current, new)
    else:
        with pytest.raises(InvalidTransition) as exc_info:
            validate_transition(current, new)
        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == f"Cannot transition from '{current}' to '{new}'"


def test_terminal_statuses():
    assert is_terminal(BookingStatus.COMPLETED)
    assert is_terminal("cancelled")
    assert not is_terminal(BookingStatus.PENDING)
    assert not is_terminal("ongoing")


def test_every_status_has_an_entry():
    assert set(ALLOWED_TRANSITIONS) == set(BookingStatus)


def test_unknown_status_value():
    with pytest.raises(ValueError):
        validate_transition("pending", "teleported")
