"""Tests for the problem-details exceptions."""

from excursion_booking.core.exceptions import (
    CapacityExceededError,
    NotFoundError,
    PastDateError,
    StateConflictError,
)


def test_state_conflict_reads_as_its_message():
    error = StateConflictError("b-1", "confirmed", "Cette réservation est déjà confirmée.")

    assert str(error) == "Cette réservation est déjà confirmée."
    assert error.message == "Cette réservation est déjà confirmée."
    assert error.problem_details["error"] == "Cette réservation est déjà confirmée."
    assert error.problem_details["code"] == "STATE_CONFLICT"
    assert error.status_code == 409


def test_every_problem_has_a_string_form():
    errors = [
        CapacityExceededError(slot_id="s-1", requested_participants=3, available_spots=1),
        PastDateError("2020-01-01"),
        NotFoundError(resource_type="booking", resource_id="b-2"),
    ]

    for error in errors:
        assert isinstance(str(error), str)
        assert str(error) == error.problem_details["error"]


def test_capacity_message_clamps_negative_spots():
    error = CapacityExceededError(slot_id="s-1", requested_participants=3, available_spots=-2)

    assert str(error) == "Only 0 spot(s) left for this slot."
    assert error.problem_details["available_spots"] == -2
