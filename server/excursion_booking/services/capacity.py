"""Slot capacity arithmetic."""

from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class SlotAvailability:
    """Spots left on a slot and whether it can still be booked."""

    available_spots: int
    is_available: bool


def remaining_capacity(max_participants: int, participant_counts: Iterable[Optional[int]]) -> int:
    """
    Unclamped capacity left once the given bookings are seated.

    Negative when the slot is overbooked. Missing counts are treated as zero.
    """
    return max_participants - sum(count or 0 for count in participant_counts)


def calculate_availability(
    max_participants: int,
    participant_counts: Iterable[Optional[int]],
) -> SlotAvailability:
    """
    Compute a slot's availability from the participant counts of its confirmed bookings.

    Args:
        max_participants: Slot size
        participant_counts: Participant count of each confirmed booking

    Returns:
        SlotAvailability with spots clamped at zero
    """
    spots = max(0, remaining_capacity(max_participants, participant_counts))
    return SlotAvailability(available_spots=spots, is_available=spots > 0)
