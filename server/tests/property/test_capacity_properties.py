"""Property-based tests for capacity and commission invariants."""

from hypothesis import given
from hypothesis import strategies as st

from excursion_booking.models.booking import BookingChannel
from excursion_booking.services.capacity import calculate_availability, remaining_capacity
from excursion_booking.services.commission import CommissionPolicy

# Strategies for generating test data
slot_sizes = st.integers(min_value=1, max_value=500)
party_sizes = st.lists(st.integers(min_value=1, max_value=50), max_size=30)
prices = st.integers(min_value=0, max_value=1_000_000)
participants = st.integers(min_value=1, max_value=100)


@given(max_participants=slot_sizes, counts=party_sizes)
def test_available_spots_stay_within_bounds(max_participants, counts):
    availability = calculate_availability(max_participants, counts)

    assert 0 <= availability.available_spots <= max_participants
    assert availability.is_available == (availability.available_spots > 0)


@given(max_participants=slot_sizes, counts=party_sizes)
def test_clamped_spots_match_remaining_capacity(max_participants, counts):
    remaining = remaining_capacity(max_participants, counts)

    assert calculate_availability(max_participants, counts).available_spots == max(0, remaining)
    assert (remaining < 0) == (sum(counts) > max_participants)


@given(max_participants=slot_sizes, counts=party_sizes, extra=st.integers(min_value=1, max_value=50))
def test_confirming_more_never_frees_spots(max_participants, counts, extra):
    before = calculate_availability(max_participants, counts)
    after = calculate_availability(max_participants, counts + [extra])

    assert after.available_spots <= before.available_spots


@given(max_participants=slot_sizes, counts=party_sizes)
def test_order_of_bookings_does_not_matter(max_participants, counts):
    assert calculate_availability(max_participants, counts) == calculate_availability(
        max_participants, list(reversed(counts))
    )


@given(price=prices, count=participants)
def test_direct_split_distributes_the_whole_total(price, count):
    breakdown = CommissionPolicy(BookingChannel.DIRECT).breakdown(price, count)

    assert breakdown.total == price * count
    assert breakdown.guide_share + breakdown.platform_share == breakdown.total
    assert 0 <= breakdown.commission <= breakdown.total


@given(price=prices, count=participants)
def test_reseller_split_is_within_rounding_of_total(price, count):
    breakdown = CommissionPolicy(BookingChannel.RESELLER).breakdown(price, count)
    shares = breakdown.guide_share + breakdown.operator_share + breakdown.platform_share

    assert breakdown.total == price * count
    assert abs(shares - breakdown.total) <= count
    assert breakdown.commission == breakdown.operator_share
    # Shares are whole per-person amounts
    assert breakdown.guide_share % count == 0
    assert breakdown.operator_share % count == 0
    assert breakdown.platform_share % count == 0
