"""Commission policy applied to bookings, per channel."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ..core.config import Settings, settings
from ..models.booking import BookingChannel


def round_half_up(amount: Decimal) -> int:
    """Round a minor-unit amount to an integer, halves away from zero."""
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: int, percent: int) -> int:
    return round_half_up(Decimal(amount) * Decimal(percent) / Decimal(100))


@dataclass(frozen=True)
class CommissionBreakdown:
    """How the total of a booking is distributed, in minor units."""

    total: int
    commission: int
    guide_share: int
    operator_share: int
    platform_share: int


class CommissionPolicy:
    """
    Commission rules for one booking channel.

    Direct bookings retain a flat percentage of the total for the platform.
    Reseller bookings split every participant's price between guide, tour
    operator and platform; each share is rounded per person and then
    multiplied by the number of participants. The commission stored on a
    reseller booking is the operator share.
    """

    def __init__(self, channel: BookingChannel, config: Settings | None = None):
        self.channel = channel
        self.config = config or settings

    def breakdown(self, price_per_person: int, participants: int) -> CommissionBreakdown:
        """
        Compute the split of a booking.

        Args:
            price_per_person: Effective price in minor units
            participants: Number of participants

        Returns:
            CommissionBreakdown for this channel
        """
        total = price_per_person * participants

        if self.channel == BookingChannel.RESELLER:
            guide = percent_of(price_per_person, self.config.reseller_guide_percent) * participants
            operator = percent_of(price_per_person, self.config.reseller_operator_percent) * participants
            platform = percent_of(price_per_person, self.config.reseller_platform_percent) * participants
            return CommissionBreakdown(
                total=total,
                commission=operator,
                guide_share=guide,
                operator_share=operator,
                platform_share=platform,
            )

        platform = percent_of(total, self.config.direct_commission_percent)
        return CommissionBreakdown(
            total=total,
            commission=platform,
            guide_share=total - platform,
            operator_share=0,
            platform_share=platform,
        )
