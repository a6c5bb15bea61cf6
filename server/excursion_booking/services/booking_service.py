"""Booking service for business logic operations."""

import logging
import secrets
import string
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import db_operation
from ..core.exceptions import AuthorizationError, CapacityExceededError, NotFoundError, StateConflictError
from ..core.observability import metrics_collector
from ..models.availability_slot import AvailabilitySlot
from ..models.booking import Booking, BookingChannel, BookingStatus
from ..models.excursion import Excursion
from ..models.profile import TourOperator, UserRole
from ..schemas.auth import CurrentUser
from ..schemas.booking import BookingStats, CreateBookingRequest, CreateResellerBookingRequest
from ..schemas.common import Money
from .account_service import AccountService
from .availability_service import AvailabilityService, business_today
from .booking_validator import BookingValidationResult, BookingValidator
from .change_feed import ChangeEventType, ChangeFeed, row_to_dict
from .commission import CommissionPolicy
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

BOOKINGS_TABLE = Booking.__tablename__


def effective_price(slot: AvailabilitySlot, excursion: Excursion) -> int:
    """Per-person price: the slot override when set, else the excursion price."""
    if slot.price_override is not None:
        return slot.price_override
    return excursion.price_per_person


class BookingService:
    """Service for booking-related operations."""

    def __init__(
        self,
        db: AsyncSession,
        feed: Optional[ChangeFeed] = None,
        notifier: Optional[NotificationService] = None,
        today: Optional[date] = None,
    ):
        self.db = db
        self.feed = feed
        self.notifier = notifier
        self.today = today
        self.availability_service = AvailabilityService(db, feed)
        self.account_service = AccountService(db)

    def _generate_booking_code(self, length: int = 8) -> str:
        """Generate a random booking confirmation code."""
        alphabet = string.ascii_uppercase + string.digits
        return ''.join(secrets.choice(alphabet) for _ in range(length))

    async def _unique_booking_code(self) -> str:
        booking_code = self._generate_booking_code()
        while await self.get_booking_by_code(booking_code):
            booking_code = self._generate_booking_code()
        return booking_code

    def _today(self) -> date:
        return self.today or business_today()

    async def validate_booking(
        self,
        excursion_id: UUID,
        slot_id: UUID,
        participants_count: int,
    ) -> BookingValidationResult:
        """Run the booking validator without side effects."""
        validator = BookingValidator(self.db, today=self.today)
        return await validator.validate(excursion_id, slot_id, participants_count)

    async def create_booking(self, request: CreateBookingRequest, client: CurrentUser) -> Booking:
        """
        Create a pending direct booking for the calling client.

        Args:
            request: Booking creation request
            client: Authenticated client

        Returns:
            Created booking entity

        Raises:
            UnavailableError: If the slot, excursion or guide cannot take bookings
            PastDateError: If the slot is in the past
            CapacityExceededError: If the slot lacks spots
            ValidationError: If the participant count is not positive
        """
        validation = await self._validate_or_raise(request)

        async with db_operation(self.db, "create booking"):
            profile = await self.account_service.ensure_profile(client)

        return await self._create(
            validation,
            request,
            channel=BookingChannel.DIRECT,
            client_id=profile.id,
            client_name=profile.full_name,
            client_email=profile.email,
        )

    async def create_reseller_booking(
        self,
        request: CreateResellerBookingRequest,
        tour_operator: TourOperator,
    ) -> Booking:
        """
        Create a pending booking placed by a tour operator for one of its clients.

        Validation and pricing match direct bookings; the stored commission is the
        operator's share of the reseller split.
        """
        validation = await self._validate_or_raise(request)
        return await self._create(
            validation,
            request,
            channel=BookingChannel.RESELLER,
            client_id=None,
            client_name=request.client_name,
            client_email=request.client_email,
            tour_operator_id=tour_operator.id,
        )

    async def _validate_or_raise(self, request: CreateBookingRequest) -> BookingValidationResult:
        validation = await self.validate_booking(
            request.excursion_id, request.slot_id, request.participants_count
        )
        if not validation.is_valid:
            raise validation.to_exception()
        return validation

    async def _create(
        self,
        validation: BookingValidationResult,
        request: CreateBookingRequest,
        channel: BookingChannel,
        client_id: Optional[UUID],
        client_name: Optional[str],
        client_email: Optional[str],
        tour_operator_id: Optional[UUID] = None,
    ) -> Booking:
        slot = validation.slot
        excursion = validation.excursion
        price = effective_price(slot, excursion)
        breakdown = CommissionPolicy(channel).breakdown(price, request.participants_count)

        async with db_operation(self.db, "create booking"):
            booking = Booking(
                code=await self._unique_booking_code(),
                excursion_id=excursion.id,
                slot_id=slot.id,
                client_id=client_id,
                tour_operator_id=tour_operator_id,
                client_name=client_name,
                client_email=client_email,
                participants_count=request.participants_count,
                total_amount=breakdown.total,
                commission_amount=breakdown.commission,
                currency=excursion.currency,
                status=BookingStatus.PENDING,
                channel=channel,
                special_requests=request.special_requests,
                booking_date=slot.date,
            )
            self.db.add(booking)
            await self.availability_service.apply_refresh(slot)
            await self.db.commit()

        metrics_collector.record_booking_created(channel.value)
        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": str(booking.id),
                "booking_code": booking.code,
                "slot_id": str(slot.id),
                "channel": channel.value,
                "participants_count": booking.participants_count,
                "total_amount": booking.total_amount,
                "commission_amount": booking.commission_amount
            }
        )

        self._detach(booking, slot, excursion)
        await self._publish_booking(booking, ChangeEventType.INSERT)
        await self.availability_service.publish_slot_change(slot)
        await self._notify("notify_booking_created", booking, excursion, slot)
        return booking

    async def confirm_booking(self, booking_id: UUID) -> Booking:
        """
        Confirm a pending booking, consuming capacity on its slot.

        Capacity is taken with a conditional update under the slot lock: the
        update only matches while the slot still has enough cached spots, and
        the cache is rebuilt from confirmed bookings first.

        Raises:
            NotFoundError: If booking not found
            StateConflictError: If the booking is not pending
            CapacityExceededError: If the slot no longer has room
        """
        async with db_operation(self.db, "confirm booking"):
            booking = await self.get_booking_by_id_or_raise(booking_id)
            slot = await self.availability_service.get_slot_with_lock(booking.slot_id)
            # Re-read under the lock so a concurrent confirm is seen
            await self.db.refresh(booking)
            self._ensure_pending(booking)

            before = row_to_dict(booking)
            participants = booking.participants_count
            slot_id = slot.id

            await self.availability_service.apply_refresh(slot)
            result = await self.db.execute(
                update(AvailabilitySlot)
                .where(
                    AvailabilitySlot.id == slot_id,
                    AvailabilitySlot.available_spots >= participants
                )
                .values(available_spots=AvailabilitySlot.available_spots - participants)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                spots = slot.available_spots
                error = CapacityExceededError(
                    slot_id=str(slot_id),
                    requested_participants=participants,
                    available_spots=spots,
                    detail=f"Seulement {spots} place(s) disponible(s) pour ce créneau.",
                )
                await self.db.rollback()
                logger.warning(
                    "Booking confirmation failed - insufficient spots",
                    extra={
                        "booking_id": str(booking_id),
                        "slot_id": str(slot_id),
                        "requested_participants": participants,
                        "available_spots": spots
                    }
                )
                raise error

            booking.status = BookingStatus.CONFIRMED
            await self.availability_service.apply_refresh(slot)
            await self.db.commit()

        metrics_collector.record_booking_confirmed()
        logger.info(
            "Booking confirmed successfully",
            extra={
                "booking_id": str(booking.id),
                "booking_code": booking.code,
                "slot_id": str(slot_id),
                "participants_count": participants,
                "remaining_spots": slot.available_spots
            }
        )

        excursion = await self.availability_service.excursion_service.get_excursion_by_id(booking.excursion_id)
        self._detach(booking, slot, excursion)
        await self._publish_booking(booking, ChangeEventType.UPDATE, old=before)
        await self.availability_service.publish_slot_change(slot)
        if excursion is not None:
            await self._notify("notify_booking_confirmed", booking, excursion, slot)
        return booking

    def _ensure_pending(self, booking: Booking) -> None:
        if booking.status == BookingStatus.PENDING:
            return
        if booking.status == BookingStatus.CONFIRMED:
            detail = "Cette réservation est déjà confirmée."
        elif booking.status == BookingStatus.CANCELLED:
            detail = "Impossible de confirmer une réservation annulée."
        else:
            detail = "Impossible de confirmer une réservation terminée."
        logger.info(
            "Booking confirmation rejected",
            extra={"booking_id": str(booking.id), "status": booking.status}
        )
        raise StateConflictError(str(booking.id), BookingStatus(booking.status).value, detail)

    async def cancel_booking(self, booking_id: UUID) -> Booking:
        """
        Cancel a booking and give its spots back to the slot.

        Raises:
            NotFoundError: If booking not found
            StateConflictError: If the booking is already cancelled
        """
        async with db_operation(self.db, "cancel booking"):
            booking = await self.get_booking_by_id_or_raise(booking_id)
            slot = await self.availability_service.get_slot_with_lock(booking.slot_id)
            await self.db.refresh(booking)

            if booking.status == BookingStatus.CANCELLED:
                logger.info("Booking already cancelled", extra={"booking_id": str(booking_id)})
                raise StateConflictError(
                    str(booking_id),
                    BookingStatus.CANCELLED.value,
                    "Cette réservation est déjà annulée."
                )

            before = row_to_dict(booking)
            booking.status = BookingStatus.CANCELLED
            booking.cancellation_date = self._today()
            await self.availability_service.apply_refresh(slot)
            await self.db.commit()

        metrics_collector.record_booking_cancelled()
        logger.info(
            "Booking cancelled successfully",
            extra={
                "booking_id": str(booking_id),
                "booking_code": booking.code,
                "previous_status": before["status"],
                "available_spots": slot.available_spots
            }
        )

        excursion = await self.availability_service.excursion_service.get_excursion_by_id(booking.excursion_id)
        self._detach(booking, slot, excursion)
        await self._publish_booking(booking, ChangeEventType.UPDATE, old=before)
        await self.availability_service.publish_slot_change(slot)
        if excursion is not None:
            await self._notify("notify_booking_cancelled", booking, excursion, slot)
        return booking

    async def check_in(self, code: str, guide_id: Optional[UUID]) -> Booking:
        """
        Check a client in with their booking code.

        Args:
            code: Booking code presented by the client
            guide_id: Calling guide, or None for an administrator

        Raises:
            NotFoundError: If no booking has that code
            AuthorizationError: If the booking is for another guide's excursion
            StateConflictError: If the booking is not confirmed or already checked in
        """
        async with db_operation(self.db, "check in"):
            booking = await self.get_booking_by_code(code.strip().upper())
            if booking is None:
                raise NotFoundError(resource_type="booking", detail="Réservation non trouvée.")

            excursion = await self.availability_service.excursion_service.get_excursion_by_id_or_raise(
                booking.excursion_id
            )
            if guide_id is not None and excursion.guide_id != guide_id:
                raise AuthorizationError("Cette réservation ne concerne pas vos excursions.")

            if booking.status != BookingStatus.CONFIRMED:
                raise StateConflictError(
                    str(booking.id),
                    BookingStatus(booking.status).value,
                    "Seules les réservations confirmées peuvent être enregistrées."
                )
            if booking.is_checked_in:
                raise StateConflictError(
                    str(booking.id),
                    BookingStatus(booking.status).value,
                    "Ce client a déjà été enregistré."
                )

            before = row_to_dict(booking)
            booking.is_checked_in = True
            booking.checkin_time = datetime.now(timezone.utc)
            booking.checkin_guide_id = guide_id if guide_id is not None else excursion.guide_id
            await self.db.commit()

        logger.info(
            "Client checked in",
            extra={"booking_id": str(booking.id), "booking_code": booking.code, "guide_id": str(guide_id)}
        )

        self._detach(booking, excursion)
        await self._publish_booking(booking, ChangeEventType.UPDATE, old=before)
        await self._notify("notify_checkin", booking, excursion)
        return booking

    async def get_booking_stats(self, guide_id: UUID) -> BookingStats:
        """Counts by status over the guide's excursions, and revenue from confirmed bookings."""
        stmt = (
            select(
                Booking.status,
                func.count(Booking.id),
                func.coalesce(
                    func.sum(case((Booking.status == BookingStatus.CONFIRMED, Booking.total_amount), else_=0)),
                    0
                )
            )
            .join(Excursion, Excursion.id == Booking.excursion_id)
            .where(Excursion.guide_id == guide_id)
            .group_by(Booking.status)
        )
        result = await self.db.execute(stmt)

        counts = {status.value: 0 for status in BookingStatus}
        revenue = 0
        for status, count, amount in result.all():
            counts[status] = count
            revenue += int(amount or 0)

        return BookingStats(
            total=sum(counts.values()),
            confirmed=counts[BookingStatus.CONFIRMED.value],
            pending=counts[BookingStatus.PENDING.value],
            cancelled=counts[BookingStatus.CANCELLED.value],
            revenue=Money(amount=revenue, currency=settings.default_currency),
        )

    async def list_client_bookings(self, client_id: UUID) -> list[Booking]:
        stmt = select(Booking).where(Booking.client_id == client_id).order_by(Booking.created_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def list_guide_bookings(self, guide_id: UUID, status: Optional[BookingStatus] = None) -> list[Booking]:
        stmt = (
            select(Booking)
            .join(Excursion, Excursion.id == Booking.excursion_id)
            .where(Excursion.guide_id == guide_id)
        )
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        stmt = stmt.order_by(Booking.booking_date, Booking.created_at)
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def ensure_access(self, booking: Booking, user: CurrentUser) -> None:
        """
        Allow the booking's client, the tour operator that placed it, the guide
        running the excursion, and administrators.

        Raises:
            AuthorizationError: For anyone else
        """
        if user.has_role(UserRole.ADMIN) or booking.client_id == user.id:
            return

        if booking.tour_operator_id is not None:
            operator = await self.account_service.get_tour_operator_for_user(user.id)
            if operator is not None and operator.id == booking.tour_operator_id:
                return

        guide = await self.account_service.get_guide_for_user(user.id)
        if guide is not None:
            excursion = await self.availability_service.excursion_service.get_excursion_by_id(booking.excursion_id)
            if excursion is not None and excursion.guide_id == guide.id:
                return

        logger.warning(
            "Booking access denied",
            extra={"booking_id": str(booking.id), "user_id": str(user.id)}
        )
        raise AuthorizationError("You do not have access to this booking")

    async def get_booking_by_id(self, booking_id: UUID) -> Booking | None:
        """Get booking by ID."""
        stmt = select(Booking).where(Booking.id == booking_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_by_id_or_raise(self, booking_id: UUID) -> Booking:
        """Get booking by ID or raise NotFoundError."""
        booking = await self.get_booking_by_id(booking_id)
        if not booking:
            logger.warning(
                "Booking not found",
                extra={"booking_id": str(booking_id)}
            )
            raise NotFoundError(
                resource_type="booking",
                resource_id=str(booking_id),
                detail="Réservation non trouvée."
            )
        return booking

    async def get_booking_by_code(self, code: str) -> Booking | None:
        """Get booking by confirmation code."""
        stmt = select(Booking).where(Booking.code == code)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    def _detach(self, *instances) -> None:
        """Keep committed state readable even if a later notification rolls the session back."""
        for instance in instances:
            if instance is not None and instance in self.db:
                self.db.expunge(instance)

    async def _publish_booking(
        self,
        booking: Booking,
        event_type: ChangeEventType,
        old: Optional[dict] = None,
    ) -> None:
        if self.feed is None:
            return
        await self.feed.publish_change(BOOKINGS_TABLE, event_type, new=row_to_dict(booking), old=old)

    async def _notify(self, hook: str, *args) -> None:
        if self.notifier is None:
            return
        try:
            await getattr(self.notifier, hook)(*args)
        except Exception as e:
            logger.error(
                "Booking notification failed",
                extra={"hook": hook, "booking_id": str(args[0].id), "error": str(e)},
                exc_info=True
            )
