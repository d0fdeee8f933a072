"""
Availability Service
Answers whether a property is free for a date range and manages blocked dates
"""

from datetime import date, timedelta

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from extensions import db
from app.errors import Conflict, Forbidden, NotFound, ValidationError
from app.models.blocked_date import BlockedDate
from app.models.booking import ACTIVE_STATUSES, Booking
from app.models.property import Property
from app.utils.dates import today


class AvailabilityService:
    """
    Overlap rules:

    - booking vs booking is half-open: stays [a, b) and [c, d) clash iff
      a < d and c < b, so a check-out and the next check-in may share a day.
    - anything vs a blocked window is closed on both ends: a stay clashes
      with [start, end] iff check_in <= end and check_out >= start, so a
      guest can neither arrive nor leave on a blocked day.
    """

    PAST_DATES_START = date(2020, 1, 1)

    @staticmethod
    def lock_property(property_id):
        """
        Take the per-property write lock for the rest of the transaction.

        The UPDATE holds a row lock (Postgres) or the database write lock
        (SQLite) until commit/rollback, so a concurrent check-then-insert for
        the same property waits here and then sees the committed rows.
        """
        result = db.session.execute(
            update(Property)
            .where(Property.id == property_id)
            .values(booking_version=Property.booking_version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound(f'Property not found with id of {property_id}')

    @staticmethod
    def find_booking_conflict(property_id, start, end, exclude_booking_id=None):
        query = Booking.query.filter(
            Booking.property_id == property_id,
            Booking.status.in_(ACTIVE_STATUSES),
            Booking.check_in < end,
            Booking.check_out > start,
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.first()

    @staticmethod
    def find_block_conflict(property_id, start, end, exclude_block_id=None):
        query = BlockedDate.query.filter(
            BlockedDate.property_id == property_id,
            BlockedDate.start_date <= end,
            BlockedDate.end_date >= start,
        )
        if exclude_block_id is not None:
            query = query.filter(BlockedDate.id != exclude_block_id)
        return query.order_by(BlockedDate.start_date).first()

    @staticmethod
    def find_conflict(property_id, start, end, exclude_booking_id=None):
        """Return the first booking or blocked window clashing with [start, end)"""
        booking = AvailabilityService.find_booking_conflict(
            property_id, start, end, exclude_booking_id
        )
        if booking is not None:
            return booking
        return AvailabilityService.find_block_conflict(property_id, start, end)

    @staticmethod
    def is_range_free(property_id, start, end, exclude_booking_id=None):
        return AvailabilityService.find_conflict(
            property_id, start, end, exclude_booking_id
        ) is None

    @staticmethod
    def ensure_range_free(property_id, start, end, exclude_booking_id=None):
        conflict = AvailabilityService.find_conflict(property_id, start, end, exclude_booking_id)
        if isinstance(conflict, Booking):
            raise Conflict('Property is already booked for the selected dates')
        if isinstance(conflict, BlockedDate):
            raise Conflict('Property is blocked for the selected dates')

    # Blocked dates

    @staticmethod
    def _get_property(property_id):
        property_obj = db.session.get(Property, property_id)
        if not property_obj:
            raise NotFound(f'Property not found with id of {property_id}')
        return property_obj

    @staticmethod
    def _get_block(property_id, block_id):
        block = db.session.get(BlockedDate, block_id)
        if not block or block.property_id != property_id:
            raise NotFound(f'Blocked date not found with id of {block_id}')
        return block

    @staticmethod
    def _can_manage(property_obj, caller, block=None):
        if caller.is_admin or property_obj.is_owned_by(caller.id):
            return True
        return block is not None and block.blocked_by_id == caller.id

    @staticmethod
    def _save_window(block, start, end, check_bookings=True, check_blocks=True):
        """Validate and persist ``block`` with the given window under the property lock"""
        if end < start:
            raise ValidationError('End date must be on or after start date')
        if block.reason and len(block.reason) > 200:
            raise ValidationError('Reason cannot be more than 200 characters')

        try:
            AvailabilityService.lock_property(block.property_id)

            if check_blocks and AvailabilityService.find_block_conflict(
                    block.property_id, start, end, block.id):
                raise Conflict('This date range overlaps with an existing blocked date')

            if check_bookings:
                booked = Booking.query.filter(
                    Booking.property_id == block.property_id,
                    Booking.status.in_(ACTIVE_STATUSES),
                    Booking.check_in <= end,
                    Booking.check_out >= start,
                ).first()
                if booked is not None:
                    raise Conflict('This date range overlaps with an existing booking')

            block.start_date = start
            block.end_date = end
            db.session.add(block)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict('This date range is already blocked')
        except Exception:
            db.session.rollback()
            raise
        return block

    @staticmethod
    def list_blocked_dates(property_id, start=None, end=None):
        AvailabilityService._get_property(property_id)
        query = BlockedDate.query.filter_by(property_id=property_id)
        if start and end:
            query = query.filter(BlockedDate.start_date <= end, BlockedDate.end_date >= start)
        return query.order_by(BlockedDate.start_date).all()

    @staticmethod
    def create_blocked_date(property_id, caller, start, end, reason=None, check_bookings=True):
        property_obj = AvailabilityService._get_property(property_id)
        if not AvailabilityService._can_manage(property_obj, caller):
            raise Forbidden('Not authorized to block dates for this property')

        block = BlockedDate(property_id=property_id, reason=reason, blocked_by_id=caller.id)
        AvailabilityService._save_window(block, start, end, check_bookings)
        current_app.logger.info(
            f'Blocked {start}..{end} on property {property_id} by user {caller.id}'
        )
        return block

    @staticmethod
    def update_blocked_date(property_id, block_id, caller, start=None, end=None, reason=None):
        property_obj = AvailabilityService._get_property(property_id)
        block = AvailabilityService._get_block(property_id, block_id)
        if not AvailabilityService._can_manage(property_obj, caller, block):
            raise Forbidden('Not authorized to update this blocked date')

        if reason is not None:
            block.reason = reason
        AvailabilityService._save_window(block, start or block.start_date, end or block.end_date)
        return block

    @staticmethod
    def delete_blocked_date(property_id, block_id, caller):
        property_obj = AvailabilityService._get_property(property_id)
        block = AvailabilityService._get_block(property_id, block_id)
        if not AvailabilityService._can_manage(property_obj, caller, block):
            raise Forbidden('Not authorized to delete this blocked date')

        db.session.delete(block)
        db.session.commit()
        current_app.logger.info(f'Removed blocked date {block_id} from property {property_id}')

    @staticmethod
    def block_past_dates(property_id):
        """
        Keep a sentinel window covering every day before today.

        Returns (block, changed). Existing bookings are not checked since
        ongoing stays legitimately started in the past, and other blocks may
        lie inside the window since past days are closed either way.
        """
        property_obj = AvailabilityService._get_property(property_id)
        yesterday = today() - timedelta(days=1)

        sentinel = BlockedDate.query.filter_by(
            property_id=property_id, reason=BlockedDate.PAST_DATES_REASON
        ).first()
        if sentinel is not None and sentinel.end_date >= yesterday:
            return sentinel, False

        if sentinel is None:
            sentinel = BlockedDate(
                property_id=property_id,
                reason=BlockedDate.PAST_DATES_REASON,
                blocked_by_id=property_obj.landlord_id,
            )
            start = AvailabilityService.PAST_DATES_START
        else:
            start = sentinel.start_date

        AvailabilityService._save_window(
            sentinel, start, yesterday, check_bookings=False, check_blocks=False
        )
        return sentinel, True
