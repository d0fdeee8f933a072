"""
Booking Service
Booking lifecycle: create, update, cancel, complete, delete
"""

from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from extensions import db
from app.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from app.models.booking import Booking, BookingAction
from app.models.property import Property
from app.models.user import UserRole
from app.services.availability_service import AvailabilityService
from app.services.notification_service import NotificationService
from app.utils.dates import parse_date, today


UPDATABLE_FIELDS = ('check_in', 'check_out', 'guests', 'adults', 'children', 'infants',
                    'special_requests')


def _notify(sender, *args):
    """Notification problems are logged and never reach the caller"""
    try:
        sender(*args)
    except Exception:
        current_app.logger.exception(f'Notification {sender.__name__} failed')


class BookingService:
    """Service enforcing the booking state machine and availability rules"""

    @staticmethod
    def get_booking(booking_id):
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise NotFound(f'Booking not found with id of {booking_id}')
        return booking

    @staticmethod
    def _ensure_bookable(property_obj, caller):
        if not property_obj.is_available:
            raise InvalidState('Property is not available for booking')
        if not property_obj.is_verified and not caller.is_admin:
            raise InvalidState('Property is not verified and cannot be booked yet')

    @staticmethod
    def _validate_dates(check_in, check_out, check_past=True):
        if check_out <= check_in:
            raise ValidationError('Check-out date must be after check-in date')
        if check_past and check_in < today():
            raise ValidationError(
                'Cannot book dates in the past. Check-in date must be today or in the future'
            )

    @staticmethod
    def _parse_guests(data, property_obj, current=None):
        """Accept ``guests`` as a count of adults or a dict of adults/children/infants"""
        counts = dict(current or {'adults': 1, 'children': 0, 'infants': 0})
        guests = data.get('guests')
        if isinstance(guests, dict):
            source = guests
        elif guests is not None:
            source = {'adults': guests}
        else:
            source = data

        for key in ('adults', 'children', 'infants'):
            if source.get(key) is None:
                continue
            try:
                counts[key] = int(source[key])
            except (TypeError, ValueError):
                raise ValidationError(f'{key} must be a whole number')

        if counts['adults'] < 1:
            raise ValidationError('At least one adult is required')
        if counts['children'] < 0 or counts['infants'] < 0:
            raise ValidationError('Guest counts cannot be negative')
        if property_obj.max_guests and counts['adults'] + counts['children'] > property_obj.max_guests:
            raise ValidationError(f'This property allows at most {property_obj.max_guests} guests')
        return counts

    @staticmethod
    def _transition(booking, action, **values):
        """
        Apply a state-machine move with compare-and-set on the stored status.

        A concurrent writer that already moved the booking makes the UPDATE
        match no rows, which is reported as InvalidState.
        """
        new_status = booking.next_status(action)
        result = db.session.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == booking.status)
            .values(status=new_status, updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.session.rollback()
            raise InvalidState('Booking was modified by another request, please retry')
        db.session.commit()
        db.session.refresh(booking)
        return booking

    @staticmethod
    def create(property_id, caller, data):
        """Book ``property_id`` for ``caller`` after availability checks"""
        property_obj = db.session.get(Property, property_id)
        if not property_obj:
            raise NotFound(f'Property not found with id of {property_id}')
        BookingService._ensure_bookable(property_obj, caller)

        check_in = parse_date(data.get('check_in'), 'check_in')
        check_out = parse_date(data.get('check_out'), 'check_out')
        BookingService._validate_dates(check_in, check_out)
        guests = BookingService._parse_guests(data, property_obj)

        special_requests = data.get('special_requests')
        if special_requests and len(special_requests) > 500:
            raise ValidationError('Special requests cannot be more than 500 characters')

        try:
            AvailabilityService.lock_property(property_id)
            # Flags may have changed since the first read
            db.session.refresh(property_obj)
            BookingService._ensure_bookable(property_obj, caller)
            AvailabilityService.ensure_range_free(property_id, check_in, check_out)

            booking = Booking(
                property_id=property_id,
                user_id=caller.id,
                check_in=check_in,
                check_out=check_out,
                amount=property_obj.calculate_amount(check_in, check_out),
                special_requests=special_requests,
                **guests
            )
            db.session.add(booking)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict('Property is already booked for the selected dates')
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f'Booking {booking.id} created for property {property_id} '
            f'({check_in}..{check_out}) by user {caller.id}'
        )
        _notify(NotificationService.booking_created,
                booking, booking.guest, property_obj, property_obj.landlord)
        return booking

    @staticmethod
    def update(booking_id, caller, data):
        booking = BookingService.get_booking(booking_id)
        if booking.user_id != caller.id and not caller.is_admin:
            raise Forbidden(f'User {caller.id} is not authorized to update this booking')
        booking.next_status(BookingAction.UPDATE)

        patch = {key: data[key] for key in UPDATABLE_FIELDS if key in data}
        if not patch:
            raise ValidationError('No updatable fields supplied')

        property_obj = booking.property
        dates_changed = 'check_in' in patch or 'check_out' in patch
        check_in = parse_date(patch['check_in'], 'check_in') if 'check_in' in patch else booking.check_in
        check_out = parse_date(patch['check_out'], 'check_out') if 'check_out' in patch else booking.check_out
        if dates_changed:
            # An ongoing stay may still move its check-out
            BookingService._validate_dates(check_in, check_out,
                                           check_past=check_in != booking.check_in)

        guests = BookingService._parse_guests(
            patch, property_obj,
            current={'adults': booking.adults, 'children': booking.children, 'infants': booking.infants},
        )

        if 'special_requests' in patch and patch['special_requests'] \
                and len(patch['special_requests']) > 500:
            raise ValidationError('Special requests cannot be more than 500 characters')

        try:
            AvailabilityService.lock_property(booking.property_id)
            # Status is re-read under the lock so a concurrent cancel or
            # complete is never overwritten
            db.session.refresh(booking)
            db.session.refresh(property_obj)
            booking.next_status(BookingAction.UPDATE)

            if dates_changed:
                AvailabilityService.ensure_range_free(
                    booking.property_id, check_in, check_out, exclude_booking_id=booking.id
                )
                booking.check_in = check_in
                booking.check_out = check_out
                booking.amount = property_obj.calculate_amount(check_in, check_out)

            booking.adults = guests['adults']
            booking.children = guests['children']
            booking.infants = guests['infants']
            if 'special_requests' in patch:
                booking.special_requests = patch['special_requests']
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict('Property is already booked for the selected dates')
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(f'Booking {booking.id} updated by user {caller.id}')
        return booking

    @staticmethod
    def cancel(booking_id, caller, reason=None):
        booking = BookingService.get_booking(booking_id)
        if booking.user_id != caller.id and not caller.is_admin:
            raise Forbidden(f'User {caller.id} is not authorized to cancel this booking')

        values = {'cancelled_at': datetime.utcnow()}
        if reason:
            values['cancellation_reason'] = reason
        BookingService._transition(booking, BookingAction.CANCEL, **values)

        current_app.logger.info(f'Booking {booking.id} cancelled by user {caller.id}')
        property_obj = booking.property
        _notify(NotificationService.booking_cancelled,
                booking, booking.guest, property_obj, property_obj.landlord)
        return booking

    @staticmethod
    def complete(booking_id, caller):
        booking = BookingService.get_booking(booking_id)
        if not booking.property.is_owned_by(caller.id) and not caller.is_admin:
            raise Forbidden(f'User {caller.id} is not authorized to complete this booking')

        BookingService._transition(booking, BookingAction.COMPLETE, completed_at=datetime.utcnow())

        current_app.logger.info(f'Booking {booking.id} completed by user {caller.id}')
        _notify(NotificationService.booking_completed, booking, booking.guest, booking.property)
        return booking

    @staticmethod
    def delete(booking_id, caller):
        booking = BookingService.get_booking(booking_id)
        if booking.user_id != caller.id and not caller.is_admin:
            raise Forbidden('Not authorized to delete this booking')
        booking.next_status(BookingAction.DELETE)
        if booking.payments.count():
            raise InvalidState(
                'Bookings with payment records cannot be deleted; cancel the booking instead'
            )

        db.session.delete(booking)
        db.session.commit()
        current_app.logger.info(f'Booking {booking_id} deleted by user {caller.id}')

    @staticmethod
    def get(booking_id, caller):
        booking = BookingService.get_booking(booking_id)
        if (booking.user_id != caller.id
                and not booking.property.is_owned_by(caller.id)
                and not caller.is_admin):
            raise Forbidden(f'User {caller.id} is not authorized to access this booking')
        return booking

    @staticmethod
    def list_for(caller):
        """Admins see everything, landlords their properties' bookings, users their own"""
        query = Booking.query
        if caller.role == UserRole.LANDLORD:
            query = query.join(Property).filter(Property.landlord_id == caller.id)
        elif caller.role != UserRole.ADMIN:
            query = query.filter(Booking.user_id == caller.id)
        return query.order_by(Booking.created_at.desc()).all()

    @staticmethod
    def list_for_property(property_id, caller):
        property_obj = db.session.get(Property, property_id)
        if not property_obj:
            raise NotFound(f'Property not found with id of {property_id}')
        if not property_obj.is_owned_by(caller.id) and not caller.is_admin:
            raise Forbidden(f'User {caller.id} is not authorized to access these bookings')
        return property_obj.bookings.order_by(Booking.check_in).all()
