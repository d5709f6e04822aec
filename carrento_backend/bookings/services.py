import logging
from decimal import Decimal

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from carrento_backend.exceptions import (
    InvalidTransition, NotAvailable, NotFound, OwnershipError, Unauthorized, ValidationError,
)
from cars.models import Car
from cars.services import CarListingService
from users.permissions import CREATE_BOOKING, REPORT_INCIDENT, REVIEW_BOOKING, VIEW_ADMIN_PORTAL, authorize, require
from .models import Booking

logger = logging.getLogger(__name__)


def _setting(name):
    return settings.CARRENTO[name]


def deposit_amount():
    return Decimal(str(_setting('DEPOSIT_AMOUNT')))


# Daily rate for the chosen rental period
# ShortTerm -> car.pricing.short_term, LongTerm -> car.pricing.long_term

def daily_rate(car, period):
    if period == Booking.SHORT_TERM:
        return Decimal(car.pricing.short_term)
    if period == Booking.LONG_TERM:
        return Decimal(car.pricing.long_term)
    raise ValueError(f"Unknown rental period: {period}")


# Rental days counting both the start and the end date

def days_inclusive(start_date, end_date):
    return (end_date - start_date).days + 1


def rental_subtotal(car, period, start_date, end_date):
    return daily_rate(car, period) * days_inclusive(start_date, end_date)


# Delivery fee: flat daytime fee between the business hours, after-hours fee otherwise.
# time_of_day: anything with an ``hour`` attribute (datetime or time)

def delivery_fee(option, time_of_day):
    if option == Booking.SELF_PICKUP:
        return Decimal('0.00')
    if option != Booking.DELIVERY:
        raise ValueError(f"Unknown delivery option: {option}")
    start_hour = _setting('DELIVERY_DAY_START_HOUR')
    end_hour = _setting('DELIVERY_DAY_END_HOUR')
    if start_hour <= time_of_day.hour < end_hour:
        return Decimal(str(_setting('DELIVERY_FEE_DAYTIME')))
    return Decimal(str(_setting('DELIVERY_FEE_AFTER_HOURS')))


def total_price(car, period, start_date, end_date, option, time_of_day):
    return rental_subtotal(car, period, start_date, end_date) + delivery_fee(option, time_of_day) + deposit_amount()


def price_quote(car, period, start_date, end_date, option, time_of_day):
    """All price components of a booking in one dict."""
    subtotal = rental_subtotal(car, period, start_date, end_date)
    fee = delivery_fee(option, time_of_day)
    deposit = deposit_amount()
    return {
        'days': days_inclusive(start_date, end_date),
        'daily_rate': daily_rate(car, period),
        'subtotal': subtotal,
        'delivery_fee': fee,
        'deposit': deposit,
        'total_price': subtotal + fee + deposit,
    }


def _strict(strict):
    return _setting('STRICT_TRANSITIONS') if strict is None else strict


class BookingService:
    """Booking creation and status changes.

    Writes are independent: a booking insert and the matching car status
    update are separate statements, and concurrent status writes are
    last-write-wins unless strict transitions are requested.
    """

    @staticmethod
    def create_booking(customer_id, acting_role, car_id, period, start_date, end_date,
                       delivery_option, delivery_address=None, special_requests='', delivery_time=None):
        if customer_id is None:
            raise Unauthorized("You must be logged in to create a booking.")
        require(acting_role, CREATE_BOOKING)

        if period not in (Booking.SHORT_TERM, Booking.LONG_TERM):
            raise ValidationError(f"Unknown rental period: {period}")
        if delivery_option not in (Booking.SELF_PICKUP, Booking.DELIVERY):
            raise ValidationError(f"Unknown delivery option: {delivery_option}")
        if end_date < start_date:
            raise ValidationError("End date cannot be before start date.")
        if delivery_option == Booking.DELIVERY and not delivery_address:
            raise ValidationError("Delivery address is required for delivery option.")

        car = Car.objects.select_related('pricing').filter(pk=car_id).first()
        if car is None:
            raise NotFound("Car not found.")
        if car.status != Car.AVAILABLE:
            raise NotAvailable()
        if not hasattr(car, 'pricing'):
            raise NotAvailable("Car has no pricing and cannot be booked.")

        quote = price_quote(car, period, start_date, end_date, delivery_option, delivery_time or timezone.localtime())
        booking = Booking.objects.create(
            car=car,
            customer_id=customer_id,
            rental_period=period,
            start_date=start_date,
            end_date=end_date,
            delivery_option=delivery_option,
            delivery_address=delivery_address if delivery_option == Booking.DELIVERY else None,
            delivery_fee=quote['delivery_fee'],
            deposit=quote['deposit'],
            total_price=quote['total_price'],
            special_requests=special_requests or '',
            status=Booking.PENDING,
            payment_status=Booking.PAYMENT_PENDING,
        )
        logger.info("Booking #%s created for car #%s by customer %s", booking.pk, car.pk, customer_id)

        # second, independent write; the booking stays even if this fails
        car_status_updated = BookingService._set_car_status(car.pk, Car.BOOKED)
        return {'booking': booking, 'car_status_updated': car_status_updated}

    @staticmethod
    def _set_car_status(car_id, new_status, only_from=None):
        try:
            with transaction.atomic():
                if only_from is None:
                    updated = CarListingService.set_status(car_id, new_status)
                else:
                    updated = Car.objects.filter(pk=car_id, status=only_from).update(status=new_status)
        except DatabaseError as exc:
            logger.error("Could not set car #%s to %s: %s", car_id, new_status, exc)
            return False
        return bool(updated)

    @staticmethod
    def set_booking_status(booking_id, new_status, acting_role, strict=None):
        """Write a booking status.

        Legacy mode accepts any status from any status. Strict mode checks
        ``Booking.TRANSITIONS`` and only writes if the status read is still
        current.
        """
        require(acting_role, REVIEW_BOOKING)
        if new_status not in Booking.TRANSITIONS:
            raise ValidationError(f"Unknown booking status: {new_status}")

        queryset = Booking.objects.filter(pk=booking_id)
        current = queryset.values_list('status', flat=True).first()
        if current is None:
            raise NotFound("Booking not found.")
        if _strict(strict):
            if new_status not in Booking.TRANSITIONS[current]:
                raise InvalidTransition(f"Cannot move booking from {current} to {new_status}.")
            if not queryset.filter(status=current).update(status=new_status, updated_at=timezone.now()):
                raise InvalidTransition("Booking status changed by someone else, reload and retry.")
        elif not queryset.update(status=new_status, updated_at=timezone.now()):
            raise NotFound("Booking not found.")

        logger.info("Booking #%s status %s -> %s", booking_id, current, new_status)
        booking = Booking.objects.get(pk=booking_id)
        if new_status in Booking.FINISHED and current not in Booking.FINISHED:
            BookingService._release_car(booking.pk, booking.car_id)
        return booking

    @staticmethod
    def _release_car(booking_id, car_id):
        """Booked -> Available, unless another booking still holds the car."""
        held = Booking.objects.filter(car_id=car_id, status__in=Booking.HOLDING).exclude(pk=booking_id).exists()
        if held:
            logger.info("Car #%s kept Booked: held by another booking", car_id)
            return False
        return BookingService._set_car_status(car_id, Car.AVAILABLE, only_from=Car.BOOKED)

    @staticmethod
    def approve_booking(booking_id, acting_role, strict=None):
        return BookingService.set_booking_status(booking_id, Booking.APPROVED, acting_role, strict)

    @staticmethod
    def cancel_booking(booking_id, acting_role, strict=None):
        return BookingService.set_booking_status(booking_id, Booking.CANCELLED, acting_role, strict)

    @staticmethod
    def set_payment_status(booking_id, new_status, acting_role):
        require(acting_role, REVIEW_BOOKING)
        if new_status not in dict(Booking.PAYMENT_STATUS_CHOICES):
            raise ValidationError(f"Unknown payment status: {new_status}")
        if not Booking.objects.filter(pk=booking_id).update(payment_status=new_status, updated_at=timezone.now()):
            raise NotFound("Booking not found.")
        logger.info("Booking #%s payment status -> %s", booking_id, new_status)
        return Booking.objects.get(pk=booking_id)

    @staticmethod
    def report_incident(booking_id, reporter_id, reporter_role, details, photos=None):
        """Attach an incident to the reporter's own booking, replacing any earlier report."""
        if reporter_id is None:
            raise Unauthorized("You must be logged in to report an incident.")
        require(reporter_role, REPORT_INCIDENT)
        if not details or not details.strip():
            raise ValidationError("Incident details are required.")

        # ownership lookup and update are two separate statements
        if not Booking.objects.filter(pk=booking_id, customer_id=reporter_id).exists():
            raise OwnershipError()

        Booking.objects.filter(pk=booking_id).update(
            incident_reported=True,
            incident_details=details,
            incident_photos=list(photos or []),
            incident_timestamp=timezone.now(),
            incident_status=Booking.INCIDENT_PENDING,
            updated_at=timezone.now(),
        )
        logger.info("Incident reported on booking #%s by %s", booking_id, reporter_id)
        return Booking.objects.get(pk=booking_id)

    @staticmethod
    def bookings_for(user):
        queryset = Booking.objects.select_related('car', 'customer')
        if authorize(user.role, VIEW_ADMIN_PORTAL):
            return queryset
        if user.role == user.CAR_OWNER:
            return queryset.filter(Q(customer=user) | Q(car__owner=user))
        return queryset.filter(customer=user)

    @staticmethod
    def owner_bookings(user):
        return Booking.objects.select_related('car', 'customer').filter(car__owner=user)

    @staticmethod
    def advance_by_date(today, dry_run=False):
        """Approved bookings that started become Active, Active bookings that ended become Completed."""
        to_activate = list(Booking.objects.filter(status=Booking.APPROVED, start_date__lte=today).values_list('pk', flat=True))
        to_complete = list(Booking.objects.filter(status=Booking.ACTIVE, end_date__lt=today).values_list('pk', flat=True))
        if not dry_run:
            for pk in to_activate:
                Booking.objects.filter(pk=pk, status=Booking.APPROVED).update(status=Booking.ACTIVE, updated_at=timezone.now())
            for pk in to_complete:
                if Booking.objects.filter(pk=pk, status=Booking.ACTIVE).update(status=Booking.COMPLETED, updated_at=timezone.now()):
                    car_id = Booking.objects.values_list('car_id', flat=True).get(pk=pk)
                    BookingService._release_car(pk, car_id)
        return {'activated': to_activate, 'completed': to_complete}
