import datetime
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from carrento_backend.exceptions import (
    Forbidden, InvalidTransition, NotAvailable, NotFound, OwnershipError, Unauthorized, ValidationError,
)
from cars.models import Car, CarPricing
from .models import Booking
from .services import BookingService, days_inclusive, delivery_fee, price_quote, rental_subtotal, total_price

User = get_user_model()


def make_car(owner, status=Car.AVAILABLE, short_term='50.00', long_term='40.00', with_pricing=True):
    car = Car.objects.create(owner=owner, make='Toyota', model='Corolla', year=2022, car_type=Car.SEDAN, color='White', status=status)
    if with_pricing:
        CarPricing.objects.create(car=car, short_term=Decimal(short_term), long_term=Decimal(long_term))
    return car


def make_user(email, role):
    return User.objects.create_user(email=email, password='testpass123', first_name='Test', last_name='User', role=role)


class PricingTest(TestCase):
    def setUp(self):
        self.owner = make_user('owner@example.com', User.CAR_OWNER)
        self.car = make_car(self.owner, short_term='45.00', long_term='40.00')

    def test_days_are_inclusive(self):
        self.assertEqual(days_inclusive(datetime.date(2024, 1, 1), datetime.date(2024, 1, 14)), 14)
        self.assertEqual(days_inclusive(datetime.date(2024, 1, 1), datetime.date(2024, 1, 1)), 1)

    def test_short_term_self_pickup_total(self):
        start, end = datetime.date(2024, 1, 1), datetime.date(2024, 1, 14)
        noon = datetime.time(12, 0)
        self.assertEqual(rental_subtotal(self.car, Booking.SHORT_TERM, start, end), Decimal('630.00'))
        self.assertEqual(delivery_fee(Booking.SELF_PICKUP, noon), Decimal('0.00'))
        self.assertEqual(total_price(self.car, Booking.SHORT_TERM, start, end, Booking.SELF_PICKUP, noon), Decimal('1130.00'))

    def test_total_is_deterministic(self):
        args = (self.car, Booking.SHORT_TERM, datetime.date(2024, 1, 1), datetime.date(2024, 1, 14), Booking.DELIVERY, datetime.time(9, 0))
        self.assertEqual(total_price(*args), total_price(*args))
        self.assertEqual(total_price(*args), Decimal('1150.00'))

    def test_delivery_fee_boundaries(self):
        self.assertEqual(delivery_fee(Booking.DELIVERY, datetime.time(7, 59)), Decimal('35.00'))
        self.assertEqual(delivery_fee(Booking.DELIVERY, datetime.time(8, 0)), Decimal('20.00'))
        self.assertEqual(delivery_fee(Booking.DELIVERY, datetime.time(17, 59)), Decimal('20.00'))
        self.assertEqual(delivery_fee(Booking.DELIVERY, datetime.time(18, 0)), Decimal('35.00'))

    def test_delivery_fee_accepts_datetime(self):
        self.assertEqual(delivery_fee(Booking.DELIVERY, datetime.datetime(2024, 1, 1, 20, 30)), Decimal('35.00'))

    def test_unknown_period_raises(self):
        with self.assertRaises(ValueError):
            rental_subtotal(self.car, 'Weekly', datetime.date(2024, 1, 1), datetime.date(2024, 1, 2))

    def test_quote_components(self):
        quote = price_quote(self.car, Booking.LONG_TERM, datetime.date(2024, 3, 1), datetime.date(2024, 3, 10),
                            Booking.DELIVERY, datetime.time(19, 0))
        self.assertEqual(quote['days'], 10)
        self.assertEqual(quote['daily_rate'], Decimal('40.00'))
        self.assertEqual(quote['subtotal'], Decimal('400.00'))
        self.assertEqual(quote['delivery_fee'], Decimal('35.00'))
        self.assertEqual(quote['deposit'], Decimal('500.00'))
        self.assertEqual(quote['total_price'], Decimal('935.00'))

    @override_settings(CARRENTO={
        'DEPOSIT_AMOUNT': '100.00', 'DELIVERY_FEE_DAYTIME': '10.00', 'DELIVERY_FEE_AFTER_HOURS': '15.00',
        'DELIVERY_DAY_START_HOUR': 9, 'DELIVERY_DAY_END_HOUR': 17, 'STRICT_TRANSITIONS': False,
        'ACCESS_REDIRECTS': {},
    })
    def test_amounts_come_from_settings(self):
        self.assertEqual(delivery_fee(Booking.DELIVERY, datetime.time(8, 0)), Decimal('15.00'))
        self.assertEqual(
            total_price(self.car, Booking.SHORT_TERM, datetime.date(2024, 1, 1), datetime.date(2024, 1, 1), Booking.DELIVERY, datetime.time(10, 0)),
            Decimal('155.00'),
        )


class CreateBookingTest(TestCase):
    def setUp(self):
        self.owner = make_user('owner@example.com', User.CAR_OWNER)
        self.customer = make_user('customer@example.com', User.CUSTOMER)
        self.car = make_car(self.owner)

    def _create(self, **overrides):
        kwargs = dict(
            customer_id=self.customer.id,
            acting_role=self.customer.role,
            car_id=self.car.id,
            period=Booking.LONG_TERM,
            start_date=datetime.date(2024, 3, 1),
            end_date=datetime.date(2024, 5, 30),
            delivery_option=Booking.SELF_PICKUP,
        )
        kwargs.update(overrides)
        return BookingService.create_booking(**kwargs)

    def test_long_term_booking_end_to_end(self):
        result = self._create()
        booking = result['booking']
        self.assertTrue(result['car_status_updated'])
        self.assertEqual(booking.rental_days, 91)
        self.assertEqual(booking.total_price, Decimal('4140.00'))
        self.assertEqual(booking.deposit, Decimal('500.00'))
        self.assertEqual(booking.delivery_fee, Decimal('0.00'))
        self.assertEqual(booking.status, Booking.PENDING)
        self.assertEqual(booking.payment_status, Booking.PAYMENT_PENDING)
        self.car.refresh_from_db()
        self.assertEqual(self.car.status, Car.BOOKED)

    def test_delivery_fee_is_stored(self):
        address = {'street': '1 Main St', 'city': 'Springfield', 'state': 'IL', 'zipCode': '62701'}
        booking = self._create(
            delivery_option=Booking.DELIVERY, delivery_address=address,
            delivery_time=datetime.datetime(2024, 2, 28, 10, 0),
        )['booking']
        self.assertEqual(booking.delivery_fee, Decimal('20.00'))
        self.assertEqual(booking.delivery_address, address)
        self.assertEqual(booking.total_price, Decimal('4160.00'))

    def test_delivery_without_address_rejected(self):
        with self.assertRaises(ValidationError):
            self._create(delivery_option=Booking.DELIVERY)
        self.assertFalse(Booking.objects.exists())

    def test_end_before_start_rejected(self):
        with self.assertRaises(ValidationError):
            self._create(start_date=datetime.date(2024, 3, 10), end_date=datetime.date(2024, 3, 1))

    def test_anonymous_rejected(self):
        with self.assertRaises(Unauthorized):
            self._create(customer_id=None)

    def test_service_staff_cannot_book(self):
        with self.assertRaises(Forbidden):
            self._create(acting_role=User.SERVICE_CENTER_STAFF)

    def test_missing_car(self):
        with self.assertRaises(NotFound):
            self._create(car_id=99999)

    def test_booked_car_not_available(self):
        self._create()
        with self.assertRaises(NotAvailable):
            self._create()
        self.assertEqual(Booking.objects.count(), 1)

    def test_car_without_pricing_not_available(self):
        car = make_car(self.owner, with_pricing=False)
        with self.assertRaises(NotAvailable):
            self._create(car_id=car.id)

    def test_car_update_failure_keeps_booking(self):
        with mock.patch('bookings.services.CarListingService.set_status', side_effect=DatabaseError('store down')):
            result = self._create()
        self.assertFalse(result['car_status_updated'])
        self.assertTrue(Booking.objects.filter(pk=result['booking'].pk).exists())
        self.car.refresh_from_db()
        self.assertEqual(self.car.status, Car.AVAILABLE)


class BookingStatusTest(TestCase):
    def setUp(self):
        self.owner = make_user('owner@example.com', User.CAR_OWNER)
        self.customer = make_user('customer@example.com', User.CUSTOMER)
        self.car = make_car(self.owner)
        self.booking = BookingService.create_booking(
            self.customer.id, self.customer.role, self.car.id, Booking.SHORT_TERM,
            datetime.date(2024, 1, 1), datetime.date(2024, 1, 20), Booking.SELF_PICKUP,
        )['booking']

    def test_double_approval_last_write_wins(self):
        # no optimistic locking in legacy mode: both approvals succeed
        first = BookingService.approve_booking(self.booking.id, User.ADMIN)
        second = BookingService.approve_booking(self.booking.id, User.SUPER_ADMIN)
        self.assertEqual(first.status, Booking.APPROVED)
        self.assertEqual(second.status, Booking.APPROVED)

    def test_legacy_mode_accepts_any_transition(self):
        BookingService.set_booking_status(self.booking.id, Booking.COMPLETED, User.ADMIN)
        booking = BookingService.set_booking_status(self.booking.id, Booking.PENDING, User.ADMIN)
        self.assertEqual(booking.status, Booking.PENDING)

    def test_strict_mode_rejects_undeclared_transition(self):
        with self.assertRaises(InvalidTransition):
            BookingService.set_booking_status(self.booking.id, Booking.COMPLETED, User.ADMIN, strict=True)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.PENDING)

    def test_strict_mode_rejects_second_approval(self):
        BookingService.approve_booking(self.booking.id, User.ADMIN, strict=True)
        with self.assertRaises(InvalidTransition):
            BookingService.approve_booking(self.booking.id, User.ADMIN, strict=True)

    @override_settings(CARRENTO={
        'DEPOSIT_AMOUNT': '500.00', 'DELIVERY_FEE_DAYTIME': '20.00', 'DELIVERY_FEE_AFTER_HOURS': '35.00',
        'DELIVERY_DAY_START_HOUR': 8, 'DELIVERY_DAY_END_HOUR': 18, 'STRICT_TRANSITIONS': True,
        'ACCESS_REDIRECTS': {},
    })
    def test_strict_mode_from_settings(self):
        with self.assertRaises(InvalidTransition):
            BookingService.set_booking_status(self.booking.id, Booking.ACTIVE, User.ADMIN)
        booking = BookingService.set_booking_status(self.booking.id, Booking.ACTIVE, User.ADMIN, strict=False)
        self.assertEqual(booking.status, Booking.ACTIVE)

    def test_customer_cannot_set_status(self):
        with self.assertRaises(Forbidden):
            BookingService.approve_booking(self.booking.id, User.CUSTOMER)

    def test_unknown_booking(self):
        with self.assertRaises(NotFound):
            BookingService.approve_booking(99999, User.ADMIN)
        with self.assertRaises(NotFound):
            BookingService.approve_booking(99999, User.ADMIN, strict=True)

    def test_unknown_status(self):
        with self.assertRaises(ValidationError):
            BookingService.set_booking_status(self.booking.id, 'Lost', User.ADMIN)

    def test_cancel_releases_booked_car(self):
        BookingService.cancel_booking(self.booking.id, User.ADMIN)
        self.car.refresh_from_db()
        self.assertEqual(self.car.status, Car.AVAILABLE)

    def test_second_cancel_keeps_car_of_newer_booking(self):
        BookingService.cancel_booking(self.booking.id, User.ADMIN)
        newer = BookingService.create_booking(
            self.customer.id, self.customer.role, self.car.id, Booking.SHORT_TERM,
            datetime.date(2024, 2, 1), datetime.date(2024, 2, 20), Booking.SELF_PICKUP,
        )['booking']
        BookingService.cancel_booking(self.booking.id, User.ADMIN)

        newer.refresh_from_db()
        self.car.refresh_from_db()
        self.assertEqual(newer.status, Booking.PENDING)
        self.assertEqual(self.car.status, Car.BOOKED)

    def test_cancel_keeps_car_held_by_other_booking(self):
        Booking.objects.create(
            car=self.car, customer=self.customer, rental_period=Booking.SHORT_TERM,
            start_date=datetime.date(2024, 3, 1), end_date=datetime.date(2024, 3, 20),
            deposit=Decimal('500.00'), total_price=Decimal('1500.00'), status=Booking.APPROVED,
        )
        BookingService.cancel_booking(self.booking.id, User.ADMIN)
        self.car.refresh_from_db()
        self.assertEqual(self.car.status, Car.BOOKED)

    def test_completing_cancelled_booking_does_not_release_car(self):
        BookingService.cancel_booking(self.booking.id, User.ADMIN)
        Car.objects.filter(pk=self.car.pk).update(status=Car.BOOKED)
        BookingService.set_booking_status(self.booking.id, Booking.COMPLETED, User.ADMIN)
        self.car.refresh_from_db()
        self.assertEqual(self.car.status, Car.BOOKED)

    def test_cancel_leaves_maintenance_car_alone(self):
        Car.objects.filter(pk=self.car.pk).update(status=Car.MAINTENANCE)
        BookingService.cancel_booking(self.booking.id, User.ADMIN)
        self.car.refresh_from_db()
        self.assertEqual(self.car.status, Car.MAINTENANCE)

    def test_payment_status_is_independent(self):
        BookingService.cancel_booking(self.booking.id, User.ADMIN)
        booking = BookingService.set_payment_status(self.booking.id, Booking.PAYMENT_PAID, User.ADMIN)
        self.assertEqual(booking.payment_status, Booking.PAYMENT_PAID)
        self.assertEqual(booking.status, Booking.CANCELLED)

    def test_payment_status_requires_reviewer(self):
        with self.assertRaises(Forbidden):
            BookingService.set_payment_status(self.booking.id, Booking.PAYMENT_PAID, User.SUPPORT_STAFF)


class ReportIncidentTest(TestCase):
    def setUp(self):
        self.owner = make_user('owner@example.com', User.CAR_OWNER)
        self.customer = make_user('customer@example.com', User.CUSTOMER)
        self.other = make_user('other@example.com', User.CUSTOMER)
        self.car = make_car(self.owner)
        self.booking = BookingService.create_booking(
            self.customer.id, self.customer.role, self.car.id, Booking.SHORT_TERM,
            datetime.date(2024, 1, 1), datetime.date(2024, 1, 20), Booking.SELF_PICKUP,
        )['booking']

    def test_owner_reports_incident(self):
        booking = BookingService.report_incident(
            self.booking.id, self.customer.id, self.customer.role, 'Scratch on the door', ['https://cdn.example.com/1.jpg'],
        )
        self.assertTrue(booking.incident_reported)
        self.assertEqual(booking.incident_status, Booking.INCIDENT_PENDING)
        self.assertEqual(booking.incident_photos, ['https://cdn.example.com/1.jpg'])
        self.assertIsNotNone(booking.incident_timestamp)

    def test_second_report_overwrites(self):
        BookingService.report_incident(self.booking.id, self.customer.id, self.customer.role, 'First')
        booking = BookingService.report_incident(self.booking.id, self.customer.id, self.customer.role, 'Second')
        self.assertEqual(booking.incident_details, 'Second')
        self.assertEqual(booking.incident_photos, [])

    def test_non_owner_rejected_without_changes(self):
        before = Booking.objects.values().get(pk=self.booking.pk)
        for _ in range(2):
            with self.assertRaises(OwnershipError):
                BookingService.report_incident(self.booking.id, self.other.id, self.other.role, 'Not mine')
            self.assertEqual(Booking.objects.values().get(pk=self.booking.pk), before)

    def test_missing_booking_is_ownership_error(self):
        with self.assertRaises(OwnershipError):
            BookingService.report_incident(99999, self.customer.id, self.customer.role, 'Nothing')

    def test_empty_details_rejected(self):
        with self.assertRaises(ValidationError):
            BookingService.report_incident(self.booking.id, self.customer.id, self.customer.role, '  ')

    def test_anonymous_rejected(self):
        with self.assertRaises(Unauthorized):
            BookingService.report_incident(self.booking.id, None, None, 'Crash')


class AdvanceBookingStatusesCommandTest(TestCase):
    def setUp(self):
        self.owner = make_user('owner@example.com', User.CAR_OWNER)
        self.customer = make_user('customer@example.com', User.CUSTOMER)
        self.car = make_car(self.owner, status=Car.BOOKED)
        self.starting = Booking.objects.create(
            car=self.car, customer=self.customer, rental_period=Booking.SHORT_TERM,
            start_date=datetime.date(2024, 1, 1), end_date=datetime.date(2024, 1, 20),
            deposit=Decimal('500.00'), total_price=Decimal('1500.00'), status=Booking.APPROVED,
        )
        self.ending = Booking.objects.create(
            car=self.car, customer=self.customer, rental_period=Booking.SHORT_TERM,
            start_date=datetime.date(2023, 12, 1), end_date=datetime.date(2023, 12, 20),
            deposit=Decimal('500.00'), total_price=Decimal('1500.00'), status=Booking.ACTIVE,
        )

    def test_advances_statuses(self):
        out = StringIO()
        call_command('advance_booking_statuses', '--date', '2024-01-05', stdout=out)
        self.starting.refresh_from_db()
        self.ending.refresh_from_db()
        self.assertEqual(self.starting.status, Booking.ACTIVE)
        self.assertEqual(self.ending.status, Booking.COMPLETED)
        self.assertIn('Activated: 1, completed: 1', out.getvalue())

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command('advance_booking_statuses', '--date', '2024-01-05', '--dry-run', stdout=out)
        self.starting.refresh_from_db()
        self.assertEqual(self.starting.status, Booking.APPROVED)
        self.assertIn('[dry-run]', out.getvalue())


class BookingAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.owner = make_user('owner@example.com', User.CAR_OWNER)
        self.customer = make_user('customer@example.com', User.CUSTOMER)
        self.other = make_user('other@example.com', User.CUSTOMER)
        self.admin = make_user('admin@example.com', User.ADMIN)
        self.car = make_car(self.owner)

    def _book(self):
        self.client.force_authenticate(user=self.customer)
        return self.client.post('/api/bookings/', {
            'car': self.car.id,
            'rental_period': Booking.LONG_TERM,
            'start_date': '2024-03-01',
            'end_date': '2024-05-30',
            'delivery_option': Booking.SELF_PICKUP,
        }, format='json')

    def test_create_booking(self):
        response = self._book()
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['total_price'], '4140.00')
        self.assertEqual(response.data['status'], Booking.PENDING)
        self.assertTrue(response.data['car_status_updated'])

    def test_create_booking_requires_login(self):
        response = self.client.post('/api/bookings/', {}, format='json')
        self.assertEqual(response.status_code, 401)

    def test_booking_unavailable_car_is_conflict(self):
        self._book()
        response = self._book()
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error_code'], 'not_available')

    def test_delivery_requires_address(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.post('/api/bookings/', {
            'car': self.car.id, 'rental_period': Booking.SHORT_TERM,
            'start_date': '2024-03-01', 'end_date': '2024-03-20', 'delivery_option': Booking.DELIVERY,
        }, format='json')
        self.assertEqual(response.status_code, 400)

    def test_quote_is_public(self):
        response = self.client.post('/api/bookings/quote/', {
            'car': self.car.id, 'rental_period': Booking.SHORT_TERM,
            'start_date': '2024-01-01', 'end_date': '2024-01-14',
            'delivery_option': Booking.DELIVERY, 'delivery_time': '2024-01-01T18:00:00Z',
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['subtotal'], '700.00')

    def test_customer_sees_only_own_bookings(self):
        booking_id = self._book().data['id']
        self.client.force_authenticate(user=self.other)
        response = self.client.get('/api/bookings/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, [])
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(f'/api/bookings/{booking_id}/')
        self.assertEqual(response.status_code, 200)

    def test_admin_approves(self):
        booking_id = self._book().data['id']
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f'/api/bookings/{booking_id}/approve/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], Booking.APPROVED)

    def test_customer_cannot_approve(self):
        booking_id = self._book().data['id']
        response = self.client.post(f'/api/bookings/{booking_id}/approve/')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error_code'], 'forbidden')

    def test_strict_set_status_conflict(self):
        booking_id = self._book().data['id']
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f'/api/bookings/{booking_id}/set-status/', {'status': Booking.COMPLETED, 'strict': True}, format='json')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error_code'], 'invalid_transition')

    def test_report_incident_by_other_customer(self):
        booking_id = self._book().data['id']
        self.client.force_authenticate(user=self.other)
        response = self.client.post(f'/api/bookings/{booking_id}/report-incident/', {'details': 'Dent'}, format='json')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error_code'], 'not_owner')

    def test_owner_booking_history(self):
        self._book()
        self.client.force_authenticate(user=self.owner)
        response = self.client.get('/api/owner-bookings/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
