import datetime
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.db.models.query import QuerySet
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from carrento_backend.exceptions import Forbidden, InvalidTransition, NotFound, Unauthorized, ValidationError
from cars.models import Car
from .models import MaintenanceRecord
from .services import MIXED, InvoiceService, MaintenanceService

User = get_user_model()


def make_user(email, role):
    return User.objects.create_user(email=email, password='testpass123', first_name='Sam', last_name='Mechanic', role=role)


def flaky_update(fail_on):
    """QuerySet.update replacement that raises on the given call numbers (1-based)."""
    real_update = QuerySet.update
    calls = []

    def update(queryset, **kwargs):
        calls.append(1)
        if len(calls) in fail_on:
            raise DatabaseError('connection reset')
        return real_update(queryset, **kwargs)
    return update


def vanishing_update(on_call):
    """QuerySet.update replacement that deletes the matched rows before the given call (1-based)."""
    real_update = QuerySet.update
    calls = []

    def update(queryset, **kwargs):
        calls.append(1)
        if len(calls) == on_call:
            queryset.delete()
        return real_update(queryset, **kwargs)
    return update


class MaintenanceTestMixin:
    def setUp(self):
        self.owner = make_user('owner@example.com', User.CAR_OWNER)
        self.staff = make_user('staff@example.com', User.SERVICE_CENTER_STAFF)
        self.car = Car.objects.create(owner=self.owner, make='Honda', model='Civic', year=2021,
                                      car_type=Car.SEDAN, color='Blue', status=Car.AVAILABLE)

    def completed_record(self, cost):
        return MaintenanceRecord.objects.create(
            car=self.car, maintenance_type=MaintenanceRecord.REPAIR, description='Brake pads',
            cost=Decimal(cost), date=timezone.now(), status=MaintenanceRecord.COMPLETED, performed_by=self.staff,
        )


class MaintenanceServiceTest(MaintenanceTestMixin, TestCase):
    def test_schedule_maintenance(self):
        record = MaintenanceService.schedule_maintenance(
            self.staff.role, self.car.id, MaintenanceRecord.REGULAR, 'Oil change',
            timezone.now() + datetime.timedelta(days=3), estimated_cost=Decimal('80.00'),
            assigned_staff_id=self.staff.id, next_service_date=datetime.date(2025, 1, 1),
        )
        self.assertEqual(record.status, MaintenanceRecord.SCHEDULED)
        self.assertEqual(record.cost, Decimal('80.00'))
        self.assertEqual(record.performed_by, self.staff)

    def test_schedule_requires_maintenance_role(self):
        with self.assertRaises(Forbidden):
            MaintenanceService.schedule_maintenance(User.CUSTOMER, self.car.id, MaintenanceRecord.REGULAR, 'Oil', timezone.now())

    def test_schedule_unknown_type(self):
        with self.assertRaises(ValidationError):
            MaintenanceService.schedule_maintenance(self.staff.role, self.car.id, 'Paint', 'Paint job', timezone.now())

    def test_schedule_unknown_car(self):
        with self.assertRaises(NotFound):
            MaintenanceService.schedule_maintenance(self.staff.role, 99999, MaintenanceRecord.REGULAR, 'Oil', timezone.now())

    def test_log_service_creates_completed_record(self):
        record = MaintenanceService.log_service(
            self.staff.id, self.staff.role, car_id=self.car.id,
            maintenance_type=MaintenanceRecord.INSPECTION, description='Annual inspection', cost=Decimal('45.00'),
        )
        self.assertEqual(record.status, MaintenanceRecord.COMPLETED)
        self.assertEqual(record.performed_by_id, self.staff.id)
        self.assertIsNotNone(record.date)

    def test_log_service_new_record_needs_details(self):
        with self.assertRaises(ValidationError):
            MaintenanceService.log_service(self.staff.id, self.staff.role, car_id=self.car.id)

    def test_log_service_anonymous(self):
        with self.assertRaises(Unauthorized):
            MaintenanceService.log_service(None, None)

    def test_log_service_updates_existing(self):
        scheduled = MaintenanceService.schedule_maintenance(
            self.staff.role, self.car.id, MaintenanceRecord.REPAIR, 'Clutch', timezone.now(),
        )
        record = MaintenanceService.log_service(
            self.staff.id, self.staff.role, maintenance_id=scheduled.id,
            status=MaintenanceRecord.IN_PROGRESS, notes='Parts ordered',
        )
        self.assertEqual(record.status, MaintenanceRecord.IN_PROGRESS)
        self.assertEqual(record.notes, 'Parts ordered')
        record = MaintenanceService.log_service(
            self.staff.id, self.staff.role, maintenance_id=scheduled.id, cost=Decimal('350.00'),
        )
        self.assertEqual(record.status, MaintenanceRecord.COMPLETED)
        self.assertEqual(record.cost, Decimal('350.00'))
        self.assertEqual(record.notes, 'Parts ordered')

    def test_log_service_cannot_reschedule(self):
        record = self.completed_record('10.00')
        with self.assertRaises(ValidationError):
            MaintenanceService.log_service(self.staff.id, self.staff.role, maintenance_id=record.id,
                                           status=MaintenanceRecord.SCHEDULED)

    def test_log_service_legacy_reopens_completed(self):
        record = self.completed_record('10.00')
        record = MaintenanceService.log_service(self.staff.id, self.staff.role, maintenance_id=record.id,
                                                status=MaintenanceRecord.IN_PROGRESS)
        self.assertEqual(record.status, MaintenanceRecord.IN_PROGRESS)

    def test_log_service_strict_rejects_reopen(self):
        record = self.completed_record('10.00')
        with self.assertRaises(InvalidTransition):
            MaintenanceService.log_service(self.staff.id, self.staff.role, maintenance_id=record.id,
                                           status=MaintenanceRecord.IN_PROGRESS, strict=True)

    def test_log_service_unknown_record(self):
        with self.assertRaises(NotFound):
            MaintenanceService.log_service(self.staff.id, self.staff.role, maintenance_id=99999)


class InvoiceServiceTest(MaintenanceTestMixin, TestCase):
    def test_invoice_number_format(self):
        number = InvoiceService.generate_invoice_number(datetime.datetime(2024, 3, 5, 12, 0))
        self.assertTrue(number.startswith('INV-202403-'))
        self.assertRegex(number, r'^INV-\d{6}-\d{4}$')

    def test_invoice_splits_total_evenly(self):
        records = [self.completed_record(cost) for cost in ('100.00', '200.00', '300.00')]
        ids = [record.id for record in records]
        result = InvoiceService.generate_invoice(self.staff.role, ids, datetime.date(2024, 4, 1), datetime.date(2024, 4, 30))

        self.assertTrue(result.ok)
        self.assertEqual(result.succeeded, ids)
        amounts = list(MaintenanceRecord.objects.filter(pk__in=ids).values_list('invoice_amount', flat=True))
        self.assertEqual(amounts, [Decimal('200.00')] * 3)
        self.assertEqual(sum(amounts), Decimal('600.00'))
        # original costs are left untouched
        self.assertEqual(sorted(MaintenanceRecord.objects.filter(pk__in=ids).values_list('cost', flat=True)),
                         [Decimal('100.00'), Decimal('200.00'), Decimal('300.00')])

    def test_uneven_split_rounds_each_member_to_cents(self):
        ids = [self.completed_record(cost).id for cost in ('100.00', '0.00', '0.00')]
        InvoiceService.generate_invoice(self.staff.role, ids, datetime.date(2024, 4, 1), invoice_number='INV-202404-0003')

        amounts = list(MaintenanceRecord.objects.filter(pk__in=ids).values_list('invoice_amount', flat=True))
        self.assertEqual(amounts, [Decimal('33.33')] * 3)
        # members may fall a cent short of the summed costs
        self.assertEqual(sum(amounts), Decimal('99.99'))
        self.assertEqual(InvoiceService.list_invoices()[0]['amount'], Decimal('99.99'))

    def test_invoice_shared_fields(self):
        records = [self.completed_record('50.00') for _ in range(2)]
        ids = [record.id for record in records]
        result = InvoiceService.generate_invoice(self.staff.role, ids, datetime.date(2024, 4, 1),
                                                 datetime.date(2024, 4, 15), invoice_number='INV-202404-1234', notes='Fleet')
        self.assertEqual(result.invoice_number, 'INV-202404-1234')
        for record in MaintenanceRecord.objects.filter(pk__in=ids):
            self.assertEqual(record.invoice_number, 'INV-202404-1234')
            self.assertEqual(record.invoice_status, MaintenanceRecord.INVOICE_PENDING)
            self.assertEqual(record.invoice_details, {'due_date': '2024-04-15', 'notes': 'Fleet', 'maintenance_ids': ids})

    def test_duplicate_ids_counted_once(self):
        first, second = self.completed_record('100.00'), self.completed_record('300.00')
        result = InvoiceService.generate_invoice(self.staff.role, [first.id, second.id, first.id], datetime.date(2024, 4, 1))
        self.assertEqual(result.attempted, [first.id, second.id])
        first.refresh_from_db()
        self.assertEqual(first.invoice_amount, Decimal('200.00'))

    def test_empty_selection(self):
        with self.assertRaises(ValidationError):
            InvoiceService.generate_invoice(self.staff.role, [], datetime.date(2024, 4, 1))

    def test_only_completed_records(self):
        record = self.completed_record('100.00')
        MaintenanceRecord.objects.filter(pk=record.pk).update(status=MaintenanceRecord.IN_PROGRESS)
        with self.assertRaises(ValidationError):
            InvoiceService.generate_invoice(self.staff.role, [record.id], datetime.date(2024, 4, 1))

    def test_record_cannot_be_invoiced_twice(self):
        record = self.completed_record('100.00')
        InvoiceService.generate_invoice(self.staff.role, [record.id], datetime.date(2024, 4, 1))
        with self.assertRaises(ValidationError):
            InvoiceService.generate_invoice(self.staff.role, [record.id], datetime.date(2024, 4, 2))

    def test_missing_record(self):
        with self.assertRaises(NotFound):
            InvoiceService.generate_invoice(self.staff.role, [99999], datetime.date(2024, 4, 1))

    def test_customer_cannot_invoice(self):
        record = self.completed_record('100.00')
        with self.assertRaises(Forbidden):
            InvoiceService.generate_invoice(User.CUSTOMER, [record.id], datetime.date(2024, 4, 1))

    def test_partial_failure_is_reported(self):
        records = [self.completed_record(cost) for cost in ('100.00', '200.00', '300.00')]
        ids = [record.id for record in records]
        with mock.patch.object(QuerySet, 'update', autospec=True, side_effect=flaky_update({2})):
            result = InvoiceService.generate_invoice(self.staff.role, ids, datetime.date(2024, 4, 1))

        self.assertTrue(result.partial)
        self.assertEqual(result.succeeded, [ids[0], ids[2]])
        self.assertEqual(result.failed, [ids[1]])
        self.assertIsNone(MaintenanceRecord.objects.get(pk=ids[1]).invoice_number)
        self.assertEqual(MaintenanceRecord.objects.filter(invoice_number=result.invoice_number).count(), 2)
        self.assertEqual(InvoiceService.uninvoiced_completed().get().pk, ids[1])

    def test_record_deleted_before_write_is_failed(self):
        ids = [self.completed_record(cost).id for cost in ('100.00', '200.00')]
        with mock.patch.object(QuerySet, 'update', autospec=True, side_effect=vanishing_update(2)):
            result = InvoiceService.generate_invoice(self.staff.role, ids, datetime.date(2024, 4, 1))

        self.assertTrue(result.partial)
        self.assertEqual(result.succeeded, [ids[0]])
        self.assertEqual(result.failed, [ids[1]])
        self.assertFalse(MaintenanceRecord.objects.filter(pk=ids[1]).exists())

    def test_mark_paid(self):
        ids = [self.completed_record('100.00').id, self.completed_record('100.00').id]
        number = InvoiceService.generate_invoice(self.staff.role, ids, datetime.date(2024, 4, 1)).invoice_number
        result = InvoiceService.mark_invoice_paid(self.staff.role, number)
        self.assertTrue(result.ok)
        self.assertEqual(
            set(MaintenanceRecord.objects.filter(pk__in=ids).values_list('invoice_status', flat=True)),
            {MaintenanceRecord.INVOICE_PAID},
        )

    def test_mark_paid_unknown_invoice(self):
        with self.assertRaises(NotFound):
            InvoiceService.mark_invoice_paid(self.staff.role, 'INV-202401-0000')

    def test_mark_paid_partial_shows_mixed_group(self):
        ids = [self.completed_record('100.00').id, self.completed_record('300.00').id]
        number = InvoiceService.generate_invoice(self.staff.role, ids, datetime.date(2024, 4, 1)).invoice_number
        with mock.patch.object(QuerySet, 'update', autospec=True, side_effect=flaky_update({1})):
            result = InvoiceService.mark_invoice_paid(self.staff.role, number)
        self.assertTrue(result.partial)
        invoice = InvoiceService.list_invoices()[0]
        self.assertEqual(invoice['status'], MIXED)

    def test_list_invoices_groups_members(self):
        ids = [self.completed_record(cost).id for cost in ('100.00', '200.00', '300.00')]
        InvoiceService.generate_invoice(self.staff.role, ids, datetime.date(2024, 4, 1),
                                        datetime.date(2024, 4, 30), invoice_number='INV-202404-0001')
        other = self.completed_record('75.00')
        InvoiceService.generate_invoice(self.staff.role, [other.id], datetime.date(2024, 5, 1),
                                        invoice_number='INV-202405-0002')

        invoices = InvoiceService.list_invoices()
        self.assertEqual([invoice['invoice_number'] for invoice in invoices], ['INV-202405-0002', 'INV-202404-0001'])
        april = invoices[1]
        self.assertEqual(april['amount'], Decimal('600.00'))
        self.assertEqual(april['status'], MaintenanceRecord.INVOICE_PENDING)
        self.assertEqual(april['due_date'], '2024-04-30')
        self.assertEqual(len(april['items']), 3)

        self.assertEqual(len(InvoiceService.list_invoices('0404')), 1)
        self.assertEqual(len(InvoiceService.list_invoices('honda')), 2)
        self.assertEqual(len(InvoiceService.list_invoices('Mechanic')), 2)
        self.assertEqual(InvoiceService.list_invoices('nothing-like-this'), [])


class MaintenanceAPITest(MaintenanceTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(user=self.staff)

    def test_customer_is_forbidden(self):
        self.client.force_authenticate(user=make_user('customer@example.com', User.CUSTOMER))
        response = self.client.get('/api/maintenance/')
        self.assertEqual(response.status_code, 403)

    def test_schedule_and_filter(self):
        response = self.client.post('/api/maintenance/', {
            'car': self.car.id, 'maintenance_type': MaintenanceRecord.REGULAR,
            'description': 'Oil change', 'date': '2024-06-01T09:00:00Z',
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.completed_record('20.00')

        response = self.client.get('/api/maintenance/', {'status': MaintenanceRecord.SCHEDULED})
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/maintenance/', {'type': MaintenanceRecord.REPAIR, 'car': self.car.id})
        self.assertEqual(len(response.data), 1)

    def test_log_service_endpoint(self):
        response = self.client.post('/api/maintenance/log-service/', {
            'car': self.car.id, 'maintenance_type': MaintenanceRecord.REPAIR, 'description': 'Tyre swap', 'cost': '60.00',
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['status'], MaintenanceRecord.COMPLETED)

        response = self.client.get('/api/maintenance/uninvoiced/')
        self.assertEqual(len(response.data), 1)

    def test_log_on_existing_record(self):
        record = MaintenanceService.schedule_maintenance(
            self.staff.role, self.car.id, MaintenanceRecord.REPAIR, 'Gearbox', timezone.now(),
        )
        response = self.client.post(f'/api/maintenance/{record.id}/log/', {'status': MaintenanceRecord.IN_PROGRESS}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], MaintenanceRecord.IN_PROGRESS)

        response = self.client.post(f'/api/maintenance/{record.id}/log/', {'status': MaintenanceRecord.IN_PROGRESS, 'strict': True}, format='json')
        self.assertEqual(response.status_code, 409)

    def test_generate_invoice_endpoint(self):
        ids = [self.completed_record(cost).id for cost in ('100.00', '200.00', '300.00')]
        response = self.client.post('/api/invoices/', {'maintenance_ids': ids, 'invoice_date': '2024-04-01'}, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['succeeded'], ids)
        self.assertFalse(response.data['partial'])

        response = self.client.get('/api/invoices/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data[0]['amount'], Decimal('600.00'))

    def test_generate_invoice_partial_is_multi_status(self):
        ids = [self.completed_record('100.00').id, self.completed_record('200.00').id]
        with mock.patch.object(QuerySet, 'update', autospec=True, side_effect=flaky_update({1})):
            response = self.client.post('/api/invoices/', {'maintenance_ids': ids, 'invoice_date': '2024-04-01'}, format='json')
        self.assertEqual(response.status_code, 207)
        self.assertEqual(response.data['failed'], [ids[0]])

    def test_generate_invoice_total_failure_is_unavailable(self):
        ids = [self.completed_record('100.00').id]
        with mock.patch.object(QuerySet, 'update', autospec=True, side_effect=flaky_update({1, 2})):
            response = self.client.post('/api/invoices/', {'maintenance_ids': ids, 'invoice_date': '2024-04-01'}, format='json')
        self.assertEqual(response.status_code, 503)

    def test_generate_invoice_rejects_empty_selection(self):
        response = self.client.post('/api/invoices/', {'maintenance_ids': [], 'invoice_date': '2024-04-01'}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_mark_paid_endpoint(self):
        record = self.completed_record('100.00')
        number = InvoiceService.generate_invoice(self.staff.role, [record.id], datetime.date(2024, 4, 1)).invoice_number
        response = self.client.post(f'/api/invoices/{number}/mark-paid/')
        self.assertEqual(response.status_code, 200)
        response = self.client.post('/api/invoices/INV-190001-0000/mark-paid/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error_code'], 'not_found')
