import logging
import random
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from carrento_backend.exceptions import InvalidTransition, NotFound, Unauthorized, ValidationError
from cars.models import Car
from users.permissions import MANAGE_MAINTENANCE, require
from .models import MaintenanceRecord

logger = logging.getLogger(__name__)

User = get_user_model()

MIXED = 'Mixed'


@dataclass
class BulkUpdateResult:
    """Outcome of a loop of independent per-record writes."""
    attempted: list
    succeeded: list = field(default_factory=list)
    failed: list = field(default_factory=list)
    invoice_number: str = None

    @property
    def ok(self):
        return not self.failed

    @property
    def partial(self):
        return bool(self.succeeded) and bool(self.failed)

    def as_dict(self):
        return {
            'invoice_number': self.invoice_number,
            'attempted': self.attempted,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'partial': self.partial,
        }


def _per_record(result, pks, **values):
    # each record is its own write; one failure does not undo the others
    for pk in pks:
        try:
            with transaction.atomic():
                updated = MaintenanceRecord.objects.filter(pk=pk).update(updated_at=timezone.now(), **values)
        except DatabaseError as exc:
            logger.error("Maintenance record #%s not updated: %s", pk, exc)
            result.failed.append(pk)
            continue
        if updated:
            result.succeeded.append(pk)
        else:
            logger.warning("Maintenance record #%s no longer exists", pk)
            result.failed.append(pk)
    return result


class MaintenanceService:

    @staticmethod
    def schedule_maintenance(acting_role, car_id, maintenance_type, description, date,
                             estimated_cost=None, assigned_staff_id=None, next_service_date=None, notes=''):
        require(acting_role, MANAGE_MAINTENANCE)
        if maintenance_type not in dict(MaintenanceRecord.TYPE_CHOICES):
            raise ValidationError(f"Unknown maintenance type: {maintenance_type}")
        if not Car.objects.filter(pk=car_id).exists():
            raise NotFound("Car not found.")
        if assigned_staff_id is not None and not User.objects.filter(pk=assigned_staff_id).exists():
            raise NotFound("Assigned staff member not found.")

        record = MaintenanceRecord.objects.create(
            car_id=car_id,
            maintenance_type=maintenance_type,
            description=description,
            date=date,
            cost=estimated_cost,
            performed_by_id=assigned_staff_id,
            next_service_date=next_service_date,
            notes=notes or '',
            status=MaintenanceRecord.SCHEDULED,
        )
        logger.info("Maintenance #%s scheduled for car #%s", record.pk, car_id)
        return record

    @staticmethod
    def log_service(acting_user_id, acting_role, maintenance_id=None, status=MaintenanceRecord.COMPLETED,
                    cost=None, notes=None, photos=None, car_id=None, maintenance_type=None,
                    description=None, performed_by_id=None, strict=None):
        """Record finished or ongoing work.

        Without ``maintenance_id`` a new Completed record dated now is
        created. With it, the existing record gets the new status and any
        cost, notes or photos given.
        """
        if acting_user_id is None:
            raise Unauthorized()
        require(acting_role, MANAGE_MAINTENANCE)

        if maintenance_id is None:
            if not (car_id and maintenance_type and description):
                raise ValidationError("car_id, maintenance_type and description are required.")
            if maintenance_type not in dict(MaintenanceRecord.TYPE_CHOICES):
                raise ValidationError(f"Unknown maintenance type: {maintenance_type}")
            if not Car.objects.filter(pk=car_id).exists():
                raise NotFound("Car not found.")
            record = MaintenanceRecord.objects.create(
                car_id=car_id,
                maintenance_type=maintenance_type,
                description=description,
                date=timezone.now(),
                cost=cost,
                notes=notes or '',
                photos=list(photos or []),
                performed_by_id=performed_by_id or acting_user_id,
                status=MaintenanceRecord.COMPLETED,
            )
            logger.info("Service logged as new record #%s for car #%s", record.pk, car_id)
            return record

        if status not in MaintenanceRecord.TRANSITIONS or status == MaintenanceRecord.SCHEDULED:
            raise ValidationError(f"Cannot log service with status: {status}")

        values = {'status': status, 'updated_at': timezone.now()}
        if cost is not None:
            values['cost'] = cost
        if notes is not None:
            values['notes'] = notes
        if photos is not None:
            values['photos'] = list(photos)
        if performed_by_id is not None:
            values['performed_by_id'] = performed_by_id

        queryset = MaintenanceRecord.objects.filter(pk=maintenance_id)
        strict = settings.CARRENTO['STRICT_TRANSITIONS'] if strict is None else strict
        if strict:
            current = queryset.values_list('status', flat=True).first()
            if current is None:
                raise NotFound("Maintenance record not found.")
            if status not in MaintenanceRecord.TRANSITIONS[current]:
                raise InvalidTransition(f"Cannot move maintenance from {current} to {status}.")
            if not queryset.filter(status=current).update(**values):
                raise InvalidTransition("Maintenance status changed by someone else, reload and retry.")
        elif not queryset.update(**values):
            raise NotFound("Maintenance record not found.")

        logger.info("Maintenance #%s -> %s", maintenance_id, status)
        return MaintenanceRecord.objects.get(pk=maintenance_id)

    @staticmethod
    def records():
        return MaintenanceRecord.objects.select_related('car', 'performed_by')


class InvoiceService:
    """Invoices are groups of maintenance records sharing an invoice number."""

    @staticmethod
    def generate_invoice_number(now=None):
        now = now or timezone.now()
        # collisions are not checked
        return f"INV-{now:%Y%m}-{random.randint(1000, 9999)}"

    @staticmethod
    def uninvoiced_completed():
        return MaintenanceRecord.objects.filter(
            status=MaintenanceRecord.COMPLETED, invoice_number__isnull=True,
        ).select_related('car', 'performed_by')

    @staticmethod
    def generate_invoice(acting_role, maintenance_ids, invoice_date, due_date=None, invoice_number=None, notes=''):
        require(acting_role, MANAGE_MAINTENANCE)
        ids = list(dict.fromkeys(maintenance_ids or []))
        if not ids:
            raise ValidationError("Select at least one maintenance record.")

        records = list(MaintenanceRecord.objects.filter(pk__in=ids))
        missing = set(ids) - {record.pk for record in records}
        if missing:
            raise NotFound(f"Maintenance records not found: {sorted(missing)}")
        for record in records:
            if record.status != MaintenanceRecord.COMPLETED:
                raise ValidationError(f"Maintenance record #{record.pk} is not completed.")
            if record.invoice_number:
                raise ValidationError(f"Maintenance record #{record.pk} is already on invoice {record.invoice_number}.")

        total = sum((record.cost or Decimal('0') for record in records), Decimal('0'))
        # the group total is split evenly, whatever each record cost
        amount = (total / len(ids)).quantize(Decimal('0.01'))
        invoice_number = invoice_number or InvoiceService.generate_invoice_number()
        details = {
            'due_date': due_date.isoformat() if due_date else None,
            'notes': notes or '',
            'maintenance_ids': ids,
        }

        result = BulkUpdateResult(attempted=ids, invoice_number=invoice_number)
        _per_record(
            result, ids,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            invoice_status=MaintenanceRecord.INVOICE_PENDING,
            invoice_amount=amount,
            invoice_details=details,
        )
        if result.failed:
            logger.warning("Invoice %s written for %s of %s records", invoice_number, len(result.succeeded), len(ids))
        else:
            logger.info("Invoice %s generated for records %s", invoice_number, ids)
        return result

    @staticmethod
    def mark_invoice_paid(acting_role, invoice_number):
        require(acting_role, MANAGE_MAINTENANCE)
        ids = list(MaintenanceRecord.objects.filter(invoice_number=invoice_number).order_by('pk').values_list('pk', flat=True))
        if not ids:
            raise NotFound(f"Invoice {invoice_number} not found.")
        result = BulkUpdateResult(attempted=ids, invoice_number=invoice_number)
        _per_record(result, ids, invoice_status=MaintenanceRecord.INVOICE_PAID)
        logger.info("Invoice %s marked paid (%s/%s records)", invoice_number, len(result.succeeded), len(ids))
        return result

    @staticmethod
    def list_invoices(search=None):
        queryset = MaintenanceRecord.objects.filter(invoice_number__isnull=False).select_related('car', 'performed_by')
        if search:
            queryset = queryset.filter(
                Q(invoice_number__icontains=search)
                | Q(car__make__icontains=search)
                | Q(performed_by__first_name__icontains=search)
                | Q(performed_by__last_name__icontains=search)
            )

        invoices = {}
        for record in queryset.order_by('-invoice_date', 'invoice_number', 'pk'):
            invoice = invoices.get(record.invoice_number)
            if invoice is None:
                details = record.invoice_details or {}
                invoice = invoices[record.invoice_number] = {
                    'invoice_number': record.invoice_number,
                    'invoice_date': record.invoice_date,
                    'status': record.invoice_status,
                    'amount': Decimal('0'),
                    'due_date': details.get('due_date'),
                    'notes': details.get('notes', ''),
                    'items': [],
                }
            elif invoice['status'] != record.invoice_status:
                invoice['status'] = MIXED
            invoice['amount'] += record.invoice_amount or Decimal('0')
            invoice['items'].append({
                'id': record.pk,
                'car': f"{record.car.year} {record.car.make} {record.car.model}",
                'maintenance_type': record.maintenance_type,
                'description': record.description,
                'cost': record.cost,
                'performed_by': record.performed_by.full_name if record.performed_by else None,
            })
        return list(invoices.values())
