from rest_framework import viewsets, status, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from users.permissions import MANAGE_MAINTENANCE, capability_required
from .filters import MaintenanceRecordFilter
from .serializers import (
    GenerateInvoiceSerializer, LogServiceSerializer, MaintenanceRecordSerializer, ScheduleMaintenanceSerializer,
)
from .services import InvoiceService, MaintenanceService


def bulk_response(result, success_status=status.HTTP_200_OK):
    """200/201 when every record was written, 207 on partial failure, 503 when none was."""
    if result.ok:
        code = success_status
    elif result.partial:
        code = status.HTTP_207_MULTI_STATUS
    else:
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    return Response(result.as_dict(), status=code)


class MaintenanceViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Service center work:
    - schedule maintenance for a car
    - log service on a new or an existing record
    - list records filtered by car, type and status
    """
    serializer_class = MaintenanceRecordSerializer
    filterset_class = MaintenanceRecordFilter
    permission_classes = [permissions.IsAuthenticated, capability_required(MANAGE_MAINTENANCE)]

    def get_queryset(self):
        return MaintenanceService.records()

    def create(self, request, *args, **kwargs):
        serializer = ScheduleMaintenanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        record = MaintenanceService.schedule_maintenance(
            acting_role=request.user.role,
            car_id=data['car'],
            maintenance_type=data['maintenance_type'],
            description=data['description'],
            date=data['date'],
            estimated_cost=data.get('estimated_cost'),
            assigned_staff_id=data.get('assigned_staff'),
            next_service_date=data.get('next_service_date'),
            notes=data.get('notes', ''),
        )
        return Response(MaintenanceRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def log(self, request, pk=None):
        data = request.data.copy()
        data['maintenance_id'] = pk
        return self._log_service(request, data)

    @action(detail=False, methods=['post'], url_path='log-service')
    def log_service(self, request):
        return self._log_service(request, request.data)

    def _log_service(self, request, payload):
        serializer = LogServiceSerializer(data=payload)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        record = MaintenanceService.log_service(
            acting_user_id=request.user.id,
            acting_role=request.user.role,
            maintenance_id=data.get('maintenance_id'),
            status=data['status'],
            cost=data.get('cost'),
            notes=data.get('notes'),
            photos=data.get('photos'),
            car_id=data.get('car'),
            maintenance_type=data.get('maintenance_type'),
            description=data.get('description'),
            performed_by_id=data.get('performed_by'),
            strict=data.get('strict'),
        )
        code = status.HTTP_200_OK if data.get('maintenance_id') else status.HTTP_201_CREATED
        return Response(MaintenanceRecordSerializer(record).data, status=code)

    @action(detail=False, methods=['get'])
    def uninvoiced(self, request):
        records = InvoiceService.uninvoiced_completed()
        return Response(MaintenanceRecordSerializer(records, many=True).data)


class InvoiceView(APIView):
    permission_classes = [permissions.IsAuthenticated, capability_required(MANAGE_MAINTENANCE)]

    def get(self, request):
        return Response(InvoiceService.list_invoices(request.query_params.get('search')))

    def post(self, request):
        serializer = GenerateInvoiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = InvoiceService.generate_invoice(
            acting_role=request.user.role,
            maintenance_ids=data['maintenance_ids'],
            invoice_date=data['invoice_date'],
            due_date=data.get('due_date'),
            invoice_number=data.get('invoice_number'),
            notes=data.get('notes', ''),
        )
        return bulk_response(result, status.HTTP_201_CREATED)


class MarkInvoicePaidView(APIView):
    permission_classes = [permissions.IsAuthenticated, capability_required(MANAGE_MAINTENANCE)]

    def post(self, request, invoice_number):
        result = InvoiceService.mark_invoice_paid(request.user.role, invoice_number)
        return bulk_response(result)
