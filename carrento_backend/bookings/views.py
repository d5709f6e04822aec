from django.utils import timezone
from rest_framework import viewsets, status, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from carrento_backend.exceptions import NotAvailable, NotFound
from cars.models import Car
from users.permissions import VIEW_OWNER_PORTAL, capability_required
from .serializers import (
    BookingSerializer, BookingCreateSerializer, BookingStatusSerializer,
    IncidentReportSerializer, PaymentStatusSerializer, PriceQuoteSerializer,
)
from .services import BookingService, price_quote


class BookingViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Booking lifecycle:
    - customers create bookings and report incidents on their own bookings
    - admins approve, cancel or set any status and the payment status
    - anyone can ask for a price quote
    """
    serializer_class = BookingSerializer
    filterset_fields = ['status', 'payment_status', 'car']

    def get_queryset(self):
        return BookingService.bookings_for(self.request.user)

    def get_permissions(self):
        if self.action == 'quote':
            return [permissions.AllowAny()]
        return super().get_permissions()

    def create(self, request, *args, **kwargs):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = BookingService.create_booking(
            customer_id=request.user.id,
            acting_role=request.user.role,
            car_id=data['car'],
            period=data['rental_period'],
            start_date=data['start_date'],
            end_date=data['end_date'],
            delivery_option=data['delivery_option'],
            delivery_address=data.get('delivery_address'),
            special_requests=data.get('special_requests', ''),
            delivery_time=data.get('delivery_time'),
        )
        payload = BookingSerializer(result['booking']).data
        payload['car_status_updated'] = result['car_status_updated']
        return Response(payload, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'])
    def quote(self, request):
        serializer = PriceQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        car = Car.objects.select_related('pricing').filter(pk=data['car']).first()
        if car is None:
            raise NotFound("Car not found.")
        if not hasattr(car, 'pricing'):
            raise NotAvailable("Car has no pricing.")
        quote = price_quote(
            car, data['rental_period'], data['start_date'], data['end_date'],
            data['delivery_option'], data.get('delivery_time') or timezone.localtime(),
        )
        return Response({key: str(value) for key, value in quote.items()})

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        booking = BookingService.approve_booking(pk, request.user.role)
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        booking = BookingService.cancel_booking(pk, request.user.role)
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=['post'], url_path='set-status')
    def set_status(self, request, pk=None):
        serializer = BookingStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = BookingService.set_booking_status(
            pk, serializer.validated_data['status'], request.user.role,
            strict=serializer.validated_data.get('strict'),
        )
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=['post'], url_path='set-payment-status')
    def set_payment_status(self, request, pk=None):
        serializer = PaymentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = BookingService.set_payment_status(pk, serializer.validated_data['payment_status'], request.user.role)
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=['post'], url_path='report-incident')
    def report_incident(self, request, pk=None):
        serializer = IncidentReportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = BookingService.report_incident(
            pk, request.user.id, request.user.role,
            serializer.validated_data['details'], serializer.validated_data.get('photos'),
        )
        return Response(BookingSerializer(booking).data)


class OwnerBookingsView(APIView):
    """Booking history of the cars the current owner listed."""
    permission_classes = [permissions.IsAuthenticated, capability_required(VIEW_OWNER_PORTAL)]

    def get(self, request):
        bookings = BookingService.owner_bookings(request.user)
        return Response(BookingSerializer(bookings, many=True).data)
