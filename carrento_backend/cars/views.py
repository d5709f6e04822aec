from rest_framework import viewsets, status, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from carrento_backend.exceptions import NotFound
from users.permissions import REVIEW_CAR_LISTING, VIEW_OWNER_PORTAL, capability_required
from .filters import CarFilter
from .serializers import CarSerializer
from .services import CarListingService


class CarViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Public browsing of bookable cars plus the listing workflow:
    - owners submit listings (status New)
    - admins approve or reject listings still in New
    - service staff withdraw cars for maintenance and return them
    """
    serializer_class = CarSerializer
    filterset_class = CarFilter

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            return [permissions.AllowAny()]
        return super().get_permissions()

    def get_queryset(self):
        if self.action == 'list':
            return CarListingService.available_cars()
        return CarListingService.visible_to(self.request.user)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        pricing = data.pop('pricing')
        specification = data.pop('specification', None)
        car = CarListingService.submit_listing(
            owner_id=request.user.id,
            acting_role=request.user.role,
            attributes=data,
            pricing=pricing,
            specification=specification,
        )
        return Response(CarSerializer(car).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'], permission_classes=[permissions.IsAuthenticated, capability_required(REVIEW_CAR_LISTING)])
    def pending(self, request):
        cars = CarListingService.pending_listings()
        return Response(CarSerializer(cars, many=True).data)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        car = CarListingService.approve(pk, request.user.role)
        if car is None:
            raise NotFound("No listing awaiting approval with this id.")
        return Response(CarSerializer(car).data)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        car = CarListingService.reject(pk, request.user.role)
        if car is None:
            raise NotFound("No listing awaiting approval with this id.")
        return Response(CarSerializer(car).data)

    @action(detail=True, methods=['post'])
    def withdraw(self, request, pk=None):
        car = CarListingService.withdraw_for_maintenance(pk, request.user.role)
        return Response(CarSerializer(car).data)

    @action(detail=True, methods=['post'], url_path='return-to-service')
    def return_to_service(self, request, pk=None):
        car = CarListingService.return_to_service(pk, request.user.role)
        return Response(CarSerializer(car).data)


class MyCarsView(APIView):
    permission_classes = [permissions.IsAuthenticated, capability_required(VIEW_OWNER_PORTAL)]

    def get(self, request):
        cars = CarListingService.cars_of(request.user)
        serializer = CarSerializer(cars, many=True)
        return Response(serializer.data)
