from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import BookingViewSet, OwnerBookingsView

router = DefaultRouter()
router.register(r'bookings', BookingViewSet, basename='booking')

urlpatterns = [
    path('', include(router.urls)),
    path('owner-bookings/', OwnerBookingsView.as_view(), name='owner-bookings'),
]
