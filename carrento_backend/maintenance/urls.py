from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import InvoiceView, MaintenanceViewSet, MarkInvoicePaidView

router = DefaultRouter()
router.register(r'maintenance', MaintenanceViewSet, basename='maintenance')

urlpatterns = [
    path('', include(router.urls)),
    path('invoices/', InvoiceView.as_view(), name='invoices'),
    path('invoices/<str:invoice_number>/mark-paid/', MarkInvoicePaidView.as_view(), name='invoice-mark-paid'),
]
