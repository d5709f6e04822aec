from django.contrib import admin
from django.urls import path, include


urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('users.urls')),  # auth, profile, access checks, user management
    path('api/', include('cars.urls')),  # listings and listing review
    path('api/', include('bookings.urls')),  # bookings, incidents
    path('api/', include('maintenance.urls')),  # service center: maintenance and invoices
]
