from django.db import models
from django.contrib.auth import get_user_model

User = get_user_model()


class Car(models.Model):
    SEDAN = 'Sedan'
    SUV = 'SUV'
    COUPE = 'Coupe'
    HATCHBACK = 'Hatchback'
    WAGON = 'Wagon'
    PICKUP = 'Pickup'
    MINIVAN = 'Minivan'

    NEW = 'New'
    AVAILABLE = 'Available'
    BOOKED = 'Booked'
    MAINTENANCE = 'Maintenance'
    REJECTED = 'Rejected'

    CAR_TYPE_CHOICES = [
        (SEDAN, 'Sedan'),
        (SUV, 'SUV'),
        (COUPE, 'Coupe'),
        (HATCHBACK, 'Hatchback'),
        (WAGON, 'Wagon'),
        (PICKUP, 'Pickup'),
        (MINIVAN, 'Minivan'),
    ]

    STATUS_CHOICES = [
        (NEW, 'New'),
        (AVAILABLE, 'Available'),
        (BOOKED, 'Booked'),
        (MAINTENANCE, 'Maintenance'),
        (REJECTED, 'Rejected'),
    ]

    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='cars')
    make = models.CharField(max_length=100)
    model = models.CharField(max_length=100)
    year = models.IntegerField()
    car_type = models.CharField(max_length=20, choices=CAR_TYPE_CHOICES)
    color = models.CharField(max_length=50)
    description = models.TextField(blank=True, default='')
    # ordered public URIs returned by object storage
    photos = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=NEW)
    available_from = models.DateField(null=True, blank=True)
    available_until = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.year} {self.make} {self.model} ({self.status})"


class CarPricing(models.Model):
    """Daily rates. short_term: 2 weeks to under 3 months, long_term: 3 months and more."""
    car = models.OneToOneField(Car, on_delete=models.CASCADE, related_name='pricing')
    # long_term is usually the cheaper rate but nothing requires it
    short_term = models.DecimalField(max_digits=10, decimal_places=2)
    long_term = models.DecimalField(max_digits=10, decimal_places=2)

    def __str__(self):
        return f"Pricing for car #{self.car_id}: {self.short_term}/{self.long_term}"


class CarSpecification(models.Model):
    AUTOMATIC = 'Automatic'
    MANUAL = 'Manual'

    GASOLINE = 'Gasoline'
    DIESEL = 'Diesel'
    ELECTRIC = 'Electric'
    HYBRID = 'Hybrid'

    TRANSMISSION_CHOICES = [
        (AUTOMATIC, 'Automatic'),
        (MANUAL, 'Manual'),
    ]

    FUEL_CHOICES = [
        (GASOLINE, 'Gasoline'),
        (DIESEL, 'Diesel'),
        (ELECTRIC, 'Electric'),
        (HYBRID, 'Hybrid'),
    ]

    car = models.OneToOneField(Car, on_delete=models.CASCADE, related_name='specification')
    seats = models.PositiveIntegerField(default=5)
    doors = models.PositiveIntegerField(default=4)
    transmission = models.CharField(max_length=10, choices=TRANSMISSION_CHOICES, default=AUTOMATIC)
    fuel_type = models.CharField(max_length=10, choices=FUEL_CHOICES, default=GASOLINE)
    fuel_efficiency = models.CharField(max_length=50, blank=True, default='')
    features = models.JSONField(default=list, blank=True)
