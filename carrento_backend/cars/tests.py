from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from carrento_backend.exceptions import Forbidden, NotFound, ValidationError
from .models import Car
from .services import CarListingService

User = get_user_model()

ATTRIBUTES = {'make': 'Toyota', 'model': 'Camry', 'year': 2022, 'car_type': Car.SEDAN, 'color': 'Silver'}
PRICING = {'short_term': Decimal('50.00'), 'long_term': Decimal('40.00')}


class CarListingServiceTest(TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(email='owner@example.com', password='testpass123', role=User.CAR_OWNER)

    def submit(self, **attributes):
        return CarListingService.submit_listing(self.owner.id, self.owner.role, dict(ATTRIBUTES, **attributes), PRICING)

    def test_submit_listing_starts_new(self):
        car = self.submit(status=Car.AVAILABLE)
        self.assertEqual(car.status, Car.NEW)
        self.assertEqual(car.pricing.short_term, Decimal('50.00'))
        self.assertEqual(car.pricing.long_term, Decimal('40.00'))

    def test_submit_listing_with_specification(self):
        car = CarListingService.submit_listing(
            self.owner.id, self.owner.role, ATTRIBUTES, PRICING,
            specification={'seats': 7, 'doors': 5, 'features': ['GPS', 'Bluetooth']},
        )
        self.assertEqual(car.specification.seats, 7)
        self.assertEqual(car.specification.features, ['GPS', 'Bluetooth'])

    def test_long_term_rate_may_exceed_short_term(self):
        car = CarListingService.submit_listing(
            self.owner.id, self.owner.role, ATTRIBUTES, {'short_term': Decimal('30.00'), 'long_term': Decimal('45.00')},
        )
        self.assertEqual(car.pricing.long_term, Decimal('45.00'))

    def test_submit_requires_both_rates(self):
        with self.assertRaises(ValidationError):
            CarListingService.submit_listing(self.owner.id, self.owner.role, ATTRIBUTES, {'short_term': Decimal('50.00')})
        self.assertFalse(Car.objects.exists())

    def test_customer_cannot_submit(self):
        with self.assertRaises(Forbidden):
            CarListingService.submit_listing(self.owner.id, User.CUSTOMER, ATTRIBUTES, PRICING)

    def test_approve_and_reject(self):
        approved = CarListingService.approve(self.submit().id, User.ADMIN)
        rejected = CarListingService.reject(self.submit().id, User.SUPER_ADMIN)
        self.assertEqual(approved.status, Car.AVAILABLE)
        self.assertEqual(rejected.status, Car.REJECTED)

    def test_approve_non_new_returns_none(self):
        car = self.submit()
        CarListingService.approve(car.id, User.ADMIN)
        for status in (Car.AVAILABLE, Car.BOOKED, Car.MAINTENANCE, Car.REJECTED):
            Car.objects.filter(pk=car.pk).update(status=status)
            with self.subTest(status=status):
                self.assertIsNone(CarListingService.approve(car.id, User.ADMIN))
                self.assertIsNone(CarListingService.reject(car.id, User.ADMIN))
                car.refresh_from_db()
                self.assertEqual(car.status, status)

    def test_approve_missing_returns_none(self):
        self.assertIsNone(CarListingService.approve(99999, User.ADMIN))

    def test_owner_cannot_approve(self):
        car = self.submit()
        with self.assertRaises(Forbidden):
            CarListingService.approve(car.id, User.CAR_OWNER)

    def test_withdraw_and_return(self):
        car = CarListingService.approve(self.submit().id, User.ADMIN)
        car = CarListingService.withdraw_for_maintenance(car.id, User.SERVICE_CENTER_STAFF)
        self.assertEqual(car.status, Car.MAINTENANCE)
        car = CarListingService.return_to_service(car.id, User.SERVICE_CENTER_STAFF)
        self.assertEqual(car.status, Car.AVAILABLE)
        with self.assertRaises(NotFound):
            CarListingService.return_to_service(car.id, User.SERVICE_CENTER_STAFF)

    def test_rejected_car_cannot_be_withdrawn(self):
        car = CarListingService.reject(self.submit().id, User.ADMIN)
        with self.assertRaises(NotFound):
            CarListingService.withdraw_for_maintenance(car.id, User.ADMIN)

    def test_available_cars(self):
        CarListingService.approve(self.submit().id, User.ADMIN)
        self.submit()
        self.assertEqual(CarListingService.available_cars().count(), 1)
        self.assertEqual(CarListingService.pending_listings().count(), 1)
        self.assertEqual(CarListingService.cars_of(self.owner).count(), 2)


class CarAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.owner = User.objects.create_user(email='owner@example.com', password='testpass123', role=User.CAR_OWNER)
        self.admin = User.objects.create_user(email='admin@example.com', password='testpass123', role=User.ADMIN)

    def submit(self):
        self.client.force_authenticate(user=self.owner)
        return self.client.post('/api/cars/', {
            'make': 'Toyota', 'model': 'Camry', 'year': 2022, 'car_type': Car.SEDAN, 'color': 'Silver',
            'photos': ['https://cdn.example.com/camry.jpg'],
            'pricing': {'short_term': '50.00', 'long_term': '40.00'},
        }, format='json')

    def test_submit_listing(self):
        response = self.submit()
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['status'], Car.NEW)
        self.assertEqual(response.data['owner'], self.owner.id)

    def test_submit_listing_without_pricing(self):
        self.client.force_authenticate(user=self.owner)
        response = self.client.post('/api/cars/', {
            'make': 'Toyota', 'model': 'Camry', 'year': 2022, 'car_type': Car.SEDAN, 'color': 'Silver', 'pricing': None,
        }, format='json')
        self.assertEqual(response.status_code, 400)

    def test_public_list_shows_available_only(self):
        car_id = self.submit().data['id']
        self.client.force_authenticate(user=None)
        self.assertEqual(self.client.get('/api/cars/').data, [])

        Car.objects.filter(pk=car_id).update(status=Car.AVAILABLE)
        response = self.client.get('/api/cars/', {'make': 'toy'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(self.client.get('/api/cars/', {'max_short_term': '45'}).data, [])

    def test_unapproved_car_detail_is_hidden_from_public(self):
        new_id = self.submit().data['id']
        rejected_id = self.submit().data['id']
        Car.objects.filter(pk=rejected_id).update(status=Car.REJECTED)

        self.client.force_authenticate(user=None)
        for car_id in (new_id, rejected_id):
            with self.subTest(car_id=car_id):
                self.assertEqual(self.client.get(f'/api/cars/{car_id}/').status_code, 404)

        stranger = User.objects.create_user(email='stranger@example.com', password='testpass123', role=User.CUSTOMER)
        self.client.force_authenticate(user=stranger)
        self.assertEqual(self.client.get(f'/api/cars/{rejected_id}/').status_code, 404)

        Car.objects.filter(pk=new_id).update(status=Car.AVAILABLE)
        self.client.force_authenticate(user=None)
        self.assertEqual(self.client.get(f'/api/cars/{new_id}/').status_code, 200)

    def test_owner_and_admin_see_unapproved_car_detail(self):
        car_id = self.submit().data['id']
        response = self.client.get(f'/api/cars/{car_id}/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], Car.NEW)

        self.client.force_authenticate(user=self.admin)
        self.assertEqual(self.client.get(f'/api/cars/{car_id}/').status_code, 200)

    def test_admin_review_flow(self):
        car_id = self.submit().data['id']
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/cars/pending/')
        self.assertEqual(len(response.data), 1)

        response = self.client.post(f'/api/cars/{car_id}/approve/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], Car.AVAILABLE)

        response = self.client.post(f'/api/cars/{car_id}/approve/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error_code'], 'not_found')

    def test_owner_cannot_see_pending_queue(self):
        self.submit()
        response = self.client.get('/api/cars/pending/')
        self.assertEqual(response.status_code, 403)

    def test_my_cars(self):
        self.submit()
        response = self.client.get('/api/my-cars/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
