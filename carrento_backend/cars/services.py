import logging

from django.db import transaction
from django.db.models import Q

from carrento_backend.exceptions import NotFound, ValidationError
from users.permissions import MANAGE_MAINTENANCE, REVIEW_CAR_LISTING, SUBMIT_LISTING, authorize, require
from .models import Car, CarPricing, CarSpecification

logger = logging.getLogger(__name__)


class CarListingService:
    """Listing submission, admin review and maintenance withdrawal."""

    @staticmethod
    @transaction.atomic
    def submit_listing(owner_id, acting_role, attributes, pricing, specification=None):
        """Create a car in status New together with its rates."""
        require(acting_role, SUBMIT_LISTING)
        if not pricing or pricing.get('short_term') is None or pricing.get('long_term') is None:
            raise ValidationError("Both short_term and long_term daily rates are required.")

        attributes = dict(attributes)
        attributes.pop('status', None)
        car = Car.objects.create(owner_id=owner_id, status=Car.NEW, **attributes)
        CarPricing.objects.create(car=car, short_term=pricing['short_term'], long_term=pricing['long_term'])
        if specification:
            CarSpecification.objects.create(car=car, **specification)

        logger.info("Car #%s submitted by owner %s", car.pk, owner_id)
        return car

    @staticmethod
    def _review(car_id, acting_role, new_status):
        require(acting_role, REVIEW_CAR_LISTING)
        # conditional update: only a listing still in New can be reviewed
        updated = Car.objects.filter(pk=car_id, status=Car.NEW).update(status=new_status)
        if not updated:
            logger.info("Car #%s not reviewed: missing or no longer New", car_id)
            return None
        logger.info("Car #%s reviewed -> %s", car_id, new_status)
        return Car.objects.get(pk=car_id)

    @staticmethod
    def approve(car_id, acting_role):
        """New -> Available. Returns None when no New car matched."""
        return CarListingService._review(car_id, acting_role, Car.AVAILABLE)

    @staticmethod
    def reject(car_id, acting_role):
        """New -> Rejected. Returns None when no New car matched."""
        return CarListingService._review(car_id, acting_role, Car.REJECTED)

    @staticmethod
    def withdraw_for_maintenance(car_id, acting_role):
        require(acting_role, MANAGE_MAINTENANCE)
        updated = Car.objects.filter(pk=car_id).exclude(status=Car.REJECTED).update(status=Car.MAINTENANCE)
        if not updated:
            raise NotFound("Car not found or rejected.")
        logger.info("Car #%s withdrawn for maintenance", car_id)
        return Car.objects.get(pk=car_id)

    @staticmethod
    def return_to_service(car_id, acting_role):
        require(acting_role, MANAGE_MAINTENANCE)
        updated = Car.objects.filter(pk=car_id, status=Car.MAINTENANCE).update(status=Car.AVAILABLE)
        if not updated:
            raise NotFound("No car in maintenance with this id.")
        logger.info("Car #%s returned to service", car_id)
        return Car.objects.get(pk=car_id)

    @staticmethod
    def set_status(car_id, new_status):
        """Blind status write used by booking side effects."""
        return Car.objects.filter(pk=car_id).update(status=new_status)

    @staticmethod
    def available_cars():
        return Car.objects.filter(status=Car.AVAILABLE).select_related('pricing', 'specification')

    @staticmethod
    def visible_to(user):
        """Available cars for everyone, plus own listings for owners and every car for reviewers."""
        queryset = Car.objects.select_related('pricing', 'specification')
        if not (user and user.is_authenticated):
            return queryset.filter(status=Car.AVAILABLE)
        if authorize(user.role, REVIEW_CAR_LISTING):
            return queryset
        return queryset.filter(Q(status=Car.AVAILABLE) | Q(owner=user))

    @staticmethod
    def pending_listings():
        return Car.objects.filter(status=Car.NEW).select_related('owner', 'pricing')

    @staticmethod
    def cars_of(owner):
        return Car.objects.filter(owner=owner).select_related('pricing', 'specification')
