from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models


class UserManager(BaseUserManager):
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("The Email field must be set")
        if not password:
            raise ValueError("The Password field must be set")

        email = self.normalize_email(email)
        extra_fields.setdefault('role', User.CUSTOMER)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('role', User.SUPER_ADMIN)
        user = self.create_user(email, password, **extra_fields)
        user.is_staff = True
        user.is_superuser = True
        user.save(using=self._db)
        return user


class User(AbstractUser):
    SUPER_ADMIN = 'SuperAdmin'
    ADMIN = 'Admin'
    SUPPORT_STAFF = 'SupportStaff'
    SERVICE_CENTER_STAFF = 'ServiceCenterStaff'
    CAR_OWNER = 'CarOwner'
    CUSTOMER = 'Customer'

    ROLE_CHOICES = [
        (SUPER_ADMIN, 'Super Admin'),
        (ADMIN, 'Admin'),
        (SUPPORT_STAFF, 'Support Staff'),
        (SERVICE_CENTER_STAFF, 'Service Center Staff'),
        (CAR_OWNER, 'Car Owner'),
        (CUSTOMER, 'Customer'),
    ]
    ROLES = [value for value, _ in ROLE_CHOICES]

    # roles a visitor may pick when signing up
    SELF_SERVICE_ROLES = [CUSTOMER, CAR_OWNER]

    username = None
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=30, choices=ROLE_CHOICES, default=CUSTOMER)
    phone_number = models.CharField(max_length=20, blank=True, default='')
    # {"street", "city", "state", "zipCode", "country"}
    address = models.JSONField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        return self.get_full_name() or self.email
