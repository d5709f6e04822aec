import logging

from django.contrib.auth import get_user_model

from carrento_backend.exceptions import NotFound, ValidationError
from .permissions import MANAGE_USERS, require

logger = logging.getLogger(__name__)

User = get_user_model()


class UserService:
    """Profile lookups and role management."""

    @staticmethod
    def get_profile(user_id):
        try:
            return User.objects.get(pk=user_id)
        except User.DoesNotExist:
            raise NotFound("User not found.")

    @staticmethod
    def change_role(acting_role, user_id, new_role):
        """Set a user's role. SuperAdmin only."""
        require(acting_role, MANAGE_USERS)
        if new_role not in User.ROLES:
            raise ValidationError(f"Unknown role: {new_role}")

        updated = User.objects.filter(pk=user_id).update(role=new_role)
        if not updated:
            raise NotFound("User not found.")
        logger.info("User %s role set to %s", user_id, new_role)
        return User.objects.get(pk=user_id)

    @staticmethod
    def users_by_role(role=None):
        queryset = User.objects.all().order_by('-date_joined')
        if role:
            queryset = queryset.filter(role=role)
        return queryset
