"""
Role authorization gate.

Every page and every state-changing operation asks the gate whether the
acting role holds a capability. ``authorize`` is the pure policy lookup;
``check_access`` adds the session states a caller has to distinguish
(no session, profile still loading, wrong role).
"""
import logging

from django.conf import settings
from rest_framework.permissions import BasePermission

from carrento_backend.exceptions import Forbidden, Unauthorized
from .models import User

logger = logging.getLogger(__name__)


VIEW_CUSTOMER_PORTAL = 'view_customer_portal'
VIEW_OWNER_PORTAL = 'view_owner_portal'
VIEW_ADMIN_PORTAL = 'view_admin_portal'
VIEW_SERVICE_PORTAL = 'view_service_portal'
VIEW_DASHBOARD = 'view_dashboard'
REVIEW_CAR_LISTING = 'review_car_listing'
REVIEW_BOOKING = 'review_booking'
MANAGE_USERS = 'manage_users'
MANAGE_MAINTENANCE = 'manage_maintenance'
SUBMIT_LISTING = 'submit_listing'
CREATE_BOOKING = 'create_booking'
# role check only; the booking's customer must also be the reporter
REPORT_INCIDENT = 'report_incident'

_CUSTOMER_FACING = frozenset([User.CUSTOMER, User.CAR_OWNER, User.ADMIN, User.SUPER_ADMIN])
_ADMINS = frozenset([User.ADMIN, User.SUPER_ADMIN])

CAPABILITY_ROLES = {
    VIEW_CUSTOMER_PORTAL: _CUSTOMER_FACING,
    VIEW_OWNER_PORTAL: frozenset([User.CAR_OWNER, User.ADMIN, User.SUPER_ADMIN]),
    VIEW_ADMIN_PORTAL: frozenset([User.ADMIN, User.SUPER_ADMIN, User.SUPPORT_STAFF]),
    VIEW_SERVICE_PORTAL: frozenset([User.SERVICE_CENTER_STAFF, User.ADMIN, User.SUPER_ADMIN]),
    VIEW_DASHBOARD: _ADMINS,
    REVIEW_CAR_LISTING: _ADMINS,
    REVIEW_BOOKING: _ADMINS,
    MANAGE_USERS: frozenset([User.SUPER_ADMIN]),
    MANAGE_MAINTENANCE: frozenset([User.SERVICE_CENTER_STAFF, User.ADMIN, User.SUPER_ADMIN]),
    SUBMIT_LISTING: frozenset([User.CAR_OWNER, User.ADMIN, User.SUPER_ADMIN]),
    CREATE_BOOKING: _CUSTOMER_FACING,
    REPORT_INCIDENT: _CUSTOMER_FACING,
}

CAPABILITIES = sorted(CAPABILITY_ROLES)


class AccessDecision:
    ALLOW = 'allow'
    FORBIDDEN = 'forbidden'
    UNAUTHENTICATED = 'unauthenticated'
    # identity known, role not loaded yet: show a loading state, do not deny
    PENDING = 'pending'


def authorize(role, capability):
    """Return True when ``role`` holds ``capability``."""
    try:
        allowed = CAPABILITY_ROLES[capability]
    except KeyError:
        raise ValueError(f"Unknown capability: {capability}")
    return role in allowed


def check_access(is_authenticated, role, capability):
    if not is_authenticated:
        return AccessDecision.UNAUTHENTICATED
    if role is None:
        return AccessDecision.PENDING
    if authorize(role, capability):
        return AccessDecision.ALLOW
    logger.debug("Role %s denied capability %s", role, capability)
    return AccessDecision.FORBIDDEN


def redirect_for(decision):
    """Where a denied caller is sent; None when there is nowhere to go."""
    return settings.CARRENTO['ACCESS_REDIRECTS'].get(decision)


def require(role, capability):
    """Raise Forbidden unless ``role`` holds ``capability``."""
    if role is None:
        raise Unauthorized()
    if not authorize(role, capability):
        logger.debug("Role %s denied capability %s", role, capability)
        raise Forbidden(f"Role {role} cannot {capability.replace('_', ' ')}.")


def capability_required(capability):
    """Build a DRF permission class gating a view on ``capability``."""
    if capability not in CAPABILITY_ROLES:
        raise ValueError(f"Unknown capability: {capability}")

    class HasCapability(BasePermission):
        message = f"Your role does not allow: {capability.replace('_', ' ')}."

        def has_permission(self, request, view):
            user = request.user
            if not (user and user.is_authenticated):
                return False
            return authorize(user.role, capability)

    HasCapability.__name__ = f"Has_{capability}"
    return HasCapability
