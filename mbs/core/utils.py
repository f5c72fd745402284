"""Utility functions for audit logging and request parsing"""
import logging
from datetime import datetime

from .exceptions import ValidationFailed
from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, store=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user, IP and selected store) - optional if user is provided
        action: Action type (create, update, delete, import, ...)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object
        store: Optional store override (defaults to request.store when a store was selected)
    """
    if not action or not model_name or not object_id:
        logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
        return None

    audit_user = user
    if audit_user is None and request is not None:
        audit_user = getattr(request, 'user', None)
    if store is None and request is not None:
        store = getattr(request, 'store', None)

    try:
        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            store_name=store.name if store else None,
            changes=changes or {},
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        # The business operation already succeeded
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def parse_date_param(value, field_name):
    """Parse a YYYY-MM-DD query parameter"""
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise ValidationFailed(f'{field_name} must be in YYYY-MM-DD format')
