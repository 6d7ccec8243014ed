import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from apps.jobs.utils import send_notification
from apps.users.services import assign_worker_public_id
from core.exceptions import InvalidRequest, ResourceNotFound, PreconditionFailed
from .models import ManagementLog

logger = logging.getLogger(__name__)
User = get_user_model()


def log_admin_action(admin, action, details):
    logger.info(f"Admin {admin.id} {action}: {details}")
    return ManagementLog.objects.create(admin=admin, action=action, details=details)


def get_user(user_id):
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise ResourceNotFound("User not found.")


def list_pending_verifications():
    return User.objects.filter(verification_status='pending').order_by('verification_submitted_at')


def search_users_by_phone(fragment):
    digits = ''.join(ch for ch in (fragment or '') if ch.isdigit())
    if len(digits) < 3:
        raise InvalidRequest("Enter at least 3 digits of the phone number.")
    return User.objects.filter(phone_number__contains=digits).order_by('id')[:50]


@transaction.atomic
def approve_verification(user_id, admin):
    user = User.objects.select_for_update().filter(pk=user_id).first()
    if user is None:
        raise ResourceNotFound("User not found.")
    if user.verification_status != 'pending':
        raise PreconditionFailed(
            f"Verification is '{user.verification_status}', expected pending.", status=user.verification_status
        )
    public_id = assign_worker_public_id(user)
    user.verification_status = 'approved'
    user.verification_reviewed_at = timezone.now()
    user.role = 'worker'
    user.save(update_fields=['verification_status', 'verification_reviewed_at', 'role'])
    log_admin_action(admin, 'approve_verification', f"Approved user {user.id}, worker id {public_id}")

    transaction.on_commit(lambda: send_notification(
        user,
        "Verification Approved",
        f"Dear {user.display_name},\n\nYour documents have been verified. Your worker id is {public_id}.\n\n"
        f"Best regards,\nPeopleHub Team",
        f"PeopleHub: verification approved. Worker id {public_id}.",
    ))
    return user


@transaction.atomic
def reject_verification(user_id, admin, reason=''):
    user = User.objects.select_for_update().filter(pk=user_id).first()
    if user is None:
        raise ResourceNotFound("User not found.")
    if user.verification_status != 'pending':
        raise PreconditionFailed(
            f"Verification is '{user.verification_status}', expected pending.", status=user.verification_status
        )
    user.verification_status = 'rejected'
    user.verification_reviewed_at = timezone.now()
    user.save(update_fields=['verification_status', 'verification_reviewed_at'])
    log_admin_action(admin, 'reject_verification', f"Rejected user {user.id}: {reason or 'no reason given'}")

    transaction.on_commit(lambda: send_notification(
        user,
        "Verification Rejected",
        f"Dear {user.display_name},\n\nYour documents could not be verified. {reason}\n"
        f"Please resubmit them from the app.\n\nBest regards,\nPeopleHub Team",
        "PeopleHub: verification rejected. Please resubmit your documents.",
    ))
    return user
