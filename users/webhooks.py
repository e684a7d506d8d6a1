# users/webhooks.py
"""
Verification and handling of the identity provider's user lifecycle webhooks.

Deliveries are signed with Svix; signature, timestamp tolerance and the
``whsec_`` secret format are checked by the svix client library.
"""
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from svix.webhooks import Webhook, WebhookVerificationError as SvixVerificationError

logger = logging.getLogger(__name__)

User = get_user_model()


class WebhookVerificationError(Exception):
    """The delivery could not be authenticated or decoded."""


class WebhookEventError(Exception):
    """An authenticated event that cannot be applied to the user table."""


def verify_webhook(body, headers, secret=None):
    """Returns the decoded event, raising WebhookVerificationError when the signature fails."""
    secret = secret if secret is not None else settings.IDENTITY_WEBHOOK_SECRET
    if not secret:
        raise WebhookVerificationError("Webhook secret is not configured")

    try:
        return Webhook(secret).verify(body, dict(headers))
    except SvixVerificationError as exc:
        raise WebhookVerificationError(str(exc)) from exc
    except ValueError as exc:
        raise WebhookVerificationError("Body is not valid JSON") from exc


def _profile_fields(data):
    emails = data.get('email_addresses') or []
    email = emails[0].get('email_address') if emails else None
    metadata = data.get('public_metadata') or {}
    role = metadata.get('role')
    if role not in User.Role.values:
        role = User.Role.STUDENT
    return {
        'email': email,
        'first_name': data.get('first_name') or '',
        'last_name': data.get('last_name') or '',
        'profile_image_url': data.get('image_url') or '',
        'provider_metadata': metadata,
        'role': role,
    }


def handle_event(event):
    """Applies one lifecycle event to the local user table. Returns the action taken."""
    event_type = event.get('type')
    data = event.get('data') or {}
    provider_id = data.get('id')
    if not provider_id:
        raise WebhookEventError("Event has no user id")

    if event_type in ('user.created', 'user.updated'):
        fields = _profile_fields(data)
        user = User.objects.filter(identity_provider_id=provider_id).first()
        if user is None and fields['email']:
            # Link a user who registered locally before the provider sync
            user = User.objects.filter(email__iexact=fields['email']).first()

        if user is None:
            if not fields['email']:
                raise WebhookEventError("Cannot create a user without an email")
            user = User(identity_provider_id=provider_id, username=fields['email'])
            user.set_unusable_password()
            action = 'created'
        else:
            action = 'updated'
            if user.role != fields['role']:
                logger.info("Role changed from %s to %s for %s", user.role, fields['role'], user.email)

        user.identity_provider_id = provider_id
        for name, value in fields.items():
            if name == 'email' and not value:
                continue
            setattr(user, name, value)
        user.save()
        logger.info("Synced user %s from identity provider (%s)", user.email, action)
        return action

    if event_type == 'user.deleted':
        deleted, _ = User.objects.filter(identity_provider_id=provider_id).delete()
        logger.info("Deleted user with provider id %s (%s rows)", provider_id, deleted)
        return 'deleted'

    logger.info("Ignoring identity event type %s", event_type)
    return 'ignored'
