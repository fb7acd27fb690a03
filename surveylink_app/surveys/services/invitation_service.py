"""
Invitation links: validation, creation and administration.

An invitation is usable when it exists for the requested survey, is active,
has not expired and still has uses left. The checks run in that order and the
first failing check decides the outcome, so a deactivated link always reports
"inactive" even if it has also expired.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
import io
import logging
import secrets
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from django.conf import settings
from django.db import transaction
from django.utils import timezone
import qrcode
from qrcode.exceptions import DataOverflowError

from ..exceptions import (
    InvitationError,
    InvitationExhausted,
    InvitationExpired,
    InvitationInactive,
    InvitationNotFound,
)
from ..models import SurveyInvitation

if TYPE_CHECKING:
    from ..models import Survey
    from ..store import SurveyStore

logger = logging.getLogger(__name__)

TOKEN_BYTES = 24


class InvitationStatus(str, Enum):
    VALID = "valid"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


STATUS_ERRORS: dict[InvitationStatus, type[InvitationError]] = {
    InvitationStatus.NOT_FOUND: InvitationNotFound,
    InvitationStatus.INACTIVE: InvitationInactive,
    InvitationStatus.EXPIRED: InvitationExpired,
    InvitationStatus.EXHAUSTED: InvitationExhausted,
}


@dataclass(frozen=True)
class InvitationCheck:
    status: InvitationStatus
    invitation: SurveyInvitation | None = None

    @property
    def is_valid(self) -> bool:
        return self.status == InvitationStatus.VALID

    def as_error(self) -> InvitationError | None:
        """Return the exception matching a failed check, or None when valid."""
        if self.is_valid:
            return None
        return STATUS_ERRORS[self.status]()


def validate_invitation(
    invitation: SurveyInvitation | None, now: datetime
) -> InvitationCheck:
    """Decide whether an already looked-up invitation is usable at ``now``.

    Pure function: it never touches storage, so a form can re-validate on
    every page load without consuming a use.
    """
    if invitation is None:
        return InvitationCheck(InvitationStatus.NOT_FOUND)
    if not invitation.is_active:
        return InvitationCheck(InvitationStatus.INACTIVE, invitation)
    if invitation.expires_at is not None and invitation.expires_at < now:
        return InvitationCheck(InvitationStatus.EXPIRED, invitation)
    if invitation.max_uses is not None and invitation.used_count >= invitation.max_uses:
        return InvitationCheck(InvitationStatus.EXHAUSTED, invitation)
    return InvitationCheck(InvitationStatus.VALID, invitation)


def check_invitation(store: SurveyStore, token: str, survey_id: int) -> InvitationCheck:
    """Look up ``token`` within ``survey_id`` and validate it against server time."""
    invitation = store.find_invitation(token, survey_id)
    return validate_invitation(invitation, store.now())


def generate_token() -> str:
    """Return a URL-safe random token (32 characters for 24 bytes)."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def unique_token() -> str:
    while True:
        token = generate_token()
        if not SurveyInvitation.objects.filter(token=token).exists():
            return token


@transaction.atomic
def create_invitation(
    survey: Survey,
    created_by=None,
    *,
    email: str = "",
    invitee_name: str = "",
    max_uses: int | None = None,
    unlimited: bool = False,
    expires_at: datetime | None = None,
    expires_in_days: int | None = None,
) -> SurveyInvitation:
    """Create an invitation for ``survey``.

    Args:
        survey: Survey the link grants access to
        created_by: Admin creating the link
        email: Optional invitee email
        invitee_name: Optional invitee name (pre-fills the respondent form)
        max_uses: Number of submissions allowed; defaults to the configured value
        unlimited: Store ``max_uses`` as null (no limit)
        expires_at: Absolute expiry; takes precedence over ``expires_in_days``
        expires_in_days: Relative expiry; ``0`` means the link never expires

    Returns:
        The saved SurveyInvitation
    """
    if unlimited:
        max_uses = None
    elif max_uses is None:
        max_uses = settings.SURVEYLINK_DEFAULT_INVITE_MAX_USES

    if expires_at is None:
        if expires_in_days is None:
            expires_in_days = settings.SURVEYLINK_DEFAULT_INVITE_EXPIRY_DAYS
        if expires_in_days:
            expires_at = timezone.now() + timedelta(days=expires_in_days)

    invitation = SurveyInvitation.objects.create(
        survey=survey,
        token=unique_token(),
        email=email or "",
        invitee_name=invitee_name or "",
        max_uses=max_uses,
        expires_at=expires_at,
        created_by=created_by,
    )
    logger.info(
        f"Created invitation {invitation.pk} for survey {survey.pk} "
        f"(max_uses={max_uses}, expires_at={expires_at})"
    )
    return invitation


def set_invitation_active(invitation: SurveyInvitation, is_active: bool) -> SurveyInvitation:
    invitation.is_active = is_active
    invitation.save(update_fields=["is_active"])
    logger.info(
        f"Invitation {invitation.pk} {'activated' if is_active else 'deactivated'}"
    )
    return invitation


def toggle_invitation(invitation: SurveyInvitation) -> SurveyInvitation:
    return set_invitation_active(invitation, not invitation.is_active)


def invitation_link(invitation: SurveyInvitation, base_url: str | None = None) -> str:
    """Build the respondent link: ``<site>/?survey=<id>&invite=<token>``."""
    base = (base_url or settings.SITE_URL).rstrip("/")
    query = urlencode({"survey": invitation.survey_id, "invite": invitation.token})
    return f"{base}/?{query}"


def invitation_qr_code(
    invitation: SurveyInvitation, size: int = 200, base_url: str | None = None
) -> str:
    """Return a PNG data URI of a QR code for the invitation link.

    Admins hand these out in person. An empty string means the image could
    not be produced and the listing shows the link alone.
    """
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=10, border=2
    )
    try:
        qr.add_data(invitation_link(invitation, base_url))
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        image.resize((size, size)).save(buffer, format="PNG")
    except (DataOverflowError, OSError) as e:
        logger.error(f"QR code for invitation {invitation.pk} failed: {e}")
        return ""
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def invitation_state(invitation: SurveyInvitation, now: datetime | None = None) -> str:
    """Label for admin listings: ``active``, ``inactive``, ``expired`` or ``used_up``."""
    check = validate_invitation(invitation, now or timezone.now())
    if check.status == InvitationStatus.EXHAUSTED:
        return "used_up"
    if check.is_valid:
        return "active"
    return check.status.value


def delete_invitation(invitation: SurveyInvitation) -> None:
    """Delete an invitation; responses made through it keep their data."""
    invitation_id, survey_id = invitation.pk, invitation.survey_id
    invitation.delete()
    logger.info(f"Deleted invitation {invitation_id} for survey {survey_id}")
