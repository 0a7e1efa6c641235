"""
Invitations Blueprint - public validation of personal invitation links.

- GET /api/invitations/<token> - {valid, reason, invitation, event}
"""

import logging
from flask import Blueprint

from accredia.services.invitation_service import InvitationService
from accredia.utils.responses import ok, internal_error

logger = logging.getLogger(__name__)

invitations_bp = Blueprint('invitations', __name__, url_prefix='/api/invitations')


@invitations_bp.route('/<token>', methods=['GET'])
def validate_invitation(token):
    """
    Validate an invitation token before showing the registration form.

    Always 200; an unusable invitation comes back with valid=false and the reason.
    """
    try:
        check = InvitationService.validate_token(token)
        data = check.to_dict()
        if check.event is not None:
            data['tenant'] = check.event.tenant.to_public_dict()
        return ok(data)
    except Exception as e:
        logger.error(f"Error validating invitation: {str(e)}", exc_info=True)
        return internal_error()
