"""
Marshmallow schemas for request validation.

- auth_schema: Registration, login, password change, magic link
- tenant_schema: Tenant create/update and tenant admins
- profile_schema: Own profile and tenant-specific answers
- team_schema: Team members
- event_schema: Events and jornadas
- rule_schema: Quota and zone rules
- registration_schema: Public form, status changes and bulk operations
- invitation_schema: Invitations to invite-only events
- email_schema: Templates, zone content and previews
- billing_schema: Checkout and plan assignment
"""

from accredia.schemas.auth_schema import (
    register_schema,
    login_schema,
    change_password_schema,
    magic_link_request_schema,
)
from accredia.schemas.tenant_schema import (
    tenant_create_schema,
    tenant_update_schema,
    tenant_admin_create_schema,
)
from accredia.schemas.profile_schema import profile_update_schema, tenant_data_schema
from accredia.schemas.team_schema import team_member_create_schema, team_member_update_schema
from accredia.schemas.event_schema import (
    event_schema,
    event_create_schema,
    event_day_schema,
    event_day_sync_schema,
)
from accredia.schemas.rule_schema import quota_rule_schema, zone_rule_schema
from accredia.schemas.registration_schema import (
    registration_create_schema,
    registration_status_schema,
    bulk_create_schema,
    bulk_action_schema,
)
from accredia.schemas.invitation_schema import invitation_create_schema
from accredia.schemas.email_schema import (
    email_template_schema,
    email_zone_content_schema,
    email_preview_schema,
)
from accredia.schemas.billing_schema import checkout_schema, assign_plan_schema

__all__ = [
    'register_schema',
    'login_schema',
    'change_password_schema',
    'magic_link_request_schema',
    'tenant_create_schema',
    'tenant_update_schema',
    'tenant_admin_create_schema',
    'profile_update_schema',
    'tenant_data_schema',
    'team_member_create_schema',
    'team_member_update_schema',
    'event_schema',
    'event_create_schema',
    'event_day_schema',
    'event_day_sync_schema',
    'quota_rule_schema',
    'zone_rule_schema',
    'registration_create_schema',
    'registration_status_schema',
    'bulk_create_schema',
    'bulk_action_schema',
    'invitation_create_schema',
    'email_template_schema',
    'email_zone_content_schema',
    'email_preview_schema',
    'checkout_schema',
    'assign_plan_schema',
]
