"""
SQLAlchemy models for the Accredia accreditation platform.

This package contains all database models:
- BaseModel: Abstract base class with common fields
- User: Login accounts
- Tenant, TenantAdmin, Superadmin: Organizations and admin roles
- Profile: Registrant identity (keyed by RUT)
- Event, EventDay: Events and jornadas of multi-day events
- Registration, RegistrationDay: Accreditation requests and per-day enrollment
- QuotaRule, ZoneRule: Per-event rules
- TeamMember: Manager rosters
- Invitation: Invite-only event invitations
- EmailTemplate, EmailZoneContent, EmailLog: Email customization and delivery log
- AuditLog: Action audit trail
- Plan, Subscription, Invoice, UsageRecord, WebhookEvent: Billing
"""

from accredia.models.base import BaseModel, register_base_model_events, parse_uuid
from accredia.models.user import User
from accredia.models.tenant import Tenant, TenantAdmin, Superadmin
from accredia.models.profile import Profile
from accredia.models.event import Event, EventDay
from accredia.models.registration import Registration, RegistrationDay
from accredia.models.rules import QuotaRule, ZoneRule
from accredia.models.team import TeamMember
from accredia.models.invitation import Invitation
from accredia.models.email import EmailTemplate, EmailZoneContent, EmailLog
from accredia.models.audit_log import AuditLog
from accredia.models.billing import Plan, Subscription, Invoice, UsageRecord, WebhookEvent

__all__ = [
    'BaseModel',
    'register_base_model_events',
    'parse_uuid',
    'User',
    'Tenant',
    'TenantAdmin',
    'Superadmin',
    'Profile',
    'Event',
    'EventDay',
    'Registration',
    'RegistrationDay',
    'QuotaRule',
    'ZoneRule',
    'TeamMember',
    'Invitation',
    'EmailTemplate',
    'EmailZoneContent',
    'EmailLog',
    'AuditLog',
    'Plan',
    'Subscription',
    'Invoice',
    'UsageRecord',
    'WebhookEvent',
]
