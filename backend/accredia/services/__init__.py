"""
Services Package - Business Logic Layer

Services sit between routes (controllers) and models (data layer). Routes
call service methods instead of manipulating models directly; services
validate input, enforce plan and quota limits, and own transactions.

Available Services:
- AuthService: Login, magic links, token blocklist, password changes
- AccessService: Superadmin and tenant-admin role checks
- TenantService: Tenants, branding and tenant administrators
- ProfileService: Person profiles keyed by RUT and form autofill
- TeamService: Saved team members of a manager profile
- EventService / EventDayService: Events and multi-day jornadas
- QuotaService / ZoneService: Per-event quota and zone rules
- RegistrationService: Accreditation requests and status changes
- CheckinService: QR validation at the gate
- InvitationService: Invitations to invite-only events
- EmailService: Templates and transactional email through Resend
- ExportService / bulk_service: CSV export and import
- BillingService: Plans, subscriptions, limits and Stripe webhooks
- AuditService: Audit trail of admin actions
- SuperadminService: Platform statistics and superadmin accounts
"""

from accredia.services.errors import (
    ServiceError,
    NotFoundError,
    ConflictError,
    ForbiddenError,
    ValidationFailed,
    ExternalServiceError,
)
from accredia.services.access_service import AccessService
from accredia.services.audit_service import AuditService
from accredia.services.auth_service import AuthService
from accredia.services.tenant_service import TenantService
from accredia.services.profile_service import ProfileService
from accredia.services.team_service import TeamService
from accredia.services.event_service import EventService
from accredia.services.event_day_service import EventDayService
from accredia.services.quota_service import QuotaService
from accredia.services.zone_service import ZoneService
from accredia.services.registration_service import RegistrationService
from accredia.services.checkin_service import CheckinService
from accredia.services.invitation_service import InvitationService
from accredia.services.email_service import EmailService
from accredia.services.export_service import ExportService
from accredia.services.billing_service import BillingService
from accredia.services.superadmin_service import SuperadminService

__all__ = [
    'ServiceError',
    'NotFoundError',
    'ConflictError',
    'ForbiddenError',
    'ValidationFailed',
    'ExternalServiceError',
    'AccessService',
    'AuditService',
    'AuthService',
    'TenantService',
    'ProfileService',
    'TeamService',
    'EventService',
    'EventDayService',
    'QuotaService',
    'ZoneService',
    'RegistrationService',
    'CheckinService',
    'InvitationService',
    'EmailService',
    'ExportService',
    'BillingService',
    'SuperadminService',
]
