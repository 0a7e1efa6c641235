"""
Routes Package - API Blueprints

This package contains all Flask blueprints for the API endpoints.
"""

from accredia.routes.auth import auth_bp
from accredia.routes.tenants import tenants_bp
from accredia.routes.profiles import profiles_bp
from accredia.routes.teams import teams_bp
from accredia.routes.events import events_bp
from accredia.routes.quotas import quotas_bp
from accredia.routes.registrations import registrations_bp
from accredia.routes.bulk import bulk_bp
from accredia.routes.qr import qr_bp
from accredia.routes.invitations import invitations_bp
from accredia.routes.email import email_bp
from accredia.routes.export import export_bp
from accredia.routes.billing import billing_bp
from accredia.routes.uploads import uploads_bp
from accredia.routes.superadmin import superadmin_bp
from accredia.routes.public import public_bp

__all__ = [
    'auth_bp',
    'tenants_bp',
    'profiles_bp',
    'teams_bp',
    'events_bp',
    'quotas_bp',
    'registrations_bp',
    'bulk_bp',
    'qr_bp',
    'invitations_bp',
    'email_bp',
    'export_bp',
    'billing_bp',
    'uploads_bp',
    'superadmin_bp',
    'public_bp',
]
