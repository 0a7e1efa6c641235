"""
AccessService - role lookups for authorization.

Authorization is a pair of table lookups: is the user listed in
superadmins, and is the user listed in tenant_admins for the tenant.
"""

import logging
from typing import List, Dict

from accredia.models import Superadmin, TenantAdmin, Tenant, parse_uuid

logger = logging.getLogger(__name__)

ROLE_SUPERADMIN = 'superadmin'
ROLE_NONE = 'none'


class AccessService:
    """Static helpers answering "may this user act on this tenant"."""

    @staticmethod
    def is_superadmin(user_id) -> bool:
        uid = parse_uuid(user_id)
        if uid is None:
            return False
        return Superadmin.query.filter_by(user_id=uid).first() is not None

    @staticmethod
    def is_tenant_admin(user_id, tenant_id) -> bool:
        uid, tid = parse_uuid(user_id), parse_uuid(tenant_id)
        if uid is None or tid is None:
            return False
        return TenantAdmin.query.filter_by(user_id=uid, tenant_id=tid).first() is not None

    @staticmethod
    def get_user_tenant_role(user_id, tenant_id) -> str:
        """
        Resolve the effective role of a user in a tenant.

        Returns:
            'superadmin', the tenant_admins rol ('admin' / 'editor'), or 'none'
        """
        if AccessService.is_superadmin(user_id):
            return ROLE_SUPERADMIN

        uid, tid = parse_uuid(user_id), parse_uuid(tenant_id)
        if uid is None or tid is None:
            return ROLE_NONE

        admin = TenantAdmin.query.filter_by(user_id=uid, tenant_id=tid).first()
        return admin.rol if admin else ROLE_NONE

    @staticmethod
    def has_access_to_tenant(user_id, tenant_id) -> bool:
        return AccessService.get_user_tenant_role(user_id, tenant_id) != ROLE_NONE

    @staticmethod
    def get_user_roles(user_id) -> Dict:
        """
        Roles summary returned at login and by /api/auth/me.

        Returns:
            {'is_superadmin': bool, 'tenants': [{tenant_id, slug, nombre, rol}]}
        """
        uid = parse_uuid(user_id)
        tenants: List[Dict] = []
        if uid is not None:
            rows = (
                TenantAdmin.query
                .join(Tenant, Tenant.id == TenantAdmin.tenant_id)
                .filter(TenantAdmin.user_id == uid)
                .order_by(Tenant.nombre)
                .all()
            )
            tenants = [{
                'tenant_id': str(row.tenant_id),
                'slug': row.tenant.slug,
                'nombre': row.tenant.nombre,
                'rol': row.rol,
            } for row in rows]

        return {
            'is_superadmin': AccessService.is_superadmin(user_id),
            'tenants': tenants,
        }
