"""
TenantService - Business Logic for Tenant Management

This service handles tenant creation, branding updates, deletion and the
management of tenant admins. It separates business logic from the route
handlers in the tenants blueprint.

Key responsibilities:
- Create tenants with a validated slug and the Free billing plan
- Update branding (colors validated, empty URLs stored as NULL)
- Delete tenants with cleanup of admin accounts and S3 assets
- Create tenant admins with temporary passwords and welcome emails

Business Rules:
- The slug is the tenant's subdomain: unique and immutable after creation
- Deleting a tenant removes its events, registrations, rules, templates
  and billing rows (database cascades), its S3 prefix ``{slug}/`` and the
  user accounts that only existed to administer it
"""

import logging
import secrets
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from accredia.extensions import db
from accredia.models import Tenant, TenantAdmin, Superadmin, User, Event, Registration, parse_uuid
from accredia.models.tenant import DEFAULT_COLORS
from accredia.services.errors import ConflictError, NotFoundError, ValidationFailed
from accredia.utils.html import safe_color
from accredia.utils.s3_client import s3_client
from accredia.utils.validation import validate_email, sanitize

logger = logging.getLogger(__name__)

URL_FIELDS = ('logo_url', 'shield_url', 'background_url')
UPDATABLE_FIELDS = ('nombre', 'activo', 'config', *URL_FIELDS, *DEFAULT_COLORS.keys())


class TenantService:
    """
    Service class for tenant management operations.

    All methods are static since there's no instance state to maintain.
    """

    @staticmethod
    def get_by_slug(slug: str) -> Optional[Tenant]:
        """Active tenant by slug (public resolution)."""
        return Tenant.find_by_slug(slug, active_only=True)

    @staticmethod
    def get_by_id(tenant_id) -> Tenant:
        tid = parse_uuid(tenant_id)
        tenant = db.session.get(Tenant, tid) if tid else None
        if not tenant:
            raise NotFoundError('Tenant no encontrado')
        return tenant

    @staticmethod
    def list_active() -> List[Tenant]:
        return Tenant.query.filter_by(activo=True).order_by(Tenant.nombre).all()

    @staticmethod
    def list_with_stats() -> List[Dict[str, Any]]:
        """
        Every tenant with counters for the superadmin dashboard.

        Returns:
            List of tenant dicts with total_events, total_registrations and
            total_admins, ordered by nombre
        """
        event_counts = dict(
            db.session.query(Event.tenant_id, func.count(Event.id)).group_by(Event.tenant_id).all()
        )
        registration_counts = dict(
            db.session.query(Event.tenant_id, func.count(Registration.id))
            .join(Registration, Registration.event_id == Event.id)
            .group_by(Event.tenant_id).all()
        )
        admin_counts = dict(
            db.session.query(TenantAdmin.tenant_id, func.count(TenantAdmin.id))
            .group_by(TenantAdmin.tenant_id).all()
        )

        result = []
        for tenant in Tenant.query.order_by(Tenant.nombre).all():
            item = tenant.to_dict()
            item['total_events'] = event_counts.get(tenant.id, 0)
            item['total_registrations'] = registration_counts.get(tenant.id, 0)
            item['total_admins'] = admin_counts.get(tenant.id, 0)
            result.append(item)
        return result

    @staticmethod
    def _apply_branding(tenant: Tenant, data: Dict[str, Any]) -> None:
        for field in URL_FIELDS:
            if field in data:
                data[field] = data[field] or None
        for field, default in DEFAULT_COLORS.items():
            if field in data:
                data[field] = safe_color(data[field], getattr(tenant, field, None) or default)
        if 'nombre' in data:
            data['nombre'] = sanitize(data['nombre'])
            if not data['nombre']:
                raise ValidationFailed('Nombre es requerido')
        tenant.update_from_dict(data, allowed_fields=list(UPDATABLE_FIELDS))

    @staticmethod
    def create(data: Dict[str, Any], created_by=None) -> Tenant:
        """
        Create a tenant and subscribe it to the Free plan.

        Args:
            data: nombre, slug and optional branding fields
            created_by: Superadmin user creating the tenant

        Raises:
            ValidationFailed: Missing nombre or malformed slug
            ConflictError: Slug already taken
        """
        slug = (data.get('slug') or '').strip().lower()
        if not Tenant.is_valid_slug(slug):
            raise ValidationFailed('Slug inválido: solo minúsculas, números y guiones')
        if Tenant.find_by_slug(slug, active_only=False):
            raise ConflictError(f'Ya existe un tenant con el slug "{slug}"')

        tenant = Tenant(slug=slug, nombre='', activo=True, config={}, created_by=parse_uuid(created_by),
                        **DEFAULT_COLORS)
        TenantService._apply_branding(tenant, {'nombre': data.get('nombre'), **{
            key: value for key, value in data.items() if key in UPDATABLE_FIELDS and key != 'nombre'
        }})
        db.session.add(tenant)

        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f'Ya existe un tenant con el slug "{slug}"')

        from accredia.services.billing_service import BillingService
        BillingService.assign_free_plan(tenant.id, commit=False)
        db.session.commit()

        logger.info(f"Tenant created: {tenant.id} ({slug})")
        return tenant

    @staticmethod
    def update(tenant_id, data: Dict[str, Any]) -> Tenant:
        """
        Update tenant fields. slug, id, created_at and computed stats are ignored.
        """
        tenant = TenantService.get_by_id(tenant_id)
        updates = {key: value for key, value in (data or {}).items() if key in UPDATABLE_FIELDS}
        TenantService._apply_branding(tenant, updates)
        db.session.commit()
        logger.info(f"Tenant updated: {tenant.id} ({tenant.slug})")
        return tenant

    @staticmethod
    def delete(tenant_id) -> Dict[str, int]:
        """
        Delete a tenant and everything that belongs to it.

        Admin accounts are deleted only when the user administers no other
        tenant and is not a superadmin. S3 cleanup failures are logged, not
        raised: the database deletion is what matters.

        Returns:
            {'users_deleted': n, 'files_deleted': n}
        """
        tenant = TenantService.get_by_id(tenant_id)
        slug = tenant.slug

        admin_user_ids = [row.user_id for row in TenantAdmin.query.filter_by(tenant_id=tenant.id).all()]
        orphan_user_ids = []
        for user_id in admin_user_ids:
            other_roles = TenantAdmin.query.filter(
                TenantAdmin.user_id == user_id, TenantAdmin.tenant_id != tenant.id
            ).count()
            is_super = Superadmin.query.filter_by(user_id=user_id).first() is not None
            if not other_roles and not is_super:
                orphan_user_ids.append(user_id)

        from accredia.services.event_service import EventService
        for event in Event.query.filter_by(tenant_id=tenant.id).all():
            EventService.delete_event_rows(event)
        TenantService._delete_tenant_rows(tenant.id)

        db.session.delete(tenant)
        if orphan_user_ids:
            User.query.filter(User.id.in_(orphan_user_ids)).delete(synchronize_session=False)
        db.session.commit()

        files_deleted, error = s3_client.delete_prefix(f'{slug}/')
        if error:
            logger.error(f"S3 cleanup failed for tenant {slug}: {error}")

        logger.info(f"Tenant deleted: {slug} (users={len(orphan_user_ids)}, files={files_deleted})")
        return {'users_deleted': len(orphan_user_ids), 'files_deleted': files_deleted}

    @staticmethod
    def _delete_tenant_rows(tenant_id) -> None:
        """Explicit deletes for tenant-owned tables (SQLite does not enforce ON DELETE)."""
        from accredia.models import (EmailTemplate, EmailZoneContent, Subscription, Invoice,
                                     UsageRecord)
        for model in (EmailTemplate, EmailZoneContent, Invoice, UsageRecord, Subscription):
            model.query.filter_by(tenant_id=tenant_id).delete(synchronize_session=False)

    # ─── Tenant admins ───────────────────────────────────────────────────

    @staticmethod
    def list_admins(tenant_id) -> List[TenantAdmin]:
        return (TenantAdmin.query.filter_by(tenant_id=parse_uuid(tenant_id))
                .order_by(TenantAdmin.created_at.asc()).all())

    @staticmethod
    def create_tenant_admin(tenant_id, email: str, nombre: Optional[str] = None,
                            rol: str = TenantAdmin.ROLE_ADMIN) -> Dict[str, Any]:
        """
        Grant admin rights over a tenant, creating the account if needed.

        New accounts get a temporary password that must be changed on first
        login; the credentials are sent in a welcome email.

        Returns:
            {'admin': TenantAdmin, 'user_created': bool}

        Raises:
            ValidationFailed: Invalid email or role
            ConflictError: Plan limit reached or user already admin of the tenant
        """
        tenant = TenantService.get_by_id(tenant_id)
        email = (email or '').strip().lower()
        check = validate_email(email)
        if not check.valid:
            raise ValidationFailed(check.error)
        if rol not in TenantAdmin.VALID_ROLES:
            raise ValidationFailed('Rol inválido')

        from accredia.services.billing_service import BillingService
        limit = BillingService.check_limit(tenant.id, 'admins')
        if not limit['allowed']:
            raise ConflictError(limit['message'], details=limit)

        user = User.find_by_email(email)
        temp_password = None
        if not user:
            temp_password = secrets.token_urlsafe(9)
            user = User(email=email, nombre=nombre, is_active=True, must_change_password=True)
            user.set_password(temp_password)
            db.session.add(user)
            db.session.flush()
        elif TenantAdmin.query.filter_by(tenant_id=tenant.id, user_id=user.id).first():
            raise ConflictError('Este usuario ya es admin de este tenant')

        admin = TenantAdmin(tenant_id=tenant.id, user_id=user.id, rol=rol,
                            nombre=nombre or user.nombre, email=email)
        db.session.add(admin)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError('Este usuario ya es admin de este tenant')

        from accredia.tasks.email_tasks import send_welcome_email
        send_welcome_email.delay(email, nombre or '', tenant.nombre, tenant.slug, temp_password)

        logger.info(f"Tenant admin created: tenant={tenant.slug} user={user.id} rol={rol}")
        return {'admin': admin, 'user_created': temp_password is not None}

    @staticmethod
    def remove_admin(tenant_id, admin_id) -> None:
        admin = TenantAdmin.query.filter_by(id=parse_uuid(admin_id), tenant_id=parse_uuid(tenant_id)).first()
        if not admin:
            raise NotFoundError('Admin no encontrado')
        db.session.delete(admin)
        db.session.commit()
        logger.info(f"Tenant admin removed: tenant={tenant_id} admin={admin_id}")
