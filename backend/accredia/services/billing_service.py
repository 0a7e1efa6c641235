"""
BillingService - plans, limits and Stripe integration.

Each tenant has one subscription row pointing at a plan. Plan limits
(events, registrations per event, admins, storage) are checked before
creating the metered resource. Paid plans are bought through Stripe
Checkout; Stripe webhooks keep subscriptions and invoices in sync.

Webhook processing is idempotent: the Stripe event id is inserted into
billing_webhook_events before anything else, and a unique-constraint
violation means the event was already handled.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import stripe
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from accredia.extensions import db
from accredia.models import (Plan, Subscription, Invoice, UsageRecord, WebhookEvent, Tenant, Event,
                             Registration, TenantAdmin, parse_uuid)
from accredia.models.billing import DEFAULT_PLAN_LIMITS, UNLIMITED
from accredia.services.errors import (NotFoundError, ValidationFailed, ExternalServiceError,
                                      ServiceError)

logger = logging.getLogger(__name__)

METRIC_LIMIT_KEYS = {
    'events': 'max_events',
    'registrations': 'max_registrations_per_event',
    'admins': 'max_admins',
    'storage_mb': 'max_storage_mb',
}

STRIPE_STATUS_MAP = {
    'active': 'active',
    'past_due': 'past_due',
    'canceled': 'canceled',
    'trialing': 'trialing',
    'incomplete': 'incomplete',
    'incomplete_expired': 'canceled',
    'unpaid': 'unpaid',
    'paused': 'past_due',
}

SUPPORTED_CURRENCIES = ('CLP', 'BRL', 'USD')


def map_stripe_status(status: Optional[str]) -> str:
    return STRIPE_STATUS_MAP.get(status or '', 'active')


def _from_unix(timestamp: Optional[int]) -> Optional[datetime]:
    if not timestamp:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)


def _customer_id(obj: Dict[str, Any]) -> Optional[str]:
    customer = obj.get('customer')
    if isinstance(customer, dict):
        return customer.get('id')
    return customer


def _month_period(today: Optional[date] = None):
    today = today or date.today()
    start = today.replace(day=1)
    end = date(start.year + 1, 1, 1) if start.month == 12 else date(start.year, start.month + 1, 1)
    return start, end


class BillingService:

    # ─── Stripe client ────────────────────────────────────────────────────

    @staticmethod
    def is_stripe_configured() -> bool:
        return bool(current_app.config.get('STRIPE_SECRET_KEY'))

    @staticmethod
    def _stripe():
        secret = current_app.config.get('STRIPE_SECRET_KEY')
        if not secret:
            raise ServiceError('Stripe no configurado', status_code=503)
        stripe.api_key = secret
        return stripe

    # ─── Plans ───────────────────────────────────────────────────────────

    @staticmethod
    def list_plans() -> List[Plan]:
        return Plan.query.filter_by(is_active=True).order_by(Plan.sort_order).all()

    @staticmethod
    def get_plan_by_slug(slug: str) -> Optional[Plan]:
        return Plan.find_by_slug(slug)

    @staticmethod
    def upsert_plan(data: Dict[str, Any]) -> Plan:
        """Create or update a plan by slug (used by the seed script and superadmin)."""
        slug = data.get('slug')
        if not slug or not data.get('name'):
            raise ValidationFailed('name y slug son requeridos')

        plan = Plan.find_by_slug(slug)
        if not plan:
            plan = Plan(slug=slug, limits=dict(DEFAULT_PLAN_LIMITS))
            db.session.add(plan)

        limits = dict(DEFAULT_PLAN_LIMITS)
        limits.update(data.get('limits') or (plan.limits or {}))
        plan.update_from_dict(data, allowed_fields=[
            'name', 'description', 'is_free', 'is_active', 'sort_order', 'price_clp', 'price_brl',
            'price_usd', 'stripe_price_id_clp', 'stripe_price_id_brl', 'stripe_price_id_usd',
        ])
        plan.limits = limits
        db.session.commit()
        return plan

    # ─── Subscriptions ───────────────────────────────────────────────────

    @staticmethod
    def get_tenant_subscription(tenant_id) -> Optional[Subscription]:
        return Subscription.query.filter_by(tenant_id=parse_uuid(tenant_id)).first()

    @staticmethod
    def get_tenant_plan(tenant_id) -> Plan:
        """
        Effective plan of a tenant: the subscribed plan while active or
        trialing, the free plan otherwise.

        Raises:
            NotFoundError: No free plan seeded
        """
        subscription = BillingService.get_tenant_subscription(tenant_id)
        if subscription and subscription.is_usable and subscription.plan:
            return subscription.plan

        free = Plan.find_free()
        if not free:
            raise NotFoundError('Plan Free no encontrado')
        return free

    @staticmethod
    def assign_plan_to_tenant(tenant_id, plan_id, commit: bool = True) -> Subscription:
        """Upsert the tenant subscription to an active 30-day period on plan_id."""
        tid = parse_uuid(tenant_id)
        now = datetime.now(timezone.utc)
        subscription = Subscription.query.filter_by(tenant_id=tid).first()
        if not subscription:
            subscription = Subscription(tenant_id=tid)
            db.session.add(subscription)

        subscription.plan_id = parse_uuid(plan_id)
        subscription.status = Subscription.STATUS_ACTIVE
        subscription.currency = subscription.currency or 'CLP'
        subscription.current_period_start = now
        subscription.current_period_end = now + timedelta(days=30)
        subscription.canceled_at = None

        if commit:
            db.session.commit()
        else:
            db.session.flush()
        logger.info(f"Plan {plan_id} assigned to tenant {tid}")
        return subscription

    @staticmethod
    def assign_free_plan(tenant_id, commit: bool = True) -> Optional[Subscription]:
        free = Plan.find_free()
        if not free:
            logger.warning(f"No free plan configured; tenant {tenant_id} left without subscription")
            return None
        return BillingService.assign_plan_to_tenant(tenant_id, free.id, commit=commit)

    # ─── Limits ──────────────────────────────────────────────────────────

    @staticmethod
    def _current_usage(tenant_id, metric: str, event_id=None) -> int:
        tid = parse_uuid(tenant_id)
        if metric == 'events':
            return db.session.query(func.count(Event.id)).filter(Event.tenant_id == tid).scalar() or 0
        if metric == 'registrations':
            return db.session.query(func.count(Registration.id)).filter(
                Registration.event_id == parse_uuid(event_id)).scalar() or 0
        if metric == 'admins':
            return db.session.query(func.count(TenantAdmin.id)).filter(TenantAdmin.tenant_id == tid).scalar() or 0
        return 0

    @staticmethod
    def check_limit(tenant_id, metric: str, event_id=None) -> Dict[str, Any]:
        """
        Check a plan limit before creating a metered resource.

        Args:
            tenant_id: Tenant to check
            metric: 'events', 'registrations', 'admins' or 'storage_mb'
            event_id: Required for 'registrations'

        Returns:
            Dict with allowed, current, limit, message, plan_name, subscription_status
        """
        if metric not in METRIC_LIMIT_KEYS:
            raise ValidationFailed(f'Métrica desconocida: {metric}')

        subscription = BillingService.get_tenant_subscription(tenant_id)
        status = subscription.status if subscription else None
        plan = subscription.plan if subscription and subscription.plan else Plan.find_free()
        if not plan:
            return {'allowed': False, 'current': 0, 'limit': 0,
                    'message': 'Sin plan configurado', 'plan_name': 'Unknown'}

        if not plan.is_free and subscription and not subscription.is_usable:
            estado = 'con pago pendiente' if status == Subscription.STATUS_PAST_DUE else 'inactiva'
            return {'allowed': False, 'current': 0, 'limit': 0,
                    'message': f'Suscripción {estado}. Actualiza tu método de pago.',
                    'plan_name': plan.name, 'subscription_status': status}

        if metric == 'registrations' and not event_id:
            return {'allowed': False, 'current': 0, 'limit': 0,
                    'message': 'event_id requerido para verificar registrations',
                    'plan_name': plan.name, 'subscription_status': status}

        limit_key = METRIC_LIMIT_KEYS[metric]
        limits = plan.limits or {}
        limit = limits.get(limit_key, DEFAULT_PLAN_LIMITS[limit_key])
        current = BillingService._current_usage(tenant_id, metric, event_id)

        if limit == UNLIMITED:
            return {'allowed': True, 'current': current, 'limit': UNLIMITED, 'message': 'Sin límite',
                    'plan_name': plan.name, 'subscription_status': status}

        allowed = current < limit
        pct = round(current / limit * 100) if limit > 0 else 100

        if not allowed:
            message = (f'Has alcanzado el límite de {metric} de tu plan {plan.name} '
                       f'({current}/{limit}). Actualiza a un plan superior.')
        elif pct >= 80:
            message = f'Estás al {pct}% del límite de {metric} de tu plan {plan.name}'
        else:
            message = 'OK'

        return {'allowed': allowed, 'current': current, 'limit': limit, 'message': message,
                'plan_name': plan.name, 'subscription_status': status}

    @staticmethod
    def record_usage(tenant_id, metric: str, value: int, today: Optional[date] = None) -> UsageRecord:
        """Upsert the usage snapshot of the current month."""
        tid = parse_uuid(tenant_id)
        start, end = _month_period(today)
        record = UsageRecord.query.filter_by(tenant_id=tid, metric=metric, period_start=start).first()
        if not record:
            record = UsageRecord(tenant_id=tid, metric=metric, period_start=start, period_end=end)
            db.session.add(record)
        record.current_value = value
        db.session.commit()
        return record

    @staticmethod
    def get_usage_summary(tenant_id) -> Dict[str, Any]:
        plan = BillingService.get_tenant_plan(tenant_id)
        limits = plan.limits or {}

        metrics = {
            'events': {
                'current': BillingService._current_usage(tenant_id, 'events'),
                'limit': limits.get('max_events', 1),
                'label': 'Eventos',
            },
            'registrations_per_event': {
                'current': 0,
                'limit': limits.get('max_registrations_per_event', 50),
                'label': 'Acreditados / evento',
            },
            'admins': {
                'current': BillingService._current_usage(tenant_id, 'admins'),
                'limit': limits.get('max_admins', 1),
                'label': 'Administradores',
            },
            'storage_mb': {
                'current': 0,
                'limit': limits.get('max_storage_mb', 100),
                'label': 'Almacenamiento (MB)',
            },
        }
        return {'plan': plan.to_dict(), 'metrics': metrics, 'is_free': plan.is_free}

    @staticmethod
    def list_invoices(tenant_id, limit: int = 24) -> List[Invoice]:
        return (Invoice.query.filter_by(tenant_id=parse_uuid(tenant_id))
                .order_by(Invoice.created_at.desc()).limit(limit).all())

    @staticmethod
    def get_billing_summary() -> List[Dict[str, Any]]:
        """One row per tenant with plan and subscription state (superadmin view)."""
        rows = []
        for tenant in Tenant.query.order_by(Tenant.nombre).all():
            subscription = BillingService.get_tenant_subscription(tenant.id)
            rows.append({
                'tenant_id': str(tenant.id),
                'tenant_nombre': tenant.nombre,
                'tenant_slug': tenant.slug,
                'plan_name': subscription.plan.name if subscription and subscription.plan else None,
                'plan_slug': subscription.plan.slug if subscription and subscription.plan else None,
                'status': subscription.status if subscription else None,
                'currency': subscription.currency if subscription else None,
                'current_period_end': subscription.current_period_end.isoformat()
                if subscription and subscription.current_period_end else None,
            })
        return rows

    # ─── Stripe Checkout / Portal ───────────────────────────────────────

    @staticmethod
    def create_checkout_session(tenant_id, plan_slug: str, currency: str = 'CLP') -> Dict[str, str]:
        """
        Create a Stripe Checkout session to upgrade the tenant plan.

        Returns:
            {'url': checkout URL}
        """
        currency = (currency or 'CLP').upper()
        if currency not in SUPPORTED_CURRENCIES:
            raise ValidationFailed(f'Moneda no soportada: {currency}')

        plan = Plan.find_by_slug(plan_slug)
        if not plan:
            raise NotFoundError('Plan no encontrado')
        if plan.is_free:
            raise ValidationFailed('No se puede comprar el plan Free')

        price_id = plan.stripe_price_id(currency)
        if not price_id:
            raise ValidationFailed(f'Precio en {currency} no configurado para plan {plan.name}')

        tenant = db.session.get(Tenant, parse_uuid(tenant_id)) if parse_uuid(tenant_id) else None
        if not tenant:
            raise NotFoundError('Tenant no encontrado')

        client = BillingService._stripe()
        subscription = BillingService.get_tenant_subscription(tenant.id)
        app_url = current_app.config['APP_URL']

        try:
            customer_id = subscription.stripe_customer_id if subscription else None
            if not customer_id:
                customer = client.Customer.create(
                    name=tenant.nombre,
                    metadata={'tenant_id': str(tenant.id), 'tenant_slug': tenant.slug},
                )
                customer_id = customer['id']
                if subscription:
                    subscription.stripe_customer_id = customer_id
                    db.session.commit()

            metadata = {'tenant_id': str(tenant.id), 'plan_slug': plan.slug}
            params = {
                'mode': 'subscription',
                'customer': customer_id,
                'line_items': [{'price': price_id, 'quantity': 1}],
                'success_url': f'{app_url}/api/billing/callback?session_id={{CHECKOUT_SESSION_ID}}&status=success',
                'cancel_url': f'{app_url}/api/billing/callback?session_id={{CHECKOUT_SESSION_ID}}&status=cancel',
                'metadata': metadata,
                'subscription_data': {'metadata': metadata},
            }
            if currency == 'BRL':
                params['payment_method_types'] = ['card', 'boleto']

            session = client.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout error for tenant {tenant.id}: {e}", exc_info=True)
            raise ExternalServiceError(f'Error de Stripe: {getattr(e, "user_message", None) or str(e)}')

        logger.info(f"Checkout session created for tenant {tenant.slug}: plan={plan.slug} {currency}")
        return {'url': session['url']}

    @staticmethod
    def admin_url(tenant: Optional[Tenant]) -> str:
        """Tenant admin page in the frontend (platform root when the tenant is unknown)."""
        app_url = current_app.config['APP_URL']
        return f'{app_url}/{tenant.slug}/admin' if tenant else f'{app_url}/admin'

    @staticmethod
    def get_checkout_tenant(session_id: Optional[str]) -> Optional[Tenant]:
        """Tenant stored in a Checkout session's metadata, or None when it cannot be read."""
        if not session_id or not BillingService.is_stripe_configured():
            return None
        try:
            session = BillingService._stripe().checkout.Session.retrieve(session_id)
        except stripe.StripeError as e:
            logger.warning(f"Could not read checkout session {session_id}: {e}")
            return None
        tid = parse_uuid((session.get('metadata') or {}).get('tenant_id'))
        return db.session.get(Tenant, tid) if tid else None

    @staticmethod
    def create_portal_session(tenant_id) -> Dict[str, str]:
        subscription = BillingService.get_tenant_subscription(tenant_id)
        if not subscription or not subscription.stripe_customer_id:
            raise ValidationFailed('No hay cliente de Stripe asociado a este tenant')

        tenant = db.session.get(Tenant, subscription.tenant_id)
        client = BillingService._stripe()
        try:
            session = client.billing_portal.Session.create(
                customer=subscription.stripe_customer_id,
                return_url=BillingService.admin_url(tenant),
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe portal error for tenant {tenant_id}: {e}", exc_info=True)
            raise ExternalServiceError(f'Error de Stripe: {str(e)}')
        return {'url': session['url']}

    # ─── Webhooks ────────────────────────────────────────────────────────

    @staticmethod
    def construct_webhook_event(payload: bytes, signature: str):
        """Verify the Stripe-Signature header; raises stripe.SignatureVerificationError."""
        secret = current_app.config.get('STRIPE_WEBHOOK_SECRET')
        return stripe.Webhook.construct_event(payload, signature, secret)

    @staticmethod
    def _claim_event(event_id: str, event_type: str) -> bool:
        """Insert the processed-event marker; False when it already exists."""
        marker = WebhookEvent(stripe_event_id=event_id, event_type=event_type,
                              processed_at=datetime.now(timezone.utc))
        db.session.add(marker)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            return False
        return True

    @staticmethod
    def process_webhook(event: Dict[str, Any]) -> bool:
        """
        Apply a verified Stripe event.

        Args:
            event: Event payload as a dict (id, type, data.object)

        Returns:
            True when processed, False when it was a duplicate delivery
        """
        event_id = event.get('id')
        event_type = event.get('type', '')
        obj = (event.get('data') or {}).get('object') or {}

        if event_id and not BillingService._claim_event(event_id, event_type):
            logger.info(f"Duplicate Stripe event skipped: {event_id} ({event_type})")
            return False

        handler = {
            'customer.subscription.created': BillingService._on_subscription_upsert,
            'customer.subscription.updated': BillingService._on_subscription_upsert,
            'customer.subscription.deleted': BillingService._on_subscription_deleted,
            'invoice.paid': BillingService._on_invoice_paid,
            'invoice.payment_failed': BillingService._on_invoice_payment_failed,
        }.get(event_type)

        try:
            if handler:
                handler(obj, event_id)
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.error(f"Stripe webhook processing failed: {event_id} ({event_type})", exc_info=True)
            raise

        logger.info(f"Stripe event processed: {event_id} ({event_type})")
        return True

    @staticmethod
    def _on_subscription_upsert(obj: Dict[str, Any], event_id: str) -> None:
        metadata = obj.get('metadata') or {}
        tenant_id = parse_uuid(metadata.get('tenant_id'))
        if not tenant_id:
            logger.error(f"Stripe subscription {obj.get('id')} without tenant_id metadata")
            return

        plan = Plan.find_by_slug(metadata.get('plan_slug')) if metadata.get('plan_slug') else None
        subscription = Subscription.query.filter_by(tenant_id=tenant_id).first()
        if not subscription:
            fallback_plan = plan or Plan.find_free()
            if not fallback_plan:
                logger.error(f"No plan available for subscription of tenant {tenant_id}")
                return
            subscription = Subscription(tenant_id=tenant_id, plan_id=fallback_plan.id)
            db.session.add(subscription)

        if plan:
            subscription.plan_id = plan.id
        subscription.stripe_customer_id = _customer_id(obj)
        subscription.stripe_subscription_id = obj.get('id')
        subscription.status = map_stripe_status(obj.get('status'))
        subscription.current_period_start = _from_unix(obj.get('current_period_start') or obj.get('start_date'))
        subscription.current_period_end = _from_unix(obj.get('current_period_end') or obj.get('cancel_at'))
        subscription.canceled_at = _from_unix(obj.get('canceled_at'))
        if obj.get('currency'):
            subscription.currency = obj['currency'].upper()

    @staticmethod
    def _on_subscription_deleted(obj: Dict[str, Any], event_id: str) -> None:
        tenant_id = parse_uuid((obj.get('metadata') or {}).get('tenant_id'))
        if not tenant_id:
            return

        free = Plan.find_free()
        subscription = Subscription.query.filter_by(tenant_id=tenant_id).first()
        if free and subscription:
            subscription.plan_id = free.id
            subscription.status = Subscription.STATUS_CANCELED
            subscription.stripe_subscription_id = None
            subscription.canceled_at = datetime.now(timezone.utc)
            logger.info(f"Tenant {tenant_id} downgraded to free plan")

    @staticmethod
    def _on_invoice_paid(obj: Dict[str, Any], event_id: str) -> None:
        parent = obj.get('parent') or {}
        tenant_id = parse_uuid(
            ((parent.get('subscription_details') or {}).get('metadata') or {}).get('tenant_id')
            or (obj.get('metadata') or {}).get('tenant_id')
        )

        subscription = None
        if not tenant_id:
            customer_id = _customer_id(obj)
            subscription = Subscription.query.filter_by(stripe_customer_id=customer_id).first() \
                if customer_id else None
            if not subscription:
                logger.error(f"invoice.paid {obj.get('id')} without resolvable tenant")
                return
            tenant_id = subscription.tenant_id
        else:
            subscription = Subscription.query.filter_by(tenant_id=tenant_id).first()

        BillingService._upsert_invoice(tenant_id, subscription, obj, event_id)

    @staticmethod
    def _upsert_invoice(tenant_id, subscription: Optional[Subscription], obj: Dict[str, Any], event_id: str) -> None:
        invoice = Invoice.query.filter_by(stripe_invoice_id=obj.get('id')).first()
        if not invoice:
            invoice = Invoice(stripe_invoice_id=obj.get('id'), tenant_id=tenant_id)
            db.session.add(invoice)

        paid = obj.get('status') == 'paid'
        invoice.subscription_id = subscription.id if subscription else None
        invoice.stripe_event_id = event_id
        invoice.amount = obj.get('amount_paid') or 0
        invoice.currency = (obj.get('currency') or 'clp').upper()
        invoice.status = 'paid' if paid else 'open'
        invoice.period_start = _from_unix(obj.get('period_start'))
        invoice.period_end = _from_unix(obj.get('period_end'))
        invoice.paid_at = datetime.now(timezone.utc) if paid else None
        invoice.hosted_invoice_url = obj.get('hosted_invoice_url')
        invoice.invoice_pdf_url = obj.get('invoice_pdf')

    @staticmethod
    def _on_invoice_payment_failed(obj: Dict[str, Any], event_id: str) -> None:
        customer_id = _customer_id(obj)
        subscription = Subscription.query.filter_by(stripe_customer_id=customer_id).first() \
            if customer_id else None
        if subscription:
            subscription.status = Subscription.STATUS_PAST_DUE
            logger.warning(f"Tenant {subscription.tenant_id} subscription marked past_due")
