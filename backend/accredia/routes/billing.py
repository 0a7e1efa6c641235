"""
Billing Blueprint - plans, Stripe checkout and webhooks.

Endpoints:
- GET /api/billing?tenant_id= - Plan, subscription, usage and invoices (tenant admin)
- GET /api/billing/plans - Public plan catalogue
- GET /api/billing/check-limit?tenant_id&metric&event_id - Plan limit check (tenant admin)
- POST /api/billing/checkout - Stripe Checkout session (tenant admin)
- POST /api/billing/portal - Stripe customer portal (tenant admin)
- POST /api/billing/assign - Assign a plan manually (superadmin)
- GET /api/billing/summary - All tenants with their plan (superadmin)
- POST /api/billing/webhook - Stripe events (signature verified)
- GET /api/billing/callback - Redirect back to the admin panel after checkout
"""

import logging
from flask import Blueprint, request, g, redirect, current_app
from marshmallow import ValidationError
import stripe

from accredia.models import Tenant, Plan
from accredia.models.base import parse_uuid
from accredia.extensions import db
from accredia.schemas.billing_schema import checkout_schema, assign_plan_schema
from accredia.services.audit_service import AuditService
from accredia.services.billing_service import BillingService
from accredia.services.errors import ServiceError
from accredia.utils.decorators import jwt_required_custom, superadmin_required, tenant_admin_required
from accredia.utils.responses import (ok, bad_request, not_found, internal_error, service_unavailable,
                                      service_error_response)

logger = logging.getLogger(__name__)

billing_bp = Blueprint('billing', __name__, url_prefix='/api/billing')

STRIPE_PRICE_FIELDS = ['stripe_price_id_clp', 'stripe_price_id_brl', 'stripe_price_id_usd']


@billing_bp.route('', methods=['GET'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def get_tenant_billing():
    try:
        subscription = BillingService.get_tenant_subscription(g.tenant_id)
        usage = BillingService.get_usage_summary(g.tenant_id)
        return ok({
            'plan': usage['plan'],
            'subscription': subscription.to_dict() if subscription else None,
            'usage': usage['metrics'],
            'is_free': usage['is_free'],
            'invoices': [invoice.to_dict() for invoice in BillingService.list_invoices(g.tenant_id)],
            'stripe_enabled': BillingService.is_stripe_configured(),
        })

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error getting billing info: {str(e)}", exc_info=True)
        return internal_error()


@billing_bp.route('/plans', methods=['GET'])
def list_plans():
    try:
        return ok([plan.to_dict(exclude=STRIPE_PRICE_FIELDS) for plan in BillingService.list_plans()])
    except Exception as e:
        logger.error(f"Error listing plans: {str(e)}", exc_info=True)
        return internal_error()


@billing_bp.route('/check-limit', methods=['GET'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def check_limit():
    """
    **Query Parameters**: tenant_id, metric (events | registrations | admins | storage_mb), event_id

    **Response**: {"allowed": true, "current": 3, "limit": 5, "message": null, "plan_name": "Pro"}
    """
    try:
        metric = request.args.get('metric')
        if not metric:
            return bad_request('metric es requerido')
        return ok(BillingService.check_limit(g.tenant_id, metric, request.args.get('event_id')))

    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error checking plan limit: {str(e)}", exc_info=True)
        return internal_error()


@billing_bp.route('/checkout', methods=['POST'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def create_checkout():
    """
    Start a Stripe Checkout to upgrade the plan.

    **Request Body**: {"tenant_id": "uuid", "plan_slug": "pro", "currency": "CLP"}

    **Response**: {"url": "https://checkout.stripe.com/..."}
    """
    try:
        data = checkout_schema.load(request.get_json() or {})
        session = BillingService.create_checkout_session(data['tenant_id'], data['plan_slug'], data['currency'])
        AuditService.log_action(g.user_id, 'billing.checkout_started', 'tenant', data['tenant_id'],
                                {'plan_slug': data['plan_slug'], 'currency': data['currency']})
        return ok(session)

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error creating checkout session: {str(e)}", exc_info=True)
        return internal_error()


@billing_bp.route('/portal', methods=['POST'])
@jwt_required_custom
@tenant_admin_required('tenant_id')
def create_portal():
    try:
        return ok(BillingService.create_portal_session(g.tenant_id))
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error creating portal session: {str(e)}", exc_info=True)
        return internal_error()


@billing_bp.route('/assign', methods=['POST'])
@jwt_required_custom
@superadmin_required
def assign_plan():
    """Assign a plan without Stripe (courtesy or enterprise deals)."""
    try:
        data = assign_plan_schema.load(request.get_json() or {})
        tid = parse_uuid(data['tenant_id'])
        if not tid or not db.session.get(Tenant, tid):
            return not_found('Tenant no encontrado')

        plan = None
        if data.get('plan_id') and parse_uuid(data['plan_id']):
            plan = db.session.get(Plan, parse_uuid(data['plan_id']))
        elif data.get('plan_slug'):
            plan = Plan.find_by_slug(data['plan_slug'])
        if not plan:
            return not_found('Plan no encontrado')

        subscription = BillingService.assign_plan_to_tenant(tid, plan.id)
        AuditService.log_action(g.user_id, 'billing.plan_assigned', 'tenant', tid, {'plan_slug': plan.slug})
        return ok(subscription.to_dict(), f'Plan {plan.name} asignado')

    except ValidationError as err:
        return bad_request('Datos inválidos', err.messages)
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        logger.error(f"Error assigning plan: {str(e)}", exc_info=True)
        return internal_error()


@billing_bp.route('/summary', methods=['GET'])
@jwt_required_custom
@superadmin_required
def billing_summary():
    try:
        return ok(BillingService.get_billing_summary())
    except Exception as e:
        logger.error(f"Error building billing summary: {str(e)}", exc_info=True)
        return internal_error()


@billing_bp.route('/webhook', methods=['POST'])
def stripe_webhook():
    """
    Stripe webhook receiver.

    The raw body is verified against the Stripe-Signature header before any
    processing. Duplicate deliveries are acknowledged without side effects.
    """
    if not BillingService.is_stripe_configured() or not current_app.config.get('STRIPE_WEBHOOK_SECRET'):
        return service_unavailable('Stripe no configurado')

    signature = request.headers.get('Stripe-Signature')
    if not signature:
        return bad_request('Falta firma de Stripe')

    payload = request.get_data()
    try:
        event = BillingService.construct_webhook_event(payload, signature)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Stripe webhook signature verification failed: {str(e)}")
        return bad_request(f'Firma inválida: {str(e)}')
    except ValueError as e:
        return bad_request(f'Payload inválido: {str(e)}')

    try:
        processed = BillingService.process_webhook(event.to_dict())
        return ok({'received': True, 'duplicate': not processed})

    except Exception as e:
        logger.error(f"Error processing Stripe webhook: {str(e)}", exc_info=True)
        return internal_error('Error procesando webhook')


@billing_bp.route('/callback', methods=['GET'])
def checkout_callback():
    """
    Stripe redirects here after checkout; forward to the tenant's admin page.

    The tenant comes from the checkout session metadata. When the session
    cannot be read the platform admin page is used.
    """
    status = 'success' if request.args.get('status') == 'success' else 'cancel'
    tenant = BillingService.get_checkout_tenant(request.args.get('session_id'))
    return redirect(f"{BillingService.admin_url(tenant)}?billing={status}")
