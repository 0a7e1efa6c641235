"""
Billing models: plans, tenant subscriptions, invoices, usage and
processed Stripe webhook events.
"""

from sqlalchemy import (Column, String, Text, Boolean, Integer, Numeric, Date, DateTime, ForeignKey,
                        UniqueConstraint, Index, JSON, Uuid)
from sqlalchemy.orm import relationship
from typing import Optional

from accredia.extensions import db
from accredia.models.base import BaseModel

DEFAULT_PLAN_LIMITS = {
    'max_events': 1,
    'max_registrations_per_event': 50,
    'max_admins': 1,
    'max_storage_mb': 100,
}

UNLIMITED = -1


class Plan(BaseModel, db.Model):
    """
    Billing plan.

    limits holds max_events, max_registrations_per_event, max_admins and
    max_storage_mb; -1 means unlimited.
    """

    __tablename__ = 'billing_plans'

    name = Column(String(100), nullable=False)
    slug = Column(String(50), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_free = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    limits = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_PLAN_LIMITS))
    price_clp = Column(Integer, nullable=False, default=0)
    price_brl = Column(Numeric(10, 2), nullable=False, default=0)
    price_usd = Column(Numeric(10, 2), nullable=False, default=0)
    stripe_price_id_clp = Column(String(100), nullable=True)
    stripe_price_id_brl = Column(String(100), nullable=True)
    stripe_price_id_usd = Column(String(100), nullable=True)

    @classmethod
    def find_by_slug(cls, slug: str) -> Optional['Plan']:
        return cls.query.filter_by(slug=slug).first()

    @classmethod
    def find_free(cls) -> Optional['Plan']:
        return cls.query.filter_by(is_free=True).order_by(cls.sort_order).first()

    def stripe_price_id(self, currency: str) -> Optional[str]:
        return getattr(self, f"stripe_price_id_{(currency or '').lower()}", None)


class Subscription(BaseModel, db.Model):
    """Current plan of a tenant (one row per tenant)."""

    __tablename__ = 'tenant_subscriptions'

    STATUS_ACTIVE = 'active'
    STATUS_TRIALING = 'trialing'
    STATUS_PAST_DUE = 'past_due'
    STATUS_CANCELED = 'canceled'
    STATUS_INCOMPLETE = 'incomplete'
    STATUS_UNPAID = 'unpaid'
    USABLE_STATUSES = [STATUS_ACTIVE, STATUS_TRIALING]

    tenant_id = Column(Uuid(as_uuid=True), ForeignKey('tenants.id', ondelete='CASCADE'),
                       nullable=False, unique=True)
    plan_id = Column(Uuid(as_uuid=True), ForeignKey('billing_plans.id'), nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_ACTIVE)
    currency = Column(String(3), nullable=False, default='CLP')
    stripe_customer_id = Column(String(100), nullable=True, index=True)
    stripe_subscription_id = Column(String(100), nullable=True)
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)

    plan = relationship('Plan')

    @property
    def is_usable(self) -> bool:
        return self.status in self.USABLE_STATUSES


class Invoice(BaseModel, db.Model):
    __tablename__ = 'billing_invoices'

    tenant_id = Column(Uuid(as_uuid=True), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    subscription_id = Column(Uuid(as_uuid=True), ForeignKey('tenant_subscriptions.id', ondelete='SET NULL'),
                             nullable=True)
    stripe_invoice_id = Column(String(100), nullable=False, unique=True)
    stripe_event_id = Column(String(100), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default='CLP')
    status = Column(String(20), nullable=False)
    period_start = Column(DateTime(timezone=True), nullable=True)
    period_end = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    hosted_invoice_url = Column(String(1000), nullable=True)
    invoice_pdf_url = Column(String(1000), nullable=True)

    __table_args__ = (
        Index('ix_billing_invoices_tenant', 'tenant_id'),
    )


class UsageRecord(BaseModel, db.Model):
    """Monthly snapshot of a metered value."""

    __tablename__ = 'billing_usage'

    tenant_id = Column(Uuid(as_uuid=True), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    metric = Column(String(50), nullable=False)
    current_value = Column(Integer, nullable=False, default=0)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint('tenant_id', 'metric', 'period_start', name='uq_billing_usage_tenant_metric_period'),
    )


class WebhookEvent(BaseModel, db.Model):
    """
    Stripe event already processed.

    The unique constraint on stripe_event_id makes webhook delivery
    idempotent: a replayed event fails the insert and is skipped.
    """

    __tablename__ = 'billing_webhook_events'

    stripe_event_id = Column(String(100), nullable=False, unique=True)
    event_type = Column(String(100), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
