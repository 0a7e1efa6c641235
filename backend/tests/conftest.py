"""
Test Configuration and Fixtures

This module provides pytest fixtures and configuration for the test suite.
Fixtures are reusable test resources that can be injected into test functions.

Key fixtures:
- app: Flask application instance with test configuration
- db: Fresh in-memory schema per test, seeded with the Free and Pro plans
- client: Flask test client for making HTTP requests
- user / superadmin_user / admin_user: Accounts with increasing privileges
- tenant / event: A tenant with one active, QR-enabled event
- make_headers: Builds Authorization headers for any user
"""

import os
from datetime import timedelta

import pytest
from flask_jwt_extended import create_access_token

from accredia import create_app
from accredia.extensions import db as _db
from accredia.models import Event, Plan, Superadmin, TenantAdmin, User
from accredia.services import TenantService


@pytest.fixture(scope='session')
def app():
    """
    Create Flask application for testing.

    Scope: session - created once per test session. The application context
    stays pushed so test code and requests share the same database session.
    """
    os.environ['FLASK_ENV'] = 'testing'

    app = create_app('testing')
    app.config['RESEND_API_KEY'] = None
    app.config['STRIPE_SECRET_KEY'] = None
    app.config['STRIPE_WEBHOOK_SECRET'] = None

    with app.app_context():
        yield app


@pytest.fixture(scope='function')
def db(app):
    """
    Create all tables for one test and drop them afterwards.

    The Free plan is always present: tenants are subscribed to it on
    creation and plan limits fall back to it.
    """
    _db.create_all()

    _db.session.add(Plan(
        name='Free', slug='free', is_free=True, sort_order=0,
        limits={'max_events': 1, 'max_registrations_per_event': 50, 'max_admins': 1, 'max_storage_mb': 100},
    ))
    _db.session.commit()

    yield _db

    _db.session.remove()
    _db.drop_all()


@pytest.fixture(scope='function')
def client(app, db):
    """Flask test client for making HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def pro_plan(db):
    plan = Plan(
        name='Pro', slug='pro', is_free=False, sort_order=1, price_clp=29990,
        limits={'max_events': 10, 'max_registrations_per_event': 500, 'max_admins': 5, 'max_storage_mb': 1000},
    )
    db.session.add(plan)
    db.session.commit()
    return plan


def _create_user(db, email, nombre, password='TestPass123'):
    user = User(email=email, nombre=nombre, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def user(db):
    """Plain account without any admin role."""
    return _create_user(db, 'prensa@medio.cl', 'Periodista Test')


@pytest.fixture(scope='function')
def superadmin_user(db):
    account = _create_user(db, 'root@accredia.cl', 'Super Admin', password='RootPass123')
    db.session.add(Superadmin(user_id=account.id, email=account.email, nombre=account.nombre))
    db.session.commit()
    return account


@pytest.fixture(scope='function')
def tenant(db):
    """Tenant subscribed to the Free plan."""
    return TenantService.create({'nombre': 'Cruzados', 'slug': 'cruzados'})


@pytest.fixture(scope='function')
def admin_user(db, tenant):
    """Account administering `tenant`."""
    account = _create_user(db, 'admin@cruzados.cl', 'Admin Cruzados', password='AdminPass123')
    db.session.add(TenantAdmin(tenant_id=tenant.id, user_id=account.id, rol=TenantAdmin.ROLE_ADMIN,
                               email=account.email, nombre=account.nombre))
    db.session.commit()
    return account


@pytest.fixture(scope='function')
def event(db, tenant):
    """Active public event of `tenant` with QR credentials."""
    ev = Event(
        tenant_id=tenant.id,
        nombre='Cruzados vs Colo-Colo',
        venue='Claro Arena',
        is_active=True,
        qr_enabled=True,
        form_fields=[],
        config={},
        event_type=Event.TYPE_SIMPLE,
        visibility=Event.VISIBILITY_PUBLIC,
    )
    db.session.add(ev)
    db.session.commit()
    return ev


@pytest.fixture(scope='function')
def make_headers(app):
    """
    Build authentication headers for a user.

    Usage:
        client.get('/api/auth/me', headers=make_headers(user))
    """
    def _make(account):
        token = create_access_token(identity=str(account.id), expires_delta=timedelta(minutes=15))
        return {
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json'
        }
    return _make


@pytest.fixture(scope='function')
def registration_form(event):
    """Valid public form payload for `event`."""
    return {
        'event_id': str(event.id),
        'rut': '12.345.678-5',
        'nombre': 'Ana',
        'apellido': 'Rojas Pérez',
        'email': 'ana@radio.cl',
        'telefono': '+56912345678',
        'organizacion': 'Radio Ejemplo',
        'tipo_medio': 'Radio',
        'cargo': 'Periodista',
    }
