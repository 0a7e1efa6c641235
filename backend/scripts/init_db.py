#!/usr/bin/env python
"""
Database Initialization Script

This script prepares the Accredia database:
1. Creates the tables (db.create_all, or `flask db upgrade` when migrations exist)
2. Seeds the billing plans (free, pro, enterprise)
3. Optionally creates the first superadmin

Usage:
    # Tables and plans only
    python scripts/init_db.py

    # With a superadmin
    python scripts/init_db.py --create-superadmin

    # Non-interactive mode (use environment variables)
    SUPERADMIN_EMAIL=ops@accredia.cl SUPERADMIN_PASSWORD=password123 \
    python scripts/init_db.py --create-superadmin --non-interactive

Environment Variables:
    SUPERADMIN_EMAIL: Email for the superadmin (default: admin@accredia.cl)
    SUPERADMIN_PASSWORD: Password (prompted when interactive)
    SUPERADMIN_NOMBRE: Display name (default: Superadmin)
    STRIPE_PRICE_PRO_CLP / _BRL / _USD: Stripe price ids for the Pro plan
"""

import argparse
import getpass
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from flask_migrate import upgrade as migrate_upgrade

load_dotenv()

from accredia import create_app  # noqa: E402
from accredia.extensions import db  # noqa: E402
from accredia.models import User, Superadmin  # noqa: E402
from accredia.services.billing_service import BillingService  # noqa: E402

backend_dir = Path(__file__).resolve().parent.parent

PLANS = [
    {
        'name': 'Free',
        'slug': 'free',
        'description': '1 evento, 50 acreditados',
        'is_free': True,
        'sort_order': 0,
        'price_clp': 0, 'price_brl': 0, 'price_usd': 0,
        'limits': {'max_events': 1, 'max_registrations_per_event': 50, 'max_admins': 1, 'max_storage_mb': 100},
    },
    {
        'name': 'Pro',
        'slug': 'pro',
        'description': '10 eventos, 500 acreditados',
        'is_free': False,
        'sort_order': 1,
        'price_clp': 29990, 'price_brl': 149, 'price_usd': 29,
        'limits': {'max_events': 10, 'max_registrations_per_event': 500, 'max_admins': 5,
                   'max_storage_mb': 1000},
    },
    {
        'name': 'Enterprise',
        'slug': 'enterprise',
        'description': 'Sin límites',
        'is_free': False,
        'sort_order': 2,
        'price_clp': 0, 'price_brl': 0, 'price_usd': 0,
        'limits': {'max_events': -1, 'max_registrations_per_event': -1, 'max_admins': -1, 'max_storage_mb': -1},
    },
]


def parse_args():
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Initialize the Accredia database',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('--create-superadmin', action='store_true', help='Create the first superadmin')
    parser.add_argument('--non-interactive', action='store_true',
                        help='Non-interactive mode (use environment variables)')
    parser.add_argument('--config', default='development', choices=['development', 'production', 'testing'],
                        help='Configuration to use (default: development)')
    return parser.parse_args()


def create_tables(app):
    print("\n" + "=" * 60)
    print("STEP 1: Creating tables")
    print("=" * 60)

    with app.app_context():
        if (backend_dir / 'migrations').exists():
            print("Applying migrations...")
            migrate_upgrade(directory=str(backend_dir / 'migrations'))
        else:
            db.create_all()
        print("✓ Tables ready")


def seed_plans(app):
    print("\n" + "=" * 60)
    print("STEP 2: Seeding billing plans")
    print("=" * 60)

    with app.app_context():
        for data in PLANS:
            plan = dict(data)
            if plan['slug'] == 'pro':
                for currency in ('clp', 'brl', 'usd'):
                    price_id = os.getenv(f'STRIPE_PRICE_PRO_{currency.upper()}')
                    if price_id:
                        plan[f'stripe_price_id_{currency}'] = price_id
            saved = BillingService.upsert_plan(plan)
            print(f"✓ Plan {saved.name} ({saved.slug})")


def create_superadmin(app, interactive=True):
    print("\n" + "=" * 60)
    print("STEP 3: Creating superadmin")
    print("=" * 60)

    if interactive:
        email = input("Email (default: admin@accredia.cl): ").strip() or "admin@accredia.cl"
        nombre = input("Nombre (default: Superadmin): ").strip() or "Superadmin"
        password = getpass.getpass("Password (min 8 chars): ").strip()
    else:
        email = os.getenv('SUPERADMIN_EMAIL', 'admin@accredia.cl')
        nombre = os.getenv('SUPERADMIN_NOMBRE', 'Superadmin')
        password = os.getenv('SUPERADMIN_PASSWORD')

    if not password or len(password) < 8:
        print("ERROR: Password must be at least 8 characters")
        return None

    with app.app_context():
        try:
            user = User.find_by_email(email.lower())
            if not user:
                user = User(email=email.lower(), nombre=nombre, is_active=True)
                user.set_password(password)
                db.session.add(user)
                db.session.flush()

            if Superadmin.query.filter_by(user_id=user.id).first():
                print(f"✓ Superadmin already exists: {email}")
            else:
                db.session.add(Superadmin(user_id=user.id, nombre=nombre, email=user.email))
                print(f"✓ Superadmin created: {email}")
            db.session.commit()
            return user
        except Exception as e:
            db.session.rollback()
            print(f"ERROR: Failed to create superadmin: {e}")
            return None


def main():
    args = parse_args()
    app = create_app(args.config)

    create_tables(app)
    seed_plans(app)
    if args.create_superadmin:
        if create_superadmin(app, interactive=not args.non_interactive) is None:
            sys.exit(1)

    print("\n✓ Database initialized")


if __name__ == '__main__':
    main()
