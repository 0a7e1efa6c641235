"""
Unit Tests Package

This package contains unit tests for individual components:
- Utils: RUT validation, HTML sanitizing, dates, tenant routing
- Services: Business rules (quotas, zones, plan limits, registrations, check-in)
- Tasks: Celery tasks executed eagerly
"""
