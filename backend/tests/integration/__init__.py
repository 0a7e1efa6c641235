"""
Integration Tests Package

This package contains integration tests that drive complete flows through
the HTTP API:
- Auth flows: registration, login, refresh, logout and magic links
- Accreditation: public form, admin review, QR check-in
- Administration: tenants, events, billing, superadmin, email, export, uploads

Integration tests use an in-memory database and mock external services
(S3, Stripe, Resend).
"""
