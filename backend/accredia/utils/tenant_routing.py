"""
Tenant resolution for public pages.

Each tenant is served from its own subdomain (``cruzados.accredia.cl``).
Requests are rewritten to ``/<slug><path>`` before they reach Flask
routing so the public blueprint can serve every tenant from one set of
routes. On local hosts the tenant comes from ``?tenant=`` or from a
``<slug>.localhost`` host name.
"""

import logging
import re
from typing import Iterable, Optional
from urllib.parse import parse_qs

logger = logging.getLogger(__name__)

DEFAULT_MAIN_DOMAIN = 'accredia.cl'
DEFAULT_SKIP_PREFIXES = ('/_next', '/api', '/static', '/health')
LOCAL_HOSTS = ('localhost', '127.0.0.1')

STATIC_FILE_PATTERN = re.compile(r'\.(ico|png|jpg|jpeg|gif|svg|webp|css|js|map|txt|woff2?)$', re.IGNORECASE)
LOCAL_SUBDOMAIN_PATTERN = re.compile(r'^([^.]+)\.localhost$')

TENANT_SLUG_ENVIRON_KEY = 'accredia.tenant_slug'


def is_static_or_api_path(path: str, skip_prefixes: Iterable[str] = DEFAULT_SKIP_PREFIXES) -> bool:
    if any(path.startswith(prefix) for prefix in skip_prefixes if prefix):
        return True
    return STATIC_FILE_PATTERN.search(path) is not None


def _is_local_host(hostname: str) -> bool:
    return hostname in LOCAL_HOSTS or hostname.endswith('.localhost')


def _already_prefixed(path: str, slug: str) -> bool:
    return path == f"/{slug}" or path.startswith(f"/{slug}/")


def _rewrite(slug: str, path: str) -> Optional[str]:
    if _already_prefixed(path, slug):
        return None
    if path in ('', '/'):
        return f"/{slug}"
    return f"/{slug}{path}"


def resolve_tenant_slug(host: str, query_tenant: Optional[str] = None,
                        main_domain: str = DEFAULT_MAIN_DOMAIN) -> Optional[str]:
    """
    Extract the tenant slug from the request host.

    Args:
        host: Host header, port included or not
        query_tenant: Value of the ``tenant`` query parameter (local hosts only)
        main_domain: Platform domain, e.g. "accredia.cl"

    Returns:
        Tenant slug, or None when the host does not designate a tenant
    """
    hostname = (host or '').split(':')[0].lower()

    if _is_local_host(hostname):
        if query_tenant:
            return query_tenant
        match = LOCAL_SUBDOMAIN_PATTERN.match(hostname)
        return match.group(1) if match else None

    if hostname in (main_domain, f"www.{main_domain}") or not hostname.endswith(f".{main_domain}"):
        return None

    subdomain = hostname[: -len(f".{main_domain}")]
    if not subdomain or subdomain == 'www':
        return None
    return subdomain


def resolve_tenant_path(host: str, path: str, query_tenant: Optional[str] = None,
                        main_domain: str = DEFAULT_MAIN_DOMAIN,
                        skip_prefixes: Iterable[str] = DEFAULT_SKIP_PREFIXES) -> Optional[str]:
    """
    Compute the rewritten path for a tenant request.

    Returns:
        The new path, or None when the request must be left untouched

    Example:
        >>> resolve_tenant_path('cruzados.accredia.cl', '/acreditacion')
        '/cruzados/acreditacion'
        >>> resolve_tenant_path('localhost:3000', '/', query_tenant='uc')
        '/uc'
        >>> resolve_tenant_path('accredia.cl', '/') is None
        True
    """
    if is_static_or_api_path(path, skip_prefixes):
        return None

    slug = resolve_tenant_slug(host, query_tenant, main_domain)
    if not slug:
        return None

    return _rewrite(slug, path)


class TenantRoutingMiddleware:
    """
    WSGI middleware applying resolve_tenant_path to PATH_INFO.

    Usage:
        app.wsgi_app = TenantRoutingMiddleware(app.wsgi_app, main_domain='accredia.cl')
    """

    def __init__(self, wsgi_app, main_domain: str = DEFAULT_MAIN_DOMAIN,
                 skip_prefixes: Iterable[str] = DEFAULT_SKIP_PREFIXES):
        self.wsgi_app = wsgi_app
        self.main_domain = main_domain
        self.skip_prefixes = tuple(skip_prefixes)

    def __call__(self, environ, start_response):
        host = environ.get('HTTP_HOST') or environ.get('SERVER_NAME', '')
        path = environ.get('PATH_INFO', '/')
        query = parse_qs(environ.get('QUERY_STRING', ''))
        query_tenant = (query.get('tenant') or [None])[0]

        new_path = resolve_tenant_path(host, path, query_tenant, self.main_domain, self.skip_prefixes)
        if new_path:
            logger.debug(f"Tenant rewrite {host}{path} -> {new_path}")
            environ['PATH_INFO'] = new_path
            environ[TENANT_SLUG_ENVIRON_KEY] = new_path.split('/')[1]

        return self.wsgi_app(environ, start_response)
