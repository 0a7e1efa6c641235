"""
HTML safety helpers for admin-authored email content.

sanitize_html strips active content from templates before they are stored;
escape_html, safe_color and safe_url guard values interpolated into the
generated emails.
"""

import re
from html import escape

SCRIPT_BLOCK = re.compile(r'<script\b[^>]*>[\s\S]*?</script\s*>', re.IGNORECASE)
SCRIPT_TAG = re.compile(r'</?script\b[^>]*>', re.IGNORECASE)
DANGEROUS_TAGS = re.compile(
    r'</?(iframe|object|embed|applet|form|input|button|select|textarea|meta|link|base)\b[^>]*>',
    re.IGNORECASE
)
EVENT_ATTRS = re.compile(r'\s+on\w+\s*=\s*("[^"]*"|\'[^\']*\'|[^\s>]*)', re.IGNORECASE)
JS_PROTOCOL = re.compile(r'(href|src|action)\s*=\s*["\']?\s*javascript\s*:', re.IGNORECASE)
DATA_URI_DANGEROUS = re.compile(
    r'(href|src|action)\s*=\s*["\']?\s*data\s*:(?!image/(png|jpeg|gif|webp|svg\+xml))',
    re.IGNORECASE
)

COLOR_PATTERN = re.compile(r'^#[0-9a-fA-F]{3,8}$|^[a-zA-Z]{1,20}$')


def sanitize_html(html: str) -> str:
    """
    Remove scripts, embedding tags, inline event handlers and
    javascript:/data: URLs from an HTML fragment.

    Example:
        >>> sanitize_html('<p onclick="x()">Hola</p><script>alert(1)</script>')
        '<p>Hola</p>'
    """
    if not html:
        return ''

    result = SCRIPT_BLOCK.sub('', html)
    result = SCRIPT_TAG.sub('', result)
    result = DANGEROUS_TAGS.sub('', result)
    result = EVENT_ATTRS.sub('', result)
    result = JS_PROTOCOL.sub(r'\1=""', result)
    result = DATA_URI_DANGEROUS.sub(r'\1=""', result)
    return result


def escape_html(value) -> str:
    """Escape &, <, >, " and ' for interpolation into HTML."""
    if value is None:
        return ''
    return escape(str(value), quote=True)


def safe_color(color: str, fallback: str) -> str:
    """Return color when it is a hex value or a plain CSS color name, else fallback."""
    if color and COLOR_PATTERN.match(color):
        return color
    return fallback


def safe_url(url: str) -> str:
    """Return the escaped URL when it is http(s), else an empty string."""
    if not url:
        return ''
    stripped = url.strip()
    if stripped.lower().startswith(('http://', 'https://')):
        return escape_html(stripped)
    return ''
