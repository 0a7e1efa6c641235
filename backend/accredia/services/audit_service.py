"""
AuditService - append-only audit trail.

Logging an action must never break the operation being audited: any
failure is rolled back and logged, never raised.
"""

import logging
from typing import Any, Dict, List, Optional

from flask import current_app, has_request_context, request

from accredia.extensions import db
from accredia.models import AuditLog, parse_uuid

logger = logging.getLogger(__name__)


class AuditService:

    @staticmethod
    def _client_ip() -> Optional[str]:
        if not has_request_context():
            return None
        forwarded = request.headers.get('X-Forwarded-For', '')
        if forwarded:
            return forwarded.split(',')[0].strip()
        return request.remote_addr

    @staticmethod
    def log_action(
        user_id,
        action: str,
        entity_type: str,
        entity_id=None,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> bool:
        """
        Record an audit entry.

        Args:
            user_id: Acting user (None for anonymous actions)
            action: e.g. 'registration.created', 'registration.checked_in'
            entity_type: e.g. 'registration', 'tenant'
            entity_id: Affected record id
            metadata: JSON-serializable context
            ip_address: Defaults to the current request's client address

        Returns:
            True when stored, False when it failed (never raises)
        """
        try:
            if not current_app.config.get('ENABLE_AUDIT_LOGGING', True):
                return False

            entry = AuditLog(
                user_id=parse_uuid(user_id),
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                metadata_=metadata or {},
                ip_address=ip_address or AuditService._client_ip(),
            )
            db.session.add(entry)
            db.session.commit()
            return True
        except Exception as e:
            db.session.rollback()
            logger.error(f"Audit log failed ({action} {entity_type}:{entity_id}): {e}", exc_info=True)
            return False

    @staticmethod
    def get_audit_logs(
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[AuditLog]:
        """Most recent audit entries matching the filters."""
        query = AuditLog.query
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if entity_id:
            query = query.filter(AuditLog.entity_id == str(entity_id))
        if action:
            query = query.filter(AuditLog.action == action)
        if user_id and parse_uuid(user_id):
            query = query.filter(AuditLog.user_id == parse_uuid(user_id))

        limit = limit or current_app.config.get('AUDIT_LOG_DEFAULT_LIMIT', 100)
        return query.order_by(AuditLog.created_at.desc()).limit(limit).all()
