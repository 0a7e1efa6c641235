"""
Base model with common fields for all database models.

Provides UUID primary keys, automatic timestamps, and audit trail support.
"""

import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from sqlalchemy import Column, DateTime, Uuid
from typing import Dict, Any, Optional, Union


def utcnow() -> datetime:
    """Timezone-aware current UTC time used for every timestamp column."""
    return datetime.now(timezone.utc)


def parse_uuid(value: Union[str, uuid.UUID, None]) -> Optional[uuid.UUID]:
    """
    Coerce a request value into a UUID.

    Args:
        value: UUID instance, UUID string, or None

    Returns:
        uuid.UUID, or None when the value is empty or not a valid UUID

    Example:
        >>> parse_uuid('123e4567-e89b-12d3-a456-426614174000')
        UUID('123e4567-e89b-12d3-a456-426614174000')
        >>> parse_uuid('not-a-uuid') is None
        True
    """
    if value is None or value == '':
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        return None


def serialize_value(value: Any) -> Any:
    """Convert column values into JSON-friendly primitives."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


class BaseModel:
    """
    Abstract base model with common fields for all models.

    Provides:
    - UUID primary key (id)
    - Automatic timestamps (created_at, updated_at)
    - Audit trail (created_by)
    - Serialization helpers (to_dict)
    - String representation (__repr__)

    Usage:
        class Event(BaseModel, db.Model):
            __tablename__ = 'events'
            nombre = Column(String(255), nullable=False)
    """

    # Primary key (UUID)
    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
        comment="Unique identifier for the record"
    )

    # Timestamp fields
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when record was created (UTC)"
    )

    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when record was last updated (UTC)"
    )

    # Audit trail - who created this record
    # Nullable to allow public submissions and system-generated records
    created_by = Column(
        Uuid(as_uuid=True),
        nullable=True,
        comment="UUID of user who created this record (nullable for public submissions)"
    )

    def to_dict(self, exclude: Optional[list] = None) -> Dict[str, Any]:
        """
        Convert model instance to dictionary for JSON serialization.

        Args:
            exclude: List of field names to exclude from output

        Returns:
            Dictionary representation of the model

        Example:
            >>> event = Event(nombre='Cruzados vs Colo-Colo', venue='Claro Arena')
            >>> event.to_dict(exclude=['config'])
            {
                'id': '123e4567-e89b-12d3-a456-426614174000',
                'nombre': 'Cruzados vs Colo-Colo',
                'venue': 'Claro Arena',
                'created_at': '2025-03-01T00:00:00+00:00',
                ...
            }
        """
        exclude = exclude or []
        result = {}

        # Get all mapped columns by attribute name
        for attr in self.__mapper__.column_attrs:
            field_name = attr.key

            # Skip excluded fields
            if field_name in exclude:
                continue

            result[field_name] = serialize_value(getattr(self, field_name, None))

        return result

    def update_from_dict(self, data: Dict[str, Any], allowed_fields: Optional[list] = None):
        """
        Update model fields from dictionary.

        Only updates fields that exist in the model and are in allowed_fields list.
        Useful for partial updates from API requests.

        Args:
            data: Dictionary with field names and values
            allowed_fields: List of field names that are allowed to be updated
                          If None, all fields except primary key and timestamps are allowed

        Example:
            >>> event = db.session.get(Event, event_id)
            >>> event.update_from_dict(
            ...     {'venue': 'Estadio Nacional', 'tenant_id': other_id},
            ...     allowed_fields=['venue']
            ... )
            >>> db.session.commit()
        """
        # Default allowed fields: all columns except id and timestamps
        if allowed_fields is None:
            forbidden_fields = {'id', 'created_at', 'updated_at', 'created_by'}
            allowed_fields = [
                col.name for col in self.__table__.columns
                if col.name not in forbidden_fields
            ]

        # Update only allowed fields that exist in data
        for field_name, value in data.items():
            if field_name in allowed_fields and hasattr(self, field_name):
                setattr(self, field_name, value)

    def __repr__(self) -> str:
        """
        String representation of the model for debugging.

        Example:
            >>> repr(event)
            '<Event id=123e4567-e89b-12d3-a456-426614174000>'
        """
        return f"<{self.__class__.__name__} id={self.id}>"

    def __str__(self) -> str:
        return self.__repr__()

    @classmethod
    def get_column_names(cls) -> list:
        """
        Get list of all column names for this model.

        Example:
            >>> QuotaRule.get_column_names()
            ['id', 'created_at', 'updated_at', 'created_by', 'event_id', 'tipo_medio', ...]
        """
        return [column.name for column in cls.__table__.columns]

    def before_insert(self):
        """
        Hook called before inserting a new record.

        Override in child classes to normalize values before they reach the
        database. Called automatically by the before_flush listener.
        """
        pass

    def before_update(self):
        """
        Hook called before updating a record.

        Override in child classes to add custom logic before update.
        Called automatically by the before_flush listener.
        """
        pass


_events_registered = False


def register_base_model_events(db):
    """
    Register SQLAlchemy event listeners for BaseModel lifecycle hooks.

    This is called once during application initialization to enable the
    before_insert and before_update hooks.

    Args:
        db: SQLAlchemy database instance

    Example:
        >>> from accredia.extensions import db
        >>> from accredia.models.base import register_base_model_events
        >>> register_base_model_events(db)
    """
    global _events_registered
    if _events_registered:
        return

    from sqlalchemy import event

    @event.listens_for(db.session, 'before_flush')
    def receive_before_flush(session, flush_context, instances):
        """Call before_insert and before_update hooks."""
        for instance in session.new:
            if isinstance(instance, BaseModel):
                instance.before_insert()

        for instance in session.dirty:
            if isinstance(instance, BaseModel):
                instance.before_update()

    _events_registered = True
