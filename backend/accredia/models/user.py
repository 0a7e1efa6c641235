"""
User model for authentication.

Stores login accounts with bcrypt password hashing. Admin roles live in
the superadmins and tenant_admins tables; registrant identity lives in
profiles (linked through profiles.user_id).
"""

import bcrypt
from sqlalchemy import Column, String, Boolean, DateTime, Index
from typing import Optional
import logging

from accredia.extensions import db
from accredia.models.base import BaseModel

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


class User(BaseModel, db.Model):
    """
    User account used for JWT authentication.

    Attributes:
        email: Login email (unique, stored lowercase)
        password_hash: Bcrypt hashed password
        nombre: Display name (optional)
        is_active: Whether the account can log in
        must_change_password: Set for accounts created with a temporary password
        last_login_at: Timestamp of the last successful login

    Example:
        >>> user = User(email='prensa@medio.cl')
        >>> user.set_password('secure_password123')
        >>> db.session.add(user)
        >>> db.session.commit()
    """

    __tablename__ = 'users'

    email = Column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="User's email address (unique, used for login)"
    )

    password_hash = Column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password"
    )

    nombre = Column(
        String(200),
        nullable=True,
        comment="Display name"
    )

    is_active = Column(
        Boolean,
        default=True,
        nullable=False,
        comment="Whether user account is active (can login)"
    )

    must_change_password = Column(
        Boolean,
        default=False,
        nullable=False,
        comment="Force a password change on next login (temporary password issued)"
    )

    last_login_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last successful login (UTC)"
    )

    __table_args__ = (
        Index('ix_users_email_active', 'email', 'is_active'),
    )

    def set_password(self, password: str) -> None:
        """
        Hash and set user password using bcrypt.

        Args:
            password: Plain text password (8 to 128 characters)

        Raises:
            ValueError: If password violates the length policy
        """
        if not password or len(password) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"La contraseña debe tener al menos {PASSWORD_MIN_LENGTH} caracteres")
        if len(password) > PASSWORD_MAX_LENGTH:
            raise ValueError(f"La contraseña no puede exceder {PASSWORD_MAX_LENGTH} caracteres")

        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password.encode('utf-8'), salt)

        self.password_hash = hashed.decode('utf-8')
        logger.debug(f"Password hashed for user: {self.email}")

    def check_password(self, password: str) -> bool:
        """
        Verify password against stored hash.

        Returns:
            True if password matches, False otherwise
        """
        if not password or not self.password_hash:
            return False

        try:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        except ValueError as e:
            logger.error(f"Error checking password for user {self.email}: {str(e)}")
            return False

    def to_dict(self, exclude: Optional[list] = None) -> dict:
        """Convert user to dictionary, always excluding password_hash."""
        exclude = list(exclude or [])
        exclude.append('password_hash')
        return super().to_dict(exclude=exclude)

    def deactivate(self) -> None:
        self.is_active = False
        logger.info(f"User deactivated: {self.email}")

    def activate(self) -> None:
        self.is_active = True
        logger.info(f"User activated: {self.email}")

    @classmethod
    def find_by_email(cls, email: str) -> Optional['User']:
        """Find user by email (case-insensitive)."""
        if not email:
            return None
        return cls.query.filter_by(email=email.strip().lower()).first()

    @classmethod
    def find_active_by_email(cls, email: str) -> Optional['User']:
        if not email:
            return None
        return cls.query.filter_by(email=email.strip().lower(), is_active=True).first()

    def before_insert(self):
        """Normalize email before insert."""
        if self.email:
            self.email = self.email.strip().lower()

    def before_update(self):
        if self.email:
            self.email = self.email.strip().lower()
