from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLE_SUPERADMIN = "superadmin"
ROLES = (ROLE_USER, ROLE_ADMIN, ROLE_SUPERADMIN)


def normalize_email(email):
    return email.strip().lower() if isinstance(email, str) else email


class Account(BaseModel, Base):
    __tablename__ = "accounts"
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(16), nullable=False, default=ROLE_USER, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    # SHA-256 of the outstanding password-reset token, if any
    reset_token_hash = Column(String(64), nullable=True, index=True)
    reset_token_expires = Column(DateTime(timezone=True), nullable=True)

    # One row per live refresh token; the ordered collection of sessions
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="account",
        order_by="RefreshToken.issued_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    @property
    def is_superadmin(self) -> bool:
        return self.role == ROLE_SUPERADMIN

    def __repr__(self):
        return f"<Account {self.email} role={self.role}>"
