"""
RefreshToken model: one row per refresh token currently honored for an account.
Presence of the row is the authoritative signal that the token is live;
deleting it revokes the token even before it expires.
Fields:
- account_id (String(36)) - FK to accounts.id
- jti (unique random id carried inside the token)
- token (the issued string, verbatim)
- issued_at, expires_at
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from models.base_model import BaseModel, Base, utcnow


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    jti = Column(String(64), nullable=False, unique=True)
    token = Column(Text, nullable=False)
    issued_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    account = relationship("Account", back_populates="refresh_tokens")

    def __repr__(self):
        return f"<RefreshToken jti={self.jti} account={self.account_id}>"
