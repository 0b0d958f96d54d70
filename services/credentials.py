"""
Credential store: account lookups and the refresh-token collection.

Every mutation of the refresh-token collection is a single SQL statement
(INSERT to append, DELETE to remove, conditional UPDATE to replace), so
concurrent logins, refreshes and sign-outs on the same account never lose
an update to a read-modify-write race.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, exists, select, update

from models.account import Account, ROLE_SUPERADMIN, ROLE_USER, normalize_email
from models.refresh_token import RefreshToken
from models.base_model import utcnow
from utils.security import hash_password


class CredentialStore:
    def __init__(self, storage):
        self._storage = storage

    @property
    def session(self):
        return self._storage.get_session()

    def get(self, account_id: str) -> Optional[Account]:
        return self._storage.get(Account, account_id)

    def find_by_email(self, email: str) -> Optional[Account]:
        email = normalize_email(email)
        if not email:
            return None
        return self.session.execute(select(Account).where(Account.email == email)).scalar_one_or_none()

    def find_superadmin(self) -> Optional[Account]:
        return self.session.execute(
            select(Account).where(Account.role == ROLE_SUPERADMIN).limit(1)
        ).scalar_one_or_none()

    def create_account(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
        role: str = ROLE_USER,
        is_active: bool = True,
    ) -> Account:
        account = Account(
            email=normalize_email(email),
            password_hash=hash_password(password),
            name=name.strip() if isinstance(name, str) else name,
            role=role,
            is_active=is_active,
        )
        self._storage.new(account)
        self._storage.save()
        return account

    def set_password(self, account: Account, new_password: str) -> None:
        account.password_hash = hash_password(new_password)
        account.save()

    # password reset

    def set_reset_token(self, account: Account, token_hash: str, expires_at: datetime) -> None:
        """Record a reset token digest; any earlier outstanding token stops working."""
        account.reset_token_hash = token_hash
        account.reset_token_expires = expires_at
        account.save()

    def consume_reset_token(self, token_hash: str, now: datetime, new_password: str) -> Optional[str]:
        """
        Set a new password if token_hash names a live reset token, clearing it in
        the same statement so it works once. Returns the account id, or None.
        """
        account_id = self.session.execute(
            select(Account.id).where(
                Account.reset_token_hash == token_hash,
                Account.reset_token_expires > now,
                Account.is_active.is_(True),
            )
        ).scalar_one_or_none()
        if account_id is None:
            return None
        stmt = (
            update(Account)
            .where(Account.id == account_id, Account.reset_token_hash == token_hash)
            .values(
                password_hash=hash_password(new_password),
                reset_token_hash=None,
                reset_token_expires=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return account_id if self._execute(stmt) == 1 else None

    # refresh-token collection

    def append_refresh_token(self, account_id: str, token: str, jti: str, expires_at: datetime) -> None:
        self._storage.new(
            RefreshToken(account_id=account_id, token=token, jti=jti, expires_at=expires_at)
        )
        self._storage.save()

    def has_refresh_token(self, account_id: str, token: str) -> bool:
        stmt = select(
            exists().where(RefreshToken.account_id == account_id, RefreshToken.token == token)
        )
        return bool(self.session.execute(stmt).scalar())

    def replace_refresh_token(
        self, account_id: str, old_token: str, new_token: str, jti: str, expires_at: datetime
    ) -> bool:
        """Swap old_token for new_token in place; False when old_token was already gone."""
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.account_id == account_id, RefreshToken.token == old_token)
            .values(token=new_token, jti=jti, expires_at=expires_at, issued_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        replaced = self._execute(stmt)
        return replaced == 1

    def remove_refresh_token(self, token: str) -> int:
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.token == token)
            .execution_options(synchronize_session=False)
        )
        return self._execute(stmt)

    def remove_all_refresh_tokens(self, account_id: str) -> int:
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.account_id == account_id)
            .execution_options(synchronize_session=False)
        )
        return self._execute(stmt)

    def list_refresh_tokens(self, account_id: str) -> List[str]:
        stmt = (
            select(RefreshToken.token)
            .where(RefreshToken.account_id == account_id)
            .order_by(RefreshToken.issued_at, RefreshToken.id)
        )
        return list(self.session.execute(stmt).scalars())

    def _execute(self, stmt) -> int:
        session = self.session
        count = session.execute(stmt).rowcount or 0
        self._storage.save()
        # Bulk statements bypass the identity map; drop cached collections
        session.expire_all()
        return count


def expiry_datetime(timestamp: int) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)
