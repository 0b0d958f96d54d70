"""
Privilege guard: what an account-mutating endpoint may do to a given target.

The authorization layer decides who may call an endpoint at all; these checks
decide what that caller may do to a specific account. They hold for every
caller, superadmins included:

- a superadmin account only accepts password changes, made by a superadmin
- a superadmin's role never changes
- a superadmin account is never deleted or force-signed-out
- only a superadmin may promote an account to superadmin
- bulk listings and lookups never include superadmin accounts
"""
from __future__ import annotations

from typing import Any, Dict

from models.account import Account, ROLE_SUPERADMIN
from services.results import AuthError, Outcome

PASSWORD_FIELD = "new_password"


class PrivilegeGuard:
    def effective_changes(self, target: Account, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Drop fields whose value already matches the target."""
        effective = {}
        for key, value in changes.items():
            if key == PASSWORD_FIELD or getattr(target, key, None) != value:
                effective[key] = value
        return effective

    def check_update(self, target: Account, changes: Dict[str, Any], caller_role: str) -> Outcome[Dict[str, Any]]:
        effective = self.effective_changes(target, changes)
        if target.is_superadmin:
            if "role" in effective:
                return Outcome.fail(AuthError.PRIVILEGE_VIOLATION, "Cannot change role of a superadmin account")
            if set(effective) != {PASSWORD_FIELD}:
                return Outcome.fail(
                    AuthError.PRIVILEGE_VIOLATION,
                    "Only password updates are permitted for superadmin accounts",
                )
            if caller_role != ROLE_SUPERADMIN:
                return Outcome.fail(
                    AuthError.PRIVILEGE_VIOLATION,
                    "Only a superadmin may change a superadmin password",
                )
        elif effective.get("role") == ROLE_SUPERADMIN and caller_role != ROLE_SUPERADMIN:
            return Outcome.fail(AuthError.PRIVILEGE_VIOLATION, "Only a superadmin may grant the superadmin role")
        return Outcome.ok(effective)

    def check_delete(self, target: Account) -> Outcome[None]:
        if target.is_superadmin:
            return Outcome.fail(AuthError.PRIVILEGE_VIOLATION, "Superadmin accounts cannot be deleted")
        return Outcome.ok()

    def check_session_revocation(self, target: Account, caller_id: str) -> Outcome[None]:
        if target.is_superadmin and target.id != caller_id:
            return Outcome.fail(AuthError.PRIVILEGE_VIOLATION, "Superadmin sessions cannot be revoked by others")
        return Outcome.ok()

    @staticmethod
    def visible(query):
        """Restrict an Account query to accounts that management screens may show."""
        return query.filter(Account.role != ROLE_SUPERADMIN)
