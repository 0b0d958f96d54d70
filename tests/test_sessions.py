"""Service-level tests for login, refresh and revocation."""
from datetime import timedelta

import pytest

from conftest import PASSWORD
from services.results import AuthError, GENERIC_AUTH_MESSAGE


@pytest.fixture
def account(services):
    return services.store.create_account(email="User@X.com ", password=PASSWORD, name="Una User")


def test_email_is_normalized_on_create(account):
    assert account.email == "user@x.com"


def test_login_then_refresh_carries_account_role(services, account):
    outcome = services.issuer.login("user@x.com", PASSWORD)
    assert outcome

    renewed = services.rotator.refresh(outcome.value.refresh_token)
    assert renewed
    claims = services.issuer.access_codec.verify(renewed.value.access_token)
    assert claims.subject == account.id
    assert claims.role == "user"


def test_login_accepts_unnormalized_email(services, account):
    assert services.issuer.login("  USER@x.com", PASSWORD)


def test_login_records_one_refresh_token_per_login(services, account):
    first = services.issuer.login("user@x.com", PASSWORD).value
    second = services.issuer.login("user@x.com", PASSWORD).value
    assert first.refresh_token != second.refresh_token
    assert services.store.list_refresh_tokens(account.id) == [first.refresh_token, second.refresh_token]


def test_login_stamps_last_login(services, account):
    services.issuer.login("user@x.com", PASSWORD)
    assert services.store.get(account.id).last_login is not None


def test_unknown_email_and_wrong_password_look_the_same(services, account):
    unknown = services.issuer.login("nobody@x.com", PASSWORD)
    wrong = services.issuer.login("user@x.com", "wrong-password")
    assert unknown.error is wrong.error is AuthError.INVALID_CREDENTIALS
    assert unknown.message == wrong.message == GENERIC_AUTH_MESSAGE
    assert unknown.reason != wrong.reason


def test_disabled_account_cannot_login(services):
    services.store.create_account(email="off@x.com", password=PASSWORD, is_active=False)
    outcome = services.issuer.login("off@x.com", PASSWORD)
    assert outcome.error is AuthError.ACCOUNT_DISABLED
    assert outcome.message == GENERIC_AUTH_MESSAGE
    assert outcome.error.status == 401


def test_logout_then_refresh_is_invalid_session(services, account):
    grant = services.issuer.login("user@x.com", PASSWORD).value
    assert services.rotator.revoke(grant.refresh_token) == 1

    outcome = services.rotator.refresh(grant.refresh_token)
    assert outcome.error is AuthError.INVALID_SESSION
    assert outcome.reason == "refresh_token_revoked"


def test_logout_twice_is_harmless(services, account):
    grant = services.issuer.login("user@x.com", PASSWORD).value
    assert services.rotator.revoke(grant.refresh_token) == 1
    assert services.rotator.revoke(grant.refresh_token) == 0
    assert services.rotator.revoke(None) == 0


def test_revoking_one_device_leaves_the_other(services, account):
    phone = services.issuer.login("user@x.com", PASSWORD).value
    laptop = services.issuer.login("user@x.com", PASSWORD).value

    services.rotator.revoke(phone.refresh_token)

    assert services.rotator.refresh(laptop.refresh_token)
    assert not services.rotator.refresh(phone.refresh_token)
    assert services.store.list_refresh_tokens(account.id) == [laptop.refresh_token]


def test_revoke_all_signs_out_everywhere(services, account):
    grants = [services.issuer.login("user@x.com", PASSWORD).value for _ in range(3)]
    assert services.rotator.revoke_all(account.id) == 3
    for grant in grants:
        assert services.rotator.refresh(grant.refresh_token).error is AuthError.INVALID_SESSION


def test_refresh_one_second_before_expiry_is_accepted(services, account, clock):
    grant = services.issuer.login("user@x.com", PASSWORD).value
    clock.advance(services.issuer.refresh_ttl.total_seconds() - 1)
    assert services.rotator.refresh(grant.refresh_token)


def test_refresh_at_expiry_is_rejected(services, account, clock):
    grant = services.issuer.login("user@x.com", PASSWORD).value
    clock.advance(services.issuer.refresh_ttl.total_seconds())
    outcome = services.rotator.refresh(grant.refresh_token)
    assert outcome.error is AuthError.INVALID_SESSION
    assert outcome.reason == "refresh_TokenExpired"


def test_access_token_is_not_a_refresh_token(services, account):
    grant = services.issuer.login("user@x.com", PASSWORD).value
    assert services.rotator.refresh(grant.access_token).error is AuthError.INVALID_SESSION


def test_refresh_for_deactivated_account_fails(services, account):
    grant = services.issuer.login("user@x.com", PASSWORD).value
    account.is_active = False
    account.save()
    outcome = services.rotator.refresh(grant.refresh_token)
    assert outcome.error is AuthError.INVALID_SESSION
    assert outcome.reason == "account_inactive"


def test_refresh_for_deleted_account_fails(services, account):
    grant = services.issuer.login("user@x.com", PASSWORD).value
    account.delete()
    services.store.session.commit()
    assert services.rotator.refresh(grant.refresh_token).reason == "account_missing"


def test_missing_refresh_token(services):
    assert services.rotator.refresh(None).reason == "missing_refresh_token"


def test_access_token_ttl_is_short(services):
    assert services.issuer.access_ttl <= timedelta(minutes=15)


class TestRotation:
    @pytest.fixture(autouse=True)
    def rotating(self, services):
        services.rotator.rotate = True
        yield
        services.rotator.rotate = False

    def test_rotation_replaces_stored_token(self, services, account):
        grant = services.issuer.login("user@x.com", PASSWORD).value
        renewed = services.rotator.refresh(grant.refresh_token).value

        assert renewed.refresh_token and renewed.refresh_token != grant.refresh_token
        assert services.store.list_refresh_tokens(account.id) == [renewed.refresh_token]

    def test_replayed_token_fails_after_rotation(self, services, account):
        grant = services.issuer.login("user@x.com", PASSWORD).value
        renewed = services.rotator.refresh(grant.refresh_token).value

        assert services.rotator.refresh(grant.refresh_token).error is AuthError.INVALID_SESSION
        assert services.rotator.refresh(renewed.refresh_token)

    def test_lost_replace_race_is_invalid_session(self, services, account, monkeypatch):
        grant = services.issuer.login("user@x.com", PASSWORD).value
        # Another device signs this token out between the presence check and the swap
        original = services.store.replace_refresh_token

        def racing_replace(*args, **kwargs):
            services.store.remove_refresh_token(grant.refresh_token)
            return original(*args, **kwargs)

        monkeypatch.setattr(services.store, "replace_refresh_token", racing_replace)
        outcome = services.rotator.refresh(grant.refresh_token)
        assert outcome.reason == "refresh_token_replaced"
        assert services.store.list_refresh_tokens(account.id) == []
