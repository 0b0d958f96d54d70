import pytest
from flask import Blueprint, Flask

from api import _audit_endpoint_policies
from conftest import API, bearer, login
from utils.decorators import public_endpoint, roles_required


@pytest.fixture
def admin(client, superadmin):
    resp = client.post(
        f"{API}/superadmin/admins",
        headers=bearer(superadmin["access_token"]),
        json={"name": "Ada Admin", "email": "ada@x.com", "password": "admin-pw-123"},
    )
    assert resp.status_code == 201
    assert resp.get_json()["data"]["role"] == "admin"
    return login(client, "ada@x.com", "admin-pw-123").get_json()


@pytest.fixture
def fan(client, make_account):
    make_account("fan@x.com", name="Fan Person")
    return login(client, "fan@x.com").get_json()


class TestSuperadminInit:
    def test_init_once(self, client):
        assert client.get(f"{API}/superadmin/init").get_json() == {"exists": False}
        resp = client.post(f"{API}/superadmin/init")
        assert resp.status_code == 201
        assert resp.get_json()["email"] == "root@celebritypersona.test"
        assert client.get(f"{API}/superadmin/init").get_json() == {"exists": True}
        assert client.post(f"{API}/superadmin/init").status_code == 409

    def test_profile_is_superadmin_only(self, client, superadmin, fan):
        resp = client.get(f"{API}/superadmin/profile", headers=bearer(superadmin["access_token"]))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["role"] == "superadmin"
        assert client.get(f"{API}/superadmin/profile", headers=bearer(fan["access_token"])).status_code == 403

    def test_admin_cannot_create_admins(self, client, admin):
        resp = client.post(
            f"{API}/superadmin/admins",
            headers=bearer(admin["access_token"]),
            json={"name": "Other Admin", "email": "other@x.com", "password": "admin-pw-123"},
        )
        assert resp.status_code == 403

    def test_duplicate_admin_email_is_409(self, client, superadmin, fan):
        resp = client.post(
            f"{API}/superadmin/admins",
            headers=bearer(superadmin["access_token"]),
            json={"name": "Fan Again", "email": "fan@x.com", "password": "admin-pw-123"},
        )
        assert resp.status_code == 409


class TestListing:
    def test_listing_never_includes_superadmin(self, client, admin, fan):
        resp = client.get(f"{API}/users", headers=bearer(admin["access_token"]))
        assert resp.status_code == 200
        body = resp.get_json()
        roles = {row["role"] for row in body["data"]}
        assert roles == {"admin", "user"}
        assert body["meta"]["total"] == 2

    def test_superadmin_does_not_see_itself_either(self, client, superadmin, fan):
        body = client.get(f"{API}/users", headers=bearer(superadmin["access_token"])).get_json()
        assert [row["email"] for row in body["data"]] == ["fan@x.com"]

    def test_role_filter_and_search(self, client, admin, fan):
        headers = bearer(admin["access_token"])
        by_role = client.get(f"{API}/users?role=user", headers=headers).get_json()
        assert [row["email"] for row in by_role["data"]] == ["fan@x.com"]
        by_name = client.get(f"{API}/users?q=ada", headers=headers).get_json()
        assert [row["email"] for row in by_name["data"]] == ["ada@x.com"]

    def test_search_wildcards_match_literally(self, client, admin, fan, make_account):
        make_account("under_score@x.com", name="Under Score")
        headers = bearer(admin["access_token"])

        def search(q):
            body = client.get(f"{API}/users", query_string={"q": q}, headers=headers).get_json()
            return [row["email"] for row in body["data"]]

        assert search("_") == ["under_score@x.com"]
        assert search("%") == []
        assert search("\\") == []
        assert search("fan") == ["fan@x.com"]

    def test_superadmin_role_filter_is_rejected(self, client, admin):
        resp = client.get(f"{API}/users?role=superadmin", headers=bearer(admin["access_token"]))
        assert resp.status_code == 422

    def test_pagination(self, client, admin, make_account):
        for i in range(3):
            make_account(f"fan{i}@x.com")
        body = client.get(f"{API}/users?limit=2&page=2", headers=bearer(admin["access_token"])).get_json()
        assert body["meta"] == {"page": 2, "limit": 2, "total": 4}
        assert len(body["data"]) == 2

    def test_bad_pagination_is_400(self, client, admin):
        assert client.get(f"{API}/users?page=x", headers=bearer(admin["access_token"])).status_code == 400

    def test_get_superadmin_by_id_is_404(self, client, admin, superadmin):
        resp = client.get(f"{API}/users/{superadmin['data']['id']}", headers=bearer(admin["access_token"]))
        assert resp.status_code == 404

    def test_get_user_by_id(self, client, admin, fan):
        resp = client.get(f"{API}/users/{fan['data']['id']}", headers=bearer(admin["access_token"]))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["name"] == "Fan Person"


class TestSuperadminProtection:
    @pytest.mark.parametrize("body", [{"name": "Renamed"}, {"is_active": False}, {"email": "new@x.com"}])
    def test_admin_cannot_modify_superadmin(self, client, admin, superadmin, body):
        resp = client.put(
            f"{API}/users/{superadmin['data']['id']}", headers=bearer(admin["access_token"]), json=body
        )
        assert resp.status_code == 403

    def test_superadmin_role_never_changes(self, client, superadmin):
        resp = client.put(
            f"{API}/users/{superadmin['data']['id']}",
            headers=bearer(superadmin["access_token"]),
            json={"role": "admin"},
        )
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Cannot change role of a superadmin account"

    def test_superadmin_may_change_own_password(self, app, client, superadmin):
        resp = client.put(
            f"{API}/users/{superadmin['data']['id']}",
            headers=bearer(superadmin["access_token"]),
            json={"new_password": "fresh-root-pw-1"},
        )
        assert resp.status_code == 200
        assert login(client, app.config["SUPERADMIN_EMAIL"], "fresh-root-pw-1").status_code == 200

    def test_admin_cannot_reset_superadmin_password(self, client, admin, superadmin):
        resp = client.put(
            f"{API}/users/{superadmin['data']['id']}",
            headers=bearer(admin["access_token"]),
            json={"new_password": "hijacked-pw-1"},
        )
        assert resp.status_code == 403

    @pytest.mark.parametrize("caller", ["admin", "superadmin"])
    def test_superadmin_cannot_be_deleted(self, client, admin, superadmin, caller):
        token = (admin if caller == "admin" else superadmin)["access_token"]
        resp = client.delete(f"{API}/users/{superadmin['data']['id']}", headers=bearer(token))
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Superadmin accounts cannot be deleted"

    def test_admin_cannot_promote_to_superadmin(self, client, admin, fan):
        resp = client.put(
            f"{API}/users/{fan['data']['id']}", headers=bearer(admin["access_token"]), json={"role": "superadmin"}
        )
        assert resp.status_code == 403


class TestManagingUsers:
    def test_update_user(self, client, admin, fan):
        resp = client.put(
            f"{API}/users/{fan['data']['id']}",
            headers=bearer(admin["access_token"]),
            json={"name": "Renamed Fan", "role": "admin"},
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["name"] == "Renamed Fan"
        assert resp.get_json()["data"]["role"] == "admin"

    def test_email_taken_is_409(self, client, admin, fan):
        resp = client.put(
            f"{API}/users/{fan['data']['id']}", headers=bearer(admin["access_token"]), json={"email": "ADA@x.com"}
        )
        assert resp.status_code == 409

    def test_deactivation_cuts_access_immediately(self, client, admin, fan):
        client.put(f"{API}/users/{fan['data']['id']}", headers=bearer(admin["access_token"]), json={"is_active": False})
        resp = client.put(f"{API}/auth/password", headers=bearer(fan["access_token"]), json={})
        assert resp.status_code == 401
        assert client.post(f"{API}/auth/refresh", json={"refresh_token": fan["refresh_token"]}).status_code == 401

    def test_delete_user(self, client, admin, fan):
        resp = client.delete(f"{API}/users/{fan['data']['id']}", headers=bearer(admin["access_token"]))
        assert resp.status_code == 204
        assert login(client, "fan@x.com").status_code == 401
        assert client.post(f"{API}/auth/refresh", json={"refresh_token": fan["refresh_token"]}).status_code == 401

    def test_unknown_account_is_404(self, client, admin):
        assert client.delete(f"{API}/users/no-such-id", headers=bearer(admin["access_token"])).status_code == 404


class TestRevokeSessions:
    def test_superadmin_signs_user_out_everywhere(self, client, superadmin, fan):
        second = login(client, "fan@x.com").get_json()
        resp = client.post(
            f"{API}/users/{fan['data']['id']}/revoke-sessions", headers=bearer(superadmin["access_token"])
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["revoked"] == 2
        for session in (fan, second):
            assert client.post(f"{API}/auth/refresh", json={"refresh_token": session["refresh_token"]}).status_code == 401

    def test_admin_may_not_revoke_sessions(self, client, admin, fan):
        resp = client.post(f"{API}/users/{fan['data']['id']}/revoke-sessions", headers=bearer(admin["access_token"]))
        assert resp.status_code == 403


class TestHealthAndAudit:
    def test_health(self, client):
        resp = client.get(f"{API}/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok", "database": "ok"}

    def test_every_endpoint_declares_a_policy(self, app):
        from utils.decorators import POLICY_ATTR

        project = {"health", "auth", "users", "superadmin"}
        for endpoint, view in app.view_functions.items():
            if endpoint.split(".", 1)[0] in project and "." in endpoint:
                assert getattr(view, POLICY_ATTR, None) is not None, endpoint

    def test_undeclared_endpoint_refuses_to_start(self):
        app = Flask(__name__)
        bp = Blueprint("extra", __name__)

        @bp.get("/open")
        @public_endpoint
        def open_view():
            return "ok"

        @bp.get("/guarded")
        @roles_required(["admin"])
        def guarded_view():
            return "ok"

        @bp.get("/forgotten")
        def forgotten_view():
            return "oops"

        app.register_blueprint(bp)
        with pytest.raises(RuntimeError, match="extra.forgotten_view"):
            _audit_endpoint_policies(app, {"extra"})
