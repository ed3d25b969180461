import types

import jwt
import pytest

from storefront.auth import service as svc
from storefront.auth.models import AuthResponse
from storefront.errors import AuthenticationError, GatewayError, ValidationError


def test_determine_role_from_metadata_or_admin_emails(monkeypatch):
    monkeypatch.setattr(svc.config, "ADMIN_EMAILS", ["boss@example.com"])
    assert svc.determine_role("x@example.com", {"role": "Admin"}) == "admin"
    assert svc.determine_role("Boss@Example.com", {}) == "admin"
    assert svc.determine_role("x@example.com", None) == "user"


def test_login_success(monkeypatch):
    calls = {}

    def fake_sign_in(email, password):
        calls["email"] = email
        user = types.SimpleNamespace(id="u1", email=email, user_metadata={"full_name": "U"})
        session = types.SimpleNamespace(access_token="t", refresh_token="r")
        return types.SimpleNamespace(user=user, session=session)

    monkeypatch.setattr(svc, "sign_in_password", fake_sign_in)

    res = svc.login(" user@example.com ", "pwd")
    assert res.success is True
    assert res.access_token == "t"
    assert res.user["id"] == "u1"
    assert calls["email"] == "user@example.com"


def test_login_failure_is_normalised(monkeypatch):
    def fake_sign_in(email, password):
        raise RuntimeError("Invalid login credentials")

    monkeypatch.setattr(svc, "sign_in_password", fake_sign_in)
    res = svc.login("x@y.z", "bad")
    assert res.success is False
    assert res.error


def test_get_user_from_token_via_supabase(monkeypatch):
    monkeypatch.setattr(svc.config, "SUPABASE_JWT_SECRET", "")
    monkeypatch.setattr(
        svc, "_repo_get_user_from_token",
        lambda token: {
            "id": "u1", "email": "u@example.com",
            "user_metadata": {"full_name": "U"}, "app_metadata": {"role": "admin"},
        },
    )
    user = svc.get_user_from_token("tok")
    assert user == {
        "id": "u1", "email": "u@example.com", "name": "U", "metadata": {"full_name": "U"},
        "role": "admin", "token": "tok",
    }


def test_get_user_from_token_verifies_jwt_locally(monkeypatch):
    secret = "test-secret-with-enough-length-for-hs256"
    monkeypatch.setattr(svc.config, "SUPABASE_JWT_SECRET", secret)
    token = jwt.encode({"sub": "u7", "email": "u7@example.com", "aud": "authenticated"}, secret, algorithm="HS256")

    user = svc.get_user_from_token(token)
    assert user["id"] == "u7"
    assert user["role"] == "user"


def test_resolve_identity_never_raises(monkeypatch):
    def boom(token):
        raise RuntimeError("expired")

    monkeypatch.setattr(svc.config, "SUPABASE_JWT_SECRET", "")
    monkeypatch.setattr(svc, "_repo_get_user_from_token", boom)
    assert svc.resolve_identity("expired-token") is None
    assert svc.resolve_identity(None) is None
    assert svc.resolve_identity("") is None


def test_resolve_identity_returns_user_id(monkeypatch):
    monkeypatch.setattr(svc.config, "SUPABASE_JWT_SECRET", "")
    monkeypatch.setattr(svc, "_repo_get_user_from_token", lambda t: {"id": "u1", "email": "u@x.y"})
    assert svc.resolve_identity("tok") == "u1"


def test_user_metadata_cannot_grant_admin(monkeypatch):
    monkeypatch.setattr(svc.config, "ADMIN_EMAILS", [])
    user = svc.build_user_dict({"id": "u1", "email": "u@x.y", "user_metadata": {"role": "admin"}})
    assert user["role"] == "user"


class _GoTrueResp:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body or {}
        self.text = str(body)

    def json(self):
        return self._body


def test_signup_with_immediate_session(monkeypatch):
    calls = {}

    def fake_sign_up(email, password, options_data=None, email_redirect_to=None):
        calls.update(email=email, options_data=options_data)
        user = types.SimpleNamespace(id="u9", email=email, user_metadata=options_data, identities=[{"id": "i"}])
        session = types.SimpleNamespace(access_token="t9", refresh_token="r9")
        return types.SimpleNamespace(user=user, session=session)

    monkeypatch.setattr(svc, "sign_up_account", fake_sign_up)
    res = svc.signup(" New@Example.com ", "secret1", " Alice ")

    assert res.success is True
    assert res.access_token == "t9"
    assert res.user["name"] == "Alice"
    assert res.user["role"] == "user"
    assert calls == {"email": "new@example.com", "options_data": {"full_name": "Alice"}}


def test_signup_pending_email_confirmation(monkeypatch):
    monkeypatch.setattr(
        svc, "sign_up_account",
        lambda **kw: types.SimpleNamespace(
            user=types.SimpleNamespace(id="u9", email=kw["email"], user_metadata={}, identities=[{"id": "i"}]),
            session=None,
        ),
    )
    res = svc.signup("new@example.com", "secret1", "Alice")
    assert res.success is True
    assert res.access_token is None
    assert "email" in res.message


def test_signup_rejects_invalid_input(monkeypatch):
    monkeypatch.setattr(svc, "sign_up_account", lambda **kw: pytest.fail("ne doit pas appeler Supabase"))
    with pytest.raises(ValidationError):
        svc.signup("a@b.c", "12345", "Alice")
    with pytest.raises(ValidationError):
        svc.signup("a@b.c", "secret1", "   ")


def test_signup_existing_email(monkeypatch):
    def already(**kw):
        raise RuntimeError("User already registered")

    monkeypatch.setattr(svc, "sign_up_account", already)
    with pytest.raises(ValidationError):
        svc.signup("a@b.c", "secret1", "Alice")

    monkeypatch.setattr(
        svc, "sign_up_account",
        lambda **kw: types.SimpleNamespace(
            user=types.SimpleNamespace(id="u1", email="a@b.c", user_metadata={}, identities=[]), session=None,
        ),
    )
    with pytest.raises(ValidationError):
        svc.signup("a@b.c", "secret1", "Alice")


def test_signup_auth_service_down(monkeypatch):
    def down(**kw):
        raise RuntimeError("connection refused")

    monkeypatch.setattr(svc, "sign_up_account", down)
    with pytest.raises(GatewayError):
        svc.signup("a@b.c", "secret1", "Alice")


def test_update_profile_sends_full_name(monkeypatch):
    sent = {}

    def fake_update(token, attributes):
        sent.update(token=token, attributes=attributes)
        return _GoTrueResp(200, {"id": "u1", "email": "u@x.y", "user_metadata": {"full_name": "Bob"}})

    monkeypatch.setattr(svc, "_repo_update_user", fake_update)
    user = svc.update_profile({"id": "u1", "token": "tok"}, " Bob ")

    assert sent == {"token": "tok", "attributes": {"data": {"full_name": "Bob"}}}
    assert user["name"] == "Bob"


def test_update_profile_requires_name():
    with pytest.raises(ValidationError):
        svc.update_profile({"id": "u1", "token": "tok"}, "")


def test_change_password_checks_current_password(monkeypatch):
    updates = []
    monkeypatch.setattr(svc, "login", lambda email, password: AuthResponse(password == "old-pass"))
    monkeypatch.setattr(svc, "_repo_update_user", lambda token, attrs: updates.append(attrs) or _GoTrueResp(200))
    user = {"id": "u1", "email": "u@x.y", "token": "tok"}

    with pytest.raises(AuthenticationError):
        svc.change_password(user, "wrong", "new-pass")
    assert updates == []

    svc.change_password(user, "old-pass", "new-pass")
    assert updates == [{"password": "new-pass"}]


def test_change_password_rejects_short_or_refused(monkeypatch):
    monkeypatch.setattr(svc, "login", lambda email, password: AuthResponse(True))
    user = {"id": "u1", "email": "u@x.y", "token": "tok"}
    with pytest.raises(ValidationError):
        svc.change_password(user, "old-pass", "123")

    monkeypatch.setattr(svc, "_repo_update_user", lambda token, attrs: _GoTrueResp(422, {"msg": "weak password"}))
    with pytest.raises(ValidationError) as exc:
        svc.change_password(user, "old-pass", "new-pass")
    assert "weak password" in exc.value.message
