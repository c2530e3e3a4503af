"""Local account API tests.

Learn: Tests cover:
1. Registration + duplicate prevention + verification email
2. Login refused until the email is verified (403 + code)
3. Email verification with the mailed token
4. Protected /me endpoint with the local JWT
5. Verification tokens are never accepted as login tokens
"""

import re
import uuid

import pytest

VERIFY_LINK = re.compile(r"/profile/verification\?token=([A-Za-z0-9_\-.]+)")


def _register_body(email=None, **extra):
    return {
        "fullName": "Test User",
        "email": email or f"test-{uuid.uuid4().hex[:8]}@example.com",
        "password": "secure_password_123",
        **extra,
    }


def _mailed_token(mailer, email):
    message = next(m for m in reversed(mailer.sent) if m.to == email)
    return VERIFY_LINK.search(message.html_body).group(1)


async def _verified_login(client, mailer, email, password="secure_password_123"):
    await client.post("/api/users/register", json=_register_body(email))
    await client.post("/api/users/verify-email", json={"token": _mailed_token(mailer, email)})
    r = await client.post("/api/users/login", json={"email": email, "password": password})
    assert r.status_code == 200
    return r.json()["token"]


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client, mailer, fetch_user):
    """Register a new account; a verification link is mailed."""
    body = _register_body("ana@example.com", fullName="Ana Souza")
    r = await client.post("/api/users/register", json=body)

    assert r.status_code == 201
    assert r.json()["success"] is True
    assert r.json()["emailSent"] is True

    user = await fetch_user("ana@example.com")
    assert user.username == "ana-souza"
    assert user.email_verified is False
    assert user.password_hash.startswith("$2")

    assert len(mailer.sent) == 1
    email = mailer.sent[0]
    assert email.to == "ana@example.com"
    assert email.subject == "Verify your email - Portal PM"
    assert "https://portal.test/profile/verification?token=" in email.html_body
    assert "Ana Souza" in email.html_body


@pytest.mark.asyncio
async def test_register_allocates_free_username(client, fetch_user):
    await client.post("/api/users/register", json=_register_body(fullName="Ana"))
    await client.post(
        "/api/users/register", json=_register_body("ana2@example.com", fullName="Ana")
    )

    assert (await fetch_user("ana2@example.com")).username == "ana-1"


@pytest.mark.asyncio
async def test_register_with_explicit_username(client, fetch_user):
    r = await client.post(
        "/api/users/register", json=_register_body("ana@example.com", username="Ana.S")
    )
    assert r.status_code == 201
    assert (await fetch_user("ana@example.com")).username == "ana-s"


@pytest.mark.asyncio
async def test_register_taken_username(client):
    await client.post("/api/users/register", json=_register_body(username="ana"))

    r = await client.post("/api/users/register", json=_register_body(username="ana"))

    assert r.status_code == 409
    assert r.json() == {"success": False, "message": "Email or username already registered."}


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    """Can't register with the same email twice."""
    body = _register_body()

    r1 = await client.post("/api/users/register", json=body)
    assert r1.status_code == 201

    r2 = await client.post("/api/users/register", json=body)
    assert r2.status_code == 409
    assert r2.json()["success"] is False


@pytest.mark.asyncio
async def test_register_short_password(client):
    """Password must be at least 8 characters."""
    r = await client.post("/api/users/register", json=_register_body(password="abc"))

    assert r.status_code == 400
    assert r.json()["success"] is False
    assert "password" in r.json()["message"]


@pytest.mark.asyncio
async def test_register_missing_fields(client):
    r = await client.post("/api/users/register", json={"email": "a@example.com"})

    assert r.status_code == 400
    assert r.json()["success"] is False


@pytest.mark.asyncio
async def test_register_email_failure(client, mailer, fetch_user):
    """The account exists even when the verification email can't be sent."""
    mailer.fail = True

    r = await client.post("/api/users/register", json=_register_body("ana@example.com"))

    assert r.status_code == 500
    assert r.json()["success"] is False
    assert "verification email" in r.json()["message"]
    assert await fetch_user("ana@example.com") is not None


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_unverified(client):
    body = _register_body()
    await client.post("/api/users/register", json=body)

    r = await client.post(
        "/api/users/login", json={"email": body["email"], "password": body["password"]}
    )

    assert r.status_code == 403
    assert r.json()["code"] == "EMAIL_NOT_VERIFIED"
    assert r.json()["success"] is False


@pytest.mark.asyncio
async def test_login_success(client, mailer, tokens):
    """Login after verification returns the user and a local JWT."""
    token = await _verified_login(client, mailer, "login@example.com")

    claims = tokens.verify(token)
    assert claims.email == "login@example.com"
    assert claims.username == "test-user"


@pytest.mark.asyncio
async def test_login_response_shape(client, mailer):
    await _verified_login(client, mailer, "shape@example.com")

    r = await client.post(
        "/api/users/login",
        json={"email": "shape@example.com", "password": "secure_password_123"},
    )
    user = r.json()["user"]
    assert user["email"] == "shape@example.com"
    assert user["fullName"] == "Test User"
    assert user["emailVerified"] is True
    assert "passwordHash" not in user
    assert "password_hash" not in user


@pytest.mark.asyncio
async def test_login_wrong_password(client, mailer):
    """Login with wrong password returns 401."""
    await _verified_login(client, mailer, "wrong@example.com")

    r = await client.post(
        "/api/users/login", json={"email": "wrong@example.com", "password": "nope-nope"}
    )
    assert r.status_code == 401
    assert r.json() == {"success": False, "message": "Invalid credentials."}


@pytest.mark.asyncio
async def test_login_nonexistent_user(client):
    """Login with nonexistent email returns 401."""
    r = await client.post(
        "/api/users/login", json={"email": "nobody@example.com", "password": "whatever"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_federated_account_cannot_password_login(client, provider):
    provider.add_google_account("tok", email="fed@example.com")
    await client.post("/api/auth/login/google", json={"idToken": "tok"})

    r = await client.post(
        "/api/users/login", json={"email": "fed@example.com", "password": "federated"}
    )
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Email verification
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_verify_email(client, mailer, fetch_user):
    body = _register_body("verify@example.com")
    await client.post("/api/users/register", json=body)

    r = await client.post(
        "/api/users/verify-email", json={"token": _mailed_token(mailer, "verify@example.com")}
    )

    assert r.status_code == 200
    assert (await fetch_user("verify@example.com")).email_verified is True


@pytest.mark.asyncio
async def test_verify_email_rejects_access_token(client, mailer):
    token = await _verified_login(client, mailer, "swap@example.com")

    r = await client.post("/api/users/verify-email", json={"token": token})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_verify_email_invalid_token(client):
    r = await client.post("/api/users/verify-email", json={"token": "not-a-token"})

    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "Invalid or expired token."}


@pytest.mark.asyncio
async def test_verify_email_unknown_user(client, tokens):
    token = tokens.issue_verification(uuid.uuid4(), "ghost@example.com")

    r = await client.post("/api/users/verify-email", json={"token": token})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_resend_verification(client, mailer):
    body = _register_body("resend@example.com")
    await client.post("/api/users/register", json=body)

    r = await client.post("/api/users/send-verification", json={"email": "resend@example.com"})

    assert r.status_code == 200
    assert len([m for m in mailer.sent if m.to == "resend@example.com"]) == 2


@pytest.mark.asyncio
async def test_resend_verification_unknown(client):
    r = await client.post("/api/users/send-verification", json={"email": "nobody@example.com"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_resend_verification_already_verified(client, mailer):
    await _verified_login(client, mailer, "done@example.com")

    r = await client.post("/api/users/send-verification", json={"email": "done@example.com"})
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Protected Endpoint (/me)
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_with_token(client, mailer):
    """register → verify → login → use JWT → /me returns the identity."""
    token = await _verified_login(client, mailer, "me@example.com")

    r = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

    assert r.status_code == 200
    user = r.json()["user"]
    assert user["email"] == "me@example.com"
    assert user["username"] == "test-user"
    assert uuid.UUID(user["id"])


@pytest.mark.asyncio
async def test_me_without_token(client):
    r = await client.get("/api/users/me")

    assert r.status_code == 401
    assert r.json() == {"success": False, "message": "Token not provided."}


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Token abc", "bearer-abc", "Basic abc"])
async def test_me_requires_bearer_scheme(client, header):
    r = await client.get("/api/users/me", headers={"Authorization": header})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_invalid_token(client):
    r = await client.get("/api/users/me", headers={"Authorization": "Bearer garbage"})

    assert r.status_code == 401
    assert r.json() == {"success": False, "message": "Invalid or expired token."}


@pytest.mark.asyncio
async def test_me_rejects_verification_token(client, tokens):
    """A mailed verification token is never a login token."""
    token = tokens.issue_verification(uuid.uuid4(), "ana@example.com")

    r = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_rejects_provider_session_token(client, provider):
    """Provider session tokens and local tokens are not interchangeable."""
    provider.add_session("provider-session")

    r = await client.get("/api/users/me", headers={"Authorization": "Bearer provider-session"})
    assert r.status_code == 401
