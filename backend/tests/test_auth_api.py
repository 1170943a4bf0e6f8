"""Auth API: registration, login, email verification and password reset."""

from datetime import datetime, timedelta
from urllib.parse import parse_qs, urlparse

from sqlalchemy import update

from conftest import API, PASSWORD, auth_headers
from marketplace.models.user import AuthToken, User


def token_from(notification, key):
    return parse_qs(urlparse(notification.data[key]).query)["token"][0]


async def register(client, email="new.owner@example.com", password="s3cret-pass"):
    return await client.post(
        f"{API}/auth/register",
        json={"email": email, "password": password, "full_name": "New Owner"},
    )


class TestRegisterAndLogin:
    async def test_register_creates_unverified_user_and_sends_link(self, client, dispatcher):
        response = await register(client, email="New.Owner@Example.com")

        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "new.owner@example.com"
        assert body["role"] == "user"
        assert body["email_verified"] is False
        assert "hashed_password" not in body

        assert dispatcher.kinds() == ["verify_email"]
        assert dispatcher.sent[0].recipient == "new.owner@example.com"
        assert dispatcher.sent[0].data["verify_url"].startswith("https://homes.example.com/")

    async def test_duplicate_email_conflicts(self, client):
        await register(client)

        response = await register(client)

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    async def test_short_password_rejected(self, client):
        response = await register(client, password="short")

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    async def test_login_returns_token_usable_on_me(self, client, owner):
        response = await client.post(f"{API}/auth/login", json={"email": owner.email, "password": PASSWORD})

        assert response.status_code == 200
        token = response.json()["token"]
        assert response.json()["token_type"] == "bearer"

        me = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["id"] == owner.id
        assert me.json()["email_verified"] is True

    async def test_oauth2_form_login(self, client, owner):
        response = await client.post(
            f"{API}/auth/token",
            data={"username": owner.email, "password": PASSWORD},
        )

        assert response.status_code == 200
        assert response.json()["access_token"]

    async def test_wrong_password_is_unauthenticated(self, client, owner):
        response = await client.post(f"{API}/auth/login", json={"email": owner.email, "password": "nope-nope"})

        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_me_requires_token(self, client):
        response = await client.get(f"{API}/auth/me")

        assert response.status_code == 401

    async def test_inactive_user_token_rejected(self, client, owner, owner_headers, session_factory):
        async with session_factory() as session:
            user = await session.get(User, owner.id)
            user.is_active = False
            await session.commit()

        response = await client.get(f"{API}/auth/me", headers=owner_headers)

        assert response.status_code == 401


class TestEmailVerification:
    async def test_verify_email_token_is_single_use(self, client, dispatcher):
        await register(client)
        token = token_from(dispatcher.sent[0], "verify_url")

        first = await client.post(f"{API}/auth/verify-email", json={"token": token})
        second = await client.post(f"{API}/auth/verify-email", json={"token": token})

        assert first.status_code == 200
        assert first.json()["email_verified"] is True
        assert second.status_code == 400
        assert second.json()["error"] == "validation_error"

    async def test_unknown_token_rejected(self, client):
        response = await client.post(f"{API}/auth/verify-email", json={"token": "made-up"})

        assert response.status_code == 400

    async def test_expired_token_rejected(self, client, dispatcher, session_factory):
        await register(client)
        token = token_from(dispatcher.sent[0], "verify_url")
        async with session_factory() as session:
            await session.execute(
                update(AuthToken).values(expires_at=datetime.utcnow() - timedelta(minutes=1))
            )
            await session.commit()

        response = await client.post(f"{API}/auth/verify-email", json={"token": token})

        assert response.status_code == 400

    async def test_verification_unlocks_submit(self, client, dispatcher, unverified_user):
        headers = auth_headers(unverified_user)

        requested = await client.post(f"{API}/auth/request-email-verify", headers=headers)
        assert requested.status_code == 200
        token = token_from(dispatcher.sent[-1], "verify_url")

        await client.post(f"{API}/auth/verify-email", json={"token": token})

        me = await client.get(f"{API}/auth/me", headers=headers)
        assert me.json()["email_verified"] is True

    async def test_request_verify_when_already_verified_is_noop(self, client, dispatcher, owner_headers):
        response = await client.post(f"{API}/auth/request-email-verify", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert dispatcher.sent == []


class TestPasswordReset:
    async def test_forgot_password_does_not_disclose_accounts(self, client, dispatcher, owner):
        known = await client.post(f"{API}/auth/password/forgot", json={"email": owner.email})
        unknown = await client.post(f"{API}/auth/password/forgot", json={"email": "ghost@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert dispatcher.kinds() == ["password_reset"]
        assert dispatcher.sent[0].recipient == owner.email

    async def test_reset_password_flow(self, client, dispatcher, owner):
        await client.post(f"{API}/auth/password/forgot", json={"email": owner.email})
        token = token_from(dispatcher.sent[0], "reset_url")

        reset = await client.post(
            f"{API}/auth/password/reset",
            json={"token": token, "password": "brand-new-pass"},
        )
        assert reset.status_code == 200

        old = await client.post(f"{API}/auth/login", json={"email": owner.email, "password": PASSWORD})
        new = await client.post(f"{API}/auth/login", json={"email": owner.email, "password": "brand-new-pass"})
        assert old.status_code == 401
        assert new.status_code == 200

        reused = await client.post(
            f"{API}/auth/password/reset",
            json={"token": token, "password": "another-pass"},
        )
        assert reused.status_code == 400

    async def test_verify_token_cannot_reset_password(self, client, dispatcher):
        await register(client)
        token = token_from(dispatcher.sent[0], "verify_url")

        response = await client.post(
            f"{API}/auth/password/reset",
            json={"token": token, "password": "brand-new-pass"},
        )

        assert response.status_code == 400
