"""
API Tests for authentication and password reset
"""
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from dataconfirm.core.security import create_password_reset_token, create_refresh_token, build_token_claims, hash_reset_token
from dataconfirm.models.user import User

BASE = "/api/v1/auth"


class TestRegister:

    async def test_register_agency_user(self, client: AsyncClient):
        response = await client.post(f"{BASE}/register", json={
            "email": "Pegawai@JPA.gov.my",
            "password": "kataLaluan123",
            "full_name": "Siti Aminah",
            "agency": "Jabatan Perkhidmatan Awam",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "pegawai@jpa.gov.my"
        assert data["role"] == "agency"
        assert "hashed_password" not in data

    async def test_register_duplicate_email(self, client: AsyncClient, agency_user: User):
        response = await client.post(f"{BASE}/register", json={
            "email": agency_user.email,
            "password": "kataLaluan123",
            "full_name": "Another",
            "agency": "Jabatan Perkhidmatan Awam",
        })

        assert response.status_code == 400

    async def test_register_short_password(self, client: AsyncClient):
        response = await client.post(f"{BASE}/register", json={
            "email": "a@jpa.gov.my",
            "password": "short",
            "full_name": "A",
            "agency": "Jabatan Perkhidmatan Awam",
        })

        assert response.status_code == 422

    async def test_register_listed_admin_email(self, client: AsyncClient, monkeypatch):
        from dataconfirm.core.config import settings
        monkeypatch.setattr(settings, "ADMIN_EMAILS_STR", "pentadbir@jpa.gov.my")

        response = await client.post(f"{BASE}/register", json={
            "email": "pentadbir@jpa.gov.my",
            "password": "kataLaluan123",
            "full_name": "Pentadbir",
            "agency": "Jabatan Perkhidmatan Awam",
        })

        assert response.status_code == 201
        assert response.json()["role"] == "admin"


class TestLogin:

    async def test_login_success(self, client: AsyncClient, agency_user: User):
        response = await client.post(f"{BASE}/login", json={
            "email": agency_user.email,
            "password": "agencypassword123",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["user"]["agency"] == "Jabatan Perkhidmatan Awam"

    async def test_login_wrong_password(self, client: AsyncClient, agency_user: User):
        response = await client.post(f"{BASE}/login", json={
            "email": agency_user.email,
            "password": "wrongpassword",
        })

        assert response.status_code == 401

    async def test_login_inactive(self, client: AsyncClient, db_session, agency_user: User):
        agency_user.is_active = False
        await db_session.commit()

        response = await client.post(f"{BASE}/login", json={
            "email": agency_user.email,
            "password": "agencypassword123",
        })

        assert response.status_code == 403

    async def test_me(self, client: AsyncClient, agency_user: User, auth_headers):
        response = await client.get(f"{BASE}/me", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["email"] == agency_user.email

    async def test_me_with_bad_token(self, client: AsyncClient):
        response = await client.get(f"{BASE}/me", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401

    async def test_refresh(self, client: AsyncClient, agency_user: User):
        refresh = create_refresh_token(build_token_claims(agency_user))

        response = await client.post(f"{BASE}/refresh", json={"refresh_token": refresh})

        assert response.status_code == 200
        assert response.json()["access_token"]

    async def test_refresh_rejects_access_token(self, client: AsyncClient, auth_headers):
        access = auth_headers["Authorization"].split(" ", 1)[1]

        response = await client.post(f"{BASE}/refresh", json={"refresh_token": access})

        assert response.status_code == 401


class TestPasswordReset:

    async def _issue_token(self, db_session, user: User) -> str:
        token = create_password_reset_token(str(user.id), user.email)
        user.reset_token_hash = hash_reset_token(token)
        user.reset_token_expires = datetime.utcnow() + timedelta(minutes=30)
        await db_session.commit()
        return token

    async def test_forgot_password_same_reply_for_unknown_email(self, client: AsyncClient, agency_user: User):
        with patch(
            "dataconfirm.api.v1.endpoints.auth.email_service.send_password_reset_email",
            new=AsyncMock(return_value=True),
        ) as send:
            known = await client.post(f"{BASE}/forgot-password", json={"email": agency_user.email})
            unknown = await client.post(f"{BASE}/forgot-password", json={"email": "tiada@jpa.gov.my"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert send.await_count == 1

    async def test_forgot_password_stores_token_hash(self, client: AsyncClient, db_session, agency_user: User):
        with patch(
            "dataconfirm.api.v1.endpoints.auth.email_service.send_password_reset_email",
            new=AsyncMock(return_value=True),
        ) as send:
            await client.post(f"{BASE}/forgot-password", json={"email": agency_user.email})

        await db_session.refresh(agency_user)
        token = send.await_args.kwargs["reset_token"]
        assert agency_user.reset_token_hash == hash_reset_token(token)

    async def test_verify_reset_token(self, client: AsyncClient, db_session, agency_user: User):
        token = await self._issue_token(db_session, agency_user)

        response = await client.get(f"{BASE}/verify-reset-token/{token}")

        assert response.json() == {"valid": True, "email": agency_user.email}

    async def test_reset_password_is_single_use(self, client: AsyncClient, db_session, agency_user: User):
        token = await self._issue_token(db_session, agency_user)

        first = await client.post(f"{BASE}/reset-password", json={"token": token, "new_password": "kataBaharu123"})
        second = await client.post(f"{BASE}/reset-password", json={"token": token, "new_password": "kataLain12345"})

        assert first.status_code == 200
        assert second.status_code == 400

        login = await client.post(f"{BASE}/login", json={"email": agency_user.email, "password": "kataBaharu123"})
        assert login.status_code == 200

    async def test_reset_with_unknown_token(self, client: AsyncClient):
        response = await client.post(f"{BASE}/reset-password", json={"token": "x.y.z", "new_password": "kataBaharu123"})

        assert response.status_code == 400
