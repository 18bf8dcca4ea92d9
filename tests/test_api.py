"""Tests for the HTTP API."""
import asyncio
from dataclasses import replace

import pytest
from httpx import AsyncClient

from certmint.auth.ratelimit import LoginRateLimiter
from certmint.clients import FakeLedgerUploader, FakeMintingService, FakeVerificationOracle
from certmint.context import ServiceContext, Settings
from certmint.db import Certificate, User
from certmint.main import create_app
from tests.conftest import TEST_JWT_SECRET, Wallet, auth_headers


class TestAuthentication:

    async def test_health_exempt_from_auth(self, client: AsyncClient):
        response = await client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "database": True}

    async def test_version_exempt_from_auth(self, client: AsyncClient):
        response = await client.get("/version")
        assert response.status_code == 200
        assert response.json()["version"] == "0.1.0"

    @pytest.mark.parametrize("method,path", [
        ("GET", "/api/auth/me"),
        ("GET", "/api/certificates"),
        ("POST", "/api/verify/some-id"),
        ("GET", "/api/verify/some-id"),
        ("POST", "/api/mint/some-id"),
    ])
    async def test_unauthenticated_request_returns_401(self, client: AsyncClient, method: str, path: str):
        response = await client.request(method, path)
        assert response.status_code == 401
        assert response.json()["error"] == "missing_credentials"

    async def test_invalid_token_returns_401(self, client: AsyncClient):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json() == {"error": "invalid_token", "detail": "Invalid token"}

    async def test_token_signed_with_other_secret_returns_401(self, client: AsyncClient, user: User):
        headers = auth_headers(user, secret="x" * 40)
        response = await client.get("/api/auth/me", headers=headers)
        assert response.status_code == 401

    async def test_non_bearer_scheme_returns_401(self, client: AsyncClient):
        response = await client.get("/api/auth/me", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401


class TestLogin:

    async def test_login_then_me(self, client: AsyncClient, wallet: Wallet):
        response = await client.post("/api/auth/login", json=wallet.login_payload())
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["walletAddress"] == wallet.address
        assert body["token"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.json()["id"] == body["user"]["id"]

    async def test_login_twice_same_user(self, client: AsyncClient, wallet: Wallet):
        first = await client.post("/api/auth/login", json=wallet.login_payload("one"))
        second = await client.post("/api/auth/login", json=wallet.login_payload("two"))
        assert first.json()["user"]["id"] == second.json()["user"]["id"]

    async def test_missing_parameters(self, client: AsyncClient, wallet: Wallet):
        payload = wallet.login_payload()
        del payload["signature"]
        response = await client.post("/api/auth/login", json=payload)
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required parameters: message, signature, publicKey"

    async def test_bad_signature(self, client: AsyncClient, wallet: Wallet):
        payload = wallet.login_payload()
        payload["signature"] = Wallet().sign(payload["message"])
        response = await client.post("/api/auth/login", json=payload)
        assert response.status_code == 401
        assert response.json() == {"error": "invalid_signature", "detail": "Invalid signature"}

    async def test_rate_limited_after_failures(self, client: AsyncClient, wallet: Wallet):
        payload = wallet.login_payload()
        payload["signature"] = Wallet().sign(payload["message"])
        for _ in range(5):
            await client.post("/api/auth/login", json=payload)

        response = await client.post("/api/auth/login", json=wallet.login_payload())
        assert response.status_code == 429
        assert response.json()["error"] == "rate_limited"
        assert int(response.headers["Retry-After"]) > 0


class TestProfile:

    async def test_get_profile(self, client: AsyncClient, user: User, user_headers: dict):
        response = await client.get("/api/profile", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["fullName"] == user.full_name

    async def test_update_name_and_email(self, client: AsyncClient, user_headers: dict):
        response = await client.put(
            "/api/profile",
            json={"fullName": "Ada Lovelace", "email": "Ada@Example.com"},
            headers=user_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["fullName"] == "Ada Lovelace"
        assert body["user"]["email"] == "ada@example.com"
        assert body["uploadUrl"] is None

    async def test_photo_presign(self, client: AsyncClient, user: User, user_headers: dict):
        response = await client.put(
            "/api/profile", json={"photoFileName": "me.png"}, headers=user_headers
        )
        assert response.status_code == 200
        body = response.json()
        assert "content_type=image%2Fpng" in body["uploadUrl"]
        assert body["publicUrl"].endswith(f"profiles/{user.id}/me.png")
        assert body["user"]["profilePhotoUrl"] == body["publicUrl"]

    async def test_empty_update(self, client: AsyncClient, user_headers: dict):
        response = await client.put("/api/profile", json={}, headers=user_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "No fields to update"

    async def test_duplicate_email(
        self, client: AsyncClient, user_headers: dict, other_headers: dict
    ):
        await client.put("/api/profile", json={"email": "taken@example.com"}, headers=other_headers)
        response = await client.put("/api/profile", json={"email": "taken@example.com"}, headers=user_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Email is already in use"

    async def test_invalid_email(self, client: AsyncClient, user_headers: dict):
        response = await client.put("/api/profile", json={"email": "not-an-email"}, headers=user_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


class TestCertificates:

    async def test_create_with_upload_url(self, client: AsyncClient, user_headers: dict):
        response = await client.post(
            "/api/certificates",
            json={
                "title": "BSc",
                "institutionName": "Uni",
                "programName": "CS",
                "issueDate": "2023-06-30",
                "fileName": "cert.pdf",
                "fileType": "application/pdf",
                "requestUploadUrl": True,
            },
            headers=user_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["uploadUrl"]
        assert body["verificationUrl"] == f"https://certifly.in/verify/{body['id']}"

        listed = await client.get("/api/certificates", headers=user_headers)
        certs = listed.json()["certificates"]
        assert [c["id"] for c in certs] == [body["id"]]
        assert certs[0]["verificationStatus"] == "pending"

    async def test_create_invalid_date(self, client: AsyncClient, user_headers: dict):
        response = await client.post(
            "/api/certificates",
            json={
                "title": "BSc",
                "institutionName": "Uni",
                "programName": "CS",
                "issueDate": "30/06/2023",
                "fileName": "cert.pdf",
                "fileType": "application/pdf",
                "requestUploadUrl": True,
            },
            headers=user_headers,
        )
        assert response.status_code == 400
        assert "YYYY-MM-DD" in response.json()["detail"]

    async def test_multipart_upload(self, client: AsyncClient, user_headers: dict, pdf_bytes: bytes, documents):
        response = await client.post(
            "/api/certificates/upload",
            data={
                "title": "BSc",
                "institutionName": "Uni",
                "programName": "CS",
                "issueDate": "2023-06-30",
            },
            files={"file": ("cert.pdf", pdf_bytes, "application/pdf")},
            headers=user_headers,
        )
        assert response.status_code == 200
        cert_id = response.json()["id"]
        assert any(key.endswith(f"{cert_id}.pdf") for key in documents.objects)

    async def test_multipart_upload_rejects_image(self, client: AsyncClient, user_headers: dict):
        response = await client.post(
            "/api/certificates/upload",
            data={
                "title": "BSc",
                "institutionName": "Uni",
                "programName": "CS",
                "issueDate": "2023-06-30",
            },
            files={"file": ("cert.png", b"\x89PNG\r\n", "image/png")},
            headers=user_headers,
        )
        assert response.status_code == 400
        assert "Unsupported file type" in response.json()["detail"]

    async def test_get_and_delete(
        self, client: AsyncClient, user_headers: dict, pending_certificate: Certificate
    ):
        path = f"/api/certificates/{pending_certificate.id}"
        assert (await client.get(path, headers=user_headers)).json()["title"] == "BSc Computer Science"

        deleted = await client.delete(path, headers=user_headers)
        assert deleted.json() == {"success": True}
        assert (await client.get(path, headers=user_headers)).status_code == 404

    async def test_cross_owner_access_is_404(
        self, client: AsyncClient, other_headers: dict, pending_certificate: Certificate
    ):
        path = f"/api/certificates/{pending_certificate.id}"
        assert (await client.get(path, headers=other_headers)).status_code == 404
        assert (await client.delete(path, headers=other_headers)).status_code == 404
        assert (await client.get(f"{path}/logs", headers=other_headers)).status_code == 404


class TestVerifyAndMint:

    async def test_full_lifecycle(
        self, client: AsyncClient, user_headers: dict, pending_certificate: Certificate,
        oracle: FakeVerificationOracle, ledger: FakeLedgerUploader, minter: FakeMintingService,
    ):
        cert_id = pending_certificate.id

        # Minting before verification is refused.
        early = await client.post(f"/api/mint/{cert_id}", headers=user_headers)
        assert early.status_code == 400
        assert early.json() == {
            "error": "invalid_state",
            "detail": "Certificate must be verified before minting",
        }

        verified = await client.post(f"/api/verify/{cert_id}", headers=user_headers)
        assert verified.status_code == 200
        assert verified.json()["status"] == "verified"
        assert verified.json()["outcome"] == "transitioned"

        again = await client.post(f"/api/verify/{cert_id}", headers=user_headers)
        assert again.json()["outcome"] == "already_in_state"
        assert again.json()["message"] == "Certificate has already been verified or rejected"

        status = await client.get(f"/api/verify/{cert_id}", headers=user_headers)
        assert status.json()["details"] == {"score": 0.98}

        minted = await client.post(f"/api/mint/{cert_id}", headers=user_headers)
        assert minted.status_code == 200
        mint_id = minted.json()["mintId"]

        repeat = await client.post(f"/api/mint/{cert_id}", headers=user_headers)
        assert repeat.json()["mintId"] == mint_id
        assert repeat.json()["message"] == "Certificate has already been minted"

        logs = await client.get(f"/api/certificates/{cert_id}/logs", headers=user_headers)
        entries = logs.json()["entries"]
        assert [(e["verificationStep"], e["status"]) for e in entries] == [
            ("external_verification", "success"),
            ("nft_minting", "success"),
        ]
        assert len(oracle.calls) == 1
        assert len(ledger.uploads) == 1
        assert len(minter.requests) == 1

    async def test_oracle_failure_is_502(
        self, client: AsyncClient, user_headers: dict, pending_certificate: Certificate,
        oracle: FakeVerificationOracle,
    ):
        oracle.fail_next("Verification worker error (503): unavailable")
        response = await client.post(f"/api/verify/{pending_certificate.id}", headers=user_headers)
        assert response.status_code == 502
        assert response.json()["error"] == "upstream_error"

    async def test_cross_owner_verify_and_mint_are_404(
        self, client: AsyncClient, other_headers: dict, verified_certificate: Certificate
    ):
        assert (await client.post(f"/api/verify/{verified_certificate.id}", headers=other_headers)).status_code == 404
        assert (await client.get(f"/api/verify/{verified_certificate.id}", headers=other_headers)).status_code == 404
        assert (await client.post(f"/api/mint/{verified_certificate.id}", headers=other_headers)).status_code == 404

    async def test_expired_token_rejected(self, client: AsyncClient, user: User):
        from datetime import datetime, timedelta, timezone

        from certmint.auth.token import issue_session_token

        past = datetime.now(timezone.utc) - timedelta(days=8)
        token = issue_session_token(user.id, user.wallet_address, TEST_JWT_SECRET, 7 * 24 * 3600, now=past)
        response = await client.post(
            "/api/verify/anything", headers={"Authorization": f"Bearer {token.token}"}
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Session token expired"


class TestLifespan:

    async def test_cleanup_task_evicts_expired_login_failures(
        self, context: ServiceContext, settings: Settings
    ):
        now = [1000.0]
        limiter = LoginRateLimiter(max_attempts=5, window_seconds=900, clock=lambda: now[0])
        ctx = replace(
            context,
            settings=replace(settings, rate_limit_cleanup_seconds=0.01),
            rate_limiter=limiter,
        )
        for i in range(500):
            await limiter.record_failure(f"10.0.{i // 256}.{i % 256}")
        assert limiter.tracked_clients == 500

        app = create_app(ctx)
        async with app.router.lifespan_context(app):
            task = app.state.rate_limit_cleanup
            assert not task.done()

            now[0] += 901
            for _ in range(200):
                if limiter.tracked_clients == 0:
                    break
                await asyncio.sleep(0.01)
            assert limiter.tracked_clients == 0

        assert task.cancelled()

    async def test_cleanup_task_keeps_live_entries(
        self, context: ServiceContext, settings: Settings
    ):
        limiter = LoginRateLimiter(max_attempts=5, window_seconds=900)
        ctx = replace(
            context,
            settings=replace(settings, rate_limit_cleanup_seconds=0.01),
            rate_limiter=limiter,
        )
        await limiter.record_failure("10.0.0.1")

        app = create_app(ctx)
        async with app.router.lifespan_context(app):
            await asyncio.sleep(0.05)
            assert limiter.tracked_clients == 1
