"""Pytest fixtures for certmint tests."""
import os
import uuid
from datetime import date
from typing import AsyncGenerator

# Keep configuration deterministic before certmint.config is imported.
os.environ.setdefault("CERTMINT_JWT_SECRET", "test-secret-for-certmint-tests-0123456789")
os.environ.setdefault("CERTMINT_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("CERTMINT_MOCK_SERVICES", "true")
os.environ.setdefault("CERTMINT_STORAGE_BACKEND", "memory")

import base58
import fitz
import pysodium
import pytest
from httpx import ASGITransport, AsyncClient

from certmint.audit import AuditLogger
from certmint.auth.token import issue_session_token
from certmint.auth.users import UserStore
from certmint.certificates.store import CertificateStore
from certmint.clients import (
    FakeLedgerUploader,
    FakeMintingService,
    FakeVerificationOracle,
    InMemoryDocumentStore,
)
from certmint.context import ServiceContext, Settings, build_context
from certmint.db import Certificate, CertificateStatus, User, create_db_engine, init_database

TEST_JWT_SECRET = "test-secret-for-certmint-tests-0123456789"


# =============================================================================
# Wallet helpers
# =============================================================================


class Wallet:
    """Real Ed25519 keypair producing wire-encoded signatures."""

    def __init__(self):
        self.public_key_bytes, self.secret_key = pysodium.crypto_sign_keypair()

    @property
    def address(self) -> str:
        return base58.b58encode(self.public_key_bytes).decode("ascii")

    def sign_raw(self, message: str | bytes) -> bytes:
        data = message.encode("utf-8") if isinstance(message, str) else message
        return pysodium.crypto_sign_detached(data, self.secret_key)

    def sign(self, message: str | bytes) -> str:
        return base58.b58encode(self.sign_raw(message)).decode("ascii")

    def login_payload(self, message: str = "Sign in to certmint") -> dict:
        return {
            "message": message,
            "signature": self.sign(message),
            "publicKey": self.address,
        }


def make_pdf(pages: int = 1) -> bytes:
    """A valid PDF document with the given number of pages."""
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page()
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def wallet() -> Wallet:
    return Wallet()


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf()


# =============================================================================
# Service context
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(jwt_secret=TEST_JWT_SECRET, verification_base_url="https://certifly.in/verify")


@pytest.fixture
def oracle() -> FakeVerificationOracle:
    return FakeVerificationOracle()


@pytest.fixture
def ledger() -> FakeLedgerUploader:
    return FakeLedgerUploader()


@pytest.fixture
def minter() -> FakeMintingService:
    return FakeMintingService()


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def audit() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
async def context(
    settings: Settings,
    oracle: FakeVerificationOracle,
    ledger: FakeLedgerUploader,
    minter: FakeMintingService,
    documents: InMemoryDocumentStore,
    audit: AuditLogger,
) -> AsyncGenerator[ServiceContext, None]:
    """Context over a fresh in-memory database and the fakes."""
    engine = create_db_engine("sqlite:///:memory:")
    init_database(engine)
    ctx = build_context(
        settings,
        engine=engine,
        documents=documents,
        oracle=oracle,
        ledger=ledger,
        minter=minter,
        audit=audit,
    )
    yield ctx
    await ctx.aclose()


@pytest.fixture
def user(context: ServiceContext, wallet: Wallet) -> User:
    with context.session_scope() as db:
        user, _ = UserStore(db).get_or_create_for_wallet(wallet.address)
        return user


@pytest.fixture
def other_user(context: ServiceContext) -> User:
    with context.session_scope() as db:
        user, _ = UserStore(db).get_or_create_for_wallet(Wallet().address)
        return user


def create_certificate(
    context: ServiceContext,
    user_id: str,
    documents: InMemoryDocumentStore | None = None,
    status: CertificateStatus = CertificateStatus.PENDING,
    **fields,
) -> Certificate:
    """Insert a certificate row (and its document) directly."""
    certificate_id = str(uuid.uuid4())
    with context.session_scope() as db:
        store = CertificateStore(db)
        cert = store.create(
            certificate_id=certificate_id,
            user_id=user_id,
            title=fields.get("title", "BSc Computer Science"),
            institution_name=fields.get("institution_name", "University of Testing"),
            program_name=fields.get("program_name", "Computer Science"),
            issue_date=fields.get("issue_date", date(2023, 6, 30)),
            document_key=f"certificates/{user_id}/{certificate_id}.pdf",
            certificate_url=f"memory://certificates/{certificate_id}.pdf",
            verification_url=f"https://certifly.in/verify/{certificate_id}",
        )
        if status is not CertificateStatus.PENDING:
            store.compare_and_set_status(cert.id, CertificateStatus.PENDING, status, {"seeded": True})
            db.refresh(cert)
    if documents is not None:
        documents.objects[cert.document_key] = (fields.get("document", make_pdf()), "application/pdf")
    return cert


@pytest.fixture
def pending_certificate(context: ServiceContext, user: User, documents: InMemoryDocumentStore) -> Certificate:
    return create_certificate(context, user.id, documents)


@pytest.fixture
def verified_certificate(context: ServiceContext, user: User, documents: InMemoryDocumentStore) -> Certificate:
    return create_certificate(context, user.id, documents, status=CertificateStatus.VERIFIED)


# =============================================================================
# HTTP client
# =============================================================================


@pytest.fixture
async def client(context: ServiceContext) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against an app bound to the test context."""
    from certmint.main import create_app

    app = create_app(context)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


def auth_headers(user: User, secret: str = TEST_JWT_SECRET) -> dict:
    token = issue_session_token(user.id, user.wallet_address, secret, 3600).token
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(user: User) -> dict:
    return auth_headers(user)


@pytest.fixture
def other_headers(other_user: User) -> dict:
    return auth_headers(other_user)
