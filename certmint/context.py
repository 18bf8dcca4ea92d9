"""Service context: everything a request handler or coordinator needs.

The context is built once at startup (or per test) and passed explicitly.
It owns the database engine, the external-service clients, the audit
logger and the in-process coordination state.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Generator, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from certmint import config
from certmint.audit import AuditLogger
from certmint.auth.ratelimit import LoginRateLimiter
from certmint.certificates.locks import CertificateLocks
from certmint.certificates.log import VerificationLogWriter
from certmint.clients.base import DocumentStore, LedgerUploader, MintingService, VerificationOracle
from certmint.db.session import create_db_engine, create_session_factory, session_scope

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Runtime settings read by the service layer."""

    jwt_secret: str
    session_ttl_seconds: int = 7 * 24 * 3600
    verification_base_url: str = "https://certifly.in/verify"
    login_max_attempts: int = 5
    login_window_seconds: int = 900
    rate_limit_cleanup_seconds: float = 300

    @classmethod
    def from_config(cls) -> "Settings":
        return cls(
            jwt_secret=config.JWT_SECRET,
            session_ttl_seconds=config.SESSION_TTL_SECONDS,
            verification_base_url=config.VERIFICATION_BASE_URL,
            login_max_attempts=config.LOGIN_RATE_LIMIT_MAX_ATTEMPTS,
            login_window_seconds=config.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
            rate_limit_cleanup_seconds=config.LOGIN_RATE_LIMIT_CLEANUP_INTERVAL,
        )


@dataclass(frozen=True)
class ServiceContext:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    documents: DocumentStore
    oracle: VerificationOracle
    ledger: LedgerUploader
    minter: MintingService
    audit: AuditLogger
    verification_log: VerificationLogWriter
    certificate_locks: CertificateLocks = field(default_factory=CertificateLocks)
    rate_limiter: LoginRateLimiter = field(default_factory=LoginRateLimiter)

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        with session_scope(self.session_factory) as db:
            yield db

    async def aclose(self) -> None:
        """Close the external clients and dispose of the engine."""
        for client in (self.oracle, self.ledger, self.minter, self.documents):
            await client.aclose()
        self.engine.dispose()


def _default_documents() -> DocumentStore:
    if config.STORAGE_BACKEND == "azure":
        if not config.AZURE_STORAGE_CONNECTION_STRING:
            raise RuntimeError(
                "CERTMINT_STORAGE_BACKEND=azure requires CERTMINT_AZURE_STORAGE_CONNECTION_STRING"
            )
        from certmint.clients.storage import AzureBlobDocumentStore

        return AzureBlobDocumentStore(
            config.AZURE_STORAGE_CONNECTION_STRING,
            config.STORAGE_CONTAINER,
            config.PRESIGN_TTL_SECONDS,
        )

    from certmint.clients.storage import InMemoryDocumentStore

    log.info("Using in-memory document store")
    return InMemoryDocumentStore(config.STORAGE_CONTAINER, config.PRESIGN_TTL_SECONDS)


def _default_services() -> tuple[VerificationOracle, LedgerUploader, MintingService]:
    if config.MOCK_SERVICES_ENABLED:
        from certmint.clients.fakes import (
            FakeLedgerUploader,
            FakeMintingService,
            FakeVerificationOracle,
        )

        log.warning("CERTMINT_MOCK_SERVICES enabled: using in-process oracle, ledger and minter")
        return (
            FakeVerificationOracle(),
            FakeLedgerUploader(config.LEDGER_GATEWAY_URL),
            FakeMintingService(),
        )

    from certmint.clients.ledger import HttpLedgerUploader
    from certmint.clients.minter import HttpMintingService
    from certmint.clients.oracle import HttpVerificationOracle

    return (
        HttpVerificationOracle(config.ORACLE_URL, config.ORACLE_API_KEY, config.ORACLE_TIMEOUT_SECONDS),
        HttpLedgerUploader(
            config.LEDGER_URL,
            config.LEDGER_GATEWAY_URL,
            config.LEDGER_API_KEY,
            config.LEDGER_TIMEOUT_SECONDS,
        ),
        HttpMintingService(config.MINT_URL, config.MINT_API_KEY, config.MINT_TIMEOUT_SECONDS),
    )


def build_context(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    documents: Optional[DocumentStore] = None,
    oracle: Optional[VerificationOracle] = None,
    ledger: Optional[LedgerUploader] = None,
    minter: Optional[MintingService] = None,
    audit: Optional[AuditLogger] = None,
) -> ServiceContext:
    """Build a context from configuration, with any part overridable.

    Services not passed in are chosen by CERTMINT_MOCK_SERVICES and
    CERTMINT_STORAGE_BACKEND.
    """
    settings = settings or Settings.from_config()
    engine = engine or create_db_engine(config.DATABASE_URL)
    session_factory = create_session_factory(engine)

    if oracle is None or ledger is None or minter is None:
        default_oracle, default_ledger, default_minter = _default_services()
        oracle = oracle or default_oracle
        ledger = ledger or default_ledger
        minter = minter or default_minter

    return ServiceContext(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        documents=documents or _default_documents(),
        oracle=oracle,
        ledger=ledger,
        minter=minter,
        audit=audit or AuditLogger(),
        verification_log=VerificationLogWriter(session_factory),
        rate_limiter=LoginRateLimiter(settings.login_max_attempts, settings.login_window_seconds),
    )
