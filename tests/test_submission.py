"""Tests for certificate submission and document validation."""
from datetime import date
from unittest.mock import patch

import pytest

from certmint.certificates.documents import normalize_document, page_count
from certmint.certificates.log import VerificationLogStore
from certmint.certificates.store import CertificateStore
from certmint.certificates.submission import (
    CertificateSubmission,
    document_key,
    parse_issue_date,
    validate_form,
)
from certmint.clients import InMemoryDocumentStore
from certmint.context import ServiceContext
from certmint.core.exceptions import NotFoundError, ValidationError
from certmint.db import Certificate, LogStep, User
from tests.conftest import make_pdf


def _form(**overrides):
    fields = {
        "title": "MSc Data Science",
        "institution_name": "Test University",
        "program_name": "Data Science",
        "issue_date": "2024-02-29",
    }
    fields.update(overrides)
    return validate_form(**fields)


class TestValidateForm:

    def test_valid_form(self):
        form = _form()
        assert form.issue_date == date(2024, 2, 29)
        assert form.title == "MSc Data Science"

    @pytest.mark.parametrize("value", ["2024/01/01", "24-01-01", "2024-1-1", "", "yesterday"])
    def test_issue_date_format(self, value: str):
        with pytest.raises(ValidationError, match="YYYY-MM-DD"):
            parse_issue_date(value)

    @pytest.mark.parametrize("value", ["2023-02-29", "2024-13-01", "2024-04-31"])
    def test_issue_date_must_exist(self, value: str):
        with pytest.raises(ValidationError, match="not a calendar date"):
            parse_issue_date(value)

    def test_empty_title(self):
        with pytest.raises(ValidationError, match="title is required"):
            _form(title="  ")

    def test_long_program_name(self):
        with pytest.raises(ValidationError, match="programName must be at most 200"):
            _form(program_name="x" * 201)

    def test_boundary_length_accepted(self):
        assert len(_form(institution_name="x" * 200).institution_name) == 200


class TestNormalizeDocument:

    def test_pdf_accepted(self, pdf_bytes: bytes):
        data, content_type = normalize_document(pdf_bytes, "application/pdf")
        assert data == pdf_bytes
        assert content_type == "application/pdf"

    def test_content_type_parameters_ignored(self, pdf_bytes: bytes):
        assert normalize_document(pdf_bytes, "Application/PDF; charset=binary")[1] == "application/pdf"

    def test_page_count(self):
        assert page_count(make_pdf(3)) == 3

    def test_corrupt_pdf_rejected(self):
        with pytest.raises(ValidationError, match="Invalid PDF file"):
            normalize_document(b"%PDF-1.4 this is not really a pdf", "application/pdf")

    def test_empty_rejected(self):
        with pytest.raises(ValidationError, match="Invalid PDF file"):
            normalize_document(b"", "application/pdf")

    @pytest.mark.parametrize("content_type", ["image/png", "image/jpeg"])
    def test_images_rejected(self, content_type: str):
        with pytest.raises(ValidationError, match="Unsupported file type"):
            normalize_document(b"\x89PNG", content_type)

    def test_other_types_rejected(self):
        with pytest.raises(ValidationError, match="Unsupported file type: text/plain"):
            normalize_document(b"hello", "text/plain")


class TestCertificateSubmission:

    def test_request_upload_creates_pending_record(self, context: ServiceContext, user: User):
        submission = CertificateSubmission(context).request_upload(user.id, _form())
        cert = submission.certificate

        assert cert.verification_status == "pending"
        assert cert.document_key == document_key(user.id, cert.id)
        assert cert.verification_url == f"https://certifly.in/verify/{cert.id}"
        assert submission.upload.url.startswith(f"memory://certificates/certificates/{user.id}/")
        assert "method=PUT" in submission.upload.url

    def test_request_upload_rejects_images(self, context: ServiceContext, user: User):
        with pytest.raises(ValidationError):
            CertificateSubmission(context).request_upload(user.id, _form(), "image/png")

    async def test_upload_document_stores_pdf(
        self, context: ServiceContext, user: User, documents: InMemoryDocumentStore, pdf_bytes: bytes,
    ):
        submission = await CertificateSubmission(context).upload_document(
            user.id, _form(), pdf_bytes, "application/pdf"
        )
        cert = submission.certificate

        assert submission.upload is None
        assert documents.objects[cert.document_key] == (pdf_bytes, "application/pdf")
        assert cert.certificate_url == documents.url_for(cert.document_key)

        with context.session_scope() as db:
            stored = CertificateStore(db).get(cert.id)
            assert stored.issue_date == date(2024, 2, 29)

    async def test_invalid_upload_creates_nothing(
        self, context: ServiceContext, user: User, documents: InMemoryDocumentStore,
    ):
        with pytest.raises(ValidationError):
            await CertificateSubmission(context).upload_document(user.id, _form(), b"junk", "application/pdf")

        assert documents.objects == {}
        with context.session_scope() as db:
            assert CertificateStore(db).list_for_user(user.id) == []

    def test_unknown_user(self, context: ServiceContext):
        with pytest.raises(NotFoundError):
            CertificateSubmission(context).request_upload("no-such-user", _form())

    async def test_upload_for_unknown_user_stores_no_document(
        self, context: ServiceContext, documents: InMemoryDocumentStore, pdf_bytes: bytes,
    ):
        with pytest.raises(NotFoundError, match="User not found"):
            await CertificateSubmission(context).upload_document(
                "no-such-user", _form(), pdf_bytes, "application/pdf"
            )
        assert documents.objects == {}

    async def test_failed_record_creation_removes_document(
        self, context: ServiceContext, user: User, documents: InMemoryDocumentStore, pdf_bytes: bytes,
    ):
        with patch.object(CertificateStore, "create", side_effect=RuntimeError("db down")):
            with pytest.raises(RuntimeError, match="db down"):
                await CertificateSubmission(context).upload_document(
                    user.id, _form(), pdf_bytes, "application/pdf"
                )
        assert documents.objects == {}

    async def test_delete_removes_record_logs_and_document(
        self, context: ServiceContext, user: User, pending_certificate: Certificate,
        documents: InMemoryDocumentStore,
    ):
        context.verification_log.record(pending_certificate.id, LogStep.EXTERNAL_VERIFICATION, "error", "x")

        await CertificateSubmission(context).delete(pending_certificate.id, user.id)

        assert pending_certificate.document_key not in documents.objects
        with context.session_scope() as db:
            assert CertificateStore(db).get(pending_certificate.id) is None
            assert VerificationLogStore(db).list_for_certificate(pending_certificate.id) == []

    async def test_delete_other_owner_is_not_found(
        self, context: ServiceContext, other_user: User, pending_certificate: Certificate,
    ):
        with pytest.raises(NotFoundError):
            await CertificateSubmission(context).delete(pending_certificate.id, other_user.id)


class TestCertificateStore:

    def test_list_newest_first(self, context: ServiceContext, user: User, other_user: User):
        from tests.conftest import create_certificate

        first = create_certificate(context, user.id)
        second = create_certificate(context, user.id)
        create_certificate(context, other_user.id)

        with context.session_scope() as db:
            store = CertificateStore(db)
            # Force distinct creation times.
            store.get(first.id).created_at = store.get(second.id).created_at.replace(year=2000)
            db.commit()
            ids = [c.id for c in store.list_for_user(user.id)]

        assert ids == [second.id, first.id]

    def test_ledger_address_written_once(self, context: ServiceContext, user: User):
        from tests.conftest import create_certificate

        cert = create_certificate(context, user.id)
        with context.session_scope() as db:
            store = CertificateStore(db)
            assert store.set_ledger_address_if_absent(cert.id, "https://arweave.net/a") is True
            assert store.set_ledger_address_if_absent(cert.id, "https://arweave.net/b") is False
        with context.session_scope() as db:
            assert CertificateStore(db).get(cert.id).ledger_address == "https://arweave.net/a"

    def test_mint_id_requires_verified(self, context: ServiceContext, user: User):
        from tests.conftest import create_certificate

        cert = create_certificate(context, user.id)
        with context.session_scope() as db:
            assert CertificateStore(db).set_mint_id_if_verified(cert.id, "Mint1") is False
