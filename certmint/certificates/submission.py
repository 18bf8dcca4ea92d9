"""Certificate submission.

A certificate is created at status pending in one of two ways:

- request_upload(): the record is created and a presigned PUT location is
  returned for the client to upload the PDF itself;
- upload_document(): the PDF bytes arrive with the request, are validated
  and stored before the record is created.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional

from certmint.auth.users import UserStore
from certmint.certificates.documents import PDF_CONTENT_TYPE, normalize_document
from certmint.certificates.store import CertificateStore
from certmint.clients.base import PresignedUrl
from certmint.context import ServiceContext
from certmint.core.exceptions import NotFoundError, UpstreamError, ValidationError
from certmint.db.models import Certificate

log = logging.getLogger(__name__)

MAX_FIELD_LENGTH = 200
ISSUE_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class CertificateForm:
    title: str
    institution_name: str
    program_name: str
    issue_date: date


@dataclass(frozen=True)
class Submission:
    certificate: Certificate
    upload: Optional[PresignedUrl] = None


def parse_issue_date(value: str) -> date:
    """Parse a YYYY-MM-DD string that names a real calendar date."""
    if not isinstance(value, str) or not ISSUE_DATE_PATTERN.match(value):
        raise ValidationError("Validation error: issueDate must be in YYYY-MM-DD format")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Validation error: issueDate {value} is not a calendar date")


def validate_form(title: str, institution_name: str, program_name: str, issue_date: str) -> CertificateForm:
    for name, value in (
        ("title", title),
        ("institutionName", institution_name),
        ("programName", program_name),
    ):
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Validation error: {name} is required")
        if len(value) > MAX_FIELD_LENGTH:
            raise ValidationError(
                f"Validation error: {name} must be at most {MAX_FIELD_LENGTH} characters"
            )

    return CertificateForm(
        title=title,
        institution_name=institution_name,
        program_name=program_name,
        issue_date=parse_issue_date(issue_date),
    )


def document_key(user_id: str, certificate_id: str) -> str:
    return f"certificates/{user_id}/{certificate_id}.pdf"


class CertificateSubmission:
    """Creates pending certificates and stores their documents."""

    def __init__(self, context: ServiceContext):
        self.context = context

    def _verification_url(self, certificate_id: str) -> str:
        return f"{self.context.settings.verification_base_url}/{certificate_id}"

    def _create(self, user_id: str, certificate_id: str, form: CertificateForm, key: str, url: str) -> Certificate:
        with self.context.session_scope() as db:
            if UserStore(db).get(user_id) is None:
                raise NotFoundError("User not found")
            cert = CertificateStore(db).create(
                user_id=user_id,
                title=form.title,
                institution_name=form.institution_name,
                program_name=form.program_name,
                issue_date=form.issue_date,
                document_key=key,
                certificate_url=url,
                verification_url=self._verification_url(certificate_id),
                certificate_id=certificate_id,
            )
        self.context.audit.log_certificate("create", user_id, certificate_id)
        return cert

    def request_upload(self, user_id: str, form: CertificateForm, file_type: str = PDF_CONTENT_TYPE) -> Submission:
        """Create the record and presign a PUT for the client-side upload."""
        if file_type.startswith("image/"):
            raise ValidationError(f"Unsupported file type: {file_type} (upload a PDF)")
        if file_type != PDF_CONTENT_TYPE:
            raise ValidationError(f"Unsupported file type: {file_type}")

        certificate_id = str(uuid.uuid4())
        key = document_key(user_id, certificate_id)
        upload = self.context.documents.presign("PUT", key, PDF_CONTENT_TYPE)
        cert = self._create(user_id, certificate_id, form, key, self.context.documents.url_for(key))
        return Submission(certificate=cert, upload=upload)

    async def upload_document(
        self,
        user_id: str,
        form: CertificateForm,
        data: bytes,
        content_type: str,
    ) -> Submission:
        """Validate and store the document, then create the record."""
        data, content_type = normalize_document(data, content_type)
        with self.context.session_scope() as db:
            if UserStore(db).get(user_id) is None:
                raise NotFoundError("User not found")

        certificate_id = str(uuid.uuid4())
        key = document_key(user_id, certificate_id)
        url = await self.context.documents.put(key, data, content_type)
        log.info(f"Stored document for certificate {certificate_id} ({len(data)} bytes)")
        try:
            cert = self._create(user_id, certificate_id, form, key, url)
        except Exception:
            await self._discard_document(key)
            raise
        return Submission(certificate=cert)

    async def _discard_document(self, key: str) -> None:
        try:
            await self.context.documents.delete(key)
        except UpstreamError as e:
            log.warning(f"Failed to remove orphaned document {key}: {e}")

    async def delete(self, certificate_id: str, user_id: str) -> None:
        """Delete an owned certificate, its log entries and its stored document."""
        with self.context.session_scope() as db:
            store = CertificateStore(db)
            cert = store.get_owned(certificate_id, user_id)
            if cert is None:
                raise NotFoundError("Certificate not found")
            key = cert.document_key
            store.delete(cert)

        self.context.audit.log_certificate("delete", user_id, certificate_id)
        try:
            await self.context.documents.delete(key)
        except UpstreamError as e:
            # The record is gone; a leftover blob is only reported.
            log.warning(f"Failed to delete document {key}: {e}")
