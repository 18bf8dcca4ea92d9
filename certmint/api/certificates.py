"""Certificate endpoints: submission, listing, deletion and history."""
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from certmint.api.deps import get_context, get_db
from certmint.api.models import (
    CertificateListResponse,
    CertificateResponse,
    CreateCertificateRequest,
    CreateCertificateResponse,
    DeleteResponse,
    VerificationLogEntry,
    VerificationLogResponse,
)
from certmint.auth.backend import WalletPrincipal, require_auth
from certmint.certificates.log import VerificationLogStore
from certmint.certificates.store import CertificateStore
from certmint.certificates.submission import CertificateSubmission, validate_form
from certmint.context import ServiceContext
from certmint.core.exceptions import NotFoundError, ValidationError

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/certificates", tags=["certificates"])


@router.get("", response_model=CertificateListResponse)
def list_certificates(
    principal: WalletPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
) -> CertificateListResponse:
    """The caller's certificates, newest first."""
    certs = CertificateStore(db).list_for_user(principal.user_id)
    return CertificateListResponse(
        certificates=[CertificateResponse.model_validate(c) for c in certs]
    )


@router.get("/{certificate_id}", response_model=CertificateResponse)
def get_certificate(
    certificate_id: str,
    principal: WalletPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
) -> CertificateResponse:
    cert = CertificateStore(db).get_owned(certificate_id, principal.user_id)
    if cert is None:
        raise NotFoundError("Certificate not found")
    return CertificateResponse.model_validate(cert)


@router.post("", response_model=CreateCertificateResponse)
def create_certificate(
    body: CreateCertificateRequest,
    principal: WalletPrincipal = Depends(require_auth),
    context: ServiceContext = Depends(get_context),
) -> CreateCertificateResponse:
    """Create a pending certificate and return a presigned upload location.

    Document bytes are sent to /api/certificates/upload instead.
    """
    if not body.request_upload_url:
        raise ValidationError(
            "Validation error: requestUploadUrl must be true; "
            "send the document to /api/certificates/upload"
        )
    form = validate_form(body.title, body.institution_name, body.program_name, body.issue_date)
    submission = CertificateSubmission(context).request_upload(
        principal.user_id, form, body.file_type
    )
    cert = submission.certificate
    return CreateCertificateResponse(
        id=cert.id,
        certificate_url=cert.certificate_url,
        verification_url=cert.verification_url,
        upload_url=submission.upload.url,
        expires_at=submission.upload.expires_at,
    )


@router.post("/upload", response_model=CreateCertificateResponse)
async def upload_certificate(
    title: str = Form(...),
    institution_name: str = Form(..., alias="institutionName"),
    program_name: str = Form(..., alias="programName"),
    issue_date: str = Form(..., alias="issueDate"),
    file: UploadFile = File(...),
    principal: WalletPrincipal = Depends(require_auth),
    context: ServiceContext = Depends(get_context),
) -> CreateCertificateResponse:
    """Create a pending certificate from an uploaded PDF."""
    form = validate_form(title, institution_name, program_name, issue_date)
    data = await file.read()
    submission = await CertificateSubmission(context).upload_document(
        principal.user_id, form, data, file.content_type or ""
    )
    cert = submission.certificate
    return CreateCertificateResponse(
        id=cert.id,
        certificate_url=cert.certificate_url,
        verification_url=cert.verification_url,
    )


@router.delete("/{certificate_id}", response_model=DeleteResponse)
async def delete_certificate(
    certificate_id: str,
    principal: WalletPrincipal = Depends(require_auth),
    context: ServiceContext = Depends(get_context),
) -> DeleteResponse:
    await CertificateSubmission(context).delete(certificate_id, principal.user_id)
    return DeleteResponse(success=True)


@router.get("/{certificate_id}/logs", response_model=VerificationLogResponse)
def certificate_logs(
    certificate_id: str,
    principal: WalletPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
) -> VerificationLogResponse:
    """Verification and minting attempts for a certificate, oldest first."""
    if CertificateStore(db).get_owned(certificate_id, principal.user_id) is None:
        raise NotFoundError("Certificate not found")
    entries = VerificationLogStore(db).list_for_certificate(certificate_id)
    return VerificationLogResponse(
        certificate_id=certificate_id,
        entries=[VerificationLogEntry.model_validate(e) for e in entries],
    )
