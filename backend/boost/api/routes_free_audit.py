import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.security import verify_audit_token
from ..models.free_audit import FreeAudit
from ..schemas.free_tools import FreeAuditCreated, FreeAuditOut, FreeAuditRequest
from ..services.free_audit import FreeAuditExists, create_free_audit
from ..services.validation import is_disposable_email, is_valid_email, mask_email
from .deps import parse_uuid

router = APIRouter(tags=["free-audit"])

logger = logging.getLogger(__name__)


@router.post("/free-audit", response_model=FreeAuditCreated, status_code=201)
def create_audit(payload: FreeAuditRequest, db: Session = Depends(get_db)):
    if not is_valid_email(payload.email):
        raise HTTPException(status_code=400, detail="Valid email is required")
    if is_disposable_email(payload.email):
        raise HTTPException(status_code=400, detail="Please use a permanent email address.")

    try:
        audit, token = create_free_audit(db, payload.email, payload.input, source=payload.source)
    except FreeAuditExists as e:
        raise HTTPException(status_code=409, detail=str(e))

    return FreeAuditCreated(id=str(audit.id), token=token)


@router.get("/free-audit/{audit_id}", response_model=FreeAuditOut)
def get_audit(
    audit_id: str,
    token: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    """Poll an audit; the signed token from creation is the only credential."""
    parsed = parse_uuid(audit_id, "audit ID")
    if not verify_audit_token(parsed, token):
        raise HTTPException(status_code=403, detail="Invalid or missing access token")

    audit = db.query(FreeAudit).filter(FreeAudit.id == parsed).first()
    if not audit:
        raise HTTPException(status_code=404, detail="Audit not found")

    return FreeAuditOut(
        id=str(audit.id),
        email=mask_email(audit.email),
        status=audit.status,
        output=audit.output,
        structured_output=audit.structured_output,
        created_at=audit.created_at,
        completed_at=audit.completed_at,
    )
