"""
Email template endpoints (admin)
"""
from typing import List
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from pinfall.core.config import settings
from pinfall.core.dependencies import Identity, require_admin
from pinfall.core.rate_limit import limiter
from pinfall.database import get_db
from pinfall.schemas.email_template import (
    EmailPreviewResponse,
    EmailTemplateResponse,
    EmailTemplateUpdate,
)
from pinfall.services.email_service import email_service

router = APIRouter(prefix="/email-templates", tags=["email-templates"])


@router.get("", response_model=List[EmailTemplateResponse])
async def list_email_templates(
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """List every email template"""
    return email_service.list_templates(db)


@router.post("/preview", response_model=EmailPreviewResponse)
async def preview_email_template(
    template_data: EmailTemplateUpdate,
    admin: Identity = Depends(require_admin),
):
    """Render unsaved template source with sample registration data"""
    rendered = email_service.preview(template_data)
    return EmailPreviewResponse(
        subject=rendered.subject,
        html_body=rendered.html_body,
        text_body=rendered.text_body,
    )


@router.get("/{name}", response_model=EmailTemplateResponse)
async def get_email_template(
    name: str,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Get one template by name"""
    return email_service.get_template(db, name)


@router.put("/{name}", response_model=EmailTemplateResponse)
@limiter.limit(settings.ADMIN_WRITE_RATE_LIMIT)
async def update_email_template(
    request: Request,
    name: str,
    template_data: EmailTemplateUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Replace a template's subject and bodies"""
    return email_service.update_template(db, name, template_data)
