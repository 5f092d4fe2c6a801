"""
Admin-editable email template models
"""
from uuid import uuid4
from sqlalchemy import Column, String, DateTime, Text, Uuid
from pinfall.database import Base
from pinfall.utils.time_utils import utc_now

REGISTRATION_CONFIRMATION = "registration-confirmation"
TEMPLATE_NAMES = (REGISTRATION_CONFIRMATION,)


class EmailTemplate(Base):
    """Subject and bodies for one transactional email, stored as Jinja2 source"""
    __tablename__ = "email_templates"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(50), unique=True, nullable=False, index=True)
    subject = Column(String(200), nullable=False)
    html_body = Column(Text, nullable=False)
    text_body = Column(Text, nullable=False)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
