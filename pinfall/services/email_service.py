"""
Registration confirmation email: admin-editable Jinja2 templates delivered over SMTP
"""
import logging
import smtplib
from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage
from typing import Dict, List
from uuid import UUID

from jinja2 import TemplateSyntaxError
from jinja2.sandbox import SandboxedEnvironment
from sqlalchemy.orm import Session

from pinfall.core.config import settings
from pinfall.core.exceptions import NotFoundError, ValidationError
from pinfall.models.email_template import REGISTRATION_CONFIRMATION, TEMPLATE_NAMES, EmailTemplate
from pinfall.schemas.email_template import EmailTemplateUpdate

logger = logging.getLogger(__name__)

# Templates are edited by admins, so they render in the sandbox
_text_env = SandboxedEnvironment(autoescape=False, keep_trailing_newline=True)
_html_env = SandboxedEnvironment(autoescape=True)

CONFIRMATION_SUBJECT = "Registration Confirmation - {{ tournamentName }}"

CONFIRMATION_TEXT = """Hi {{ bowlerName }},

Thank you for registering for {{ tournamentName }}.

REGISTRATION DETAILS:
- Tournament: {{ tournamentName }}
- Location: {{ tournamentLocation }}
- Date: {{ tournamentDate }}
- Entry Fee: ${{ entryFee }}
- Selected Squads: {{ squadsList }}

PAYMENT INFORMATION:
{{ paymentInstructions }}

Your registration ID is: {{ registrationId }}

If you have any questions, please contact us.

Good luck!
"""

CONFIRMATION_HTML = """<html>
<body>
  <h2>Registration Confirmed</h2>
  <p>Hi {{ bowlerName }},</p>
  <p>Thank you for registering for <strong>{{ tournamentName }}</strong>.</p>
  <h3>Registration Details</h3>
  <ul>
    <li>Tournament: {{ tournamentName }}</li>
    <li>Location: {{ tournamentLocation }}</li>
    <li>Date: {{ tournamentDate }}</li>
    <li>Entry Fee: ${{ entryFee }}</li>
    <li>Selected Squads: {{ squadsList }}</li>
  </ul>
  <h3>Payment Information</h3>
  <p>{{ paymentInstructions }}</p>
  <p>Your registration ID is: <strong>{{ registrationId }}</strong></p>
  <p>Good luck!</p>
</body>
</html>
"""

SAMPLE_DATA = {
    "bowlerName": "John Smith",
    "tournamentName": "Logan City Cup 2026",
    "tournamentLocation": "Logan City Bowl",
    "tournamentDate": "Saturday, 15 February 2026",
    "entryFee": "120",
    "squadsList": "Squad A (Saturday 9:00 AM), Squad B (Saturday 2:00 PM)",
    "paymentInstructions": "Please transfer payment to BSB: 123-456 Account: 12345678. "
                           "Reference: Your name and registration ID.",
    "registrationId": "REG123456",
}


@dataclass(frozen=True)
class TemplateContent:
    """Template source detached from the session, safe to hand to a background task"""
    subject: str
    html_body: str
    text_body: str


DEFAULT_TEMPLATES = {
    REGISTRATION_CONFIRMATION: TemplateContent(
        subject=CONFIRMATION_SUBJECT,
        html_body=CONFIRMATION_HTML,
        text_body=CONFIRMATION_TEXT,
    ),
}


@dataclass
class RegistrationConfirmedEvent:
    """Everything the confirmation email needs, captured when the registration commits"""
    recipient: str
    bowler_name: str
    tournament_name: str
    tournament_date: datetime
    tournament_location: str
    entry_fee: float
    payment_instructions: str
    registration_id: UUID
    squads: List[str] = field(default_factory=list)

    def template_data(self) -> Dict[str, str]:
        fee = self.entry_fee or 0
        return {
            "bowlerName": self.bowler_name,
            "tournamentName": self.tournament_name,
            "tournamentLocation": self.tournament_location or "TBA",
            "tournamentDate": self.tournament_date.strftime("%A, %d %B %Y"),
            "entryFee": f"{fee:g}",
            "squadsList": ", ".join(self.squads),
            "paymentInstructions": self.payment_instructions or "Payment instructions will be provided shortly.",
            "registrationId": str(self.registration_id),
        }


def render(template: TemplateContent, data: Dict[str, str]) -> TemplateContent:
    """Fill every part of a template; the HTML body is autoescaped"""
    subject = _text_env.from_string(template.subject).render(**data)
    return TemplateContent(
        subject=" ".join(subject.split()),
        html_body=_html_env.from_string(template.html_body).render(**data),
        text_body=_text_env.from_string(template.text_body).render(**data),
    )


class EmailService:
    """Stores the email templates and sends transactional email over SMTP"""

    # Templates

    def _check_name(self, name: str) -> None:
        if name not in TEMPLATE_NAMES:
            raise NotFoundError("Template not found")

    def get_template(self, db: Session, name: str) -> EmailTemplate:
        """Stored template, seeded from the built-in default on first use"""
        self._check_name(name)
        template = db.query(EmailTemplate).filter(EmailTemplate.name == name).first()
        if template is None:
            default = DEFAULT_TEMPLATES[name]
            template = EmailTemplate(
                name=name,
                subject=default.subject,
                html_body=default.html_body,
                text_body=default.text_body,
            )
            db.add(template)
            db.commit()
            db.refresh(template)
            logger.info(f"Seeded default email template {name}")
        return template

    def list_templates(self, db: Session) -> List[EmailTemplate]:
        return [self.get_template(db, name) for name in TEMPLATE_NAMES]

    def get_template_content(self, db: Session, name: str) -> TemplateContent:
        template = self.get_template(db, name)
        return TemplateContent(
            subject=template.subject,
            html_body=template.html_body,
            text_body=template.text_body,
        )

    def validate_template(self, data: EmailTemplateUpdate) -> None:
        for label, source in (("subject", data.subject), ("HTML body", data.html_body), ("text body", data.text_body)):
            try:
                _text_env.parse(source)
            except TemplateSyntaxError as e:
                raise ValidationError(f"Template {label} has a syntax error on line {e.lineno}: {e.message}")

    def update_template(self, db: Session, name: str, data: EmailTemplateUpdate) -> EmailTemplate:
        self._check_name(name)
        self.validate_template(data)

        template = db.query(EmailTemplate).filter(EmailTemplate.name == name).first()
        if template is None:
            template = EmailTemplate(name=name)
            db.add(template)
        template.subject = data.subject
        template.html_body = data.html_body
        template.text_body = data.text_body
        db.commit()
        db.refresh(template)

        logger.info(f"Email template {name} updated")
        return template

    def preview(self, data: EmailTemplateUpdate) -> TemplateContent:
        """Render unsaved template source against sample registration data"""
        self.validate_template(data)
        source = TemplateContent(subject=data.subject, html_body=data.html_body, text_body=data.text_body)
        return render(source, SAMPLE_DATA)

    # Delivery

    def build_confirmation(self, event: RegistrationConfirmedEvent, template: TemplateContent) -> EmailMessage:
        rendered = render(template, event.template_data())
        message = EmailMessage()
        message["Subject"] = rendered.subject
        message["From"] = settings.EMAIL_FROM
        message["To"] = event.recipient
        message.set_content(rendered.text_body)
        message.add_alternative(rendered.html_body, subtype="html")
        return message

    def send_registration_confirmation(self, event: RegistrationConfirmedEvent, template: TemplateContent) -> bool:
        """
        Fire-and-forget: failures are logged and reported as False,
        never raised back into the request that triggered them.
        """
        message = self.build_confirmation(event, template)

        if not settings.email_enabled:
            logger.info(f"SMTP not configured, skipping confirmation email to {event.recipient}")
            return False

        try:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
                if settings.SMTP_USE_TLS:
                    server.starttls()
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send confirmation email for registration {event.registration_id}: {e}")
            return False

        logger.info(f"Confirmation email sent to {event.recipient} for registration {event.registration_id}")
        return True


email_service = EmailService()
