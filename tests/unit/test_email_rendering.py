"""
Unit tests for confirmation email rendering.
"""

from datetime import datetime
from uuid import uuid4

import pytest

from pinfall.core.exceptions import ValidationError
from pinfall.models.email_template import REGISTRATION_CONFIRMATION
from pinfall.schemas.email_template import EmailTemplateUpdate
from pinfall.services.email_service import (
    DEFAULT_TEMPLATES,
    RegistrationConfirmedEvent,
    TemplateContent,
    email_service,
    render,
)


def confirmed_event(**overrides):
    data = {
        "recipient": "ann@example.com",
        "bowler_name": "Ann Smith",
        "tournament_name": "Spring Classic",
        "tournament_date": datetime(2030, 5, 1, 9, 0),
        "tournament_location": "Strike Zone Lanes",
        "entry_fee": 80.0,
        "payment_instructions": "Pay at the front desk",
        "registration_id": uuid4(),
        "squads": ["Squad A (9:00 AM)", "Squad B (2:00 PM)"],
    }
    data.update(overrides)
    return RegistrationConfirmedEvent(**data)


class TestConfirmationMessage:

    def test_default_template_fills_every_field(self):
        event = confirmed_event()
        message = email_service.build_confirmation(event, DEFAULT_TEMPLATES[REGISTRATION_CONFIRMATION])

        assert message["Subject"] == "Registration Confirmation - Spring Classic"
        assert message["To"] == "ann@example.com"
        text = message.get_body(preferencelist=("plain",)).get_content()
        assert "Hi Ann Smith," in text
        assert "- Entry Fee: $80" in text
        assert "- Date: Wednesday, 01 May 2030" in text
        assert "- Selected Squads: Squad A (9:00 AM), Squad B (2:00 PM)" in text
        assert f"Your registration ID is: {event.registration_id}" in text

    def test_html_part_escapes_bowler_input(self):
        event = confirmed_event(bowler_name="Ann <b>Smith</b>")
        message = email_service.build_confirmation(event, DEFAULT_TEMPLATES[REGISTRATION_CONFIRMATION])

        html = message.get_body(preferencelist=("html",)).get_content()
        text = message.get_body(preferencelist=("plain",)).get_content()
        assert "Ann &lt;b&gt;Smith&lt;/b&gt;" in html
        assert "Ann <b>Smith</b>" in text

    def test_missing_details_fall_back(self):
        data = confirmed_event(tournament_location=None, payment_instructions=None).template_data()

        assert data["tournamentLocation"] == "TBA"
        assert data["paymentInstructions"] == "Payment instructions will be provided shortly."

    def test_subject_is_a_single_line(self):
        template = TemplateContent(subject="Hello\n{{ bowlerName }}", html_body="<p></p>", text_body="")
        assert render(template, {"bowlerName": "Ann"}).subject == "Hello Ann"


class TestTemplateSource:

    def test_preview_uses_sample_data(self):
        preview = email_service.preview(EmailTemplateUpdate(
            subject="Welcome {{ bowlerName }}",
            html_body="<p>{{ tournamentName }}</p>",
            text_body="See you at {{ tournamentLocation }}",
        ))

        assert preview.subject == "Welcome John Smith"
        assert preview.html_body == "<p>Logan City Cup 2026</p>"
        assert preview.text_body == "See you at Logan City Bowl"

    def test_syntax_error_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            email_service.preview(EmailTemplateUpdate(
                subject="Welcome",
                html_body="<p>{% if bowlerName %}</p>",
                text_body="Hi",
            ))
        assert exc_info.value.message.startswith("Template HTML body has a syntax error")

    def test_blank_parts_are_required(self):
        with pytest.raises(ValueError):
            EmailTemplateUpdate(subject="  ", html_body="<p></p>", text_body="Hi")
