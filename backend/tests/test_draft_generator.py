"""
Test Suite: Draft Generator

Prompt construction and the chat-model adapter, with a fake model standing
in for the hosted service.
"""
import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from langchain_core.messages import AIMessage

from app.errors import GenerationServiceError
from app.services.draft_generator import (
    NOT_PROVIDED_MARKER,
    DraftGenerator,
    DraftRequest,
    LetterLength,
    LetterTone,
    build_draft_prompt,
)
from app.services.letter_templates import LETTER_TEMPLATES, get_template


class FakeChatModel:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def invoke(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


def _request(**changes):
    data = dict(
        title="Unpaid invoice",
        template_body="Dear [Recipient's Full Name], you owe $[Amount Owed].",
        template_fields={"Recipient's Full Name": "Client Corp", "Amount Owed": "5,000"},
    )
    data.update(changes)
    return DraftRequest(**data)


class TestPrompt:
    def test_contains_template_and_fields(self):
        prompt = build_draft_prompt(_request())
        assert 'The letter\'s subject is "Unpaid invoice"' in prompt
        assert "Dear [Recipient's Full Name], you owe $[Amount Owed]." in prompt
        assert "- Recipient's Full Name: Client Corp" in prompt
        assert "- Amount Owed: 5,000" in prompt

    def test_missing_value_marker_and_body_only(self):
        prompt = build_draft_prompt(_request())
        assert NOT_PROVIDED_MARKER in prompt
        assert "Do not include a subject line, greetings, sign-offs" in prompt

    def test_no_context_placeholder(self):
        assert "No additional context provided." in build_draft_prompt(_request())
        assert "Invoice was sent in March" in build_draft_prompt(
            _request(additional_context="Invoice was sent in March")
        )

    def test_style_section_only_when_requested(self):
        assert "Tone & Style Instructions:**" not in build_draft_prompt(_request())

        prompt = build_draft_prompt(_request(tone=LetterTone.AGGRESSIVE, length=LetterLength.SHORT))
        assert "professional and aggressive" in prompt
        assert "relatively short" in prompt
        assert "concise and to the point." in prompt

    def test_tone_without_length(self):
        prompt = build_draft_prompt(_request(tone=LetterTone.CONCILIATORY))
        assert "professional and conciliatory" in prompt
        assert "**Length:**" not in prompt


class TestFromTemplate:
    def test_uses_catalogue_body_and_label(self):
        request = DraftRequest.from_template("cease_and_desist_harassment")
        assert request.title == "Cease and Desist (Harassment)"
        assert "CEASE AND DESIST" in request.template_body

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            DraftRequest.from_template("nope")


class TestTemplates:
    def test_required_fields_appear_in_body(self):
        for template in LETTER_TEMPLATES:
            for name in template.required_fields:
                assert name in template.placeholders()

    def test_missing_fields(self):
        template = get_template("general_demand_letter")
        missing = template.missing_fields({"Recipient's Full Name": "X", "Amount Owed": "  "})
        assert missing == ["Amount Owed", "Reason for Debt", "Deadline for Action"]


class TestGenerate:
    def test_returns_model_text(self):
        model = FakeChatModel(reply=AIMessage(content="  Dear Client Corp, pay $5,000.  "))
        text = DraftGenerator(model).generate(_request())
        assert text == "Dear Client Corp, pay $5,000."
        assert len(model.prompts) == 1

    def test_content_parts(self):
        model = FakeChatModel(reply=AIMessage(content=[{"type": "text", "text": "Part one. "}, "Part two."]))
        assert DraftGenerator(model).generate(_request()) == "Part one. Part two."

    def test_service_failure(self):
        model = FakeChatModel(error=RuntimeError("quota exceeded"))
        with pytest.raises(GenerationServiceError) as exc:
            DraftGenerator(model).generate(_request())
        assert exc.value.http_status == 502

    def test_empty_output(self):
        model = FakeChatModel(reply=AIMessage(content="   "))
        with pytest.raises(GenerationServiceError):
            DraftGenerator(model).generate(_request())
