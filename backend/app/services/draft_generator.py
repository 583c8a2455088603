"""
Draft Generator

Builds the letter-completion prompt and sends it to a hosted chat model.

Prompt contract for the returned text:
1. every [Placeholder] is replaced with the supplied value, or with
   "[Information Not Provided]" when no value was supplied
2. no subject line, greeting or sign-off, only the letter body
3. tone and length directives are followed when given

The model is any LangChain chat model (invoke(prompt) -> message with
.content). Production uses Gemini through langchain-google-genai.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from app.errors import GenerationServiceError
from app.services.letter_templates import get_template

logger = logging.getLogger(__name__)

NOT_PROVIDED_MARKER = "[Information Not Provided]"
NO_CONTEXT = "No additional context provided."


class LetterTone(str, Enum):
    FORMAL = "Formal"
    AGGRESSIVE = "Aggressive"
    CONCILIATORY = "Conciliatory"
    NEUTRAL = "Neutral"


class LetterLength(str, Enum):
    SHORT = "Short"
    MEDIUM = "Medium"
    LONG = "Long"


LENGTH_DESCRIPTIONS = {
    LetterLength.SHORT: "concise and to the point.",
    LetterLength.MEDIUM: "standard, with sufficient detail.",
    LetterLength.LONG: "comprehensive and highly detailed.",
}


@dataclass
class DraftRequest:
    title: str
    template_body: str
    template_fields: Dict[str, str] = field(default_factory=dict)
    additional_context: str = ""
    tone: Optional[LetterTone] = None
    length: Optional[LetterLength] = None

    @classmethod
    def from_template(cls, template_value: str, **kwargs) -> "DraftRequest":
        template = get_template(template_value)
        if template is None:
            raise ValueError(f"Unknown letter template: {template_value}")
        kwargs.setdefault("title", template.label)
        return cls(template_body=template.body, **kwargs)


def _style_instructions(tone: Optional[LetterTone], length: Optional[LetterLength]) -> str:
    if not tone and not length:
        return ""
    lines = ["", "**Tone & Style Instructions:**"]
    if tone:
        lines.append(f"- **Tone:** The tone of the letter should be professional and {tone.value.lower()}.")
    if length:
        lines.append(
            f"- **Length:** The filled-in sections should be relatively {length.value.lower()}, "
            f"resulting in a letter that is {LENGTH_DESCRIPTIONS[length]}"
        )
    return "\n".join(lines) + "\n"


def build_draft_prompt(request: DraftRequest) -> str:
    fields = "\n".join(f"- {key}: {value}" for key, value in request.template_fields.items())
    return f"""You are an expert legal assistant. Your task is to complete the following letter template using the user-provided details.
The letter's subject is "{request.title}".

**Template to complete:**
---
{request.template_body}
---

**User-provided details to fill in the placeholders:**
{fields}

**Additional Context from the user (incorporate this where relevant):**
{request.additional_context or NO_CONTEXT}
{_style_instructions(request.tone, request.length)}
**Instructions:**
1.  Carefully replace the placeholders (e.g., [Your Name], [Amount Owed]) in the template with the corresponding user-provided details.
2.  If a detail for a placeholder is not provided, you MUST replace it with a clear indicator like "{NOT_PROVIDED_MARKER}" in the final letter. Do not leave the original placeholder (e.g., [Amount Owed]) in the text.
3.  Incorporate the "Additional Context" where it seems most relevant within the letter body to add necessary detail or clarify points.
4.  Ensure the final letter flows naturally and is grammatically correct after filling in the details.
5.  Adhere strictly to the Tone & Style instructions when filling in the template.
6.  The entire response should be ONLY the completed body of the letter. Do not include a subject line, greetings, sign-offs, or explanations outside of the letter's content itself.
"""


def _message_text(message: Any) -> str:
    """Text of a chat model reply; content may be a string or a list of parts."""
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return ""


def get_gemini_llm(model_name: str, api_key: str, temperature: float = 0.4):
    """Gemini chat model via LangChain."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    return ChatGoogleGenerativeAI(
        model=model_name,
        temperature=temperature,
        google_api_key=api_key,
    )


class DraftGenerator:
    def __init__(self, llm):
        self.llm = llm

    def generate(self, request: DraftRequest) -> str:
        prompt = build_draft_prompt(request)
        try:
            reply = self.llm.invoke(prompt)
        except Exception as e:
            logger.error(f"Error calling generation service: {e}")
            raise GenerationServiceError() from e

        text = _message_text(reply).strip()
        if not text:
            logger.error(f"Generation service returned empty output for '{request.title}'")
            raise GenerationServiceError("The AI service returned an empty draft. Please try again.")
        return text
