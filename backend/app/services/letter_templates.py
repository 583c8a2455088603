"""
Letter Templates

Template bodies use [Placeholder] markers. requiredFields lists the form
fields a user is asked for; anything else in brackets is filled from context
or marked as not provided by the draft generator.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

PLACEHOLDER_PATTERN = re.compile(r"\[([^\[\]]+)\]")


@dataclass(frozen=True)
class LetterTemplate:
    value: str
    label: str
    description: str
    required_fields: Tuple[str, ...]
    body: str

    def placeholders(self) -> List[str]:
        """Distinct placeholder names in order of first appearance."""
        seen: List[str] = []
        for name in PLACEHOLDER_PATTERN.findall(self.body):
            if name not in seen:
                seen.append(name)
        return seen

    def missing_fields(self, template_fields: Dict[str, str]) -> List[str]:
        return [name for name in self.required_fields if not (template_fields.get(name) or "").strip()]

    def to_dict(self) -> Dict[str, object]:
        return {
            "value": self.value,
            "label": self.label,
            "description": self.description,
            "required_fields": list(self.required_fields),
            "body": self.body,
            "placeholders": self.placeholders(),
        }


LETTER_TEMPLATES: List[LetterTemplate] = [
    LetterTemplate(
        value="general_demand_letter",
        label="General Demand Letter",
        description="A formal request for a specific action, usually payment of a debt.",
        required_fields=("Recipient's Full Name", "Amount Owed", "Reason for Debt", "Deadline for Action"),
        body="""Dear [Recipient's Full Name],

This letter serves as a formal demand for payment in the amount of $[Amount Owed]. This debt is in relation to [Reason for Debt].

We have previously attempted to resolve this matter without success. Your immediate attention to this issue is required.

Please submit the full payment of $[Amount Owed] by [Deadline for Action]. Payment can be made to [Your Name] via [Preferred Payment Method].

If we do not receive payment or hear from you by the specified deadline, we will be forced to consider further legal action to recover the debt, which may include but is not limited to, filing a lawsuit.

This is an attempt to collect a debt, and any information obtained will be used for that purpose.

Sincerely,
[Your Name]
[Your Company Name, if applicable]
[Your Address]
[Your Phone Number]
[Your Email]""",
    ),
    LetterTemplate(
        value="cease_and_desist_harassment",
        label="Cease and Desist (Harassment)",
        description="A letter demanding that an individual or group stop a specified unwanted action.",
        required_fields=("Recipient's Full Name", "Description of Harassing Conduct", "Date(s) of Incidents", "Demanded Action"),
        body="""Dear [Recipient's Full Name],

This letter is a formal demand that you immediately CEASE AND DESIST all forms of harassment directed towards me, [Your Name].

The harassing conduct includes, but is not limited to, the following: [Description of Harassing Conduct]. These actions occurred on or around the following date(s): [Date(s) of Incidents].

Your actions are causing significant distress and are a violation of my legal rights. I demand that you [Demanded Action] and have no further contact with me, my family, or my associates, whether in person, by phone, in writing, or through any third party.

Failure to comply with this demand immediately will result in me seeking all available legal remedies against you, including but not limited to, filing for a restraining order and pursuing civil action for damages.

This letter is formal notice to you that your actions are not welcome and must stop. Governed by the laws of [Your State/Jurisdiction].

Sincerely,
[Your Name]""",
    ),
]

_BY_VALUE: Dict[str, LetterTemplate] = {t.value: t for t in LETTER_TEMPLATES}


def get_template(value: str) -> Optional[LetterTemplate]:
    return _BY_VALUE.get(value)
