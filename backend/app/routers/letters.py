"""
LetterDesk - Letters API Router

CRUD over the caller's own letter requests, status transitions, the template
catalogue and AI draft generation. All letter endpoints require
authentication and only ever see the caller's letters.
"""
from datetime import date
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from ..auth import get_current_session, get_draft_generator, get_letter_facade
from ..models.records import LetterRequest, LetterStatus, LetterType, PriorityLevel
from ..services.draft_generator import DraftGenerator, DraftRequest, LetterLength, LetterTone
from ..services.letter_facade import LetterFacade, LetterInput
from ..services.letter_templates import LETTER_TEMPLATES, get_template
from ..services.session_manager import Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/letters", tags=["letters"])

# Fields an update may explicitly set to null
CLEARABLE_FIELDS = {"due_date", "ai_generated_content", "final_content"}


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class LetterCreateRequest(BaseModel):
    title: str
    letter_type: LetterType
    description: str = ""
    priority: PriorityLevel = PriorityLevel.MEDIUM
    template_data: Dict[str, str] = {}
    recipient_info: Dict[str, Any] = {}
    sender_info: Dict[str, Any] = {}
    due_date: Optional[date] = None
    ai_generated_content: Optional[str] = None
    final_content: Optional[str] = None


class LetterUpdateRequest(BaseModel):
    """Only provided fields are changed."""
    title: Optional[str] = None
    letter_type: Optional[LetterType] = None
    description: Optional[str] = None
    status: Optional[LetterStatus] = None
    priority: Optional[PriorityLevel] = None
    template_data: Optional[Dict[str, str]] = None
    recipient_info: Optional[Dict[str, Any]] = None
    sender_info: Optional[Dict[str, Any]] = None
    due_date: Optional[date] = None
    ai_generated_content: Optional[str] = None
    final_content: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: LetterStatus


class LetterResponse(BaseModel):
    id: str
    user_id: str
    title: str
    letter_type: str
    description: str
    status: str
    priority: str
    template_data: Dict[str, str]
    recipient_info: Dict[str, Any]
    sender_info: Dict[str, Any]
    due_date: Optional[str] = None
    ai_generated_content: Optional[str] = None
    final_content: Optional[str] = None
    created_at: str
    updated_at: str


class TemplateResponse(BaseModel):
    value: str
    label: str
    description: str
    required_fields: List[str]
    body: str
    placeholders: List[str]


class DraftGenerateRequest(BaseModel):
    """Either a catalogue template value or a raw template body."""
    template: Optional[str] = None
    template_body: Optional[str] = None
    title: Optional[str] = None
    template_fields: Dict[str, str] = {}
    additional_context: str = ""
    tone: Optional[LetterTone] = None
    length: Optional[LetterLength] = None


class DraftResponse(BaseModel):
    content: str
    missing_fields: List[str] = []


def letter_response(letter: LetterRequest) -> LetterResponse:
    return LetterResponse(**letter.to_dict())


# =============================================================================
# TEMPLATES & DRAFTS
# =============================================================================

@router.get("/templates", response_model=List[TemplateResponse])
async def list_templates():
    """Available letter templates with their required form fields."""
    return [TemplateResponse(**template.to_dict()) for template in LETTER_TEMPLATES]


@router.post("/draft", response_model=DraftResponse)
def generate_draft(
    request: DraftGenerateRequest,
    session: Session = Depends(get_current_session),
    generator: DraftGenerator = Depends(get_draft_generator),
):
    """
    Complete a template with the user's details using the AI service.
    Required fields left blank are reported back in missing_fields.
    """
    missing: List[str] = []
    details = dict(
        template_fields=request.template_fields,
        additional_context=request.additional_context,
        tone=request.tone,
        length=request.length,
    )
    if request.title:
        details["title"] = request.title

    if request.template:
        template = get_template(request.template)
        if template is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown letter template: {request.template}"
            )
        missing = template.missing_fields(request.template_fields)
        draft = DraftRequest.from_template(template.value, **details)
    elif request.template_body:
        details.setdefault("title", "Untitled Letter")
        draft = DraftRequest(template_body=request.template_body, **details)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide either a template or a template_body"
        )

    logger.info(f"Generating draft '{draft.title}' for {session.email}")
    return DraftResponse(content=generator.generate(draft), missing_fields=missing)


# =============================================================================
# LETTER CRUD
# =============================================================================

@router.get("", response_model=List[LetterResponse])
async def list_letters(facade: LetterFacade = Depends(get_letter_facade)):
    """The caller's letters, newest first."""
    return [letter_response(letter) for letter in facade.fetch_letters()]


@router.post("", response_model=LetterResponse, status_code=status.HTTP_201_CREATED)
async def create_letter(request: LetterCreateRequest, facade: LetterFacade = Depends(get_letter_facade)):
    letter = facade.create_letter(LetterInput(**request.model_dump()))
    return letter_response(letter)


@router.put("/{letter_id}", response_model=LetterResponse)
async def update_letter(
    letter_id: str,
    request: LetterUpdateRequest,
    facade: LetterFacade = Depends(get_letter_facade),
):
    stored = facade.get_letter(letter_id)
    changes = {
        key: value
        for key, value in request.model_dump(exclude_unset=True).items()
        if value is not None or key in CLEARABLE_FIELDS
    }
    updated = facade.update_letter(stored.copy(**changes))
    return letter_response(updated)


@router.post("/{letter_id}/status", response_model=LetterResponse)
async def update_letter_status(
    letter_id: str,
    request: StatusUpdateRequest,
    facade: LetterFacade = Depends(get_letter_facade),
):
    return letter_response(facade.transition_letter(letter_id, request.status))


@router.delete("/{letter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_letter(letter_id: str, facade: LetterFacade = Depends(get_letter_facade)):
    facade.delete_letter(letter_id)
