"""Medical response validation endpoint."""

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends

from rexai.api.deps import OwnerId, get_validator
from rexai.schemas.validation import ValidationResultResponse, VoiceResponse
from rexai.services.llm.medical_validator import MedicalValidator

router = APIRouter(prefix="/validate", tags=["Validation"])


@router.post("", response_model=ValidationResultResponse)
async def validate_response(
    payload: VoiceResponse,
    _owner_id: OwnerId,
    validator: Annotated[MedicalValidator, Depends(get_validator)],
):
    """Check a structured AI response for unknown drugs, odd dosages and risky wording."""
    # Drug lookups block on HTTP.
    result = await asyncio.to_thread(validator.validate, payload.model_dump())
    return ValidationResultResponse(**result.to_dict())
