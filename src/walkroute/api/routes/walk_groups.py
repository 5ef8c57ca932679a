"""Walk grouping endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from ...schemas.grouping import GroupSuggestionRequest, GroupSuggestionResponse
from ...services.grouping.service import process_suggestion_request

router = APIRouter(prefix="/walk-groups", tags=["walk-groups"])


@router.post("/suggestions", response_model=GroupSuggestionResponse, status_code=status.HTTP_200_OK)
def suggestions(payload: GroupSuggestionRequest) -> GroupSuggestionResponse:
    try:
        return process_suggestion_request(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
