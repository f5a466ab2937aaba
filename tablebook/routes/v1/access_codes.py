# tablebook/routes/v1/access_codes.py
"""Temporary access code routes - API v1."""

from typing import List

from fastapi import APIRouter, Depends, status

from ...api.dependencies import get_access_code_service, get_request_context
from ...core.context import RequestContext
from ...schemas.access import AccessCodeCreate, AccessCodeResponse
from ...services.access_code_service import AccessCodeService

router = APIRouter(tags=["access-codes-v1"])


@router.post("", response_model=AccessCodeResponse, status_code=status.HTTP_201_CREATED)
def issue_access_code(
    payload: AccessCodeCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: AccessCodeService = Depends(get_access_code_service),
) -> AccessCodeResponse:
    code = service.issue_code(ctx, payload.starts_at, payload.ends_at)
    return AccessCodeResponse.model_validate(code)


@router.get("", response_model=List[AccessCodeResponse])
def list_access_codes(
    ctx: RequestContext = Depends(get_request_context),
    service: AccessCodeService = Depends(get_access_code_service),
) -> List[AccessCodeResponse]:
    return [AccessCodeResponse.model_validate(code) for code in service.list_codes(ctx)]


@router.post("/{code_id}/cancel", response_model=AccessCodeResponse)
def cancel_access_code(
    code_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: AccessCodeService = Depends(get_access_code_service),
) -> AccessCodeResponse:
    return AccessCodeResponse.model_validate(service.cancel_code(ctx, code_id))
