"""Controller layer for session token issuance."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field

from backend.controllers.dependencies import bearer_scheme, get_auth_service, require_caller
from backend.services.auth_service import AuthService, InvalidSessionTokenError


router = APIRouter(tags=["auth"])


class TokenRequest(BaseModel):
    email: str = Field(min_length=3)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LogoutResponse(BaseModel):
    message: str


@router.post("/jwt", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def issue_token(
    payload: TokenRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Issue a bearer session token for the given email.

    The ``/jwt`` path is kept for client compatibility; the token itself is an
    opaque server-side session id, not a signed JWT.
    """
    try:
        return TokenResponse(access_token=auth_service.issue_token(payload.email))
    except InvalidSessionTokenError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post(
    "/logout",
    response_model=LogoutResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_caller)],
)
def logout(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> LogoutResponse:
    auth_service.revoke(credentials.credentials)
    return LogoutResponse(message="Logged out")
