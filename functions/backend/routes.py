"""
HTTP routes exposing the action handlers outside Cloud Functions.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header

from actions import ACTIONS, dispatch
from actions.common import ErrorCode, error
from backend.auth import AuthClient, InvalidTokenError
from backend.dependencies import get_auth_client, get_clients
from backend.schemas import ActionListResponse, ActionResponse, HealthResponse
from shared.api import CallerContext

logger = logging.getLogger(__name__)

router = APIRouter()


def get_caller(
    authorization: Optional[str] = Header(default=None),
    auth: AuthClient = Depends(get_auth_client),
) -> Optional[CallerContext]:
    """
    Resolves the caller from an optional `Authorization: Bearer <ID token>` header.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise error(ErrorCode.UNAUTHENTICATED, "Encabezado de autorización inválido.")
    try:
        claims = auth.verify_id_token(token.strip())
    except InvalidTokenError as e:
        logger.info("Rejected ID token: %s", e)
        raise error(ErrorCode.UNAUTHENTICATED, "Token de identificación inválido.")
    return CallerContext(uid=claims.get("uid") or claims.get("sub"), token=claims)


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@router.get("/actions", response_model=ActionListResponse)
def list_actions():
    return ActionListResponse(actions=sorted(ACTIONS))


@router.post("/{action}", response_model=ActionResponse)
def run_action(
    action: str,
    payload: Optional[dict] = Body(default=None),
    caller: Optional[CallerContext] = Depends(get_caller),
):
    """
    Runs one action. Coded errors are rendered by the app's exception handler.
    """
    logger.info("Action %s by %s", action, caller.uid if caller else "anonymous")
    result = dispatch(action, payload or {}, caller, get_clients())
    return ActionResponse(result=result)
