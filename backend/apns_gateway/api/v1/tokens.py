"""
Token registry API endpoints

Endpoints:
- POST /api/v1/token - Register a device token for a client IP
- GET /api/v1/tokens/send - List the send list
- DELETE /api/v1/tokens/send - Remove an IP from the send list
- GET /api/v1/tokens/block - List the block list
- POST /api/v1/tokens/block - Add an IP directly to the block list
- DELETE /api/v1/tokens/block - Remove an IP from the block list
- POST /api/v1/tokens/move-to-block - Move an IP from send to block
- POST /api/v1/tokens/move-to-send - Move an IP from block to send

Deletes and moves act on both environments. NotFound answers 404.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from apns_gateway.api.v1.auth import require_basic_auth
from apns_gateway.api.v1.dependencies import get_default_environment, get_registry
from apns_gateway.schemas.tokens import (
    BlockRequest,
    IPRequest,
    StatusResponse,
    TokenEntryResponse,
    TokenListResponse,
    TokenRegisterRequest,
)
from apns_gateway.services.push.constants import Environment
from apns_gateway.services.registry.token_registry import TokenEntry, TokenRegistry

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["tokens"],
    dependencies=[Depends(require_basic_auth)],
)


def _list_response(entries: List[TokenEntry]) -> TokenListResponse:
    return TokenListResponse(
        count=len(entries),
        entries=[TokenEntryResponse(**e.to_dict()) for e in entries],
    )


def _not_found(ip: str, where: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"IP {ip} not found in {where} list",
    )


@router.post("/token", response_model=StatusResponse, response_model_exclude_none=True)
async def register_token(
    request_body: TokenRegisterRequest,
    registry: TokenRegistry = Depends(get_registry),
    default_environment: Environment = Depends(get_default_environment),
):
    """
    Register or update the device token for a client IP

    Ignored (not an error) when the IP is blocked in that environment or
    the same token is already stored.
    """
    environment = request_body.server_type or default_environment
    outcome = registry.register(environment, request_body.ip, request_body.token)

    if outcome.stored:
        return StatusResponse(status="ok")
    return StatusResponse(status="ignored", reason=outcome.reason)


@router.get("/tokens/send", response_model=TokenListResponse)
async def list_send_tokens(
    server_type: Optional[Environment] = Query(None, description="Filter by environment"),
    registry: TokenRegistry = Depends(get_registry),
):
    """List send-list entries, both environments unless filtered"""
    return _list_response(registry.list_send(server_type))


@router.delete("/tokens/send", response_model=StatusResponse, response_model_exclude_none=True)
async def delete_send_token(
    request_body: IPRequest,
    registry: TokenRegistry = Depends(get_registry),
):
    """Remove an IP from the send list in both environments"""
    if not registry.delete_send(request_body.ip):
        raise _not_found(request_body.ip, "send")
    return StatusResponse(status="ok")


@router.get("/tokens/block", response_model=TokenListResponse)
async def list_block_tokens(
    server_type: Optional[Environment] = Query(None, description="Filter by environment"),
    registry: TokenRegistry = Depends(get_registry),
):
    """List block-list entries, both environments unless filtered"""
    return _list_response(registry.list_block(server_type))


@router.post("/tokens/block", response_model=StatusResponse, response_model_exclude_none=True)
async def add_block_token(
    request_body: BlockRequest,
    registry: TokenRegistry = Depends(get_registry),
):
    """Block an IP in both environments, dropping any send-list entry"""
    registry.add_block(request_body.ip, request_body.token)
    return StatusResponse(status="ok")


@router.delete("/tokens/block", response_model=StatusResponse, response_model_exclude_none=True)
async def delete_block_token(
    request_body: IPRequest,
    registry: TokenRegistry = Depends(get_registry),
):
    """Remove an IP from the block list in both environments"""
    if not registry.delete_block(request_body.ip):
        raise _not_found(request_body.ip, "block")
    return StatusResponse(status="ok")


@router.post("/tokens/move-to-block", response_model=StatusResponse, response_model_exclude_none=True)
async def move_to_block(
    request_body: IPRequest,
    registry: TokenRegistry = Depends(get_registry),
):
    """Move an IP from the send list to the block list"""
    if not registry.move_to_block(request_body.ip):
        raise _not_found(request_body.ip, "send")
    return StatusResponse(status="ok")


@router.post("/tokens/move-to-send", response_model=StatusResponse, response_model_exclude_none=True)
async def move_to_send(
    request_body: IPRequest,
    registry: TokenRegistry = Depends(get_registry),
):
    """Move an IP from the block list back to the send list"""
    if not registry.move_to_send(request_body.ip):
        raise _not_found(request_body.ip, "block")
    return StatusResponse(status="ok")
