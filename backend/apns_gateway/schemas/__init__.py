"""Pydantic schemas for request/response validation"""
from apns_gateway.schemas.tokens import (
    IPRequest,
    BlockRequest,
    TokenRegisterRequest,
    StatusResponse,
    TokenEntryResponse,
    TokenListResponse,
)
from apns_gateway.schemas.push import (
    BlastRequest,
    PushRequest,
    QueuedResponse,
)

__all__ = [
    "IPRequest",
    "BlockRequest",
    "TokenRegisterRequest",
    "StatusResponse",
    "TokenEntryResponse",
    "TokenListResponse",
    "BlastRequest",
    "PushRequest",
    "QueuedResponse",
]
