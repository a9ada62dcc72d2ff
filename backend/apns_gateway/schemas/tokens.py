"""Token registry Pydantic schemas for request/response validation"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from apns_gateway.models.kv_entry import KEY_MAX_LENGTH, VALUE_MAX_LENGTH
from apns_gateway.services.push.constants import DEVICE_TOKEN_PATTERN, Environment


class IPRequest(BaseModel):
    """Request body naming a registry entry by client IP."""
    ip: str = Field(
        ...,
        min_length=1,
        max_length=KEY_MAX_LENGTH,
        description="Client IPv4 address used as registry key"
    )

    @field_validator('ip')
    @classmethod
    def validate_ip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ip cannot be empty")
        return v


class BlockRequest(IPRequest):
    """Request body for adding an entry directly to the block list."""
    token: str = Field(
        ...,
        min_length=1,
        max_length=VALUE_MAX_LENGTH,
        pattern=DEVICE_TOKEN_PATTERN,
        description="APNS device token (hex string)"
    )


class TokenRegisterRequest(BlockRequest):
    """Request body for registering a device token."""
    server_type: Optional[Environment] = Field(
        None,
        description="APNS environment; the gateway default when omitted"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "ip": "10.0.0.5",
                "token": "a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6e7f8a9b0c1d2e3f4a5b6c7d8e9f0a1b2",
                "server_type": "sandbox"
            }
        }


class StatusResponse(BaseModel):
    """Generic operation status."""
    status: str = Field(..., description="ok, ignored or queued")
    reason: Optional[str] = Field(None, description="Why a request was ignored")


class TokenEntryResponse(BaseModel):
    """One registry entry."""
    ip: str
    token: str
    server_type: Environment


class TokenListResponse(BaseModel):
    """Registry list listing."""
    count: int = Field(..., description="Number of entries returned")
    entries: List[TokenEntryResponse] = Field(default_factory=list)
