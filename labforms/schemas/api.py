"""Common API envelope models."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ResponseMeta(BaseModel):
    """Metadata attached to every successful response."""

    timestamp: datetime = Field(..., description="Response creation time")
    request_id: str = Field(..., description="Correlation ID of the request")
    api_version: str = Field(default="v1", description="API version")


class ApiResponse(BaseModel):
    """Standard success envelope."""

    status: bool = Field(default=True, description="Whether the operation succeeded")
    message: str = Field(..., description="Human readable summary")
    data: Dict[str, Any] = Field(default_factory=dict, description="Response payload")
    meta: ResponseMeta


class ErrorDetail(BaseModel):
    """Problem details body (RFC 7807)."""

    type: str = Field(default="about:blank", description="Problem type URI")
    title: str = Field(..., description="Short summary of the problem")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Explanation specific to this occurrence")
    instance: Optional[str] = Field(None, description="Request path")
    request_id: Optional[str] = Field(None, description="Correlation ID of the request")
    timestamp: datetime = Field(..., description="Error time")
    extensions: Optional[Dict[str, Any]] = Field(None, description="Problem specific fields")
