"""Pydantic schemas for the Payments API."""

from pydantic import BaseModel


class WebhookReceivedResponse(BaseModel):
    received: bool = True
    outcome: str
    order_id: str | None = None


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Gateway unavailable"


class MarkSessionPaidRequest(BaseModel):
    session_id: str


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
