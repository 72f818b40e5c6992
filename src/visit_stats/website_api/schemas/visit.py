"""Pydantic models for visit request/response bodies."""

from typing import Dict
from pydantic import BaseModel


class VisitResponse(BaseModel):
    country: str
    count: int


class ResetResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    services: Dict[str, str]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    detail: str
