"""Response envelopes used by every API route."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ListEnvelope(BaseModel, Generic[T]):
    """Envelope for list endpoints."""

    success: bool = True
    data: list[T]
    count: int


class DataEnvelope(BaseModel, Generic[T]):
    """Envelope for single-object reads and mutations."""

    success: bool = True
    data: T
    message: str | None = None


class MessageEnvelope(BaseModel):
    """Envelope for mutations that return no object."""

    success: bool = True
    message: str


class ErrorEnvelope(BaseModel):
    """Envelope for failures."""

    success: bool = False
    error: str


def list_response(items: list) -> dict:
    """Wrap a list of items with its count."""
    return {"success": True, "data": items, "count": len(items)}


def data_response(data, message: str | None = None) -> dict:
    """Wrap a single object, optionally with a message."""
    return {"success": True, "data": data, "message": message}
