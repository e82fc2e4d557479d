from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Envelope shared by every successful response"""

    ok: bool = True
    data: T


class ErrorDetail(BaseModel):
    code: str
    message: str


class APIErrorResponse(BaseModel):
    ok: bool = False
    data: ErrorDetail


class MessageResponse(BaseModel):
    message: str


class IDResponse(BaseModel):
    id: int


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


def success(data: T) -> APIResponse[T]:
    return APIResponse(data=data)


def message(text: str) -> APIResponse[MessageResponse]:
    return APIResponse(data=MessageResponse(message=text))


def created_id(id: int) -> APIResponse[IDResponse]:
    return APIResponse(data=IDResponse(id=id))
