from pydantic import BaseModel


class APIMessage(BaseModel):
    message: str


class ErrorDetail(BaseModel):
    code: str
    message: str
    entity: str | None = None
    constraint: str | None = None


class ErrorResponse(BaseModel):
    detail: ErrorDetail
