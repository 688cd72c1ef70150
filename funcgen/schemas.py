from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field


# Backend wire model
class StructuredError(BaseModel):
    """The only response shape the backend may use to report invalid input."""

    model_config = ConfigDict(extra="ignore")
    error: bool
    message: str


# Request Models
class InvokeRequest(BaseModel):
    input: Any = Field(..., description="Input value passed to the generated function.")


# Response Models
class InvokeResponse(BaseModel):
    name: str
    output: Any = Field(..., description="Decoded output of the generated function.")


class FunctionList(BaseModel):
    functions: List[str]


# Error Models
class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail
