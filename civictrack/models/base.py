"""
Base models shared by every request/response schema.
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Any, Optional


class CamelModel(BaseModel):
    """
    Snake_case in Python, camelCase on the wire.
    Accepts either spelling on input.
    """

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        use_enum_values = True


class ApiResponse(BaseModel):
    """
    Envelope for API responses.
    All routes return this shape for consistency.
    """
    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None
