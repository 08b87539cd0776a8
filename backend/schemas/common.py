# backend/schemas/common.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# JSON bodies use camelCase (labCode, patientId), Python code uses snake_case
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Error body returned by every failing endpoint
class ApiError(BaseModel):
    timestamp: datetime
    status: int
    error: str
    message: str
    path: str
    details: Optional[Dict[str, Any]] = None


# Documented error responses shared by the protected routers
PROTECTED_RESPONSES = {
    401: {"model": ApiError, "description": "Missing or invalid bearer token"},
    403: {"model": ApiError, "description": "Authenticated but not allowed"},
}
