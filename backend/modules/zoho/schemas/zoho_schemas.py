# backend/modules/zoho/schemas/zoho_schemas.py

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ZohoRowsResponse(BaseModel):
    rows: List[Dict[str, Any]]


class ZohoRowCreate(BaseModel):
    tableName: str = Field(..., min_length=1)
    data: Dict[str, Any]

    @field_validator("data")
    @classmethod
    def validate_data(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if not v:
            raise ValueError("data must contain at least one column")
        return v


class ZohoRowUpdate(ZohoRowCreate):
    id: int = Field(..., gt=0)


class ZohoRowDelete(BaseModel):
    tableName: str = Field(..., min_length=1)
    id: int = Field(..., gt=0)


class ZohoMutationResponse(BaseModel):
    success: bool = True
    data: Optional[Any] = None


class ZohoHealthResponse(BaseModel):
    configured: bool
    tokenCached: bool
    backoffRemainingMs: int
