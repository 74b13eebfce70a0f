# backend/modules/templates/schemas/template_schemas.py

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TemplateCreate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = ""
    type: Optional[str] = None
    content: Optional[Dict[str, Any]] = None
    supported_formats: Optional[List[str]] = Field(None, alias="supportedFormats")
    sections: List[str] = Field(default_factory=list)
    charts: List[str] = Field(default_factory=list)
    formatting: Dict[str, Any] = Field(default_factory=dict)
    layout: Dict[str, Any] = Field(default_factory=dict)
    is_default: bool = Field(False, alias="isDefault")

    class Config:
        populate_by_name = True


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    type: Optional[str] = None
    content: Optional[Dict[str, Any]] = None
    supported_formats: Optional[List[str]] = Field(None, alias="supportedFormats")
    sections: Optional[List[str]] = None
    charts: Optional[List[str]] = None
    formatting: Optional[Dict[str, Any]] = None
    layout: Optional[Dict[str, Any]] = None
    status: Optional[str] = Field(None, pattern="^(active|inactive)$")

    class Config:
        populate_by_name = True


class TemplateDuplicateRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=255)


class TemplateImportRequest(BaseModel):
    template: Dict[str, Any]


class TemplateResponse(BaseModel):
    id: str
    user_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    type: str
    content: Optional[Dict[str, Any]] = None
    supported_formats: List[str] = Field(default_factory=list)
    sections: List[str] = Field(default_factory=list)
    charts: List[str] = Field(default_factory=list)
    formatting: Dict[str, Any] = Field(default_factory=dict)
    layout: Dict[str, Any] = Field(default_factory=dict)
    is_default: bool
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TemplateLimits(BaseModel):
    maxTemplatesPerUser: int
    maxTemplateSize: int
    currentCount: int


class TemplateListResponse(BaseModel):
    success: bool = True
    templates: List[TemplateResponse]
    limits: TemplateLimits


class TemplateMutationResponse(BaseModel):
    success: bool = True
    message: str
    template: TemplateResponse


class DefaultTemplatesResponse(BaseModel):
    success: bool = True
    templates: Dict[str, Dict[str, Any]]
    types: List[str]
    formats: List[str]
