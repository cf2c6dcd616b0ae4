"""
Pydantic models for API request validation and the response envelope.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import StylingOptions


class CamelModel(BaseModel):
    """Accepts camelCase keys from clients and snake_case from Python callers."""
    model_config = ConfigDict(populate_by_name=True)


# ─────────────────────────────────────────────────────────────
# Article Schemas
# ─────────────────────────────────────────────────────────────

class CreateArticleRequest(CamelModel):
    """Save a URL."""
    url: str = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)


class UpdateArticleRequest(CamelModel):
    """Partial update; omitted fields are left alone."""
    title: str | None = None
    tags: list[str] | None = None
    is_favorite: bool | None = Field(default=None, alias="isFavorite")
    is_archived: bool | None = Field(default=None, alias="isArchived")
    read_progress: int | None = Field(default=None, alias="readProgress", ge=0, le=100)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("title must not be blank")
        return value


class CheckDuplicateRequest(CamelModel):
    url: str = Field(min_length=1)


# ─────────────────────────────────────────────────────────────
# Snapshot Schemas
# ─────────────────────────────────────────────────────────────

class StylingSchema(CamelModel):
    """Presentation overrides for PDF and HTML snapshots."""
    font_size: str | None = Field(default=None, alias="fontSize")
    font_family: str | None = Field(default=None, alias="fontFamily")
    line_height: float | None = Field(default=None, alias="lineHeight")
    max_width: str | None = Field(default=None, alias="maxWidth")
    theme: str | None = Field(default=None, pattern="^(light|dark|sepia)$")

    def to_options(self) -> StylingOptions:
        return StylingOptions(
            font_size=self.font_size,
            font_family=self.font_family,
            line_height=self.line_height,
            max_width=self.max_width,
            theme=self.theme,
        )


class SnapshotRequest(CamelModel):
    format: str = "pdf"
    styling: StylingSchema | None = None
    upload_to_cloud: bool = Field(default=True, alias="uploadToCloud")
    verify_integrity: bool = Field(default=False, alias="verifyIntegrity")


class PreviewRequest(CamelModel):
    format: str = "pdf"


# ─────────────────────────────────────────────────────────────
# Batch Schemas
# ─────────────────────────────────────────────────────────────

class BatchSnapshotRequest(CamelModel):
    article_ids: list[str] = Field(default_factory=list, alias="articleIds")
    format: str = "pdf"
    styling: StylingSchema | None = None


class BatchOperationRequest(CamelModel):
    article_ids: list[str] = Field(default_factory=list, alias="articleIds")
    operation: str
    params: dict[str, Any] = Field(default_factory=dict)


# ─────────────────────────────────────────────────────────────
# Response Envelope
# ─────────────────────────────────────────────────────────────

def success(data: Any = None) -> dict[str, Any]:
    """Wrap a payload in the success envelope."""
    return {"success": True, "data": data}


def failure(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build the error envelope."""
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"success": False, "error": error}
