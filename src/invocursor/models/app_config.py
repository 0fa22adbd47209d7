"""Data models for page/element configuration documents.

A configuration describes the host application to the planner: its pages,
and per page the interactive elements keyed by a unique selector.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ElementConfig(BaseModel):
    """Descriptive metadata for one interactive element.

    Attributes:
        type: Control type (checkbox, text, button, select, ...).
        label: Human-readable label.
        synonyms: Other names users might use for this element.
    """

    model_config = ConfigDict(extra="ignore")

    type: str = Field(..., description="Control type, e.g. 'checkbox'.")
    label: str = Field(..., description="Human-readable label.")
    synonyms: Optional[list[str]] = Field(
        default=None, description="Alternative names users might say."
    )


class PageConfig(BaseModel):
    """A page of the host application and its elements."""

    model_config = ConfigDict(extra="ignore")

    description: str = Field(default="")
    elements: dict[str, ElementConfig] = Field(default_factory=dict)


class AppInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(...)
    description: str = Field(default="")


class AppConfig(BaseModel):
    """A complete configuration document."""

    model_config = ConfigDict(extra="ignore")

    app: AppInfo
    pages: dict[str, PageConfig] = Field(default_factory=dict)
