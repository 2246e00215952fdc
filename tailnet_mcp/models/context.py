from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..backend.base import Backend


class ToolContext(BaseModel):
    """
    Shared, read-only context handed to every tool handler.

    Constructed once at startup and reused for all dispatches.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    backend: Backend = Field(description="Network-management backend the handlers act on.")
