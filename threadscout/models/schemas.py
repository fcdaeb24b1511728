from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    history: list[ChatMessage] = Field(default_factory=list)
    optimization_mode: Literal["speed", "balanced", "quality"] = "balanced"
    file_ids: list[str] = Field(default_factory=list)
    model: str | None = None
