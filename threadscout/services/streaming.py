from __future__ import annotations

from typing import Any

from threadscout.models.events import EventType, SSEEvent


def sources(documents: list[dict[str, Any]]) -> SSEEvent:
    """Emit the ranked documents the answer will cite."""
    return SSEEvent(event=EventType.SOURCES, data={"sources": documents})


def response(chunk: str) -> SSEEvent:
    return SSEEvent(event=EventType.RESPONSE, data={"chunk": chunk})


def end(runtime_ms: int | None = None, **kwargs: Any) -> SSEEvent:
    data: dict[str, Any] = dict(kwargs)
    if runtime_ms is not None:
        data["runtime_ms"] = runtime_ms
    return SSEEvent(event=EventType.END, data=data)


def error(message: str, stage: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if stage:
        data["stage"] = stage
    return SSEEvent(event=EventType.ERROR, data=data)
