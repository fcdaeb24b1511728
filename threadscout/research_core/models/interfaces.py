from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


OptimizationMode = Literal["speed", "balanced", "quality"]
SourceKind = Literal[
    "discussion",
    "discussion_text",
    "web",
    "pdf",
    "snippet",
    "summary",
    "file",
    "failure",
]


@dataclass(slots=True)
class CandidateUrl:
    url: str
    origin_score: float = 0.0


@dataclass(frozen=True, slots=True)
class ThreadMetrics:
    post_score: int = 0
    top_comment_score: int = 0
    comment_count: int = 0
    sample_scores: tuple[int, ...] = ()
    title: str = ""
    html_length: int = 0
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ThreadScore:
    url: str
    score: float
    metrics: ThreadMetrics


class Visibility(str, Enum):
    VISIBLE = "visible"
    COLLAPSED = "collapsed"
    UNMARKED = "unmarked"

    @classmethod
    def from_class_tokens(cls, tokens: set[str]) -> "Visibility":
        if "collapsed" in tokens:
            return cls.COLLAPSED
        if "noncollapsed" in tokens:
            return cls.VISIBLE
        return cls.UNMARKED


@dataclass(slots=True)
class Comment:
    author: str
    text: str
    score: int | None = None
    visibility: Visibility = Visibility.UNMARKED

    @property
    def visible(self) -> bool:
        return self.visibility is Visibility.VISIBLE


@dataclass(slots=True)
class ExtractedDiscussion:
    title: str
    post_body: str = ""
    comments: list[Comment] = field(default_factory=list)
    success: bool = False


@dataclass(slots=True)
class DocumentMetadata:
    title: str
    url: str
    is_discussion: bool = False
    source_kind: SourceKind = "web"
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "is_discussion": self.is_discussion,
            "source_kind": self.source_kind,
            **self.extra,
        }


@dataclass(slots=True)
class RetrievedDocument:
    content: str
    metadata: DocumentMetadata

    @property
    def is_failure(self) -> bool:
        return self.metadata.source_kind == "failure"

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "metadata": self.metadata.to_dict()}


@dataclass(slots=True)
class RankedDocument:
    document: RetrievedDocument
    similarity: float | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = self.document.to_dict()
        if self.similarity is not None:
            payload["metadata"]["similarity"] = round(self.similarity, 4)
        return payload


@dataclass(slots=True)
class FileChunk:
    file_name: str
    content: str
    embedding: list[float]


@dataclass(slots=True)
class FetchedPage:
    url: str
    final_url: str
    html: str
    strategy: str
    status_code: int = 200
    content_type: str = "text/html"
    body: bytes = b""

    @property
    def is_pdf(self) -> bool:
        return "application/pdf" in self.content_type.lower()


@dataclass(slots=True)
class FetchFailure:
    url: str
    reason: str
    status_code: int | None = None
    strategy: str | None = None


@dataclass(slots=True)
class PromptContext:
    text: str
    documents: list[RankedDocument] = field(default_factory=list)
