from __future__ import annotations


class ThreadScoutError(Exception):
    """Base error for the retrieval pipeline."""


class FetchError(ThreadScoutError):
    def __init__(self, url: str, reason: str, status_code: int | None = None):
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason
        self.status_code = status_code


class QueryRewriteError(ThreadScoutError):
    pass


class RerankError(ThreadScoutError):
    pass


class GenerationError(ThreadScoutError):
    pass
