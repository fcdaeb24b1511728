"""Paced fan-out for per-URL work against rate-limited hosts."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

from loguru import logger

T = TypeVar("T")
R = TypeVar("R")


async def run_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    batch_size: int,
    inter_batch_delay: float,
    on_error: Callable[[T, BaseException], R | None] | None = None,
) -> list[R | None]:
    """Run ``worker`` over ``items`` in waves of ``batch_size``.

    Items inside a wave run concurrently. The scheduler sleeps
    ``inter_batch_delay`` seconds between waves but not after the last one.
    Results keep input order; a failed item is replaced by
    ``on_error(item, exc)`` (``None`` when no handler is given).
    """
    size = max(int(batch_size), 1)
    results: list[R | None] = []
    total_batches = (len(items) + size - 1) // size

    for batch_index, start in enumerate(range(0, len(items), size)):
        wave = list(items[start : start + size])
        outcomes = await asyncio.gather(*(worker(item) for item in wave), return_exceptions=True)
        for item, outcome in zip(wave, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Batch item {item!r} failed: {outcome}")
                results.append(on_error(item, outcome) if on_error else None)
            else:
                results.append(outcome)

        if batch_index < total_batches - 1 and inter_batch_delay > 0:
            logger.debug(
                f"Batch {batch_index + 1}/{total_batches} done; waiting {inter_batch_delay}s"
            )
            await asyncio.sleep(inter_batch_delay)

    return results
