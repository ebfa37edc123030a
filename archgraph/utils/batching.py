"""Batching helpers shared by the loader and the enrichment pass."""

from collections.abc import Iterator, Sequence
from typing import TypeVar

T = TypeVar("T")


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive lists of at most ``size`` elements."""
    if size < 1:
        msg = f"Batch size must be positive, got {size}"
        raise ValueError(msg)
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def iter_batches(items: Sequence[T], size: int) -> Iterator[tuple[int, list[T]]]:
    """Yield ``(batch_number, batch)`` pairs, numbering from 1."""
    for number, batch in enumerate(chunk(items, size), start=1):
        yield number, batch
