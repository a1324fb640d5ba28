"""Split a buffer of known length into fixed-size, 1-indexed chunks."""

from __future__ import annotations

from typing import NamedTuple

from binforge.errors import ValidationError
from binforge.models.config import MAX_PARTS


class Chunk(NamedTuple):
    """A half-open byte range ``[start, end)`` of the content."""

    index: int  # 1-based
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


def chunk_count(total_size: int, part_size: int) -> int:
    """``ceil(total_size / part_size)``."""
    return -(-total_size // part_size)


def plan_chunks(total_size: int, part_size: int, *, max_parts: int = MAX_PARTS) -> list[Chunk]:
    """Plan the chunks of a ``total_size`` byte buffer.

    Every chunk is ``part_size`` long except the last, which holds the
    remainder and is in ``(0, part_size]``. An empty buffer has no chunks.

    Raises
    ------
    ValidationError
        If ``part_size`` is not positive, ``total_size`` is negative, or the
        plan would exceed ``max_parts`` chunks.
    """
    if part_size <= 0:
        raise ValidationError(f"Part size must be positive, got {part_size}")
    if total_size < 0:
        raise ValidationError(f"Content size must not be negative, got {total_size}")

    count = chunk_count(total_size, part_size)
    if count > max_parts:
        raise ValidationError(
            f"Content of {total_size} bytes needs {count} parts of {part_size} bytes; "
            f"at most {max_parts} parts are allowed. Increase the part size."
        )

    return [
        Chunk(index=i + 1, start=i * part_size, end=min((i + 1) * part_size, total_size))
        for i in range(count)
    ]
