"""Shared fixtures for the test-suite."""
from __future__ import annotations

from typing import Callable, Optional, Sequence

import pytest

from querydoc.ingest.models import Chunk, Rect


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def make_chunk() -> Callable[..., Chunk]:
    counter = {"index": 0}

    def _make(
        text: str,
        page_number: int = 1,
        *,
        document_id: str = "doc",
        document_name: str = "contract.pdf",
        rects: Optional[Sequence[Rect]] = None,
    ) -> Chunk:
        index = counter["index"]
        counter["index"] += 1
        return Chunk(
            chunk_id=f"{document_id}-{index}",
            text=text,
            page_number=page_number,
            chunk_index=index,
            document_id=document_id,
            document_name=document_name,
            rects=tuple(rects) if rects is not None else None,
        )

    return _make


def word_rects(text: str, *, top: float = 100.0) -> tuple[Rect, ...]:
    return tuple(
        Rect(left=10.0 * index, top=top, width=8.0, height=10.0)
        for index, _ in enumerate(text.split())
    )


@pytest.fixture
def rects_for() -> Callable[..., tuple[Rect, ...]]:
    return word_rects
