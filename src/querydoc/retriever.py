"""Lexical relevance ranking of chunks against a question."""
from __future__ import annotations

import math
import re
import time
from typing import List, Optional, Protocol, Sequence

from querydoc.ingest.models import Chunk
from querydoc.telemetry import emit_retriever_event

_PUNCTUATION_RE = re.compile(r"[?.,!]")
_SUFFIX_RE = re.compile(r"(ing|ed|s|es)$")

EXACT_POINTS = 2
EXACT_CAP = 3
ROOT_CAP = 2
UNIQUE_MATCH_BONUS = 15
DIVERSITY_RATIO = 0.7
HISTORY_USER_TURNS = 2
HISTORY_MAX_KEYWORDS = 5


class ConversationTurn(Protocol):
    """Anything exposing a chat ``role`` and ``content``."""

    role: str
    content: str


def _words(text: str) -> List[str]:
    return _PUNCTUATION_RE.sub(" ", text.lower()).split()


def expand_query(question: str, history: Optional[Sequence[ConversationTurn]] = None) -> str:
    """Append up to five keywords from the last two user turns to *question*."""

    expanded = question.lower()
    if not history:
        return expanded

    user_turns = [turn for turn in history if turn.role == "user"][-HISTORY_USER_TURNS:]
    keywords = [
        word
        for turn in user_turns
        for word in _words(turn.content)
        if len(word) > 4
    ]
    present = set(expanded.split())
    additions = [word for word in dict.fromkeys(keywords) if word not in present]
    return f"{expanded} {' '.join(additions[:HISTORY_MAX_KEYWORDS])}"


def score_chunk(query: str, text: str) -> float:
    """Score *text* against *query*.

    Whole-word hits earn two points each (at most three counted) and a
    full unique match. Longer words without an exact hit may still match on a
    suffix-stripped root for one point each (at most two) and half a unique
    match. Every unique match then adds a flat bonus, so covering more distinct
    query words outranks repeating one of them.
    """

    chunk_lower = text.lower()
    score = 0.0
    unique_matches = 0.0

    for word in (w for w in _words(query) if len(w) > 2):
        exact = len(re.findall(rf"(?<!\w){re.escape(word)}(?!\w)", chunk_lower))
        if exact > 0:
            unique_matches += 1
            score += min(exact, EXACT_CAP) * EXACT_POINTS
        elif len(word) > 4:
            root = _SUFFIX_RE.sub("", word, count=1)
            if len(root) > 3:
                partial = chunk_lower.count(root)
                if partial > 0:
                    unique_matches += 0.5
                    score += min(partial, ROOT_CAP)

    return score + unique_matches * UNIQUE_MATCH_BONUS


def find_relevant_chunks(
    question: str,
    chunks: Sequence[Chunk],
    top_k: int = 10,
    history: Optional[Sequence[ConversationTurn]] = None,
) -> List[Chunk]:
    """Return up to *top_k* positively scored chunks, most relevant first.

    No single document contributes more than ``ceil(top_k * 0.7)`` chunks. An
    empty list means nothing in the corpus shares a word with the question.
    """

    if top_k <= 0 or not chunks:
        return []

    started = time.perf_counter()
    query = expand_query(question, history)
    scored = [(score_chunk(query, chunk.text), chunk) for chunk in chunks]
    scored.sort(key=lambda item: item[0], reverse=True)
    candidates = [(score, chunk) for score, chunk in scored if score > 0]

    per_document_cap = math.ceil(top_k * DIVERSITY_RATIO)
    counts: dict[str, int] = {}
    selected: List[Chunk] = []
    selected_scores: List[float] = []
    for score, chunk in candidates:
        if len(selected) >= top_k:
            break
        document_id = chunk.document_id or "unknown"
        if counts.get(document_id, 0) < per_document_cap:
            selected.append(chunk)
            selected_scores.append(score)
            counts[document_id] = counts.get(document_id, 0) + 1

    emit_retriever_event(
        query=query,
        top_k=top_k,
        results=[
            {"id": chunk.chunk_id, "page": chunk.page_number, "score": score}
            for chunk, score in zip(selected, selected_scores)
        ],
        duration_ms=(time.perf_counter() - started) * 1000.0,
    )
    return selected


__all__ = ["ConversationTurn", "expand_query", "find_relevant_chunks", "score_chunk"]
