"""Utilities for constructing prompts for the document assistant."""
from __future__ import annotations

from typing import Optional, Sequence

from querydoc.ingest.models import Chunk
from querydoc.retriever import ConversationTurn

CONTEXT_SEPARATOR = "\n\n---\n\n"
SUMMARY_CHAR_LIMIT = 3000
PINPOINT_NONE = "NONE"

SYSTEM_PREAMBLE = """You are a professional document analysis assistant.
You are provided with excerpts from one or more documents.
Review the provided context and conversation history to answer the final question accurately.

CRITICAL GUIDELINES:
1. Answer based ONLY on the provided document text.
2. If multiple documents are mentioned, cross-reference them to find connections (e.g., if one document mentions a person and another mentions an action they took).
3. Always cite the document name and page numbers used in your answer.
4. If the answer is not in the context, say you don't have enough information."""


def format_chunk(chunk: Chunk) -> str:
    return f"[Document: {chunk.document_name or 'Unknown'}, Page {chunk.page_number}]\n{chunk.text}"


def format_history(history: Optional[Sequence[ConversationTurn]]) -> str:
    if not history:
        return ""
    lines = [
        f"{'Question' if turn.role == 'user' else 'Answer'}: {turn.content}"
        for turn in history
    ]
    return "Previous Conversation:\n" + "\n".join(lines) + "\n\n"


def build_prompt(
    question: str,
    chunks: Sequence[Chunk],
    history: Optional[Sequence[ConversationTurn]] = None,
) -> str:
    """Compose the grounded answering prompt.

    *history* must be the same window the ranker used for query expansion so
    that follow-up questions resolve against the same turns that picked the
    context.
    """

    if question is None:
        raise ValueError("question must not be None")

    context = CONTEXT_SEPARATOR.join(format_chunk(chunk) for chunk in chunks)
    return (
        f"{SYSTEM_PREAMBLE}\n\n"
        "---\n"
        "DOCUMENT CONTEXT:\n"
        f"{context}\n"
        "---\n\n"
        f"{format_history(history)}"
        f"Final Question: {question}\n\n"
        "Answer:"
    )


def build_pinpoint_prompt(answer: str, chunks: Sequence[Chunk]) -> str:
    """Ask the model for the single verbatim sentence that supports *answer*."""

    excerpts = "\n\n".join(
        f"[Excerpt {index}]\n{chunk.text}" for index, chunk in enumerate(chunks, start=1)
    )
    return (
        "Below are document excerpts and an answer that was generated from them.\n"
        "Copy, word for word, the single sentence or short phrase from the excerpts "
        "that most directly supports the answer.\n"
        "Reply with that text only: no quotes, no explanation, no excerpt label.\n"
        f"If nothing in the excerpts supports the answer, reply {PINPOINT_NONE}.\n\n"
        f"EXCERPTS:\n{excerpts}\n\n"
        f"ANSWER:\n{answer}\n\n"
        "SUPPORTING TEXT:"
    )


def build_summary_prompt(text: str) -> str:
    return f"""Below is the content of a document. Please provide a concise, structured summary.
If it's a RESUME, include: Name, Skills, Experience years, and key roles.
If it's a RESEARCH PAPER, include: Abstract/Objective, Key Findings, and Methodology.
If it's a CONTRACT, include: Parties, Key dates, and Obligations.
For any other doc: Main topic and 3 key points.

DOCUMENT CONTENT:
"
{text[:SUMMARY_CHAR_LIMIT]}
"

SUMMARY:"""


__all__ = [
    "PINPOINT_NONE",
    "SYSTEM_PREAMBLE",
    "build_pinpoint_prompt",
    "build_prompt",
    "build_summary_prompt",
    "format_chunk",
    "format_history",
]
