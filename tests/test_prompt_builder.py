import pytest

from querydoc.prompt_builder import (
    PINPOINT_NONE,
    SYSTEM_PREAMBLE,
    build_pinpoint_prompt,
    build_prompt,
    build_summary_prompt,
)
from querydoc.services.chat import Message


def test_build_prompt_includes_cited_blocks_in_order(make_chunk) -> None:
    first = make_chunk("The deadline is March 1st.", page_number=2, document_name="lease.pdf")
    second = make_chunk("Rent is due monthly.", page_number=4, document_name="terms.pdf")

    prompt = build_prompt("What is the deadline?", [first, second])

    assert prompt.startswith(SYSTEM_PREAMBLE)
    first_block = "[Document: lease.pdf, Page 2]\nThe deadline is March 1st."
    second_block = "[Document: terms.pdf, Page 4]\nRent is due monthly."
    assert f"{first_block}\n\n---\n\n{second_block}" in prompt
    assert "Previous Conversation:" not in prompt
    assert prompt.endswith("Final Question: What is the deadline?\n\nAnswer:")


def test_build_prompt_formats_history(make_chunk) -> None:
    history = [
        Message.create("user", "Who signed?"),
        Message.create("assistant", "Maria Lopez."),
    ]

    prompt = build_prompt("When?", [make_chunk("Signed on May 2.")], history)

    assert "Previous Conversation:\nQuestion: Who signed?\nAnswer: Maria Lopez.\n\n" in prompt
    assert prompt.index("Previous Conversation:") < prompt.index("Final Question: When?")


def test_build_prompt_unknown_document_name(make_chunk) -> None:
    chunk = make_chunk("Some text.", page_number=1, document_name=None)

    assert "[Document: Unknown, Page 1]" in build_prompt("q", [chunk])


def test_build_prompt_rejects_missing_question() -> None:
    with pytest.raises(ValueError):
        build_prompt(None, [])  # type: ignore[arg-type]


def test_pinpoint_prompt_lists_excerpts_and_answer(make_chunk) -> None:
    prompt = build_pinpoint_prompt("Due in thirty days.", [make_chunk("Pay within thirty days.")])

    assert "[Excerpt 1]\nPay within thirty days." in prompt
    assert "ANSWER:\nDue in thirty days." in prompt
    assert PINPOINT_NONE in prompt


def test_summary_prompt_truncates_document_text() -> None:
    text = "a" * 3000 + "TAIL"

    prompt = build_summary_prompt(text)

    assert "a" * 3000 in prompt
    assert "TAIL" not in prompt
    assert prompt.rstrip().endswith("SUMMARY:")
