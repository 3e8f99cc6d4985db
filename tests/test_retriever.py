import math
from collections import Counter
from dataclasses import dataclass

import pytest

from querydoc.retriever import expand_query, find_relevant_chunks, score_chunk


@dataclass
class _Turn:
    role: str
    content: str


def test_deadline_scenario_excludes_unrelated_chunk(make_chunk) -> None:
    deadline = make_chunk("The deadline is March 1st.", page_number=2)
    weather = make_chunk("Unrelated text about weather.", page_number=5)

    results = find_relevant_chunks("What is the deadline?", [weather, deadline], top_k=3)

    assert results == [deadline]
    assert score_chunk("what is the deadline?", weather.text) == 0


def test_exact_matches_are_capped_at_three() -> None:
    assert score_chunk("deadline", "deadline " * 5) == 3 * 2 + 15
    assert score_chunk("deadline", "deadline once") == 2 + 15


def test_root_match_counts_as_half() -> None:
    # "purchased" -> "purchase"
    assert score_chunk("purchased", "the purchase order") == pytest.approx(1 + 7.5)
    # "bus" is too short to be matched by its root
    assert score_chunk("buses", "a bus stop") == 0


def test_short_query_words_are_ignored() -> None:
    assert score_chunk("is it on", "it is on") == 0


def test_more_distinct_matches_rank_higher(make_chunk) -> None:
    repeated = make_chunk("payment payment payment payment")
    distinct = make_chunk("payment terms and invoice")

    results = find_relevant_chunks("payment terms invoice", [repeated, distinct], top_k=5)

    assert results == [distinct, repeated]


def test_two_exact_words_outrank_one_stemmed_partial(make_chunk) -> None:
    exact = make_chunk("signed contracts are archived")
    partial = make_chunk("one contract on file")

    # "contracts" only reaches "contract" through its root
    assert score_chunk("signed contracts", partial.text) == pytest.approx(1 + 7.5)
    assert score_chunk("signed contracts", exact.text) > score_chunk("signed contracts", partial.text)
    assert find_relevant_chunks("signed contracts", [partial, exact]) == [exact, partial]


def test_equal_scores_keep_input_order(make_chunk) -> None:
    first = make_chunk("clause about renewal")
    second = make_chunk("renewal clause text")

    assert find_relevant_chunks("renewal", [first, second]) == [first, second]


def test_document_diversity_cap(make_chunk) -> None:
    dominant = [make_chunk(f"invoice invoice invoice {i}", document_id="a") for i in range(6)]
    other = [make_chunk("invoice", document_id="b"), make_chunk("invoice", document_id="b")]

    results = find_relevant_chunks("invoice", dominant + other, top_k=4)

    assert len(results) == 4
    assert sum(1 for chunk in results if chunk.document_id == "a") == 3
    assert results[-1].document_id == "b"


def test_diversity_cap_is_seven_of_ten_across_three_documents(make_chunk) -> None:
    strongest = [make_chunk(f"invoice invoice invoice {i}", document_id="a") for i in range(10)]
    middle = [make_chunk(f"invoice invoice {i}", document_id="b") for i in range(10)]
    weakest = [make_chunk(f"invoice {i}", document_id="c") for i in range(10)]

    results = find_relevant_chunks("invoice", weakest + middle + strongest, top_k=10)

    per_document = Counter(chunk.document_id for chunk in results)
    assert len(results) == 10
    assert per_document == {"a": 7, "b": 3}
    assert max(per_document.values()) <= math.ceil(10 * 0.7)


def test_chunks_without_document_share_a_bucket(make_chunk) -> None:
    chunks = [make_chunk("invoice", document_id=None) for _ in range(4)]

    assert len(find_relevant_chunks("invoice", chunks, top_k=2)) == 2
    assert len(find_relevant_chunks("invoice", chunks, top_k=3)) == 3


def test_empty_results(make_chunk) -> None:
    chunks = [make_chunk("completely different words")]

    assert find_relevant_chunks("deadline?", chunks) == []
    assert find_relevant_chunks("deadline", []) == []
    assert find_relevant_chunks("completely", chunks, top_k=0) == []


def test_expand_query_uses_last_two_user_turns() -> None:
    history = [
        _Turn("user", "Ancient question about elephants"),
        _Turn("user", "Tell me of the contract signing ceremony."),
        _Turn("assistant", "The ceremony happened in Vienna."),
        _Turn("user", "What happened afterwards?"),
    ]

    expanded = expand_query("Who signed it?", history)

    assert expanded == "who signed it? contract signing ceremony happened afterwards"
    assert "elephants" not in expanded
    assert "vienna" not in expanded


def test_expand_query_skips_words_already_asked_and_caps_additions() -> None:
    history = [_Turn("user", "alpha bravo charlie delta echoes foxtrot golfer hotel")]

    expanded = expand_query("bravo", history)

    assert expanded.split() == ["bravo", "alpha", "charlie", "delta", "echoes", "foxtrot"]


def test_history_keywords_pull_in_follow_up_context(make_chunk) -> None:
    chunks = [make_chunk("Maria Lopez signed the agreement."), make_chunk("Budget overview.")]
    history = [_Turn("user", "Who is Maria Lopez?"), _Turn("assistant", "A signatory.")]

    results = find_relevant_chunks("When did she sign?", chunks, history=history)

    assert results[0].text.startswith("Maria Lopez")
