import pytest

from querydoc.ingest.chunking import ChunkingConfig, DocumentSegmenter, chunk_pages
from querydoc.ingest.models import PageText, TextItem


def _numbered_words(count: int) -> str:
    return " ".join(f"w{index}" for index in range(count))


def test_sliding_window_overlap_invariant() -> None:
    page = PageText(page_number=1, text=_numbered_words(250))

    chunks = chunk_pages([page], "doc", chunk_size=100, overlap=20)

    assert [len(chunk.text.split()) for chunk in chunks] == [100, 100, 90, 10]
    for current, following in zip(chunks[:-2], chunks[1:-1]):
        assert current.text.split()[-20:] == following.text.split()[:20]
    assert all(chunk.rects is None for chunk in chunks)


def test_sliding_window_covers_every_word() -> None:
    words = _numbered_words(137).split()
    pages = [PageText(page_number=1, text=" ".join(words)), PageText(page_number=2, text="tail words")]

    chunks = chunk_pages(pages, "doc", chunk_size=40, overlap=7)

    covered = {word for chunk in chunks if chunk.page_number == 1 for word in chunk.text.split()}
    assert covered == set(words)
    assert chunks[-1].page_number == 2
    assert chunks[-1].text == "tail words"


def test_chunk_ids_and_indices_increase_across_pages() -> None:
    pages = [PageText(page_number=1, text="alpha beta"), PageText(page_number=2, text="gamma")]

    chunks = chunk_pages(pages, "doc-7", "report.pdf")

    assert [chunk.chunk_id for chunk in chunks] == ["doc-7-0", "doc-7-1"]
    assert [chunk.chunk_index for chunk in chunks] == [0, 1]
    assert {chunk.document_name for chunk in chunks} == {"report.pdf"}


def test_empty_page_yields_no_chunks() -> None:
    assert chunk_pages([PageText(page_number=1, text="")], "doc") == []


@pytest.mark.parametrize(
    ("chunk_size", "overlap"),
    [(0, 0), (10, -1), (10, 10), (5, 8)],
)
def test_invalid_config_raises(chunk_size: int, overlap: int) -> None:
    with pytest.raises(ValueError):
        DocumentSegmenter(ChunkingConfig(chunk_size=chunk_size, overlap=overlap))


def _layout_page(items: list[TextItem], page_number: int = 1) -> PageText:
    return PageText(
        page_number=page_number,
        text=" ".join(item.text for item in items),
        items=tuple(items),
    )


def test_layout_paragraphs_follow_vertical_gaps() -> None:
    items = [
        TextItem("First paragraph opens here", left=10, top=100, width=130, height=10),
        TextItem("and continues on line two", left=10, top=112, width=125, height=10),
        TextItem("Second paragraph after a gap", left=10, top=140, width=140, height=10),
    ]

    chunks = chunk_pages([_layout_page(items)], "doc")

    assert [chunk.text for chunk in chunks] == [
        "First paragraph opens here and continues on line two",
        "Second paragraph after a gap",
    ]
    for chunk in chunks:
        assert chunk.rects is not None
        assert len(chunk.rects) == len(chunk.text.split())


def test_layout_lines_join_fragments_left_to_right() -> None:
    items = [
        TextItem("second half of the line", left=120, top=101.5, width=100, height=10),
        TextItem("The first half,", left=10, top=100, width=90, height=10),
    ]

    chunks = chunk_pages([_layout_page(items)], "doc")

    assert len(chunks) == 1
    assert chunks[0].text == "The first half, second half of the line"
    lefts = [rect.left for rect in chunks[0].rects]
    assert lefts == sorted(lefts)


def test_layout_word_rects_are_proportional() -> None:
    items = [TextItem("ab cd", left=0, top=50, width=50, height=10)]

    chunks = chunk_pages([_layout_page(items)], "doc")

    first, second = chunks[0].rects
    assert first.left == pytest.approx(0.0)
    assert first.width == pytest.approx(20.0)
    assert second.left == pytest.approx(30.0)
    assert second.width == pytest.approx(20.0)
    assert first.top == second.top == 50


def test_layout_drops_short_paragraphs_unless_all_are_short() -> None:
    body = TextItem("A paragraph that is long enough to keep", left=10, top=100, width=200, height=10)
    footer = TextItem("12", left=10, top=700, width=10, height=10)

    chunks = chunk_pages([_layout_page([body, footer])], "doc")
    assert [chunk.text for chunk in chunks] == [body.text]

    only_short = chunk_pages([_layout_page([footer])], "doc")
    assert [chunk.text for chunk in only_short] == ["12"]
