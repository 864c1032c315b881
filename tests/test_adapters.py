from types import SimpleNamespace

import pytest

from exposure_kb.pipeline.adapters import (
    DoclingPaperAdapter,
    ReferencePaperAdapter,
    classify_table_kind,
    now_iso,
    validate_raw_tables,
)
from exposure_kb.pipeline.models import RawTable, TableKind


@pytest.mark.parametrize(
    "title, kind",
    [
        ("Table 1: Exposure to Generative AI by Occupation Group", TableKind.OCCUPATION_GROUP),
        ("Table 2: Top 20 Occupations Most Exposed", TableKind.TOP_OCCUPATIONS),
        ("Table 3: Industry-Level Exposure", TableKind.INDUSTRY_EXPOSURE),
        ("Table 4: Task Categories and AI Automation Potential", TableKind.TASK_AUTOMATION),
        ("Appendix: regression coefficients", TableKind.OPAQUE),
        (None, TableKind.OPAQUE),
        ("", TableKind.OPAQUE),
    ],
)
def test_classify_table_kind(title, kind):
    assert classify_table_kind(title) == kind


def test_reference_adapter_tables():
    tables = ReferencePaperAdapter().extract_tables()

    assert [t.kind for t in tables] == [
        TableKind.OCCUPATION_GROUP,
        TableKind.TOP_OCCUPATIONS,
        TableKind.INDUSTRY_EXPOSURE,
        TableKind.TASK_AUTOMATION,
    ]
    assert [t.page for t in tables] == [7, 9, 11, 13]
    assert all(len(row) == len(t.headers) for t in tables for row in t.rows)


def test_reference_adapter_confidence_threshold():
    tables = ReferencePaperAdapter(min_confidence=0.95).extract_tables()
    assert [t.page for t in tables] == [7, 9]


def test_reference_adapter_text_and_metadata():
    adapter = ReferencePaperAdapter(source_url="https://arxiv.org/abs/2507.07935")

    text = adapter.extract_text(sections=("methodology",))
    assert list(text.sections) == ["methodology"]
    assert text.page_count == 28
    assert text.confidence == 0.96

    metadata = adapter.extract_metadata()
    assert metadata.arxiv_id == "2507.07935"
    assert metadata.url == "https://arxiv.org/abs/2507.07935"
    assert len(metadata.authors) == 3


def test_now_iso_is_utc():
    stamp = now_iso()
    assert stamp.endswith("Z")
    assert "T" in stamp


def test_validate_raw_tables_reports_structure():
    tables = [
        RawTable(page=1, headers=(), rows=(), confidence=0.9),
        RawTable(page=2, headers=("a", "b"), rows=(("1",),), confidence=0.5),
    ]

    errors, warnings = validate_raw_tables(tables)

    assert errors == ["Table on page 1 has no headers", "Table on page 1 has no data rows"]
    assert "Table on page 2 has inconsistent column counts" in warnings
    assert any("low extraction confidence" in w for w in warnings)


def test_validate_raw_tables_accepts_reference_tables():
    assert validate_raw_tables(ReferencePaperAdapter().extract_tables()) == ([], [])


def _cell(text):
    return SimpleNamespace(text=text)


def test_docling_grid_to_rows_strips_and_skips_blank_rows():
    adapter = DoclingPaperAdapter.__new__(DoclingPaperAdapter)
    grid = [
        [_cell(" Occupation "), _cell("Score")],
        [_cell(""), _cell(None)],
        [_cell("Writers"), _cell("0.90 ")],
    ]

    assert adapter._grid_to_rows(grid) == [("Occupation", "Score"), ("Writers", "0.90")]


@pytest.mark.parametrize(
    "url, arxiv_id",
    [
        ("https://arxiv.org/pdf/2507.07935", "2507.07935"),
        ("https://arxiv.org/pdf/2507.07935.pdf", "2507.07935"),
        ("https://arxiv.org/abs/2507.07935/", "2507.07935"),
        ("", "unknown"),
    ],
)
def test_docling_arxiv_id_from_url(url, arxiv_id):
    adapter = DoclingPaperAdapter.__new__(DoclingPaperAdapter)
    assert adapter._arxiv_id_from_url(url) == arxiv_id


def test_docling_section_name_matches_heading():
    adapter = DoclingPaperAdapter.__new__(DoclingPaperAdapter)
    assert adapter._section_name("3. Methodology", {"methodology"}) == "methodology"
    assert adapter._section_name("Acknowledgements", {"methodology"}) is None
