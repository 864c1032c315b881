from exposure_kb.pipeline.adapters import ReferencePaperAdapter
from exposure_kb.pipeline.models import RawTable, TableKind
from exposure_kb.pipeline.normalizer import (
    DataNormalizer,
    NormalizationConfig,
    normalize_soc_code,
    standardize_occupation_name,
)

TOP_HEADERS = ("Occupation", "SOC Code", "Exposure Score", "Employment", "Median Wage")


def _top_table(rows, confidence=0.96, page=9):
    return RawTable(
        page=page,
        title="Top Occupations",
        headers=TOP_HEADERS,
        rows=tuple(rows),
        confidence=confidence,
        kind=TableKind.TOP_OCCUPATIONS,
    )


def test_reference_tables_normalize_without_issues():
    result = DataNormalizer().normalize(ReferencePaperAdapter().extract_tables())

    assert [t.id for t in result.tables] == ["table_1", "table_2", "table_3", "table_4"]
    assert result.tables[0].source == "Page 7"
    assert len(result.occupations) == 30
    assert result.issues == []
    assert all(ref.match_count > 0 for ref in result.cross_references)

    by_name = {o.name: o for o in result.occupations}
    assert by_name["Computer and Mathematical"].code == "15-0000"
    assert by_name["Computer and Mathematical"].confidence == 0.95
    assert by_name["Software Developers"].confidence == 0.96
    assert "Systems Analysts" in by_name
    assert "Computer Systems Analysts" not in by_name


def test_name_standardization_and_aliases():
    assert standardize_occupation_name("  Software   Developers, Applications ") == "Software Developers"
    assert standardize_occupation_name("Lawyers*") == "Lawyers"
    assert standardize_occupation_name("Budget Analysts") == "Budget Analysts"


def test_configured_aliases_replace_defaults():
    aliases = {"Writers, Technical": "Technical Writers"}

    assert standardize_occupation_name("Writers,  Technical", aliases) == "Technical Writers"
    assert standardize_occupation_name("Software Developers, Applications", aliases) == (
        "Software Developers, Applications"
    )
    assert DataNormalizer(aliases=aliases).standardize_name("Writers, Technical") == "Technical Writers"


def test_soc_major_group_expanded():
    assert normalize_soc_code("15") == "15-0000"
    assert normalize_soc_code(" 15-1252 ") == "15-1252"


def test_merge_by_name_overwrites_scalars_and_unions_references():
    first = _top_table([("Software Developers, Applications", "15-1256", "0.95", "1", "$1")], confidence=0.9)
    second = _top_table([("Software Developers", "15-1252", "0.96", "1", "$1")], confidence=0.96, page=10)

    result = DataNormalizer().normalize([first, second])

    assert len(result.occupations) == 1
    merged = result.occupations[0]
    assert merged.name == "Software Developers"
    assert merged.code == "15-1252"
    assert merged.risk_score == 0.96
    assert merged.confidence == 0.96
    assert merged.table_references == ("table_1", "table_2")
    assert merged.key_tasks[0] == "Code generation and programming"
    assert any("15-1256" in issue and "15-1252" in issue for issue in result.issues)


def test_unparseable_score_becomes_issue():
    table = _top_table([("Lawyers", "23-1011", "n/a", "1", "$1"), ("Economists", "19-3011", "0.76", "1", "$1")])

    result = DataNormalizer().normalize([table])

    assert [o.name for o in result.occupations] == ["Economists"]
    assert any("unparseable" in issue for issue in result.issues)


def test_opaque_tables_do_not_produce_occupations():
    table = RawTable(
        page=3,
        title=None,
        headers=("Occupation", "SOC Code", "Exposure Score"),
        rows=(("Lawyers", "23-1011", "0.85"),),
        confidence=0.9,
    )

    result = DataNormalizer().normalize([table])

    assert result.occupations == []
    assert result.tables[0].title == "Table 1"
    assert result.tables[0].kind == TableKind.OPAQUE


def test_consistency_issues_reported():
    table = _top_table([("Lawyers", "", "1.5", "1", "$1"), ("Economists", "19-3011", "0.76")])

    result = DataNormalizer().normalize([table])

    assert any("Invalid risk score for Lawyers" in issue for issue in result.issues)
    assert any("Missing SOC code for occupation: Lawyers" in issue for issue in result.issues)
    assert any("row 2: column count mismatch" in issue for issue in result.issues)


def test_cross_references_require_matching_values():
    occupations = _top_table([("Lawyers", "23-1011", "0.85", "1", "$1")])
    jobs = RawTable(
        page=4,
        title="Jobs",
        headers=("Job", "Notes"),
        rows=(("lawyers", "x"),),
        confidence=0.9,
    )
    unrelated = RawTable(page=5, title="Other", headers=("Role",), rows=(("Pilots",),), confidence=0.9)

    refs = DataNormalizer().create_cross_references(
        DataNormalizer().normalize([occupations, jobs, unrelated]).tables
    )

    assert len(refs) == 1
    assert refs[0].source_table_id == "table_1"
    assert refs[0].target_table_id == "table_2"
    assert refs[0].linking_field == "occupation"
    assert refs[0].match_count == 1


def test_cross_references_can_be_disabled():
    config = NormalizationConfig(create_cross_references=False)
    result = DataNormalizer().normalize(ReferencePaperAdapter().extract_tables(), config)
    assert result.cross_references == []
