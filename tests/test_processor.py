import json

import pytest

from exposure_kb.pipeline.adapters import ReferencePaperAdapter
from exposure_kb.pipeline.models import KnowledgeBase, RawTable
from exposure_kb.pipeline.processor import (
    KnowledgeBaseProcessor,
    ProcessingConfig,
    load_knowledge_base,
)
from exposure_kb.pipeline.repository import InMemoryKnowledgeBaseRepository, SqlAlchemyKnowledgeBaseRepository
from exposure_kb.pipeline.schema_validator import SchemaValidator
from exposure_kb.pipeline.storage import KnowledgeBaseStorage, StoragePaths
from exposure_kb.service.errors import DataNotFoundError, ErrorHandler, ErrorHandlingConfig, InvalidDataError


def _no_sleep_handler():
    return ErrorHandler(ErrorHandlingConfig(), sleep=lambda _: None)


def _run(tmp_path, repository=None, **config_kwargs):
    adapter = ReferencePaperAdapter()
    processor = KnowledgeBaseProcessor(repository=repository, error_handler=_no_sleep_handler())
    config = ProcessingConfig(output_dir=tmp_path / "out", **config_kwargs)
    return processor.process(adapter.extract_tables(), adapter.extract_text(), adapter.extract_metadata(), config)


def test_pipeline_writes_artifact_and_sidecar(tmp_path):
    result = _run(tmp_path)

    assert result.output_path == tmp_path / "out" / "ai_employment_risks.json"
    assert result.output_path.exists()
    sidecar = json.loads(result.metadata_path.read_text(encoding="utf-8"))
    assert sidecar["occupationCount"] == 30
    assert sidecar["tableCount"] == 4
    assert sidecar["qualityScore"] == pytest.approx(96.0)
    assert sidecar["manualReviewRequired"] is False
    assert set(sidecar) == {
        "extractionDate",
        "version",
        "qualityScore",
        "occupationCount",
        "tableCount",
        "manualReviewRequired",
    }

    kb = result.knowledge_base
    assert kb.methodology.analysis_approach.startswith("We map O*NET work activities")
    assert kb.methodology.confidence == 0.96
    assert [v.data_source for v in kb.visualizations] == [
        "occupations",
        "tables.industry_exposure",
        "tables.task_automation",
    ]
    assert result.validation is not None
    assert not result.manual_review_required


def test_persist_reload_round_trip(tmp_path):
    result = _run(tmp_path)

    reloaded = load_knowledge_base(result.output_path)

    assert reloaded == result.knowledge_base
    validator = SchemaValidator()
    assert validator.validate(reloaded).score == validator.validate(result.knowledge_base).score


def test_schema_only_validation(tmp_path):
    result = _run(tmp_path, run_comprehensive_validation=False)

    assert result.validation is not None
    validation = result.validation
    assert validation.schema.is_valid
    assert validation.pass_failures == []
    assert validation.skipped_passes == ["data_integrity", "completeness"]
    assert not validation.completeness.is_complete
    assert validation.quality_report.data_accuracy is None
    assert validation.quality_report.completeness is None
    assert validation.quality_report.overall_score == validation.schema.score
    assert validation.overall.is_valid
    assert "Validation pass not run: data_integrity" in validation.overall.warnings


def test_no_tables_fails_before_persisting(tmp_path):
    adapter = ReferencePaperAdapter()
    processor = KnowledgeBaseProcessor()

    with pytest.raises(InvalidDataError):
        processor.process([], adapter.extract_text(), adapter.extract_metadata(), ProcessingConfig(output_dir=tmp_path))

    assert not (tmp_path / "ai_employment_risks.json").exists()


def test_issues_lower_quality_score_and_flag_review(tmp_path):
    adapter = ReferencePaperAdapter()
    broken = RawTable(
        page=2,
        title="Top Occupations",
        headers=("Occupation", "SOC Code", "Exposure Score", "Employment", "Median Wage"),
        rows=tuple((f"Job {i}", f"11-10{i:02d}", "bad", "1", "$1") for i in range(6)),
        confidence=0.9,
        kind=adapter.extract_tables()[1].kind,
    )
    processor = KnowledgeBaseProcessor(error_handler=_no_sleep_handler())

    result = processor.process(
        adapter.extract_tables() + [broken],
        adapter.extract_text(),
        adapter.extract_metadata(),
        ProcessingConfig(output_dir=tmp_path),
    )

    assert len(result.issues) == 6
    assert result.knowledge_base.extraction_info.manual_review_required
    assert result.knowledge_base.extraction_info.quality_score == pytest.approx((100 - 12) * 0.96)


def test_exports_tables_and_text(tmp_path):
    result = _run(tmp_path, export_csv=True, export_text=True)

    csv_path = tmp_path / "out" / "tables" / "table_1.csv"
    assert csv_path in result.exported_files
    assert csv_path.read_text(encoding="utf-8").splitlines()[0].startswith("Occupation Group,SOC Major Group")
    text = (tmp_path / "out" / "extracted_text.txt").read_text(encoding="utf-8")
    assert "## ABSTRACT" in text


def test_snapshot_saved_in_memory(tmp_path):
    repo = InMemoryKnowledgeBaseRepository()

    result = _run(tmp_path, repository=repo)

    assert result.snapshot_id is not None
    assert repo.get_snapshot(result.snapshot_id) == result.knowledge_base
    assert repo.latest_snapshot() == result.knowledge_base


def test_sqlalchemy_snapshot_roundtrip(tmp_path):
    db_path = tmp_path / "kb.db"
    repo = SqlAlchemyKnowledgeBaseRepository(f"sqlite+pysqlite:///{db_path}")

    result = _run(tmp_path, repository=repo)

    assert repo.get_snapshot(result.snapshot_id) == result.knowledge_base
    assert repo.get_snapshot("missing") is None
    records = repo.list_snapshots()
    assert len(records) == 1
    assert records[0].occupation_count == 30
    assert records[0].arxiv_id == "2507.07935"
    assert repo.latest_snapshot() == result.knowledge_base


def test_storage_rejects_bad_json(tmp_path):
    storage = KnowledgeBaseStorage(StoragePaths(tmp_path), _no_sleep_handler())
    tmp_path.joinpath("ai_employment_risks.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(InvalidDataError):
        storage.load_knowledge_base()


def test_storage_missing_file(tmp_path):
    storage = KnowledgeBaseStorage(StoragePaths(tmp_path / "empty"), _no_sleep_handler())

    with pytest.raises(DataNotFoundError):
        storage.load_knowledge_base()


def test_unknown_visualization_type_is_invalid(knowledge_base):
    document = knowledge_base.to_dict()
    document["visualizations"][0]["type"] = "radar"

    with pytest.raises(InvalidDataError):
        KnowledgeBase.from_dict(document)


def test_top_level_document_must_be_object():
    with pytest.raises(InvalidDataError):
        KnowledgeBase.from_dict(["not", "an", "object"])


@pytest.mark.parametrize(
    "section, field, value",
    [
        ("tables", "page", "9"),
        ("tables", "rows", [["Software Developers", "15-1252", 0.96]]),
        ("tables", "id", None),
        ("metadata", "authors", "Edward W. Felten"),
        ("extractionInfo", "manualReviewRequired", "no"),
    ],
)
def test_wrongly_typed_fields_are_invalid(knowledge_base, section, field, value):
    document = knowledge_base.to_dict()
    target = document[section][0] if section == "tables" else document[section]
    target[field] = value

    with pytest.raises(InvalidDataError):
        KnowledgeBase.from_dict(document)
