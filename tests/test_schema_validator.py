from exposure_kb.pipeline.schema_validator import (
    SchemaValidationConfig,
    SchemaValidator,
    Severity,
)


def test_fixture_knowledge_base_is_valid(knowledge_base):
    result = SchemaValidator().validate(knowledge_base)

    assert result.is_valid
    assert result.errors == []
    assert result.score == 100


def test_validation_is_idempotent(knowledge_base):
    validator = SchemaValidator()
    first = validator.validate(knowledge_base)
    second = validator.validate(knowledge_base)
    assert (first.is_valid, first.score) == (second.is_valid, second.score)


def test_out_of_range_risk_score_is_one_high_error(knowledge_base):
    document = knowledge_base.to_dict()
    document["occupations"][0]["riskScore"] = 1.2

    result = SchemaValidator().validate(document)

    assert [(e.field, e.severity) for e in result.errors] == [("occupations[0].riskScore", Severity.HIGH)]
    assert result.is_valid
    assert result.score == 90


def test_out_of_range_confidence_is_one_high_error(knowledge_base):
    document = knowledge_base.to_dict()
    document["occupations"][1]["confidence"] = -0.1

    result = SchemaValidator().validate(document)

    assert len(result.errors) == 1
    assert result.errors[0].severity == Severity.HIGH
    assert result.errors[0].field == "occupations[1].confidence"


def test_row_length_mismatch_is_one_error_per_row(knowledge_base):
    document = knowledge_base.to_dict()
    document["tables"][0]["rows"][1] = ["Data Scientists", "15-2051"]

    result = SchemaValidator().validate(document)

    high = result.errors_with(Severity.HIGH)
    assert len(high) == 1
    assert "table_1" in high[0].message
    assert "row 1" in high[0].message


def test_missing_required_fields_are_critical(knowledge_base):
    document = knowledge_base.to_dict()
    del document["metadata"]["title"]
    document["occupations"] = []

    result = SchemaValidator().validate(document)

    assert not result.is_valid
    critical_fields = {e.field for e in result.errors_with(Severity.CRITICAL)}
    assert "metadata.title" in critical_fields
    assert "occupations" in critical_fields


def test_format_and_duplicate_checks(knowledge_base):
    document = knowledge_base.to_dict()
    document["metadata"]["arxivId"] = "not-an-id"
    document["metadata"]["url"] = "arxiv.org/pdf"
    document["occupations"][1]["code"] = "15-1252"
    document["occupations"][2]["code"] = "151252"
    document["occupations"][2]["tableReferences"] = ["table_9"]
    document["tables"][1]["page"] = 0

    result = SchemaValidator().validate(document)

    by_field = {(e.field, e.severity) for e in result.errors}
    assert ("metadata.arxivId", Severity.MEDIUM) in by_field
    assert ("metadata.url", Severity.MEDIUM) in by_field
    assert ("occupations[1].code", Severity.HIGH) in by_field
    assert ("occupations[2].code", Severity.HIGH) in by_field
    assert ("occupations[2].tableReferences", Severity.HIGH) in by_field
    assert ("tables[1].page", Severity.MEDIUM) in by_field


def test_wrong_types_reported_when_enabled(knowledge_base):
    document = knowledge_base.to_dict()
    document["occupations"][0]["riskScore"] = "high"
    document["tables"] = {"table_1": {}}

    result = SchemaValidator().validate(document)
    assert ("occupations[0].riskScore", Severity.HIGH) in {(e.field, e.severity) for e in result.errors}
    assert ("tables", Severity.CRITICAL) in {(e.field, e.severity) for e in result.errors}

    relaxed = SchemaValidator().validate(document, SchemaValidationConfig(check_data_types=False, validate_references=False))
    assert "occupations[0].riskScore" not in {e.field for e in relaxed.errors}


def test_strict_mode_adds_warnings(knowledge_base):
    document = knowledge_base.to_dict()
    document["occupations"][0]["keyTasks"] = ["Code"]
    document["tables"][2]["rows"] = []

    result = SchemaValidator().validate(document, SchemaValidationConfig(strict_mode=True))

    fields = {w.field for w in result.warnings}
    assert "occupations[0].keyTasks[0]" in fields
    assert "tables[2].rows" in fields
    assert result.score == 100 - 2 * len(result.warnings)


def test_empty_authors_is_warning(knowledge_base):
    document = knowledge_base.to_dict()
    document["metadata"]["authors"] = []

    result = SchemaValidator().validate(document)

    assert result.errors == []
    assert [w.field for w in result.warnings] == ["metadata.authors"]
    assert result.score == 98


def _document_with_unhashable_ids(knowledge_base):
    document = knowledge_base.to_dict()
    document["occupations"][0]["code"] = ["15-1252"]
    document["tables"][1]["id"] = {"id": "table_2"}
    document["occupations"][1]["tableReferences"] = [["table_1"]]
    return document


def test_non_string_identifiers_are_type_errors(knowledge_base):
    result = SchemaValidator().validate(_document_with_unhashable_ids(knowledge_base))

    assert {e.field for e in result.errors} == {
        "occupations[0].code",
        "tables[1].id",
        "occupations[1].tableReferences",
    }
    assert all(e.severity == Severity.HIGH for e in result.errors)
    assert result.is_valid


def test_non_string_identifiers_without_type_checks(knowledge_base):
    result = SchemaValidator().validate(
        _document_with_unhashable_ids(knowledge_base), SchemaValidationConfig(check_data_types=False)
    )

    assert [e.field for e in result.errors] == ["occupations[1].tableReferences"]
