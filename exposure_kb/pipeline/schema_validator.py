from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

from .models import KnowledgeBase

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


@dataclass
class SchemaValidationConfig:
    strict_mode: bool = False
    validate_references: bool = True
    check_data_types: bool = True


@dataclass(frozen=True)
class SchemaValidationError:
    field: str
    message: str
    severity: Severity
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message, "severity": self.severity.value, "value": self.value}


@dataclass(frozen=True)
class SchemaValidationWarning:
    field: str
    message: str
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "message": self.message, "suggestion": self.suggestion}


@dataclass
class SchemaValidationResult:
    is_valid: bool
    errors: List[SchemaValidationError] = field(default_factory=list)
    warnings: List[SchemaValidationWarning] = field(default_factory=list)
    score: float = 100.0

    def errors_with(self, severity: Severity) -> List[SchemaValidationError]:
        return [e for e in self.errors if e.severity == severity]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "score": self.score,
        }


REQUIRED_FIELDS: Dict[str, tuple] = {
    "knowledgeBase": ("metadata", "methodology", "occupations", "tables", "visualizations", "extractionInfo"),
    "metadata": ("title", "arxivId", "url", "authors", "extractionDate", "version"),
    "occupation": ("code", "name", "riskScore", "keyTasks", "tableReferences", "confidence"),
    "table": ("id", "title", "page", "headers", "rows", "source"),
}

SOC_CODE_PATTERN = re.compile(r"^\d{2}-\d{4}$")
ARXIV_ID_PATTERN = re.compile(r"^(arXiv:)?(\d{4}\.\d{4,5}|\d{7})$")

SEVERITY_PENALTY = {Severity.CRITICAL: 20, Severity.HIGH: 10, Severity.MEDIUM: 5}
WARNING_PENALTY = 2


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_iso_date(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def _is_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


class SchemaValidator:
    """
    Structural and format checks over the knowledge-base document.

    Works on the JSON form so that missing fields and wrong types can be
    reported instead of failing at construction time. A KnowledgeBase
    instance is serialized first.
    """

    def validate(
        self,
        knowledge_base: Union[KnowledgeBase, Dict[str, Any]],
        config: Optional[SchemaValidationConfig] = None,
    ) -> SchemaValidationResult:
        config = config or SchemaValidationConfig()
        document = knowledge_base.to_dict() if isinstance(knowledge_base, KnowledgeBase) else knowledge_base
        errors: List[SchemaValidationError] = []
        warnings: List[SchemaValidationWarning] = []

        if not isinstance(document, dict):
            errors.append(
                SchemaValidationError("knowledgeBase", "Knowledge base must be an object", Severity.CRITICAL, type(document).__name__)
            )
            return self._result(errors, warnings)

        self._check_required(document, "knowledgeBase", "", errors)

        occupations = document.get("occupations")
        tables = document.get("tables")
        if config.check_data_types:
            if occupations is not None and not isinstance(occupations, list):
                errors.append(SchemaValidationError("occupations", "Occupations must be a list", Severity.CRITICAL))
            if tables is not None and not isinstance(tables, list):
                errors.append(SchemaValidationError("tables", "Tables must be a list", Severity.CRITICAL))
        occupations = occupations if isinstance(occupations, list) else []
        tables = tables if isinstance(tables, list) else []

        metadata = document.get("metadata")
        if isinstance(metadata, dict):
            self._validate_metadata(metadata, errors, warnings)

        if "occupations" in document and not occupations:
            errors.append(SchemaValidationError("occupations", "Knowledge base contains no occupations", Severity.CRITICAL))
        if "tables" in document and not tables:
            errors.append(SchemaValidationError("tables", "Knowledge base contains no tables", Severity.CRITICAL))

        self._validate_occupations(occupations, config, errors, warnings)
        self._validate_tables(tables, config, errors, warnings)
        if config.validate_references:
            self._validate_references(occupations, tables, errors)

        result = self._result(errors, warnings)
        logger.debug(
            "Schema validation finished: valid=%s score=%s errors=%s warnings=%s",
            result.is_valid,
            result.score,
            len(errors),
            len(warnings),
        )
        return result

    def _result(self, errors: List[SchemaValidationError], warnings: List[SchemaValidationWarning]) -> SchemaValidationResult:
        return SchemaValidationResult(
            is_valid=not any(e.severity == Severity.CRITICAL for e in errors),
            errors=errors,
            warnings=warnings,
            score=self.calculate_score(errors, warnings),
        )

    @staticmethod
    def calculate_score(errors: List[SchemaValidationError], warnings: List[SchemaValidationWarning]) -> float:
        score = 100.0
        for error in errors:
            score -= SEVERITY_PENALTY[error.severity]
        score -= WARNING_PENALTY * len(warnings)
        return max(0.0, score)

    def _check_required(self, data: Dict[str, Any], entity: str, prefix: str, errors: List[SchemaValidationError]) -> None:
        for name in REQUIRED_FIELDS[entity]:
            if data.get(name) is None:
                path = f"{prefix}{name}"
                errors.append(SchemaValidationError(path, f"Required field '{name}' is missing", Severity.CRITICAL))

    def _validate_metadata(
        self,
        metadata: Dict[str, Any],
        errors: List[SchemaValidationError],
        warnings: List[SchemaValidationWarning],
    ) -> None:
        self._check_required(metadata, "metadata", "metadata.", errors)

        arxiv_id = metadata.get("arxivId")
        if arxiv_id is not None and not ARXIV_ID_PATTERN.match(str(arxiv_id)):
            errors.append(SchemaValidationError("metadata.arxivId", "Invalid arXiv id format", Severity.MEDIUM, arxiv_id))

        url = metadata.get("url")
        if url is not None and not _is_url(url):
            errors.append(SchemaValidationError("metadata.url", "Invalid URL", Severity.MEDIUM, url))

        extraction_date = metadata.get("extractionDate")
        if extraction_date is not None and not _is_iso_date(extraction_date):
            errors.append(
                SchemaValidationError("metadata.extractionDate", "Extraction date is not an ISO date", Severity.MEDIUM, extraction_date)
            )

        authors = metadata.get("authors")
        if isinstance(authors, list) and not authors:
            warnings.append(SchemaValidationWarning("metadata.authors", "No authors listed", "Add the paper authors"))

    def _validate_occupations(
        self,
        occupations: List[Any],
        config: SchemaValidationConfig,
        errors: List[SchemaValidationError],
        warnings: List[SchemaValidationWarning],
    ) -> None:
        codes: Dict[str, int] = {}
        names: Dict[str, int] = {}

        for index, occupation in enumerate(occupations):
            prefix = f"occupations[{index}]"
            if not isinstance(occupation, dict):
                errors.append(SchemaValidationError(prefix, "Occupation must be an object", Severity.CRITICAL))
                continue
            self._check_required(occupation, "occupation", f"{prefix}.", errors)

            code = occupation.get("code")
            if code is not None and not isinstance(code, str):
                if config.check_data_types:
                    errors.append(SchemaValidationError(f"{prefix}.code", "SOC code must be a string", Severity.HIGH, code))
            elif code is not None:
                if not SOC_CODE_PATTERN.match(code):
                    errors.append(SchemaValidationError(f"{prefix}.code", "Invalid SOC code format", Severity.HIGH, code))
                if code in codes:
                    errors.append(
                        SchemaValidationError(f"{prefix}.code", f"Duplicate SOC code (first seen at index {codes[code]})", Severity.HIGH, code)
                    )
                else:
                    codes[code] = index

            name = occupation.get("name")
            if isinstance(name, str):
                key = name.strip().lower()
                if key in names:
                    warnings.append(
                        SchemaValidationWarning(f"{prefix}.name", f"Duplicate occupation name '{name}'", "Merge or rename the duplicate")
                    )
                else:
                    names[key] = index

            self._check_unit_interval(occupation, "riskScore", prefix, Severity.HIGH, config, errors)
            self._check_unit_interval(occupation, "confidence", prefix, Severity.MEDIUM, config, errors)

            key_tasks = occupation.get("keyTasks")
            if config.strict_mode and isinstance(key_tasks, list):
                for task_index, task in enumerate(key_tasks):
                    if isinstance(task, str) and len(task.strip()) < 5:
                        warnings.append(
                            SchemaValidationWarning(f"{prefix}.keyTasks[{task_index}]", "Key task description is very short")
                        )

    def _check_unit_interval(
        self,
        occupation: Dict[str, Any],
        name: str,
        prefix: str,
        type_severity: Severity,
        config: SchemaValidationConfig,
        errors: List[SchemaValidationError],
    ) -> None:
        value = occupation.get(name)
        if value is None:
            return
        if not _is_number(value):
            if config.check_data_types:
                errors.append(SchemaValidationError(f"{prefix}.{name}", f"{name} must be a number", type_severity, value))
            return
        if value < 0 or value > 1:
            errors.append(SchemaValidationError(f"{prefix}.{name}", f"{name} must be between 0 and 1", Severity.HIGH, value))

    def _validate_tables(
        self,
        tables: List[Any],
        config: SchemaValidationConfig,
        errors: List[SchemaValidationError],
        warnings: List[SchemaValidationWarning],
    ) -> None:
        ids: Dict[str, int] = {}
        for index, table in enumerate(tables):
            prefix = f"tables[{index}]"
            if not isinstance(table, dict):
                errors.append(SchemaValidationError(prefix, "Table must be an object", Severity.CRITICAL))
                continue
            self._check_required(table, "table", f"{prefix}.", errors)

            table_id = table.get("id")
            if table_id is not None and not isinstance(table_id, str):
                if config.check_data_types:
                    errors.append(SchemaValidationError(f"{prefix}.id", "Table id must be a string", Severity.HIGH, table_id))
            elif table_id is not None:
                if table_id in ids:
                    errors.append(SchemaValidationError(f"{prefix}.id", "Duplicate table id", Severity.HIGH, table_id))
                else:
                    ids[table_id] = index

            page = table.get("page")
            if _is_number(page) and page < 1:
                errors.append(SchemaValidationError(f"{prefix}.page", "Page number must be at least 1", Severity.MEDIUM, page))

            headers = table.get("headers")
            rows = table.get("rows")
            if isinstance(headers, list) and isinstance(rows, list):
                for row_index, row in enumerate(rows):
                    if not isinstance(row, list) or len(row) != len(headers):
                        length = len(row) if isinstance(row, list) else None
                        errors.append(
                            SchemaValidationError(
                                f"{prefix}.rows[{row_index}]",
                                f"Table {table_id} row {row_index} has {length} cells, expected {len(headers)}",
                                Severity.HIGH,
                            )
                        )

            if config.strict_mode:
                if isinstance(rows, list) and not rows:
                    warnings.append(SchemaValidationWarning(f"{prefix}.rows", f"Table {table_id} has no rows"))
                if isinstance(headers, list):
                    for header_index, header in enumerate(headers):
                        if isinstance(header, str) and len(header.strip()) < 2:
                            warnings.append(
                                SchemaValidationWarning(f"{prefix}.headers[{header_index}]", "Header is very short", "Use a descriptive header")
                            )

    def _validate_references(
        self,
        occupations: List[Any],
        tables: List[Any],
        errors: List[SchemaValidationError],
    ) -> None:
        table_ids = {t.get("id") for t in tables if isinstance(t, dict) and isinstance(t.get("id"), str)}
        for index, occupation in enumerate(occupations):
            if not isinstance(occupation, dict):
                continue
            references = occupation.get("tableReferences")
            if not isinstance(references, list):
                continue
            for reference in references:
                if not isinstance(reference, str) or reference not in table_ids:
                    errors.append(
                        SchemaValidationError(
                            f"occupations[{index}].tableReferences",
                            f"Referenced table '{reference}' does not exist",
                            Severity.HIGH,
                            reference,
                        )
                    )
