from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from .models import OCCUPATION_TABLE_KINDS, KnowledgeBase, OccupationRecord, TableRecord
from .normalizer import standardize_occupation_name
from .schema_validator import SchemaValidationConfig, SchemaValidationResult, SchemaValidator, Severity

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_OCCUPATIONS = 10
MIN_TABLES = 3
MANUAL_REVIEW_THRESHOLD = 85.0
LOW_CONFIDENCE = 0.7
LOW_CONFIDENCE_SHARE = 0.2
NUMERIC_FAILURE_SHARE = 0.2
EMPTY_CELL_SHARE = 0.1


class IssueType(str, Enum):
    INCONSISTENCY = "inconsistency"
    OUTLIER = "outlier"
    MISSING_DATA = "missing_data"
    FORMAT_ERROR = "format_error"


class IssueSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


INTEGRITY_PENALTY = {IssueSeverity.HIGH: 15, IssueSeverity.MEDIUM: 8, IssueSeverity.LOW: 3}


@dataclass
class ValidationConfig:
    cross_check_with_source: bool = False
    validate_data_integrity: bool = True
    check_completeness: bool = True
    source_pdf_path: Optional[Path] = None


@dataclass(frozen=True)
class DataIntegrityIssue:
    type: IssueType
    field: str
    message: str
    severity: IssueSeverity
    affected_records: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "field": self.field,
            "message": self.message,
            "severity": self.severity.value,
            "affectedRecords": self.affected_records,
        }


@dataclass
class DataIntegrityResult:
    is_valid: bool = True
    issues: List[DataIntegrityIssue] = field(default_factory=list)
    score: float = 100.0
    skipped: bool = False

    @classmethod
    def not_run(cls) -> "DataIntegrityResult":
        return cls(is_valid=False, score=0.0, skipped=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "issues": [i.to_dict() for i in self.issues],
            "score": self.score,
            "skipped": self.skipped,
        }


@dataclass
class CompletenessResult:
    is_complete: bool = True
    missing_elements: List[str] = field(default_factory=list)
    completeness_score: float = 100.0
    recommendations: List[str] = field(default_factory=list)
    skipped: bool = False

    @classmethod
    def not_run(cls) -> "CompletenessResult":
        return cls(is_complete=False, completeness_score=0.0, skipped=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isComplete": self.is_complete,
            "missingElements": list(self.missing_elements),
            "completenessScore": self.completeness_score,
            "recommendations": list(self.recommendations),
            "skipped": self.skipped,
        }


def skipped_pass_names(data_integrity: DataIntegrityResult, completeness: CompletenessResult) -> List[str]:
    names = []
    if data_integrity.skipped:
        names.append("data_integrity")
    if completeness.skipped:
        names.append("completeness")
    return names


@dataclass
class QualityReport:
    overall_score: float
    data_accuracy: Optional[float]
    completeness: Optional[float]
    consistency: float
    reliability: float
    recommendations: List[str]
    requires_manual_review: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallScore": self.overall_score,
            "dataAccuracy": self.data_accuracy,
            "completeness": self.completeness,
            "consistency": self.consistency,
            "reliability": self.reliability,
            "recommendations": list(self.recommendations),
            "requiresManualReview": self.requires_manual_review,
        }


@dataclass
class OverallValidation:
    is_valid: bool
    errors: List[str]
    warnings: List[str]
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "confidence": self.confidence,
        }


@dataclass
class PassOutcome(Generic[T]):
    """Value of one validation pass, or the exception that stopped it."""

    name: str
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def run(cls, name: str, operation: Callable[[], T]) -> "PassOutcome[T]":
        try:
            return cls(name=name, value=operation())
        except Exception as exc:  # noqa: BLE001
            logger.exception("Validation pass %s failed", name)
            return cls(name=name, error=exc)

    def value_or(self, neutral: Callable[[], T]) -> T:
        return self.value if self.ok else neutral()


@dataclass
class ComprehensiveValidationResult:
    overall: OverallValidation
    schema: SchemaValidationResult
    data_integrity: DataIntegrityResult
    completeness: CompletenessResult
    quality_report: QualityReport
    pass_failures: List[str] = field(default_factory=list)

    @property
    def skipped_passes(self) -> List[str]:
        return skipped_pass_names(self.data_integrity, self.completeness)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall.to_dict(),
            "schema": self.schema.to_dict(),
            "dataIntegrity": self.data_integrity.to_dict(),
            "completeness": self.completeness.to_dict(),
            "qualityReport": self.quality_report.to_dict(),
            "passFailures": list(self.pass_failures),
            "skippedPasses": self.skipped_passes,
        }


def iqr_outliers(values: Sequence[float]) -> List[float]:
    """
    Values beyond 1.5 * IQR from Q1/Q3. Quartiles are read at sorted indices
    floor(0.25n) and floor(0.75n); fewer than four values never yield outliers.
    """
    if len(values) < 4:
        return []
    ordered = sorted(values)
    n = len(ordered)
    q1 = ordered[math.floor(n * 0.25)]
    q3 = ordered[math.floor(n * 0.75)]
    iqr = q3 - q1
    lower, upper = q1 - 1.5 * iqr, q3 + 1.5 * iqr
    return [v for v in values if v < lower or v > upper]


def parse_numeric_cell(value: Any) -> Optional[float]:
    cleaned = str(value).replace("$", "").replace(",", "").replace("%", "").strip()
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


class ValidationEngine:
    """
    Runs the schema, data-integrity and completeness passes and folds them into
    a quality report. Each pass produces a PassOutcome; a pass that raises is
    listed in `pass_failures`, replaced by its neutral result and forces
    manual review while the other passes still run.
    """

    def __init__(self, schema_validator: Optional[SchemaValidator] = None, aliases: Optional[Dict[str, str]] = None):
        self.schema_validator = schema_validator or SchemaValidator()
        self.aliases = aliases

    def validate(self, knowledge_base: KnowledgeBase, config: Optional[ValidationConfig] = None) -> ComprehensiveValidationResult:
        config = config or ValidationConfig()
        logger.info("Starting comprehensive validation")

        schema_outcome = PassOutcome.run(
            "schema",
            lambda: self.schema_validator.validate(knowledge_base, SchemaValidationConfig(strict_mode=True)),
        )

        if config.validate_data_integrity:
            integrity_outcome = PassOutcome.run(
                "data_integrity", lambda: self.validate_data_integrity(knowledge_base, config)
            )
        else:
            integrity_outcome = PassOutcome("data_integrity", value=DataIntegrityResult.not_run())

        if config.check_completeness:
            completeness_outcome = PassOutcome.run("completeness", lambda: self.validate_completeness(knowledge_base))
        else:
            completeness_outcome = PassOutcome("completeness", value=CompletenessResult.not_run())

        outcomes = (schema_outcome, integrity_outcome, completeness_outcome)
        pass_failures = [f"{o.name}: {o.error}" for o in outcomes if not o.ok]

        schema = schema_outcome.value_or(lambda: SchemaValidationResult(is_valid=True))
        data_integrity = integrity_outcome.value_or(DataIntegrityResult)
        completeness = completeness_outcome.value_or(CompletenessResult)

        quality_report = self.generate_quality_report(schema, data_integrity, completeness, pass_failures)
        overall = self.overall_validation(schema, data_integrity, completeness, quality_report, pass_failures)

        logger.info("Validation complete. Overall score: %.1f%%", quality_report.overall_score)
        return ComprehensiveValidationResult(
            overall=overall,
            schema=schema,
            data_integrity=data_integrity,
            completeness=completeness,
            quality_report=quality_report,
            pass_failures=pass_failures,
        )

    def overall_validation(
        self,
        schema: SchemaValidationResult,
        data_integrity: DataIntegrityResult,
        completeness: CompletenessResult,
        quality_report: QualityReport,
        pass_failures: List[str],
    ) -> OverallValidation:
        errors = [f"{e.field}: {e.message}" for e in schema.errors]
        errors.extend(f"{i.field}: {i.message}" for i in data_integrity.issues if i.severity == IssueSeverity.HIGH)
        errors.extend(f"Validation pass failed: {failure}" for failure in pass_failures)
        warnings = [f"{w.field}: {w.message}" for w in schema.warnings]
        warnings.extend(f"{i.field}: {i.message}" for i in data_integrity.issues if i.severity != IssueSeverity.HIGH)
        warnings.extend(f"Validation pass not run: {name}" for name in skipped_pass_names(data_integrity, completeness))
        return OverallValidation(
            is_valid=(
                schema.is_valid
                and (data_integrity.skipped or data_integrity.is_valid)
                and (completeness.skipped or completeness.is_complete)
                and not pass_failures
            ),
            errors=errors,
            warnings=warnings,
            confidence=quality_report.overall_score / 100,
        )

    # Data integrity
    def validate_data_integrity(self, knowledge_base: KnowledgeBase, config: Optional[ValidationConfig] = None) -> DataIntegrityResult:
        config = config or ValidationConfig()
        issues: List[DataIntegrityIssue] = []
        occupations = list(knowledge_base.occupations)
        tables = list(knowledge_base.tables)

        self._check_occupations(occupations, issues)
        self._check_tables(tables, issues)
        self._check_exposure_table_membership(occupations, tables, issues)
        if config.cross_check_with_source:
            self._cross_check_with_source(config.source_pdf_path, issues)

        return DataIntegrityResult(
            is_valid=not any(i.severity == IssueSeverity.HIGH for i in issues),
            issues=issues,
            score=self.calculate_integrity_score(issues),
        )

    @staticmethod
    def calculate_integrity_score(issues: Sequence[DataIntegrityIssue]) -> float:
        score = 100.0
        for issue in issues:
            score -= INTEGRITY_PENALTY[issue.severity]
        return max(0.0, score)

    def _check_occupations(self, occupations: List[OccupationRecord], issues: List[DataIntegrityIssue]) -> None:
        if not occupations:
            return

        risk_outliers = iqr_outliers([o.risk_score for o in occupations])
        if risk_outliers:
            issues.append(
                DataIntegrityIssue(
                    IssueType.OUTLIER,
                    "occupations.riskScore",
                    f"Found {len(risk_outliers)} potential outliers in risk scores",
                    IssueSeverity.MEDIUM,
                    len(risk_outliers),
                )
            )

        confidence_outliers = iqr_outliers([o.confidence for o in occupations])
        if confidence_outliers:
            issues.append(
                DataIntegrityIssue(
                    IssueType.OUTLIER,
                    "occupations.confidence",
                    f"Found {len(confidence_outliers)} potential outliers in confidence scores",
                    IssueSeverity.MEDIUM,
                    len(confidence_outliers),
                )
            )

        low_confidence = sum(1 for o in occupations if o.confidence < LOW_CONFIDENCE)
        if low_confidence > len(occupations) * LOW_CONFIDENCE_SHARE:
            issues.append(
                DataIntegrityIssue(
                    IssueType.INCONSISTENCY,
                    "occupations.confidence",
                    f"{low_confidence} occupations have low confidence scores",
                    IssueSeverity.MEDIUM,
                    low_confidence,
                )
            )

        missing_tasks = sum(1 for o in occupations if not o.key_tasks)
        if missing_tasks:
            issues.append(
                DataIntegrityIssue(
                    IssueType.MISSING_DATA,
                    "occupations.keyTasks",
                    f"{missing_tasks} occupations missing key tasks",
                    IssueSeverity.MEDIUM,
                    missing_tasks,
                )
            )

        seen = set()
        duplicates = set()
        for occupation in occupations:
            if occupation.code in seen:
                duplicates.add(occupation.code)
            seen.add(occupation.code)
        if duplicates:
            issues.append(
                DataIntegrityIssue(
                    IssueType.INCONSISTENCY,
                    "occupations.code",
                    f"Duplicate SOC codes found: {', '.join(sorted(duplicates))}",
                    IssueSeverity.HIGH,
                    len(duplicates),
                )
            )

    def _check_tables(self, tables: List[TableRecord], issues: List[DataIntegrityIssue]) -> None:
        for table in tables:
            numeric_columns = [
                index
                for index, header in enumerate(table.headers)
                if "score" in header.lower() or "wage" in header.lower()
            ]
            for column in numeric_columns:
                cells = [row[column] for row in table.rows if column < len(row)]
                if not cells:
                    continue
                failures = sum(1 for cell in cells if parse_numeric_cell(cell) is None)
                if failures / len(cells) >= NUMERIC_FAILURE_SHARE:
                    issues.append(
                        DataIntegrityIssue(
                            IssueType.FORMAT_ERROR,
                            f"tables.{table.id}.{table.headers[column]}",
                            f"{failures} of {len(cells)} values in column '{table.headers[column]}' are not numeric",
                            IssueSeverity.MEDIUM,
                            failures,
                        )
                    )

            total_cells = sum(len(row) for row in table.rows)
            if total_cells:
                empty = sum(1 for row in table.rows for cell in row if not str(cell).strip())
                if empty / total_cells > EMPTY_CELL_SHARE:
                    issues.append(
                        DataIntegrityIssue(
                            IssueType.MISSING_DATA,
                            f"tables.{table.id}",
                            f"{empty} of {total_cells} cells are empty in table {table.id}",
                            IssueSeverity.MEDIUM,
                            empty,
                        )
                    )

    def _check_exposure_table_membership(
        self,
        occupations: List[OccupationRecord],
        tables: List[TableRecord],
        issues: List[DataIntegrityIssue],
    ) -> None:
        exposure_tables = [t for t in tables if t.kind in OCCUPATION_TABLE_KINDS]
        if not exposure_tables:
            issues.append(
                DataIntegrityIssue(
                    IssueType.MISSING_DATA,
                    "tables",
                    "No occupation exposure table found for cross-validation",
                    IssueSeverity.MEDIUM,
                )
            )
            return

        table_names = {
            standardize_occupation_name(str(row[0]), self.aliases).lower()
            for table in exposure_tables
            for row in table.rows
            if row
        }
        missing = [o for o in occupations if standardize_occupation_name(o.name, self.aliases).lower() not in table_names]
        if missing:
            issues.append(
                DataIntegrityIssue(
                    IssueType.INCONSISTENCY,
                    "occupations",
                    f"{len(missing)} occupations not found in any exposure table",
                    IssueSeverity.MEDIUM,
                    len(missing),
                )
            )

    def _cross_check_with_source(self, source_pdf_path: Optional[Path], issues: List[DataIntegrityIssue]) -> None:
        if source_pdf_path is not None and Path(source_pdf_path).exists():
            logger.info("Source PDF accessible for cross-validation: %s", source_pdf_path)
            return
        issues.append(
            DataIntegrityIssue(
                IssueType.MISSING_DATA,
                "source",
                "Source PDF not accessible for cross-validation",
                IssueSeverity.MEDIUM,
            )
        )

    # Completeness
    def validate_completeness(self, knowledge_base: KnowledgeBase) -> CompletenessResult:
        checks = (
            (
                len(knowledge_base.occupations) >= MIN_OCCUPATIONS,
                f"Insufficient occupation data (minimum {MIN_OCCUPATIONS} required)",
                "Extract more occupation data from the source paper",
            ),
            (
                len(knowledge_base.tables) >= MIN_TABLES,
                f"Insufficient table data (minimum {MIN_TABLES} tables required)",
                "Ensure all key tables are extracted from the paper",
            ),
            (
                bool(knowledge_base.methodology.data_sources),
                "Missing methodology information",
                "Extract methodology section from the paper",
            ),
            (
                bool(knowledge_base.visualizations),
                "No visualization configurations defined",
                "Define visualization configurations for the frontend",
            ),
        )
        missing = [message for passed, message, _ in checks if not passed]
        recommendations = [advice for passed, _, advice in checks if not passed]
        return CompletenessResult(
            is_complete=not missing,
            missing_elements=missing,
            completeness_score=(len(checks) - len(missing)) / len(checks) * 100,
            recommendations=recommendations,
        )

    # Quality report
    def generate_quality_report(
        self,
        schema: SchemaValidationResult,
        data_integrity: DataIntegrityResult,
        completeness: CompletenessResult,
        pass_failures: Sequence[str] = (),
    ) -> QualityReport:
        # Passes that did not run report None and drop out of the average.
        data_accuracy = None if data_integrity.skipped else data_integrity.score
        completeness_score = None if completeness.skipped else completeness.completeness_score
        consistency = schema.score
        reliability = consistency if data_accuracy is None else min(data_accuracy, consistency)
        components = [s for s in (data_accuracy, completeness_score, consistency, reliability) if s is not None]
        overall = sum(components) / len(components)

        recommendations = list(completeness.recommendations)
        if data_accuracy is not None and data_accuracy < 80:
            recommendations.append("Review and correct data integrity issues")
        if completeness_score is not None and completeness_score < 80:
            recommendations.append("Extract additional data to improve completeness")
        if consistency < 80:
            recommendations.append("Address schema validation errors and warnings")
        if pass_failures:
            recommendations.append("Re-run validation; some passes did not complete")

        requires_manual_review = (
            overall < MANUAL_REVIEW_THRESHOLD
            or any(e.severity == Severity.CRITICAL for e in schema.errors)
            or any(i.severity == IssueSeverity.HIGH for i in data_integrity.issues)
            or bool(pass_failures)
        )
        return QualityReport(
            overall_score=overall,
            data_accuracy=data_accuracy,
            completeness=completeness_score,
            consistency=consistency,
            reliability=reliability,
            recommendations=recommendations,
            requires_manual_review=requires_manual_review,
        )
