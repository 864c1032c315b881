from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..service.errors import ErrorHandler, InvalidDataError
from .adapters import now_iso
from .models import (
    BarChartConfig,
    CrossReference,
    ExtractionInfo,
    KnowledgeBase,
    Methodology,
    NormalizationResult,
    PaperMetadata,
    PipelinePhase,
    RawTable,
    RawText,
)
from .normalizer import DataNormalizer, NormalizationConfig
from .repository import KnowledgeBaseRepository
from .schema_validator import SchemaValidationConfig, SchemaValidationResult, SchemaValidator
from .storage import KnowledgeBaseStorage, StoragePaths, load_knowledge_base_file
from .validation_engine import (
    CompletenessResult,
    ComprehensiveValidationResult,
    DataIntegrityResult,
    ValidationConfig,
    ValidationEngine,
)

logger = logging.getLogger(__name__)

KNOWLEDGE_BASE_VERSION = "1.0"

DATA_SOURCES = (
    "O*NET Occupational Information Network",
    "Bureau of Labor Statistics Employment Data",
    "AI Capability Assessment Framework",
)
DEFAULT_ANALYSIS_APPROACH = "Task-level exposure analysis using weighted scoring of AI capabilities"
LIMITATIONS = (
    "Based on current AI capabilities as of 2024",
    "Does not account for future technological developments",
    "Exposure does not directly translate to job displacement",
    "Industry-specific factors may modify actual impact",
)
TOOLS_USED = ("pdf_extraction", "data_normalization", "schema_validation")

VISUALIZATIONS = (
    BarChartConfig(
        title="Top 10 Occupations by AI Exposure Risk",
        data_source="occupations",
        x_axis="name",
        y_axis="riskScore",
        color="#e74c3c",
        limit=10,
    ),
    BarChartConfig(
        title="Industry-Level AI Exposure Comparison",
        data_source="tables.industry_exposure",
        x_axis="Industry",
        y_axis="Exposure Score",
        color="#3498db",
        limit=15,
        rotate_labels=True,
    ),
    BarChartConfig(
        title="Task Automation Potential by Category",
        data_source="tables.task_automation",
        x_axis="Task Category",
        y_axis="Automation Potential",
        color="#f39c12",
        rotate_labels=True,
    ),
)

MANUAL_REVIEW_ISSUE_LIMIT = 5


@dataclass
class ProcessingConfig:
    output_dir: Path
    validate_schema: bool = True
    run_comprehensive_validation: bool = True
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    save_snapshot: bool = True
    export_csv: bool = False
    export_text: bool = False
    version: str = KNOWLEDGE_BASE_VERSION


@dataclass
class ProcessingResult:
    knowledge_base: KnowledgeBase
    validation: Optional[ComprehensiveValidationResult]
    cross_references: List[CrossReference]
    issues: List[str]
    output_path: Path
    metadata_path: Path
    snapshot_id: Optional[str] = None
    exported_files: List[Path] = field(default_factory=list)

    @property
    def manual_review_required(self) -> bool:
        if self.validation is not None and self.validation.quality_report.requires_manual_review:
            return True
        return self.knowledge_base.extraction_info.manual_review_required


def _percent(score: Optional[float]) -> str:
    return "not run" if score is None else f"{score:.1f}%"


def calculate_quality_score(normalization: NormalizationResult, text_confidence: float) -> float:
    score = 100.0 - 2 * len(normalization.issues)
    score *= text_confidence
    if len(normalization.occupations) < 10:
        score -= 20
    if len(normalization.tables) < 3:
        score -= 15
    return max(0.0, min(100.0, score))


class KnowledgeBaseProcessor:
    """
    Drives a build through normalize -> assemble -> validate -> persist.

    Soft problems (normalization issues, validation findings) are carried in
    the result and never stop the run. Missing tables stop it before anything
    is written. Any exception is logged with the phase it happened in and
    re-raised.
    """

    def __init__(
        self,
        normalizer: Optional[DataNormalizer] = None,
        validation_engine: Optional[ValidationEngine] = None,
        repository: Optional[KnowledgeBaseRepository] = None,
        error_handler: Optional[ErrorHandler] = None,
        clock: Callable[[], str] = now_iso,
    ):
        self.normalizer = normalizer or DataNormalizer()
        self.validation_engine = validation_engine or ValidationEngine(aliases=self.normalizer.aliases)
        self.schema_validator = self.validation_engine.schema_validator
        self.repository = repository
        self.error_handler = error_handler or ErrorHandler()
        self.clock = clock

    def process(
        self,
        raw_tables: Sequence[RawTable],
        raw_text: RawText,
        metadata: PaperMetadata,
        config: ProcessingConfig,
    ) -> ProcessingResult:
        phase = PipelinePhase.NORMALIZE
        try:
            logger.info("Starting knowledge base build for %s", metadata.arxiv_id)
            if not raw_tables:
                raise InvalidDataError("No raw tables supplied to the pipeline")

            normalization = self.normalizer.normalize(raw_tables, config.normalization)
            if not normalization.tables:
                raise InvalidDataError("Normalization produced no tables", normalization.issues)
            for issue in normalization.issues:
                logger.warning("Normalization issue: %s", issue)

            phase = PipelinePhase.ASSEMBLE
            knowledge_base = self.build_knowledge_base(normalization, raw_text, metadata, config.version)

            phase = PipelinePhase.VALIDATE
            validation = self._validate(knowledge_base, config)
            if validation is not None:
                self._log_validation(validation)

            phase = PipelinePhase.PERSIST
            storage = KnowledgeBaseStorage(StoragePaths(Path(config.output_dir)), self.error_handler)
            output_path = storage.write_knowledge_base(knowledge_base)
            metadata_path = storage.write_metadata(self.extraction_metadata(knowledge_base))
            logger.info("Knowledge base saved: %s", output_path)
            logger.info("Metadata saved: %s", metadata_path)

            snapshot_id = None
            if config.save_snapshot and self.repository is not None:
                snapshot_id = self.repository.save_snapshot(knowledge_base).id
                logger.info("Snapshot stored: %s", snapshot_id)

            exported: List[Path] = []
            if config.export_csv:
                exported.extend(storage.export_tables_csv(knowledge_base.tables))
            if config.export_text:
                exported.append(storage.export_text(raw_text))

            return ProcessingResult(
                knowledge_base=knowledge_base,
                validation=validation,
                cross_references=list(normalization.cross_references),
                issues=list(normalization.issues),
                output_path=output_path,
                metadata_path=metadata_path,
                snapshot_id=snapshot_id,
                exported_files=exported,
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Knowledge base build failed during %s: %s", phase.value, exc)
            raise

    def build_knowledge_base(
        self,
        normalization: NormalizationResult,
        raw_text: RawText,
        metadata: PaperMetadata,
        version: str = KNOWLEDGE_BASE_VERSION,
    ) -> KnowledgeBase:
        methodology = Methodology(
            data_sources=DATA_SOURCES,
            analysis_approach=raw_text.sections.get("methodology") or DEFAULT_ANALYSIS_APPROACH,
            confidence=raw_text.confidence,
            limitations=LIMITATIONS,
        )
        extraction_info = ExtractionInfo(
            extraction_date=self.clock(),
            version=version,
            tools_used=TOOLS_USED,
            quality_score=calculate_quality_score(normalization, raw_text.confidence),
            manual_review_required=len(normalization.issues) > MANUAL_REVIEW_ISSUE_LIMIT,
        )
        return KnowledgeBase(
            metadata=metadata,
            methodology=methodology,
            occupations=tuple(normalization.occupations),
            tables=tuple(normalization.tables),
            visualizations=VISUALIZATIONS,
            extraction_info=extraction_info,
        )

    def extraction_metadata(self, knowledge_base: KnowledgeBase) -> dict:
        info = knowledge_base.extraction_info
        return {
            "extractionDate": info.extraction_date,
            "version": info.version,
            "qualityScore": info.quality_score,
            "occupationCount": len(knowledge_base.occupations),
            "tableCount": len(knowledge_base.tables),
            "manualReviewRequired": info.manual_review_required,
        }

    def _validate(self, knowledge_base: KnowledgeBase, config: ProcessingConfig) -> Optional[ComprehensiveValidationResult]:
        if config.run_comprehensive_validation:
            return self.validation_engine.validate(knowledge_base, config.validation)
        if config.validate_schema:
            schema = self.schema_validator.validate(knowledge_base)
            return self.from_schema_result(schema)
        return None

    def from_schema_result(self, schema: SchemaValidationResult) -> ComprehensiveValidationResult:
        integrity = DataIntegrityResult.not_run()
        completeness = CompletenessResult.not_run()
        report = self.validation_engine.generate_quality_report(schema, integrity, completeness)
        overall = self.validation_engine.overall_validation(schema, integrity, completeness, report, [])
        return ComprehensiveValidationResult(
            overall=overall,
            schema=schema,
            data_integrity=integrity,
            completeness=completeness,
            quality_report=report,
        )

    def _log_validation(self, validation: ComprehensiveValidationResult) -> None:
        report = validation.quality_report
        logger.info(
            "Validation: valid=%s quality=%.1f%% accuracy=%s completeness=%s consistency=%.1f%% manual_review=%s",
            validation.overall.is_valid,
            report.overall_score,
            _percent(report.data_accuracy),
            _percent(report.completeness),
            report.consistency,
            report.requires_manual_review,
        )
        for error in validation.overall.errors:
            logger.warning("Validation error: %s", error)
        for warning in validation.overall.warnings:
            logger.info("Validation warning: %s", warning)
        for failure in validation.pass_failures:
            logger.error("Validation pass failed: %s", failure)
        for recommendation in report.recommendations:
            logger.info("Recommendation: %s", recommendation)


def load_knowledge_base(path: Path, validator: Optional[SchemaValidator] = None) -> KnowledgeBase:
    """Load a persisted knowledge base and log any schema problems it has."""
    knowledge_base = load_knowledge_base_file(Path(path))
    result = (validator or SchemaValidator()).validate(knowledge_base, SchemaValidationConfig())
    if not result.is_valid or result.errors:
        logger.warning("Loaded knowledge base has validation issues")
        for error in result.errors:
            logger.warning("  - %s (%s)", error.message, error.field)
    return knowledge_base
