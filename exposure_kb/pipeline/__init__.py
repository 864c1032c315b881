"""
Offline knowledge base build exports.
"""

from .adapters import DoclingPaperAdapter, ReferencePaperAdapter, TableSource, TextSource, classify_table_kind
from .models import (
    BarChartConfig,
    CrossReference,
    ExtractionInfo,
    KnowledgeBase,
    Methodology,
    NormalizationResult,
    OccupationRecord,
    PaperMetadata,
    PieChartConfig,
    PipelinePhase,
    RawTable,
    RawText,
    ScatterChartConfig,
    TableKind,
    TableRecord,
)
from .normalizer import DataNormalizer, NormalizationConfig, standardize_occupation_name
from .processor import KnowledgeBaseProcessor, ProcessingConfig, ProcessingResult, load_knowledge_base
from .repository import InMemoryKnowledgeBaseRepository, KnowledgeBaseRepository, SqlAlchemyKnowledgeBaseRepository
from .schema_validator import SchemaValidationConfig, SchemaValidationResult, SchemaValidator
from .storage import KnowledgeBaseStorage, StoragePaths
from .validation_engine import ComprehensiveValidationResult, ValidationConfig, ValidationEngine

__all__ = [
    "BarChartConfig",
    "ComprehensiveValidationResult",
    "CrossReference",
    "DataNormalizer",
    "DoclingPaperAdapter",
    "ExtractionInfo",
    "InMemoryKnowledgeBaseRepository",
    "KnowledgeBase",
    "KnowledgeBaseProcessor",
    "KnowledgeBaseRepository",
    "KnowledgeBaseStorage",
    "Methodology",
    "NormalizationConfig",
    "NormalizationResult",
    "OccupationRecord",
    "PaperMetadata",
    "PieChartConfig",
    "PipelinePhase",
    "ProcessingConfig",
    "ProcessingResult",
    "RawTable",
    "RawText",
    "ReferencePaperAdapter",
    "ScatterChartConfig",
    "SchemaValidationConfig",
    "SchemaValidationResult",
    "SchemaValidator",
    "SqlAlchemyKnowledgeBaseRepository",
    "StoragePaths",
    "TableKind",
    "TableRecord",
    "TableSource",
    "TextSource",
    "ValidationConfig",
    "ValidationEngine",
    "classify_table_kind",
    "load_knowledge_base",
    "standardize_occupation_name",
]
