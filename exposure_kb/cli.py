"""
Build the AI exposure knowledge base.

Usage:
    build-exposure-kb --output-dir ./data
    build-exposure-kb --output-dir ./data --pdf ./2507.07935.pdf --database-url sqlite+pysqlite:///./data/kb.db
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .pipeline.adapters import DoclingPaperAdapter, ReferencePaperAdapter, validate_raw_tables
from .pipeline.processor import KnowledgeBaseProcessor, ProcessingConfig, ProcessingResult
from .pipeline.repository import SqlAlchemyKnowledgeBaseRepository
from .pipeline.validation_engine import ValidationConfig
from .service.errors import KnowledgeBaseError

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_URL = "https://arxiv.org/pdf/2507.07935"


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="build-exposure-kb", description="Build the AI exposure knowledge base")
    parser.add_argument("--source-url", default=DEFAULT_SOURCE_URL, help="URL of the source paper")
    parser.add_argument("--output-dir", required=True, type=Path, help="Directory for the JSON artifact")
    parser.add_argument("--pdf", default=None, type=Path, help="Extract from this PDF with Docling instead of the bundled transcription")
    parser.add_argument("--perform-ocr", action="store_true", help="Enable OCR during PDF extraction")
    parser.add_argument("--database-url", default=None, help="SQLAlchemy URL for build snapshots")
    parser.add_argument("--schema-only", action="store_true", help="Run schema validation only")
    parser.add_argument("--export-csv", action="store_true", help="Also export tables as CSV and text sections as plain text")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--log-file", default=None, type=Path, help="Also write logs to this file")
    return parser


def print_summary(result: ProcessingResult) -> None:
    kb = result.knowledge_base
    print(f"Knowledge base written to {result.output_path}")
    print(f"  occupations: {len(kb.occupations)}")
    print(f"  tables: {len(kb.tables)}")
    print(f"  cross references: {len(result.cross_references)}")
    print(f"  normalization issues: {len(result.issues)}")
    print(f"  quality score: {kb.extraction_info.quality_score:.1f}")
    if result.validation is not None:
        report = result.validation.quality_report
        print(f"  validation score: {report.overall_score:.1f}%")
        print(f"  valid: {'yes' if result.validation.overall.is_valid else 'no'}")
    if result.snapshot_id:
        print(f"  snapshot: {result.snapshot_id}")
    print(f"  manual review required: {'yes' if result.manual_review_required else 'no'}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        if args.pdf is not None:
            adapter = DoclingPaperAdapter(source_url=args.source_url, perform_ocr=args.perform_ocr)
        else:
            adapter = ReferencePaperAdapter(source_url=args.source_url)

        raw_tables = adapter.extract_tables(args.pdf)
        raw_text = adapter.extract_text(args.pdf)
        metadata = adapter.extract_metadata(args.pdf)

        errors, warnings = validate_raw_tables(raw_tables)
        for warning in warnings:
            logger.warning("Raw table warning: %s", warning)
        for error in errors:
            logger.error("Raw table error: %s", error)

        repository = SqlAlchemyKnowledgeBaseRepository(args.database_url) if args.database_url else None
        processor = KnowledgeBaseProcessor(repository=repository)
        config = ProcessingConfig(
            output_dir=args.output_dir,
            run_comprehensive_validation=not args.schema_only,
            validation=ValidationConfig(
                cross_check_with_source=args.pdf is not None,
                source_pdf_path=args.pdf,
            ),
            export_csv=args.export_csv,
            export_text=args.export_csv,
        )
        result = processor.process(raw_tables, raw_text, metadata, config)
    except (KnowledgeBaseError, OSError, RuntimeError) as exc:
        logger.error("Build failed: %s", exc)
        return 1

    print_summary(result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
