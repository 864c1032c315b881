from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..service.errors import DataNotFoundError, ErrorHandler, InvalidDataError
from .models import KnowledgeBase, RawText, TableRecord

logger = logging.getLogger(__name__)

KNOWLEDGE_BASE_FILENAME = "ai_employment_risks.json"
METADATA_FILENAME = "extraction_metadata.json"


@dataclass
class StoragePaths:
    root: Path

    def knowledge_base_path(self) -> Path:
        return self.root / KNOWLEDGE_BASE_FILENAME

    def metadata_path(self) -> Path:
        return self.root / METADATA_FILENAME

    def tables_dir(self) -> Path:
        return self.root / "tables"

    def table_csv_path(self, table_id: str) -> Path:
        return self.tables_dir() / f"{table_id}.csv"

    def text_export_path(self) -> Path:
        return self.root / "extracted_text.txt"


def read_json(path: Path) -> Any:
    if not path.exists():
        raise DataNotFoundError("Knowledge base file", str(path))
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise InvalidDataError(f"Knowledge base file is not valid JSON: {path}: {exc}") from exc


def load_knowledge_base_file(path: Path) -> KnowledgeBase:
    return KnowledgeBase.from_dict(read_json(Path(path)))


class KnowledgeBaseStorage:
    """
    Filesystem layout for one built knowledge base: the JSON artifact, its
    extraction-metadata sidecar and optional CSV/text exports. Writes go
    through the error handler's retry policy.
    """

    def __init__(self, storage_paths: StoragePaths, error_handler: Optional[ErrorHandler] = None):
        self.paths = storage_paths
        self.error_handler = error_handler or ErrorHandler()

    def ensure_base_dirs(self) -> None:
        self.paths.root.mkdir(parents=True, exist_ok=True)

    def write_knowledge_base(self, knowledge_base: KnowledgeBase) -> Path:
        target = self.paths.knowledge_base_path()
        return self.error_handler.with_retry(
            lambda: self._write_json(target, knowledge_base.to_dict()), "write knowledge base"
        )

    def write_metadata(self, metadata: Dict[str, Any]) -> Path:
        target = self.paths.metadata_path()
        return self.error_handler.with_retry(lambda: self._write_json(target, metadata), "write extraction metadata")

    def load_knowledge_base(self) -> KnowledgeBase:
        path = self.paths.knowledge_base_path()
        return self.error_handler.with_retry(lambda: load_knowledge_base_file(path), "load knowledge base")

    def load_metadata(self) -> Dict[str, Any]:
        return read_json(self.paths.metadata_path())

    def export_tables_csv(self, tables: Sequence[TableRecord]) -> List[Path]:
        self.paths.tables_dir().mkdir(parents=True, exist_ok=True)
        written: List[Path] = []
        for table in tables:
            target = self.paths.table_csv_path(table.id)
            with target.open("w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(table.headers)
                writer.writerows(table.rows)
            written.append(target)
        logger.info("Exported %s tables to %s", len(written), self.paths.tables_dir())
        return written

    def export_text(self, raw_text: RawText) -> Path:
        self.ensure_base_dirs()
        target = self.paths.text_export_path()
        with target.open("w", encoding="utf-8") as f:
            for name, content in raw_text.sections.items():
                f.write(f"## {name.upper()}\n\n{content}\n\n")
        return target

    def _write_json(self, target: Path, payload: Dict[str, Any]) -> Path:
        self.ensure_base_dirs()
        with target.open("w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        logger.debug("Wrote %s", target)
        return target
