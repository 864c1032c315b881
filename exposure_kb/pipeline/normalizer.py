from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .models import (
    CrossReference,
    NormalizationResult,
    OccupationRecord,
    RawTable,
    TableKind,
    TableRecord,
)

logger = logging.getLogger(__name__)


@dataclass
class NormalizationConfig:
    standardize_occupation_names: bool = True
    create_cross_references: bool = True
    validate_data_types: bool = True


NAME_ALIASES: Dict[str, str] = {
    "Software Developers, Applications": "Software Developers",
    "Software Developers, Systems Software": "Software Developers",
    "Computer Systems Analysts": "Systems Analysts",
}

RELATED_HEADER_TERMS: Tuple[Tuple[str, ...], ...] = (
    ("occupation", "job", "role"),
    ("soc", "code", "classification"),
    ("exposure", "risk", "score"),
    ("industry", "sector", "naics"),
)

GROUP_KEY_TASKS: Dict[str, Tuple[str, ...]] = {
    "Computer and Mathematical": (
        "Software development and programming",
        "Data analysis and modeling",
        "Algorithm design and optimization",
        "System architecture and design",
    ),
    "Architecture and Engineering": (
        "Technical design and drafting",
        "Engineering analysis and calculations",
        "Project planning and documentation",
        "Quality assurance and testing",
    ),
    "Life, Physical, and Social Science": (
        "Research design and methodology",
        "Data collection and analysis",
        "Report writing and documentation",
        "Statistical analysis and interpretation",
    ),
    "Business and Financial Operations": (
        "Financial analysis and modeling",
        "Business process optimization",
        "Report generation and presentation",
        "Strategic planning and forecasting",
    ),
    "Legal": (
        "Legal research and analysis",
        "Document drafting and review",
        "Case preparation and strategy",
        "Regulatory compliance analysis",
    ),
    "Arts, Design, Entertainment, Sports, and Media": (
        "Content creation and editing",
        "Visual design and layout",
        "Creative concept development",
        "Media production and post-processing",
    ),
    "Management": (
        "Strategic planning and decision making",
        "Team coordination and leadership",
        "Performance analysis and reporting",
        "Resource allocation and optimization",
    ),
    "Education, Training, and Library": (
        "Curriculum development and planning",
        "Educational content creation",
        "Assessment and evaluation",
        "Research and information organization",
    ),
}

OCCUPATION_KEY_TASKS: Dict[str, Tuple[str, ...]] = {
    "Software Developers": (
        "Code generation and programming",
        "Software architecture design",
        "Debugging and testing",
        "Documentation and technical writing",
    ),
    "Data Scientists": (
        "Data analysis and modeling",
        "Statistical analysis and interpretation",
        "Machine learning model development",
        "Data visualization and reporting",
    ),
    "Web Developers": (
        "Frontend and backend development",
        "User interface design",
        "Database integration",
        "Performance optimization",
    ),
    "Technical Writers": (
        "Documentation creation and editing",
        "Technical content development",
        "Information architecture",
        "User guide and manual writing",
    ),
    "Financial Analysts": (
        "Financial modeling and analysis",
        "Investment research and evaluation",
        "Report generation and presentation",
        "Risk assessment and forecasting",
    ),
    "Graphic Designers": (
        "Visual design and layout",
        "Brand identity development",
        "Digital asset creation",
        "Creative concept development",
    ),
}

DEFAULT_GROUP_TASKS = ("General knowledge work", "Analysis and problem solving")
DEFAULT_OCCUPATION_TASKS = ("Professional knowledge work", "Analysis and communication")

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^\w\s,-]")
_SOC_MAJOR_GROUP = re.compile(r"^\d{2}$")


def standardize_occupation_name(name: str, aliases: Optional[Dict[str, str]] = None) -> str:
    """Collapse whitespace, strip punctuation outside [\\w\\s,-], then resolve aliases."""
    standardized = _WHITESPACE.sub(" ", (name or "").strip())
    standardized = _DISALLOWED.sub("", standardized).strip()
    aliases = NAME_ALIASES if aliases is None else aliases
    return aliases.get(standardized, standardized)


def normalize_soc_code(code: str) -> str:
    """SOC major groups are published as bare two-digit codes; expand them to XX-0000."""
    code = (code or "").strip()
    if _SOC_MAJOR_GROUP.match(code):
        return f"{code}-0000"
    return code


def parse_score(value: str) -> Optional[float]:
    try:
        return float(str(value).strip().rstrip("%"))
    except (TypeError, ValueError):
        return None


class DataNormalizer:
    """
    Turns raw tables into TableRecords and OccupationRecords.

    Occupations are keyed by standardized name; a later row for the same name
    overwrites the scalar fields (last table wins) and adds its table id to
    tableReferences. Problems are collected as issue strings and never raised
    so a run can finish with partial data.
    """

    def __init__(self, aliases: Optional[Dict[str, str]] = None):
        self.aliases = dict(NAME_ALIASES if aliases is None else aliases)

    def normalize(self, raw_tables: Sequence[RawTable], config: Optional[NormalizationConfig] = None) -> NormalizationResult:
        config = config or NormalizationConfig()
        logger.info("Starting data normalization of %s raw tables", len(raw_tables))

        tables = self._convert_tables(raw_tables)
        issues: List[str] = []
        occupations = self._extract_occupations(tables, raw_tables, config.standardize_occupation_names, issues)
        cross_references = self.create_cross_references(tables) if config.create_cross_references else []
        if config.validate_data_types:
            issues.extend(self._validate_consistency(tables, occupations))

        logger.info(
            "Normalization complete: %s occupations, %s tables, %s cross references, %s issues",
            len(occupations),
            len(tables),
            len(cross_references),
            len(issues),
        )
        return NormalizationResult(
            occupations=occupations,
            tables=tables,
            cross_references=cross_references,
            issues=issues,
        )

    def standardize_name(self, name: str) -> str:
        return standardize_occupation_name(name, self.aliases)

    def _convert_tables(self, raw_tables: Sequence[RawTable]) -> List[TableRecord]:
        records: List[TableRecord] = []
        for index, raw in enumerate(raw_tables, start=1):
            records.append(
                TableRecord(
                    id=f"table_{index}",
                    title=raw.title or f"Table {index}",
                    page=raw.page,
                    headers=tuple(raw.headers),
                    rows=tuple(tuple(row) for row in raw.rows),
                    footnotes=tuple(raw.footnotes),
                    source=f"Page {raw.page}",
                    kind=raw.kind,
                )
            )
        return records

    def _extract_occupations(
        self,
        tables: Sequence[TableRecord],
        raw_tables: Sequence[RawTable],
        standardize: bool,
        issues: List[str],
    ) -> List[OccupationRecord]:
        by_name: Dict[str, OccupationRecord] = {}
        for table, raw in zip(tables, raw_tables):
            if table.kind == TableKind.OCCUPATION_GROUP:
                task_map, default_tasks = GROUP_KEY_TASKS, DEFAULT_GROUP_TASKS
            elif table.kind == TableKind.TOP_OCCUPATIONS:
                task_map, default_tasks = OCCUPATION_KEY_TASKS, DEFAULT_OCCUPATION_TASKS
            else:
                continue

            for row_index, row in enumerate(table.rows, start=1):
                if len(row) < 3:
                    issues.append(f"Table {table.id}, row {row_index}: too few columns for an occupation row")
                    continue
                raw_name, raw_code, raw_score = row[0], row[1], row[2]
                score = parse_score(raw_score)
                if score is None:
                    issues.append(f"Table {table.id}, row {row_index}: unparseable exposure score {raw_score!r} for {raw_name}")
                    continue
                name = self.standardize_name(raw_name) if standardize else raw_name
                candidate = OccupationRecord(
                    code=normalize_soc_code(raw_code),
                    name=name,
                    risk_score=score,
                    key_tasks=task_map.get(raw_name.strip(), task_map.get(name, default_tasks)),
                    table_references=(table.id,),
                    confidence=raw.confidence,
                )
                existing = by_name.get(name)
                by_name[name] = candidate if existing is None else self._merge(existing, candidate, issues)

        return list(by_name.values())

    def _merge(self, existing: OccupationRecord, incoming: OccupationRecord, issues: List[str]) -> OccupationRecord:
        if existing.code and incoming.code and existing.code != incoming.code:
            issues.append(
                f"Occupation '{existing.name}' merged across rows: code {existing.code} replaced by {incoming.code}"
            )
        references = list(existing.table_references)
        references.extend(ref for ref in incoming.table_references if ref not in references)
        return replace(
            existing,
            code=incoming.code,
            risk_score=incoming.risk_score,
            confidence=incoming.confidence,
            key_tasks=existing.key_tasks or incoming.key_tasks,
            table_references=tuple(references),
        )

    def create_cross_references(self, tables: Sequence[TableRecord]) -> List[CrossReference]:
        references: List[CrossReference] = []
        for i, first in enumerate(tables):
            for second in tables[i + 1 :]:
                seen: Set[Tuple[str, str]] = set()
                for col_a, header_a in enumerate(first.headers):
                    for col_b, header_b in enumerate(second.headers):
                        if not self._fields_related(header_a.lower(), header_b.lower()):
                            continue
                        link = (header_a.lower(), header_b.lower())
                        if link in seen:
                            continue
                        seen.add(link)
                        matches = self._count_matches(first, col_a, second, col_b)
                        if matches > 0:
                            references.append(
                                CrossReference(
                                    source_table_id=first.id,
                                    target_table_id=second.id,
                                    linking_field=header_a.lower(),
                                    match_count=matches,
                                )
                            )
        return references

    def _fields_related(self, field_a: str, field_b: str) -> bool:
        if field_a == field_b:
            return True
        for terms in RELATED_HEADER_TERMS:
            if any(t in field_a for t in terms) and any(t in field_b for t in terms):
                return True
        return False

    def _count_matches(self, first: TableRecord, col_a: int, second: TableRecord, col_b: int) -> int:
        values_a = self._column_values(first, col_a)
        values_b = self._column_values(second, col_b)
        return len(values_a & values_b)

    def _column_values(self, table: TableRecord, column: int) -> Set[str]:
        values: Set[str] = set()
        for row in table.rows:
            if column < len(row):
                value = str(row[column]).strip().lower()
                if value:
                    values.add(value)
        return values

    def _validate_consistency(self, tables: Sequence[TableRecord], occupations: Sequence[OccupationRecord]) -> List[str]:
        issues: List[str] = []
        for occupation in occupations:
            if occupation.risk_score < 0 or occupation.risk_score > 1:
                issues.append(f"Invalid risk score for {occupation.name}: {occupation.risk_score}")
            if not occupation.code or not occupation.code.strip():
                issues.append(f"Missing SOC code for occupation: {occupation.name}")
            if not occupation.key_tasks:
                issues.append(f"No key tasks defined for occupation: {occupation.name}")

        for table in tables:
            if not table.headers:
                issues.append(f"Table {table.id} has no headers")
            for row_index, row in enumerate(table.rows, start=1):
                if len(row) != len(table.headers):
                    issues.append(f"Table {table.id}, row {row_index}: column count mismatch")
        return issues
