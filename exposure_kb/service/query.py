from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..pipeline.models import (
    KnowledgeBase,
    OccupationRecord,
    TableKind,
    TableRecord,
    VisualizationConfig,
    visualization_to_dict,
)
from ..pipeline.storage import load_knowledge_base_file
from ..pipeline.validation_engine import parse_numeric_cell
from .cache import KnowledgeBaseCache
from .errors import (
    ErrorHandler,
    assert_data_exists,
    assert_initialized,
)

logger = logging.getLogger(__name__)

SIMILARITY_WINDOW = 0.05
MAX_SIMILAR = 5
FALLBACK_PERCENTILE = 50.0
BENCHMARK_TOLERANCE = 0.1

SOC_CODE_WEIGHT = 100
EXACT_NAME_WEIGHT = 80
NAME_SUBSTRING_WEIGHT = 50
TASK_KEYWORD_WEIGHT = 20


class ServiceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


def risk_level_for(score: float) -> RiskLevel:
    if score >= 0.8:
        return RiskLevel.VERY_HIGH
    if score >= 0.6:
        return RiskLevel.HIGH
    if score >= 0.4:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


@dataclass(frozen=True)
class OccupationRisk:
    occupation: OccupationRecord
    risk_level: RiskLevel
    percentile: float
    similar_occupations: Tuple[OccupationRecord, ...] = ()
    degraded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "occupation": self.occupation.to_dict(),
            "riskLevel": self.risk_level.value,
            "percentile": self.percentile,
            "similarOccupations": [o.to_dict() for o in self.similar_occupations],
            "degraded": self.degraded,
        }


@dataclass
class SearchFilters:
    min_risk_score: Optional[float] = None
    max_risk_score: Optional[float] = None
    limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "minRiskScore": self.min_risk_score,
            "maxRiskScore": self.max_risk_score,
            "limit": self.limit,
        }


@dataclass(frozen=True)
class SearchResult:
    occupation: OccupationRecord
    match_score: int
    match_reasons: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "occupation": self.occupation.to_dict(),
            "matchScore": self.match_score,
            "matchReasons": list(self.match_reasons),
        }


@dataclass(frozen=True)
class IndustryExposure:
    industry: str
    naics_code: str
    exposure_score: Optional[float]
    employment: Optional[float]
    employment_share: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "industry": self.industry,
            "naicsCode": self.naics_code,
            "exposureScore": self.exposure_score,
            "employment": self.employment,
            "employmentShare": self.employment_share,
        }


@dataclass(frozen=True)
class TaskAutomation:
    category: str
    description: str
    automation_potential: Optional[float]
    human_complementarity: str
    timeline: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "description": self.description,
            "automationPotential": self.automation_potential,
            "humanComplementarity": self.human_complementarity,
            "timeline": self.timeline,
        }


@dataclass(frozen=True)
class ComparisonResult:
    user_risk: float
    benchmark_risk: float
    difference: float
    risk_category: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userRisk": self.user_risk,
            "benchmarkRisk": self.benchmark_risk,
            "difference": self.difference,
            "riskCategory": self.risk_category,
        }


@dataclass(frozen=True)
class VisualizationView:
    config: VisualizationConfig
    data: Tuple[Dict[str, Any], ...]

    def to_dict(self) -> Dict[str, Any]:
        payload = visualization_to_dict(self.config)
        payload["data"] = list(self.data)
        return payload


@dataclass
class _Index:
    knowledge_base: KnowledgeBase
    by_code: Dict[str, OccupationRecord] = field(default_factory=dict)
    by_name: Dict[str, OccupationRecord] = field(default_factory=dict)
    occupations: List[OccupationRecord] = field(default_factory=list)
    tables: Dict[str, TableRecord] = field(default_factory=dict)

    @classmethod
    def build(cls, knowledge_base: KnowledgeBase) -> "_Index":
        index = cls(knowledge_base=knowledge_base, occupations=list(knowledge_base.occupations))
        for occupation in knowledge_base.occupations:
            index.by_code.setdefault(occupation.code, occupation)
            index.by_name.setdefault(occupation.name.lower(), occupation)
        for table in knowledge_base.tables:
            index.tables[table.id] = table
        return index

    def table_of_kind(self, kind: TableKind) -> Optional[TableRecord]:
        for table in self.knowledge_base.tables:
            if table.kind == kind:
                return table
        return None


class QueryService:
    """
    Read-side API over one loaded knowledge base.

    Construct once, call initialize() or load_from_file(), then share the
    instance. Re-initializing builds a fresh index and swaps it in with a
    single assignment, then drops every cached query result.
    """

    def __init__(self, cache: Optional[KnowledgeBaseCache] = None, error_handler: Optional[ErrorHandler] = None):
        self.cache = cache or KnowledgeBaseCache()
        self.error_handler = error_handler or ErrorHandler()
        self._index: Optional[_Index] = None

    @property
    def state(self) -> ServiceState:
        return ServiceState.INITIALIZED if self._index is not None else ServiceState.UNINITIALIZED

    @property
    def is_initialized(self) -> bool:
        return self._index is not None

    @property
    def knowledge_base(self) -> KnowledgeBase:
        return self._require_index().knowledge_base

    def initialize(self, knowledge_base: KnowledgeBase) -> None:
        index = _Index.build(knowledge_base)
        self._index = index
        dropped = self.cache.invalidate_all()
        logger.info(
            "Query service initialized with %s occupations and %s tables (%s cache entries dropped)",
            len(index.occupations),
            len(index.tables),
            dropped,
        )

    def load_from_file(self, path: Path) -> KnowledgeBase:
        path = Path(path)
        knowledge_base = self.error_handler.with_retry(
            lambda: load_knowledge_base_file(path), f"load knowledge base from {path}"
        )
        self.initialize(knowledge_base)
        return knowledge_base

    def _require_index(self) -> _Index:
        assert_initialized(self._index is not None)
        return self._index

    # Occupations
    def _find_occupation(self, index: _Index, identifier: str) -> Optional[OccupationRecord]:
        needle = identifier.strip()
        if not needle:
            return None
        found = index.by_code.get(needle)
        if found is not None:
            return found
        lowered = needle.lower()
        found = index.by_name.get(lowered)
        if found is not None:
            return found
        for occupation in index.occupations:
            if lowered in occupation.name.lower():
                return occupation
        return None

    def get_occupation_risk(self, identifier: str) -> OccupationRisk:
        index = self._require_index()
        cached = self.cache.get_cached_occupation_risk(identifier)
        if cached is not None:
            return cached

        occupation = assert_data_exists(self._find_occupation(index, identifier), "Occupation", identifier)
        risk = OccupationRisk(
            occupation=occupation,
            risk_level=risk_level_for(occupation.risk_score),
            percentile=self._percentile(index, occupation),
            similar_occupations=self._similar(index, occupation),
        )
        self.cache.cache_occupation_risk(identifier, risk)
        return risk

    def get_occupation_risk_with_fallback(self, identifier: str) -> Optional[OccupationRisk]:
        """
        Never raises. A failed lookup returns the bare record marked degraded,
        or None when no record matches. This holds even when the error handler
        has fallbacks disabled.
        """
        try:
            return self.error_handler.with_fallback(
                lambda: self.get_occupation_risk(identifier),
                lambda: self._degraded_risk(identifier),
                f"occupation risk for {identifier}",
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Occupation risk for %s failed: %s", identifier, exc)
            return self._degraded_risk(identifier)

    def _degraded_risk(self, identifier: str) -> Optional[OccupationRisk]:
        index = self._index
        if index is None:
            return None
        try:
            occupation = self._find_occupation(index, identifier)
            if occupation is None:
                return None
            return OccupationRisk(
                occupation=occupation,
                risk_level=risk_level_for(occupation.risk_score),
                percentile=FALLBACK_PERCENTILE,
                similar_occupations=(),
                degraded=True,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Degraded occupation risk for %s unavailable: %s", identifier, exc)
            return None

    def _percentile(self, index: _Index, occupation: OccupationRecord) -> float:
        scores = [o.risk_score for o in index.occupations]
        if not scores:
            return FALLBACK_PERCENTILE
        lower = sum(1 for s in scores if s < occupation.risk_score)
        equal = sum(1 for s in scores if s == occupation.risk_score)
        return round((lower + 0.5 * equal) / len(scores) * 100, 1)

    def _similar(self, index: _Index, occupation: OccupationRecord) -> Tuple[OccupationRecord, ...]:
        candidates = [
            o
            for o in index.occupations
            if o is not occupation
            and o.code != occupation.code
            and abs(o.risk_score - occupation.risk_score) <= SIMILARITY_WINDOW + 1e-9
        ]
        candidates.sort(key=lambda o: abs(o.risk_score - occupation.risk_score))
        return tuple(candidates[:MAX_SIMILAR])

    def get_top_risk_occupations(self, limit: int = 10) -> List[OccupationRecord]:
        index = self._require_index()
        key = self.cache.top_occupations_key(limit)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)
        ranked = sorted(index.occupations, key=lambda o: o.risk_score, reverse=True)[: max(0, limit)]
        self.cache.set(key, tuple(ranked), self.cache.OCCUPATION_RISK_TTL)
        return ranked

    def search_occupations(self, query: str, filters: Optional[SearchFilters] = None) -> List[SearchResult]:
        index = self._require_index()
        filters = filters or SearchFilters()
        if not query or not query.strip():
            return []

        cached = self.cache.get_cached_search_results(query, filters.to_dict())
        if cached is not None:
            return list(cached)

        needle = query.strip().lower()
        results: List[SearchResult] = []
        for occupation in index.occupations:
            score, reasons = self._score(occupation, needle)
            if score <= 0:
                continue
            if filters.min_risk_score is not None and occupation.risk_score < filters.min_risk_score:
                continue
            if filters.max_risk_score is not None and occupation.risk_score > filters.max_risk_score:
                continue
            results.append(SearchResult(occupation=occupation, match_score=score, match_reasons=tuple(reasons)))

        results.sort(key=lambda r: r.match_score, reverse=True)
        if filters.limit is not None:
            results = results[: max(0, filters.limit)]

        self.cache.cache_search_results(query, filters.to_dict(), tuple(results))
        return results

    def _score(self, occupation: OccupationRecord, needle: str) -> Tuple[int, List[str]]:
        score = 0
        reasons: List[str] = []
        if occupation.code.lower() == needle:
            score += SOC_CODE_WEIGHT
            reasons.append("SOC code match")

        name = occupation.name.lower()
        if name == needle:
            score += EXACT_NAME_WEIGHT
            reasons.append("Exact name match")
        elif needle in name:
            score += NAME_SUBSTRING_WEIGHT
            reasons.append("Name contains search term")

        for task in occupation.key_tasks:
            if needle in task.lower():
                score += TASK_KEYWORD_WEIGHT
                reasons.append(f"Matches task keyword: {task}")
                break
        return score, reasons

    def compare_with_benchmark(self, user_risk: float, identifier: str) -> ComparisonResult:
        benchmark = self.get_occupation_risk(identifier).occupation.risk_score
        difference = user_risk - benchmark
        if difference < -BENCHMARK_TOLERANCE:
            category = "lower"
        elif difference > BENCHMARK_TOLERANCE:
            category = "higher"
        else:
            category = "similar"
        return ComparisonResult(
            user_risk=user_risk,
            benchmark_risk=benchmark,
            difference=round(difference, 4),
            risk_category=category,
        )

    # Tables and derived views
    def get_table_data(self, table_id: str) -> TableRecord:
        index = self._require_index()
        cached = self.cache.get_cached_table_data(table_id)
        if cached is not None:
            return cached
        table = assert_data_exists(index.tables.get(table_id), "Table", table_id)
        self.cache.cache_table_data(table_id, table)
        return table

    def get_industry_data(self) -> List[IndustryExposure]:
        index = self._require_index()
        table = assert_data_exists(index.table_of_kind(TableKind.INDUSTRY_EXPOSURE), "Industry exposure table")
        industries = []
        for row in table.rows:
            if len(row) < 5:
                continue
            industries.append(
                IndustryExposure(
                    industry=row[0],
                    naics_code=row[1],
                    exposure_score=parse_numeric_cell(row[2]),
                    employment=parse_numeric_cell(row[3]),
                    employment_share=parse_numeric_cell(row[4]),
                )
            )
        return industries

    def get_task_automation_data(self) -> List[TaskAutomation]:
        index = self._require_index()
        table = assert_data_exists(index.table_of_kind(TableKind.TASK_AUTOMATION), "Task automation table")
        tasks = []
        for row in table.rows:
            if len(row) < 5:
                continue
            tasks.append(
                TaskAutomation(
                    category=row[0],
                    description=row[1],
                    automation_potential=parse_numeric_cell(row[2]),
                    human_complementarity=row[3],
                    timeline=row[4],
                )
            )
        return tasks

    def get_visualization_config(self, chart_type: str) -> VisualizationView:
        """
        Look up a visualization by chart type ("bar") or by data source
        ("occupations", "industry_exposure", "tables.task_automation") and
        attach the rows it plots. The first match in document order wins.
        """
        index = self._require_index()
        cached = self.cache.get_cached_visualization_data(chart_type)
        if cached is not None:
            return cached

        wanted = chart_type.strip().lower()
        config = None
        for viz in index.knowledge_base.visualizations:
            source = viz.data_source.lower()
            if viz.type == wanted or source == wanted or source == f"tables.{wanted}":
                config = viz
                break
        config = assert_data_exists(config, "Visualization", chart_type)

        view = VisualizationView(config=config, data=tuple(self._visualization_rows(index, config)))
        self.cache.cache_visualization_data(chart_type, view)
        return view

    def _visualization_rows(self, index: _Index, config: VisualizationConfig) -> List[Dict[str, Any]]:
        limit = getattr(config, "limit", None)
        if config.data_source == "occupations":
            ranked = sorted(index.occupations, key=lambda o: o.risk_score, reverse=True)
            rows = [o.to_dict() for o in ranked]
        elif config.data_source.startswith("tables."):
            reference = config.data_source.split(".", 1)[1]
            table = index.tables.get(reference)
            if table is None:
                try:
                    table = index.table_of_kind(TableKind(reference))
                except ValueError:
                    table = None
            rows = table.row_dicts() if table is not None else []
        else:
            rows = []
        return rows[:limit] if limit is not None else rows

    # Cache
    def get_cache_stats(self):
        return self.cache.get_stats()

    def clear_cache(self) -> None:
        self.cache.clear()
