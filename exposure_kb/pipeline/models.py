from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from ..service.errors import InvalidDataError


class TableKind(str, Enum):
    OCCUPATION_GROUP = "occupation_group"
    TOP_OCCUPATIONS = "top_occupations"
    INDUSTRY_EXPOSURE = "industry_exposure"
    TASK_AUTOMATION = "task_automation"
    OPAQUE = "opaque"


OCCUPATION_TABLE_KINDS = (TableKind.OCCUPATION_GROUP, TableKind.TOP_OCCUPATIONS)


# Field readers for from_dict. A wrong JSON type is reported as
# InvalidDataError instead of surfacing later as a TypeError in a query.


def _string(data: Dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise InvalidDataError(f"Field '{key}' must be a string, got {type(value).__name__}")
    return value


def _number(data: Dict[str, Any], key: str) -> float:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidDataError(f"Field '{key}' must be a number, got {type(value).__name__}")
    return value


def _integer(data: Dict[str, Any], key: str) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidDataError(f"Field '{key}' must be an integer, got {type(value).__name__}")
    return value


def _boolean(data: Dict[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise InvalidDataError(f"Field '{key}' must be a boolean, got {type(value).__name__}")
    return value


def _strings(data: Dict[str, Any], key: str, default: Optional[list] = None) -> Tuple[str, ...]:
    value = data[key] if default is None else data.get(key, default)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise InvalidDataError(f"Field '{key}' must be a list of strings")
    return tuple(value)


def _rows(data: Dict[str, Any], key: str) -> Tuple[Tuple[str, ...], ...]:
    value = data[key]
    if not isinstance(value, list) or not all(
        isinstance(row, list) and all(isinstance(cell, str) for cell in row) for row in value
    ):
        raise InvalidDataError(f"Field '{key}' must be a list of rows of strings")
    return tuple(tuple(row) for row in value)


class PipelinePhase(str, Enum):
    NORMALIZE = "normalize"
    ASSEMBLE = "assemble"
    VALIDATE = "validate"
    PERSIST = "persist"


@dataclass(frozen=True)
class RawTable:
    page: int
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]
    confidence: float
    title: Optional[str] = None
    kind: TableKind = TableKind.OPAQUE
    footnotes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RawText:
    sections: Dict[str, str]
    page_count: int
    extraction_method: str
    confidence: float


@dataclass(frozen=True)
class PaperMetadata:
    title: str
    arxiv_id: str
    url: str
    authors: Tuple[str, ...]
    extraction_date: str
    version: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "arxivId": self.arxiv_id,
            "url": self.url,
            "authors": list(self.authors),
            "extractionDate": self.extraction_date,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaperMetadata":
        return cls(
            title=_string(data, "title"),
            arxiv_id=_string(data, "arxivId"),
            url=_string(data, "url"),
            authors=_strings(data, "authors"),
            extraction_date=_string(data, "extractionDate"),
            version=_string(data, "version"),
        )


@dataclass(frozen=True)
class OccupationRecord:
    code: str
    name: str
    risk_score: float
    key_tasks: Tuple[str, ...]
    table_references: Tuple[str, ...]
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "riskScore": self.risk_score,
            "keyTasks": list(self.key_tasks),
            "tableReferences": list(self.table_references),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OccupationRecord":
        return cls(
            code=_string(data, "code"),
            name=_string(data, "name"),
            risk_score=_number(data, "riskScore"),
            key_tasks=_strings(data, "keyTasks"),
            table_references=_strings(data, "tableReferences"),
            confidence=_number(data, "confidence"),
        )


@dataclass(frozen=True)
class TableRecord:
    id: str
    title: str
    page: int
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]
    footnotes: Tuple[str, ...]
    source: str
    kind: TableKind = TableKind.OPAQUE

    def row_dicts(self) -> List[Dict[str, str]]:
        return [dict(zip(self.headers, row)) for row in self.rows]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "page": self.page,
            "headers": list(self.headers),
            "rows": [list(row) for row in self.rows],
            "footnotes": list(self.footnotes),
            "source": self.source,
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TableRecord":
        return cls(
            id=_string(data, "id"),
            title=_string(data, "title"),
            page=_integer(data, "page"),
            headers=_strings(data, "headers"),
            rows=_rows(data, "rows"),
            footnotes=_strings(data, "footnotes"),
            source=_string(data, "source"),
            kind=TableKind(data.get("kind", TableKind.OPAQUE.value)),
        )


@dataclass(frozen=True)
class CrossReference:
    source_table_id: str
    target_table_id: str
    linking_field: str
    match_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceTableId": self.source_table_id,
            "targetTableId": self.target_table_id,
            "linkingField": self.linking_field,
            "matchCount": self.match_count,
        }


@dataclass(frozen=True)
class Methodology:
    data_sources: Tuple[str, ...]
    analysis_approach: str
    confidence: float
    limitations: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dataSources": list(self.data_sources),
            "analysisApproach": self.analysis_approach,
            "confidence": self.confidence,
            "limitations": list(self.limitations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Methodology":
        return cls(
            data_sources=_strings(data, "dataSources"),
            analysis_approach=_string(data, "analysisApproach"),
            confidence=_number(data, "confidence"),
            limitations=_strings(data, "limitations", default=[]),
        )


# Visualization configs are a closed set of chart variants. Each variant owns
# exactly the fields its chart needs and serializes to
# {"type", "title", "dataSource", "config": {...}}.


@dataclass(frozen=True)
class BarChartConfig:
    title: str
    data_source: str
    x_axis: str
    y_axis: str
    color: str
    limit: Optional[int] = None
    show_values: bool = True
    rotate_labels: bool = False

    type = "bar"

    def _config(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {"xAxis": self.x_axis, "yAxis": self.y_axis}
        if self.limit is not None:
            config["limit"] = self.limit
        config["color"] = self.color
        config["showValues"] = self.show_values
        config["rotateLabels"] = self.rotate_labels
        return config

    @classmethod
    def _from_config(cls, title: str, data_source: str, config: Dict[str, Any]) -> "BarChartConfig":
        return cls(
            title=title,
            data_source=data_source,
            x_axis=config["xAxis"],
            y_axis=config["yAxis"],
            color=config.get("color", "#3498db"),
            limit=config.get("limit"),
            show_values=config.get("showValues", True),
            rotate_labels=config.get("rotateLabels", False),
        )


@dataclass(frozen=True)
class ScatterChartConfig:
    title: str
    data_source: str
    x_axis: str
    y_axis: str
    color: str

    type = "scatter"

    def _config(self) -> Dict[str, Any]:
        return {"xAxis": self.x_axis, "yAxis": self.y_axis, "color": self.color}

    @classmethod
    def _from_config(cls, title: str, data_source: str, config: Dict[str, Any]) -> "ScatterChartConfig":
        return cls(
            title=title,
            data_source=data_source,
            x_axis=config["xAxis"],
            y_axis=config["yAxis"],
            color=config.get("color", "#3498db"),
        )


@dataclass(frozen=True)
class PieChartConfig:
    title: str
    data_source: str
    label_field: str
    value_field: str
    limit: Optional[int] = None

    type = "pie"

    def _config(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {"labelField": self.label_field, "valueField": self.value_field}
        if self.limit is not None:
            config["limit"] = self.limit
        return config

    @classmethod
    def _from_config(cls, title: str, data_source: str, config: Dict[str, Any]) -> "PieChartConfig":
        return cls(
            title=title,
            data_source=data_source,
            label_field=config["labelField"],
            value_field=config["valueField"],
            limit=config.get("limit"),
        )


VisualizationConfig = Union[BarChartConfig, ScatterChartConfig, PieChartConfig]

VISUALIZATION_TYPES = {
    BarChartConfig.type: BarChartConfig,
    ScatterChartConfig.type: ScatterChartConfig,
    PieChartConfig.type: PieChartConfig,
}


def visualization_to_dict(viz: VisualizationConfig) -> Dict[str, Any]:
    return {
        "type": viz.type,
        "title": viz.title,
        "dataSource": viz.data_source,
        "config": viz._config(),
    }


def visualization_from_dict(data: Dict[str, Any]) -> VisualizationConfig:
    viz_type = data.get("type")
    variant = VISUALIZATION_TYPES.get(viz_type)
    if variant is None:
        raise InvalidDataError(f"Unknown visualization type: {viz_type}")
    return variant._from_config(_string(data, "title"), _string(data, "dataSource"), data.get("config", {}))


@dataclass(frozen=True)
class ExtractionInfo:
    extraction_date: str
    version: str
    tools_used: Tuple[str, ...]
    quality_score: float
    manual_review_required: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "extractionDate": self.extraction_date,
            "version": self.version,
            "toolsUsed": list(self.tools_used),
            "qualityScore": self.quality_score,
            "manualReviewRequired": self.manual_review_required,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionInfo":
        return cls(
            extraction_date=_string(data, "extractionDate"),
            version=_string(data, "version"),
            tools_used=_strings(data, "toolsUsed", default=[]),
            quality_score=_number(data, "qualityScore"),
            manual_review_required=_boolean(data, "manualReviewRequired"),
        )


@dataclass(frozen=True)
class KnowledgeBase:
    metadata: PaperMetadata
    methodology: Methodology
    occupations: Tuple[OccupationRecord, ...]
    tables: Tuple[TableRecord, ...]
    visualizations: Tuple[VisualizationConfig, ...]
    extraction_info: ExtractionInfo

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "methodology": self.methodology.to_dict(),
            "occupations": [o.to_dict() for o in self.occupations],
            "tables": [t.to_dict() for t in self.tables],
            "visualizations": [visualization_to_dict(v) for v in self.visualizations],
            "extractionInfo": self.extraction_info.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeBase":
        if not isinstance(data, dict):
            raise InvalidDataError(f"Knowledge base document must be an object, got {type(data).__name__}")
        try:
            return cls(
                metadata=PaperMetadata.from_dict(data["metadata"]),
                methodology=Methodology.from_dict(data["methodology"]),
                occupations=tuple(OccupationRecord.from_dict(o) for o in data["occupations"]),
                tables=tuple(TableRecord.from_dict(t) for t in data["tables"]),
                visualizations=tuple(visualization_from_dict(v) for v in data["visualizations"]),
                extraction_info=ExtractionInfo.from_dict(data["extractionInfo"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidDataError(f"Malformed knowledge base document: {exc!r}") from exc


@dataclass
class NormalizationResult:
    occupations: List[OccupationRecord]
    tables: List[TableRecord]
    cross_references: List[CrossReference] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
