import pytest

from exposure_kb.pipeline.models import (
    ExtractionInfo,
    KnowledgeBase,
    Methodology,
    OccupationRecord,
    PaperMetadata,
    TableKind,
    TableRecord,
)
from exposure_kb.pipeline.processor import VISUALIZATIONS


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_knowledge_base() -> KnowledgeBase:
    occupations = (
        OccupationRecord(
            code="15-1252",
            name="Software Developers",
            risk_score=0.96,
            key_tasks=("Code generation and programming", "Debugging and testing"),
            table_references=("table_1",),
            confidence=0.96,
        ),
        OccupationRecord(
            code="15-2051",
            name="Data Scientists",
            risk_score=0.94,
            key_tasks=("Data analysis and modeling", "Machine learning model development"),
            table_references=("table_1",),
            confidence=0.96,
        ),
        OccupationRecord(
            code="27-3042",
            name="Technical Writers",
            risk_score=0.90,
            key_tasks=("Documentation creation and editing",),
            table_references=("table_1",),
            confidence=0.96,
        ),
    )
    tables = (
        TableRecord(
            id="table_1",
            title="Top Occupations by AI Exposure",
            page=9,
            headers=("Occupation", "SOC Code", "Exposure Score"),
            rows=(
                ("Software Developers", "15-1252", "0.96"),
                ("Data Scientists", "15-2051", "0.94"),
                ("Technical Writers", "27-3042", "0.90"),
            ),
            footnotes=(),
            source="Page 9",
            kind=TableKind.TOP_OCCUPATIONS,
        ),
        TableRecord(
            id="table_2",
            title="Industry-Level Exposure to Generative AI",
            page=11,
            headers=("Industry", "NAICS Code", "Exposure Score", "Employment (millions)", "Share of Total Employment"),
            rows=(
                ("Finance and Insurance", "52", "0.68", "6.4", "4.2%"),
                ("Information", "51", "0.67", "2.9", "1.9%"),
            ),
            footnotes=(),
            source="Page 11",
            kind=TableKind.INDUSTRY_EXPOSURE,
        ),
        TableRecord(
            id="table_3",
            title="Task Categories and AI Automation Potential",
            page=13,
            headers=("Task Category", "Description", "Automation Potential", "Human Complementarity", "Timeline"),
            rows=(("Content Creation", "Writing, editing, and content generation", "0.87", "Medium", "1-2 years"),),
            footnotes=(),
            source="Page 13",
            kind=TableKind.TASK_AUTOMATION,
        ),
    )
    return KnowledgeBase(
        metadata=PaperMetadata(
            title="The Impact of Generative AI on Employment",
            arxiv_id="2507.07935",
            url="https://arxiv.org/pdf/2507.07935",
            authors=("Edward W. Felten", "Manav Raj", "Robert Seamans"),
            extraction_date="2025-07-10T00:00:00.000Z",
            version="1.0",
        ),
        methodology=Methodology(
            data_sources=("O*NET Occupational Information Network",),
            analysis_approach="Task-level exposure analysis",
            confidence=0.96,
            limitations=(),
        ),
        occupations=occupations,
        tables=tables,
        visualizations=VISUALIZATIONS,
        extraction_info=ExtractionInfo(
            extraction_date="2025-07-10T00:00:00.000Z",
            version="1.0",
            tools_used=("pdf_extraction",),
            quality_score=96.0,
            manual_review_required=False,
        ),
    )


@pytest.fixture
def knowledge_base() -> KnowledgeBase:
    return make_knowledge_base()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
