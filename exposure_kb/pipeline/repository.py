from __future__ import annotations

import json
import uuid
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .models import KnowledgeBase

Base = declarative_base()


class SnapshotModel(Base):
    __tablename__ = "knowledge_base_snapshots"
    id = Column(String, primary_key=True)
    arxiv_id = Column(String, index=True)
    version = Column(String)
    extraction_date = Column(String)
    quality_score = Column(Float)
    manual_review_required = Column(Boolean)
    occupation_count = Column(Integer)
    table_count = Column(Integer)
    document_json = Column(Text)
    created_at = Column(DateTime)


@dataclass
class SnapshotRecord:
    id: str
    arxiv_id: str
    version: str
    extraction_date: str
    quality_score: float
    manual_review_required: bool
    occupation_count: int
    table_count: int
    created_at: datetime


def _record_for(snapshot_id: str, knowledge_base: KnowledgeBase, created_at: datetime) -> SnapshotRecord:
    info = knowledge_base.extraction_info
    return SnapshotRecord(
        id=snapshot_id,
        arxiv_id=knowledge_base.metadata.arxiv_id,
        version=info.version,
        extraction_date=info.extraction_date,
        quality_score=info.quality_score,
        manual_review_required=info.manual_review_required,
        occupation_count=len(knowledge_base.occupations),
        table_count=len(knowledge_base.tables),
        created_at=created_at,
    )


class KnowledgeBaseRepository:
    """
    Keeps every built knowledge base as an immutable snapshot so earlier
    builds can be compared or restored. The JSON artifact on disk stays the
    source the query service loads from.
    """

    def save_snapshot(self, knowledge_base: KnowledgeBase) -> SnapshotRecord:
        raise NotImplementedError

    def get_snapshot(self, snapshot_id: str) -> Optional[KnowledgeBase]:
        raise NotImplementedError

    def latest_snapshot(self) -> Optional[KnowledgeBase]:
        raise NotImplementedError

    def list_snapshots(self) -> List[SnapshotRecord]:
        raise NotImplementedError


class InMemoryKnowledgeBaseRepository(KnowledgeBaseRepository):
    def __init__(self):
        self.records: Dict[str, SnapshotRecord] = {}
        self.documents: Dict[str, dict] = {}

    def save_snapshot(self, knowledge_base: KnowledgeBase) -> SnapshotRecord:
        snapshot_id = uuid.uuid4().hex
        record = _record_for(snapshot_id, knowledge_base, datetime.utcnow())
        self.records[snapshot_id] = record
        self.documents[snapshot_id] = deepcopy(knowledge_base.to_dict())
        return deepcopy(record)

    def get_snapshot(self, snapshot_id: str) -> Optional[KnowledgeBase]:
        document = self.documents.get(snapshot_id)
        return KnowledgeBase.from_dict(deepcopy(document)) if document is not None else None

    def latest_snapshot(self) -> Optional[KnowledgeBase]:
        records = self.list_snapshots()
        return self.get_snapshot(records[0].id) if records else None

    def list_snapshots(self) -> List[SnapshotRecord]:
        # Newest first; insertion order breaks timestamp ties.
        ordered = list(self.records.values())[::-1]
        return [deepcopy(r) for r in sorted(ordered, key=lambda r: r.created_at, reverse=True)]


class SqlAlchemyKnowledgeBaseRepository(KnowledgeBaseRepository):
    """
    SQL-backed snapshot store. Works with SQLite/Postgres URLs.
    """

    def __init__(self, database_url: str):
        self.engine = create_engine(database_url, future=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    def _session(self) -> Session:
        return self.SessionLocal()

    def save_snapshot(self, knowledge_base: KnowledgeBase) -> SnapshotRecord:
        record = _record_for(uuid.uuid4().hex, knowledge_base, datetime.utcnow())
        with self._session() as session:
            session.add(
                SnapshotModel(
                    id=record.id,
                    arxiv_id=record.arxiv_id,
                    version=record.version,
                    extraction_date=record.extraction_date,
                    quality_score=record.quality_score,
                    manual_review_required=record.manual_review_required,
                    occupation_count=record.occupation_count,
                    table_count=record.table_count,
                    document_json=json.dumps(knowledge_base.to_dict(), ensure_ascii=False),
                    created_at=record.created_at,
                )
            )
            session.commit()
        return record

    def get_snapshot(self, snapshot_id: str) -> Optional[KnowledgeBase]:
        with self._session() as session:
            model = session.get(SnapshotModel, snapshot_id)
            if not model:
                return None
            return KnowledgeBase.from_dict(json.loads(model.document_json))

    def latest_snapshot(self) -> Optional[KnowledgeBase]:
        with self._session() as session:
            stmt = select(SnapshotModel).order_by(SnapshotModel.created_at.desc()).limit(1)
            model = session.scalars(stmt).first()
            if not model:
                return None
            return KnowledgeBase.from_dict(json.loads(model.document_json))

    def list_snapshots(self) -> List[SnapshotRecord]:
        with self._session() as session:
            stmt = select(SnapshotModel).order_by(SnapshotModel.created_at.desc())
            return [
                SnapshotRecord(
                    id=m.id,
                    arxiv_id=m.arxiv_id,
                    version=m.version,
                    extraction_date=m.extraction_date,
                    quality_score=m.quality_score,
                    manual_review_required=m.manual_review_required,
                    occupation_count=m.occupation_count,
                    table_count=m.table_count,
                    created_at=m.created_at,
                )
                for m in session.scalars(stmt)
            ]
