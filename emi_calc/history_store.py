"""Persistence layer for saved calculations.

The calculator pages keep a short "saved calculations" history per visitor.
This module models it as an explicit key/value store with save, load, delete,
list and clear operations so that the CLI and the web app can share it
without the calculation engine knowing about persistence. It defaults to
SQLite for local use, but accepts any SQLAlchemy-compatible URL.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DATABASE_URL = "sqlite:///emi_calc_history.sqlite3"
DEFAULT_MAX_PER_USER = 10


class SavedCalculationModel(Base):
    __tablename__ = "saved_calculations"

    # autoincrement keeps insertion order even when timestamps collide
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_token = Column(String(64), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    parameters_json = Column(Text, nullable=False)
    summary_json = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)


class HistoryStore:
    """Database-backed store of saved calculations, newest first."""

    def __init__(self, url: str, *, max_per_user: int = DEFAULT_MAX_PER_USER) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)
        self._max_per_user = max_per_user

    def save(self, user_token: str, name: str, parameters: Dict[str, Any], summary: Dict[str, Any]) -> Optional[int]:
        """Store a calculation and return its id (``None`` without a user token)."""
        if not user_token:
            return None
        row = SavedCalculationModel(
            user_token=user_token,
            name=name or "Calculation",
            parameters_json=json.dumps(parameters),
            summary_json=json.dumps(summary),
        )
        with self._session_factory() as session:
            session.add(row)
            session.commit()
            calculation_id = row.id
        self._trim_user(user_token)
        return calculation_id

    def load(self, user_token: str, calculation_id: int) -> Optional[Dict[str, Any]]:
        if not user_token:
            return None
        with self._session_factory() as session:
            row = session.get(SavedCalculationModel, calculation_id)
            if row is None or row.user_token != user_token:
                return None
            return self._to_dict(row)

    def delete(self, user_token: str, calculation_id: int) -> bool:
        """Delete one calculation; return whether anything was removed."""
        if not user_token:
            return False
        with self._session_factory() as session:
            row = session.get(SavedCalculationModel, calculation_id)
            if row and row.user_token == user_token:
                session.delete(row)
                session.commit()
                logger.debug("Deleted saved calculation %s", calculation_id)
                return True
        return False

    def list(self, user_token: str) -> List[Dict[str, Any]]:
        if not user_token:
            return []
        with self._session_factory() as session:
            rows: Iterable[SavedCalculationModel] = session.execute(
                select(SavedCalculationModel)
                .where(SavedCalculationModel.user_token == user_token)
                .order_by(SavedCalculationModel.id.desc())
            ).scalars()
            return [self._to_dict(row) for row in rows]

    def clear(self, user_token: str) -> None:
        if not user_token:
            return
        with self._session_factory() as session:
            session.execute(
                SavedCalculationModel.__table__.delete().where(
                    SavedCalculationModel.user_token == user_token
                )
            )
            session.commit()
        logger.info("Cleared saved calculations for %s", user_token)

    def _trim_user(self, user_token: str) -> None:
        if not self._max_per_user or self._max_per_user < 0:
            return
        with self._session_factory() as session:
            rows = session.execute(
                select(SavedCalculationModel)
                .where(SavedCalculationModel.user_token == user_token)
                .order_by(SavedCalculationModel.id.desc())
            ).scalars().all()
            if len(rows) <= self._max_per_user:
                return
            for row in rows[self._max_per_user :]:
                session.delete(row)
            session.commit()
            logger.debug("Trimmed %d old calculations for %s", len(rows) - self._max_per_user, user_token)

    @staticmethod
    def _to_dict(row: SavedCalculationModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "parameters": json.loads(row.parameters_json),
            "summary": json.loads(row.summary_json),
            "created_at": row.created_at.isoformat(),
        }


def create_store_from_env(url: Optional[str] = None) -> HistoryStore:
    """Build a store from ``url`` or the ``EMI_CALC_*`` environment variables."""
    limit = int(os.environ.get("EMI_CALC_HISTORY_LIMIT", DEFAULT_MAX_PER_USER))
    return HistoryStore(
        url or os.environ.get("EMI_CALC_DATABASE_URL") or DEFAULT_DATABASE_URL,
        max_per_user=limit,
    )
