"""
Analysis store repository.

Per-user collection of saved analyses, upserted by article URL.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from bias_detector.common.exceptions import TransactionError
from bias_detector.observability import trace_operation
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .models import StoredAnalysis, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveResult:
    id: str
    created: bool


class AnalysisRepository:
    """Reads and writes ``StoredAnalysis`` rows for one session."""

    def __init__(self, session: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self.session = session
        self._clock = clock

    def _find(self, user_id: str, url: str) -> StoredAnalysis | None:
        stmt = select(StoredAnalysis).where(
            StoredAnalysis.user_id == user_id, StoredAnalysis.url == url
        )
        return self.session.execute(stmt).scalars().first()

    @trace_operation("db_list_analyses")
    def list_for_user(self, user_id: str) -> list[StoredAnalysis]:
        """Return the user's analyses, newest first."""
        stmt = (
            select(StoredAnalysis)
            .where(StoredAnalysis.user_id == user_id)
            .order_by(StoredAnalysis.created_at.desc(), StoredAnalysis.id.desc())
        )
        try:
            return list(self.session.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            raise TransactionError(
                "Failed to list analyses", operation="list_for_user"
            ) from exc

    @trace_operation("db_save_analysis")
    def upsert(
        self,
        user_id: str,
        *,
        url: str,
        bias_score: str,
        bias_meaning: str,
        justification: dict[str, Any],
        title: str | None = None,
    ) -> SaveResult:
        """
        Insert or update the analysis for ``(user_id, url)``.

        On update the title changes only when one is supplied, and
        ``created_at`` is refreshed.
        """
        try:
            existing = self._find(user_id, url)
            if existing is not None:
                result = self._update(existing, bias_score, bias_meaning, justification, title)
            else:
                try:
                    result = self._insert(
                        user_id, url, bias_score, bias_meaning, justification, title
                    )
                except IntegrityError:
                    # Concurrent insert for the same URL won; update it instead.
                    self.session.rollback()
                    existing = self._find(user_id, url)
                    if existing is None:
                        raise
                    result = self._update(
                        existing, bias_score, bias_meaning, justification, title
                    )
            return result
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransactionError("Failed to save analysis", operation="upsert") from exc

    def _insert(
        self,
        user_id: str,
        url: str,
        bias_score: str,
        bias_meaning: str,
        justification: dict[str, Any],
        title: str | None,
    ) -> SaveResult:
        row = StoredAnalysis(
            user_id=user_id,
            url=url,
            title=title,
            bias_score=bias_score,
            bias_meaning=bias_meaning,
            justification=justification,
            created_at=self._clock(),
        )
        self.session.add(row)
        self.session.commit()
        logger.info("Saved new analysis %s", row.id)
        return SaveResult(id=row.id, created=True)

    def _update(
        self,
        row: StoredAnalysis,
        bias_score: str,
        bias_meaning: str,
        justification: dict[str, Any],
        title: str | None,
    ) -> SaveResult:
        row.bias_score = bias_score
        row.bias_meaning = bias_meaning
        row.justification = justification
        if title is not None:
            row.title = title
        row.created_at = self._clock()
        self.session.commit()
        logger.info("Updated analysis %s", row.id)
        return SaveResult(id=row.id, created=False)
