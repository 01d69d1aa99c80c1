# newsfeed/interests.py
"""
Interest accumulator.

Every interaction is appended to the ``interaction`` table and nudges the
user's affinity for each dimension of the article (category, source,
author). Affinity rows are updated with a compare-and-swap on their
``version`` column so two requests from the same user cannot overwrite
each other's increments.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .config import INTEREST_UPDATE_RETRIES
from .domain import ArticleInfo, Interest, InteractionEvent
from .enums import InteractionType, InterestType, parse_enum
from .errors import DataUnavailableError, InvalidRequestError
from .logging_setup import get_logger
from .models import Article, Interaction, UserInterest, utcnow
from .ranker import article_dimensions, naive_utc

logger = get_logger("newsfeed.interests")

INTERACTION_DELTAS = {
    InteractionType.VIEW: 0.02,
    InteractionType.LIKE: 0.10,
    InteractionType.SHARE: 0.15,
    InteractionType.SAVE: 0.08,
    InteractionType.COMMENT: 0.12,
    InteractionType.FULL_READ: 0.15,
    InteractionType.CLICK: 0.03,
    InteractionType.QUICK_EXIT: -0.10,
}

# Aggregate counters on Article bumped by an interaction
COUNTER_COLUMNS = {
    InteractionType.VIEW: "views_count",
    InteractionType.LIKE: "likes_count",
    InteractionType.SHARE: "shares_count",
    InteractionType.COMMENT: "comments_count",
}


@dataclass(frozen=True)
class InteractionResult:
    interaction_id: int
    interaction_type: str
    delta: float
    interests: Tuple[Interest, ...] = ()
    attempts: int = 1


def interaction_delta(interaction_type, reading_progress: Optional[float] = None) -> float:
    """
    Score change for one interaction. Unknown types score 0.

    Reading progress scales positive signals up with how much was read and
    negative ones with how much was left unread.
    """
    kind = parse_enum(InteractionType, interaction_type)
    delta = INTERACTION_DELTAS.get(kind, 0.0)
    if reading_progress is not None and delta:
        progress = max(0.0, min(1.0, float(reading_progress)))
        delta = delta * progress if delta > 0 else delta * (1.0 - progress)
    return delta

def nudge(score: float, delta: float) -> float:
    return max(0.0, min(1.0, score + delta))


def validate_event(event: InteractionEvent) -> None:
    if event.user_id is None or event.article_id is None:
        raise InvalidRequestError("user_id and article_id are required", field="article_id")
    if not (event.interaction_type or "").strip():
        raise InvalidRequestError("interaction_type is required", field="interaction_type")
    if event.reading_progress is not None and not 0.0 <= event.reading_progress <= 1.0:
        raise InvalidRequestError("reading_progress must be within [0, 1]", field="reading_progress")
    if event.time_spent_seconds is not None and event.time_spent_seconds < 0:
        raise InvalidRequestError("time_spent_seconds must be >= 0", field="time_spent_seconds")


def _interest_query(user_id: int, kind: InterestType, label: str):
    return (
        select(UserInterest)
        .where(
            UserInterest.user_id == user_id,
            UserInterest.interest_type == kind.value,
            UserInterest.label == label,
        )
        .execution_options(populate_existing=True)
    )

def _ensure_interest_row(session: Session, user_id: int, kind: InterestType, label: str,
                         now: datetime) -> Tuple[int, int, float]:
    """Return (id, version, score) of the row, creating an empty one if needed."""
    row = session.exec(_interest_query(user_id, kind, label)).first()
    if row is None:
        session.add(UserInterest(user_id=user_id, interest_type=kind.value, label=label, last_updated=now))
        try:
            session.commit()
        except IntegrityError:
            # another request created it first
            session.rollback()
        row = session.exec(_interest_query(user_id, kind, label)).one()
    return row.id, row.version, row.score

def _compare_and_swap(session: Session, row_id: int, version: int, score: float,
                      delta: float, now: datetime) -> bool:
    stmt = (
        update(UserInterest)
        .where(UserInterest.id == row_id, UserInterest.version == version)
        .values(
            score=nudge(score, delta),
            interaction_count=UserInterest.interaction_count + 1,
            version=UserInterest.version + 1,
            last_updated=now,
        )
    )
    return session.connection().execute(stmt).rowcount == 1

def _bump_counter(session: Session, article_id: int, kind: Optional[InteractionType]) -> None:
    column = COUNTER_COLUMNS.get(kind)
    if not column:
        return
    col = getattr(Article, column)
    session.connection().execute(update(Article).where(Article.id == article_id).values({column: col + 1}))


def record_interaction(session: Session, event: InteractionEvent, now: Optional[datetime] = None) -> InteractionResult:
    """
    Append one interaction and fold it into the user's interests.

    The interaction row, the interest updates and the article counter bump
    commit together. A lost compare-and-swap rolls all of it back and the
    attempt is repeated against fresh versions.
    """
    validate_event(event)
    now = naive_utc(now) or utcnow()
    kind = parse_enum(InteractionType, event.interaction_type)
    delta = interaction_delta(event.interaction_type, event.reading_progress)

    try:
        article_row = session.get(Article, event.article_id)
        dims = article_dimensions(ArticleInfo.from_row(article_row)) if article_row else []
        if article_row is None:
            logger.warning("INTERACTION_UNKNOWN_ARTICLE", extra={"article_id": event.article_id})
        if kind is None:
            logger.info("INTERACTION_UNKNOWN_TYPE", extra={"interaction_type": event.interaction_type})

        for attempt in range(1, INTEREST_UPDATE_RETRIES + 1):
            rows = [_ensure_interest_row(session, event.user_id, k, label, now) for k, label in dims]

            interaction = Interaction(
                user_id=event.user_id,
                article_id=event.article_id,
                interaction_type=kind.value if kind else event.interaction_type.strip().lower(),
                ts=naive_utc(event.timestamp) or now,
                reading_progress=event.reading_progress,
                time_spent_seconds=event.time_spent_seconds,
                device_type=event.device_type,
            )
            session.add(interaction)

            if all(_compare_and_swap(session, row_id, version, score, delta, now)
                   for row_id, version, score in rows):
                if article_row is not None:
                    _bump_counter(session, event.article_id, kind)
                session.commit()
                session.refresh(interaction)
                interests = _load_dimension_interests(session, event.user_id, dims)
                logger.info(
                    "INTERACTION_RECORDED",
                    extra={
                        "interaction_id": interaction.id,
                        "type": interaction.interaction_type,
                        "delta": round(delta, 4),
                        "dimensions": len(dims),
                        "attempts": attempt,
                    },
                )
                return InteractionResult(
                    interaction_id=interaction.id,
                    interaction_type=interaction.interaction_type,
                    delta=delta,
                    interests=interests,
                    attempts=attempt,
                )

            session.rollback()
            logger.info("INTEREST_CAS_RETRY", extra={"attempt": attempt, "user": event.user_id})
    except SQLAlchemyError as e:
        session.rollback()
        raise DataUnavailableError("Interaction store unavailable") from e

    raise DataUnavailableError(
        f"Could not record interaction after {INTEREST_UPDATE_RETRIES} attempts (concurrent updates)"
    )


def _load_dimension_interests(session: Session, user_id: int,
                              dims: List[Tuple[InterestType, str]]) -> Tuple[Interest, ...]:
    out = []
    for kind, label in dims:
        row = session.exec(_interest_query(user_id, kind, label)).first()
        if row is not None:
            out.append(Interest.from_row(row))
    return tuple(out)
