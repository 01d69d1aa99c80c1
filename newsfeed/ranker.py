from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from .config import FACTOR_THRESHOLD, FRESHNESS_HORIZON_HOURS, POPULARITY_SATURATION
from .domain import ArticleInfo, FeedSettings, Interest, RecommendationScore
from .enums import FeedAlgorithm, InterestType

SUB_SCORES = ("personalization", "freshness", "popularity", "serendipity")
SERENDIPITY_TOP_N = 3
TRENDING_HORIZON_HOURS = 24.0


def _clamp(x: float) -> float:
    return max(0.0, min(1.0, x))

def _norm(label) -> str:
    return str(label or "").strip().lower()

def naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt

def _age_hours(published_at: Optional[datetime], now: datetime) -> Optional[float]:
    if published_at is None:
        return None
    return (naive_utc(now) - naive_utc(published_at)).total_seconds() / 3600.0


def article_dimensions(article: ArticleInfo) -> List[Tuple[InterestType, str]]:
    """Interest dimensions an article feeds: its category, source and author, labels normalized."""
    dims: List[Tuple[InterestType, str]] = []
    if _norm(article.category):
        dims.append((InterestType.CATEGORY, _norm(article.category)))
    if _norm(article.source):
        dims.append((InterestType.SOURCE, _norm(article.source)))
    if article.author_id is not None:
        dims.append((InterestType.AUTHOR, str(article.author_id)))
    return dims


class InterestProfile:
    """Lookup view over one user's interests, built once per feed request."""

    def __init__(self, interests: Iterable[Interest] = ()):
        self._scores: Dict[Tuple[InterestType, str], float] = {}
        for it in interests:
            key = (it.interest_type, _norm(it.label))
            # rows written before labels were normalized may collide; keep the stronger one
            self._scores[key] = max(self._scores.get(key, 0.0), _clamp(it.score))

        categories = sorted(
            ((score, label) for (kind, label), score in self._scores.items() if kind == InterestType.CATEGORY),
            reverse=True,
        )[:SERENDIPITY_TOP_N]
        self.top_categories = frozenset(label for _, label in categories)
        self.top_mean = sum(score for score, _ in categories) / len(categories) if categories else 0.0

    def __bool__(self) -> bool:
        return bool(self._scores)

    def score_for(self, kind: InterestType, label) -> float:
        return self._scores.get((kind, _norm(label)), 0.0)


# ---------- Sub-scores ----------

def personalization_score(article: ArticleInfo, profile: InterestProfile) -> float:
    # Best matching dimension wins; no match (or no interests at all) is 0
    best = 0.0
    for kind, label in article_dimensions(article):
        best = max(best, profile.score_for(kind, label))
    return _clamp(best)

def freshness_score(published_at: Optional[datetime], now: datetime,
                    horizon_hours: float = FRESHNESS_HORIZON_HOURS) -> float:
    age = _age_hours(published_at, now)
    if age is None or horizon_hours <= 0:
        return 0.0
    if age <= 0:
        return 1.0
    return max(0.0, 1.0 - age / horizon_hours)

def popularity_score(likes: int, views: int, shares: int, comments: int,
                     saturation: float = POPULARITY_SATURATION) -> float:
    rate = (likes + 2 * shares + comments) / max(views, 1)
    if saturation <= 0:
        saturation = 1.0
    return _clamp(rate / saturation)

def serendipity_score(article: ArticleInfo, profile: InterestProfile) -> float:
    """Reward categories outside the user's top ones, more so for weakly held tastes."""
    if not profile.top_categories:
        return 1.0
    if _norm(article.category) in profile.top_categories:
        return 0.0
    return _clamp(1.0 - profile.top_mean)


# ---------- Weighting ----------

def effective_weights(settings: FeedSettings, algorithm: Optional[FeedAlgorithm] = None) -> Dict[str, float]:
    """
    Weights actually used for the total, normalized to sum to 1.

    chronological/popular rank on a single signal; every other algorithm uses
    the user's four weights, minus serendipity when it is switched off.
    A zero sum falls back to an equal split.
    """
    algorithm = algorithm or settings.algorithm
    if algorithm == FeedAlgorithm.CHRONOLOGICAL:
        raw = {"freshness": 1.0}
    elif algorithm == FeedAlgorithm.POPULAR:
        raw = {"popularity": 1.0}
    else:
        raw = {k: max(0.0, float(v)) for k, v in settings.weights().items()}
        if not settings.enable_serendipity:
            raw.pop("serendipity")

    total = sum(raw.values())
    if total <= 0:
        return {k: 1.0 / len(raw) for k in raw}
    return {k: v / total for k, v in raw.items()}


def _display(category: str) -> str:
    return category.strip().title()

def recommendation_reason(article: ArticleInfo, subs: Dict[str, float],
                          weights: Dict[str, float], factors: Tuple[str, ...]) -> str:
    if not factors:
        return "Recommended for you"
    top = max(factors, key=lambda k: subs[k] * weights.get(k, 0.0))
    if top == "personalization":
        return f"Matches your interests in {_display(article.category)}" if article.category else "Matches your interests"
    if top == "popularity":
        return f"Trending in {_display(article.category)}" if article.category else "Trending now"
    if top == "freshness":
        return "Just published"
    return "Something new to explore"


def score_article(article: ArticleInfo, profile: InterestProfile, settings: FeedSettings, now: datetime,
                  algorithm: Optional[FeedAlgorithm] = None,
                  weights: Optional[Dict[str, float]] = None) -> RecommendationScore:
    weights = weights if weights is not None else effective_weights(settings, algorithm)
    subs = {
        "personalization": personalization_score(article, profile),
        "freshness": freshness_score(article.published_at, now),
        "popularity": popularity_score(article.likes, article.views, article.shares, article.comments),
        "serendipity": serendipity_score(article, profile) if settings.enable_serendipity else 0.0,
    }
    total = _clamp(sum(subs[k] * w for k, w in weights.items()))
    factors = tuple(k for k in SUB_SCORES if weights.get(k, 0.0) > 0 and subs[k] >= FACTOR_THRESHOLD)
    return RecommendationScore(
        score=total,
        reason=recommendation_reason(article, subs, weights, factors),
        factors=factors,
        personalization=subs["personalization"],
        freshness=subs["freshness"],
        popularity=subs["popularity"],
        serendipity=subs["serendipity"],
    )


# ---------- Secondary signals ----------

def trending_score(article: ArticleInfo, now: datetime) -> float:
    recency = freshness_score(article.published_at, now, horizon_hours=TRENDING_HORIZON_HOURS)
    engagement = min(1.0, (article.likes * 2 + article.views) / 100.0)
    return recency * 0.6 + engagement * 0.4

def similarity_score(article: ArticleInfo, profile: InterestProfile) -> float:
    return 0.5 + profile.score_for(InterestType.CATEGORY, article.category) * 0.3
