# newsfeed/enums.py
from enum import Enum
from typing import Optional, Type, TypeVar

E = TypeVar("E", bound=Enum)


class InteractionType(str, Enum):
    VIEW = "view"
    LIKE = "like"
    SHARE = "share"
    SAVE = "save"
    COMMENT = "comment"
    CLICK = "click"
    FULL_READ = "full_read"
    QUICK_EXIT = "quick_exit"  # left quickly, negative signal


class InterestType(str, Enum):
    CATEGORY = "category"
    KEYWORD = "keyword"
    SOURCE = "source"
    AUTHOR = "author"
    GEOGRAPHIC = "geographic"


class FeedAlgorithm(str, Enum):
    CHRONOLOGICAL = "chronological"
    POPULAR = "popular"
    PERSONALIZED = "personalized"
    BALANCED = "balanced"
    TRENDING = "trending"
    FOLLOWING = "following"


class SortBy(str, Enum):
    RECOMMENDED = "recommended"
    RECENT = "recent"
    POPULAR = "popular"
    TRENDING = "trending"
    MOST_LIKED = "most_liked"
    MOST_VIEWED = "most_viewed"
    MOST_COMMENTED = "most_commented"


class SortOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class TimeFilter(str, Enum):
    LAST_HOUR = "last_hour"
    LAST_24_HOURS = "last_24_hours"
    LAST_WEEK = "last_week"
    LAST_MONTH = "last_month"
    ALL = "all"


def _squash(value: str) -> str:
    return value.strip().lower().replace("-", "").replace("_", "").replace(" ", "")


def parse_enum(enum_cls: Type[E], value) -> Optional[E]:
    """Lenient lookup: 'Full-Read', 'fullread' and 'full_read' all match FULL_READ.

    Returns None for unknown strings so callers decide whether that is an error.
    """
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    key = _squash(str(value))
    for member in enum_cls:
        if _squash(member.value) == key:
            return member
    return None
