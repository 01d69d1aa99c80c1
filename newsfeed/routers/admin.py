# newsfeed/routers/admin.py
from fastapi import APIRouter, BackgroundTasks, Depends

from ..dependencies import require_admin
from ..errors import NotFoundError
from ..logging_setup import get_logger
from ..models import Article
from ..store import get_session
from ..trending import refresh_trending
from ..workflow import run_ingest

logger = get_logger("newsfeed.routes.admin")

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])

def _set_hidden(article_id: int, hidden: bool):
    with get_session() as s:
        a = s.get(Article, article_id)
        if a is None:
            raise NotFoundError(f"Article {article_id} not found")
        a.is_hidden = hidden
        s.add(a); s.commit()
    logger.info("ARTICLE_MODERATED", extra={"article_id": article_id, "hidden": hidden})
    return {"ok": True, "article_id": article_id, "hidden": hidden}

@router.post("/articles/{article_id}/hide", summary="Hide an article from every feed")
def hide_article(article_id: int):
    return _set_hidden(article_id, True)

@router.post("/articles/{article_id}/unhide", summary="Make a hidden article visible again")
def unhide_article(article_id: int):
    return _set_hidden(article_id, False)

@router.post("/ingest/run-once", summary="Queue an ingestion pass now")
def ingest_now(bg: BackgroundTasks):
    """Returns immediately; the pass runs after the response is sent."""
    bg.add_task(run_ingest)
    return {"queued": True}

@router.post("/trending/refresh", summary="Recompute trending topics now")
def trending_now():
    return {"topics": refresh_trending()}
