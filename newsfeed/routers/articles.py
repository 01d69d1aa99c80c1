# newsfeed/routers/articles.py
from fastapi import APIRouter, Depends, status

from ..catalog import get_article
from ..dependencies import current_user
from ..domain import ArticleInfo
from ..errors import InvalidRequestError, NotFoundError
from ..logging_setup import get_logger
from ..models import Article
from ..schema import ArticleIn
from ..store import get_session

logger = get_logger("newsfeed.routes.articles")

router = APIRouter(prefix="/articles", tags=["Articles"])

@router.post("", status_code=status.HTTP_201_CREATED)
def share_article(body: ArticleIn, user_id: int = Depends(current_user)):
    """A user posts (shares) an article; it becomes a feed candidate immediately."""
    if not body.title.strip():
        raise InvalidRequestError("title is required", field="title")
    with get_session() as s:
        a = Article(
            title=body.title.strip(),
            content=body.content,
            url=body.url,
            image_url=body.image_url,
            category=body.category.strip().lower(),
            source=body.source.strip(),
            author_id=user_id,
        )
        s.add(a); s.commit(); s.refresh(a)
        logger.info(f"Article shared: id={a.id} category={a.category or '-'}")
        return ArticleInfo.from_row(a)

@router.get("/{article_id}")
def read_article(article_id: int):
    with get_session() as s:
        article = get_article(s, article_id)
    if article is None or article.is_hidden:
        raise NotFoundError(f"Article {article_id} not found")
    return article
