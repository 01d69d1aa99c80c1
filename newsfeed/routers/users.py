# newsfeed/routers/users.py
from fastapi import APIRouter, Depends
from sqlmodel import select

from ..catalog import load_followed_ids
from ..dependencies import current_user
from ..errors import InvalidRequestError
from ..logging_setup import get_logger
from ..models import UserFollow
from ..store import get_session

logger = get_logger("newsfeed.routes.users")

router = APIRouter(prefix="/users", tags=["Users"])

@router.post("/{followed_id}/follow")
def follow(followed_id: int, user_id: int = Depends(current_user)):
    if followed_id == user_id:
        raise InvalidRequestError("Users cannot follow themselves", field="followed_id")
    with get_session() as s:
        if s.get(UserFollow, (user_id, followed_id)) is None:
            s.add(UserFollow(follower_id=user_id, followed_id=followed_id))
            s.commit()
            logger.info(f"Follow: {user_id} -> {followed_id}")
    return {"ok": True, "following": True}

@router.delete("/{followed_id}/follow")
def unfollow(followed_id: int, user_id: int = Depends(current_user)):
    with get_session() as s:
        row = s.get(UserFollow, (user_id, followed_id))
        if row is not None:
            s.delete(row)
            s.commit()
            logger.info(f"Unfollow: {user_id} -> {followed_id}")
    return {"ok": True, "following": False}

@router.get("/{user_id}/following")
def following(user_id: int):
    with get_session() as s:
        return {"user_id": user_id, "following": sorted(load_followed_ids(s, user_id))}

@router.get("/{user_id}/followers")
def followers(user_id: int):
    with get_session() as s:
        rows = s.exec(select(UserFollow.follower_id).where(UserFollow.followed_id == user_id)).all()
    return {"user_id": user_id, "followers": sorted(rows)}
