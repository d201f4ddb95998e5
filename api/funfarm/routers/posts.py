"""Feed, marketplace, likes, comments and shares."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..auth import get_current_user, get_current_user_optional, require_ownership
from ..deps import get_db
from ..pagination import paginate_newest_first
from ..services import posts as post_service
from ..services.posts import PostError

router = APIRouter(prefix="", tags=["Posts"])
logger = logging.getLogger(__name__)


def _load_post(db: Session, post_id: UUID) -> models.Post:
    try:
        return post_service.get_post(db, post_id)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")


def _serialize(posts: list[models.Post], db: Session, viewer: models.Profile | None) -> list[schemas.Post]:
    liked = post_service.liked_post_ids(db, viewer.id, [p.id for p in posts]) if viewer else set()
    return [schemas.Post.model_validate(p).model_copy(update={"liked_by_me": p.id in liked}) for p in posts]


def _visible_posts(db: Session):
    return (
        db.query(models.Post)
        .join(models.Profile, models.Profile.id == models.Post.author_id)
        .filter(models.Profile.banned.is_(False))
        .options(joinedload(models.Post.author))
    )


@router.post("/posts", response_model=schemas.Post, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: schemas.PostCreate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.Post:
    post = post_service.create_post(db, current_user, payload.model_dump())
    return schemas.Post.model_validate(post)


@router.get("/posts", response_model=schemas.Page[schemas.Post])
def list_posts(
    cursor: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    post_type: str | None = Query(None, pattern="^(post|product|share|gift)$"),
    author_id: UUID | None = None,
    db: Session = Depends(get_db),
    current_user: models.Profile | None = Depends(get_current_user_optional),
) -> schemas.Page[schemas.Post]:
    """
    Newest-first feed with cursor pagination.
    """
    query = _visible_posts(db)
    if post_type:
        query = query.filter(models.Post.post_type == post_type)
    if author_id:
        query = query.filter(models.Post.author_id == author_id)

    items, next_cursor = paginate_newest_first(query, models.Post, cursor, limit)
    return schemas.Page(items=_serialize(items, db, current_user), next_cursor=next_cursor)


@router.get("/marketplace", response_model=schemas.Page[schemas.Post])
def list_products(
    cursor: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    q: str | None = Query(None, max_length=200),
    min_price: int | None = Query(None, ge=0),
    max_price: int | None = Query(None, ge=0),
    seller_id: UUID | None = None,
    db: Session = Depends(get_db),
    current_user: models.Profile | None = Depends(get_current_user_optional),
) -> schemas.Page[schemas.Post]:
    """
    Product listings, optionally filtered by name, CAMLY price range and seller.
    """
    query = _visible_posts(db).filter(models.Post.is_product_post.is_(True))
    if q:
        query = query.filter(models.Post.product_name.ilike(f"%{q.strip()}%"))
    if min_price is not None:
        query = query.filter(models.Post.price_camly >= min_price)
    if max_price is not None:
        query = query.filter(models.Post.price_camly <= max_price)
    if seller_id:
        query = query.filter(models.Post.author_id == seller_id)

    items, next_cursor = paginate_newest_first(query, models.Post, cursor, limit)
    return schemas.Page(items=_serialize(items, db, current_user), next_cursor=next_cursor)


@router.get("/posts/{post_id}", response_model=schemas.Post)
def get_post(
    post_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile | None = Depends(get_current_user_optional),
) -> schemas.Post:
    post = _load_post(db, post_id)
    return _serialize([post], db, current_user)[0]


@router.patch("/posts/{post_id}", response_model=schemas.Post)
def update_post(
    post_id: UUID,
    payload: schemas.PostUpdate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.Post:
    post = _load_post(db, post_id)
    if post.author_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author can edit this post")

    try:
        post = post_service.update_post(db, post, payload.model_dump(exclude_unset=True))
    except PostError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _serialize([post], db, current_user)[0]


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> None:
    post = _load_post(db, post_id)
    require_ownership(post.author_id, current_user)
    try:
        post_service.delete_post(db, post)
    except PostError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/posts/{post_id}/share", response_model=schemas.Post, status_code=status.HTTP_201_CREATED)
def share_post(
    post_id: UUID,
    payload: schemas.ShareCreate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.Post:
    post = _load_post(db, post_id)
    try:
        share = post_service.share_post(db, post, current_user, payload.share_comment)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Original post not found")
    return schemas.Post.model_validate(share)


@router.post("/posts/{post_id}/like", response_model=schemas.LikeResponse)
def like_post(
    post_id: UUID,
    payload: schemas.LikeRequest | None = None,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.LikeResponse:
    post = _load_post(db, post_id)
    reaction_type = payload.reaction_type if payload else "like"
    post = post_service.like_post(db, post, current_user, reaction_type)
    return schemas.LikeResponse(post_id=post.id, liked=True, likes_count=post.likes_count)


@router.delete("/posts/{post_id}/like", response_model=schemas.LikeResponse)
def unlike_post(
    post_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.LikeResponse:
    post = _load_post(db, post_id)
    post = post_service.unlike_post(db, post, current_user)
    return schemas.LikeResponse(post_id=post.id, liked=False, likes_count=post.likes_count)


@router.get("/posts/{post_id}/comments", response_model=schemas.Page[schemas.Comment])
def list_comments(
    post_id: UUID,
    cursor: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> schemas.Page[schemas.Comment]:
    _load_post(db, post_id)
    query = (
        db.query(models.Comment)
        .filter(models.Comment.post_id == post_id)
        .options(joinedload(models.Comment.author))
    )
    items, next_cursor = paginate_newest_first(query, models.Comment, cursor, limit)
    return schemas.Page(items=[schemas.Comment.model_validate(c) for c in items], next_cursor=next_cursor)


@router.post("/posts/{post_id}/comments", response_model=schemas.Comment, status_code=status.HTTP_201_CREATED)
def add_comment(
    post_id: UUID,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> schemas.Comment:
    post = _load_post(db, post_id)
    try:
        comment = post_service.add_comment(db, post, current_user, payload.content)
    except PostError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return schemas.Comment.model_validate(comment)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
) -> None:
    """Comment author, post author or an admin may delete."""
    comment = db.query(models.Comment).filter(models.Comment.id == comment_id).first()
    if comment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

    post = db.query(models.Post).filter(models.Post.id == comment.post_id).first()
    if post is None or post.author_id != current_user.id:
        require_ownership(comment.author_id, current_user)
    post_service.delete_comment(db, comment)
