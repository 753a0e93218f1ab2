"""Read queries for browsing the archived catalog."""

from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Query, Session

from archiver.db.models import Comment, Video

# Columns clients may sort by, keyed by their public name
SORTABLE_COLUMNS = {
    "upload_date": Video.published_at,
    "published_at": Video.published_at,
    "title": Video.title,
    "duration": Video.duration_seconds,
    "view_count": Video.view_count,
    "like_count": Video.like_count,
    "comment_count": Video.comment_count,
}

SEARCH_SCOPES = ("all", "title", "description", "comments")


def build_video_query(
    db: Session,
    search: Optional[str] = None,
    search_in: str = "all",
    sort_by: str = "upload_date",
    order: str = "desc",
    status: Optional[str] = None,
) -> Query:
    """
    Build a video listing query from client parameters.

    Only allow-listed sort columns and search scopes are accepted; the search
    term is always bound as a parameter.

    Raises:
        ValueError: for an unknown sort column, search scope or order
    """
    if sort_by not in SORTABLE_COLUMNS:
        raise ValueError(f"Cannot sort by {sort_by!r}")
    if search_in not in SEARCH_SCOPES:
        raise ValueError(f"Cannot search in {search_in!r}")
    if order.lower() not in ("asc", "desc"):
        raise ValueError(f"Invalid order {order!r}")

    query = db.query(Video)

    if status:
        query = query.filter(Video.download_status == status)

    if search:
        pattern = f"%{search}%"
        commented = select(Comment.video_id).where(Comment.text_display.ilike(pattern))

        if search_in == "title":
            query = query.filter(Video.title.ilike(pattern))
        elif search_in == "description":
            query = query.filter(Video.description.ilike(pattern))
        elif search_in == "comments":
            query = query.filter(Video.id.in_(commented))
        else:
            query = query.filter(
                or_(
                    Video.title.ilike(pattern),
                    Video.description.ilike(pattern),
                    Video.id.in_(commented),
                )
            )

    column = SORTABLE_COLUMNS[sort_by]
    ordering = column.asc() if order.lower() == "asc" else column.desc()
    return query.order_by(ordering, Video.id)
