from __future__ import annotations

import base64
import json
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import and_, or_

# Cursor format: base64-encoded JSON with {id: last_record_id, sort: sort_field_value}.
# Lists are newest first, so the next page holds rows strictly "older" than the cursor.


def encode_cursor(last_id: str, sort_value: Any = None) -> str:
    """
    Encode a pagination cursor from the last record's ID and sort value.

    Example:
        cursor = encode_cursor("abc-123", "2026-10-18T10:00:00+00:00")
    """
    cursor_data = {"id": str(last_id)}
    if sort_value is not None:
        cursor_data["sort"] = sort_value.isoformat() if isinstance(sort_value, datetime) else sort_value

    json_str = json.dumps(cursor_data, default=str)
    return base64.urlsafe_b64encode(json_str.encode()).decode()


def decode_cursor(cursor: str | None) -> tuple[str, Any] | None:
    """
    Decode a cursor to (last_id, sort_value). Returns None for missing or invalid cursors.
    """
    if not cursor:
        return None

    try:
        decoded = base64.urlsafe_b64decode(cursor.encode()).decode()
        cursor_data = json.loads(decoded)
        last_id = cursor_data.get("id")
        sort_value = cursor_data.get("sort")
        if not last_id:
            return None
        return (last_id, sort_value)
    except (ValueError, KeyError, json.JSONDecodeError):
        return None


def apply_cursor_filter(query, model_class, cursor: str | None, sort_field: str = "created_at"):
    """
    Restrict a newest-first query to rows after the cursor.

    Adds: WHERE sort < :sort OR (sort = :sort AND id < :id)
    """
    cursor_data = decode_cursor(cursor)
    if not cursor_data:
        return query

    last_id, sort_value = cursor_data
    try:
        last_uuid = uuid.UUID(last_id)
        last_sort = datetime.fromisoformat(sort_value) if sort_value else None
    except (TypeError, ValueError):
        return query

    id_column = model_class.id
    if last_sort is None:
        return query.filter(id_column < last_uuid)

    sort_column = getattr(model_class, sort_field)
    return query.filter(
        or_(
            sort_column < last_sort,
            and_(sort_column == last_sort, id_column < last_uuid),
        )
    )


def paginate_newest_first(query, model_class, cursor: str | None, limit: int, sort_field: str = "created_at"):
    """
    Run a newest-first page query. Returns (rows, next_cursor).
    """
    sort_column = getattr(model_class, sort_field)
    query = apply_cursor_filter(query, model_class, cursor, sort_field)
    rows = query.order_by(sort_column.desc(), model_class.id.desc()).limit(limit + 1).all()

    next_cursor = None
    if len(rows) > limit:
        rows = rows[:limit]
        last = rows[-1]
        next_cursor = encode_cursor(str(last.id), getattr(last, sort_field))
    return rows, next_cursor
