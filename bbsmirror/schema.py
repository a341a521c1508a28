import json
from typing import Any, Dict, List

DEFAULT_SUBJECT = "Untitled"
DEFAULT_AUTHOR = "Unknown"

# Posts per page on the detail endpoint; fixed by the forum.
PAGE_SIZE = 20


def validate_detail(payload: Any) -> List[str]:
    """
    Returns a list of problems with a post/list response. Empty list means usable.
    Only the fields the engine relies on are checked.
    """
    errors: List[str] = []
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        errors.append("Missing 'data' object")
        return errors

    data = payload["data"]
    thread = data.get("thread")
    rows = data.get("rows")
    if not isinstance(thread, dict):
        errors.append("Missing 'thread' object")
    elif "thread_id" not in thread:
        errors.append("Thread object has no 'thread_id'")
    if not isinstance(rows, list):
        errors.append("Missing 'rows' list")
    else:
        for i, row in enumerate(rows):
            if not isinstance(row, dict) or "post_id" not in row:
                errors.append(f"Row {i} has no 'post_id'")
    return errors


def thread_record(info: Dict[str, Any]) -> Dict[str, Any]:
    """Map a wire thread object onto Thread columns (last_synced excluded)."""
    return {
        "thread_id": int(info["thread_id"]),
        "subject": info.get("subject") or DEFAULT_SUBJECT,
        "author": info.get("author") or DEFAULT_AUTHOR,
        "views": info.get("views") or 0,
        "replies": info.get("replies") or 0,
        "created_at": info.get("dateline") or 0,
    }


def comment_record(thread_id: int, row: Dict[str, Any]) -> Dict[str, Any]:
    """Map a wire post row onto Comment columns, keeping the full row as raw_payload."""
    return {
        "post_id": int(row["post_id"]),
        "thread_id": thread_id,
        "position": row.get("position") or 0,
        "author": row.get("author") or DEFAULT_AUTHOR,
        "content": row.get("message") or "",
        "post_date": row.get("dateline") or 0,
        "is_first": bool(row.get("is_first")),
        "raw_payload": json.dumps(row, ensure_ascii=False),
    }
