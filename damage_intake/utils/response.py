import math
from typing import Any


def success_response(data: Any = None, message: str | None = None) -> dict:
    return {"status": "success", "data": data, "message": message}


def error_response(message: str, data: Any = None) -> dict:
    return {"status": "error", "data": data, "message": message}


def pagination(total: int, page: int, limit: int) -> dict:
    """Pagination block returned next to a page of results."""
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }
