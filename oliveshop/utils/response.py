from fastapi.encoders import jsonable_encoder
from typing import Any, Dict, Optional, Sequence


def success(
    data: Optional[Any] = None,
    message: str = "Success",
    meta: Optional[Dict] = None,
) -> Dict[str, Any]:
    """Success envelope; mirrors the error shape built in ``main.standardized_error_response``."""
    body = {
        "success": True,
        "message": message,
        "data": data,
        "errors": [],
    }
    if meta is not None:
        body["meta"] = meta

    # Decimals (money, weights) become JSON numbers here
    return jsonable_encoder(body)


def paginated_response(
    items: Sequence[Any],
    total: int,
    page: int,
    limit: int,
    message: str = "Results retrieved successfully",
) -> Dict[str, Any]:
    total_pages = (total + limit - 1) // limit if limit else 0
    return success(
        data=list(items),
        message=message,
        meta={
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": total_pages,
            "has_next": page < total_pages,
        },
    )
