from typing import Any, Optional
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def error_response(
    message: str = "Error occurred",
    errors: Optional[Any] = None,
    status_code: int = 400
) -> JSONResponse:
    """Standard error envelope: {"success": false, "error": ...}"""
    content = {
        "success": False,
        "error": message
    }

    if errors:
        content["errors"] = jsonable_encoder(errors)

    return JSONResponse(
        status_code=status_code,
        content=content
    )


def pagination_meta(page: int, page_size: int, total: int) -> dict:
    total_pages = (total + page_size - 1) // page_size
    return {
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": total_pages,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }
