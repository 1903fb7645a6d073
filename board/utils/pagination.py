import math


def clamp_page(page: int, total: int, page_size: int) -> tuple[int, int]:
    """Returns (page, total_pages) with page pulled back inside the last page."""
    total_pages = max(1, math.ceil(total / page_size))
    return min(max(page, 1), total_pages), total_pages


def page_meta(page: int, page_size: int, total: int, total_pages: int) -> dict:
    return {
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": total_pages,
        "has_prev": page > 1,
        "has_next": page < total_pages,
    }
