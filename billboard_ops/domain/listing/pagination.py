"""Page arithmetic and page-button generation for list views"""

import math
from typing import Union

ELLIPSIS = "..."
MAX_PAGES_TO_SHOW = 5

PageButton = Union[int, str]


def total_pages(count: int, page_size: int) -> int:
    """Number of pages for count items, never less than 1"""
    if page_size <= 0 or count <= 0:
        return 1
    return max(1, math.ceil(count / page_size))


def page_numbers(current: int, total: int) -> list[PageButton]:
    """
    Page buttons with ellipsis compression.

    Up to five pages are listed in full. Beyond that the first and last page
    are always shown around a window of current-1..current+1, widened to
    pages 2-4 near the start and to the last four pages near the end, with
    ELLIPSIS wherever pages are skipped.
    """
    if total <= MAX_PAGES_TO_SHOW:
        return list(range(1, total + 1))

    buttons: list[PageButton] = [1]

    start = max(2, current - 1)
    end = min(total - 1, current + 1)

    if current <= 3:
        end = min(total - 1, 4)
    if current >= total - 2:
        start = max(2, total - 3)

    if start > 2:
        buttons.append(ELLIPSIS)
    buttons.extend(range(start, end + 1))
    if end < total - 1:
        buttons.append(ELLIPSIS)

    buttons.append(total)
    return buttons
