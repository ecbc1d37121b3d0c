"""Listing domain schemas"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel

from ...notifications import Notification


class ListState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


class CountState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


class PageResult(BaseModel):
    page: int
    items: list[dict]
    cursor: Optional[str] = None
    has_more: bool = False


class ListingSnapshot(BaseModel):
    """What a list view renders after a load"""

    collection: str
    page: int
    page_size: int
    items: list[dict]
    has_more: bool
    total_count: int
    total_pages: int
    page_numbers: list[Union[int, str]]
    state: ListState
    count_state: CountState


class ListingResponse(ListingSnapshot):
    notifications: list[Notification] = []
