from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageUpload(BaseModel):
    name: str
    data: str


class UploadImages(BaseModel):
    images: List[ImageUpload]


class ImageRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    data: str
    selected: bool = False
    selected_count: int = Field(default=0, ge=0)
    group_id: int = Field(default=0, ge=0)
    timestamp: str


class DrawOutcome(str, Enum):
    DRAWN = "drawn"
    ADVANCED = "advanced"
    GROUP_EXHAUSTED = "group_exhausted"
    ALL_SELECTED = "all_selected"
    NO_IMAGES = "no_images"


class DrawResult(BaseModel):
    outcome: DrawOutcome
    message: str
    group: int
    image: Optional[ImageRecord] = None
    next_group: Optional[int] = None
    advance_delay_ms: int = 0
    complete: bool = False


class SelectionStatus(BaseModel):
    total: int
    selected: int
    remaining: int
    quota: int
    complete: bool
    remaining_text: str
