from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# --- Request bodies ---

class WriteBody(BaseModel):
    path: str
    markdown: str


class FolderBody(BaseModel):
    path: str


class MoveBody(BaseModel):
    source: str
    target: str


class RenameBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str
    new_name: str = Field(alias='newName')


class SubscriptionMessage(BaseModel):
    """Websocket client message changing an observer's collections."""

    type: str
    collection: str


# --- Results ---

class TreeNode(BaseModel):
    """A file (``children`` is None) or a folder with ordered children."""

    model_config = ConfigDict(frozen=True)

    path: str
    name: str
    children: Optional[Tuple['TreeNode', ...]] = None

    @property
    def is_folder(self) -> bool:
        return self.children is not None


class FileContent(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str
    name: str
    content: str
    size: int
    last_modified: datetime = Field(alias='lastModified')
    created: datetime


class WriteResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str
    full_path: str = Field(alias='fullPath')
    created: bool


class ChangeType(str, Enum):
    CREATED = 'created'
    UPDATED = 'updated'
    DELETED = 'deleted'


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChangeEvent(BaseModel):
    """One completed mutation, as sent to observers."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str = 'change'
    collection: str
    change_type: ChangeType = Field(alias='changeType')
    path: str
    timestamp: datetime = Field(default_factory=_utcnow)
    old_path: Optional[str] = Field(default=None, alias='oldPath')
    is_directory: Optional[bool] = Field(default=None, alias='isDirectory')

    def to_message(self) -> dict:
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)
