"""SQLModel database models for photolib."""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column, DateTime
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel


class UTCTimestamp(TypeDecorator):
    """Timezone-aware UTC datetimes over SQLite's naive DATETIME storage.

    Values are stored as naive UTC and come back with tzinfo=UTC. Naive
    values handed in are taken to be UTC already.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FolderBase(SQLModel):
    path: str = Field(unique=True, index=True)
    modified_at: datetime = Field(sa_type=UTCTimestamp)
    last_scanned_at: Optional[datetime] = Field(default=None, sa_type=UTCTimestamp)
    # Folder mtime as of the last deletion sweep; only the sweep writes it.
    swept_modified_at: Optional[datetime] = Field(default=None, sa_type=UTCTimestamp)
    watched_root: str
    scan_completed: bool = False


class Folder(FolderBase, table=True):
    __tablename__ = "folders"
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCTimestamp)


class PhotoBase(SQLModel):
    filename: str
    caption: str = ""
    file_type: str
    directory: str = Field(index=True)
    path: str = Field(unique=True, index=True)
    modified_at: datetime = Field(sa_type=UTCTimestamp)
    starred: bool = False
    # Last time the record's fields changed
    indexed_at: Optional[datetime] = Field(default=None, sa_type=UTCTimestamp)


class Photo(PhotoBase, table=True):
    __tablename__ = "photos"
    id: Optional[int] = Field(default=None, primary_key=True)
    faces: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    albums: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
