"""Data models for FeedGuard."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RejectReason(str, Enum):
    """Why an article was not admitted."""
    DUPLICATE_POSTED = "duplicate-posted"  # 保留期内已发布
    IN_FLIGHT = "in-flight"                # 另一个执行正在处理
    UNIDENTIFIABLE = "unidentifiable"      # 无法生成 key
    INVALID = "invalid"                    # 字段类型不合法


def _present(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(value.strip())


class Article(BaseModel):
    """
    One feed entry as handed over by the poller.

    Every identity field is optional; unknown fields are kept as extras and
    travel through admission untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    link: Optional[str] = None
    guid: Optional[str] = None
    title: Optional[str] = None
    published_at: Optional[Union[str, datetime, date]] = Field(default=None, alias="publishedAt")
    source: Optional[str] = None

    # Set on admission
    dedupe_key: Optional[str] = Field(default=None, alias="dedupeKey")

    def has_link(self) -> bool:
        return _present(self.link)

    def has_guid(self) -> bool:
        return _present(self.guid)

    def published_text(self) -> str:
        """Published date as it enters the content hash."""
        value = self.published_at
        if value is None:
            return ""
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return value

    def to_dict(self) -> dict:
        """Wire form: original field names, absent fields omitted."""
        data = self.model_dump(by_alias=True, mode="json")
        for name, field in type(self).model_fields.items():
            if getattr(self, name) is None:
                data.pop(field.alias or name, None)
        return data


@dataclass(frozen=True)
class AdmissionResult:
    """Outcome of admitting one article (article is None for invalid input)."""
    article: Optional[Article]
    key: str
    accepted: bool
    reason: Optional[RejectReason] = None


@dataclass(frozen=True)
class StoreStats:
    """Live entry counts at a point in time."""
    posted: int
    pending: int
    max_keys: int

    @property
    def total(self) -> int:
        return self.posted + self.pending

    def as_dict(self) -> dict:
        return {
            "posted": self.posted,
            "pending": self.pending,
            "total": self.total,
            "max_keys": self.max_keys,
        }
