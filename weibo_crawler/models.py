"""
Data models for the Weibo crawler using Pydantic for validation.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class LoginType(str, Enum):
    """Supported authentication paths."""
    QRCODE = "qrcode"
    PHONE = "phone"
    COOKIE = "cookie"


class LoginCredentials(BaseModel):
    """What the login orchestrator needs to authenticate."""
    login_type: LoginType = LoginType.QRCODE
    cookie_str: str = ""
    phone: str = ""


class ApiEnvelope(BaseModel):
    """Uniform response envelope of the mobile API: {ok, data, msg}."""
    ok: Optional[int] = None
    data: Any = None
    msg: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.ok in (0, 1)

    @property
    def payload(self) -> Any:
        """Decoded data, or an empty mapping when the platform sent none."""
        return self.data or {}


class ContainerContext(BaseModel):
    """Pagination namespace of a creator's timeline."""
    fid_container_id: str = Field(..., min_length=1)
    lfid_container_id: str = Field(..., min_length=1)


class CreatorInfo(BaseModel):
    """Creator profile together with its resolved timeline container."""
    creator_id: str
    user_info: dict = Field(default_factory=dict)
    container: ContainerContext
    raw: dict = Field(default_factory=dict, description="Untouched getIndex payload")
    scraped_at: datetime = Field(default_factory=datetime.now)


class CrawlOutcome(str, Enum):
    """Why a paginated crawl stopped."""
    EXHAUSTED = "exhausted"  # platform signalled the end
    LIMIT_REACHED = "limit_reached"  # caller-supplied maximum satisfied
    BLOCKED = "blocked"  # expected collection missing from the response
    CANCELLED = "cancelled"  # cancel event set by the caller


class CrawlResult(BaseModel):
    """Records of one paginated crawl in discovery order."""
    items: list[dict] = Field(default_factory=list)
    outcome: CrawlOutcome = CrawlOutcome.EXHAUSTED
    pages: int = 0
    cursor: Optional[str] = None
    completed_at: datetime = Field(default_factory=datetime.now)

    def __len__(self) -> int:
        return len(self.items)
