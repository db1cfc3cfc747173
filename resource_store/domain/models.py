"""
Domain models for the resource store.

`Aggregate` is the persisted resource shape shared by every resource table:
identity, lifecycle status, provenance metadata and the two bookkeeping
columns (`lock_version`, `sync_flag`). Concrete resources subclass it and add
their business fields; the repository discovers those through
`business_fields()`.
"""
from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from resource_store.domain.detail_info import parse_detail_info
from resource_store.domain.status import RecordStatus

INITIAL_LOCK_VERSION = 1
SYNC_DIRTY = 1


class Actor(BaseModel):
    """
    The already-authenticated user a mutation is performed on behalf of.
    """

    id: Optional[int] = Field(None, description="User id, if the actor is a real user.")
    username: str = Field(..., description="Name stamped into change logs and audit rows.")

    model_config = {"frozen": True}

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=None, username="system")


class Aggregate(BaseModel):
    """
    Base for persisted aggregates.
    """

    META_FIELDS: ClassVar[frozenset] = frozenset(
        {"id", "status", "detail_info", "lock_version", "sync_flag"}
    )

    id: Optional[int] = Field(None, description="Primary key; assigned on insert.")
    name: str = Field(..., description="Natural, human-facing identifier.")
    status: RecordStatus = Field(RecordStatus.DRAFT, description="Lifecycle state.")
    detail_info: Dict[str, Any] = Field(
        default_factory=dict, description="Provenance metadata (change_log)."
    )
    lock_version: int = Field(
        INITIAL_LOCK_VERSION, ge=1, description="Optimistic-concurrency token."
    )
    sync_flag: Optional[int] = Field(
        None, description="Non-null while a mirror write is pending reconciliation."
    )

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("detail_info", mode="before")
    @classmethod
    def _coerce_detail_info(cls, value: Any) -> Dict[str, Any]:
        return parse_detail_info(value)

    @classmethod
    def business_fields(cls) -> List[str]:
        return [name for name in cls.model_fields if name not in cls.META_FIELDS]

    @property
    def is_deleted(self) -> bool:
        return self.status is RecordStatus.DELETED

    @property
    def needs_sync(self) -> bool:
        return self.sync_flag is not None

    def business_values(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.business_fields()}

    def mark_deleted(self) -> None:
        self.status = RecordStatus.DELETED

    def restore(self) -> None:
        self.status = RecordStatus.DRAFT


class Brand(Aggregate):
    """
    Brand master record.
    """

    RESOURCE: ClassVar[str] = "brand"


__all__ = ["Actor", "Aggregate", "Brand", "INITIAL_LOCK_VERSION", "SYNC_DIRTY"]
