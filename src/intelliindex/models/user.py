from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from intelliindex.models.base import (
    RecordModel,
    coerce_datetime,
    ensure_non_empty_text,
    utc_now,
)


class APIKey(BaseModel):
    id: str
    user_id: str
    name: str
    key: str
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime | None = None
    last_used: datetime | None = None

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utc_now()) >= self.expires_at


class User(RecordModel):
    SCHEMA_VERSION: ClassVar[str] = "user.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    id: str
    username: str
    email: str
    password_hash: str = ""
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    display_name: str = ""
    api_keys: list[APIKey] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_login_at: datetime | None = None

    @field_validator("username", "email")
    @classmethod
    def _ensure_non_empty(cls, value: str, info: ValidationInfo) -> str:
        return ensure_non_empty_text(value, info.field_name or "value")

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _validate_timestamps(cls, value: Any) -> datetime:
        return coerce_datetime(value, "timestamp")

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    def add_role(self, role: str) -> None:
        if self.has_role(role):
            return
        self.roles = [*self.roles, role]
        self.updated_at = utc_now()

    def remove_role(self, role: str) -> None:
        if not self.has_role(role):
            return
        self.roles = [r for r in self.roles if r != role]
        self.updated_at = utc_now()

    def add_permission(self, permission: str) -> None:
        if self.has_permission(permission):
            return
        self.permissions = [*self.permissions, permission]
        self.updated_at = utc_now()

    def remove_permission(self, permission: str) -> None:
        if not self.has_permission(permission):
            return
        self.permissions = [p for p in self.permissions if p != permission]
        self.updated_at = utc_now()

    def remove_api_key(self, key_id: str) -> None:
        remaining = [k for k in self.api_keys if k.id != key_id]
        if len(remaining) == len(self.api_keys):
            return
        self.api_keys = remaining
        self.updated_at = utc_now()

    def update_last_login(self) -> None:
        self.last_login_at = utc_now()
