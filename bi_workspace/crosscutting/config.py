"""
Name: Application Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults that match current behavior

Collaborators:
  - container.py: reads settings to build the permission policy and engines
  - infrastructure/services/retry.py: reads conflict retry limits
  - crosscutting/logger.py: reads log level and format

Constraints:
  - No business logic, pure configuration only
  - Permission values are validated against the domain vocabulary

Notes:
  - Singleton via lru_cache
  - Unknown env vars are ignored
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.entities import Permission

_DELETE_POLICIES = {"cascade", "reparent"}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_env: Application environment (development/production/test)
        log_level: Root log level for the engine logger (default: INFO)
        log_json: Emit JSON log lines (default: True)
        default_delete_policy: cascade|reparent when a folder delete gives none
        creator_permission: Permission a creator holds on their own assets
        ownerless_asset_permission: Permission on assets without creator/shares
        max_folder_depth: Upper bound for parent-chain walks (default: 256)
        conflict_retry_max_attempts: Attempts for a conflicting unit of work
        conflict_retry_base_delay_seconds: Initial backoff (default: 0.05)
        conflict_retry_max_delay_seconds: Backoff ceiling (default: 1.0)
    """

    # Environment
    app_env: str = "development"

    # Observability
    log_level: str = "INFO"
    log_json: bool = True

    # Hierarchy
    default_delete_policy: str = "reparent"
    max_folder_depth: int = 256

    # Permission defaults
    creator_permission: str = "admin"
    ownerless_asset_permission: str = "none"

    # Concurrency
    conflict_retry_max_attempts: int = 3
    conflict_retry_base_delay_seconds: float = 0.05
    conflict_retry_max_delay_seconds: float = 1.0

    @field_validator("default_delete_policy")
    @classmethod
    def delete_policy_valid(cls, v: str) -> str:
        policy = (v or "reparent").strip().lower()
        if policy not in _DELETE_POLICIES:
            raise ValueError("default_delete_policy must be cascade or reparent")
        return policy

    @field_validator("creator_permission", "ownerless_asset_permission")
    @classmethod
    def permission_valid(cls, v: str) -> str:
        permission = Permission.parse(v)
        if permission is None:
            raise ValueError("permission must be one of none, view, edit, admin")
        return permission.value

    @field_validator("max_folder_depth")
    @classmethod
    def max_folder_depth_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_folder_depth must be greater than 0")
        return v

    @field_validator("conflict_retry_max_attempts")
    @classmethod
    def retry_attempts_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("conflict_retry_max_attempts must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_retry_delays(self):
        if self.conflict_retry_base_delay_seconds < 0:
            raise ValueError("conflict_retry_base_delay_seconds must be >= 0")
        if self.conflict_retry_max_delay_seconds < self.conflict_retry_base_delay_seconds:
            raise ValueError(
                "conflict_retry_max_delay_seconds must be >= "
                "conflict_retry_base_delay_seconds"
            )
        return self

    def cascade_by_default(self) -> bool:
        return self.default_delete_policy == "cascade"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get singleton Settings instance.

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()
