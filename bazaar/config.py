"""
Settings — one pydantic model for every tunable.

    settings = Settings.from_env()          # BAZAAR_* overrides
    settings = Settings(starting_balance=0) # explicit

Note: The library never reads the environment on import; the host
process decides when (and whether) to call from_env().
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from bazaar.confirm._policy import Policy


class Settings(BaseModel):
    """Engine configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    single_item_timeout: float = Field(
        30.0, gt=0, description="Seconds a single-item buy waits for confirmation"
    )
    checkout_timeout: float = Field(
        60.0, gt=0, description="Seconds a cart checkout waits for confirmation"
    )
    retain_resolved: float = Field(
        300.0, ge=0, description="Seconds resolved sessions answer SessionAlreadyResolved"
    )
    starting_balance: int = Field(
        1000, ge=0, description="Balance credited when an account is first created"
    )
    currency_name: str = Field("coins", description="Display name of the currency")
    database_url: str = Field(
        "sqlite+aiosqlite:///:memory:", description="SQLAlchemy async URL"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Minimum structlog level"
    )
    log_json: bool = Field(False, description="Render logs as JSON lines")

    @classmethod
    def from_env(
        cls,
        prefix: str = "BAZAAR_",
        environ: Mapping[str, str] | None = None,
    ) -> Settings:
        """
        Build settings from PREFIX_<FIELD> variables. Unset fields keep defaults.

        Example:
            BAZAAR_STARTING_BALANCE=500 BAZAAR_LOG_JSON=true
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, str] = {}
        for name in cls.model_fields:
            value = env.get(f"{prefix}{name.upper()}")
            if value is not None:
                overrides[name] = value
        return cls.model_validate(overrides)

    def confirmation_policy(self) -> Policy:
        return (
            Policy()
            .with_single_timeout(seconds=self.single_item_timeout)
            .with_checkout_timeout(seconds=self.checkout_timeout)
            .with_retention(delta=timedelta(seconds=self.retain_resolved))
        )


__all__ = ("Settings",)
