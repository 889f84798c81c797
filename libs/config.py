"""
Runtime settings for storage keys, versions and limits.
Read from the environment (see .env) so tests can build isolated instances.
"""
import os
from typing import Optional

from pydantic import BaseModel, Field


class CouncilSettings(BaseModel):
    state_dir: str = "council_state"
    state_key: str = "alphacouncil_workflow"
    history_key: str = "alphacouncil_history"
    storage_version: str = "v1"
    expiry_minutes: float = Field(gt=0, default=30)
    history_limit: int = Field(gt=0, default=50)
    redis_url: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def expiry_ms(self) -> int:
        return int(self.expiry_minutes * 60 * 1000)

    @classmethod
    def from_env(cls) -> "CouncilSettings":
        return cls(
            state_dir=os.getenv("COUNCIL_STATE_DIR", "council_state"),
            state_key=os.getenv("COUNCIL_STATE_KEY", "alphacouncil_workflow"),
            history_key=os.getenv("COUNCIL_HISTORY_KEY", "alphacouncil_history"),
            storage_version=os.getenv("COUNCIL_STORAGE_VERSION", "v1"),
            expiry_minutes=float(os.getenv("COUNCIL_STATE_EXPIRY_MINUTES", "30")),
            history_limit=int(os.getenv("COUNCIL_HISTORY_LIMIT", "50")),
            redis_url=os.getenv("REDIS_URL") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
        )
