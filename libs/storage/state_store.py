"""
Durable State Store: versioned, expiring snapshot of the current run.

Writes are best-effort. Every write returns a StoreResult instead of raising;
the caller decides whether to log and move on.
"""
import json
import logging
import time
from typing import Callable, Optional

from pydantic import BaseModel, ValidationError

from libs.domain_models.workflow import (
    AgentConfig,
    AgentRole,
    AnalysisStatus,
    PersistedRunState,
    PersistedSnapshot,
    WorkflowState,
    clone_agent_configs,
)

logger = logging.getLogger(__name__)

STORAGE_KEY = "alphacouncil_workflow"
STORAGE_VERSION = "v1"
DATA_EXPIRY_MS = 30 * 60 * 1000


class StoreResult(BaseModel):
    ok: bool = True
    error: Optional[str] = None

    @classmethod
    def failed(cls, exc: Exception) -> "StoreResult":
        return cls(ok=False, error=f"{type(exc).__name__}: {exc}")


def epoch_ms(clock: Callable[[], float] = time.time) -> int:
    return int(clock() * 1000)


class DurableStateStore:

    def __init__(
        self,
        backend,
        default_configs: dict[AgentRole, AgentConfig],
        key: str = STORAGE_KEY,
        version: str = STORAGE_VERSION,
        expiry_ms: int = DATA_EXPIRY_MS,
        clock: Callable[[], float] = time.time,
    ):
        self._backend = backend
        self._default_configs = default_configs
        self.key = key
        self.version = version
        self.expiry_ms = expiry_ms
        self._clock = clock

    # ── Write ────────────────────────────────────────────────────

    def save(self, state: WorkflowState) -> StoreResult:
        """Persist everything except api_keys and error, stamped with the current time."""
        snapshot = PersistedSnapshot(
            version=self.version,
            timestamp=epoch_ms(self._clock),
            state=state.persistable(),
        )
        try:
            self._backend.set(self.key, snapshot.model_dump_json())
        except Exception as e:
            return StoreResult.failed(e)
        return StoreResult()

    def clear(self) -> StoreResult:
        try:
            self._backend.remove(self.key)
        except Exception as e:
            return StoreResult.failed(e)
        return StoreResult()

    # ── Read ─────────────────────────────────────────────────────

    def load(self) -> Optional[PersistedRunState]:
        """
        Return the persisted run, or None for a cold start.
        Stale (version mismatch) and expired snapshots are deleted on sight.
        """
        try:
            raw = self._backend.get(self.key)
        except Exception as e:
            logger.warning(f"Failed to read snapshot '{self.key}': {e}")
            return None
        if not raw:
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug(f"Snapshot '{self.key}' is not valid JSON")
            return None

        if not isinstance(data, dict):
            return None

        if data.get("version") != self.version:
            logger.info(f"Discarding snapshot '{self.key}' with version {data.get('version')!r}")
            self.clear()
            return None

        try:
            snapshot = PersistedSnapshot.model_validate(data)
        except ValidationError as e:
            logger.debug(f"Snapshot '{self.key}' is malformed: {e}")
            return None

        if epoch_ms(self._clock) - snapshot.timestamp >= self.expiry_ms:
            logger.info(f"Discarding expired snapshot '{self.key}'")
            self.clear()
            return None

        return snapshot.state

    def get_initial_state(self) -> WorkflowState:
        """Seed a fresh WorkflowState from the snapshot, falling back to defaults per field."""
        persisted = self.load()
        if persisted is None:
            return WorkflowState(
                status=AnalysisStatus.IDLE,
                agent_configs=clone_agent_configs(self._default_configs),
            )
        agent_configs = persisted.agent_configs
        if agent_configs is None:
            agent_configs = clone_agent_configs(self._default_configs)
        return WorkflowState(
            status=persisted.status,
            current_step=persisted.current_step,
            stock_symbol=persisted.stock_symbol,
            stock_data_context=persisted.stock_data_context,
            outputs=dict(persisted.outputs),
            agent_configs=agent_configs,
            # Credentials are always re-entered by the operator
            api_keys={},
        )
