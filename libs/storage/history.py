"""
History Ledger: bounded, deduplicated list of past and ongoing runs.

  list_records() → records, newest first
  record()       → insert, or overwrite the same symbol's unfinished record
  delete()       → drop one record by id
  clear_all()    → drop the whole ledger
  restore()      → pure: build a state seed from a record
"""
import json
import logging
import time
from typing import Callable, Optional

from pydantic import ValidationError

from libs.domain_models.workflow import (
    AgentConfig,
    AgentRole,
    AnalysisStatus,
    DecisionLabel,
    HistoryRecord,
    HistoryStorage,
    WorkflowState,
    clone_agent_configs,
)
from libs.storage.state_store import STORAGE_VERSION, StoreResult, epoch_ms

logger = logging.getLogger(__name__)

HISTORY_KEY = "alphacouncil_history"
HISTORY_LIMIT = 50

# Checked in order; the GM prompt asks for exactly one of these
DECISION_MARKERS = [
    ("🟢 买入", DecisionLabel.BUY),
    ("🔴 卖出", DecisionLabel.SELL),
    ("🟡 观望", DecisionLabel.HOLD),
]


def classify_decision(text: Optional[str]) -> DecisionLabel:
    """Coarse decision label from the general manager's free-text output."""
    for marker, label in DECISION_MARKERS:
        if text and marker in text:
            return label
    return DecisionLabel.ANALYZING


class HistoryLedger:

    def __init__(
        self,
        backend,
        default_configs: dict[AgentRole, AgentConfig],
        key: str = HISTORY_KEY,
        version: str = STORAGE_VERSION,
        limit: int = HISTORY_LIMIT,
        clock: Callable[[], float] = time.time,
        classifier: Callable[[Optional[str]], DecisionLabel] = classify_decision,
    ):
        self._backend = backend
        self._default_configs = default_configs
        self.key = key
        self.version = version
        self.limit = limit
        self._clock = clock
        self._classify = classifier

    # ── Read ─────────────────────────────────────────────────────

    def list_records(self) -> list[HistoryRecord]:
        """All records sorted by timestamp, most recent first. Read failures give []."""
        try:
            return self._read_items()
        except Exception as e:
            logger.warning(f"Failed to read history '{self.key}': {e}")
            return []

    def get(self, record_id: str) -> Optional[HistoryRecord]:
        return next((item for item in self.list_records() if item.id == record_id), None)

    def _read_items(self) -> list[HistoryRecord]:
        """Sorted records; backend errors propagate, a malformed ledger is discarded."""
        raw = self._backend.get(self.key)
        if not raw:
            return []

        try:
            data = json.loads(raw)
            if not isinstance(data, dict) or data.get("version") != self.version:
                raise ValueError("ledger version mismatch")
            storage = HistoryStorage.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.info(f"Discarding history '{self.key}': {e}")
            self.clear_all()
            return []

        return sorted(storage.items, key=lambda item: item.timestamp, reverse=True)

    # ── Write ────────────────────────────────────────────────────

    def record(self, state: WorkflowState) -> StoreResult:
        """
        Save a run summary. An unfinished record for the same symbol is
        overwritten in place; otherwise the new record goes to the front.
        The ledger is then capped at `limit` entries.
        """
        try:
            history = self._read_items()
        except Exception as e:
            return StoreResult.failed(e)
        now = epoch_ms(self._clock)
        new_item = HistoryRecord(
            id=f"{state.stock_symbol}-{now}",
            stock_symbol=state.stock_symbol,
            status=state.status,
            current_step=state.current_step,
            timestamp=now,
            completed_at=now if state.status == AnalysisStatus.COMPLETED else None,
            gm_decision=self._classify(state.outputs.get(AgentRole.GM, "")),
            outputs=dict(state.outputs),
        )

        existing_index = next(
            (
                i for i, item in enumerate(history)
                if item.stock_symbol == state.stock_symbol and item.status != AnalysisStatus.COMPLETED
            ),
            None,
        )
        if existing_index is not None:
            history[existing_index] = new_item
        else:
            history.insert(0, new_item)

        return self._write(history[: self.limit])

    def delete(self, record_id: str) -> StoreResult:
        try:
            history = self._read_items()
        except Exception as e:
            return StoreResult.failed(e)
        return self._write([item for item in history if item.id != record_id])

    def clear_all(self) -> StoreResult:
        try:
            self._backend.remove(self.key)
        except Exception as e:
            return StoreResult.failed(e)
        return StoreResult()

    def _write(self, items: list[HistoryRecord]) -> StoreResult:
        storage = HistoryStorage(version=self.version, items=items)
        try:
            self._backend.set(self.key, storage.model_dump_json())
        except Exception as e:
            return StoreResult.failed(e)
        return StoreResult()

    # ── Restore ──────────────────────────────────────────────────

    def restore(self, record: HistoryRecord) -> WorkflowState:
        """
        State seed for a record. Market data is stale and must be refetched,
        so the context is emptied; configs come from a fresh clone of the defaults.
        """
        return WorkflowState(
            stock_symbol=record.stock_symbol,
            status=record.status,
            current_step=record.current_step,
            outputs=dict(record.outputs),
            stock_data_context="",
            agent_configs=clone_agent_configs(self._default_configs),
            api_keys={},
        )
