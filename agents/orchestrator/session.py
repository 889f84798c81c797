"""
CouncilSession: the single owner of the live WorkflowState.

Folds engine updates, saves a snapshot after every change while not Idle,
records history when a run completes, and manages the history panel.
Persistence is best-effort: failed writes are logged and ignored.
"""
import sys, os, asyncio, logging
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from typing import Optional

from agents.orchestrator.workflow import CouncilWorkflow
from agents.roster import default_agent_configs
from libs.config import CouncilSettings
from libs.domain_models.workflow import (
    AgentConfig,
    AgentRole,
    AnalysisStatus,
    HistoryRecord,
    WorkflowState,
)
from libs.errors import HistoryRecordNotFound, WorkflowBusyError
from libs.storage import DurableStateStore, HistoryLedger, StoreResult, build_backend

logger = logging.getLogger(__name__)


class CouncilSession:

    def __init__(self, engine: CouncilWorkflow, store: DurableStateStore, ledger: HistoryLedger):
        self.engine = engine
        self.store = store
        self.ledger = ledger
        self.state: WorkflowState = store.get_initial_state()
        self.restored_from_history = False
        # Bumped by reset/restore; a run started under an older generation is abandoned
        self._generation = 0

    def _log_failure(self, action: str, result: StoreResult) -> None:
        if not result.ok:
            logger.warning(f"{action} failed: {result.error}", extra={"action": action})

    def _persist(self, previous: WorkflowState, current: WorkflowState) -> None:
        if current.status != AnalysisStatus.IDLE:
            self._log_failure("save_snapshot", self.store.save(current))
        if (
            current.status == AnalysisStatus.COMPLETED
            and previous.status != AnalysisStatus.COMPLETED
            and current.stock_symbol
        ):
            self._log_failure("record_history", self.ledger.record(current))

    # ── Run control ──────────────────────────────────────────────

    def ensure_idle(self) -> None:
        if self.state.status != AnalysisStatus.IDLE:
            raise WorkflowBusyError(
                f"Analysis already {self.state.status.value.lower()}; reset before starting a new run"
            )

    async def start_run(self, symbol: str, api_keys: Optional[dict] = None) -> WorkflowState:
        """Run to completion or failure; returns the run's final state."""
        self.ensure_idle()
        self._generation += 1
        generation = self._generation
        self.restored_from_history = False

        run_state = self.state
        async for update in self.engine.start_run(run_state, symbol, api_keys):
            current = generation == self._generation
            # Fold into the live state so config edits made mid-run survive
            previous = self.state if current else run_state
            run_state = previous.apply(update)
            if current:
                self.state = run_state
            # File and Redis writes block; keep them off the event loop
            await asyncio.to_thread(self._persist, previous, run_state)

        if generation != self._generation:
            logger.info(f"Abandoned run for {symbol} finished as {run_state.status.value}",
                        extra={"symbol": symbol})
        return run_state

    def reset(self) -> WorkflowState:
        self._generation += 1
        self.state = self.engine.reset(self.state)
        self.restored_from_history = False
        return self.state

    def update_config(self, role: AgentRole, config: AgentConfig) -> WorkflowState:
        previous = self.state
        self.state = self.engine.update_config(previous, role, config)
        self._persist(previous, self.state)
        return self.state

    # ── History panel ────────────────────────────────────────────

    def history(self) -> list[HistoryRecord]:
        return self.ledger.list_records()

    def delete_history(self, record_id: str) -> None:
        self._log_failure("delete_history", self.ledger.delete(record_id))

    def clear_history(self) -> None:
        self._log_failure("clear_history", self.ledger.clear_all())

    def restore_from_history(self, record_id: str) -> WorkflowState:
        """
        Adopt a past run's results as an Idle state, so they are visible and
        a new run can start. Market data is dropped and must be refetched.
        """
        record = self.ledger.get(record_id)
        if record is None:
            raise HistoryRecordNotFound(f"No history record with id '{record_id}'")

        seed = self.ledger.restore(record)
        self._generation += 1
        self.state = seed.apply({"status": AnalysisStatus.IDLE, "current_step": 0})
        self.restored_from_history = True
        return self.state


def build_session(settings: Optional[CouncilSettings] = None) -> CouncilSession:
    settings = settings or CouncilSettings.from_env()
    backend = build_backend(settings)
    defaults = default_agent_configs()
    store = DurableStateStore(
        backend,
        defaults,
        key=settings.state_key,
        version=settings.storage_version,
        expiry_ms=settings.expiry_ms,
    )
    ledger = HistoryLedger(
        backend,
        defaults,
        key=settings.history_key,
        version=settings.storage_version,
        limit=settings.history_limit,
    )
    return CouncilSession(CouncilWorkflow(store=store), store, ledger)
