"""
Workflow engine and session tests: fake fetcher and stage executors, no network.
Run with:  pytest tests/test_workflow.py -v
"""
import sys, os, asyncio
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from conftest import RecordingExecutor
from libs.domain_models.workflow import AgentRole, AnalysisStatus, WorkflowState

pytestmark = pytest.mark.unit


async def _collect(agen) -> list[dict]:
    return [update async for update in agen]


def run_engine(engine, state, symbol, api_keys=None):
    """Fold every update like a caller would; returns (updates, states after each update)."""
    updates = asyncio.run(_collect(engine.start_run(state, symbol, api_keys)))
    states = []
    for update in updates:
        state = state.apply(update)
        states.append(state)
    return updates, states


@pytest.fixture
def idle_state(default_configs):
    return WorkflowState(agent_configs=default_configs)


@pytest.fixture
def engine(fetcher, executors):
    from agents.orchestrator.workflow import CouncilWorkflow
    return CouncilWorkflow(fetcher=fetcher, executors=executors)


# ═════════════════════════════════════════════════════════════════════════
# Engine: start_run
# ═════════════════════════════════════════════════════════════════════════

class TestStartRunValidation:

    @pytest.mark.parametrize("symbol", ["12345", "400001", "sh12345x"])
    def test_invalid_symbol_errors_without_side_effects(self, engine, fetcher, executors, symbol):
        start = WorkflowState(
            agent_configs={}, current_step=0, outputs={AgentRole.GM: "old"}
        )
        updates, states = run_engine(engine, start, symbol)
        assert len(updates) == 1
        final = states[-1]
        assert final.status == AnalysisStatus.ERROR
        assert final.error
        assert final.outputs == {AgentRole.GM: "old"}
        assert final.current_step == 0
        assert fetcher.calls == []
        assert executors.analysts.calls == []

    def test_busy_state_rejected(self, engine, idle_state):
        from libs.errors import WorkflowBusyError
        running = idle_state.apply({"status": AnalysisStatus.RUNNING})
        with pytest.raises(WorkflowBusyError):
            run_engine(engine, running, "600519")


class TestStartRunPipeline:

    def test_full_run_steps_and_outputs(self, engine, idle_state):
        updates, states = run_engine(engine, idle_state, "600519", {"juhe": "k"})
        steps = [s.current_step for s in states]
        assert steps == [0, 1, 2, 3, 4, 5]
        assert states[0].status == AnalysisStatus.FETCHING_DATA
        assert states[1].status == AnalysisStatus.RUNNING
        final = states[-1]
        assert final.status == AnalysisStatus.COMPLETED
        assert set(final.outputs) == set(AgentRole)
        assert final.error is None
        assert "Real-time Market Data" in final.stock_data_context

    def test_fetch_receives_juhe_key(self, engine, idle_state, fetcher):
        run_engine(engine, idle_state, " 600519 ", {"juhe": "jk", "gemini": "gk"})
        assert fetcher.calls == [("600519", "jk")]

    def test_start_resets_previous_run_fields(self, engine, idle_state):
        stale = idle_state.apply({
            "outputs": {AgentRole.MACRO: "stale"},
            "stock_data_context": "old context",
            "error": "old error",
        })
        updates, states = run_engine(engine, stale, "000001")
        first = states[0]
        assert first.outputs == {}
        assert first.stock_data_context == ""
        assert first.error is None
        assert first.stock_symbol == "000001"

    def test_stages_receive_accumulated_outputs(self, engine, idle_state, executors):
        from agents.roster import ANALYST_ROLES, MANAGER_ROLES, RISK_ROLES
        run_engine(engine, idle_state, "600519", {"deepseek": "dk"})
        assert executors.analysts.calls[0]["prior_outputs"] == {}
        assert set(executors.managers.calls[0]["prior_outputs"]) == set(ANALYST_ROLES)
        assert set(executors.risk.calls[0]["prior_outputs"]) == set(ANALYST_ROLES + MANAGER_ROLES)
        assert set(executors.decision.calls[0]["prior_outputs"]) == set(ANALYST_ROLES + MANAGER_ROLES + RISK_ROLES)
        for executor in executors:
            call = executor.calls[0]
            assert call["symbol"] == "600519"
            assert call["api_keys"] == {"deepseek": "dk"}
            assert "贵州茅台" in call["context"]

    def test_stages_get_a_clone_of_configs(self, engine, idle_state, executors):
        run_engine(engine, idle_state, "600519")
        dispatched = executors.analysts.calls[0]["agent_configs"]
        assert dispatched == idle_state.agent_configs
        assert dispatched[AgentRole.MACRO] is not idle_state.agent_configs[AgentRole.MACRO]

    def test_updates_never_carry_agent_configs(self, engine, idle_state):
        updates, _ = run_engine(engine, idle_state, "600519")
        assert all("agent_configs" not in u for u in updates)


class TestStartRunFailures:

    def test_fetch_none_stops_run(self, executors, idle_state):
        from agents.orchestrator.workflow import CouncilWorkflow

        async def no_data(symbol, api_key=""):
            return None

        engine = CouncilWorkflow(fetcher=no_data, executors=executors)
        _, states = run_engine(engine, idle_state, "600519")
        final = states[-1]
        assert final.status == AnalysisStatus.ERROR
        assert "600519" in final.error
        assert "Shanghai/Shenzhen" in final.error
        for executor in executors:
            assert executor.calls == []

    def test_fetch_raises_uses_message(self, executors, idle_state):
        from agents.orchestrator.workflow import CouncilWorkflow

        async def broken(symbol, api_key=""):
            raise ConnectionError("quote service down")

        engine = CouncilWorkflow(fetcher=broken, executors=executors)
        _, states = run_engine(engine, idle_state, "600519")
        assert states[-1].status == AnalysisStatus.ERROR
        assert states[-1].error == "quote service down"
        assert executors.analysts.calls == []

    def test_stage3_failure_keeps_earlier_outputs(self, fetcher, executors, idle_state):
        from agents.orchestrator.workflow import CouncilWorkflow
        from agents.roster import ANALYST_ROLES, MANAGER_ROLES, RISK_ROLES
        executors = executors._replace(risk=RecordingExecutor(RISK_ROLES, fail_with=RuntimeError("risk model timeout")))
        engine = CouncilWorkflow(fetcher=fetcher, executors=executors)
        _, states = run_engine(engine, idle_state, "600519")
        final = states[-1]
        assert final.status == AnalysisStatus.ERROR
        assert final.error == "risk model timeout"
        assert set(final.outputs) == set(ANALYST_ROLES + MANAGER_ROLES)
        assert final.current_step == 3
        assert executors.decision.calls == []

    def test_failure_without_message_uses_fallback(self, fetcher, executors, idle_state):
        from agents.orchestrator.workflow import UNKNOWN_ERROR, CouncilWorkflow
        from agents.roster import ANALYST_ROLES
        executors = executors._replace(analysts=RecordingExecutor(ANALYST_ROLES, fail_with=RuntimeError()))
        engine = CouncilWorkflow(fetcher=fetcher, executors=executors)
        _, states = run_engine(engine, idle_state, "600519")
        assert states[-1].error == UNKNOWN_ERROR
        assert states[-1].outputs == {}

    def test_unknown_role_fails_stage(self, fetcher, executors, idle_state):
        from agents.orchestrator.workflow import CouncilWorkflow

        async def rogue(symbol, prior, configs, keys, context):
            return {"INTERN": "not a council member"}

        engine = CouncilWorkflow(fetcher=fetcher, executors=executors._replace(managers=rogue))
        _, states = run_engine(engine, idle_state, "600519")
        assert states[-1].status == AnalysisStatus.ERROR
        assert "INTERN" not in states[-1].outputs


# ═════════════════════════════════════════════════════════════════════════
# Engine: reset / update_config
# ═════════════════════════════════════════════════════════════════════════

class TestResetAndConfig:

    def test_reset_keeps_configs_and_keys(self, idle_state, backend, default_configs, clock):
        from agents.orchestrator.workflow import CouncilWorkflow
        from libs.storage import DurableStateStore
        store = DurableStateStore(backend, default_configs, clock=clock)
        engine = CouncilWorkflow(store=store)
        done = idle_state.apply({
            "status": AnalysisStatus.COMPLETED, "current_step": 5, "stock_symbol": "600519",
            "stock_data_context": "ctx", "outputs": {AgentRole.GM: "x"},
            "api_keys": {"gemini": "k"},
        })
        store.save(done)

        fresh = engine.reset(done)
        assert fresh.status == AnalysisStatus.IDLE
        assert fresh.current_step == 0
        assert fresh.stock_symbol == ""
        assert fresh.stock_data_context == ""
        assert fresh.outputs == {}
        assert fresh.error is None
        assert fresh.agent_configs == done.agent_configs
        assert fresh.api_keys == {"gemini": "k"}
        assert store.load() is None

    def test_update_config_replaces_one_role(self, engine, idle_state):
        new = idle_state.agent_configs[AgentRole.GM].model_copy(update={"temperature": 0.9})
        updated = engine.update_config(idle_state, AgentRole.GM, new)
        assert updated.agent_configs[AgentRole.GM].temperature == 0.9
        assert idle_state.agent_configs[AgentRole.GM].temperature != 0.9
        assert updated.agent_configs[AgentRole.MACRO] == idle_state.agent_configs[AgentRole.MACRO]


# ═════════════════════════════════════════════════════════════════════════
# Session (the caller)
# ═════════════════════════════════════════════════════════════════════════

@pytest.fixture
def session(engine, backend, default_configs, clock):
    from agents.orchestrator.session import CouncilSession
    from libs.storage import DurableStateStore, HistoryLedger
    store = DurableStateStore(backend, default_configs, clock=clock)
    ledger = HistoryLedger(backend, default_configs, clock=clock)
    engine.store = store
    return CouncilSession(engine, store, ledger)


class TestCouncilSession:

    def test_completed_run_is_saved_and_recorded(self, session):
        final = asyncio.run(session.start_run("600519", {"gemini": "secret"}))
        assert final.status == AnalysisStatus.COMPLETED
        assert session.state is final

        snapshot = session.store.load()
        assert snapshot.status == AnalysisStatus.COMPLETED
        assert set(snapshot.outputs) == set(AgentRole)

        records = session.history()
        assert len(records) == 1
        assert records[0].stock_symbol == "600519"
        assert records[0].status == AnalysisStatus.COMPLETED
        assert records[0].completed_at is not None

    def test_credentials_never_hit_storage(self, session, backend):
        asyncio.run(session.start_run("600519", {"gemini": "secret-key"}))
        for key in (session.store.key, session.ledger.key):
            assert "secret-key" not in backend.get(key)

    def test_failed_run_saved_but_not_recorded(self, session):
        async def none_fetch(symbol, api_key=""):
            return None

        session.engine.fetcher = none_fetch
        final = asyncio.run(session.start_run("600519"))
        assert final.status == AnalysisStatus.ERROR
        assert session.store.load().status == AnalysisStatus.ERROR
        assert session.history() == []

    def test_second_start_requires_reset(self, session):
        from libs.errors import WorkflowBusyError
        asyncio.run(session.start_run("600519"))
        with pytest.raises(WorkflowBusyError):
            asyncio.run(session.start_run("000001"))
        session.reset()
        assert asyncio.run(session.start_run("000001")).status == AnalysisStatus.COMPLETED
        assert [r.stock_symbol for r in session.history()] == ["000001", "600519"]

    def test_reset_clears_snapshot(self, session):
        asyncio.run(session.start_run("600519"))
        session.reset()
        assert session.store.load() is None
        assert session.state.status == AnalysisStatus.IDLE

    def test_state_reloads_on_new_session(self, session):
        from agents.orchestrator.session import CouncilSession
        asyncio.run(session.start_run("600519", {"qwen": "k"}))
        reopened = CouncilSession(session.engine, session.store, session.ledger)
        assert reopened.state.status == AnalysisStatus.COMPLETED
        assert reopened.state.stock_symbol == "600519"
        assert reopened.state.api_keys == {}

    def test_config_edit_survives_a_run(self, session):
        new = session.state.agent_configs[AgentRole.MACRO].model_copy(update={"temperature": 1.1})
        session.update_config(AgentRole.MACRO, new)
        asyncio.run(session.start_run("600519"))
        assert session.state.agent_configs[AgentRole.MACRO].temperature == 1.1

    def test_restore_from_history(self, session):
        from libs.errors import HistoryRecordNotFound
        asyncio.run(session.start_run("600519"))
        record_id = session.history()[0].id
        session.reset()

        state = session.restore_from_history(record_id)
        assert state.status == AnalysisStatus.IDLE
        assert state.current_step == 0
        assert state.stock_symbol == "600519"
        assert state.stock_data_context == ""
        assert set(state.outputs) == set(AgentRole)
        assert session.restored_from_history is True

        with pytest.raises(HistoryRecordNotFound):
            session.restore_from_history("missing-1")

    def test_reset_during_run_detaches_it(self, session):
        """A run abandoned by reset keeps writing its own results but never replaces the live state."""
        from agents.roster import ANALYST_ROLES

        async def reset_mid_run(symbol, prior, configs, keys, context):
            session.reset()
            return {role: "late report" for role in ANALYST_ROLES}

        session.engine = type(session.engine)(
            fetcher=session.engine.fetcher,
            executors=session.engine.executors._replace(analysts=reset_mid_run),
            store=session.store,
        )
        final = asyncio.run(session.start_run("600519"))
        assert final.status == AnalysisStatus.COMPLETED
        assert session.state.status == AnalysisStatus.IDLE
        assert session.state.outputs == {}
        # Last write wins on the snapshot; the abandoned run still reaches history
        assert session.store.load().status == AnalysisStatus.COMPLETED
        assert len(session.history()) == 1

    def test_persistence_failure_does_not_change_run(self, session, caplog):
        class BrokenBackend:
            def get(self, key):
                return None

            def set(self, key, value):
                raise OSError("disk full")

            def remove(self, key):
                raise OSError("disk full")

        session.store._backend = BrokenBackend()
        session.ledger._backend = BrokenBackend()
        final = asyncio.run(session.start_run("600519"))
        assert final.status == AnalysisStatus.COMPLETED
        assert "disk full" in caplog.text

    def test_history_read_failure_keeps_ledger(self, session, backend, clock, caplog):
        for symbol in ("000001", "300750", "002594"):
            asyncio.run(session.start_run(symbol))
            session.reset()
            clock.advance(1)

        class UnreadableBackend:
            def get(self, key):
                raise ConnectionError("read timed out")

            def set(self, key, value):
                backend.set(key, value)

            def remove(self, key):
                backend.remove(key)

        session.ledger._backend = UnreadableBackend()
        final = asyncio.run(session.start_run("600519"))
        assert final.status == AnalysisStatus.COMPLETED
        assert "read timed out" in caplog.text

        session.ledger._backend = backend
        assert [r.stock_symbol for r in session.history()] == ["002594", "300750", "000001"]

    def test_writes_run_off_the_event_loop(self, session, backend):
        import threading
        writers = set()
        original_set = backend.set

        def tracking_set(key, value):
            writers.add(threading.get_ident())
            original_set(key, value)

        backend.set = tracking_set
        asyncio.run(session.start_run("600519"))
        assert writers
        assert threading.get_ident() not in writers

    def test_stored_symbol_is_normalised(self, session):
        final = asyncio.run(session.start_run(" SZ000001 "))
        assert final.stock_symbol == "sz000001"
        assert session.history()[0].stock_symbol == "sz000001"
