"""
Council Workflow Engine: LangGraph pipeline for one analysis run.

Nodes:
  fetch_data     → real-time quote (Juhe / yfinance) → prompt context
  run_analysts   → stage 1: five analysts in parallel
  run_managers   → stage 2: two research directors
  run_risk       → stage 3: two risk officers
  run_decision   → stage 4: general manager, run COMPLETED

Any node that sets status=ERROR routes straight to END.
The engine never holds the run state itself: start_run() streams partial
updates which the caller folds into its own WorkflowState.
"""
import sys, os, logging
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from typing import AsyncIterator, Awaitable, Callable, NamedTuple, Optional

from langgraph.graph import StateGraph, END

from agents.analysts.workflow import run_analysts_stage
from agents.general_manager.workflow import run_decision_stage
from agents.managers.workflow import run_managers_stage
from agents.orchestrator.state import CouncilState
from agents.orchestrator.validation import validate_symbol
from agents.risk_assessor.workflow import run_risk_stage
from libs.domain_models.workflow import (
    AgentConfig,
    AgentRole,
    AnalysisStatus,
    WorkflowState,
    clone_agent_configs,
)
from libs.errors import SymbolValidationError, WorkflowBusyError
from market_data.fetcher import fetch_stock_quote, format_quote_for_prompt

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "An unknown error occurred"

StageExecutor = Callable[[str, dict, dict, dict, str], Awaitable[dict]]


def fetch_failure_message(symbol: str) -> str:
    return (
        f"Could not fetch real-time data for {symbol.upper()}. Please check:\n"
        "1. The stock code is correct (e.g. 600519, 000001, 300750)\n"
        "2. It is a Shanghai/Shenzhen listing (Hong Kong and US stocks are not supported)\n"
        "3. The quote service is reachable"
    )


class StageExecutors(NamedTuple):
    analysts: StageExecutor = run_analysts_stage
    managers: StageExecutor = run_managers_stage
    risk: StageExecutor = run_risk_stage
    decision: StageExecutor = run_decision_stage


def _route(state: CouncilState) -> str:
    return "abort" if state.get("status") == AnalysisStatus.ERROR else "continue"


class CouncilWorkflow:

    def __init__(
        self,
        fetcher: Callable = fetch_stock_quote,
        formatter: Callable = format_quote_for_prompt,
        executors: Optional[StageExecutors] = None,
        store=None,
    ):
        self.fetcher = fetcher
        self.formatter = formatter
        self.executors = executors or StageExecutors()
        self.store = store
        self.graph = self._build_graph()

    # ── Nodes ────────────────────────────────────────────────────

    async def _fetch_node(self, state: CouncilState) -> dict:
        symbol = state["stock_symbol"]
        try:
            quote = await self.fetcher(symbol, state.get("api_keys", {}).get("juhe", ""))
        except Exception as e:
            logger.exception(f"Quote fetch failed for {symbol}", extra={"symbol": symbol, "action": "fetch"})
            return {"status": AnalysisStatus.ERROR, "error": str(e) or UNKNOWN_ERROR}

        if quote is None:
            logger.warning(f"No quote available for {symbol}", extra={"symbol": symbol, "action": "fetch"})
            return {"status": AnalysisStatus.ERROR, "error": fetch_failure_message(symbol)}

        logger.info(f"Market data ready for {symbol}", extra={"symbol": symbol, "action": "fetch"})
        return {
            "status": AnalysisStatus.RUNNING,
            "current_step": 1,
            "stock_data_context": self.formatter(quote),
        }

    def _stage_node(self, name: str, executor: StageExecutor, completed_step: int, final: bool = False):
        async def node(state: CouncilState) -> dict:
            symbol = state["stock_symbol"]
            prior = dict(state.get("outputs", {}))
            try:
                result = await executor(
                    symbol,
                    prior,
                    clone_agent_configs(state["agent_configs"]),
                    dict(state.get("api_keys", {})),
                    state.get("stock_data_context", ""),
                )
                produced = {AgentRole(role): text for role, text in result.items()}
            except Exception as e:
                logger.exception(f"{name} failed for {symbol}", extra={"symbol": symbol, "action": name})
                return {"status": AnalysisStatus.ERROR, "error": str(e) or UNKNOWN_ERROR}

            update = {"current_step": completed_step, "outputs": {**prior, **produced}}
            if final:
                update["status"] = AnalysisStatus.COMPLETED
            logger.info(f"{name} completed for {symbol}", extra={"symbol": symbol, "action": name})
            return update

        node.__name__ = name
        return node

    # ── Graph builder ────────────────────────────────────────────

    def _build_graph(self):
        g = StateGraph(CouncilState)
        g.add_node("fetch_data", self._fetch_node)
        g.add_node("run_analysts", self._stage_node("run_analysts", self.executors.analysts, 2))
        g.add_node("run_managers", self._stage_node("run_managers", self.executors.managers, 3))
        g.add_node("run_risk", self._stage_node("run_risk", self.executors.risk, 4))
        g.add_node("run_decision", self._stage_node("run_decision", self.executors.decision, 5, final=True))

        g.set_entry_point("fetch_data")
        chain = ["fetch_data", "run_analysts", "run_managers", "run_risk", "run_decision"]
        for current, following in zip(chain, chain[1:]):
            g.add_conditional_edges(current, _route, {"continue": following, "abort": END})
        g.add_edge("run_decision", END)
        return g.compile()

    # ── Operations ───────────────────────────────────────────────

    async def start_run(
        self,
        state: WorkflowState,
        symbol: str,
        api_keys: Optional[dict] = None,
    ) -> AsyncIterator[dict]:
        """
        Drive one run from the given Idle state.
        Yields partial updates in order: the validation error or the
        FETCHING_DATA reset first, then one update per completed graph node.
        """
        if state.status != AnalysisStatus.IDLE:
            raise WorkflowBusyError(f"Cannot start a run while status is {state.status.value}")

        try:
            code = validate_symbol(symbol)
        except SymbolValidationError as e:
            logger.warning(f"Rejected stock code {symbol!r}: {e}", extra={"symbol": symbol, "action": "validate"})
            yield {"status": AnalysisStatus.ERROR, "error": str(e)}
            return

        symbol = code
        keys = dict(api_keys or {})
        start = {
            "status": AnalysisStatus.FETCHING_DATA,
            "current_step": 0,
            "stock_symbol": symbol,
            "stock_data_context": "",
            "outputs": {},
            "api_keys": keys,
            "error": None,
        }
        yield start

        graph_input: CouncilState = {
            **start,
            "agent_configs": clone_agent_configs(state.agent_configs),
        }
        async for chunk in self.graph.astream(graph_input, stream_mode="updates"):
            for update in chunk.values():
                if update:
                    yield update

    def reset(self, state: WorkflowState) -> WorkflowState:
        """Back to Idle, keeping agent configs and credentials; drops the snapshot."""
        if self.store is not None:
            result = self.store.clear()
            if not result.ok:
                logger.warning(f"Failed to clear snapshot: {result.error}")
        return state.apply({
            "status": AnalysisStatus.IDLE,
            "current_step": 0,
            "stock_symbol": "",
            "stock_data_context": "",
            "outputs": {},
            "error": None,
        })

    def update_config(self, state: WorkflowState, role: AgentRole, config: AgentConfig) -> WorkflowState:
        configs = dict(state.agent_configs)
        configs[AgentRole(role)] = config.model_copy(deep=True)
        return state.apply({"agent_configs": configs})
