"""
pytest configuration for the AlphaCouncil test suite.

Marks:
  @pytest.mark.unit    - fast, no network, no LLM
  @pytest.mark.llm     - calls a real provider; needs GEMINI/DEEPSEEK/QWEN keys
  @pytest.mark.slow    - drives full runs through the API

Run subsets:
  pytest tests/ -m unit              # fast unit tests only
  pytest tests/ -m "unit or slow"    # everything that needs no real keys
  pytest tests/ -m llm               # provider-dependent tests only
"""
import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from libs.domain_models.quote import StockQuote
from libs.domain_models.workflow import AgentRole


def pytest_addoption(parser):
    parser.addoption(
        "--skip-llm", action="store_true", default=False,
        help="Skip tests that call a real LLM provider"
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast unit tests, no network or LLM")
    config.addinivalue_line("markers", "llm: requires real provider API keys with available quota")
    config.addinivalue_line("markers", "slow: drives full council runs end to end")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--skip-llm"):
        skip_llm = pytest.mark.skip(reason="--skip-llm passed")
        for item in items:
            if "llm" in item.keywords:
                item.add_marker(skip_llm)


# ── Shared fixtures ──────────────────────────────────────────────

class FakeClock:
    """Controllable stand-in for time.time (seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingExecutor:
    """Stage executor double: returns fixed text per role and records what it was given."""

    def __init__(self, roles, fail_with: Exception | None = None):
        self.roles = roles
        self.fail_with = fail_with
        self.calls = []

    async def __call__(self, symbol, prior_outputs, agent_configs, api_keys, context):
        self.calls.append({
            "symbol": symbol,
            "prior_outputs": dict(prior_outputs),
            "agent_configs": agent_configs,
            "api_keys": api_keys,
            "context": context,
        })
        if self.fail_with is not None:
            raise self.fail_with
        return {role: f"{role.value} report on {symbol}" for role in self.roles}


def sample_quote(gid: str = "sh600519") -> StockQuote:
    return StockQuote(
        gid=gid, name="贵州茅台", price=1688.0, change=12.5, change_percent=0.75,
        open=1675.0, previous_close=1675.5, high=1699.0, low=1670.0,
        volume=32150.0, turnover=541234.0, date="2026-10-16", time="15:00:00",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    from libs.storage import MemoryBackend
    return MemoryBackend()


@pytest.fixture
def default_configs():
    from agents.roster import default_agent_configs
    return default_agent_configs()


@pytest.fixture
def executors():
    from agents.orchestrator.workflow import StageExecutors
    from agents.roster import ANALYST_ROLES, DECISION_ROLES, MANAGER_ROLES, RISK_ROLES
    return StageExecutors(
        analysts=RecordingExecutor(ANALYST_ROLES),
        managers=RecordingExecutor(MANAGER_ROLES),
        risk=RecordingExecutor(RISK_ROLES),
        decision=RecordingExecutor(DECISION_ROLES),
    )


@pytest.fixture
def fetcher():
    calls = []

    async def fake_fetch(symbol, api_key=""):
        calls.append((symbol, api_key))
        return sample_quote()

    fake_fetch.calls = calls
    return fake_fetch
