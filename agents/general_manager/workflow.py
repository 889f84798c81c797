"""
Stage 4: the general manager's final call.
The GM's system prompt asks for one of the decision markers that
libs.storage.history.classify_decision recognises.
"""
import sys, os, logging
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from agents.common import format_reports, run_participants
from agents.roster import DECISION_ROLES
from libs.domain_models.workflow import AgentRole

logger = logging.getLogger(__name__)


def build_decision_prompt(symbol: str, context: str, reports: str) -> str:
    return f"""Stock under review: {symbol}

{context}

Council reports (analysts, directors, risk officers):
{reports}

Make the final investment decision on {symbol}."""


async def run_decision_stage(
    symbol: str,
    prior_outputs: dict,
    agent_configs: dict,
    api_keys: dict,
    context: str,
) -> dict[AgentRole, str]:
    logger.info(f"General manager deciding on {symbol}", extra={"symbol": symbol, "action": "decision"})
    prompt = build_decision_prompt(symbol, context, format_reports(prior_outputs, agent_configs))
    return await run_participants(DECISION_ROLES, agent_configs, api_keys, lambda role: prompt)
