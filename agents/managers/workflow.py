"""
Stage 2: research directors.
Each director condenses the analyst reports into one thesis.
"""
import sys, os, logging
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from agents.common import format_reports, run_participants
from agents.roster import ANALYST_ROLES, MANAGER_ROLES
from libs.domain_models.workflow import AgentRole

logger = logging.getLogger(__name__)


def build_manager_prompt(symbol: str, context: str, reports: str) -> str:
    return f"""Stock under review: {symbol}

{context}

Analyst reports:
{reports}

Synthesise these reports into your director's view on {symbol}."""


async def run_managers_stage(
    symbol: str,
    prior_outputs: dict,
    agent_configs: dict,
    api_keys: dict,
    context: str,
) -> dict[AgentRole, str]:
    logger.info(f"Directors reviewing {symbol}", extra={"symbol": symbol, "action": "managers"})
    reports = format_reports(prior_outputs, agent_configs, ANALYST_ROLES)
    prompt = build_manager_prompt(symbol, context, reports)
    return await run_participants(MANAGER_ROLES, agent_configs, api_keys, lambda role: prompt)
