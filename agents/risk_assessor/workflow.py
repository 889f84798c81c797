"""
Stage 3: risk control.
Systemic and portfolio risk officers challenge the directors' theses.
They see every report so far, but the directors' views lead the prompt.
"""
import sys, os, logging
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from agents.common import format_reports, run_participants
from agents.roster import ANALYST_ROLES, MANAGER_ROLES, RISK_ROLES
from libs.domain_models.workflow import AgentRole

logger = logging.getLogger(__name__)


def build_risk_prompt(symbol: str, context: str, director_views: str, analyst_reports: str) -> str:
    return f"""Stock under review: {symbol}

{context}

Directors' views:
{director_views}

Supporting analyst reports:
{analyst_reports}

Assess the risks of acting on these views for {symbol}."""


async def run_risk_stage(
    symbol: str,
    prior_outputs: dict,
    agent_configs: dict,
    api_keys: dict,
    context: str,
) -> dict[AgentRole, str]:
    logger.info(f"Risk review for {symbol}", extra={"symbol": symbol, "action": "risk"})
    prompt = build_risk_prompt(
        symbol,
        context,
        director_views=format_reports(prior_outputs, agent_configs, MANAGER_ROLES),
        analyst_reports=format_reports(prior_outputs, agent_configs, ANALYST_ROLES),
    )
    return await run_participants(RISK_ROLES, agent_configs, api_keys, lambda role: prompt)
