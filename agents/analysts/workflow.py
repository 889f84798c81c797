"""
Stage 1: the analyst desk.
Five specialists read the same market data and report independently.
"""
import sys, os, logging
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from agents.common import run_participants
from agents.roster import ANALYST_ROLES
from libs.domain_models.workflow import AgentRole

logger = logging.getLogger(__name__)


def build_analyst_prompt(symbol: str, context: str) -> str:
    return f"""Stock under review: {symbol}

{context}

Write your analysis of {symbol} from your specialty. Keep it under 400 words."""


async def run_analysts_stage(
    symbol: str,
    prior_outputs: dict,
    agent_configs: dict,
    api_keys: dict,
    context: str,
) -> dict[AgentRole, str]:
    """prior_outputs is unused; stage 1 starts from the market data alone."""
    logger.info(f"Analyst desk started for {symbol}", extra={"symbol": symbol, "action": "analysts"})
    prompt = build_analyst_prompt(symbol, context)
    return await run_participants(ANALYST_ROLES, agent_configs, api_keys, lambda role: prompt)
