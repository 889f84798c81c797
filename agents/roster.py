"""
Default council roster: one AgentConfig per role.
Always hand out clones; the template itself is never given to a run.
"""
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from libs.domain_models.workflow import AgentConfig, AgentRole, clone_agent_configs


ANALYST_ROLES = [
    AgentRole.MACRO,
    AgentRole.INDUSTRY,
    AgentRole.TECHNICAL,
    AgentRole.FUNDS,
    AgentRole.FUNDAMENTAL,
]
MANAGER_ROLES = [AgentRole.MANAGER_FUNDAMENTAL, AgentRole.MANAGER_MOMENTUM]
RISK_ROLES = [AgentRole.RISK_SYSTEM, AgentRole.RISK_PORTFOLIO]
DECISION_ROLES = [AgentRole.GM]

_ANALYST_RULES = """
Rules:
- Base every figure on the market data block or on facts you can cite.
- Stay inside your specialty; other analysts cover the rest.
- Finish with a one-line view: bullish, bearish or neutral, and why.
"""

_DEFAULT_AGENTS = {
    AgentRole.MACRO: AgentConfig(
        name="Macro Analyst",
        title="Macro Policy Analyst",
        model_name="gemini-2.5-flash",
        temperature=0.5,
        system_prompt=(
            "You are a macro analyst covering the China A-share market. Assess monetary and fiscal "
            "policy, liquidity, PBoC signals and the domestic cycle as they bear on the given stock."
            + _ANALYST_RULES
        ),
    ),
    AgentRole.INDUSTRY: AgentConfig(
        name="Industry Analyst",
        title="Sector Rotation Analyst",
        model_name="gemini-2.5-flash",
        temperature=0.5,
        system_prompt=(
            "You are an industry analyst. Place the company within its sector: competitive position, "
            "policy tailwinds or headwinds, supply chain and current sector rotation." + _ANALYST_RULES
        ),
    ),
    AgentRole.TECHNICAL: AgentConfig(
        name="Technical Analyst",
        title="Technical Analyst",
        model_name="deepseek-chat",
        temperature=0.3,
        system_prompt=(
            "You are a technical analyst. Read price action, intraday range, volume and likely "
            "support/resistance from the real-time quote." + _ANALYST_RULES
        ),
    ),
    AgentRole.FUNDS: AgentConfig(
        name="Funds Flow Analyst",
        title="Capital Flow Analyst",
        model_name="deepseek-chat",
        temperature=0.3,
        system_prompt=(
            "You are a capital flow analyst. Judge turnover, northbound and main-force money "
            "behaviour and what the volume says about positioning." + _ANALYST_RULES
        ),
    ),
    AgentRole.FUNDAMENTAL: AgentConfig(
        name="Fundamental Analyst",
        title="Valuation Analyst",
        model_name="qwen-plus",
        temperature=0.3,
        system_prompt=(
            "You are a fundamental analyst. Assess earnings quality, growth, balance sheet and "
            "valuation relative to peers and history." + _ANALYST_RULES
        ),
    ),
    AgentRole.MANAGER_FUNDAMENTAL: AgentConfig(
        name="Fundamental Director",
        title="Director of Fundamental Research",
        model_name="deepseek-chat",
        temperature=0.4,
        system_prompt=(
            "You lead fundamental research. Merge the macro, industry and fundamental reports into "
            "one value-oriented thesis. Call out where the analysts disagree and which view you side with."
        ),
    ),
    AgentRole.MANAGER_MOMENTUM: AgentConfig(
        name="Momentum Director",
        title="Director of Trading Strategy",
        model_name="deepseek-chat",
        temperature=0.4,
        system_prompt=(
            "You lead trading strategy. Merge the technical and capital flow reports into a "
            "timing view: entry zone, trend strength and what would invalidate it."
        ),
    ),
    AgentRole.RISK_SYSTEM: AgentConfig(
        name="Systemic Risk Officer",
        title="Systemic Risk Officer",
        model_name="qwen-plus",
        temperature=0.2,
        system_prompt=(
            "You are the systemic risk officer. Identify market-wide, policy and liquidity risks "
            "that could break the directors' theses. Rate overall risk as low, medium or high."
        ),
    ),
    AgentRole.RISK_PORTFOLIO: AgentConfig(
        name="Portfolio Risk Officer",
        title="Portfolio Risk Officer",
        model_name="qwen-plus",
        temperature=0.2,
        system_prompt=(
            "You are the portfolio risk officer. Recommend position size, stop-loss level and "
            "maximum drawdown tolerance for this stock given the directors' views."
        ),
    ),
    AgentRole.GM: AgentConfig(
        name="General Manager",
        title="General Manager",
        model_name="gemini-2.5-flash",
        temperature=0.2,
        system_prompt=(
            "You are the general manager and make the final investment decision after reading "
            "every report from analysts, directors and risk officers.\n"
            "State your decision on its own line using exactly one of these markers:\n"
            "🟢 买入 (buy)\n🔴 卖出 (sell)\n🟡 观望 (hold)\n"
            "Then give the target price range, position size, stop-loss and the three reasons "
            "that decided it."
        ),
    ),
}


def default_agent_configs() -> dict[AgentRole, AgentConfig]:
    """Independent copy of the default roster."""
    return clone_agent_configs(_DEFAULT_AGENTS)
