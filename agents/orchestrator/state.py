from typing import TypedDict, Optional

from libs.domain_models.workflow import AgentConfig, AgentRole, AnalysisStatus


class CouncilState(TypedDict, total=False):
    """Shared state across the council graph. Nodes return partial updates."""
    status: AnalysisStatus
    current_step: int
    stock_symbol: str
    stock_data_context: str
    outputs: dict[AgentRole, str]
    agent_configs: dict[AgentRole, AgentConfig]
    api_keys: dict[str, str]
    error: Optional[str]
