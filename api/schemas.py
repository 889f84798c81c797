from pydantic import BaseModel, Field
from typing import Optional

from libs.domain_models.workflow import (
    AgentConfig,
    AgentRole,
    AnalysisStatus,
    DecisionLabel,
    WorkflowState,
)
from libs.storage import classify_decision


class AnalyzeRequest(BaseModel):
    """Incoming request to /analyze."""
    symbol: str = Field(
        ...,
        description="Shanghai/Shenzhen stock code, with or without exchange prefix",
        examples=["600519", "sz000001", "300750"],
    )
    api_keys: dict[str, str] = Field(
        default_factory=dict,
        description="Per-run provider keys: gemini, deepseek, qwen, juhe. Never stored.",
    )


class AnalyzeAccepted(BaseModel):
    symbol: str
    status: str = "accepted"


class StateResponse(BaseModel):
    """Live run state as shown to the operator. Credentials are never echoed."""
    status: AnalysisStatus
    current_step: int
    stock_symbol: str
    stock_data_context: str
    outputs: dict[AgentRole, str]
    agent_configs: dict[AgentRole, AgentConfig]
    error: Optional[str] = None
    decision: DecisionLabel = DecisionLabel.ANALYZING
    restored_from_history: bool = False

    @classmethod
    def from_state(cls, state: WorkflowState, restored_from_history: bool = False) -> "StateResponse":
        return cls(
            status=state.status,
            current_step=state.current_step,
            stock_symbol=state.stock_symbol,
            stock_data_context=state.stock_data_context,
            outputs=state.outputs,
            agent_configs=state.agent_configs,
            error=state.error,
            decision=classify_decision(state.outputs.get(AgentRole.GM)),
            restored_from_history=restored_from_history,
        )


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    services: dict = Field(default_factory=dict)
