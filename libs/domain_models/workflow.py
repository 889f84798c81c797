from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class AnalysisStatus(str, Enum):
    IDLE = "IDLE"
    FETCHING_DATA = "FETCHING_DATA"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class AgentRole(str, Enum):
    # Stage 1: analysts
    MACRO = "MACRO"
    INDUSTRY = "INDUSTRY"
    TECHNICAL = "TECHNICAL"
    FUNDS = "FUNDS"
    FUNDAMENTAL = "FUNDAMENTAL"
    # Stage 2: managers
    MANAGER_FUNDAMENTAL = "MANAGER_FUNDAMENTAL"
    MANAGER_MOMENTUM = "MANAGER_MOMENTUM"
    # Stage 3: risk control
    RISK_SYSTEM = "RISK_SYSTEM"
    RISK_PORTFOLIO = "RISK_PORTFOLIO"
    # Stage 4: final decision
    GM = "GM"


class DecisionLabel(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"
    ANALYZING = "analyzing"


class AgentConfig(BaseModel):
    """Tunable parameters of one participant."""
    name: str
    title: str
    model_name: str                 # e.g. "gemini-2.5-flash", "deepseek-chat"
    temperature: float = Field(ge=0.0, le=2.0, default=0.7)
    system_prompt: str


def clone_agent_configs(configs: dict) -> dict:
    """Structural clone of a role -> AgentConfig mapping."""
    return {AgentRole(role): config.model_copy(deep=True) for role, config in configs.items()}


class WorkflowState(BaseModel):
    """
    The single mutable record describing one analysis run.
    Operations never mutate an instance in place; they return the next state.
    """
    status: AnalysisStatus = AnalysisStatus.IDLE
    current_step: int = Field(ge=0, le=5, default=0)
    stock_symbol: str = ""
    stock_data_context: str = ""
    outputs: dict[AgentRole, str] = Field(default_factory=dict)
    agent_configs: dict[AgentRole, AgentConfig] = Field(default_factory=dict)

    # Never persisted, never part of history
    api_keys: dict[str, str] = Field(default_factory=dict)
    error: Optional[str] = None

    def apply(self, update: dict) -> "WorkflowState":
        """Fold a partial update (as produced by the engine) into a new state."""
        return self.model_copy(update=update)

    def persistable(self) -> "PersistedRunState":
        return PersistedRunState(
            status=self.status,
            current_step=self.current_step,
            stock_symbol=self.stock_symbol,
            stock_data_context=self.stock_data_context,
            outputs=dict(self.outputs),
            agent_configs=clone_agent_configs(self.agent_configs),
        )


class PersistedRunState(BaseModel):
    """WorkflowState minus api_keys and error."""
    status: AnalysisStatus = AnalysisStatus.IDLE
    current_step: int = Field(ge=0, le=5, default=0)
    stock_symbol: str = ""
    stock_data_context: str = ""
    outputs: dict[AgentRole, str] = Field(default_factory=dict)
    agent_configs: Optional[dict[AgentRole, AgentConfig]] = None


class PersistedSnapshot(BaseModel):
    version: str
    timestamp: int                  # epoch milliseconds
    state: PersistedRunState


class HistoryRecord(BaseModel):
    """Retained summary of a past or in-progress run."""
    id: str
    stock_symbol: str
    status: AnalysisStatus
    current_step: int
    timestamp: int                  # epoch milliseconds
    completed_at: Optional[int] = None
    gm_decision: Optional[DecisionLabel] = None
    outputs: dict[AgentRole, str] = Field(default_factory=dict)


class HistoryStorage(BaseModel):
    version: str
    items: list[HistoryRecord] = Field(default_factory=list)
