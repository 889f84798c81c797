from .quote import StockQuote
from .workflow import (
    AgentConfig,
    AgentRole,
    AnalysisStatus,
    DecisionLabel,
    HistoryRecord,
    HistoryStorage,
    PersistedRunState,
    PersistedSnapshot,
    WorkflowState,
    clone_agent_configs,
)

__all__ = [
    "StockQuote",
    "AgentConfig",
    "AgentRole",
    "AnalysisStatus",
    "DecisionLabel",
    "HistoryRecord",
    "HistoryStorage",
    "PersistedRunState",
    "PersistedSnapshot",
    "WorkflowState",
    "clone_agent_configs",
]
