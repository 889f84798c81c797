"""
Exception hierarchy shared by the council engine, stage executors and API.
"""


class CouncilError(Exception):
    """Base exception for the AlphaCouncil workflow."""
    pass


class SymbolValidationError(CouncilError):
    """Stock code rejected before any external call."""

    MALFORMED_AFTER_PREFIX = "malformed_after_prefix"
    WRONG_LENGTH = "wrong_length"
    DISALLOWED_LEADING_DIGIT = "disallowed_leading_digit"

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason


class WorkflowBusyError(CouncilError):
    """A run was requested while the workflow is not idle."""
    pass


class MissingCredentialError(CouncilError):
    pass


class UnknownProviderError(CouncilError):
    pass


class StageExecutionError(CouncilError):
    """A participant call inside a stage failed."""
    pass


class HistoryRecordNotFound(CouncilError):
    pass
