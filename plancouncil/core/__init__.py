"""
Core Module

Contains the request/response types and exceptions used across all
other modules of plan-council.
"""

from plancouncil.core.exceptions import (
    ConfigurationError,
    DuplicateStepError,
    PlanCouncilError,
    PlanParseError,
    StoreError,
    WorkflowError,
)
from plancouncil.core.types import (
    CheckpointKind,
    CoordinatorCall,
    CoordinatorMode,
    CoordinatorResponse,
    DevlogHint,
    DistilledContext,
    FeatureFlags,
    NextAction,
    ParsedStep,
    PlanCheckpoint,
    PlanParseResult,
    PlanSummary,
    RunnerCall,
    RunnerMode,
    RunnerResponse,
    VerificationInstruction,
)

__all__ = [
    # Exceptions
    "ConfigurationError",
    "DuplicateStepError",
    "PlanCouncilError",
    "PlanParseError",
    "StoreError",
    "WorkflowError",
    # Types
    "CheckpointKind",
    "CoordinatorCall",
    "CoordinatorMode",
    "CoordinatorResponse",
    "DevlogHint",
    "DistilledContext",
    "FeatureFlags",
    "NextAction",
    "ParsedStep",
    "PlanCheckpoint",
    "PlanParseResult",
    "PlanSummary",
    "RunnerCall",
    "RunnerMode",
    "RunnerResponse",
    "VerificationInstruction",
]
