from .lead import (
    DispositionRecord,
    LeadData,
    BestTimeSlot,
    ScoreFeatures,
    ScoreResult,
    BestTimeToCall,
)
from .scoring_model import (
    FeatureWeights,
    ScoringPolicy,
    ScoringModelCreate,
    DefaultScope,
    OrganizationScope,
    Scope,
    scope_of,
)
from .caller_id import (
    PoolCreate,
    PoolUpdate,
    NumberCreate,
    NumberUpdate,
    CallOutcome,
    ImportResult,
    AreaCodeCount,
    PoolStats,
    PoolSummary,
    CallerIdOverview,
    ReputationEventView,
    NumberStats,
)

__all__ = [
    "DispositionRecord", "LeadData", "BestTimeSlot", "ScoreFeatures",
    "ScoreResult", "BestTimeToCall",
    "FeatureWeights", "ScoringPolicy", "ScoringModelCreate",
    "DefaultScope", "OrganizationScope", "Scope", "scope_of",
    "PoolCreate", "PoolUpdate", "NumberCreate", "NumberUpdate", "CallOutcome",
    "ImportResult",
    "AreaCodeCount", "PoolStats", "PoolSummary", "CallerIdOverview",
    "ReputationEventView", "NumberStats",
]
