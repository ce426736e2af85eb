from core.services.conflicts.aggregator import (
    DailyLoad,
    IntervalAggregator,
    LoadContributor,
    build_daily_loads,
)
from core.services.conflicts.classifier import Classification, classify
from core.services.conflicts.lifecycle import (
    AUTO_RESOLVED_NOTE,
    ConflictLifecycleManager,
    PreserveHistoryRecurrencePolicy,
    RecurrencePolicy,
    ReopenAutoResolvedRecurrencePolicy,
    build_recurrence_policy,
)
from core.services.conflicts.policy import (
    CapacitySettings,
    CapacitySettingsProvider,
    GovernancePolicy,
    SeverityBands,
    TypeWeights,
    load_capacity_settings,
)

__all__ = [
    "DailyLoad",
    "LoadContributor",
    "IntervalAggregator",
    "build_daily_loads",
    "Classification",
    "classify",
    "AUTO_RESOLVED_NOTE",
    "ConflictLifecycleManager",
    "RecurrencePolicy",
    "PreserveHistoryRecurrencePolicy",
    "ReopenAutoResolvedRecurrencePolicy",
    "build_recurrence_policy",
    "CapacitySettings",
    "CapacitySettingsProvider",
    "GovernancePolicy",
    "SeverityBands",
    "TypeWeights",
    "load_capacity_settings",
]
