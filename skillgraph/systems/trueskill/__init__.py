"""TrueSkill factor-graph engine."""

from .factor_graph import TrueSkillFactorGraph
from .schedule import Schedule, ScheduleResult, ScheduleStep
from .trueskill import TrueSkill, TrueSkillConfig

__all__ = [
    "TrueSkill",
    "TrueSkillConfig",
    "TrueSkillFactorGraph",
    "Schedule",
    "ScheduleResult",
    "ScheduleStep",
]
