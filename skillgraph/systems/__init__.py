"""Rating system implementations.

- TrueSkill: Bayesian skill estimation by message passing on a factor graph,
  for ranked results between players or teams, with draws
"""

from .trueskill import TrueSkill, TrueSkillConfig, TrueSkillFactorGraph

__all__ = ["TrueSkill", "TrueSkillConfig", "TrueSkillFactorGraph"]
