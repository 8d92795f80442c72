"""Value types and storage shared by the rating engine."""

from .gaussian import Gaussian, norm_cdf, norm_pdf, norm_ppf
from .rating import Rating
from .variable_store import VariableStore

__all__ = ["Gaussian", "Rating", "VariableStore", "norm_cdf", "norm_pdf", "norm_ppf"]
