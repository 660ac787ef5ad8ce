"""Monte Carlo study of how population skewness affects the CLT approximation."""
from __future__ import annotations

from .analysis import RESULT_FIELDS, ResultRow, ResultTable, adequacy_summary, analyze
from .errors import BatchError, ConfigError, DegenerateStatisticError, DomainError, TaskError
from .populations import DEFAULT_POPULATIONS, DEFAULT_SAMPLE_SIZES, Beta, Exponential, Gamma, LogNormal, Normal
from .sim_core import (
    Diagnostics,
    build_sampling_distribution,
    diagnose,
    is_adequately_normal,
    sampling_distribution,
)
from .statistics import ADJUSTED_SKEWNESS, MEAN, T_STATISTIC, Statistic, get_statistic, normal_critical, t_critical

__version__ = "0.1.0"

__all__ = [
    "ADJUSTED_SKEWNESS",
    "BatchError",
    "Beta",
    "ConfigError",
    "DEFAULT_POPULATIONS",
    "DEFAULT_SAMPLE_SIZES",
    "DegenerateStatisticError",
    "Diagnostics",
    "DomainError",
    "Exponential",
    "Gamma",
    "LogNormal",
    "MEAN",
    "Normal",
    "RESULT_FIELDS",
    "ResultRow",
    "ResultTable",
    "Statistic",
    "T_STATISTIC",
    "TaskError",
    "adequacy_summary",
    "analyze",
    "build_sampling_distribution",
    "diagnose",
    "get_statistic",
    "is_adequately_normal",
    "normal_critical",
    "sampling_distribution",
    "t_critical",
]
