"""cgdescent - nonlinear conjugate-gradient minimization (Hager-Zhang CG_DESCENT)."""

__version__ = "0.1.0"

from .logging import configure_logging, get_logger, set_log_level
from .optimize import (
    CGOptions,
    Display,
    MultivariateOptimizationResults,
    Problem,
    Status,
    cg_descent,
)

__all__ = [
    "CGOptions",
    "Display",
    "MultivariateOptimizationResults",
    "Problem",
    "Status",
    "__version__",
    "cg_descent",
    "configure_logging",
    "get_logger",
    "set_log_level",
]
