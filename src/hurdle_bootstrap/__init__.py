"""hurdle_bootstrap — Causal effects on zero-inflated counts.

Estimates the average multiplicative effect of a binary intervention
on a count outcome with excess zeros, using a logit-zero hurdle
regression (Poisson, negative-binomial or geometric positive part)
and a stratified nonparametric bootstrap with percentile or BCa
intervals.

Public API:
    .. autosummary::
        hurdle_bootstrap
        ModelSpecification
        HurdleDesign
        BootstrapConfig
        BootstrapEngine
        fit_hurdle
        HurdleFit
        average_effect
        counterfactual_predictions
        percentile_interval
        bca_interval
        bootstrap_p_value
        stratified_bootstrap_indices
        get_n_jobs
        set_n_jobs
        CountFamily
        PoissonFamily
        NegativeBinomialFamily
        GeometricFamily
        resolve_family
        register_family
        InferenceResult
        BootstrapDistribution
        ReplicateResult
"""

from ._config import BootstrapConfig, get_n_jobs, set_n_jobs
from ._results import BootstrapDistribution, InferenceResult, ReplicateResult
from .core import hurdle_bootstrap
from .effects import average_effect, counterfactual_predictions
from .engine import BootstrapEngine
from .exceptions import (
    ConfigurationError,
    DegenerateDistributionError,
    FitFailure,
    ReplicateFailure,
    UndefinedEffect,
)
from .families import (
    CountFamily,
    GeometricFamily,
    NegativeBinomialFamily,
    PoissonFamily,
    register_family,
    resolve_family,
)
from .hurdle import HurdleFit, fit_hurdle
from .intervals import bca_interval, percentile_interval
from .pvalues import bootstrap_p_value
from .resampling import stratified_bootstrap_indices
from .specification import HurdleDesign, ModelSpecification

__all__ = [
    "BootstrapDistribution",
    "InferenceResult",
    "ReplicateResult",
    "hurdle_bootstrap",
    "average_effect",
    "counterfactual_predictions",
    "fit_hurdle",
    "HurdleFit",
    "percentile_interval",
    "bca_interval",
    "bootstrap_p_value",
    "stratified_bootstrap_indices",
    "get_n_jobs",
    "set_n_jobs",
    "BootstrapConfig",
    "ConfigurationError",
    "DegenerateDistributionError",
    "FitFailure",
    "ReplicateFailure",
    "UndefinedEffect",
    "CountFamily",
    "PoissonFamily",
    "NegativeBinomialFamily",
    "GeometricFamily",
    "resolve_family",
    "register_family",
    "ModelSpecification",
    "HurdleDesign",
    "BootstrapEngine",
]

__version__ = "0.1.0"
