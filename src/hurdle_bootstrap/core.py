"""Top-level entry point: causal effect of an intervention on a count.

The estimand is the average multiplicative effect of a binary
intervention on a count outcome with excess zeros,

    τ = E[Y | do(treated)] / E[Y | do(control)],

estimated by g-computation from a logit-zero hurdle regression that
adjusts for the measured covariates.  Uncertainty comes from a
stratified nonparametric bootstrap: resampling is done within each
intervention arm so every replicate keeps the observed arm sizes.

Pipeline
~~~~~~~~
1. Validate the data against the :class:`ModelSpecification`.
2. Fit the hurdle model to the full dataset and compute τ₀.
3. Refit on R stratified resamples (optionally on a thread pool).
4. Percentile or BCa interval from the successful replicates; for BCa,
   also refit on the N leave-one-out subsets.
5. Approximate p-value for τ = 1 from the log-centred replicates.

Failed replicates (non-convergence, a resample without zeros, ...)
are excluded and reported in one ``UserWarning``.  Too few surviving
replicates raise :class:`~.exceptions.DegenerateDistributionError`.
"""

from __future__ import annotations

import logging
from typing import Any

from ._compat import DataFrameLike
from ._config import BootstrapConfig
from ._results import InferenceResult
from .engine import BootstrapEngine
from .intervals import bca_interval, percentile_interval
from .pvalues import bootstrap_p_value
from .specification import ModelSpecification

logger = logging.getLogger(__name__)


def hurdle_bootstrap(
    data: DataFrameLike,
    spec: ModelSpecification,
    config: BootstrapConfig | None = None,
    **overrides: Any,
) -> InferenceResult:
    """Estimate the intervention effect with a stratified bootstrap.

    Args:
        data: One record per row with the outcome, intervention and
            every predictor the specification names.  Accepts pandas
            or Polars DataFrames.
        spec: Model specification.
        config: Run configuration; defaults to ``BootstrapConfig()``.
        **overrides: Individual ``BootstrapConfig`` fields, applied on
            top of *config* (e.g. ``n_bootstrap=2000``,
            ``random_state=42``).

    Returns:
        :class:`InferenceResult` with the point estimate, confidence
        bounds and p-value.

    Raises:
        ConfigurationError: Invalid data, specification or settings.
        FitFailure: The model cannot be fitted to the full dataset.
        UndefinedEffect: τ₀ is not a finite ratio.
        DegenerateDistributionError: Too few successful replicates.

    Example::

        spec = ModelSpecification(
            count_predictors=["Intervention", "Age", "Sex"],
            zero_predictors=["Intervention", "Age", "Sex"],
            family="poisson",
        )
        result = hurdle_bootstrap(df, spec, n_bootstrap=2000, random_state=1)
        result.to_series()
    """
    config = config if config is not None else BootstrapConfig()
    if overrides:
        config = config.replace(**overrides)

    engine = BootstrapEngine(data, spec, config)
    distribution = engine.run()
    boot = distribution.statistics

    alpha = config.alpha
    if config.ci_method == "bca":
        ci_lower, ci_upper = bca_interval(
            boot, engine.observed, engine.jackknife(), alpha
        )
    else:
        ci_lower, ci_upper = percentile_interval(boot, alpha)

    p_value = bootstrap_p_value(boot, engine.observed)
    logger.info(
        "Effect %.4f, %s %.0f%% CI [%.4f, %.4f], p=%.4f",
        engine.observed,
        config.ci_method,
        100 * config.confidence_level,
        ci_lower,
        ci_upper,
        p_value,
    )

    return InferenceResult(
        point_estimate=engine.observed,
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        p_value=p_value,
        ci_method=config.ci_method,
        confidence_level=config.confidence_level,
        n_bootstrap=config.n_bootstrap,
        n_successful=distribution.n_successful,
        n_failed=distribution.n_failed,
        failure_reasons=distribution.failure_reasons,
        family=spec.family_name,
        formula=spec.formula,
        levels=engine.levels,
        distribution=distribution,
    )
