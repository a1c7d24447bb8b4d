"""Approximate bootstrap p-value for "no intervention effect".

The null hypothesis is τ = 1, i.e. log τ = 0.  The bootstrap
distribution of log τ is centred on its own mean to mimic the null,
and the p-value is the share of centred replicates further from zero
than the observed log effect:

    p = #{ |log τ_b − mean(log τ)| > |log τ₀| } / R

This is an approximation: it assumes the sampling distribution of
log τ only shifts, without changing shape, between the null and the
observed effect.  Ties count as not exceeding.
"""

from __future__ import annotations

import numpy as np

from .exceptions import DegenerateDistributionError


def bootstrap_p_value(boot: np.ndarray, observed: float) -> float:
    """Two-sided log-centred bootstrap p-value.

    Args:
        boot: Successful replicate effect ratios (all > 0).
        observed: Point estimate τ₀ (> 0).

    Returns:
        A value in ``[0, 1]``.

    Raises:
        DegenerateDistributionError: If *boot* is empty or *observed*
            or any replicate is not a positive finite ratio.
    """
    boot = np.asarray(boot, dtype=float)
    if boot.size == 0:
        raise DegenerateDistributionError("No bootstrap replicates to compare against.")
    if not (np.isfinite(observed) and observed > 0) or np.any(
        ~np.isfinite(boot) | (boot <= 0)
    ):
        raise DegenerateDistributionError(
            "Effect ratios must be positive and finite to take logarithms."
        )
    log_t = np.log(boot)
    centred = np.abs(log_t - log_t.mean())
    return float(np.mean(centred > abs(np.log(observed))))


__all__ = ["bootstrap_p_value"]
