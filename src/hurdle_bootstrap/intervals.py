"""Bootstrap confidence intervals for the effect ratio.

Percentile
    The ``α/2`` and ``1 − α/2`` quantiles of the successful replicate
    statistics.

Bias-corrected and accelerated (BCa; Efron, 1987)
    Shifts the percentile cutoffs to correct for two problems:

    * **Bias**: the bootstrap distribution's median may not equal the
      point estimate.  Measured by

          z₀ = Φ⁻¹( #{τ_b < τ₀} / R ).

    * **Skewness**: the standard error of τ may change with τ.
      Measured by the acceleration, estimated from the leave-one-out
      jackknife values τ₍ᵢ₎ with d_i = mean(τ₍.₎) − τ₍ᵢ₎:

          â = Σ d_i³ / (6 · (Σ d_i²)^{3/2}).

    The interval endpoints are the bootstrap quantiles at

        α_adj = Φ( z₀ + (z₀ + z_α) / (1 − â·(z₀ + z_α)) ).

    When every replicate falls on one side of τ₀, the proportion is
    clipped to ``[1/(2R), 1 − 1/(2R)]`` so z₀ stays finite.  When the
    jackknife values have no spread, or the adjustment would flip
    sign, â is set to zero.

Both methods refuse to run on fewer than
``max(2, ⌈2/α⌉ − 1)`` successful replicates (39 for a 95% interval):
with fewer, the requested tail quantiles are not resolvable.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy import stats

from .exceptions import DegenerateDistributionError

logger = logging.getLogger(__name__)

_MIN_JACKKNIFE = 3


def minimum_replicates(alpha: float) -> int:
    """Fewest successful replicates that support a two-sided ``1 − α`` interval."""
    # Rounded first: 1 - 0.95 is not exactly 0.05 in binary.
    return max(2, math.ceil(round(2.0 / alpha, 9)) - 1)


def _check_replicates(boot: np.ndarray, alpha: float) -> np.ndarray:
    boot = np.asarray(boot, dtype=float)
    boot = boot[np.isfinite(boot)]
    required = minimum_replicates(alpha)
    if len(boot) < required:
        raise DegenerateDistributionError(
            f"Only {len(boot)} successful bootstrap replicates; at least "
            f"{required} are needed for a {1 - alpha:.0%} interval."
        )
    return boot


def percentile_interval(boot: np.ndarray, alpha: float) -> tuple[float, float]:
    """Percentile bootstrap interval ``(lower, upper)``.

    Raises:
        DegenerateDistributionError: Too few replicates.
    """
    boot = _check_replicates(boot, alpha)
    lo, hi = np.quantile(boot, [alpha / 2, 1 - alpha / 2])
    return float(lo), float(hi)


def _acceleration(jackknife: np.ndarray) -> float:
    d = jackknife.mean() - jackknife
    denom = 6.0 * np.sum(d**2) ** 1.5
    if denom == 0.0 or not np.isfinite(denom):
        return 0.0
    return float(np.sum(d**3) / denom)


def _bca_percentile(
    boot: np.ndarray,
    observed: float,
    jackknife: np.ndarray,
    alpha: float,
) -> tuple[float, float]:
    """BCa endpoints from a bootstrap sample and jackknife values.

    No minimum-size checks; see :func:`bca_interval` for the guarded
    version.
    """
    boot = np.asarray(boot, dtype=float)
    jackknife = np.asarray(jackknife, dtype=float)
    n_boot = len(boot)

    prop = np.mean(boot < observed)
    prop = np.clip(prop, 0.5 / n_boot, 1.0 - 0.5 / n_boot)
    z0 = stats.norm.ppf(prop)

    a = _acceleration(jackknife)
    z = stats.norm.ppf([alpha / 2, 1 - alpha / 2])
    shift = z0 + z
    denom = 1.0 - a * shift
    if np.any(denom <= 0.0):
        logger.debug("BCa acceleration %.4g flips the adjustment; using a = 0", a)
        a, denom = 0.0, np.ones_like(shift)

    levels = stats.norm.cdf(z0 + shift / denom)
    lo, hi = np.quantile(boot, levels)
    logger.debug("BCa: z0=%.4f, a=%.4f, levels=%s", z0, a, levels)
    return float(lo), float(hi)


def bca_interval(
    boot: np.ndarray,
    observed: float,
    jackknife: np.ndarray,
    alpha: float,
) -> tuple[float, float]:
    """BCa bootstrap interval ``(lower, upper)``.

    Non-finite jackknife values (failed leave-one-out fits) are
    dropped before estimating the acceleration.

    Raises:
        DegenerateDistributionError: Too few bootstrap replicates, or
            fewer than three usable jackknife values.
    """
    boot = _check_replicates(boot, alpha)
    jackknife = np.asarray(jackknife, dtype=float)
    jackknife = jackknife[np.isfinite(jackknife)]
    if len(jackknife) < _MIN_JACKKNIFE:
        raise DegenerateDistributionError(
            f"Only {len(jackknife)} usable jackknife values; at least "
            f"{_MIN_JACKKNIFE} are needed for the BCa acceleration."
        )
    return _bca_percentile(boot, observed, jackknife, alpha)


__all__ = ["bca_interval", "minimum_replicates", "percentile_interval"]
