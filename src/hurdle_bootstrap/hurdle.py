"""Two-part (hurdle) model fitter.

The hurdle log-likelihood for outcome y with zero-part design Z and
count-part design X is

    ℓ(γ, β, θ) = Σ_{y=0} log(1 − π) + Σ_{y>0} [log π + log f⁺(y; β, θ)]

with π = logit⁻¹(Zγ) the probability of a positive outcome and f⁺ the
zero-truncated count density (see :mod:`.families`).  The first two
sums depend on γ only and the last on (β, θ) only, so the joint
maximum is reached by maximising each part on its own:

* **Zero part** — ``statsmodels`` ``Logit`` of 1{y > 0} on Z.
* **Positive part** — :class:`~.families.ZeroTruncatedCountModel` on
  the rows with y > 0, started from a Poisson GLM fit.

Both optimisers run under the same iteration cap.  Any condition that
makes the estimate unusable raises :class:`~.exceptions.FitFailure`:
a sample without zeros or without positives, a rank-deficient design,
a non-converged optimiser, non-finite estimates, or a numerical error
inside statsmodels.

:func:`fit_hurdle` leaves the warning filters alone; the engine wraps
its batches of fits in :func:`_suppress_sm_warnings`.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy import special
from statsmodels.tools.sm_exceptions import (
    ConvergenceWarning as SmConvergenceWarning,
)
from statsmodels.tools.sm_exceptions import (
    HessianInversionWarning,
    PerfectSeparationWarning,
)

from .exceptions import FitFailure
from .families import CountFamily, ZeroTruncatedCountModel, resolve_family
from .specification import HurdleDesign

logger = logging.getLogger(__name__)

# First-order tolerance used when an optimiser stops with a warning
# flag (e.g. BFGS precision loss) at a point where the score already
# vanishes.  Scaled by the number of observations.
_SCORE_TOL = 1e-6


@contextmanager
def _suppress_sm_warnings() -> Iterator[None]:
    """Silence statsmodels chatter; failures are reported via FitFailure.

    ``warnings.catch_warnings`` swaps the process-wide filter list, so
    this is entered once by the calling thread around a whole batch of
    fits, never from inside joblib workers.  Individual fits only
    adjust the thread-local ``np.errstate``.
    """
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=SmConvergenceWarning)
        warnings.filterwarnings("ignore", category=PerfectSeparationWarning)
        warnings.filterwarnings("ignore", category=HessianInversionWarning)
        warnings.filterwarnings("ignore", category=RuntimeWarning)
        yield


@dataclass(frozen=True)
class HurdleFit:
    """Estimated coefficients of one hurdle fit.

    Created fresh for each sample and never mutated.  Predictions take
    design matrices encoded by the same :class:`HurdleDesign` that
    produced the fit.
    """

    family: CountFamily
    zero_params: np.ndarray
    count_params: np.ndarray
    extra_params: np.ndarray
    zero_names: tuple[str, ...]
    count_names: tuple[str, ...]
    zero_llf: float
    count_llf: float
    n_obs: int
    n_positive: int

    @property
    def llf(self) -> float:
        """Hurdle log-likelihood (sum of both parts)."""
        return self.zero_llf + self.count_llf

    @property
    def alpha(self) -> float | None:
        """NB2 dispersion α (1 for geometric, ``None`` for Poisson)."""
        return self.family.dispersion(self.extra_params)

    @property
    def params(self) -> pd.Series:
        """All coefficients, labelled ``count_<term>`` / ``zero_<term>``."""
        values = np.concatenate(
            [self.count_params, self.extra_params, self.zero_params]
        )
        index = (
            [f"count_{n}" for n in self.count_names]
            + [f"count_{n}" for n in self.family.extra_names]
            + [f"zero_{n}" for n in self.zero_names]
        )
        return pd.Series(values, index=index, name="coef")

    def prob_positive(self, zero_X: np.ndarray) -> np.ndarray:
        """``P(Y > 0 | z)`` from the logit zero part."""
        return special.expit(zero_X @ self.zero_params)

    def count_mean(self, count_X: np.ndarray) -> np.ndarray:
        """Untruncated count mean ``μ = exp(xβ)``."""
        return np.exp(count_X @ self.count_params)

    def positive_mean(self, count_X: np.ndarray) -> np.ndarray:
        """``E[Y | Y > 0, x]`` from the truncated count part."""
        return self.family.positive_mean(self.count_mean(count_X), self.extra_params)

    def predict(self, zero_X: np.ndarray, count_X: np.ndarray) -> np.ndarray:
        """Expected outcome ``P(Y > 0 | z) · E[Y | Y > 0, x]`` per record."""
        return self.prob_positive(zero_X) * self.positive_mean(count_X)


def _check_rank(X: np.ndarray, part: str) -> None:
    rank = int(np.linalg.matrix_rank(X))
    if rank < X.shape[1]:
        raise FitFailure(
            f"{part} design is rank deficient on this sample "
            f"(rank {rank} < {X.shape[1]} columns)."
        )


def _converged(result, score: np.ndarray, nobs: int) -> bool:
    if result.mle_retvals.get("converged", False):
        return True
    return bool(np.max(np.abs(score)) <= _SCORE_TOL * max(nobs, 1))


def _fit_zero_part(
    positive: np.ndarray, X: np.ndarray, max_iter: int
) -> tuple[np.ndarray, float]:
    """Logistic regression of the positive-outcome indicator."""
    try:
        with np.errstate(all="ignore"):
            result = sm.Logit(positive.astype(float), X).fit(disp=0, maxiter=max_iter)
    except Exception as exc:
        raise FitFailure(f"zero part (logit) failed: {exc}") from exc

    params = np.asarray(result.params, dtype=float)
    if not np.all(np.isfinite(params)):
        raise FitFailure("zero part (logit) produced non-finite coefficients.")
    if not _converged(result, result.model.score(params), len(positive)):
        raise FitFailure(
            f"zero part (logit) did not converge within {max_iter} iterations."
        )
    return params, float(result.llf)


def _fit_count_part(
    y: np.ndarray,
    X: np.ndarray,
    family: CountFamily,
    max_iter: int,
    optimizer: str,
) -> tuple[np.ndarray, np.ndarray, float]:
    """Zero-truncated count regression on the positive outcomes."""
    k = X.shape[1]
    try:
        with np.errstate(all="ignore"):
            # Untruncated Poisson GLM on the positives: cheap, always
            # defined, and close enough to seed the truncated model.
            start_beta = sm.GLM(y, X, family=sm.families.Poisson()).fit().params
            start = np.concatenate([np.asarray(start_beta), family.start_extra()])
            model = ZeroTruncatedCountModel(y, X, family)
            result = model.fit(
                start_params=start,
                method=optimizer,
                maxiter=max_iter,
                disp=0,
                skip_hessian=True,
            )
    except Exception as exc:
        raise FitFailure(f"count part ({family.label}) failed: {exc}") from exc

    params = np.asarray(result.params, dtype=float)
    if not np.all(np.isfinite(params)):
        raise FitFailure(
            f"count part ({family.label}) produced non-finite coefficients."
        )
    if not _converged(result, model.score(params), len(y)):
        raise FitFailure(
            f"count part ({family.label}) did not converge within "
            f"{max_iter} iterations."
        )
    return params[:k], params[k:], float(result.llf)


def fit_hurdle(
    design: HurdleDesign,
    data: pd.DataFrame,
    family: str | CountFamily | None = None,
    *,
    max_iter: int = 1_000,
    optimizer: str = "bfgs",
) -> HurdleFit:
    """Fit a logit-zero hurdle model to one data sample.

    Args:
        design: Encodings learned from the full prepared dataset.
        data: The sample to fit — the full dataset, a bootstrap
            resample (repeated rows allowed) or a jackknife subset.
            Must carry the prepared categorical intervention column.
        family: Positive-part family; defaults to the specification's.
        max_iter: Iteration cap for both optimisers.
        optimizer: statsmodels optimiser for the positive part.

    Returns:
        The fitted :class:`HurdleFit`.

    Raises:
        FitFailure: If the sample cannot support a fit (see module
            docstring).
    """
    fam = resolve_family(family if family is not None else design.spec.family)

    y = design.outcome(data)
    positive = y > 0
    n_positive = int(positive.sum())
    if n_positive == 0 or n_positive == len(y):
        raise FitFailure(
            "sample needs both zero and positive outcomes "
            f"(n={len(y)}, positive={n_positive})."
        )

    zero_X = design.zero_matrix(data)
    count_X = design.count_matrix(data)[positive]
    _check_rank(zero_X, "zero")
    _check_rank(count_X, "count")

    zero_params, zero_llf = _fit_zero_part(positive, zero_X, max_iter)
    count_params, extra_params, count_llf = _fit_count_part(
        y[positive], count_X, fam, max_iter, optimizer
    )

    logger.debug(
        "Fitted %s hurdle: n=%d, positive=%d, llf=%.4f",
        fam.label,
        len(y),
        n_positive,
        zero_llf + count_llf,
    )
    return HurdleFit(
        family=fam,
        zero_params=zero_params,
        count_params=count_params,
        extra_params=extra_params,
        zero_names=tuple(design.zero_names),
        count_names=tuple(design.count_names),
        zero_llf=zero_llf,
        count_llf=count_llf,
        n_obs=len(y),
        n_positive=n_positive,
    )


__all__ = ["HurdleFit", "fit_hurdle"]
