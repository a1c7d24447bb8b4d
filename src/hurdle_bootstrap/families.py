"""Positive-count families and the zero-truncated likelihood model.

The positive part of a hurdle model describes ``Y | Y > 0``.  For a
parent count distribution with mean μ and zero probability P₀(μ), the
zero-truncated density is

    f⁺(y) = f(y) / (1 − P₀(μ)),   y = 1, 2, …

with conditional mean ``E[Y | Y > 0] = μ / (1 − P₀(μ))``.

Three parent distributions are supported, each as a ``CountFamily``:

* **Poisson** — ``P₀ = exp(−μ)``; no nuisance parameter.
* **Negative binomial (NB2)** — ``Var(Y) = μ + α·μ²``,
  ``P₀ = (1 + α·μ)^(−1/α)``.  α is estimated jointly with β on the log
  scale (parameter ``lnalpha``) so the optimiser is unconstrained.
* **Geometric** — NB2 with α fixed at 1.

Each family is a frozen ``@dataclass`` with no state; it supplies the
per-observation log-likelihood and its analytic derivatives with
respect to the linear predictor η = Xβ (log link) and the nuisance
parameters.  :class:`ZeroTruncatedCountModel` turns those into a
statsmodels ``GenericLikelihoodModel`` so the optimiser, iteration cap
and convergence reporting are statsmodels' own.

``resolve_family`` maps user-facing names (``"poisson"``,
``"negbin"``, ``"negative_binomial"``, ``"geometric"``) to instances.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import numpy as np
from scipy import special
from statsmodels.base.model import GenericLikelihoodModel
from statsmodels.tools.numdiff import approx_fprime

from .exceptions import ConfigurationError

# Linear predictors are clipped before exponentiation.  exp(40) ≈ 2e17
# is far beyond any plausible count mean; the clip only protects the
# optimiser from overflow during wild line-search steps.
_ETA_BOUND = 40.0
_LNALPHA_BOUND = 20.0


def _mean(eta: np.ndarray) -> np.ndarray:
    return np.exp(np.clip(eta, -_ETA_BOUND, _ETA_BOUND))


def _validate_count_y(y: np.ndarray, label: str) -> None:
    """Shared non-negative-integer check for all count families."""
    if not np.issubdtype(y.dtype, np.number):
        msg = f"{label} requires numeric outcome values."
        raise ConfigurationError(msg)
    if np.any(np.isnan(y)):
        msg = f"{label} does not accept NaN outcome values."
        raise ConfigurationError(msg)
    if np.any(y < 0):
        msg = f"{label} requires non-negative outcome values."
        raise ConfigurationError(msg)
    # Allow floats that happen to be whole numbers (e.g. 3.0),
    # but reject genuinely fractional values like 3.5.
    if not np.allclose(y, np.round(y)):
        msg = f"{label} requires integer-valued outcomes. Got non-integer values."
        raise ConfigurationError(msg)


# ------------------------------------------------------------------ #
# CountFamily protocol
# ------------------------------------------------------------------ #


@runtime_checkable
class CountFamily(Protocol):
    """Interface every positive-part count family implements.

    Attributes:
        name: Canonical identifier (``"poisson"``, ``"negbin"``,
            ``"geometric"``).
        label: Human-readable name used in messages.
        extra_names: Names of nuisance parameters appended after β
            (empty for Poisson and geometric).
    """

    @property
    def name(self) -> str: ...

    @property
    def label(self) -> str: ...

    @property
    def extra_names(self) -> tuple[str, ...]: ...

    def validate_y(self, y: np.ndarray) -> None:
        """Raise ``ConfigurationError`` unless *y* holds non-negative integers."""
        ...

    def start_extra(self) -> np.ndarray:
        """Starting values for the nuisance parameters."""
        ...

    def dispersion(self, extra: np.ndarray) -> float | None:
        """NB2 α implied by *extra*, or ``None`` without dispersion."""
        ...

    def prob_zero(self, mu: np.ndarray, extra: np.ndarray) -> np.ndarray:
        """Untruncated ``P(Y = 0)`` at mean *mu*."""
        ...

    def positive_mean(self, mu: np.ndarray, extra: np.ndarray) -> np.ndarray:
        """Conditional mean ``E[Y | Y > 0]`` at untruncated mean *mu*."""
        ...

    def loglikeobs(
        self, y: np.ndarray, eta: np.ndarray, extra: np.ndarray
    ) -> np.ndarray:
        """Zero-truncated log-likelihood per observation (``y > 0``)."""
        ...

    def score_obs(
        self, y: np.ndarray, eta: np.ndarray, extra: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        """Derivatives of :meth:`loglikeobs`.

        Returns:
            ``(d_eta, d_extra)`` with shapes ``(n,)`` and
            ``(n, len(extra_names))``.
        """
        ...


@dataclass(frozen=True)
class PoissonFamily:
    """Zero-truncated Poisson positive part.

    ``log f⁺(y) = y·η − μ − log y! − log(1 − e^{−μ})`` and
    ``∂/∂η = y − μ / (1 − e^{−μ})``.
    """

    @property
    def name(self) -> str:
        return "poisson"

    @property
    def label(self) -> str:
        return "Poisson"

    @property
    def extra_names(self) -> tuple[str, ...]:
        return ()

    def validate_y(self, y: np.ndarray) -> None:
        _validate_count_y(y, "PoissonFamily")

    def start_extra(self) -> np.ndarray:
        return np.empty(0)

    def dispersion(self, extra: np.ndarray) -> float | None:  # noqa: ARG002
        return None

    def prob_zero(self, mu: np.ndarray, extra: np.ndarray) -> np.ndarray:  # noqa: ARG002
        return np.exp(-mu)

    def positive_mean(self, mu: np.ndarray, extra: np.ndarray) -> np.ndarray:  # noqa: ARG002
        return mu / -np.expm1(-mu)

    def loglikeobs(
        self, y: np.ndarray, eta: np.ndarray, extra: np.ndarray  # noqa: ARG002
    ) -> np.ndarray:
        eta = np.clip(eta, -_ETA_BOUND, _ETA_BOUND)
        mu = np.exp(eta)
        return y * eta - mu - special.gammaln(y + 1) - np.log(-np.expm1(-mu))

    def score_obs(
        self, y: np.ndarray, eta: np.ndarray, extra: np.ndarray  # noqa: ARG002
    ) -> tuple[np.ndarray, np.ndarray]:
        mu = _mean(eta)
        d_eta = y - mu / -np.expm1(-mu)
        return d_eta, np.empty((len(y), 0))


def _nb_pieces(
    mu: np.ndarray, alpha: float
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(log1p(α·μ), log P₀, 1 − P₀)`` for NB2."""
    l1p = np.log1p(alpha * mu)
    log_p0 = -l1p / alpha
    return l1p, log_p0, -np.expm1(log_p0)


def _nb_loglikeobs(y: np.ndarray, mu: np.ndarray, alpha: float) -> np.ndarray:
    r = 1.0 / alpha
    l1p, _, one_minus_p0 = _nb_pieces(mu, alpha)
    logf = (
        special.gammaln(y + r)
        - special.gammaln(r)
        - special.gammaln(y + 1)
        + y * np.log(alpha * mu)
        - (y + r) * l1p
    )
    return logf - np.log(one_minus_p0)


def _nb_score(
    y: np.ndarray, mu: np.ndarray, alpha: float
) -> tuple[np.ndarray, np.ndarray]:
    """Score of the truncated NB2 log-likelihood w.r.t. (η, α).

    With w = P₀ / (1 − P₀):

        ∂ℓ/∂η = (y − μ)/(1 + αμ) − w·μ/(1 + αμ)
        ∂ℓ/∂α = ∂log f/∂α + w·∂log P₀/∂α

    where

        ∂log f/∂α  = [ψ(1/α) − ψ(y + 1/α) + log(1 + αμ)]/α²
                     + (y − μ)/(α(1 + αμ))
        ∂log P₀/∂α = log(1 + αμ)/α² − μ/(α(1 + αμ)).
    """
    r = 1.0 / alpha
    l1p, log_p0, one_minus_p0 = _nb_pieces(mu, alpha)
    w = np.exp(log_p0) / one_minus_p0
    denom = 1.0 + alpha * mu
    d_eta = (y - mu) / denom - w * mu / denom
    dlogf = (special.digamma(r) - special.digamma(y + r) + l1p) / alpha**2 + (
        y - mu
    ) / (alpha * denom)
    dlogp0 = l1p / alpha**2 - mu / (alpha * denom)
    d_alpha = dlogf + w * dlogp0
    return d_eta, d_alpha


@dataclass(frozen=True)
class NegativeBinomialFamily:
    """Zero-truncated NB2 positive part with estimated dispersion.

    The nuisance parameter is ``lnalpha = log α``; its score is
    ``α · ∂ℓ/∂α`` by the chain rule.
    """

    @property
    def name(self) -> str:
        return "negbin"

    @property
    def label(self) -> str:
        return "Negative Binomial"

    @property
    def extra_names(self) -> tuple[str, ...]:
        return ("lnalpha",)

    def validate_y(self, y: np.ndarray) -> None:
        _validate_count_y(y, "NegativeBinomialFamily")

    def start_extra(self) -> np.ndarray:
        # α = 0.5: moderate overdispersion, away from the Poisson limit
        # where the α-score vanishes.
        return np.array([np.log(0.5)])

    def _alpha(self, extra: np.ndarray) -> float:
        return float(np.exp(np.clip(extra[0], -_LNALPHA_BOUND, _LNALPHA_BOUND)))

    def dispersion(self, extra: np.ndarray) -> float | None:
        return self._alpha(extra)

    def prob_zero(self, mu: np.ndarray, extra: np.ndarray) -> np.ndarray:
        _, log_p0, _ = _nb_pieces(mu, self._alpha(extra))
        return np.exp(log_p0)

    def positive_mean(self, mu: np.ndarray, extra: np.ndarray) -> np.ndarray:
        _, _, one_minus_p0 = _nb_pieces(mu, self._alpha(extra))
        return mu / one_minus_p0

    def loglikeobs(
        self, y: np.ndarray, eta: np.ndarray, extra: np.ndarray
    ) -> np.ndarray:
        return _nb_loglikeobs(y, _mean(eta), self._alpha(extra))

    def score_obs(
        self, y: np.ndarray, eta: np.ndarray, extra: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        alpha = self._alpha(extra)
        d_eta, d_alpha = _nb_score(y, _mean(eta), alpha)
        return d_eta, (alpha * d_alpha)[:, np.newaxis]


@dataclass(frozen=True)
class GeometricFamily:
    """Zero-truncated geometric positive part (NB2 with α = 1).

    With α = 1 the truncated density simplifies to
    ``f⁺(y) = (μ/(1+μ))^(y−1) / (1+μ)`` and ``E[Y | Y > 0] = 1 + μ``.
    """

    @property
    def name(self) -> str:
        return "geometric"

    @property
    def label(self) -> str:
        return "Geometric"

    @property
    def extra_names(self) -> tuple[str, ...]:
        return ()

    def validate_y(self, y: np.ndarray) -> None:
        _validate_count_y(y, "GeometricFamily")

    def start_extra(self) -> np.ndarray:
        return np.empty(0)

    def dispersion(self, extra: np.ndarray) -> float | None:  # noqa: ARG002
        return 1.0

    def prob_zero(self, mu: np.ndarray, extra: np.ndarray) -> np.ndarray:  # noqa: ARG002
        return 1.0 / (1.0 + mu)

    def positive_mean(self, mu: np.ndarray, extra: np.ndarray) -> np.ndarray:  # noqa: ARG002
        return 1.0 + mu

    def loglikeobs(
        self, y: np.ndarray, eta: np.ndarray, extra: np.ndarray  # noqa: ARG002
    ) -> np.ndarray:
        return _nb_loglikeobs(y, _mean(eta), 1.0)

    def score_obs(
        self, y: np.ndarray, eta: np.ndarray, extra: np.ndarray  # noqa: ARG002
    ) -> tuple[np.ndarray, np.ndarray]:
        d_eta, _ = _nb_score(y, _mean(eta), 1.0)
        return d_eta, np.empty((len(y), 0))


# ------------------------------------------------------------------ #
# statsmodels likelihood wrapper
# ------------------------------------------------------------------ #


class ZeroTruncatedCountModel(GenericLikelihoodModel):
    """Log-link zero-truncated count regression for a ``CountFamily``.

    Parameters are ``[β, extra]`` where β multiplies the columns of
    *exog* (intercept included by the caller) and *extra* holds the
    family's nuisance parameters.  The score is analytic; the Hessian
    is a central finite difference of the score, used only by the
    ``"newton"`` optimiser.
    """

    def __init__(
        self,
        endog: np.ndarray,
        exog: np.ndarray,
        family: CountFamily,
        **kwds,
    ) -> None:
        self.family = family
        extra_names = list(family.extra_names) or None
        super().__init__(endog, exog, extra_params_names=extra_names, **kwds)

    def _split(self, params: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        k = self.exog.shape[1]
        params = np.asarray(params, dtype=float)
        return params[:k], params[k:]

    def loglikeobs(self, params: np.ndarray) -> np.ndarray:
        beta, extra = self._split(params)
        return self.family.loglikeobs(self.endog, self.exog @ beta, extra)

    def score_obs(self, params: np.ndarray) -> np.ndarray:
        beta, extra = self._split(params)
        d_eta, d_extra = self.family.score_obs(self.endog, self.exog @ beta, extra)
        return np.column_stack([d_eta[:, np.newaxis] * self.exog, d_extra])

    def score(self, params: np.ndarray) -> np.ndarray:
        return self.score_obs(params).sum(axis=0)

    def hessian(self, params: np.ndarray) -> np.ndarray:
        H = approx_fprime(np.asarray(params, dtype=float), self.score, centered=True)
        return (H + H.T) / 2.0


# ------------------------------------------------------------------ #
# Family resolution
# ------------------------------------------------------------------ #

_FAMILIES: dict[str, type] = {}
"""Registry mapping family name strings to concrete CountFamily classes."""


def register_family(name: str, cls: type) -> None:
    """Register a concrete ``CountFamily`` class under *name*.

    Raises:
        TypeError: If *cls* does not satisfy the ``CountFamily``
            protocol.
    """
    try:
        instance = cls()
    except Exception:  # noqa: BLE001
        msg = f"{cls!r} could not be instantiated for protocol check."
        raise TypeError(msg) from None
    if not isinstance(instance, CountFamily):
        msg = f"{cls!r} does not implement the CountFamily protocol."
        raise TypeError(msg)
    _FAMILIES[name] = cls


def resolve_family(family: str | CountFamily) -> CountFamily:
    """Resolve a family string or instance to a concrete ``CountFamily``.

    Instances pass through unchanged.  Strings are matched
    case-insensitively against the registry.

    Raises:
        ConfigurationError: If *family* is not a registered name.
    """
    if isinstance(family, CountFamily):
        return family
    key = str(family).strip().lower()
    if key not in _FAMILIES:
        available = ", ".join(sorted(_FAMILIES)) or "(none registered)"
        msg = f"Unknown family {family!r}.  Available families: {available}."
        raise ConfigurationError(msg)
    instance: CountFamily = _FAMILIES[key]()
    return instance


register_family("poisson", PoissonFamily)
register_family("negbin", NegativeBinomialFamily)
register_family("negative_binomial", NegativeBinomialFamily)
register_family("geometric", GeometricFamily)
