"""Average-effect predictor.

For a fitted hurdle model the expected outcome of a record with
covariates x is

    E[Y | x] = P(Y > 0 | x) · E[Y | Y > 0, x].

The causal contrast is obtained by g-computation: every record in the
sample is assigned the control level, then the treated level, with
its other covariates unchanged, and the expected outcomes are
averaged over the sample.  The effect is the ratio

    τ = mean E[Y | x, treated] / mean E[Y | x, control].
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from .exceptions import UndefinedEffect
from .hurdle import HurdleFit
from .specification import HurdleDesign


def expected_outcome(
    fit: HurdleFit, design: HurdleDesign, data: pd.DataFrame
) -> np.ndarray:
    """Per-record ``E[Y | x]`` under the covariates in *data*."""
    return fit.predict(design.zero_matrix(data), design.count_matrix(data))


def counterfactual_predictions(
    fit: HurdleFit, design: HurdleDesign, data: pd.DataFrame
) -> pd.DataFrame:
    """Predicted expected outcome of every record under each level.

    Returns:
        DataFrame indexed by ``Case`` (1..N, in the row order of
        *data*) with one column per intervention level, control first.
    """
    columns = {
        level: expected_outcome(fit, design, design.with_intervention(data, level))
        for level in design.levels
    }
    table = pd.DataFrame(columns, columns=list(design.levels))
    table.index = pd.RangeIndex(1, len(data) + 1, name="Case")
    return table


def effect_ratio(predictions: pd.DataFrame) -> float:
    """Ratio of the column means of a prediction table (treated / control).

    Raises:
        UndefinedEffect: If the control mean is zero or the ratio is
            not finite.
    """
    control, treated = predictions.columns[0], predictions.columns[1]
    gamma_control = np.float64(predictions[control].mean())
    gamma_treated = np.float64(predictions[treated].mean())
    if gamma_control == 0.0:
        raise UndefinedEffect("mean predicted outcome under control is zero.")
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        ratio = gamma_treated / gamma_control
    if not np.isfinite(ratio):
        raise UndefinedEffect(
            "effect ratio is not finite "
            f"({float(gamma_treated)!r} / {float(gamma_control)!r})."
        )
    return float(ratio)


def average_effect(fit: HurdleFit, design: HurdleDesign, data: pd.DataFrame) -> float:
    """Average multiplicative effect τ of the intervention on *data*.

    Raises:
        UndefinedEffect: See :func:`effect_ratio`.
    """
    return effect_ratio(counterfactual_predictions(fit, design, data))


__all__ = [
    "average_effect",
    "counterfactual_predictions",
    "effect_ratio",
    "expected_outcome",
]
