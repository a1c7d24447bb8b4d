"""Tests for the average-effect predictor."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from hurdle_bootstrap.effects import (
    average_effect,
    counterfactual_predictions,
    effect_ratio,
    expected_outcome,
)
from hurdle_bootstrap.exceptions import UndefinedEffect
from hurdle_bootstrap.families import PoissonFamily
from hurdle_bootstrap.hurdle import HurdleFit, fit_hurdle
from hurdle_bootstrap.specification import HurdleDesign, ModelSpecification

from _hurdle_data import make_hurdle_data


def _design(data: pd.DataFrame):
    spec = ModelSpecification(
        count_predictors=["Intervention", "Age", "Sex"],
        zero_predictors=["Intervention", "Age"],
        family="poisson",
    )
    prepared = spec.prepare(data)
    return HurdleDesign.from_data(spec, prepared), prepared


@pytest.fixture()
def fitted():
    design, data = _design(make_hurdle_data(n=150))
    return fit_hurdle(design, data), design, data


class TestCounterfactualPredictions:
    def test_table_shape(self, fitted) -> None:
        fit, design, data = fitted
        table = counterfactual_predictions(fit, design, data)
        assert table.shape == (150, 2)
        assert list(table.columns) == ["Control", "Treated"]
        assert table.index.name == "Case"
        assert table.index[0] == 1 and table.index[-1] == 150

    def test_columns_match_forced_predictions(self, fitted) -> None:
        fit, design, data = fitted
        table = counterfactual_predictions(fit, design, data)
        treated = expected_outcome(fit, design, design.with_intervention(data, "Treated"))
        np.testing.assert_allclose(table["Treated"].to_numpy(), treated)

    def test_predictions_positive(self, fitted) -> None:
        fit, design, data = fitted
        table = counterfactual_predictions(fit, design, data)
        assert (table.to_numpy() > 0).all()

    def test_ratio_is_ratio_of_column_means(self, fitted) -> None:
        fit, design, data = fitted
        table = counterfactual_predictions(fit, design, data)
        tau = average_effect(fit, design, data)
        assert tau == pytest.approx(table["Treated"].mean() / table["Control"].mean())


class TestEffectProperties:
    def test_all_positive_sanity(self) -> None:
        """A saturated zero part reduces τ to the positive-part ratio."""
        design, data = _design(make_hurdle_data(n=100))
        fit = HurdleFit(
            family=PoissonFamily(),
            # Huge intercept: P(Y > 0) == 1 to machine precision.
            zero_params=np.array([40.0, 0.0, 0.0]),
            count_params=np.array([1.2, 0.5, -0.1, 0.3]),
            extra_params=np.empty(0),
            zero_names=tuple(design.zero_names),
            count_names=tuple(design.count_names),
            zero_llf=0.0,
            count_llf=0.0,
            n_obs=len(data),
            n_positive=len(data),
        )
        control = design.with_intervention(data, "Control")
        treated = design.with_intervention(data, "Treated")
        np.testing.assert_allclose(
            fit.prob_positive(design.zero_matrix(control)), 1.0, atol=1e-12
        )
        expected = (
            fit.positive_mean(design.count_matrix(treated)).mean()
            / fit.positive_mean(design.count_matrix(control)).mean()
        )
        assert average_effect(fit, design, data) == pytest.approx(expected, rel=1e-12)

    def test_row_order_invariance(self) -> None:
        raw = make_hurdle_data(n=150)
        design, data = _design(raw)
        tau = average_effect(fit_hurdle(design, data), design, data)

        shuffled = raw.sample(frac=1.0, random_state=3)
        design_s, data_s = _design(shuffled)
        tau_s = average_effect(fit_hurdle(design_s, data_s), design_s, data_s)
        assert tau_s == pytest.approx(tau, rel=1e-4)

    def test_no_effect_gives_ratio_near_one(self) -> None:
        design, data = _design(make_hurdle_data(n=2_000, effect=0.0, seed=11))
        tau = average_effect(fit_hurdle(design, data), design, data)
        assert tau == pytest.approx(1.0, abs=0.1)


class TestEffectRatio:
    def test_zero_control_mean(self) -> None:
        table = pd.DataFrame({"Control": [0.0, 0.0], "Treated": [1.0, 2.0]})
        with pytest.raises(UndefinedEffect, match="control is zero"):
            effect_ratio(table)

    def test_non_finite_ratio(self) -> None:
        table = pd.DataFrame({"Control": [np.nan, np.nan], "Treated": [1.0, 2.0]})
        with pytest.raises(UndefinedEffect, match="not finite"):
            effect_ratio(table)

    def test_ratio_value(self) -> None:
        table = pd.DataFrame({"a": [1.0, 3.0], "b": [3.0, 5.0]})
        assert effect_ratio(table) == pytest.approx(2.0)
