import numpy as np
import pandas as pd
import pytest

from censorkit.bijectors import Identity
from censorkit.censoring import discretise, double_interval_censored, primary_censored, truncated
from censorkit.config import get_config
from censorkit.core import BoundaryError, FitConvergenceError, FitResult
from censorkit.distfit import (
    OptimizerResult,
    ScipyOptimizer,
    fit,
    fit_from_data,
    fit_mle,
    validate_data,
    validate_weights,
)
from censorkit.distfit.optimization import FittingProblem
from censorkit.distributions import IndependentProduct, PointMass, exponential, gamma, normal, uniform

NELDER_MEAD = ScipyOptimizer(method="Nelder-Mead", options={"xatol": 1e-6, "fatol": 1e-6, "maxiter": 4000})
TIGHT_NELDER_MEAD = ScipyOptimizer(
    method="Nelder-Mead", options={"xatol": 1e-10, "fatol": 1e-12, "maxiter": 10_000}
)


class _StayPut:
    """Optimizer stub reporting the starting point as the optimum."""

    def __init__(self, converged: bool = True, point_offset: float = 0.0) -> None:
        self.converged = converged
        self.point_offset = point_offset

    def solve(self, objective, x0):
        point = np.asarray(x0, dtype=float) + self.point_offset
        value = objective(point) if np.all(np.isfinite(point)) else np.nan
        return OptimizerResult(
            point=point,
            objective_value=value,
            converged=self.converged,
            status=0 if self.converged else 2,
            message="stub",
            iterations=0,
        )


@pytest.fixture(scope="module")
def gamma_sample() -> np.ndarray:
    truth = discretise(primary_censored(gamma(2.5, 1.8), uniform(0.0, 1.0)), 0.15)
    return truth.rand(1500, random_state=np.random.default_rng(12345))


def test_recovers_gamma_parameters(gamma_sample: np.ndarray) -> None:
    template = discretise(primary_censored(gamma(1.0, 1.0), uniform(0.0, 1.0)), 0.15)
    fitted, result = fit_from_data(template, gamma_sample, optimizer=NELDER_MEAD, return_fit_object=True)
    shape, scale = fitted.dist.dist.params
    assert shape == pytest.approx(2.5, rel=0.2)
    assert scale == pytest.approx(1.8, rel=0.2)
    assert result.converged
    assert result.status == "converged"
    assert list(result.parameters) == ["shape", "scale"]
    assert fitted.boundaries == 0.15


def test_unit_weights_reproduce_unweighted_fit(gamma_sample: np.ndarray) -> None:
    template = discretise(primary_censored(gamma(2.0, 2.0), uniform(0.0, 1.0)), 0.15)
    data = gamma_sample[:300]
    plain = fit(template, data, optimizer=NELDER_MEAD)
    weighted = fit(template, data, weights=np.ones(data.size), optimizer=NELDER_MEAD)
    assert np.allclose(plain.params, weighted.params, atol=1e-6)


def test_zero_weight_observation_is_ignored() -> None:
    rng = np.random.default_rng(8)
    data = rng.normal(3.0, 2.0, size=200)
    with_outlier = np.append(data, 500.0)
    weights = np.append(np.ones(data.size), 0.0)
    reference = fit(normal(0.0, 1.0), data, optimizer=NELDER_MEAD)
    ignored = fit(normal(0.0, 1.0), with_outlier, weights=weights, optimizer=NELDER_MEAD)
    assert np.allclose(reference.params, ignored.params, atol=1e-6)


def test_integer_weights_match_repeated_data() -> None:
    data = np.array([1.0, 2.0, 2.0, 3.0, 5.0])
    unique = np.array([1.0, 2.0, 3.0, 5.0])
    repeated = fit(normal(0.0, 1.0), data, optimizer=TIGHT_NELDER_MEAD)
    weighted = fit(normal(0.0, 1.0), unique, weights=[1, 2, 1, 1], optimizer=TIGHT_NELDER_MEAD)
    assert np.allclose(repeated.params, weighted.params, atol=1e-5)


def test_default_optimizer_on_continuous_normal() -> None:
    rng = np.random.default_rng(2024)
    data = rng.normal(3.0, 2.0, size=500)
    fitted, result = fit_mle(normal(0.0, 1.0), data, return_fit_object=True)
    loc, scale = fitted.params
    assert loc == pytest.approx(np.mean(data), rel=1e-3)
    assert scale == pytest.approx(np.std(data, ddof=1), rel=1e-3)
    assert isinstance(result, FitResult)
    assert result.diagnostics["optimizer"] == "ScipyOptimizer"

    frame = result.to_frame()
    assert isinstance(frame, pd.DataFrame)
    assert list(frame["parameter"]) == ["loc", "scale"]
    assert frame.loc[0, "std_error"] == pytest.approx(scale / np.sqrt(data.size), rel=0.05)
    assert bool(frame["converged"].all())


def test_gradient_option() -> None:
    data = np.random.default_rng(3).exponential(2.0, size=200)
    fitted = fit(exponential(1.0), data, gradient="2-point")
    assert fitted.params[0] == pytest.approx(np.mean(data), rel=1e-2)
    with pytest.raises(ValueError):
        fit(exponential(1.0), data, optimizer=_StayPut(), gradient="2-point")


def test_off_grid_data_raises_boundary_error() -> None:
    template = discretise(gamma(2.0, 1.0), 1.0)
    with pytest.raises(BoundaryError):
        fit(template, [1.0, 2.5, 3.0])


def test_non_convergence_raises_or_warns() -> None:
    data = np.array([0.5, 1.0, 2.0])
    with pytest.raises(FitConvergenceError, match="Retcode: 2"):
        fit(gamma(2.0, 1.0), data, optimizer=_StayPut(converged=False))

    with pytest.warns(RuntimeWarning, match="failed to converge"):
        fitted, result = fit(
            gamma(2.0, 1.0),
            data,
            optimizer=_StayPut(converged=False),
            on_failure="warn",
            return_fit_object=True,
        )
    assert result.status == "not-converged"
    assert not result.converged
    assert result.covariance is None
    assert fitted.params == pytest.approx((2.0, 1.0))

    with pytest.raises(ValueError):
        fit(gamma(2.0, 1.0), data, on_failure="ignore")


def test_non_finite_optimum_falls_back_to_initial_parameters() -> None:
    with pytest.warns(RuntimeWarning, match="falling back"):
        fitted, result = fit(
            gamma(2.0, 1.0),
            [0.5, 1.0, 2.0],
            optimizer=_StayPut(point_offset=np.nan),
            return_fit_object=True,
        )
    assert fitted.params == (2.0, 1.0)
    assert result.status == "fallback-initial"
    assert not result.converged


def test_objective_penalises_domain_errors() -> None:
    def build(theta):
        if theta[0] < 0:
            raise ValueError("negative")
        return normal(float(theta[0]), 1.0)

    problem = FittingProblem(
        initial=np.array([1.0]),
        build=build,
        log_likelihood=lambda dist: float(np.sum(dist.logpdf(np.array([1.0, 2.0])))),
        bijector=Identity(),
    )
    assert problem.objective(np.array([-1.0])) == get_config().penalty
    assert problem.objective(np.array([1.5])) < get_config().penalty

    def off_grid(theta):
        return discretise(normal(float(theta[0]), 1.0), 1.0)

    boundary = FittingProblem(
        initial=np.array([0.0]),
        build=off_grid,
        log_likelihood=lambda dist: float(dist.logpdf(0.5)),
        bijector=Identity(),
    )
    with pytest.raises(BoundaryError):
        boundary.objective(np.array([0.0]))


def test_heterogeneous_intervals_and_truncation() -> None:
    rng = np.random.default_rng(99)
    delay = gamma(2.0, 1.5)
    coarse = double_interval_censored(delay, upper=12.0, interval=1.0).rand(300, random_state=rng)
    fine = double_interval_censored(delay, upper=8.0, interval=0.5).rand(300, random_state=rng)
    data = np.concatenate([coarse, fine])
    intervals = [1.0] * 300 + [0.5] * 300
    uppers = [12.0] * 300 + [8.0] * 300

    template = primary_censored(gamma(1.5, 1.0))
    fitted, result = fit(
        template,
        data,
        intervals=intervals,
        uppers=uppers,
        optimizer=NELDER_MEAD,
        return_fit_object=True,
    )
    assert isinstance(fitted, IndependentProduct)
    assert len(fitted) == data.size
    assert result.diagnostics["heterogeneous"]
    assert result.diagnostics["n_components"] == 2
    assert fitted.components[0] is fitted.components[1]
    assert fitted.components[0].boundaries == 1.0
    assert fitted.components[-1].dist.upper == 8.0
    assert result.parameters["shape"] == pytest.approx(2.0, rel=0.25)
    assert result.parameters["scale"] == pytest.approx(1.5, rel=0.25)


def test_heterogeneous_primary_events() -> None:
    data = np.array([1.0, 2.5, 4.0])
    primaries = [PointMass(0.0), PointMass(0.5), PointMass(1.0)]
    template = primary_censored(gamma(2.0, 1.0), PointMass(0.0))
    fitted, result = fit(template, data, primary_dists=primaries, optimizer=_StayPut(), return_fit_object=True)
    delay = gamma(2.0, 1.0)
    expected = delay.logpdf(1.0) + delay.logpdf(2.0) + delay.logpdf(3.0)
    assert result.log_likelihood == pytest.approx(expected)
    assert len(fitted) == 3


def test_free_primary_parameters_are_named() -> None:
    template = primary_censored(gamma(2.0, 1.0), uniform(0.0, 1.0))
    _, result = fit(
        template,
        [1.2, 2.0, 3.1],
        primary_init=(0.0, 1.5),
        optimizer=_StayPut(),
        return_fit_object=True,
    )
    assert list(result.parameters) == ["shape", "scale", "primary_lower", "primary_upper"]
    assert result.parameters["primary_upper"] == pytest.approx(1.5)
    with pytest.raises(ValueError):
        fit(gamma(2.0, 1.0), [1.0, 2.0], fit_primary=True)


def test_template_layers_must_be_in_order() -> None:
    wrong = truncated(discretise(primary_censored(gamma(2.0, 1.0)), 1.0), upper=10.0)
    with pytest.raises(ValueError, match="nested"):
        fit(wrong, [1.0, 2.0])


def test_sequence_arguments_must_match_data_length() -> None:
    template = primary_censored(gamma(2.0, 1.0))
    with pytest.raises(ValueError):
        fit(template, [1.0, 2.0], intervals=[1.0, 1.0, 1.0])
    with pytest.raises(ValueError):
        fit(template, [1.0, 2.0], uppers=[10.0])
    with pytest.raises(ValueError):
        fit(template, [1.0, 2.0], delay_init=(1.0,))


@pytest.mark.parametrize(
    "data, message",
    [
        ([], "Data cannot be empty"),
        ([1.0, np.inf], "All data values must be finite"),
    ],
)
def test_validate_data(data, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        validate_data(data)


@pytest.mark.parametrize(
    "weights, message",
    [
        ([1.0], "Weights must have same length as data"),
        ([1.0, np.nan], "All weights must be finite"),
        ([1.0, -1.0], "All weights must be non-negative"),
        ([0.0, 0.0], "At least one weight must be positive"),
    ],
)
def test_validate_weights(weights, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        validate_weights(weights, np.array([1.0, 2.0]))
