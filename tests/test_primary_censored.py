import numpy as np
import pytest

from censorkit.censoring import (
    PrimaryCensored,
    SolverMethod,
    primary_censored,
    register_analytical_cdf,
)
from censorkit.censoring.solvers import analytical_pairs, numeric_cdf, unregister_analytical_cdf
from censorkit.distributions import (
    PointMass,
    exponential,
    gamma,
    lognormal,
    normal,
    uniform,
    weibull,
)

GRID = np.array([0.05, 0.5, 1.0, 2.0, 3.5, 6.0, 12.0])


@pytest.mark.parametrize(
    "delay",
    [gamma(2.5, 1.8), lognormal(1.0, 0.5), weibull(1.5, 3.0), exponential(2.0)],
    ids=["gamma", "lognormal", "weibull", "exponential"],
)
def test_analytical_cdf_matches_quadrature(delay) -> None:
    analytic = primary_censored(delay, uniform(0.0, 1.0))
    numeric = primary_censored(delay, uniform(0.0, 1.0), force_numeric=True)
    assert analytic.solver is SolverMethod.ANALYTICAL
    assert numeric.solver is SolverMethod.NUMERIC
    assert np.max(np.abs(analytic.cdf(GRID) - numeric.cdf(GRID))) < 1e-6
    assert np.allclose(analytic.pdf(GRID), numeric.pdf(GRID), atol=1e-6)


def test_analytical_cdf_with_shifted_wide_window() -> None:
    delay = gamma(3.0, 0.7)
    window = uniform(1.0, 4.0)
    analytic = primary_censored(delay, window)
    numeric = primary_censored(delay, window, force_numeric=True)
    x = np.linspace(1.1, 12.0, 9)
    assert np.allclose(analytic.cdf(x), numeric.cdf(x), atol=1e-6)


@pytest.mark.parametrize(
    "delay",
    [gamma(2.5, 1.8), lognormal(1.0, 0.5), weibull(1.5, 3.0), exponential(2.0)],
    ids=["gamma", "lognormal", "weibull", "exponential"],
)
def test_analytical_survival_function_matches_quadrature(delay) -> None:
    analytic = primary_censored(delay, uniform(0.0, 1.0))
    numeric = primary_censored(delay, uniform(0.0, 1.0), force_numeric=True)
    x = np.append(GRID, [20.0, 40.0])
    assert np.allclose(analytic.logccdf(x), numeric.logccdf(x), atol=1e-6)
    assert np.allclose(analytic.cdf(GRID) + analytic.ccdf(GRID), 1.0, atol=1e-9)


def test_survival_function_with_shifted_wide_window() -> None:
    delay = gamma(3.0, 0.7)
    window = uniform(1.0, 4.0)
    analytic = primary_censored(delay, window)
    numeric = primary_censored(delay, window, force_numeric=True)
    x = np.array([0.5, 1.5, 3.0, 6.0, 30.0])
    assert np.allclose(analytic.logccdf(x), numeric.logccdf(x), atol=1e-6)
    assert analytic.logccdf(0.5) == 0.0
    assert analytic.ccdf(np.inf) == 0.0


def test_cdf_is_monotone_and_bounded() -> None:
    dist = primary_censored(gamma(2.0, 1.0), uniform(0.0, 2.0))
    x = np.linspace(-1.0, 20.0, 200)
    values = dist.cdf(x)
    assert np.all(np.diff(values) >= -1e-12)
    assert values[0] == 0.0
    assert values[-1] == pytest.approx(1.0, abs=1e-6)
    assert dist.cdf(0.0) == 0.0
    assert dist.logcdf(-0.5) == -np.inf


def test_point_mass_primary_is_exact_shift() -> None:
    delay = gamma(2.0, 1.5)
    dist = primary_censored(delay, PointMass(0.0))
    x = np.array([0.3, 1.0, 4.0])
    assert np.array_equal(dist.cdf(x), delay.cdf(x))
    assert np.array_equal(dist.logpdf(x), delay.logpdf(x))

    shifted = primary_censored(delay, PointMass(2.0))
    assert np.allclose(shifted.cdf(x + 2.0), delay.cdf(x))
    assert shifted.quantile(0.5) == pytest.approx(delay.quantile(0.5) + 2.0)


def test_unbounded_primary_rejected() -> None:
    with pytest.raises(ValueError, match="bounded support"):
        PrimaryCensored(gamma(2.0), exponential(1.0))


def test_negative_delay_support_rejected() -> None:
    with pytest.raises(ValueError, match="non-negative"):
        primary_censored(normal(0.0, 1.0))


def test_pair_without_formula_falls_back_to_quadrature() -> None:
    delay = gamma(2.0, 1.0)

    class Triangular:
        """Bounded window with a density rising over [0, 1]."""

        family = "triangular"
        params = ()

        def minimum(self) -> float:
            return 0.0

        def maximum(self) -> float:
            return 1.0

        def logpdf(self, x):
            arr = np.asarray(x, dtype=float)
            with np.errstate(divide="ignore"):
                return np.where((arr >= 0) & (arr <= 1), np.log(2.0 * arr), -np.inf)

        def mean(self) -> float:
            return 2.0 / 3.0

    fallback = primary_censored(delay, Triangular())
    assert fallback.solver is SolverMethod.NUMERIC
    assert 0.0 < fallback.cdf(2.0) < delay.cdf(2.0)


def test_registered_formula_is_used() -> None:
    calls: list[int] = []

    @register_analytical_cdf("normal", "point_mass")
    def _never_used(delay, primary, x):  # pragma: no cover - registration only
        return np.zeros_like(x)

    @register_analytical_cdf("exponential", "uniform", overwrite=True)
    def exponential_uniform(delay, primary, x):
        calls.append(len(x))
        return numeric_cdf(delay, primary, x)

    try:
        assert ("normal", "point_mass") in analytical_pairs()
        dist = primary_censored(exponential(1.5))
        assert dist.solver is SolverMethod.ANALYTICAL
        assert dist.cdf(np.array([0.5, 2.0])).shape == (2,)
        assert calls == [2]
        with pytest.raises(ValueError):
            register_analytical_cdf("normal", "point_mass", _never_used)
    finally:
        unregister_analytical_cdf("normal", "point_mass")
        import censorkit.censoring.solvers as solvers

        solvers._register_builtin_formulas()

    assert ("normal", "point_mass") not in analytical_pairs()


def test_quantile_inverts_cdf() -> None:
    dist = primary_censored(lognormal(1.0, 0.5), uniform(0.0, 1.0))
    for p in (0.05, 0.5, 0.9):
        q = dist.quantile(p)
        assert dist.cdf(q) == pytest.approx(p, abs=1e-6)
    assert dist.quantile(0.0) == dist.minimum()
    assert dist.quantile(1.0) == np.inf
    values = dist.quantile(np.array([0.25, 0.75]))
    assert values.shape == (2,)
    assert values[0] < values[1]


def test_rand_matches_mean() -> None:
    dist = primary_censored(gamma(2.0, 1.5), uniform(0.0, 1.0))
    draws = dist.rand(20_000, random_state=np.random.default_rng(7))
    assert draws.min() > 0.0
    assert draws.mean() == pytest.approx(dist.mean(), rel=0.03)
    assert isinstance(dist.rand(random_state=1), float)


def test_parameter_plumbing() -> None:
    dist = primary_censored(gamma(2.0, 1.0), uniform(0.0, 1.0))
    assert dist.params == (2.0, 1.0, 0.0, 1.0)
    assert dist.param_names == ("shape", "scale", "primary_lower", "primary_upper")
    updated = dist.with_params((3.0, 0.5, 0.0, 2.0))
    assert updated.dist.params == (3.0, 0.5)
    assert updated.primary_event.maximum() == 2.0
    bijector = dist.parameter_bijector()
    theta = np.array(dist.params)
    assert np.allclose(bijector.inverse(bijector.forward(theta)), theta)
