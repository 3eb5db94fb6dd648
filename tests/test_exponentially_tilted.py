import numpy as np
import pytest
from scipy import integrate

from censorkit.censoring import SolverMethod, primary_censored
from censorkit.distributions import ExponentiallyTilted, gamma


@pytest.mark.parametrize("r", [-3.0, -0.2, 1e-4, 0.5, 4.0])
def test_density_and_moments_match_quadrature(r: float) -> None:
    dist = ExponentiallyTilted(1.0, 3.0, r)
    total, _ = integrate.quad(dist.pdf, 1.0, 3.0)
    assert total == pytest.approx(1.0, rel=1e-9)
    mean, _ = integrate.quad(lambda x: x * dist.pdf(x), 1.0, 3.0)
    assert dist.mean() == pytest.approx(mean, rel=1e-8)
    second, _ = integrate.quad(lambda x: (x - mean) ** 2 * dist.pdf(x), 1.0, 3.0)
    assert dist.var() == pytest.approx(second, rel=1e-6)
    partial, _ = integrate.quad(dist.pdf, 1.0, 2.2)
    assert dist.cdf(2.2) == pytest.approx(partial, rel=1e-9)


@pytest.mark.parametrize("r", [-2.0, 0.0, 1.5])
def test_quantile_inverts_cdf(r: float) -> None:
    dist = ExponentiallyTilted(0.0, 2.0, r)
    p = np.array([0.0, 0.1, 0.5, 0.9, 1.0])
    q = dist.quantile(p)
    assert q[0] == 0.0
    assert q[-1] == 2.0
    assert np.allclose(dist.cdf(q), p, atol=1e-12)


def test_near_zero_rate_is_uniform() -> None:
    tilted = ExponentiallyTilted(0.0, 4.0, 1e-12)
    assert tilted.is_uniform
    assert tilted.pdf(1.0) == pytest.approx(0.25)
    assert tilted.cdf(1.0) == pytest.approx(0.25)
    assert tilted.mean() == 2.0
    assert tilted.mode() == 2.0
    assert tilted.entropy() == pytest.approx(np.log(4.0))


def test_large_rates_stay_finite() -> None:
    growth = ExponentiallyTilted(0.0, 1.0, 800.0)
    decay = ExponentiallyTilted(0.0, 1.0, -800.0)
    assert np.isfinite(growth.logpdf(0.999))
    assert np.isfinite(decay.logcdf(0.001))
    assert growth.mean() == pytest.approx(1.0 - 1.0 / 800.0)
    assert decay.mean() == pytest.approx(1.0 / 800.0)
    assert growth.var() == pytest.approx(1.0 / 800.0**2)
    assert growth.mode() == 1.0
    assert decay.mode() == 0.0
    assert np.isfinite(growth.entropy())


def test_support_and_sampling() -> None:
    dist = ExponentiallyTilted(2.0, 5.0, 0.8)
    assert dist.pdf(1.9) == 0.0
    assert dist.cdf(1.0) == 0.0
    assert dist.cdf(6.0) == 1.0
    draws = dist.rand(5000, random_state=np.random.default_rng(21))
    assert np.all((draws >= 2.0) & (draws <= 5.0))
    assert draws.mean() == pytest.approx(dist.mean(), rel=0.02)


def test_invalid_parameters() -> None:
    with pytest.raises(ValueError):
        ExponentiallyTilted(1.0, 1.0, 0.5)
    with pytest.raises(ValueError):
        ExponentiallyTilted(0.0, 1.0, np.inf)
    with pytest.raises(ValueError):
        ExponentiallyTilted(0.0, 1.0, 0.5).quantile(1.5)


def test_as_primary_event_window() -> None:
    window = ExponentiallyTilted(0.0, 1.0, 2.0)
    dist = primary_censored(gamma(2.0, 1.0), window)
    assert dist.solver is SolverMethod.NUMERIC
    assert dist.param_names[-3:] == ("primary_min", "primary_max", "primary_r")
    draws = dist.rand(20_000, random_state=np.random.default_rng(5))
    assert np.mean(draws <= 2.5) == pytest.approx(dist.cdf(2.5), abs=0.015)
