import numpy as np
import pytest
from scipy import stats

from censorkit.distfit import continuous_approximation, initial_params_from_data
from censorkit.distributions import (
    IndependentProduct,
    PointMass,
    gamma,
    lognormal,
    normal,
    product_distribution,
    uniform,
)
from censorkit.numerics import log1mexp, logsubexp


def test_parametric_distribution_scalar_and_vector_output() -> None:
    dist = gamma(2.0, 3.0)
    assert isinstance(dist.cdf(1.0), float)
    assert dist.cdf(np.array([1.0, 2.0])).shape == (2,)
    assert dist.named_params() == {"shape": 2.0, "scale": 3.0}
    assert dist.mean() == pytest.approx(6.0)
    assert dist.logccdf(40.0) == pytest.approx(stats.gamma(a=2.0, scale=3.0).logsf(40.0))
    assert dist.insupport(-1.0) is False
    assert dist.with_params((1.0, 1.0)).params == (1.0, 1.0)


def test_uniform_window_bounds() -> None:
    window = uniform(2.0, 5.0)
    assert window.minimum() == 2.0
    assert window.maximum() == 5.0
    assert window.mean() == 3.5


def test_point_mass() -> None:
    point = PointMass(1.5)
    assert point.logpdf(1.5) == 0.0
    assert point.logpdf(1.0) == -np.inf
    assert point.cdf(np.array([1.0, 1.5, 2.0])).tolist() == [0.0, 1.0, 1.0]
    assert point.quantile(0.3) == 1.5
    assert np.all(point.rand(4) == 1.5)
    assert point.var() == 0.0
    with pytest.raises(ValueError):
        PointMass(np.inf)


def test_independent_product() -> None:
    product = product_distribution([normal(0.0, 1.0), lognormal(0.0, 0.5)])
    assert isinstance(product, IndependentProduct)
    x = [0.3, 1.2]
    assert product.logpdf(x) == pytest.approx(normal().logpdf(0.3) + lognormal(0.0, 0.5).logpdf(1.2))
    assert product.pdf(x) == pytest.approx(np.exp(product.logpdf(x)))
    assert product.rand(10, random_state=0).shape == (10, 2)
    assert product.rand(random_state=0).shape == (2,)
    assert product.insupport([0.0, 1.0])
    assert not product.insupport([0.0, -1.0])
    with pytest.raises(ValueError):
        IndependentProduct(())


def test_log_space_helpers() -> None:
    assert logsubexp(np.log(3.0), np.log(1.0)) == pytest.approx(np.log(2.0))
    assert logsubexp(0.0, -np.inf) == 0.0
    assert logsubexp(-1.0, -1.0 + 1e-15) == -np.inf
    assert log1mexp(-1e-20) == pytest.approx(np.log(1e-20))
    assert log1mexp(-50.0) == pytest.approx(-np.exp(-50.0))


def test_continuous_approximation_uses_interval_midpoints() -> None:
    data = np.array([0.0, 1.0, 2.0])
    assert np.allclose(continuous_approximation(data, 1.0), [0.5, 1.5, 2.5])
    assert np.allclose(continuous_approximation(data, 1.0, primary_offset=0.5), [0.0, 1.0, 2.0])
    explicit = continuous_approximation(np.array([0.0, 2.0]), [0.0, 2.0, 6.0])
    assert np.allclose(explicit, [1.0, 4.0])


@pytest.mark.parametrize(
    "family, truth",
    [("gamma", gamma(3.0, 2.0)), ("lognormal", lognormal(1.0, 0.4)), ("normal", normal(5.0, 2.0))],
)
def test_moment_initial_values_are_close(family: str, truth) -> None:
    sample = truth.rand(5000, random_state=np.random.default_rng(17))
    initial = initial_params_from_data(family, sample)
    assert np.allclose(initial, truth.params, rtol=0.1)


def test_weibull_and_uniform_initial_values() -> None:
    sample = np.random.default_rng(5).weibull(2.0, size=4000) * 3.0
    shape, scale = initial_params_from_data("weibull", sample)
    assert shape == pytest.approx(2.0, rel=0.1)
    assert scale == pytest.approx(3.0, rel=0.1)
    lower, upper = initial_params_from_data("uniform", np.array([1.0, 2.0, 3.0]))
    assert lower < 1.0 and upper > 3.0
    with pytest.raises(ValueError, match="provide initial parameters"):
        initial_params_from_data("exponentially_tilted", np.array([1.0]))
