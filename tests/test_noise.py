from __future__ import annotations

import numpy as np

from mountain.noise import NoiseField, permutation_table


def _points() -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.Generator(np.random.PCG64(11))
    return rng.uniform(-20.0, 20.0, size=200), rng.uniform(-20.0, 20.0, size=200)


def test_evaluate_is_bit_identical_for_same_seed() -> None:
    x, y = _points()
    value_a, (dx_a, dy_a) = NoiseField(1234).evaluate(x, y)
    value_b, (dx_b, dy_b) = NoiseField(1234).evaluate(x, y)

    assert np.array_equal(value_a, value_b)
    assert np.array_equal(dx_a, dx_b)
    assert np.array_equal(dy_a, dy_b)
    assert value_a.tobytes() == value_b.tobytes()


def test_seed_zero_uses_reference_table() -> None:
    table = permutation_table(0)

    assert table.shape == (256,)
    assert table[0] == 151
    assert table[255] == 180
    assert sorted(table.tolist()) == list(range(256))


def test_nonzero_seed_xors_seed_bytes() -> None:
    base = permutation_table(0)
    seeded = permutation_table(0x04030201)

    expected = base ^ np.tile(np.array([1, 2, 3, 4]), 64)
    assert np.array_equal(seeded, expected)


def test_different_seeds_give_different_fields() -> None:
    x, y = _points()
    value_a, _ = NoiseField(1).evaluate(x, y)
    value_b, _ = NoiseField(2).evaluate(x, y)

    assert not np.array_equal(value_a, value_b)


def test_analytic_gradient_matches_finite_difference() -> None:
    x, y = _points()
    field = NoiseField(99)
    eps = 1e-6

    _, (dx, dy) = field.evaluate(x, y)
    fd_x = (field.evaluate(x + eps, y)[0] - field.evaluate(x - eps, y)[0]) / (2.0 * eps)
    fd_y = (field.evaluate(x, y + eps)[0] - field.evaluate(x, y - eps)[0]) / (2.0 * eps)

    assert np.allclose(dx, fd_x, rtol=1e-3, atol=1e-4)
    assert np.allclose(dy, fd_y, rtol=1e-3, atol=1e-4)


def test_scalar_input_returns_scalars_and_stays_finite() -> None:
    value, (dx, dy) = NoiseField(5).evaluate(1.0e6, -3.5e5)

    assert np.ndim(value) == 0
    assert np.isfinite(value)
    assert np.isfinite(dx)
    assert np.isfinite(dy)


def test_lattice_origin_is_zero() -> None:
    # Every corner term vanishes or has a zero offset at integer lattice points.
    value, _ = NoiseField(0).evaluate(0.0, 0.0)

    assert value == 0.0


def test_values_vary_over_a_grid() -> None:
    ys, xs = np.mgrid[0:64, 0:64] / 8.0
    value, (dx, dy) = NoiseField(3).evaluate(xs, ys)

    assert value.shape == (64, 64)
    assert np.isfinite(value).all()
    assert float(np.std(value)) > 0.05
    assert float(np.max(np.hypot(dx, dy))) > 0.0


def test_values_span_roughly_unit_range() -> None:
    rng = np.random.Generator(np.random.PCG64(7))
    x = rng.uniform(-50.0, 50.0, size=200_000)
    y = rng.uniform(-50.0, 50.0, size=200_000)

    value, _ = NoiseField(7).evaluate(x, y)

    assert float(np.max(np.abs(value))) <= 1.05
    assert float(np.max(value)) > 0.9
    assert float(np.min(value)) < -0.9
