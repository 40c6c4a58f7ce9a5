
import numpy as np
import numpy.testing as npt
import pytest

from pygridmath.grid import UniformGrid
from pygridmath.differential import (
    compute_gradient, compute_gradient_conditionally, compute_jacobian,
    compute_curl_from_jacobian, compute_laplacian,
)


def linear_field(shape, spacing, coefficients):
    grid = UniformGrid.scalar(shape, spacing=spacing)
    grid.field[...] = np.dot(grid.positions, coefficients)
    return grid


def test_gradient_constant(parallel):
    values = UniformGrid.scalar((5, 4, 6)).fill(3.5)
    gradient = values.like(sample_shape=(3,))
    compute_gradient(gradient, values, parallel)
    npt.assert_allclose(gradient.field, 0)


def test_gradient_linear(parallel):
    """Linear fields are differentiated exactly, including on the boundary"""
    values = linear_field((5, 6, 7), (0.5, 1, 2), [1, -2, 3])
    gradient = values.like(sample_shape=(3,))
    compute_gradient(gradient, values, parallel)
    npt.assert_allclose(gradient.field, np.broadcast_to([1, -2, 3], gradient.field.shape))


def test_gradient_degenerate():
    """Derivatives along a degenerate axis are zero, rather than undefined"""
    values = linear_field((5, 5, 1), (1, 1, 0), [1, 1, 0])
    gradient = values.like(sample_shape=(3,))
    compute_gradient(gradient, values)
    npt.assert_allclose(gradient.field[..., 2], 0)
    npt.assert_allclose(gradient.field[..., :2], 1)


def test_gradient_in_place():
    values = UniformGrid.vector((3, 3, 3))
    with pytest.raises(AssertionError):
        compute_gradient(values, values)


def test_gradient_conditionally(parallel):
    values = linear_field((5, 3, 3), (1, 1, 1), [2, 0, 0])
    values.field[2, :, :] = UniformGrid.INVALID
    values.field[4, 1, 1] = UniformGrid.INVALID
    gradient = values.like(sample_shape=(3,))
    compute_gradient_conditionally(gradient, values, parallel)
    g = gradient.field[..., 0]

    # invalid samples have an invalid gradient
    assert np.all(np.isnan(g[2]))
    assert np.isnan(g[4, 1, 1])
    # samples adjacent to invalid data fall back to a one-sided difference
    npt.assert_allclose(g[1], 2)
    npt.assert_allclose(g[3, 0, 0], 2)
    # no valid neighbor along x at all
    assert np.isnan(g[3, 1, 1])
    # domain boundary
    npt.assert_allclose(g[0], 2)
    npt.assert_allclose(g[4, 0, 0], 2)
    # along y, the field is constant
    npt.assert_allclose(gradient.field[0, :, :, 1], 0)
    # the only neighbor along y is invalid
    assert np.isnan(gradient.field[4, 0, 1, 1])


def test_gradient_conditionally_matches_gradient():
    values = linear_field((4, 5, 6), (1, 0.5, 0.25), [1, 2, 3])
    g0 = values.like(sample_shape=(3,))
    g1 = values.like(sample_shape=(3,))
    compute_gradient(g0, values)
    compute_gradient_conditionally(g1, values)
    npt.assert_allclose(g0.field, g1.field)


def test_jacobian_curl(parallel):
    """curl of (y, -x, 0) is (0, 0, -2)"""
    vectors = UniformGrid.vector((6, 5, 4), spacing=(0.5, 0.5, 0.5))
    p = vectors.positions
    vectors.field[..., 0] = p[..., 1]
    vectors.field[..., 1] = -p[..., 0]

    jacobian = vectors.like(sample_shape=(3, 3))
    compute_jacobian(jacobian, vectors, parallel)
    npt.assert_allclose(jacobian.field[..., 1, 0], 1)
    npt.assert_allclose(jacobian.field[..., 0, 1], -1)

    curl = vectors.like()
    compute_curl_from_jacobian(curl, jacobian)
    npt.assert_allclose(curl.field, np.broadcast_to([0, 0, -2], curl.field.shape))


def test_laplacian_quadratic(parallel):
    """Laplacian of |x|^2 is 6 in each component, also on the boundary"""
    vectors = UniformGrid.vector((5, 6, 7), spacing=(0.5, 0.25, 1))
    r2 = (vectors.positions ** 2).sum(axis=-1)
    vectors.field[...] = r2[..., None] * [1, 2, 3]
    laplacian = vectors.like()
    compute_laplacian(laplacian, vectors, parallel)
    npt.assert_allclose(laplacian.field, np.broadcast_to([6, 12, 18], laplacian.field.shape))


def test_laplacian_face_stencil():
    """Normal second derivative on a face is that of the adjacent interior layer"""
    vectors = UniformGrid.vector((5, 3, 3))
    vectors.field[:, :, :, 0] = np.array([0, 0, 1, 5, 2])[:, None, None]
    laplacian = vectors.like()
    compute_laplacian(laplacian, vectors)
    l = laplacian.field[:, 1, 1, 0]
    npt.assert_allclose(l, [1, 1, 3, -7, -7])


def test_laplacian_degenerate():
    """Curvature along an axis with zero spacing is ignored"""
    vectors = UniformGrid.vector((5, 5, 3), spacing=(1, 1, 0))
    ix, iy, iz = np.indices(vectors.shape)
    vectors.field[..., 0] = ix ** 2 + iz ** 2
    vectors.field[..., 1] = iy ** 2 - 5 * iz ** 2
    laplacian = vectors.like()
    compute_laplacian(laplacian, vectors)
    assert np.all(np.isfinite(laplacian.field))
    npt.assert_allclose(laplacian.field, np.broadcast_to([2, 2, 0], laplacian.field.shape))
