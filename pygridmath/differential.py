"""Finite difference operators on uniform grids

All operators use centered differences in the interior of the domain,
and fall back to one-sided or extrapolated differences on the faces of the domain.
Axes with degenerate spacing produce zero derivatives, rather than dividing by zero.

Every operator writes into a caller-provided output grid of matching shape,
and decomposes its work into independent ranges along the z-axis;
since every range writes a disjoint part of the output from a read-only input,
no synchronisation between ranges is required.
"""

import numpy as np

from pygridmath.grid import UniformGrid
from pygridmath.parallel import as_parallel


def _along(a, axis, ndim):
    """Reshape 1d array `a` to broadcast along `axis` of an ndim-array"""
    shape = [1] * ndim
    shape[axis] = len(a)
    return np.reshape(a, shape)


def _indices(values, axis, start, stop):
    """Indices along `axis` covered by the z-range [start, stop), and the block to take neighbors from"""
    if axis == 2:
        return np.arange(start, stop), values
    return np.arange(values.shape[axis]), values[:, :, start:stop]


def _first_difference(values, axis, reciprocal, start, stop):
    """First derivative along an axis, for the z-range [start, stop)

    Neighbor indices are clamped to the domain, which turns the centered difference
    into a one-sided difference on the faces normal to `axis`
    """
    n = values.shape[axis]
    k, block = _indices(values, axis, start, stop)
    plus = np.minimum(k + 1, n - 1)
    minus = np.maximum(k - 1, 0)
    span = plus - minus
    # span is only zero along an axis with a single sample
    scale = np.zeros(len(k))
    np.divide(reciprocal, span, out=scale, where=span > 0)
    d = np.take(block, plus, axis=axis) - np.take(block, minus, axis=axis)
    return d * _along(scale, axis, d.ndim)


def _second_difference(values, axis, reciprocal2, start, stop):
    """Second derivative along an axis, for the z-range [start, stop)

    On the faces, the stencil is shifted one layer inward,
    extrapolating the curvature of the interior onto the boundary
    """
    n = values.shape[axis]
    k, block = _indices(values, axis, start, stop)
    center = np.clip(k, 1, n - 2)
    d = np.take(block, center + 1, axis=axis) + np.take(block, center - 1, axis=axis) - \
        2 * np.take(block, center, axis=axis)
    return d * reciprocal2


def _conditional_difference(values, axis, reciprocal, start, stop):
    """First derivative along an axis, tolerating invalid samples, for the z-range [start, stop)

    A neighbor participates only if it lies inside the domain and is valid.
    """
    n = values.shape[axis]
    k, block = _indices(values, axis, start, stop)
    center = values[:, :, start:stop]
    plus = np.minimum(k + 1, n - 1)
    minus = np.maximum(k - 1, 0)
    upper = np.take(block, plus, axis=axis)
    lower = np.take(block, minus, axis=axis)
    has_upper = _along(k < n - 1, axis, center.ndim) & ~UniformGrid.is_invalid(upper)
    has_lower = _along(k > 0, axis, center.ndim) & ~UniformGrid.is_invalid(lower)
    upper = np.where(has_upper, upper, center)
    lower = np.where(has_lower, lower, center)
    span = has_upper.astype(np.int8) + has_lower.astype(np.int8)
    with np.errstate(divide='ignore', invalid='ignore'):
        d = (upper - lower) * reciprocal / span
    valid = (span > 0) & ~UniformGrid.is_invalid(center)
    return np.where(valid, d, UniformGrid.INVALID)


def _check_operands(output, input, sample_in, sample_out):
    assert output.shape_matches(input), 'Grid shapes do not match'
    assert output.is_allocated, 'Output grid is not fully allocated'
    assert input.sample_shape == sample_in, f'Input samples should be of shape {sample_in}'
    assert output.sample_shape == sample_out, f'Output samples should be of shape {sample_out}'
    assert not np.shares_memory(output.buffer, input.buffer), 'Operators can not act in place'


def compute_gradient(gradient: UniformGrid, values: UniformGrid, parallel=None):
    """Compute gradient of a scalar field

    Parameters
    ----------
    gradient : UniformGrid
        (output) vector grid; component a is the partial derivative d values / d a
    values : UniformGrid
        scalar grid; its spacing determines the differentiation
    parallel : ParallelFor, optional
    """
    _check_operands(gradient, values, (), (3,))
    v = values.field
    r = values.reciprocal_spacing

    def slab(start, stop):
        gradient.field[:, :, start:stop] = np.stack(
            [_first_difference(v, a, r[a], start, stop) for a in range(3)],
            axis=-1
        )
    as_parallel(parallel).map(slab, 0, values.shape[2])


def compute_gradient_conditionally(gradient: UniformGrid, values: UniformGrid, parallel=None):
    """Compute gradient of a scalar field which may contain invalid samples

    Such a field typically is the union of several disjoint regions over which it is defined.
    Each component of the gradient is resolved independently;
    using a centered difference if both neighbors along that axis are available,
    a one-sided difference if only one is, and the invalid value if neither is,
    or if the sample itself is invalid.

    Parameters
    ----------
    gradient : UniformGrid
        (output) vector grid
    values : UniformGrid
        scalar grid, with UniformGrid.INVALID marking samples without data
    parallel : ParallelFor, optional
    """
    _check_operands(gradient, values, (), (3,))
    v = values.field
    r = values.reciprocal_spacing

    def slab(start, stop):
        gradient.field[:, :, start:stop] = np.stack(
            [_conditional_difference(v, a, r[a], start, stop) for a in range(3)],
            axis=-1
        )
    as_parallel(parallel).map(slab, 0, values.shape[2])


def compute_jacobian(jacobian: UniformGrid, vectors: UniformGrid, parallel=None):
    """Compute Jacobian of a vector field

    Parameters
    ----------
    jacobian : UniformGrid
        (output) tensor grid, where jacobian[..., a, b] = d vectors[..., b] / d a.
        that is, the row jacobian[..., a, :] holds all partial derivatives with respect to a
    vectors : UniformGrid
        vector grid
    parallel : ParallelFor, optional
    """
    _check_operands(jacobian, vectors, (3,), (3, 3))
    v = vectors.field
    r = vectors.reciprocal_spacing

    def slab(start, stop):
        jacobian.field[:, :, start:stop] = np.stack(
            [_first_difference(v, a, r[a], start, stop) for a in range(3)],
            axis=-2
        )
    as_parallel(parallel).map(slab, 0, vectors.shape[2])


def compute_curl_from_jacobian(curl: UniformGrid, jacobian: UniformGrid):
    """Compute curl of a vector field from its Jacobian

    Parameters
    ----------
    curl : UniformGrid
        (output) vector grid
    jacobian : UniformGrid
        tensor grid, as computed by compute_jacobian
    """
    _check_operands(curl, jacobian, (3, 3), (3,))
    j = jacobian.field
    curl.field[...] = np.stack([
        j[..., 1, 2] - j[..., 2, 1],
        j[..., 2, 0] - j[..., 0, 2],
        j[..., 0, 1] - j[..., 1, 0],
    ], axis=-1)


def compute_laplacian(laplacian: UniformGrid, vectors: UniformGrid, parallel=None):
    """Compute vector Laplacian of a vector field

    Parameters
    ----------
    laplacian : UniformGrid
        (output) vector grid
    vectors : UniformGrid
        vector grid, with at least 3 samples along each axis
    parallel : ParallelFor, optional

    Notes
    -----
    On the domain faces, the second derivative normal to the face is computed
    from the face sample and the two layers inward of it.
    This is neither a Neumann nor a Dirichlet treatment of the boundary;
    just an extrapolation of the curvature of the interior.
    """
    _check_operands(laplacian, vectors, (3,), (3,))
    assert min(vectors.shape) >= 3, 'Laplacian requires at least 3 samples along each axis'
    v = vectors.field
    r2 = vectors.reciprocal_spacing ** 2

    def slab(start, stop):
        result = sum(_second_difference(v, a, r2[a], start, stop) for a in range(3))
        assert np.all(np.isfinite(result)), 'Laplacian is not finite'
        laplacian.field[:, :, start:stop] = result
    as_parallel(parallel).map(slab, 0, vectors.shape[2])
