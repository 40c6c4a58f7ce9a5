"""Relaxation solver for the discretized vector Poisson equation

Solves D soln = rhs, with D the finite difference Laplacian, by means of
red-black Gauss-Seidel iteration with successive over-relaxation.

Gauss-Seidel operates in place; every update immediately overwrites the previous value.
To permit parallel execution nonetheless, the interior rows of the grid (lines along x)
are colored as a checkerboard over their (y, z) indices.
A row of one color has only rows of the other color as its y and z neighbors,
so a pass over all rows of a single color reads only values which that pass does not write,
other than the x-neighbors within the row itself, which are swept in order.
Rows of a single color can thus be updated in any order, or concurrently;
but the pass over black rows has to start only after the pass over red rows has finished.

The x-sweep along each row is a first order linear recurrence,
which is evaluated for all rows of a pass at once as a recursive filter.
"""

import logging
from collections import namedtuple
from enum import Enum

import numpy as np
from scipy import signal

from pygridmath.parallel import SEQUENTIAL, as_parallel
from pygridmath.statistics import RunningStats, ValueStats


logger = logging.getLogger(__name__)


# Determined empirically for a vortex ring on a 32^3 grid;
# the residual was minimal for relaxation in [1.72, 1.74], and rose steeply beyond 1.75
RELAXATION = 1.72


class BoundaryCondition(Enum):
    """Which kind of boundary condition to enforce"""
    NEUMANN = 'neumann'         # natural; boundary values follow the adjacent interior
    DIRICHLET = 'dirichlet'     # essential; boundary values as prescribed by the caller


class Color(Enum):
    """Portion of the interior rows to update in a single relaxation pass"""
    RED = 'red'
    BLACK = 'black'
    BOTH = 'both'


class Technique(Enum):
    RED_BLACK = 'red_black'         # red pass followed by black pass; each pass can be parallelized
    GAUSS_SEIDEL = 'gauss_seidel'   # single pass in lexicographic order; always sequential


ResidualStats = namedtuple('ResidualStats', ValueStats._fields)


_PARITY = {Color.RED: 0, Color.BLACK: 1}


def color_matches(color: Color, iy, iz):
    """Test whether the row with indices (iy, iz) belongs to the given color

    Red rows have an even sum of indices, black rows an odd sum;
    all rows belong to BOTH. Accepts arrays of indices.
    """
    if color is Color.BOTH:
        return np.ones(np.broadcast(iy, iz).shape, dtype=bool)
    return np.add(iy, iz) % 2 == _PARITY[color]


def color_rows(shape, color: Color, z_start=0, z_stop=None):
    """Interior rows of the given color, within the z-range [z_start, z_stop)

    Parameters
    ----------
    shape : Tuple[int]
        (nx, ny, nz)
    color : Color
    z_start : int
    z_stop : int, optional

    Returns
    -------
    iy : ndarray, [n_rows], int
    iz : ndarray, [n_rows], int
        indices of the rows, in lexicographic order with z varying slowest
    """
    nx, ny, nz = shape
    z_stop = nz if z_stop is None else z_stop
    iz, iy = np.meshgrid(
        np.arange(max(1, z_start), min(nz - 1, z_stop)),
        np.arange(1, ny - 1),
        indexing='ij'
    )
    mask = color_matches(color, iy, iz)
    return iy[mask], iz[mask]


def _magnitude(delta):
    """Magnitude of each sample in an array of shape [nx, n_rows] + sample_shape"""
    d = delta.reshape(delta.shape[:2] + (-1,))
    return np.sqrt(np.einsum('...i,...i->...', d, d))


def _sweep_rows(soln, rhs, iy, iz, relaxation, reciprocal2):
    """Gauss-Seidel sweep along x over the given rows, in place

    Each update solves the discrete equation at a single point, holding its neighbors fixed,
    and over-relaxes the result. Values along y and z are read from rows not written in this sweep.

    Parameters
    ----------
    soln : ndarray, [nx, ny, nz, ...]
        solution field, updated in place
    rhs : ndarray, [nx, ny, nz, ...]
    iy, iz : ndarray, [n_rows], int
        rows to sweep; none of them may be a y or z neighbor of another
    relaxation : float
    reciprocal2 : ndarray, [3], float
        squared reciprocal spacing

    Returns
    -------
    ndarray, [nx - 2, n_rows, ...]
        change in the value of each updated sample
    """
    half = 0.5 / reciprocal2.sum()
    old = soln[:, iy, iz]
    inner = old[1:-1]
    # unrelaxed solution, less the contribution of the x-neighbor at x-1, which is yet to be updated
    partial = (
        (soln[1:-1, iy + 1, iz] + soln[1:-1, iy - 1, iz]) * reciprocal2[1] +
        (soln[1:-1, iy, iz + 1] + soln[1:-1, iy, iz - 1]) * reciprocal2[2] +
        old[2:] * reciprocal2[0] -
        rhs[1:-1, iy, iz]
    ) * half
    # new[i] = alpha * new[i-1] + c[i]
    alpha = relaxation * half * reciprocal2[0]
    c = (1 - relaxation) * inner + relaxation * partial
    c[0] += alpha * old[0]
    new = signal.lfilter([1.0], [1.0, -alpha], c, axis=0)
    assert np.all(np.isfinite(new)), 'Relaxation produced non-finite values'
    soln[1:-1, iy, iz] = new
    return new - inner


def _relaxation_pass(soln, rhs, color, relaxation, track):
    """Returns function relaxing all rows of a color within a z-range"""
    s = soln.field
    f = rhs.field
    reciprocal2 = rhs.reciprocal_spacing ** 2

    def inner(start, stop):
        stats = RunningStats()
        iy, iz = color_rows(soln.shape, color, start, stop)
        if len(iy) == 0:
            return stats
        if color is Color.BOTH:
            # rows depend on their predecessors; sweep them one at a time
            rows = zip(iy[:, None], iz[:, None])
        else:
            rows = [(iy, iz)]
        for y, z in rows:
            delta = _sweep_rows(s, f, y, z, relaxation, reciprocal2)
            if track:
                stats.accumulate(_magnitude(delta))
        return stats
    return inner


def propagate_boundary(soln, parallel=None):
    """Enforce the natural (Neumann) boundary condition

    Each sample on the six faces of the domain is assigned the value of the nearest interior sample;
    tantamount to enforcing zero first derivatives normal to the boundary.
    Values propagate from the interior to the boundary only;
    propagating inward would impose Dirichlet and Neumann conditions simultaneously.

    Parameters
    ----------
    soln : UniformGrid
        grid with at least 3 samples along each axis; its boundary samples are overwritten
    parallel : ParallelFor, optional
    """
    assert min(soln.shape) >= 3, 'Grid has no interior'
    nx, ny, nz = soln.shape
    s = soln.field
    ix, iy = np.arange(nx), np.arange(ny)
    cx, cy = np.clip(ix, 1, nx - 2), np.clip(iy, 1, ny - 2)
    face_xy = ((ix == 0) | (ix == nx - 1))[:, None] | ((iy == 0) | (iy == ny - 1))[None, :]

    def slab(start, stop):
        iz = np.arange(start, stop)
        cz = np.clip(iz, 1, nz - 2)
        face = face_xy[:, :, None] | ((iz == 0) | (iz == nz - 1))[None, None, :]
        source = s[np.ix_(cx, cy, cz)][face]
        assert np.all(np.isfinite(source)), 'Boundary values are not finite'
        target = s[:, :, start:stop]
        target[face] = source
    as_parallel(parallel).map(slab, 0, nz)


def compute_residual(residual, soln, rhs):
    """Compute the residual D soln - rhs of the discrete equation

    Parameters
    ----------
    residual : UniformGrid
        (output) residual at interior samples; zero on the boundary, where no equation is imposed
    soln : UniformGrid
    rhs : UniformGrid
    """
    _check_operands(soln, rhs)
    assert residual.shape_matches(rhs) and residual.sample_shape == rhs.sample_shape
    nx, ny, nz = soln.shape
    ix, iy, iz = [i.ravel() for i in np.meshgrid(
        np.arange(1, nx - 1), np.arange(1, ny - 1), np.arange(1, nz - 1), indexing='ij')]
    center = soln.offset_from_indices(ix, iy, iz)
    neighbors = soln.neighbor_offsets(ix, iy, iz)      # [n_interior, 3, 2]
    s = soln.flat
    reciprocal2 = rhs.reciprocal_spacing ** 2
    laplacian = sum(
        (s[neighbors[:, a, 0]] + s[neighbors[:, a, 1]] - 2 * s[center]) * reciprocal2[a]
        for a in range(3)
    )
    r = residual.flat
    r[...] = 0
    r[center] = laplacian - rhs.flat[center]


def _check_operands(soln, rhs):
    assert soln.shape_matches(rhs), 'Grid shapes do not match'
    assert soln.sample_shape == rhs.sample_shape, 'Grid sample shapes do not match'
    assert soln.is_allocated, 'Solution grid is not fully allocated'
    assert min(soln.shape) >= 3, 'Poisson solver requires at least 3 samples along each axis'
    assert np.any(rhs.reciprocal_spacing > 0), 'All axes are degenerate'


def step_toward_solution(
        soln, rhs,
        boundary_condition=BoundaryCondition.NEUMANN,
        parallel=None,
        relaxation: float=RELAXATION,
        technique=Technique.RED_BLACK,
        track=True):
    """Perform a single iteration toward solving D soln = rhs

    Parameters
    ----------
    soln : UniformGrid
        current solution estimate, updated in place
    rhs : UniformGrid
        right hand side; its spacing defines the discretization
    boundary_condition : BoundaryCondition
    parallel : ParallelFor, optional
    relaxation : float
        over-relaxation factor, in [1, 2). 1 yields plain Gauss-Seidel
    technique : Technique
    track : bool
        if True, statistics of the updates are tallied

    Returns
    -------
    RunningStats
        statistics of the magnitude of the change of each interior sample
    """
    _check_operands(soln, rhs)
    assert isinstance(boundary_condition, BoundaryCondition), 'Invalid boundary condition'
    assert isinstance(technique, Technique), 'Invalid technique'
    assert 1 <= relaxation < 2, 'Relaxation factor out of range'
    parallel = as_parallel(parallel)

    if technique is Technique.RED_BLACK:
        passes = [(Color.RED, parallel), (Color.BLACK, parallel)]
    else:
        passes = [(Color.BOTH, SEQUENTIAL)]

    stats = RunningStats()
    for color, executor in passes:
        # per-range tallies are merged only once all ranges of the pass are done
        parts = executor.map(_relaxation_pass(soln, rhs, color, relaxation, track), 0, soln.shape[2])
        stats.merge(RunningStats.merged(parts))

    if boundary_condition is BoundaryCondition.NEUMANN:
        propagate_boundary(soln, parallel)
    return stats


def solve_vector_poisson(
        soln, rhs,
        steps=0,
        boundary_condition=BoundaryCondition.NEUMANN,
        parallel=None,
        relaxation: float=RELAXATION,
        technique=Technique.RED_BLACK) -> ResidualStats:
    """Solve the discretized vector Poisson equation D soln = rhs

    Parameters
    ----------
    soln : UniformGrid
        (input/output) initial estimate of the solution, updated in place.
        For the Dirichlet boundary condition its boundary samples hold the prescribed values
    rhs : UniformGrid
        right hand side, of matching shape
    steps : int
        number of iterations to perform. If zero, 2 * max(shape) iterations are performed;
        each iteration propagates information by a single cell,
        and it has to propagate across the whole grid to arrive at a global solution
    boundary_condition : BoundaryCondition
    parallel : ParallelFor, optional
    relaxation : float
    technique : Technique

    Returns
    -------
    ResidualStats
        statistics of the magnitude of the change of each interior sample, over the final iteration

    Notes
    -----
    soln is deliberately not initialized here; doing so would discard the boundary values,
    as well as any estimate interpolated from a coarser level of a multigrid hierarchy.
    Iteration proceeds for a fixed number of steps, regardless of the residual
    """
    _check_operands(soln, rhs)
    steps = steps if steps > 0 else 2 * max(soln.shape)

    stats = RunningStats()
    for i in range(steps):
        stats = step_toward_solution(
            soln, rhs,
            boundary_condition=boundary_condition,
            parallel=parallel,
            relaxation=relaxation,
            technique=technique,
            track=i == steps - 1,
        )

    residual = stats.summary(ResidualStats)
    logger.debug('%d %s iterations on %s; final update mean %.3g, max %.3g',
                 steps, technique.value, soln.shape, residual.mean, residual.max)
    return residual
