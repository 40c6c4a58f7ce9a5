"""Geometric multigrid acceleration of the relaxation solver

Relaxation only propagates information by a single cell per iteration;
smooth, long wavelength components of the error therefore decay very slowly.
Those are instead resolved on a hierarchy of successively coarser grids,
using the relaxation solver as smoother on every level, and as solver on the root level.

The multigrid schema itself is agnostic of the equation it solves;
all grid specific logic is encapsulated by the MultiGridEquation object
"""

import logging

import numpy as np
from cached_property import cached_property
from scipy import ndimage

from pygridmath.grid import UniformGrid
from pygridmath.poisson import BoundaryCondition, compute_residual, solve_vector_poisson
from pygridmath.util import full_weighting


logger = logging.getLogger(__name__)


class MultiGridEquation(object):
    """Abstract interface class for Equation participating in this multigrid solver"""
    def residual(self, x, y):
        raise NotImplementedError
    def smooth(self, x, y):
        raise NotImplementedError
    def solve(self, y, x):
        raise NotImplementedError
    def restrict(self, y):
        raise NotImplementedError
    def interpolate(self, x):
        raise NotImplementedError
    def allocate(self):
        raise NotImplementedError
    @property
    def coarse(self):
        raise NotImplementedError

    def hierarchy(self, levels):
        """Build a hierarchy for a given equation object

        Parameters
        ----------
        levels : int
            number of levels to add below self

        Returns
        -------
        List[MultiGridEquation]
            coarsest first, finest last
        """
        hierarchy = [self]
        for l in range(levels):
            hierarchy.append(hierarchy[-1].coarse)
        return hierarchy[::-1]


class PoissonEquation(MultiGridEquation):
    """Discrete vector Poisson equation D x = y on a single level of a grid hierarchy

    Parameters
    ----------
    template : UniformGrid
        grid defining the shape, spacing, origin and sample shape of this level; its values are unused.
        for coarsening, the number of samples along each axis should be odd
    boundary_condition : BoundaryCondition
    parallel : ParallelFor, optional
    smooth_steps : int
        relaxation iterations per pre- or post-smoothing step
    relaxation : float
        over-relaxation factor used by the smoother. over-relaxation speeds up the decay of smooth error,
        which is exactly the job of the coarser levels, so plain Gauss-Seidel is the default here
    """

    def __init__(self, template, boundary_condition=BoundaryCondition.NEUMANN, parallel=None, smooth_steps=2, relaxation=1.0):
        self.template = template
        self.boundary_condition = boundary_condition
        self.parallel = parallel
        self.smooth_steps = smooth_steps
        self.relaxation = relaxation

    @property
    def shape(self):
        return self.template.shape

    def allocate(self):
        return self.template.like()

    def _solve(self, x, y, steps):
        solve_vector_poisson(
            x, y,
            steps=steps,
            boundary_condition=self.boundary_condition,
            parallel=self.parallel,
            relaxation=self.relaxation,
        )
        return x

    def residual(self, x, y):
        r = self.allocate()
        compute_residual(r, x, y)
        return r

    def smooth(self, x, y):
        return self._solve(x.copy(), y, self.smooth_steps)

    def solve(self, y, x=None):
        """Solve to convergence; only intended for the small grid at the root of the hierarchy"""
        x = self.allocate() if x is None else x.copy()
        return self._solve(x, y, 0)

    @property
    def is_coarsenable(self):
        return all(n % 2 == 1 and n >= 5 for n in self.shape)

    @cached_property
    def coarse(self):
        """Equation on a grid with every other sample of self along each axis"""
        assert self.is_coarsenable, 'Coarsening requires an odd number of at least 5 samples along each axis'
        t = self.template
        template = UniformGrid(
            shape=tuple((n - 1) // 2 + 1 for n in self.shape),
            spacing=t.spacing * 2,
            origin=t.origin,
            sample_shape=t.sample_shape,
            dtype=t.dtype,
        )
        return type(self)(
            template,
            boundary_condition=self.boundary_condition,
            parallel=self.parallel,
            smooth_steps=self.smooth_steps,
            relaxation=self.relaxation,
        )

    def restrict(self, y):
        """Full weighting restriction of a fine grid onto the coarse grid

        Boundary samples are restricted by injection, since the weighting kernel does not fit inside the domain there
        """
        f = y.field
        smoothed = f
        for axis in range(3):
            smoothed = ndimage.convolve1d(smoothed, full_weighting(), axis=axis, mode='nearest')
        coarse = self.coarse.allocate()
        coarse.field[...] = f[::2, ::2, ::2]
        # the kernels of these samples only reach fine samples at least one layer inside the domain
        coarse.field[1:-1, 1:-1, 1:-1] = smoothed[2:-2:2, 2:-2:2, 2:-2:2]
        return coarse

    def interpolate(self, x):
        """Trilinear interpolation of a coarse grid onto the grid of self"""
        coordinates = np.indices(self.shape) / 2
        fine = self.allocate()
        c = x.field
        for idx in np.ndindex(*self.template.sample_shape):
            component = (Ellipsis,) + idx
            fine.field[component] = ndimage.map_coordinates(c[component], coordinates, order=1, mode='nearest')
        return fine


def v_cycle(hierarchy, y, x=None):
    """Recursive V cycle using residual correction

    Parameters
    ----------
    hierarchy: List[MultiGridEquation]
        discrete equations, from root to finest
    y : UniformGrid
        right hand side of equation on finest level
    x : UniformGrid, optional
        current best guess at a solution on finest level

    Returns
    -------
    x : UniformGrid
        solution with improved error

    Notes
    -----
    On the coarser levels the unknown is the error of the solution,
    which is zero on a Dirichlet boundary; hence those levels start from zero
    """
    fine = hierarchy[-1]
    if x is None:
        x = fine.allocate()

    # root level recursion break
    if len(hierarchy) == 1:
        return fine.solve(y, x)

    def coarsesmooth(x):
        fine_res = fine.residual(x, y)
        coarse_res = fine.restrict(fine_res)
        coarse_error = v_cycle(hierarchy[:-1], y=coarse_res)
        fine_error = fine.interpolate(coarse_error)
        x.buffer -= fine_error.buffer      # apply residual correction scheme
        return x

    x = fine.smooth(x, y)       # presmooth
    x = coarsesmooth(x)
    x = fine.smooth(x, y)       # postsmooth

    return x


def solve_v_cycle(hierarchy, y, x=None, iterations=10):
    """Repeated v-cycle multigrid solver.

    Parameters
    ----------
    hierarchy: List[MultiGridEquation]
        discrete equations, from root to finest
    y : UniformGrid
        right hand side of equation on finest level
    x : UniformGrid, optional
        current best guess at a solution on finest level, which holds the boundary values
    iterations : int

    Returns
    -------
    x : UniformGrid
    """
    fine = hierarchy[-1]
    for i in range(iterations):
        x = v_cycle(hierarchy, y, x)
        if logger.isEnabledFor(logging.DEBUG):
            r = fine.residual(x, y)
            logger.debug('v-cycle %d: max residual %.3g', i, np.abs(r.buffer).max())
    return x
