
import numpy as np
import numpy.testing as npt
import pytest

from pygridmath.grid import UniformGrid
from pygridmath.multigrid import PoissonEquation, solve_v_cycle, v_cycle
from pygridmath.poisson import BoundaryCondition


def test_hierarchy():
    template = UniformGrid.vector((17, 9, 33), spacing=(0.5, 1, 0.25))
    hierarchy = PoissonEquation(template).hierarchy(levels=2)
    assert [e.shape for e in hierarchy] == [(5, 3, 9), (9, 5, 17), (17, 9, 33)]
    npt.assert_allclose(hierarchy[0].template.spacing, [2, 4, 1])

    with pytest.raises(AssertionError):
        PoissonEquation(template).hierarchy(levels=3)


def test_transfer():
    """Restriction and interpolation preserve linear fields, up to and including the boundary"""
    fine = PoissonEquation(UniformGrid.vector((9, 9, 9)))
    x = fine.allocate()
    x.field[...] = fine.template.positions
    coarse = fine.restrict(x)
    npt.assert_allclose(coarse.field, fine.coarse.template.positions)
    npt.assert_allclose(fine.interpolate(coarse).field, x.field)


def test_restrict_boundary():
    """Boundary samples are injected; the interior is a weighted average"""
    fine = PoissonEquation(UniformGrid.scalar((9, 9, 9)))
    x = fine.allocate()
    x.field[...] = np.random.rand(9, 9, 9)
    coarse = fine.restrict(x)
    npt.assert_equal(coarse.field[0], x.field[0, ::2, ::2])
    npt.assert_equal(coarse.field[:, :, -1], x.field[::2, ::2, -1])
    w = np.einsum('i,j,k->ijk', [1, 2, 1], [1, 2, 1], [1, 2, 1]) / 64
    npt.assert_allclose(coarse.field[1, 2, 3], (x.field[1:4, 3:6, 5:8] * w).sum())


def test_residual_injected():
    """A residual that vanishes on the boundary, restricts to one that does as well"""
    template = UniformGrid.vector((9, 9, 9))
    fine = PoissonEquation(template, boundary_condition=BoundaryCondition.DIRICHLET)
    x = template.like()
    x.field[...] = np.random.rand(9, 9, 9, 3)
    r = fine.restrict(fine.residual(x, template.like()))
    assert np.all(r.field[0] == 0) and np.all(r.field[:, -1] == 0)
    assert np.any(r.field[1:-1, 1:-1, 1:-1] != 0)


def test_v_cycle_dirichlet(parallel):
    value = [1, -2, 3]
    template = UniformGrid.vector((17, 17, 17))
    hierarchy = PoissonEquation(
        template, boundary_condition=BoundaryCondition.DIRICHLET, parallel=parallel).hierarchy(levels=3)

    x = template.like().fill(value)
    x.field[1:-1, 1:-1, 1:-1] = 0
    y = template.like()

    e0 = np.abs(v_cycle(hierarchy, y, x).field - value).max()
    x = solve_v_cycle(hierarchy, y, x, iterations=10)
    e1 = np.abs(x.field - value).max()
    print(e0, e1)
    assert e1 < e0
    assert e1 < 1e-4
