"""Recover the velocity field induced by a vortex ring

The velocity u of an incompressible flow is the curl of a vector potential psi,
which satisfies laplacian(psi) = -vorticity. The potential is solved for with plain relaxation,
and with multigrid relaxation, and the results compared.
"""

import logging
import time

import numpy as np

from pygridmath.grid import UniformGrid
from pygridmath.differential import compute_jacobian, compute_curl_from_jacobian
from pygridmath.multigrid import PoissonEquation, solve_v_cycle
from pygridmath.parallel import ThreadPool
from pygridmath.poisson import BoundaryCondition, solve_vector_poisson
from pygridmath.statistics import find_conserved_quantities, find_magnitude_range


logging.basicConfig(level=logging.DEBUG)


def vortex_ring(shape, radius, core):
    """Vorticity of a vortex ring in the xy-plane, centered in the unit cube"""
    n = np.array(shape)
    vorticity = UniformGrid.vector(shape, spacing=1 / (n - 1), origin=(-0.5, -0.5, -0.5))
    x, y, z = np.moveaxis(vorticity.positions, -1, 0)
    rho = np.sqrt(x ** 2 + y ** 2)
    distance = np.sqrt((rho - radius) ** 2 + z ** 2)
    strength = np.exp(-(distance / core) ** 2)
    rho = np.maximum(rho, 1e-9)
    vorticity.field[...] = np.stack([-y / rho, x / rho, np.zeros_like(z)], axis=-1) * strength[..., None]
    return vorticity


def velocity_from_potential(potential, parallel):
    jacobian = potential.like(sample_shape=(3, 3))
    compute_jacobian(jacobian, potential, parallel)
    velocity = potential.like()
    compute_curl_from_jacobian(velocity, jacobian)
    return velocity


vorticity = vortex_ring((33, 33, 33), radius=0.2, core=0.05)
circulation, impulse = find_conserved_quantities(vorticity)
print('circulation', circulation)
print('linear impulse', impulse)

rhs = vorticity.copy()
rhs.buffer *= -1

with ThreadPool() as pool:
    t = time.time()
    potential = rhs.like()
    stats = solve_vector_poisson(potential, rhs, steps=200, boundary_condition=BoundaryCondition.DIRICHLET, parallel=pool)
    print('relaxation', time.time() - t, stats)
    relaxed = velocity_from_potential(potential, pool)
    print('velocity magnitude range', find_magnitude_range(relaxed, pool))

    t = time.time()
    hierarchy = PoissonEquation(rhs, boundary_condition=BoundaryCondition.DIRICHLET, parallel=pool).hierarchy(levels=3)
    potential = solve_v_cycle(hierarchy, rhs, iterations=5)
    print('multigrid', time.time() - t)
    accelerated = velocity_from_potential(potential, pool)
    print('velocity magnitude range', find_magnitude_range(accelerated, pool))

    print('max velocity difference', np.abs(relaxed.buffer - accelerated.buffer).max())
