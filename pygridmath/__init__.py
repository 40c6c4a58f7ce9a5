"""
Vector calculus on uniform grids in python

Finite difference operators, aggregate statistics and a Poisson solver,
for vector and scalar fields sampled on a regular three dimensional lattice.
Typical use is recovering a velocity field from a vorticity field;
solving for the vector potential, and taking its curl.

All operators are vectorized over rows or slabs of the grid,
and can optionally decompose their work over a pool of threads

"""
