"""
DualMarchingCubes - Quad Mesh Extraction from Sampled Volumes
=============================================================

DualMarchingCubes extracts a quadrilateral mesh approximating an iso-surface of
a scalar volume sampled on a regular grid. The mesh is the dual of the classic
Marching Cubes surface: every Marching Cubes face becomes a vertex and every
Marching Cubes vertex, i.e. every grid edge crossing the iso-surface, becomes
a quad. An optional repair step (Manifold Dual Marching Cubes) guarantees
that every mesh edge is shared by exactly two quads.

Key Components
--------------

Extraction
    - ``DualMarchingCubes.dualmc``: The ``DualMC`` extraction engine
    - ``DualMarchingCubes.mesh``: Quad mesh container and convenience wrapper

Lookup Tables
    - ``DualMarchingCubes.cube``: Corner and edge numbering of the unit cube
    - ``DualMarchingCubes.gentables``: Offline generation of the lookup tables
    - ``DualMarchingCubes.tables``: The static tables used at runtime

Utilities
    - ``DualMarchingCubes.utils``: Logging configuration and input checks

Examples
--------
Extract the surface around a single bright voxel::

    import numpy as np
    from DualMarchingCubes.mesh import create_quad_mesh

    volume = np.zeros((3, 3, 3), dtype=np.uint8)
    volume[1, 1, 1] = 255
    mesh = create_quad_mesh(volume, dims=(3, 3, 3), iso=128)
    mesh.quads.shape  # (6, 4)
"""

import DualMarchingCubes.utils

DualMarchingCubes.utils.configure_logging()

__version__ = "1.0.0"
