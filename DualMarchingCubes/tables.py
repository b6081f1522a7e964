"""
Static lookup tables of the Dual Marching Cubes engine.

Both tables are generated once when this module is first imported and are
immutable afterwards.

dual_points_list
    Encodes the dual points of the 256 Marching Cubes cases. A case produces
    up to four Marching Cubes faces and thus up to four dual points, each
    given as the 12 bit mask of the edges its face intersects.

problematic_configs
    The direction of the ambiguous face of configurations which can cause
    non-manifold meshes, 255 for all other configurations.
"""

from DualMarchingCubes.gentables import (
    generate_dual_points_table,
    generate_manifold_table,
    densify_manifold_table,
)

dual_points_list = generate_dual_points_table()
problematic_configs = densify_manifold_table(generate_manifold_table())
