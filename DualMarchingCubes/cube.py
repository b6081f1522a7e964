"""
Unit Cube Numbering
===================

Corner and edge numbering of a grid cell, shared by the table generator and
the extraction engine.

Corners are voxels. A corner is identified by the Morton code of its
coordinates, ``code = x | y << 1 | z << 2``, and each cell configuration is
an 8 bit mask in which bit ``code`` is set if that corner is inside.

::

         2-------------------3              o--------4----------o
        /|                  /|             /|                  /|
       / |                 / |            7 |                 5 |
      /  |                /  |           /  |                /  |
     6-------------------7   |          o--------6----------o   |
     |   |               |   |          |   8               |   9
     |   |               |   |          |   |               |   |
     |   0---------------|---1          11  |               10  |
     |  /                |  /           |   o--------0------|---o
     | /                 | /            |  /                |  /
     |/                  |/             | 3                 | 1
     4-------------------5              |/                  |/
                                        o--------2----------o
          y
          |
          0-----x
         /
        z
"""

from enum import IntFlag


class EdgeCode(IntFlag):
    """Bits of the 12 bit mask over the edges of a cell."""

    EDGE0 = 1
    EDGE1 = 1 << 1
    EDGE2 = 1 << 2
    EDGE3 = 1 << 3
    EDGE4 = 1 << 4
    EDGE5 = 1 << 5
    EDGE6 = 1 << 6
    EDGE7 = 1 << 7
    EDGE8 = 1 << 8
    EDGE9 = 1 << 9
    EDGE10 = 1 << 10
    EDGE11 = 1 << 11


#: (x, y, z) offsets of the 8 corners, indexed by Morton code
cube_corners = tuple(((c & 1), (c >> 1) & 1, (c >> 2) & 1) for c in range(8))

#: corner codes of the two endpoints of every edge, lower endpoint first
cube_edges = (
    (0, 1),
    (1, 5),
    (4, 5),
    (0, 4),
    (2, 3),
    (3, 7),
    (6, 7),
    (2, 6),
    (0, 2),
    (1, 3),
    (5, 7),
    (4, 6),
)

#: axis (0 = x, 1 = y, 2 = z) along which each edge runs
edge_axis = (0, 2, 0, 2, 0, 2, 0, 2, 1, 1, 1, 1)

#: for every corner the edge codes of its adjacent edges in x, y and z direction
corner_edges = (
    (EdgeCode.EDGE0, EdgeCode.EDGE8, EdgeCode.EDGE3),
    (EdgeCode.EDGE0, EdgeCode.EDGE9, EdgeCode.EDGE1),
    (EdgeCode.EDGE4, EdgeCode.EDGE8, EdgeCode.EDGE7),
    (EdgeCode.EDGE4, EdgeCode.EDGE9, EdgeCode.EDGE5),
    (EdgeCode.EDGE2, EdgeCode.EDGE11, EdgeCode.EDGE3),
    (EdgeCode.EDGE2, EdgeCode.EDGE10, EdgeCode.EDGE1),
    (EdgeCode.EDGE6, EdgeCode.EDGE11, EdgeCode.EDGE7),
    (EdgeCode.EDGE6, EdgeCode.EDGE10, EdgeCode.EDGE5),
)


def crossing_edges(config: int) -> int:
    """Edge mask of all edges whose endpoints lie on different sides."""
    mask = 0
    for edge, (a, b) in enumerate(cube_edges):
        if ((config >> a) & 1) != ((config >> b) & 1):
            mask |= 1 << edge
    return mask
