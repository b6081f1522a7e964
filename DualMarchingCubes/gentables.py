"""
Lookup Table Generation
=======================

Generates the two static tables used by the Dual Marching Cubes engine.

Dual Marching Cubes table
    For each of the 256 corner configurations of a cell, up to four 12 bit
    edge masks. Every mask lists the intersected edges of one Marching Cubes
    face and therefore defines one dual point.

Manifold table
    For each configuration the direction ``axis * 2 + sign`` of its ambiguous
    face, if the configuration belongs to one of the two classes C16 or C19
    of Nielson's paper, otherwise 255. Two such cells sharing their ambiguous
    face cause non-manifold edges, see chapter 3.3.5 of Wenger's
    "Isosurfaces: Geometry, Topology, and Algorithms".

Run ``python -m DualMarchingCubes.gentables --output tables_out.py`` to write
both tables to an importable Python module.
"""

import argparse
import logging
import pathlib

import DualMarchingCubes
from DualMarchingCubes.cube import corner_edges

logger = logging.getLogger(DualMarchingCubes.__name__)

__all__ = [
    "CornerAdjacencyGraph",
    "CubeConfiguration",
    "CoordinateAxis",
    "generate_dual_points_table",
    "generate_manifold_table",
    "densify_manifold_table",
    "write_tables",
]

#: configurations for which the connected component search merges two
#: Marching Cubes patches into one. Their inverses are handled correctly.
#:
#: Example instance (inside 1, outside 0)::
#:
#:        1------------0
#:       /|           /|
#:      1------------1 |
#:      | |          | |
#:      | 1----------|-1
#:      |/           |/
#:      0------------1
INVERTED_CONFIGS = (126, 189, 219, 231)

#: direction value of configurations without a problematic ambiguous face
NO_DIRECTION = 255


class CornerAdjacencyGraph:
    """
    The 8 corners of a unit cube connected by the 12 cube edges.

    Corners are Morton codes, so the neighbor along an axis differs in
    exactly one bit.
    """

    @staticmethod
    def neighbor(corner: int, axis: int) -> int:
        return corner ^ (1 << axis)

    @classmethod
    def neighbors(cls, corner: int) -> tuple[int, int, int]:
        """Neighbors in x, y and z direction."""
        return tuple(cls.neighbor(corner, axis) for axis in range(3))

    @classmethod
    def connected_components(cls, config: int) -> list[tuple[int, int]]:
        """
        Finds the groups of inside corners connected by cube edges.

        Args:
            config (int): 8 bit inside mask.

        Returns:
            list[tuple[int, int]]: For each component, in order of its lowest
            corner, the corner mask and the mask of the edges leading from
            the component to an outside corner.
        """
        components = []
        processed = 0
        for start in range(8):
            start_mask = 1 << start
            if processed & start_mask or not config & start_mask:
                processed |= start_mask
                continue

            stack = [start]
            connected = start_mask
            point_code = 0
            while stack:
                corner = stack.pop()
                for axis, neighbor in enumerate(cls.neighbors(corner)):
                    neighbor_mask = 1 << neighbor
                    if not config & neighbor_mask:
                        point_code |= int(corner_edges[corner][axis])
                    elif not connected & neighbor_mask:
                        connected |= neighbor_mask
                        stack.append(neighbor)

            assert not processed & connected
            assert point_code != 0
            processed |= connected
            components.append((connected, point_code))
        return components


def generate_dual_points_table() -> tuple[tuple[int, int, int, int], ...]:
    """
    Generates the Dual Marching Cubes table.

    Each connected group of inside corners yields one dual point, whose code
    collects the edges from the group to an outside corner. Configurations
    listed in ``INVERTED_CONFIGS`` are looked up through their inverse.

    Returns:
        tuple: 256 rows of four point codes, unused slots are 0.
    """
    logger.debug("Generating Dual Marching Cubes table")
    table = []
    for config in range(256):
        if config == 0 or config == 255:
            table.append((0, 0, 0, 0))
            continue
        mask = config ^ 0xFF if config in INVERTED_CONFIGS else config
        codes = [code for _, code in CornerAdjacencyGraph.connected_components(mask)]
        assert len(codes) <= 4
        table.append(tuple(codes + [0] * (4 - len(codes))))
    return tuple(table)


def rotate(vector, axis):
    """
    Rotates a vector by 90 degrees around a coordinate axis.

    Corners are rotated as centred coordinates in {-1, 1}^3, directions as
    unit vectors.
    """
    x, y, z = vector
    if axis == 0:
        return (x, -z, y)
    if axis == 1:
        return (z, y, -x)
    return (-y, x, z)


class CoordinateAxis:
    """
    A signed coordinate direction, stored as ``axis * 2 + sign`` with
    sign 1 for the positive direction:
    NX = 0, PX = 1, NY = 2, PY = 3, NZ = 4, PZ = 5.
    """

    NX, PX, NY, PY, NZ, PZ = range(6)

    def __init__(self, value: int):
        self.value = value

    @property
    def axis(self) -> int:
        return self.value >> 1

    @property
    def positive(self) -> bool:
        return bool(self.value & 1)

    def vector(self):
        v = [0, 0, 0]
        v[self.axis] = 1 if self.positive else -1
        return tuple(v)

    @classmethod
    def from_vector(cls, vector):
        for axis, component in enumerate(vector):
            if component != 0:
                return cls(axis * 2 + int(component > 0))
        raise ValueError(f"Not a coordinate direction: {vector}")

    def rotated(self, axis: int) -> "CoordinateAxis":
        return CoordinateAxis.from_vector(rotate(self.vector(), axis))

    def __eq__(self, other):
        return isinstance(other, CoordinateAxis) and self.value == other.value

    def __repr__(self):
        return f"CoordinateAxis({'NPNPNP'[self.value]}{'XXYYZZ'[self.value]})"


class CubeConfiguration:
    """A cell configuration given by the in/out classification of its corners."""

    def __init__(self, value: int):
        self.value = value

    def rotated(self, axis: int) -> "CubeConfiguration":
        """Rotates the whole configuration by 90 degrees around ``axis``."""
        rotated = 0
        for corner in range(8):
            if self.value & (1 << corner):
                centred = tuple(((corner >> i) & 1) * 2 - 1 for i in range(3))
                x, y, z = ((c + 1) // 2 for c in rotate(centred, axis))
                rotated |= 1 << (x | y << 1 | z << 2)
        return CubeConfiguration(rotated)

    def ambiguous_faces(self) -> list[CoordinateAxis]:
        """
        Faces whose diagonal corners agree while adjacent corners disagree.
        """
        faces = []
        for axis in range(3):
            u, v = (a for a in range(3) if a != axis)
            for side in (0, 1):
                base = side << axis
                inside = [
                    bool(self.value & (1 << (base | i << u | j << v)))
                    for i, j in ((0, 0), (1, 0), (1, 1), (0, 1))
                ]
                if inside[0] == inside[2] and inside[1] == inside[3] != inside[0]:
                    faces.append(CoordinateAxis(axis * 2 + side))
        return faces


#: representatives of the problematic classes, ambiguous face towards +x.
#: C16 and C19 from Nielson's original paper.
C16 = CubeConfiguration(0b11000111)
C19 = CubeConfiguration(0b11010111)

# Brings the ambiguous face of a representative from +x into every direction.
# Each step lists the rotations applied to the configuration and the axis
# around which the result is then spun to cover all in-plane orientations.
_ORBIT_SCRIPT = (
    ((), 0),  # PX
    ((2,), 1),  # PY
    ((2,), 0),  # NX
    ((2,), 1),  # NY
    ((0,), 2),  # NZ
    ((0, 0), 2),  # PZ
)


def explore_config_rotations(config: CubeConfiguration, problematic_configs: dict):
    """
    Registers all 24 rotations of a representative together with the
    direction its ambiguous face points to.
    """
    direction = CoordinateAxis(CoordinateAxis.PX)
    assert config.ambiguous_faces() == [direction]

    for moves, spin_axis in _ORBIT_SCRIPT:
        for axis in moves:
            config = config.rotated(axis)
            direction = direction.rotated(axis)
        spun = config
        for _ in range(4):
            spun = spun.rotated(spin_axis)
            problematic_configs[spun.value] = direction.value


def generate_manifold_table() -> dict[int, int]:
    """
    Generates the sparse manifold table {configuration: face direction}.
    """
    logger.debug("Generating manifold Dual Marching Cubes table")
    problematic_configs = {}
    explore_config_rotations(C16, problematic_configs)
    explore_config_rotations(C19, problematic_configs)
    return problematic_configs


def densify_manifold_table(problematic_configs: dict) -> tuple[int, ...]:
    return tuple(
        problematic_configs.get(config, NO_DIRECTION) for config in range(256)
    )


def write_tables(filename, dual_points_list=None, problematic_configs=None):
    """
    Writes both tables to an importable Python module.

    Args:
        filename (str or pathlib.Path): output file.
        dual_points_list (tuple, optional): Dual Marching Cubes table.
            Generated if not given.
        problematic_configs (tuple, optional): dense manifold table.
            Generated if not given.
    """
    if dual_points_list is None:
        dual_points_list = generate_dual_points_table()
    if problematic_configs is None:
        problematic_configs = densify_manifold_table(generate_manifold_table())

    lines = [
        '"""Generated by DualMarchingCubes.gentables, do not edit."""',
        "",
        "dual_points_list = (",
    ]
    for config, codes in enumerate(dual_points_list):
        row = ", ".join(f"0x{code:03x}" for code in codes)
        lines.append(f"    ({row}),  # {config}")
    lines.append(")")
    lines.append("")
    lines.append("problematic_configs = (")
    for start in range(0, 256, 16):
        row = ", ".join(str(v) for v in problematic_configs[start : start + 16])
        lines.append(f"    {row},")
    lines.append(")")
    lines.append("")

    filepath = pathlib.Path(filename)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Writing Dual Marching Cubes tables to {filepath}")
    filepath.write_text("\n".join(lines))


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate the (manifold) Dual Marching Cubes lookup tables."
    )
    parser.add_argument(
        "--output",
        "-o",
        default="dualmc_tables.py",
        help="Python module the tables are written to.",
    )
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    if args.verbose:
        logger.setLevel(logging.DEBUG)
    write_tables(args.output)


if __name__ == "__main__":
    main()
