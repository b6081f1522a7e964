import runpy

import pytest

from DualMarchingCubes.cube import EdgeCode, crossing_edges
from DualMarchingCubes.gentables import (
    C16,
    C19,
    INVERTED_CONFIGS,
    NO_DIRECTION,
    CoordinateAxis,
    CornerAdjacencyGraph,
    CubeConfiguration,
    densify_manifold_table,
    generate_dual_points_table,
    generate_manifold_table,
    main,
    write_tables,
)
from DualMarchingCubes.tables import dual_points_list, problematic_configs


def _bit_shift_rotation(config, axis):
    # published bit-shift corner permutations
    if axis == 0:
        return (
            ((config & 0b00000011) << 2)
            | ((config & 0b00001100) << 4)
            | ((config & 0b00110000) >> 4)
            | ((config & 0b11000000) >> 2)
        )
    if axis == 1:
        return (
            ((config & 0b00000101) << 4)
            | ((config & 0b00001010) >> 1)
            | ((config & 0b01010000) << 1)
            | ((config & 0b10100000) >> 4)
        )
    return (
        ((config & 0b00010001) << 1)
        | ((config & 0b00100010) << 2)
        | ((config & 0b01000100) >> 2)
        | ((config & 0b10001000) >> 1)
    )


def test_corner_neighbors():
    assert CornerAdjacencyGraph.neighbors(0) == (1, 2, 4)
    assert CornerAdjacencyGraph.neighbors(7) == (6, 5, 3)
    for corner in range(8):
        for axis in range(3):
            neighbor = CornerAdjacencyGraph.neighbor(corner, axis)
            assert CornerAdjacencyGraph.neighbor(neighbor, axis) == corner


def test_dual_points_table_shape():
    assert len(dual_points_list) == 256
    assert dual_points_list[0] == (0, 0, 0, 0)
    assert dual_points_list[255] == (0, 0, 0, 0)
    for config, codes in enumerate(dual_points_list):
        assert len(codes) == 4
        n_points = sum(code != 0 for code in codes)
        # used slots come first
        assert all(code != 0 for code in codes[:n_points]), f"config {config}"
        assert all(code < (1 << 12) for code in codes), f"config {config}"


def test_dual_points_partition_crossing_edges():
    for config, codes in enumerate(dual_points_list):
        used = [code for code in codes if code != 0]
        union = 0
        for code in used:
            assert union & code == 0, f"config {config} shares an edge"
            union |= code
        assert union == crossing_edges(config), f"config {config}"


def test_known_dual_points_rows():
    corner_0 = EdgeCode.EDGE0 | EdgeCode.EDGE3 | EdgeCode.EDGE8
    corner_7 = EdgeCode.EDGE5 | EdgeCode.EDGE6 | EdgeCode.EDGE10
    assert dual_points_list[1] == (corner_0, 0, 0, 0)
    assert dual_points_list[128] == (corner_7, 0, 0, 0)
    assert dual_points_list[3] == (
        EdgeCode.EDGE1 | EdgeCode.EDGE3 | EdgeCode.EDGE8 | EdgeCode.EDGE9,
        0,
        0,
        0,
    )
    # corners 0 and 3 are diagonal on the bottom face and stay separated
    assert dual_points_list[9] == (
        corner_0,
        EdgeCode.EDGE4 | EdgeCode.EDGE5 | EdgeCode.EDGE9,
        0,
        0,
    )
    assert dual_points_list[126] == (corner_0, corner_7, 0, 0)


@pytest.mark.parametrize("config", INVERTED_CONFIGS)
def test_inverted_configs(config):
    assert dual_points_list[config] == dual_points_list[config ^ 0xFF]
    # plain component search would merge both patches
    components = CornerAdjacencyGraph.connected_components(config)
    assert len(components) == 1
    assert sum(code != 0 for code in dual_points_list[config]) == 2


def test_dual_points_table_is_reproducible():
    assert generate_dual_points_table() == dual_points_list
    assert densify_manifold_table(generate_manifold_table()) == problematic_configs


@pytest.mark.parametrize("axis", [0, 1, 2])
def test_rotation_matches_bit_shifts(axis):
    for config in range(256):
        rotated = CubeConfiguration(config).rotated(axis).value
        assert rotated == _bit_shift_rotation(config, axis), f"config {config}"


@pytest.mark.parametrize("axis", [0, 1, 2])
def test_axis_rotation(axis):
    expected = {
        0: [0, 1, 4, 5, 3, 2],
        1: [5, 4, 2, 3, 0, 1],
        2: [2, 3, 1, 0, 4, 5],
    }
    rotated = [CoordinateAxis(v).rotated(axis).value for v in range(6)]
    assert rotated == expected[axis]


def test_representatives():
    assert C16.value == 199
    assert C19.value == 215
    for representative in (C16, C19):
        assert representative.ambiguous_faces() == [CoordinateAxis(CoordinateAxis.PX)]


def test_manifold_table():
    problematic = generate_manifold_table()
    # C16 has no rotational symmetry, C19 is symmetric under a half turn
    assert len(problematic) == 36
    assert problematic[C16.value] == CoordinateAxis.PX
    assert problematic[C19.value] == CoordinateAxis.PX

    for config, direction in problematic.items():
        faces = CubeConfiguration(config).ambiguous_faces()
        assert faces == [CoordinateAxis(direction)], f"config {config}"

    assert sum(v != NO_DIRECTION for v in problematic_configs) == 36
    for config, direction in enumerate(problematic_configs):
        assert (direction != NO_DIRECTION) == (config in problematic)


def test_manifold_table_is_closed_under_rotation():
    problematic = generate_manifold_table()
    for config, direction in problematic.items():
        for axis in range(3):
            rotated = CubeConfiguration(config).rotated(axis).value
            assert rotated in problematic
            assert (
                problematic[rotated] == CoordinateAxis(direction).rotated(axis).value
            )


def test_write_tables(tmp_path):
    filename = tmp_path / "tables_out.py"
    write_tables(filename)
    written = runpy.run_path(str(filename))
    assert written["dual_points_list"] == dual_points_list
    assert written["problematic_configs"] == problematic_configs


def test_gentables_cli(tmp_path):
    filename = tmp_path / "generated" / "dualmc_tables.py"
    main(["--output", str(filename)])
    assert filename.exists()
    written = runpy.run_path(str(filename))
    assert written["dual_points_list"] == dual_points_list


if __name__ == "__main__":
    test_dual_points_table_shape()
    test_known_dual_points_rows()
    test_manifold_table()
