from DualMarchingCubes.mesh import torchQuadMesh, create_quad_mesh
from DualMarchingCubes.utils import check_volume
import gustaf as gus
import numpy as np
import pytest
import torch


def _unit_cube():
    vertices = torch.tensor(
        [[x, y, z] for z in (0.0, 1.0) for y in (0.0, 1.0) for x in (0.0, 1.0)]
    )
    quads = torch.tensor(
        [
            [0, 2, 3, 1],
            [4, 5, 7, 6],
            [0, 1, 5, 4],
            [2, 6, 7, 3],
            [0, 4, 6, 2],
            [1, 3, 7, 5],
        ]
    )
    return torchQuadMesh(vertices, quads)


def test_edge_counts():
    mesh = _unit_cube()
    edges, counts = mesh.edge_counts()
    assert edges.shape == (12, 2), f"A cube has 12 edges, found {edges.shape[0]}"
    assert (edges[:, 0] < edges[:, 1]).all()
    assert (counts == 2).all()
    assert mesh.is_manifold()


def test_open_mesh_is_not_manifold():
    mesh = _unit_cube()
    open_mesh = torchQuadMesh(mesh.vertices, mesh.quads[:5])
    assert not open_mesh.is_manifold()
    assert torchQuadMesh(mesh.vertices, mesh.quads[:0]).is_manifold()


def test_to_triangles():
    mesh = _unit_cube()
    vertices, faces = mesh.to_triangles()
    assert vertices is mesh.vertices
    assert faces.shape == (12, 3)
    assert faces[:2].tolist() == [[0, 2, 3], [0, 3, 1]]


def test_to_gus():
    mesh = _unit_cube()
    gus_mesh = mesh.to_gus()
    assert isinstance(gus_mesh, gus.Faces)
    assert gus_mesh.faces.shape == (6, 4)
    assert np.allclose(gus_mesh.vertices, mesh.vertices.numpy())


def test_create_quad_mesh():
    volume = np.zeros((3, 3, 3), dtype=np.uint8)
    volume[1, 1, 1] = 255
    mesh = create_quad_mesh(volume, dims=(3, 3, 3), iso=128)
    assert mesh.quads.shape == (6, 4)
    assert mesh.vertices.shape == (8, 3)
    assert mesh.is_manifold()

    soup = create_quad_mesh(volume, dims=(3, 3, 3), iso=128, generate_soup=True)
    assert soup.vertices.shape == (24, 3)


@pytest.mark.parametrize(
    "n_samples, dims",
    [
        (4, (1, 2, 2)),
        (8, (2, 2)),
        (9, (2, 2, 2)),
    ],
)
def test_check_volume_rejects(n_samples, dims):
    with pytest.raises(ValueError):
        check_volume(np.zeros(n_samples, dtype=np.uint8), dims)
    with pytest.raises(ValueError):
        create_quad_mesh(np.zeros(n_samples, dtype=np.uint8), dims, 128)


def test_check_volume_index_range():
    with pytest.raises(ValueError):
        check_volume(torch.zeros(256), (8, 8, 4), index_dtype=torch.int8)
    check_volume(torch.zeros(8), (2, 2, 2))


if __name__ == "__main__":
    test_edge_counts()
    test_to_gus()
    test_create_quad_mesh()
