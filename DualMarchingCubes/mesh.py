import logging

import gustaf as gus
import torch

from DualMarchingCubes.dualmc import DualMC
from DualMarchingCubes.utils import check_volume
import DualMarchingCubes

logger = logging.getLogger(DualMarchingCubes.__name__)


class torchQuadMesh:
    def __init__(self, vertices: torch.Tensor, quads: torch.Tensor):
        self.vertices = vertices
        self.quads = quads

    def to_gus(self):
        return gus.Faces(
            self.vertices.detach().cpu().numpy(), self.quads.detach().cpu().numpy()
        )

    def to_triangles(self) -> tuple[torch.Tensor, torch.Tensor]:
        """
        Splits every quad into the triangles (0, 1, 2) and (0, 2, 3).
        """
        faces = self.quads[:, [0, 1, 2, 0, 2, 3]].reshape(-1, 3)
        return self.vertices, faces

    def edge_counts(self) -> tuple[torch.Tensor, torch.Tensor]:
        """
        Returns the undirected edges of the mesh (E×2, smaller index first)
        and the number of quads using each of them.
        """
        edges = torch.cat(
            [
                self.quads[:, [0, 1]],
                self.quads[:, [1, 2]],
                self.quads[:, [2, 3]],
                self.quads[:, [3, 0]],
            ],
            dim=0,
        )
        edges, _ = torch.sort(edges, dim=1)
        unique_edges, counts = torch.unique(edges, dim=0, return_counts=True)
        return unique_edges, counts

    def is_manifold(self) -> bool:
        """Every edge is shared by exactly two quads."""
        if self.quads.shape[0] == 0:
            return True
        _, counts = self.edge_counts()
        n_bad = int((counts != 2).sum())
        if n_bad > 0:
            logger.debug(f"Found {n_bad} edges not shared by exactly two quads")
        return n_bad == 0


def create_quad_mesh(
    data, dims, iso, generate_manifold=True, generate_soup=False, device="cpu"
) -> torchQuadMesh:
    """
    Extracts the iso-surface of a volume with Dual Marching Cubes.

    Args:
        data (array_like): Volume samples, x varying fastest.
        dims (tuple[int, int, int]): Volume extent (dimX, dimY, dimZ).
        iso (int or float): Iso value.
        generate_manifold (bool): Apply the manifold correction.
        generate_soup (bool): Do not share vertices between quads.
        device (str): Device the extraction runs on.

    Returns:
        torchQuadMesh: Vertices in grid index coordinates and quads.

    Raises:
        ValueError: If the volume does not match its dimensions.
    """
    check_volume(data, dims)
    constructor = DualMC(device=device)
    vertices, quads = constructor(
        data,
        dims,
        iso,
        generate_manifold=generate_manifold,
        generate_soup=generate_soup,
    )
    return torchQuadMesh(vertices, quads)
