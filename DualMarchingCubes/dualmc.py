"""
Dual Marching Cubes Implementation
==================================

This module contains the extraction engine of the Dual Marching Cubes
algorithm by Gregory M. Nielson. Faces and vertices of the standard Marching
Cubes surface correspond to vertices and faces of the dual surface. As a
Marching Cubes vertex is usually shared by four faces, the dual mesh is made
entirely of quads.

Under rare circumstances the original algorithm creates non-manifold meshes.
The engine optionally guarantees manifold meshes by taking the Manifold Dual
Marching Cubes approach from Rephael Wenger, chapter 3.3.5 of "Isosurfaces:
Geometry, Topology, and Algorithms".
"""

import logging

import numpy as np
import torch

import DualMarchingCubes
from DualMarchingCubes.cube import cube_corners, cube_edges, edge_axis
from DualMarchingCubes.gentables import NO_DIRECTION
from DualMarchingCubes.tables import dual_points_list, problematic_configs

logger = logging.getLogger(DualMarchingCubes.__name__)

__all__ = ["DualMC", "DualPointIndex"]


class DualPointIndex:
    """
    Shared vertex map of one extraction.

    A dual point is uniquely identified by the linearized index of its cell
    and its point code. Keys are the rows of a ``(N, 2)`` tensor, two keys are
    equal iff both entries are equal.

    Attributes:
        keys (torch.LongTensor): Known keys (V×2), row i belongs to vertex i.
        vertices (torch.Tensor): Vertex coordinates (V×3).
    """

    def __init__(self, device="cpu"):
        self.device = device
        self.clear()

    def clear(self):
        self.keys = torch.zeros((0, 2), dtype=torch.long, device=self.device)
        self.vertices = torch.zeros((0, 3), dtype=torch.float32, device=self.device)

    def __len__(self):
        return self.keys.shape[0]

    def get_or_create(self, keys, compute_fn):
        """
        Looks up the vertex index of every key and creates the vertices of
        keys that have not been seen before.

        New vertices are appended in order of the first occurrence of their key.

        Args:
            keys (torch.LongTensor): Dual point keys (N×2).
            compute_fn (callable): Maps new keys (M×2) to their vertices (M×3).

        Returns:
            torch.LongTensor: Vertex index of every key (N).
        """
        if keys.shape[0] == 0:
            return torch.zeros((0,), dtype=torch.long, device=self.device)

        n_known = len(self)
        all_keys = torch.cat([self.keys, keys], dim=0)
        unique_keys, inverse = torch.unique(all_keys, dim=0, return_inverse=True)
        positions = torch.arange(all_keys.shape[0], device=self.device)
        first_seen = torch.full(
            (unique_keys.shape[0],),
            all_keys.shape[0],
            dtype=torch.long,
            device=self.device,
        ).scatter_reduce(0, inverse, positions, reduce="amin")
        order = torch.argsort(first_seen)
        rank = torch.empty_like(order)
        rank[order] = torch.arange(order.shape[0], device=self.device)

        # known keys come first in all_keys and therefore keep their index
        new_keys = unique_keys[order[n_known:]]
        if new_keys.shape[0] > 0:
            self.vertices = torch.cat([self.vertices, compute_fn(new_keys)], dim=0)
        self.keys = unique_keys[order]
        return rank[inverse[n_known:]]


class DualMC:
    """
    Extracts quad meshes approximating an iso-surface of a sampled volume.

    During initialization the lookup tables of ``DualMarchingCubes.tables``
    are converted into PyTorch tensors on the specified device. All stages of
    an extraction operate on the whole grid at once.

    Attributes:
        device (str): Computational device, usually "cuda" or "cpu".
        dual_points_list (torch.Tensor): Dual Marching Cubes table (256×4)
            holding the edge masks of the dual points of every configuration.
        problematic_configs (torch.Tensor): Ambiguous face direction of every
            configuration (256), 255 if the configuration is unproblematic.
        cube_corners (torch.Tensor): Offsets of the 8 cell corners in Morton order.
        cube_edges (torch.Tensor): Corner pairs of the 12 cell edges.
        edge_dir_table (torch.Tensor): Axis of every cell edge.
        quad_cell_offsets (torch.Tensor): For every axis, the offsets of the
            four cells around a grid edge relative to its lower endpoint.
        quad_cell_edges (torch.Tensor): For every axis, the edge index the
            grid edge has in each of the four cells.
        point_to_index (DualPointIndex): Shared vertex map, reset per extraction.
    """

    def __init__(self, device="cpu"):
        self.device = device
        self.dual_points_list = torch.tensor(
            dual_points_list, dtype=torch.long, device=device, requires_grad=False
        )
        self.problematic_configs = torch.tensor(
            problematic_configs, dtype=torch.long, device=device, requires_grad=False
        )

        self.cube_corners = torch.tensor(cube_corners, dtype=torch.long, device=device)
        self.cube_corners_idx = torch.pow(2, torch.arange(8, device=device))
        self.cube_edges = torch.tensor(cube_edges, dtype=torch.long, device=device)
        self.edge_dir_table = torch.tensor(edge_axis, dtype=torch.long, device=device)
        self.edge_bits = torch.pow(2, torch.arange(12, device=device))

        # cells are listed counter-clockwise when looking down the grid edge
        self.quad_cell_offsets = torch.tensor(
            [
                [[0, 0, 0], [0, 0, -1], [0, -1, -1], [0, -1, 0]],  # x-dir edges
                [[0, 0, 0], [0, 0, -1], [-1, 0, -1], [-1, 0, 0]],  # y-dir edges
                [[0, 0, 0], [-1, 0, 0], [-1, -1, 0], [0, -1, 0]],  # z-dir edges
            ],
            dtype=torch.long,
            device=device,
        )
        self.quad_cell_edges = torch.tensor(
            [[0, 2, 6, 4], [8, 11, 10, 9], [3, 1, 5, 7]],
            dtype=torch.long,
            device=device,
        )
        # the quad of an x-dir edge keeps the cell order if the edge enters the
        # surface, the quads of y- and z-dir edges if it exits
        self.entering_keeps_order = torch.tensor(
            [True, False, False], device=device
        )
        self.quad_order = torch.arange(4, device=device)
        self.quad_order_flipped = torch.tensor([0, 3, 2, 1], device=device)

        self.point_to_index = DualPointIndex(device=device)

    def __call__(self, data, dims, iso, generate_manifold=False, generate_soup=False):
        return self.build(
            data,
            dims,
            iso,
            generate_manifold=generate_manifold,
            generate_soup=generate_soup,
        )

    def build(self, data, dims, iso, generate_manifold=False, generate_soup=False):
        r"""
        Extracts the iso-surface of a volume as a quad mesh.

        Every grid edge intersected by the iso-surface yields one quad whose
        corners are the dual points of the four cells sharing the edge. The
        quads are oriented such that their normals point towards samples
        below the iso value.

        Args:
            data (array_like): Volume samples of length dimX·dimY·dimZ, x
                varying fastest. Samples at or above ``iso`` are inside.
            dims (tuple[int, int, int]): Volume extent (dimX, dimY, dimZ),
                each at least 2.
            iso (int or float): Iso value, same numeric type as the samples.
            generate_manifold (bool, optional): Resolve face-adjacent
                ambiguous configurations such that every edge of the mesh is
                shared by exactly two quads.
            generate_soup (bool, optional): Give every quad four private
                vertices instead of sharing vertices between quads.

        Returns:
            (torch.Tensor, torch.LongTensor): Tuple of:
                - Vertices (V×3): Dual points in grid index coordinates.
                - Quads (Q×4): Zero-based vertex indices of every quad.

        Notes:
            The inputs are not validated, see
            :func:`DualMarchingCubes.utils.check_volume`.
        """
        volume = self._load_volume(data, dims)
        if hasattr(iso, "item"):
            iso = iso.item()

        cell_codes = self._get_cell_codes(volume, iso)
        if generate_manifold:
            cell_codes = self._resolve_manifold(cell_codes)

        surf_edges, edge_dirs, entering = self._identify_surf_edges(volume, iso)
        if surf_edges.shape[0] == 0:
            logger.debug("No grid edge intersects the iso-surface")
            self.point_to_index.clear()
            return (
                torch.zeros((0, 3), dtype=torch.float32, device=self.device),
                torch.zeros((0, 4), dtype=torch.long, device=self.device),
            )

        cells = surf_edges.unsqueeze(1) + self.quad_cell_offsets[edge_dirs]
        point_codes = self._get_dual_point_codes(
            cell_codes, cells, self.quad_cell_edges[edge_dirs]
        )
        keeps_order = entering == self.entering_keeps_order[edge_dirs]
        winding = torch.where(
            keeps_order.unsqueeze(1), self.quad_order, self.quad_order_flipped
        )

        if generate_soup:
            vertices, quads = self._build_quad_soup(
                volume, cells, point_codes, winding, iso
            )
        else:
            vertices, quads = self._build_shared_vertices_quads(
                volume, cells, point_codes, winding, iso
            )
        logger.debug(
            f"Extracted {quads.shape[0]} quads with {vertices.shape[0]} vertices "
            f"from a {'x'.join(str(int(d)) for d in dims)} volume"
        )
        return vertices, quads

    def _load_volume(self, data, dims):
        """
        Reshapes the samples to a (dimZ, dimY, dimX) tensor. Integer samples
        of any width are widened to int64.
        """
        if torch.is_tensor(data):
            volume = data.detach()
            if not volume.is_floating_point():
                volume = volume.to(torch.int64)
        else:
            volume = np.asarray(data)
            if volume.dtype.kind in "biu":
                volume = volume.astype(np.int64)
            volume = torch.as_tensor(volume)
        dim_x, dim_y, dim_z = (int(d) for d in dims)
        return volume.to(self.device).reshape(dim_z, dim_y, dim_x)

    @torch.no_grad()
    def _get_cell_codes(self, volume, iso):
        """
        Computes the 8 bit in/out configuration of every cell. Bit i is set if
        corner i of the cell is at or above the iso value.
        """
        occ = volume >= iso
        nz, ny, nx = (s - 1 for s in occ.shape)
        cell_codes = torch.zeros((nz, ny, nx), dtype=torch.long, device=self.device)
        for corner, (dx, dy, dz) in enumerate(self.cube_corners.tolist()):
            cell_codes += (
                occ[dz : dz + nz, dy : dy + ny, dx : dx + nx].long()
                * self.cube_corners_idx[corner]
            )
        return cell_codes

    @torch.no_grad()
    def _resolve_manifold(self, cell_codes):
        """
        If a C16 or C19 configuration shares its ambiguous face with another
        C16 or C19 configuration, its cell code is replaced by the inverse
        before dual points are looked up. Doing this for both cells of such a
        pair ensures manifold meshes, but removes the duality to Marching Cubes.

        Every cell is decided from the unresolved codes, independent of the
        order in which cells are processed.
        """
        direction = self.problematic_configs[cell_codes]
        candidates = torch.nonzero(direction != NO_DIRECTION)
        if candidates.shape[0] == 0:
            return cell_codes

        candidate_dirs = direction[candidates[:, 0], candidates[:, 1], candidates[:, 2]]
        # candidates are (z, y, x), the x axis is the last tensor dimension
        component = 2 - (candidate_dirs >> 1)
        delta = (candidate_dirs & 1) * 2 - 1
        rows = torch.arange(candidates.shape[0], device=self.device)
        neighbors = candidates.clone()
        neighbors[rows, component] += delta

        # cells at the volume boundary have no neighbor sharing the face
        n_cells = torch.tensor(cell_codes.shape, device=self.device)
        coord = neighbors[rows, component]
        inside = (coord >= 0) & (coord < n_cells[component])
        candidates = candidates[inside]
        neighbors = neighbors[inside]

        neighbor_dirs = direction[neighbors[:, 0], neighbors[:, 1], neighbors[:, 2]]
        flip = candidates[neighbor_dirs != NO_DIRECTION]
        logger.debug(f"Inverting {flip.shape[0]} ambiguous cell configurations")

        resolved = cell_codes.clone()
        resolved[flip[:, 0], flip[:, 1], flip[:, 2]] = (
            resolved[flip[:, 0], flip[:, 1], flip[:, 2]] ^ 0xFF
        )
        return resolved

    @torch.no_grad()
    def _identify_surf_edges(self, volume, iso):
        """
        Finds the grid edges whose endpoints lie on different sides of the
        iso value. Edges on the outermost layer of the two transverse axes are
        skipped, as not all four cells around them exist.

        Returns:
            (torch.LongTensor, torch.LongTensor, torch.BoolTensor): Lower
            endpoint (E×3, xyz), axis (E) and whether the edge enters the
            surface (E), ordered by the linearized index of the lower endpoint
            and then by axis.
        """
        occ = volume >= iso
        dims = tuple(reversed(occ.shape))
        surf_edges, edge_dirs, entering = [], [], []
        for axis in range(3):
            lower = [slice(1, d - 1) for d in dims]
            lower[axis] = slice(0, dims[axis] - 1)
            upper = list(lower)
            upper[axis] = slice(1, dims[axis])
            occ_lower = occ[tuple(reversed(lower))]
            occ_upper = occ[tuple(reversed(upper))]

            crossing = occ_lower != occ_upper
            start = torch.ones(3, dtype=torch.long, device=self.device)
            start[axis] = 0
            axis_edges = torch.nonzero(crossing).flip(-1) + start
            surf_edges.append(axis_edges)
            edge_dirs.append(
                torch.full(
                    (axis_edges.shape[0],), axis, dtype=torch.long, device=self.device
                )
            )
            # an intersected edge enters the surface if its upper end is inside
            entering.append(occ_upper[crossing])

        surf_edges = torch.cat(surf_edges)
        edge_dirs = torch.cat(edge_dirs)
        entering = torch.cat(entering)

        linear = surf_edges[:, 0] + dims[0] * (
            surf_edges[:, 1] + dims[1] * surf_edges[:, 2]
        )
        order = torch.argsort(linear * 3 + edge_dirs)
        return surf_edges[order], edge_dirs[order], entering[order]

    @torch.no_grad()
    def _get_dual_point_codes(self, cell_codes, cells, edges):
        """
        Looks up the point code of the dual point of each cell whose
        Marching Cubes face contains the given edge.

        Args:
            cell_codes (torch.LongTensor): Resolved configuration of all cells.
            cells (torch.LongTensor): Cell coordinates (..., 3), xyz.
            edges (torch.LongTensor): Edge index (...) within each cell.

        Returns:
            torch.LongTensor: 12 bit point codes (...), 0 if no dual point of
            the cell contains the edge.
        """
        codes = cell_codes[cells[..., 2], cells[..., 1], cells[..., 0]]
        candidates = self.dual_points_list[codes]
        hit = (candidates & self.edge_bits[edges].unsqueeze(-1)) != 0
        first = hit.long().argmax(dim=-1, keepdim=True)
        point_codes = torch.gather(candidates, -1, first).squeeze(-1)
        return torch.where(hit.any(dim=-1), point_codes, torch.zeros_like(point_codes))

    def _calculate_dual_points(self, volume, cells, point_codes, iso):
        """
        Computes the dual points as the mean of the Marching Cubes vertices on
        the edges selected by each point code.

        The vertex on an edge is placed by linear interpolation of the two
        endpoint samples. Edges without a sample difference give non-finite
        coordinates, which are passed on unchanged.

        Args:
            volume (torch.Tensor): Samples (dimZ×dimY×dimX).
            cells (torch.LongTensor): Cell coordinates (K×3), xyz.
            point_codes (torch.LongTensor): 12 bit point codes (K).
            iso (int or float): Iso value.

        Returns:
            torch.Tensor: Dual points (K×3) in grid index coordinates.
        """
        corners = cells.unsqueeze(1) + self.cube_corners.unsqueeze(0)
        samples = volume[corners[..., 2], corners[..., 1], corners[..., 0]].to(
            torch.float32
        )
        s_a = samples[:, self.cube_edges[:, 0]]
        s_b = samples[:, self.cube_edges[:, 1]]
        t = (float(iso) - s_a) / (s_b - s_a)

        # on its own axis an edge vertex sits at t, on the others at the
        # coordinate of the lower endpoint
        on_axis = self.edge_dir_table.unsqueeze(-1) == torch.arange(
            3, device=self.device
        )
        lower_corners = self.cube_corners[self.cube_edges[:, 0]].to(torch.float32)
        edge_vertices = torch.where(on_axis, t.unsqueeze(-1), lower_corners)

        used = (point_codes.unsqueeze(-1) & self.edge_bits) != 0
        summed = torch.where(
            used.unsqueeze(-1), edge_vertices, torch.zeros_like(edge_vertices)
        ).sum(dim=1)
        mean = summed / used.sum(dim=-1, keepdim=True).to(torch.float32)
        return cells.to(torch.float32) + mean

    def _build_shared_vertices_quads(self, volume, cells, point_codes, winding, iso):
        """
        Builds quads with shared vertex indices. A dual point is computed only
        the first time its key is requested.
        """
        dim_x, dim_y = volume.shape[2], volume.shape[1]
        cell_ids = cells[..., 0] + dim_x * (cells[..., 1] + dim_y * cells[..., 2])
        keys = torch.stack([cell_ids, point_codes], dim=-1).reshape(-1, 2)

        def compute_dual_points(new_keys):
            ids = new_keys[:, 0]
            new_cells = torch.stack(
                [ids % dim_x, (ids // dim_x) % dim_y, ids // (dim_x * dim_y)], dim=-1
            )
            return self._calculate_dual_points(volume, new_cells, new_keys[:, 1], iso)

        self.point_to_index.clear()
        indices = self.point_to_index.get_or_create(keys, compute_dual_points)
        quads = torch.gather(indices.reshape(-1, 4), 1, winding)
        return self.point_to_index.vertices, quads

    def _build_quad_soup(self, volume, cells, point_codes, winding, iso):
        """
        Builds a quad soup, every quad owns four consecutive vertices.
        """
        vertices = self._calculate_dual_points(
            volume, cells.reshape(-1, 3), point_codes.reshape(-1), iso
        ).reshape(-1, 4, 3)
        vertices = torch.gather(
            vertices, 1, winding.unsqueeze(-1).expand(-1, -1, 3)
        ).reshape(-1, 3)
        quads = torch.arange(
            vertices.shape[0], dtype=torch.long, device=self.device
        ).reshape(-1, 4)
        return vertices, quads
