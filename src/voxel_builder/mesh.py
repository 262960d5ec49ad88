"""
Surface Mesh Extraction with Numba JIT Compilation

Converts a color voxel grid into an indexed triangle mesh.

Algorithm Overview:
1. Face Culling: a cube face is emitted only where the neighbor cell is
   EMPTY or outside the grid, so faces between two opaque voxels never exist
2. Corner Emission: a voxel with at least one visible face contributes its
   8 corner vertices, all carrying the voxel color
3. Deduplication: vertices are compacted to those actually referenced,
   keyed by their offset in the source buffer

Deduplication is by buffer offset, not by position. Coincident corners of
two neighboring voxels stay separate vertices.
"""

from enum import IntEnum
from typing import Dict, NamedTuple, Tuple
import numpy as np
from numba import njit

from .errors import EncodingFailure


class FaceDirection(IntEnum):
    """Face normal directions."""
    WEST = 0   # -X
    EAST = 1   # +X
    SOUTH = 2  # -Y
    NORTH = 3  # +Y
    BOTTOM = 4 # -Z
    TOP = 5    # +Z


# Neighbor offset for each face direction
FACE_OFFSETS = np.array([
    [-1, 0, 0],  # WEST
    [1, 0, 0],   # EAST
    [0, -1, 0],  # SOUTH
    [0, 1, 0],   # NORTH
    [0, 0, -1],  # BOTTOM
    [0, 0, 1],   # TOP
], dtype=np.int64)

# Corner c sits at (x + (c >> 2), y + ((c >> 1) & 1), z + (c & 1))
CORNER_OFFSETS = np.array([
    [0, 0, 0],
    [0, 0, 1],
    [0, 1, 0],
    [0, 1, 1],
    [1, 0, 0],
    [1, 0, 1],
    [1, 1, 0],
    [1, 1, 1],
], dtype=np.int64)

# Two counter-clockwise triangles per face, as corner numbers
FACE_WINDINGS = np.array([
    [3, 2, 1, 0, 1, 2],  # WEST
    [6, 7, 5, 6, 5, 4],  # EAST
    [0, 4, 5, 0, 5, 1],  # SOUTH
    [7, 6, 2, 7, 2, 3],  # NORTH
    [2, 6, 0, 6, 4, 0],  # BOTTOM
    [7, 3, 1, 7, 1, 5],  # TOP
], dtype=np.int64)


class MeshData(NamedTuple):
    """Container for mesh geometry data."""
    vertices: np.ndarray     # (N, 3) float32 positions
    colors: np.ndarray       # (N, 3) float32 normalized RGB
    indices: np.ndarray      # (M,) uint32 triangle indices


@njit(cache=True)
def _is_solid(solid: np.ndarray, x: int, y: int, z: int) -> bool:
    """Check if a cell is inside the grid and not EMPTY."""
    sx, sy, sz = solid.shape
    if x < 0 or x >= sx or y < 0 or y >= sy or z < 0 or z >= sz:
        return False
    return solid[x, y, z]


@njit(cache=True)
def _extract_surface(
    solid: np.ndarray,
    colors: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Emit culled cube faces for every solid voxel.

    Args:
        solid: Occupancy mask of shape (X, Y, Z)
        colors: Normalized RGB of shape (X, Y, Z, 3)

    Returns:
        Tuple of (positions, vertex_colors, indices) before deduplication
    """
    sx, sy, sz = solid.shape

    solid_count = 0
    for x in range(sx):
        for y in range(sy):
            for z in range(sz):
                if solid[x, y, z]:
                    solid_count += 1

    # Preallocate for the worst case: every voxel isolated
    positions = np.empty((solid_count * 8, 3), dtype=np.float32)
    vertex_colors = np.empty((solid_count * 8, 3), dtype=np.float32)
    indices = np.empty(solid_count * 36, dtype=np.uint32)
    visible = np.zeros(6, dtype=np.bool_)
    vertex_count = 0
    index_count = 0

    for x in range(sx):
        for y in range(sy):
            for z in range(sz):
                if not solid[x, y, z]:
                    continue

                any_visible = False
                for d in range(6):
                    visible[d] = not _is_solid(
                        solid,
                        x + FACE_OFFSETS[d, 0],
                        y + FACE_OFFSETS[d, 1],
                        z + FACE_OFFSETS[d, 2]
                    )
                    if visible[d]:
                        any_visible = True

                # Fully enclosed voxels contribute nothing
                if not any_visible:
                    continue

                base = vertex_count
                for c in range(8):
                    positions[base + c, 0] = np.float32(x + CORNER_OFFSETS[c, 0])
                    positions[base + c, 1] = np.float32(y + CORNER_OFFSETS[c, 1])
                    positions[base + c, 2] = np.float32(z + CORNER_OFFSETS[c, 2])
                    for k in range(3):
                        vertex_colors[base + c, k] = colors[x, y, z, k]
                vertex_count += 8

                for d in range(6):
                    if visible[d]:
                        for k in range(6):
                            indices[index_count + k] = np.uint32(base + FACE_WINDINGS[d, k])
                        index_count += 6

    return (
        positions[:vertex_count],
        vertex_colors[:vertex_count],
        indices[:index_count]
    )


def deduplicate_vertices(
    vertices: np.ndarray,
    colors: np.ndarray,
    indices: np.ndarray
) -> MeshData:
    """
    Keep one vertex per distinct referenced source offset.

    Vertices are kept in order of first reference and indices are remapped
    accordingly, so triangle winding is preserved. Unreferenced vertices
    are dropped.

    Example:
        indices [0, 1, 2, 2, 4, 0, 0, 7, 1] over 8 vertices keeps vertices
        0, 1, 2, 4, 7 and remaps indices to [0, 1, 2, 2, 3, 0, 0, 4, 1].
    """
    if len(indices) == 0:
        return MeshData(
            vertices=np.zeros((0, 3), dtype=np.float32),
            colors=np.zeros((0, 3), dtype=np.float32),
            indices=np.zeros((0,), dtype=np.uint32)
        )

    unique, first_seen, inverse = np.unique(
        indices, return_index=True, return_inverse=True
    )

    # Reorder the sorted unique offsets by first appearance
    order = np.argsort(first_seen, kind="stable")
    rank = np.empty(len(unique), dtype=np.int64)
    rank[order] = np.arange(len(unique))

    kept = unique[order].astype(np.int64)
    remapped = rank[inverse.reshape(-1)].astype(np.uint32)

    return MeshData(
        vertices=np.ascontiguousarray(vertices[kept], dtype=np.float32),
        colors=np.ascontiguousarray(colors[kept], dtype=np.float32),
        indices=remapped
    )


class SurfaceMesher:
    """
    Face-culling mesher for color voxel grids.

    This class wraps the Numba-accelerated extraction kernel and
    the deduplication pass.
    """

    def __init__(self, scale: float = 1.0):
        """
        Initialize the mesher.

        Args:
            scale: Vertex position scale factor (default 1.0 = 1 unit per voxel)
        """
        self.scale = scale

    def mesh(self, grid) -> MeshData:
        """
        Generate a mesh from a VoxelGrid.

        Args:
            grid: VoxelGrid over a color cell type

        Returns:
            MeshData containing vertices, colors, and indices
        """
        if not grid.cell_type.HAS_COLOR:
            raise EncodingFailure(
                f"{grid.cell_type.__name__} grids carry no color and cannot be meshed"
            )

        channels = grid.channels_xyz()
        solid = ~grid.cell_type.empty_mask(channels)
        colors = grid.cell_type.normalized_array(channels)

        positions, vertex_colors, indices = _extract_surface(
            np.ascontiguousarray(solid), np.ascontiguousarray(colors)
        )
        mesh = deduplicate_vertices(positions, vertex_colors, indices)

        if self.scale != 1.0:
            mesh = mesh._replace(vertices=(mesh.vertices * self.scale).astype(np.float32))

        return mesh


def mesh_stats(mesh: MeshData) -> Dict[str, int]:
    """Vertex and triangle counts for reporting."""
    return {
        "vertices": len(mesh.vertices),
        "triangles": len(mesh.indices) // 3,
        "indices": len(mesh.indices),
    }
