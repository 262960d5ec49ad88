"""
Unit tests for surface mesh extraction.
"""

import sys
from pathlib import Path
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_builder.block import Block, initialize_materials
from voxel_builder.color import PackedColor, TrueColor
from voxel_builder.errors import EncodingFailure
from voxel_builder.grid import VoxelGrid
from voxel_builder.mesh import SurfaceMesher, deduplicate_vertices, mesh_stats


RED = PackedColor.from_octal("700")


def triangle_normals(mesh):
    """Unnormalized face normals of every triangle."""
    tris = mesh.vertices[mesh.indices.astype(np.int64).reshape(-1, 3)]
    return np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])


class TestSurfaceMesher(unittest.TestCase):
    """Tests for face-culled mesh extraction."""

    def test_empty_grid(self):
        """Test that an empty grid produces no geometry."""
        grid = VoxelGrid(4, 4, 4, PackedColor)
        mesh = SurfaceMesher().mesh(grid)

        assert len(mesh.vertices) == 0
        assert len(mesh.indices) == 0

    def test_single_voxel(self):
        """Test a single voxel emits 6 faces over 8 corners."""
        grid = VoxelGrid(1, 1, 1, PackedColor)
        grid.set(0, 0, 0, RED)
        mesh = SurfaceMesher().mesh(grid)

        assert len(mesh.vertices) == 8
        assert len(mesh.indices) == 36
        assert mesh_stats(mesh)["triangles"] == 12
        assert mesh.vertices.dtype == np.float32
        assert mesh.indices.dtype == np.uint32
        assert np.allclose(mesh.colors, [1.0, 0.0, 0.0])

        assert mesh.vertices.min() == 0.0
        assert mesh.vertices.max() == 1.0

    def test_windings_face_outward(self):
        """Test every triangle of a cube faces away from its center."""
        grid = VoxelGrid(3, 3, 3, PackedColor)
        grid.set(1, 1, 1, RED)
        mesh = SurfaceMesher().mesh(grid)

        tris = mesh.vertices[mesh.indices.astype(np.int64).reshape(-1, 3)]
        outward = tris.mean(axis=1) - np.array([1.5, 1.5, 1.5], dtype=np.float32)
        dots = np.einsum("ij,ij->i", triangle_normals(mesh), outward)
        assert np.all(dots > 0)

    def test_adjacent_faces_culled(self):
        """Test no face is emitted between two adjacent voxels."""
        grid = VoxelGrid(2, 1, 1, PackedColor)
        grid.set(0, 0, 0, RED)
        grid.set(1, 0, 0, RED)
        mesh = SurfaceMesher().mesh(grid)

        # 5 visible faces per voxel
        assert len(mesh.indices) == 2 * 5 * 6

        # No triangle lies in the shared plane x = 1
        tris = mesh.vertices[mesh.indices.astype(np.int64).reshape(-1, 3)]
        assert not np.any(np.all(tris[:, :, 0] == 1.0, axis=1))

    def test_enclosed_voxel_skipped(self):
        """Test that only the outer shell of a solid block is emitted."""
        grid = VoxelGrid(3, 3, 3, PackedColor)
        grid.fill(0, 0, 0, 2, 2, 2, RED)
        mesh = SurfaceMesher().mesh(grid)

        assert len(mesh.indices) == 6 * 9 * 6
        # Interior points lie on no visible face
        for point in ([1.0, 1.0, 1.0], [2.0, 2.0, 2.0]):
            assert not np.any(np.all(mesh.vertices == point, axis=1))

    def test_coincident_corners_stay_separate(self):
        """Test that dedup is by source offset, not by position."""
        grid = VoxelGrid(2, 1, 1, PackedColor)
        grid.set(0, 0, 0, RED)
        grid.set(1, 0, 0, PackedColor.from_octal("070"))
        mesh = SurfaceMesher().mesh(grid)

        assert len(mesh.vertices) == 16
        shared = np.all(mesh.vertices == [1.0, 0.0, 0.0], axis=1)
        assert shared.sum() == 2

    def test_truecolor_grid(self):
        """Test meshing a 24-bit color grid."""
        grid = VoxelGrid(2, 2, 2, TrueColor)
        grid.set(1, 1, 1, TrueColor.from_hex("ff8000"))
        mesh = SurfaceMesher().mesh(grid)

        assert len(mesh.indices) == 36
        assert np.allclose(mesh.colors[0], [1.0, 128 / 255, 0.0])
        assert mesh.vertices.min() == 1.0

    def test_scale(self):
        """Test vertex scaling."""
        grid = VoxelGrid(1, 1, 1, PackedColor)
        grid.set(0, 0, 0, RED)
        mesh = SurfaceMesher(scale=0.5).mesh(grid)
        assert mesh.vertices.max() == 0.5

    def test_block_grid_rejected(self):
        """Test that grids without color cannot be meshed."""
        initialize_materials()
        grid = VoxelGrid(1, 1, 1, Block)
        with self.assertRaises(EncodingFailure):
            SurfaceMesher().mesh(grid)


class TestDeduplication(unittest.TestCase):
    """Tests for vertex deduplication."""

    def test_reference_example(self):
        """Test first-reference ordering and index remapping."""
        vertices = np.arange(24, dtype=np.float32).reshape(8, 3)
        colors = np.zeros((8, 3), dtype=np.float32)
        indices = np.array([0, 1, 2, 2, 4, 0, 0, 7, 1], dtype=np.uint32)

        mesh = deduplicate_vertices(vertices, colors, indices)

        assert len(mesh.vertices) == 5
        assert list(mesh.indices) == [0, 1, 2, 2, 3, 0, 0, 4, 1]
        assert np.array_equal(mesh.vertices, vertices[[0, 1, 2, 4, 7]])

    def test_winding_preserved(self):
        """Test that triangles reference the same positions after dedup."""
        rng = np.random.default_rng(3)
        vertices = rng.random((20, 3), dtype=np.float32)
        colors = rng.random((20, 3), dtype=np.float32)
        indices = rng.integers(0, 20, size=30).astype(np.uint32)

        mesh = deduplicate_vertices(vertices, colors, indices)

        assert np.array_equal(mesh.vertices[mesh.indices], vertices[indices])
        assert np.array_equal(mesh.colors[mesh.indices], colors[indices])
        assert len(mesh.vertices) == len(np.unique(indices))

    def test_empty(self):
        """Test deduplicating nothing."""
        mesh = deduplicate_vertices(
            np.zeros((4, 3), dtype=np.float32),
            np.zeros((4, 3), dtype=np.float32),
            np.zeros((0,), dtype=np.uint32)
        )
        assert len(mesh.vertices) == 0


if __name__ == "__main__":
    unittest.main(verbosity=2)
