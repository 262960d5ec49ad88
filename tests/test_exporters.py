"""
Unit tests for the GLB and schematic encoders.
"""

import gzip
import io
import struct
import sys
import tempfile
from pathlib import Path
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_builder.block import Block, Material, initialize_materials
from voxel_builder.color import PackedColor
from voxel_builder.errors import EncodingFailure
from voxel_builder.exporters import GLBExporter, SchematicExporter, read_glb, read_schematic
from voxel_builder.grid import VoxelGrid
from voxel_builder.mesh import MeshData, SurfaceMesher


def single_voxel_mesh() -> MeshData:
    grid = VoxelGrid(1, 1, 1, PackedColor)
    grid.set(0, 0, 0, PackedColor.from_octal("703"))
    return SurfaceMesher().mesh(grid)


class TestGLBExporter(unittest.TestCase):
    """Tests for the glTF binary encoder."""

    def test_container_layout(self):
        """Test header, chunk alignment and declared lengths."""
        data = GLBExporter().encode(single_voxel_mesh())

        magic, version, length = struct.unpack_from("<III", data, 0)
        assert data[:4] == b"glTF"
        assert version == 2
        assert length == len(data)

        json_length, json_type = struct.unpack_from("<II", data, 12)
        assert json_type == 0x4E4F534A
        assert json_length % 4 == 0
        assert len(data) % 4 == 0

    def test_document(self):
        """Test accessors and buffer views describe the buffers."""
        gltf, bin_chunk = read_glb(GLBExporter().encode(single_voxel_mesh()))

        assert gltf["asset"]["version"] == "2.0"
        assert gltf["meshes"][0]["primitives"][0]["attributes"] == {"POSITION": 0, "COLOR_0": 1}
        assert gltf["meshes"][0]["primitives"][0]["indices"] == 2

        position, color, index = gltf["accessors"]
        assert position["count"] == 8
        assert position["min"] == [0.0, 0.0, 0.0]
        assert position["max"] == [1.0, 1.0, 1.0]
        assert color["byteOffset"] == 12
        assert index["count"] == 36
        assert index["componentType"] == 5125

        vertex_view, index_view = gltf["bufferViews"]
        assert vertex_view["byteStride"] == 24
        assert vertex_view["byteLength"] == 8 * 24
        assert index_view["byteOffset"] == 8 * 24
        assert index_view["byteLength"] == 36 * 4
        assert gltf["buffers"][0]["byteLength"] == len(bin_chunk)

    def test_binary_payload(self):
        """Test interleaved vertices and indices decode back to the mesh."""
        mesh = single_voxel_mesh()
        gltf, bin_chunk = read_glb(GLBExporter().encode(mesh))

        interleaved = np.frombuffer(bin_chunk[:8 * 24], dtype="<f4").reshape(8, 6)
        indices = np.frombuffer(bin_chunk[8 * 24:8 * 24 + 36 * 4], dtype="<u4")

        assert np.array_equal(interleaved[:, :3], mesh.vertices)
        assert np.allclose(interleaved[:, 3:], [1.0, 0.0, 1.0])
        assert np.array_equal(indices, mesh.indices)

    def test_deterministic(self):
        """Test that encoding twice yields identical bytes."""
        mesh = single_voxel_mesh()
        assert GLBExporter().encode(mesh) == GLBExporter().encode(mesh)

    def test_linear_colors(self):
        """Test optional sRGB to Linear conversion of vertex colors."""
        grid = VoxelGrid(1, 1, 1, PackedColor)
        grid.set(0, 0, 0, PackedColor.from_octal("400"))
        _, bin_chunk = read_glb(GLBExporter(convert_colors=True).encode(SurfaceMesher().mesh(grid)))

        red = np.frombuffer(bin_chunk[:24], dtype="<f4")[3]
        assert red < 4 / 7

    def test_empty_mesh(self):
        """Test that an empty mesh cannot be encoded."""
        mesh = SurfaceMesher().mesh(VoxelGrid(2, 2, 2, PackedColor))
        with self.assertRaises(EncodingFailure):
            GLBExporter().encode(mesh)

    def test_export_targets(self):
        """Test writing to a path and to a stream."""
        mesh = single_voxel_mesh()
        expected = GLBExporter().encode(mesh)

        stream = io.BytesIO()
        GLBExporter().export(mesh, stream)
        assert stream.getvalue() == expected

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cube.glb"
            GLBExporter().export(mesh, path)
            assert path.read_bytes() == expected


class TestSchematicExporter(unittest.TestCase):
    """Tests for the legacy schematic encoder."""

    @classmethod
    def setUpClass(cls):
        initialize_materials()

    def make_grid(self) -> VoxelGrid:
        grid = VoxelGrid(3, 2, 4, Block)
        grid.fill(0, 0, 0, 2, 0, 3, Block.parse("stone"))
        grid.set(1, 1, 2, Block.parse("wool", 14))
        return grid

    def test_tag_structure(self):
        """Test the root compound and its fields."""
        name, root = read_schematic(SchematicExporter().encode(self.make_grid()))

        assert name == "Schematic"
        assert list(root) == ["Width", "Height", "Length", "Materials", "Blocks", "Data"]
        assert (root["Width"], root["Height"], root["Length"]) == (3, 2, 4)
        assert root["Materials"] == "Alpha"
        assert len(root["Blocks"]) == 3 * 2 * 4
        assert len(root["Data"]) == 3 * 2 * 4

    def test_voxel_order(self):
        """Test Blocks and Data use (y * Length + z) * Width + x."""
        _, root = read_schematic(SchematicExporter().encode(self.make_grid()))

        index = (1 * 4 + 2) * 3 + 1
        assert root["Blocks"][index] == Material.wool
        assert root["Data"][index] == 14
        assert root["Blocks"][0] == Material.stone
        assert root["Blocks"][(1 * 4 + 0) * 3 + 0] == Material.air

    def test_raw_stream_prefix(self):
        """Test the uncompressed stream starts with the named compound."""
        raw = gzip.decompress(SchematicExporter().encode(self.make_grid()))

        assert raw[:12] == b"\x0a\x00\x09Schematic"
        assert raw[12:22] == b"\x02\x00\x05Width\x00\x03"
        assert raw[22:33] == b"\x02\x00\x06Height\x00\x02"
        # End tag closing the root compound
        assert raw[-1] == 0

    def test_deterministic(self):
        """Test that encoding twice yields identical bytes."""
        grid = self.make_grid()
        first = SchematicExporter().encode(grid)
        second = SchematicExporter().encode(grid)

        assert first == second
        # gzip mtime field is fixed
        assert first[4:8] == b"\x00\x00\x00\x00"

    def test_color_grid_rejected(self):
        """Test that color grids cannot be written as schematics."""
        grid = VoxelGrid(1, 1, 1, PackedColor)
        with self.assertRaises(EncodingFailure):
            SchematicExporter().encode(grid)


if __name__ == "__main__":
    unittest.main(verbosity=2)
