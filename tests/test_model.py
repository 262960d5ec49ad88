"""
Unit tests for cell types, the material table and the voxel grid.
"""

import sys
from pathlib import Path
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_builder.block import (
    BLOCK_COLORS,
    MATERIALS,
    Block,
    Material,
    MaterialTable,
    block_data_namespace,
    initialize_materials,
)
from voxel_builder.color import PackedColor, TrueColor, srgb_to_linear
from voxel_builder.errors import (
    InvalidValueEncoding,
    MaterialTableNotInitialized,
    OutOfBounds,
)
from voxel_builder.grid import VoxelGrid


class TestPackedColor(unittest.TestCase):
    """Tests for the 3/3/2 octal color encoding."""

    def test_empty_sentinel(self):
        """Test that "000" is the EMPTY color."""
        assert PackedColor.from_octal("000") == PackedColor.EMPTY
        assert PackedColor.EMPTY.value == 0

    def test_maximum_value(self):
        """Test that "773" packs to the maximum value."""
        color = PackedColor.from_octal("773")
        assert color.value == 255
        assert color.to_rgb_normalized() == (1.0, 1.0, 1.0)

    def test_channel_packing(self):
        """Test bit layout of each channel."""
        assert PackedColor.from_octal("700").value == 7 << 5
        assert PackedColor.from_octal("070").value == 7 << 2
        assert PackedColor.from_octal("003").value == 3
        assert PackedColor.from_octal("521").to_octal() == "521"

    def test_invalid_digit_position(self):
        """Test that the failing digit position is reported."""
        cases = {"800": 0, "080": 1, "004": 2, "0a0": 1}
        for text, position in cases.items():
            with self.assertRaises(InvalidValueEncoding) as ctx:
                PackedColor.from_octal(text)
            assert ctx.exception.position == position
            assert ctx.exception.raw == text

    def test_invalid_length(self):
        """Test strings that are not exactly three digits."""
        for text in ("", "77", "7731"):
            with self.assertRaises(InvalidValueEncoding):
                PackedColor.from_octal(text)

    def test_aux_rejected(self):
        """Test that colors take no aux byte."""
        with self.assertRaises(TypeError):
            PackedColor.parse("700", 3)

    def test_normalized_array(self):
        """Test vectorized normalization matches the scalar path."""
        colors = [PackedColor.from_octal(t) for t in ("700", "070", "003", "421")]
        data = np.array([[c.value] for c in colors], dtype=np.uint8)
        rgb = PackedColor.normalized_array(data)

        assert rgb.dtype == np.float32
        for row, color in zip(rgb, colors):
            assert np.allclose(row, color.to_rgb_normalized())


class TestTrueColor(unittest.TestCase):
    """Tests for the 24-bit hex color encoding."""

    def test_parse_hex(self):
        """Test mixed-case hex parsing."""
        color = TrueColor.from_hex("123aBC")
        assert (color.r, color.g, color.b) == (0x12, 0x3A, 0xBC)
        assert color.to_hex() == "123ABC"

    def test_empty(self):
        """Test that black is the EMPTY sentinel."""
        assert TrueColor.from_hex("000000") == TrueColor.EMPTY

    def test_invalid_digit_position(self):
        """Test that the first non-hex character is reported."""
        with self.assertRaises(InvalidValueEncoding) as ctx:
            TrueColor.from_hex("12345g")
        assert ctx.exception.position == 5

    def test_invalid_length(self):
        """Test strings that are not exactly six digits."""
        with self.assertRaises(InvalidValueEncoding):
            TrueColor.from_hex("fff")


class TestColorConversion(unittest.TestCase):
    """Tests for sRGB to Linear conversion."""

    def test_linear_zero_one(self):
        """Test that black and white are fixed points."""
        colors = np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]], dtype=np.float32)
        linear = srgb_to_linear(colors)

        assert np.allclose(linear[0], 0.0)
        assert np.allclose(linear[1], 1.0, atol=1e-6)

    def test_midtone_darkens(self):
        """Test that sRGB midtones map to smaller linear values."""
        colors = np.array([[0.5, 0.5, 0.5]], dtype=np.float32)
        linear = srgb_to_linear(colors)
        assert np.allclose(linear[0], 0.214, atol=1e-3)


class TestMaterials(unittest.TestCase):
    """Tests for the block material table."""

    @classmethod
    def setUpClass(cls):
        initialize_materials()

    def test_uninitialized_lookup_fails(self):
        """Test that a table must be initialized before lookups."""
        table = MaterialTable()
        assert not table.initialized
        with self.assertRaises(MaterialTableNotInitialized):
            table.lookup("stone")

    def test_initialize_is_idempotent(self):
        """Test that repeated initialization keeps the same map."""
        table = MaterialTable()
        table.initialize()
        names = table.names()
        table.initialize()
        assert table.names() == names

    def test_lookup(self):
        """Test material ids of the legacy table."""
        assert MATERIALS.lookup("air") == Material.air == 0
        assert MATERIALS.lookup("stone") == 1
        assert MATERIALS.lookup("wool") == 35
        assert MATERIALS.lookup("structure_block") == 235
        assert len(MATERIALS.names()) == 236

    def test_lookup_is_case_sensitive(self):
        """Test that unknown names are rejected."""
        with self.assertRaises(InvalidValueEncoding):
            MATERIALS.lookup("Stone")

    def test_block_parse(self):
        """Test block parsing with and without aux data."""
        assert Block.parse("stone") == Block(Material.stone, 0)
        assert Block.parse("wool", 14) == Block(Material.wool, 14)
        assert Block.parse("air") == Block.EMPTY

    def test_block_data_colors(self):
        """Test the BlockData.Color table exposed to scripts."""
        data = block_data_namespace()
        assert data.Color.White == 0
        assert data.Color.Red == 14
        assert data.Color.Black == 15
        assert len(BLOCK_COLORS) == 16


class TestVoxelGrid(unittest.TestCase):
    """Tests for VoxelGrid class."""

    def test_create_grid(self):
        """Test grid creation."""
        grid = VoxelGrid(16, 8, 4, PackedColor)
        assert grid.shape == (16, 8, 4)
        assert grid.count_voxels() == 0
        assert grid.get(15, 7, 3) == PackedColor.EMPTY

    def test_set_get_voxel(self):
        """Test setting and getting voxels."""
        grid = VoxelGrid(8, 8, 8, TrueColor)
        red = TrueColor.from_hex("ff0000")
        grid.set(1, 2, 3, red)

        assert grid.get(1, 2, 3) == red
        assert grid.count_voxels() == 1
        assert grid.get(3, 2, 1) == TrueColor.EMPTY

    def test_row_major_index(self):
        """Test the flat index formula."""
        grid = VoxelGrid(5, 6, 7, PackedColor)
        assert grid.index(0, 0, 0) == 0
        assert grid.index(1, 0, 0) == 1
        assert grid.index(0, 0, 1) == 5
        assert grid.index(0, 1, 0) == 35
        assert grid.index(4, 5, 6) == 5 * 6 * 7 - 1

    def test_out_of_bounds(self):
        """Test out-of-bounds access on every axis."""
        grid = VoxelGrid(4, 5, 6, PackedColor)
        color = PackedColor.from_octal("700")

        for coords, axis, value in (
            ((4, 0, 0), "x", 4),
            ((0, 5, 0), "y", 5),
            ((0, 0, 6), "z", 6),
            ((-1, 0, 0), "x", -1),
        ):
            with self.assertRaises(OutOfBounds) as ctx:
                grid.set(*coords, color)
            assert ctx.exception.axis == axis
            assert ctx.exception.value == value

            with self.assertRaises(OutOfBounds):
                grid.get(*coords)

        assert str(OutOfBounds("x", 12)) == "invalid x 12"
        assert grid.count_voxels() == 0

    def test_fill_exact_box(self):
        """Test that fill writes exactly the inclusive box."""
        grid = VoxelGrid(10, 10, 10, PackedColor)
        color = PackedColor.from_octal("123")
        grid.fill(1, 2, 3, 7, 8, 9, color)

        for x in range(10):
            for y in range(10):
                for z in range(10):
                    inside = 1 <= x <= 7 and 2 <= y <= 8 and 3 <= z <= 9
                    expected = color if inside else PackedColor.EMPTY
                    assert grid.get(x, y, z) == expected

        assert grid.count_voxels() == 7 * 7 * 7

    def test_fill_empty_range(self):
        """Test that a reversed range writes nothing."""
        grid = VoxelGrid(4, 4, 4, PackedColor)
        grid.fill(3, 0, 0, 1, 3, 3, PackedColor.from_octal("700"))
        assert grid.count_voxels() == 0

    def test_fill_partial_then_fails(self):
        """Test that an out-of-bounds fill keeps the cells written before it."""
        grid = VoxelGrid(4, 4, 4, PackedColor)
        color = PackedColor.from_octal("700")

        with self.assertRaises(OutOfBounds) as ctx:
            grid.fill(2, 0, 0, 5, 0, 0, color)

        assert ctx.exception.axis == "x"
        assert ctx.exception.value == 4
        assert grid.get(2, 0, 0) == color
        assert grid.get(3, 0, 0) == color
        assert grid.count_voxels() == 2

    def test_fill_partial_z(self):
        """Test that a z overflow stops after the first in-bounds run."""
        grid = VoxelGrid(4, 4, 4, PackedColor)
        color = PackedColor.from_octal("070")

        with self.assertRaises(OutOfBounds) as ctx:
            grid.fill(0, 0, 2, 1, 1, 4, color)

        assert ctx.exception.axis == "z"
        assert ctx.exception.value == 4
        # Only x=0, y=0, z in [2, 3] was visited before the failure
        assert grid.count_voxels() == 2
        assert grid.get(0, 0, 2) == color
        assert grid.get(0, 0, 3) == color

    def test_block_grid(self):
        """Test block cells keep material and aux."""
        initialize_materials()
        grid = VoxelGrid(3, 3, 3, Block)
        grid.set(1, 1, 1, Block.parse("wool", 5))

        assert grid.get(1, 1, 1) == Block(Material.wool, 5)
        assert grid.count_voxels() == 1
        assert grid.raw_channel(0)[grid.index(1, 1, 1)] == Material.wool
        assert grid.raw_channel(1)[grid.index(1, 1, 1)] == 5

    def test_iterate_and_occupancy(self):
        """Test occupancy mask and voxel iteration."""
        grid = VoxelGrid(4, 4, 4, PackedColor)
        grid.set(1, 2, 3, PackedColor.from_octal("700"))

        mask = grid.occupancy()
        assert mask.shape == (4, 4, 4)
        assert mask[1, 2, 3]
        assert mask.sum() == 1

        voxels = list(grid.iterate_voxels())
        assert voxels == [(1, 2, 3, PackedColor.from_octal("700"))]

    def test_copy_is_independent(self):
        """Test that copies do not share the buffer."""
        grid = VoxelGrid(2, 2, 2, PackedColor)
        clone = grid.copy()
        clone.set(0, 0, 0, PackedColor.from_octal("700"))

        assert grid.count_voxels() == 0
        assert clone.count_voxels() == 1


if __name__ == "__main__":
    unittest.main(verbosity=2)
