#!/usr/bin/env python3
"""
Voxel Builder Demo Script

This script demonstrates the full build pipeline by:
1. Running a few built-in build scripts (no API key needed)
2. Exporting each to GLB or schematic depending on its profile
3. Printing grid and mesh statistics

Run with: python examples/demo.py
"""

import sys
from pathlib import Path
import time

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_builder import VoxelBuilder, get_profile, initialize_materials
from voxel_builder.color import PackedColor
from voxel_builder.grid import VoxelGrid
from voxel_builder.mesh import SurfaceMesher, mesh_stats


DEMO_BUILDS = [
    ("pyramid", "voxel_art", '''\
s = Schematic(15, 8, 15)
for level in range(8):
    s.Fill(level, level, level, 14 - level, level, 14 - level, "%d%d1" % (7 - level // 2, 4 + level // 3))
s
'''),
    ("sphere", "truecolor", '''\
r = 10
s = Schematic(2 * r + 1, 2 * r + 1, 2 * r + 1)
for x in range(s.xSize()):
    for y in range(s.ySize()):
        for z in range(s.zSize()):
            if math.dist((x, y, z), (r, r, r)) <= r:
                s.Set(x, y, z, "%02x%02x%02x" % (x * 12, y * 12, 200))
s
'''),
    ("tower", "blocks", '''\
s = Schematic(7, 20, 7)
s.Fill(0, 0, 0, 6, 0, 6, "stone")
for y in range(1, 18):
    s.Fill(0, y, 0, 6, y, 6, "cobblestone")
    s.Fill(1, y, 1, 5, y, 5, "air")
s.Fill(0, 18, 0, 6, 18, 6, "wool", BlockData.Color.Red)
s
'''),
]


def run_demo():
    """Run the demonstration."""
    print("=" * 60)
    print("Voxel Builder - Demo")
    print("=" * 60)

    initialize_materials()

    # Create output directory
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    total_start = time.time()

    for name, profile_name, source in DEMO_BUILDS:
        print(f"\n--- Building: {name} ({profile_name}) ---")
        profile = get_profile(profile_name)
        builder = VoxelBuilder(profile, max_steps=1_000_000)

        start = time.time()
        grid = builder.build(source)
        build_time = time.time() - start

        print(f"  Grid size: {grid.size_x}x{grid.size_y}x{grid.size_z}")
        print(f"  Voxel count: {grid.count_voxels()}")
        print(f"  Script: {build_time*1000:.1f}ms")

        if profile.output_format == "glb":
            stats = mesh_stats(builder.mesher.mesh(grid))
            print(f"  Vertices: {stats['vertices']}")
            print(f"  Triangles: {stats['triangles']}")

        start = time.time()
        data = builder.serialize(grid)
        output_path = output_dir / f"{name}.{profile.extension}"
        output_path.write_bytes(data)

        print(f"  Export: {(time.time() - start)*1000:.1f}ms, {len(data)} bytes")
        print(f"  Saved: {output_path}")

    print("\n" + "=" * 60)
    print(f"Demo complete! Total time: {time.time() - total_start:.2f}s")
    print(f"Output files in: {output_dir}")
    print("=" * 60)

    return 0


def benchmark_meshing():
    """Benchmark face-culling mesh extraction on solid cubes."""
    print("\n--- Mesh Extraction Benchmark ---\n")

    color = PackedColor.from_octal("461")

    for size in [16, 32, 64, 128]:
        grid = VoxelGrid(size, size, size, PackedColor)
        grid.fill(0, 0, 0, size - 1, size - 1, size - 1, color)

        mesher = SurfaceMesher()
        start = time.time()
        mesh = mesher.mesh(grid)
        elapsed = time.time() - start
        stats = mesh_stats(mesh)

        print(f"Grid size: {size}x{size}x{size}")
        print(f"  {elapsed*1000:.1f}ms, {stats['vertices']} verts, {stats['triangles']} tris")
        print()


if __name__ == "__main__":
    run_demo()

    # Uncomment to run benchmark
    # benchmark_meshing()
