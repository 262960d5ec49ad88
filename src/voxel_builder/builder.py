"""
Build Pipeline

Script -> VoxelGrid -> encoded bytes, and the request flow around it:
prompt -> generated script -> build -> storage.

Pipeline Stages:
1. Sandbox: execute the build script against a fresh grid
2. Mesh (glb profiles): face-culled surface mesh with deduplicated vertices
3. Encode: GLB container or gzip tag-stream schematic
"""

from typing import Optional
import asyncio
import logging
import time

from .config import BuildProfile
from .exporters import GLBExporter, SchematicExporter
from .grid import VoxelGrid
from .mesh import SurfaceMesher, mesh_stats
from .sandbox import ScriptSandbox


logger = logging.getLogger(__name__)


class VoxelBuilder:
    """
    Synchronous build pipeline for one profile.

    Each call works on its own grid and mesh, so one builder may serve
    concurrent builds from several threads.
    """

    def __init__(
        self,
        profile: BuildProfile,
        max_steps: Optional[int] = None,
        convert_colors: bool = False
    ):
        """
        Initialize the builder.

        Args:
            profile: Build profile (cell type, size ceiling, output format)
            max_steps: Optional per-script line budget; None is unbounded
            convert_colors: Write linear instead of sRGB vertex colors
        """
        self.profile = profile
        self.sandbox = ScriptSandbox(profile, max_steps=max_steps)
        self.mesher = SurfaceMesher()
        self.glb_exporter = GLBExporter(convert_colors=convert_colors)
        self.schematic_exporter = SchematicExporter()

        if max_steps is None:
            logger.info("script execution is unbounded (no max_steps configured)")

    @property
    def extension(self) -> str:
        return self.profile.extension

    def build(self, source: str) -> VoxelGrid:
        """Run a build script and return its grid."""
        return self.sandbox.run(source)

    def serialize(self, grid: VoxelGrid) -> bytes:
        """Encode a grid in the profile's output format."""
        if self.profile.output_format == "schematic":
            return self.schematic_exporter.encode(grid)

        mesh = self.mesher.mesh(grid)
        stats = mesh_stats(mesh)
        logger.info(
            "mesh: %d vertices, %d triangles", stats["vertices"], stats["triangles"]
        )
        return self.glb_exporter.encode(mesh)

    def build_bytes(self, source: str) -> bytes:
        """Run a build script and encode the result."""
        start = time.perf_counter()
        grid = self.build(source)
        data = self.serialize(grid)
        logger.info(
            "built %s (%d bytes) in %.2fs",
            self.profile.output_format, len(data), time.perf_counter() - start
        )
        return data


class BuildService:
    """
    The request flow: generate a script, build it, store the result.

    Code generation and storage are awaited; the build itself runs in a
    worker thread so the event loop stays responsive.
    """

    def __init__(self, generator, builder: VoxelBuilder, storage):
        self.generator = generator
        self.builder = builder
        self.storage = storage

    async def generate(self, id: str, prompt: str) -> str:
        """
        Build a prompt and store it under id.

        Returns:
            Storage location of the encoded build
        """
        logger.info("generate request id=%s", id)
        source = await self.generator.generate(prompt)
        data = await asyncio.to_thread(self.builder.build_bytes, source)
        return await self.storage.put(id, data)
