"""
Command-Line Interface for Voxel Builder

Usage:
    voxbuild build tower.py -o tower.glb
    voxbuild build castle.py --profile blocks -o castle.schem --stats
    voxbuild generate "a red mushroom house" --id house --profile blocks

"""

import argparse
import asyncio
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from . import __version__
from .block import initialize_materials
from .builder import VoxelBuilder
from .config import PROFILES, get_profile, load_settings
from .mesh import mesh_stats
from .server import build_service


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="voxbuild",
        description="Voxel Builder - Run sandboxed build scripts and export GLB or schematic files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  voxbuild build tower.py -o tower.glb
      Run tower.py and export a glTF binary mesh

  voxbuild build castle.py --profile blocks -o castle.schem
      Build with material blocks and export a legacy schematic

  voxbuild generate "a small stone bridge" --id bridge
      Generate a script with OpenAI, build it and store the result

Profiles:
  voxel_art  - 3/3/2 octal colors ("773"), GLB output (default)
  truecolor  - hex colors ("ff8800"), GLB output
  blocks     - material names + aux byte, .schem output
        """
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output with debug logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # build
    build = subparsers.add_parser("build", help="Run a build script file")
    build.add_argument(
        "script",
        help="Build script file"
    )
    build.add_argument(
        "-o", "--output",
        help="Output file path (default: script name with the profile's extension)"
    )
    build.add_argument(
        "-p", "--profile",
        choices=sorted(PROFILES),
        default="voxel_art",
        help="Build profile (default: voxel_art)"
    )
    build.add_argument(
        "--max-steps",
        type=int,
        help="Abort scripts after this many executed lines (default: unbounded)"
    )
    build.add_argument(
        "--linear-colors",
        action="store_true",
        help="Convert sRGB vertex colors to linear for GLB output"
    )
    build.add_argument(
        "--stats",
        action="store_true",
        help="Print grid and mesh statistics"
    )

    # generate
    generate = subparsers.add_parser("generate", help="Generate, build and store from a prompt")
    generate.add_argument(
        "prompt",
        help="Natural-language description of the build"
    )
    generate.add_argument(
        "--id",
        required=True,
        help="Identifier the result is stored under"
    )
    generate.add_argument(
        "-p", "--profile",
        choices=sorted(PROFILES),
        help="Build profile (default: VOXEL_PROFILE or voxel_art)"
    )

    return parser


def run_build(args) -> int:
    """Run a build script file and write the encoded result."""
    script_path = Path(args.script)
    if not script_path.exists():
        print(f"Error: Script file not found: {script_path}", file=sys.stderr)
        return 1

    profile = get_profile(args.profile)
    output_path = Path(args.output) if args.output else script_path.with_suffix(f".{profile.extension}")

    start_time = time.time()

    try:
        builder = VoxelBuilder(
            profile,
            max_steps=args.max_steps,
            convert_colors=args.linear_colors
        )
        grid = builder.build(script_path.read_text(encoding="utf-8"))
        data = builder.serialize(grid)
        output_path.write_bytes(data)

        if args.stats:
            print("\nBuild Statistics:")
            print("  Grid size: {}x{}x{}".format(*grid.shape))
            print(f"  Voxels: {grid.count_voxels()}")
            if profile.output_format == "glb":
                stats = mesh_stats(builder.mesher.mesh(grid))
                print(f"  Vertices: {stats['vertices']}")
                print(f"  Triangles: {stats['triangles']}")
            print(f"  Output bytes: {len(data)}")

        if args.verbose:
            print(f"Exported: {output_path}")
            print(f"\nCompleted in {time.time() - start_time:.2f}s")

        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def run_generate(args) -> int:
    """Generate a script from a prompt, build it and store the result."""
    try:
        settings = load_settings()
        if args.profile:
            settings = replace(settings, profile=args.profile)

        service = build_service(settings)
        location = asyncio.run(service.generate(args.id, args.prompt))
        print(location)
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )
    initialize_materials()

    if args.command == "generate":
        return run_generate(args)
    return run_build(args)


if __name__ == "__main__":
    sys.exit(main())
