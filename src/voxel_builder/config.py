"""
Build Profiles and Process Settings

A build profile fixes one content model per deployment: which cell type
scripts write, the per-axis ceiling, and which binary format is produced.
Settings are read from the environment (optionally a .env file).
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Type
import os

from dotenv import load_dotenv

from .block import Block
from .color import PackedColor, TrueColor
from .grid import MAX_AXIS_SIZE


@dataclass(frozen=True)
class BuildProfile:
    name: str
    cell_type: Type[Any]
    max_axis_size: int = MAX_AXIS_SIZE
    max_volume: Optional[int] = None
    output_format: str = "glb"
    extension: str = "glb"
    content_type: str = "model/gltf-binary"
    value_help: str = ""

    def __post_init__(self):
        if not 1 <= self.max_axis_size <= MAX_AXIS_SIZE:
            raise ValueError(
                f"max_axis_size must be between 1 and {MAX_AXIS_SIZE}, got {self.max_axis_size}"
            )
        if self.output_format not in ("glb", "schematic"):
            raise ValueError(f"Unknown output format: {self.output_format}")


PROFILES: Dict[str, BuildProfile] = {
    "voxel_art": BuildProfile(
        name="voxel_art",
        cell_type=PackedColor,
        max_axis_size=128,
        value_help=(
            'Colors are 3-digit octal strings "RGB": red and green digits 0-7, '
            'blue digit 0-3. "000" means empty, "773" is white.'
        ),
    ),
    "truecolor": BuildProfile(
        name="truecolor",
        cell_type=TrueColor,
        max_axis_size=128,
        value_help=(
            'Colors are 6-digit hex strings "RRGGBB". "000000" means empty.'
        ),
    ),
    "blocks": BuildProfile(
        name="blocks",
        cell_type=Block,
        max_axis_size=MAX_AXIS_SIZE,
        output_format="schematic",
        extension="schem",
        content_type="application/octet-stream",
        value_help=(
            'Blocks are material names such as "stone". An optional aux byte '
            'selects a variant, e.g. BlockData.Color.Red for wool.'
        ),
    ),
}


def get_profile(name: str) -> BuildProfile:
    try:
        return PROFILES[name]
    except KeyError:
        known = ", ".join(sorted(PROFILES))
        raise ValueError(f"Unknown profile '{name}' (known: {known})") from None


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str]
    openai_model: str
    profile: str
    output_dir: str
    max_steps: Optional[int]
    bind: str
    port: int


def _parse_int(var: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(var)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"invalid {var} environment variable: {raw!r}") from None


def load_settings() -> Settings:
    """Read settings from the environment, loading .env first if present."""
    load_dotenv()

    settings = Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4"),
        profile=os.getenv("VOXEL_PROFILE", "voxel_art"),
        output_dir=os.getenv("VOXEL_OUTPUT_DIR", "."),
        max_steps=_parse_int("VOXEL_MAX_STEPS", None),
        bind=os.getenv("BIND", "127.0.0.1"),
        port=_parse_int("PORT", 8080),
    )
    get_profile(settings.profile)
    return settings
