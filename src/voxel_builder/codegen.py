"""
Build Script Generation

Turns a natural-language prompt into a build script with an OpenAI chat
completion. The system prompt describes the sandbox API for the active
profile; the reply is stripped of any fenced code block before it is run.
"""

from typing import Optional
import logging
import re

from openai import AsyncOpenAI

from .block import MATERIALS, Block
from .config import BuildProfile


logger = logging.getLogger(__name__)

MAX_TOKENS = 512
TEMPERATURE = 0.0

_FENCE = re.compile(r"^\s*```[\w+-]*[ \t]*\n(.*?)\n?```\s*$", re.DOTALL)

API_DESCRIPTION = """\
You are a program that generates voxel builds based on a prompt. You write \
Python code which is executed in a restricted sandbox to construct a \
Schematic. Imports are not available; the math module is available as `math`. \
The API is as follows:

# Creates a schematic. Max size along any axis is {max_axis}
Schematic(xSize: int, ySize: int, zSize: int) -> Schematic

# Bounds are [0, the size of the axis)
Schematic.Set(x: int, y: int, z: int, value: str{aux})

# Fills the inclusive box between both corners
Schematic.Fill(x1: int, y1: int, z1: int, x2: int, y2: int, z2: int, value: str{aux})

Schematic.xSize() -> int
Schematic.ySize() -> int
Schematic.zSize() -> int

{value_help}
"""

CLOSING = """
You do not need to generate explanations as your response will not be shown \
to the user, only the result of the code you produce will be apparent. The \
code *must* end with an expression naming the schematic to be generated, for \
example a final line `s`."""


def system_prompt(profile: BuildProfile) -> str:
    """System message describing the sandbox API for one profile."""
    is_block = profile.cell_type is Block
    text = API_DESCRIPTION.format(
        max_axis=profile.max_axis_size,
        aux=", aux: int = 0" if is_block else "",
        value_help=profile.value_help,
    )
    if is_block:
        text += "\nBlockData.Color holds aux values: White, Orange, ..., Black.\n"
        text += "\nAvailable blocks:\n" + "\n".join(MATERIALS.names()) + "\n"
    return text + CLOSING


def extract_code(text: str) -> str:
    """
    Strip a fenced code block from a model reply.

    Both ```python and bare ``` fences are accepted. Replies without a
    fence are returned unchanged.
    """
    match = _FENCE.match(text)
    if match:
        return match.group(1)
    return text


class ScriptGenerator:
    """
    Generate build scripts from prompts via the OpenAI chat API.

    Usage:
        generator = ScriptGenerator(api_key, "gpt-4", get_profile("blocks"))
        source = await generator.generate("a small stone tower")
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        profile: BuildProfile,
        client: Optional[AsyncOpenAI] = None
    ):
        self.api_key = api_key
        self.model = model
        self.profile = profile
        self._client = client

    def _ensure_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise ValueError("OPENAI_API_KEY not found. Set it in the environment or .env file")
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def generate(self, prompt: str) -> str:
        """Request a build script for a prompt and return its source."""
        client = self._ensure_client()

        response = await client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt(self.profile)},
                {"role": "user", "content": prompt},
            ],
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
        )

        choice = response.choices[0]
        if choice.finish_reason != "stop":
            logger.warning("completion finish_reason: %s, script may be incomplete", choice.finish_reason)

        content = choice.message.content or ""
        code = extract_code(content)
        logger.debug("generated script:\n%s", code)
        return code
