"""
HTTP Front-end

POST /generate?id=<id>&prompt=<prompt> generates, builds and stores one
build and answers with its storage location as plain text. Any failure is
logged with its cause and answered with a generic 500.
"""

import logging

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from .block import initialize_materials
from .builder import BuildService, VoxelBuilder
from .codegen import ScriptGenerator
from .config import get_profile, load_settings
from .storage import FileSystemStorage


logger = logging.getLogger(__name__)


def create_app(service: BuildService) -> FastAPI:
    """Create the FastAPI app around a configured BuildService."""
    app = FastAPI(title="Voxel Builder")

    @app.post("/generate", response_class=PlainTextResponse)
    async def generate(id: str, prompt: str) -> str:
        try:
            return await service.generate(id, prompt)
        except Exception:
            logger.exception("generate failed for id=%s", id)
            raise HTTPException(500, "Failed to generate build")

    return app


def build_service(settings) -> BuildService:
    profile = get_profile(settings.profile)
    return BuildService(
        generator=ScriptGenerator(settings.openai_api_key, settings.openai_model, profile),
        builder=VoxelBuilder(profile, max_steps=settings.max_steps),
        storage=FileSystemStorage(settings.output_dir, profile.extension),
    )


def main():
    """Serve the HTTP front-end with uvicorn."""
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    settings = load_settings()
    if not settings.openai_api_key:
        raise ValueError("Please set OPENAI_API_KEY in your .env file")

    initialize_materials()
    app = create_app(build_service(settings))

    logger.info("serving profile %s on %s:%d", settings.profile, settings.bind, settings.port)
    uvicorn.run(app, host=settings.bind, port=settings.port)


if __name__ == "__main__":
    main()
