#!/usr/bin/env python3
"""
Voxel Builder Web Interface

A simple Gradio-based web UI for running build scripts, or generating them
from a prompt, and downloading the resulting model.

Run with: python app.py
Then open http://localhost:7860 in your browser
"""

import asyncio
import sys
from pathlib import Path
import tempfile

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

import gradio as gr
from voxel_builder import VoxelBuilder, get_profile, initialize_materials, load_settings
from voxel_builder.codegen import ScriptGenerator
from voxel_builder.errors import VoxelBuildError


DEMO_SCRIPTS = {
    "Pyramid": '''\
s = Schematic(15, 8, 15)
for level in range(8):
    s.Fill(level, level, level, 14 - level, level, 14 - level, "%d%d1" % (7 - level // 2, 4 + level // 3))
s
''',
    "Sphere": '''\
r = 7
s = Schematic(2 * r + 1, 2 * r + 1, 2 * r + 1)
for x in range(s.xSize()):
    for y in range(s.ySize()):
        for z in range(s.zSize()):
            if math.dist((x, y, z), (r, r, r)) <= r:
                s.Set(x, y, z, "%d%d3" % (x * 7 // (2 * r), y * 7 // (2 * r)))
s
''',
    "Tower (blocks)": '''\
s = Schematic(7, 20, 7)
s.Fill(0, 0, 0, 6, 0, 6, "stone")
for y in range(1, 18):
    s.Fill(0, y, 0, 6, y, 6, "cobblestone")
    s.Fill(1, y, 1, 5, y, 5, "air")
s.Fill(0, 18, 0, 6, 18, 6, "wool", BlockData.Color.Red)
s
''',
}

PROFILE_CHOICES = ["voxel_art", "truecolor", "blocks"]


def run_script(source: str, profile_name: str, max_steps: int):
    """
    Run a build script and export the result.

    Returns preview path, stats text, and the download path.
    """
    if not source or not source.strip():
        return None, "Please enter a build script first.", None

    profile = get_profile(profile_name)
    builder = VoxelBuilder(profile, max_steps=int(max_steps) if max_steps else None)

    try:
        grid = builder.build(source)
        data = builder.serialize(grid)
    except VoxelBuildError as e:
        return None, f"## Build failed\n\n```\n{e}\n```", None

    export_dir = tempfile.mkdtemp(prefix="voxel_")
    output_path = Path(export_dir) / f"model.{profile.extension}"
    output_path.write_bytes(data)

    stats_text = f"""## Build Complete!

| Metric | Value |
|--------|-------|
| Grid Size | {grid.size_x} x {grid.size_y} x {grid.size_z} |
| Voxel Count | {grid.count_voxels():,} |
| Output | {profile.output_format} ({len(data):,} bytes) |
"""

    # Schematics have no mesh preview
    preview_path = str(output_path) if profile.output_format == "glb" else None
    return preview_path, stats_text, str(output_path)


def generate_script(prompt: str, profile_name: str):
    """Ask the model for a build script."""
    if not prompt or not prompt.strip():
        return "", "Please enter a prompt first."

    settings = load_settings()
    if not settings.openai_api_key:
        return "", "Set OPENAI_API_KEY in your .env file to generate scripts."

    generator = ScriptGenerator(settings.openai_api_key, settings.openai_model, get_profile(profile_name))
    try:
        source = asyncio.run(generator.generate(prompt))
    except Exception as e:
        return "", f"Generation failed: {e}"
    return source, "Script generated. Click 'Build' to run it."


def load_demo(name: str):
    """Load a demo script and the profile it is written for."""
    if not name:
        return gr.update(), gr.update()
    profile = "blocks" if "blocks" in name else "voxel_art"
    return DEMO_SCRIPTS[name], profile


initialize_materials()

# Build the Gradio interface
with gr.Blocks(title="Voxel Builder") as app:

    gr.Markdown("""
    # Voxel Builder
    ### Build Voxel Models from Scripts

    Write a build script, load a demo, or describe a build and let the model write it.
    """)

    with gr.Row():
        # Left column - Script
        with gr.Column(scale=1):
            gr.Markdown("### Prompt")

            prompt_input = gr.Textbox(label="Describe a build", lines=2)
            prompt_btn = gr.Button("Generate Script")

            gr.Markdown("### Build Script")

            script_input = gr.Code(label="Script", language="python", lines=16)

            with gr.Row():
                demo_dropdown = gr.Dropdown(
                    choices=list(DEMO_SCRIPTS),
                    label="Or try a demo"
                )
                demo_btn = gr.Button("Load Demo")

            gr.Markdown("### Settings")

            profile_input = gr.Dropdown(
                choices=PROFILE_CHOICES,
                value="voxel_art",
                label="Profile"
            )

            max_steps = gr.Number(
                value=1_000_000,
                precision=0,
                label="Max Steps (0 = unbounded)"
            )

            build_btn = gr.Button("Build", variant="primary")

        # Middle column - 3D Preview
        with gr.Column(scale=2):
            gr.Markdown("### 3D Preview")
            gr.Markdown("*Click and drag to rotate, scroll to zoom*")

            model_preview = gr.Model3D(
                label="3D Model Preview",
                clear_color=[0.1, 0.1, 0.1, 1.0]
            )

            stats_output = gr.Markdown(
                value="Enter a script and click 'Build' to see results."
            )

        # Right column - Downloads
        with gr.Column(scale=1):
            gr.Markdown("### Download")

            file_output = gr.File(label="GLB or schematic")

            gr.Markdown("""
            ---
            **Values:**
            - **voxel_art** = octal "RGB", "773" is white
            - **truecolor** = hex "RRGGBB"
            - **blocks** = material name + optional aux
            """)

    # Wire up events
    demo_btn.click(
        fn=load_demo,
        inputs=[demo_dropdown],
        outputs=[script_input, profile_input]
    )

    prompt_btn.click(
        fn=generate_script,
        inputs=[prompt_input, profile_input],
        outputs=[script_input, stats_output]
    )

    build_btn.click(
        fn=run_script,
        inputs=[script_input, profile_input, max_steps],
        outputs=[model_preview, stats_output, file_output]
    )


if __name__ == "__main__":
    print("\n" + "="*60)
    print("Voxel Builder Web Interface")
    print("="*60)
    print("\nStarting server...")
    print("Open http://localhost:7860 in your browser\n")

    app.launch(
        server_name="0.0.0.0",
        server_port=7860,
        share=False
    )
