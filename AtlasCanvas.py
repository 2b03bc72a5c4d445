"""
Pillow-backed collaborators of the stitcher: image codec, compositor and
the directory scanner that finds sprite files.
"""

import os
from typing import List, Sequence, Tuple

from PIL import Image

from SkylinePacker import PlacementRect
from StitchErrors import SpriteLoadError


class PngCodec:
    """Reads images as RGBA and writes them as PNG."""

    def decode(self, path: str) -> Image.Image:
        try:
            with Image.open(path) as img:
                # convert() forces the pixel data to load before the file closes
                return img.convert('RGBA')
        except (OSError, ValueError) as e:
            raise SpriteLoadError(path, str(e)) from e

    def encode(self, image: Image.Image, path: str):
        image.save(path, format='PNG')


class PillowCompositor:
    """Copies pixels into and out of an atlas canvas, never resampling."""

    def new_canvas(self, width: int, height: int) -> Image.Image:
        return Image.new('RGBA', (width, height), (0, 0, 0, 0))

    def draw(self, canvas: Image.Image, sprite: Image.Image, rect: PlacementRect):
        """Paste sprite at rect; without a mask paste copies alpha instead of blending."""
        if sprite.size != (rect.width, rect.height):
            raise ValueError(
                f"sprite is {sprite.width}×{sprite.height}, rect is {rect.width}×{rect.height}"
            )
        if sprite.mode != canvas.mode:
            sprite = sprite.convert(canvas.mode)
        canvas.paste(sprite, (rect.x, rect.y))

    def crop(self, canvas: Image.Image, rect: PlacementRect) -> Image.Image:
        """Cut rect out of the canvas as an independent image."""
        left, upper, right, lower = rect.box()
        # Pillow pads out-of-range crops with black, which would fake the content
        if right > canvas.width or lower > canvas.height:
            raise ValueError(
                f"rect {rect.as_tuple()} exceeds canvas {canvas.width}×{canvas.height}"
            )
        return canvas.crop((left, upper, right, lower))


def scan_sprite_files(input_dir: str, extensions: Sequence[str] = ('.png',),
                      recursive: bool = False,
                      exclude_dirs: Sequence[str] = (),
                      exclude_files: Sequence[str] = ()) -> List[Tuple[str, str]]:
    """
    Return (name, path) for every sprite file in input_dir.

    name is the bare file name with its extension. Results are sorted by path
    relative to input_dir so the packing order is stable across platforms.
    Directories in exclude_dirs and files in exclude_files are skipped.
    """
    extensions = tuple(ext.lower() for ext in extensions)
    excluded = {os.path.abspath(d) for d in exclude_dirs}
    excluded_files = {os.path.abspath(f) for f in exclude_files}
    found = []

    if recursive:
        for root, dirs, files in os.walk(input_dir):
            dirs[:] = [d for d in dirs if os.path.abspath(os.path.join(root, d)) not in excluded]
            for file in files:
                if file.lower().endswith(extensions):
                    found.append(os.path.join(root, file))
    else:
        for file in os.listdir(input_dir):
            full_path = os.path.join(input_dir, file)
            if os.path.isfile(full_path) and file.lower().endswith(extensions):
                found.append(full_path)

    found = [path for path in found if os.path.abspath(path) not in excluded_files]
    found.sort(key=lambda path: os.path.relpath(path, input_dir))
    return [(os.path.basename(path), path) for path in found]
