#!/usr/bin/env python3
"""
SpriteStitcher - create sprite atlases from a directory of images.

Stitching packs every image of a directory into one atlas .png and writes a
.json file next to it recording where each sprite went. Unstitching reads
that pair back and writes every sprite out as its own image, pixel for
pixel identical to the input.

Usage:
    python3 SpriteStitcher.py stitch <sprite-folder> --name atlas.png --padding 2
    python3 SpriteStitcher.py unstitch <sprite-folder>/stitched/atlas.png
"""

import argparse
import os
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from PIL import Image

from AtlasCanvas import PillowCompositor, PngCodec, scan_sprite_files
from AtlasMetadata import AtlasMetadata, metadata_path_for
from SkylinePacker import PackResult, SpriteDescriptor, pack_sprites
from StitchErrors import (
    CropFailed,
    DestructiveActionError,
    EmptyInputSet,
    ImageMissing,
    InputError,
    InvalidAtlasName,
    OutputWriteError,
    StitcherError,
)


@dataclass
class StitcherConfig:
    """Process-wide defaults, built once at startup."""

    padding: int = 2
    max_width: int = 4096
    extensions: Tuple[str, ...] = ('.png',)
    output_subdir: str = "stitched"
    unstitched_subdir: str = "unstitched"

    def validate(self) -> None:
        if self.padding < 0:
            raise ValueError("padding must be >= 0")
        if self.max_width < 1:
            raise ValueError("max_width must be >= 1")
        if not self.extensions:
            raise ValueError("extensions must not be empty")
        if not self.output_subdir or not self.unstitched_subdir:
            raise ValueError("output_subdir and unstitched_subdir must be set")

    def to_dict(self) -> Dict[str, object]:
        """Return a JSON-serializable dict."""
        return {
            "padding": self.padding,
            "max_width": self.max_width,
            "extensions": list(self.extensions),
            "output_subdir": self.output_subdir,
            "unstitched_subdir": self.unstitched_subdir,
        }


# =============================================================================
# CONFIRMATION - yes/no answers for destructive actions
# =============================================================================

class ConfirmationPort:
    """Asks the caller whether a destructive action may go ahead."""

    def confirm(self, question: str) -> bool:
        raise NotImplementedError


class ConsoleConfirmation(ConfirmationPort):
    """Prompts on the terminal until the answer is y or n."""

    def __init__(self, input_func=input, output_func=print):
        self.input_func = input_func
        self.output_func = output_func

    def confirm(self, question: str) -> bool:
        while True:
            try:
                response = self.input_func(f"{question} (y/n) ")
            except EOFError:
                # No terminal to answer from: keep the files
                return False
            response = response.strip().lower()
            if response in ('y', 'yes'):
                return True
            if response in ('n', 'no'):
                return False
            self.output_func("Invalid input. Please answer y or n.")


class FixedAnswer(ConfirmationPort):
    """Answers every question the same way (--yes / --keep)."""

    def __init__(self, answer: bool):
        self.answer = answer

    def confirm(self, question: str) -> bool:
        return self.answer


# =============================================================================
# STITCH - sprites -> packer -> compositor -> metadata
# =============================================================================

class StitchResult:
    def __init__(self, canvas: Image.Image, metadata: AtlasMetadata, pack: PackResult):
        self.canvas = canvas
        self.metadata = metadata
        self.pack = pack
        self.atlas_path: Optional[str] = None
        self.metadata_path: Optional[str] = None


def stitch(sprites: Sequence[Tuple[str, Image.Image]], padding: int = 2,
           max_width: int = 4096, image_reference: str = "",
           compositor: Optional[PillowCompositor] = None) -> StitchResult:
    """
    Pack named images into one canvas and describe the layout.

    All or nothing: every check (empty batch, duplicate names, sprites too
    wide) runs before the canvas is allocated.
    """
    compositor = compositor or PillowCompositor()
    sprites = list(sprites)
    if not sprites:
        raise EmptyInputSet()

    descriptors = [SpriteDescriptor(name, img.width, img.height) for name, img in sprites]
    pack = pack_sprites(descriptors, padding, max_width)

    canvas = compositor.new_canvas(pack.width, pack.height)
    for name, img in sprites:
        compositor.draw(canvas, img, pack.placements[name])

    metadata = AtlasMetadata(image_reference, pack.placements)
    return StitchResult(canvas, metadata, pack)


def _write_stitch_output(result: StitchResult, atlas_path: str, metadata_path: str,
                         codec: PngCodec):
    """Write atlas and metadata as a pair; on failure remove whatever was written."""
    output_dir = os.path.dirname(atlas_path) or "."
    created_dir = not os.path.isdir(output_dir)
    written = []
    try:
        os.makedirs(output_dir, exist_ok=True)
        written.append(atlas_path)
        codec.encode(result.canvas, atlas_path)
        written.append(metadata_path)
        result.metadata.save(metadata_path)
    except (OSError, ValueError) as e:
        failed_path = written[-1] if written else output_dir
        for path in written:
            if os.path.exists(path):
                os.remove(path)
        if created_dir and os.path.isdir(output_dir) and not os.listdir(output_dir):
            os.rmdir(output_dir)
        raise OutputWriteError(failed_path, str(e)) from e


def stitch_directory(input_dir: str, atlas_name: str = "atlas.png",
                     config: Optional[StitcherConfig] = None,
                     output_dir: Optional[str] = None,
                     logical_path: Optional[str] = None,
                     recursive: bool = False,
                     codec: Optional[PngCodec] = None,
                     compositor: Optional[PillowCompositor] = None,
                     verbose: bool = True) -> StitchResult:
    """Stitch every sprite file in input_dir into <output_dir>/<atlas_name> plus its .json."""
    config = config or StitcherConfig()
    config.validate()
    codec = codec or PngCodec()

    if not atlas_name.lower().endswith(".png") or os.path.basename(atlas_name) != atlas_name:
        raise InvalidAtlasName(atlas_name)
    if not os.path.isdir(input_dir):
        raise InputError(f"The specified directory does not exist: {input_dir}")

    output_dir = output_dir or os.path.join(input_dir, config.output_subdir)
    atlas_path = os.path.join(output_dir, atlas_name)
    metadata_path = metadata_path_for(atlas_path)

    if verbose:
        print(f"Stitching images from {input_dir} into an atlas with padding {config.padding}...")

    # Never pick up a previous run's output
    sprite_files = scan_sprite_files(input_dir, config.extensions, recursive,
                                     exclude_dirs=[output_dir],
                                     exclude_files=[atlas_path, metadata_path])
    if not sprite_files:
        raise EmptyInputSet(input_dir)
    if verbose:
        print(f"Found {len(sprite_files)} sprite files")

    sprites = [(name, codec.decode(path)) for name, path in sprite_files]

    result = stitch(sprites, config.padding, config.max_width,
                    image_reference=logical_path or atlas_path,
                    compositor=compositor)
    if verbose:
        print(f"Atlas: {result.pack.width}×{result.pack.height} ({len(sprites)} sprites), "
              f"packing efficiency {result.pack.efficiency():.2f}%")

    _write_stitch_output(result, atlas_path, metadata_path, codec)
    if verbose:
        print(f"[✓] Saved atlas to: {atlas_path}")
        print(f"[✓] Saved metadata to: {metadata_path}")

    result.atlas_path = atlas_path
    result.metadata_path = metadata_path
    return result


# =============================================================================
# UNSTITCH - metadata -> compositor crop
# =============================================================================

class UnstitchResult:
    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        self.extracted: Dict[str, str] = {}
        self.failures: List[CropFailed] = []
        self.deleted = False
        self.deletion_error: Optional[DestructiveActionError] = None

    @property
    def ok(self) -> bool:
        return not self.failures


def unstitch(metadata: AtlasMetadata, canvas: Image.Image,
             compositor: Optional[PillowCompositor] = None
             ) -> Tuple[Dict[str, Image.Image], List[CropFailed]]:
    """Crop every sprite out of the canvas; a bad rectangle only costs that sprite."""
    compositor = compositor or PillowCompositor()
    images = {}
    failures = []
    for name, rect in metadata.sprites.items():
        try:
            images[name] = compositor.crop(canvas, rect)
        except ValueError as e:
            failures.append(CropFailed(name, str(e)))
    return images, failures


def _resolve_canvas_path(atlas_path: str, metadata: AtlasMetadata) -> str:
    if os.path.isfile(atlas_path):
        return atlas_path
    if metadata.image and os.path.isfile(metadata.image):
        return metadata.image
    raise ImageMissing(atlas_path)


def _is_safe_name(name: str) -> bool:
    return bool(name) and name not in ('.', '..') and os.path.basename(name) == name


def delete_originals(paths: Sequence[str]):
    """Remove the atlas and metadata files, raising DestructiveActionError on failure."""
    try:
        for path in paths:
            os.remove(path)
    except OSError as e:
        raise DestructiveActionError(paths, str(e)) from e


def unstitch_atlas(atlas_path: str, output_dir: Optional[str] = None,
                   confirmation: Optional[ConfirmationPort] = None,
                   config: Optional[StitcherConfig] = None,
                   codec: Optional[PngCodec] = None,
                   compositor: Optional[PillowCompositor] = None,
                   verbose: bool = True) -> UnstitchResult:
    """
    Write every sprite of an atlas .png (and its sibling .json) to output_dir.

    Metadata problems abort before the atlas image is opened. Sprites that
    cannot be cropped or written are reported and skipped. When every sprite
    was extracted and confirmation agrees, the atlas and metadata are deleted.
    """
    config = config or StitcherConfig()
    codec = codec or PngCodec()

    metadata_path = metadata_path_for(atlas_path)
    metadata = AtlasMetadata.load(metadata_path)
    canvas_path = _resolve_canvas_path(atlas_path, metadata)

    if verbose:
        print(f"Unstitching atlas {canvas_path} into {len(metadata)} individual images...")
    canvas = codec.decode(canvas_path)

    output_dir = output_dir or os.path.join(os.path.dirname(atlas_path), config.unstitched_subdir)
    os.makedirs(output_dir, exist_ok=True)
    result = UnstitchResult(output_dir)

    images, failures = unstitch(metadata, canvas, compositor)
    result.failures.extend(failures)

    for name, sprite in images.items():
        output_path = os.path.join(output_dir, name)
        try:
            if not _is_safe_name(name):
                raise ValueError("sprite name is not a plain file name")
            codec.encode(sprite, output_path)
        except (OSError, ValueError) as e:
            result.failures.append(CropFailed(name, str(e)))
            continue
        result.extracted[name] = output_path
        if verbose:
            print(f"[✓] Extracted {name} to {output_path}")

    if verbose:
        for failure in result.failures:
            print(f"[✗] {failure}")

    if confirmation is None:
        return result
    if not result.ok:
        if verbose:
            print(f"[✗] {len(result.failures)} sprites failed, keeping the original atlas and metadata.")
        return result

    question = (f"[✓] Unstitching complete. Sprites saved to: {output_dir}. "
                f"Delete the original atlas and metadata?")
    if not confirmation.confirm(question):
        if verbose:
            print("[✓] Kept original atlas and metadata files.")
        return result

    try:
        delete_originals([canvas_path, metadata_path])
    except DestructiveActionError as e:
        result.deletion_error = e
        print(f"[✗] {e}")
    else:
        result.deleted = True
        if verbose:
            print("[✓] Deleted original atlas and metadata files.")
    return result


# =============================================================================
# CLI
# =============================================================================

def build_parser(config: StitcherConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Stitch a directory of images into a sprite atlas, or unstitch an atlas back into images'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    stitch_parser = subparsers.add_parser('stitch', help='Stitch images into a sprite atlas')
    stitch_parser.add_argument('input_dir', help='Directory containing sprite images')
    stitch_parser.add_argument('--name', default='atlas.png', help='File name of the atlas (must end with .png)')
    stitch_parser.add_argument('--padding', type=int, default=config.padding,
                               help=f'Padding between sprites (default: {config.padding})')
    stitch_parser.add_argument('--max-width', type=int, default=config.max_width,
                               help=f'Maximum width of the atlas (default: {config.max_width})')
    stitch_parser.add_argument('--output-dir', default=None,
                               help=f'Where to save the atlas (default: <input_dir>/{config.output_subdir})')
    stitch_parser.add_argument('--logical-path', default=None,
                               help='Image reference to record in the metadata instead of the atlas path')
    stitch_parser.add_argument('--recursive', action='store_true', help='Also scan subdirectories')

    unstitch_parser = subparsers.add_parser('unstitch', help='Unstitch a sprite atlas into individual images')
    unstitch_parser.add_argument('atlas', help='Path to the atlas .png (its .json must sit next to it)')
    unstitch_parser.add_argument('--output-dir', default=None,
                                 help=f'Where to save the sprites (default: <atlas_dir>/{config.unstitched_subdir})')
    answer = unstitch_parser.add_mutually_exclusive_group()
    answer.add_argument('--yes', action='store_true', help='Delete the atlas and metadata without asking')
    answer.add_argument('--keep', action='store_true', help='Keep the atlas and metadata without asking')

    return parser


def main(argv: Optional[Sequence[str]] = None, confirmation: Optional[ConfirmationPort] = None) -> int:
    config = StitcherConfig()
    args = build_parser(config).parse_args(argv)

    try:
        if args.command == 'stitch':
            config.padding = args.padding
            config.max_width = args.max_width
            stitch_directory(args.input_dir, args.name, config,
                             output_dir=args.output_dir,
                             logical_path=args.logical_path,
                             recursive=args.recursive)
        else:
            if args.yes:
                confirmation = FixedAnswer(True)
            elif args.keep:
                confirmation = FixedAnswer(False)
            else:
                confirmation = confirmation or ConsoleConfirmation()
            result = unstitch_atlas(args.atlas, args.output_dir, confirmation, config)
            if not result.ok:
                return 1
    except (StitcherError, ValueError) as e:
        print(f"[✗] {e}")
        return 1

    print("Operation completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
