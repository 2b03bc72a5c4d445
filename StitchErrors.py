"""Exceptions raised while stitching sprites into an atlas or unstitching one."""

from typing import List, Optional


class StitcherError(Exception):
    """Base class for every error the stitcher reports."""


# =============================================================================
# Input errors - reported immediately, nothing is written
# =============================================================================

class InputError(StitcherError):
    """The sprites or files handed to an operation are unusable."""


class EmptyInputSet(InputError):
    def __init__(self, location: Optional[str] = None):
        self.location = location
        if location:
            message = f"No images found in {location}"
        else:
            message = "No sprites supplied"
        super().__init__(message)


class NameCollision(InputError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Two sprites share the name {name!r}")


class InvalidSprite(InputError):
    def __init__(self, name: str, width: int, height: int):
        self.name = name
        self.width = width
        self.height = height
        super().__init__(f"Sprite {name!r} has invalid size {width}×{height}")


class SpriteLoadError(InputError):
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Error loading image {path}: {reason}")


class InvalidAtlasName(InputError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Atlas name must end with .png (got {name!r})")


class OutputWriteError(StitcherError):
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write {path}: {reason}")


class ImageMissing(InputError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Atlas image {path} not found")


# =============================================================================
# Packing errors - raised before any canvas is allocated
# =============================================================================

class PackingError(StitcherError):
    """The sprites cannot be arranged on a canvas."""


class SpriteTooWide(PackingError):
    def __init__(self, name: str, padded_width: int, max_width: int):
        self.name = name
        self.padded_width = padded_width
        self.max_width = max_width
        super().__init__(
            f"Could not pack sprite {name}, too wide for atlas "
            f"(padded width {padded_width} > max width {max_width})"
        )


# =============================================================================
# Metadata errors - unstitch stops before touching the atlas image
# =============================================================================

class MetadataError(StitcherError):
    """The atlas metadata file is absent or unreadable."""


class MetadataMissing(MetadataError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Atlas metadata file {path} not found")


class MetadataCorrupt(MetadataError):
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse atlas metadata {path}: {reason}")


# =============================================================================
# Non-fatal conditions - collected and reported, never abort the run
# =============================================================================

class CropFailed(StitcherError):
    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to extract {name}: {reason}")


class DestructiveActionError(StitcherError):
    def __init__(self, paths: List[str], reason: str):
        self.paths = list(paths)
        self.reason = reason
        super().__init__(f"Failed to delete original files: {reason}")
