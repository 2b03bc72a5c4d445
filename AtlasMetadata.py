"""Atlas metadata: the JSON record that maps sprite names to atlas rectangles."""

import json
import os
from typing import Dict, Optional

from SkylinePacker import PlacementRect
from StitchErrors import InvalidAtlasName, MetadataCorrupt, MetadataMissing

RECT_FIELDS = ("x", "y", "width", "height")


def metadata_path_for(atlas_path: str) -> str:
    """Return the .json file that sits next to an atlas .png."""
    if not atlas_path.lower().endswith(".png"):
        raise InvalidAtlasName(os.path.basename(atlas_path))
    return atlas_path[:-len(".png")] + ".json"


class AtlasMetadata:
    """Everything needed to cut an atlas back into its sprites."""

    def __init__(self, image: str, sprites: Optional[Dict[str, PlacementRect]] = None):
        self.image = image
        self.sprites = dict(sprites) if sprites else {}

    def __repr__(self):
        return f"AtlasMetadata({self.image!r}, {len(self.sprites)} sprites)"

    def __eq__(self, other):
        if not isinstance(other, AtlasMetadata):
            return NotImplemented
        return self.image == other.image and self.sprites == other.sprites

    def __len__(self):
        return len(self.sprites)

    def to_dict(self) -> Dict[str, object]:
        """Return the JSON-serializable form, field names fixed by the file format."""
        return {
            "image": self.image,
            "sprites": {
                name: {
                    "x": rect.x,
                    "y": rect.y,
                    "width": rect.width,
                    "height": rect.height,
                } for name, rect in self.sprites.items()
            },
        }

    @classmethod
    def from_dict(cls, data, source: str = "<metadata>") -> 'AtlasMetadata':
        """Build metadata from parsed JSON, rejecting anything that cannot be unstitched."""
        if not isinstance(data, dict):
            raise MetadataCorrupt(source, "top level is not a JSON object")

        sprites_data = data.get("sprites")
        if not isinstance(sprites_data, dict):
            raise MetadataCorrupt(source, "missing 'sprites' map")
        if not sprites_data:
            raise MetadataCorrupt(source, "found 0 sprites")

        image = data.get("image", "")
        if not isinstance(image, str):
            raise MetadataCorrupt(source, "'image' is not a string")

        sprites = {}
        for name, rect_data in sprites_data.items():
            if not isinstance(rect_data, dict):
                raise MetadataCorrupt(source, f"entry {name!r} is not an object")
            values = []
            for field in RECT_FIELDS:
                value = rect_data.get(field)
                # bool is an int subclass but never a valid coordinate
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise MetadataCorrupt(source, f"entry {name!r} has invalid {field!r}")
                values.append(value)
            sprites[name] = PlacementRect(*values)

        return cls(image, sprites)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def save(self, path: str):
        with open(path, 'w') as f:
            f.write(self.to_json())

    @classmethod
    def load(cls, path: str) -> 'AtlasMetadata':
        if not os.path.isfile(path):
            raise MetadataMissing(path)
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise MetadataCorrupt(path, str(e)) from e
        return cls.from_dict(data, path)
