"""
Skyline bin packing for sprite atlases.

Sprites are placed one at a time, in the order given, on top of a
"skyline": the ordered list of heights already occupied along the x axis.
Each sprite goes where it can sit lowest (bottom-left heuristic), ties
going to the leftmost position. Packing never rotates sprites.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple

from StitchErrors import InvalidSprite, NameCollision, SpriteTooWide


@dataclass(frozen=True)
class SpriteDescriptor:
    """Name and pixel size of one sprite to be packed."""
    name: str
    width: int
    height: int


@dataclass(frozen=True)
class SkylineSegment:
    """One horizontal span of the skyline, running from start_x to the next segment."""
    start_x: int
    height: int


class PlacementRect:
    """Position and un-padded size of a sprite inside the atlas."""
    def __init__(self, x: int, y: int, width: int, height: int):
        self.x = x
        self.y = y
        self.width = width
        self.height = height

    def __repr__(self):
        return f"PlacementRect({self.width}×{self.height} at ({self.x},{self.y}))"

    def __eq__(self, other):
        if not isinstance(other, PlacementRect):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    def __hash__(self):
        return hash(self.as_tuple())

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.width, self.height

    def box(self) -> Tuple[int, int, int, int]:
        """Return the (left, upper, right, lower) box Pillow expects for crops."""
        return self.x, self.y, self.x + self.width, self.y + self.height

    def expanded(self, margin: int) -> 'PlacementRect':
        """Return this rectangle grown by margin on every side."""
        return PlacementRect(self.x - margin, self.y - margin,
                             self.width + margin * 2, self.height + margin * 2)

    def intersects(self, other: 'PlacementRect') -> bool:
        """Check if this rectangle intersects with another."""
        return not (
            self.x + self.width <= other.x or
            self.y + self.height <= other.y or
            self.x >= other.x + other.width or
            self.y >= other.y + other.height
        )

    def area(self) -> int:
        return self.width * self.height


class SkylineProfile:
    """
    The packing frontier: segments sorted by start_x, the first at x=0.

    Segment i covers [start_x[i], start_x[i+1]); the last one is open to the
    right. Neighbouring segments never share a height, they are merged on
    every update.
    """

    def __init__(self, base_height: int = 0):
        self.segments: List[SkylineSegment] = [SkylineSegment(0, base_height)]

    def __iter__(self) -> Iterator[SkylineSegment]:
        return iter(self.segments)

    def __len__(self):
        return len(self.segments)

    def reset(self, base_height: int):
        """Flatten the whole skyline to a single segment at base_height."""
        self.segments = [SkylineSegment(0, base_height)]

    def height_at(self, x: int) -> int:
        """Return the occupied height of the column at x."""
        height = self.segments[0].height
        for segment in self.segments:
            if segment.start_x > x:
                break
            height = segment.height
        return height

    def span_height(self, start_x: int, width: int) -> int:
        """Return the highest segment intersecting [start_x, start_x + width)."""
        end_x = start_x + width
        highest = 0
        for i, segment in enumerate(self.segments):
            if segment.start_x >= end_x:
                break
            next_x = self.segments[i + 1].start_x if i + 1 < len(self.segments) else None
            if next_x is not None and next_x <= start_x:
                continue
            highest = max(highest, segment.height)
        return highest

    def find_position(self, width: int, max_width: int) -> Optional[Tuple[int, int]]:
        """
        Find the lowest spot for a cell of the given width.

        Every segment start is a candidate left edge. Returns (x, y) of the
        candidate with the smallest y, the smallest x among equals, or None
        if no candidate keeps the cell within max_width.
        """
        best = None
        for segment in self.segments:
            # Segments are sorted, so every later candidate overflows too
            if segment.start_x + width > max_width:
                break
            y = self.span_height(segment.start_x, width)
            if best is None or y < best[1]:
                best = (segment.start_x, y)
        return best

    def raise_span(self, start_x: int, width: int, height: int):
        """Raise [start_x, start_x + width) to height, keeping the profile gap-free."""
        end_x = start_x + width
        tail_height = self.height_at(end_x)

        # Drop segments starting inside the span, then cover it with one segment
        segments = [s for s in self.segments if not (start_x <= s.start_x < end_x)]
        segments.append(SkylineSegment(start_x, height))
        # Continue the old profile from the right edge of the span
        if not any(s.start_x == end_x for s in segments):
            segments.append(SkylineSegment(end_x, tail_height))

        segments.sort(key=lambda s: s.start_x)
        self.segments = self._merge(segments)

    @staticmethod
    def _merge(segments: List[SkylineSegment]) -> List[SkylineSegment]:
        merged = []
        for segment in segments:
            if merged and merged[-1].height == segment.height:
                continue
            merged.append(segment)
        return merged

    def validate(self):
        """Raise ValueError if the segments overlap, leave a gap or start past 0."""
        if not self.segments or self.segments[0].start_x != 0:
            raise ValueError("skyline must start at x=0")
        for left, right in zip(self.segments, self.segments[1:]):
            if right.start_x <= left.start_x:
                raise ValueError(f"skyline segments out of order at x={right.start_x}")


class PackResult(NamedTuple):
    placements: Dict[str, PlacementRect]
    width: int
    height: int

    def efficiency(self) -> float:
        """Percentage of the canvas covered by sprite pixels."""
        total_pixels = self.width * self.height
        sprite_pixels = sum(rect.area() for rect in self.placements.values())
        return (sprite_pixels / total_pixels) * 100 if total_pixels > 0 else 0


def _check_sprites(sprites: List[SpriteDescriptor], padding: int, max_width: int):
    """Reject the whole batch before anything is placed."""
    seen = set()
    for sprite in sprites:
        if sprite.name in seen:
            raise NameCollision(sprite.name)
        seen.add(sprite.name)
        if sprite.width <= 0 or sprite.height <= 0:
            raise InvalidSprite(sprite.name, sprite.width, sprite.height)
        if sprite.width + padding > max_width:
            raise SpriteTooWide(sprite.name, sprite.width + padding, max_width)


def next_position(profile: SkylineProfile, cell_width: int, max_width: int,
                  row_y: int) -> Tuple[int, int]:
    """
    Return where a cell goes, opening a new row at row_y when nothing fits.

    pack_sprites rejects cells wider than max_width beforehand, so there x=0
    always fits and the new-row branch only guards against wider cells.
    """
    position = profile.find_position(cell_width, max_width)
    if position is None:
        profile.reset(row_y)
        position = (0, row_y)
    return position


def pack_sprites(sprites: Iterable[SpriteDescriptor], padding: int = 2,
                 max_width: int = 4096) -> PackResult:
    """
    Place every sprite in input order and return placements plus canvas size.

    Each sprite occupies a cell of (width + padding) × (height + padding) and
    sits in the middle of it, offset by padding // 2. The canvas is the
    tightest box holding every cell.
    """
    if padding < 0:
        raise ValueError("padding must be >= 0")
    if max_width < 1:
        raise ValueError("max_width must be >= 1")

    sprites = list(sprites)
    _check_sprites(sprites, padding, max_width)

    placements = {}
    canvas_width = 0
    canvas_height = 0
    profile = SkylineProfile()

    for sprite in sprites:
        cell_width = sprite.width + padding
        cell_height = sprite.height + padding

        x, y = next_position(profile, cell_width, max_width, canvas_height)

        placements[sprite.name] = PlacementRect(
            x + padding // 2, y + padding // 2, sprite.width, sprite.height
        )
        profile.raise_span(x, cell_width, y + cell_height)

        canvas_width = max(canvas_width, x + cell_width)
        canvas_height = max(canvas_height, y + cell_height)

    return PackResult(placements, canvas_width, canvas_height)
