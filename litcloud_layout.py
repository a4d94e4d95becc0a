"""Greedy spiral placement of sized words onto a bounded canvas."""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

COLLISION_MODES: Tuple[str, ...] = ("mask", "boxes")
ROTATIONS: Tuple[int, ...] = (0, 90)


@dataclass(frozen=True)
class PlacedWord:
    text: str
    weight: float
    x: int
    y: int
    width: int
    height: int
    rotation: int
    font_size: float
    color: Optional[str] = None
    group: Optional[str] = None

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.x + self.width, self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0

    def overlaps(self, other: "PlacedWord") -> bool:
        left, top, right, bottom = self.bbox
        o_left, o_top, o_right, o_bottom = other.bbox
        return left < o_right and o_left < right and top < o_bottom and o_top < bottom

    def to_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        payload["weight"] = float(self.weight)
        payload["font_size"] = float(self.font_size)
        return payload


@dataclass
class LayoutResult:
    placed: List[PlacedWord] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)
    canvas_size: Tuple[int, int] = (0, 0)

    def to_dict(self) -> Dict[str, object]:
        return {
            "width": self.canvas_size[0],
            "height": self.canvas_size[1],
            "placed": [word.to_dict() for word in self.placed],
            "dropped": list(self.dropped),
        }


class TextMeasurer(Protocol):
    def measure(self, text: str, font_size: float) -> Tuple[int, int]:
        ...


@dataclass(frozen=True)
class ApproximateMeasurer:
    """Font-free size estimate: a fixed advance per character and a fixed line height."""

    char_width: float = 0.6
    line_height: float = 1.15

    def measure(self, text: str, font_size: float) -> Tuple[int, int]:
        width = max(1, int(math.ceil(len(text) * font_size * self.char_width)))
        height = max(1, int(math.ceil(font_size * self.line_height)))
        return width, height


class PillowMeasurer:
    """Glyph metrics from Pillow, using a TrueType font when one is given."""

    def __init__(self, font_path: Optional[str] = None):
        self.font_path = font_path
        self._fonts: Dict[int, ImageFont.ImageFont] = {}
        self._draw = ImageDraw.Draw(Image.new("L", (1, 1)))

    def font(self, font_size: float):
        size = max(1, int(round(font_size)))
        if size not in self._fonts:
            self._fonts[size] = load_font(self.font_path, size)
        return self._fonts[size]

    def measure(self, text: str, font_size: float) -> Tuple[int, int]:
        left, top, right, bottom = self._draw.textbbox((0, 0), text, font=self.font(font_size))
        return max(1, right - left), max(1, bottom - top)


def load_font(font_path: Optional[str], size: int):
    if font_path:
        return ImageFont.truetype(font_path, size)
    try:
        return ImageFont.load_default(size=size)
    except TypeError:
        # Pillow < 10.1 has no sized default font.
        return ImageFont.load_default()


class MaskOccupancy:
    """Bitmap occupancy with a summed-area table for constant-time box queries."""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.mask = np.zeros((height, width), dtype=bool)
        self._integral = np.zeros((height + 1, width + 1), dtype=np.int64)

    def _rebuild(self) -> None:
        self._integral[1:, 1:] = self.mask.cumsum(axis=0).cumsum(axis=1)

    def is_free(self, left: int, top: int, right: int, bottom: int) -> bool:
        table = self._integral
        total = table[bottom, right] - table[top, right] - table[bottom, left] + table[top, left]
        return total == 0

    def occupy(self, left: int, top: int, right: int, bottom: int) -> None:
        self.mask[max(0, top):min(self.height, bottom), max(0, left):min(self.width, right)] = True
        self._rebuild()


class BoxOccupancy:
    """Analytic list of occupied rectangles."""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.boxes: List[Tuple[int, int, int, int]] = []

    def is_free(self, left: int, top: int, right: int, bottom: int) -> bool:
        for o_left, o_top, o_right, o_bottom in self.boxes:
            if left < o_right and o_left < right and top < o_bottom and o_top < bottom:
                return False
        return True

    def occupy(self, left: int, top: int, right: int, bottom: int) -> None:
        self.boxes.append((left, top, right, bottom))


class Canvas:
    """A bounded drawing area that remembers which regions are taken."""

    def __init__(self, width: int, height: int, *, collision: str = "mask", padding: int = 0):
        if width <= 0 or height <= 0:
            raise ValueError(f"canvas size must be positive, got {width}x{height}")
        if collision not in COLLISION_MODES:
            raise ValueError(f"unknown collision mode: {collision!r}")
        self.width = width
        self.height = height
        self.padding = max(0, int(padding))
        occupancy_cls = MaskOccupancy if collision == "mask" else BoxOccupancy
        self.occupancy = occupancy_cls(width, height)

    def fits(self, box_width: int, box_height: int) -> bool:
        return box_width <= self.width and box_height <= self.height

    def is_free(self, left: int, top: int, box_width: int, box_height: int) -> bool:
        right = left + box_width
        bottom = top + box_height
        if left < 0 or top < 0 or right > self.width or bottom > self.height:
            return False
        return self.occupancy.is_free(left, top, right, bottom)

    def occupy(self, left: int, top: int, box_width: int, box_height: int) -> None:
        pad = self.padding
        self.occupancy.occupy(
            max(0, left - pad),
            max(0, top - pad),
            min(self.width, left + box_width + pad),
            min(self.height, top + box_height + pad),
        )


def spiral_offsets(
    width: int,
    height: int,
    *,
    theta_step: float,
    spacing: float,
    start_angle: float = 0.0,
    direction: int = 1,
    max_attempts: int,
):
    """Yield (dx, dy) offsets from the centre along an archimedean spiral.

    The spiral is stretched to the canvas aspect ratio and stops after
    ``max_attempts`` offsets or once its radius passes the canvas half-diagonal.
    """
    if width >= height:
        stretch_x, stretch_y = width / float(height), 1.0
    else:
        stretch_x, stretch_y = 1.0, height / float(width)
    max_radius = math.hypot(width, height) / 2.0
    growth = spacing / (2.0 * math.pi)

    yield 0, 0
    attempts = 1
    theta = 0.0
    while attempts < max_attempts:
        theta += theta_step
        radius = growth * theta
        if radius > max_radius:
            return
        angle = start_angle + direction * theta
        yield (
            int(round(radius * math.cos(angle) * stretch_x)),
            int(round(radius * math.sin(angle) * stretch_y)),
        )
        attempts += 1


def order_by_weight(sizes: Mapping[str, float], weights: Optional[Mapping[str, float]] = None) -> List[str]:
    ranking = weights if weights is not None else sizes
    # sorted() is stable, so equal weights keep their input order.
    return sorted(sizes.keys(), key=lambda token: ranking.get(token, 0.0), reverse=True)


def layout_words(
    sizes: Mapping[str, float],
    *,
    canvas_size: Tuple[int, int] = (800, 600),
    weights: Optional[Mapping[str, float]] = None,
    groups: Optional[Mapping[str, str]] = None,
    measurer: Optional[TextMeasurer] = None,
    rng: Optional[np.random.Generator] = None,
    rotation_fraction: float = 0.0,
    random_order: bool = False,
    padding: int = 2,
    max_attempts: int = 20000,
    theta_step: float = 0.1,
    spacing: float = 4.0,
    collision: str = "mask",
) -> LayoutResult:
    """Place each token at its font size, largest weight first.

    Tokens that cannot be placed are listed in ``LayoutResult.dropped``;
    running out of room is never an error.
    """
    width, height = int(canvas_size[0]), int(canvas_size[1])
    result = LayoutResult(canvas_size=(width, height))
    if not sizes:
        return result

    measurer = measurer or ApproximateMeasurer()
    rng = rng if rng is not None else np.random.default_rng()
    canvas = Canvas(width, height, collision=collision, padding=padding)
    centre_x, centre_y = width / 2.0, height / 2.0
    weights = weights if weights is not None else sizes

    for token in order_by_weight(sizes, weights):
        font_size = float(sizes[token])
        rotation = 90 if rotation_fraction > 0 and rng.random() < rotation_fraction else 0
        box_width, box_height = measurer.measure(token, font_size)
        if rotation == 90:
            box_width, box_height = box_height, box_width

        if not canvas.fits(box_width, box_height):
            logger.debug("Dropping %r: %dx%d box exceeds canvas", token, box_width, box_height)
            result.dropped.append(token)
            continue

        if random_order:
            start_angle = float(rng.uniform(0.0, 2.0 * math.pi))
            direction = 1 if rng.random() < 0.5 else -1
        else:
            start_angle, direction = 0.0, 1

        position = None
        for dx, dy in spiral_offsets(
            width,
            height,
            theta_step=theta_step,
            spacing=spacing,
            start_angle=start_angle,
            direction=direction,
            max_attempts=max_attempts,
        ):
            left = int(round(centre_x + dx - box_width / 2.0))
            top = int(round(centre_y + dy - box_height / 2.0))
            if canvas.is_free(left, top, box_width, box_height):
                position = (left, top)
                break

        if position is None:
            logger.debug("Dropping %r: no free position found", token)
            result.dropped.append(token)
            continue

        canvas.occupy(position[0], position[1], box_width, box_height)
        result.placed.append(
            PlacedWord(
                text=token,
                weight=float(weights.get(token, font_size)),
                x=position[0],
                y=position[1],
                width=box_width,
                height=box_height,
                rotation=rotation,
                font_size=font_size,
                group=groups.get(token) if groups else None,
            )
        )

    logger.debug(
        "Layout on %dx%d canvas: %d placed, %d dropped",
        width,
        height,
        len(result.placed),
        len(result.dropped),
    )
    return result


def _hex_to_rgb(colour: str) -> Tuple[int, int, int]:
    value = colour.lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    return tuple(int(value[i:i + 2], 16) for i in (0, 2, 4))  # type: ignore[return-value]


def render_png(
    layout: LayoutResult,
    path: Path | str,
    *,
    background: str = "#ffffff",
    default_color: str = "#111827",
    font_path: Optional[str] = None,
    measurer: Optional[PillowMeasurer] = None,
) -> Path:
    """Draw the placed words with Pillow, each centred in its layout box."""
    width, height = layout.canvas_size
    image = Image.new("RGB", (width, height), _hex_to_rgb(background))
    draw = ImageDraw.Draw(image)
    measurer = measurer or PillowMeasurer(font_path)

    for word in layout.placed:
        font = measurer.font(word.font_size)
        colour = _hex_to_rgb(word.color or default_color)
        left, top, right, bottom = draw.textbbox((0, 0), word.text, font=font)
        text_w, text_h = right - left, bottom - top
        centre_x, centre_y = word.center
        if word.rotation == 90:
            glyphs = Image.new("RGBA", (text_w + 2, text_h + 2), (0, 0, 0, 0))
            ImageDraw.Draw(glyphs).text((1 - left, 1 - top), word.text, font=font, fill=colour + (255,))
            glyphs = glyphs.rotate(90, expand=True)
            image.paste(
                glyphs,
                (int(centre_x - glyphs.width / 2), int(centre_y - glyphs.height / 2)),
                glyphs,
            )
        else:
            draw.text(
                (centre_x - text_w / 2 - left, centre_y - text_h / 2 - top),
                word.text,
                font=font,
                fill=colour,
            )

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    image.save(target)
    return target


def overlapping_pairs(words: Sequence[PlacedWord]) -> List[Tuple[str, str]]:
    pairs = []
    for index, word in enumerate(words):
        for other in words[index + 1:]:
            if word.overlaps(other):
                pairs.append((word.text, other.text))
    return pairs
