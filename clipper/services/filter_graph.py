"""
Filter Graph Compiler - turns an EditSpec into ordered FFmpeg filter chains.

Video chain order is fixed: crop -> color -> speed -> text overlays.
- Crop first so color correction never runs on discarded pixels
- Speed after crop/color so timestamps are rescaled once on the final framing
- Overlays last so text is drawn on the framed, corrected, time-scaled output

The audio chain only carries the tempo change that matches the video speed.
"""

import logging
import re
from typing import Optional

from clipper.config import Settings, get_settings
from clipper.errors import InvalidEditSpecError
from clipper.schemas.edit_spec import EditSpec, TextOverlay
from clipper.services.filter_nodes import (
    AtempoNode,
    ColorNode,
    CropNode,
    DrawTextNode,
    FilterGraph,
    SetPtsNode,
    format_number,
)

logger = logging.getLogger(__name__)

_ASPECT_RATIO_PATTERN = re.compile(r"^\s*(\d+)\s*:\s*(\d+)\s*$")

# Default overlay placement: centered horizontally, 85% down the frame
DEFAULT_OVERLAY_X = "(w-text_w)/2"
DEFAULT_OVERLAY_Y = "h*0.85"

BOLD_BORDER_WIDTH = 2


def parse_aspect_ratio(aspect_ratio: str) -> Optional[tuple[int, int]]:
    """
    Parse "W:H" into integers.

    Returns:
        (width, height) or None for "original"

    Raises:
        InvalidEditSpecError: If the ratio is malformed or has a zero side
    """
    if aspect_ratio == "original":
        return None

    match = _ASPECT_RATIO_PATTERN.match(aspect_ratio or "")
    if not match:
        raise InvalidEditSpecError(f"Malformed aspect ratio: {aspect_ratio!r}")

    ratio_w, ratio_h = int(match.group(1)), int(match.group(2))
    if ratio_w <= 0 or ratio_h <= 0:
        raise InvalidEditSpecError(f"Aspect ratio sides must be positive: {aspect_ratio!r}")
    return ratio_w, ratio_h


def hex_to_ffmpeg_color(color: str) -> str:
    """#RRGGBB[AA] -> 0xRRGGBB[AA]"""
    return "0x" + color.lstrip("#").upper()


class FilterGraphCompiler:
    """
    Compiles an EditSpec into a FilterGraph.

    Pure and deterministic: the same spec always yields the same graph.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def compile_crop(self, aspect_ratio: str) -> Optional[CropNode]:
        """Aspect-ratio center crop, or None for "original"."""
        ratio = parse_aspect_ratio(aspect_ratio)
        if ratio is None:
            return None
        return CropNode(ratio_w=ratio[0], ratio_h=ratio[1])

    def compile_color(self, edit_spec: EditSpec) -> Optional[ColorNode]:
        """eq node containing only the non-zero adjustments."""
        brightness = edit_spec.brightness if edit_spec.brightness != 0 else None
        contrast = 1 + edit_spec.contrast if edit_spec.contrast != 0 else None
        saturation = 1 + edit_spec.saturation if edit_spec.saturation != 0 else None

        if brightness is None and contrast is None and saturation is None:
            return None
        return ColorNode(brightness=brightness, contrast=contrast, saturation=saturation)

    def compile_speed(self, speed: float) -> tuple[Optional[SetPtsNode], Optional[AtempoNode]]:
        """
        Paired video/audio speed nodes.

        The audio tempo is clamped to the single atempo stage range; the video
        factor is not, so extreme speeds drift audio out of sync with video.
        """
        if speed <= 0:
            raise InvalidEditSpecError(f"Speed must be positive, got {speed}")
        if speed == 1:
            return None, None

        factor = 1 / speed
        if round(factor, 6) == 0:
            # setpts keeps six decimals; a zero factor collapses every timestamp
            raise InvalidEditSpecError(f"Speed {speed} is too high to render")

        min_tempo = self.settings.min_audio_tempo
        max_tempo = self.settings.max_audio_tempo
        tempo = min(max(speed, min_tempo), max_tempo)
        if tempo != speed:
            logger.warning(
                f"Audio tempo {speed} outside [{min_tempo}, {max_tempo}], clamped to {tempo}"
            )

        return SetPtsNode(factor=factor), AtempoNode(tempo=tempo)

    def compile_text_overlay(self, overlay: TextOverlay) -> DrawTextNode:
        """One drawtext node for one overlay."""
        x = f"w*{format_number(overlay.x)}" if overlay.x is not None else DEFAULT_OVERLAY_X
        y = f"h*{format_number(overlay.y)}" if overlay.y is not None else DEFAULT_OVERLAY_Y

        enable = None
        if overlay.has_window:
            enable = (
                f"between(t,{format_number(overlay.start_sec)},{format_number(overlay.end_sec)})"
            )

        return DrawTextNode(
            text=overlay.text,
            font_size=overlay.font_size,
            font_color=hex_to_ffmpeg_color(overlay.color),
            x=x,
            y=y,
            enable=enable,
            border_width=BOLD_BORDER_WIDTH if overlay.bold else 0,
            font_file=self.settings.drawtext_font_file,
        )

    def compile_text_overlays(self, overlays: list[TextOverlay]) -> list[DrawTextNode]:
        """Overlays in authoring order; later ones draw on top."""
        return [self.compile_text_overlay(overlay) for overlay in overlays]

    def compile(self, edit_spec: EditSpec) -> FilterGraph:
        """Assemble the full graph in fixed order."""
        video = []
        audio = []

        crop = self.compile_crop(edit_spec.aspect_ratio)
        if crop:
            video.append(crop)

        color = self.compile_color(edit_spec)
        if color:
            video.append(color)

        setpts, atempo = self.compile_speed(edit_spec.speed)
        if setpts:
            video.append(setpts)
        if atempo:
            audio.append(atempo)

        video.extend(self.compile_text_overlays(edit_spec.text_overlays))

        graph = FilterGraph(video=tuple(video), audio=tuple(audio))
        logger.debug(
            f"Compiled filter graph: video=[{', '.join(n.name for n in graph.video)}] "
            f"audio=[{', '.join(n.name for n in graph.audio)}]"
        )
        return graph
