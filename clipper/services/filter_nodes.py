"""
Typed FFmpeg filter nodes.

Each node keeps its parameters as plain fields and only turns into FFmpeg
filter syntax in ``render()``. A FilterGraph holds the ordered video and audio
chains and serializes them for ``-vf`` / ``-af``.

Escaping follows FFmpeg's two quoting levels:

1. Filter option value: ``\\``, ``'`` and ``:`` are backslash-escaped
   (``escape_drawtext_text``). Leading and trailing whitespace is escaped
   too, since the option parser would otherwise trim it.
2. Filtergraph description: the level-1 result is escaped again for
   ``\\ ' [ ] , ;`` (``escape_filtergraph``) so the graph parser hands the
   level-1 string to the filter untouched.
"""

import math
import sys
from dataclasses import dataclass
from typing import Optional, Union

# Characters the filtergraph parser treats specially
_FILTERGRAPH_SPECIAL = ("\\", "'", "[", "]", ",", ";")

# Whitespace the option parser strips around unescaped values
_OPTION_WHITESPACE = " \n\t\r"


def escape_drawtext_text(text: str) -> str:
    """
    Escape untrusted text for use as a filter option value.

    Backslash first, so the escapes added for quotes and colons are not
    doubled.
    """
    return text.replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")


def escape_filtergraph(value: str) -> str:
    """Escape an already option-escaped value for embedding in a -vf/-af string."""
    escaped = []
    for char in value:
        if char in _FILTERGRAPH_SPECIAL:
            escaped.append("\\")
        escaped.append(char)
    return "".join(escaped)


def _escape_edge_whitespace(value: str) -> str:
    """Backslash-escape leading and trailing whitespace so it is drawn, not trimmed."""
    body = value.strip(_OPTION_WHITESPACE)
    if not body:
        return "".join("\\" + char for char in value)
    start = len(value) - len(value.lstrip(_OPTION_WHITESPACE))
    end = start + len(body)
    leading = "".join("\\" + char for char in value[:start])
    trailing = "".join("\\" + char for char in value[end:])
    return leading + body + trailing


def embed_option_value(raw: str) -> str:
    """Escape a raw string for both levels so it survives as one option value."""
    return escape_filtergraph(_escape_edge_whitespace(escape_drawtext_text(raw)))


def escape_filter_path(path: str) -> str:
    """
    Escape a file path for use inside a filter option (e.g. drawtext fontfile).

    Backslash separators are normalized to forward slashes first; FFmpeg
    accepts them on all platforms and it keeps Windows paths readable.
    """
    normalized = path.replace("\\", "/") if sys.platform == "win32" else path
    return embed_option_value(normalized)


def format_number(value: float) -> str:
    """Format a float without exponent notation or trailing zeros."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _escape_expr_commas(expr: str) -> str:
    # Commas inside expressions would otherwise split the filter chain
    return expr.replace(",", "\\,")


@dataclass(frozen=True)
class CropBox:
    """Crop geometry for a concrete frame size."""

    width: int
    height: int
    x: int
    y: int


@dataclass(frozen=True)
class CropNode:
    """
    Center crop to a target aspect ratio, evaluated by FFmpeg per input.

    Source dimensions are unknown at compile time, so the node renders
    runtime expressions over ``iw``/``ih``. Both output dimensions are
    truncated to even values and never exceed the input.
    """

    ratio_w: int
    ratio_h: int

    name = "crop"

    def _width_expr(self) -> str:
        rw, rh = self.ratio_w, self.ratio_h
        return f"if(gt(iw/ih,{rw}/{rh}),trunc(ih*{rw}/{rh}/2)*2,trunc(iw/2)*2)"

    def _height_expr(self) -> str:
        rw, rh = self.ratio_w, self.ratio_h
        return f"if(gt(iw/ih,{rw}/{rh}),trunc(ih/2)*2,trunc(iw*{rh}/{rw}/2)*2)"

    def render(self) -> str:
        width = _escape_expr_commas(self._width_expr())
        height = _escape_expr_commas(self._height_expr())
        return f"crop={width}:{height}:(iw-out_w)/2:(ih-out_h)/2"

    def resolve(self, source_width: int, source_height: int) -> CropBox:
        """Evaluate the crop expressions for a known frame size."""
        rw, rh = self.ratio_w, self.ratio_h
        iw, ih = float(source_width), float(source_height)

        if iw / ih > rw / rh:
            # Source is wider - keep height, crop width
            out_w = math.trunc(ih * rw / rh / 2) * 2
            out_h = math.trunc(ih / 2) * 2
        else:
            # Source is taller - keep width, crop height
            out_w = math.trunc(iw / 2) * 2
            out_h = math.trunc(iw * rh / rw / 2) * 2

        return CropBox(
            width=out_w,
            height=out_h,
            x=int((iw - out_w) / 2),
            y=int((ih - out_h) / 2),
        )


@dataclass(frozen=True)
class ColorNode:
    """eq filter. Fields left as None are not emitted."""

    brightness: Optional[float] = None
    contrast: Optional[float] = None  # Multiplier, 1.0 is neutral
    saturation: Optional[float] = None  # Multiplier, 1.0 is neutral

    name = "eq"

    def render(self) -> str:
        params = []
        if self.brightness is not None:
            params.append(f"brightness={format_number(self.brightness)}")
        if self.contrast is not None:
            params.append(f"contrast={self.contrast:.4f}")
        if self.saturation is not None:
            params.append(f"saturation={self.saturation:.4f}")
        return f"eq={':'.join(params)}"


@dataclass(frozen=True)
class SetPtsNode:
    """Video timestamp scaling. factor = 1 / speed."""

    factor: float

    name = "setpts"

    def render(self) -> str:
        return f"setpts={self.factor:.6f}*PTS"


@dataclass(frozen=True)
class AtempoNode:
    """Single-stage audio tempo change."""

    tempo: float

    name = "atempo"

    def render(self) -> str:
        return f"atempo={format_number(self.tempo)}"


@dataclass(frozen=True)
class DrawTextNode:
    """One text overlay. ``text`` is the raw user string; escaping happens in render()."""

    text: str
    font_size: int
    font_color: str  # FFmpeg color, e.g. 0xFFFFFF
    x: str
    y: str
    enable: Optional[str] = None
    border_width: int = 0
    font_file: Optional[str] = None

    name = "drawtext"

    def render(self) -> str:
        params = []
        if self.font_file:
            params.append(f"fontfile={escape_filter_path(self.font_file)}")
        params.extend(
            [
                f"text={embed_option_value(self.text)}",
                # Never interpret %{...} sequences in user text
                "expansion=none",
                f"fontsize={self.font_size}",
                f"fontcolor={self.font_color}",
                f"x={self.x}",
                f"y={self.y}",
            ]
        )
        if self.border_width > 0:
            params.append(f"borderw={self.border_width}")
            params.append(f"bordercolor={self.font_color}")
        if self.enable:
            params.append(f"enable='{self.enable}'")
        return f"drawtext={':'.join(params)}"


VideoFilterNode = Union[CropNode, ColorNode, SetPtsNode, DrawTextNode]
AudioFilterNode = AtempoNode


@dataclass(frozen=True)
class FilterGraph:
    """Ordered video and audio filter chains for one render."""

    video: tuple[VideoFilterNode, ...] = ()
    audio: tuple[AudioFilterNode, ...] = ()

    separator = ","

    def video_filter(self) -> Optional[str]:
        """The -vf argument, or None when there is nothing to apply."""
        if not self.video:
            return None
        return self.separator.join(node.render() for node in self.video)

    def audio_filter(self) -> Optional[str]:
        """The -af argument, or None when there is nothing to apply."""
        if not self.audio:
            return None
        return self.separator.join(node.render() for node in self.audio)

    @property
    def is_empty(self) -> bool:
        return not self.video and not self.audio
