"""
Time Range Translator - moment + trim offsets -> FFmpeg seek/duration.
"""

import math
from dataclasses import dataclass

from clipper.errors import InvalidEditSpecError
from clipper.schemas.edit_spec import EditSpec, Moment


def format_timestamp(seconds: float) -> str:
    """
    Format seconds as HH:MM:SS.mmm.

    Works on whole milliseconds so 59.9996s becomes 00:01:00.000, never
    00:00:60.000.
    """
    if seconds < 0 or not math.isfinite(seconds):
        raise ValueError(f"Timestamp must be a finite non-negative number, got {seconds}")

    total_ms = int(round(seconds * 1000))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


@dataclass(frozen=True)
class TimeRange:
    """Absolute seek position and duration within the source, in seconds."""

    seek_seconds: float
    duration_seconds: float

    @property
    def seek(self) -> str:
        return format_timestamp(self.seek_seconds)

    @property
    def duration(self) -> str:
        return format_timestamp(self.duration_seconds)


def translate_time_range(moment: Moment, edit_spec: EditSpec) -> TimeRange:
    """
    Apply trim offsets to a moment.

    trim_start moves the start later, trim_end (zero or negative) moves the
    end earlier.

    Raises:
        InvalidEditSpecError: If trimming leaves nothing to render
    """
    start = moment.start_time + edit_spec.trim_start
    end = moment.end_time + edit_spec.trim_end

    if end <= start:
        raise InvalidEditSpecError(
            f"Trim leaves an empty range: start={start:.3f}s end={end:.3f}s "
            f"(moment {moment.start_time}-{moment.end_time}s, "
            f"trimStart={edit_spec.trim_start}, trimEnd={edit_spec.trim_end})"
        )

    return TimeRange(seek_seconds=start, duration_seconds=end - start)
