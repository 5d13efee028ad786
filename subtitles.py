"""Subtitle format normalization: everything is stored as SRT."""

from enum import Enum

VTT_HEADER = "WEBVTT"
CUE_ARROW = "-->"


class SubtitleFormat(str, Enum):
    VTT = "vtt"
    SRT = "srt"


CANONICAL_FORMAT = SubtitleFormat.SRT


def vtt_to_srt(vtt: str) -> str:
    """Convert WebVTT text to SRT.

    The leading WEBVTT header and blank lines are dropped, each timing line
    gets a cue number above it and its '.' separators become ','. Every
    other line is passed through untouched.
    """
    srt_lines = []
    counter = 1
    skip_header = True

    for line in vtt.split("\n"):
        line = line.rstrip("\r")

        if skip_header:
            if line.startswith(VTT_HEADER) or not line.strip():
                continue
            skip_header = False

        if CUE_ARROW in line:
            srt_lines.append(str(counter))
            counter += 1
            srt_lines.append(line.replace(".", ","))
        else:
            srt_lines.append(line)

    return "\n".join(srt_lines)


def normalize(content: str, declared_format) -> str:
    """Return *content* in the canonical (SRT) encoding.

    Raises ValueError if *declared_format* is not a known format name.
    """
    fmt = SubtitleFormat(declared_format)
    if fmt is SubtitleFormat.VTT:
        return vtt_to_srt(content)
    return content
