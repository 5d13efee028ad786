"""Convert a subtitle file to SRT, the format Subbed stores."""

import argparse
import os
import sys

from subtitles import SubtitleFormat, normalize


def detect_format(path: str) -> SubtitleFormat:
    """Guess the input format from the file extension; anything but .vtt is SRT."""
    ext = os.path.splitext(path)[1].lower()
    return SubtitleFormat.VTT if ext == ".vtt" else SubtitleFormat.SRT


def main(argv=None):
    parser = argparse.ArgumentParser(description="Convert a subtitle file to SRT.")
    parser.add_argument("input", help="Path to the subtitle file")
    parser.add_argument("-o", "--output", help="Output path (default: input with .srt suffix)")
    parser.add_argument(
        "--from",
        dest="source_format",
        choices=[f.value for f in SubtitleFormat],
        help="Input format (default: guessed from the extension)",
    )
    args = parser.parse_args(argv)

    if not os.path.isfile(args.input):
        print(f"Error: File not found: {args.input}")
        sys.exit(1)

    source_format = args.source_format or detect_format(args.input)
    output = args.output or os.path.splitext(args.input)[0] + ".srt"
    if os.path.abspath(output) == os.path.abspath(args.input):
        print(f"Error: Refusing to overwrite the input file: {args.input}")
        sys.exit(1)

    with open(args.input, "r", encoding="utf-8-sig", errors="replace") as f:
        content = f.read()

    with open(output, "w", encoding="utf-8") as f:
        f.write(normalize(content, source_format))
    print(f"Subtitles saved to {output}")


if __name__ == "__main__":
    main()
