"""Extract YouTube video keys from URLs and from URLs pasted onto our path."""

from urllib.parse import parse_qs, urlsplit

YOUTUBE_HOST = "youtube.com"
SHORT_LINK_HOST = "youtu.be"


def extract_key_from_url(url: str) -> tuple[str, bool]:
    """Return ``(video_key, True)`` for a YouTube URL, ``("", False)`` otherwise.

    Handles ``youtube.com/watch?v=KEY`` (with or without ``www.``) and
    ``youtu.be/KEY``. Other hosts are never recognized.
    """
    try:
        parsed = urlsplit(url)
    except ValueError:
        return "", False

    # Host only: user info ("youtube.com@evil.example") is not the host.
    host = parsed.netloc.rpartition("@")[2]
    if YOUTUBE_HOST in host:
        key = parse_qs(parsed.query, keep_blank_values=True).get("v", [""])[0]
    elif SHORT_LINK_HOST in host:
        key = parsed.path.removeprefix("/")
    else:
        key = ""

    return key, bool(key)


def extract_url_from_path(path: str) -> tuple[str, bool]:
    """Recover a URL appended to our own path, e.g. ``/https://youtu.be/KEY``.

    Proxies tend to collapse ``https://`` into ``https:/``; the missing
    slash is put back. The result is not validated here.
    """
    _, sep, tail = path.partition("http")
    if not sep:
        return "", False
    url = "http" + tail

    if url.startswith("https:/") and not url.startswith("https://"):
        url = url.replace("https:/", "https://", 1)
    elif url.startswith("http:/") and not url.startswith("http://"):
        url = url.replace("http:/", "http://", 1)

    return url, True


def resolve_key(raw: str) -> tuple[str, bool]:
    """Key lookup for a raw value that is either a URL or a path ending in one."""
    key, found = extract_key_from_url(raw)
    if found:
        return key, True
    url, found = extract_url_from_path(raw)
    if not found:
        return "", False
    return extract_key_from_url(url)
