# courses/youtube.py
from urllib.parse import urlparse, parse_qs

EMBED_BASE = "https://www.youtube.com/embed/"


def embed_url(url):
    """
    Embed URL for a YouTube watch, share or embed link; None for anything else.

    >>> embed_url("https://youtu.be/dQw4w9WgXcQ")
    'https://www.youtube.com/embed/dQw4w9WgXcQ'
    """
    if not url:
        return None
    parsed = urlparse(url)
    host = parsed.netloc.lower()

    if host.endswith('youtu.be'):
        video_id = parsed.path.lstrip('/')
        return EMBED_BASE + video_id if video_id else None
    if host.endswith('youtube.com'):
        if '/embed/' in parsed.path:
            return url
        video_id = parse_qs(parsed.query).get('v', [None])[0]
        return EMBED_BASE + video_id if video_id else None
    return None
