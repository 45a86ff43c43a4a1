"""Content provider: catalogs loaded once from presets/content/."""

from hengdian.content import Content, load_content

from .core import content_dir

_content: Content | None = None


def get_content() -> Content:
    """Load perks, events, and endings on first use and cache them."""
    global _content
    if _content is None:
        _content = load_content(content_dir())
    return _content
