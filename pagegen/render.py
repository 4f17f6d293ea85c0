from __future__ import annotations

from functools import lru_cache
from importlib import resources

TAILWIND_LOADER = '<script src="https://cdn.tailwindcss.com"></script>'
THEME_LINK = '<link rel="stylesheet" href="/theme.css">'
HEAD_ASSETS = TAILWIND_LOADER + THEME_LINK


def inject_assets(html: str) -> str:
    """
    Put HEAD_ASSETS right before the first </head>, or in front of the
    document when there is none. Only call this once per generated page.
    """
    if "</head>" in html:
        return html.replace("</head>", HEAD_ASSETS + "</head>", 1)
    return HEAD_ASSETS + html


@lru_cache(maxsize=1)
def theme_css() -> str:
    return resources.files("pagegen").joinpath("templates/theme.css").read_text(encoding="utf-8")
