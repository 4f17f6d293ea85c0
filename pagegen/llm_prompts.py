from __future__ import annotations

from typing import List, Tuple

from jinja2 import Environment, PackageLoader, StrictUndefined

# Semantic styling tokens defined in templates/theme.css, grouped as listed to the model.
TOKEN_CLASSES: List[List[str]] = [
    ["bg-background", "text-foreground", "border-border", "outline-ring/50"],
    ["bg-card", "text-muted-foreground"],
    ["bg-primary", "text-primary-foreground"],
    ["bg-secondary", "text-secondary-foreground"],
    ["bg-accent", "text-accent-foreground"],
]

# Tags the page assembler adds itself; the model must not emit them.
INJECTED_ASSETS: List[str] = [
    '<script src="https://cdn.tailwindcss.com">',
    '<link rel="stylesheet">',
]

_env = Environment(
    loader=PackageLoader("pagegen", "templates"),
    autoescape=False,
    undefined=StrictUndefined,
    keep_trailing_newline=False,
)


def build_prompt(path: str) -> Tuple[str, str]:
    """Return (system_prompt, user_prompt) for a normalized request path.

    Pure function of ``path``: the same path always yields the same pair.
    """
    system = _env.get_template("system_prompt.txt").render(
        path=path,
        token_classes=TOKEN_CLASSES,
        injected_assets=INJECTED_ASSETS,
    )
    user = _env.get_template("user_prompt.txt").render(path=path)
    return system.strip(), user.strip()
