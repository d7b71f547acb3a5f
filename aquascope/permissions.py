"""Inline permission markers (``@Perm{read}``) outside Aquascope blocks."""

from __future__ import annotations

import re
from collections.abc import Iterator

VALID_PERMISSIONS = ("read", "write", "own", "flow")

_PERM = re.compile(r"@Perm(\[[^\]]*\])?\{([^}]*)\}")

Replacement = tuple[tuple[int, int], str]


class InvalidPermissionError(ValueError):
    """A permission marker names an unknown permission or option."""


def _render(perm: str, option: str | None) -> str:
    letter = perm[0].upper()
    perm_html = f'<span class="perm {perm}">{letter}</span>'
    match option:
        case None:
            return perm_html
        case "[gained]":
            return f'<span><span class="perm-diff-add">+</span>{perm_html}</span>'
        case "[lost]":
            return (
                '<span class="perm-diff-sub-container">'
                f'<div class="perm-diff-sub"></div>{perm_html}</span>'
            )
        case "[missing]":
            return f'<span class="perm missing {perm}">{letter}</span>'
        case _:
            raise InvalidPermissionError(f"Unsupported permission option: {option}")


def parse_perms(content: str) -> Iterator[Replacement]:
    """Yield ``((start, end), html)`` for every permission marker in ``content``."""
    for match in _PERM.finditer(content):
        perm = match.group(2)
        if perm not in VALID_PERMISSIONS:
            raise InvalidPermissionError(f"Invalid permission: {perm}")
        yield (match.start(), match.end()), _render(perm, match.group(1))