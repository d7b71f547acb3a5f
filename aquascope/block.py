"""Parser for Aquascope code blocks within Markdown."""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field

from .annotations import AquascopeAnnotations, parse_annotations

_SYM = r"[^,=\n+]*+"

_BLOCK = re.compile(
    rf"```aquascope,(?P<ops>{_SYM}(?:\+{_SYM})*+)"
    rf"(?P<config>(?:,{_SYM}(?:={_SYM})?+)*+)"
    r"(?P<code>.*?)```",
    re.DOTALL,
)


@dataclass
class AquascopeBlock:
    """One fenced ```aquascope block: operations, config and cleaned code."""

    operations: list[str]
    config: list[tuple[str, str]]
    code: str
    annotations: AquascopeAnnotations = field(default_factory=AquascopeAnnotations)

    def cache_key(self) -> str:
        """A stable digest of everything that affects analysis results.

        Annotations are left out: they do not change what Aquascope computes.
        """
        payload = json.dumps(
            [self.operations, [list(pair) for pair in self.config], self.code],
            separators=(",", ":"),
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _config_items(raw: str) -> list[tuple[str, str]]:
    if not raw:
        return []
    items = []
    for item in raw[1:].split(","):
        key, sep, value = item.partition("=")
        items.append((key, value) if sep else (key, "true"))
    return items


def _block_from_match(match: re.Match[str]) -> AquascopeBlock:
    code, annotations = parse_annotations(match["code"].strip())
    return AquascopeBlock(
        operations=match["ops"].split("+"),
        config=_config_items(match["config"]),
        code=code,
        annotations=annotations,
    )


def parse_all(content: str) -> list[tuple[tuple[int, int], AquascopeBlock]]:
    """Find every Aquascope block with its (start, end) span in ``content``."""
    return [
        ((match.start(), match.end()), _block_from_match(match))
        for match in _BLOCK.finditer(content)
    ]