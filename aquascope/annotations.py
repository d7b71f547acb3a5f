"""Parser for annotations inside the body of an Aquascope code block."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

_MARKERS = (
    ("`[", "]`", "interp"),
    ("`(", ")`", "stepper"),
    ("`{", "}`", "boundaries"),
)

_PATTERN = re.compile(
    "|".join(
        f"{re.escape(open_)}(?P<{name}>[^{re.escape(close[0])}]*){re.escape(close)}"
        for open_, close, name in _MARKERS
    )
)


class MatcherKind(str, Enum):
    """How a focused path is matched."""

    LITERAL = "Literal"
    REGEX = "Regex"


@dataclass(frozen=True)
class PathMatcher:
    """A path on a stepper line that should be shown, literal or regex."""

    kind: MatcherKind
    value: str

    @classmethod
    def literal(cls, value: str) -> PathMatcher:
        return cls(MatcherKind.LITERAL, value)

    @classmethod
    def regex(cls, value: str) -> PathMatcher:
        return cls(MatcherKind.REGEX, value)

    def to_json(self) -> dict[str, str]:
        return {"type": self.kind.value, "value": self.value}


@dataclass
class StepperAnnotations:
    focused_lines: list[int] = field(default_factory=list)
    focused_paths: dict[int, list[PathMatcher]] = field(default_factory=dict)


@dataclass
class BoundariesAnnotations:
    focused_lines: list[int] = field(default_factory=list)


@dataclass
class InterpAnnotations:
    state_locations: list[int] = field(default_factory=list)


@dataclass
class AquascopeAnnotations:
    """All annotations found in a code block.

    Line positions are 1-based; interpreter state locations are byte offsets
    into the cleaned code.
    """

    hidden_lines: list[int] = field(default_factory=list)
    interp: InterpAnnotations = field(default_factory=InterpAnnotations)
    stepper: StepperAnnotations = field(default_factory=StepperAnnotations)
    boundaries: BoundariesAnnotations = field(default_factory=BoundariesAnnotations)

    def to_json(self) -> dict[str, Any]:
        return {
            "hidden_lines": list(self.hidden_lines),
            "interp": {"state_locations": list(self.interp.state_locations)},
            "stepper": {
                "focused_lines": list(self.stepper.focused_lines),
                "focused_paths": {
                    str(line): [matcher.to_json() for matcher in matchers]
                    for line, matchers in self.stepper.focused_paths.items()
                },
            },
            "boundaries": {"focused_lines": list(self.boundaries.focused_lines)},
        }


def _lines(code: str) -> list[str]:
    """Split on newlines, dropping a final terminator and CR before LF."""
    if not code:
        return []
    terminated = code.endswith("\n")
    pieces = code.split("\n")
    if terminated:
        pieces.pop()
    last = len(pieces) - 1
    return [
        piece[:-1] if piece.endswith("\r") and (i < last or terminated) else piece
        for i, piece in enumerate(pieces)
    ]


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _parse_config(interior: str) -> dict[str, str]:
    config: dict[str, str] = {}
    for item in filter(None, interior.split(",")):
        key, _, value = item.partition(":")
        config[key] = value
    return config


def parse_annotations(code: str) -> tuple[str, AquascopeAnnotations]:
    """Strip annotation markers from ``code`` and collect what they say."""
    annots = AquascopeAnnotations()
    offset = 0
    output_lines: list[str] = []

    for line_pos, line in enumerate(_lines(code), start=1):
        fragments: list[str] = []
        if line.startswith("#"):
            annots.hidden_lines.append(line_pos)
            fragments.append(line[1:])
        elif line.startswith("\\#"):
            fragments.extend(["#", line[2:]])
        else:
            start = 0
            for match in _PATTERN.finditer(line):
                prefix = line[start : match.start()]
                fragments.append(prefix)
                offset += _byte_len(prefix)

                kind = match.lastgroup
                config = _parse_config(match.group(kind))
                if kind == "interp":
                    annots.interp.state_locations.append(offset)
                elif kind == "stepper":
                    if "focus" in config:
                        annots.stepper.focused_lines.append(line_pos)
                    matchers = []
                    if "paths" in config:
                        matchers.append(PathMatcher.literal(config["paths"]))
                    if "rxpaths" in config:
                        matchers.append(PathMatcher.regex(config["rxpaths"]))
                    if matchers:
                        annots.stepper.focused_paths.setdefault(line_pos, []).extend(
                            matchers
                        )
                else:
                    annots.boundaries.focused_lines.append(line_pos)
                start = match.end()
            fragments.append(line[start:])
            offset += _byte_len(line[start:])
            output_lines.append("".join(fragments))
            offset += 1
            continue

        offset += sum(_byte_len(fragment) for fragment in fragments) + 1
        output_lines.append("".join(fragments))

    return "\n".join(output_lines), annots