"""Markdown preprocessor that turns Aquascope blocks into embeddable HTML."""

from __future__ import annotations

import html
import json
import os
import subprocess
import sys
import tempfile
import threading
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from . import workspace
from .block import AquascopeBlock, parse_all
from .cache import Cache, load_cache
from .permissions import parse_perms

RUN_TIMEOUT_SECONDS = 10

Replacement = tuple[tuple[int, int], str]


class AquascopeRunError(RuntimeError):
    """Running Aquascope on a code block failed."""


def _data_attr(value: Any) -> str:
    return html.escape(json.dumps(value, separators=(",", ":")), quote=True)


def render_embed(block: AquascopeBlock, responses: Any) -> str:
    """HTML element carrying a block and its Aquascope responses as data attributes."""
    attrs = {
        "code": block.code,
        "annotations": block.annotations.to_json(),
        "operations": list(block.operations),
        "responses": responses,
        "config": dict(block.config),
        "no-interact": True,
    }
    data = "".join(f' data-{name}="{_data_attr(value)}"' for name, value in attrs.items())
    return f'<div class="aquascope-embed"{data}></div>'


def apply_replacements(content: str, replacements: Iterable[Replacement]) -> str:
    """Replace each ``(start, end)`` span of ``content`` with its text."""
    pieces: list[str] = []
    position = 0
    for (start, end), text in sorted(replacements, key=lambda item: item[0]):
        if start < position:
            raise ValueError(f"Overlapping replacement at {start}..{end}")
        pieces.append(content[position:start])
        pieces.append(text)
        position = end
    pieces.append(content[position:])
    return "".join(pieces)


def _response_is_error(response: Any) -> bool:
    if isinstance(response, dict):
        return "Err" in response
    if isinstance(response, list):
        return any(isinstance(item, dict) and "Err" in item for item in response)
    return False


class AquascopePreprocessor:
    """Runs Aquascope on blocks, caching results, and renders them as HTML."""

    def __init__(
        self,
        miri_sysroot: Path | None = None,
        target_libdir: Path | None = None,
        cache: Cache | None = None,
    ) -> None:
        if miri_sysroot is None:
            miri_sysroot = workspace.miri_sysroot()
        if target_libdir is None:
            rustc_path = workspace.rustc()
            target_libdir = Path(
                workspace.run_and_get_output([str(rustc_path), "--print", "target-libdir"])
            )
        self.miri_sysroot = Path(miri_sysroot)
        self.target_libdir = Path(target_libdir)
        self.cache = cache if cache is not None else load_cache()
        self._lock = threading.Lock()

    def _environment(self) -> dict[str, str]:
        return {
            **os.environ,
            "SYSROOT": str(self.miri_sysroot),
            "MIRI_SYSROOT": str(self.miri_sysroot),
            "DYLD_LIBRARY_PATH": str(self.target_libdir),
            "LD_LIBRARY_PATH": str(self.target_libdir),
            "RUST_BACKTRACE": "1",
        }

    def run_aquascope(self, block: AquascopeBlock) -> str:
        """Run cargo-aquascope for each operation of ``block``; JSON of the responses."""
        keys = {key for key, _ in block.config}
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            status = subprocess.run(
                ["cargo", "new", "--bin", "example"],
                cwd=root,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            if status.returncode != 0:
                raise AquascopeRunError("Cargo failed")

            project = root / "example"
            (project / "src" / "main.rs").write_text(block.code, encoding="utf-8")

            responses: dict[str, Any] = {}
            for operation in block.operations:
                args = ["cargo", "aquascope"]
                if "shouldFail" in keys:
                    args.append("--should-fail")
                args.append(operation)
                if "showFlows" in keys:
                    args.append("--show-flows")

                try:
                    output = subprocess.run(
                        args,
                        cwd=project,
                        env=self._environment(),
                        capture_output=True,
                        timeout=RUN_TIMEOUT_SECONDS,
                    )
                except subprocess.TimeoutExpired as exc:
                    raise AquascopeRunError(
                        f"Aquascope timed out on program:\n{block.code}"
                    ) from exc

                stderr = output.stderr.decode("utf-8")
                failure = f"Aquascope failed for program:\n{block.code}"
                if output.returncode != 0:
                    raise AquascopeRunError(f"{failure}\nwith error:\n{stderr}")

                response = json.loads(output.stdout.decode("utf-8"))
                if _response_is_error(response):
                    raise AquascopeRunError(f"{failure}\nwith error:\n{stderr}")
                if isinstance(response, dict) and response.get("type") == "BuildError":
                    raise AquascopeRunError(failure)

                responses[operation] = response

        return json.dumps(responses)

    def process_code(self, block: AquascopeBlock) -> str:
        """HTML for one block, from the cache or from a fresh Aquascope run."""
        with self._lock:
            cached = self.cache.get(block)
        if cached is None:
            cached = self.run_aquascope(block)
            with self._lock:
                self.cache.set(block, cached)
        responses = json.loads(cached.rstrip())
        return render_embed(block, responses)

    def replacements(self, content: str) -> list[Replacement]:
        """All replacements for a chapter: rendered blocks, then permission markers."""
        blocks = parse_all(content)
        with ThreadPoolExecutor() as pool:
            rendered = list(pool.map(lambda item: self.process_code(item[1]), blocks))
        result: list[Replacement] = [
            (span, html_text) for (span, _), html_text in zip(blocks, rendered)
        ]
        result.extend(parse_perms(content))
        return result

    def save_cache(self) -> None:
        with self._lock:
            self.cache.save()


def _chapters(items: Iterable[Any]) -> Iterator[dict[str, Any]]:
    for item in items:
        if isinstance(item, dict) and isinstance(item.get("Chapter"), dict):
            chapter = item["Chapter"]
            yield chapter
            yield from _chapters(chapter.get("sub_items", []))


def main(argv: list[str] | None = None) -> int:
    """Book preprocessor entry point: reads ``[context, book]`` JSON from stdin."""
    args = sys.argv[1:] if argv is None else argv
    if args and args[0] == "supports":
        return 0
    if args and args[0] in ("-V", "--version"):
        print("aquascope")
        return 0

    try:
        _context, book = json.load(sys.stdin)
        preprocessor = AquascopePreprocessor()
        items = book.get("sections", book.get("items", []))
        for chapter in _chapters(items):
            content = chapter.get("content", "")
            chapter["content"] = apply_replacements(
                content, preprocessor.replacements(content)
            )
        json.dump(book, sys.stdout)
        sys.stdout.flush()
        preprocessor.save_cache()
    except (AquascopeRunError, workspace.CommandError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0