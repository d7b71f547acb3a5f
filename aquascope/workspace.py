"""Locating the Rust toolchain pieces Aquascope runs against."""

from __future__ import annotations

import os
import subprocess
import tomllib
from pathlib import Path

TOOLCHAIN_FILE = "rust-toolchain.toml"


class CommandError(RuntimeError):
    """An external command exited unsuccessfully."""


def run_and_get_output(args: list[str]) -> str:
    """Run ``args`` and return stdout without trailing whitespace."""
    result = subprocess.run(args, capture_output=True, check=False)
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        raise CommandError(f"Command failed with stderr:\n{stderr}")
    return result.stdout.decode("utf-8").rstrip()


def toolchain(config_text: str | None = None) -> str:
    """The toolchain channel named in a rust-toolchain.toml text.

    Without ``config_text`` the file is read from the current directory.
    """
    if config_text is None:
        config_text = Path(TOOLCHAIN_FILE).read_text(encoding="utf-8")
    config = tomllib.loads(config_text)
    section = config.get("toolchain")
    if section is None:
        raise ValueError("Missing toolchain key")
    channel = section.get("channel") if isinstance(section, dict) else None
    if channel is None:
        raise ValueError("Missing channel key")
    if not isinstance(channel, str):
        raise ValueError("Toolchain channel is not a string")
    return channel


def _optional_toolchain(config_text: str | None) -> str | None:
    try:
        return toolchain(config_text)
    except (OSError, ValueError):
        return None


def rustc(config_text: str | None = None) -> Path:
    """Path of the rustc binary: $RUSTC_PATH, the pinned toolchain's, or PATH's."""
    if (override := os.environ.get("RUSTC_PATH")) is not None:
        return Path(override)
    channel = _optional_toolchain(config_text)
    if channel is not None:
        output = run_and_get_output(["rustup", "which", "--toolchain", channel, "rustc"])
    else:
        output = run_and_get_output(["which", "rustc"])
    return Path(output)


def miri_sysroot(config_text: str | None = None) -> Path:
    """The Miri sysroot: $MIRI_SYSROOT or what ``cargo miri setup`` reports."""
    if (override := os.environ.get("MIRI_SYSROOT")) is not None:
        return Path(override)
    args = ["cargo"]
    channel = _optional_toolchain(config_text)
    if channel is not None:
        args.append(f"+{channel}")
    args.extend(["miri", "setup", "--print-sysroot"])
    result = subprocess.run(args, capture_output=True, check=False)
    if result.returncode != 0:
        raise CommandError("Command failed")
    return Path(result.stdout.decode("utf-8").rstrip())