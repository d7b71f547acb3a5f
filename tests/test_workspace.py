import sys
from pathlib import Path

import pytest

from aquascope.workspace import (
    CommandError,
    miri_sysroot,
    run_and_get_output,
    rustc,
    toolchain,
)

TOOLCHAIN_TOML = '[toolchain]\nchannel = "nightly-2023-08-25"\ncomponents = ["rustc-dev"]\n'


def test_run_and_get_output_returns_stdout():
    assert run_and_get_output([sys.executable, "-c", "print('hello')"]) == "hello"


def test_run_and_get_output_strips_trailing_whitespace():
    out = run_and_get_output([sys.executable, "-c", "print('  value  \\n\\n')"])
    assert out == "  value"


def test_run_and_get_output_failure_reports_stderr():
    script = "import sys; sys.stderr.write('boom'); sys.exit(3)"
    with pytest.raises(CommandError) as info:
        run_and_get_output([sys.executable, "-c", script])
    message = str(info.value)
    assert message.startswith("Command failed with stderr:\n")
    assert "boom" in message


def test_toolchain_from_text():
    assert toolchain(TOOLCHAIN_TOML) == "nightly-2023-08-25"


def test_toolchain_missing_section():
    with pytest.raises(ValueError, match="Missing toolchain key"):
        toolchain('[other]\nchannel = "x"\n')


def test_toolchain_missing_channel():
    with pytest.raises(ValueError, match="Missing channel key"):
        toolchain("[toolchain]\ncomponents = []\n")


def test_toolchain_read_from_current_directory(tmp_path, monkeypatch):
    (tmp_path / "rust-toolchain.toml").write_text(TOOLCHAIN_TOML)
    monkeypatch.chdir(tmp_path)
    assert toolchain() == "nightly-2023-08-25"


def test_toolchain_missing_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(FileNotFoundError):
        toolchain()


def test_rustc_env_override(monkeypatch, tmp_path):
    target = tmp_path / "bin" / "rustc"
    monkeypatch.setenv("RUSTC_PATH", str(target))
    assert rustc(TOOLCHAIN_TOML) == Path(target)


def test_miri_sysroot_env_override(monkeypatch, tmp_path):
    monkeypatch.setenv("MIRI_SYSROOT", str(tmp_path))
    assert miri_sysroot(TOOLCHAIN_TOML) == tmp_path