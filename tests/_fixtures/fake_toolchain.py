"""Stand-in for the WiX toolset and cargo used by pipeline tests."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Iterable, List, Sequence


class FakeToolchain:
    """Process runner double that mimics candle/light/signtool/cargo.

    Every call is recorded. Tools named in ``fail`` exit with status 1; tools
    named in ``skip_output`` exit with status 0 but never write their ``-out``
    file.
    """

    def __init__(
        self,
        *,
        fail: Iterable[str] = (),
        skip_output: Iterable[str] = (),
        timeout: Iterable[str] = (),
    ) -> None:
        self.fail = set(fail)
        self.skip_output = set(skip_output)
        self.timeout = set(timeout)
        self.calls: List[List[str]] = []
        self.cwds: List[Path] = []

    def __call__(
        self,
        args: Sequence[str],
        *,
        cwd: Path,
        timeout: float | None = None,
        capture_output: bool = True,
    ) -> "subprocess.CompletedProcess[str]":
        command = list(args)
        self.calls.append(command)
        self.cwds.append(Path(cwd))
        tool = Path(command[0]).name
        if tool in self.timeout:
            raise subprocess.TimeoutExpired(command, timeout or 0, output=b"partial", stderr=b"")
        if tool in self.fail:
            return subprocess.CompletedProcess(command, 1, stdout="", stderr=f"{tool}: error CNDL0104 : bad input")
        if tool not in self.skip_output and "-out" in command:
            out = Path(command[command.index("-out") + 1])
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(f"{tool} output".encode("utf-8"))
        return subprocess.CompletedProcess(command, 0, stdout=f"{tool} ok", stderr="")

    @property
    def tools(self) -> List[str]:
        return [Path(call[0]).name for call in self.calls]


def fake_which(name: str, path: str | None = None) -> str:
    return f"/opt/wix/bin/{name}"


__all__ = ["FakeToolchain", "fake_which"]
