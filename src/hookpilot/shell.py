from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
import logging
import subprocess

from hookpilot.errors import RemoteError


class CommandError(RemoteError):
    def __init__(self, argv: Sequence[str], exit_code: int, stdout: str, stderr: str) -> None:
        self.argv = tuple(argv)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            "Command failed\n"
            f"cmd: {' '.join(self.argv)}\n"
            f"exit: {exit_code}\n"
            f"stdout:\n{stdout}\n"
            f"stderr:\n{stderr}"
        )


LOGGER = logging.getLogger("hookpilot.shell")


def _preview(text: str, *, limit: int = 200) -> str:
    compact = text.replace("\n", "\\n").strip()
    if not compact:
        return "<empty>"
    if len(compact) <= limit:
        return compact
    return f"{compact[:limit]}..."


def run(
    argv: list[str],
    *,
    cwd: Path | None = None,
    input_text: str | None = None,
    check: bool = True,
    env: Mapping[str, str] | None = None,
) -> str:
    # argv is handed to the binary directly; there is no shell to reinterpret it.
    proc = subprocess.run(
        argv,
        cwd=str(cwd) if cwd else None,
        input=input_text,
        text=True,
        capture_output=True,
        check=False,
        env=dict(env) if env is not None else None,
    )
    LOGGER.debug(
        "event=command_finished command=%s exit_code=%s stdout=%s",
        " ".join(argv),
        proc.returncode,
        _preview(proc.stdout),
    )
    if check and proc.returncode != 0:
        LOGGER.error(
            "event=command_failed command=%s exit_code=%s stderr=%s stdout=%s",
            " ".join(argv),
            proc.returncode,
            _preview(proc.stderr),
            _preview(proc.stdout),
        )
        raise CommandError(argv, proc.returncode, proc.stdout, proc.stderr)
    return proc.stdout
