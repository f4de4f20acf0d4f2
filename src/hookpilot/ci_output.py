from __future__ import annotations

from pathlib import Path
import secrets
import sys
from typing import TextIO


class StepOutputs:
    """Appends ``name=value`` step outputs to the file the CI runner provides.

    Without an output file (local runs) values are only kept in memory.
    """

    def __init__(self, output_path: Path | None) -> None:
        self.output_path = output_path
        self.values: dict[str, str] = {}

    def set(self, name: str, value: str) -> None:
        self.values[name] = value
        if self.output_path is None:
            return
        with self.output_path.open("a", encoding="utf-8") as fh:
            if "\n" in value or "\r" in value:
                delimiter = f"ghadelimiter_{secrets.token_hex(8)}"
                fh.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
            else:
                fh.write(f"{name}={value}\n")


def emit_error(message: str, *, stream: TextIO | None = None) -> None:
    out = stream if stream is not None else sys.stdout
    out.write(f"::error::{_escape_command_data(message)}\n")
    out.flush()


def _escape_command_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
