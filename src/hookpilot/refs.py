from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Final

from hookpilot.errors import InvalidRefNameError


_FORBIDDEN_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"[\x00-\x1f\x7f ~^:?*\[\]\\]")
_ALLOWED_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9/_.-]*$")


@dataclass(frozen=True)
class ValidRef:
    """A branch name that passed validate_ref_name.

    Git call sites only accept this type in ref positions; build it through
    validate_ref_name, never directly.
    """

    name: str

    def __str__(self) -> str:
        return self.name


def validate_ref_name(name: str) -> ValidRef:
    if not name or not name.strip():
        raise InvalidRefNameError("Branch name cannot be empty")

    # A leading dash would be parsed as an option by git.
    if name.startswith("-"):
        raise InvalidRefNameError(
            f"Invalid branch name: {name!r}. Branch names cannot start with a dash."
        )

    if _FORBIDDEN_CHARS_RE.search(name):
        raise InvalidRefNameError(
            f"Invalid branch name: {name!r}. Branch names cannot contain control characters, "
            "spaces, or special git characters (~^:?*[]\\)."
        )

    if not _ALLOWED_RE.match(name):
        raise InvalidRefNameError(
            f"Invalid branch name: {name!r}. Branch names must start with an alphanumeric "
            "character and contain only alphanumeric characters, forward slashes, hyphens, "
            "underscores, or periods."
        )

    if name.startswith(".") or name.endswith("."):
        raise InvalidRefNameError(
            f"Invalid branch name: {name!r}. Branch names cannot start or end with a period."
        )
    if name.endswith("/"):
        raise InvalidRefNameError(
            f"Invalid branch name: {name!r}. Branch names cannot end with a slash."
        )
    if "//" in name:
        raise InvalidRefNameError(
            f"Invalid branch name: {name!r}. Branch names cannot contain consecutive slashes."
        )
    if ".." in name:
        raise InvalidRefNameError(f"Invalid branch name: {name!r}. Branch names cannot contain '..'")
    if name.endswith(".lock"):
        raise InvalidRefNameError(
            f"Invalid branch name: {name!r}. Branch names cannot end with '.lock'"
        )
    if "@{" in name:
        raise InvalidRefNameError(f"Invalid branch name: {name!r}. Branch names cannot contain '@{{'")

    return ValidRef(name)


def refspec(src: ValidRef, dst: ValidRef) -> str:
    return f"{src.name}:{dst.name}"
