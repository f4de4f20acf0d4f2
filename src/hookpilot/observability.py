"""Structured ``event=<name> key=value`` logging on stderr.

stdout is reserved for workflow commands in the prepare step and for the MCP
channel in the gateway, so nothing here ever writes to it.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Final, Literal, TextIO, cast


_LOGGER_NAME: Final[str] = "hookpilot"
_MAX_VALUE_LEN: Final[int] = 120
_FORMAT: Final[str] = "%(asctime)s %(levelname)s %(name)s %(message)s"
# Milestones kept at low verbosity; warnings and errors always pass.
_MILESTONE_EVENTS: Final[frozenset[str]] = frozenset(
    {
        "context_normalized",
        "permission_checked",
        "trigger_checked",
        "tracking_comment_created",
        "branch_setup_completed",
        "gateway_started",
        "gateway_tool_failed",
        "github_pr_created",
        "github_pr_create_failed",
        "git_push_failed",
    }
)
_SECRET_FIELD_MARKERS: Final[tuple[str, ...]] = ("token", "secret", "password")

VerboseMode = Literal["off", "low", "high"]
VERBOSE_MODES: Final[tuple[VerboseMode, ...]] = ("off", "low", "high")


def configure_logging(verbose: str | None, *, stream: TextIO | None = None) -> None:
    mode = _parse_mode(verbose)
    logger = logging.getLogger(_LOGGER_NAME)
    logger.propagate = False
    logger.handlers.clear()

    if mode == "off":
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.CRITICAL + 1)
        return

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    if mode == "low":
        handler.addFilter(_milestones_only)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def log_event(logger: logging.Logger, event: str, **fields: object) -> None:
    logger.info(_render(event, fields), extra={"event_name": event})


def log_warning(logger: logging.Logger, event: str, **fields: object) -> None:
    logger.warning(_render(event, fields), extra={"event_name": event})


def _parse_mode(verbose: str | None) -> VerboseMode:
    if verbose is None:
        return "off"
    mode = verbose.strip().lower()
    if mode not in VERBOSE_MODES:
        raise ValueError(f"Unsupported verbose mode: {verbose!r}")
    return cast(VerboseMode, mode)


def _milestones_only(record: logging.LogRecord) -> bool:
    if record.levelno >= logging.WARNING:
        return True
    return getattr(record, "event_name", None) in _MILESTONE_EVENTS


def _render(event: str, fields: dict[str, object]) -> str:
    rendered = [f"event={event}"]
    rendered.extend(f"{key}={_render_value(key, fields[key])}" for key in sorted(fields))
    return " ".join(rendered)


def _render_value(key: str, value: object) -> str:
    if any(marker in key.lower() for marker in _SECRET_FIELD_MARKERS):
        return "<redacted>"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        return f"<{type(value).__name__}>"

    text = " ".join(value.split())
    if not text:
        return "<empty>"
    if len(text) > _MAX_VALUE_LEN:
        text = text[:_MAX_VALUE_LEN] + "..."
    # Quote anything that would break key=value splitting.
    return json.dumps(text) if (" " in text or "=" in text) else text
