from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TypeGuard, cast

from hookpilot.config import RunConfig
from hookpilot.errors import ConfigurationError, UnsupportedEventError, ValidationError
from hookpilot.models import (
    AUTOMATION_EVENT_NAMES,
    AutomationContext,
    AutomationEventName,
    EntityContext,
    EntityEventName,
    NormalizedContext,
)
from hookpilot.observability import log_event


LOGGER = logging.getLogger("hookpilot.context")


def load_event_payload(path: Path) -> dict[str, object]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Could not read event payload from {path}: {exc}") from exc
    payload_obj = as_object_dict(payload)
    if payload_obj is None:
        raise ConfigurationError(f"Event payload in {path} must be a JSON object")
    return payload_obj


def normalize_event(
    event_name: str, payload: dict[str, object], config: RunConfig
) -> NormalizedContext:
    action = payload.get("action")
    event_action = action if isinstance(action, str) else None

    if event_name == "issues":
        issue = _require_object(payload, "issue", event_name)
        context: NormalizedContext = _entity(
            config, event_name, event_action, payload, _entity_number(issue, event_name), False
        )
    elif event_name == "issue_comment":
        issue = _require_object(payload, "issue", event_name)
        is_pr = bool(issue.get("pull_request"))
        context = _entity(
            config, event_name, event_action, payload, _entity_number(issue, event_name), is_pr
        )
    elif event_name in ("pull_request", "pull_request_review", "pull_request_review_comment"):
        pull_request = _require_object(payload, "pull_request", event_name)
        context = _entity(
            config,
            cast(EntityEventName, event_name),
            event_action,
            payload,
            _entity_number(pull_request, event_name),
            True,
        )
    elif event_name in AUTOMATION_EVENT_NAMES:
        context = AutomationContext(
            event_name=cast(AutomationEventName, event_name),
            event_action=event_action,
            run_id=config.run_id,
            repository=config.repository,
            actor=config.actor,
            inputs=config.inputs,
            payload=payload,
        )
    else:
        raise UnsupportedEventError(f"Unsupported event type: {event_name}")

    log_event(
        LOGGER,
        "context_normalized",
        event_name=event_name,
        event_action=event_action,
        repo_full_name=config.repository.full_name,
        actor=config.actor,
        entity_number=context.entity_number if isinstance(context, EntityContext) else None,
        is_pr=context.is_pr if isinstance(context, EntityContext) else None,
    )
    return context


def is_entity_context(context: NormalizedContext) -> TypeGuard[EntityContext]:
    return isinstance(context, EntityContext)


def is_automation_context(context: NormalizedContext) -> TypeGuard[AutomationContext]:
    return isinstance(context, AutomationContext)


def is_issues_event(context: NormalizedContext) -> bool:
    return context.event_name == "issues"


def is_issue_comment_event(context: NormalizedContext) -> bool:
    return context.event_name == "issue_comment"


def is_pull_request_event(context: NormalizedContext) -> bool:
    return context.event_name == "pull_request"


def is_pull_request_review_event(context: NormalizedContext) -> bool:
    return context.event_name == "pull_request_review"


def is_pull_request_review_comment_event(context: NormalizedContext) -> bool:
    return context.event_name == "pull_request_review_comment"


def is_issues_assigned_event(context: NormalizedContext) -> bool:
    return is_issues_event(context) and context.event_action == "assigned"


def as_object_dict(value: object) -> dict[str, object] | None:
    if not isinstance(value, dict):
        return None
    if not all(isinstance(key, str) for key in value.keys()):
        return None
    return cast(dict[str, object], value)


def _entity(
    config: RunConfig,
    event_name: EntityEventName,
    event_action: str | None,
    payload: dict[str, object],
    entity_number: int,
    is_pr: bool,
) -> EntityContext:
    return EntityContext(
        event_name=event_name,
        event_action=event_action,
        run_id=config.run_id,
        repository=config.repository,
        actor=config.actor,
        inputs=config.inputs,
        payload=payload,
        entity_number=entity_number,
        is_pr=is_pr,
    )


def _require_object(payload: dict[str, object], key: str, event_name: str) -> dict[str, object]:
    value = as_object_dict(payload.get(key))
    if value is None:
        raise ValidationError(f"{event_name} payload is missing the {key!r} object")
    return value


def _entity_number(entity: dict[str, object], event_name: str) -> int:
    number = entity.get("number")
    if isinstance(number, bool) or not isinstance(number, int) or number < 1:
        raise ValidationError(f"{event_name} payload has no valid entity number")
    return number
