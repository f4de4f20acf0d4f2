from __future__ import annotations

import logging
import re

from hookpilot.context import as_object_dict, is_automation_context, is_entity_context
from hookpilot.models import EntityContext, NormalizedContext
from hookpilot.observability import log_event


LOGGER = logging.getLogger("hookpilot.trigger")


def contains_trigger_phrase(text: str, trigger_phrase: str) -> bool:
    """Return True when ``trigger_phrase`` occurs in ``text`` as a whole token.

    The phrase must start the text or follow whitespace, and must end the text
    or be followed by whitespace or sentence punctuation, so ``@claudexyz``
    never matches ``@claude``.
    """
    phrase = trigger_phrase.strip()
    if not phrase or not text:
        return False
    pattern = re.compile(rf"(?:^|\s){re.escape(phrase)}(?=[\s.,!?;:]|$)", re.IGNORECASE)
    return pattern.search(text) is not None


def check_contains_trigger(context: EntityContext) -> bool:
    inputs = context.inputs
    payload = context.payload

    for source, text in _candidate_texts(context):
        if contains_trigger_phrase(text, inputs.trigger_phrase):
            _log_decision(context, True, reason=f"phrase_in_{source}")
            return True

    assignee_trigger = inputs.assignee_trigger.strip().removeprefix("@")
    if context.event_action == "assigned" and assignee_trigger:
        assignee = as_object_dict(payload.get("assignee"))
        login = assignee.get("login") if assignee else None
        if isinstance(login, str) and login == assignee_trigger:
            _log_decision(context, True, reason="assignee")
            return True

    label_trigger = inputs.label_trigger.strip()
    if context.event_action == "labeled" and label_trigger:
        label = as_object_dict(payload.get("label"))
        name = label.get("name") if label else None
        if isinstance(name, str) and name == label_trigger:
            _log_decision(context, True, reason="label")
            return True

    _log_decision(context, False, reason="no_match")
    return False


def should_trigger(context: NormalizedContext) -> bool:
    if context.inputs.mode == "agent":
        return is_automation_context(context)
    if is_entity_context(context):
        return check_contains_trigger(context)
    return False


def _candidate_texts(context: EntityContext) -> list[tuple[str, str]]:
    payload = context.payload
    texts: list[tuple[str, str]] = []

    comment = as_object_dict(payload.get("comment"))
    if comment is not None:
        texts.append(("comment", _text(comment.get("body"))))
    review = as_object_dict(payload.get("review"))
    if review is not None:
        texts.append(("comment", _text(review.get("body"))))

    entity = as_object_dict(payload.get("pull_request")) or as_object_dict(payload.get("issue"))
    if entity is not None:
        texts.append(("title", _text(entity.get("title"))))
        texts.append(("body", _text(entity.get("body"))))
    return texts


def _text(value: object) -> str:
    return value if isinstance(value, str) else ""


def _log_decision(context: EntityContext, contains_trigger: bool, *, reason: str) -> None:
    log_event(
        LOGGER,
        "trigger_checked",
        event_name=context.event_name,
        event_action=context.event_action,
        entity_number=context.entity_number,
        contains_trigger=contains_trigger,
        reason=reason,
    )
