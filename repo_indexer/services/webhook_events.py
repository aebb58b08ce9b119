# repo_indexer/services/webhook_events.py
"""Classify inbound GitHub webhook payloads before dispatch."""
from dataclasses import dataclass, field
from enum import Enum


class WebhookEventKind(str, Enum):
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    PING = "ping"
    IGNORED = "ignored"


@dataclass
class WebhookEvent:
    kind: WebhookEventKind
    repository_id: int | None = None
    repository_name: str | None = None
    repository_full_name: str | None = None
    changed_paths: list[str] = field(default_factory=list)
    pull_request_number: int | None = None
    action: str | None = None


def collect_changed_paths(commits: list) -> list[str]:
    """Union of added and modified paths across commits, first-seen order."""
    seen: dict[str, None] = {}
    for commit in commits:
        if not isinstance(commit, dict):
            continue
        for key in ("added", "modified"):
            for path in commit.get(key) or []:
                if isinstance(path, str) and path:
                    seen.setdefault(path, None)
    return list(seen)


def _shape_kind(payload: dict) -> WebhookEventKind:
    if isinstance(payload.get("commits"), list):
        return WebhookEventKind.PUSH
    if isinstance(payload.get("pull_request"), dict):
        return WebhookEventKind.PULL_REQUEST
    if "zen" in payload and "hook_id" in payload:
        return WebhookEventKind.PING
    return WebhookEventKind.IGNORED


def parse_webhook_event(payload, event_name: str | None = None) -> WebhookEvent:
    """Map a payload (and the ``X-GitHub-Event`` header, if sent) to a ``WebhookEvent``.

    Anything that does not match a known shape, or whose header contradicts
    its shape, is classified ``IGNORED``.
    """
    if not isinstance(payload, dict):
        return WebhookEvent(kind=WebhookEventKind.IGNORED)

    kind = _shape_kind(payload)
    if event_name and kind is not WebhookEventKind.IGNORED and event_name != kind.value:
        kind = WebhookEventKind.IGNORED

    repository = payload.get("repository") if isinstance(payload.get("repository"), dict) else {}
    event = WebhookEvent(
        kind=kind,
        repository_id=repository.get("id"),
        repository_name=repository.get("name"),
        repository_full_name=repository.get("full_name"),
        action=payload.get("action"),
    )
    if kind is WebhookEventKind.PUSH:
        event.changed_paths = collect_changed_paths(payload["commits"])
    elif kind is WebhookEventKind.PULL_REQUEST:
        event.pull_request_number = payload["pull_request"].get("number")
    return event
