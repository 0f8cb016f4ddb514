"""Push payload template loading and rendering."""

import json
from dataclasses import asdict, dataclass
from pathlib import Path

import yaml


_templates: dict | None = None


@dataclass
class PushPayload:
    """JSON body delivered to the service worker."""

    title: str
    body: str
    url: str = "/check-in"
    icon: str | None = None
    badge: str | None = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)


def load_templates() -> dict:
    """
    Load payload templates from YAML file.

    Caches templates after first load.
    """
    global _templates
    if _templates is not None:
        return _templates

    yaml_path = Path(__file__).parent / "messages.yaml"
    with open(yaml_path, encoding="utf-8") as f:
        _templates = yaml.safe_load(f)

    return _templates


def render_message(template: str, context: dict) -> str:
    """
    Render a message template with context variables.

    Raises:
        KeyError: If a required variable is missing from context
    """
    return template.format(**context)


def get_payload(
    message_type: str,
    context: dict | None = None,
    title: str | None = None,
    body: str | None = None,
) -> PushPayload:
    """
    Build a push payload from a template.

    Args:
        message_type: Template key, e.g. "check_in_prompt"
        context: Variables to substitute in title and body
        title: Override for the rendered title (e.g. a group's custom text)
        body: Override for the rendered body

    Returns:
        PushPayload ready for delivery
    """
    template = load_templates()[message_type]
    context = context or {}
    return PushPayload(
        title=title or render_message(template["title"], context),
        body=body or render_message(template["body"], context),
        url=template.get("url", "/check-in"),
        icon=template.get("icon"),
        badge=template.get("badge"),
    )


def build_group_payload(group: dict) -> PushPayload:
    """Check-in prompt for a group, honouring its custom title/body if set."""
    return get_payload(
        "check_in_prompt",
        title=group.get("notification_title"),
        body=group.get("notification_body"),
    )
