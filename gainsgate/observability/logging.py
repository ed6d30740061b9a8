"""One ``key=value`` line per callable invocation outcome."""

from __future__ import annotations

from gainsgate.util.logger import get_logger


event_logger = get_logger("events")


def _render(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if not text or any(ch.isspace() for ch in text) or '"' in text:
        return '"' + text.replace('"', '\\"') + '"'
    return text


def format_event(event: str, **fields: object) -> str:
    parts = [f"event={event}"]
    for key in sorted(fields):
        value = fields[key]
        if value is None:
            continue
        parts.append(f"{key}={_render(value)}")
    return " ".join(parts)


def log_event(event: str, **fields: object) -> None:
    event_logger.info("%s", format_event(event, **fields))
