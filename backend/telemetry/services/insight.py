"""AI insight: a short prose summary of recent telemetry and the forecast.

One Anthropic Messages request per invocation. Every failure path (no key,
API error, empty reply) yields a diagnostic string instead of an exception,
so the caller always gets something to store and show.
"""

import logging
import os
from typing import Any, Optional, Sequence

import anthropic

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are an environmental monitoring assistant for a small unattended sensor
node that measures water/obstacle distance (cm), air temperature (C),
relative humidity (%) and barometric pressure (hPa).

Write 3-5 plain sentences for a non-specialist operator:
- Describe what the recent readings show and any notable trend.
- Summarize what the forecast expects over the next day, citing its bounds
  when the band is wide.
- Mention data gaps or implausible patterns if you see them.
Never invent readings that are not in the data. No markdown, no lists.
"""


def _resolve_api_key(configured_key: str) -> Optional[str]:
    """Check ANTHROPIC_API_KEY env var first, fall back to the settings value."""
    env_key = os.environ.get("ANTHROPIC_API_KEY")
    if env_key:
        return env_key
    if configured_key:
        return configured_key
    return None


def build_user_message(readings: Sequence[Any], forecast: Sequence[dict]) -> str:
    parts = ["=== RECENT READINGS (oldest first) ==="]
    if readings:
        for r in readings:
            parts.append(
                f"  t={r.timestamp} distance={r.distance:.2f}cm temp={r.temperature:.2f}C "
                f"hum={r.humidity:.2f}% pres={r.pressure:.2f}hPa"
            )
    else:
        parts.append("  No readings stored.")
    parts.append("")

    parts.append("=== FORECAST (point [lower, upper]) ===")
    if forecast:
        for row in forecast:
            fields = []
            for metric in ("distance", "temperature", "humidity", "pressure"):
                fields.append(
                    f"{metric}={row[metric]} [{row[f'{metric}_lower']}, {row[f'{metric}_upper']}]"
                )
            parts.append(f"  t={row['timestamp']} " + " ".join(fields))
    else:
        parts.append("  No forecast available.")

    return "\n".join(parts)


async def generate_insight(
    readings: Sequence[Any],
    forecast: Sequence[dict],
    model: str,
    configured_key: str = "",
    max_tokens: int = 600,
    client: Optional[Any] = None,
) -> str:
    """Return insight prose, or a diagnostic string describing why there is none."""
    if client is None:
        api_key = _resolve_api_key(configured_key)
        if not api_key:
            logger.warning("Insight skipped: no Anthropic API key configured")
            return "Insight unavailable: no API key configured."
        client = anthropic.AsyncAnthropic(api_key=api_key)

    try:
        response = await client.messages.create(
            model=model,
            max_tokens=max_tokens,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_user_message(readings, forecast)}],
        )
    except anthropic.AuthenticationError:
        logger.error("Insight failed: invalid Anthropic API key")
        return "Insight unavailable: the API key was rejected."
    except anthropic.APIStatusError as exc:
        logger.error("Insight request returned %s", exc.status_code)
        return f"Insight unavailable: API returned status {exc.status_code}."
    except anthropic.APIError as exc:
        logger.error("Insight request failed: %s", exc)
        return f"Insight unavailable: {exc}"

    text_blocks = [
        block.text for block in (response.content or [])
        if getattr(block, "type", None) == "text" and getattr(block, "text", "")
    ]
    if not text_blocks:
        logger.warning("Insight response had no text content")
        return "Insight unavailable: the model returned an empty response."
    return "\n".join(text_blocks).strip()
