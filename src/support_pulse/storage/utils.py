from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _parse_datetime_value(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 value (``Z`` suffix allowed) into an aware UTC datetime.

    Naive values are taken as UTC; other offsets are converted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _format_datetime_value(value: Any) -> Optional[str]:
    parsed = _parse_datetime_value(value)
    if parsed is None:
        return None
    return parsed.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _dump_metrics(metrics: Optional[dict]) -> Optional[str]:
    if metrics is None:
        return None
    return json.dumps(metrics, separators=(",", ":"), default=str)


def _load_metrics(raw: Optional[str]) -> Optional[dict]:
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Discarding unparseable metrics_json (%d chars)", len(raw))
        return None
    return value if isinstance(value, dict) else None
