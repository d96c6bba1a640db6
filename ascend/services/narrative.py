"""
Narrative collaborators for weekly snapshots.

A narrator turns the computed snapshot fields into a short summary plus a
few insight sentences. It is optional enrichment: callers must treat any
NarrativeError (or any other exception) as "no narrative this time".

Backends (settings.NARRATIVE_BACKEND)
-------------------------------------
  "template" — TemplateNarrativeClient, deterministic sentences, no I/O
  "http"     — HttpNarrativeClient, POSTs to NARRATIVE_SERVICE_URL
  "none"     — no narrator
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional, Protocol

import httpx
from loguru import logger

from ascend.core.config import settings
from ascend.core.errors import NarrativeError


@dataclass
class NarrativeRequest:
    user_id: str
    week_start: date
    snapshot: dict[str, Any]


@dataclass
class Narrative:
    summary: str
    insights: list[str] = field(default_factory=list)


class NarrativeClient(Protocol):
    def generate(self, request: NarrativeRequest) -> Narrative: ...


# ---------------------------------------------------------------------------
# HTTP backend
# ---------------------------------------------------------------------------

class HttpNarrativeClient:
    """Calls an external text-generation service with a bounded timeout."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    def generate(self, request: NarrativeRequest) -> Narrative:
        payload = {
            "userId": request.user_id,
            "weekStart": str(request.week_start),
            "snapshotData": request.snapshot,
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.base_url, json=payload)
        except httpx.HTTPError as exc:
            raise NarrativeError(f"narrative service unreachable: {exc}") from exc

        if response.status_code >= 400:
            raise NarrativeError(f"narrative service error {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise NarrativeError("narrative service returned invalid JSON") from exc

        summary = data.get("summary") if isinstance(data, dict) else None
        if not summary:
            raise NarrativeError("narrative response did not include a summary")
        insights = data.get("insights") or []
        return Narrative(
            summary=str(summary),
            insights=[_insight_text(i) for i in insights if i],
        )


def _insight_text(item: Any) -> str:
    # The service may answer with plain strings or {title, description} objects
    if isinstance(item, dict):
        title = item.get("title", "")
        description = item.get("description", "")
        return f"{title}: {description}".strip(": ")
    return str(item)


# ---------------------------------------------------------------------------
# Template backend
# ---------------------------------------------------------------------------

class TemplateNarrativeClient:
    """Deterministic weekly narrative built from the snapshot numbers."""

    def generate(self, request: NarrativeRequest) -> Narrative:
        s = request.snapshot
        pct = s.get("completion_percentage", 0)
        done = s.get("completed_habits", 0)
        total = s.get("total_habits", 0)
        current = s.get("current_streak", 0)
        best = s.get("best_streak", 0)
        best_moment = s.get("best_moment")
        worst_moment = s.get("worst_moment")
        struggling = s.get("struggling_habits") or []

        parts: list[str] = []
        if pct >= 80:
            parts.append(f"Excellent week! You completed {pct}% of your habits ({done}/{total}).")
        elif pct >= 60:
            parts.append(f"Good progress this week with {pct}% completion ({done}/{total}).")
        elif pct >= 40:
            parts.append(f"This week was challenging with {pct}% completion ({done}/{total}).")
        else:
            parts.append(f"This week was tough with {pct}% completion ({done}/{total}).")

        if current > 0 and current >= best:
            parts.append(f"You're on a {current}-day streak - your best yet!")
        elif current > 0:
            parts.append(f"You're rebuilding with a {current}-day streak.")
        else:
            parts.append("Time to restart your streak.")

        if best_moment and worst_moment and best_moment != worst_moment:
            parts.append(
                f"{best_moment.capitalize()}s are your strength, while {worst_moment}s need attention."
            )

        if pct >= 70:
            parts.append("Keep up the great work!")
        else:
            parts.append("Focus on small wins and consistency over perfection.")

        insights: list[str] = []
        if pct < 50:
            insights.append("Focus on consistency: start with your easiest habits to build momentum.")
        elif pct > 80:
            insights.append("Ready for a challenge: consider adding a new habit or raising the difficulty.")
        if 0 < current < best:
            insights.append(f"Streak recovery: set a micro-goal to get back to {best} days.")
        if best_moment and worst_moment and best_moment != worst_moment:
            insights.append(
                f"Optimize your {worst_moment} routine: move some habits to the {best_moment} "
                "or make them smaller."
            )
        if struggling:
            insights.append(f"{len(struggling)} habit(s) need attention this week.")

        return Narrative(summary=" ".join(parts), insights=insights)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def get_narrator() -> Optional[NarrativeClient]:
    backend = settings.NARRATIVE_BACKEND
    if backend == "template":
        return TemplateNarrativeClient()
    if backend == "http":
        if not settings.NARRATIVE_SERVICE_URL:
            logger.warning("NARRATIVE_BACKEND=http but NARRATIVE_SERVICE_URL is unset")
            return None
        return HttpNarrativeClient(
            base_url=settings.NARRATIVE_SERVICE_URL,
            timeout=settings.NARRATIVE_TIMEOUT_SECONDS,
        )
    return None
