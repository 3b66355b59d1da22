"""Lightweight ticket breakdowns for the dashboard.

Themes come from keyword matching on the (French) ticket subjects the
support team works with. Rules are evaluated in order and the last matching
rule wins, so a subject mentioning both a login problem and a bug is filed
as a technical incident.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from support_pulse.analytics.agents import agent_performance

DEFAULT_THEME = "Général"

THEME_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Authentification", ("connexion", "accès", "identifiant")),
    ("Publication", ("publication", "immo", "annonce")),
    ("Facturation", ("paiement", "facture", "abonnement")),
    ("Incident Technique", ("bug", "erreur", "bloqué")),
)


def classify_subject(subject: str | None) -> str:
    text = (subject or "").lower()
    theme = DEFAULT_THEME
    for name, keywords in THEME_RULES:
        if any(keyword in text for keyword in keywords):
            theme = name
    return theme


def aggregate_themes(tickets: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    return dict(Counter(classify_subject(t.get("subject")) for t in tickets))


def _breakdown(tickets: List[Mapping[str, Any]], field: str, default: str) -> Dict[str, int]:
    return dict(Counter(str(t.get(field) or default) for t in tickets))


def summarize_tickets(
    tickets: Iterable[Mapping[str, Any]],
    users: Iterable[Mapping[str, Any]] = (),
) -> Dict[str, Any]:
    rows = list(tickets)
    return {
        "total": len(rows),
        "themes": aggregate_themes(rows),
        "by_status": _breakdown(rows, "status", "unknown"),
        "by_channel": _breakdown(rows, "channel", "autre"),
        "by_brand": _breakdown(rows, "brand_name", "Inconnu"),
        "agents": agent_performance(rows, users),
    }
