from __future__ import annotations

import pytest

from support_pulse.analytics.agents import UNASSIGNED, agent_performance
from support_pulse.analytics.themes import (
    DEFAULT_THEME,
    aggregate_themes,
    classify_subject,
    summarize_tickets,
)


@pytest.mark.parametrize(
    "subject,theme",
    [
        ("Problème de connexion", "Authentification"),
        ("Mon annonce immo n'apparaît pas", "Publication"),
        ("Facture de mars", "Facturation"),
        ("Bug sur la page d'accueil", "Incident Technique"),
        ("Erreur de connexion", "Incident Technique"),
        ("Question générale", DEFAULT_THEME),
        (None, DEFAULT_THEME),
    ],
)
def test_classify_subject(subject, theme):
    assert classify_subject(subject) == theme


def test_aggregate_themes_counts():
    tickets = [{"subject": "facture"}, {"subject": "paiement refusé"}, {"subject": "hello"}]
    assert aggregate_themes(tickets) == {"Facturation": 2, DEFAULT_THEME: 1}


def test_summarize_tickets_breakdowns():
    tickets = [
        {"subject": "bug", "status": "open", "channel": "email", "brand_name": "Acme"},
        {"subject": "hi", "status": "open", "channel": None, "brand_name": None},
    ]
    summary = summarize_tickets(tickets)

    assert summary["total"] == 2
    assert summary["by_status"] == {"open": 2}
    assert summary["by_channel"] == {"email": 1, "autre": 1}
    assert summary["by_brand"] == {"Acme": 1, "Inconnu": 1}
    assert summary["themes"] == {"Incident Technique": 1, DEFAULT_THEME: 1}


def test_summarize_empty():
    assert summarize_tickets([])["total"] == 0


class TestAgentPerformance:
    def test_counts_solved_and_closed_per_assignee(self):
        tickets = [
            {"assignee_id": 1, "status": "solved"},
            {"assignee_id": 1, "status": "closed"},
            {"assignee_id": 1, "status": "open"},
            {"assignee_id": 2, "status": "solved"},
            {"assignee_id": 3, "status": "pending"},
            {"assignee_id": None, "status": "solved"},
        ]
        users = [{"id": 1, "name": "Ana"}, {"id": 3, "name": "Cy"}]

        board = agent_performance(tickets, users)

        assert board == [
            {"id": 1, "name": "Ana", "solved": 2},
            {"id": 2, "name": "Agent 2", "solved": 1},
            {"id": UNASSIGNED, "name": UNASSIGNED, "solved": 1},
            {"id": 3, "name": "Cy", "solved": 0},
        ]

    def test_keeps_top_ten(self):
        tickets = [
            {"assignee_id": agent, "status": "solved"}
            for agent in range(1, 13)
            for _ in range(agent)
        ]

        board = agent_performance(tickets)

        assert len(board) == 10
        assert board[0] == {"id": 12, "name": "Agent 12", "solved": 12}
        assert board[-1]["id"] == 3

    def test_no_tickets(self):
        assert agent_performance([], [{"id": 1, "name": "Ana"}]) == []


def test_summary_includes_agent_leaderboard():
    summary = summarize_tickets(
        [{"subject": "x", "assignee_id": 5, "status": "solved"}],
        [{"id": 5, "name": "Eve"}],
    )
    assert summary["agents"] == [{"id": 5, "name": "Eve", "solved": 1}]
