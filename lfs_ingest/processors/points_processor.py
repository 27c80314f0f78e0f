# lfs_ingest/processors/points_processor.py
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScoringRules:
    """Fantasy points per match, by stored position (U attacker, A defender, V goalie)."""
    goal_defender: float = 2.0
    goal_other: float = 1.5
    assist_defender: float = 1.5
    assist_other: float = 1.0
    minor: float = -0.5
    double_minor: float = -2.0
    misconduct: float = -3.0
    red_card: float = -6.0
    penalty_shot_scored: float = 0.5
    penalty_shot_missed: float = -0.5
    save: float = 0.1
    goalie_win: float = 2.0
    hat_trick: float = 3.0
    # (max goals against, points); last band catches everything above
    ga_bands: Tuple[Tuple[int, float], ...] = ((0, 8.0), (2, 5.0), (5, 2.0), (9, -2.0))
    ga_band_floor: float = -5.0

    def ga_points(self, goals_against: int) -> float:
        for limit, points in self.ga_bands:
            if goals_against <= limit:
                return points
        return self.ga_band_floor


DEFAULT_RULES = ScoringRules()


def _score(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def aggregate_player(
    match: Dict[str, Any],
    player_id: str,
    events: List[Dict[str, Any]],
    position: Optional[str],
    team_id: Optional[str],
    assists: int = 0,
    goalie_line: Optional[Dict[str, Any]] = None,
    rules: ScoringRules = DEFAULT_RULES,
) -> Dict[str, Any]:
    pos = (position or "").strip().upper() or "U"
    is_goalie = pos == "V"
    is_defender = pos == "A"

    counts: Dict[str, int] = defaultdict(int)
    for ev in events:
        counts[ev.get("event_type") or ""] += 1

    goals = counts["goal"]
    pen_min = counts["minor_2"] * 2 + counts["double_minor"] * 4
    saves = counts["save"]
    home_score, away_score = _score(match.get("home_score")), _score(match.get("away_score"))

    goals_against = 0
    win = False
    if is_goalie and team_id:
        is_home = team_id == match.get("home_team")
        goals_for = home_score if is_home else away_score
        goals_against = away_score if is_home else home_score
        win = goals_for > goals_against
    if is_goalie and goalie_line:
        saves = _score(goalie_line.get("saves"))
        if goalie_line.get("goals_against") is not None:
            goals_against = _score(goalie_line.get("goals_against"))

    if is_goalie:
        base = saves * rules.save + rules.ga_points(goals_against)
    else:
        goal_w = rules.goal_defender if is_defender else rules.goal_other
        assist_w = rules.assist_defender if is_defender else rules.assist_other
        base = (
            goals * goal_w
            + assists * assist_w
            + counts["penalty_shot_scored"] * rules.penalty_shot_scored
            + counts["penalty_shot_missed"] * rules.penalty_shot_missed
            + counts["minor_2"] * rules.minor
            + counts["double_minor"] * rules.double_minor
            + counts["misconduct_10"] * rules.misconduct
            + counts["red_card"] * rules.red_card
        )

    hat_trick = not is_goalie and goals >= 3
    bonus = (rules.hat_trick if hat_trick else 0.0) + (rules.goalie_win if is_goalie and win else 0.0)

    return {
        "match_id": match["id"],
        "player_id": player_id,
        "team_id": team_id,
        "position": pos,
        "goals": goals,
        "assists": assists,
        "shots_on_goal": 0,
        "pen_min": pen_min,
        "saves": saves,
        "goals_against": goals_against,
        "hat_trick": hat_trick,
        "game_winner": False,
        "clean_sheet": is_goalie and goals_against == 0,
        "fantasy_points_base": round(base, 2),
        "fantasy_points_bonus": round(bonus, 2),
        "fantasy_points": round(base + bonus, 2),
    }


def compute_match_points(
    match: Dict[str, Any],
    events: Iterable[Dict[str, Any]],
    players: Dict[str, Dict[str, Any]],
    goalie_stats: Iterable[Dict[str, Any]] = (),
    rules: ScoringRules = DEFAULT_RULES,
) -> Tuple[List[Dict[str, Any]], int]:
    """Rows for player_match_points plus the number of players skipped for lacking a team."""
    events = list(events)
    by_player: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    assist_counts: Dict[str, int] = defaultdict(int)
    assist_team: Dict[str, Any] = {}

    for ev in events:
        if ev.get("player_id"):
            by_player[ev["player_id"]].append(ev)
        if ev.get("event_type") == "goal" and ev.get("assist_id"):
            assist_counts[ev["assist_id"]] += 1
            if ev.get("team_id"):
                assist_team.setdefault(ev["assist_id"], ev["team_id"])

    goalie_by_player = {g["player_id"]: g for g in goalie_stats if g.get("player_id")}

    player_ids = list(dict.fromkeys(list(by_player) + list(assist_counts) + list(goalie_by_player)))
    rows: List[Dict[str, Any]] = []
    skipped = 0
    for player_id in player_ids:
        player_events = by_player.get(player_id, [])
        team_ids = list(dict.fromkeys(ev["team_id"] for ev in player_events if ev.get("team_id")))
        if len(team_ids) > 1:
            logger.warning(f"[points] TEAM_ID_MISMATCH match_id={match['id']} player_id={player_id} teams={team_ids}")
        team_id = team_ids[0] if team_ids else assist_team.get(player_id)
        if team_id is None and player_id in goalie_by_player:
            team_id = goalie_by_player[player_id].get("team_id")
        if team_id is None:
            skipped += 1
            logger.warning(f"[points] SKIP_PLAYER_NO_TEAM_ID match_id={match['id']} player_id={player_id}")
            continue

        meta = players.get(player_id) or {}
        position = meta.get("position")
        if player_id in goalie_by_player and not position:
            position = "V"
        rows.append(aggregate_player(
            match,
            player_id,
            player_events,
            position,
            team_id,
            assists=assist_counts.get(player_id, 0),
            goalie_line=goalie_by_player.get(player_id),
            rules=rules,
        ))
    return rows, skipped
