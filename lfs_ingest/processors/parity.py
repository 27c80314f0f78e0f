# lfs_ingest/processors/parity.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from lfs_ingest.utils.normalizer import TeamResolver, player_key

GOAL_THRESHOLD = 1
ASSIST_THRESHOLD = 1
PEN_MIN_THRESHOLD = 2
WORST_N = 25


@dataclass
class Totals:
    goals: int = 0
    assists: int = 0
    pen_min: int = 0


@dataclass
class ParityRow:
    player_id: Any
    name: Optional[str]
    staged: Totals
    computed: Totals
    diff_goals: int = 0
    diff_assists: int = 0
    diff_pen_min: int = 0

    @property
    def abs_score(self) -> int:
        return max(abs(self.diff_goals), abs(self.diff_assists), abs(self.diff_pen_min))

    @property
    def flagged(self) -> bool:
        return (
            abs(self.diff_goals) >= GOAL_THRESHOLD
            or abs(self.diff_assists) >= ASSIST_THRESHOLD
            or abs(self.diff_pen_min) >= PEN_MIN_THRESHOLD
        )


@dataclass
class ParityReport:
    season: str
    rows: List[ParityRow] = field(default_factory=list)
    unmapped_staging: int = 0

    @property
    def mismatches(self) -> List[ParityRow]:
        flagged = [r for r in self.rows if r.flagged]
        return sorted(flagged, key=lambda r: (-r.abs_score, str(r.name or ""), str(r.player_id)))

    def worst(self, n: int = WORST_N) -> List[ParityRow]:
        return self.mismatches[:n]


def _int(value: Any) -> int:
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return 0


def pen_min_column(rows: List[Dict[str, Any]]) -> str:
    """The season view exposes either pen_min or penalty_min depending on its version."""
    for row in rows:
        if "pen_min" in row:
            return "pen_min"
        if "penalty_min" in row:
            return "penalty_min"
    return "pen_min"


def map_staging_to_players(
    staging: Iterable[Dict[str, Any]],
    players: Iterable[Dict[str, Any]],
    resolver: TeamResolver,
) -> Tuple[Dict[Any, Totals], Dict[Any, str], int]:
    index: Dict[str, Any] = {}
    names: Dict[Any, str] = {}
    for p in players:
        if p.get("team_id") is None:
            continue
        index[f"{p['team_id']}:{player_key(p.get('name'))}"] = p["id"]
        names[p["id"]] = p.get("name") or ""

    staged: Dict[Any, Totals] = {}
    unmapped = 0
    for row in staging:
        team_id = resolver.resolve(row.get("team"))
        player_id = index.get(f"{team_id}:{player_key(row.get('name'))}") if team_id is not None else None
        if player_id is None:
            unmapped += 1
            continue
        t = staged.setdefault(player_id, Totals())
        t.goals += _int(row.get("goals"))
        t.assists += _int(row.get("assists"))
        t.pen_min += _int(row.get("penalty_min"))
    return staged, names, unmapped


def build_report(
    season: str,
    staged: Dict[Any, Totals],
    computed_rows: List[Dict[str, Any]],
    names: Optional[Dict[Any, str]] = None,
    unmapped_staging: int = 0,
) -> ParityReport:
    names = names or {}
    pim_col = pen_min_column(computed_rows)
    computed: Dict[Any, Totals] = {}
    for row in computed_rows:
        pid = row.get("player_id")
        if pid is None:
            continue
        t = computed.setdefault(pid, Totals())
        t.goals += _int(row.get("goals"))
        t.assists += _int(row.get("assists"))
        t.pen_min += _int(row.get(pim_col))

    report = ParityReport(season=str(season), unmapped_staging=unmapped_staging)
    for pid in list(dict.fromkeys(list(staged) + list(computed))):
        s = staged.get(pid, Totals())
        c = computed.get(pid, Totals())
        report.rows.append(ParityRow(
            player_id=pid,
            name=names.get(pid),
            staged=s,
            computed=c,
            diff_goals=c.goals - s.goals,
            diff_assists=c.assists - s.assists,
            diff_pen_min=c.pen_min - s.pen_min,
        ))
    return report
