# lfs_ingest/pipeline/match_events.py
"""
Protocol page -> match_events / match_goalie_stats for one match or a season.

Player resolution is two-phase: every participant is resolved against a
snapshot of both rosters, unresolved (team, name) pairs are inserted as stub
players in one batch, then everything is resolved again against the grown
roster. Events are replaced wholesale per match (delete, then insert); the
two statements are not atomic, so a crash in between leaves the match
without events until the next run.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from tqdm import tqdm

from lfs_ingest.core.database import DatabaseClient, get_db
from lfs_ingest.core.errors import FetchError, UpstreamFormatError
from lfs_ingest.processors.protocol_processor import (
    GOAL,
    MISCONDUCT_10,
    MVP,
    RED_CARD,
    GoalieLine,
    GoalieStart,
    ParsedGoal,
    ParsedPenalty,
    ProtocolParse,
    build_non_player_keys,
    classify_penalty,
    clean_participant_name,
    infer_period_from_seconds,
    is_non_player_assist_text,
    parse_protocol,
    parse_time_to_seconds,
)
from lfs_ingest.scrapers.protocol_scraper import ProtocolScraper, build_protocol_url
from lfs_ingest.utils.logger import get_logger, fmt_fields, WarningTracker
from lfs_ingest.utils.normalizer import is_junk_name, normalize_key, player_key

logger = get_logger(__name__)

EVENT_KEY_FIELDS = ("event_type", "period", "ts_seconds", "player_id", "assist_id", "value")


# ------------------------------ roster index ------------------------------

class PlayerIndex:
    """`team_id:player_key` -> player id for the two rosters of a match."""

    def __init__(self, players: Iterable[Dict[str, Any]] = ()):
        self._index: Dict[str, Any] = {}
        for p in players:
            self.add(p)

    @staticmethod
    def key(team_id: Any, name_key: Optional[str]) -> str:
        return f"{team_id}:{name_key or ''}"

    def add(self, player: Dict[str, Any]) -> None:
        if player.get("id") is None or player.get("team_id") is None:
            return
        name_key = player_key(player.get("name"))
        if name_key:
            self._index.setdefault(self.key(player["team_id"], name_key), player["id"])

    def get(self, team_id: Any, name_key: Optional[str]) -> Optional[Any]:
        if team_id is None or not name_key:
            return None
        return self._index.get(self.key(team_id, name_key))

    def any_team(self, name_key: Optional[str]) -> Optional[Tuple[Any, Any]]:
        """(player_id, team_id) when exactly one roster has this name."""
        if not name_key:
            return None
        hits = [
            (player_id, k.split(":", 1)[0])
            for k, player_id in self._index.items()
            if k.split(":", 1)[1] == name_key
        ]
        return hits[0] if len(hits) == 1 else None

    def candidates(self, team_id: Any, limit: int = 5) -> List[str]:
        prefix = f"{team_id}:"
        return [k[len(prefix):] for k in self._index if k.startswith(prefix)][:limit]

    def __len__(self) -> int:
        return len(self._index)


# ------------------------------ results ------------------------------

@dataclass
class MatchEventResult:
    match_id: Any
    skipped: bool = False
    skip_reason: Optional[str] = None
    goals_parsed: int = 0
    penalties_parsed: int = 0
    events_inserted: int = 0
    penalties_inserted: int = 0
    misconducts: int = 0
    red_cards: int = 0
    mvps_inserted: int = 0
    stubs_created: int = 0
    unmapped_scorers: int = 0
    unmapped_assists: int = 0
    unmapped_penalty_players: int = 0
    goalie_stats_upserted: int = 0


@dataclass
class BatchResult:
    season: Optional[str] = None
    considered: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    events_inserted: int = 0
    stubs_created: int = 0
    goalie_rows: int = 0
    matches_without_goalies: List[Any] = field(default_factory=list)
    failures: List[Tuple[Any, str]] = field(default_factory=list)

    @property
    def fail_ratio(self) -> float:
        return self.failed / self.considered if self.considered else 0.0

    def add(self, res: MatchEventResult) -> None:
        if res.skipped:
            self.skipped += 1
            return
        self.succeeded += 1
        self.events_inserted += res.events_inserted
        self.stubs_created += res.stubs_created
        self.goalie_rows += res.goalie_stats_upserted
        if res.goalie_stats_upserted == 0:
            self.matches_without_goalies.append(res.match_id)


# ------------------------------ helpers ------------------------------

def _side_team(side: Optional[str], match: Dict[str, Any]) -> Optional[Any]:
    if side == "home":
        return match.get("home_team")
    if side == "away":
        return match.get("away_team")
    return None


def _first_assist_name(assist_raw: Optional[str]) -> str:
    if not assist_raw:
        return ""
    return clean_participant_name(re.split(r"[;,]", assist_raw)[0])


def dedupe_events(events: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen = set()
    out = []
    for ev in events:
        key = tuple(ev.get(f) for f in EVENT_KEY_FIELDS)
        if key in seen:
            continue
        seen.add(key)
        out.append(ev)
    return out


def dedupe_goalie_stats(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """One row per player; the line with the most minutes wins."""
    best: Dict[Any, Dict[str, Any]] = {}
    for row in rows:
        current = best.get(row["player_id"])
        if current is None or (row.get("minutes_seconds") or 0) > (current.get("minutes_seconds") or 0):
            best[row["player_id"]] = row
    return list(best.values())


def resolve_goalie_team(
    label: Optional[str],
    teams: List[Dict[str, Any]],
    match: Dict[str, Any],
) -> Optional[Any]:
    if not label:
        return None
    key = normalize_key(label)
    for team in teams:
        for col in ("name", "code", "short_name"):
            team_key = normalize_key(team.get(col))
            if team_key and (key == team_key or team_key in key):
                return team["id"]
    lowered = label.lower()
    if "maj" in lowered:
        return match.get("home_team")
    if "vie" in lowered:
        return match.get("away_team")
    return None


def goalie_team_lookup(
    starts: List[GoalieStart],
    teams: List[Dict[str, Any]],
    match: Dict[str, Any],
) -> Dict[str, Any]:
    lookup: Dict[str, Any] = {}
    for start in starts:
        team_id = resolve_goalie_team(start.team_label, teams, match)
        if team_id is None:
            continue
        if start.jersey_number:
            lookup[f"jersey:{start.jersey_number}"] = team_id
        name_key = player_key(start.name)
        if name_key:
            lookup[f"name:{name_key}"] = team_id
    return lookup


def goalie_team_from_line(line: GoalieLine, lookup: Dict[str, Any], match: Dict[str, Any]) -> Optional[Any]:
    if line.jersey_number and f"jersey:{line.jersey_number}" in lookup:
        return lookup[f"jersey:{line.jersey_number}"]
    by_name = lookup.get(f"name:{player_key(line.name)}")
    if by_name is not None:
        return by_name
    # one side already known: this goalie played for the other one
    found = set(lookup.values())
    if len(found) == 1:
        only = next(iter(found))
        if only == match.get("home_team"):
            return match.get("away_team")
        if only == match.get("away_team"):
            return match.get("home_team")
    return None


# ------------------------------ ingestor ------------------------------

class MatchEventIngestor:
    """Ingest protocol events for one match or every finished match of a season."""

    def __init__(
        self,
        db: Optional[DatabaseClient] = None,
        scraper: Optional[ProtocolScraper] = None,
        tracker: Optional[WarningTracker] = None,
        now=None,
    ):
        self.db = db or get_db()
        self.scraper = scraper or ProtocolScraper()
        self.tracker = tracker or WarningTracker()
        self._now = now or (lambda: datetime.now(timezone.utc))

    # --- phase 1: who is missing from the rosters ---
    def _goal_participants(
        self,
        goal: ParsedGoal,
        non_player_keys,
    ) -> List[Tuple[str, str]]:
        """(name, key) pairs a goal row refers to, scorer first."""
        out: List[Tuple[str, str]] = []
        scorer_name = clean_participant_name(goal.scorer_raw)
        if goal.scorer_key:
            out.append((scorer_name, goal.scorer_key))
        if goal.assist_key and not is_non_player_assist_text(goal.assist_raw, non_player_keys):
            if goal.assist_key != goal.scorer_key:
                out.append((_first_assist_name(goal.assist_raw), goal.assist_key))
        return out

    def _collect_unresolved(
        self,
        match: Dict[str, Any],
        parsed: ProtocolParse,
        index: PlayerIndex,
        non_player_keys,
    ) -> Dict[Tuple[Any, str], str]:
        missing: Dict[Tuple[Any, str], str] = {}

        def _want(team_id: Any, name: str, key: str) -> None:
            if index.get(team_id, key) is not None or (team_id, key) in missing:
                return
            if not name or is_junk_name(name):
                return
            missing[(team_id, key)] = name

        for goal in parsed.goals:
            team_id = _side_team(goal.team_side, match)
            if team_id is None or goal.is_own_goal:
                continue
            for name, key in self._goal_participants(goal, non_player_keys):
                _want(team_id, name, key)

        for pen in parsed.penalties:
            team_id = _side_team(pen.team_side, match)
            if team_id is None or not pen.player_part or pen.looks_like_reason:
                continue
            if not classify_penalty(pen.minutes, pen.details_text):
                continue
            _want(team_id, clean_participant_name(pen.player_part), pen.player_key)
        return missing

    def _create_stubs(self, match: Dict[str, Any], missing: Dict[Tuple[Any, str], str]) -> int:
        if not missing:
            return 0
        rows = [
            {"name": name, "team_id": team_id, "position": None}
            for (team_id, _), name in sorted(missing.items(), key=lambda kv: (str(kv[0][0]), kv[0][1]))
        ]
        self.db.insert_players(rows)
        for row in rows:
            logger.info(f"[events] STUB_PLAYER_CREATED {fmt_fields({'match_id': match['id'], **row})}")
        return len(rows)

    # --- phase 2: events ---
    def _goal_events(
        self,
        match: Dict[str, Any],
        parsed: ProtocolParse,
        index: PlayerIndex,
        non_player_keys,
        res: MatchEventResult,
        created_at: str,
    ) -> List[Dict[str, Any]]:
        events = []
        for goal in parsed.goals:
            team_id = _side_team(goal.team_side, match)
            if team_id is None:
                logger.warning(f"[events] Unable to resolve team for goal row: {goal.details_text!r}")
                continue
            if goal.is_own_goal:
                logger.warning(f"[events] IGNORED_OWN_GOAL_ROW {fmt_fields({'match_id': match['id'], 'raw_row': goal.details_text})}")
                continue

            scorer_id = index.get(team_id, goal.scorer_key)
            if scorer_id is None:
                res.unmapped_scorers += 1
                logger.warning("[events] UNMAPPED_PLAYER scorer " + fmt_fields({
                    "team_id": team_id, "raw": goal.scorer_raw, "normalized": goal.scorer_key,
                    "candidates": index.candidates(team_id),
                }))
                continue

            assist_id = None
            ignored_reason = None
            if goal.assist_raw and is_non_player_assist_text(goal.assist_raw, non_player_keys):
                ignored_reason = "non_player_assist_text"
                logger.warning(f"[events] IGNORED_ASSIST_TEXT {fmt_fields({'match_id': match['id'], 'raw': goal.assist_raw})}")
            elif goal.assist_key:
                assist_id = index.get(team_id, goal.assist_key)
                if assist_id is None:
                    res.unmapped_assists += 1
                    logger.warning("[events] UNMAPPED_ASSIST " + fmt_fields({
                        "team_id": team_id, "raw": goal.assist_raw, "normalized": goal.assist_key,
                    }))
                elif assist_id == scorer_id:
                    ignored_reason = "assist_is_scorer"
                    assist_id = None

            raw = {
                "time": goal.time_text,
                "type": goal.type_text,
                "scoreText": goal.score_text,
                "detailsText": goal.details_text,
                "scorer_raw": goal.scorer_raw,
                "assist_raw": goal.assist_raw,
            }
            if ignored_reason:
                raw["assist_ignored_reason"] = ignored_reason
            events.append({
                "match_id": match["id"],
                "ts_seconds": parse_time_to_seconds(goal.time_text),
                "period": goal.period,
                "team_id": team_id,
                "player_id": scorer_id,
                "assist_id": assist_id,
                "event_type": GOAL,
                "value": None,
                "raw": raw,
                "created_at": created_at,
            })
        return events

    def _penalty_events(
        self,
        match: Dict[str, Any],
        penalties: List[ParsedPenalty],
        index: PlayerIndex,
        res: MatchEventResult,
        created_at: str,
    ) -> List[Dict[str, Any]]:
        events = []
        for pen in penalties:
            team_id = _side_team(pen.team_side, match)
            if team_id is None:
                logger.warning(f"[events] Unable to resolve team for penalty row: {pen.details_text!r}")
                continue
            if not pen.player_part:
                res.unmapped_penalty_players += 1
                logger.warning(f"[events] UNMAPPED_PENALTY_PLAYER {fmt_fields({'team_id': team_id, 'raw_row': pen.details_text})}")
                continue
            if pen.looks_like_reason:
                logger.warning("[events] PARSE_BUG penalty player looks like reason " + fmt_fields({
                    "team_id": team_id, "playerPart": pen.player_part, "raw_row": pen.details_text,
                }))
                continue
            kinds = classify_penalty(pen.minutes, pen.details_text)
            if not kinds:
                logger.warning(f"[events] UNKNOWN_PENALTY {fmt_fields({'minutes': pen.minutes, 'raw_row': pen.details_text})}")
                continue
            player_id = index.get(team_id, pen.player_key)
            if player_id is None:
                res.unmapped_penalty_players += 1
                logger.warning("[events] UNMAPPED_PENALTY_PLAYER " + fmt_fields({
                    "team_id": team_id, "playerPart": pen.player_part, "candidates": index.candidates(team_id),
                }))
                continue

            ts = parse_time_to_seconds(pen.time_text)
            for event_type, value in kinds:
                if event_type == MISCONDUCT_10:
                    res.misconducts += 1
                if event_type == RED_CARD:
                    res.red_cards += 1
                events.append({
                    "match_id": match["id"],
                    "ts_seconds": ts,
                    "period": pen.period,
                    "team_id": team_id,
                    "player_id": player_id,
                    "assist_id": None,
                    "event_type": event_type,
                    "value": value,
                    "raw": {
                        "time": pen.time_text,
                        "detailsText": pen.details_text,
                        "playerPart": pen.player_part,
                        "minutes": pen.minutes,
                        "reason": pen.reason,
                        "servedByNumber": pen.served_by_number,
                        "servedByName": pen.served_by_name,
                    },
                    "created_at": created_at,
                })
                res.penalties_inserted += 1
        return events

    def _mvp_events(
        self,
        match: Dict[str, Any],
        parsed: ProtocolParse,
        index: PlayerIndex,
        res: MatchEventResult,
        created_at: str,
    ) -> List[Dict[str, Any]]:
        events = []
        home, away = match.get("home_team"), match.get("away_team")
        for mvp in parsed.mvps:
            name_key = player_key(clean_participant_name(mvp.name))
            home_id = index.get(home, name_key)
            away_id = index.get(away, name_key)
            if home_id is not None:
                team_id, player_id = home, home_id
            elif away_id is not None:
                team_id, player_id = away, away_id
            else:
                hit = index.any_team(name_key)
                if hit is None:
                    logger.warning(f"[events] UNMAPPED_MVP_PLAYER {fmt_fields({'name': mvp.name, 'jersey': mvp.jersey_number})}")
                    continue
                player_id, team_id = hit
            ts = parse_time_to_seconds(mvp.time_text)
            events.append({
                "match_id": match["id"],
                "ts_seconds": ts,
                "period": infer_period_from_seconds(ts),
                "team_id": team_id,
                "player_id": player_id,
                "assist_id": None,
                "event_type": MVP,
                "value": 1,
                "raw": {"type": "mvp", "timeText": mvp.time_text, "name": mvp.name,
                        "jersey": mvp.jersey_number, "raw": mvp.raw},
                "created_at": created_at,
            })
            res.mvps_inserted += 1
        return events

    def _goalie_rows(
        self,
        match: Dict[str, Any],
        parsed: ProtocolParse,
        teams: List[Dict[str, Any]],
        index: PlayerIndex,
    ) -> List[Dict[str, Any]]:
        lookup = goalie_team_lookup(parsed.goalie_starts, teams, match)
        rows = []
        for line in parsed.goalie_lines:
            name_key = player_key(clean_participant_name(line.name))
            team_id = goalie_team_from_line(line, lookup, match)
            player_id = index.get(team_id, name_key) if team_id is not None else None
            if player_id is None:
                hit = index.any_team(name_key)
                if hit is not None:
                    player_id = hit[0]
                    team_id = team_id if team_id is not None else hit[1]
            if team_id is None:
                logger.warning(f"[events] UNMAPPED_GOALIE_TEAM {fmt_fields({'raw': line.raw})}")
                continue
            if player_id is None:
                logger.warning(f"[events] UNMAPPED_GOALIE_PLAYER {fmt_fields({'raw': line.raw, 'team_id': team_id})}")
                continue
            rows.append({
                "match_id": match["id"],
                "player_id": player_id,
                "team_id": team_id,
                "shots": line.shots,
                "saves": line.saves,
                "goals_against": max(0, line.goals_against or 0),
                "minutes_seconds": line.minutes_seconds,
            })
        return rows

    # --- public ---
    def ingest_match(self, match: Dict[str, Any]) -> MatchEventResult:
        res = MatchEventResult(match_id=match["id"])
        url = build_protocol_url(match.get("external_id"), match.get("season"))
        if url is None:
            res.skipped, res.skip_reason = True, "invalid_external_id"
            logger.warning(f"[events] Invalid external_id, skipping match {fmt_fields({'match_id': match['id'], 'external_id': match.get('external_id')})}")
            return res
        logger.info(f"[events] Protocol URL: {url}")
        html = self.scraper.fetch(url)
        if html is None:
            res.skipped, res.skip_reason = True, "protocol_not_found"
            return res
        if not html.strip():
            raise UpstreamFormatError(f"empty protocol page for match {match['id']}")

        parsed = parse_protocol(html)
        res.goals_parsed = len(parsed.goals)
        res.penalties_parsed = len(parsed.penalties)
        logger.info(
            f"[events] rows={parsed.rows_scanned} goals={len(parsed.goals)} penalties={len(parsed.penalties)} "
            f"mvps={len(parsed.mvps)} goalie_starts={len(parsed.goalie_starts)} goalie_lines={len(parsed.goalie_lines)}"
        )

        teams = self.db.fetch_teams()
        non_player_keys = build_non_player_keys(teams)
        team_ids = [match.get("home_team"), match.get("away_team")]

        index = PlayerIndex(self.db.fetch_players_for_teams(team_ids))
        missing = self._collect_unresolved(match, parsed, index, non_player_keys)
        logger.debug(f"[events] unresolved players: {sorted(missing.values())}")
        res.stubs_created = self._create_stubs(match, missing)
        if res.stubs_created:
            index = PlayerIndex(self.db.fetch_players_for_teams(team_ids))

        created_at = self._now().isoformat()
        events = self._mvp_events(match, parsed, index, res, created_at)
        events += self._goal_events(match, parsed, index, non_player_keys, res, created_at)
        events += self._penalty_events(match, parsed.penalties, index, res, created_at)
        deduped = dedupe_events(events)
        if len(deduped) != len(events):
            logger.info(f"[events] dedupe: {len(events)} -> {len(deduped)}")

        res.events_inserted = self.db.replace_match_events(match["id"], deduped)

        match_teams = [t for t in teams if t.get("id") in team_ids]
        goalie_rows = dedupe_goalie_stats(self._goalie_rows(match, parsed, match_teams, index))
        if goalie_rows:
            res.goalie_stats_upserted = self.db.upsert_goalie_stats(goalie_rows)

        logger.info(
            f"[events] match {match['id']}: events={res.events_inserted} stubs={res.stubs_created} "
            f"penalties={res.penalties_inserted} misconducts={res.misconducts} red={res.red_cards} "
            f"mvp={res.mvps_inserted} goalies={res.goalie_stats_upserted}"
        )
        return res

    def ingest_match_id(self, match_id: Any) -> MatchEventResult:
        return self.ingest_match(self.db.fetch_match(match_id))

    def ingest_matches(
        self,
        matches: List[Dict[str, Any]],
        season: Optional[str] = None,
        show_progress: bool = False,
    ) -> BatchResult:
        batch = BatchResult(season=season, considered=len(matches))
        iterator = tqdm(matches, desc="Matches", unit="match") if show_progress and len(matches) > 1 else matches
        for i, match in enumerate(iterator, 1):
            logger.info(f"[events] ({i}/{len(matches)}) match {match['id']} external_id={match.get('external_id')}")
            try:
                batch.add(self.ingest_match(match))
            except (FetchError, UpstreamFormatError) as e:
                batch.failed += 1
                batch.failures.append((match["id"], str(e)))
                logger.error(f"[events] ❌ match {match['id']} failed: {e}")
        logger.info(
            f"[events] Batch: considered={batch.considered} ok={batch.succeeded} failed={batch.failed} "
            f"skipped={batch.skipped} events={batch.events_inserted} stubs={batch.stubs_created} "
            f"goalie_rows={batch.goalie_rows}"
        )
        if batch.matches_without_goalies:
            logger.info(f"[events] Matches missing goalie stats: {len(batch.matches_without_goalies)}")
        return batch

    def ingest_all_finished(self, season: Optional[str] = None, show_progress: bool = False) -> BatchResult:
        season = season or self.db.fetch_current_season()
        matches = self.db.fetch_finished_matches(season=season, with_protocol=True)
        logger.info(f"[events] season {season}: {len(matches)} finished matches with protocol ids")
        return self.ingest_matches(matches, season=season, show_progress=show_progress)
