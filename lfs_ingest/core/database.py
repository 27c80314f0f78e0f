# lfs_ingest/core/database.py
from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from supabase import create_client, Client

from .config import config
from .errors import DatabaseError
from lfs_ingest.utils.logger import get_logger

logger = get_logger(__name__)

Query = Any
Filter = Callable[[Query], Query]

# ------------------------------ cleaning helpers ------------------------------

_ALLOWED = {
    "teams": {"code", "name", "short_name"},
    "players": {
        "name", "team_id", "position", "games", "goals", "assists", "points",
        "points_total", "saves", "save_pct", "penalty_min",
        "price", "price_computed", "price_manual", "price_final",
    },
    "matches": {
        "external_id", "date", "season", "home_team", "away_team",
        "venue", "status", "home_score", "away_score",
    },
    "match_events": {
        "match_id", "ts_seconds", "period", "team_id", "player_id", "assist_id",
        "event_type", "value", "raw", "created_at",
    },
    "match_goalie_stats": {
        "match_id", "player_id", "team_id", "shots", "saves", "goals_against", "minutes_seconds",
    },
    "player_match_points": {
        "match_id", "player_id", "team_id", "position", "goals", "assists", "shots_on_goal",
        "pen_min", "saves", "goals_against", "hat_trick", "game_winner", "clean_sheet",
        "fantasy_points", "fantasy_points_base", "fantasy_points_bonus",
    },
    "players_stats_staging": {
        "name", "team", "position", "games", "goals", "assists", "points",
        "saves", "save_pct", "penalty_min",
    },
}

_INT_FIELDS: Dict[str, Set[str]] = {
    "players": {"games", "goals", "assists", "points", "saves", "penalty_min"},
    "matches": {"home_score", "away_score"},
    "match_events": {"ts_seconds", "period"},
    "match_goalie_stats": {"shots", "saves", "goals_against", "minutes_seconds"},
    "player_match_points": {"goals", "assists", "shots_on_goal", "pen_min", "saves", "goals_against"},
    "players_stats_staging": {"games", "goals", "assists", "points", "saves", "penalty_min"},
}
_FLOAT_FIELDS: Dict[str, Set[str]] = {
    "players": {"save_pct", "points_total", "price", "price_computed", "price_manual", "price_final"},
    "match_events": {"value"},
    "player_match_points": {"fantasy_points", "fantasy_points_base", "fantasy_points_bonus"},
    "players_stats_staging": {"save_pct"},
}

# columns that keep an explicit NULL instead of being dropped
_NULLABLE = {
    "players": {"team_id", "position"},
    "matches": {"home_score", "away_score", "venue"},
    "match_events": {"assist_id", "player_id", "value", "ts_seconds", "period"},
}


def _to_int(v: Any) -> Optional[int]:
    if v is None:
        return None
    if isinstance(v, bool):
        return int(v)
    if isinstance(v, int):
        return v
    try:
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return None
            s = s.replace("%", "").replace(",", ".")
            return int(float(s))
        return int(v)
    except (TypeError, ValueError):
        return None


def _to_float(v: Any) -> Optional[float]:
    if v is None:
        return None
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return float(v)
    try:
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return None
            s = s.replace("%", "").replace(",", ".")
            return float(s)
        return float(v)
    except (TypeError, ValueError):
        return None


def _clean_rows(table: str, rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    allowed = _ALLOWED[table]
    int_fields = _INT_FIELDS.get(table, set())
    float_fields = _FLOAT_FIELDS.get(table, set())
    nullable = _NULLABLE.get(table, set())
    out = []
    for r in rows:
        if not isinstance(r, dict):
            continue
        cleaned: Dict[str, Any] = {}
        for k, v in r.items():
            if k not in allowed:
                continue
            if isinstance(v, str) and not v.strip():
                v = None
            if k in int_fields:
                v = _to_int(v)
            elif k in float_fields:
                v = _to_float(v)
            if v is not None or k in nullable:
                cleaned[k] = v
        if cleaned:
            out.append(cleaned)
    return out


def _chunks(items: List[Any], size: int) -> Iterable[List[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


# ------------------------------ DB client ------------------------------

class DatabaseClient:
    """Thin wrapper around the Supabase table API for the ingestion schema."""

    def __init__(self, client: Optional[Client] = None):
        if client is None:
            logger.info("core.database | Initializing Supabase client…")
            client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE_KEY)
            logger.info("core.database | ✅ Supabase ready")
        self.client = client

    # --- health/perf ---
    def health_check(self) -> bool:
        try:
            t0 = time.time()
            self.client.table("teams").select("id").limit(1).execute()
            dt = time.time() - t0
            logger.info(f"core.database | ✅ DB connection OK ({dt:.2f}s)")
            return True
        except Exception as e:
            logger.error(f"core.database | ❌ DB health check failed: {e}")
            return False

    # --- generic helpers ---
    def _run(self, table: str, operation: str, query: Query) -> List[Dict[str, Any]]:
        try:
            resp = query.execute()
        except Exception as e:
            logger.error(f"core.database | {operation} on {table} failed: {e}")
            raise DatabaseError(table, operation, e) from e
        return list(resp.data or [])

    def _select(self, table: str, columns: str = "*", apply: Optional[Filter] = None) -> List[Dict[str, Any]]:
        query = self.client.table(table).select(columns)
        if apply is not None:
            query = apply(query)
        return self._run(table, "select", query)

    def _select_paged(
        self,
        table: str,
        columns: str = "*",
        apply: Optional[Filter] = None,
        order: str = "id",
        page_size: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        size = page_size or config.PAGE_SIZE
        out: List[Dict[str, Any]] = []
        start = 0
        while True:
            query = self.client.table(table).select(columns)
            if apply is not None:
                query = apply(query)
            for col in order.split(","):
                query = query.order(col.strip())
            query = query.range(start, start + size - 1)
            page = self._run(table, "select", query)
            out.extend(page)
            if len(page) < size:
                break
            start += size
        return out

    def _select_in(
        self,
        table: str,
        column: str,
        values: Iterable[Any],
        columns: str = "*",
        apply: Optional[Filter] = None,
        paged_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        vals = sorted({v for v in values if v is not None}, key=str)
        out: List[Dict[str, Any]] = []
        for chunk in _chunks(vals, config.LOOKUP_CHUNK):
            def _filter(q, chunk=chunk):
                q = q.in_(column, chunk)
                return apply(q) if apply is not None else q
            if paged_by:
                out.extend(self._select_paged(table, columns, _filter, order=paged_by))
            else:
                out.extend(self._select(table, columns, _filter))
        return out

    def _upsert(
        self,
        table: str,
        payload: Any,
        on_conflict: str,
        ignore_duplicates: Optional[bool] = None,
    ) -> Tuple[int, int]:
        if not payload:
            return (0, 0)
        if isinstance(payload, dict):
            payload = [payload]
        ok = 0
        for chunk in _chunks(list(payload), config.BATCH_SIZE):
            if ignore_duplicates is None:
                query = self.client.table(table).upsert(chunk, on_conflict=on_conflict)
            else:
                query = self.client.table(table).upsert(
                    chunk,
                    on_conflict=on_conflict,
                    ignore_duplicates=ignore_duplicates,
                )
            data = self._run(table, "upsert", query)
            ok += len(data) if data else len(chunk)
        return (ok, max(0, len(payload) - ok))

    def _insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        inserted: List[Dict[str, Any]] = []
        for chunk in _chunks(list(rows), config.BATCH_SIZE):
            inserted.extend(self._run(table, "insert", self.client.table(table).insert(chunk)))
        return inserted

    def _delete(self, table: str, apply: Filter) -> List[Dict[str, Any]]:
        return self._run(table, "delete", apply(self.client.table(table).delete()))

    def _update(self, table: str, values: Dict[str, Any], apply: Filter) -> List[Dict[str, Any]]:
        return self._run(table, "update", apply(self.client.table(table).update(values)))

    # -------------------- teams --------------------

    def fetch_teams(self) -> List[Dict[str, Any]]:
        teams = self._select_paged("teams", "*")
        logger.info(f"core.database | [teams] loaded {len(teams)}")
        return teams

    def insert_teams(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        payload = _clean_rows("teams", rows)
        if not payload:
            return []
        inserted = self._insert("teams", payload)
        logger.info(f"core.database | [teams] inserted {len(inserted)}")
        return inserted

    # -------------------- matches --------------------

    def upsert_matches(self, rows: List[Dict[str, Any]]) -> Tuple[int, int]:
        payload = _clean_rows("matches", rows)
        ok, fail = self._upsert("matches", payload, on_conflict="external_id", ignore_duplicates=False)
        logger.info(f"core.database | [matches] upsert ok={ok} fail={fail}")
        return ok, fail

    def fetch_match(self, match_id: str) -> Dict[str, Any]:
        rows = self._select("matches", "*", lambda q: q.eq("id", match_id).limit(1))
        if not rows:
            raise LookupError(f"Match not found for id {match_id}")
        return rows[0]

    def fetch_current_season(self) -> str:
        rows = self._select(
            "matches",
            "season",
            lambda q: q.not_.is_("season", "null").order("season", desc=True).limit(1),
        )
        if not rows or not rows[0].get("season"):
            raise LookupError("Unable to determine current season")
        return str(rows[0]["season"])

    def fetch_finished_matches(
        self,
        season: Optional[str] = None,
        since: Optional[str] = None,
        with_protocol: bool = True,
    ) -> List[Dict[str, Any]]:
        def _filter(q):
            q = q.eq("status", "finished")
            if season is not None:
                q = q.eq("season", season)
            if since is not None:
                q = q.gte("date", since)
            if with_protocol:
                q = q.not_.is_("external_id", "null").neq("external_id", "").not_.like("external_id", "vv:%")
            return q
        return self._select_paged("matches", "*", _filter, order="date")

    def fetch_matches_in_range(self, start: str, end: str, status: str = "finished") -> List[Dict[str, Any]]:
        return self._select_paged(
            "matches",
            "id,date,status,season,home_team,away_team,home_score,away_score",
            lambda q: q.eq("status", status).gte("date", start).lt("date", end),
            order="date",
        )

    # -------------------- players --------------------

    def fetch_players(self, columns: str = "*") -> List[Dict[str, Any]]:
        return self._select_paged("players", columns)

    def fetch_players_for_teams(self, team_ids: Iterable[str]) -> List[Dict[str, Any]]:
        return self._select_in("players", "team_id", team_ids, "id,name,team_id,position")

    def fetch_players_by_ids(self, player_ids: Iterable[str]) -> List[Dict[str, Any]]:
        return self._select_in("players", "id", player_ids, "id,name,team_id,position")

    def insert_players(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        payload = _clean_rows("players", rows)
        if not payload:
            return []
        inserted = self._insert("players", payload)
        logger.info(f"core.database | [players] inserted {len(inserted)}")
        return inserted

    def replace_players(self, rows: List[Dict[str, Any]]) -> int:
        """Delete every player then insert `rows`.

        Not atomic: a failure between the two statements leaves `players` empty
        until the sync is re-run.
        """
        self._delete("players", lambda q: q.not_.is_("id", "null"))
        inserted = self.insert_players(rows)
        return len(inserted)

    def update_player(self, player_id: str, values: Dict[str, Any]) -> None:
        self._update("players", values, lambda q: q.eq("id", player_id))

    def fetch_players_created_since(self, since_iso: str) -> List[Dict[str, Any]]:
        return self._select_paged(
            "players",
            "id,name,team_id,games,created_at",
            lambda q: q.gte("created_at", since_iso),
        )

    def delete_players(self, player_ids: List[str]) -> int:
        deleted = 0
        for chunk in _chunks(sorted(set(player_ids)), config.LOOKUP_CHUNK):
            self._delete("players", lambda q, chunk=chunk: q.in_("id", chunk))
            deleted += len(chunk)
        return deleted

    # -------------------- match events --------------------

    def fetch_match_events(self, match_id: str) -> List[Dict[str, Any]]:
        return self._select_paged("match_events", "*", lambda q: q.eq("match_id", match_id))

    def fetch_events_for_matches(self, match_ids: Iterable[str]) -> List[Dict[str, Any]]:
        return self._select_in("match_events", "match_id", match_ids, "id,match_id,event_type", paged_by="id")

    def replace_match_events(self, match_id: str, rows: List[Dict[str, Any]]) -> int:
        """Delete all events of a match, then insert the new set.

        Not atomic: a crash in between leaves the match without events; re-running
        the ingestion restores them.
        """
        self._delete("match_events", lambda q: q.eq("match_id", match_id))
        payload = _clean_rows("match_events", rows)
        if not payload:
            return 0
        inserted = self._insert("match_events", payload)
        return len(inserted) or len(payload)

    def null_assist_refs(self, player_ids: List[str]) -> None:
        for chunk in _chunks(sorted(set(player_ids)), config.LOOKUP_CHUNK):
            self._update("match_events", {"assist_id": None}, lambda q, chunk=chunk: q.in_("assist_id", chunk))

    def delete_events_for_players(self, player_ids: List[str]) -> None:
        for chunk in _chunks(sorted(set(player_ids)), config.LOOKUP_CHUNK):
            self._delete("match_events", lambda q, chunk=chunk: q.in_("player_id", chunk))

    # -------------------- goalie stats --------------------

    def upsert_goalie_stats(self, rows: List[Dict[str, Any]]) -> int:
        payload = _clean_rows("match_goalie_stats", rows)
        ok, _ = self._upsert("match_goalie_stats", payload, on_conflict="match_id,player_id")
        return ok

    def fetch_goalie_stats(self, match_id: str) -> List[Dict[str, Any]]:
        return self._select("match_goalie_stats", "*", lambda q: q.eq("match_id", match_id))

    def fetch_goalie_stats_for_matches(self, match_ids: Iterable[str]) -> List[Dict[str, Any]]:
        return self._select_in("match_goalie_stats", "match_id", match_ids, "match_id,player_id")

    # -------------------- player match points --------------------

    def replace_match_points(self, match_id: str, rows: List[Dict[str, Any]]) -> int:
        self._delete("player_match_points", lambda q: q.eq("match_id", match_id))
        payload = _clean_rows("player_match_points", rows)
        if not payload:
            return 0
        inserted = self._insert("player_match_points", payload)
        return len(inserted) or len(payload)

    def fetch_points_for_matches(self, match_ids: Iterable[str]) -> List[Dict[str, Any]]:
        return self._select_in(
            "player_match_points",
            "match_id",
            match_ids,
            "id,match_id,player_id,fantasy_points",
            paged_by="id",
        )

    # -------------------- staging --------------------

    def clear_staging(self) -> None:
        self._delete("players_stats_staging", lambda q: q.not_.is_("name", "null"))
        logger.info("core.database | [staging] cleared")

    def insert_staging(self, rows: List[Dict[str, Any]]) -> int:
        payload = _clean_rows("players_stats_staging", rows)
        if not payload:
            return 0
        inserted = self._insert("players_stats_staging", payload)
        logger.info(f"core.database | [staging] inserted {len(inserted) or len(payload)}")
        return len(inserted) or len(payload)

    def fetch_staging(self) -> List[Dict[str, Any]]:
        return self._select_paged("players_stats_staging", "*", order="name,team,position")

    # -------------------- views --------------------

    def fetch_season_points(self, season: str) -> List[Dict[str, Any]]:
        return self._select_paged(
            "player_season_points_view",
            "*",
            lambda q: q.eq("season", season),
            order="player_id",
        )

    # -------------------- rpc --------------------

    def recompute_user_season_points(self, season: str) -> Any:
        """Rebuild user_season_points for a season from fantasy rosters and match points."""
        name = "recompute_user_season_points"
        logger.info(f"core.database | [rpc] {name} target_season={season}")
        try:
            resp = self.client.rpc(name, {"target_season": season}).execute()
        except Exception as e:
            logger.error(f"core.database | rpc {name} failed: {e}")
            raise DatabaseError(name, "rpc", e) from e
        return resp.data


_db: Optional[DatabaseClient] = None


def get_db() -> DatabaseClient:
    """Process-wide client, created on first use."""
    global _db
    if _db is None:
        _db = DatabaseClient()
    return _db
