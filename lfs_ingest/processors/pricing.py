# lfs_ingest/processors/pricing.py
"""
Fantasy price model.

Skaters: an offset square root of the season fantasy total, pushed through a
position-specific curve (logistic saturation for attackers, power-curve
compression plus a premium for defenders), clamped to the position band and
rounded to half units. Goalies: percentile rank of their games-weighted total
within the goalie group, mapped linearly onto the band.

Every constant lives on PricingConfig so the model can be tuned without
touching code.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from lfs_ingest.utils.logger import get_logger, WarningTracker

logger = get_logger(__name__)

ATTACKER = "A"
DEFENDER = "D"
GOALIE = "V"

# stored position code -> pricing group
POSITION_GROUPS = {"U": ATTACKER, "A": DEFENDER, "V": GOALIE}


@dataclass(frozen=True)
class PriceBand:
    min: float
    max: float

    @property
    def span(self) -> float:
        return self.max - self.min

    def clamp(self, value: float) -> float:
        return min(self.max, max(self.min, value))


@dataclass(frozen=True)
class SkaterCurve:
    offset: float
    divisor: float
    # attackers: logistic steepness; defenders: power exponent + multiplier
    logistic_k: Optional[float] = None
    power: Optional[float] = None
    premium: float = 1.0


@dataclass(frozen=True)
class PricingConfig:
    bands: Dict[str, PriceBand] = field(default_factory=lambda: {
        ATTACKER: PriceBand(4.5, 13.0),
        DEFENDER: PriceBand(4.0, 14.0),
        GOALIE: PriceBand(5.0, 14.0),
    })
    attacker: SkaterCurve = SkaterCurve(offset=6.0, divisor=0.55, logistic_k=0.35)
    defender: SkaterCurve = SkaterCurve(offset=18.0, divisor=0.70, power=1.25, premium=1.15)
    goalie_games_shrink: float = 5.0
    rounding_step: float = 0.5


DEFAULT_PRICING = PricingConfig()


def round_to_step(value: float, step: float = 0.5) -> float:
    if step <= 0:
        return value
    return math.floor(value / step + 0.5) * step


def position_group(position: Optional[str], tracker: Optional[WarningTracker] = None,
                   player_id: Any = None) -> str:
    code = (position or "").strip().upper()
    group = POSITION_GROUPS.get(code)
    if group is None:
        if tracker is not None:
            tracker.warn_once(logger, "UNKNOWN_POSITION", code or "<empty>", player_id=player_id, position=position)
        return ATTACKER
    return group


def _skater_raw(total: float, curve: SkaterCurve) -> float:
    return math.sqrt(max(0.0, total) + curve.offset) / curve.divisor


def attacker_price(total: float, cfg: PricingConfig = DEFAULT_PRICING) -> float:
    band = cfg.bands[ATTACKER]
    curve = cfg.attacker
    p = _skater_raw(total, curve)
    k = curve.logistic_k if curve.logistic_k is not None else 0.35
    p = band.min + (1.0 - math.exp(-k * max(0.0, p - band.min))) * band.span
    p = curve.premium * p
    return band.clamp(round_to_step(band.clamp(p), cfg.rounding_step))


def defender_price(total: float, cfg: PricingConfig = DEFAULT_PRICING) -> float:
    band = cfg.bands[DEFENDER]
    curve = cfg.defender
    p = _skater_raw(total, curve)
    t = (p - band.min) / band.span if band.span else 0.0
    t = min(1.0, max(0.0, t))
    power = curve.power if curve.power is not None else 1.0
    p = (band.min + (t ** power) * band.span) * curve.premium
    return band.clamp(round_to_step(band.clamp(p), cfg.rounding_step))


def skater_price(group: str, total: float, cfg: PricingConfig = DEFAULT_PRICING) -> float:
    if group == DEFENDER:
        return defender_price(total, cfg)
    return attacker_price(total, cfg)


def goalie_prices(goalies: List[Tuple[Any, float, int]], cfg: PricingConfig = DEFAULT_PRICING) -> Dict[Any, float]:
    """(player_id, total, games) -> price by percentile of the games-weighted total."""
    band = cfg.bands[GOALIE]
    if not goalies:
        return {}
    weighted = []
    for player_id, total, games in goalies:
        games = max(0, int(games or 0))
        shrink = games / (games + cfg.goalie_games_shrink) if games else 0.0
        weighted.append((total * shrink, str(player_id), player_id))
    weighted.sort()
    n = len(weighted)
    out: Dict[Any, float] = {}
    for index, (_, _, player_id) in enumerate(weighted):
        pct = index / (n - 1) if n > 1 else 0.5
        price = band.min + pct * band.span
        out[player_id] = band.clamp(round_to_step(price, cfg.rounding_step))
    return out


@dataclass
class PlayerTotal:
    player_id: Any
    position: Optional[str]
    total: float
    games: int
    price_manual: Optional[float] = None


@dataclass
class PriceResult:
    player_id: Any
    group: str
    total: float
    price_computed: float
    price_final: float

    def update_payload(self) -> Dict[str, Any]:
        return {
            "price_computed": self.price_computed,
            "price_final": self.price_final,
            "price": int(math.floor(self.price_final + 0.5)),
        }


def _manual(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def compute_prices(
    players: Iterable[PlayerTotal],
    cfg: PricingConfig = DEFAULT_PRICING,
    tracker: Optional[WarningTracker] = None,
) -> List[PriceResult]:
    tracker = tracker or WarningTracker()
    groups: Dict[str, List[PlayerTotal]] = {ATTACKER: [], DEFENDER: [], GOALIE: []}
    for p in players:
        groups[position_group(p.position, tracker, p.player_id)].append(p)

    results: List[PriceResult] = []
    for group, members in groups.items():
        if not members:
            logger.info(f"[prices] group {group}: no players, skipping")
            continue
        if group == GOALIE:
            computed = goalie_prices([(p.player_id, p.total, p.games) for p in members], cfg)
        else:
            computed = {p.player_id: skater_price(group, p.total, cfg) for p in members}
        for p in members:
            price = computed[p.player_id]
            manual = _manual(p.price_manual)
            results.append(PriceResult(
                player_id=p.player_id,
                group=group,
                total=p.total,
                price_computed=price,
                price_final=manual if manual is not None else price,
            ))
        prices = [computed[p.player_id] for p in members]
        logger.info(
            f"[prices] group {group}: n={len(members)} min={min(prices):.1f} "
            f"max={max(prices):.1f} avg={sum(prices) / len(prices):.2f}"
        )
    return results
