"""
Recommendation Engine - Risk & Bracket Calculator.

============================================================
PURPOSE
============================================================
Turns a draft into a priced recommendation: stop-loss and
take-profit levels plus the final position size.

============================================================
RULES
============================================================
Pip size:
    0.01 for JPY-quoted instruments, 0.0001 otherwise.

Stop distance (pips):
    explicit request value, else low 30 / medium 20 / high 10.

Bracket (reward:risk 2):
    BUY  -> SL = p - d*pip, TP = p + 2*d*pip
    SELL -> SL = p + d*pip, TP = p - 2*d*pip
    No price -> no bracket.

Units:
    1. explicit request units, verbatim
    2. equity * risk_fraction / (stop_pips * pip_value_per_unit),
       rounded half-up, floor 1, when fraction, equity and a stop
       distance are all available
    3. draft units unchanged

All arithmetic is Decimal; floats only at the boundary.

============================================================
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple

from recommendation_engine.config import RiskConfig
from recommendation_engine.types import (
    Direction,
    DraftRecommendation,
    KnownPrice,
    PriceQuote,
    PricedRecommendation,
    RecommendationRequest,
    RiskLevel,
    SizingMethod,
    UnknownPrice,
)


logger = logging.getLogger(__name__)


JPY_PIP = Decimal("0.01")
STANDARD_PIP = Decimal("0.0001")


def quote_currency(instrument: str) -> str:
    """
    Quote currency of an instrument.

    Accepts EUR_USD, EUR/USD, EUR-USD and EURUSD forms.
    """
    symbol = instrument.strip().upper()
    for separator in ("_", "/", "-"):
        if separator in symbol:
            return symbol.rsplit(separator, 1)[-1]
    return symbol[-3:]


def pip_size(instrument: str) -> Decimal:
    """Price increment of one pip."""
    return JPY_PIP if quote_currency(instrument) == "JPY" else STANDARD_PIP


def _to_decimal(value: float) -> Decimal:
    return Decimal(str(value))


class RiskCalculator:
    """
    Stateless bracket and sizing calculator.

    Usage:
        calc = RiskCalculator(RiskConfig())
        priced = calc.price(draft, KnownPrice(1.1), 10000.0, request)
    """

    def __init__(self, config: Optional[RiskConfig] = None) -> None:
        self._config = config or RiskConfig()

    # ---------------------------------------------------------
    # DISTANCE
    # ---------------------------------------------------------

    def stop_distance(
        self,
        risk_level: RiskLevel,
        explicit_pips: Optional[float] = None,
    ) -> Decimal:
        """Stop distance in pips."""
        if explicit_pips is not None and explicit_pips > 0:
            return _to_decimal(explicit_pips)
        table = self._config.stop_distance_pips
        return _to_decimal(table.get(risk_level.value, table["medium"]))

    # ---------------------------------------------------------
    # BRACKET
    # ---------------------------------------------------------

    def bracket(
        self,
        instrument: str,
        direction: Direction,
        price: float,
        distance_pips: Decimal,
    ) -> Tuple[float, float]:
        """
        Stop-loss and take-profit for an entry price.

        Returns:
            (stop_loss, take_profit) rounded to a tenth of a pip
        """
        pip = pip_size(instrument)
        quantum = pip / 10
        entry = _to_decimal(price).quantize(quantum, rounding=ROUND_HALF_UP)
        stop_offset = (distance_pips * pip).quantize(quantum, rounding=ROUND_HALF_UP)
        # Target is an exact multiple of the rounded stop
        target_offset = stop_offset * _to_decimal(self._config.reward_multiplier)

        if direction is Direction.BUY:
            stop_loss = entry - stop_offset
            take_profit = entry + target_offset
        else:
            stop_loss = entry + stop_offset
            take_profit = entry - target_offset

        return float(stop_loss), float(take_profit)

    # ---------------------------------------------------------
    # SIZING
    # ---------------------------------------------------------

    def risk_units(
        self,
        account_equity: float,
        risk_fraction: float,
        stop_pips: Decimal,
    ) -> float:
        """
        Units that lose risk_fraction of equity at the stop.

        Never below 1.
        """
        risk_amount = _to_decimal(account_equity) * _to_decimal(risk_fraction)
        per_unit_loss = stop_pips * _to_decimal(self._config.pip_value_per_unit)
        units = (risk_amount / per_unit_loss).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return float(max(units, Decimal("1")))

    # ---------------------------------------------------------
    # PRICE
    # ---------------------------------------------------------

    def price(
        self,
        draft: DraftRecommendation,
        current_price: PriceQuote,
        account_equity: Optional[float],
        request: RecommendationRequest,
    ) -> PricedRecommendation:
        """
        Compute bracket and final units for a draft.

        Args:
            draft: Drafter output
            current_price: KnownPrice or UnknownPrice
            account_equity: Account NAV, None when unknown
            request: Original request (risk level, overrides)

        Returns:
            PricedRecommendation
        """
        distance = self.stop_distance(request.risk_level, request.stop_loss_pips)

        stop_loss: Optional[float] = None
        take_profit: Optional[float] = None
        if isinstance(current_price, KnownPrice) and current_price.value > 0:
            stop_loss, take_profit = self.bracket(
                draft.instrument, draft.direction, current_price.value, distance
            )
        else:
            current_price = UnknownPrice()

        # A stop distance exists for sizing only when the caller gave one
        # or a bracket was actually placed
        explicit_stop = request.stop_loss_pips is not None and request.stop_loss_pips > 0
        sizing_pips = distance if (explicit_stop or stop_loss is not None) else None

        if request.units is not None and request.units > 0:
            units = float(request.units)
            method = SizingMethod.EXPLICIT
        elif (
            request.risk_fraction is not None
            and request.risk_fraction > 0
            and sizing_pips is not None
            and account_equity is not None
            and account_equity > 0
        ):
            units = self.risk_units(account_equity, request.risk_fraction, sizing_pips)
            method = SizingMethod.RISK_BASED
        else:
            units = draft.units
            method = SizingMethod.DRAFT

        logger.debug(
            f"Priced {draft.instrument} {draft.direction.value}: "
            f"sl={stop_loss} tp={take_profit} units={units} sizing={method.value}"
        )

        return PricedRecommendation(
            draft=draft,
            units=units,
            sizing_method=method,
            price=current_price,
            stop_loss=stop_loss,
            take_profit=take_profit,
            distance_pips=float(distance) if stop_loss is not None else None,
            recommendation_id=request.recommendation_id,
        )
