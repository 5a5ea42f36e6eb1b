"""Signal generator — turns multi-timeframe candles into trading calls.

Pipeline per token:
    1. Safety gates (stablecoin, missing price, volume divergence).
    2. Technical analysis on the 4H and 1D series (cached when a cache is
       supplied).
    3. Action ladder: extreme RSI, RSI plus confirmation, trend following,
       MACD crossover, mean reversion, momentum.  Anything else is HOLD.
    4. Confidence breakdown; below the side's minimum the call is HOLD.
    5. Entry, stop and tiered targets.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

from tradecaller.backtest.models import StopLossRule
from tradecaller.config import DEFAULT_CONFIG, Config
from tradecaller.risk.sl_tp import (
    STOP_FLOOR_PCT,
    calculate_stop_loss,
    calculate_targets,
    tighten_to_fibonacci,
)
from tradecaller.signals.confidence import (
    HistoricalWinRateProvider,
    calculate_confidence_breakdown,
)
from tradecaller.signals.models import (
    RiskLevel,
    SignalAction,
    SignalDecision,
    SignalReasoning,
    Timeframe,
    TradingSignal,
)
from tradecaller.technical.analysis import (
    get_technical_sentiment,
    run_technical_analysis,
)
from tradecaller.technical.cache import AnalysisCache
from tradecaller.technical.fibonacci import (
    calculate_fibonacci_levels,
    describe_fibonacci,
)
from tradecaller.technical.models import (
    AnalysisReport,
    Candle,
    FibonacciLevels,
    TechnicalAnalysis,
    Token,
    VolumeAnalysis,
)
from tradecaller.technical.volume import analyze_volume, calculate_volume_score

logger = logging.getLogger("tradecaller.signals")


STABLECOINS = frozenset({
    "USDT", "USDC", "DAI", "BUSD", "TUSD", "FRAX", "USDD",
    "USDP", "GUSD", "PYUSD", "FDUSD", "UST", "USDN",
})


def is_stablecoin(symbol: str) -> bool:
    return symbol.upper() in STABLECOINS


@runtime_checkable
class FundamentalScoreProvider(Protocol):
    """Source of a fundamental score in [-100, 100] for a token."""

    def score(self, token: Token) -> float:
        ...


@dataclass(frozen=True)
class SignalInput:
    """One token plus its candles keyed by timeframe (``"1H"``, ``"4H"``, ``"1D"``)."""

    token: Token
    candles: dict[str, list[Candle]]


# ── Action ladder ────────────────────────────────────────────────────────


def determine_action(
    a4h: TechnicalAnalysis, a1d: TechnicalAnalysis, sentiment: float
) -> SignalAction:
    """Walk the rule ladder top to bottom; the first matching rung wins."""
    rsi = a4h.rsi.value
    macd = a4h.macd
    trend = a4h.trend

    # Extreme RSI
    if rsi <= 20:
        return "LONG"
    if rsi >= 80:
        return "SHORT"

    # RSI with any confirmation
    if a4h.rsi.signal == "OVERSOLD" and (
        sentiment > 0
        or macd.histogram > 0
        or macd.crossover == "BULLISH_CROSS"
        or a1d.rsi.value < 40
    ):
        return "LONG"
    if a4h.rsi.signal == "OVERBOUGHT" and (
        sentiment < 0
        or macd.histogram < 0
        or macd.crossover == "BEARISH_CROSS"
        or a1d.rsi.value > 60
    ):
        return "SHORT"

    # Trend following
    if (
        trend.direction == "UP"
        and trend.strength > 35
        and macd.trend == "BULLISH"
        and sentiment > 10
    ):
        return "LONG"
    if (
        trend.direction == "DOWN"
        and trend.strength > 35
        and macd.trend == "BEARISH"
        and sentiment < -10
    ):
        return "SHORT"

    # MACD crossover
    if macd.crossover == "BULLISH_CROSS" and rsi < 60 and trend.direction != "DOWN":
        return "LONG"
    if macd.crossover == "BEARISH_CROSS" and rsi > 40 and trend.direction != "UP":
        return "SHORT"

    # Mean reversion
    if rsi < 35 and a1d.rsi.value < 45 and (
        macd.crossover == "BULLISH_CROSS" or macd.histogram > 0
    ):
        return "LONG"
    if rsi > 65 and a1d.rsi.value > 55 and (
        macd.crossover == "BEARISH_CROSS" or macd.histogram < 0
    ):
        return "SHORT"

    # Momentum
    if sentiment > 30 and trend.direction == "UP" and 50 < rsi < 70:
        return "LONG"
    if sentiment < -30 and trend.direction == "DOWN" and 30 < rsi < 50:
        return "SHORT"

    return "HOLD"


def determine_risk_level(
    confidence: int, analysis: TechnicalAnalysis, volume: VolumeAnalysis
) -> RiskLevel:
    if volume.confirmation == "DIVERGENCE":
        return "HIGH"
    if (
        confidence > 75
        and analysis.trend.strength > 60
        and volume.confirmation == "STRONG"
    ):
        return "LOW"
    if confidence < 50 or analysis.trend.direction == "SIDEWAYS":
        return "HIGH"
    return "MEDIUM"


def determine_timeframe(a1d: TechnicalAnalysis) -> Timeframe:
    return "1D" if a1d.trend.strength > 70 else "4H"


# ── Generator ────────────────────────────────────────────────────────────


class SignalGenerator:
    """Evaluates tokens and issues LONG/SHORT signals.

    Args:
        config: Supplies the per-side minimum confidence.
        stop_rule: Stop-loss rule applied to new signals.
        win_rates: Optional historical win-rate provider.
        fundamentals: Optional fundamental score provider.
        cache: Analysis cache shared across calls.  Defaults to a private
            cache using ``config.analysis_cache_ttl_seconds``.
    """

    def __init__(
        self,
        config: Config = DEFAULT_CONFIG,
        stop_rule: StopLossRule = StopLossRule(type="SUPPORT_LEVEL", value=2),
        win_rates: Optional[HistoricalWinRateProvider] = None,
        fundamentals: Optional[FundamentalScoreProvider] = None,
        cache: Optional[AnalysisCache] = None,
    ) -> None:
        self._config = config
        self._stop_rule = stop_rule
        self._win_rates = win_rates
        self._fundamentals = fundamentals
        if cache is None:
            cache = AnalysisCache(config.analysis_cache_ttl_seconds)
        self._cache = cache

    # ── Public API ───────────────────────────────────────────────────────

    def evaluate(
        self, token: Token, candles_by_timeframe: dict[str, list[Candle]]
    ) -> SignalDecision:
        """Decide what to do with *token*.

        Always returns a ``SignalDecision``; ``decision.signal`` is set only
        for LONG and SHORT.
        """
        if is_stablecoin(token.symbol):
            logger.warning("Rejected stablecoin %s", token.symbol)
            return SignalDecision("AVOID", f"{token.symbol} is a stablecoin")

        candles_1h = candles_by_timeframe.get("1H") or []
        candles_4h = candles_by_timeframe.get("4H") or []
        candles_1d = candles_by_timeframe.get("1D") or []

        price = self._current_price(candles_1h, candles_4h)
        if price <= 0:
            return SignalDecision("AVOID", "No current price available")

        volume = analyze_volume(candles_4h, 20)
        if volume.confirmation == "DIVERGENCE":
            return SignalDecision("AVOID", f"Volume divergence: {volume.description}")

        report_4h = self._analyze(token.symbol, "4H", candles_4h)
        report_1d = self._analyze(token.symbol, "1D", candles_1d)
        a4h, a1d = report_4h.analysis, report_1d.analysis

        sentiment = (get_technical_sentiment(a4h) + get_technical_sentiment(a1d)) / 2
        action = determine_action(a4h, a1d, sentiment)
        if action == "HOLD":
            return SignalDecision("HOLD", "No rule in the action ladder matched")

        external = self._fundamentals.score(token) if self._fundamentals is not None else None
        fundamental = calculate_volume_score(volume, action)
        if external is not None:
            fundamental += external

        historical = None
        if self._win_rates is not None:
            historical = self._win_rates.lookup(
                action, a4h.rsi.value, a4h.trend.direction, "4H",
            )

        breakdown = calculate_confidence_breakdown(
            a4h, a1d, sentiment,
            fundamental_score=fundamental,
            historical=historical,
        )
        confidence = breakdown.total_confidence
        minimum = (
            self._config.min_long_confidence
            if action == "LONG"
            else self._config.min_short_confidence
        )
        if confidence < minimum:
            return SignalDecision(
                "HOLD",
                f"{action} confidence {confidence} below minimum {minimum}",
                breakdown=breakdown,
            )

        fib = calculate_fibonacci_levels(candles_1d, 50)
        stop_loss = self._stop_loss(price, action, a4h, candles_4h, fib)
        targets = self._targets(price, action, stop_loss, a4h)

        indicators: dict[str, float | str] = {
            "rsi_4h": a4h.rsi.value,
            "rsi_1d": a1d.rsi.value,
            "trend_strength": a4h.trend.strength,
            "macd_histogram": a4h.macd.histogram,
            "volume_ratio": volume.volume_ratio,
            "volume_confirmation": volume.confirmation,
        }
        if fib is not None:
            indicators["fib_nearest_level"] = fib.nearest_level_name
            indicators["fib_distance"] = fib.distance_percent

        signal = TradingSignal(
            id="sig_" + secrets.token_hex(6),
            timestamp=datetime.now(timezone.utc).isoformat(),
            token=token,
            action=action,
            entry=round(price, 4),
            targets=tuple(round(t, 4) for t in targets),
            stop_loss=round(stop_loss, 4),
            confidence=confidence,
            timeframe=determine_timeframe(a1d),
            reasoning=self._reasoning(report_4h, report_1d, volume, fib, external, breakdown.reasoning),
            risk_level=determine_risk_level(confidence, a4h, volume),
            technical_analysis=a4h,
            indicators=indicators,
            confidence_factors=breakdown.factors,
        )
        logger.info(
            "%s %s @ %.4f (confidence %d)",
            action, token.symbol, signal.entry, confidence,
        )
        return SignalDecision(
            action,
            breakdown.reasoning,
            breakdown=breakdown,
            signal=signal,
        )

    def generate_signal(
        self, token: Token, candles_by_timeframe: dict[str, list[Candle]]
    ) -> Optional[TradingSignal]:
        """Return a signal for *token*, or ``None`` for HOLD/AVOID."""
        return self.evaluate(token, candles_by_timeframe).signal

    def generate_signals(self, inputs: list[SignalInput]) -> list[TradingSignal]:
        """Evaluate many tokens; failures are logged and skipped.

        Returns:
            Signals sorted by confidence, highest first.
        """
        signals: list[TradingSignal] = []
        for item in inputs:
            try:
                signal = self.generate_signal(item.token, item.candles)
            except Exception as exc:
                logger.error(
                    "Error generating signal for %s: %s", item.token.symbol, exc,
                )
                continue
            if signal is not None:
                signals.append(signal)

        signals.sort(key=lambda s: s.confidence, reverse=True)
        return signals

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _current_price(candles_1h: list[Candle], candles_4h: list[Candle]) -> float:
        for series in (candles_1h, candles_4h):
            if series and series[-1].close > 0:
                return series[-1].close
        return 0.0

    def _analyze(
        self, symbol: str, timeframe: str, candles: list[Candle]
    ) -> AnalysisReport:
        if not candles:
            return run_technical_analysis(candles)

        report = self._cache.get(symbol, timeframe, candles)
        if report is None:
            report = run_technical_analysis(candles)
            self._cache.put(symbol, timeframe, candles, report)
        return report

    def _stop_loss(
        self,
        price: float,
        side: str,
        analysis: TechnicalAnalysis,
        candles_4h: list[Candle],
        fib: Optional[FibonacciLevels],
    ) -> float:
        nearest_support = analysis.support[-1] if analysis.support else None
        nearest_resistance = analysis.resistance[0] if analysis.resistance else None
        try:
            stop = calculate_stop_loss(
                price,
                side,
                self._stop_rule,
                candles=candles_4h,
                nearest_support=nearest_support,
                nearest_resistance=nearest_resistance,
            )
        except ValueError as exc:
            logger.debug("Falling back to fixed stop: %s", exc)
            stop = calculate_stop_loss(
                price, side, StopLossRule(type="FIXED_PERCENT", value=STOP_FLOOR_PCT),
            )
        return tighten_to_fibonacci(stop, price, side, fib)

    @staticmethod
    def _targets(
        price: float, side: str, stop_loss: float, analysis: TechnicalAnalysis
    ) -> list[float]:
        """Targets at 1.5R/2.5R/4R; the first is pulled in to a closer level."""
        targets = list(calculate_targets(price, side, stop_loss))
        if side == "LONG" and analysis.resistance:
            level = analysis.resistance[0]
            if price < level < targets[0]:
                targets[0] = level
        elif side == "SHORT" and analysis.support:
            level = analysis.support[-1]
            if targets[0] < level < price:
                targets[0] = level
        return targets

    def _reasoning(
        self,
        report_4h: AnalysisReport,
        report_1d: AnalysisReport,
        volume: VolumeAnalysis,
        fib: Optional[FibonacciLevels],
        external_score: Optional[float],
        confidence_reasoning: str,
    ) -> SignalReasoning:
        parts = [report_4h.summary, volume.description]
        if fib is not None:
            parts.append(describe_fibonacci(fib))
        parts.append(f"Daily: trend {report_1d.analysis.trend.direction.lower()}")

        if external_score is not None:
            fundamental = f"Fundamental score {external_score:.0f}"
        else:
            fundamental = "No significant fundamental factors"

        return SignalReasoning(
            technical=". ".join(parts),
            fundamental=fundamental,
            sentiment=confidence_reasoning,
        )
