"""
Text and JSON rendering of scanner output.

Renders one analysis per cycle, diagnoses for failures, the rolling
health report and advisory parameter suggestions. Rendering is pure;
``emit`` writes to the configured stream.
"""

import sys
from datetime import timedelta
from typing import Any, TextIO

import orjson

from dexarb.core.types import ArbitrageAnalysis, ErrorDiagnosis, TradeRecommendation
from dexarb.resilience.advisor import ParameterAdvice
from dexarb.resilience.diagnostics import DiagnosticsReport
from dexarb.telemetry.metrics import MetricsCollector
from dexarb.utils.time import format_duration_us, format_timestamp_ms


def to_json(data: dict[str, Any], pretty: bool = False) -> str:
    """Serialize a report dict with orjson."""
    option = orjson.OPT_INDENT_2 if pretty else 0
    return orjson.dumps(data, option=option | orjson.OPT_NON_STR_KEYS).decode()


class AnalysisReporter:
    """
    Human-readable reports for the console.

    Displays:
    - Per-source quotes and the best buy/sell direction
    - Profit breakdown and recommendation
    - Failure diagnoses and pipeline health
    """

    BOX_TL = "\u2554"  # ╔
    BOX_TR = "\u2557"  # ╗
    BOX_BL = "\u255a"  # ╚
    BOX_BR = "\u255d"  # ╝
    BOX_H = "\u2550"  # ═
    BOX_V = "\u2551"  # ║
    BOX_LT = "\u2560"  # ╠
    BOX_RT = "\u2563"  # ╣

    def __init__(
        self,
        metrics: MetricsCollector | None = None,
        width: int = 64,
        output: TextIO | None = None,
        quote_symbol: str = "",
    ) -> None:
        """
        Initialize reporter.

        Args:
            metrics: Optional metrics for status lines and summaries.
            width: Box width in characters.
            output: Output stream (default: stdout).
            quote_symbol: Quote asset symbol shown next to amounts.
        """
        self._metrics = metrics
        self._width = width
        self._output = output or sys.stdout
        self._quote_symbol = quote_symbol

    def _pad(self, text: str, width: int) -> str:
        return text.ljust(width)[:width]

    def _line(self, content: str) -> str:
        return f"{self.BOX_V}{self._pad(content, self._width - 2)}{self.BOX_V}"

    def _divider(self) -> str:
        return f"{self.BOX_LT}{self.BOX_H * (self._width - 2)}{self.BOX_RT}"

    def _top(self) -> str:
        return f"{self.BOX_TL}{self.BOX_H * (self._width - 2)}{self.BOX_TR}"

    def _bottom(self) -> str:
        return f"{self.BOX_BL}{self.BOX_H * (self._width - 2)}{self.BOX_BR}"

    def _amount(self, value: float) -> str:
        suffix = f" {self._quote_symbol}" if self._quote_symbol else ""
        return f"{value:,.4f}{suffix}"

    # =========================================================================
    # Analysis
    # =========================================================================

    def render_analysis(self, analysis: ArbitrageAnalysis, pair: str = "") -> str:
        """
        Render a cycle analysis as a boxed report.

        Returns:
            Formatted report string.
        """
        lines = [self._top()]
        title = f"  ARBITRAGE ANALYSIS {pair}".rstrip()
        lines.append(self._line(title))
        lines.append(self._line(f"  {format_timestamp_ms(analysis.generated_at_ms)}"))
        lines.append(self._divider())

        lines.append(self._line(f"  Valid sources: {analysis.valid_source_count}"))
        for quote in analysis.all_quotes:
            lines.append(
                self._line(
                    f"    {quote.source_id:<18} {quote.price_base_in_quote:>16,.6f}  "
                    f"L={quote.liquidity_raw}"
                )
            )

        if analysis.direction is None or analysis.profit is None:
            lines.append(self._divider())
            lines.append(self._line(f"  No opportunity: {analysis.reason}"))
            lines.append(self._bottom())
            return "\n".join(lines)

        direction = analysis.direction
        profit = analysis.profit

        lines.append(self._divider())
        lines.append(self._line(f"  Buy  on {direction.buy_from} @ {direction.buy_price:,.6f}"))
        lines.append(self._line(f"  Sell on {direction.sell_to} @ {direction.sell_price:,.6f}"))
        meets = "yes" if analysis.meets_threshold else "no"
        lines.append(
            self._line(f"  Price difference: {analysis.price_diff_percent or 0.0:.4f}% (meets threshold: {meets})")
        )

        lines.append(self._divider())
        lines.append(self._line(f"  Trade size:     {profit.trade_amount_base:g}"))
        lines.append(self._line(f"  Gross profit:   {self._amount(profit.gross)}"))
        lines.append(self._line(f"  Two-leg cost:   {self._amount(profit.gas_cost)}"))
        lines.append(self._line(f"  Net profit:     {self._amount(profit.net)}"))
        lines.append(self._line(f"  After slippage: {profit.profit_after_slippage_percent:+.4f}%"))

        lines.append(self._divider())
        lines.append(self._line(f"  {_recommendation_text(analysis)}"))
        lines.append(self._bottom())
        return "\n".join(lines)

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def render_diagnosis(self, diagnosis: ErrorDiagnosis) -> str:
        """Render one failure diagnosis."""
        lines = [
            f"[{diagnosis.category.value}] severity {diagnosis.severity}/5: {diagnosis.error_message}",
            f"  Root cause: {diagnosis.root_cause.cause}",
            f"  {diagnosis.root_cause.details}",
        ]
        if diagnosis.source_id:
            lines.insert(1, f"  Source: {diagnosis.source_id}")
        if diagnosis.root_cause.possible_reasons:
            lines.append("  Possible reasons:")
            lines.extend(f"    - {reason}" for reason in diagnosis.root_cause.possible_reasons)
        if diagnosis.recommendations:
            lines.append("  Recommendations:")
            lines.extend(
                f"    [{rec.priority}] {rec.action}: {rec.reasoning}" for rec in diagnosis.recommendations
            )
        return "\n".join(lines)

    def render_health(self, report: DiagnosticsReport) -> str:
        """Render the rolling health report."""
        lines = [
            f"Health: {report.health_status.value.upper()} ({report.health_score}/100)",
            f"  Analyses: {report.total_analyses}  Errors retained: {report.history_size}  "
            f"Error rate: {report.error_rate:.1%}",
        ]
        for category, rate in sorted(report.error_rate_by_category.items(), key=lambda kv: -kv[1]):
            lines.append(f"    {category.value:<22} {rate:.1%}")
        return "\n".join(lines)

    def render_advice(self, advice: ParameterAdvice) -> str:
        """Render advisory parameter suggestions."""
        if not advice.has_changes:
            return "Parameter advice: no changes suggested"

        current, suggested = advice.current, advice.suggested
        lines = ["Parameter advice (not applied):"]
        if suggested.slippage_percent != current.slippage_percent:
            lines.append(f"  slippage_percent: {current.slippage_percent:g} -> {suggested.slippage_percent:g}")
        if suggested.trade_size != current.trade_size:
            lines.append(f"  trade_size: {current.trade_size:g} -> {suggested.trade_size:g}")
        if suggested.min_price_diff_percent != current.min_price_diff_percent:
            lines.append(
                f"  min_price_diff_percent: {current.min_price_diff_percent:g} "
                f"-> {suggested.min_price_diff_percent:g}"
            )
        lines.extend(f"  reason: {reason}" for reason in advice.reasons)
        return "\n".join(lines)

    # =========================================================================
    # Status
    # =========================================================================

    def get_status_line(self) -> str:
        """Get a single-line status update."""
        if self._metrics is None:
            return ""
        stats = self._metrics.cycle_stats
        cycle = self._metrics.get_latency_stats("fetch_cycle")
        best_net = f"{stats.best_net_profit:+.4f}" if stats.best_net_profit is not None else "---"
        latency = format_duration_us(cycle.avg_us) if cycle.count else "---"
        return (
            f"Cycles: {stats.cycles} (failed {stats.failed_cycles}) | "
            f"Opp: {stats.opportunities}/{stats.profitable_opportunities} | "
            f"Best diff: {stats.best_price_diff_percent:.4f}% | "
            f"Best net: {best_net} | "
            f"Cycle: {latency}"
        )

    def render_summary(self) -> str:
        """Render a session summary."""
        if self._metrics is None:
            return ""
        stats = self._metrics.cycle_stats
        uptime = timedelta(seconds=int(self._metrics.uptime_seconds))
        lines = [
            "=" * 50,
            "  SESSION SUMMARY",
            "=" * 50,
            f"  Uptime: {uptime}",
            f"  Cycles: {stats.cycles:,} ({stats.failed_cycles:,} failed)",
            f"  Opportunities: {stats.opportunities:,} ({stats.profitable_opportunities:,} profitable)",
            f"  Insufficient data: {stats.insufficient_data:,}",
            f"  Source failures: {stats.source_failures:,}",
            f"  Best price difference: {stats.best_price_diff_percent:.4f}%",
            "=" * 50,
        ]
        return "\n".join(lines)

    def emit(self, text: str) -> None:
        """Write a rendered block to the output stream."""
        self._output.write(text)
        self._output.write("\n")
        self._output.flush()


def _recommendation_text(analysis: ArbitrageAnalysis) -> str:
    if analysis.recommendation is TradeRecommendation.PROFITABLE:
        return "PROFITABLE: net profit clears threshold after slippage and cost"
    if analysis.recommendation is TradeRecommendation.NO_TRADE_UNPROFITABLE_AFTER_COST:
        return "NO TRADE: price gap exists but is unprofitable after cost"
    return "NO TRADE: price difference below threshold"
