"""终端报告（rich 表格）。"""

from __future__ import annotations

from typing import Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shared.models.models import ClosedTrade, PerformanceStats


def _money(value: float) -> str:
    color = "green" if value >= 0 else "red"
    return f"[{color}]${value:,.2f}[/{color}]"


def _streak(stats: PerformanceStats) -> str:
    if stats.consecutive_wins > 0:
        return f"[green]{stats.consecutive_wins} wins[/green]"
    if stats.consecutive_losses > 0:
        return f"[red]{stats.consecutive_losses} losses[/red]"
    return "-"


def performance_table(stats: PerformanceStats) -> Table:
    """绩效表：交易、盈亏、风险、连胜连败四组。"""
    win_color = "green" if stats.win_rate >= 60 else "yellow" if stats.win_rate >= 50 else "red"
    sharpe_color = "green" if stats.sharpe_ratio >= 2 else "yellow" if stats.sharpe_ratio >= 1 else "red"
    dd_pct = stats.max_drawdown * 100
    dd_color = "green" if dd_pct <= 10 else "yellow" if dd_pct <= 20 else "red"

    table = Table(title="Performance", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("[bold]Trading[/bold]", "")
    table.add_row("Total Trades", str(stats.total_trades))
    table.add_row(
        "Win Rate",
        f"[{win_color}]{stats.win_rate:.2f}%[/{win_color}] ({stats.winning_trades}W / {stats.losing_trades}L)",
    )
    table.add_row("Profit Factor", f"{stats.profit_factor:.2f}")

    table.add_row("[bold]Profit & Loss[/bold]", "")
    table.add_row("Total P&L", _money(stats.total_pnl))
    table.add_row("Total P&L %", f"{stats.total_pnl_pct:.2f}%")
    table.add_row("Average Win", _money(stats.average_win))
    table.add_row("Average Loss", _money(stats.average_loss))
    table.add_row("Largest Win", _money(stats.largest_win))
    table.add_row("Largest Loss", _money(stats.largest_loss))

    table.add_row("[bold]Risk[/bold]", "")
    table.add_row("Sharpe Ratio", f"[{sharpe_color}]{stats.sharpe_ratio:.3f}[/{sharpe_color}]")
    table.add_row(
        "Max Drawdown",
        f"[{dd_color}]{dd_pct:.2f}%[/{dd_color}] (${stats.max_drawdown_amount:,.2f})",
    )
    table.add_row("Current Drawdown", f"{stats.current_drawdown * 100:.2f}%")

    table.add_row("[bold]Streaks[/bold]", "")
    table.add_row("Current Streak", _streak(stats))
    table.add_row("Max Win Streak", str(stats.max_consecutive_wins))
    table.add_row("Max Loss Streak", str(stats.max_consecutive_losses))

    table.add_row("[bold]Advanced[/bold]", "")
    table.add_row("Expectancy", _money(stats.expectancy))
    table.add_row("Avg Holding Period", f"{stats.average_holding_period_secs / 60:.1f} min")
    table.add_row("Risk/Reward Ratio", f"1:{stats.average_risk_reward:.2f}")
    return table


def trades_table(trades: Sequence[ClosedTrade], limit: int = 10) -> Table:
    table = Table(title=f"Recent Trades (last {limit})", box=box.SIMPLE_HEAD)
    for col, justify in (
        ("Entry", "left"),
        ("Exit", "left"),
        ("Entry Price", "right"),
        ("Exit Price", "right"),
        ("Qty", "right"),
        ("P&L", "right"),
        ("Reason", "left"),
    ):
        table.add_column(col, justify=justify)
    for t in list(trades)[-limit:]:
        table.add_row(
            t.ts.strftime("%m-%d %H:%M"),
            t.exit_time.strftime("%m-%d %H:%M"),
            f"{t.price:,.2f}",
            f"{t.exit_price:,.2f}",
            f"{t.quantity:.6f}",
            f"{_money(t.pnl)} ({t.pnl_pct:+.2f}%)",
            t.reasoning,
        )
    return table


def print_summary(
    *,
    title: str,
    stats: PerformanceStats,
    trades: Sequence[ClosedTrade],
    initial_capital: float,
    final_equity: float,
    duration_secs: float | None = None,
    console: Console | None = None,
) -> None:
    """打印一次运行的总结：概要面板 + 绩效表 + 最近交易。"""
    console = console or Console()
    lines = [
        f"Initial Capital: ${initial_capital:,.2f}",
        f"Final Equity:    ${final_equity:,.2f}",
        f"Total P&L:       {_money(final_equity - initial_capital)}",
    ]
    if duration_secs is not None:
        lines.append(f"Duration:        {duration_secs:.2f}s")
    console.print(Panel("\n".join(lines), title=title, expand=False))
    console.print(performance_table(stats))
    if trades:
        console.print(trades_table(trades))
    else:
        console.print("[dim]No trades yet.[/dim]")
