"""candlewise 统一命令行入口。

该模块提供单一入口 `main.py`，通过子命令驱动不同任务：

- `backtest`：单次回测。按配置区间回放历史 K 线，输出绩效与产物。
- `paper`：纸面交易。轮询交易所最新 K 线，成交全部模拟。
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from analysis.console_report import print_summary
from engine.backtest_engine import BacktestEngine
from engine.dashboard import LoggingDashboardSink
from engine.paper_engine import PaperEngine
from shared.config.config_loader import load_config
from shared.errors import DataError
from shared.utils.logging import setup_logger

EXIT_CONFIG_ERROR = 2


@dataclass
class CliArgs:
    """命令行参数。

    config: 配置文件路径
    task: 要运行的任务类型 (backtest/paper)；未给子命令时为 None，运行时取配置中的 mode
    """
    config: str
    task: str | None
    max_ticks: int | None = None  # 仅用于 debug，限制轮询多少次就停止
    output_dir: str | None = None


def build_parser() -> argparse.ArgumentParser:
    """构建 CLI 参数解析器。"""
    parser = argparse.ArgumentParser(prog="candlewise", description="candlewise 统一入口")

    def _add_config_arg(p: argparse.ArgumentParser, *, default: Any) -> None:
        p.add_argument(
            "--config",
            default=default,
            help="配置文件路径 (默认: config/config.yml)",
        )

    # 允许 `python main.py --config ... backtest`（全局）与 `python main.py backtest --config ...`（子命令）
    _add_config_arg(parser, default="config/config.yml")

    sub = parser.add_subparsers(dest="task")

    p_backtest = sub.add_parser("backtest", help="单次回测")
    _add_config_arg(p_backtest, default=argparse.SUPPRESS)
    p_backtest.add_argument("--output-dir", type=str, default=None, help="产物目录（覆盖 backtest.output_dir）")

    p_paper = sub.add_parser("paper", help="纸面交易（模拟成交）")
    _add_config_arg(p_paper, default=argparse.SUPPRESS)
    p_paper.add_argument(
        "--max-ticks",
        type=int,
        default=None,
        help="轮询多少次后退出（用于 dry-run/测试）",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> CliArgs:
    parser = build_parser()
    ns = parser.parse_args(argv)
    return CliArgs(
        config=str(getattr(ns, "config", "config/config.yml")),
        task=ns.task,
        max_ticks=getattr(ns, "max_ticks", None),
        output_dir=getattr(ns, "output_dir", None),
    )


def run(args: CliArgs) -> Any:
    """按子命令（缺省为配置中的 mode）运行对应引擎，返回 summary。"""
    cfg = load_config(args.config)
    logger = setup_logger("candlewise", cfg.logging.level)
    task = args.task or cfg.mode

    if task == "backtest":
        result = BacktestEngine(cfg=cfg, output_dir=args.output_dir, logger=logger).run().summary
        print_summary(
            title=f"Backtest {cfg.pair} {cfg.timeframe}",
            stats=result.stats,
            trades=result.trades,
            initial_capital=result.initial_capital,
            final_equity=result.final_equity,
            duration_secs=result.duration_secs,
        )
        return result

    if task == "paper":
        summary = PaperEngine(
            cfg=cfg, max_ticks=args.max_ticks, dashboard=LoggingDashboardSink(logger), logger=logger
        ).run().summary
        print_summary(
            title=f"Paper Trading {cfg.pair} {cfg.timeframe}",
            stats=summary["stats"],
            trades=summary["trades"],
            initial_capital=summary["initial_capital"],
            final_equity=summary["final_equity"],
        )
        return summary

    raise ValueError(f"Unknown task: {task}")


def main(argv: list[str] | None = None) -> Any:
    """程序主入口。

    配置/数据错误打印一行说明并以退出码 2 结束，不输出 traceback。
    """
    args = parse_args(argv)
    try:
        return run(args)
    except (DataError, ValidationError, ValueError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(EXIT_CONFIG_ERROR)


if __name__ == "__main__":
    main()
