"""执行引擎层（engine）。

统一入口：`BacktestEngine` / `PaperEngine` 以 `run() -> EngineResult` 形式对外提供能力，
两者共用 `engine.pipeline.TradingPipeline` 处理单根 K 线；
命令行入口由仓库根目录 `main.py` 统一承载。
"""
