"""配置加载：YAML → `${VAR}` 展开 → 原始键预校验 → pydantic 模型。

配置文件同目录及上一级目录中的 .env / .env.local 会先被读入环境变量，
已存在的变量不会被覆盖。
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Iterator

import yaml

from shared.config.schema import MainConfig
from shared.config.validation import validate_raw_config

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")
_ENV_FILENAMES = (".env", ".env.local")


def _iter_env_pairs(text: str) -> Iterator[tuple[str, str]]:
    """逐行解析 KEY=VALUE；忽略空行、注释和不含 '=' 的行。"""
    for raw in text.splitlines():
        stripped = raw.strip()
        if stripped.startswith("#"):
            continue
        name, sep, rest = stripped.partition("=")
        name = name.strip()
        if sep and name:
            yield name, rest.strip().strip("\"'")


def _load_envs(cfg_path: Path) -> None:
    for folder in (cfg_path.parent, cfg_path.parent.parent):
        for filename in _ENV_FILENAMES:
            env_file = folder / filename
            if not env_file.is_file():
                continue
            for name, value in _iter_env_pairs(env_file.read_text(encoding="utf-8")):
                os.environ.setdefault(name, value)


def expand_env(value: Any) -> Any:
    """递归展开 `${VAR}`；变量缺失时直接报错，避免静默替换为空。"""
    if isinstance(value, str):
        def replacer(match: re.Match) -> str:
            var_name = match.group(1)
            if var_name not in os.environ:
                raise ValueError(f"Missing environment variable: {var_name}")
            return os.environ[var_name]

        return _ENV_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env(v) for v in value]
    return value


def load_config(path: str, load_env: bool = True, expand_env_vars: bool = True) -> MainConfig:
    """读取 YAML 配置并返回校验后的 MainConfig。

    Parameters
    ----------
    path:
        YAML 文件路径。
    load_env:
        先读入 .env / .env.local。
    expand_env_vars:
        展开字符串中的 `${VAR}`。

    Raises
    ------
    FileNotFoundError
        文件不存在。
    ValueError
        未知键、缺失的环境变量或取值非法（pydantic ValidationError 同为 ValueError）。
    """
    cfg_path = Path(path)
    if not cfg_path.is_file():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    if load_env:
        _load_envs(cfg_path)

    raw: Any = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
    if expand_env_vars:
        raw = expand_env(raw)
    validate_raw_config(raw)
    return MainConfig.model_validate(raw)
