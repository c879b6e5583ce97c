from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional
import os
import yaml

from .engine import CHAIN_MODES
from .time_format import DATETIME_FMT, parse_utc

OUTPUT_FORMATS = ("table", "json")


def _env_override(value: Any, env_key: str) -> Any:
    env_val = os.getenv(env_key)
    if env_val is None:
        return value
    # basic parsing
    if isinstance(value, bool):
        return env_val.strip().lower() in ("1", "true", "yes", "y", "on")
    if isinstance(value, int):
        try:
            return int(env_val)
        except ValueError:
            return value
    return env_val


@dataclass
class AppConfig:
    name: str = "Trend Propagation"
    log_level: str = "INFO"


@dataclass
class AnalysisConfig:
    chain_mode: str = "dynamic"  # dynamic | forward
    timeframes: Optional[List[str]] = None  # empty/None -> every timeframe in the source
    price_tolerance_s: int = 0  # 0 -> exact candle match only
    start: Optional[str] = None  # "YYYY-MM-DD HH:MM:SS" UTC, inclusive
    end: Optional[str] = None
    gap_min_bars: int = 3

    def start_ts(self) -> Optional[int]:
        return parse_utc(self.start) if self.start else None

    def end_ts(self) -> Optional[int]:
        return parse_utc(self.end) if self.end else None


@dataclass
class SourceConfig:
    path: str = ""
    source_id: str = ""  # default: file name without .csv


@dataclass
class OutputConfig:
    format: str = "table"  # table | json
    path: Optional[str] = None  # None -> stdout
    include_indicators: bool = True
    include_propagations: bool = True
    include_gaps: bool = False
    max_level: Optional[int] = None


@dataclass
class Config:
    app: AppConfig
    analysis: AnalysisConfig
    source: SourceConfig
    output: OutputConfig


def validate_config(cfg: Config) -> None:
    errs = []
    if cfg.analysis.chain_mode not in CHAIN_MODES:
        errs.append(f"analysis.chain_mode must be one of {', '.join(CHAIN_MODES)} (got {cfg.analysis.chain_mode!r})")
    if cfg.output.format not in OUTPUT_FORMATS:
        errs.append(f"output.format must be one of {', '.join(OUTPUT_FORMATS)} (got {cfg.output.format!r})")
    if cfg.analysis.price_tolerance_s < 0:
        errs.append("analysis.price_tolerance_s must be >= 0")
    for key in ("start", "end"):
        val = getattr(cfg.analysis, key)
        if val:
            try:
                parse_utc(val)
            except ValueError:
                errs.append(f"analysis.{key} must look like YYYY-MM-DD HH:MM:SS (got {val!r})")
    if errs:
        raise ValueError("Config error: " + "; ".join(errs))


def default_config() -> Config:
    cfg = Config(app=AppConfig(), analysis=AnalysisConfig(), source=SourceConfig(), output=OutputConfig())
    cfg.analysis.timeframes = []
    return cfg


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    app = raw.get("app", {}) or {}
    analysis = raw.get("analysis", {}) or {}
    source = raw.get("source", {}) or {}
    output = raw.get("output", {}) or {}

    cfg = Config(
        app=AppConfig(**app),
        analysis=AnalysisConfig(**analysis),
        source=SourceConfig(**source),
        output=OutputConfig(**output),
    )

    # env overrides (useful in batch jobs)
    cfg.app.log_level = _env_override(cfg.app.log_level, "TREND_LOG_LEVEL")
    cfg.source.path = _env_override(cfg.source.path, "TREND_SOURCE_PATH")
    cfg.analysis.chain_mode = _env_override(cfg.analysis.chain_mode, "TREND_CHAIN_MODE")
    if cfg.analysis.timeframes is None:
        cfg.analysis.timeframes = []
    cfg.analysis.timeframes = [str(tf) for tf in cfg.analysis.timeframes]

    # YAML reads unquoted "2024-01-02 03:04:05" as a datetime
    for key in ("start", "end"):
        val = getattr(cfg.analysis, key)
        if isinstance(val, datetime):
            setattr(cfg.analysis, key, val.strftime(DATETIME_FMT))

    # Allow TREND_TIMEFRAMES="1m,5m"
    tf_env = os.getenv("TREND_TIMEFRAMES")
    if tf_env:
        cfg.analysis.timeframes = [x.strip() for x in tf_env.split(",") if x.strip()]

    validate_config(cfg)
    return cfg
