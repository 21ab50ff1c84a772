from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple
import os
import uuid

import yaml

from .enriched import set_flag_policy
from .stack import DEFAULT_EXCLUDE_MARKERS, set_exclude_markers
from .types import FlagPolicy


class ConfigError(ValueError):
    """Raised when runtime configuration is missing or invalid."""


@dataclass(frozen=True)
class ErrctxConfig:
    """
    Configuration for error enrichment, logging and alerting.

    Parameters
    ----------
    log_dir
        Directory where the plain log file and JSONL event log are written.
    run_id
        Identifier for the process run. If "auto", a UUID4 prefix is generated.
    console_level
        Logging level for console output.
    file_level
        Logging level for file output.
    write_jsonl
        If True, flushed tasks and alerts are written to <log_dir>/events_<run_id>.jsonl.
    honeybadger_api_key
        Enables alert forwarding to Honeybadger when set.
    environment
        Environment name reported with alerts.
    flag_policy
        "set" combines error flags with OR, "intersect" keeps the historical AND.
    stack_exclude_markers
        Path fragments whose frames are dropped from captured stack traces.
    env_prefix
        Prefix for environment-variable overrides, e.g. "ERRCTX_".

    Usage example
    -------------
        cfg = ErrctxConfig(log_dir=Path("logs"), honeybadger_api_key="hbp_x")
    """

    log_dir: Path = Path("logs")
    run_id: str = "auto"

    console_level: int = 20  # logging.INFO
    file_level: int = 10  # logging.DEBUG

    write_jsonl: bool = True
    honeybadger_api_key: Optional[str] = field(default=None, repr=False)
    environment: str = "development"

    flag_policy: FlagPolicy = FlagPolicy.SET
    stack_exclude_markers: Tuple[str, ...] = DEFAULT_EXCLUDE_MARKERS

    env_prefix: str = field(default="", repr=False)

    def resolved_run_id(self) -> str:
        """Return a non-auto run id."""
        if self.run_id != "auto":
            return self.run_id
        return uuid.uuid4().hex[:10]

    @classmethod
    def from_env(cls, *, default: Optional["ErrctxConfig"] = None) -> "ErrctxConfig":
        """
        Create config from environment variables.

        Supported variables (prefix controlled by env_prefix on `default`):
        - <PFX>LOG_DIR: path
        - <PFX>WRITE_JSONL: "1"/"0"
        - <PFX>HONEYBADGER_API_KEY: string
        - <PFX>ENVIRONMENT: string
        - <PFX>FLAG_POLICY: "set" | "intersect"
        - <PFX>STACK_EXCLUDE: comma separated path fragments

        Invalid values fall back to the value on `default`.

        Usage example
        -------------
            cfg = ErrctxConfig.from_env(default=ErrctxConfig(env_prefix="ERRCTX_"))
        """
        base = default if default is not None else cls()
        pfx = base.env_prefix

        log_dir = Path(os.getenv(f"{pfx}LOG_DIR", str(base.log_dir)))

        write_jsonl_raw = os.getenv(f"{pfx}WRITE_JSONL", "1" if base.write_jsonl else "0").strip()
        write_jsonl = write_jsonl_raw not in ("0", "false", "False", "")

        api_key = os.getenv(f"{pfx}HONEYBADGER_API_KEY", "").strip() or base.honeybadger_api_key
        environment = os.getenv(f"{pfx}ENVIRONMENT", "").strip() or base.environment

        policy_raw = os.getenv(f"{pfx}FLAG_POLICY", base.flag_policy.value).strip().lower()
        try:
            flag_policy = FlagPolicy(policy_raw)
        except ValueError:
            flag_policy = base.flag_policy

        markers = base.stack_exclude_markers
        markers_raw = os.getenv(f"{pfx}STACK_EXCLUDE", "")
        if markers_raw.strip():
            markers = tuple(m.strip() for m in markers_raw.split(",") if m.strip())

        return replace(
            base,
            log_dir=log_dir,
            write_jsonl=write_jsonl,
            honeybadger_api_key=api_key,
            environment=environment,
            flag_policy=flag_policy,
            stack_exclude_markers=markers,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ErrctxConfig":
        """Build a config from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {k: v for k, v in data.items() if k in known}
        try:
            if "log_dir" in kwargs:
                kwargs["log_dir"] = Path(str(kwargs["log_dir"]))
            if "flag_policy" in kwargs:
                kwargs["flag_policy"] = FlagPolicy(str(kwargs["flag_policy"]).lower())
            if "stack_exclude_markers" in kwargs:
                kwargs["stack_exclude_markers"] = tuple(str(m) for m in kwargs["stack_exclude_markers"])
            for level_key in ("console_level", "file_level"):
                if level_key in kwargs:
                    kwargs[level_key] = int(kwargs[level_key])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid errctx configuration: {exc}") from exc
        return cls(**kwargs)


def load_config(path: Path) -> ErrctxConfig:
    """
    Load an ``ErrctxConfig`` from a YAML file.

    The file may hold the settings at top level or under an ``errctx`` section.
    A missing file yields the defaults.
    """
    if not path.exists():
        return ErrctxConfig()

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return ErrctxConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a YAML mapping: {path}")

    section = data.get("errctx", data)
    if not isinstance(section, dict):
        raise ConfigError(f"'errctx' section must be a mapping: {path}")
    return ErrctxConfig.from_mapping(section)


def configure_errors(cfg: ErrctxConfig) -> None:
    """Apply the process-wide error defaults held by ``cfg``."""
    set_flag_policy(cfg.flag_policy)
    set_exclude_markers(cfg.stack_exclude_markers)
