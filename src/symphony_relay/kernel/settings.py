"""Relay settings.

Settings live in <relay base>/settings.yaml. Every key is optional:

    cli_command: claude
    continue_args: ["--continue"]
    bypass: false
    continuation_prompt: "Read {handoff_path} and continue the work from where it left off."
    shell_family: auto          # auto | posix | zsh | fish | powershell
    readiness_timeout_s: 10
    poll_interval_s: 0.3
    settle_delay_s: 0.3
    interrupt_delays_s: [0.5, 0.3]
    ack_timeout_s: 30
    ack_poll_interval_s: 0.2
    restart_delay_s: 1.0
    fallback_relaunch: false
    log_level: INFO
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml  # type: ignore
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger("symphony_relay.settings")

BYPASS_FLAG = "--dangerously-skip-permissions"
DEFAULT_CONTINUATION_PROMPT = "Read {handoff_path} and continue the work from where it left off."


class RelaySettings(BaseModel):
    cli_command: str = "claude"
    continue_args: List[str] = Field(default_factory=lambda: ["--continue"])
    bypass: bool = False
    continuation_prompt: str = DEFAULT_CONTINUATION_PROMPT
    shell_family: str = "auto"
    readiness_timeout_s: float = Field(default=10.0, gt=0)
    poll_interval_s: float = Field(default=0.3, gt=0)
    settle_delay_s: float = Field(default=0.3, ge=0)
    interrupt_delays_s: List[float] = Field(default_factory=lambda: [0.5, 0.3])
    ack_timeout_s: float = Field(default=30.0, ge=0)
    ack_poll_interval_s: float = Field(default=0.2, gt=0)
    restart_delay_s: float = Field(default=1.0, ge=0)
    fallback_relaunch: bool = False
    log_level: str = "INFO"

    model_config = ConfigDict(extra="ignore")

    @field_validator("cli_command")
    @classmethod
    def _non_empty_command(cls, v: str) -> str:
        s = str(v or "").strip()
        if not s:
            raise ValueError("cli_command must not be empty")
        return s

    @field_validator("continuation_prompt")
    @classmethod
    def _prompt_has_placeholder(cls, v: str) -> str:
        if "{handoff_path}" not in v:
            raise ValueError("continuation_prompt must contain {handoff_path}")
        return v

    def cli_argv(self, *, bypass: bool = False) -> List[str]:
        argv = [self.cli_command]
        if self.bypass or bypass:
            argv.append(BYPASS_FLAG)
        return argv

    def render_prompt(self, handoff_path: str) -> str:
        return self.continuation_prompt.replace("{handoff_path}", str(handoff_path))


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        doc = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable settings file {path}: {e}")
        return {}
    if not isinstance(doc, dict):
        logger.warning(f"Ignoring settings file {path}: top level is not a mapping")
        return {}
    return doc


def load_settings(path: Path) -> RelaySettings:
    """Load settings, dropping invalid keys back to their defaults."""
    doc = _read_yaml(path)
    try:
        return RelaySettings.model_validate(doc)
    except ValidationError as e:
        bad = {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
        logger.warning(f"Invalid settings in {path} ({', '.join(sorted(bad))}); using defaults for them")
        cleaned = {k: v for k, v in doc.items() if k not in bad}
        try:
            return RelaySettings.model_validate(cleaned)
        except ValidationError:
            return RelaySettings()
