"""Small helpers for dev-mode diagnostics."""

from __future__ import annotations

import traceback
from typing import Any, Mapping

import click

from .config import BaseConfig


def in_dev_mode(config: BaseConfig | None) -> bool:
    """Return True when dev mode diagnostics are enabled."""

    return bool(getattr(config, "DEV_MODE", False)) if config is not None else False


def dev_log(
    config: BaseConfig | None,
    message: str,
    *,
    exc: BaseException | None = None,
    context: Mapping[str, Any] | None = None,
) -> None:
    """Echo developer-friendly diagnostics to stderr when dev mode is enabled."""

    if not in_dev_mode(config):
        return

    parts = [f"[DEV] {message}"]
    if context:
        extras = " ".join(f"{k}={v}" for k, v in context.items())
        if extras:
            parts.append(f"({extras})")
    click.echo(" ".join(parts), err=True)
    if exc is not None:
        click.echo("".join(traceback.format_exception(exc)).rstrip(), err=True)
