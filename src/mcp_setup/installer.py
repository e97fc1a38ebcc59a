"""インストール全体の流れ。

OS判定 → (Docker確認) → Ollama導入/起動/モデル → PostgreSQL → npmパッケージ
→ config.toml 書き込み → 動作確認

状態はすべて InstallState に積み、グローバル変数は使わない。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from mcp_setup import npm_package, postgres, preflight
from mcp_setup.codex_config import (
    ConfigUpdate,
    apply_mcp_server,
    build_mcp_server,
    config_path,
)
from mcp_setup.errors import CLOUD_POSTGRES_HINT, SetupError
from mcp_setup.ollama import OllamaService
from mcp_setup.postgres import PostgresEndpoint
from mcp_setup.preflight import ToolStatus
from mcp_setup.settings import SetupSettings
from mcp_setup.verify import VerifyResult, verify_setup

log = logging.getLogger(__name__)


class Ui(Protocol):
    def section(self, title: str) -> None: ...
    def log(self, line: str) -> None: ...
    def step(self, title: str): ...


@dataclass
class InstallOptions:
    codex_home: Path
    postgres_url: str | None = None
    skip_verify: bool = False


@dataclass
class InstallState:
    os_name: str = ""
    tools: ToolStatus = field(default_factory=ToolStatus)
    endpoint: PostgresEndpoint | None = None
    package_installed: bool = False
    config_update: ConfigUpdate | None = None
    verify: VerifyResult | None = None


def write_codex_config(
    settings: SetupSettings,
    endpoint: PostgresEndpoint,
    codex_home: Path,
) -> ConfigUpdate:
    cfg = build_mcp_server(settings, endpoint.url)
    return apply_mcp_server(config_path(codex_home), cfg)


def _waiting(ui: Ui, what: str):
    def on_wait(attempt: int, attempts: int) -> None:
        ui.log(f"Waiting for {what}... (attempt {attempt}/{attempts})")

    return on_wait


def run_install(
    *,
    options: InstallOptions,
    settings: SetupSettings,
    ui: Ui,
) -> InstallState:
    state = InstallState()
    external = bool(options.postgres_url)

    ui.section("MCP Setup Installation for Codex")

    # ── 事前チェック ──
    step = ui.step("環境を確認中...")
    state.os_name = preflight.detect_os()
    if not external:
        preflight.check_docker()
    state.tools = preflight.check_tools()
    step.succeed(f"OS: {state.os_name}")
    if external and not state.tools.psql:
        ui.log("psql is not installed - PostgreSQL connection testing will be skipped")

    # ── Ollama ──
    svc = OllamaService(host=settings.ollama.host, model=settings.ollama.model)
    step = ui.step("Ollama を確認中...")
    installed = svc.ensure_installed(state.os_name)
    started = svc.ensure_running(
        state.os_name,
        attempts=settings.ollama.start_attempts,
        interval=settings.ollama.interval_seconds,
        on_wait=_waiting(ui, "Ollama"),
    )
    step.succeed(
        "Ollama: "
        + ("installed, " if installed else "")
        + ("started" if started else "running")
    )

    step = ui.step(f"埋め込みモデル '{svc.model}' を確認中...")
    pulled = svc.ensure_model()
    step.succeed(f"{svc.model}: {'downloaded' if pulled else 'already installed'}")

    # ── PostgreSQL ──
    step = ui.step("PostgreSQL を準備中...")
    state.endpoint = postgres.ensure_postgres(
        settings.postgres,
        options.postgres_url,
        on_wait=_waiting(ui, "PostgreSQL"),
        on_busy=lambda p: ui.log(f"Port {p} is already in use, trying next port..."),
    )
    if state.endpoint.external:
        step.succeed("external PostgreSQL (Docker skipped)")
    else:
        verb = "created" if state.endpoint.created else "running"
        step.succeed(f"{settings.postgres.container_name}: {verb} on port {state.endpoint.port}")

    # ── MCP パッケージ ──
    step = ui.step(f"{settings.mcp.package} をインストール中...")
    if state.tools.npm:
        state.package_installed = npm_package.install_mcp_package(settings.mcp.package)
    if state.package_installed:
        step.succeed("MCP package installed")
    else:
        step.fail("skipped (npm unavailable or failed)")
        ui.log(f"To install it later: {npm_package.manual_install_command(settings.mcp.package)}")

    # ── config.toml ──
    step = ui.step("Codex config.toml を更新中...")
    state.config_update = write_codex_config(settings, state.endpoint, options.codex_home)
    step.succeed(f"{state.config_update.action}: {state.config_update.path}")

    # ── 動作確認 ──
    if options.skip_verify:
        return state

    step = ui.step("セットアップを検証中...")
    state.verify = verify_setup(settings, state.endpoint, state.tools, service=svc)
    for c in state.verify.checks:
        mark = "⚠" if c.skipped else ("✓" if c.ok else "✗")
        ui.log(f"{mark} {c.name}" + (f" ({c.detail})" if c.detail else ""))
    if not state.verify.ok:
        step.fail("検証に失敗")
        names = ", ".join(c.name for c in state.verify.failed)
        hint = CLOUD_POSTGRES_HINT if state.endpoint.external else ""
        raise SetupError(f"Setup verification failed: {names}", hint=hint)
    step.succeed("All tests passed! Setup is complete.")

    log.info("install finished: config=%s", state.config_update.path)
    return state
