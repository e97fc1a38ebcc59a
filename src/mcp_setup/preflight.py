"""起動時チェック（OS / 必要コマンド / Docker デーモン）。

- 必須でないコマンド（npm / psql / codex）は有無だけ記録し、後段で分岐する
- Docker は PostgreSQL をコンテナで立てる場合のみ必須
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from dataclasses import dataclass

from mcp_setup.errors import CLOUD_POSTGRES_HINT, SetupError

log = logging.getLogger(__name__)


@dataclass
class ToolStatus:
    docker: bool = False
    npm: bool = False
    psql: bool = False
    codex: bool = False


def detect_os(platform: str | None = None) -> str:
    p = sys.platform if platform is None else platform
    if p == "darwin":
        return "macos"
    if p.startswith("linux"):
        return "linux"
    raise SetupError(f"Unsupported operating system: {p}")


def has_command(name: str) -> bool:
    found = shutil.which(name) is not None
    log.info("preflight: %s=%s", name, "found" if found else "not_found")
    return found


def check_tools() -> ToolStatus:
    return ToolStatus(
        docker=has_command("docker"),
        npm=has_command("npm"),
        psql=has_command("psql"),
        codex=has_command("codex"),
    )


def check_docker() -> None:
    """docker コマンドとデーモンの両方が使えるか。"""
    if not has_command("docker"):
        raise SetupError(
            "Docker is not installed. Please install Docker first "
            "(https://docs.docker.com/get-docker/).",
            hint=CLOUD_POSTGRES_HINT,
        )

    r = subprocess.run(
        ["docker", "info"],
        check=False,
        capture_output=True,
        text=True,
    )
    if r.returncode != 0:
        log.warning("docker info failed: %s", (r.stderr or "").strip())
        raise SetupError(
            "Docker daemon is not running. Please start Docker first.",
            hint=CLOUD_POSTGRES_HINT,
        )
