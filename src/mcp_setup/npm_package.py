"""MCP パッケージ（npm）の導入。

npm が無い/失敗した場合はインストール全体を止めず、False を返して手動手順を案内する。
"""

from __future__ import annotations

import logging
import shutil
import subprocess

log = logging.getLogger(__name__)


def manual_install_command(package: str) -> str:
    return f"npm install -g {package}"


def install_mcp_package(package: str) -> bool:
    if shutil.which("npm") is None:
        log.warning("npm not available; skip %s (run later: %s)", package, manual_install_command(package))
        return False

    log.info("installing %s", package)
    r = subprocess.run(
        ["npm", "install", "-g", package],
        check=False,
        capture_output=True,
        text=True,
    )
    if r.returncode != 0:
        log.error("npm install failed: %s", (r.stderr or "").strip())
        return False
    return True
