"""Ollama（ローカル埋め込みモデル実行環境）の導入と起動。

- 起動確認は HTTP `GET /api/tags`
- モデルの有無も `/api/tags` の一覧で判定する
- pull / install はCLIを呼ぶ（進捗表示は Ollama 側に任せる）
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass

import requests

from mcp_setup.errors import SetupError
from mcp_setup.retry import wait_until

log = logging.getLogger(__name__)

INSTALL_SCRIPT_URL = "https://ollama.com/install.sh"
MAC_DOWNLOAD_URL = "https://ollama.com/download/mac"


@dataclass
class OllamaService:
    host: str = "http://127.0.0.1:11434"
    model: str = "mxbai-embed-large"
    timeout_seconds: float = 5.0

    def _tags(self) -> dict:
        url = self.host.rstrip("/") + "/api/tags"
        r = requests.get(url, timeout=self.timeout_seconds)
        r.raise_for_status()
        return r.json()

    def is_running(self) -> bool:
        try:
            self._tags()
        except requests.RequestException:
            return False
        return True

    def list_models(self) -> list[str]:
        data = self._tags()
        return [str(m.get("name", "")) for m in data.get("models", []) or []]

    def has_model(self, model: str | None = None) -> bool:
        target = model or self.model
        try:
            names = self.list_models()
        except requests.RequestException as e:
            log.warning("ollama list failed: %s", e)
            return False
        # `ollama list | grep` 相当（タグ違いも許容）
        return any(target in n for n in names)

    def ensure_installed(self, os_name: str) -> bool:
        """未導入なら入れる。新たに入れた場合 True。"""
        if shutil.which("ollama") is not None:
            log.info("ollama already installed")
            return False

        if os_name == "macos":
            raise SetupError(
                "Ollama is not installed on macOS",
                hint=f"Please install Ollama manually from {MAC_DOWNLOAD_URL}, then re-run mcp-setup.",
            )

        log.info("installing ollama via %s", INSTALL_SCRIPT_URL)
        r = subprocess.run(
            ["sh", "-c", f"curl -fsSL {INSTALL_SCRIPT_URL} | sh"],
            check=False,
            capture_output=True,
            text=True,
        )
        if r.returncode != 0:
            log.error("ollama install failed: %s", (r.stderr or "").strip())
            raise SetupError(
                "Ollama installation failed",
                hint=f"Try installing manually: curl -fsSL {INSTALL_SCRIPT_URL} | sh",
            )
        return True

    def _spawn_serve(self) -> None:
        subprocess.Popen(
            ["ollama", "serve"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )

    def start(self, os_name: str) -> None:
        if os_name == "linux":
            r = subprocess.run(
                ["systemctl", "--user", "start", "ollama"],
                check=False,
                capture_output=True,
                text=True,
            )
            if r.returncode == 0:
                return
            log.info("systemctl start failed, falling back to `ollama serve`")
        self._spawn_serve()

    def ensure_running(
        self,
        os_name: str,
        *,
        attempts: int = 30,
        interval: float = 2.0,
        on_wait: Callable[[int, int], None] | None = None,
    ) -> bool:
        """起動していなければ起動して待つ。新たに起動した場合 True。"""
        if self.is_running():
            log.info("ollama already running at %s", self.host)
            return False

        try:
            self.start(os_name)
        except FileNotFoundError as e:
            raise SetupError("ollama command not found") from e

        wait_until(
            self.is_running,
            attempts=attempts,
            interval=interval,
            what="Ollama",
            on_wait=on_wait,
        )
        return True

    def ensure_model(self) -> bool:
        """モデルが無ければ pull する。新たに pull した場合 True。"""
        if self.has_model():
            log.info("embedding model already installed: %s", self.model)
            return False

        log.info("pulling embedding model: %s", self.model)
        r = subprocess.run(
            ["ollama", "pull", self.model],
            check=False,
            capture_output=True,
            text=True,
        )
        if r.returncode != 0:
            raise SetupError(
                f"Failed to pull embedding model '{self.model}': {(r.stderr or '').strip()}"
            )
        return True
