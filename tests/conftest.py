from __future__ import annotations

from pathlib import Path

import pytest

from mcp_setup.settings import SetupSettings


@pytest.fixture()
def codex_home(tmp_path: Path) -> Path:
    """既存設定を持つ最小限の ~/.codex を作る。"""
    home = tmp_path / ".codex"
    home.mkdir()
    (home / "config.toml").write_text(
        """model = "o3"

[projects."/work/app"]
trust_level = "trusted"

[mcp_servers.other]
command = "uvx"
args = ["other-mcp"]
""",
        encoding="utf-8",
    )
    return home


@pytest.fixture()
def settings() -> SetupSettings:
    s = SetupSettings()
    # テストでは待たない
    s.ollama.interval_seconds = 0
    s.postgres.interval_seconds = 0
    s.postgres.ready_attempts = 3
    return s


class FakeStep:
    def __init__(self, ui: "FakeUi", title: str) -> None:
        self.ui = ui
        ui.events.append(("step", title))

    def succeed(self, message: str | None = None) -> None:
        self.ui.events.append(("succeed", message or ""))

    def fail(self, message: str | None = None) -> None:
        self.ui.events.append(("fail", message or ""))


class FakeUi:
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def section(self, title: str) -> None:
        self.events.append(("section", title))

    def log(self, line: str) -> None:
        self.events.append(("log", line))

    def step(self, title: str) -> FakeStep:
        return FakeStep(self, title)


@pytest.fixture()
def ui() -> FakeUi:
    return FakeUi()
