"""npm_package のテスト。"""

import subprocess

import mcp_setup.npm_package as m


def test_npm_missing(monkeypatch) -> None:
    monkeypatch.setattr(m.shutil, "which", lambda name: None)
    assert m.install_mcp_package("@relyt/claude-context-mcp@latest") is False


def test_npm_install(monkeypatch) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(m.shutil, "which", lambda name: "/usr/bin/npm")

    def fake_run(cmd, **kwargs):  # noqa: ANN001
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr(m.subprocess, "run", fake_run)
    assert m.install_mcp_package("pkg@latest") is True
    assert calls == [["npm", "install", "-g", "pkg@latest"]]


def test_npm_install_failure(monkeypatch) -> None:
    monkeypatch.setattr(m.shutil, "which", lambda name: "/usr/bin/npm")
    monkeypatch.setattr(
        m.subprocess, "run", lambda cmd, **kw: subprocess.CompletedProcess(cmd, 1, "", "EACCES")
    )
    assert m.install_mcp_package("pkg@latest") is False


def test_manual_install_command() -> None:
    assert m.manual_install_command("pkg") == "npm install -g pkg"
