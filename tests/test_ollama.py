"""ollama のテスト（HTTP と CLI はモック）。"""

import subprocess

import pytest
import requests

import mcp_setup.ollama as m
from mcp_setup.errors import SetupError, SetupTimeoutError
from mcp_setup.ollama import OllamaService


class DummyResp:
    def __init__(self, data: dict) -> None:
        self.data = data

    def raise_for_status(self) -> None:
        return None

    def json(self):  # noqa: ANN001
        return self.data


def _tags(monkeypatch, names: list[str]) -> list[str]:
    urls: list[str] = []

    def fake_get(url, timeout):  # noqa: ANN001
        urls.append(url)
        return DummyResp({"models": [{"name": n} for n in names]})

    monkeypatch.setattr(m.requests, "get", fake_get)
    return urls


def test_is_running(monkeypatch) -> None:
    urls = _tags(monkeypatch, [])
    assert OllamaService(host="http://x:11434/").is_running()
    assert urls == ["http://x:11434/api/tags"]


def test_is_running_connection_error(monkeypatch) -> None:
    def fake_get(url, timeout):  # noqa: ANN001
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(m.requests, "get", fake_get)
    assert OllamaService().is_running() is False
    assert OllamaService().has_model() is False


def test_has_model_matches_tagged_name(monkeypatch) -> None:
    _tags(monkeypatch, ["llama3.1:8b", "mxbai-embed-large:latest"])
    svc = OllamaService(model="mxbai-embed-large")
    assert svc.has_model()
    assert not svc.has_model("nomic-embed-text")


def test_ensure_model_skips_when_present(monkeypatch) -> None:
    _tags(monkeypatch, ["mxbai-embed-large:latest"])

    def fail_run(*args, **kwargs):  # noqa: ANN001
        raise AssertionError("pull should not run")

    monkeypatch.setattr(m.subprocess, "run", fail_run)
    assert OllamaService().ensure_model() is False


def test_ensure_model_pulls(monkeypatch) -> None:
    _tags(monkeypatch, [])
    calls: list[list[str]] = []

    def fake_run(cmd, **kwargs):  # noqa: ANN001
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr(m.subprocess, "run", fake_run)
    assert OllamaService().ensure_model() is True
    assert calls == [["ollama", "pull", "mxbai-embed-large"]]


def test_ensure_model_pull_failure(monkeypatch) -> None:
    _tags(monkeypatch, [])
    monkeypatch.setattr(
        m.subprocess, "run", lambda cmd, **kw: subprocess.CompletedProcess(cmd, 1, "", "no space")
    )
    with pytest.raises(SetupError) as ei:
        OllamaService().ensure_model()
    assert "no space" in str(ei.value)


def test_ensure_installed_macos_requires_manual_install(monkeypatch) -> None:
    monkeypatch.setattr(m.shutil, "which", lambda name: None)
    with pytest.raises(SetupError) as ei:
        OllamaService().ensure_installed("macos")
    assert "ollama.com/download/mac" in ei.value.hint


def test_ensure_installed_noop_when_present(monkeypatch) -> None:
    monkeypatch.setattr(m.shutil, "which", lambda name: "/usr/local/bin/ollama")
    assert OllamaService().ensure_installed("linux") is False


def test_ensure_running_starts_and_waits() -> None:
    results = iter([False, False, True])
    started: list[str] = []
    svc = OllamaService()
    svc.is_running = lambda: next(results)  # type: ignore[method-assign]
    svc.start = lambda os_name: started.append(os_name)  # type: ignore[method-assign]

    assert svc.ensure_running("linux", attempts=5, interval=0) is True
    assert started == ["linux"]


def test_ensure_running_noop_when_running() -> None:
    def no_start(os_name):  # noqa: ANN001
        raise AssertionError("should not start")

    svc = OllamaService()
    svc.is_running = lambda: True  # type: ignore[method-assign]
    svc.start = no_start  # type: ignore[method-assign]
    assert svc.ensure_running("linux") is False


def test_ensure_running_times_out() -> None:
    svc = OllamaService()
    svc.is_running = lambda: False  # type: ignore[method-assign]
    svc.start = lambda os_name: None  # type: ignore[method-assign]
    with pytest.raises(SetupTimeoutError):
        svc.ensure_running("linux", attempts=2, interval=0)


def test_start_linux_falls_back_to_serve(monkeypatch) -> None:
    spawned: list[bool] = []
    monkeypatch.setattr(
        m.subprocess, "run", lambda cmd, **kw: subprocess.CompletedProcess(cmd, 1, "", "")
    )
    svc = OllamaService()
    svc._spawn_serve = lambda: spawned.append(True)  # type: ignore[method-assign]
    svc.start("linux")
    assert spawned == [True]
