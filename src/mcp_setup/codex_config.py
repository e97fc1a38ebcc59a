"""Codex の config.toml に MCP サーバ設定を書き込む。

- `$CODEX_HOME/config.toml`（既定は `~/.codex/config.toml`）
- `[mcp_servers.<name>]` セクションだけを差し替え、他の設定には触れない
- 書き込みは一時ファイル + rename で置き換える（途中状態を見せない）
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ModuleNotFoundError:  # Python < 3.11
    import tomli as tomllib  # type: ignore[no-redef]

from mcp_setup.settings import SetupSettings
from mcp_setup.toml_section import has_section, merge_section

log = logging.getLogger(__name__)

CONFIG_FILENAME = "config.toml"


@dataclass
class McpServerConfig:
    """`[mcp_servers.<name>]` 1件分。"""

    name: str
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    @property
    def section_name(self) -> str:
        return f"mcp_servers.{self.name}"


@dataclass
class ConfigUpdate:
    path: Path
    action: str  # created | updated | added
    section: str


def _toml_str(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def render_mcp_section(cfg: McpServerConfig) -> str:
    lines = [f"[{cfg.section_name}]", f"command = {_toml_str(cfg.command)}"]
    if cfg.args:
        lines.append("args = [")
        lines.append(",\n".join(f"    {_toml_str(a)}" for a in cfg.args))
        lines.append("]")
    else:
        lines.append("args = []")
    for k, v in cfg.env.items():
        lines.append(f"env.{k} = {_toml_str(v)}")
    return "\n".join(lines)


def build_mcp_server(settings: SetupSettings, connection_string: str) -> McpServerConfig:
    return McpServerConfig(
        name=settings.mcp.server_name,
        command=settings.mcp.command,
        args=[settings.mcp.package],
        env={
            "EMBEDDING_PROVIDER": "Ollama",
            "OLLAMA_HOST": settings.ollama.host,
            "EMBEDDING_MODEL": settings.ollama.model,
            "VECTOR_DATABASE_PROVIDER": "postgres",
            "HYBRID_MODE": "false",
            "MCP_LOG_FILE": "true",
            "POSTGRES_CONNECTION_STRING": connection_string,
        },
    )


def resolve_codex_home(
    explicit: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path:
    """明示指定 > $CODEX_HOME > ~/.codex"""
    if explicit is not None:
        return explicit.expanduser()
    env = os.environ if environ is None else environ
    value = env.get("CODEX_HOME")
    if value:
        return Path(value).expanduser()
    return Path.home() / ".codex"


def config_path(home: Path) -> Path:
    return home / CONFIG_FILENAME


def read_document(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


def write_atomic(path: Path, text: str) -> None:
    """同じディレクトリに一時ファイルを書いてから置き換える。"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        if path.exists():
            # 既存ファイルの権限を引き継ぐ
            os.chmod(tmp, path.stat().st_mode & 0o777)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def apply_mcp_server(path: Path, cfg: McpServerConfig) -> ConfigUpdate:
    """config.toml に cfg を反映し、何をしたかを返す。"""
    current = read_document(path)
    section = cfg.section_name
    if current is None:
        action = "created"
    elif has_section(current, section):
        action = "updated"
    else:
        action = "added"

    merged = merge_section(current, section, render_mcp_section(cfg))
    try:
        tomllib.loads(merged)
    except tomllib.TOMLDecodeError as e:
        # 手編集で壊れている等。こちらのセクションは書けるので警告のみ
        log.warning("config is not valid TOML after merge: %s (%s)", path, e)

    write_atomic(path, merged)
    log.info("codex config %s: %s [%s]", action, path, section)
    return ConfigUpdate(path=path, action=action, section=section)
