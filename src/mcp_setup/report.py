"""完了時のサマリ（設定内容 / 次の手順 / 稼働サービス）。

rich 依存を持たない素の文字列行を返し、表示は cli 側で行う。
"""

from __future__ import annotations

from pathlib import Path

from mcp_setup.codex_config import McpServerConfig
from mcp_setup.npm_package import manual_install_command
from mcp_setup.postgres import PostgresEndpoint
from mcp_setup.preflight import ToolStatus
from mcp_setup.settings import SetupSettings

CODEX_PACKAGE = "@openai/codex"
CODEX_DOCS_URL = "https://developers.openai.com/codex/cli/"
NODE_DOWNLOAD_URL = "https://nodejs.org/en/download/"


def render_config_details(cfg: McpServerConfig) -> list[str]:
    env = cfg.env
    return [
        f"- MCP Server: {cfg.name}",
        f"- Embedding Provider: {env.get('EMBEDDING_PROVIDER', '')}",
        f"- Ollama Host: {env.get('OLLAMA_HOST', '')}",
        f"- Embedding Model: {env.get('EMBEDDING_MODEL', '')}",
        "- Vector Database: PostgreSQL",
        f"- Database Connection: {env.get('POSTGRES_CONNECTION_STRING', '')}",
    ]


def _package_step(package: str, installed: bool) -> str:
    if installed:
        return f"The MCP package ({package}) has been installed"
    return f"Install the MCP package:\n   {manual_install_command(package)}"


def render_next_steps(
    tools: ToolStatus,
    codex_config: Path,
    package: str,
    *,
    package_installed: bool = True,
) -> list[str]:
    """package_installed が False（npm 失敗）なら手動インストールの手順を出す。"""
    steps: list[str] = []
    if tools.codex:
        steps += [
            "Start Codex with the following command:\n   codex",
            f"The MCP server configuration has been added to: {codex_config}",
            _package_step(package, package_installed),
        ]
    elif tools.npm:
        steps += [
            f"Install Codex first:\n   npm install -g {CODEX_PACKAGE}\n   Documentation: {CODEX_DOCS_URL}",
            "After installing Codex, start it with:\n   codex",
            f"The MCP server configuration is ready at: {codex_config}",
            _package_step(package, package_installed),
        ]
    else:
        steps += [
            f"Install Node.js and npm first:\n   Visit: {NODE_DOWNLOAD_URL}",
            f"After installing Node.js/npm, install Codex:\n   npm install -g {CODEX_PACKAGE}\n"
            f"   Documentation: {CODEX_DOCS_URL}",
            f"Install the MCP package:\n   {manual_install_command(package)}",
            "Start Codex with:\n   codex",
            f"The MCP server configuration is ready at: {codex_config}",
        ]
    steps.append("Codex will automatically load the MCP server on startup")
    return [f"{i}. {s}" for i, s in enumerate(steps, start=1)]


def render_services(settings: SetupSettings, endpoint: PostgresEndpoint) -> list[str]:
    lines = [f"- Ollama: {settings.ollama.host}"]
    if endpoint.external:
        lines += [
            "- PostgreSQL: External connection",
            f"  - Connection URL: {endpoint.url}",
        ]
    else:
        pg = settings.postgres
        lines += [
            f"- PostgreSQL: localhost:{endpoint.port}",
            f"  - Username: {pg.user}",
            f"  - Password: {pg.password}",
            f"  - Database: {pg.database}",
        ]
    return lines
