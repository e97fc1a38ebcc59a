"""インストール後の動作確認。"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from mcp_setup import postgres
from mcp_setup.ollama import OllamaService
from mcp_setup.postgres import PostgresEndpoint
from mcp_setup.preflight import ToolStatus
from mcp_setup.settings import SetupSettings, mask_url

log = logging.getLogger(__name__)


@dataclass
class CheckResult:
    name: str
    ok: bool
    detail: str = ""
    skipped: bool = False


@dataclass
class VerifyResult:
    checks: list[CheckResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(c.ok or c.skipped for c in self.checks)

    @property
    def failed(self) -> list[CheckResult]:
        return [c for c in self.checks if not c.ok and not c.skipped]


def verify_setup(
    settings: SetupSettings,
    endpoint: PostgresEndpoint,
    tools: ToolStatus,
    *,
    service: OllamaService | None = None,
) -> VerifyResult:
    svc = service or OllamaService(host=settings.ollama.host, model=settings.ollama.model)
    result = VerifyResult()

    running = svc.is_running()
    result.checks.append(CheckResult("Ollama is responding", running, svc.host))
    if not running:
        # 以降は Ollama 前提なので打ち切る
        return result

    model = settings.ollama.model
    result.checks.append(
        CheckResult(f"Embedding model '{model}' is available", svc.has_model(model))
    )
    if not result.checks[-1].ok:
        return result

    if endpoint.external:
        if not tools.psql:
            result.checks.append(
                CheckResult(
                    "External PostgreSQL connection",
                    False,
                    "psql not available - skipping connection test",
                    skipped=True,
                )
            )
        else:
            ok = postgres.check_external_connection(endpoint.url)
            detail = "" if ok else f"Please verify your PostgreSQL URL: {mask_url(endpoint.url)}"
            result.checks.append(CheckResult("External PostgreSQL connection", ok, detail))
    else:
        ready = postgres.is_ready(settings.postgres.container_name)
        result.checks.append(CheckResult("PostgreSQL is ready", ready))
        if ready:
            result.checks.append(
                CheckResult(
                    "Database connection",
                    postgres.check_container_connection(settings.postgres),
                )
            )

    for c in result.checks:
        log.info("verify: %s ok=%s skipped=%s", c.name, c.ok, c.skipped)
    return result
