"""PostgreSQL の用意。

2通り:
1. 外部URL（`--postgres-url` / `POSTGRES_URL`）: Docker には触れない
2. Docker コンテナ（paradedb）: 既存コンテナを再利用、無ければ空きポートで作成

フロー（コンテナ）:
1. 起動中のコンテナがあればそのまま使う（公開ポートは `docker port` で読む）
2. 停止中なら `docker start`
3. 無ければ既定ポートから空きを探して `docker run`
4. `pg_isready` が通るまで待つ
"""

from __future__ import annotations

import logging
import socket
import subprocess
from collections.abc import Callable
from dataclasses import dataclass

from mcp_setup.errors import CLOUD_POSTGRES_HINT, SetupError
from mcp_setup.retry import wait_until
from mcp_setup.settings import PostgresSettings, local_connection_string, mask_url

log = logging.getLogger(__name__)

CONTAINER_PORT = 5432


@dataclass
class PostgresEndpoint:
    url: str
    port: int | None = None
    external: bool = False
    container_name: str = ""
    created: bool = False


def _docker(args: list[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["docker", *args],
        check=False,
        capture_output=True,
        text=True,
    )


def container_names(*, all_: bool = False) -> list[str]:
    args = ["ps", "--format", "{{.Names}}"]
    if all_:
        args.insert(1, "-a")
    r = _docker(args)
    if r.returncode != 0:
        raise SetupError(f"docker ps failed: {(r.stderr or '').strip()}")
    return [line.strip() for line in (r.stdout or "").splitlines() if line.strip()]


def published_port(name: str) -> int | None:
    """`docker port <name> 5432` の出力（例: `0.0.0.0:5434`）からホスト側ポートを得る。"""
    r = _docker(["port", name, str(CONTAINER_PORT)])
    if r.returncode != 0:
        return None
    for line in (r.stdout or "").splitlines():
        _, _, port = line.strip().rpartition(":")
        if port.isdigit():
            return int(port)
    return None


def _docker_publishes(port: int) -> bool:
    r = _docker(["ps", "--format", "{{.Ports}}"])
    if r.returncode != 0:
        return False
    return f":{port}->" in (r.stdout or "")


def _local_listening(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(0.5)
        return s.connect_ex(("127.0.0.1", port)) == 0


def port_in_use(port: int) -> bool:
    return _local_listening(port) or _docker_publishes(port)


def find_available_port(
    start: int,
    in_use: Callable[[int], bool] | None = None,
    *,
    limit: int = 100,
    on_busy: Callable[[int], None] | None = None,
) -> int:
    """start から1つずつ増やして空きポートを探す。"""
    busy = in_use or port_in_use
    port = start
    for _ in range(limit):
        if not busy(port):
            return port
        log.warning("port %d is already in use, trying next port", port)
        if on_busy is not None:
            on_busy(port)
        port += 1
    raise SetupError(f"No free port found in {start}-{start + limit - 1}")


def build_postgres_run_cmd(pg: PostgresSettings, port: int) -> list[str]:
    """PostgreSQL コンテナ起動用の docker run コマンドを構築。"""
    return [
        "docker",
        "run",
        "-d",
        "--name",
        pg.container_name,
        "-e",
        f"POSTGRES_USER={pg.user}",
        "-e",
        f"POSTGRES_PASSWORD={pg.password}",
        "-e",
        f"POSTGRES_DB={pg.database}",
        "-p",
        f"{port}:{CONTAINER_PORT}",
        pg.image,
    ]


def is_ready(name: str) -> bool:
    return _docker(["exec", name, "pg_isready"]).returncode == 0


def _wait_ready(
    pg: PostgresSettings,
    on_wait: Callable[[int, int], None] | None,
) -> None:
    wait_until(
        lambda: is_ready(pg.container_name),
        attempts=pg.ready_attempts,
        interval=pg.interval_seconds,
        what="PostgreSQL",
        on_wait=on_wait,
        hint=CLOUD_POSTGRES_HINT,
    )


def ensure_postgres(
    pg: PostgresSettings,
    external_url: str | None = None,
    *,
    on_wait: Callable[[int, int], None] | None = None,
    on_busy: Callable[[int], None] | None = None,
) -> PostgresEndpoint:
    if external_url:
        log.info("using external postgres: %s", mask_url(external_url))
        return PostgresEndpoint(url=external_url, external=True)

    name = pg.container_name

    if name in container_names():
        port = published_port(name) or pg.port
        log.info("postgres container already running: %s (port %d)", name, port)
        return PostgresEndpoint(
            url=local_connection_string(pg, port), port=port, container_name=name
        )

    if name in container_names(all_=True):
        log.info("starting existing postgres container: %s", name)
        r = _docker(["start", name])
        if r.returncode != 0:
            raise SetupError(
                f"docker start {name} failed: {(r.stderr or '').strip()}",
                hint=CLOUD_POSTGRES_HINT,
            )
        _wait_ready(pg, on_wait)
        port = published_port(name) or pg.port
        return PostgresEndpoint(
            url=local_connection_string(pg, port), port=port, container_name=name
        )

    port = find_available_port(pg.port, limit=pg.max_port_probe, on_busy=on_busy)
    if port != pg.port:
        log.info("using port %d instead of %d", port, pg.port)

    cmd = build_postgres_run_cmd(pg, port)
    log.info("creating postgres container %s on port %d (%s)", name, port, pg.image)
    r = subprocess.run(cmd, check=False, capture_output=True, text=True)
    if r.returncode != 0:
        raise SetupError(
            f"docker run failed: {(r.stderr or '').strip()}",
            hint=CLOUD_POSTGRES_HINT,
        )

    _wait_ready(pg, on_wait)
    return PostgresEndpoint(
        url=local_connection_string(pg, port),
        port=port,
        container_name=name,
        created=True,
    )


def check_container_connection(pg: PostgresSettings) -> bool:
    r = _docker(
        ["exec", pg.container_name, "psql", "-U", pg.user, "-d", pg.database, "-c", "SELECT 1;"]
    )
    return r.returncode == 0


def check_external_connection(url: str, *, timeout: int = 15) -> bool:
    try:
        r = subprocess.run(
            ["psql", url, "-c", "SELECT 1;"],
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        log.warning("psql probe failed: %s", type(e).__name__)
        return False
    return r.returncode == 0
