"""外部サービスの起動待ち（固定間隔・回数上限つき）。"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from mcp_setup.errors import SetupTimeoutError

log = logging.getLogger(__name__)


def wait_until(
    check: Callable[[], bool],
    *,
    attempts: int,
    interval: float,
    what: str,
    on_wait: Callable[[int, int], None] | None = None,
    hint: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """check() が True を返すまで最大 attempts 回試す。

    尽きたら SetupTimeoutError。on_wait(attempt, attempts) は sleep 前に呼ぶ。
    """
    for attempt in range(1, attempts + 1):
        if check():
            return
        if attempt == attempts:
            break
        log.debug("waiting for %s (attempt %d/%d)", what, attempt, attempts)
        if on_wait is not None:
            on_wait(attempt, attempts)
        sleep(interval)

    log.error("%s not ready after %d attempts", what, attempts)
    raise SetupTimeoutError(what, attempts, hint=hint)
