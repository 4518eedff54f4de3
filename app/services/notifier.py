import asyncio
import logging
from datetime import datetime, timezone

import httpx

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """
    Avisos de seguridad (2FA activado/desactivado) a un webhook externo.

    Fire-and-forget: se llama desde BackgroundTasks, reintenta con backoff y
    si al final no puede entregar solo lo loguea. Nunca afecta al flujo de auth.
    """

    def __init__(
        self,
        url: str | None,
        max_retries: int = 3,
        timeout: float = 5.0,
        backoff: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.max_retries = max_retries
        self.timeout = timeout
        self.backoff = backoff
        self._transport = transport

    async def notify(self, event: str, principal_id: str, **data) -> bool:
        if not self.url:
            logger.debug("notification %s for %s skipped: no webhook configured", event, principal_id)
            return False

        payload = {
            "event": event,
            "principal_id": principal_id,
            "at": datetime.now(tz=timezone.utc).isoformat(),
            **data,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as cx:
            for attempt in range(1, self.max_retries + 1):
                try:
                    r = await cx.post(self.url, json=payload)
                    if r.status_code < 500:
                        r.raise_for_status()
                        return True
                    logger.warning("notification %s attempt %d: HTTP %d", event, attempt, r.status_code)
                except httpx.HTTPStatusError as exc:
                    # 4xx: reintentar no sirve
                    logger.error("notification %s rejected: HTTP %d", event, exc.response.status_code)
                    return False
                except httpx.HTTPError as exc:
                    logger.warning("notification %s attempt %d failed: %s", event, attempt, exc)
                if attempt < self.max_retries:
                    await asyncio.sleep(self.backoff * 2 ** (attempt - 1))

        logger.error("notification %s for %s dropped after %d attempts", event, principal_id, self.max_retries)
        return False
