from __future__ import annotations

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

VEND_PATH = "/vend/"
READY_PATH = "/ready"


class HTTPBuildNumberClient:
    """
    Клиент сервиса выдачи номеров: GET /vend/<pipeline> возвращает номер текстом,
    GET /ready отвечает 204, когда сервис готов.
    """

    def __init__(self, base_url: str, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def next_build_number(self, pipeline: str, timeout: Optional[float] = None) -> str:
        client = await self._get_client()
        response = await client.get(VEND_PATH + pipeline, timeout=timeout or self.timeout)
        response.raise_for_status()
        return response.text.strip()

    async def ready(self) -> bool:
        client = await self._get_client()
        try:
            response = await client.get(READY_PATH)
        except httpx.HTTPError as e:
            logger.warning("build number service %s is not reachable: %s", self.base_url, e)
            return False
        return response.status_code == 204
