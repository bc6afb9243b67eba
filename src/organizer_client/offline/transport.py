"""
httpx transport that routes every request through the offline cache controller.
"""

import httpx

from organizer_client.offline.controller import OfflineCacheController


class OfflineCacheTransport(httpx.AsyncBaseTransport):
    """
    Plug the offline cache into an ``httpx.AsyncClient``.

    Example:
        ```python
        transport = OfflineCacheTransport(controller)
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.get("http://localhost:8000/api/grades")
        ```
    """

    def __init__(self, controller: OfflineCacheController):
        self.controller = controller

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.controller.dispatch(request)

    async def aclose(self) -> None:
        await self.controller.aclose()
