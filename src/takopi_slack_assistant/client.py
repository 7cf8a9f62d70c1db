from __future__ import annotations

from typing import Any, Protocol

import anyio
import httpx

from takopi.api import get_logger

logger = get_logger(__name__)


class SlackApiError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        error: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.status_code = status_code


class AssistantClient(Protocol):
    async def chat_post_message(self, **params: Any) -> dict[str, Any]: ...

    async def assistant_threads_set_status(
        self, *, channel_id: str, thread_ts: str, status: str
    ) -> dict[str, Any]: ...

    async def assistant_threads_set_suggested_prompts(
        self,
        *,
        channel_id: str,
        thread_ts: str,
        prompts: list[dict[str, str]],
        title: str | None = None,
    ) -> dict[str, Any]: ...

    async def assistant_threads_set_title(
        self, *, channel_id: str, thread_ts: str, title: str
    ) -> dict[str, Any]: ...


class SlackClient:
    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://slack.com/api",
        timeout_s: float = 30.0,
    ) -> None:
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout_s,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return await _request_with_client(
            self._client,
            method,
            endpoint,
            params=params,
            json=json,
        )

    async def chat_post_message(self, **params: Any) -> dict[str, Any]:
        if not params.get("channel"):
            raise SlackApiError("chat.postMessage requires a channel")
        return await self._request("POST", "/chat.postMessage", json=params)

    async def chat_update(self, **params: Any) -> dict[str, Any]:
        if not params.get("channel") or not params.get("ts"):
            raise SlackApiError("chat.update requires channel and ts")
        return await self._request("POST", "/chat.update", json=params)

    async def conversations_replies(
        self,
        *,
        channel: str,
        ts: str,
        limit: int | None = None,
        include_all_metadata: bool | None = None,
    ) -> dict[str, Any]:
        query: dict[str, Any] = {"channel": channel, "ts": ts}
        if limit is not None:
            query["limit"] = limit
        if include_all_metadata is not None:
            query["include_all_metadata"] = "true" if include_all_metadata else "false"
        return await self._request("GET", "/conversations.replies", params=query)

    async def assistant_threads_set_status(
        self, *, channel_id: str, thread_ts: str, status: str
    ) -> dict[str, Any]:
        data = {"channel_id": channel_id, "thread_ts": thread_ts, "status": status}
        return await self._request("POST", "/assistant.threads.setStatus", json=data)

    async def assistant_threads_set_suggested_prompts(
        self,
        *,
        channel_id: str,
        thread_ts: str,
        prompts: list[dict[str, str]],
        title: str | None = None,
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "channel_id": channel_id,
            "thread_ts": thread_ts,
            "prompts": prompts,
        }
        if title is not None:
            data["title"] = title
        return await self._request(
            "POST", "/assistant.threads.setSuggestedPrompts", json=data
        )

    async def assistant_threads_set_title(
        self, *, channel_id: str, thread_ts: str, title: str
    ) -> dict[str, Any]:
        data = {"channel_id": channel_id, "thread_ts": thread_ts, "title": title}
        return await self._request("POST", "/assistant.threads.setTitle", json=data)


async def _request_with_client(
    client: httpx.AsyncClient,
    method: str,
    endpoint: str,
    *,
    params: dict[str, Any] | None = None,
    json: dict[str, Any] | None = None,
) -> dict[str, Any]:
    while True:
        try:
            response = await client.request(
                method, endpoint, params=params, json=json
            )
        except httpx.HTTPError as exc:
            logger.warning("slack.network_error", endpoint=endpoint, error=str(exc))
            raise SlackApiError("Slack request failed") from exc

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            try:
                delay = int(retry_after) if retry_after is not None else 1
            except ValueError:
                delay = 1
            logger.info("slack.rate_limited", endpoint=endpoint, retry_after=delay)
            await anyio.sleep(delay)
            continue

        if response.status_code >= 400:
            raise SlackApiError(
                f"Slack HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise SlackApiError("Slack response was not JSON") from exc

        if payload.get("ok") is not True:
            error = payload.get("error")
            raise SlackApiError(
                f"Slack API error: {error}",
                error=error,
                status_code=response.status_code,
            )

        return payload
