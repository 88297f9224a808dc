"""Unified client facade for Anthropic and Gemini.

``LLMClient`` uses a blocking ``httpx.Client``; ``AsyncLLMClient`` is its
``httpx.AsyncClient`` counterpart with the same methods as coroutines.  The
provider is chosen by name at construction time.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator, Iterator
from typing import Any

import httpx

from llmrelay.config import API_KEY_ENV, ClientSettings, LLMConfig, ProfileSpec
from llmrelay.errors import DecodeError, TransportError
from llmrelay.providers import PROVIDERS, Conversation, ProviderAdapter
from llmrelay.stream.driver import Sink, StreamDriver
from llmrelay.types import Fragment, FragmentKind, RequestSpec, StreamSummary

_logger = logging.getLogger(__name__)

# Default used by from_env(); Anthropic rejects requests without max_tokens
_DEFAULT_MAX_TOKENS = 4000


def create_adapter(provider: str, settings: ClientSettings | None = None) -> ProviderAdapter:
    """Instantiate the adapter registered under *provider*."""
    try:
        adapter_cls = PROVIDERS[provider.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown provider '{provider}'. Valid: {', '.join(sorted(PROVIDERS))}"
        ) from None
    return adapter_cls(settings)


def _config_from_env(
    provider: str,
    model: str,
    streaming: bool,
    tools: list[dict[str, Any]] | None,
) -> LLMConfig:
    env_name = API_KEY_ENV.get(provider.lower())
    if env_name is None:
        raise ValueError(f"Unknown provider '{provider}'")
    api_key = os.environ.get(env_name)
    if not api_key:
        raise ValueError(f"Missing {env_name}")
    return LLMConfig(
        api_key=api_key,
        model=model,
        max_tokens=_DEFAULT_MAX_TOKENS,
        streaming=streaming,
        tools=tools,
    )


def _text_of(fragments: list[Fragment]) -> str:
    return "".join(f.text for f in fragments if f.kind is FragmentKind.TEXT)


class FragmentStream:
    """Lazy iterator over the fragments of one streaming call.

    The underlying response is released when iteration ends or on
    :meth:`close`.  :attr:`summary` reflects what has been decoded so far.
    """

    def __init__(self, fragments: Iterator[Fragment], driver: StreamDriver) -> None:
        self._fragments = fragments
        self._driver = driver

    def __iter__(self) -> FragmentStream:
        return self

    def __next__(self) -> Fragment:
        return next(self._fragments)

    def __enter__(self) -> FragmentStream:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._fragments.close()  # type: ignore[attr-defined]

    @property
    def summary(self) -> StreamSummary:
        return self._driver.summary()


class AsyncFragmentStream:
    """Async counterpart of :class:`FragmentStream`."""

    def __init__(self, fragments: AsyncIterator[Fragment], driver: StreamDriver) -> None:
        self._fragments = fragments
        self._driver = driver

    def __aiter__(self) -> AsyncFragmentStream:
        return self

    async def __anext__(self) -> Fragment:
        return await self._fragments.__anext__()

    async def __aenter__(self) -> AsyncFragmentStream:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._fragments.aclose()  # type: ignore[attr-defined]

    @property
    def summary(self) -> StreamSummary:
        return self._driver.summary()


class _ClientBase:
    """Provider selection and config handling shared by both clients."""

    def __init__(
        self,
        provider: str,
        config: LLMConfig,
        settings: ClientSettings | None = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.adapter = create_adapter(provider, self.settings)
        self.provider = self.adapter.name
        self.config = config

    def update_config(self, config: LLMConfig) -> None:
        """Replace the request configuration for subsequent calls."""
        self.config = config

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.settings.timeout, connect=30, read=300)

    def _request(self, content: Conversation, *, stream: bool) -> RequestSpec:
        request = self.adapter.build_request(content, self.config, stream=stream)
        _logger.debug(
            "%s %s (provider=%s, stream=%s)",
            request.method, request.url, self.provider, stream,
        )
        return request


# ---------------------------------------------------------------------------
# Blocking client
# ---------------------------------------------------------------------------

class LLMClient(_ClientBase):
    """Blocking client for Anthropic and Gemini."""

    def __init__(
        self,
        provider: str,
        config: LLMConfig,
        settings: ClientSettings | None = None,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        super().__init__(provider, config, settings)
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=self._timeout())

    @classmethod
    def from_env(
        cls,
        provider: str,
        model: str,
        *,
        streaming: bool = False,
        tools: list[dict[str, Any]] | None = None,
        settings: ClientSettings | None = None,
    ) -> LLMClient:
        """Build a client whose API key comes from the provider's env var."""
        return cls(provider, _config_from_env(provider, model, streaming, tools), settings)

    @classmethod
    def from_profile(cls, profile: ProfileSpec) -> LLMClient:
        return cls(profile.provider, profile.to_config(), profile.to_settings())

    # ------------------------------------------------------------------
    # Buffered calls
    # ------------------------------------------------------------------

    def send_raw(self, content: Conversation) -> dict[str, Any]:
        """Send one buffered request and return the decoded JSON body."""
        request = self._request(content, stream=False)
        try:
            response = self._http.request(
                request.method,
                request.url,
                json=request.json,
                headers=request.headers,
                params=request.params,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to send request: {e}") from e

        if not response.is_success:
            raise self.adapter.parse_error(response.status_code, response.text)
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON response: {e}") from e

    def send(self, content: Conversation) -> str:
        """Send one buffered request and return the response text."""
        return self.adapter.parse_response(self.send_raw(content))

    # ------------------------------------------------------------------
    # Streaming calls
    # ------------------------------------------------------------------

    def _fragments(self, content: Conversation, driver: StreamDriver) -> Iterator[Fragment]:
        request = self._request(content, stream=True)
        try:
            with self._http.stream(
                request.method,
                request.url,
                json=request.json,
                headers=request.headers,
                params=request.params,
            ) as response:
                if not response.is_success:
                    body = response.read().decode(errors="replace")
                    raise self.adapter.parse_error(response.status_code, body)
                yield from driver.iter_fragments(response.iter_bytes())
        except httpx.HTTPError as e:
            raise TransportError(f"Stream failed: {e}") from e

    def iter_stream(self, content: Conversation) -> FragmentStream:
        """Stream a response as a lazy iterator of fragments."""
        driver = self.adapter.new_driver()
        return FragmentStream(self._fragments(content, driver), driver)

    def stream(self, content: Conversation, sink: Sink) -> StreamSummary:
        """Stream a response, invoking *sink* once per fragment."""
        driver = self.adapter.new_driver(sink)
        for _ in self._fragments(content, driver):
            pass
        return driver.summary()

    def complete(self, content: Conversation, sink: Sink | None = None) -> str:
        """Return the response text, streaming when ``config.streaming`` is set."""
        if not self.config.streaming:
            text = self.send(content)
            if sink is not None:
                sink(Fragment.of_text(text))
            return text
        collected: list[Fragment] = []

        def collect(fragment: Fragment) -> None:
            collected.append(fragment)
            if sink is not None:
                sink(fragment)

        self.stream(content, collect)
        return _text_of(collected)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> LLMClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Async client
# ---------------------------------------------------------------------------

class AsyncLLMClient(_ClientBase):
    """Async client for Anthropic and Gemini."""

    def __init__(
        self,
        provider: str,
        config: LLMConfig,
        settings: ClientSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(provider, config, settings)
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self._timeout())

    @classmethod
    def from_env(
        cls,
        provider: str,
        model: str,
        *,
        streaming: bool = False,
        tools: list[dict[str, Any]] | None = None,
        settings: ClientSettings | None = None,
    ) -> AsyncLLMClient:
        return cls(provider, _config_from_env(provider, model, streaming, tools), settings)

    @classmethod
    def from_profile(cls, profile: ProfileSpec) -> AsyncLLMClient:
        return cls(profile.provider, profile.to_config(), profile.to_settings())

    async def send_raw(self, content: Conversation) -> dict[str, Any]:
        request = self._request(content, stream=False)
        try:
            response = await self._http.request(
                request.method,
                request.url,
                json=request.json,
                headers=request.headers,
                params=request.params,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to send request: {e}") from e

        if not response.is_success:
            raise self.adapter.parse_error(response.status_code, response.text)
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON response: {e}") from e

    async def send(self, content: Conversation) -> str:
        return self.adapter.parse_response(await self.send_raw(content))

    async def _fragments(
        self, content: Conversation, driver: StreamDriver,
    ) -> AsyncIterator[Fragment]:
        request = self._request(content, stream=True)
        try:
            async with self._http.stream(
                request.method,
                request.url,
                json=request.json,
                headers=request.headers,
                params=request.params,
            ) as response:
                if not response.is_success:
                    body = (await response.aread()).decode(errors="replace")
                    raise self.adapter.parse_error(response.status_code, body)
                async for fragment in driver.aiter_fragments(response.aiter_bytes()):
                    yield fragment
        except httpx.HTTPError as e:
            raise TransportError(f"Stream failed: {e}") from e

    def iter_stream(self, content: Conversation) -> AsyncFragmentStream:
        driver = self.adapter.new_driver()
        return AsyncFragmentStream(self._fragments(content, driver), driver)

    async def stream(self, content: Conversation, sink: Sink) -> StreamSummary:
        driver = self.adapter.new_driver(sink)
        async for _ in self._fragments(content, driver):
            pass
        return driver.summary()

    async def complete(self, content: Conversation, sink: Sink | None = None) -> str:
        if not self.config.streaming:
            text = await self.send(content)
            if sink is not None:
                sink(Fragment.of_text(text))
            return text
        collected: list[Fragment] = []

        def collect(fragment: Fragment) -> None:
            collected.append(fragment)
            if sink is not None:
                sink(fragment)

        await self.stream(content, collect)
        return _text_of(collected)

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> AsyncLLMClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
