"""Provider-agnostic API client and summarization orchestrator."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

import httpx

from ..constants import (
    CHUNK_MAX_OUTPUT_TOKENS,
    CHUNK_MIN_TARGET_WORDS,
    CHUNK_TARGET_DIVISOR_CAP,
    LEGACY_API_URL,
    LEGACY_MAX_TOKENS,
    LEGACY_MODEL,
    RETRY_ATTEMPTS,
    RETRY_DELAY_BASE,
    TEST_KEY_TIMEOUT,
    TIMEOUT,
    summary_word_count,
)
from ..errors import (
    ApiCallFailed,
    InvalidResponseFormat,
    NetworkError,
    NoApiKey,
    RequestCancelled,
    RequestTimeout,
    SummarizerError,
)
from ..providers.adapters import extract_error_message, get_adapter
from ..providers.registry import ProviderDescriptor, get_provider, resolve_model
from ..settings import Settings, SettingsStore
from .chunking import plan_chunks, should_chunk
from .prompts import PromptContext, build_chunk_prompt, build_synthesis_prompt, get_summary_prompt

logger = logging.getLogger(__name__)

KEY_TEST_PROMPT = "Test"
KEY_TEST_MAX_TOKENS = 10


@dataclass
class KeyTestResult:
    """Outcome of an interactive API key check."""

    ok: bool
    error_message: str | None = None


class _PendingRequest:
    """Cancellation handle for the one HTTP call a client has in flight."""

    def __init__(self, task: asyncio.Future) -> None:
        self.task = task
        self.aborted = False

    def abort(self) -> None:
        if not self.task.done():
            self.aborted = True
            self.task.cancel()


class ApiClient:
    """
    Summarizes text through the configured LLM provider.

    One client issues at most one HTTP call at a time; callers must not
    overlap requests on the same instance. ``cancel_request`` aborts the
    call in flight.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        http: httpx.AsyncClient | None = None,
        *,
        timeout: float = TIMEOUT,
        retry_attempts: int = RETRY_ATTEMPTS,
        retry_delay_base: float = RETRY_DELAY_BASE,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.settings_store = settings_store
        self.timeout = timeout
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay_base = retry_delay_base
        self._sleep = sleep
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._pending: _PendingRequest | None = None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------
    # Public operations
    # ------------------------------
    async def call_api(self, content: str, context: PromptContext | None = None) -> str:
        """
        Summarize ``content`` with the stored settings.

        Content larger than the model's budget is summarized section by
        section, then merged with one synthesis request.

        Raises:
            NoApiKey: No key is configured
            SummarizerError: Any provider or transport failure
        """
        settings = self.settings_store.load()
        if not settings.api_key:
            raise NoApiKey()

        provider = get_provider(settings.provider)
        if provider is None:
            logger.info("Unknown provider %r, using legacy OpenAI path", settings.provider)
            return await self.legacy_openai_call(
                content, settings.api_key, settings.summary_length, settings.summary_format
            )

        model = resolve_model(provider, settings.model)
        if model is None:
            raise ApiCallFailed(f"No models available for provider: {provider.id}")
        if model != settings.model:
            logger.info("Model %r not offered by %s, switching to %r", settings.model, provider.id, model)
            settings = settings.model_copy(update={"model": model})
            self.settings_store.save({"model": model})

        max_tokens = provider.max_tokens_for(model)
        if should_chunk(content, max_tokens):
            return await self.summarize_with_chunking(content, settings, provider, context)

        prompt = get_summary_prompt(content, settings.summary_length, settings.summary_format, context)
        return await self.request_summary(prompt, settings, provider, max_tokens)

    async def summarize_with_chunking(
        self,
        content: str,
        settings: Settings,
        provider: ProviderDescriptor,
        context: PromptContext | None = None,
    ) -> str:
        """Summarize each chunk in turn, then synthesize the section summaries."""
        max_tokens = provider.max_tokens_for(settings.model)
        chunks = plan_chunks(content, max_tokens)

        if len(chunks) <= 1:
            prompt = get_summary_prompt(content, settings.summary_length, settings.summary_format, context)
            return await self.request_summary(prompt, settings, provider, max_tokens)

        target_words = max(
            CHUNK_MIN_TARGET_WORDS,
            round(summary_word_count(settings.summary_length) / min(len(chunks), CHUNK_TARGET_DIVISOR_CAP)),
        )
        chunk_max_tokens = min(CHUNK_MAX_OUTPUT_TOKENS, max_tokens)
        logger.debug("Summarizing %d chunks, ~%d words each", len(chunks), target_words)

        # Sequential on purpose: one outbound request at a time
        chunk_summaries = []
        for index, chunk in enumerate(chunks, start=1):
            prompt = build_chunk_prompt(
                chunk, index, len(chunks), target_words, settings.summary_format, context
            )
            summary = await self.request_summary(prompt, settings, provider, chunk_max_tokens)
            chunk_summaries.append(summary.strip())

        combined = "\n\n".join(summary for summary in chunk_summaries if summary)
        synthesis_prompt = build_synthesis_prompt(
            combined, settings.summary_length, settings.summary_format, context
        )
        return await self.request_summary(synthesis_prompt, settings, provider, max_tokens)

    async def request_summary(
        self,
        prompt: str,
        settings: Settings,
        provider: ProviderDescriptor,
        max_tokens: int | None = None,
    ) -> str:
        """
        Send one prompt to the provider with exponential backoff retry.

        Timeouts and cancellations are raised immediately; every other
        failure is retried ``retry_attempts - 1`` times.
        """
        model = settings.model
        max_tokens = max_tokens or provider.max_tokens_for(model)
        adapter = get_adapter(provider.id)
        body = adapter.build_request(prompt, model, max_tokens, provider)
        url = adapter.api_url(provider, model, settings.api_key)
        headers = adapter.request_headers(settings.api_key)

        last_error: SummarizerError | None = None
        for attempt in range(self.retry_attempts):
            try:
                data = await self._post_json(url, headers, body, self.timeout)
                return adapter.parse_response(data)
            except (RequestTimeout, RequestCancelled):
                raise
            except SummarizerError as e:
                last_error = e
                if attempt < self.retry_attempts - 1:
                    delay = self.retry_delay_base * 2**attempt
                    logger.warning(
                        "%s request failed (attempt %d/%d): %s; retrying in %.1fs",
                        provider.id,
                        attempt + 1,
                        self.retry_attempts,
                        e,
                        delay,
                    )
                    await self._sleep(delay)

        if last_error is not None:
            raise last_error
        raise ApiCallFailed()

    def cancel_request(self) -> None:
        """Abort the HTTP call in flight, if any. Safe to call repeatedly."""
        pending, self._pending = self._pending, None
        if pending is not None:
            pending.abort()

    async def test_api_key(self, provider_id: str, api_key: str, model: str | None = None) -> KeyTestResult:
        """Send a minimal request to check a key. Never raises."""
        provider = get_provider(provider_id)
        if provider is None:
            return KeyTestResult(ok=False, error_message=f"Unsupported provider: {provider_id}")

        resolved = resolve_model(provider, model)
        if resolved is None:
            return KeyTestResult(ok=False, error_message=f"No models available for provider: {provider_id}")

        try:
            adapter = get_adapter(provider.id)
            body = adapter.build_request(KEY_TEST_PROMPT, resolved, KEY_TEST_MAX_TOKENS, provider)
            response = await asyncio.wait_for(
                self._http.post(
                    adapter.api_url(provider, resolved, api_key),
                    headers=adapter.request_headers(api_key),
                    json=body,
                ),
                TEST_KEY_TIMEOUT,
            )
        except asyncio.TimeoutError:
            return KeyTestResult(ok=False, error_message="API key test timed out.")
        except Exception as e:
            logger.debug("API key test failed: %s", e)
            return KeyTestResult(ok=False, error_message=str(e) or "API key test failed.")

        if not response.is_success:
            message = extract_error_message(_safe_json(response))
            return KeyTestResult(
                ok=False, error_message=message or f"API request failed: {response.status_code}"
            )
        return KeyTestResult(ok=True)

    async def legacy_openai_call(
        self,
        content: str,
        api_key: str,
        summary_length: str = "STANDARD",
        summary_format: str = "paragraph",
    ) -> str:
        """Single-attempt call used by installs that predate provider selection."""
        prompt = get_summary_prompt(content, summary_length, summary_format)
        body = {
            "model": LEGACY_MODEL,
            "max_completion_tokens": LEGACY_MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {api_key}"}
        data = await self._post_json(LEGACY_API_URL, headers, body, self.timeout)

        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], Mapping) else None
            if isinstance(message, Mapping) and isinstance(message.get("content"), str):
                return message["content"]
        raise InvalidResponseFormat("No response from OpenAI API")

    # ------------------------------
    # HTTP helpers
    # ------------------------------
    async def _post_json(
        self,
        url: str,
        headers: Mapping[str, str],
        body: Mapping[str, Any],
        timeout: float,
    ) -> Mapping[str, Any]:
        response = await self._send(url, headers, body, timeout)

        if not response.is_success:
            message = extract_error_message(_safe_json(response))
            raise ApiCallFailed(message or f"API request failed: {response.status_code}")

        data = _safe_json(response)
        if not isinstance(data, Mapping):
            raise InvalidResponseFormat()
        return data

    async def _send(
        self,
        url: str,
        headers: Mapping[str, str],
        body: Mapping[str, Any],
        timeout: float,
    ) -> httpx.Response:
        task = asyncio.ensure_future(self._http.post(url, headers=dict(headers), json=body))
        pending = _PendingRequest(task)
        self._pending = pending
        try:
            return await asyncio.wait_for(task, timeout)
        except asyncio.TimeoutError:
            raise RequestTimeout() from None
        except httpx.TimeoutException as e:
            raise RequestTimeout() from e
        except httpx.TransportError as e:
            logger.debug("Transport error calling %s: %s", httpx.URL(url).host, e)
            raise NetworkError() from e
        except httpx.InvalidURL as e:
            raise ApiCallFailed(f"Invalid request URL: {e}") from e
        except httpx.HTTPError as e:
            logger.debug("HTTP error calling provider: %s", e)
            raise NetworkError() from e
        except asyncio.CancelledError:
            if pending.aborted:
                raise RequestCancelled() from None
            raise
        finally:
            if self._pending is pending:
                self._pending = None


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
