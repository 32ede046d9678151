"""Single-batch subtitle translation through the translation backend."""

import logging
from typing import Any, List, Optional, Protocol, Sequence

import httpx

from common.config import settings
from common.string_utils import truncate_for_logging
from common.subtitle_parser import (
    Node,
    TranslationCountMismatchError,
    extract_text_for_translation,
    nodes_to_trans_nodes,
)
from translator.schemas import Credentials, TranslateRequest, TranslationOptions

logger = logging.getLogger(__name__)

# Comma glyphs stripped from the end of a batch (ASCII and full-width)
TRAILING_COMMAS = (",", "，")


class BatchTranslationError(Exception):
    """A single batch request failed or the backend reported an error."""


class RateLimitError(Exception):
    """
    The backend throttled the request.

    Retrying with the same credentials will not help; the user has to
    supply their own key.
    """


class RedirectSignal(RateLimitError):
    """The backend redirected the request to the purchase flow."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"redirected to {url}")


class TranslationBackend(Protocol):
    """The external translate capability."""

    async def translate(
        self, request: TranslateRequest, use_google: bool = False
    ) -> List[str]:
        """Return translations aligned 1:1 with ``request.sentences``."""
        ...


class HttpTranslationBackend:
    """Translation backend reached over HTTP with an async httpx client."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        enable_shop: Optional[bool] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the backend client.

        Args:
            base_url: Backend root URL (defaults to settings.translate_api_base_url)
            timeout: Request timeout in seconds (defaults to settings)
            enable_shop: Treat redirects as the purchase flow instead of a
                rate limit (defaults to settings.enable_shop)
            client: Preconfigured client, mainly for tests
        """
        self.enable_shop = settings.enable_shop if enable_shop is None else enable_shop
        self.client = client or httpx.AsyncClient(
            base_url=base_url or settings.translate_api_base_url,
            timeout=timeout or settings.translate_request_timeout,
            follow_redirects=True,
        )

    async def __aenter__(self) -> "HttpTranslationBackend":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def translate(
        self, request: TranslateRequest, use_google: bool = False
    ) -> List[str]:
        """
        Post one batch to the backend.

        Args:
            request: Sentences and target language of the batch
            use_google: Use the alternate provider endpoint

        Returns:
            Translated sentences

        Raises:
            RedirectSignal: Redirected to the purchase flow (shop enabled)
            RateLimitError: Redirected while the shop is disabled
            BatchTranslationError: Network failure, error payload or
                unexpected response
        """
        path = (
            settings.translate_google_api_path
            if use_google
            else settings.translate_api_path
        )

        try:
            response = await self.client.post(path, json=request.to_payload())
        except httpx.HTTPError as e:
            raise BatchTranslationError(f"Request to {path} failed: {e}") from e

        if response.history:
            logger.warning(f"⚠️  Translation request redirected to {response.url}")
            if self.enable_shop:
                raise RedirectSignal(str(response.url))
            raise RateLimitError("rate limited. Please enter your OpenAI key")

        try:
            data = response.json()
        except ValueError as e:
            raise BatchTranslationError(
                f"Invalid response from translation backend (HTTP {response.status_code}): "
                f"{truncate_for_logging(response.text, max_length=200, edge_length=100)}"
            ) from e

        if isinstance(data, dict) and data.get("errorMessage"):
            raise BatchTranslationError(str(data["errorMessage"]))

        if response.is_error:
            raise BatchTranslationError(
                f"Translation backend returned HTTP {response.status_code}"
            )

        return self._extract_translations(data)

    @staticmethod
    def _extract_translations(data: Any) -> List[str]:
        translations = data.get("translations") if isinstance(data, dict) else data
        if not isinstance(translations, list) or not all(
            isinstance(item, str) for item in translations
        ):
            raise BatchTranslationError(
                f"Expected a list of translated strings, got {type(translations).__name__}"
            )
        return translations


def prepare_sentences(nodes: Sequence[Node]) -> List[str]:
    """
    Extract the sentences to send for one batch.

    When the batch boundary splits a sentence, the last caption ends with a
    comma that the upstream translator turns into an extra segment, so one
    trailing comma is dropped from the last sentence.
    """
    sentences = extract_text_for_translation(nodes)
    if sentences and sentences[-1].endswith(TRAILING_COMMAS):
        sentences[-1] = sentences[-1][:-1]
    return sentences


async def translate_batch(
    nodes: Sequence[Node],
    lang: str,
    backend: TranslationBackend,
    credentials: Optional[Credentials] = None,
    options: Optional[TranslationOptions] = None,
) -> List[Node]:
    """
    Translate one batch of nodes with a single backend round trip.

    No retry happens here; see ``translator.translation_orchestrator``.

    Args:
        nodes: Nodes of the batch, in order
        lang: Target language
        backend: Translate capability
        credentials: Optional user credentials
        options: Optional prompt template and provider selection

    Returns:
        Translated nodes with the same ``pos`` and ``time_range``

    Raises:
        RateLimitError: Backend throttled or redirected the request
        BatchTranslationError: Any other failure of the batch
    """
    if not nodes:
        return []

    credentials = credentials or Credentials()
    options = options or TranslationOptions()

    request = TranslateRequest(
        target_lang=lang,
        sentences=prepare_sentences(nodes),
        api_key=credentials.api_key,
        prompt_template=options.prompt_template,
        base_host=credentials.custom_host,
    )

    logger.info(
        f"Translating {len(nodes)} nodes (pos {nodes[0].pos}-{nodes[-1].pos}) "
        f"to {lang} via {'google' if options.use_google else 'primary'} provider"
    )
    translations = await backend.translate(request, use_google=options.use_google)

    try:
        return nodes_to_trans_nodes(nodes, translations)
    except TranslationCountMismatchError as e:
        raise BatchTranslationError(str(e)) from e
