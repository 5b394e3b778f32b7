from typing import Dict, List, Protocol

from ..types import CallOptions, GenerateResponse, StreamResponse


class LanguageModel(Protocol):
    """
    Protocol every language-model adapter implements.
    Both operations are coroutines; `do_stream` returns once the HTTP stream is open.
    """

    def specification_version(self) -> str:
        return "v2"

    def provider_name(self) -> str:
        ...

    def model_id(self) -> str:
        ...

    def supported_urls(self) -> Dict[str, List[str]]:
        """Regex patterns, keyed by media-type pattern, for URLs the provider fetches itself."""
        return {}

    async def do_generate(self, options: CallOptions) -> GenerateResponse:
        ...

    async def do_stream(self, options: CallOptions) -> StreamResponse:
        ...
