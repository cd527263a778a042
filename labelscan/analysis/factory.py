from typing import ClassVar

from labelscan.analysis.analyzer import LlmAnalyzer
from labelscan.analysis.example_client_adapter import ExampleClientAdapter
from labelscan.analysis.openai_client_adapter import OpenAIClientAdapter
from labelscan.config.settings import Settings
from labelscan.stages.base import BaseAnalyzer
from labelscan.stages.http_adapters import HttpAnalyzer
from labelscan.stages.http_client import RemoteApiClient


class AnalyzerFactory:
    """Creates the analyzer selected by ``analysis_provider``."""

    OPENAI_COMPATIBLE_BASE_URLS: ClassVar[dict[str, str]] = {
        "openrouter": "https://openrouter.ai/api/v1",
        "groq": "https://api.groq.com/openai/v1",
        "together": "https://api.together.xyz/v1",
        "deepseek": "https://api.deepseek.com/v1",
        "ollama": "http://localhost:11434/v1",
    }

    @classmethod
    def create(cls, settings: Settings, api_client: RemoteApiClient) -> BaseAnalyzer:
        provider = settings.analysis_provider.lower()
        if provider == "remote":
            return HttpAnalyzer(api_client)
        if provider == "example":
            return LlmAnalyzer(client=ExampleClientAdapter(), model="example")
        client = OpenAIClientAdapter(
            api_key=settings.analysis_api_key,
            timeout_seconds=settings.analysis_timeout_seconds,
            base_url=cls._resolve_base_url(provider, settings),
        )
        return LlmAnalyzer(
            client=client,
            model=settings.analysis_model_name,
            temperature=settings.analysis_temperature,
        )

    @classmethod
    def _resolve_base_url(cls, provider: str, settings: Settings) -> str | None:
        if provider == "openai":
            return None
        if provider == "openai_compatible":
            url = settings.analysis_base_url.strip()
            if not url:
                raise ValueError(
                    "analysis_base_url is required for analysis_provider=openai_compatible"
                )
            return url
        default_base_url = cls.OPENAI_COMPATIBLE_BASE_URLS.get(provider)
        if default_base_url is not None:
            return settings.analysis_base_url.strip() or default_base_url
        supported = [
            "remote",
            "example",
            "openai",
            "openai_compatible",
            *sorted(cls.OPENAI_COMPATIBLE_BASE_URLS),
        ]
        raise ValueError(
            f"Unknown analysis provider '{provider}'. Choose from: {supported}"
        )
