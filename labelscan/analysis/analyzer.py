"""AI-powered ingredient analyzer."""

import json
from pathlib import Path

from labelscan.analysis.client_base import BaseAnalysisClient
from labelscan.analysis.models import Analysis
from labelscan.analysis.prompt_loader import load_json_schema, load_prompt_template
from labelscan.analysis.response import parse_analysis_response
from labelscan.logging.logger import Log
from labelscan.stages.base import BaseAnalyzer

DEFAULT_SYSTEM_PROMPT = (
    "You are a cosmetic and food safety expert. You answer with JSON only."
)


class LlmAnalyzer(BaseAnalyzer):
    """Analyzes extracted label text by prompting a chat model directly."""

    def __init__(
        self,
        *,
        client: BaseAnalysisClient,
        model: str,
        temperature: float = 0.0,
        prompt_template_path: Path | None = None,
        json_schema_path: Path | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = max(0.0, min(1.0, temperature))
        self._system_prompt = system_prompt
        self._prompt_template = load_prompt_template(prompt_template_path)
        self._json_schema = load_json_schema(json_schema_path)
        self._json_schema_dict = json.loads(self._json_schema)

    async def analyze(self, text: str) -> Analysis:
        prompt = self._build_prompt(text)
        Log.debug(f"Analysis prompt:\n{prompt}")

        raw_response = await self._client.create_chat_completion(
            model=self._model,
            temperature=self._temperature,
            system_prompt=self._system_prompt,
            user_prompt=prompt,
            json_schema=self._json_schema_dict,
        )
        Log.debug(f"AI raw response:\n{raw_response}")

        analysis = parse_analysis_response(raw_response)
        Log.info(
            f"Analysis complete: {len(analysis.ingredients)} ingredients, "
            f"{len(analysis.harmful_ingredients)} flagged"
        )
        return analysis

    def _build_prompt(self, text: str) -> str:
        return self._prompt_template.format(
            extracted_text=text,
            json_schema=self._json_schema,
        )
