from pathlib import Path

_DEFAULT_PROMPT_DIR = Path(__file__).parent / "prompts"


def load_prompt_template(path: Path | None = None) -> str:
    """Load the analysis prompt template (bundled analysis_prompt.txt by default).

    Raises:
        OSError: if the file cannot be read.
    """
    if path is None:
        path = _DEFAULT_PROMPT_DIR / "analysis_prompt.txt"
    return path.read_text(encoding="utf-8")


def load_json_schema(path: Path | None = None) -> str:
    """Load the raw JSON schema for structured output (bundled analysis_schema.json by default)."""
    if path is None:
        path = _DEFAULT_PROMPT_DIR / "analysis_schema.json"
    return path.read_text(encoding="utf-8")
