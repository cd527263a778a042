from labelscan.analysis.models import Analysis
from labelscan.analysis.response import normalize_response_text, parse_analysis_response

__all__ = ["Analysis", "normalize_response_text", "parse_analysis_response"]
