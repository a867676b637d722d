
from .simpleLlm import GeminiKeywordSuggester, parse_suggestion

from .prompts import VisualKeyword

__all__ = [
    "GeminiKeywordSuggester",
    "parse_suggestion",
    "VisualKeyword"
]
