import asyncio
import json
import logging
import re
from typing import Optional

import google.generativeai as genai

from ..config import CONFIG, get_api_key
from . import prompts

logger = logging.getLogger(f"broll.{__name__}")

FENCE_RE = re.compile(r'^```(\w*)?\s*\n?(.*?)\n?\s*```$', re.DOTALL)
OBJECT_RE = re.compile(r'\{.*?\}', re.DOTALL)


def parse_suggestion(response_text: Optional[str]) -> Optional[str]:
    """
    Extracts the keyword from a model reply of the form {"suggestion": "..."}.

    The reply is parsed defensively: markdown code fences are stripped, and if
    the text still isn't valid JSON the first {...} object embedded in it is tried.

    Args:
        response_text (Optional[str]): Raw text returned by the model.

    Returns:
        Optional[str]: The trimmed suggestion, or None for anything unusable
                       (invalid JSON, missing key, null, blank or non-string value).
    """
    if not response_text:
        return None

    text = response_text.strip()
    match = FENCE_RE.match(text)
    if match and match.group(2):
        text = match.group(2).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        embedded = OBJECT_RE.search(text)
        if not embedded:
            logger.debug(f"No JSON object in model reply: {response_text[:200]}")
            return None
        try:
            data = json.loads(embedded.group(0))
        except json.JSONDecodeError:
            logger.debug(f"Model reply is not valid JSON: {response_text[:200]}")
            return None

    if not isinstance(data, dict):
        return None
    suggestion = data.get('suggestion')
    if not isinstance(suggestion, str):
        return None
    suggestion = suggestion.strip()
    if not suggestion or suggestion.lower() in ('null', 'none'):
        return None
    return suggestion


class GeminiKeywordSuggester:
    """Asks Gemini for a short visual keyword per sentence."""

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None,
                 temperature: Optional[float] = None):
        api_key = api_key or get_api_key("GOOGLE_API_KEY")
        genai.configure(api_key=api_key)
        self.model_name = model_name or CONFIG["GEMINI_MODEL"]
        self.temperature = CONFIG["GEMINI_TEMPERATURE"] if temperature is None else temperature
        self._model = genai.GenerativeModel(self.model_name, system_instruction=prompts.systemInstruction)

    async def suggest(self, sentence: str) -> Optional[str]:
        """
        Returns a 2-3 word image search keyword for the sentence, or None.

        Errors from the API are logged and reported as None; one bad sentence
        must never stop the rest of the run.
        """
        if not sentence or not sentence.strip():
            return None

        generation_config = genai.types.GenerationConfig(
            response_mime_type="application/json",
            temperature=self.temperature,
        )
        try:
            # Blocking client; runs in a worker thread
            response = await asyncio.to_thread(
                self._model.generate_content,
                contents=prompts.VisualKeyword.format(sentence=sentence.strip()),
                generation_config=generation_config,
            )
            response_text = response.text
        except Exception as e:
            logger.error(f"Gemini suggestion error: {e}")
            return None

        suggestion = parse_suggestion(response_text)
        logger.debug(f"Gemini suggestion for '{sentence[:60]}': {suggestion}")
        return suggestion
