import json
import logging
import httpx
import backoff
import os
from typing import Any, Dict, Optional
from dotenv import load_dotenv, find_dotenv

# Load .env file (walks up directories to find it)
load_dotenv(find_dotenv())

logger = logging.getLogger(__name__)

# Groq API config
GROQ_API_KEY = os.environ.get("GROQ_API_KEY", "")
GROQ_API_URL = os.environ.get("GROQ_API_URL", "https://api.groq.com/openai/v1/chat/completions")
GROQ_MODEL = os.environ.get("GROQ_MODEL", "llama-3.1-8b-instant")

# Shared HTTP client for connection reuse
_shared_client = httpx.AsyncClient(timeout=30.0)


class GroqClient:
    """
    Client for Groq's hosted chat completions API (OpenAI-compatible).
    Only the anonymized explanation prompt is ever sent.
    """

    def __init__(self, api_key: str = None, model: str = None, http_client: httpx.AsyncClient = None):
        self.api_key = api_key if api_key is not None else GROQ_API_KEY
        self.model = model or GROQ_MODEL
        self._client = http_client or _shared_client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @backoff.on_exception(
        backoff.expo,
        (httpx.RequestError, httpx.HTTPStatusError),
        max_tries=2,
        giveup=lambda e: isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500
    )
    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        response = await self._client.post(GROQ_API_URL, json=payload, headers=headers)
        response.raise_for_status()
        return response.json()

    async def generate_json(self, prompt: str) -> Optional[Dict[str, Any]]:
        """
        Request a JSON object answer. Returns None on transport failure or
        when the reply is not a JSON object.
        """
        logger.info("Sending request to Groq", extra={"model": self.model})

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": 1500,
            "temperature": 0.3,
            "response_format": {"type": "json_object"},
        }

        try:
            data = await self._post(payload)
            content = data["choices"][0]["message"]["content"]
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Error communicating with Groq: {str(e)}")
            return None
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Unexpected response shape from Groq: {str(e)}")
            return None

        try:
            parsed = json.loads(content)
        except (TypeError, ValueError):
            logger.warning("Groq reply was not valid JSON")
            return None
        if not isinstance(parsed, dict):
            logger.warning("Groq reply was JSON but not an object")
            return None

        logger.info("Groq request successful", extra={"response_length": len(content)})
        return parsed
