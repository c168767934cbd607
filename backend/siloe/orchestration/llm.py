from dataclasses import dataclass
from typing import Optional, Protocol
import json
import logging
import re

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from ..core.errors import MalformedOutput, ModelProviderError, ModelTimeout, SiloeError
from ..core.timeouts import bounded
from ..models.study import SOAPFields

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodingParams:
    max_tokens: int
    temperature: float
    top_p: Optional[float] = None
    json_mode: bool = False


ANSWER_PARAMS = DecodingParams(max_tokens=1000, temperature=0.7, top_p=0.9)
STUDY_PARAMS = DecodingParams(max_tokens=2000, temperature=0.7, json_mode=True)


class GenerativeModel(Protocol):
    async def invoke(self, prompt: str, params: DecodingParams) -> str: ...


def _extract_json(text: str) -> str:
    # Best-effort: pick the first {...} block
    m = re.search(r"\{[\s\S]*\}$", text.strip())
    if m:
        return m.group(0)
    m2 = re.search(r"\{[\s\S]*\}", text)
    if m2:
        return m2.group(0)
    return text


class OpenAIModel:
    """Chat-completions backed model; the prompt goes in as a single user turn."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", base_url: Optional[str] = None, timeout_s: float = 30.0):
        self.api_key = (api_key or "").strip()
        self.model = model
        self.base_url = base_url
        self.timeout_s = timeout_s
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise ModelProviderError("OPENAI_API_KEY missing for generation")
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def invoke(self, prompt: str, params: DecodingParams) -> str:
        client = self._get_client()
        kwargs = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
        }
        if params.top_p is not None:
            kwargs["top_p"] = params.top_p
        if params.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            resp = await client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as e:
            raise ModelTimeout("Model call timed out", cause=e) from e
        except openai.APIError as e:
            logger.error("OpenAI call failed: %s", e)
            raise ModelProviderError("Model call failed", cause=e) from e

        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""


class GenerationClient:
    """Runs answer and study prompts against a model.

    Answers are returned raw. Studies must come back as one JSON object with
    the five SOAP fields; anything else is MalformedOutput, kept apart from
    ModelProviderError (could not reach the model) and ModelTimeout.
    """

    def __init__(
        self,
        model: GenerativeModel,
        answer_params: DecodingParams = ANSWER_PARAMS,
        study_params: DecodingParams = STUDY_PARAMS,
        timeout_s: float = 30.0,
    ):
        self.model = model
        self.answer_params = answer_params
        self.study_params = study_params
        self.timeout_s = timeout_s

    async def _invoke(self, prompt: str, params: DecodingParams, what: str) -> str:
        try:
            return await bounded(self.model.invoke(prompt, params), self.timeout_s, what, ModelTimeout)
        except SiloeError:
            raise
        except Exception as e:
            logger.error("%s failed: %s", what, e)
            raise ModelProviderError(f"{what} failed", cause=e) from e

    async def generate_answer(self, prompt: str) -> str:
        return await self._invoke(prompt, self.answer_params, "answer generation")

    @staticmethod
    def _decode_study(raw: str):
        """Decode the whole output; only prose around an object falls back to extraction."""
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            if raw.strip().startswith("["):
                raise
        return json.loads(_extract_json(raw))

    async def generate_study(self, prompt: str) -> SOAPFields:
        raw = await self._invoke(prompt, self.study_params, "study generation")
        if not raw.strip():
            raise MalformedOutput("Model returned an empty study")

        try:
            obj = self._decode_study(raw)
        except json.JSONDecodeError as e:
            logger.warning("Study output was not valid JSON: %s; raw=%s", e, raw[:300])
            raise MalformedOutput("Study output was not valid JSON", cause=e) from e
        if not isinstance(obj, dict):
            raise MalformedOutput(f"Study output was a JSON {type(obj).__name__}, expected an object")

        try:
            return SOAPFields.model_validate(obj)
        except ValidationError as e:
            logger.warning("Study output failed schema validation: %s", e)
            raise MalformedOutput("Study output is missing or has invalid fields", cause=e) from e
