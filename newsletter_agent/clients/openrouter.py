"""OpenRouter API client implementing the language model capability."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from newsletter_agent.clients.llm import LanguageModel, ToolSet, parse_structured
from newsletter_agent.core.exceptions import ModelResponseError, ModelUnavailableError
from newsletter_agent.models.plan import FinishReason, PlanStep, TextGeneration, ToolCall
from newsletter_agent.models.settings import Settings

logger = logging.getLogger(__name__)

# Request provider name -> OpenRouter model id
PROVIDER_MODELS = {
    "gemini": "google/gemini-2.0-flash-001",
}

STRUCTURED_SYSTEM = (
    "You return data for a program. Respond with JSON only, "
    "no prose and no markdown fences."
)


class OpenRouterClient(LanguageModel):
    """Client for the OpenRouter chat completions API with tool calling."""

    def __init__(self, api_key: str, model: str, settings: Optional[Settings] = None):
        """Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key
            model: Model to use first
            settings: Settings instance for configuration values
        """
        settings = settings or Settings()
        self.api_key = api_key
        self.base_url = settings.openrouter_base_url.rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "X-Title": "Newsletter Agent",
        }
        self.default_model = model
        self.model_fallbacks = [m for m in settings.fallback_models if m != model]
        self.timeout = settings.openrouter_timeout

    async def generate_text(
        self,
        system: str,
        prompt: str,
        tools: Optional[ToolSet] = None,
        temperature: float = 0.3,
        max_steps: int = 1,
    ) -> TextGeneration:
        """Run the chat/tool loop until the model stops or steps run out.

        Tool calls are executed one at a time, in the order the model issued
        them, and their results (or errors) are sent back to the model.
        """
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]
        steps: List[PlanStep] = []
        text = ""

        for index in range(max(1, max_steps)):
            payload: Dict[str, Any] = {"messages": messages, "temperature": temperature}
            if tools is not None:
                payload["tools"] = tools.declarations()
                payload["tool_choice"] = "auto"

            try:
                response = await self._complete(payload)
            except ModelResponseError as e:
                raise ModelResponseError(str(e), steps=steps) from e
            choice = response["choices"][0]
            message = choice.get("message") or {}
            text = message.get("content") or ""
            raw_calls = message.get("tool_calls") or []

            step = PlanStep(
                text=text,
                tool_calls=[
                    self._parse_tool_call(raw, index, position)
                    for position, raw in enumerate(raw_calls)
                ],
                finish_reason=FinishReason.from_openai(choice.get("finish_reason")),
            )
            steps.append(step)

            if tools is None or not step.tool_calls:
                break

            messages.append(
                {
                    "role": "assistant",
                    "content": message.get("content"),
                    "tool_calls": [
                        {
                            "id": call.call_id,
                            "type": "function",
                            "function": {
                                "name": call.tool_name,
                                "arguments": json.dumps(call.args),
                            },
                        }
                        for call in step.tool_calls
                    ],
                }
            )
            for call in step.tool_calls:
                result = await tools.invoke(call)
                step.tool_results.append(result)
                body = {"error": result.error} if result.is_error else result.output
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.call_id,
                        "content": json.dumps(body, default=str),
                    }
                )

        return TextGeneration(text=text.strip(), steps=steps)

    async def generate_structured(
        self,
        schema: Any,
        prompt: str,
        input: Any = None,
        temperature: float = 0.2,
    ) -> Any:
        content = prompt
        if input is not None:
            content += "\n\nInput:\n" + json.dumps(input, default=str)
        response = await self._complete(
            {
                "messages": [
                    {"role": "system", "content": STRUCTURED_SYSTEM},
                    {"role": "user", "content": content},
                ],
                "temperature": temperature,
            }
        )
        text = response["choices"][0].get("message", {}).get("content") or ""
        return parse_structured(schema, text)

    async def test_connection(self) -> bool:
        """Test the OpenRouter API connection."""
        try:
            await self._complete(
                {"messages": [{"role": "user", "content": "Hello"}], "max_tokens": 5}
            )
            logger.info("OpenRouter API connection successful")
            return True
        except ModelResponseError as e:
            logger.error(f"OpenRouter API connection failed: {e}")
            return False

    def _parse_tool_call(self, raw: Dict[str, Any], step: int, position: int) -> ToolCall:
        function = raw.get("function") or {}
        arguments = function.get("arguments") or "{}"
        try:
            args = json.loads(arguments) if isinstance(arguments, str) else arguments
        except json.JSONDecodeError:
            logger.warning(f"Unparseable arguments for {function.get('name')}: {arguments!r}")
            args = {}
        return ToolCall(
            call_id=raw.get("id") or f"call_{step}_{position}",
            tool_name=function.get("name", ""),
            args=args if isinstance(args, dict) else {},
        )

    async def _complete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a chat completion, trying fallback models in order.

        Raises:
            ModelResponseError: If every model failed
        """
        for attempt_model in [self.default_model] + self.model_fallbacks:
            result = await self._make_single_request({**payload, "model": attempt_model})
            if result and result.get("choices"):
                if attempt_model != self.default_model:
                    logger.info(f"Using fallback model: {attempt_model}")
                return result
            logger.warning(f"Model {attempt_model} returned no usable response")

        raise ModelResponseError("All models failed")

    async def _make_single_request(
        self, payload: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Make a single request to OpenRouter API.

        Returns:
            API response or None if failed
        """
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    f"{self.base_url}/chat/completions",
                    headers=self.headers,
                    json={**payload, "stream": False},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status == 200:
                        return await response.json()
                    error_text = await response.text()
                    logger.error(
                        f"OpenRouter API error: {response.status} - {error_text[:300]}"
                    )
                    return None

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Network error in OpenRouter API request: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"Data parsing error in OpenRouter API response: {e}")
            return None


def get_model(provider: str, settings: Settings) -> LanguageModel:
    """Create the model backend for a request provider.

    Raises:
        ModelUnavailableError: If the provider is unknown or no API key is set
    """
    model = settings.openrouter_model or PROVIDER_MODELS.get(provider)
    if not model:
        raise ModelUnavailableError(f"Unsupported provider: {provider}")
    if not settings.openrouter_api_key:
        raise ModelUnavailableError("OpenRouter API key not configured")
    return OpenRouterClient(settings.openrouter_api_key, model, settings=settings)
