"""
LLM client for OpenRouter using LangChain.

The translator, validator and interpreter repositories each build their
own prompt and parse their own JSON answer; they share this client for
the round trip. Any failure, including an oversized prompt, surfaces as
LLMError.
"""

from typing import Any, Dict, List, Optional

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import SecretStr

from ..config import LLMConfig
from ..domain.errors import LLMError
from ..utils.logging import get_module_logger
from ..utils.token_utils import InputValidator
from ..utils.tracing import current_trace_id

logger = get_module_logger()


class LLMClient:
    """
    Chat-completion client backed by ChatOpenAI pointed at OpenRouter.

    Usage:
        client = LLMClient(settings.llm)
        await client.connect()

        answer = await client.generate(
            "Question: count rows in orders",
            system_prompt="Translate the question to SQL. Answer in JSON.",
            temperature=0.0,
        )
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._llm: Optional[ChatOpenAI] = None

        logger.info(
            "LLMClient initialized",
            default_model=config.default_model,
            base_url=config.base_url,
            json_mode=config.json_mode,
        )

    def is_connected(self) -> bool:
        return self._llm is not None

    async def connect(self) -> None:
        """
        Build the ChatOpenAI client. No request is sent; a bad key shows up
        on the first generate() call.

        Raises:
            LLMError: If the client cannot be constructed
        """
        if self._llm is not None:
            logger.warning("LLM client already connected")
            return

        try:
            self._llm = ChatOpenAI(
                model=self.config.default_model,
                api_key=SecretStr(self.config.openrouter_api_key),
                base_url=self.config.base_url,
                temperature=self.config.temperature,
                max_completion_tokens=self.config.max_tokens,
                top_p=self.config.top_p,
                timeout=self.config.timeout_seconds,
                max_retries=self.config.max_retries,
            )
        except Exception as e:
            message = f"Failed to initialize LLM client: {e}"
            logger.error(message, error_type=type(e).__name__, trace_id=current_trace_id())
            raise LLMError(message) from e

        logger.info("LLM client ready", model=self.config.default_model, trace_id=current_trace_id())

    async def close(self) -> None:
        # ChatOpenAI holds no resources that need releasing
        self._llm = None
        logger.info("LLM client closed", trace_id=current_trace_id())

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
        json_response: Optional[bool] = None,
    ) -> str:
        """
        Send one system + user exchange and return the model's text.

        Args:
            prompt: User message
            system_prompt: Optional system message
            temperature: Override of config.temperature
            max_tokens: Override of config.max_tokens
            model: Override of config.default_model
            json_response: Ask for a JSON object (defaults to config.json_mode)

        Raises:
            LLMError: If not connected, the input is over max_input_chars,
                the call fails or the answer is empty
        """
        if self._llm is None:
            raise LLMError("LLM client is not connected")

        try:
            InputValidator.validate_total_chars(prompt, system_prompt, max_chars=self.config.max_input_chars)
        except ValueError as e:
            raise LLMError(str(e)) from e

        trace_id = current_trace_id()
        use_json = self.config.json_mode if json_response is None else json_response

        messages: List[BaseMessage] = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        overrides: Dict[str, Any] = {}
        if model is not None:
            overrides["model"] = model
        if temperature is not None:
            overrides["temperature"] = temperature
        if max_tokens is not None:
            overrides["max_completion_tokens"] = max_tokens
        if use_json:
            overrides["response_format"] = {"type": "json_object"}
        llm: Any = self._llm.bind(**overrides) if overrides else self._llm

        logger.info(
            "Calling LLM",
            model=model or self.config.default_model,
            input_chars=len(prompt) + len(system_prompt or ""),
            json_response=use_json,
            trace_id=trace_id,
        )

        try:
            response = await llm.ainvoke(messages)
        except Exception as e:
            message = f"LLM generation failed: {e}"
            logger.error(message, error_type=type(e).__name__, trace_id=trace_id)
            raise LLMError(message) from e

        content = str(response.content) if response is not None and response.content else ""
        if not content:
            logger.error("LLM returned empty response", trace_id=trace_id)
            raise LLMError("LLM generation failed: LLM returned empty response")

        logger.info("LLM response received", response_chars=len(content), trace_id=trace_id)
        return content
