"""
Chat Agents
===========

Intent classifier, category-specific response generators and the tone
refiner. Each wraps exactly one generation call.
"""

import asyncio
import json
from typing import Dict, List, Optional

from pydantic import ValidationError

from agentdesk.chat.application.dto import ClassificationPayload, strip_code_fences
from agentdesk.chat.application.services import IRetrievalService, ResponseGenerator
from agentdesk.chat.domain import (
    ChatMessage,
    CustomerServicePromptBuilder,
    IntentPromptBuilder,
    KnowledgePromptBuilder,
    TonePromptBuilder,
)
from agentdesk.config import INTENT_ALIASES, IntentCategory, Settings, settings as default_settings
from agentdesk.core import (
    ClassificationFailedException,
    ExternalServiceException,
    GenerationFailedException,
    InvalidClassificationException,
)
from agentdesk.infrastructure.llm import IGenerationClient
from agentdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _to_input(messages: List[ChatMessage]) -> List[dict]:
    return [message.to_dict() for message in messages]


def parse_category(raw_text: str) -> IntentCategory:
    """
    Map classifier output onto an IntentCategory.

    Raises:
        InvalidClassificationException: If the text is not JSON, lacks a
            category, or names an unknown one
    """
    try:
        data = json.loads(strip_code_fences(raw_text))
        payload = ClassificationPayload.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise InvalidClassificationException(
            f"Unparseable classification: {e}", raw_output=raw_text
        ) from e

    label = payload.label
    if label in INTENT_ALIASES:
        return INTENT_ALIASES[label]
    try:
        return IntentCategory(label)
    except ValueError as e:
        raise InvalidClassificationException(
            f"Unknown category: {label!r}", raw_output=raw_text
        ) from e


class IntentClassifier:
    """
    Classifies the latest user message into an IntentCategory.

    Only the current message is sent; history is not considered.
    """

    def __init__(self, llm_client: IGenerationClient, model: Optional[str] = None):
        self._llm = llm_client
        self._model = model or default_settings.classifier_model

    async def classify(self, message: ChatMessage) -> IntentCategory:
        """
        Raises:
            InvalidClassificationException: If the output cannot be mapped to a category
            ClassificationFailedException: If the generation call fails
        """
        try:
            result = await self._llm.generate_response(
                model=self._model,
                instructions=IntentPromptBuilder.get_system_prompt(),
                messages=[message.to_dict()]
            )
        except Exception as e:
            raise ClassificationFailedException(f"Classification call failed: {e}") from e

        return parse_category(result.response)


class KnowledgeResponseGenerator(ResponseGenerator):
    """
    Answers from the knowledge corpus.

    Retrieved snippets are joined into one system message placed in front
    of the history. A retrieval failure leaves that message empty.
    """

    def __init__(
        self,
        llm_client: IGenerationClient,
        retriever: IRetrievalService,
        model: Optional[str] = None,
        retrieval_timeout: Optional[float] = None
    ):
        self._llm = llm_client
        self._retriever = retriever
        self._model = model or default_settings.knowledge_model
        self._retrieval_timeout = retrieval_timeout or default_settings.retrieval_timeout_seconds

    async def generate(self, history: List[ChatMessage]) -> str:
        query = history[-1].content if history else ""
        context = await self._retrieve_context(query)
        messages = [ChatMessage.system(context), *history]

        try:
            result = await self._llm.generate_response(
                model=self._model,
                instructions=KnowledgePromptBuilder.get_system_prompt(),
                messages=_to_input(messages)
            )
        except Exception as e:
            raise GenerationFailedException(IntentCategory.KNOWLEDGE.value, str(e)) from e
        return result.response

    async def _retrieve_context(self, query: str) -> str:
        try:
            result = await asyncio.wait_for(
                self._retriever.retrieve(query),
                timeout=self._retrieval_timeout
            )
        except (ExternalServiceException, asyncio.TimeoutError) as e:
            logger.warning(
                "Retrieval degraded, answering without context",
                extra={"error_type": type(e).__name__, "error": str(e)}
            )
            return ""

        logger.debug("Context retrieved", extra={"snippets": len(result.context)})
        return result.joined_content


class CustomerServiceResponseGenerator(ResponseGenerator):
    """Handles support requests; may answer with a ticket-creation payload."""

    def __init__(self, llm_client: IGenerationClient, model: Optional[str] = None):
        self._llm = llm_client
        self._model = model or default_settings.customer_service_model

    async def generate(self, history: List[ChatMessage]) -> str:
        try:
            result = await self._llm.generate_response(
                model=self._model,
                instructions=CustomerServicePromptBuilder.get_system_prompt(),
                messages=_to_input(history)
            )
        except Exception as e:
            raise GenerationFailedException(IntentCategory.CUSTOMER_SERVICE.value, str(e)) from e
        return result.response


class ToneRefiner:
    """
    Rewrites a draft reply in the support persona's voice.

    Never fails: any error, or an empty rewrite, returns the draft unchanged.
    """

    def __init__(self, llm_client: IGenerationClient, model: Optional[str] = None):
        self._llm = llm_client
        self._model = model or default_settings.personality_model

    async def refine(self, user_message: ChatMessage, draft: str) -> str:
        messages = [user_message, ChatMessage.assistant(draft)]
        try:
            result = await self._llm.generate_response(
                model=self._model,
                instructions=TonePromptBuilder.get_system_prompt(),
                messages=_to_input(messages)
            )
        except Exception as e:
            logger.warning(
                "Tone refinement degraded, returning draft",
                extra={"error_type": type(e).__name__, "error": str(e)}
            )
            return draft

        refined = (result.response or "").strip()
        if not refined:
            logger.warning("Tone refinement returned nothing, returning draft")
            return draft
        return refined


def build_generator_registry(
    llm_client: IGenerationClient,
    retriever: IRetrievalService,
    config: Optional[Settings] = None
) -> Dict[IntentCategory, ResponseGenerator]:
    """One generator per IntentCategory."""
    config = config or default_settings
    return {
        IntentCategory.KNOWLEDGE: KnowledgeResponseGenerator(
            llm_client,
            retriever,
            model=config.knowledge_model,
            retrieval_timeout=config.retrieval_timeout_seconds
        ),
        IntentCategory.CUSTOMER_SERVICE: CustomerServiceResponseGenerator(
            llm_client,
            model=config.customer_service_model
        ),
    }
