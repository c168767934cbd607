import logging
from typing import Optional

from ..core.errors import InputError
from ..orchestration.llm import GenerationClient
from ..orchestration.prompts import PromptBuilder
from ..rag.context import SEPARATOR, ContextAggregator

logger = logging.getLogger(__name__)


class MentorService:
    """Answers free-form questions grounded in the asker's notes and the content index."""

    def __init__(self, aggregator: ContextAggregator, prompts: PromptBuilder, generator: GenerationClient):
        self.aggregator = aggregator
        self.prompts = prompts
        self.generator = generator

    async def answer(
        self,
        question: str,
        user_id: Optional[str] = None,
        study_id: Optional[str] = None,
        client_context: Optional[str] = None,
    ) -> str:
        """Answer ``question``.

        Args:
            question: The user's question (required, non-blank)
            user_id: Authenticated asker, enables personal notes in the context
            study_id: Narrows personal notes to one study
            client_context: Extra text the client sent; appended after retrieved context

        Returns:
            str: The model's answer, unvalidated

        Raises:
            InputError: If the question is missing or empty once sanitized
        """
        question = self.prompts.clean_user_text(question or "")
        if not question.strip():
            raise InputError("Question is required")

        context = await self.aggregator.gather(question, user_id, study_id)
        if client_context and client_context.strip():
            extra = self.prompts.clean_user_text(client_context)
            context = SEPARATOR.join(p for p in (context, extra) if p)

        prompt = self.prompts.build_answer_prompt(question, context)
        answer = await self.generator.generate_answer(prompt)
        logger.info(
            "Answered question for user=%s study=%s (context=%d chars, answer=%d chars)",
            user_id or "<anonymous>", study_id, len(context), len(answer),
        )
        return answer
