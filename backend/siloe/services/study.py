import logging
from typing import Optional

from ..models.study import StudyArtifact
from ..orchestration.llm import GenerationClient
from ..orchestration.passage import PassageSelector
from ..orchestration.prompts import PromptBuilder
from ..stores.studies import StudyStore

logger = logging.getLogger(__name__)


class StudyService:
    """select passage -> build prompt -> call model -> parse -> persist."""

    def __init__(
        self,
        selector: PassageSelector,
        prompts: PromptBuilder,
        generator: GenerationClient,
        store: StudyStore,
    ):
        self.selector = selector
        self.prompts = prompts
        self.generator = generator
        self.store = store

    async def generate(
        self,
        passage: Optional[str] = None,
        reference: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> StudyArtifact:
        """Generate and save a new study.

        ``passage`` wins over ``reference``; with neither, a passage is
        recommended. Every call creates a new study with a fresh id.
        """
        selected = await self.selector.select(passage or reference, user_id)
        prompt = self.prompts.build_study_prompt(selected)
        fields = await self.generator.generate_study(prompt)
        artifact = StudyArtifact.from_fields(fields)
        stored = await self.store.save(artifact, user_id)
        logger.info("Generated study id=%s for passage %s", stored.id, selected)
        return stored

    async def get(self, study_id: str) -> Optional[StudyArtifact]:
        return await self.store.get(study_id)
