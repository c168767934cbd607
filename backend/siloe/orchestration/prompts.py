from textwrap import dedent

from ..safety.guard import MAX_INPUT_CHARS, sanitize_input

ANSWER_TEMPLATE = dedent("""\
    You are a knowledgeable and compassionate Bible scholar and mentor.
    Using the following context and your biblical knowledge, provide a thoughtful,
    encouraging, and scripturally-based response to the question.

    Context:
    {context}

    Question: {question}

    Please provide a response that:
    1. Addresses the question directly
    2. References relevant scripture
    3. Offers practical application
    4. Maintains a supportive and encouraging tone

    Response:
    """)

STUDY_TEMPLATE = dedent("""\
    Generate a SOAP Bible study for the passage: {passage}

    Please provide:
    1. Scripture: The full text of the passage
    2. Observation: Key insights and meaning of the passage
    3. Application: How to apply this passage to daily life
    4. Prayer: A prayer related to the passage's teachings

    Format as JSON with these fields: scripture, reference, observation, application, prayer.
    Return ONLY the JSON object. No markdown, no backticks, no explanations.
    Keep each section concise but meaningful.
    """)


class PromptBuilder:
    """Deterministic prompt templates.

    User-supplied text (the question, an explicit passage) is sanitized when
    ``sanitize`` is on; retrieved context is inserted as-is.
    """

    def __init__(self, sanitize: bool = True, max_input_chars: int = MAX_INPUT_CHARS):
        self.sanitize = sanitize
        self.max_input_chars = max_input_chars

    def clean_user_text(self, text: str) -> str:
        if not self.sanitize:
            return text
        return sanitize_input(text, self.max_input_chars)

    def build_answer_prompt(self, question: str, context: str) -> str:
        return ANSWER_TEMPLATE.format(context=context, question=self.clean_user_text(question))

    def build_study_prompt(self, passage: str) -> str:
        return STUDY_TEMPLATE.format(passage=self.clean_user_text(passage))
