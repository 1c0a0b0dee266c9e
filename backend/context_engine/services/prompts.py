"""Prompt templates for context-grounded generation."""


class AnswerPrompt:
    """Prompt template for answering with an assembled document context."""

    SYSTEM_MESSAGE = (
        "You are a helpful assistant. When document context is provided, ground your "
        "answer in it and say clearly when the documents do not contain the answer."
    )

    @staticmethod
    def build(question: str, context: str) -> str:
        """
        Build answer generation prompt.

        Args:
            question: User's question
            context: Assembled context block (may be empty)

        Returns:
            Formatted prompt string
        """
        if not context:
            return question

        return f"""{context}

QUESTION: {question}"""
