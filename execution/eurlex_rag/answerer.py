"""
Grounded Answerer

Answers a question strictly from retrieved passages:

    RETRIEVE -> DECIDE -> ABSTAIN  -> DONE
                       -> GENERATE -> DONE

DECIDE gates on the top retrieval score. Below the relevance threshold the
answerer abstains with a fixed "insufficient information" message and no
citations; otherwise it asks the generator to answer from the passage context
and returns every retrieved passage as a citation.
"""

import os
import time
import logging
from enum import Enum
from typing import Optional
from dataclasses import dataclass, field

from .citation import Citation, build_context, citations_from_results
from .exceptions import GenerationError, ValidationError
from .language_config import LanguageConfig
from .language_patterns import LABELS, LLM_PROMPTS
from .retriever import PassageRetriever
from .vector_store import MAX_TOP_K

logger = logging.getLogger(__name__)


class AnswerState(str, Enum):
    RETRIEVE = "retrieve"
    DECIDE = "decide"
    ABSTAIN = "abstain"
    GENERATE = "generate"
    DONE = "done"


@dataclass
class AnswerConfig:
    """Configuration for grounded answering."""
    default_k: int = 5
    relevance_threshold: float = 0.25  # top score >= threshold generates
    temperature: float = 0.2
    language: str = "ro"


@dataclass
class AnswerResult:
    """Answer text plus the ordered citations of the retrieved passages."""
    text: str
    citations: list[Citation] = field(default_factory=list)
    abstained: bool = False
    latency_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "citations": [c.to_dict() for c in self.citations],
        }


class ChatCompletionGenerator:
    """Generation through the OpenAI chat completions API."""

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: float = 0.2,
        client=None,
        timeout: float = 120.0,
    ):
        self.model = model or os.getenv("OPENAI_CHAT_MODEL", "gpt-4o")
        self.temperature = temperature
        self.timeout = timeout
        self._client = client

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI
            self._client = OpenAI(
                api_key=os.getenv("OPENAI_API_KEY"),
                timeout=self.timeout,
            )
        return self._client

    def generate(self, system_instruction: str, user_message: str) -> str:
        response = self._get_client().chat.completions.create(
            model=self.model,
            temperature=self.temperature,
            messages=[
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_message},
            ],
        )
        return (response.choices[0].message.content or "").strip()


def build_user_message(question: str, context: str, language: str = "ro") -> str:
    labels = LABELS.get(language, LABELS["ro"])
    return f"{labels['question']}\n{question}\n\n{labels['context']}\n{context}"


class GroundedAnswerer:
    """
    Threshold-gated, citation-grounded question answering.

    Usage:
        answerer = GroundedAnswerer(retriever, ChatCompletionGenerator())
        result = answerer.answer("Ce prevede articolul 1?")
    """

    def __init__(
        self,
        retriever: PassageRetriever,
        generator,
        config: Optional[AnswerConfig] = None,
    ):
        """
        Args:
            retriever: Provides retrieve(query_text, k)
            generator: Provides generate(system_instruction, user_message)
            config: Optional answer configuration
        """
        self.retriever = retriever
        self.generator = generator
        self.config = config or AnswerConfig()

    @classmethod
    def from_language_config(
        cls,
        retriever: PassageRetriever,
        language_config: LanguageConfig,
    ) -> "GroundedAnswerer":
        generator = ChatCompletionGenerator(model=language_config.llm_model)
        return cls(retriever, generator, AnswerConfig(language=language_config.language))

    @property
    def insufficient_information_message(self) -> str:
        return LABELS.get(self.config.language, LABELS["ro"])["insufficient_information"]

    def validate(self, question: str, k: Optional[int]) -> tuple[str, int]:
        """Normalize inputs; raises ValidationError for a blank question or k out of range."""
        question = (question or "").strip()
        if not question:
            raise ValidationError(
                "Question must not be empty",
                details=[{"field": "question", "message": "must not be empty"}],
            )
        if k is None:
            k = self.config.default_k
        if not 1 <= k <= MAX_TOP_K:
            raise ValidationError(
                f"k must be between 1 and {MAX_TOP_K}",
                details=[{"field": "k", "message": f"must be between 1 and {MAX_TOP_K}"}],
            )
        return question, k

    def answer(self, question: str, k: Optional[int] = None) -> AnswerResult:
        """
        Answer a question from retrieved passages.

        Raises:
            ValidationError: blank question or k outside [1, MAX_TOP_K]
            GenerationError: the generator failed
        """
        start = time.time()
        question, k = self.validate(question, k)

        state = AnswerState.RETRIEVE
        results = []
        result: Optional[AnswerResult] = None

        while state != AnswerState.DONE:
            if state == AnswerState.RETRIEVE:
                results = self.retriever.retrieve(question, k=k)
                state = AnswerState.DECIDE

            elif state == AnswerState.DECIDE:
                if results and results[0].score >= self.config.relevance_threshold:
                    state = AnswerState.GENERATE
                else:
                    top = results[0].score if results else None
                    logger.info(f"Abstaining: top score {top} below {self.config.relevance_threshold}")
                    state = AnswerState.ABSTAIN

            elif state == AnswerState.ABSTAIN:
                result = AnswerResult(
                    text=self.insufficient_information_message,
                    citations=[],
                    abstained=True,
                )
                state = AnswerState.DONE

            elif state == AnswerState.GENERATE:
                result = AnswerResult(
                    text=self._generate(question, results),
                    citations=citations_from_results(results),
                )
                state = AnswerState.DONE

        result.latency_ms = (time.time() - start) * 1000
        return result

    def _generate(self, question: str, results) -> str:
        lang = self.config.language
        system_instruction = LLM_PROMPTS.get(lang, LLM_PROMPTS["ro"])["rag_system"]
        user_message = build_user_message(question, build_context(results), lang)
        try:
            return self.generator.generate(system_instruction, user_message)
        except Exception as e:
            logger.error(f"Generation failed ({lang}): {type(e).__name__}: {e}")
            raise GenerationError(f"Answer generation failed: {e}") from e
