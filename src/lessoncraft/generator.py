"""Model adapters that turn (system prompt, user prompt) into raw lesson text."""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol

from lessoncraft import config
from lessoncraft.errors import GenerationFailure

log = logging.getLogger(__name__)


class LessonGenerator(Protocol):
    def generate(self, system_prompt: str, user_prompt: str) -> str: ...


class GeminiGenerator:
    """Thin adapter around Google GenAI content generation.

    The SDK client is created when the adapter is entered and dropped when it
    exits, so each request owns its client for exactly one scope::

        with GeminiGenerator(model_name="gemini-2.5-flash") as generator:
            raw = generator.generate(system_prompt=..., user_prompt=...)
    """

    def __init__(
        self,
        model_name: str,
        timeout_secs: float | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
    ):
        self.model_name = model_name
        self.timeout_secs = timeout_secs if timeout_secs is not None else config.llm_timeout_secs()
        self.temperature = temperature if temperature is not None else config.temperature()
        self.max_output_tokens = max_output_tokens or config.max_output_tokens()
        self._client: Any = None

    def __enter__(self) -> "GeminiGenerator":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        """Create the SDK client.

        Raises:
            GenerationFailure: If no API key can be resolved.
        """
        if self._client is not None:
            return
        api_key = config.resolve_gemini_api_key()
        if not api_key:
            raise GenerationFailure("Missing GEMINI_API_KEY (set env var or .api_keys/Gemini.md)")

        from google import genai
        from google.genai import types

        self._client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(self.timeout_secs * 1000)),
        )

    def close(self) -> None:
        """Release the SDK client's HTTP resources and end the scope."""
        if self._client is None:
            return
        close = getattr(self._client, "close", None)
        if callable(close):
            close()
        self._client = None

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Generate raw lesson text from prompts.

        Args:
            system_prompt: System instruction text that defines behavior.
            user_prompt: The request naming the lesson topic.

        Returns:
            Raw, stripped text response from Gemini.

        Raises:
            ValueError: If either prompt is blank.
            GenerationFailure: If the adapter is not open, the call fails, or
                the response text is empty.
        """
        if not isinstance(system_prompt, str) or not system_prompt.strip():
            raise ValueError("System prompt must be a non-empty string.")
        if not isinstance(user_prompt, str) or not user_prompt.strip():
            raise ValueError("User prompt must be a non-empty string.")
        if self._client is None:
            raise GenerationFailure("GeminiGenerator used outside of its client scope")

        from google.genai import types

        try:
            response = self._client.models.generate_content(
                model=self.model_name,
                contents=user_prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    temperature=self.temperature,
                    max_output_tokens=self.max_output_tokens,
                    response_mime_type="text/plain",
                ),
            )
        except Exception as exc:
            log.warning("Gemini generation request error: %r", exc)
            raise GenerationFailure(f"Gemini request failed: {exc}") from exc

        text = (response.text or "").strip()
        if not text:
            raise GenerationFailure("No text returned from Gemini API.")
        return text


_TOPIC_UNSAFE_RE = re.compile(r"[{}<>`$\\]")

_TEMPLATE = """interface QuizQuestion {
  prompt: string;
  options: string[];
  answer: number;
}

const LessonComponent = () => {
  const [level, setLevel] = useState<number>(__LEVEL__);
  const [answers, setAnswers] = useState<number[]>([]);
  const [feedback, setFeedback] = useState<string>("");
  const questions: QuizQuestion[] = [
    {
      prompt: "Which part of this lesson lets you experiment with __TOPIC__?",
      options: ["The explanation", "The interactive slider", "The quiz"],
      answer: 1,
    },
    {
      prompt: "What should you do after exploring __TOPIC__?",
      options: ["Check yourself with the quiz", "Close the page", "Nothing"],
      answer: 0,
    },
  ];

  const handleAnswer = (questionIndex: number, optionIndex: number) => {
    const next = [...answers];
    next[questionIndex] = optionIndex;
    setAnswers(next);
    const isCorrect = questions[questionIndex].answer === optionIndex;
    setFeedback(isCorrect ? "Correct!" : "Incorrect, try again.");
  };

  return (
    <div className="max-w-3xl mx-auto p-6 bg-white text-gray-900 rounded-xl space-y-8">
      <section>
        <h1 className="text-3xl font-bold mb-2">__TOPIC__</h1>
        <p className="text-lg">
          This lesson introduces __TOPIC__ step by step. Read the explanation, explore the model
          below, then check your understanding with the quiz.
        </p>
      </section>
      <section>
        <h2 className="text-2xl font-semibold mb-2">Explore</h2>
        <input
          type="range"
          min={1}
          max={10}
          value={level}
          onChange={(e) => setLevel(Number(e.target.value))}
          className="w-full"
        />
        <div className="flex gap-1 mt-4">
          {Array.from({ length: level }).map((_, i) => (
            <div key={i} className="h-8 w-8 bg-indigo-600 rounded" />
          ))}
        </div>
        <p className="mt-2">Current level: {level}</p>
      </section>
      <section>
        <h2 className="text-2xl font-semibold mb-2">Quiz</h2>
        {questions.map((q, qi) => (
          <div key={qi} className="mb-4">
            <p className="font-medium mb-2">{q.prompt}</p>
            <div className="flex flex-wrap gap-2">
              {q.options.map((option, oi) => (
                <button
                  key={oi}
                  onClick={() => handleAnswer(qi, oi)}
                  className={answers[qi] === oi ? "bg-indigo-700 text-white p-3 rounded-lg" : "bg-blue-600 text-white p-3 rounded-lg"}
                >
                  {option}
                </button>
              ))}
            </div>
          </div>
        ))}
        {feedback && (
          <p className={feedback.includes("Correct") ? "text-green-600" : "text-red-600"}>{feedback}</p>
        )}
      </section>
    </div>
  );
};

render(<LessonComponent />);
"""


class TemplateGenerator:
    """Offline generator that fills a fixed, contract-satisfying lesson template.

    Used for ``--local-only`` runs and tests; it never calls a model. The topic
    is lifted out of the user prompt and stripped of characters that would
    break JSX text.
    """

    model_name = "local-template"

    def __init__(self, level: int = 3):
        self.level = level

    def __enter__(self) -> "TemplateGenerator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        topic = _topic_from_prompt(user_prompt)
        return _TEMPLATE.replace("__TOPIC__", topic).replace("__LEVEL__", str(self.level))


def _topic_from_prompt(user_prompt: str) -> str:
    quoted = re.search(r'"([^"]+)"', user_prompt or "")
    topic = quoted.group(1) if quoted else (user_prompt or "").strip()
    topic = _TOPIC_UNSAFE_RE.sub("", topic).replace('"', "'").strip()
    return topic or "this topic"
