from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from lessoncraft.store import Store

VALID_LESSON = """interface Question {
  text: string;
  options: string[];
  correct: number;
}

const LessonComponent = () => {
  const [sideA, setSideA] = useState<number>(3);
  const [sideB, setSideB] = useState<number>(4);
  const [questions, setQuestions] = useState<Question[]>([]);
  const [feedback, setFeedback] = useState<string>("");
  const hypotenuse = Math.sqrt(sideA * sideA + sideB * sideB);

  useEffect(() => {
    setQuestions([
      { text: "If a = 3 and b = 4, what is c?", options: ["5", "7"], correct: 0 },
    ]);
  }, []);

  const handleAnswer = (isCorrect: boolean) => {
    setFeedback(isCorrect ? "Correct!" : "Incorrect, try again.");
  };

  return (
    <div className="p-6 bg-white text-gray-900">
      <h1 className="text-2xl font-bold">Pythagorean Theorem</h1>
      <p>In a right triangle, a² + b² = c².</p>
      <input type="range" min={1} max={10} value={sideA} onChange={(e) => setSideA(Number(e.target.value))} />
      <input type="range" min={1} max={10} value={sideB} onChange={(e) => setSideB(Number(e.target.value))} />
      <p>Hypotenuse: {hypotenuse.toFixed(2)}</p>
      <h2 className="text-xl font-semibold">Quiz</h2>
      {questions.map((q, i) => (
        <div key={i}>
          <p>{q.text}</p>
          {q.options.map((option, oi) => (
            <button key={oi} onClick={() => handleAnswer(oi === q.correct)} className="bg-blue-600 text-white p-3 rounded-lg">
              {option}
            </button>
          ))}
        </div>
      ))}
      {feedback && <p>{feedback}</p>}
    </div>
  );
};

render(<LessonComponent />);
"""


class ScriptedGenerator:
    """Generator double that replays canned responses and records every call."""

    def __init__(self, responses: list[str | Exception]):
        self.responses = list(responses)
        self.calls: list[dict[str, str]] = []

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt})
        if not self.responses:
            raise AssertionError("generator called more often than scripted")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class RecordingTracer:
    """Tracer double that keeps every recorded generation in memory."""

    def __init__(self) -> None:
        self.generations: list[dict[str, object]] = []
        self.shutdowns = 0

    def record_generation(self, name, model, input, output=None, error=None) -> None:
        self.generations.append(
            {"name": name, "model": model, "input": input, "output": output, "error": error}
        )

    def shutdown(self) -> None:
        self.shutdowns += 1


@pytest.fixture(autouse=True)
def _no_langfuse_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("LANGFUSE_PUBLIC_KEY", "LANGFUSE_SECRET_KEY", "LANGFUSE_BASE_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def tracer() -> RecordingTracer:
    return RecordingTracer()


@pytest.fixture
def valid_lesson() -> str:
    return VALID_LESSON


@pytest.fixture
def untyped_lesson() -> str:
    return VALID_LESSON.replace("useState<number>(3)", "useState(3)").replace(
        "useState<number>(4)", "useState(4)"
    )


@pytest.fixture
def scripted_generator():
    return ScriptedGenerator


@pytest.fixture
def store(tmp_path) -> Store:
    lesson_store = Store(tmp_path / "lessons.db")
    lesson_store.init_db()
    return lesson_store
