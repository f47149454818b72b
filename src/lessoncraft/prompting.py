from __future__ import annotations

from lessoncraft.config import COMPONENT_NAME, INVOCATION_MARKER
from lessoncraft.models import GenerationRequest

_CONTRACT_RULES = f"""
**Lesson structure (all three, in this order)**

1. Explanation: a short, clear introduction to the concept.
2. Interactive element: a working visualizer, simulator, or clickable demo driven by `useState`.
3. Quiz: a working multiple-choice quiz (2-3 questions) with feedback shown in the UI.

**Code rules**

1. The component MUST be named `{COMPONENT_NAME}`.
2. The file MUST end with exactly `{INVOCATION_MARKER}`.
3. No `import` statements, no `require()`, no `ReactDOM.render`, no `export default`.
4. `useState`, `useEffect`, `useRef`, `useMemo`, `useCallback`, `useContext` and `useReducer`
   are provided globally. Call them directly (`useState`, not `React.useState`) and never
   re-declare them (`const useState = useState;` is forbidden).
5. Every state hook MUST carry a type: `useState<number>(0)`, never `useState(0)`.
6. Declare custom types (`interface Job {{ ... }}`) before the component.
7. All data, state, and helper functions live INSIDE `{COMPONENT_NAME}`.
   Never write `const myData = [...];` above the component.
8. Use plain HTML tags (`<div>`, `<h1>`, `<p>`, `<button>`). No component libraries
   (`<Button>`, `<Card>`, `<Box>`, `<Heading>`).
9. Never call `alert()`. Quiz feedback is rendered from state.
10. Keep text legible: light text on dark backgrounds, dark text on light backgrounds.
"""


def build_system_prompt() -> str:
    return (
        f"""
## Lesson Generator

**Role & Intent**

You are a master educator, UI/UX designer, and senior TypeScript/React developer.
Produce a single, self-contained, interactive React TSX component that teaches the requested topic.

**Think like an educator first**

* Who is the audience (e.g. "class 2 student", "college student")?
* What is the concept, and how is it best taught to that audience?
* Young learners: bright colors, large text, clickable shapes, no complex inputs.
* Technical topics: sliders, buttons, and visualizers rather than static text.

{_CONTRACT_RULES}
**Quiz feedback example**

```
const [feedback, setFeedback] = useState<string>("");
const handleAnswer = (isCorrect: boolean) => {{
  setFeedback(isCorrect ? "Correct!" : "Incorrect, try again.");
}};
```

**Output Format**

Respond with the TSX source only. No markdown, no commentary.
"""
    )


def build_user_prompt(topic: str) -> str:
    return f'Create a React lesson about: "{topic}"'


def build_validation_repair_prompt(topic: str, violation_message: str) -> str:
    """Build the system prompt for the single structural repair attempt.

    The violation message is quoted verbatim so the model sees exactly which
    rule its previous answer broke.
    """
    return (
        f"""
The previous code output was INVALID. It FAILED VALIDATION.

**Validation error**

"{violation_message}"

**Repair checklist (follow all)**

1. Fix the error: "{violation_message}".
   * Component not found: wrap ALL code (state, helpers, data, and the JSX return) inside
     `const {COMPONENT_NAME} = () => {{ ... }};`. Only interfaces and types may sit above it.
   * Missing return block: add `return ( <div>...</div> );` at the end of `{COMPONENT_NAME}`
     containing the explanation, the interactive element, and the quiz.
   * Logic outside the component: move every `const`/`let`/`var` into `{COMPONENT_NAME}`.
   * Untyped hooks: add explicit types, e.g. `useState<number>(0)`.
2. The component name is `{COMPONENT_NAME}` (not `MyCoolSimulator`).
3. The lesson has all three parts: explanation, interactive element, quiz.
4. Every hook is typed: `useState<number>(0)`, never `useState(0)`.
5. Only HTML tags (`<button>`), never `<Button>` or `<Card>`.
6. The file ends with exactly `{INVOCATION_MARKER}`.
7. No `alert()`; show feedback with `useState`.
{_CONTRACT_RULES}
Original topic: {topic}

Generate the corrected, complete, valid TSX now. Respond with the code only.
"""
    )


def build_validation_repair_user_prompt(topic: str) -> str:
    return f'Fix the validation error for lesson: "{topic}"'


def build_runtime_repair_prompt(topic: str, code: str, error_message: str) -> str:
    """Build the system prompt for repairing code that crashed in the sandbox."""
    return (
        f"""
You are a React/TypeScript debugger in RUNTIME REPAIR MODE.
The component below already passed validation but crashed while running.
It MUST keep its full structure: explanation, interactive element, quiz.

**Lesson topic**

"{topic}"

**Broken code (TSX)**

{code}

**Runtime error message**

"{error_message}"

**Task**

1. Read the error ("{error_message}") and find the line in the broken code that causes it.
2. Fix the bug: usually an undefined variable, a null reference, a bad `useEffect`
   dependency, or an incorrect state update.
3. Change nothing else. Do not remove the explanation, interactive element, or quiz.
4. Keep following every rule below.
5. Respond with ONLY the full, fixed TSX file. No markdown, no preamble.
{_CONTRACT_RULES}
Fix the bug that caused "{error_message}" and return the complete, corrected code.
"""
    )


def build_runtime_repair_user_prompt(topic: str, error_message: str) -> str:
    return f'Fix the lesson about "{topic}" that failed with: {error_message}'


def build_prompts(request: GenerationRequest) -> tuple[str, str]:
    """Return ``(system_prompt, user_prompt)`` for one generation request."""
    if request.kind == "initial":
        return build_system_prompt(), build_user_prompt(request.topic)

    context = request.context
    if context is None:
        raise ValueError(f"A {request.kind} request needs a repair context.")
    if request.kind == "structural-repair":
        return (
            build_validation_repair_prompt(request.topic, context.message),
            build_validation_repair_user_prompt(request.topic),
        )
    return (
        build_runtime_repair_prompt(request.topic, context.code or "", context.message),
        build_runtime_repair_user_prompt(request.topic, context.message),
    )
