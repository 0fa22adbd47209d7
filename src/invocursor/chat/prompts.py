"""Prompt builders for the planner.

The system prompt describes the host application (its pages and their
elements) and the step vocabulary; the user prompt carries the current
page, the visible control states and recent conversation.
"""

from typing import Any, Iterable, Optional

from invocursor.models.app_config import AppConfig
from invocursor.models.enums import ExecutionMode
from invocursor.models.session import HISTORY_IN_PROMPT, HistoryTurn


STEP_VOCABULARY = """Plan step types:
- {"type":"navigate","target":"page-name"}
- {"type":"toggle","target":"#element-id","value":true/false}
- {"type":"type","target":"#element-id","value":"text"}
- {"type":"click","target":"#element-id"}
- {"type":"select","target":"#element-id","value":"option-value"}"""


def _pages_summary(config: AppConfig) -> str:
    lines = []
    for page_name, page in config.pages.items():
        elements = ", ".join(page.elements.keys())
        lines.append(
            f'- "{page_name}": {page.description}. Elements: {elements}'
        )
    return "\n".join(lines)


def _elements_detail(config: AppConfig) -> str:
    lines = []
    for page_name, page in config.pages.items():
        for element_id, element in page.elements.items():
            line = f'{element_id} ({element.type}): "{element.label}"'
            if element.synonyms:
                line += f" - also called: {', '.join(element.synonyms)}"
            line += f" [on {page_name} page]"
            lines.append(line)
    return "\n".join(lines)


def _app_context(config: AppConfig, greeting: str) -> str:
    return f"""{greeting} for {config.app.name}.
{config.app.description}

PAGES:
{_pages_summary(config)}

ALL ELEMENTS:
{_elements_detail(config)}"""


def build_system_prompt(config: AppConfig) -> str:
    """System prompt for plain planning (JSON array output)."""
    return f"""{_app_context(config, "You are an AI assistant")}

You create action plans as JSON arrays. Output ONLY valid JSON, no explanation.

{STEP_VOCABULARY}

Rules:
- enable/turn on/activate = value: true
- disable/turn off/stop = value: false
- Navigate to correct page FIRST if not already there
- Only include necessary steps
- Output JSON array only, no markdown, no explanation"""


def build_user_message(goal: str, current_page: str) -> str:
    """User prompt for plain planning."""
    return f"""Current page: "{current_page}"
User wants: "{goal}"

Output the JSON plan:"""


_GUIDED_INSTRUCTIONS = """MODE: TEACH ME (Guided Learning)
The user wants to LEARN, not just get things done. Your job is to teach them.

ALWAYS respond with valid JSON in this format:
{
  "type": "response_type",
  "message": "Your message to the user",
  "plan": [...],
  "explanations": ["Explanation for step 1", "Explanation for step 2", ...]
}

CRITICAL FOR GUIDED MODE:
- When type is "action", you MUST include an "explanations" array
- Each step in "plan" should have a corresponding explanation in "explanations"
- Explanations should teach WHY this step matters, not just WHAT it does
- Use simple, encouraging language

Response types:
- "question": Ask clarifying questions to understand their goal
- "explanation": Teach about a feature (no action needed)
- "action": Perform steps WITH detailed explanations for each step
- "status": Report current state
- "error": Can't help

For actions, include BOTH plan and explanations:
{
  "type": "action",
  "message": "Great! Let me show you how to do this step by step.",
  "plan": [
    {"type":"navigate","target":"settings"},
    {"type":"toggle","target":"#dark-mode","value":true}
  ],
  "explanations": [
    "First, we go to the Settings page, where the customization options live.",
    "Now we enable Dark Mode. It switches to darker colors, which are easier on the eyes at night."
  ]
}

TEACHING STYLE:
- Explain the WHY: "This helps because..."
- Give context: "You'll find this useful when..."
- Encourage independence: "Next time, you can find this in..."
- Offer tips: "Pro tip: You can also..." """


_FAST_INSTRUCTIONS = """MODE: DO IT FOR ME (Fast Execution)
The user wants you to complete tasks quickly. Be efficient.

ALWAYS respond with valid JSON in this format:
{
  "type": "response_type",
  "message": "Brief message",
  "plan": [...]
}

Response types:
- "question": Only if absolutely necessary for clarification
- "explanation": Brief explanation if they ask about something
- "action": Perform the task (include "plan" array)
- "status": Quick status report
- "error": Can't help

For actions:
{
  "type": "action",
  "message": "Done! I've enabled dark mode for you.",
  "plan": [
    {"type":"navigate","target":"settings"},
    {"type":"toggle","target":"#dark-mode","value":true}
  ]
}

FAST MODE STYLE:
- Be concise - users want speed
- Skip lengthy explanations unless asked
- Brief confirmation when complete"""


def build_smart_system_prompt(
    config: AppConfig, mode: ExecutionMode = ExecutionMode.FAST
) -> str:
    """Mode-aware system prompt for the smart chat endpoint."""
    instructions = (
        _GUIDED_INSTRUCTIONS
        if mode == ExecutionMode.GUIDED
        else _FAST_INSTRUCTIONS
    )
    return f"""{_app_context(config, "You are a friendly assistant")}

{instructions}

{STEP_VOCABULARY}

Always navigate to the correct page FIRST before other actions."""


def build_smart_user_message(
    message: str,
    current_page: str,
    current_state: Optional[dict[str, Any]] = None,
    history: Iterable[HistoryTurn] = (),
) -> str:
    """User prompt for the smart chat endpoint.

    Embeds the current page, a snapshot of control states and the last
    ``HISTORY_IN_PROMPT`` conversation turns.
    """
    parts = [f'Current page: "{current_page}"\n']

    if current_state:
        parts.append("\nCurrent state of settings:\n")
        for key, value in current_state.items():
            parts.append(f"- {key}: {value}\n")

    turns = list(history)[-HISTORY_IN_PROMPT:]
    if turns:
        parts.append("\nRecent conversation:\n")
        for turn in turns:
            parts.append(f"{turn.role}: {turn.content}\n")

    parts.append(f'\nUser says: "{message}"\n\nRespond with JSON:')
    return "".join(parts)
