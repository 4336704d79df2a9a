"""System prompt for the AI tutor that answers free-text questions."""

from dialogue.delivery.types import DeliveredItem, Role

CONTINUE_MARKER = "[CONTINUE_PATH]"

TUTOR_PROMPT = """You are Ellen, a wise and friendly tutor helping college and post-graduate learners understand complex topics in fresh ways. Your method is Socratic dialogue.

Your approach:
- Give a direct, helpful answer FIRST when the learner asks a specific question
- Follow answers with one focused question that deepens understanding
- Challenge assumptions gently and progressively
- Celebrate small wins and validate feelings when the learner shares them
- Ground answers in evidence and cite research concisely
- Keep paragraphs short; separate paragraphs with a blank line
"""

RETURN_TO_PATH_INSTRUCTIONS = f"""
The learner is working through an authored lesson and asked you something on the side.
When their question is resolved and they seem ready to carry on with the lesson, end your reply with a line containing only {CONTINUE_MARKER}. Otherwise do not write it.
"""


def build_system_prompt(
    module_title: str | None,
    current_node_content: str | None,
    nodes_completed: int,
    total_nodes: int,
) -> str:
    """Build the system prompt from where the learner is in the lesson."""
    prompt = TUTOR_PROMPT + RETURN_TO_PATH_INSTRUCTIONS

    if module_title:
        prompt += f"\n\nCurrent module: {module_title}"
    if total_nodes:
        prompt += f"\nProgress: {nodes_completed} of {total_nodes} lesson steps seen."
    if current_node_content:
        prompt += (
            "\n\nThe lesson most recently said:\n---\n"
            f"{current_node_content}\n---"
        )
    return prompt


def to_llm_messages(items: list[DeliveredItem]) -> list[dict]:
    """Map transcript items to chat roles. Authored narration is the tutor speaking."""
    return [
        {
            "role": "user" if item.role == Role.LEARNER else "assistant",
            "content": item.text,
        }
        for item in items
        if item.text
    ]
