from __future__ import annotations
from typing import Dict, List, Optional

from chatpilot.models import ChatMessage


ANALYSIS_PROMPT = """You are analyzing a {app} conversation for a chat automation system. Compare the previous OCR text with the current OCR text and determine:
1. If there's a new message from someone other than "{username}" (who is the user you're impersonating)
2. If so, extract that new message and the sender's name
3. ONLY respond with new messages sent by others, never with messages sent by "{username}"
{own_response_rule}
Return your analysis as JSON in this format:
{{
  "newMessageDetected": boolean,
  "shouldReply": boolean,
  "message": "the new message text if any",
  "sender": "the sender's name",
  "reasoning": "brief explanation of your decision"
}}

If there are multiple new messages, focus on the most recent one. Ignore UI elements, timestamps and system notifications picked up by OCR. Output JSON only."""


PERSONA_PROMPT = (
    "You're a friendly human friend responding on {app}. Be conversational, humorous, and concise. "
    "Use occasional puns and emojis sparingly. Keep responses short (1-3 sentences max). "
    "Make jokes when appropriate. Focus ONLY on responding to {app} messages in the OCR and ignore "
    "anything else like UI elements. Act natural as if you're my replacement chatting with a friend. "
    "Avoid sounding robotic or overly formal."
)


GREETING_PROMPT = (
    "You're starting a {app} conversation as a friendly human. {instruction} "
    "Write ONE short, casual opening message (1-2 sentences, at most one emoji). "
    "Return ONLY the message itself, nothing else."
)


def render_history(messages: List[ChatMessage]) -> str:
    """Render chat history the way the analyzer expects it: 'AI: ...' / 'User: ...'."""
    return "\n".join(
        f"{'AI' if m.role == 'assistant' else 'User'}: {m.content}" for m in messages
    )


def build_analysis_messages(
    previous_text: str,
    current_text: str,
    my_username: str,
    last_own_response: str = "",
    recent_history: str = "",
    context_instructions: str = "",
    app: str = "chat",
) -> List[Dict[str, str]]:
    own_response_rule = ""
    if last_own_response:
        own_response_rule = (
            f'4. The text "{last_own_response}" was sent by {my_username} (you). '
            "Ignore it and anything containing it; it is never a new message.\n"
        )

    system = ANALYSIS_PROMPT.format(
        app=app, username=my_username, own_response_rule=own_response_rule
    )
    if context_instructions:
        system += f"\n\n{context_instructions}"

    parts = []
    if recent_history:
        parts.append(f"Recent chat history:\n{recent_history}\n\n---\n")
    parts.append(f"Previous OCR text:\n\n{previous_text}\n\n---\n\nCurrent OCR text:\n\n{current_text}")

    return [
        {"role": "system", "content": system},
        {"role": "user", "content": "\n".join(parts)},
    ]


def build_reply_messages(
    incoming_message: str,
    history: List[ChatMessage],
    ocr_context: Optional[str] = None,
    app: str = "chat",
) -> List[Dict[str, str]]:
    system = PERSONA_PROMPT.format(app=app)
    if ocr_context:
        system += (
            f' I can see the following {app} chat: "{ocr_context}" - Only respond to actual messages '
            "from others, ignore UI elements or system notifications. Stay in character as a human friend."
        )

    messages = [{"role": "system", "content": system}]
    messages += [{"role": m.role, "content": m.content} for m in history]
    # The incoming message is usually the last history entry already
    if not history or history[-1].role != "user" or history[-1].content != incoming_message:
        messages.append({"role": "user", "content": incoming_message})
    return messages


def build_greeting_messages(
    ocr_text: str,
    instruction: Optional[str] = None,
    app: str = "chat",
) -> List[Dict[str, str]]:
    instruction = instruction or f"Generate a friendly initial greeting for a {app} conversation."
    system = GREETING_PROMPT.format(app=app, instruction=instruction)
    user = f"The chat window currently shows:\n\n{ocr_text}" if ocr_text else "The chat window is empty."
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def messages_to_prompt(messages: List[Dict[str, str]]) -> tuple[str, str]:
    """Split chat messages into (system, prompt) for completion-style backends."""
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    lines = []
    for m in messages:
        if m["role"] == "system":
            continue
        speaker = "Assistant" if m["role"] == "assistant" else "Person"
        lines.append(f"{speaker}: {m['content']}")
    if messages and messages[-1]["role"] != "assistant":
        lines.append("Assistant:")
    return system, "\n".join(lines)
