from __future__ import annotations

import logging
import threading
from typing import Any

from . import llm
from .models import AppSettings, Persona
from .store import ManuscriptStore

logger = logging.getLogger(__name__)

CONTEXT_WINDOW_CHARS = 2000
PARAGRAPH_SEPARATOR = "\n\n"

PERSONA_GUIDANCE = {
    Persona.CLASSIC: (
        "Write in a measured literary voice in the tradition of classic Bengali "
        "prose, with rich description and careful pacing."
    ),
    Persona.THRILLER: (
        "Write taut, suspenseful prose: short sentences, rising tension, and a "
        "hook at the end of the passage."
    ),
    Persona.DIALOGUE: (
        "Advance the story mainly through dialogue. Put each spoken line on its "
        "own line, starting with an em-dash (—)."
    ),
    Persona.BOLD: (
        "You may explore mature themes, complex human emotions, and intense "
        "drama suitable for adult readers (18+), while keeping literary quality."
    ),
}


class PersonaUnavailable(ValueError):
    """The persona is gated behind the relaxed content filter."""


def available_personas(settings: AppSettings) -> list[Persona]:
    return [
        persona
        for persona in Persona
        if settings.content_filter_relaxed or not persona.mature
    ]


def generation_params(settings: AppSettings) -> dict[str, float]:
    if settings.content_filter_relaxed:
        return {"temperature": 0.95, "top_p": 0.95}
    return {"temperature": 0.8, "top_p": 0.9}


def trailing_context(content: str, limit: int = CONTEXT_WINDOW_CHARS) -> str:
    return content[-limit:] if limit > 0 else ""


def build_messages(
    instruction: str,
    context: str,
    persona: Persona,
    mature: bool,
) -> list[dict[str, str]]:
    maturity = (
        "Mature content is permitted when the story calls for it."
        if mature
        else "Keep the content suitable for a general audience."
    )
    system = (
        'You are an expert Bengali literature author named "Kotha-Boli AI".\n'
        f"Persona: {persona.value}. {PERSONA_GUIDANCE[persona]}\n"
        f"{maturity}\n"
        "Write in Shuddho Bangla (standard) or Cholito, matching the context "
        "provided. Always respond in Bengali Unicode. Return only the new prose "
        "that continues the story, no commentary.\n\n"
        f"Current context:\n{trailing_context(context)}"
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": instruction},
    ]


def continue_story(
    store: ManuscriptStore,
    settings: AppSettings,
    instruction: str,
    persona: Persona = Persona.CLASSIC,
    model: str | None = None,
    cancel: threading.Event | None = None,
) -> str:
    """Stream a continuation of the active story into its content.

    Each fragment is appended through the store as it arrives; a failed
    stream restores the story as it was. Returns the generated text, or
    ``""`` when no story is active.
    """
    if not instruction.strip():
        raise ValueError("Instruction must not be empty")
    persona = Persona(persona)
    if persona not in available_personas(settings):
        raise PersonaUnavailable(
            f"Persona {persona.value!r} requires the relaxed content filter"
        )

    story = store.active_story
    if story is None:
        return ""

    messages = build_messages(
        instruction, story.content, persona, settings.content_filter_relaxed
    )
    params: dict[str, Any] = generation_params(settings)
    chosen_model = model or llm.get_default_model()

    received: list[str] = []
    try:
        for fragment in llm.stream_chat(messages, chosen_model, cancel=cancel, **params):
            if not received:
                store.update(story.id, is_mature=settings.content_filter_relaxed)
                if story.content:
                    store.append_content(story.id, PARAGRAPH_SEPARATOR)
            received.append(fragment)
            store.append_content(story.id, fragment)
    except llm.LLMError:
        if received:
            logger.warning(
                "Stream failed after %d fragments; restoring story %s", len(received), story.id
            )
            store.update(story.id, content=story.content, is_mature=story.is_mature)
        raise

    logger.info("Appended %d fragments to story %s", len(received), story.id)
    return "".join(received)
