from __future__ import annotations

import io
import struct
import wave

from . import llm

SPEECH_TEXT_LIMIT = 500
NARRATION_PREFIX = "দয়া করে নিচের বাংলা লেখাটি পাঠ করুন: "


def narrate(text: str, voice: str | None = None) -> bytes:
    """Synthesize the first ``SPEECH_TEXT_LIMIT`` characters as raw PCM."""
    excerpt = text.strip()[:SPEECH_TEXT_LIMIT]
    if not excerpt:
        raise ValueError("Nothing to narrate")
    pcm = llm.synthesize_speech(NARRATION_PREFIX + excerpt, voice)
    if not pcm:
        raise llm.LLMError("Speech synthesis returned no audio")
    return pcm


def pcm_to_samples(pcm: bytes) -> list[float]:
    """Decode 16-bit little-endian PCM into floats in [-1.0, 1.0)."""
    count = len(pcm) // 2
    values = struct.unpack(f"<{count}h", pcm[: count * 2])
    return [value / 32768.0 for value in values]


def pcm_to_wav(pcm: bytes, sample_rate: int = llm.SPEECH_SAMPLE_RATE) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as handle:
        handle.setnchannels(1)
        handle.setsampwidth(2)
        handle.setframerate(sample_rate)
        handle.writeframes(pcm[: len(pcm) // 2 * 2])
    return buffer.getvalue()
