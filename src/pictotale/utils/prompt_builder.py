"""
Prompt builder for children's story generation.

Pure functions that turn the heterogeneous inputs of a run (drawing
description, voice transcription, free-text request, characters) into a
single generation request, plus the smaller continuation, title and
illustration prompts.

Key Components:
- Dataclasses: PromptInput, ContinuationPromptInput - Parameter objects
- Functions: Prompt builders and key-scene extraction
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .llm_constants import MIN_SCENE_LINE_CHARS, TITLE_CONTEXT_CHARS

GENERIC_SCENE = "A magical adventure scene"

TITLE_PROMPT_PREFIX = "Create a catchy, child-friendly title"
CONTINUATION_PROMPT_PREFIX = "Continue this children's story"

MIN_AGE = 3
MAX_AGE = 12

LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "pl": "Polish",
    "hi": "Hindi",
    "ja": "Japanese",
    "zh": "Chinese",
}

_SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]*")


@dataclass
class PromptInput:
    """Parameters for building the story generation prompt."""
    story_type: Dict[str, Any]
    max_words: int
    language: str = "en"
    drawing_analysis: str = ""
    voice_transcription: str = ""
    character_names: List[str] = field(default_factory=list)
    character_descriptions: Dict[str, str] = field(default_factory=dict)
    user_prompt: str = ""


@dataclass
class ContinuationPromptInput:
    """Parameters for building a continuation prompt."""
    existing_content: str
    additional_prompt: str
    max_words: int
    story_type: Optional[Dict[str, Any]] = None
    new_characters: List[str] = field(default_factory=list)
    language: str = "en"


def language_name(code: str) -> str:
    """Human-readable language name for a language code, or the code itself."""
    if not code:
        return LANGUAGE_NAMES["en"]
    return LANGUAGE_NAMES.get(code.lower().split("-")[0], code)


def _story_type_section(story_type: Dict[str, Any]) -> List[str]:
    template = story_type.get("prompt_template", {})
    parts = [
        f"Create a short, magical children's story in the {story_type.get('name', 'Adventure')} genre.",
    ]
    if template.get("base_prompt"):
        parts.append(f"{template['base_prompt']}.")
    characteristics = story_type.get("characteristics") or []
    if characteristics:
        parts.append(f"Stories of this kind feature: {', '.join(characteristics)}.")
    themes = template.get("themes") or []
    if themes:
        parts.append(f"Themes to weave in: {', '.join(themes)}.")
    if template.get("vocabulary"):
        parts.append(f"Vocabulary: {template['vocabulary']}.")
    if template.get("structure"):
        parts.append(f"Structure: {template['structure']}.")
    return parts


def build_story_prompt(params: PromptInput) -> str:
    """
    Build the prompt for generating a new story.

    Sections appear in a fixed order: story type, drawing, voice,
    characters, user request, constraints. Empty inputs are skipped.

    Args:
        params: Prompt parameters dataclass

    Returns:
        Prompt string
    """
    parts = _story_type_section(params.story_type)

    if params.drawing_analysis:
        parts.append(f"Base the story on this child's drawing: {params.drawing_analysis}")

    if params.voice_transcription:
        parts.append(f'Incorporate these ideas the child shared: "{params.voice_transcription}"')

    if params.character_names:
        parts.append(f"Include these character names: {', '.join(params.character_names)}.")

    for name, description in params.character_descriptions.items():
        if description:
            parts.append(f"{name} is {description}.")

    if params.user_prompt:
        parts.append(f"Story request: {params.user_prompt}")

    parts.append(
        "\nStory requirements:\n"
        f"- No more than {params.max_words} words in total\n"
        "- A clear beginning, middle and end\n"
        f"- Age-appropriate for children {MIN_AGE}-{MAX_AGE} years old\n"
        "- Positive and gentle, with a simple moral or kind message\n"
        "- Nothing frightening, violent or sad enough to upset a young child\n"
        f"- Language: {language_name(params.language)}\n"
        "\nProvide ONLY the story text, without a title, headers or notes."
    )

    return "\n".join(parts)


def build_continuation_prompt(params: ContinuationPromptInput) -> str:
    """
    Build the prompt for extending a finished story.

    The existing content is included in full so the model can keep names,
    tone and setting consistent.
    """
    parts = [
        f"{CONTINUATION_PROMPT_PREFIX} based on the child's request.",
        "",
        "Existing story:",
        params.existing_content,
        "",
        f"The child wants to add: {params.additional_prompt}",
    ]
    if params.new_characters:
        parts.append(f"New characters: {', '.join(params.new_characters)}")
    parts.append(
        "\nWrite a seamless continuation that keeps the story's tone and style.\n"
        f"- No more than {params.max_words} words\n"
        f"- Age-appropriate for children {MIN_AGE}-{MAX_AGE} years old\n"
        f"- Language: {language_name(params.language)}\n"
        "Do not repeat the existing story. Provide ONLY the new text."
    )
    return "\n".join(parts)


def build_title_prompt(content: str, story_type: Optional[Dict[str, Any]]) -> str:
    """Build the prompt for a short, child-friendly title."""
    type_name = story_type["name"] if story_type else "children's"
    excerpt = content[:TITLE_CONTEXT_CHARS]
    return (
        f"{TITLE_PROMPT_PREFIX} for this {type_name} story. "
        "Make it engaging and magical. Reply with the title only.\n\n"
        f"{excerpt}..."
    )


def build_illustration_prompt(scene: str, story_type: Optional[Dict[str, Any]]) -> str:
    style = story_type["name"] if story_type else "storybook"
    return (
        f"Children's book illustration of: {scene}. "
        f"Style: {style}, colorful, friendly, hand-drawn aesthetic, "
        f"suitable for children ages {MIN_AGE}-{MAX_AGE}. No text or words in the image."
    )


def clean_title(raw_title: str) -> str:
    """Strip quotes, markdown and surrounding whitespace from a generated title."""
    stripped = (raw_title or "").strip()
    title = stripped.splitlines()[0] if stripped else ""
    title = title.replace('"', "").replace("*", "").strip()
    if title.lower().startswith("title:"):
        title = title[len("title:"):].strip()
    return title


def _evenly_spaced(items: List[str], count: int) -> List[str]:
    if count >= len(items):
        return list(items)
    if count == 1:
        return [items[0]]
    step = (len(items) - 1) / (count - 1)
    indices = sorted({round(i * step) for i in range(count)})
    return [items[i] for i in indices]


def extract_key_scenes(content: str, num_scenes: int = 2) -> List[str]:
    """
    Pick up to ``num_scenes`` scene descriptions from story text.

    Lines longer than a short threshold are preferred and sampled evenly
    from beginning to end. Stories written as a single paragraph fall back
    to sentences. With nothing usable, a generic scene is returned.

    Args:
        content: Story text
        num_scenes: Maximum number of scenes

    Returns:
        Non-empty list of scene strings
    """
    if num_scenes <= 0:
        return []

    text = content or ""
    lines = [line.strip() for line in text.split("\n") if len(line.strip()) > MIN_SCENE_LINE_CHARS]

    candidates = lines
    if len(lines) < min(num_scenes, 2):
        sentences = [s.strip() for s in _SENTENCE_PATTERN.findall(text)]
        sentences = [s for s in sentences if len(s) > MIN_SCENE_LINE_CHARS]
        if len(sentences) > len(lines):
            candidates = sentences

    if not candidates:
        return [GENERIC_SCENE]

    return _evenly_spaced(candidates, num_scenes)
