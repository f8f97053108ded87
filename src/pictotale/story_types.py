"""
Story-type catalog for the PictoTale pipeline.

Each story type gives the generator a base prompt, themes and a structure,
and picks the background music attached to finished stories.

Story types provide a FRAME, not a script: the child's drawing, voice and
characters still drive what happens in the story.
"""

from typing import Any, Dict, List, Optional

DEFAULT_MUSIC_FILE = "general_theme.mp3"

STORY_TYPE_CONFIGS = {
    "adventure": {
        "name": "Adventure",
        "description": "Exciting journeys and quests with brave heroes exploring new worlds",
        "characteristics": [
            "brave heroes",
            "exciting quests",
            "mysterious places",
            "treasure hunting",
            "overcoming challenges",
        ],
        "prompt_template": {
            "base_prompt": "Create an exciting adventure story with brave characters who go on a quest",
            "themes": ["courage", "exploration", "friendship", "problem-solving"],
            "vocabulary": "age-appropriate with action words",
            "structure": "clear beginning with setup, exciting middle with challenges, satisfying resolution",
        },
        "sample_titles": [
            "The Treasure of Rainbow Island",
            "Maya's Magical Mountain Quest",
            "The Secret of the Crystal Cave",
        ],
        "age_range": (4, 12),
        "music_file": "adventure_theme.mp3",
    },
    "fantasy": {
        "name": "Fantasy",
        "description": "Magical worlds filled with unicorns, dragons, fairies, and enchanted forests",
        "characteristics": [
            "magical creatures",
            "enchanted forests",
            "fairy tale elements",
            "talking animals",
            "magical powers",
        ],
        "prompt_template": {
            "base_prompt": "Create a magical fantasy story with enchanted creatures and wonderful magic",
            "themes": ["magic", "wonder", "kindness", "believing in yourself"],
            "vocabulary": "whimsical and magical words",
            "structure": "fairy tale structure with magical elements throughout",
        },
        "sample_titles": [
            "Luna the Unicorn's First Rainbow",
            "The Dragon Who Loved to Paint",
            "Fairy Village's Missing Sparkle",
        ],
        "age_range": (3, 10),
        "music_file": "magical_theme.mp3",
    },
    "friendship": {
        "name": "Friendship",
        "description": "Heartwarming tales about making friends, helping others, and working together",
        "characteristics": [
            "making new friends",
            "helping others",
            "sharing and caring",
            "teamwork",
            "kindness",
        ],
        "prompt_template": {
            "base_prompt": "Create a heartwarming story about friendship, kindness, and helping others",
            "themes": ["friendship", "empathy", "cooperation", "inclusion"],
            "vocabulary": "warm and emotional words",
            "structure": "character meets challenge, friends help, everyone learns and grows",
        },
        "sample_titles": [
            "The New Kid at Playground Park",
            "Benny Bear's Big Heart",
            "The Friendship Garden",
        ],
        "age_range": (3, 8),
        "music_file": "heartwarming_theme.mp3",
    },
    "educational": {
        "name": "Educational",
        "description": "Fun learning adventures about science, nature, history, and discovering new things",
        "characteristics": [
            "learning new things",
            "science experiments",
            "nature exploration",
            "historical adventures",
            "problem solving",
        ],
        "prompt_template": {
            "base_prompt": "Create an educational story that teaches something new in a fun and engaging way",
            "themes": ["curiosity", "learning", "discovery", "science"],
            "vocabulary": "educational but simple terms with explanations",
            "structure": "introduce concept, explore through story, reinforce learning",
        },
        "sample_titles": [
            "Zoe's Amazing Space Adventure",
            "The Life Cycle of Bella Butterfly",
            "How Rainbows Are Made",
        ],
        "age_range": (5, 12),
        "music_file": "learning_theme.mp3",
    },
    "mystery": {
        "name": "Mystery",
        "description": "Gentle mysteries and detective stories perfect for young investigators",
        "characteristics": [
            "solving puzzles",
            "finding clues",
            "detective work",
            "gentle suspense",
            "logical thinking",
        ],
        "prompt_template": {
            "base_prompt": "Create a child-friendly mystery story with clues to solve and a satisfying resolution",
            "themes": ["problem-solving", "observation", "logic", "persistence"],
            "vocabulary": "mystery terms but never frightening",
            "structure": "introduce mystery, gather clues, solve with logic and teamwork",
        },
        "sample_titles": [
            "The Case of the Missing Cookie Jar",
            "Detective Sophie and the Lost Teddy Bear",
            "The Mystery of the Singing Garden",
        ],
        "age_range": (6, 12),
        "music_file": "mysterious_theme.mp3",
    },
    "animal": {
        "name": "Animal Adventures",
        "description": "Stories about amazing animals, pets, and wildlife adventures",
        "characteristics": [
            "talking animals",
            "pet adventures",
            "wildlife exploration",
            "animal friendships",
            "nature conservation",
        ],
        "prompt_template": {
            "base_prompt": "Create a story featuring animals as main characters with important life lessons",
            "themes": ["nature", "animal care", "responsibility", "habitat protection"],
            "vocabulary": "animal-related words and sounds",
            "structure": "animal character faces challenge, learns lesson, shares with others",
        },
        "sample_titles": [
            "Rusty the Rescue Dog's Big Day",
            "The Elephant Who Forgot How to Trumpet",
            "Penguins on a Polar Adventure",
        ],
        "age_range": (3, 10),
        "music_file": "nature_theme.mp3",
    },
    "superhero": {
        "name": "Superhero",
        "description": "Kid-friendly superhero stories about using powers to help others",
        "characteristics": [
            "special powers",
            "helping others",
            "saving the day",
            "teamwork",
            "being brave",
        ],
        "prompt_template": {
            "base_prompt": "Create a superhero story where the hero uses their powers to help others and make the world better",
            "themes": ["helping others", "responsibility", "courage", "doing the right thing"],
            "vocabulary": "action words and positive superhero terminology",
            "structure": "discover powers, learn responsibility, use powers to help, save the day",
        },
        "sample_titles": [
            "Captain Kindness Saves the School",
            "The Little Hero Who Could Fly",
            "Super Sam and the Recycling Mission",
        ],
        "age_range": (4, 10),
        "music_file": "heroic_theme.mp3",
    },
    "family": {
        "name": "Family & Home",
        "description": "Warm stories about family life, traditions, and growing up",
        "characteristics": [
            "family traditions",
            "growing up",
            "home life",
            "sibling relationships",
            "family love",
        ],
        "prompt_template": {
            "base_prompt": "Create a heartwarming story about family life, traditions, or growing up",
            "themes": ["family love", "traditions", "growing up", "home"],
            "vocabulary": "family-related and emotional words",
            "structure": "family situation, challenge or celebration, love and support resolution",
        },
        "sample_titles": [
            "Grandma's Recipe for Love",
            "The Day I Became a Big Sister",
            "Our Family's Special Tradition",
        ],
        "age_range": (3, 8),
        "music_file": "cozy_theme.mp3",
    },
}


def get_story_type(story_type_id: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Get the configuration for a story type.

    Args:
        story_type_id: Catalog id (e.g. "adventure")

    Returns:
        Story type dict including its ``id``, or None if unknown
    """
    if not story_type_id:
        return None
    config = STORY_TYPE_CONFIGS.get(story_type_id)
    if config is None:
        return None
    return {"id": story_type_id, **config}


def get_available_story_types() -> List[str]:
    """Return the ids of all catalog story types."""
    return list(STORY_TYPE_CONFIGS.keys())


def list_story_types() -> List[Dict[str, Any]]:
    """Return a public summary of each story type."""
    summaries = []
    for story_type_id, config in STORY_TYPE_CONFIGS.items():
        age_min, age_max = config["age_range"]
        summaries.append({
            "id": story_type_id,
            "name": config["name"],
            "description": config["description"],
            "characteristics": list(config["characteristics"]),
            "recommended_age_min": age_min,
            "recommended_age_max": age_max,
        })
    return summaries


def get_music_file(story_type_id: Optional[str]) -> str:
    config = STORY_TYPE_CONFIGS.get(story_type_id or "")
    if config is None:
        return DEFAULT_MUSIC_FILE
    return config["music_file"]


def fallback_title(story_type: Optional[Dict[str, Any]]) -> str:
    """Deterministic title used when title generation is unavailable."""
    name = story_type["name"] if story_type else "Story"
    return f"A Magical {name} Adventure"
