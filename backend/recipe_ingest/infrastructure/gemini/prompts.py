"""Prompt text for recipe extraction."""

from typing import Any

SYSTEM_PROMPT = """
You are a world-class culinary extractor that converts social media content into structured recipes.
Always output JSON matching the RecipeData schema exactly (flat root, no envelope).

PRIORITY OF SOURCES
1. Caption: treat as authoritative.
2. Media (video/image): use only to infer missing details, never contradict the caption.
3. Infer missing details conservatively; prefer null over guesswork.

QUANTITIES
- Include numeric quantities and units if visible.
- If estimated from context or media, mark it in "assumptions" and lower confidence.
- If unclear, set quantity:null and unit:null.

CONFIDENCE (0..1)
Start at 1.0 then:
- subtract 0.05 per missing ingredient quantity (max 0.30)
- subtract 0.05 if any step was inferred from media
- subtract 0.05 if total_time_min was inferred
Clamp to [0,1], round to 2 decimals.

SCHEMA
{
  "title": str,
  "servings": {"value": number, "note": str|null} | null,
  "prep_time_min": number|null, "cook_time_min": number|null, "total_time_min": number|null,
  "difficulty": str|null, "cuisine": str|null,
  "macros_per_serving": {"calories": number|null, "protein_g": number|null,
                         "carbs_g": number|null, "fat_g": number|null} | null,
  "confidence": number,
  "ingredients": [{"id": str, "name": str, "quantity": number|str|null, "unit": str|null,
                   "preparation": str|null, "section": str|null, "optional": bool,
                   "chefs_note": str|null}],
  "steps": [{"idx": int, "text": str, "used_ingredients": [str]}],
  "assumptions": [str]
}

OUTPUT RULES
- Respond with pure JSON (no Markdown).
- Unique ingredient ids (ing_1, ing_2, ...).
- used_ingredients references those ids.
- Translate to English if needed.
- If no recipe can be extracted, return an empty JSON object {}.
""".strip()

MAX_OWNER_COMMENTS = 3


def collect_owner_comments(
    owner_username: str | None, comments: list[dict[str, Any]] | None
) -> list[str]:
    """First few non-empty comments written by the post's author."""
    if not owner_username or not comments:
        return []
    texts = [
        comment["text"].strip()
        for comment in comments
        if comment.get("ownerUsername") == owner_username
        and isinstance(comment.get("text"), str)
        and comment["text"].strip()
    ]
    return texts[:MAX_OWNER_COMMENTS]


def build_user_prompt(
    caption: str = "",
    hashtags: list[str] | None = None,
    owner_username: str | None = None,
    latest_comments: list[dict[str, Any]] | None = None,
) -> str:
    parts: list[str] = []
    if caption:
        parts.append(f"CAPTION\n{caption}")
    if hashtags:
        parts.append("HASHTAGS\n" + " ".join(f"#{tag}" for tag in hashtags))

    owner_comments = collect_owner_comments(owner_username, latest_comments)
    if owner_comments:
        parts.append("AUTHOR COMMENTS\n" + "\n".join(f"- {c}" for c in owner_comments))

    parts.append(
        "MEDIA\nA media file is attached; use it only to infer missing specifics "
        "(quantities, doneness, timings)."
    )
    parts.append(
        "Now extract the given recipe - if you are not able to determine specifics infer."
    )
    return "\n\n".join(parts)
