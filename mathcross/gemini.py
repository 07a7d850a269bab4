"""Gemini puzzle generation service."""
import logging
import random

import httpx

from mathcross.db import Settings, get_settings
from mathcross.errors import MalformedResponse, ProviderUnavailable
from mathcross.schemas import Difficulty, Puzzle
from mathcross.validators import parse_puzzle_text, validate_puzzle

logger = logging.getLogger(__name__)


def build_prompt(difficulty: Difficulty) -> str:
    """Prompt asking the model for one puzzle of the given difficulty."""
    return (
        f"Create a number puzzle for difficulty: {difficulty.value}. The grid must be 8x8. "
        "The puzzle should be a grid with some numbers pre-filled, some empty cells for the user to fill, "
        "and some non-playable blank spaces. The numbers can be multi-digit. "
        "The grid should be sparse and form an interesting, non-rectangular shape. "
        "Use these cell types and values: "
        "'GIVEN': For pre-filled numbers. The 'value' property must be a string containing the number. "
        "'INPUT': For empty cells the user must fill in. The 'value' property must be an empty string \"\". "
        "'EMPTY': For blank, non-playable spaces. The 'value' property must be an empty string \"\". "
        "The response must be a valid JSON object. The JSON should contain: "
        "'grid': An 8x8 array representing the puzzle board. "
        "'solution': An array of objects for each 'INPUT' cell. Each object must have a 'key' "
        "(a \"row,col\" string) and a 'value' (the correct number). There must be at least 5 INPUT cells. "
        "'keypad': An array of 15 numbers. It must contain all the correct numbers for the solution, "
        "plus some distractor numbers. The numbers should be shuffled."
    )


def extract_text(body: dict) -> str:
    """Pull the generated text out of a generateContent response body."""
    if not isinstance(body, dict):
        raise MalformedResponse("Gemini response body is not an object")
    candidates = body.get("candidates") or []
    if not candidates:
        feedback = body.get("promptFeedback", {})
        raise MalformedResponse(f"Model returned no candidates (feedback: {feedback})")

    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts)
    if not text.strip():
        raise MalformedResponse("Model returned an empty candidate")
    return text


async def fetch_puzzle(
    difficulty: Difficulty,
    client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
) -> Puzzle:
    """Ask Gemini for a puzzle and validate it.

    Args:
        difficulty: Difficulty label passed to the model
        client: Optional client to reuse; a fresh one is opened otherwise
        settings: Optional settings override

    Raises ProviderUnavailable for missing credentials, transport errors and
    non-2xx responses, and MalformedResponse when the answer is not a puzzle.
    """
    settings = settings or get_settings()
    if not settings.gemini_api_key:
        raise ProviderUnavailable("GEMINI_API_KEY is not set. Please add your API key.")

    if client is None:
        async with httpx.AsyncClient(follow_redirects=True) as own_client:
            return await _generate(own_client, difficulty, settings)
    return await _generate(client, difficulty, settings)


async def _generate(client: httpx.AsyncClient, difficulty: Difficulty, settings: Settings) -> Puzzle:
    url = f"{settings.gemini_base_url}/models/{settings.gemini_model}:generateContent"
    payload = {
        "contents": [{"parts": [{"text": build_prompt(difficulty)}]}],
        "generationConfig": {"responseMimeType": "application/json"},
    }

    try:
        resp = await client.post(
            url,
            json=payload,
            headers={"x-goog-api-key": settings.gemini_api_key},
            timeout=settings.request_timeout,
        )
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ProviderUnavailable(f"Gemini returned HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise ProviderUnavailable(f"Could not reach Gemini: {e}") from e

    try:
        body = resp.json()
    except ValueError as e:
        raise MalformedResponse("Gemini response body is not JSON") from e

    rng = random.Random(settings.keypad_seed) if settings.keypad_seed is not None else None
    puzzle = validate_puzzle(parse_puzzle_text(extract_text(body)), rng=rng)
    logger.info(f"Fetched {difficulty.value} puzzle with {len(puzzle.solution)} INPUT cells")
    return puzzle
