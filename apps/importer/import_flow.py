# apps/importer/import_flow.py
#
# "Import recipe from URL":
#   extract  (caller-provided, AI)     → ImportedRecipe with an optional image guess
#   resolver                            → confirm the guess or scrape a better one
#   generate_image (caller-provided)    → synthetic photo when nothing was found
#   placeholder                         → stock art so image_url is never empty

from __future__ import annotations

import random
from typing import Awaitable, Callable, List, Optional

import httpx
from pydantic import ValidationError

from apps.importer.config import Settings, get_logger, settings as default_settings
from apps.importer.models import ImportedRecipe, ImportRecipeInput
from apps.importer.resolver import resolve_recipe_image_url

__all__ = [
    "RecipeImportError",
    "import_recipe",
    "choose_recipe_image",
]

log = get_logger("import")

RecipeExtractor = Callable[[str], Awaitable[Optional[ImportedRecipe]]]
ImageGenerator = Callable[[str, List[str]], Awaitable[Optional[str]]]

MAX_PROMPT_INGREDIENTS = 5


class RecipeImportError(Exception):
    """Raised when a page cannot be turned into a recipe at all."""


async def choose_recipe_image(
    page_url: str,
    recipe: ImportedRecipe,
    generate_image: Optional[ImageGenerator] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> str:
    cfg = settings or default_settings

    url = await resolve_recipe_image_url(
        page_url, recipe.image_url, client=client, settings=cfg
    )
    if url:
        return url

    if generate_image is not None:
        try:
            generated = await generate_image(
                recipe.name, recipe.ingredients[:MAX_PROMPT_INGREDIENTS]
            )
        except Exception as e:  # generator is an external model call
            log.warning("image generation failed for %r: %r", recipe.name, e)
            generated = None
        if generated:
            return generated

    return random.choice(cfg.placeholder_image_urls)


async def import_recipe(
    url: str,
    extract: RecipeExtractor,
    generate_image: Optional[ImageGenerator] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> ImportedRecipe:
    try:
        page_url = str(ImportRecipeInput(url=url).url)
    except ValidationError as e:
        raise RecipeImportError(f"Not a valid recipe URL: {url!r}") from e

    try:
        recipe = await extract(page_url)
    except Exception as e:  # extractor is an external model call
        raise RecipeImportError(
            "Failed to extract recipe from the provided URL. "
            "Please check the URL or try another one."
        ) from e
    if recipe is None:
        raise RecipeImportError("Failed to extract recipe from URL.")

    image_url = await choose_recipe_image(
        page_url, recipe, generate_image, client=client, settings=settings
    )
    log.info("imported %r from %s", recipe.name, page_url)
    return recipe.model_copy(update={"url": page_url, "image_url": image_url})
