from pydantic import BaseModel, HttpUrl
from typing import List, Optional


class ImportRecipeInput(BaseModel):
    url: HttpUrl


class ImportedRecipe(BaseModel):
    name: str
    ingredients: List[str]
    instructions: str
    servings: int = 1
    prep_time: int = 0      # minutes
    cook_time: int = 0      # minutes
    url: str = ""
    image_url: Optional[str] = None
