from .gemini_client import GeminiRecipeExtractor

__all__ = ["GeminiRecipeExtractor"]
