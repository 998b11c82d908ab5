import logging
from typing import Protocol

from langchain_google_genai import ChatGoogleGenerativeAI

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Tout fournisseur de génération de texte : prompt -> texte brut."""

    async def generate(self, prompt: str) -> str:
        ...


class GeminiTextGenerator:
    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", temperature: float = 0.3):
        # Température modérée : on veut du JSON stable mais des réponses naturelles
        self.llm = ChatGoogleGenerativeAI(
            model=model,
            google_api_key=api_key,
            temperature=temperature,
            transport="rest",
        )
        self.model = model

    async def generate(self, prompt: str) -> str:
        message = await self.llm.ainvoke(prompt)
        content = message.content
        # Selon la version, le contenu est une chaîne ou une liste de "parts"
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        logger.debug("🧠 Gemini (%s): %d caractères reçus", self.model, len(content))
        return content
