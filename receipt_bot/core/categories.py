"""Static category directory.

Categories are reference data: a three letter id, a display name and a
short description that is also handed to the vision model so it can
infer a category for every product. The directory is loaded once at
startup, either from the defaults below or from a JSON file named by
``CATEGORIES_FILE`` (a list of ``{"id", "name", "description"}``
objects), and is never mutated afterwards.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from receipt_bot.models.schemas import Category

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY_ID = "OTH"

DEFAULT_CATEGORIES: list[dict[str, str]] = [
    {"id": "FOH", "name": "Jedzenie – Dom", "description": "Zakupy spożywcze, gotowanie w domu"},
    {"id": "FOD", "name": "Jedzenie – Na mieście", "description": "Restauracje, kawiarnie, fast food, napoje na mieście"},
    {"id": "CAR", "name": "Transport – Samochód", "description": "Paliwo, naprawy, ubezpieczenie, przeglądy"},
    {"id": "TRN", "name": "Transport – Komunikacja", "description": "Bilety komunikacji miejskiej, Uber, taksówki, rowery, hulajnogi"},
    {"id": "HOM", "name": "Mieszkanie & Rachunki", "description": "Czynsz, media, internet, telefon"},
    {"id": "HLT", "name": "Zdrowie & Higiena", "description": "Leki, lekarze, kosmetyki, fryzjer"},
    {"id": "CLT", "name": "Odzież & Obuwie", "description": "Ubrania, buty, dodatki"},
    {"id": "ENT", "name": "Rozrywka & Hobby", "description": "Kino, gry, koncerty, książki, siłownia, sporty"},
    {"id": "SUB", "name": "Subskrypcje & Usługi cyfrowe", "description": "Netflix, Spotify, inne abonamenty"},
    {"id": "EDU", "name": "Edukacja & Rozwój", "description": "Kursy, szkolenia, książki, materiały edukacyjne"},
    {"id": "TRV", "name": "Podróże & Wyjazdy", "description": "Bilety, noclegi, atrakcje turystyczne"},
    {"id": "GFT", "name": "Prezenty & Okazje specjalne", "description": "Urodziny, święta, rocznice"},
    {"id": "INV", "name": "Inwestycje & Oszczędności", "description": "Fundusze, giełda, oszczędności"},
    {"id": "INS", "name": "Ubezpieczenia & Finanse", "description": "Polisy, prowizje, opłaty bankowe"},
    {"id": "ELE", "name": "Sprzęt & Elektronika", "description": "AGD, komputery, telefony, akcesoria"},
    {"id": "PET", "name": "Zwierzęta & Opieka nad nimi", "description": "Karma, weterynarz, akcesoria"},
    {"id": "CHA", "name": "Charytatywność & Darowizny", "description": "Wsparcie organizacji, datki"},
    {"id": "OTH", "name": "Inne wydatki", "description": "Wszystko, co nie pasuje do powyższych kategorii"},
]


class CategoryDirectory:
    """Case-insensitive lookup over an immutable set of categories."""

    def __init__(self, categories: Iterable[Category]) -> None:
        self._categories: tuple[Category, ...] = tuple(categories)
        self._index: dict[str, Category] = {}
        for category in self._categories:
            self._index.setdefault(category.id.lower(), category)
            self._index.setdefault(category.name.lower(), category)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "CategoryDirectory":
        """Build the directory from ``path`` (JSON list) or the built-in defaults."""
        raw: list[dict[str, str]] = DEFAULT_CATEGORIES
        if path:
            with open(Path(path), "r", encoding="utf-8") as f:
                raw = json.load(f)
            logger.info("Loaded %d categories from %s", len(raw), path)
        return cls(Category.model_validate(item) for item in raw)

    @property
    def categories(self) -> tuple[Category, ...]:
        return self._categories

    def find(self, id_or_name: str) -> Optional[Category]:
        """Return the category whose id or name matches, ignoring case."""
        if not id_or_name:
            return None
        return self._index.get(id_or_name.strip().lower())

    def resolve(self, id_or_name: str) -> Category:
        """Like :meth:`find` but falls back to the catch-all category."""
        found = self.find(id_or_name)
        if found is not None:
            return found
        fallback = self.find(FALLBACK_CATEGORY_ID) or self._categories[-1]
        logger.warning("Unknown category %r, using %s", id_or_name, fallback.id)
        return fallback

    def human_readable(self) -> str:
        """Categories as ``ID: Name`` lines, shown to users."""
        return "\n".join(f"{c.id}: {c.name}" for c in self._categories)

    def for_prompt(self) -> str:
        """Categories as ``Name (description)`` for the transcription prompt."""
        return ", ".join(f"{c.name} ({c.description})" for c in self._categories)
