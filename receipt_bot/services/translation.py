"""User-facing message catalog.

Messages are addressed by dotted keys (``bot.manual.askStore``) and may
contain ``{name}`` placeholders. Unknown keys are returned unchanged so
a missing string shows up in the chat rather than crashing a flow;
unknown placeholders are left as-is.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

CATALOG: Dict[str, Dict[str, Any]] = {
    "en": {
        "months": [
            "January", "February", "March", "April", "May", "June",
            "July", "August", "September", "October", "November", "December",
        ],
        "bot": {
            "start": (
                "Hi! Send me a photo of a receipt and I will read it for you.\n"
                "To enter a receipt by hand, type one of: {manualCommands}."
            ),
            "photoSaved": "Photo saved.",
            "photoError": "Could not process the photo. Please try again.",
            "photoDownloadError": "Could not download the photo. Please send it again.",
            "analysisModeQuestion": (
                "Should I analyse the receipt with AI?\n"
                "Yes: {yesWords}\nNo, I will type it in: {noWords} / {manualWords}"
            ),
            "commentsQuestion": "Any comments about the purchase? (answer {noWords} to skip)",
            "commentsAdded": "Comments: {comments}",
            "noComments": "none",
            "analysisStarted": "Analysing the receipt...",
            "analysisComplete": "Analysis complete.",
            "analysisError": "Receipt analysis failed. Please try again later.",
            "receiptSummary": (
                "Store: {store}\nTotal: {total} PLN\nProducts:\n{products}\n\n"
                "Tokens: input {inputTokens}, output {outputTokens}, total {totalTokens}\n"
                "Cost: input {inputCost} PLN, output {outputCost} PLN, total {totalCost} PLN"
            ),
            "productLine": "- {name}: {price} PLN ({category})",
            "sheetsSuccess": "Receipt saved to Google Sheets.",
            "sheetsError": "Saving to Google Sheets failed.",
            "recordError": "The receipt record could not be stored.",
            "timeout": "No answer received in time. Receipt processing was cancelled.",
            "unexpectedError": "Something went wrong while processing the receipt.",
            "sharing": {
                "modeQuestion": (
                    "Who pays for these products?\n"
                    "All shared: {sharedWords}\nAll private: {privateWords}\nMixed: {multiWords}"
                ),
                "defaultQuestion": "Default for all products? Shared: {sharedWords} / Private: {privateWords}",
                "selectionInfo": (
                    "Send product numbers separated by commas to switch them between shared and private.\n"
                    "{showWords}: show the list, {stopWords}: finish."
                ),
                "itemLine": "{index}. {name}: {price} ({flag})",
                "shared": "shared",
                "private": "private",
                "invalidSelection": "Invalid selection. Send numbers from the list, e.g. 1,3.",
                "allShared": "All products marked as shared.",
                "allPrivate": "All products marked as private.",
                "done": "Sharing saved: {shared} shared, {private} private.",
            },
            "manual": {
                "info": "Manual receipt entry.",
                "askStore": "Store name?",
                "askType": "Default purchase type? Shared: {sharedWords} / Private: {privateWords}",
                "askItems": (
                    "Send products one per line as: name, category, price[, shared/private]\n"
                    "Type {stopWords} when done.\nCategories:\n{categories}"
                ),
                "itemAdded": "Added: {name} {price} PLN ({category})",
                "invalidFormat": "Invalid format. Use: name, category, price",
                "invalidCategory": "Unknown category. Available categories:\n{categories}",
                "invalidPrice": "Invalid price. Use a number, e.g. 12.50",
                "itemsRequired": "At least one product is required.",
                "success": "Manual receipt saved with {count} products.",
                "error": "Manual receipt entry failed. Available categories:\n{categories}",
            },
        },
    },
    "pl": {
        "months": [
            "Styczeń", "Luty", "Marzec", "Kwiecień", "Maj", "Czerwiec",
            "Lipiec", "Sierpień", "Wrzesień", "Październik", "Listopad", "Grudzień",
        ],
        "bot": {
            "start": (
                "Cześć! Wyślij mi zdjęcie paragonu, a odczytam go za Ciebie.\n"
                "Aby wpisać paragon ręcznie, napisz jedno z: {manualCommands}."
            ),
            "photoSaved": "Zdjęcie zapisane.",
            "photoError": "Nie udało się przetworzyć zdjęcia. Spróbuj ponownie.",
            "photoDownloadError": "Nie udało się pobrać zdjęcia. Wyślij je ponownie.",
            "analysisModeQuestion": (
                "Czy przeanalizować paragon przez AI?\n"
                "Tak: {yesWords}\nNie, wpiszę ręcznie: {noWords} / {manualWords}"
            ),
            "commentsQuestion": "Masz uwagi do zakupów? (odpowiedz {noWords}, aby pominąć)",
            "commentsAdded": "Uwagi: {comments}",
            "noComments": "brak",
            "analysisStarted": "Analizuję paragon...",
            "analysisComplete": "Analiza zakończona.",
            "analysisError": "Analiza paragonu nie powiodła się. Spróbuj później.",
            "receiptSummary": (
                "Sklep: {store}\nSuma: {total} PLN\nProdukty:\n{products}\n\n"
                "Tokeny: wejście {inputTokens}, wyjście {outputTokens}, razem {totalTokens}\n"
                "Koszt: wejście {inputCost} PLN, wyjście {outputCost} PLN, razem {totalCost} PLN"
            ),
            "productLine": "- {name}: {price} PLN ({category})",
            "sheetsSuccess": "Paragon zapisany w Arkuszach Google.",
            "sheetsError": "Zapis do Arkuszy Google nie powiódł się.",
            "recordError": "Nie udało się zapisać rekordu paragonu.",
            "timeout": "Nie otrzymałem odpowiedzi na czas. Przetwarzanie paragonu anulowane.",
            "unexpectedError": "Coś poszło nie tak podczas przetwarzania paragonu.",
            "sharing": {
                "modeQuestion": (
                    "Kto płaci za te produkty?\n"
                    "Wszystko wspólne: {sharedWords}\nWszystko prywatne: {privateWords}\nMieszane: {multiWords}"
                ),
                "defaultQuestion": "Domyślnie dla wszystkich produktów? Wspólne: {sharedWords} / Prywatne: {privateWords}",
                "selectionInfo": (
                    "Wyślij numery produktów oddzielone przecinkami, aby przełączyć je między wspólnymi a prywatnymi.\n"
                    "{showWords}: pokaż listę, {stopWords}: zakończ."
                ),
                "itemLine": "{index}. {name}: {price} ({flag})",
                "shared": "wspólne",
                "private": "prywatne",
                "invalidSelection": "Nieprawidłowy wybór. Wyślij numery z listy, np. 1,3.",
                "allShared": "Wszystkie produkty oznaczone jako wspólne.",
                "allPrivate": "Wszystkie produkty oznaczone jako prywatne.",
                "done": "Zapisano podział: {shared} wspólnych, {private} prywatnych.",
            },
            "manual": {
                "info": "Ręczne wprowadzanie paragonu.",
                "askStore": "Nazwa sklepu?",
                "askType": "Domyślny typ zakupu? Wspólne: {sharedWords} / Prywatne: {privateWords}",
                "askItems": (
                    "Wysyłaj produkty pojedynczo w formacie: nazwa, kategoria, cena[, wspólne/prywatne]\n"
                    "Napisz {stopWords}, aby zakończyć.\nKategorie:\n{categories}"
                ),
                "itemAdded": "Dodano: {name} {price} PLN ({category})",
                "invalidFormat": "Nieprawidłowy format. Użyj: nazwa, kategoria, cena",
                "invalidCategory": "Nieznana kategoria. Dostępne kategorie:\n{categories}",
                "invalidPrice": "Nieprawidłowa cena. Podaj liczbę, np. 12,50",
                "itemsRequired": "Wymagany jest co najmniej jeden produkt.",
                "success": "Zapisano ręczny paragon z {count} produktami.",
                "error": "Ręczne wprowadzanie paragonu nie powiodło się. Dostępne kategorie:\n{categories}",
            },
        },
    },
}


class Translator:
    """Looks up messages for one configured language."""

    def __init__(self, language: str = "pl", catalog: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self._catalog = catalog or CATALOG
        if language not in self._catalog:
            logger.warning("Unsupported language %r, falling back to 'en'", language)
            language = "en"
        self.language = language

    def _lookup(self, key: str) -> Any:
        value: Any = self._catalog[self.language]
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        return value

    def translate(self, key: str, **params: Any) -> str:
        value = self._lookup(key)
        if value is None or isinstance(value, dict):
            logger.warning("Missing translation %r for language %s", key, self.language)
            return key
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        return _PLACEHOLDER.sub(
            lambda m: str(params[m.group(1)]) if m.group(1) in params else m.group(0),
            str(value),
        )

    def months(self) -> List[str]:
        """Localized month names, January first. Used as sheet titles."""
        return list(self._lookup("months") or CATALOG["en"]["months"])
