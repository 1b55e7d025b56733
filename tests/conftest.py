from __future__ import annotations

from typing import Iterable, List, Optional

import pytest
from sqlalchemy.pool import StaticPool

from receipt_bot.bot.answers import AnswerCollector, IncomingMessage
from receipt_bot.bot.keywords import Keywords
from receipt_bot.core.categories import CategoryDirectory
from receipt_bot.core.database import build_engine, build_sessionmaker, init_db
from receipt_bot.core.exceptions import CollaboratorError
from receipt_bot.models.schemas import AnalysisResult
from receipt_bot.services.receipt_store import ReceiptStore
from receipt_bot.services.translation import Translator

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


def memory_engine():
    # One shared connection so every session sees the same in-memory database
    return build_engine(MEMORY_URL, poolclass=StaticPool, connect_args={"check_same_thread": False})


@pytest.fixture
async def engine():
    engine = memory_engine()
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine) -> ReceiptStore:
    return ReceiptStore(build_sessionmaker(engine))


@pytest.fixture
def keywords() -> Keywords:
    return Keywords.from_settings()


@pytest.fixture
def translator() -> Translator:
    return Translator("en")


@pytest.fixture
def categories() -> CategoryDirectory:
    return CategoryDirectory.load()


class ScriptedCollector(AnswerCollector):
    """Collector answering from a fixed script; ``None`` entries simulate a timeout."""

    def __init__(self, answers: Iterable[Optional[str]], chat_id: int = 1) -> None:
        super().__init__(None, self._record, chat_id)
        self.answers: List[Optional[str]] = list(answers)
        self.sent: List[str] = []

    async def _record(self, chat_id, text: str) -> None:
        self.sent.append(text)

    async def wait_for_answer(self, accepts=None, timeout=None):
        while self.answers:
            text = self.answers.pop(0)
            if text is None:
                return None
            message = IncomingMessage(chat_id=self.chat_id, text=text)
            if accepts is None or accepts(message):
                return message
        # Script exhausted behaves like the user going quiet
        return None


@pytest.fixture
def scripted():
    return ScriptedCollector


class FakeExtractor:
    def __init__(self, result: Optional[AnalysisResult] = None, error: Optional[Exception] = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[bytes, str, str]] = []

    async def analyze(self, image_data: bytes, user_comment: str, categories: str) -> AnalysisResult:
        self.calls.append((image_data, user_comment, categories))
        if self.error is not None:
            raise self.error
        return self.result


class FakeExporter:
    def __init__(self, fail_after: Optional[int] = None) -> None:
        self.rows: list[dict] = []
        self.fail_after = fail_after

    async def append(self, store: str, product_name: str, price: float, category: str, is_shared: bool) -> None:
        if self.fail_after is not None and len(self.rows) >= self.fail_after:
            raise CollaboratorError("export", "quota exceeded")
        self.rows.append(
            {"store": store, "name": product_name, "price": price, "category": category, "shared": is_shared}
        )


class FakeNormalizer:
    def __init__(self, path: str, error: Optional[Exception] = None) -> None:
        self.path = path
        self.error = error

    async def normalize(self, raw_image_path: str) -> str:
        if self.error is not None:
            raise self.error
        return self.path


@pytest.fixture
def fakes():
    class _Fakes:
        Extractor = FakeExtractor
        Exporter = FakeExporter
        Normalizer = FakeNormalizer

    return _Fakes
