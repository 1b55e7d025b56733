from __future__ import annotations

import pytest

from receipt_bot.bot.lifecycle import ReceiptLifecycle
from receipt_bot.core.exceptions import CollaboratorError
from receipt_bot.models.enums import ReceiptStatus
from receipt_bot.models.schemas import AnalysisResult, AnalyzedProduct, ReceiptAnalysis, TokenUsage

S = ReceiptStatus


def _posnania() -> AnalysisResult:
    return AnalysisResult(
        analysis=ReceiptAnalysis(
            store_name="CH Posnania",
            total_amount=234.98,
            products=[
                AnalyzedProduct(name="Kolekcja Podstawowa", price=69.99, category="Odzież & Obuwie"),
                AnalyzedProduct(name="Spodnie", price=164.99, category="Clothing"),
            ],
        ),
        usage=TokenUsage(input_tokens=1207, output_tokens=59, total_tokens=1266),
    )


@pytest.fixture
def photo(tmp_path):
    path = tmp_path / "2024-05-06_07-08-09.jpg"
    path.write_bytes(b"\xff\xd8fake-jpeg")
    return str(path)


def _lifecycle(store, fakes, photo, categories, translator, keywords, extractor=None, exporter=None, normalizer=None):
    return ReceiptLifecycle(
        store,
        extractor or fakes.Extractor(_posnania()),
        exporter or fakes.Exporter(),
        normalizer or fakes.Normalizer(photo),
        categories,
        translator,
        keywords,
    )


def _statuses(record) -> list[ReceiptStatus]:
    return [entry.status for entry in record.status_history]


@pytest.mark.asyncio
async def test_photo_flow_end_to_end(store, fakes, photo, categories, translator, keywords, scripted):
    extractor = fakes.Extractor(_posnania())
    exporter = fakes.Exporter()
    lifecycle = _lifecycle(store, fakes, photo, categories, translator, keywords, extractor, exporter)
    collector = scripted(["t", "nie", "multi", "shared", "2", "stop"])

    receipt_id = await lifecycle.process_photo(collector, "downloads/raw.jpg")

    assert [(r["name"], r["price"], r["shared"]) for r in exporter.rows] == [
        ("Kolekcja Podstawowa", 69.99, True),
        ("Spodnie", 164.99, False),
    ]
    assert all(r["store"] == "CH Posnania" for r in exporter.rows)

    record = await store.get_by_id(receipt_id)
    assert _statuses(record) == [
        S.RECEIVED,
        S.PROCESSING,
        S.PROCESSING,
        S.ANALYZED_AI,
        S.CATEGORIZED,
        S.PROCESSING,
        S.SAVED_TO_SHEETS,
        S.COMPLETED,
    ]
    assert record.status == S.COMPLETED
    assert record.source_path == photo
    assert record.store == "CH Posnania"
    assert record.total_amount == pytest.approx(234.98)
    assert record.usage.total_tokens == 1266
    # Unknown AI category falls back to the catch-all
    assert [p.category for p in record.products] == ["Odzież & Obuwie", "Inne wydatki"]
    assert [p.is_shared for p in record.products] == [True, False]
    # "nie" as a comment means no comment
    assert extractor.calls[0][1] == ""
    assert translator.translate("bot.sheetsSuccess") in collector.sent


@pytest.mark.asyncio
async def test_comment_is_passed_to_transcription(store, fakes, photo, categories, translator, keywords, scripted):
    extractor = fakes.Extractor(_posnania())
    lifecycle = _lifecycle(store, fakes, photo, categories, translator, keywords, extractor)
    receipt_id = await lifecycle.process_photo(scripted(["yes", "spodnie dla syna", "r"]), "raw.jpg")

    assert extractor.calls[0][0] == b"\xff\xd8fake-jpeg"
    assert extractor.calls[0][1] == "spodnie dla syna"
    record = await store.get_by_id(receipt_id)
    assert record.comments == "spodnie dla syna"


@pytest.mark.asyncio
async def test_summary_reports_tokens_and_cost(store, fakes, photo, categories, translator, keywords, scripted):
    collector = scripted(["t", "n", "p"])
    await _lifecycle(store, fakes, photo, categories, translator, keywords).process_photo(collector, "raw.jpg")
    summary = next(text for text in collector.sent if text.startswith("Store: CH Posnania"))
    assert "Total: 234.98 PLN" in summary
    assert "input 1207, output 59, total 1266" in summary
    assert "total 0.0139 PLN" in summary


@pytest.mark.asyncio
async def test_no_answer_delegates_to_manual_entry(store, fakes, photo, categories, translator, keywords, scripted):
    extractor = fakes.Extractor(_posnania())
    exporter = fakes.Exporter()
    lifecycle = _lifecycle(store, fakes, photo, categories, translator, keywords, extractor, exporter)
    collector = scripted(["n", "Żabka", "w", "Woda, FOH, 2,50", "stop"])

    receipt_id = await lifecycle.process_photo(collector, "raw.jpg")

    assert extractor.calls == []
    assert exporter.rows == [{"store": "Żabka", "name": "Woda", "price": 2.5, "category": "Jedzenie – Dom", "shared": True}]
    record = await store.get_by_id(receipt_id)
    assert record.status == S.COMPLETED
    assert S.ANALYZED_AI not in _statuses(record)
    assert record.status_history[-1].details == "Manual recipe entry completed successfully"


@pytest.mark.asyncio
async def test_manual_command_flow(store, fakes, photo, categories, translator, keywords, scripted):
    exporter = fakes.Exporter()
    lifecycle = _lifecycle(store, fakes, photo, categories, translator, keywords, exporter=exporter)
    collector = scripted(["Lidl", "p", "Chleb, FOH, 4.20", "Piwo, FOD, 6, w", "stop"])

    receipt_id = await lifecycle.process_manual(collector)

    record = await store.get_by_id(receipt_id)
    assert record.source_path == ""
    assert _statuses(record) == [S.RECEIVED, S.PROCESSING, S.PROCESSING, S.SAVED_TO_SHEETS, S.COMPLETED]
    assert record.total_amount == pytest.approx(10.2)
    assert [(r["name"], r["shared"]) for r in exporter.rows] == [("Chleb", False), ("Piwo", True)]
    assert translator.translate("bot.manual.success", count=2) in collector.sent


@pytest.mark.asyncio
async def test_manual_stop_without_products_errors_before_export(
    store, fakes, photo, categories, translator, keywords, scripted
):
    exporter = fakes.Exporter()
    lifecycle = _lifecycle(store, fakes, photo, categories, translator, keywords, exporter=exporter)
    collector = scripted(["Lidl", "p", "stop"])

    receipt_id = await lifecycle.process_manual(collector)

    assert exporter.rows == []
    record = await store.get_by_id(receipt_id)
    assert record.status == S.ERROR
    assert record.status_history[-1].details.startswith("Manual recipe entry failed:")
    assert collector.sent[-1] == translator.translate("bot.manual.error", categories=categories.human_readable())


@pytest.mark.asyncio
async def test_transcription_failure_moves_to_error(store, fakes, photo, categories, translator, keywords, scripted):
    extractor = fakes.Extractor(error=CollaboratorError("transcription", "rate limited"))
    exporter = fakes.Exporter()
    lifecycle = _lifecycle(store, fakes, photo, categories, translator, keywords, extractor, exporter)
    collector = scripted(["tak", "nie"])

    receipt_id = await lifecycle.process_photo(collector, "raw.jpg")

    record = await store.get_by_id(receipt_id)
    assert record.status == S.ERROR
    assert "rate limited" in record.status_history[-1].details
    assert exporter.rows == []
    assert collector.sent[-1] == translator.translate("bot.analysisError")
    assert len(extractor.calls) == 1


@pytest.mark.asyncio
async def test_export_failure_keeps_partial_rows(store, fakes, photo, categories, translator, keywords, scripted):
    exporter = fakes.Exporter(fail_after=1)
    lifecycle = _lifecycle(store, fakes, photo, categories, translator, keywords, exporter=exporter)
    collector = scripted(["t", "nie", "w"])

    receipt_id = await lifecycle.process_photo(collector, "raw.jpg")

    assert len(exporter.rows) == 1
    record = await store.get_by_id(receipt_id)
    assert _statuses(record)[-2:] == [S.PROCESSING, S.ERROR]
    assert record.status_history[-1].details.startswith("Failed to save to Google Sheets:")
    assert collector.sent[-1] == translator.translate("bot.sheetsError")


@pytest.mark.asyncio
async def test_silence_on_mode_question_times_out(store, fakes, photo, categories, translator, keywords, scripted):
    collector = scripted([])
    receipt_id = await _lifecycle(store, fakes, photo, categories, translator, keywords).process_photo(
        collector, "raw.jpg"
    )
    record = await store.get_by_id(receipt_id)
    assert record.status == S.ERROR
    assert collector.sent[-1] == translator.translate("bot.timeout")


@pytest.mark.asyncio
async def test_image_failure_creates_no_record(store, fakes, photo, categories, translator, keywords, scripted):
    normalizer = fakes.Normalizer(photo, error=CollaboratorError("image", "not an image"))
    collector = scripted([])
    lifecycle = _lifecycle(store, fakes, photo, categories, translator, keywords, normalizer=normalizer)

    assert await lifecycle.process_photo(collector, "raw.jpg") is None
    assert await store.list_records() == []
    assert collector.sent == [translator.translate("bot.photoError")]
