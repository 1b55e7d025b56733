import datetime as dt

import pytest
from fastapi.testclient import TestClient

from receipt_bot.api.deps import get_store
from receipt_bot.api.main import app
from receipt_bot.core.exceptions import StorageError
from receipt_bot.models.enums import ReceiptStatus
from receipt_bot.models.schemas import LineItem, ReceiptRecord


class FakeStore:
    def __init__(self, records=None, error=None):
        self.records = records or []
        self.error = error

    async def list_records(self, limit=50):
        if self.error is not None:
            raise self.error
        return self.records[:limit]

    async def get_by_id(self, receipt_id):
        if self.error is not None:
            raise self.error
        return next((r for r in self.records if r.id == receipt_id), None)


def _record(receipt_id: int) -> ReceiptRecord:
    record = ReceiptRecord.new("downloads/x.jpg", "Receipt photo received")
    record.id = receipt_id
    record.created_at = dt.datetime(2024, 5, 6, 7, 8, 9)
    record.store = "Lidl"
    record.set_products(
        [
            LineItem(name="Chleb", category="Jedzenie – Dom", price=4.2),
            LineItem(name="Woda", category="Jedzenie – Dom", price=2.5, is_shared=True),
        ]
    )
    return record


@pytest.fixture
def client_for():
    def make(store: FakeStore) -> TestClient:
        app.dependency_overrides[get_store] = lambda: store
        return TestClient(app)

    yield make
    app.dependency_overrides.clear()


def test_health(client_for):
    response = client_for(FakeStore()).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_detailed_health_degrades_on_storage_error(client_for):
    response = client_for(FakeStore(error=StorageError("database is locked"))).get("/health/detailed")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "degraded"
    assert body["services"]["database"].startswith("unhealthy")


def test_list_receipts_returns_summaries(client_for):
    response = client_for(FakeStore([_record(2), _record(1)])).get("/receipts", params={"limit": 1})
    assert response.status_code == 200
    assert response.json() == [
        {
            "id": 2,
            "created_at": "2024-05-06T07:08:09",
            "store": "Lidl",
            "total_amount": 6.7,
            "status": ReceiptStatus.RECEIVED.value,
            "product_count": 2,
        }
    ]


def test_get_receipt_includes_products_and_history(client_for):
    response = client_for(FakeStore([_record(5)])).get("/receipts/5")
    assert response.status_code == 200
    body = response.json()
    assert [p["name"] for p in body["products"]] == ["Chleb", "Woda"]
    assert body["status_history"][0]["details"] == "Receipt photo received"


def test_unknown_receipt_is_404(client_for):
    response = client_for(FakeStore()).get("/receipts/404")
    assert response.status_code == 404
    assert response.json()["error"] == "Not found"


def test_storage_failure_is_503(client_for):
    response = client_for(FakeStore(error=StorageError("database is locked"))).get("/receipts")
    assert response.status_code == 503


def test_invalid_limit_is_422(client_for):
    response = client_for(FakeStore()).get("/receipts", params={"limit": 0})
    assert response.status_code == 422
    assert response.json()["error"] == "Validation error"
