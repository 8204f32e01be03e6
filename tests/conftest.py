from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.schemas import ActorModel, PipelineModel
from datastore.record_store import RecordStore
from gateway.client import SystemOfRecordClient
from services.catalog import SlotCatalog
from services.coverage import CoverageService
from services.system_of_record import SystemOfRecordService

ORG_UNIT = 11
OPERATOR_ID = 1
VALIDATOR_ID = 2
ADMIN_ID = 3
OTHER_OPERATOR_ID = 4
VIEWER_ID = 5


def seed_store(store: RecordStore) -> RecordStore:
    store.put_roster(
        ORG_UNIT,
        [
            PipelineModel(pipeline_id=101, code="PL-101", name="North trunk"),
            PipelineModel(pipeline_id=102, code="PL-102", name="South trunk"),
            PipelineModel(pipeline_id=103, code="PL-103", name="Export line"),
        ],
    )
    store.put_actor(ActorModel(actor_id=OPERATOR_ID, roles=["MONITORING_OPERATOR"]))
    store.put_actor(ActorModel(actor_id=VALIDATOR_ID, roles=["MONITORING_VALIDATOR"]))
    store.put_actor(ActorModel(actor_id=ADMIN_ID, roles=["MONITORING_ADMIN"]))
    store.put_actor(ActorModel(actor_id=OTHER_OPERATOR_ID, roles=["operator"]))
    store.put_actor(ActorModel(actor_id=VIEWER_ID, roles=[]))
    return store


@pytest.fixture
def record_store(tmp_path) -> RecordStore:
    return seed_store(RecordStore(name="test", persistence_path=tmp_path / "db.json"))


@pytest.fixture
def system_of_record(record_store) -> SystemOfRecordService:
    return SystemOfRecordService(store=record_store)


@pytest.fixture
def api_client(monkeypatch, system_of_record) -> Iterator[TestClient]:
    def build_test_system_of_record() -> SystemOfRecordService:
        return system_of_record

    build_test_system_of_record.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_system_of_record", build_test_system_of_record)
    monkeypatch.setattr("app.api.build_default_system_of_record", build_test_system_of_record)

    with TestClient(create_app()) as client:
        yield client


@pytest.fixture
def coverage_service(api_client) -> CoverageService:
    return CoverageService(
        gateway=SystemOfRecordClient(client=api_client),
        catalog=SlotCatalog(8 * 60),
        sleep=lambda _seconds: None,
    )
