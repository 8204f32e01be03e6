from __future__ import annotations

import json
from datetime import date
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, List, Optional, Tuple

from app.schemas import ActorModel, PipelineModel, ReadingModel
from settings import get_settings

SlotKey = Tuple[int, date, int]


class RecordStore:
    """In-memory store of rosters, actors and readings with optional JSON persistence.

    Holds at most one reading per (pipeline, date, slot). Returned models are
    deep copies, so callers cannot mutate stored state in place.
    """

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self._rosters: Dict[int, List[PipelineModel]] = {}
        self._actors: Dict[int, ActorModel] = {}
        self._readings: Dict[int, ReadingModel] = {}
        self._slot_index: Dict[SlotKey, int] = {}
        self._next_id = 1
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_roster(self, org_unit_id: int, pipelines: Iterable[PipelineModel]) -> None:
        with self._lock:
            self._rosters[org_unit_id] = [item.model_copy(deep=True) for item in pipelines]
            self._persist()

    def get_roster(self, org_unit_id: int) -> Optional[List[PipelineModel]]:
        with self._lock:
            roster = self._rosters.get(org_unit_id)
            if roster is None:
                return None
            return [item.model_copy(deep=True) for item in roster]

    def has_pipeline(self, pipeline_id: int) -> bool:
        with self._lock:
            return any(
                item.pipeline_id == pipeline_id
                for roster in self._rosters.values()
                for item in roster
            )

    def put_actor(self, actor: ActorModel) -> None:
        with self._lock:
            self._actors[actor.actor_id] = actor.model_copy(deep=True)
            self._persist()

    def get_actor(self, actor_id: int) -> Optional[ActorModel]:
        with self._lock:
            actor = self._actors.get(actor_id)
            return actor.model_copy(deep=True) if actor else None

    def get_reading(self, reading_id: int) -> Optional[ReadingModel]:
        with self._lock:
            reading = self._readings.get(reading_id)
            return reading.model_copy(deep=True) if reading else None

    def find_reading(
        self, pipeline_id: int, reading_date: date, slot_index: int
    ) -> Optional[ReadingModel]:
        with self._lock:
            reading_id = self._slot_index.get((pipeline_id, reading_date, slot_index))
            if reading_id is None:
                return None
            return self._readings[reading_id].model_copy(deep=True)

    def insert_reading(self, reading: ReadingModel) -> Optional[ReadingModel]:
        """Store a new reading under a fresh id; ``None`` when its slot is already taken."""
        key = (reading.pipeline_id, reading.reading_date, reading.slot_index)
        with self._lock:
            if key in self._slot_index:
                return None
            stored = reading.model_copy(update={"id": self._next_id}, deep=True)
            self._next_id += 1
            self._readings[stored.id] = stored
            self._slot_index[key] = stored.id
            self._persist()
            return stored.model_copy(deep=True)

    def replace_reading(self, reading: ReadingModel) -> None:
        """Overwrite an existing reading; its (pipeline, date, slot) key cannot change."""
        with self._lock:
            current = self._readings.get(reading.id)
            if current is None:
                raise KeyError(f"Reading {reading.id} not found in store {self.name!r}.")
            if (current.pipeline_id, current.reading_date, current.slot_index) != (
                reading.pipeline_id,
                reading.reading_date,
                reading.slot_index,
            ):
                raise ValueError(f"Reading {reading.id} cannot move to another slot.")
            self._readings[reading.id] = reading.model_copy(deep=True)
            self._persist()

    def scan_readings(self) -> List[ReadingModel]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._readings.values()]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            "next_id": self._next_id,
            "rosters": {
                str(org_unit_id): [item.model_dump(mode="json") for item in roster]
                for org_unit_id, roster in self._rosters.items()
            },
            "actors": {
                str(actor_id): actor.model_dump(mode="json")
                for actor_id, actor in self._actors.items()
            },
            "readings": {
                str(reading_id): reading.model_dump(mode="json")
                for reading_id, reading in self._readings.items()
            },
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for org_unit_id, roster in data.get("rosters", {}).items():
            self._rosters[int(org_unit_id)] = [
                PipelineModel.model_validate(item) for item in roster
            ]
        for actor_id, actor in data.get("actors", {}).items():
            self._actors[int(actor_id)] = ActorModel.model_validate(actor)
        for reading_id, payload in data.get("readings", {}).items():
            reading = ReadingModel.model_validate(payload)
            self._readings[int(reading_id)] = reading
            self._slot_index[
                (reading.pipeline_id, reading.reading_date, reading.slot_index)
            ] = reading.id
        self._next_id = max(
            int(data.get("next_id", 1)), max(self._readings, default=0) + 1
        )


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> RecordStore:
    settings = get_settings()
    store_name = settings.store_name if name is None else name
    store_path = settings.store_persistence_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return RecordStore(name=store_name, persistence_path=persistence)
