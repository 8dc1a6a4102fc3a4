from typing import List

from factory_events.schemas.base import CamelModel


class Rejection(CamelModel):
    event_id: str
    reason: str


class BatchIngestOut(CamelModel):
    accepted: int = 0
    deduped: int = 0
    updated: int = 0
    rejected: int = 0
    rejections: List[Rejection] = []
