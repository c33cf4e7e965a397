"""Game metadata types and the process-wide metadata store.

A metadata lookup has three outcomes, modelled by ``MetadataStatus``:
never fetched (``UNKNOWN``), fetched but unavailable (``ABSENT``) and
fetched successfully (``PRESENT``).  Only ``PRESENT`` entries carry a
``Metadata`` payload.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum


class MetadataStatus(str, Enum):
    UNKNOWN = "unknown"
    ABSENT = "absent"
    PRESENT = "present"


@dataclass(frozen=True)
class Metadata:
    title: str
    release_date: str | None = None
    release_year: str | None = None
    genres: tuple[str, ...] = ()
    publishers: tuple[str, ...] = ()
    rating_score: int | None = None  # Metacritic score, when Steam has one

    def to_dict(self) -> dict:
        data = asdict(self)
        data["genres"] = list(self.genres)
        data["publishers"] = list(self.publishers)
        return data


@dataclass(frozen=True)
class MetadataEntry:
    status: MetadataStatus
    metadata: Metadata | None = None

    @property
    def is_present(self) -> bool:
        return self.status is MetadataStatus.PRESENT

    @classmethod
    def present(cls, metadata: Metadata) -> "MetadataEntry":
        return cls(MetadataStatus.PRESENT, metadata)


UNKNOWN = MetadataEntry(MetadataStatus.UNKNOWN)
ABSENT = MetadataEntry(MetadataStatus.ABSENT)


@dataclass
class MetadataStore:
    """Steam app id -> ``MetadataEntry``.  Grows monotonically, never evicted."""

    _entries: dict[str, MetadataEntry] = field(default_factory=dict)

    def get(self, app_id: str) -> MetadataEntry:
        return self._entries.get(app_id, UNKNOWN)

    def set(self, app_id: str, entry: MetadataEntry) -> None:
        if entry.status is MetadataStatus.UNKNOWN:
            raise ValueError("UNKNOWN is implied by a missing key and is never stored")
        self._entries[app_id] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def counts(self) -> dict[str, int]:
        """Number of stored entries per status, for status logging."""
        result = {MetadataStatus.PRESENT.value: 0, MetadataStatus.ABSENT.value: 0}
        for entry in self._entries.values():
            result[entry.status.value] += 1
        return result
