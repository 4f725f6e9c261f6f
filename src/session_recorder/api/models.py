"""Wire models shared by the ingestion endpoint and its clients."""

from pydantic import BaseModel, ConfigDict, Field

from session_recorder.domain.recordings import StoredChunk


class ChunkAck(BaseModel):
    """Acknowledgement returned after a chunk is stored."""

    model_config = ConfigDict(populate_by_name=True)

    chunk_index: int = Field(alias="chunkIndex", ge=0)
    storage_key: str = Field(alias="storageKey")
    event_count: int = Field(alias="eventCount", ge=1)

    @classmethod
    def from_stored(cls, stored: StoredChunk) -> "ChunkAck":
        return cls(
            chunk_index=stored.chunk_index,
            storage_key=stored.storage_key,
            event_count=stored.event_count,
        )

    def to_stored(self) -> StoredChunk:
        return StoredChunk(
            chunk_index=self.chunk_index,
            storage_key=self.storage_key,
            event_count=self.event_count,
        )
