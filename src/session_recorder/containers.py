"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from session_recorder.adapters.beacon import HttpxBeaconSender
from session_recorder.adapters.chunk_upload_client import HttpxChunkUploader
from session_recorder.adapters.supabase_object_store import SupabaseObjectStore
from session_recorder.config import RecorderSettings, Settings
from session_recorder.services.ingestion import IngestionService
from session_recorder.services.reassembly import ReassemblyService
from session_recorder.services.recorder import SessionRecorder
from session_recorder.services.retrieval import RetrievalService
from session_recorder.services.storage import ObjectStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    object_store: ObjectStore
    ingestion_service: IngestionService
    reassembly_service: ReassemblyService
    retrieval_service: RetrievalService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    object_store = SupabaseObjectStore(
        client=supabase_client, bucket=resolved_settings.storage_bucket
    )
    ingestion_service = IngestionService(object_store)
    reassembly_service = ReassemblyService(
        store=object_store,
        min_chunks=resolved_settings.merge_min_chunks,
        page_size=resolved_settings.list_page_size,
        delete_chunks_after_merge=resolved_settings.delete_chunks_after_merge,
    )
    retrieval_service = RetrievalService(
        store=object_store, page_size=resolved_settings.list_page_size
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=resolved_settings,
        object_store=object_store,
        ingestion_service=ingestion_service,
        reassembly_service=reassembly_service,
        retrieval_service=retrieval_service,
        close_resources=close_resources,
    )


@dataclass
class RecorderContainer:
    """Client-side dependencies shared by the recorders of one process."""

    settings: RecorderSettings
    uploader: HttpxChunkUploader
    beacon: HttpxBeaconSender

    def new_recorder(self, recording_id: str) -> SessionRecorder:
        """Create a recorder for a fresh session of the given recording."""
        return SessionRecorder(
            recording_id=recording_id,
            uploader=self.uploader,
            beacon=self.beacon,
            settings=self.settings,
        )

    async def close_resources(self) -> None:
        await self.beacon.close()
        await self.uploader.close()


def build_recorder_container(
    settings: RecorderSettings | None = None,
) -> RecorderContainer:
    """Create the client-side container used by capture processes."""
    resolved_settings = settings or RecorderSettings()
    return RecorderContainer(
        settings=resolved_settings,
        uploader=HttpxChunkUploader.create(
            resolved_settings.endpoint_url,
            timeout=resolved_settings.request_timeout_seconds,
        ),
        beacon=HttpxBeaconSender.create(
            resolved_settings.endpoint_url,
            grace_seconds=resolved_settings.teardown_grace_seconds,
        ),
    )
