from __future__ import annotations
import asyncio
import uuid
import structlog
from gregaplay.db import SessionLocal
from gregaplay.models.event import Event
from gregaplay.services.activity import log_activity, notify_event_participants
from gregaplay.services.video_processor import FinalVideo, VideoProcessingError, VideoProcessorClient

log = structlog.get_logger()


async def _restore_status(session_factory, event_id: str, previous_status: str) -> None:
    async with session_factory() as session:
        ev = await session.get(Event, uuid.UUID(str(event_id)))
        if ev is not None and ev.status == "processing":
            ev.status = previous_status
            ev.processing_started_at = None
            ev.status_before_processing = None
            await session.commit()


async def _store_result(session_factory, event_id: str, result: FinalVideo) -> None:
    async with session_factory() as session:
        ev = await session.get(Event, uuid.UUID(str(event_id)))
        if ev is None:
            # Deleted while processing
            log.info("final_video_orphaned", event_id=event_id)
            return
        ev.final_video_key = result.key
        ev.final_video_url = result.url
        ev.status = "done"
        ev.processing_started_at = None
        ev.status_before_processing = None
        log_activity(session, event_id=ev.id, user_id=None, type="final_video_ready",
                     message="The final video is ready")
        await notify_event_participants(session, ev, f"The final video of {ev.title} is ready")
        await session.commit()
    log.info("final_video_done", event_id=event_id, key=result.key)


async def _run(event_id: str, previous_status: str, video_ids: list[str] | None,
               session_factory=SessionLocal, client: VideoProcessorClient | None = None):
    """
    Assemble the final video. Whatever goes wrong, the event leaves
    `processing` so the organizer can try again.
    """
    client = client or VideoProcessorClient()
    try:
        result = await client.process(event_id, video_ids)
        await _store_result(session_factory, event_id, result)
    except VideoProcessingError as e:
        await _restore_status(session_factory, event_id, previous_status)
        log.error("final_video_failed", event_id=event_id, restored_status=previous_status, error=str(e))
    except Exception as e:
        await _restore_status(session_factory, event_id, previous_status)
        log.error("final_video_failed", event_id=event_id, restored_status=previous_status,
                  error=repr(e), exc_info=True)
        raise


def process_final_video(event_id: str, previous_status: str, video_ids: list[str] | None = None):
    # RQ entry point (sync); run the async coroutine
    asyncio.run(_run(event_id, previous_status, video_ids))
