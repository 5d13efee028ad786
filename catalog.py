"""Catalog store: videos and their subtitles, persisted through SQLAlchemy.

All reads and writes go through :class:`VideoCatalog`. It hands out frozen
record copies rather than ORM instances, and maps storage failures onto the
small exception hierarchy below. Each call runs under an
:class:`OperationContext`. Cancelling the context, or letting its deadline
pass, interrupts the SQLite statement that is running.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import Subtitle, Video
from resolver import extract_key_from_url

# SQLite VM instructions between cancellation checks.
PROGRESS_STEPS = 1000


class CatalogError(Exception):
    """Base class for catalog failures."""


class ConflictError(CatalogError):
    """A video with the same URL is already registered."""


class ReferentialIntegrityError(CatalogError):
    """A subtitle was created for a video that does not exist."""


class StorageUnavailable(CatalogError):
    """The database failed (locked past the busy timeout, I/O error, ...)."""


class OperationCancelled(CatalogError):
    """The caller cancelled the operation or its deadline passed."""


class OperationContext:
    """Cancellation signal and optional deadline for catalog calls."""

    def __init__(self, deadline: float | None = None):
        self.deadline = deadline
        self._cancelled = threading.Event()

    @classmethod
    def with_timeout(cls, seconds: float | None) -> "OperationContext":
        if seconds is None:
            return cls()
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    def done(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self) -> None:
        if self.done():
            raise OperationCancelled("request aborted/timeout")


@dataclass(frozen=True)
class VideoRecord:
    id: int
    original_url: str
    title: str

    def to_dict(self) -> dict:
        return {"id": self.id, "original_url": self.original_url, "title": self.title}


@dataclass(frozen=True)
class SubtitleRecord:
    id: int
    video_id: int
    language: str
    format: str
    # None in bulk listings, which skip the subtitle text.
    content: str | None = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "video_id": self.video_id,
            "language": self.language,
            "type": self.format,
        }
        if self.content is not None:
            data["content"] = self.content
        return data


@dataclass(frozen=True)
class VideoWithSubtitles:
    video: VideoRecord
    subtitles: list[SubtitleRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = self.video.to_dict()
        data["subtitles"] = [s.to_dict() for s in self.subtitles]
        return data


def _video_record(video: Video) -> VideoRecord:
    return VideoRecord(id=video.id, original_url=video.original_url, title=video.title)


def _subtitle_record(subtitle: Subtitle) -> SubtitleRecord:
    return SubtitleRecord(
        id=subtitle.id,
        video_id=subtitle.video_id,
        language=subtitle.language,
        format=subtitle.format,
        content=subtitle.content,
    )


class VideoCatalog:
    """Videos and subtitles stored in the Flask-SQLAlchemy database *db*."""

    def __init__(self, db, logger):
        self._db = db
        self._log = logger

    @contextmanager
    def _operation(self, name, ctx, commit=False, integrity_error=None):
        """Run one catalog call in the current session.

        The SQLite progress handler is installed on the session's connection
        for the duration of the body so a cancelled *ctx* interrupts the
        running statement. The handler is removed before committing, since
        the commit hands the connection back to the pool.
        """
        ctx.check()
        session = self._db.session
        try:
            raw = session.connection().connection.driver_connection
            watch = getattr(raw, "set_progress_handler", None)
            if watch is not None:
                watch(ctx.done, PROGRESS_STEPS)
            try:
                yield session
            finally:
                if watch is not None:
                    watch(None, 0)
            if commit:
                session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            if ctx.done():
                raise OperationCancelled(f"{name}: request aborted/timeout") from exc
            if integrity_error is not None and isinstance(exc, IntegrityError):
                raise integrity_error(f"{name}: {exc.orig}") from exc
            self._log.error("%s failed: %s", name, exc)
            raise StorageUnavailable(f"{name} failed") from exc

    def find_video_by_key(self, key: str, ctx: OperationContext | None = None) -> VideoRecord | None:
        """Return the video whose derived key equals *key*, lowest id first."""
        with self._operation("find video", ctx or OperationContext()) as session:
            video = session.scalars(
                select(Video).where(Video.video_key == key).order_by(Video.id).limit(1)
            ).first()
            return _video_record(video) if video is not None else None

    def get_video(self, video_id: int, ctx: OperationContext | None = None) -> VideoRecord | None:
        with self._operation("get video", ctx or OperationContext()) as session:
            video = session.get(Video, video_id)
            return _video_record(video) if video is not None else None

    def list_subtitles_for_video(
        self, video_id: int, ctx: OperationContext | None = None
    ) -> list[SubtitleRecord]:
        with self._operation("list subtitles", ctx or OperationContext()) as session:
            rows = session.scalars(
                select(Subtitle).where(Subtitle.video_id == video_id).order_by(Subtitle.id)
            ).all()
            return [_subtitle_record(s) for s in rows]

    def _subtitle_summaries(self, session, video_id: int) -> list[SubtitleRecord]:
        rows = session.execute(
            select(Subtitle.id, Subtitle.video_id, Subtitle.language, Subtitle.format)
            .where(Subtitle.video_id == video_id)
            .order_by(Subtitle.id)
        ).all()
        return [
            SubtitleRecord(id=sub_id, video_id=vid, language=language, format=fmt)
            for sub_id, vid, language, fmt in rows
        ]

    def list_all_videos_with_subtitles(
        self, ctx: OperationContext | None = None
    ) -> list[VideoWithSubtitles]:
        """Every video with its subtitle summaries (no content).

        A failure while reading one video's subtitles is logged and that
        video is listed with no subtitles; the rest of the listing goes on.
        """
        ctx = ctx or OperationContext()
        result = []
        with self._operation("list videos", ctx) as session:
            videos = [_video_record(v) for v in session.scalars(select(Video).order_by(Video.id))]
            for video in videos:
                try:
                    subtitles = self._subtitle_summaries(session, video.id)
                except SQLAlchemyError as exc:
                    if ctx.done():
                        raise
                    self._log.warning(
                        "Failed to get subtitles for video %s: %s", video.id, exc
                    )
                    subtitles = []
                result.append(VideoWithSubtitles(video=video, subtitles=subtitles))
        return result

    def create_video(self, url: str, title: str, ctx: OperationContext | None = None) -> int:
        """Insert a video and return its id.

        Raises ConflictError if *url* is already registered.
        """
        key, found = extract_key_from_url(url)
        with self._operation(
            "create video", ctx or OperationContext(), commit=True, integrity_error=ConflictError
        ) as session:
            video = Video(original_url=url, video_key=key if found else url, title=title)
            session.add(video)
            session.flush()
            video_id = video.id
        self._log.info("Created video %s (%s)", video_id, url)
        return video_id

    def delete_video(self, video_id: int, ctx: OperationContext | None = None) -> None:
        """Delete a video and its subtitles in one transaction. Missing ids are ignored."""
        with self._operation("delete video", ctx or OperationContext(), commit=True) as session:
            session.execute(delete(Subtitle).where(Subtitle.video_id == video_id))
            session.execute(delete(Video).where(Video.id == video_id))
        self._log.info("Deleted video %s", video_id)

    def create_subtitle(
        self,
        video_id: int,
        language: str,
        format: str,
        content: str,
        ctx: OperationContext | None = None,
    ) -> int:
        """Insert a subtitle and return its id.

        Raises ReferentialIntegrityError if *video_id* does not exist.
        """
        with self._operation(
            "create subtitle",
            ctx or OperationContext(),
            commit=True,
            integrity_error=ReferentialIntegrityError,
        ) as session:
            subtitle = Subtitle(video_id=video_id, language=language, format=format, content=content)
            session.add(subtitle)
            session.flush()
            subtitle_id = subtitle.id
        self._log.info("Created %s subtitle %s for video %s", language, subtitle_id, video_id)
        return subtitle_id

    def delete_subtitle(self, subtitle_id: int, ctx: OperationContext | None = None) -> None:
        with self._operation("delete subtitle", ctx or OperationContext(), commit=True) as session:
            session.execute(delete(Subtitle).where(Subtitle.id == subtitle_id))
        self._log.info("Deleted subtitle %s", subtitle_id)
