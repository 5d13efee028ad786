"""SQLAlchemy Video/Subtitle models and database instance."""

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event

db = SQLAlchemy()

SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA cache_size=-64000",
    "PRAGMA foreign_keys=ON",
    "PRAGMA temp_store=MEMORY",
    "PRAGMA mmap_size=268435456",
    "PRAGMA page_size=4096",
    "PRAGMA auto_vacuum=INCREMENTAL",
    "PRAGMA journal_size_limit=67108864",
    "PRAGMA wal_autocheckpoint=1000",
)


class Video(db.Model):
    __tablename__ = "videos"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    original_url = db.Column(db.Text, nullable=False, unique=True)
    video_key = db.Column(db.Text, nullable=False, index=True)
    title = db.Column(db.Text, nullable=False)

    subtitles = db.relationship(
        "Subtitle",
        back_populates="video",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Subtitle.id",
    )


class Subtitle(db.Model):
    __tablename__ = "subtitles"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    video_id = db.Column(
        db.Integer,
        db.ForeignKey("videos.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    language = db.Column(db.Text, nullable=False)
    # "type" is the column name the player front-end reads.
    format = db.Column("type", db.Text, nullable=False)
    content = db.Column(db.Text, nullable=False)

    video = db.relationship("Video", back_populates="subtitles")


def configure_sqlite(engine, busy_timeout_ms: int = 5000) -> None:
    """Apply the connection pragmas to every new SQLite connection of *engine*."""

    @event.listens_for(engine, "connect")
    def _set_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
            for pragma in SQLITE_PRAGMAS:
                cursor.execute(pragma)
        finally:
            cursor.close()
