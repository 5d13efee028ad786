"""Flask application for Subbed: subtitles for YouTube videos."""

import hmac
import os
import time
from functools import wraps

from flask import (
    Blueprint,
    Flask,
    abort,
    current_app,
    g,
    jsonify,
    request,
    send_from_directory,
)
from werkzeug.exceptions import HTTPException

from catalog import (
    CatalogError,
    ConflictError,
    OperationCancelled,
    OperationContext,
    ReferentialIntegrityError,
    StorageUnavailable,
    VideoCatalog,
)
from config import load_config, parse_credentials
from logging_utils import setup_logging
from models import configure_sqlite, db
from resolver import extract_url_from_path, resolve_key
from subtitles import CANONICAL_FORMAT, SubtitleFormat, normalize

ERROR_RESPONSES = {
    ConflictError: (409, "url already registered"),
    ReferentialIntegrityError: (404, "Video not found"),
    StorageUnavailable: (503, "Storage unavailable"),
    OperationCancelled: (504, "request aborted/timeout"),
}

bp = Blueprint("subbed", __name__)


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    if test_config:
        app.config.update(test_config)

    app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///" + os.path.abspath(
        app.config["DATABASE_PATH"]
    )
    app.config["CREDENTIALS"] = parse_credentials(app.config["ADMIN_CREDENTIALS"])

    logger = setup_logging("subbed", app.config["LOG_LEVEL"], app.config["LOG_FORMAT"])
    db.init_app(app)

    with app.app_context():
        configure_sqlite(db.engine, app.config["SQLITE_BUSY_TIMEOUT_MS"])
        db.create_all()

    app.extensions["subbed.logger"] = logger
    app.extensions["subbed.catalog"] = VideoCatalog(db, logger)
    app.register_blueprint(bp)
    return app


def _catalog() -> VideoCatalog:
    return current_app.extensions["subbed.catalog"]


def _logger():
    return current_app.extensions["subbed.logger"]


def _op_ctx() -> OperationContext:
    """One deadline shared by every catalog call of the current request."""
    if "op_ctx" not in g:
        g.op_ctx = OperationContext.with_timeout(current_app.config["REQUEST_TIMEOUT"])
    return g.op_ctx


def _parse_id(raw, message="Invalid ID") -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        abort(400, message)


def _send_static(filename):
    return send_from_directory(current_app.static_folder, filename)


def requires_auth(view):
    """HTTP basic auth against the single admin credential pair."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        creds = current_app.config["CREDENTIALS"]
        auth = request.authorization
        if auth is None or not (
            hmac.compare_digest((auth.username or "").encode(), creds.username.encode())
            and hmac.compare_digest((auth.password or "").encode(), creds.password.encode())
        ):
            response = jsonify(error="Unauthorized")
            response.status_code = 401
            response.headers["WWW-Authenticate"] = 'Basic realm="Restricted"'
            return response
        return view(*args, **kwargs)

    return wrapped


@bp.before_app_request
def _start_timer():
    g.started = time.monotonic()


@bp.after_app_request
def _log_request(response):
    started = g.get("started")
    latency = (time.monotonic() - started) * 1000 if started is not None else 0.0
    _logger().info(
        "%s - %s %s %.1fms", response.status_code, request.method, request.path, latency
    )
    return response


@bp.app_errorhandler(CatalogError)
def _catalog_error(exc):
    status, message = ERROR_RESPONSES.get(type(exc), (500, "Internal error"))
    _logger().error(
        "Request error: %s (method=%s path=%s)", exc, request.method, request.path
    )
    return jsonify(error=message), status


@bp.app_errorhandler(HTTPException)
def _http_error(exc):
    _logger().warning(
        "Request error: %s (method=%s path=%s)", exc.description, request.method, request.path
    )
    response = jsonify(error=exc.description)
    response.status_code = exc.code or 500
    return response


@bp.route("/")
def index():
    return _send_static("index.html")


@bp.route("/api/video")
def video_detail():
    key, found = resolve_key(request.args.get("url", ""))
    if not found:
        abort(400, "Invalid YouTube URL")

    catalog = _catalog()
    video = catalog.find_video_by_key(key, _op_ctx())
    if video is None:
        abort(404, "Video not found")

    subtitles = catalog.list_subtitles_for_video(video.id, _op_ctx())
    return jsonify(
        video={"id": video.id, "original_url": key, "title": video.title},
        subtitles=[s.to_dict() for s in subtitles],
    )


@bp.route("/admin")
@requires_auth
def admin():
    return _send_static("admin.html")


@bp.route("/api/admin/videos", methods=["GET"])
@requires_auth
def list_videos():
    videos = _catalog().list_all_videos_with_subtitles(_op_ctx())
    return jsonify([v.to_dict() for v in videos])


@bp.route("/api/admin/videos", methods=["POST"])
@requires_auth
def add_video():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = request.form
    url = (data.get("url") or "").strip()
    title = (data.get("title") or "").strip()
    if not url or not title:
        abort(400, "Both url and title are required")

    video_id = _catalog().create_video(url, title, _op_ctx())
    return jsonify(id=video_id)


@bp.route("/api/admin/videos/<video_id>", methods=["DELETE"])
@requires_auth
def delete_video(video_id):
    _catalog().delete_video(_parse_id(video_id), _op_ctx())
    return jsonify(success=True)


@bp.route("/api/admin/subtitles", methods=["POST"])
@requires_auth
def upload_subtitle():
    video_id = _parse_id(request.form.get("video_id"), "Invalid video ID")
    language = request.form.get("language", "").strip()
    if not language:
        abort(400, "Language is required")
    try:
        declared = SubtitleFormat(request.form.get("type", ""))
    except ValueError:
        abort(400, "Invalid subtitle type")

    upload = request.files.get("file")
    if upload is None or not upload.filename:
        abort(400, "No file uploaded")

    catalog = _catalog()
    if catalog.get_video(video_id, _op_ctx()) is None:
        abort(404, "Video not found")
    content = upload.read().decode("utf-8-sig", errors="replace")

    subtitle_id = catalog.create_subtitle(
        video_id, language, CANONICAL_FORMAT.value, normalize(content, declared), _op_ctx()
    )
    return jsonify(success=True, id=subtitle_id)


@bp.route("/api/admin/subtitles/<subtitle_id>", methods=["DELETE"])
@requires_auth
def delete_subtitle(subtitle_id):
    _catalog().delete_subtitle(_parse_id(subtitle_id), _op_ctx())
    return jsonify(success=True)


@bp.route("/<path:subpath>")
def fallback(subpath):
    # /https://www.youtube.com/watch?v=KEY is handled by the player page.
    _, found = extract_url_from_path(request.path)
    if found:
        return _send_static("index.html")
    return _send_static(subpath)


if __name__ == "__main__":
    app = create_app()
    app.run(debug=app.config["DEBUG"], port=app.config["PORT"])
