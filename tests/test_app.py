"""Tests for the HTTP endpoints."""

import io

import pytest

from app import create_app

WATCH_URL = "https://www.youtube.com/watch?v=abc123"
VTT = b"WEBVTT\n\n00:00:01.000 --> 00:00:02.000\nHello.\n"


def _add_video(client, headers, url=WATCH_URL, title="Intro"):
    response = client.post("/api/admin/videos", json={"url": url, "title": title}, headers=headers)
    assert response.status_code == 200
    return response.get_json()["id"]


def _upload(client, headers, video_id, body=VTT, declared="vtt", language="en"):
    return client.post(
        "/api/admin/subtitles",
        data={
            "video_id": str(video_id),
            "language": language,
            "type": declared,
            "file": (io.BytesIO(body), f"track.{declared}"),
        },
        content_type="multipart/form-data",
        headers=headers,
    )


class TestPages:
    def test_index(self, client) -> None:
        response = client.get("/")
        assert response.status_code == 200
        assert b"<title>Subbed</title>" in response.data

    def test_url_appended_to_path_serves_player(self, client) -> None:
        response = client.get("/https:/www.youtube.com/watch?v=abc123")
        assert response.status_code == 200
        assert b"<title>Subbed</title>" in response.data

    def test_unknown_path_is_404(self, client) -> None:
        response = client.get("/missing.txt")
        assert response.status_code == 404
        assert "error" in response.get_json()

    def test_admin_page_requires_auth(self, client, auth_headers) -> None:
        assert client.get("/admin").status_code == 401
        assert client.get("/admin", headers=auth_headers).status_code == 200


class TestAuth:
    def test_missing_credentials(self, client) -> None:
        response = client.get("/api/admin/videos")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == 'Basic realm="Restricted"'

    def test_wrong_password(self, client) -> None:
        response = client.get("/api/admin/videos", auth=("admin", "wrong"))
        assert response.status_code == 401

    def test_right_password(self, client) -> None:
        response = client.get("/api/admin/videos", auth=("admin", "s3cret"))
        assert response.status_code == 200
        assert response.get_json() == []


class TestVideoDetail:
    def test_invalid_url(self, client) -> None:
        response = client.get("/api/video", query_string={"url": "https://example.com/x"})
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid YouTube URL"}

    def test_unknown_video(self, client) -> None:
        response = client.get("/api/video", query_string={"url": "https://youtu.be/nope"})
        assert response.status_code == 404
        assert response.get_json() == {"error": "Video not found"}

    def test_video_with_subtitles(self, client, auth_headers) -> None:
        video_id = _add_video(client, auth_headers)
        assert _upload(client, auth_headers, video_id).status_code == 200

        response = client.get("/api/video", query_string={"url": "https://youtu.be/abc123"})

        assert response.status_code == 200
        body = response.get_json()
        assert body["video"] == {"id": video_id, "original_url": "abc123", "title": "Intro"}
        assert len(body["subtitles"]) == 1
        subtitle = body["subtitles"][0]
        assert subtitle["type"] == "srt"
        assert subtitle["language"] == "en"
        assert subtitle["content"] == "1\n00:00:01,000 --> 00:00:02,000\nHello.\n"

    def test_video_without_subtitles(self, client, auth_headers) -> None:
        _add_video(client, auth_headers)
        response = client.get("/api/video", query_string={"url": WATCH_URL})
        assert response.get_json()["subtitles"] == []

    def test_deadline_surfaces_as_timeout(self, tmp_path) -> None:
        app = create_app(
            {
                "TESTING": True,
                "DATABASE_PATH": str(tmp_path / "slow.db"),
                "ADMIN_CREDENTIALS": "admin:s3cret",
                "REQUEST_TIMEOUT": 0,
            }
        )
        response = app.test_client().get("/api/video", query_string={"url": WATCH_URL})
        assert response.status_code == 504
        assert response.get_json() == {"error": "request aborted/timeout"}


class TestAdminVideos:
    def test_create_and_list(self, client, auth_headers) -> None:
        video_id = _add_video(client, auth_headers)
        _upload(client, auth_headers, video_id)

        listing = client.get("/api/admin/videos", headers=auth_headers).get_json()

        assert len(listing) == 1
        assert listing[0]["original_url"] == WATCH_URL
        assert listing[0]["subtitles"][0].keys() == {"id", "video_id", "language", "type"}

    def test_create_from_form(self, client, auth_headers) -> None:
        response = client.post(
            "/api/admin/videos", data={"url": WATCH_URL, "title": "Intro"}, headers=auth_headers
        )
        assert response.status_code == 200
        assert isinstance(response.get_json()["id"], int)

    def test_duplicate_url(self, client, auth_headers) -> None:
        _add_video(client, auth_headers)
        response = client.post(
            "/api/admin/videos", json={"url": WATCH_URL, "title": "Again"}, headers=auth_headers
        )
        assert response.status_code == 409
        assert response.get_json() == {"error": "url already registered"}

    @pytest.mark.parametrize("payload", [{"url": WATCH_URL}, {"title": "x"}, {"url": " ", "title": "x"}])
    def test_missing_fields(self, client, auth_headers, payload) -> None:
        response = client.post("/api/admin/videos", json=payload, headers=auth_headers)
        assert response.status_code == 400

    def test_delete(self, client, auth_headers) -> None:
        video_id = _add_video(client, auth_headers)
        _upload(client, auth_headers, video_id)

        response = client.delete(f"/api/admin/videos/{video_id}", headers=auth_headers)

        assert response.get_json() == {"success": True}
        assert client.get("/api/video", query_string={"url": WATCH_URL}).status_code == 404
        assert client.get("/api/admin/videos", headers=auth_headers).get_json() == []

    def test_delete_invalid_id(self, client, auth_headers) -> None:
        response = client.delete("/api/admin/videos/abc", headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid ID"}


class TestAdminSubtitles:
    def test_srt_is_stored_verbatim(self, client, auth_headers) -> None:
        video_id = _add_video(client, auth_headers)
        srt = b"1\n00:00:01,000 --> 00:00:02,000\nHi.\n"
        assert _upload(client, auth_headers, video_id, body=srt, declared="srt").status_code == 200

        body = client.get("/api/video", query_string={"url": WATCH_URL}).get_json()
        assert body["subtitles"][0]["content"] == srt.decode()

    def test_byte_order_mark_is_dropped(self, client, auth_headers) -> None:
        video_id = _add_video(client, auth_headers)
        _upload(client, auth_headers, video_id, body=b"\xef\xbb\xbf" + VTT)

        body = client.get("/api/video", query_string={"url": WATCH_URL}).get_json()
        assert body["subtitles"][0]["content"].startswith("1\n")

    def test_unknown_video(self, app, client, auth_headers, monkeypatch) -> None:
        """The video is checked before anything is written."""
        catalog = app.extensions["subbed.catalog"]

        def unexpected(*args, **kwargs):
            raise AssertionError("create_subtitle called for a missing video")

        monkeypatch.setattr(catalog, "create_subtitle", unexpected)
        response = _upload(client, auth_headers, 999)

        assert response.status_code == 404
        assert response.get_json() == {"error": "Video not found"}

    def test_invalid_video_id(self, client, auth_headers) -> None:
        response = _upload(client, auth_headers, "abc")
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid video ID"}

    def test_invalid_type(self, client, auth_headers) -> None:
        video_id = _add_video(client, auth_headers)
        assert _upload(client, auth_headers, video_id, declared="ass").status_code == 400

    def test_missing_file(self, client, auth_headers) -> None:
        video_id = _add_video(client, auth_headers)
        response = client.post(
            "/api/admin/subtitles",
            data={"video_id": str(video_id), "language": "en", "type": "vtt"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.get_json() == {"error": "No file uploaded"}

    def test_delete(self, client, auth_headers) -> None:
        video_id = _add_video(client, auth_headers)
        subtitle_id = _upload(client, auth_headers, video_id).get_json()["id"]

        response = client.delete(f"/api/admin/subtitles/{subtitle_id}", headers=auth_headers)

        assert response.get_json() == {"success": True}
        body = client.get("/api/video", query_string={"url": WATCH_URL}).get_json()
        assert body["subtitles"] == []
