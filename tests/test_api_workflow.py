"""
Workflow API tests (streamed phases over text/event-stream).

Covers:
    - SSE framing: progress events, single terminal event, headers
    - Pre-stream validation: 404 / 400 / 409 as plain JSON
    - Research → debrief → feedback → approval over HTTP
    - Matrix creation then approval gating the status
    - Single-session article and the test-session run
    - Sequential chapter batches writing to the right sessions
    - Error events carrying the error kind
"""

from pacy.core.exceptions import AuthError
from pacy.models.content import Article, Chapter, Session
from pacy.models.workflow import WorkflowStep

API = "/api/v1/workflow"


def _create_project(client, **overrides):
    payload = {"name": "Forklift safety", "language": "english"}
    payload.update(overrides)
    res = client.post("/api/v1/projects", json=payload)
    assert res.status_code == 201
    return res.get_json()


def _design(client, sse_events, project_id, pipeline="optimized"):
    res = client.get(f"{API}/projects/{project_id}/design?pipeline={pipeline}")
    assert res.status_code == 200
    events = sse_events(res)
    assert events[-1]["type"] == "complete", events[-1]
    return events


def _sessions(client, project_id):
    chapters = client.get(f"/api/v1/content/projects/{project_id}/matrix").get_json()["chapters"]
    return chapters, [s for c in chapters for s in c["sessions"]]


def _terminal(events):
    return [e for e in events if e["type"] in ("complete", "done", "error")]


# ═════════════════════════════════════════════════════════════════════════════
# STREAM FRAMING & PRE-STREAM ERRORS
# ═════════════════════════════════════════════════════════════════════════════

class TestStreaming:
    def test_design_stream_shape(self, client, sse_events):
        p = _create_project(client)
        res = client.get(f"{API}/projects/{p['id']}/design")
        assert res.mimetype == "text/event-stream"
        assert res.headers["Cache-Control"] == "no-cache"

        events = sse_events(res)
        assert len(_terminal(events)) == 1
        progress = [e["message"] for e in events if e["type"] == "progress"]
        assert "Starting optimized program design" in progress
        assert "Program matrix saved: 2 chapters, 3 sessions" in progress
        result = events[-1]["result"]
        assert result["chapters"] == 2
        assert result["status"] == "program_design"

    def test_unknown_project_is_json_404(self, client):
        res = client.get(f"{API}/projects/9999/design")
        assert res.status_code == 404
        assert res.mimetype == "application/json"

    def test_unknown_pipeline_is_400(self, client):
        p = _create_project(client)
        res = client.get(f"{API}/projects/{p['id']}/design?pipeline=turbo")
        assert res.status_code == 400

    def test_design_blocked_during_debrief_review(self, client, sse_events):
        p = _create_project(client)
        sse_events(client.get(f"{API}/projects/{p['id']}/debrief"))
        res = client.get(f"{API}/projects/{p['id']}/design")
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_video_without_article_is_400(self, client, sse_events):
        p = _create_project(client)
        _design(client, sse_events, p["id"])
        _, sessions = _sessions(client, p["id"])
        res = client.get(f"{API}/sessions/{sessions[0]['id']}/video")
        assert res.status_code == 400
        res = client.get(f"{API}/sessions/{sessions[0]['id']}/quiz")
        assert res.status_code == 400

    def test_invalid_num_questions(self, client):
        p = _create_project(client)
        res = client.get(f"{API}/projects/{p['id']}/quizzes/batch?num_questions=lots")
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_failure_becomes_error_event(self, client, sse_events, fake_gateway):
        fake_gateway.script["article-writer"] = [AuthError("Invalid API key", provider="anthropic")]
        p = _create_project(client)
        _design(client, sse_events, p["id"])
        _, sessions = _sessions(client, p["id"])

        events = sse_events(client.get(f"{API}/sessions/{sessions[0]['id']}/article"))

        last = events[-1]
        assert last["type"] == "error"
        assert last["error_kind"] == "AuthError"
        assert "Invalid API key" in last["message"]
        assert Article.query.count() == 0


# ═════════════════════════════════════════════════════════════════════════════
# RESEARCH & DEBRIEF
# ═════════════════════════════════════════════════════════════════════════════

class TestDebriefFlow:
    def test_research_stream(self, client, sse_events):
        p = _create_project(client)
        events = sse_events(client.get(f"{API}/projects/{p['id']}/research"))
        assert events[-1]["type"] == "complete"
        assert events[-1]["result"]["deepened"] is False
        assert "Research complete" in [e.get("message") for e in events]

    def test_debrief_feedback_and_approval(self, client, sse_events):
        p = _create_project(client)
        pid = p["id"]

        events = sse_events(client.get(f"{API}/projects/{pid}/debrief"))
        assert events[-1]["result"]["status"] == "debrief_review"

        res = client.post(f"{API}/projects/{pid}/debrief/feedback", json={"feedback": "More practice"})
        assert res.status_code == 200
        assert res.get_json()["acknowledgment"]

        assert client.post(f"{API}/projects/{pid}/debrief/regenerate", json={}).status_code == 400
        events = sse_events(client.post(f"{API}/projects/{pid}/debrief/regenerate",
                                        json={"feedback": "More practice"}))
        assert events[-1]["type"] == "complete"
        assert WorkflowStep.query.filter_by(project_id=pid, step_name="create_debrief").count() == 2

        res = client.post(f"{API}/projects/{pid}/debrief/approve", json={"alternative_id": "B"})
        assert res.status_code == 200
        assert res.get_json()["status"] == "matrix_creation"
        assert client.post(f"{API}/projects/{pid}/debrief/approve", json={}).status_code == 409

        _design(client, sse_events, pid)
        assert client.get(f"/api/v1/projects/{pid}").get_json()["status"] == "program_design"

    def test_feedback_requires_text(self, client):
        p = _create_project(client)
        res = client.post(f"{API}/projects/{p['id']}/debrief/feedback", json={})
        assert res.status_code == 400

    def test_non_string_feedback_is_400(self, client, sse_events):
        p = _create_project(client)
        sse_events(client.get(f"{API}/projects/{p['id']}/debrief"))
        for action in ("feedback", "regenerate"):
            res = client.post(f"{API}/projects/{p['id']}/debrief/{action}", json={"feedback": 5})
            assert res.status_code == 400
            assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
            assert res.get_json()["details"] == {"feedback": "int"}
        assert WorkflowStep.query.filter_by(project_id=p["id"], step_name="create_debrief").count() == 1

    def test_approve_unknown_alternative(self, client, sse_events):
        p = _create_project(client)
        sse_events(client.get(f"{API}/projects/{p['id']}/debrief"))
        res = client.post(f"{API}/projects/{p['id']}/debrief/approve", json={"alternative_id": "Q"})
        assert res.status_code == 400
        assert res.get_json()["details"]["available"] == ["A", "B", "C"]


# ═════════════════════════════════════════════════════════════════════════════
# MATRIX → ARTICLE
# ═════════════════════════════════════════════════════════════════════════════

class TestMatrixToArticle:
    def test_status_waits_for_explicit_matrix_approval(self, client, sse_events):
        p = _create_project(client, deliverables="articles")
        pid = p["id"]
        _design(client, sse_events, pid)

        assert client.get(f"/api/v1/projects/{pid}").get_json()["status"] == "program_design"
        assert client.get(f"{API}/projects/{pid}/progress").get_json()["status"] == "program_design"

        res = client.post(f"{API}/projects/{pid}/approve-matrix")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "article_creation"
        assert body["matrix"]["approved"] is True
        assert client.post(f"{API}/projects/{pid}/approve-matrix").status_code == 409

        _, sessions = _sessions(client, pid)
        events = sse_events(client.get(f"{API}/sessions/{sessions[0]['id']}/article"))
        assert events[-1]["type"] == "complete"

        articles = Article.query.all()
        assert len(articles) == 1
        assert articles[0].session_id == sessions[0]["id"]
        assert articles[0].approved is False
        assert articles[0].content
        assert client.get(f"/api/v1/projects/{pid}").get_json()["status"] == "article_creation"

    def test_approve_matrix_requires_design(self, client):
        p = _create_project(client)
        assert client.post(f"{API}/projects/{p['id']}/approve-matrix").status_code == 409

    def test_test_session_creates_all_deliverables(self, client, sse_events):
        p = _create_project(client, deliverables="full_program")
        _design(client, sse_events, p["id"])
        _, sessions = _sessions(client, p["id"])
        events = sse_events(client.get(f"{API}/sessions/{sessions[0]['id']}/test-session"))
        result = events[-1]["result"]
        assert result["article"]["session_id"] == sessions[0]["id"]
        assert result["video"]["word_count"] > 0
        assert len(result["quiz"]["questions"]) == 3

    def test_single_video_and_quiz(self, client, sse_events):
        p = _create_project(client)
        _design(client, sse_events, p["id"])
        _, sessions = _sessions(client, p["id"])
        sid = sessions[0]["id"]
        sse_events(client.get(f"{API}/sessions/{sid}/article"))
        video = sse_events(client.get(f"{API}/sessions/{sid}/video"))[-1]
        quiz = sse_events(client.get(f"{API}/sessions/{sid}/quiz?num_questions=3"))[-1]
        assert video["type"] == "complete"
        assert quiz["result"]["quiz"]["questions"][0]["position"] == 1

    def test_complete_project(self, client, sse_events):
        p = _create_project(client)
        assert client.post(f"{API}/projects/{p['id']}/complete").status_code == 409
        _design(client, sse_events, p["id"])
        client.post(f"{API}/projects/{p['id']}/approve-matrix")
        res = client.post(f"{API}/projects/{p['id']}/complete")
        assert res.get_json()["status"] == "completed"


# ═════════════════════════════════════════════════════════════════════════════
# BATCHES
# ═════════════════════════════════════════════════════════════════════════════

class TestBatches:
    def test_chapter_batches_write_to_their_own_sessions(self, client, sse_events):
        p = _create_project(client)
        pid = p["id"]
        _design(client, sse_events, pid)
        client.post(f"{API}/projects/{pid}/approve-matrix")
        chapters, _ = _sessions(client, pid)

        for chapter in chapters:
            events = sse_events(client.get(f"{API}/chapters/{chapter['id']}/articles/batch"))
            result = events[-1]["result"]
            assert result["chapter_id"] == chapter["id"]
            assert result["created"] == len(chapter["sessions"])
            assert {r["session_id"] for r in result["results"]} == {s["id"] for s in chapter["sessions"]}

        for chapter in chapters:
            expected = {s["id"] for s in chapter["sessions"]}
            written = {
                a.session_id for a in Article.query.join(Session).filter(Session.chapter_id == chapter["id"])
            }
            assert written == expected
            for sid in expected:
                assert WorkflowStep.query.filter_by(
                    project_id=pid, step_name=f"write_article_{sid}", status="completed",
                ).count() == 1
        assert Article.query.count() == 3

    def test_batch_all_then_videos_and_quizzes(self, client, sse_events):
        p = _create_project(client, deliverables="full_program")
        pid = p["id"]
        _design(client, sse_events, pid)
        client.post(f"{API}/projects/{pid}/approve-matrix")

        articles = sse_events(client.get(f"{API}/projects/{pid}/articles/batch-all"))[-1]["result"]
        assert articles["created"] == 3
        again = sse_events(client.get(f"{API}/projects/{pid}/articles/batch-all"))[-1]["result"]
        assert again["skipped"] == 3

        videos = sse_events(client.get(f"{API}/projects/{pid}/videos/batch"))[-1]["result"]
        assert videos["created"] == 3
        assert client.get(f"/api/v1/projects/{pid}").get_json()["status"] == "video_creation"

        quizzes = sse_events(client.get(f"{API}/projects/{pid}/quizzes/batch?num_questions=3"))[-1]["result"]
        assert quizzes["created"] == 3
        progress = client.get(f"{API}/projects/{pid}/progress").get_json()
        assert progress["status"] == "quiz_creation"
        assert progress["deliverables"]["quizzes"] == 3

    def test_batch_complete_chapter(self, client, sse_events):
        p = _create_project(client, deliverables="articles_videos")
        _design(client, sse_events, p["id"])
        chapter = Chapter.query.filter_by(project_id=p["id"], number=1).one()
        result = sse_events(client.get(f"{API}/chapters/{chapter.id}/batch-complete"))[-1]["result"]
        assert result["articles"]["created"] == 2
        assert result["videos"]["created"] == 2

    def test_unknown_chapter(self, client):
        assert client.get(f"{API}/chapters/9999/articles/batch").status_code == 404
