"""
Project API tests.

Covers:
    - Project CRUD + validation + cascade delete
    - Source material registration
    - Brief parsing (stub + malformed model output)
    - Markdown export
    - Progress endpoint
    - Health probes
"""

from pacy.models import db
from pacy.models.content import Article, Chapter, Quiz, QuizQuestion, Session, VideoScript


def _create_project(client, **overrides):
    payload = {"name": "Forklift safety", "target_audience": "Warehouse staff"}
    payload.update(overrides)
    res = client.post("/api/v1/projects", json=payload)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _create_chapter(client, project_id, **overrides):
    payload = {"name": "Foundations"}
    payload.update(overrides)
    res = client.post(f"/api/v1/content/projects/{project_id}/chapters", json=payload)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _create_session(client, chapter_id, **overrides):
    payload = {"name": "Why it matters", "learning_objective": "You see why"}
    payload.update(overrides)
    res = client.post(f"/api/v1/content/chapters/{chapter_id}/sessions", json=payload)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════════
# PROJECTS
# ═════════════════════════════════════════════════════════════════════════════

class TestProjectCRUD:
    def test_create_with_defaults(self, client):
        p = _create_project(client)
        assert p["status"] == "information_gathering"
        assert p["language"] == "swedish"
        assert p["deliverables"] == "articles"
        assert p["quiz_questions"] == 3
        assert p["strict_fidelity"] is False

    def test_create_with_brief(self, client):
        p = _create_project(client, deliverables="full_program", quiz_questions=5,
                            num_chapters=4, strict_fidelity=True, language="english")
        assert p["deliverables"] == "full_program"
        assert p["quiz_questions"] == 5
        assert p["num_chapters"] == 4
        assert p["strict_fidelity"] is True

    def test_create_requires_name(self, client):
        res = client.post("/api/v1/projects", json={"name": "  "})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_create_rejects_unknown_deliverables(self, client):
        res = client.post("/api/v1/projects", json={"name": "X", "deliverables": "podcast"})
        assert res.status_code == 400

    def test_create_rejects_out_of_range_quiz_questions(self, client):
        res = client.post("/api/v1/projects", json={"name": "X", "quiz_questions": 50})
        assert res.status_code == 400

    def test_create_rejects_non_integer_chapters(self, client):
        res = client.post("/api/v1/projects", json={"name": "X", "num_chapters": "many"})
        assert res.status_code == 400

    def test_list_newest_first(self, client):
        first = _create_project(client, name="First")
        second = _create_project(client, name="Second")
        ids = [p["id"] for p in client.get("/api/v1/projects").get_json()]
        assert ids == [second["id"], first["id"]]

    def test_get_detail(self, client):
        p = _create_project(client)
        res = client.get(f"/api/v1/projects/{p['id']}")
        assert res.status_code == 200
        data = res.get_json()
        assert data["matrix"] is None
        assert data["materials"] == []
        assert data["chapters"] == []

    def test_get_not_found(self, client):
        res = client.get("/api/v1/projects/9999")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_update_brief_but_not_status(self, client):
        p = _create_project(client)
        res = client.put(f"/api/v1/projects/{p['id']}", json={
            "name": "Forklift safety 2.0", "target_audience": "Team leads", "status": "completed",
        })
        assert res.status_code == 200
        data = res.get_json()
        assert data["name"] == "Forklift safety 2.0"
        assert data["target_audience"] == "Team leads"
        assert data["status"] == "information_gathering"

    def test_update_empty_name(self, client):
        p = _create_project(client)
        res = client.put(f"/api/v1/projects/{p['id']}", json={"name": ""})
        assert res.status_code == 400

    def test_delete_cascades(self, client):
        p = _create_project(client)
        chapter = _create_chapter(client, p["id"])
        _create_session(client, chapter["id"])
        res = client.delete(f"/api/v1/projects/{p['id']}")
        assert res.status_code == 200
        assert res.get_json()["message"] == "Project 'Forklift safety' deleted"
        assert client.get(f"/api/v1/projects/{p['id']}").status_code == 404
        assert Chapter.query.count() == 0
        assert Session.query.count() == 0


# ═════════════════════════════════════════════════════════════════════════════
# SOURCE MATERIAL
# ═════════════════════════════════════════════════════════════════════════════

class TestMaterials:
    def test_add_and_list(self, client):
        p = _create_project(client)
        res = client.post(f"/api/v1/projects/{p['id']}/materials", json={
            "filename": "handbook.pdf", "file_type": "application/pdf",
            "file_size": 2048, "category": "strict_fidelity", "content": "Rule 1",
        })
        assert res.status_code == 201
        material = res.get_json()
        assert material["category"] == "strict_fidelity"
        assert material["has_content"] is True

        listed = client.get(f"/api/v1/projects/{p['id']}/materials").get_json()
        assert [m["filename"] for m in listed] == ["handbook.pdf"]

    def test_default_category_is_context(self, client):
        p = _create_project(client)
        res = client.post(f"/api/v1/projects/{p['id']}/materials", json={"filename": "notes.txt"})
        assert res.get_json()["category"] == "context"

    def test_invalid_category(self, client):
        p = _create_project(client)
        res = client.post(f"/api/v1/projects/{p['id']}/materials",
                          json={"filename": "a.pdf", "category": "gospel"})
        assert res.status_code == 400

    def test_file_too_large(self, client):
        p = _create_project(client)
        res = client.post(f"/api/v1/projects/{p['id']}/materials",
                          json={"filename": "huge.pdf", "file_size": 10 ** 12})
        assert res.status_code == 400

    def test_filename_required(self, client):
        p = _create_project(client)
        res = client.post(f"/api/v1/projects/{p['id']}/materials", json={})
        assert res.status_code == 400

    def test_unknown_project(self, client):
        res = client.post("/api/v1/projects/9999/materials", json={"filename": "a.pdf"})
        assert res.status_code == 404

    def test_delete(self, client):
        p = _create_project(client)
        material = client.post(f"/api/v1/projects/{p['id']}/materials",
                               json={"filename": "a.pdf"}).get_json()
        assert client.delete(f"/api/v1/projects/materials/{material['id']}").status_code == 200
        assert client.delete(f"/api/v1/projects/materials/{material['id']}").status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# BRIEF PARSING
# ═════════════════════════════════════════════════════════════════════════════

class TestParseBrief:
    def test_stub_brief(self, client):
        res = client.post("/api/v1/projects/parse-brief", json={"text": "We need safety training."})
        assert res.status_code == 200
        data = res.get_json()
        assert data["extracted"]["project_name"] == "Stub program"
        assert data["needs_human_input"] == ["target_audience"]

    def test_text_required(self, client):
        res = client.post("/api/v1/projects/parse-brief", json={"text": ""})
        assert res.status_code == 400

    def test_text_must_be_a_string(self, client):
        res = client.post("/api/v1/projects/parse-brief", json={"text": ["Brief"]})
        assert res.status_code == 400

    def test_malformed_output_returns_raw_response(self, client, fake_gateway):
        fake_gateway.script["brief-analyst"] = "Sorry, I could not read that document."
        res = client.post("/api/v1/projects/parse-brief", json={"text": "Brief text"})
        assert res.status_code == 500
        data = res.get_json()
        assert data["code"] == "ERR_PARSE"
        assert data["raw_response"] == "Sorry, I could not read that document."

    def test_raw_response_is_truncated(self, client, fake_gateway):
        fake_gateway.script["brief-analyst"] = "x" * 3000
        res = client.post("/api/v1/projects/parse-brief", json={"text": "Brief text"})
        assert res.status_code == 500
        assert len(res.get_json()["raw_response"]) == 1000

    def test_uses_batch_model(self, client, fake_gateway):
        client.post("/api/v1/projects/parse-brief", json={"text": "Brief text"})
        call = fake_gateway.calls_for("brief-analyst")[0]
        assert call["batch"] is True
        assert "Brief text" in call["prompt"]


# ═════════════════════════════════════════════════════════════════════════════
# EXPORT & PROGRESS
# ═════════════════════════════════════════════════════════════════════════════

class TestExport:
    def test_markdown_export(self, client):
        p = _create_project(client, name="Forklift safety: basics")
        chapter = _create_chapter(client, p["id"], description="Core concepts")
        session = _create_session(client, chapter["id"])
        db.session.add(Article(session_id=session["id"], content="Body text here", word_count=3))
        db.session.add(VideoScript(session_id=session["id"], script="Spoken words", word_count=2))
        quiz = Quiz(session_id=session["id"])
        quiz.questions = [QuizQuestion(position=1, question="Q?", option_a="A", option_b="B",
                                       option_c="C", correct_answer="b")]
        db.session.add(quiz)
        db.session.commit()

        res = client.get(f"/api/v1/projects/{p['id']}/export")
        assert res.status_code == 200
        assert res.mimetype == "text/markdown"
        assert res.headers["Content-Disposition"] == 'attachment; filename="Forklift_safety_basics.md"'

        body = res.get_data(as_text=True)
        assert body.startswith("# Forklift safety: basics\n")
        assert "## Chapter 1: Foundations" in body
        assert "### Session 1.1: Why it matters" in body
        assert "**Learning Objective:** You see why" in body
        assert "*Word count: 3*" in body
        assert "#### Video Script" in body
        assert "**Q1.** Q?" in body
        assert "*Answer: b*" in body

    def test_export_unknown_project(self, client):
        assert client.get("/api/v1/projects/9999/export").status_code == 404


class TestProgress:
    def test_empty_project(self, client):
        p = _create_project(client)
        data = client.get(f"/api/v1/workflow/projects/{p['id']}/progress").get_json()
        assert data["status"] == "information_gathering"
        assert data["counts"] == {"total": 0, "completed": 0, "running": 0, "failed": 0}
        assert data["deliverables"]["sessions"] == 0

    def test_counts_structure_and_content(self, client):
        p = _create_project(client)
        chapter = _create_chapter(client, p["id"])
        s1 = _create_session(client, chapter["id"])
        _create_session(client, chapter["id"], name="Second")
        db.session.add(Article(session_id=s1["id"], content="x", word_count=1, approved=True))
        db.session.commit()
        data = client.get(f"/api/v1/workflow/projects/{p['id']}/progress").get_json()
        assert data["deliverables"] == {
            "chapters": 1, "sessions": 2, "articles": 1, "approved_articles": 1,
            "videos": 0, "quizzes": 0,
        }


class TestHealth:
    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").get_json() == {"status": "ok"}

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        data = res.get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "ok"
        assert data["checks"]["llm"]["local_stub_forced"] is True
        assert data["checks"]["llm"]["agents_loaded"] == 13
        assert data["checks"]["workflow"] == {"running_steps": 0, "default_pipeline": "optimized"}
