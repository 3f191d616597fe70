"""
Pipeline base: the content-creation phases shared by every design strategy.

A pipeline turns an approved program matrix into per-session deliverables:

    article  — write → HIST review → fact check
    video    — narrate from the article
    quiz     — assessment questions from the article

Subclasses only decide how the program itself is designed
(``design_program``) and a couple of article-writing options.  All
persistence goes through the same helpers so both strategies produce the
same rows.
"""

import logging
import time
from abc import ABC, abstractmethod

from flask import current_app

from pacy.ai.parsers import count_words, parse_matrix, parse_quiz, split_fact_check
from pacy.core.exceptions import AuthError, NotFoundError, ParseError, ValidationError
from pacy.models import db
from pacy.models.content import Article, Chapter, Quiz, QuizQuestion, Session, VideoScript
from pacy.models.project import ProgramMatrix, Project
from pacy.workflow import prompts
from pacy.workflow.checkpoint import StepRecorder, latest_result
from pacy.workflow.status import advance

logger = logging.getLogger(__name__)

PROGRAM_CONTEXT_CHARS = 1000
PREVIOUS_ARTICLE_CHARS = 200
MATRIX_OVERVIEW_CHARS = 500
DEFAULT_QUIZ_QUESTIONS = 3

# Errors that no amount of retrying a single session will fix
_NON_RETRYABLE = (NotFoundError, ValidationError)


def _noop(_message):
    pass


class Pipeline(ABC):
    """
    Shared phase methods over one persistence contract.

    Args:
        recorder: StepRecorder used for every agent call.
        max_attempts: Attempts per session inside batch operations.
        retry_delay: Seconds between batch attempts (multiplied by attempt).
        sleep: Callable(seconds); tests inject a no-op.
    """

    name = "base"
    # Optimized pipeline feeds earlier articles and first-in-X flags to the writer
    uses_session_context = False
    # Optimized pipeline replaces the article with the fact checker's correction
    applies_fact_check_corrections = False

    def __init__(self, recorder=None, *, max_attempts=3, retry_delay=None, sleep=None):
        self.recorder = recorder or StepRecorder()
        self.max_attempts = max_attempts
        if retry_delay is None:
            retry_delay = current_app.config.get("BATCH_RETRY_DELAY_SECONDS", 2.0)
        self.retry_delay = retry_delay
        self.sleep = sleep or time.sleep

    # ══════════════════════════════════════════════════════════════════════
    # Program design
    # ══════════════════════════════════════════════════════════════════════

    @abstractmethod
    def design_program(self, project_id: int, feedback: str | None = None, on_progress=None) -> dict:
        """Design the program and persist the matrix, chapters and sessions."""

    def _approved_direction(self, project_id: int) -> str:
        approval = latest_result(project_id, "approve_debrief")
        if not approval:
            return ""
        return f"APPROVED DEBRIEF DIRECTION:\n{approval}"

    def _save_matrix(self, project: Project, text: str, on_progress=None) -> dict:
        """
        Store the ProgramMatrix and replace the project's chapters and sessions.

        Regenerating a matrix discards the previous structure (and with it any
        content created for the old sessions).  Output without a single chapter
        row raises ``ParseError`` and leaves the existing structure in place.
        """
        on_progress = on_progress or _noop
        table = parse_matrix(text)
        if not table.rows:
            raise ParseError("Program matrix contained no chapter rows", text)

        matrix = ProgramMatrix(
            project_id=project.id,
            overview=text[:MATRIX_OVERVIEW_CHARS],
            full_text=text,
            approved=False,
        )
        db.session.add(matrix)

        for chapter in project.chapters.all():
            db.session.delete(chapter)
        db.session.flush()

        session_count = 0
        for row in table.rows:
            chapter = Chapter(
                project_id=project.id,
                number=row["number"],
                name=row["name"],
                description=row["description"],
            )
            db.session.add(chapter)
            db.session.flush()
            for s in row["sessions"]:
                db.session.add(Session(
                    chapter_id=chapter.id,
                    number=s["number"],
                    label=s["label"],
                    name=s["name"],
                    description=s["description"],
                    content_outline=s["content_outline"],
                    learning_objective=s["learning_objective"],
                ))
                session_count += 1

        advance(project, "create_program_matrix")
        db.session.commit()

        on_progress(f"Program matrix saved: {len(table.rows)} chapters, {session_count} sessions")
        logger.info(
            "Matrix saved for project %s: %d chapters, %d sessions",
            project.id, len(table.rows), session_count,
        )
        return {
            "matrix": matrix.to_dict(),
            "chapters": len(table.rows),
            "sessions": session_count,
            "status": project.status,
        }

    # ══════════════════════════════════════════════════════════════════════
    # Lookups
    # ══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _get_project(project_id: int) -> Project:
        project = db.session.get(Project, project_id)
        if not project:
            raise NotFoundError("Project", project_id)
        return project

    @staticmethod
    def _get_session(session_id: int) -> Session:
        session = db.session.get(Session, session_id)
        if not session:
            raise NotFoundError("Session", session_id)
        return session

    @staticmethod
    def _get_chapter(chapter_id: int) -> Chapter:
        chapter = db.session.get(Chapter, chapter_id)
        if not chapter:
            raise NotFoundError("Chapter", chapter_id)
        return chapter

    @staticmethod
    def _project_sessions(project_id: int) -> list[Session]:
        """All sessions of a project in program order."""
        return (
            Session.query.join(Chapter)
            .filter(Chapter.project_id == project_id)
            .order_by(Chapter.number.asc(), Session.number.asc())
            .all()
        )

    # ══════════════════════════════════════════════════════════════════════
    # Prompt blocks
    # ══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _fidelity_block(project: Project) -> str:
        materials = project.materials.all()
        strict = [m.filename for m in materials if m.is_strict]
        if project.strict_fidelity and strict:
            return prompts.render(prompts.STRICT_FIDELITY_VETO, strict_materials=", ".join(strict))
        if materials:
            return prompts.render(
                prompts.STRICT_FIDELITY_ADVISORY,
                materials=", ".join(m.filename for m in materials),
            )
        return ""

    def _position_block(self, project: Project, session: Session, kind: str) -> str:
        ordered = self._project_sessions(project.id)
        if ordered and ordered[0].id == session.id:
            return prompts.render(prompts.FIRST_IN_PROGRAM, kind=kind, project_name=project.name)
        first_in_chapter = session.chapter.sessions.first()
        if first_in_chapter is not None and first_in_chapter.id == session.id:
            return prompts.render(prompts.FIRST_IN_CHAPTER, chapter_name=session.chapter.name)
        return ""

    def _previous_sessions_block(self, project: Project, session: Session) -> str:
        lines = []
        for earlier in self._project_sessions(project.id):
            if earlier.id == session.id:
                break
            if earlier.article is None:
                continue
            preview = earlier.article.content[:PREVIOUS_ARTICLE_CHARS]
            lines.append(f"Session {earlier.label}: {earlier.name}\n{preview}...")
        if not lines:
            return ""
        return prompts.render(prompts.PREVIOUS_SESSIONS, previous_sessions="\n\n".join(lines))

    def _program_context(self, project: Project) -> str:
        matrix_text = latest_result(project.id, "create_program_matrix")
        if not matrix_text:
            return ""
        return f"PROGRAM CONTEXT:\n{matrix_text[:PROGRAM_CONTEXT_CHARS]}"

    # ══════════════════════════════════════════════════════════════════════
    # Article: write → HIST review → fact check
    # ══════════════════════════════════════════════════════════════════════

    def create_article(self, session_id: int, on_progress=None, *, batch: bool = False) -> dict:
        on_progress = on_progress or _noop
        session = self._get_session(session_id)
        project = session.chapter.project
        sid = session.id

        position_block = previous_block = ""
        if self.uses_session_context:
            position_block = self._position_block(project, session, "ARTICLE")
            previous_block = self._previous_sessions_block(project, session)

        fidelity = self._fidelity_block(project)
        on_progress(f"Writing article for session {session.label}: {session.name}")
        write_prompt = prompts.render(
            prompts.WRITE_ARTICLE,
            session_label=session.label,
            session_name=session.name,
            session_description=prompts.or_default(session.description),
            content_outline=prompts.or_default(session.content_outline),
            learning_objective=prompts.or_default(session.learning_objective),
            target_audience=prompts.or_default(project.target_audience),
            program_context=self._program_context(project),
            fidelity_block=fidelity,
            language=project.language,
            position_block=position_block,
            previous_sessions_block=previous_block,
        )
        content = self.recorder.run(
            project.id, "article_creation", f"write_article_{sid}", "article-writer",
            write_prompt, on_progress=on_progress, batch=batch,
        )

        on_progress("Reviewing HIST compliance")
        hist_review = self.recorder.run(
            project.id, "article_creation", f"hist_review_{sid}", "hist-compliance-editor",
            prompts.render(prompts.HIST_REVIEW, article=content), on_progress=on_progress,
        )

        on_progress("Fact-checking article")
        fact_check = self.recorder.run(
            project.id, "article_creation", f"fact_check_{sid}", "fact-checker",
            prompts.render(
                prompts.FACT_CHECK,
                article=content,
                hist_review=hist_review,
                project_type="strict fidelity" if project.strict_fidelity else "general",
                fidelity_block=fidelity,
            ),
            on_progress=on_progress,
        )

        notes = fact_check
        if self.applies_fact_check_corrections:
            corrected_content, notes, corrected = split_fact_check(content, fact_check)
            if corrected:
                on_progress("Fact checker corrected the article, re-running HIST review")
                content = corrected_content
                hist_review = self.recorder.run(
                    project.id, "article_creation", f"hist_review_{sid}", "hist-compliance-editor",
                    prompts.render(prompts.HIST_REVIEW_CORRECTED, article=content),
                    on_progress=on_progress,
                )

        article = session.article or Article(session_id=sid)
        article.content = content
        article.word_count = count_words(content)
        article.status = "fact_check"
        article.approved = False
        article.hist_review = hist_review
        article.fact_check_notes = notes
        db.session.add(article)
        db.session.commit()

        on_progress(f"Article saved ({article.word_count} words)")
        return {"session_id": sid, "article": article.to_dict()}

    # ══════════════════════════════════════════════════════════════════════
    # Video script
    # ══════════════════════════════════════════════════════════════════════

    def create_video(self, session_id: int, on_progress=None, *, batch: bool = False) -> dict:
        on_progress = on_progress or _noop
        session = self._get_session(session_id)
        if session.article is None:
            raise ValidationError(
                f"Session {session.label} has no article; create the article first",
                {"session_id": session.id},
            )
        project = session.chapter.project

        position_block = previous_block = ""
        if self.uses_session_context:
            position_block = self._position_block(project, session, "VIDEO")
            previous_block = self._previous_sessions_block(project, session)

        on_progress(f"Writing video script for session {session.label}: {session.name}")
        script = self.recorder.run(
            project.id, "video_creation", f"create_video_{session.id}", "video-narrator",
            prompts.render(
                prompts.VIDEO_SCRIPT,
                session_label=session.label,
                session_name=session.name,
                learning_objective=prompts.or_default(session.learning_objective),
                article=session.article.content,
                position_block=position_block,
                previous_sessions_block=previous_block,
                language=project.language,
            ),
            on_progress=on_progress, batch=batch,
        )

        video = session.video or VideoScript(session_id=session.id)
        video.script = script.strip()
        video.word_count = count_words(video.script)
        video.status = "draft"
        video.approved = False
        db.session.add(video)
        db.session.commit()

        on_progress(f"Video script saved ({video.word_count} words)")
        return {"session_id": session.id, "video": video.to_dict()}

    # ══════════════════════════════════════════════════════════════════════
    # Quiz
    # ══════════════════════════════════════════════════════════════════════

    def create_quiz(self, session_id: int, num_questions: int | None = None, on_progress=None,
                    *, batch: bool = False) -> dict:
        on_progress = on_progress or _noop
        session = self._get_session(session_id)
        if session.article is None:
            raise ValidationError(
                f"Session {session.label} has no article; create the article first",
                {"session_id": session.id},
            )
        project = session.chapter.project
        count = num_questions or project.quiz_questions or DEFAULT_QUIZ_QUESTIONS

        on_progress(f"Creating {count} quiz questions for session {session.label}")
        text = self.recorder.run(
            project.id, "quiz_creation", f"create_quiz_{session.id}", "assessment-designer",
            prompts.render(
                prompts.QUIZ,
                num_questions=count,
                session_name=session.name,
                article=session.article.content,
                language=project.language,
            ),
            on_progress=on_progress, batch=batch,
        )
        table = parse_quiz(text)
        if not table.rows:
            raise ParseError("Quiz output contained no question rows", text)

        quiz = session.quiz or Quiz(session_id=session.id)
        quiz.approved = False
        quiz.questions = [
            QuizQuestion(position=i, **row) for i, row in enumerate(table.rows, start=1)
        ]
        db.session.add(quiz)
        db.session.commit()

        on_progress(f"Quiz saved ({len(table.rows)} questions)")
        return {"session_id": session.id, "quiz": quiz.to_dict()}

    # ══════════════════════════════════════════════════════════════════════
    # Batch operations
    # ══════════════════════════════════════════════════════════════════════

    def _run_batch(self, kind: str, sessions: list[Session], has_deliverable, create, on_progress=None) -> dict:
        """
        Create ``kind`` for each session, sequentially.

        Sessions that already have the deliverable are skipped.  Each session
        gets up to ``max_attempts`` tries; a failure is recorded and the batch
        moves on.  Authentication failures abort the whole batch.
        """
        on_progress = on_progress or _noop
        session_ids = [s.id for s in sessions]
        total = len(session_ids)
        summary = {"total": total, "created": 0, "failed": 0, "skipped": 0, "results": []}
        if not total:
            on_progress(f"No sessions to process for {kind}")
            return summary

        on_progress(f"Starting batch {kind} generation for {total} sessions")
        for index, sid in enumerate(session_ids, start=1):
            session = self._get_session(sid)
            if has_deliverable(session):
                on_progress(f"[{index}/{total}] Session {session.label} already has a {kind}, skipping")
                summary["skipped"] += 1
                summary["results"].append({"session_id": sid, "success": True, "skipped": True})
                continue

            on_progress(f"[{index}/{total}] Session {session.label}: {session.name}")
            for attempt in range(1, self.max_attempts + 1):
                try:
                    create(sid)
                except AuthError:
                    db.session.rollback()
                    raise
                except Exception as exc:
                    db.session.rollback()
                    retryable = not isinstance(exc, _NON_RETRYABLE)
                    if retryable and attempt < self.max_attempts:
                        logger.warning(
                            "Batch %s for session %s failed (attempt %d/%d): %s",
                            kind, sid, attempt, self.max_attempts, exc,
                        )
                        on_progress(f"Error on session {sid}, retrying ({attempt}/{self.max_attempts})")
                        self.sleep(self.retry_delay * attempt)
                        continue
                    logger.error("Batch %s for session %s failed: %s", kind, sid, exc)
                    on_progress(f"[{index}/{total}] Failed: {exc}")
                    summary["failed"] += 1
                    summary["results"].append({"session_id": sid, "success": False, "error": str(exc)})
                    break
                else:
                    summary["created"] += 1
                    summary["results"].append({"session_id": sid, "success": True})
                    break

        on_progress(
            f"Batch {kind} generation complete: {summary['created']} created, "
            f"{summary['skipped']} skipped, {summary['failed']} failed"
        )
        return summary

    def batch_chapter_articles(self, chapter_id: int, on_progress=None) -> dict:
        chapter = self._get_chapter(chapter_id)
        result = self._run_batch(
            "article", chapter.sessions.all(),
            lambda s: s.article is not None,
            lambda sid: self.create_article(sid, on_progress, batch=True),
            on_progress,
        )
        result["chapter_id"] = chapter.id
        return result

    def batch_articles(self, project_id: int, on_progress=None) -> dict:
        self._get_project(project_id)
        return self._run_batch(
            "article", self._project_sessions(project_id),
            lambda s: s.article is not None,
            lambda sid: self.create_article(sid, on_progress, batch=True),
            on_progress,
        )

    def batch_videos(self, project_id: int, on_progress=None) -> dict:
        project = self._get_project(project_id)
        sessions = [s for s in self._project_sessions(project_id) if s.article is not None]
        result = self._run_batch(
            "video", sessions,
            lambda s: s.video is not None,
            lambda sid: self.create_video(sid, on_progress, batch=True),
            on_progress,
        )
        if advance(project, "batch_videos"):
            db.session.commit()
        return result

    def batch_quizzes(self, project_id: int, num_questions: int | None = None, on_progress=None) -> dict:
        project = self._get_project(project_id)
        count = num_questions or project.quiz_questions or DEFAULT_QUIZ_QUESTIONS
        sessions = [s for s in self._project_sessions(project_id) if s.article is not None]
        result = self._run_batch(
            "quiz", sessions,
            lambda s: s.quiz is not None,
            lambda sid: self.create_quiz(sid, count, on_progress, batch=True),
            on_progress,
        )
        if advance(project, "batch_quizzes"):
            db.session.commit()
        return result

    # ══════════════════════════════════════════════════════════════════════
    # Composite runs
    # ══════════════════════════════════════════════════════════════════════

    def complete_session(self, session_id: int, on_progress=None) -> dict:
        """Article, then video, then quiz for one session (the "test session" run)."""
        on_progress = on_progress or _noop
        session = self._get_session(session_id)
        project = session.chapter.project
        result = {"session_id": session.id}

        result["article"] = self.create_article(session.id, on_progress)["article"]
        if project.wants("video"):
            result["video"] = self.create_video(session.id, on_progress)["video"]
        if project.wants("quiz"):
            result["quiz"] = self.create_quiz(session.id, None, on_progress)["quiz"]
        on_progress(f"Session {session.label} complete")
        return result

    def complete_chapter(self, chapter_id: int, on_progress=None) -> dict:
        """Articles for the chapter, then videos and quizzes for each of its sessions."""
        on_progress = on_progress or _noop
        chapter = self._get_chapter(chapter_id)
        project = chapter.project

        result = {"chapter_id": chapter.id, "articles": self.batch_chapter_articles(chapter.id, on_progress)}
        sessions = [s for s in chapter.sessions.all() if s.article is not None]
        if project.wants("video"):
            result["videos"] = self._run_batch(
                "video", sessions,
                lambda s: s.video is not None,
                lambda sid: self.create_video(sid, on_progress, batch=True),
                on_progress,
            )
        if project.wants("quiz"):
            result["quizzes"] = self._run_batch(
                "quiz", sessions,
                lambda s: s.quiz is not None,
                lambda sid: self.create_quiz(sid, None, on_progress, batch=True),
                on_progress,
            )
        on_progress(f"Chapter {chapter.number} complete")
        return result
