"""
Content service layer: chapter/session structure and review of generated deliverables.

Transaction policy: functions use flush() for ID generation, never commit().
The calling route handler is responsible for db.session.commit().
"""

import logging

from pacy.ai.parsers import count_words
from pacy.core.exceptions import ConflictError, NotFoundError, ValidationError
from pacy.models import db
from pacy.models.content import Article, Chapter, Quiz, QuizQuestion, Session, VideoScript
from pacy.models.project import Project

logger = logging.getLogger(__name__)

# URL segment → model, plus the column holding editable text
_EDITABLE = {
    "article": (Article, "content"),
    "video": (VideoScript, "script"),
}
_REVIEWABLE = {
    "article": Article,
    "video": VideoScript,
    "quiz": Quiz,
}
ANSWERS = ("a", "b", "c")


def _get_or_404(model, pk, label):
    obj = db.session.get(model, pk)
    if not obj:
        raise NotFoundError(label, pk)
    return obj


# ── Structure ────────────────────────────────────────────────────────────


def list_chapters(project_id: int) -> list[Chapter]:
    project = _get_or_404(Project, project_id, "Project")
    return project.chapters.all()


def create_chapter(project_id: int, data: dict) -> Chapter:
    project = _get_or_404(Project, project_id, "Project")
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", {"name": "missing"})
    number = data.get("number")
    if number is None:
        number = (db.session.query(db.func.max(Chapter.number))
                  .filter(Chapter.project_id == project.id).scalar() or 0) + 1
    try:
        number = int(number)
    except (TypeError, ValueError):
        raise ValidationError("number must be an integer", {"number": number})
    if project.chapters.filter_by(number=number).first():
        raise ConflictError("Chapter", "number", str(number))

    chapter = Chapter(project_id=project.id, number=number, name=name,
                      description=data.get("description"))
    db.session.add(chapter)
    db.session.flush()
    return chapter


def create_session(chapter_id: int, data: dict) -> Session:
    chapter = _get_or_404(Chapter, chapter_id, "Chapter")
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", {"name": "missing"})
    number = data.get("number")
    if number is None:
        number = (db.session.query(db.func.max(Session.number))
                  .filter(Session.chapter_id == chapter.id).scalar() or 0) + 1
    try:
        number = int(number)
    except (TypeError, ValueError):
        raise ValidationError("number must be an integer", {"number": number})
    if chapter.sessions.filter_by(number=number).first():
        raise ConflictError("Session", "number", str(number))

    # Display label: 2.1, 2.2, ... 2.10
    label = data.get("label")
    if label is None:
        label = f"{chapter.number}.{number}"
    if not isinstance(label, str) or not label.strip():
        raise ValidationError("label must be a non-empty string", {"label": label})
    label = label.strip()
    if chapter.sessions.filter_by(label=label).first():
        raise ConflictError("Session", "label", label)

    session = Session(
        chapter_id=chapter.id,
        number=number,
        label=label,
        name=name,
        description=data.get("description"),
        content_outline=data.get("content_outline"),
        learning_objective=data.get("learning_objective"),
    )
    db.session.add(session)
    db.session.flush()
    return session


def get_session(session_id: int) -> Session:
    return _get_or_404(Session, session_id, "Session")


def session_detail(session: Session) -> dict:
    d = session.to_dict()
    d["chapter"] = session.chapter.to_dict()
    d["article"] = session.article.to_dict() if session.article else None
    d["video"] = session.video.to_dict() if session.video else None
    d["quiz"] = session.quiz.to_dict() if session.quiz else None
    return d


def session_article(session_id: int) -> Article:
    session = get_session(session_id)
    if session.article is None:
        raise NotFoundError("Article for session", session_id)
    return session.article


def matrix_view(project_id: int) -> dict:
    """Latest matrix plus the chapter/session tree derived from it."""
    project = _get_or_404(Project, project_id, "Project")
    matrix = project.matrix
    return {
        "project_id": project.id,
        "status": project.status,
        "matrix": matrix.to_dict() if matrix else None,
        "chapters": [c.to_dict(include_sessions=True) for c in project.chapters],
    }


# ── Review ───────────────────────────────────────────────────────────────


def update_content(content_type: str, content_id: int, data: dict):
    """Replace the text of an article or video script and recompute its word count."""
    if content_type not in _EDITABLE:
        raise ValidationError(
            f"Unsupported content type '{content_type}'", {"allowed": sorted(_EDITABLE)},
        )
    model, column = _EDITABLE[content_type]
    obj = _get_or_404(model, content_id, model.__name__)
    text = data.get("content", data.get(column))
    if text is None:
        raise ValidationError("content is required", {"content": "missing"})
    if not isinstance(text, str):
        raise ValidationError("content must be a string", {"content": type(text).__name__})
    setattr(obj, column, text)
    obj.word_count = count_words(text)
    db.session.flush()
    return obj


def replace_quiz_questions(quiz_id: int, questions: list) -> Quiz:
    quiz = _get_or_404(Quiz, quiz_id, "Quiz")
    if not isinstance(questions, list) or not questions:
        raise ValidationError("questions must be a non-empty list")

    rows = []
    for index, item in enumerate(questions, start=1):
        if not isinstance(item, dict):
            raise ValidationError("Each question must be an object", {"index": index})
        missing = [k for k in ("question", "option_a", "option_b", "option_c", "correct_answer")
                   if not str(item.get(k) or "").strip()]
        if missing:
            raise ValidationError("Question is missing fields", {"index": index, "missing": missing})
        answer = str(item["correct_answer"]).strip().lower()
        if answer not in ANSWERS:
            raise ValidationError("correct_answer must be a, b or c", {"index": index, "value": answer})
        rows.append(QuizQuestion(
            position=index,
            question=item["question"],
            option_a=item["option_a"],
            option_b=item["option_b"],
            option_c=item["option_c"],
            correct_answer=answer,
        ))

    quiz.questions = rows
    db.session.flush()
    return quiz


def _reviewable(content_type: str, content_id: int):
    if content_type not in _REVIEWABLE:
        raise ValidationError(
            f"Unsupported content type '{content_type}'", {"allowed": sorted(_REVIEWABLE)},
        )
    model = _REVIEWABLE[content_type]
    return _get_or_404(model, content_id, model.__name__)


def add_feedback(content_type: str, content_id: int, feedback: str):
    if not feedback or not feedback.strip():
        raise ValidationError("feedback is required", {"feedback": "missing"})
    obj = _reviewable(content_type, content_id)
    obj.feedback = feedback
    db.session.flush()
    return obj


def approve(content_type: str, content_id: int):
    obj = _reviewable(content_type, content_id)
    obj.approved = True
    if hasattr(obj, "status"):
        obj.status = "approved"
    db.session.flush()
    logger.info("%s %s approved", content_type, content_id)
    return obj


def request_revision(article_id: int, feedback: str | None = None) -> Article:
    article = _get_or_404(Article, article_id, "Article")
    article.status = "revision_needed"
    article.approved = False
    if feedback:
        article.feedback = feedback
    db.session.flush()
    return article
