"""
Content structure and generated deliverables.

Chapter → Session → {Article, VideoScript, Quiz → QuizQuestion}
"""

from datetime import datetime, timezone

from pacy.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class Chapter(db.Model):
    __tablename__ = "chapters"
    __table_args__ = (
        db.UniqueConstraint("project_id", "number", name="uq_chapter_project_number"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    number = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    sessions = db.relationship(
        "Session", backref="chapter", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="Session.number",
    )

    def to_dict(self, include_sessions=False):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "number": self.number,
            "name": self.name,
            "description": self.description,
        }
        if include_sessions:
            result["sessions"] = [s.to_dict() for s in self.sessions]
        return result


class Session(db.Model):
    """One micro-learning unit inside a chapter."""

    __tablename__ = "sessions"
    __table_args__ = (
        db.UniqueConstraint("chapter_id", "number", name="uq_session_chapter_number"),
        db.UniqueConstraint("chapter_id", "label", name="uq_session_chapter_label"),
    )

    id = db.Column(db.Integer, primary_key=True)
    chapter_id = db.Column(
        db.Integer, db.ForeignKey("chapters.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    number = db.Column(db.Integer, nullable=False, comment="Position inside the chapter, 1-based")
    label = db.Column(db.String(30), nullable=False, comment="As written in the matrix, e.g. 1.10")
    name = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    content_outline = db.Column(db.Text, nullable=True, comment="Bullet points from the matrix")
    learning_objective = db.Column(db.Text, nullable=True, comment="WIIFM sentence")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    article = db.relationship(
        "Article", backref="session", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )
    video = db.relationship(
        "VideoScript", backref="session", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )
    quiz = db.relationship(
        "Quiz", backref="session", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "chapter_id": self.chapter_id,
            "number": self.number,
            "label": self.label,
            "name": self.name,
            "description": self.description,
            "content_outline": self.content_outline,
            "learning_objective": self.learning_objective,
            "has_article": self.article is not None,
            "has_video": self.video is not None,
            "has_quiz": self.quiz is not None,
        }


class Article(db.Model):
    __tablename__ = "articles"

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.Integer, db.ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    content = db.Column(db.Text, nullable=False, default="")
    word_count = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(
        db.String(30), nullable=False, default="draft",
        comment="draft | fact_check | revision_needed | approved",
    )
    approved = db.Column(db.Boolean, nullable=False, default=False)
    hist_review = db.Column(db.Text, nullable=True)
    fact_check_notes = db.Column(db.Text, nullable=True)
    feedback = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "content": self.content,
            "word_count": self.word_count,
            "status": self.status,
            "approved": self.approved,
            "hist_review": self.hist_review,
            "fact_check_notes": self.fact_check_notes,
            "feedback": self.feedback,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class VideoScript(db.Model):
    __tablename__ = "video_scripts"

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.Integer, db.ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    script = db.Column(db.Text, nullable=False, default="")
    word_count = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(30), nullable=False, default="draft")
    approved = db.Column(db.Boolean, nullable=False, default=False)
    feedback = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "script": self.script,
            "word_count": self.word_count,
            "status": self.status,
            "approved": self.approved,
            "feedback": self.feedback,
        }


class Quiz(db.Model):
    __tablename__ = "quizzes"

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.Integer, db.ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    approved = db.Column(db.Boolean, nullable=False, default=False)
    feedback = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    questions = db.relationship(
        "QuizQuestion", backref="quiz", lazy="select",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="QuizQuestion.position",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "session_id": self.session_id,
            "approved": self.approved,
            "feedback": self.feedback,
            "questions": [q.to_dict() for q in self.questions],
        }


class QuizQuestion(db.Model):
    __tablename__ = "quiz_questions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(
        db.Integer, db.ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    position = db.Column(db.Integer, nullable=False, default=0)
    question = db.Column(db.Text, nullable=False)
    option_a = db.Column(db.Text, nullable=False)
    option_b = db.Column(db.Text, nullable=False)
    option_c = db.Column(db.Text, nullable=False)
    correct_answer = db.Column(db.String(10), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "position": self.position,
            "question": self.question,
            "option_a": self.option_a,
            "option_b": self.option_b,
            "option_c": self.option_c,
            "correct_answer": self.correct_answer,
        }
