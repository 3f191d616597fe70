"""Project domain models: the training-program request, its source material and matrix."""

from datetime import datetime, timezone

from pacy.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class Project(db.Model):
    """A training-program request and the anchor for everything generated for it."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    status = db.Column(
        db.String(30), nullable=False, default="information_gathering",
        comment="See pacy.workflow.status.ProjectStatus",
    )
    language = db.Column(db.String(30), nullable=False, default="swedish")

    # ── Brief ──
    learning_objectives = db.Column(db.Text, nullable=True)
    target_audience = db.Column(db.Text, nullable=True)
    desired_outcomes = db.Column(db.Text, nullable=True)
    constraints = db.Column(db.Text, nullable=True)
    particular_angle = db.Column(db.Text, nullable=True)
    deliverables = db.Column(
        db.String(50), nullable=False, default="articles",
        comment="articles | articles_videos | quiz | full_program",
    )
    strict_fidelity = db.Column(db.Boolean, nullable=False, default=False)
    quiz_questions = db.Column(db.Integer, nullable=False, default=3)
    num_chapters = db.Column(db.Integer, nullable=True)
    company_context = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    materials = db.relationship(
        "SourceMaterial", backref="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    chapters = db.relationship(
        "Chapter", backref="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="Chapter.number",
    )
    steps = db.relationship(
        "WorkflowStep", backref="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    matrices = db.relationship(
        "ProgramMatrix", backref="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def wants(self, deliverable: str) -> bool:
        """True if the deliverable selection includes ``deliverable`` (or everything)."""
        selection = self.deliverables or ""
        return deliverable in selection or "full_program" in selection

    @property
    def matrix(self):
        return self.matrices.order_by(ProgramMatrix.id.desc()).first()

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "language": self.language,
            "learning_objectives": self.learning_objectives,
            "target_audience": self.target_audience,
            "desired_outcomes": self.desired_outcomes,
            "constraints": self.constraints,
            "particular_angle": self.particular_angle,
            "deliverables": self.deliverables,
            "strict_fidelity": self.strict_fidelity,
            "quiz_questions": self.quiz_questions,
            "num_chapters": self.num_chapters,
            "company_context": self.company_context,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_children:
            matrix = self.matrix
            result["matrix"] = matrix.to_dict() if matrix else None
            result["materials"] = [m.to_dict() for m in self.materials]
            result["chapters"] = [c.to_dict(include_sessions=True) for c in self.chapters]
        return result

    def __repr__(self):
        return f"<Project {self.id}: {self.name} [{self.status}]>"


class SourceMaterial(db.Model):
    """Reference document registered against a project (metadata + optional text)."""

    __tablename__ = "source_materials"

    CATEGORIES = ("strict_fidelity", "context")

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    filename = db.Column(db.String(255), nullable=False)
    file_type = db.Column(db.String(100), nullable=True)
    file_size = db.Column(db.Integer, nullable=True)
    category = db.Column(
        db.String(30), nullable=False, default="context",
        comment="strict_fidelity | context",
    )
    content = db.Column(db.Text, nullable=True, comment="Extracted text, if supplied")
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    @property
    def is_strict(self) -> bool:
        return self.category == "strict_fidelity"

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "filename": self.filename,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "category": self.category,
            "has_content": bool(self.content),
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }


class ProgramMatrix(db.Model):
    """Summary of the designed chapter/session structure; approval gates content generation."""

    __tablename__ = "program_matrices"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    overview = db.Column(db.Text, nullable=True)
    full_text = db.Column(db.Text, nullable=True)
    pedagogical_approach = db.Column(db.String(200), default="HIST-based micro-learning")
    approved = db.Column(db.Boolean, nullable=False, default=False)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "overview": self.overview,
            "full_text": self.full_text,
            "pedagogical_approach": self.pedagogical_approach,
            "approved": self.approved,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
