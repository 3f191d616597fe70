"""Markdown export of a whole training program."""

import re

from pacy.models.project import Project

_UNSAFE_FILENAME = re.compile(r"[^\w\- ]+", re.UNICODE)


def export_filename(project: Project) -> str:
    base = _UNSAFE_FILENAME.sub("", project.name).strip().replace(" ", "_")
    return f"{base or 'program'}.md"


def export_markdown(project: Project) -> str:
    lines = [
        f"# {project.name}",
        "",
        f"**Language:** {project.language}",
        f"**Created:** {project.created_at.strftime('%Y-%m-%d') if project.created_at else ''}",
        "",
    ]

    matrix = project.matrix
    if matrix is not None:
        lines += ["## Program Matrix", "", matrix.overview or "", ""]

    for chapter in project.chapters:
        lines += [f"## Chapter {chapter.number}: {chapter.name}", ""]
        if chapter.description:
            lines += [chapter.description, ""]

        for session in chapter.sessions:
            lines += [f"### Session {session.label}: {session.name}", ""]
            if session.learning_objective:
                lines += [f"**Learning Objective:** {session.learning_objective}", ""]

            if session.article is not None:
                lines += [session.article.content, "", f"*Word count: {session.article.word_count}*", ""]

            if session.video is not None:
                lines += ["#### Video Script", "", session.video.script, ""]

            if session.quiz is not None and session.quiz.questions:
                lines += ["#### Quiz", ""]
                for i, q in enumerate(session.quiz.questions, start=1):
                    lines += [
                        f"**Q{i}.** {q.question}",
                        f"- a) {q.option_a}",
                        f"- b) {q.option_b}",
                        f"- c) {q.option_c}",
                        f"*Answer: {q.correct_answer}*",
                        "",
                    ]

    return "\n".join(lines).rstrip() + "\n"
