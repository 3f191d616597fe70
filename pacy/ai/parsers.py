"""
Pacy Training Content Generator
Structured-output parsers, one per workflow phase.

Model output is untrusted text.  Every parser returns an explicit tagged
result and owns its own fallback policy:

    RawText      — free text used as-is (articles, scripts, reviews)
    ParsedJson   — a JSON object pulled out of a fenced block or {...} span;
                   ``degraded`` marks a synthesized fallback
    ParsedTable  — rows parsed from a markdown pipe-table

Phases without a safe fallback (brief extraction, company analysis) raise
``ParseError`` carrying the raw text.
"""

import json
import logging
import re
from dataclasses import dataclass, field

from pacy.core.exceptions import ParseError

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Result types
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class RawText:
    text: str


@dataclass
class ParsedJson:
    data: dict
    raw: str = ""
    degraded: bool = False


@dataclass
class ParsedTable:
    rows: list = field(default_factory=list)
    raw: str = ""


# ═════════════════════════════════════════════════════════════════════════════
# Generic helpers
# ═════════════════════════════════════════════════════════════════════════════

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)


def count_words(text: str | None) -> int:
    return len((text or "").split())


def extract_json(text: str | None) -> dict:
    """
    Find the first JSON object in ``text``.

    Fenced code blocks are tried first, then the span from the first ``{``
    to the last ``}``.  Surrounding prose is ignored.
    """
    if not text or not text.strip():
        raise ParseError("Empty model response", text or "")

    candidates = [m.group(1).strip() for m in _FENCE_RE.finditer(text)]
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(value, dict):
            return value
    raise ParseError("No JSON object found in model response", text)


def _pick(data: dict, *keys, default=None):
    """First present key among snake_case / camelCase spellings."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_list(value) -> list:
    if isinstance(value, list):
        return value
    if value in (None, ""):
        return []
    return [value]


# ═════════════════════════════════════════════════════════════════════════════
# Debrief
# ═════════════════════════════════════════════════════════════════════════════

def fallback_debrief(text: str) -> dict:
    """Deterministic three-option debrief built from unstructured research text."""
    return {
        "research_summary": text[:1000],
        "sources": [],
        "alternatives": [
            {
                "id": "A",
                "title": "Standard approach",
                "description": text[:500],
                "recommended": True,
            },
            {
                "id": "B",
                "title": "Alternative approach",
                "description": "A different angle on the same learning objectives.",
                "recommended": False,
            },
            {
                "id": "C",
                "title": "In-depth approach",
                "description": "A more extensive program covering the topic in greater depth.",
                "recommended": False,
            },
        ],
        "full_debrief": text,
    }


def _normalise_alternative(index: int, alt) -> dict:
    if not isinstance(alt, dict):
        alt = {"description": str(alt)}
    return {
        "id": str(alt.get("id") or chr(ord("A") + index)),
        "title": alt.get("title") or f"Alternative {chr(ord('A') + index)}",
        "description": alt.get("description") or "",
        "recommended": bool(alt.get("recommended", False)),
    }


def _normalise_source(src) -> dict:
    if not isinstance(src, dict):
        return {"name": str(src), "type": "", "year": None, "relevance": ""}
    return {
        "name": src.get("name") or src.get("title") or "",
        "type": src.get("type") or "",
        "year": src.get("year"),
        "relevance": src.get("relevance") or "",
    }


def parse_debrief(text: str) -> ParsedJson:
    """Parse the debrief JSON; fall back to three generic alternatives."""
    try:
        data = extract_json(text)
    except ParseError:
        logger.warning("Debrief output was not JSON, using fallback alternatives")
        return ParsedJson(fallback_debrief(text or ""), raw=text or "", degraded=True)

    alternatives = [
        _normalise_alternative(i, alt)
        for i, alt in enumerate(_as_list(_pick(data, "alternatives")))
    ]
    degraded = False
    if not alternatives:
        logger.warning("Debrief JSON had no alternatives, using fallback alternatives")
        alternatives = fallback_debrief(text)["alternatives"]
        degraded = True

    debrief = {
        "research_summary": _pick(data, "research_summary", "researchSummary", default=""),
        "sources": [_normalise_source(s) for s in _as_list(_pick(data, "sources"))],
        "alternatives": alternatives,
        "full_debrief": _pick(data, "full_debrief", "fullDebrief", default=text),
    }
    return ParsedJson(debrief, raw=text, degraded=degraded)


# ═════════════════════════════════════════════════════════════════════════════
# Research validation
# ═════════════════════════════════════════════════════════════════════════════

def _normalise_gap(gap) -> dict:
    if not isinstance(gap, dict):
        gap = {"topic": str(gap)}
    return {
        "topic": gap.get("topic") or gap.get("description") or gap.get("gap") or "",
        "severity": str(gap.get("severity") or "minor").strip().lower(),
        "resolved": bool(gap.get("resolved", False)),
    }


def parse_validation(text: str) -> ParsedJson:
    """Parse the self-critique JSON; unparseable output means nothing was flagged."""
    try:
        data = extract_json(text)
    except ParseError:
        logger.warning("Research validation output was not JSON, treating as no findings")
        empty = {"contradictions": [], "gaps": [], "alternative_viewpoints": []}
        return ParsedJson(empty, raw=text or "", degraded=True)

    validation = {
        "contradictions": _as_list(_pick(data, "contradictions")),
        "gaps": [_normalise_gap(g) for g in _as_list(_pick(data, "gaps", "coverage_gaps", "coverageGaps"))],
        "alternative_viewpoints": _as_list(
            _pick(data, "alternative_viewpoints", "alternativeViewpoints"),
        ),
    }
    return ParsedJson(validation, raw=text)


# ═════════════════════════════════════════════════════════════════════════════
# Program matrix
# ═════════════════════════════════════════════════════════════════════════════

_BR = r"<br\s*/?>"
_CHAPTER_RE = re.compile(
    r"\|\s*\*\*(?:Kapitel|Chapter)\s+(\d+):\s*([^*<]+)\*{0,2}"
    rf"(?:(?:{_BR})+\s*\*(?:Tema|Theme):\s*([^*]+)\*)?",
    re.IGNORECASE,
)
_SESSION_RE = re.compile(
    rf"\|\s*\*\*Session\s+([\d.]+):\s*([^*<]+)\*{{0,2}}(?:(?:{_BR})+([^|]*))?",
    re.IGNORECASE,
)


def _cells(line: str) -> list[str]:
    return [c.strip() for c in line.strip().strip("|").split("|")]


def _clean_cell(text: str) -> str:
    return re.sub(_BR, "\n", text or "", flags=re.IGNORECASE).strip()


def parse_matrix(text: str) -> ParsedTable:
    """
    Parse the program-matrix pipe-table.

    One row per session; the chapter cell carries ``**Chapter N: Name**`` only
    on the first session row of each chapter and later rows inherit it.

    Returns:
        ParsedTable whose rows are chapter dicts ordered by number:
        {number, name, description, sessions: [{number, label, name,
         description, content_outline, learning_objective}]}

        A session's ``label`` is the verbatim table text ("1.10") and its
        ``number`` the 1-based position inside the chapter.
    """
    chapters: dict[int, dict] = {}
    current = None

    for line in (text or "").splitlines():
        stripped = line.strip()
        if not stripped.startswith("|") or "---" in stripped:
            continue

        chapter_match = _CHAPTER_RE.search(stripped)
        if chapter_match:
            number = int(chapter_match.group(1))
            theme = (chapter_match.group(3) or "").strip()
            current = chapters.setdefault(number, {
                "number": number,
                "name": chapter_match.group(2).strip(),
                "description": theme or f"Chapter {number} content",
                "sessions": [],
            })

        session_match = _SESSION_RE.search(stripped)
        if not session_match or current is None:
            continue

        label = session_match.group(1).strip().rstrip(".")
        if any(s["label"] == label for s in current["sessions"]):
            logger.warning("Duplicate session %s in chapter %s skipped", label, current["number"])
            continue

        description = _clean_cell(session_match.group(3) or "")
        cells = _cells(stripped)
        outline = _clean_cell(cells[2]) if len(cells) >= 4 else ""
        wiifm = _clean_cell(cells[-1]) if len(cells) >= 4 else ""
        current["sessions"].append({
            "number": len(current["sessions"]) + 1,
            "label": label,
            "name": session_match.group(2).strip(),
            "description": description,
            "content_outline": outline,
            "learning_objective": wiifm or description,
        })

    rows = [chapters[n] for n in sorted(chapters)]
    if not rows:
        logger.warning("No chapter rows found in program matrix output")
    return ParsedTable(rows=rows, raw=text or "")


# ═════════════════════════════════════════════════════════════════════════════
# Quiz
# ═════════════════════════════════════════════════════════════════════════════

_HEADER_WORDS = ("fråga", "question")


def _normalise_answer(value: str) -> str:
    match = re.match(r"\s*\(?([abc])\b", value, re.IGNORECASE)
    return match.group(1).lower() if match else value.strip().lower()


def parse_quiz(text: str) -> ParsedTable:
    """Parse ``Question | a | b | c | Correct`` rows; header/separator rows skipped."""
    rows = []
    for line in (text or "").splitlines():
        stripped = line.strip()
        if not stripped.startswith("|") or "---" in stripped:
            continue
        parts = [p for p in _cells(stripped) if p]
        if len(parts) < 5:
            continue
        if any(p.strip("* ").lower() in _HEADER_WORDS for p in parts):
            continue
        rows.append({
            "question": parts[0],
            "option_a": parts[1],
            "option_b": parts[2],
            "option_c": parts[3],
            "correct_answer": _normalise_answer(parts[4]),
        })
    return ParsedTable(rows=rows, raw=text or "")


# ═════════════════════════════════════════════════════════════════════════════
# Fact check
# ═════════════════════════════════════════════════════════════════════════════

CORRECTED_ARTICLE_MIN_CHARS = 500


def split_fact_check(article: str, text: str) -> tuple[str, str, bool]:
    """
    Split ``[CORRECTED ARTICLE] --- [FACT CHECK SUMMARY]`` output.

    Returns:
        (content, notes, corrected) — ``content`` is the corrected article
        when the part before the first ``---`` is long enough to be one,
        otherwise the original article with the whole output as notes.
    """
    parts = (text or "").split("---")
    if len(parts) > 1 and len(parts[0].strip()) > CORRECTED_ARTICLE_MIN_CHARS:
        corrected = parts[0].strip()
        notes = "---".join(parts[1:]).strip()
        return corrected, notes, corrected != article
    return article, text or "", False


# ═════════════════════════════════════════════════════════════════════════════
# Intake: brief extraction, company profile, interview completion
# ═════════════════════════════════════════════════════════════════════════════

BRIEF_FIELDS = (
    "project_name", "learning_objectives", "target_audience", "desired_outcomes",
    "deliverables", "num_chapters", "constraints", "particular_angle",
    "language", "strict_fidelity",
)

_CAMEL = {
    "project_name": "projectName",
    "learning_objectives": "learningObjectives",
    "target_audience": "targetAudience",
    "desired_outcomes": "desiredOutcomes",
    "num_chapters": "numChapters",
    "particular_angle": "particularAngle",
    "strict_fidelity": "strictFidelity",
}


def parse_brief(text: str) -> ParsedJson:
    """Parse an extracted brief.  No fallback: raises ``ParseError``."""
    data = extract_json(text)
    extracted_src = _pick(data, "extracted", default=data)
    if not isinstance(extracted_src, dict):
        raise ParseError("Brief extraction returned no 'extracted' object", text)

    extracted = {}
    for key in BRIEF_FIELDS:
        value = _pick(extracted_src, key, _CAMEL.get(key, key))
        if value is not None:
            extracted[key] = value
    if not extracted:
        raise ParseError("Brief extraction contained none of the expected fields", text)

    return ParsedJson({
        "extracted": extracted,
        "confidence": _pick(data, "confidence", default={}) or {},
        "notes": _as_list(_pick(data, "notes")),
        "needs_human_input": _as_list(_pick(data, "needs_human_input", "needsHumanInput")),
    }, raw=text)


def parse_company_profile(text: str) -> ParsedJson:
    """Parse the company-researcher JSON.  No fallback: raises ``ParseError``."""
    return ParsedJson(extract_json(text), raw=text)


def detect_interview_complete(text: str) -> dict | None:
    """Return the brief from a fenced ``{"status": "complete", ...}`` block, if any."""
    for match in _FENCE_RE.finditer(text or ""):
        try:
            value = json.loads(match.group(1).strip())
        except ValueError:
            continue
        if isinstance(value, dict) and str(value.get("status", "")).lower() == "complete":
            return value.get("brief", value)
    return None
