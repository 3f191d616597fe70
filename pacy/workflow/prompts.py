"""
Phase prompt templates.

Templates use ``{{variable}}`` placeholders; optional blocks are rendered
by the caller and passed in as ready-made strings.

Usage:
    from pacy.workflow import prompts
    text = prompts.render(prompts.WRITE_ARTICLE, session_label="1.1", ...)
"""

import re

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render(template: str, **variables) -> str:
    """Replace ``{{var}}`` placeholders; unknown placeholders are left intact."""
    def replacer(match):
        key = match.group(1)
        if key not in variables:
            return match.group(0)
        value = variables[key]
        return "" if value is None else str(value)
    return _PLACEHOLDER_RE.sub(replacer, template).strip() + "\n"


def or_default(value, default="Not specified"):
    return value if value not in (None, "") else default


def brief_block(project) -> str:
    return (
        f"PROJECT: {project.name}\n\n"
        f"LEARNING OBJECTIVES:\n{or_default(project.learning_objectives)}\n\n"
        f"TARGET AUDIENCE:\n{or_default(project.target_audience)}\n\n"
        f"DESIRED OUTCOMES:\n{or_default(project.desired_outcomes)}\n\n"
        f"CONSTRAINTS:\n{or_default(project.constraints, 'None')}\n\n"
        f"PARTICULAR ANGLE / FRAMEWORK:\n{or_default(project.particular_angle, 'None')}\n\n"
        f"LANGUAGE: {project.language}"
    )


def materials_block(materials, strict_fidelity: bool) -> str:
    if not materials:
        return "No source material provided."
    lines = [f"- {m.filename} ({m.category})" for m in materials]
    return "SOURCE MATERIAL:\n" + "\n".join(lines) + f"\nStrict fidelity required: {strict_fidelity}"


# ── Research & debrief ───────────────────────────────────────────────────

RESEARCH = """
Research the subject of this training program.

{{brief}}

{{materials}}

Compile:
1. **Theoretical foundation** (300-400 words): relevant theories, frameworks and leading thinkers.
2. **Best practice** (200-300 words): proven methods, common pitfalls, success factors.
3. **Audience insights** (150-200 words): what this audience needs, typical knowledge gaps, motivators.
4. **Sources**: 3-5 highly relevant sources. For each give name, type, year and one sentence on relevance.
   Prefer official documentation and recent primary sources; never fabricate a source.

Be concrete and factual.
"""

VALIDATE_RESEARCH = """
VALIDATE the research below for the program "{{project_name}}".

LEARNING OBJECTIVES:
{{learning_objectives}}

RESEARCH:
{{research}}

Critique it. Respond ONLY with JSON in a ```json block:
{
  "contradictions": ["statements that contradict each other"],
  "gaps": [{"topic": "what is missing", "severity": "critical | important | minor"}],
  "alternative_viewpoints": ["credible perspectives the research leaves out"]
}
Use empty lists when there is nothing to report.
"""

DEEPEN_RESEARCH = """
DEEPEN the research for "{{project_name}}". Address ONLY these findings:

GAPS:
{{gaps}}

ALTERNATIVE VIEWPOINTS TO COVER:
{{viewpoints}}

EXISTING RESEARCH (for reference, do not repeat it):
{{research}}

Write additional research that can be appended to the existing text.
"""

DEBRIEF = """
Create a debrief for client approval.

{{brief}}

RESEARCH RESULTS:
{{research}}

{{materials}}

Respond ONLY with JSON in a ```json block:
{
  "research_summary": "200-300 words on the key insights and how they shape the program",
  "sources": [{"name": "...", "type": "documentation | whitepaper | study | ...", "year": 2024, "relevance": "one sentence"}],
  "alternatives": [
    {"id": "A", "title": "...", "description": "100-150 words", "recommended": true},
    {"id": "B", "title": "...", "description": "100-150 words", "recommended": false},
    {"id": "C", "title": "...", "description": "100-150 words", "recommended": false}
  ],
  "full_debrief": "400-600 words summarising brief, research and the recommended direction"
}

The alternatives must be genuinely different (theoretical school, depth or focus).
Mark exactly ONE alternative as recommended.
"""

REGENERATE_DEBRIEF = """
Revise the debrief alternatives based on the client's feedback.

{{brief}}

PREVIOUS DEBRIEF:
{{previous_debrief}}

CLIENT FEEDBACK:
{{feedback}}

RESEARCH RESULTS:
{{research}}

Keep what the client liked, change what they asked to change. Respond ONLY with
JSON in the same structure as before (research_summary, sources, alternatives,
full_debrief) in a ```json block.
"""

DEBRIEF_FEEDBACK_ACK = """
The client gave this feedback on the debrief for "{{project_name}}":

{{feedback}}

Reply in two or three sentences: confirm what you understood and say what
will change when the debrief is regenerated. Write in {{language}}.
"""

DEBRIEF_CHAT_CONTEXT = """
You are discussing the debrief for the training program "{{project_name}}" with the client.

{{brief}}

CURRENT DEBRIEF:
{{debrief}}

Answer briefly and concretely. Write in {{language}}.
"""

# ── Program design ───────────────────────────────────────────────────────

RESEARCH_TOPIC = """
Research the topic for this training program.

{{brief}}

{{approved_direction}}

Summarise the theoretical foundation, best practice and audience insights, with sources.
"""

ANALYZE_SOURCES = """
Analyse the client's source material for this program.

{{brief}}

MATERIAL:
{{material_details}}

For each document give scope, key concepts and how it must be used
(strict fidelity or context). Point out conflicts with the research below.

RESEARCH:
{{research}}
"""

DESIGN_ARCHITECTURE = """
Propose the conceptual architecture for "{{project_name}}".

RESEARCH:
{{research}}

SOURCE ANALYSIS:
{{source_analysis}}

Group the material into {{num_chapters}} themes that can become chapters and order them.
"""

INSTRUCTIONAL_DESIGN = """
Turn this architecture into a micro-learning journey for: {{target_audience}}

ARCHITECTURE:
{{architecture}}

Define sessions (5-7 minutes, one insight each) with a WIIFM per session.
"""

SUGGEST_ACTIVITIES = """
Suggest one practical activity per chapter for this learning journey.

LEARNING JOURNEY:
{{instructional_design}}
"""

CREATE_MATRIX = """
Create the complete program matrix for "{{project_name}}".

{{brief}}

{{approved_direction}}

{{design_inputs}}

{{feedback_block}}

Produce:
1. A short research overview.
2. The program structure with {{num_chapters}} chapters and 2-6 sessions each.
3. The COMPLETE program matrix table, one row per session, exactly in this format:

| Chapter | Session | Detailed content | Learning Objective (WIIFM) |
|---------|---------|------------------|----------------------------|
| **Chapter 1: Name**<br><br>*Theme: Short theme* | **Session 1.1: Name**<br><br>One or two sentences | • Point 1<br>• Point 2<br>• Point 3<br>• Point 4<br>• Point 5 | One WIIFM sentence |
| | **Session 1.2: Name**<br><br>Description | • ... | WIIFM |

Rules: fill the chapter cell ONLY on the first session row of each chapter; use <br>
inside cells; exactly five content points per session; the WIIFM is ONE sentence.
4. HIST alignment: micro-learning, theory/practice balance, cognitive load.
{{activities_block}}
Keep the whole response under 2000 words. Write in {{language}}.
"""

MATRIX_FEEDBACK = """
PREVIOUS MATRIX:
{{previous_matrix}}

CLIENT FEEDBACK ON THE PREVIOUS MATRIX:
{{feedback}}

Revise the matrix according to the feedback and keep everything else that worked.
"""

# ── Content creation ─────────────────────────────────────────────────────

WRITE_ARTICLE = """
Write a HIST-compliant article for:

SESSION {{session_label}}: {{session_name}}

SESSION DESCRIPTION:
{{session_description}}

CONTENT POINTS:
{{content_outline}}

LEARNING OBJECTIVE (WIIFM):
{{learning_objective}}

TARGET AUDIENCE:
{{target_audience}}

{{program_context}}

{{fidelity_block}}

REQUIREMENTS:
- 800-1500 words (prefer 1000-1200)
- Conversational professional tone with concrete examples for the audience
- 30-40% theory, 60-70% practice
- Scannable structure with short paragraphs
- Proper source citations
- State the WIIFM within the first two paragraphs
- Write in {{language}}

{{position_block}}

{{previous_sessions_block}}

Create the complete article now.
"""

FIRST_IN_PROGRAM = """
THIS IS THE FIRST {{kind}} IN THE ENTIRE PROGRAM. It must welcome the learner to
"{{project_name}}", set expectations for the whole program and explain the learning
journey ahead. Do NOT reference previous sessions (there are none).
"""

FIRST_IN_CHAPTER = """
THIS IS THE FIRST SESSION IN THIS CHAPTER. Introduce the chapter topic
"{{chapter_name}}" and what the chapter covers. Do NOT reference sessions from
other chapters.
"""

PREVIOUS_SESSIONS = """
CONTEXT - previous sessions:
{{previous_sessions}}

Build on these naturally and show the progression.
"""

HIST_REVIEW = """
Review this article for HIST compliance:

{{article}}
"""

HIST_REVIEW_CORRECTED = """
Review this corrected article for HIST compliance:

{{article}}
"""

FACT_CHECK = """
Fact-check and AUTO-FIX this article:

{{article}}

HIST REVIEW:
{{hist_review}}

PROJECT TYPE: {{project_type}}

{{fidelity_block}}

1. Fix every issue you can fix yourself (formatting, citations, typos, minor updates).
2. Return the CORRECTED ARTICLE with fixes applied.
3. Format: [CORRECTED ARTICLE] --- [FACT CHECK SUMMARY]

Only report issues you cannot fix automatically.
"""

STRICT_FIDELITY_VETO = """
STRICT FIDELITY: you have VETO POWER. Any statement that contradicts the client's
strict-fidelity material ({{strict_materials}}) must be corrected to match the material
exactly, and every correction must be listed in the summary.
"""

STRICT_FIDELITY_ADVISORY = """
Source material is background context ({{materials}}). Flag contradictions as
advisory notes; do not rewrite content to match it.
"""

VIDEO_SCRIPT = """
Create a ~250 word video script based on this article:

SESSION: {{session_label}} - {{session_name}}

LEARNING OBJECTIVE (WIIFM):
{{learning_objective}}

ARTICLE:
{{article}}

{{position_block}}

{{previous_sessions_block}}

REQUIREMENTS:
- 240-260 words, conversational spoken style, sentences of 10-15 words
- No section headers or stage directions; pure text an avatar can read
- State the WIIFM in the first two or three sentences
- ONE key insight
- Write in {{language}}
"""

QUIZ = """
Create {{num_questions}} scenario-based quiz questions for this article:

SESSION: {{session_name}}
ARTICLE:
{{article}}

Requirements:
- Scenario-based (test understanding, not recall)
- Plausible distractors
- Randomise the correct answer placement (a/b/c)
- Output as table: Fråga | a | b | c | Rätt svar
- Write in {{language}}
"""

# ── Intake ───────────────────────────────────────────────────────────────

PARSE_BRIEF = """
Extract the training brief from this document:

{{text}}
"""

ANALYZE_COMPANY = """
Analyse the company behind this website and build a short profile: {{url}}
"""

INTERVIEW_START = """
Start the intake interview. Greet the client briefly and ask your first question.
{{company_block}}
"""
