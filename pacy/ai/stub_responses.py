"""
Deterministic responses for the local stub provider.

Each agent gets output in the shape its phase parser expects, so the full
workflow (research → debrief → matrix → article → video → quiz) can be run
locally without any API key.
"""

import json

_MATRIX = """## Research Overview
Stub research overview for local development.

| Chapter | Session | Detailed content | Learning Objective (WIIFM) |
|---------|---------|------------------|----------------------------|
| **Chapter 1: Foundations**<br><br>*Theme: Core concepts* | **Session 1.1: Why it matters**<br><br>The case for the topic | • Point 1<br>• Point 2<br>• Point 3<br>• Point 4<br>• Point 5 | You see why this topic changes your daily work |
| | **Session 1.2: Key terms**<br><br>The vocabulary you need | • Point 1<br>• Point 2<br>• Point 3<br>• Point 4<br>• Point 5 | You can use the key terms with confidence |
| **Chapter 2: Practice**<br><br>*Theme: Applying it at work* | **Session 2.1: First steps**<br><br>Putting it into practice | • Point 1<br>• Point 2<br>• Point 3<br>• Point 4<br>• Point 5 | You know exactly what to do on Monday |

## HIST Alignment
Each session carries one insight and fits a five minute slot.
"""

_QUIZ = """| Fråga | a | b | c | Rätt svar |
|-------|---|---|---|-----------|
| A colleague skips the checklist. What do you do? | Ignore it | Remind them of the routine | Report them immediately | b |
| Which situation needs escalation? | A minor typo | A repeated deviation | A formatting choice | b |
| What is the first step of the routine? | Document the case | Call a manager | Wait and see | a |
"""


def _article(user_msg: str) -> str:
    paragraph = (
        "This session shows you what changes in your everyday work and why it matters. "
        "You will recognise the situation, understand the key insight and leave with one "
        "concrete step you can take tomorrow. "
    )
    return "# Session article\n\n" + "\n\n".join(paragraph for _ in range(6))


def respond(agent_name: str, user_msg: str) -> str:
    lower = user_msg.lower()

    if agent_name == "research-director":
        if "validate" in lower:
            return json.dumps({"contradictions": [], "gaps": [], "alternative_viewpoints": []})
        if "deepen" in lower:
            return "Additional research addressing the flagged gaps."
        return (
            "## Research findings\n\nEstablished frameworks cover the topic well "
            "(Example Institute, 2023, https://example.org/report).\n"
        )

    if agent_name == "content-architect":
        if "program matrix" in lower:
            return _MATRIX
        if "alternatives" in lower and "debrief" in lower:
            return "```json\n" + json.dumps({
                "research_summary": "Stub research summary.",
                "sources": [{"name": "Example Institute report", "type": "report",
                             "year": 2023, "relevance": "high"}],
                "alternatives": [
                    {"id": "A", "title": "Practical program", "description": "Hands-on focus.",
                     "recommended": True},
                    {"id": "B", "title": "Theory first", "description": "Concept-led.",
                     "recommended": False},
                    {"id": "C", "title": "Deep dive", "description": "Extended program.",
                     "recommended": False},
                ],
                "full_debrief": "Stub debrief.",
            }) + "\n```"
        return "That is a good question. The recommended alternative balances depth and time."

    if agent_name == "assessment-designer":
        if "quiz" in lower:
            return _QUIZ
        return "Activity: a short team discussion per chapter."

    if agent_name == "article-writer":
        return _article(user_msg)

    if agent_name == "hist-compliance-editor":
        return "Verdict: compliant. Hook, insight, story and transfer are all present."

    if agent_name == "fact-checker":
        return "FACT CHECK SUMMARY: No issues found."

    if agent_name == "video-narrator":
        return " ".join(["Here is what you will learn today."] * 30)

    if agent_name == "brief-interviewer":
        return "Thanks! Who is the target audience for this training?"

    if agent_name == "brief-analyst":
        return "```json\n" + json.dumps({
            "extracted": {"project_name": "Stub program", "language": "swedish"},
            "confidence": {"project_name": 0.5},
            "notes": [],
            "needs_human_input": ["target_audience"],
        }) + "\n```"

    if agent_name == "company-researcher":
        return "```json\n" + json.dumps({
            "company_name": "Example AB",
            "industry": "Services",
            "description": "Stub company profile.",
            "size": "unknown",
            "values": [],
            "training_relevance": "General",
        }) + "\n```"

    return "Acknowledged."
