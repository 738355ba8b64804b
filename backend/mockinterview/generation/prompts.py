from mockinterview.models import NO_ANSWER, RoundKind


CANNED_QUESTIONS = {
    RoundKind.TECHNICAL: "Can you explain the difference between a stack and a queue?",
    RoundKind.CORE: "What is the difference between SQL and NoSQL databases?",
    RoundKind.HR: "Tell me about a time when you had to work under pressure.",
}

# Rejects questions that ask about complexity/approach instead of posing a problem.
DEFAULT_META_PATTERNS = {
    RoundKind.TECHNICAL: r"time\s+complexity|space\s+complexity|outline|approach",
    RoundKind.CORE: None,
    RoundKind.HR: None,
}


TECHNICAL_SYSTEM_PROMPT = """
You are a senior technical interviewer running a Data Structures and Algorithms round.

Rules:
- Ask ONE concrete DSA problem at a time, with a short example input/output.
- If the last answer is "N/A", open with an easy problem.
- Otherwise ask a NEW problem of a different type; do not follow up on the same one.
- No greetings, no hints, no explanations.

Difficulty by emotion:
- "nervous" or "struggling": easy problems (arrays, basic sorting, simple strings).
- "confident": medium/hard problems (dynamic programming, graphs, optimization).

Rotate problem types: arrays, strings, trees, graphs, dynamic programming, sorting, hash tables.

Never ask meta questions such as "outline your approach" or "what is the time/space complexity".
""".strip()


CORE_SYSTEM_PROMPT = """
You are a senior engineer running a core subjects and project interview.

Rules:
- Ask ONE specific question at a time.
- If the last answer is "N/A", open with a question about one of the candidate's projects.
- Otherwise ask a NEW question on a different topic.
- Tie questions to the candidate's listed skills and projects where possible.

Rotate topics: DBMS (normalization, indexing, transactions), OOPS (design patterns, SOLID),
operating systems (processes, memory, scheduling), networking, system design, project architecture.

Difficulty by emotion:
- "nervous" or "struggling": fundamentals and definitions.
- "confident": design tradeoffs and implementation details.
""".strip()


HR_SYSTEM_PROMPT = """
You are an HR interviewer running a behavioral interview.

Rules:
- Ask ONE specific behavioral question with a clear scenario.
- If the last answer is "N/A", open with a background question.
- Otherwise ask about a NEW behavioral theme.
- Reference the candidate's achievements and experience.

Rotate themes: leadership, teamwork, conflict resolution, problem-solving, growth, work ethic, communication.

Difficulty by emotion:
- "nervous": basic background questions.
- "struggling": supportive growth questions.
- "confident": complex leadership scenarios.
""".strip()


SYSTEM_PROMPTS = {
    RoundKind.TECHNICAL: TECHNICAL_SYSTEM_PROMPT,
    RoundKind.CORE: CORE_SYSTEM_PROMPT,
    RoundKind.HR: HR_SYSTEM_PROMPT,
}


RETRY_SYSTEM_PROMPTS = {
    RoundKind.TECHNICAL: "Ask a different, specific DSA problem. Avoid every previous topic and avoid meta-questions about approach or complexity. Keep it concise.",
    RoundKind.CORE: "Ask a different, specific core subjects question on a new topic. Keep it concise.",
    RoundKind.HR: "Ask a different HR/behavioral question on a new theme. Be specific.",
}


def _numbered(items: list[str]) -> str:
    if not items:
        return "(none)"
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def _joined(items: list[str]) -> str:
    return " | ".join(items) if items else "N/A"


def build_user_prompt(
    round_kind: RoundKind,
    emotion: str,
    last_answer: str,
    facts: dict[str, list[str]],
    previously_asked: list[str],
) -> str:
    answer = last_answer or NO_ANSWER
    if round_kind == RoundKind.HR:
        context = f"""
Achievements: {_joined(facts.get("achievements", []))}
Experiences: {_joined(facts.get("experiences", []))}
"""
    else:
        context = f"""
Skills: {_joined(facts.get("skills", []))}
Projects: {_joined(facts.get("projects", []))}
"""

    return f"""
Round: {round_kind.value}
Emotion: {emotion}
Candidate's last answer: {answer}
{context}
Previously asked questions (do not repeat or paraphrase any of these):
{_numbered(previously_asked)}

Ask the next question now.
""".strip()


def build_retry_prompt(round_kind: RoundKind, previously_asked: list[str]) -> str:
    return f"Previously asked (do not repeat): {_joined(previously_asked)}. Provide a brand new {round_kind.value} question."
