"""Prompt templates for the two-pass task extraction protocol."""

from __future__ import annotations

import json
from collections.abc import Sequence

from src.extraction.dates import isoformat_utc
from src.extraction.models import CandidateTask, ExtractionContext, Task

SYSTEM_PROMPT = (
    "You are an expert task extraction assistant. Your job is to analyze text "
    "and extract actionable tasks with perfect traceability.\n\n"
    "CRITICAL RULES:\n"
    "1. ALWAYS respond with valid JSON and nothing else.\n"
    "2. Every task MUST include a sourceQuote: the exact text from the input "
    "that describes the task.\n"
    "3. NEVER make up or infer information not explicitly stated.\n"
    "4. If owner or due date is not mentioned, use null.\n"
    "5. Be conservative: better to miss a vague task than create a false positive.\n\n"
    "TASK STRUCTURE:\n"
    "{\n"
    '  "title": "Clear, actionable summary",\n'
    '  "description": "Optional details or null",\n'
    '  "owner": "Person\'s name as written or null",\n'
    '  "dueDate": "Due date as written or null",\n'
    '  "priority": "P0/P1/P2/P3 if stated or implied by urgency, else null",\n'
    '  "status": "NEW",\n'
    '  "sourceQuote": "REQUIRED: exact text from input",\n'
    '  "confidence": 0.0 to 1.0\n'
    "}\n\n"
    'Respond with {"tasks": [task1, task2, ...]}. '
    'If no tasks are found, respond with {"tasks": []}.'
)

SUMMARY_SYSTEM_PROMPT = (
    "You are an expert at analyzing meeting notes and emails to extract key insights."
)

FEW_SHOT_EXAMPLES = """
EXAMPLE 1:
Input: "Rayan, please finalize the dashboard by next Friday."
Output:
{"tasks": [{
  "title": "Finalize dashboard",
  "description": null,
  "owner": "Rayan",
  "dueDate": "next Friday",
  "priority": null,
  "status": "NEW",
  "sourceQuote": "Rayan, please finalize the dashboard by next Friday.",
  "confidence": 0.9
}]}

EXAMPLE 2:
Input: "We should consider migrating to the cloud sometime."
Output:
{"tasks": [{
  "title": "Consider cloud migration",
  "description": null,
  "owner": null,
  "dueDate": null,
  "priority": null,
  "status": "NEW",
  "sourceQuote": "We should consider migrating to the cloud sometime.",
  "confidence": 0.3
}]}

EXAMPLE 3:
Input: "Alex to confirm data source access by Feb 10. This is critical for the launch."
Output:
{"tasks": [{
  "title": "Confirm data source access",
  "description": "Critical for the launch",
  "owner": "Alex",
  "dueDate": "Feb 10",
  "priority": "P0",
  "status": "NEW",
  "sourceQuote": "Alex to confirm data source access by Feb 10. This is critical for the launch.",
  "confidence": 0.95
}]}
"""


def _context_lines(context: ExtractionContext) -> str:
    lines = [
        f"- Reference time: {isoformat_utc(context.reference_time)}",
        f"- Timezone: {context.timezone}",
        f"- Source type: {context.input_type.value}",
    ]
    if context.source_name:
        lines.append(f"- Source: {context.source_name}")
    subject = context.document_metadata.get("subject")
    if subject:
        lines.append(f"- Subject: {subject}")
    return "\n".join(lines)


def build_candidate_prompt(text: str, context: ExtractionContext) -> str:
    """Pass A: lenient extraction over one chunk."""
    return (
        "Extract ALL potential tasks from the following text. Be lenient: "
        "include anything that might be a task.\n\n"
        f"CONTEXT:\n{_context_lines(context)}\n\n"
        f'TEXT TO ANALYZE:\n"""\n{text}\n"""\n\n'
        f"EXAMPLES:{FEW_SHOT_EXAMPLES}\n"
        "IMPORTANT OUTPUT FORMAT:\n"
        'Respond with ONLY a JSON object of the form {"tasks": [...]} using the '
        "task structure above. sourceQuote must be copied verbatim from the text.\n"
        'If no tasks are found, respond with {"tasks": []}.\n'
        "Do NOT include any text before or after the JSON.\n\n"
        "Extract tasks now:"
    )


def build_validation_prompt(candidates: Sequence[CandidateTask], context: ExtractionContext) -> str:
    """Pass B: strict review of every surviving candidate in one call."""
    payload = json.dumps([c.to_prompt_dict() for c in candidates], indent=2, ensure_ascii=False)
    return (
        "Review and validate these candidate tasks. Apply strict rules:\n\n"
        "VALIDATION RULES:\n"
        "1. REJECT any task without a sourceQuote.\n"
        '2. REJECT vague tasks ("look into", "consider", "maybe").\n'
        "3. Keep owner null if not explicitly mentioned.\n"
        "4. Keep dueDate null if not explicitly mentioned.\n"
        "5. Merge candidates that describe the same task.\n"
        "6. Calculate confidence based on:\n"
        "   - Has clear owner: +0.3\n"
        "   - Has clear due date: +0.3\n"
        "   - Has specific action verb: +0.2\n"
        "   - Source quote is detailed: +0.2\n\n"
        f"CANDIDATES:\n{payload}\n\n"
        f"CONTEXT:\n{_context_lines(context)}\n\n"
        'Wrap your response in a JSON object with a "tasks" property: '
        '{"tasks": [task1, task2]}.\n'
        'If no tasks are valid, respond with {"tasks": []}.'
    )


def build_summary_prompt(text: str, tasks: Sequence[Task], context: ExtractionContext) -> str:
    task_block = ""
    if tasks:
        titles = "\n".join(f"- {task.title}" for task in tasks)
        task_block = f"\nEXTRACTED TASKS (for context):\n{titles}\n"
    return (
        "Analyze the following content and extract a stakeholder summary.\n\n"
        "EXTRACT:\n"
        "1. Decisions: key decisions that were made\n"
        "2. Risks: identified risks, blockers, or concerns\n"
        "3. Asks: questions or requests for input or clarification\n"
        "4. Key Points: other important information\n\n"
        f"CONTEXT:\n{_context_lines(context)}\n\n"
        f'TEXT:\n"""\n{text}\n"""\n'
        f"{task_block}\n"
        "RESPOND WITH JSON:\n"
        '{"decisions": ["..."], "risks": ["..."], "asks": ["..."], "keyPoints": ["..."]}\n\n'
        "If a category has no items, use an empty array. Be concise."
    )


def build_minutes_prompt(text: str) -> str:
    return (
        "Extract meeting information from the following text. Identify:\n\n"
        "1. Meeting title or subject (if mentioned)\n"
        "2. Meeting date and time (if mentioned)\n"
        "3. Participants and attendees\n"
        "4. Agenda items or topics discussed\n"
        "5. Key discussion notes\n"
        "6. Next steps or follow-up actions\n\n"
        f"TEXT:\n{text}\n\n"
        "Respond with a JSON object in this exact format:\n"
        "{\n"
        '  "title": "Meeting title or subject",\n'
        '  "date": "ISO date string or null",\n'
        '  "participants": ["Name1", "Name2"],\n'
        '  "agenda": ["Topic 1", "Topic 2"],\n'
        '  "notes": "General meeting notes and discussion summary",\n'
        '  "nextSteps": ["Next step 1", "Next step 2"]\n'
        "}\n\n"
        "If information is not available, use null for strings or empty arrays for lists.\n"
        "Do NOT include any text before or after the JSON."
    )
