"""Section draft engine: pure helpers over the fixed hook/body/cta sequence."""

from __future__ import annotations

import re
from typing import List, Optional

from core import SECTION_ORDER, CreativeResult, FixSuggestion, SectionContent, SectionDraft, SectionType


TITLE_MAX_CHARS = 100

_HASHTAG_RE = re.compile(r"#\w+")


def initial_sections() -> List[SectionDraft]:
    return [SectionDraft(type=section_type) for section_type in SECTION_ORDER]


def first_unaccepted(sections: List[SectionDraft]) -> int:
    """Index of the first section not yet accepted; len(sections) once all are."""
    for idx, draft in enumerate(sections):
        if not draft.accepted:
            return idx
    return len(sections)


def replace(sections: List[SectionDraft], index: int, **updates) -> List[SectionDraft]:
    out = list(sections)
    out[index] = sections[index].model_copy(update=updates)
    return out


def accepted_before(sections: List[SectionDraft], index: int) -> List[SectionContent]:
    """Accepted sections ahead of ``index``, used as tone context for generation."""
    return [
        SectionContent(type=draft.type, content=draft.content)
        for draft in sections[:index]
        if draft.accepted and draft.content
    ]


def filled(sections: List[SectionDraft]) -> List[SectionContent]:
    return [SectionContent(type=draft.type, content=draft.content) for draft in sections if draft.content.strip()]


def section_text(sections: List[SectionDraft], section_type: SectionType) -> str:
    for draft in sections:
        if draft.type == section_type:
            return draft.content
    return ""


def apply_fix_text(sections: List[SectionDraft], fix: FixSuggestion) -> List[SectionDraft]:
    """Replace ``current_text`` with ``suggested_text`` in the first section containing it."""
    current = fix.current_text or ""
    if not current or fix.suggested_text is None:
        return list(sections)
    for idx, draft in enumerate(sections):
        if current in draft.content:
            return replace(
                sections,
                idx,
                content=draft.content.replace(current, fix.suggested_text, 1),
                version=draft.version + 1,
            )
    return list(sections)


def render_prompt(sections: List[SectionDraft]) -> str:
    return "\n\n".join(item.content for item in filled(sections))


def assemble_result(
    topic: str,
    sections: List[SectionDraft],
    *,
    video_provider: Optional[str] = None,
    video_job_id: Optional[str] = None,
) -> CreativeResult:
    hook = section_text(sections, SectionType.HOOK).strip()
    first_line = hook.splitlines()[0].strip() if hook else ""
    title = (first_line or str(topic or "").strip())[:TITLE_MAX_CHARS]
    body = render_prompt(sections)
    return CreativeResult(
        title=title,
        body=body,
        hashtags=_HASHTAG_RE.findall(body),
        call_to_action=section_text(sections, SectionType.CTA).strip(),
        video_provider=video_provider,
        video_job_id=video_job_id,
    )
