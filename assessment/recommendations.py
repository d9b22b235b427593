"""
Step 4: Recommendation Engine

Turns a graded result plus the exam-definition catalog into an ordered list
of next-step CTAs. Pure: no database access, no randomness.

Catalog entries only need: id, type, title, access, exam_levels,
section_distribution ([{"section", "count"}] or SectionTarget objects).
"""

from typing import Iterable, List, Optional, Sequence

from assessment.grading import performance_level
from assessment.schemas import AttemptResult, CallToAction, CtaTarget

WEAK_SECTION_BELOW = 75.0
PRIMARY_PRACTICE_BELOW = 60.0
DEFAULT_LEVELS = ["professional", "both"]

SECTION_DISPLAY_NAMES = {
    "verbal": "Verbal Ability",
    "numerical": "Numerical Ability",
    "analytical": "Analytical Ability",
    "clerical": "Clerical Ability",
    "general information": "General Information",
}


def normalize_section(name) -> str:
    if not isinstance(name, str):
        return ""
    return name.strip().lower()


def _first_section(definition) -> Optional[str]:
    dist = getattr(definition, "section_distribution", None) or []
    if not dist:
        return None
    first = dist[0]
    return first.get("section") if isinstance(first, dict) else getattr(first, "section", None)


def section_display_name(section: Optional[str]) -> Optional[str]:
    if not section:
        return None
    return SECTION_DISPLAY_NAMES.get(normalize_section(section), section)


def find_practice_for_section(section: str, practice_defs: Sequence, exam_levels: Sequence[str]):
    """
    First practice definition whose (first) section matches and whose levels
    intersect the mock's levels. A definition with no levels matches any level.
    """
    wanted = normalize_section(section)
    levels = [normalize_section(lv) for lv in exam_levels]
    for d in practice_defs:
        if normalize_section(_first_section(d)) != wanted:
            continue
        d_levels = [normalize_section(lv) for lv in (getattr(d, "exam_levels", None) or [])]
        if not d_levels:
            return d
        if any(dl == lv or dl == "both" for dl in d_levels for lv in levels):
            return d
    return None


def _cta(type_, label, priority, target=None, section=None, highest=False) -> CallToAction:
    return CallToAction(
        type=type_,
        label=label,
        target_exam_id=target.id if target is not None else None,
        section=section,
        is_highest_impact=highest,
        priority=priority,
    )


def _review_answers(priority: str) -> CallToAction:
    return _cta("review_answers", "Review My Answers", priority)


def _for_mock(result: AttemptResult, current, practice_defs, mock_defs) -> List[CallToAction]:
    ctas = []
    levels = (getattr(current, "exam_levels", None) or []) or DEFAULT_LEVELS

    weak = sorted(
        (s for s in result.section_scores if s.score < WEAK_SECTION_BELOW),
        key=lambda s: s.score,
    )
    for i, sec in enumerate(weak):
        target = find_practice_for_section(sec.section, practice_defs, levels)
        ctas.append(_cta(
            "take_section_practice",
            f"Practice {section_display_name(sec.section)}",
            "primary" if sec.score < PRIMARY_PRACTICE_BELOW else "secondary",
            target=target,
            section=sec.section,
            highest=(i == 0),
        ))

    retake = current if getattr(current, "type", None) == "mock" else (mock_defs[0] if mock_defs else None)
    if retake is not None:
        ctas.append(_cta("retake_full_mock", "Retake Full Exam", "secondary", target=retake))

    ctas.append(_review_answers("secondary"))
    return ctas


def _for_practice(result: AttemptResult, current, mock_defs) -> List[CallToAction]:
    band = performance_level(result.percentage)
    strong = band == "Strong"
    ctas = [_review_answers("primary")]

    if current is not None:
        ctas.append(_cta(
            "retake_section", "Retake Section Practice",
            "optional" if strong else "secondary",
            target=current, section=_first_section(current),
        ))
    if mock_defs:
        ctas.append(_cta(
            "try_full_mock", "Try Full Mock Exam",
            "primary" if strong else "optional",
            target=mock_defs[0],
        ))
    ctas.append(_cta("go_to_dashboard", "Go Back to Dashboard", "optional"))
    return ctas


def _for_demo(current, mock_defs) -> List[CallToAction]:
    ctas = [_review_answers("primary")]
    if mock_defs:
        ctas.append(_cta("try_full_mock", "Try Full Mock Exam", "primary", target=mock_defs[0]))
    ctas.append(_cta("go_to_dashboard", "Go Back to Dashboard", "optional"))
    if current is not None:
        ctas.append(_cta("retake_demo", "Retake Demo", "optional", target=current))
    return ctas


def generate_recommendations(
    exam_type: str,
    result: AttemptResult,
    catalog: Iterable,
    current=None,
) -> List[CallToAction]:
    """
    Build ordered CTAs for a graded result.

    Args:
        exam_type: 'mock' | 'practice' | 'demo'
        result: Graded result block
        catalog: Other published exam definitions (practice + mock used)
        current: The definition the attempt was taken on

    Returns:
        Ordered CTAs (empty for an unknown exam type)
    """
    catalog = list(catalog)
    current_id = getattr(current, "id", None)
    practice_defs = [d for d in catalog if d.type == "practice"]
    mock_defs = [d for d in catalog if d.type == "mock" and d.id != current_id]

    if exam_type == "mock":
        return _for_mock(result, current, practice_defs, mock_defs)
    if exam_type == "practice":
        return _for_practice(result, current, mock_defs)
    if exam_type == "demo":
        return _for_demo(current, mock_defs)
    return []


def attach_targets(ctas: List[CallToAction], definitions: Iterable) -> List[CallToAction]:
    """Attach a display summary of the target definition to each CTA that has one."""
    by_id = {d.id: d for d in definitions}
    out = []
    for c in ctas:
        d = by_id.get(c.target_exam_id) if c.target_exam_id is not None else None
        if d is None:
            out.append(c)
            continue
        out.append(c.model_copy(update={"target": CtaTarget(
            id=d.id,
            title=d.title,
            access=getattr(d, "access", None) or "free",
            section_display_name=section_display_name(_first_section(d)),
        )}))
    return out
