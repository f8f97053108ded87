"""
Content safety gate for generated children's stories.

A fixed denylist scanned case-insensitively. Any hit makes the text unsafe;
severity reflects how many distinct terms were found.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Sequence

DENYLIST = (
    "scary",
    "frightening",
    "terrifying",
    "violence",
    "fight",
    "hurt",
    "pain",
    "danger",
    "weapon",
    "death",
    "kill",
)

SEVERITY_SAFE = "safe"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"

# More than this many distinct terms is high severity
HIGH_SEVERITY_THRESHOLD = 2


@dataclass
class SafetyResult:
    """Outcome of a safety scan."""
    is_safe: bool
    flagged_terms: List[str] = field(default_factory=list)
    severity: str = SEVERITY_SAFE

    def to_dict(self):
        return asdict(self)


class ContentSafetyValidator:
    """Scans text against the denylist."""

    def __init__(self, denylist: Sequence[str] = DENYLIST):
        self.denylist = tuple(term.lower() for term in denylist)

    def check(self, text: str) -> SafetyResult:
        """
        Scan ``text`` for denylisted terms.

        Matching is substring based, so "fighting" flags "fight" and
        "painting" flags "pain".

        Args:
            text: Text to scan

        Returns:
            SafetyResult with the distinct flagged terms in denylist order
        """
        lowered = (text or "").lower()
        flagged = [term for term in self.denylist if term in lowered]

        if len(flagged) > HIGH_SEVERITY_THRESHOLD:
            severity = SEVERITY_HIGH
        elif flagged:
            severity = SEVERITY_MEDIUM
        else:
            severity = SEVERITY_SAFE

        return SafetyResult(is_safe=not flagged, flagged_terms=flagged, severity=severity)
