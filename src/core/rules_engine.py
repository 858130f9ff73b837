"""Topic rule compilation and matching (core domain).

Rebroadcast models decide relevance with these rules: a status matches a
rule when it contains one of the rule's keywords or regex patterns and
none of its exclude keywords.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Iterable, List


@dataclass(frozen=True)
class TopicRule:
    """Compiled rule used by rebroadcast models."""

    name: str
    keywords: List[str]
    exclude_keywords: List[str]
    regex_patterns: List[re.Pattern]


@dataclass(frozen=True)
class RuleMatch:
    """A single rule match with a human-readable reason."""

    rule_name: str
    reason: str


def build_rules(rules_config: Iterable[dict]) -> List[TopicRule]:
    """Normalize rule configs and compile regex patterns.

    Keywords are lower-cased once here so matching only lower-cases the
    status text.
    """

    compiled: List[TopicRule] = []
    for rule in rules_config:
        if not rule.get("enabled", True):
            continue
        compiled.append(
            TopicRule(
                name=rule["name"],
                keywords=[k.lower() for k in rule.get("keywords", [])],
                exclude_keywords=[k.lower() for k in rule.get("exclude_keywords", [])],
                regex_patterns=[re.compile(p, re.IGNORECASE) for p in rule.get("regex", []) or []],
            )
        )
    return compiled


def topic_pattern(topic: str) -> str:
    """Regex source matching topic as a whole word, with or without a leading #."""

    return rf"(?<!\w)#?{re.escape(topic)}(?!\w)"


def rule_for_topics(name: str, topics: Iterable[str]) -> TopicRule:
    """Build a rule matching any topic as a whole word or hashtag."""

    patterns = [re.compile(topic_pattern(t), re.IGNORECASE) for t in sorted(set(topics)) if t]
    return TopicRule(name=name, keywords=[], exclude_keywords=[], regex_patterns=patterns)


def match_rules(text: str, rules: Iterable[TopicRule]) -> List[RuleMatch]:
    """Return all rule matches for the given text.

    - If any exclude keyword is present, the rule does not match.
    - Otherwise any keyword or any regex hit is sufficient.
    """

    lowered = text.lower()
    matches: List[RuleMatch] = []

    for rule in rules:
        if any(ex in lowered for ex in rule.exclude_keywords):
            continue

        keyword_hits = sorted({k for k in rule.keywords if k in lowered})
        regex_hits = sorted({p.pattern for p in rule.regex_patterns if p.search(text)})
        if not keyword_hits and not regex_hits:
            continue

        reason_parts: List[str] = []
        if keyword_hits:
            reason_parts.append(f"keyword(s): {', '.join(keyword_hits)}")
        if regex_hits:
            reason_parts.append(f"regex: {', '.join(regex_hits)}")
        matches.append(RuleMatch(rule_name=rule.name, reason="; ".join(reason_parts)))

    return matches
