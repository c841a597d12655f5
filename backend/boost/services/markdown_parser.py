"""
Regex parsers for the strategy markdown layout.

Used when LLM extraction of the dashboard data fails, and by anything that
needs a single section of a strategy.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List

# `## Title` at line start (exactly two hashes)
_H2_RE = re.compile(r"^##(?!#)\s*(.+?)\s*$", re.MULTILINE)
_WEEK_H2_RE = re.compile(r"^Week\s+(\d+)\s*:\s*(.*)$", re.IGNORECASE)
_H3_SPLIT_RE = re.compile(r"(?=^###\s)", re.MULTILINE)
_DAY_ROW_RE = re.compile(r"^\|\s*(\d+)\s*\|\s*(.+?)\s*\|\s*(.+?)\s*\|\s*(.+?)\s*\|")
_THREE_COL_ROW_RE = re.compile(r"^\|\s*(.+?)\s*\|\s*(.+?)\s*\|\s*(.+?)\s*\|")
_DIVIDER_RE = re.compile(r"^\|\s*:?-{2,}")
_HOURS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:hr|hour)", re.IGNORECASE)
_TRAFFIC_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([KMB])?(?:/mo)?", re.IGNORECASE)
_ROADMAP_WEEK_SPLIT_RE = re.compile(r"(?=^###\s+Week\s+\d)", re.MULTILINE | re.IGNORECASE)
_ROADMAP_THEME_RE = re.compile(r"^###\s+Week\s+\d+\s*:\s*(.+)", re.IGNORECASE)
_CHECKBOX_RE = re.compile(r"-\s\[([ xX])\]\s*(.+)")

_ICE_COMPONENT = r"\*\*{name}\*\*:\s*(\d+)/10\s*[-–—]\s*(.+)"
_ICE_SCORE_PATTERNS = (
    re.compile(r"\*\*ICE Score[:\s]*(\d+)\*\*", re.IGNORECASE),
    re.compile(r"\*\*ICE Score\*\*[:\s]*(\d+)", re.IGNORECASE),
    re.compile(r"ICE Score[:\s]*(\d+)", re.IGNORECASE),
)

_TRAFFIC_MULTIPLIERS = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}


def parse_strategy_sections(markdown: str) -> Dict[str, str]:
    """Map each `## Heading` to the text up to the next `##` heading."""
    sections: Dict[str, str] = {}
    matches = list(_H2_RE.finditer(markdown))
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(markdown)
        sections[match.group(1).strip()] = markdown[match.end():end].strip("\n")
    return sections


def find_section(sections: Dict[str, str], prefix: str) -> str | None:
    """First section whose heading starts with `prefix` (case-insensitive)."""
    prefix = prefix.lower()
    for title, content in sections.items():
        if title.lower().startswith(prefix):
            return content
    return None


def _table_lines(content: str) -> List[str]:
    return [line.strip() for line in content.splitlines() if line.strip().startswith("|")]


def parse_day_table(content: str) -> List[Dict[str, Any]]:
    """Rows of `| Day | Action | Time | Success Metric |`."""
    days = []
    for line in _table_lines(content):
        if _DIVIDER_RE.match(line):
            continue
        match = _DAY_ROW_RE.match(line)
        if not match:
            continue
        days.append(
            {
                "day": int(match.group(1)),
                "action": match.group(2).strip(),
                "timeEstimate": match.group(3).strip(),
                "successMetric": match.group(4).strip(),
            }
        )
    return days


def total_hours(days: List[Dict[str, Any]]) -> float:
    total = 0.0
    for day in days:
        match = _HOURS_RE.search(day.get("timeEstimate") or "")
        if match:
            total += float(match.group(1))
    return total


def parse_week_sections(sections: Dict[str, str]) -> List[Dict[str, Any]]:
    """`## Week N: Theme` sections that contain a day table."""
    weeks = []
    for title, content in sections.items():
        match = _WEEK_H2_RE.match(title)
        if not match:
            continue
        days = parse_day_table(content)
        if days:
            weeks.append({"week": int(match.group(1)), "theme": match.group(2).strip(), "days": days})
    return weeks


def parse_start_doing(content: str) -> List[Dict[str, Any]]:
    """
    `### Title` items carrying ICE scores:

        ### Launch a referral loop
        - **Impact**: 9/10 - reason
        - **Confidence**: 7/10 - reason
        - **Ease**: 8/10 - reason
        - **ICE Score**: 24

        Implementation guidance...
    """
    items = []
    for chunk in _H3_SPLIT_RE.split(content):
        if not chunk.startswith("###"):
            continue
        title = chunk.splitlines()[0].lstrip("#").strip()

        def component(name: str) -> Dict[str, Any]:
            match = re.search(_ICE_COMPONENT.format(name=name), chunk, re.IGNORECASE)
            if not match:
                return {"score": 0, "reason": ""}
            return {"score": int(match.group(1)), "reason": match.group(2).strip()}

        ice_score = 0
        for pattern in _ICE_SCORE_PATTERNS:
            match = pattern.search(chunk)
            if match:
                ice_score = int(match.group(1))
                break

        description = ""
        ice_index = chunk.lower().find("ice score")
        if ice_index > 0:
            desc_start = chunk.find("\n\n", ice_index)
            if desc_start > 0:
                description = chunk[desc_start:].strip()

        items.append(
            {
                "title": title,
                "impact": component("Impact"),
                "confidence": component("Confidence"),
                "ease": component("Ease"),
                "iceScore": ice_score,
                "description": description,
            }
        )
    return items


def parse_roadmap(content: str) -> List[Dict[str, Any]]:
    """`### Week N: Theme` blocks with `- [ ] task` checklists."""
    weeks = []
    chunks = [c for c in _ROADMAP_WEEK_SPLIT_RE.split(content) if re.match(r"###\s+Week", c, re.I)]
    for index, chunk in enumerate(chunks, start=1):
        theme = _ROADMAP_THEME_RE.match(chunk)
        weeks.append(
            {
                "week": index,
                "theme": theme.group(1).strip() if theme else f"Week {index}",
                "tasks": [m.group(2).strip() for m in _CHECKBOX_RE.finditer(chunk)],
            }
        )
    return weeks


def normalize_category(category: str) -> str:
    """Map a free-form funnel stage onto the AARRR names."""
    value = category.lower().strip()
    if "acqui" in value:
        return "acquisition"
    if "activ" in value:
        return "activation"
    if "reten" in value:
        return "retention"
    if "refer" in value:
        return "referral"
    if "rev" in value or "monet" in value:
        return "revenue"
    return "custom"


def parse_metrics_table(content: str) -> List[Dict[str, Any]]:
    """Rows of `| Stage | Metric | Target | ... |`."""
    metrics = []
    for line in _table_lines(content):
        if _DIVIDER_RE.match(line):
            continue
        match = _THREE_COL_ROW_RE.match(line)
        if not match:
            continue
        stage = match.group(1).strip().lower()
        if stage in ("stage", "metric"):
            continue
        metrics.append(
            {
                "name": match.group(2).strip(),
                "target": match.group(3).strip(),
                "category": normalize_category(stage),
            }
        )
    return metrics


def parse_traffic(text: str) -> tuple[str, float | None]:
    """`"~50K/mo visits"` -> `("50K/mo", 50000.0)`; no number -> `("Unknown", None)`."""
    match = _TRAFFIC_RE.search(text)
    if not match:
        return "Unknown", None
    suffix = (match.group(2) or "").upper()
    number = float(match.group(1)) * _TRAFFIC_MULTIPLIERS.get(suffix, 1)
    return f"{match.group(1)}{match.group(2) or ''}/mo", number


def parse_competitors_table(content: str) -> List[Dict[str, Any]]:
    """Rows of `| Competitor | Approach | Advantage |`; traffic is read from column two."""
    competitors = []
    for line in _table_lines(content):
        if _DIVIDER_RE.match(line):
            continue
        match = _THREE_COL_ROW_RE.match(line)
        if not match:
            continue
        name = match.group(1).strip()
        if name.lower() in ("competitor", "alternative"):
            continue
        positioning = match.group(2).strip()
        traffic, traffic_number = parse_traffic(positioning)
        item: Dict[str, Any] = {"name": name, "traffic": traffic, "positioning": positioning}
        if traffic_number is not None:
            item["trafficNumber"] = traffic_number
        competitors.append(item)
    return competitors
