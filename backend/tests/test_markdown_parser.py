"""
Tests for markdown_parser.py - regex parsing of the strategy layout.
"""
import pytest

from boost.services.markdown_parser import (
    find_section,
    normalize_category,
    parse_competitors_table,
    parse_day_table,
    parse_metrics_table,
    parse_roadmap,
    parse_start_doing,
    parse_strategy_sections,
    parse_traffic,
    parse_week_sections,
    total_hours,
)

from tests.fixtures.boost_fixtures import STRATEGY_MARKDOWN


@pytest.fixture
def sections():
    return parse_strategy_sections(STRATEGY_MARKDOWN)


class TestSections:
    def test_only_level_two_headings_split(self, sections):
        assert list(sections) == [
            "Executive Summary",
            "Competitive Landscape",
            "Stop Doing",
            "Start Doing (Prioritized by ICE)",
            "Week 1: Referral foundations",
            "Week 2: Templates",
            "30-Day Roadmap",
            "Metrics Dashboard",
        ]

    def test_find_section_by_prefix(self, sections):
        assert "### Launch a Dribbble referral loop" in find_section(sections, "start doing")
        assert find_section(sections, "Nonexistent") is None


class TestDayTables:
    def test_week_sections(self, sections):
        weeks = parse_week_sections(sections)
        assert [w["week"] for w in weeks] == [1, 2]
        assert weeks[0]["theme"] == "Referral foundations"
        assert weeks[0]["days"][0] == {
            "day": 1,
            "action": "Draft referral offer",
            "timeEstimate": "2 hrs",
            "successMetric": "Offer written",
        }
        assert weeks[1]["days"][0]["day"] == 8

    def test_header_and_divider_skipped(self):
        table = "| Day | Action | Time | Metric |\n|---|---|---|---|\n| 2 | Post | 1 hr | 5 likes |"
        assert [d["day"] for d in parse_day_table(table)] == [2]

    def test_total_hours(self, sections):
        days = parse_week_sections(sections)[0]["days"]
        assert total_hours(days) == 6.0

    def test_total_hours_ignores_minutes(self):
        assert total_hours([{"timeEstimate": "30 min"}, {"timeEstimate": "1.5 hours"}]) == 1.5


class TestStartDoing:
    def test_ice_items(self, sections):
        items = parse_start_doing(find_section(sections, "Start Doing"))
        assert [i["title"] for i in items] == [
            "Launch a Dribbble referral loop",
            "Publish invoice templates",
        ]
        first = items[0]
        assert first["impact"] == {"score": 9, "reason": "Designers share tools openly"}
        assert first["ease"]["score"] == 8
        assert first["iceScore"] == 24
        assert first["description"] == "Offer one free month per referred designer."

    def test_missing_components_default_to_zero(self):
        items = parse_start_doing("### Just a title\nNo scores here.")
        assert items[0]["confidence"] == {"score": 0, "reason": ""}
        assert items[0]["iceScore"] == 0


class TestRoadmap:
    def test_weeks_and_checklists(self, sections):
        weeks = parse_roadmap(find_section(sections, "30-Day Roadmap"))
        assert weeks == [
            {"week": 1, "theme": "Referral foundations", "tasks": ["Referral offer", "Landing page"]},
            {"week": 2, "theme": "Templates", "tasks": ["Publish templates", "Pick keywords"]},
        ]


class TestMetrics:
    def test_metrics_table(self, sections):
        metrics = parse_metrics_table(find_section(sections, "Metrics Dashboard"))
        assert metrics[0] == {"name": "Weekly signups", "target": "25", "category": "acquisition"}
        assert [m["category"] for m in metrics] == ["acquisition", "revenue", "retention"]

    @pytest.mark.parametrize("raw,expected", [
        ("Acquisition", "acquisition"),
        ("ACTIVATION", "activation"),
        ("Retention (M2)", "retention"),
        ("Referral", "referral"),
        ("Revenue", "revenue"),
        ("Monetization", "revenue"),
        ("Brand", "custom"),
    ])
    def test_normalize_category(self, raw, expected):
        assert normalize_category(raw) == expected


class TestCompetitors:
    def test_competitor_table(self, sections):
        competitors = parse_competitors_table(find_section(sections, "Competitive Landscape"))
        assert [c["name"] for c in competitors] == ["Bonsai", "HoneyBook"]
        assert competitors[0]["traffic"] == "50K/mo"
        assert competitors[0]["trafficNumber"] == 50000
        assert competitors[1]["traffic"] == "Unknown"
        assert "trafficNumber" not in competitors[1]

    @pytest.mark.parametrize("text,expected", [
        ("2.5M/mo", ("2.5M/mo", 2_500_000)),
        ("about 800 visits", ("800/mo", 800)),
        ("no data", ("Unknown", None)),
    ])
    def test_parse_traffic(self, text, expected):
        assert parse_traffic(text) == expected
