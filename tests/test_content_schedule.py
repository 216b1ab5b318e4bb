from datetime import date

from marketing_assistant.db.enums import ContentCategoryEnum
from marketing_assistant.services.content_schedule import (
    DEFAULT_PILLARS,
    SAMPLE_COLUMNS,
    category_for_week,
    generate_schedule,
    sample_weeks,
    summarize_schedule,
    total_weeks,
)


def _generate(start: date, end: date, **overrides):
    params = {
        "start_date": start,
        "end_date": end,
        "platforms": ["facebook", "instagram"],
        "pillars": list(DEFAULT_PILLARS),
        "frequency": 3,
        "goal": "more weekday visitors",
        "target_audience": "office workers nearby",
    }
    params.update(overrides)
    return generate_schedule(**params)


def test_three_weeks_two_platforms_yields_eighteen_items() -> None:
    drafts = _generate(date(2024, 1, 1), date(2024, 1, 21))

    assert len(drafts) == 18
    assert {draft.platform for draft in drafts} == {"facebook", "instagram"}
    for draft in drafts:
        assert date(2024, 1, 1) <= draft.scheduled_date <= date(2024, 1, 21)
        # Monday=0, Wednesday=2, Friday=4 in Python's weekday numbering.
        assert draft.scheduled_date.weekday() in (0, 2, 4)


def test_every_posting_date_gets_one_item_per_platform() -> None:
    drafts = _generate(date(2024, 1, 1), date(2024, 1, 7))

    by_date: dict[date, list[str]] = {}
    for draft in drafts:
        by_date.setdefault(draft.scheduled_date, []).append(draft.platform)

    assert sorted(by_date) == [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 5)]
    assert all(platforms == ["facebook", "instagram"] for platforms in by_date.values())


def test_fourth_week_is_promotional() -> None:
    drafts = _generate(date(2024, 1, 1), date(2024, 2, 11))

    for draft in drafts:
        expected = (
            ContentCategoryEnum.promotional
            if (draft.week_number - 1) % 4 == 3
            else ContentCategoryEnum.organic
        )
        assert draft.content_category == expected
    assert {draft.week_number for draft in drafts if draft.content_category == ContentCategoryEnum.promotional} == {4}
    assert category_for_week(7) == ContentCategoryEnum.promotional
    assert category_for_week(8) == ContentCategoryEnum.organic


def test_pillars_rotate_across_items_and_weeks() -> None:
    pillars = ["Brand Story", "Product Showcase", "Tips & Education"]
    drafts = _generate(date(2024, 1, 1), date(2024, 1, 14), pillars=pillars)

    assert [draft.content_pillar for draft in drafts] == [pillars[index % 3] for index in range(len(drafts))]


def test_generation_is_deterministic() -> None:
    first = _generate(date(2024, 3, 4), date(2024, 4, 28))
    second = _generate(date(2024, 3, 4), date(2024, 4, 28))

    assert first == second


def test_range_without_posting_days_yields_nothing() -> None:
    drafts = _generate(date(2024, 1, 6), date(2024, 1, 7))

    assert drafts == []
    summary = summarize_schedule(drafts, start_date=date(2024, 1, 6), end_date=date(2024, 1, 7), frequency=3)
    assert summary["totalItems"] == 0
    assert summary["weeksBelowTarget"] == [{"week": 1, "postingDays": 0, "target": 3}]


def test_lower_frequency_caps_posting_days_per_week() -> None:
    drafts = _generate(date(2024, 1, 1), date(2024, 1, 14), platforms=["facebook"], frequency=2)

    assert [draft.scheduled_date for draft in drafts] == [
        date(2024, 1, 1),
        date(2024, 1, 3),
        date(2024, 1, 8),
        date(2024, 1, 10),
    ]


def test_weeks_are_counted_from_the_campaign_start() -> None:
    # Thursday start: the first campaign week holds Friday, Monday and Wednesday.
    drafts = _generate(date(2024, 1, 4), date(2024, 1, 10), platforms=["facebook"])

    assert [(draft.scheduled_date, draft.week_number) for draft in drafts] == [
        (date(2024, 1, 5), 1),
        (date(2024, 1, 8), 1),
        (date(2024, 1, 10), 1),
    ]


def test_summary_reports_shortfall_when_frequency_exceeds_posting_days() -> None:
    start, end = date(2024, 1, 1), date(2024, 1, 14)
    drafts = _generate(start, end, platforms=["facebook"], frequency=5)
    summary = summarize_schedule(drafts, start_date=start, end_date=end, frequency=5)

    assert summary["totalItems"] == 6
    assert summary["totalWeeks"] == 2
    assert summary["byPlatform"] == {"facebook": 6}
    assert summary["weeksBelowTarget"] == [
        {"week": 1, "postingDays": 3, "target": 5},
        {"week": 2, "postingDays": 3, "target": 5},
    ]


def test_briefs_and_angles_are_filled_in() -> None:
    drafts = _generate(date(2024, 1, 1), date(2024, 1, 7), pillars=["Seasonal Menu"])

    for draft in drafts:
        assert "{" not in draft.content_brief
        assert "Seasonal Menu" in draft.content_brief
        assert draft.content_angle


def test_sample_weeks_limits_rows() -> None:
    drafts = _generate(date(2024, 1, 1), date(2024, 1, 28))
    sample = sample_weeks(drafts, 1)

    assert sample["columns"] == SAMPLE_COLUMNS
    assert len(sample["rows"]) == 6
    assert sample["truncated"] is True
    assert sample["rows"][0][:3] == ["2024-01-01", 1, "facebook"]


def test_total_weeks_rounds_partial_weeks_up() -> None:
    assert total_weeks(date(2024, 1, 1), date(2024, 1, 7)) == 1
    assert total_weeks(date(2024, 1, 1), date(2024, 1, 8)) == 2
    assert total_weeks(date(2024, 1, 1), date(2024, 1, 1)) == 1
