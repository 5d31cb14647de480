"""Tests for the justification generator and API result mapping."""

from toolscan.config import HIGHLIGHT_FALLBACK, HIGHLIGHT_MAX_CHARS, MEDALS, RankedResult
from toolscan.justify import justify, map_top_results, popularity_tier, to_scan_result


def _ranked(**kw) -> RankedResult:
    kw.setdefault("name", "Asana")
    return RankedResult(**kw)


class TestMedal:
    def test_first_place(self):
        assert justify(_ranked(), 1).medal == MEDALS[1]

    def test_podium_medals_distinct(self):
        medals = {justify(_ranked(), r).medal for r in (1, 2, 3)}
        assert len(medals) == 3

    def test_other_rank_is_empty(self):
        assert justify(_ranked(), 4).medal == ""
        assert justify(_ranked(), 0).medal == ""


class TestHighlight:
    def test_tagline_preferred(self):
        rec = _ranked(tagline="Work management for teams", description="Long text")
        assert justify(rec, 1).highlight == "Work management for teams"

    def test_description_truncated(self):
        rec = _ranked(description="x" * 400)
        hl = justify(rec, 1).highlight
        assert len(hl) == HIGHLIGHT_MAX_CHARS

    def test_fallback(self):
        assert justify(_ranked(), 1).highlight == HIGHLIGHT_FALLBACK

    def test_review_highlight_wins(self):
        rec = _ranked(tagline="Tagline")
        assert justify(rec, 1, review_highlight="Loved by our team").highlight == "Loved by our team"

    def test_blank_review_highlight_ignored(self):
        rec = _ranked(tagline="Tagline")
        assert justify(rec, 1, review_highlight="   ").highlight == "Tagline"


class TestReasons:
    def test_full_reason_list(self):
        rec = _ranked(popularity_count=1200, rating_value=4.5, rating_count=300)
        assert justify(rec, 1).reasons == [
            "1,200 upvotes",
            "4.5/5 star rating from 300 reviews",
            "Highly popular choice",
        ]

    def test_rating_without_count(self):
        rec = _ranked(popularity_count=250, rating_value=4.0)
        assert justify(rec, 2).reasons == [
            "250 upvotes",
            "Rated 4.0/5 by users",
            "Well-regarded by the community",
        ]

    def test_no_metrics(self):
        assert justify(_ranked(), 3).reasons == ["Trusted by early adopters"]

    def test_secondary_rating_and_label(self):
        rec = _ranked(
            popularity_count=90,
            popularity_label="reviews",
            rating_value=4.5,
            rating_count=90,
            secondary_rating=9,
        )
        assert justify(rec, 1).reasons == [
            "90 reviews",
            "4.5/5 star rating from 90 reviews",
            "Average rating: 9.0/10",
            "Trusted by early adopters",
        ]

    def test_tiers_cover_boundaries(self):
        assert popularity_tier(501) == "Highly popular choice"
        assert popularity_tier(500) == "Well-regarded by the community"
        assert popularity_tier(201) == "Well-regarded by the community"
        assert popularity_tier(200) == "Trusted by early adopters"
        assert popularity_tier(0) == "Trusted by early adopters"


class TestScore:
    def test_rounded(self):
        assert justify(_ranked(score=66.6), 1).score == 67
        assert justify(_ranked(score=12.4), 1).score == 12


class TestMapping:
    def test_to_scan_result_fields(self):
        rec = _ranked(
            url="https://www.producthunt.com/posts/asana",
            website_url="https://asana.com",
            rating_value=4.5,
            rating_count=300.0,
            secondary_rating=9.0,
            description="Work management",
            image_url="https://img/asana.png",
        )
        result = to_scan_result(rec, 2)
        body = result.model_dump(by_alias=True)
        assert body["rank"] == 2
        assert body["reviewCount"] == 300
        assert body["rating"] == 4.5
        assert body["avgRating"] == 9.0
        assert body["imageUrl"] == "https://img/asana.png"
        assert body["websiteUrl"] == "https://asana.com"
        assert body["justification"]["medal"] == MEDALS[2]

    def test_map_top_results_keeps_order_and_highlights(self):
        ranked = [_ranked(name="A", tagline="ta"), _ranked(name="B", tagline="tb")]
        results = map_top_results(ranked, [None, "review for B"])
        assert [r.rank for r in results] == [1, 2]
        assert results[0].justification.highlight == "ta"
        assert results[1].justification.highlight == "review for B"
