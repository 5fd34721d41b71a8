"""Tests for the main page scorer and its helpers."""

from hidden_jobs.core.config import SearchConfig
from hidden_jobs.core.schemas import ContentBlock, Link, PageSnapshot
from hidden_jobs.pipeline.scorer import (
    DEFAULT_LISTING_TITLE,
    collect_terms,
    find_job_board_links,
    is_job_link,
    job_board_name,
    listing_title,
    match_listings,
    resolve_url,
    score_page,
)


def _snapshot(
    text: str = "",
    links: list[tuple[str, str]] | None = None,
    url: str = "https://a.example",
) -> PageSnapshot:
    return PageSnapshot(
        url=url,
        text=text,
        links=[Link(href=h, text=t) for h, t in (links or [])],
    )


BASE = "https://a.example/"


def _config(**kwargs: object) -> SearchConfig:
    return SearchConfig(**kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# collect_terms
# ---------------------------------------------------------------------------


class TestCollectTerms:
    def test_counts_distinct_terms_once(self) -> None:
        found: list[str] = []
        points = collect_terms("job job job jobs", ["job", "jobs"], found, 5)
        assert points == 10
        assert found == ["job", "jobs"]

    def test_case_insensitive(self) -> None:
        found: list[str] = []
        assert collect_terms("We Are HIRING", ["hiring"], found, 5) == 5

    def test_skips_already_found(self) -> None:
        found = ["hiring"]
        assert collect_terms("hiring", ["Hiring"], found, 20) == 0
        assert found == ["hiring"]

    def test_empty_term_ignored(self) -> None:
        found: list[str] = []
        assert collect_terms("anything", [""], found, 5) == 0


# ---------------------------------------------------------------------------
# URL and link helpers
# ---------------------------------------------------------------------------


class TestResolveUrl:
    def test_absolute_path(self) -> None:
        assert resolve_url("https://a.example/about/", "/careers") == "https://a.example/careers"

    def test_relative_to_current_path(self) -> None:
        assert (
            resolve_url("https://a.example/about/index.html", "jobs.html")
            == "https://a.example/about/jobs.html"
        )

    def test_absolute_kept(self) -> None:
        assert resolve_url("https://a.example", "https://b.example/x") == "https://b.example/x"

    def test_empty_is_none(self) -> None:
        assert resolve_url("https://a.example", "  ") is None

    def test_mailto_is_none(self) -> None:
        assert resolve_url("https://a.example", "mailto:jobs@a.example") is None


class TestIsJobLink:
    def test_anchor_text_term(self) -> None:
        assert is_job_link(Link(href="/x", text="Join our team"), ["join our team"], BASE)

    def test_job_path(self) -> None:
        assert is_job_link(Link(href="/company/careers", text="More"), [], BASE)

    def test_domain_is_not_a_path(self) -> None:
        assert not is_job_link(Link(href="https://join.example/", text="Home"), [], BASE)

    def test_plain_link(self) -> None:
        assert not is_job_link(Link(href="/menu", text="Menu"), ["job"], BASE)

    def test_relative_path_without_leading_slash(self) -> None:
        assert is_job_link(Link(href="careers/", text="More"), [], BASE)

    def test_relative_path_from_subdirectory(self) -> None:
        link = Link(href="../jobs/", text="More")
        assert is_job_link(link, [], "https://a.example/about/team.html")

    def test_mailto_is_not_a_job_path(self) -> None:
        assert not is_job_link(Link(href="mailto:careers@a.example", text="Mail"), [], BASE)


class TestJobBoards:
    def test_known_board(self) -> None:
        assert job_board_name("https://boards.greenhouse.io/acme") == "Greenhouse"

    def test_workday_jobs(self) -> None:
        assert job_board_name("https://acme.wd5.myworkdayjobs.com/en-US") == "Workday Jobs"

    def test_unknown(self) -> None:
        assert job_board_name("https://acme.example/jobs") is None

    def test_links_are_distinct(self) -> None:
        snap = _snapshot(links=[
            ("https://jobs.lever.co/acme", "Lever"),
            ("https://jobs.lever.co/acme", "Apply"),
            ("/about", "About"),
        ])
        links = find_job_board_links(snap, "Career Page")
        assert len(links) == 1
        assert links[0].name == "Lever"
        assert links[0].found_on == "Career Page"

    def test_excluded_urls_skipped(self) -> None:
        snap = _snapshot(links=[("https://jobs.lever.co/acme", "Lever")])
        assert find_job_board_links(snap, "Career Page", exclude={"https://jobs.lever.co/acme"}) == []


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

_LONG = (
    " Lorem ipsum dolor sit amet, consectetur adipiscing elit, sed do eiusmod tempor."
    " Ut enim ad minim veniam, quis nostrud."
)


class TestListingTitle:
    def test_heading_wins(self) -> None:
        block = ContentBlock(text="Position: Baker" + _LONG, heading="Head Baker")
        assert listing_title(block) == "Head Baker"

    def test_pattern_fallback(self) -> None:
        block = ContentBlock(text="Open position: Senior Python Developer\nApply now")
        assert listing_title(block) == "Senior Python Developer"

    def test_default_label(self) -> None:
        assert listing_title(ContentBlock(text="Nothing here")) == DEFAULT_LISTING_TITLE


class TestMatchListings:
    def test_qualifying_block(self) -> None:
        config = _config(user_keywords=["python"])
        block = ContentBlock(text="We have an open position for a python developer." + _LONG)
        listings = match_listings([block], config, "https://a.example/careers")
        assert len(listings) == 1
        assert listings[0].keywords == ["python"]
        assert listings[0].source == "https://a.example/careers"
        assert listings[0].snippet.endswith("...")
        assert len(listings[0].snippet) <= 203

    def test_short_block_ignored(self) -> None:
        config = _config(user_keywords=["python"])
        block = ContentBlock(text="python position")
        assert match_listings([block], config, "s") == []

    def test_needs_both_keyword_kinds(self) -> None:
        config = _config(user_keywords=["python"])
        no_job_term = ContentBlock(text="python python python" + _LONG)
        no_user_term = ContentBlock(text="open position available" + _LONG)
        assert match_listings([no_job_term, no_user_term], config, "s") == []

    def test_capped_at_five(self) -> None:
        config = _config(user_keywords=["python"])
        blocks = [ContentBlock(text=f"python position {i}" + _LONG) for i in range(7)]
        assert len(match_listings(blocks, config, "s")) == 5

    def test_nested_duplicate_listed_once(self) -> None:
        """A listing inside a matching wrapper comes back once per selector hit."""
        config = _config(user_keywords=["python"])
        text = "Open position: Python Developer." + _LONG
        blocks = [
            ContentBlock(text=text, heading="Python Developer"),
            ContentBlock(text=f"  {text}\n"),
            ContentBlock(text=text.upper()),
        ]
        listings = match_listings(blocks, config, "s")
        assert [listing.title for listing in listings] == ["Python Developer"]

    def test_duplicates_do_not_use_up_the_cap(self) -> None:
        config = _config(user_keywords=["python"])
        repeated = ContentBlock(text="python position 0" + _LONG)
        blocks = [repeated] * 4 + [
            ContentBlock(text=f"python position {i}" + _LONG) for i in range(1, 6)
        ]
        assert len(match_listings(blocks, config, "s")) == 5


# ---------------------------------------------------------------------------
# score_page
# ---------------------------------------------------------------------------


class TestScorePage:
    def test_example_scenario(self) -> None:
        """'hiring engineers now' + a Careers link scores 5 + 20 + 30."""
        config = _config(user_keywords=["engineer"])
        signals = score_page(
            _snapshot("hiring engineers now", [("/careers", "Careers")]), config,
        )
        assert signals.job_keywords == ["hiring", "engineer"]
        assert signals.score == 55
        assert signals.job_pages[0].url == "https://a.example/careers"
        assert signals.career_page == "https://a.example/careers"

    def test_no_signals_scores_zero(self) -> None:
        signals = score_page(_snapshot("fresh bread daily", [("/menu", "Menu")]), _config())
        assert signals.score == 0
        assert signals.job_keywords == []
        assert signals.contact_email is None
        assert signals.contact_page is None

    def test_single_website_term(self) -> None:
        signals = score_page(_snapshot("we do great work here"), _config())
        assert signals.job_keywords == ["work"]
        assert signals.score == 5

    def test_repetition_does_not_stack(self) -> None:
        signals = score_page(_snapshot("job job job job"), _config())
        assert signals.score == 5

    def test_user_keyword_once(self) -> None:
        config = _config(user_keywords=["baker"], website_keywords=[])
        signals = score_page(_snapshot("baker baker baker"), config)
        assert signals.score == 20

    def test_user_keyword_deduped_against_website_term(self) -> None:
        config = _config(user_keywords=["Hiring"])
        signals = score_page(_snapshot("hiring"), config)
        assert signals.job_keywords == ["hiring"]
        assert signals.score == 5

    def test_job_links_flat_bonus(self) -> None:
        config = _config(website_keywords=[])
        one = score_page(_snapshot(links=[("/jobs", "x")]), config)
        many = score_page(
            _snapshot(links=[(f"/jobs/{i}", "x") for i in range(10)]), config,
        )
        assert one.score == many.score == 30
        assert len(many.job_pages) == 3

    def test_job_page_default_title(self) -> None:
        signals = score_page(_snapshot(links=[("/vacancies", "  ")]), _config())
        assert signals.job_pages[0].title == "Job/Career Page"

    def test_contact_email(self) -> None:
        signals = score_page(_snapshot("write to Info@Bakery.example today"), _config())
        assert signals.contact_email == "info@bakery.example"
        assert signals.score == 10

    def test_email_skips_contact_page(self) -> None:
        signals = score_page(
            _snapshot("info@bakery.example", [("/contact", "Contact")]), _config(),
        )
        assert signals.contact_page is None
        assert signals.score == 10

    def test_contact_page(self) -> None:
        signals = score_page(_snapshot("fresh bread", [("/contact-us", "Get in touch")]), _config())
        assert signals.contact_page == "https://a.example/contact-us"
        assert signals.score == 5

    def test_job_link_backfills_contact_page(self) -> None:
        signals = score_page(_snapshot(links=[("/careers", "x")]), _config(website_keywords=[]))
        assert signals.contact_page == "https://a.example/careers"
        assert signals.score == 30

    def test_main_page_job_board_recorded_not_scored(self) -> None:
        signals = score_page(
            _snapshot(links=[("https://boards.greenhouse.io/acme", "Open roles")]), _config(),
        )
        assert signals.score == 0
        assert signals.job_site_links[0].found_on == "Main Page"

    def test_relative_job_link_without_slash(self) -> None:
        signals = score_page(
            _snapshot(links=[("careers/", "More")], url="https://a.example/"),
            _config(website_keywords=[]),
        )
        assert signals.score == 30
        assert signals.job_pages[0].url == "https://a.example/careers/"
