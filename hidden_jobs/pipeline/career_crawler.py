"""Career page crawler: one extra fetch per discovered job link.

Each job page found on the main page (at most 3) is loaded in a sub-page of
the job's browsing context with a short deadline. Findings on each page:

  - job listing blocks with user keywords -> score = max(score, 100)
  - user keywords not seen on the main page -> score = max(score, 50..80)
    (only while no listing has matched)
  - job-specific keywords -> +40 each, potential_job_match
  - links to known job boards -> +25 each into a sub-score

After all pages, the parent score gains min(sub-score, 50) and is floored at
75 if any job board link was found. Then up to 2 of the job boards found on
career pages are visited the same way; a board that mentions user keywords
lifts the score to at least 100 and contributes up to 3 listings, or one
generic listing when no job card mentions them.

A page that fails to load or to parse contributes nothing. Nothing raised
inside this module reaches the caller.
"""

import logging
from collections.abc import Awaitable, Callable

from hidden_jobs.core.config import SearchConfig
from hidden_jobs.core.schemas import JobListing, JobSiteLink, PageSignals, PageSnapshot
from hidden_jobs.pipeline.scorer import (
    BOARD_SNIPPET_LENGTH,
    GENERIC_BOARD_LISTING_TITLE,
    JOB_BOARD_BOOST_CAP,
    JOB_BOARD_FLOOR,
    JOB_BOARD_LINK_POINTS,
    JOB_SPECIFIC_KEYWORD_POINTS,
    KEYWORD_MATCH_BASE,
    KEYWORD_MATCH_CAP,
    KEYWORD_MATCH_STEP,
    MAX_BOARD_LISTINGS,
    MAX_JOB_BOARD_VISITS,
    MAX_JOB_LINKS,
    PERFECT_MATCH_SCORE,
    collect_terms,
    find_job_board_links,
    listing_title,
    match_listings,
)

logger = logging.getLogger(__name__)

# Fetch primitive: (url, timeout_s) -> snapshot, or None if the page never loaded.
PageFetcher = Callable[[str, float], Awaitable[PageSnapshot | None]]

CAREER_PAGE_LABEL = "Career Page"


class PageFindings:
    """What one career page contributed, before it is merged into the result."""

    def __init__(
        self,
        listings: list[JobListing],
        new_keywords: list[str],
        job_specific_keywords: list[str],
        board_links: list[JobSiteLink],
    ) -> None:
        self.listings = listings
        self.new_keywords = new_keywords
        self.job_specific_keywords = job_specific_keywords
        self.board_links = board_links


def new_terms(text: str, terms: list[str], already: list[str]) -> list[str]:
    """Terms present in ``text`` that are not in ``already``."""
    seen = list(already)
    collect_terms(text, terms, seen, 0)
    return seen[len(already):]


def scan_career_page(
    snapshot: PageSnapshot,
    current: PageSignals,
    config: SearchConfig,
) -> PageFindings:
    """Extract findings from one loaded career page. Does not mutate ``current``."""
    text = snapshot.text.lower()
    known_boards = {link.url for link in current.job_site_links}
    return PageFindings(
        listings=match_listings(snapshot.blocks, config, snapshot.url),
        new_keywords=new_terms(text, config.user_keywords, current.job_keywords),
        job_specific_keywords=new_terms(
            text, config.job_specific_keywords, current.job_specific_keywords,
        ),
        board_links=find_job_board_links(snapshot, CAREER_PAGE_LABEL, exclude=known_boards),
    )


def scan_job_board(
    snapshot: PageSnapshot,
    board: JobSiteLink,
    config: SearchConfig,
) -> tuple[list[str], list[JobListing]]:
    """User keywords on a job board page, and the listings they point to.

    Only the first MAX_BOARD_LISTINGS job cards are looked at. When keywords
    appear on the page but in none of those cards, a single generic listing
    stands in for them.
    """
    text = snapshot.text.lower()
    found = [k for k in config.user_keywords if k and k.lower() in text]
    if not found:
        return [], []

    listings: list[JobListing] = []
    for block in snapshot.blocks[:MAX_BOARD_LISTINGS]:
        card = block.text.strip()
        keywords = [k for k in config.user_keywords if k and k.lower() in card.lower()]
        if keywords:
            listings.append(JobListing(
                title=listing_title(block),
                snippet=card[:BOARD_SNIPPET_LENGTH] + "...",
                keywords=keywords,
                source=board.url,
                job_site=board.name,
            ))
    if not listings:
        listings.append(JobListing(
            title=GENERIC_BOARD_LISTING_TITLE,
            snippet=f"This site contains keywords you're looking for: {', '.join(found)}",
            keywords=found,
            source=board.url,
            job_site=board.name,
        ))
    return found, listings


class CareerPageCrawler:
    """Visits a result's job pages and returns an augmented copy of it."""

    def __init__(self, fetch: PageFetcher, timeout_s: float = 5.0) -> None:
        self._fetch = fetch
        self._timeout_s = timeout_s

    async def augment(self, signals: PageSignals, config: SearchConfig) -> PageSignals:
        """Return ``signals`` updated with career page findings.

        The input is never mutated; on total failure it is returned as-is.
        """
        if not signals.job_pages:
            return signals

        augmented = signals.model_copy(deep=True)
        perfect_match = False
        board_score = 0
        board_found = False

        for job_page in signals.job_pages[:MAX_JOB_LINKS]:
            snapshot = await self._load(job_page.url)
            if snapshot is None:
                continue
            try:
                findings = scan_career_page(snapshot, augmented, config)
            except Exception:
                logger.debug("Failed to scan career page %s", job_page.url, exc_info=True)
                continue

            if findings.listings:
                augmented.job_listings.extend(findings.listings)
                augmented.score = max(augmented.score, PERFECT_MATCH_SCORE)
                perfect_match = True

            if findings.new_keywords:
                augmented.job_keywords.extend(findings.new_keywords)
                if not perfect_match:
                    bonus = min(KEYWORD_MATCH_STEP * len(findings.new_keywords), KEYWORD_MATCH_CAP)
                    augmented.score = max(augmented.score, KEYWORD_MATCH_BASE + bonus)

            if findings.job_specific_keywords:
                for kw in findings.job_specific_keywords:
                    augmented.job_specific_keywords.append(kw)
                    if kw.lower() not in {k.lower() for k in augmented.job_keywords}:
                        augmented.job_keywords.append(kw)
                augmented.score += JOB_SPECIFIC_KEYWORD_POINTS * len(findings.job_specific_keywords)
                augmented.potential_job_match = True

            if findings.board_links:
                augmented.job_site_links.extend(findings.board_links)
                board_score += JOB_BOARD_LINK_POINTS * len(findings.board_links)
                board_found = True

            logger.debug(
                "Career page %s: %d listings, %d new keywords, %d job boards",
                job_page.url, len(findings.listings), len(findings.new_keywords),
                len(findings.board_links),
            )

        if board_found:
            augmented.score += min(board_score, JOB_BOARD_BOOST_CAP)
            augmented.score = max(augmented.score, JOB_BOARD_FLOOR)

        boards = [
            link for link in augmented.job_site_links if link.found_on == CAREER_PAGE_LABEL
        ]
        for board in boards[:MAX_JOB_BOARD_VISITS]:
            await self._visit_board(board, augmented, config)

        return augmented

    async def _visit_board(
        self, board: JobSiteLink, augmented: PageSignals, config: SearchConfig,
    ) -> None:
        snapshot = await self._load(board.url)
        if snapshot is None:
            return
        try:
            found, listings = scan_job_board(snapshot, board, config)
        except Exception:
            logger.debug("Failed to scan job board %s", board.url, exc_info=True)
            return
        if not found:
            logger.debug("No keywords on job board %s", board.name)
            return

        augmented.score = max(augmented.score, PERFECT_MATCH_SCORE)
        known = {k.lower() for k in augmented.job_keywords}
        for kw in found:
            if kw.lower() not in known:
                augmented.job_keywords.append(kw)
                known.add(kw.lower())
        augmented.job_listings.extend(listings)
        logger.debug(
            "Job board %s: %d keywords, %d listings", board.name, len(found), len(listings),
        )

    async def _load(self, url: str) -> PageSnapshot | None:
        """Fetch one page; any failure or timeout is None."""
        try:
            snapshot = await self._fetch(url, self._timeout_s)
        except Exception:
            logger.debug("Sub-page fetch failed: %s", url, exc_info=True)
            return None
        if snapshot is None:
            logger.debug("Sub-page timed out after %.1fs: %s", self._timeout_s, url)
        return snapshot
