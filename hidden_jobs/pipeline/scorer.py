"""Rule-based job-signal scoring for a single page.

Pure functions, no browser dependency. The same keyword helper drives every
call site (main page and career pages) with different keyword sets and
weights.

Main page rules, applied in order (additive):
  1. website keyword in text       +5 per distinct term
  2. user keyword in text          +20 per distinct term
  3. any job link                  +30 flat; first 3 become job pages
  4. contact email                 +10 flat
  5. contact link (no email yet)   +5 flat
  6. floor: any job signal         score >= 1
"""

import logging
import re
from urllib.parse import urljoin, urlparse

from hidden_jobs.core.config import SearchConfig
from hidden_jobs.core.schemas import (
    ContentBlock,
    JobListing,
    JobPage,
    JobSiteLink,
    Link,
    PageSignals,
    PageSnapshot,
)

logger = logging.getLogger(__name__)

# --- Weights ---
WEBSITE_KEYWORD_POINTS = 5
USER_KEYWORD_POINTS = 20
JOB_LINK_POINTS = 30
CONTACT_EMAIL_POINTS = 10
CONTACT_PAGE_POINTS = 5
JOB_SPECIFIC_KEYWORD_POINTS = 40
JOB_BOARD_LINK_POINTS = 25
JOB_BOARD_BOOST_CAP = 50
JOB_BOARD_FLOOR = 75
PERFECT_MATCH_SCORE = 100
KEYWORD_MATCH_BASE = 50
KEYWORD_MATCH_STEP = 15
KEYWORD_MATCH_CAP = 30

# --- Limits ---
MAX_JOB_LINKS = 3
MAX_LISTING_BLOCKS = 5
LISTING_MIN_LENGTH = 100
SNIPPET_LENGTH = 200
MAX_JOB_BOARD_VISITS = 2
MAX_BOARD_LISTINGS = 3
BOARD_SNIPPET_LENGTH = 150

DEFAULT_JOB_PAGE_TITLE = "Job/Career Page"
DEFAULT_LISTING_TITLE = "Job Opening"
GENERIC_BOARD_LISTING_TITLE = "Job Opportunity"

JOB_PATH_FRAGMENTS: tuple[str, ...] = (
    "/jobs", "/careers", "/career", "/join-us", "/join", "/work-with-us",
    "/vacancy", "/vacancies", "/positions", "/opportunities", "/about/careers",
    "/about/jobs", "/company/careers", "/company/jobs", "/jobs-and-careers",
)

# (domain, display name); matched by substring of the absolute URL.
JOB_BOARDS: tuple[tuple[str, str], ...] = (
    ("bamboohr.com", "BambooHR"),
    ("lever.co", "Lever"),
    ("greenhouse.io", "Greenhouse"),
    ("workday.com", "Workday"),
    ("myworkdayjobs.com", "Workday Jobs"),
    ("taleo.net", "Taleo"),
    ("smartrecruiters.com", "SmartRecruiters"),
    ("jobvite.com", "Jobvite"),
    ("applytojob.com", "ApplyToJob"),
    ("recruitee.com", "Recruitee"),
    ("applicantstack.com", "ApplicantStack"),
)

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
LISTING_TITLE_PATTERN = re.compile(
    r"(job|position|role|vacancy|opening):\s*([^\n.]+)", re.IGNORECASE,
)


def collect_terms(text: str, terms: list[str], found: list[str], points: int) -> int:
    """Append each term present in ``text`` and not yet in ``found``.

    Matching is a case-insensitive substring test; repetitions in the text
    do not count twice. Returns ``points`` times the number of new terms.
    """
    haystack = text.lower()
    known = {f.lower() for f in found}
    added = 0
    for term in terms:
        needle = term.lower()
        if needle and needle in haystack and needle not in known:
            found.append(term)
            known.add(needle)
            added += 1
    return added * points


def resolve_url(base: str, href: str) -> str | None:
    """Resolve ``href`` against the document URL. None for non-web links."""
    href = href.strip()
    if not href:
        return None
    absolute = urljoin(base, href)
    if urlparse(absolute).scheme not in ("http", "https"):
        return None
    return absolute


def is_job_link(link: Link, website_keywords: list[str], base_url: str) -> bool:
    """Anchor text mentions a job term, or the resolved path looks like a job path."""
    text = link.text.lower()
    if any(term.lower() in text for term in website_keywords if term):
        return True
    url = resolve_url(base_url, link.href)
    if url is None:
        return False
    path = urlparse(url.lower()).path
    return any(fragment in path for fragment in JOB_PATH_FRAGMENTS)


def is_contact_link(link: Link) -> bool:
    return "contact" in link.text.lower() or "/contact" in link.href.lower()


def find_email(text: str) -> str | None:
    match = EMAIL_PATTERN.search(text)
    return match.group(0) if match else None


def job_board_name(url: str) -> str | None:
    """Return the job board's display name if ``url`` points at a known board."""
    for domain, name in JOB_BOARDS:
        if domain in url:
            return name
    return None


def find_job_board_links(
    snapshot: PageSnapshot,
    found_on: str,
    exclude: set[str] | None = None,
) -> list[JobSiteLink]:
    """Distinct links (by absolute URL) to known job boards on a page."""
    seen = set(exclude or ())
    links: list[JobSiteLink] = []
    for link in snapshot.links:
        url = resolve_url(snapshot.url, link.href)
        if url is None or url in seen:
            continue
        name = job_board_name(url)
        if name is None:
            continue
        seen.add(url)
        links.append(JobSiteLink(url=url, name=name, found_on=found_on))
    return links


def listing_title(block: ContentBlock) -> str:
    """Heading inside the block, else a ``Position: ...`` style match, else a label."""
    if block.heading.strip():
        return block.heading.strip()
    match = LISTING_TITLE_PATTERN.search(block.text)
    if match and match.group(2).strip():
        return match.group(2).strip()
    return DEFAULT_LISTING_TITLE


def match_listings(
    blocks: list[ContentBlock],
    config: SearchConfig,
    source: str,
) -> list[JobListing]:
    """Turn qualifying content blocks into job listings.

    A block qualifies if it is longer than LISTING_MIN_LENGTH and mentions
    both a website keyword and a user keyword. At most MAX_LISTING_BLOCKS
    qualifying blocks are processed. Nested elements that repeat an already
    seen block's text are skipped.
    """
    listings: list[JobListing] = []
    seen: set[str] = set()
    processed = 0
    for block in blocks:
        if processed >= MAX_LISTING_BLOCKS:
            break
        text = block.text.strip()
        if len(text) <= LISTING_MIN_LENGTH:
            continue
        normalized = " ".join(text.lower().split())
        if normalized in seen:
            continue
        seen.add(normalized)
        lowered = text.lower()
        if not any(t.lower() in lowered for t in config.website_keywords):
            continue
        keywords = [k for k in config.user_keywords if k.lower() in lowered]
        if not keywords:
            continue
        processed += 1
        listings.append(JobListing(
            title=listing_title(block),
            snippet=text[:SNIPPET_LENGTH] + "...",
            keywords=keywords,
            source=source,
        ))
    return listings


def score_page(snapshot: PageSnapshot, config: SearchConfig) -> PageSignals:
    """Apply the main page rules to one snapshot."""
    signals = PageSignals()
    text = snapshot.text.lower()

    # Rules 1-2: keyword terms
    signals.score += collect_terms(
        text, config.website_keywords, signals.job_keywords, WEBSITE_KEYWORD_POINTS,
    )
    signals.score += collect_terms(
        text, config.user_keywords, signals.job_keywords, USER_KEYWORD_POINTS,
    )

    # Rule 3: job links (flat bonus, first few kept for the career page crawl)
    job_links = [
        link for link in snapshot.links
        if is_job_link(link, config.website_keywords, snapshot.url)
    ]
    if job_links:
        signals.score += JOB_LINK_POINTS
        for link in job_links[:MAX_JOB_LINKS]:
            url = resolve_url(snapshot.url, link.href)
            if url is None:
                continue
            title = link.text.strip() or DEFAULT_JOB_PAGE_TITLE
            signals.job_pages.append(JobPage(url=url, title=title))
            signals.career_page = url

    # Rule 4: contact email
    email = find_email(text)
    if email:
        signals.contact_email = email
        signals.score += CONTACT_EMAIL_POINTS

    # Job boards linked straight from the main page are recorded, not scored
    signals.job_site_links = find_job_board_links(snapshot, "Main Page")

    # Rule 5: contact page
    if signals.contact_email is None and signals.contact_page is None:
        for link in snapshot.links:
            if not is_contact_link(link):
                continue
            url = resolve_url(snapshot.url, link.href)
            if url is not None:
                signals.contact_page = url
                signals.score += CONTACT_PAGE_POINTS
            break

    if signals.contact_page is None and signals.job_pages:
        signals.contact_page = signals.job_pages[0].url

    # Rule 6: floor
    if signals.job_keywords or signals.job_listings or signals.job_pages:
        signals.score = max(signals.score, 1)

    logger.debug(
        "Scored %s: %d (%d keywords, %d job pages)",
        snapshot.url, signals.score, len(signals.job_keywords), len(signals.job_pages),
    )
    return signals
