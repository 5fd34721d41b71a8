"""Core data models for the hidden jobs crawler."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

MS_PER_DAY = 24 * 60 * 60 * 1000


class CandidateSite(BaseModel):
    """A business website awaiting a crawl. Produced by candidate discovery."""

    model_config = ConfigDict(frozen=True)

    business_name: str = "Unknown Business"
    address: str = ""
    website: str

    @field_validator("website")
    @classmethod
    def website_not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "website must not be empty"
            raise ValueError(msg)
        return v.strip()


class Link(BaseModel):
    """An anchor as found in the document: raw href plus anchor text."""

    model_config = ConfigDict(frozen=True)

    href: str = ""
    text: str = ""


class ContentBlock(BaseModel):
    """A DOM region that may hold a job listing."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    heading: str = ""


class PageSnapshot(BaseModel):
    """Everything extracted from one loaded page."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str = ""
    text: str = ""
    links: list[Link] = Field(default_factory=list)
    blocks: list[ContentBlock] = Field(default_factory=list)


class JobPage(BaseModel):
    url: str
    title: str = "Job/Career Page"


class JobListing(BaseModel):
    title: str
    snippet: str
    keywords: list[str] = Field(default_factory=list)
    source: str
    job_site: str | None = None


class JobSiteLink(BaseModel):
    url: str
    name: str
    found_on: str


class PageSignals(BaseModel):
    """Signals extracted from a website, without business metadata.

    Mutated only by the scorer that builds it and by the career page
    augmentation, which works on a copy.
    """

    job_keywords: list[str] = Field(default_factory=list)
    job_specific_keywords: list[str] = Field(default_factory=list)
    contact_email: str | None = None
    contact_page: str | None = None
    career_page: str | None = None
    job_pages: list[JobPage] = Field(default_factory=list)
    job_listings: list[JobListing] = Field(default_factory=list)
    job_site_links: list[JobSiteLink] = Field(default_factory=list)
    score: int = 0
    potential_job_match: bool = False


class CrawlResult(BaseModel):
    """Final outcome of crawling one candidate site.

    ``score`` is None for timed-out results (no extraction ran).
    """

    business_name: str = "Unknown Business"
    address: str = ""
    website: str
    job_keywords: list[str] = Field(default_factory=list)
    job_specific_keywords: list[str] = Field(default_factory=list)
    contact_email: str | None = None
    contact_page: str | None = None
    career_page: str | None = None
    job_pages: list[JobPage] = Field(default_factory=list)
    job_listings: list[JobListing] = Field(default_factory=list)
    job_site_links: list[JobSiteLink] = Field(default_factory=list)
    score: int | None = None
    potential_job_match: bool = False
    timed_out: bool = False
    last_checked: str = Field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def from_signals(cls, site: CandidateSite, signals: PageSignals) -> "CrawlResult":
        return cls(
            business_name=site.business_name,
            address=site.address,
            website=site.website,
            **signals.model_dump(),
        )

    @classmethod
    def timeout(cls, site: CandidateSite) -> "CrawlResult":
        return cls(
            business_name=site.business_name,
            address=site.address,
            website=site.website,
            timed_out=True,
        )

    @property
    def has_signals(self) -> bool:
        """True if this result is worth reporting as a discrete find."""
        return bool(
            self.job_keywords
            or self.contact_email
            or self.contact_page
            or self.job_listings
        )


class CacheEntry(BaseModel):
    """A cached crawl result. Valid while now < timestamp + ttl."""

    url: str
    timestamp: int
    data: CrawlResult

    def is_valid(self, now_ms: int, ttl_days: int) -> bool:
        return now_ms < self.timestamp + ttl_days * MS_PER_DAY
