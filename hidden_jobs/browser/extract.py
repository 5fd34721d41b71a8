"""In-page extraction script and the snapshot helper that runs it.

The script only collects raw material (text, anchors, candidate listing
blocks). All scoring happens in Python on the returned PageSnapshot.
"""

import logging
from typing import Any

from hidden_jobs.core.schemas import PageSnapshot

logger = logging.getLogger(__name__)

# Regions that may hold a single job listing, in document order.
LISTING_BLOCK_SELECTORS: tuple[str, ...] = (
    "article",
    "section",
    "li",
    "tr",
    "div.job",
    "div.position",
    '[class*="job"]',
    '[class*="position"]',
    '[class*="opening"]',
    '[class*="career"]',
    '[data-test="job-card"]',
    '[data-component="JobCard"]',
)

HEADING_SELECTOR = "h1, h2, h3, h4, h5, h6, strong"

# Shorter blocks are skipped in-page. Job board cards can be short; career page
# listings apply their own, longer minimum.
MIN_BLOCK_LENGTH = 20
MAX_BLOCKS = 200

SNAPSHOT_JS = """
([blockSelector, headingSelector, minLength, maxBlocks]) => {
  const body = document.body;
  const text = body ? (body.innerText || body.textContent || '') : '';
  const links = Array.from(document.querySelectorAll('a')).map(a => ({
    href: a.getAttribute('href') || '',
    text: (a.textContent || '').trim(),
  }));
  const blocks = [];
  const seen = new Set();
  for (const el of document.querySelectorAll(blockSelector)) {
    if (blocks.length >= maxBlocks) break;
    const blockText = (el.textContent || '').trim();
    if (blockText.length <= minLength) continue;
    // Wrappers matched by several selectors repeat the same listing text.
    const key = blockText.replace(/\\s+/g, ' ').toLowerCase();
    if (seen.has(key)) continue;
    seen.add(key);
    const heading = el.querySelector(headingSelector);
    blocks.push({
      text: blockText,
      heading: heading ? (heading.textContent || '').trim() : '',
    });
  }
  return {url: window.location.href, title: document.title || '', text, links, blocks};
}
"""


async def snapshot_page(page: Any) -> PageSnapshot:
    """Evaluate the extraction script on a loaded page.

    Raises if the script fails or returns something that does not validate;
    callers decide how to degrade.
    """
    raw = await page.evaluate(
        SNAPSHOT_JS,
        [", ".join(LISTING_BLOCK_SELECTORS), HEADING_SELECTOR, MIN_BLOCK_LENGTH, MAX_BLOCKS],
    )
    snapshot = PageSnapshot.model_validate(raw)
    logger.debug(
        "Snapshot %s: %d chars, %d links, %d blocks",
        snapshot.url, len(snapshot.text), len(snapshot.links), len(snapshot.blocks),
    )
    return snapshot
