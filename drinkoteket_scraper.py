#!/usr/bin/env python3
"""
Drinkoteket.se Recipe Scraper

Scrapes all drink recipes from drinkoteket.se and maintains three JSON stores:
- drinks.json      every successfully parsed recipe
- categories.json  category name -> slugs of the drinks filed under it
- ingredients.json sorted vocabulary of ingredient names

Uses HTML parsing (no API available - WordPress site with server-side rendering).
All three stores are rebuilt in memory and written once at the end of a run.

Site Details:
- Listing: /alla-drinkar/ paginated as /alla-drinkar/page/N/
- Recipes: /recept/<slug>/
- Rating and preparation time only appear as free text (Swedish labels)
- No authentication required
"""

import os
import sys
import json
import time
import re
import argparse
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple
from urllib.parse import urljoin

import pandas as pd
import requests
from bs4 import BeautifulSoup
from dotenv import load_dotenv


# =============================================================================
# Configuration
# =============================================================================

# Optional overrides from .env next to this script
load_dotenv(os.path.join(os.path.dirname(os.path.abspath(__file__)), '.env'))

BASE_URL = "https://drinkoteket.se"
ALL_DRINKS_URL = f"{BASE_URL}/alla-drinkar/"
DETAIL_PATH = "/recept/"
PAGINATION_PATH = "/alla-drinkar/page/"
TITLE_SUFFIX = " - Drinkoteket"

# Rate limiting
REQUEST_DELAY = float(os.environ.get('SCRAPER_REQUEST_DELAY', 0.5))  # Seconds after every request
REQUEST_TIMEOUT = 10

# Progress milestone every N processed drinks
PROGRESS_INTERVAL = 10

# `test` command scrapes this many drinks
TEST_LIMIT = 5

# Storage
DEFAULT_DATA_DIR = os.environ.get('DRINKS_DATA_DIR', 'data-immutable')
OUTPUT_DIR = "output"
STORE_FILES = {
    'drinks': 'drinks.json',
    'categories': 'categories.json',
    'ingredients': 'ingredients.json',
}

# Request headers
HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'sv-SE,sv;q=0.9,en;q=0.8',
    'Accept-Encoding': 'gzip, deflate, br',
    'Cache-Control': 'no-cache',
}


def log(message: str, end: str = "\n") -> None:
    """Print a timestamped status line."""
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] {message}", end=end, flush=True)


def print_banner(title: str) -> None:
    print("\n" + "=" * 60, flush=True)
    print(title, flush=True)
    print("=" * 60, flush=True)


# =============================================================================
# Errors
# =============================================================================

class ScraperError(Exception):
    """Base class for failures the CLI reports instead of crashing."""


class NetworkError(ScraperError):
    """Timeout, connection failure or non-success status for one URL."""

    def __init__(self, url: str, cause: Exception):
        super().__init__(f"{url}: {cause}")
        self.url = url
        self.cause = cause


class PersistenceError(ScraperError):
    """A store could not be written or read back."""

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"{path}: {cause}")
        self.path = path
        self.cause = cause


# =============================================================================
# Data Model
# =============================================================================

def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Record:
    """One parsed drink recipe."""
    name: str
    slug: str
    source_url: str
    ingredients: List[str]
    ingredient_names: List[str]
    image: Optional[str] = None
    rating: Optional[float] = None
    prep_time_minutes: Optional[int] = None
    scraped_at: str = field(default_factory=utc_now)
    # Related terms from the page; feeds the category index, not drinks.json
    categories: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'slug': self.slug,
            'sourceUrl': self.source_url,
            'image': self.image,
            'ingredients': list(self.ingredients),
            'ingredientNames': list(self.ingredient_names),
            'rating': self.rating,
            'prepTimeMinutes': self.prep_time_minutes,
            'scrapedAt': self.scraped_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Record':
        """
        Rebuild a record from drinks.json.
        Also accepts the older key names (url, ingredientSlug, prepTime).
        """
        return cls(
            name=data.get('name', ''),
            slug=data.get('slug', ''),
            source_url=data.get('sourceUrl') or data.get('url', ''),
            ingredients=list(data.get('ingredients') or []),
            ingredient_names=list(data.get('ingredientNames') or data.get('ingredientSlug') or []),
            image=data.get('image') or None,
            rating=data.get('rating'),
            prep_time_minutes=data.get('prepTimeMinutes', data.get('prepTime')),
            scraped_at=data.get('scrapedAt', ''),
        )


# =============================================================================
# HTTP Fetch
# =============================================================================

def fetch_page(url: str, session: requests.Session) -> str:
    """
    Fetch one page and return its HTML.
    Raises NetworkError on timeout, connection failure or non-2xx status.
    No retry: callers decide whether the failure is fatal.
    """
    try:
        response = session.get(url, headers=HEADERS, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise NetworkError(url, e) from e
    return response.text


# =============================================================================
# Parsing Functions
# =============================================================================

def clean_text(text: Optional[str]) -> str:
    """Collapse runs of whitespace and trim."""
    if not text:
        return ""
    return ' '.join(text.split())


def parse_rating(value: str) -> Optional[float]:
    """Parse a rating string; values outside 0-5 are discarded."""
    rating = float(value)
    if 0 <= rating <= 5:
        return rating
    return None


# Ordered by priority - the first pattern that matches decides the value,
# even when a later pattern would match something else.
RATING_PATTERNS: List[Tuple[re.Pattern, Callable]] = [
    (re.compile(r'Betyg:\s*(\d+(?:\.\d+)?)/5', re.IGNORECASE), parse_rating),
    (re.compile(r'(\d+(?:\.\d+)?)/5\s*\(\d+\s*recensioner?\)', re.IGNORECASE), parse_rating),
    (re.compile(r'Rating:\s*(\d+(?:\.\d+)?)', re.IGNORECASE), parse_rating),
]

PREP_TIME_PATTERNS: List[Tuple[re.Pattern, Callable]] = [
    (re.compile(r'Förberedelsetid:\s*(\d+)\s*minuter?', re.IGNORECASE), int),
    (re.compile(r'Tillredningstid:\s*(\d+)\s*minuter?', re.IGNORECASE), int),
    (re.compile(r'Prep time:\s*(\d+)\s*min', re.IGNORECASE), int),
]


def first_match(text: str, patterns: List[Tuple[re.Pattern, Callable]]):
    """
    Run (pattern, converter) pairs left to right and convert the first group
    of the first pattern that matches. Returns None when nothing matches.
    """
    for pattern, convert in patterns:
        match = pattern.search(text)
        if match:
            return convert(match.group(1))
    return None


def extract_slug(url: str) -> str:
    """
    Extract the drink slug from a recipe URL.
    Examples:
    - "https://drinkoteket.se/recept/mojito/" → "mojito"
    - "https://drinkoteket.se/recept/dry-martini" → "dry-martini"
    - "https://drinkoteket.se/alla-drinkar/" → ""
    """
    if not url:
        return ""
    match = re.search(r'/recept/([^/]+)/?$', url)
    return match.group(1) if match else ""


def extract_name(soup: BeautifulSoup) -> str:
    """First <h1>, falling back to the page title without the site suffix."""
    heading = soup.find('h1')
    if heading:
        name = clean_text(heading.get_text())
        if name:
            return name

    title_tag = soup.find('title')
    if title_tag:
        return clean_text(title_tag.get_text().replace(TITLE_SUFFIX, ''))
    return ""


def extract_image(soup: BeautifulSoup) -> Optional[str]:
    """Main recipe image; lazy-loaded images keep the URL in data-rstmb."""
    img = soup.find('img', attrs={'itemprop': 'image'})
    if not img:
        return None
    return img.get('src') or img.get('data-rstmb') or None


def extract_ingredients(soup: BeautifulSoup) -> Tuple[List[str], List[str]]:
    """
    Read ul.ingredients. Each <li> holds an amount <span> and a name <span>.
    Items missing either text are skipped so both lists stay aligned.
    """
    ingredients = []
    ingredient_names = []

    for li in soup.select('ul.ingredients li'):
        spans = li.find_all('span')
        if len(spans) < 2:
            continue
        amount = clean_text(spans[0].get_text())
        name = clean_text(spans[1].get_text())
        if amount and name:
            ingredients.append(amount)
            ingredient_names.append(name)

    return ingredients, ingredient_names


def extract_categories(soup: BeautifulSoup) -> List[str]:
    """Related-term links in encounter order; duplicates are kept."""
    categories = []
    for link in soup.select('.display-recipe-terms a.related-terms'):
        text = clean_text(link.get_text())
        if text:
            categories.append(text)
    return categories


def parse_drink_page(html: str, source_url: str) -> Optional[Record]:
    """
    Parse a recipe page into a Record.
    Returns None when the name or the ingredient list is missing.
    """
    soup = BeautifulSoup(html, 'html.parser')

    name = extract_name(soup)
    ingredients, ingredient_names = extract_ingredients(soup)

    if not name or not ingredients:
        log(f"  Incomplete data for {source_url}")
        return None

    page_text = soup.get_text()

    return Record(
        name=name,
        slug=extract_slug(source_url),
        source_url=source_url,
        ingredients=ingredients,
        ingredient_names=ingredient_names,
        image=extract_image(soup),
        rating=first_match(page_text, RATING_PATTERNS),
        prep_time_minutes=first_match(page_text, PREP_TIME_PATTERNS),
        categories=extract_categories(soup),
    )


def scrape_drink(url: str, session: requests.Session) -> Optional[Record]:
    """Fetch and parse one recipe page. Raises NetworkError on fetch failure."""
    html = fetch_page(url, session)
    return parse_drink_page(html, url)


# =============================================================================
# Drink Discovery (via Pagination)
# =============================================================================

@dataclass
class DiscoveryResult:
    """
    URLs found while walking the listing.
    cause is None when the walk reached the end of the listing, otherwise it
    holds the error that cut the walk short (partial result).
    """
    urls: List[str]
    pages: int = 0
    cause: Optional[NetworkError] = None

    @property
    def complete(self) -> bool:
        return self.cause is None


def listing_page_url(start_url: str, page: int) -> str:
    if page == 1:
        return start_url
    return f"{start_url}page/{page}/"


def parse_listing_page(html: str, page_url: str, page: int) -> Tuple[List[str], bool]:
    """
    Parse one listing page.
    Returns (absolute drink URLs in page order, whether a next-page link exists).
    """
    soup = BeautifulSoup(html, 'html.parser')

    urls = []
    for link in soup.select(f'h3 > a[href*="{DETAIL_PATH}"]'):
        href = link.get('href', '')
        if href:
            urls.append(urljoin(page_url, href))

    has_next = False
    for link in soup.select(f'a[href*="{PAGINATION_PATH}"]'):
        text = link.get_text().strip()
        if '»' in text or text == str(page + 1):
            has_next = True
            break

    return urls, has_next


def discover_drink_urls(session: requests.Session, start_url: str = ALL_DRINKS_URL,
                        delay: float = REQUEST_DELAY) -> DiscoveryResult:
    """
    Walk the paginated listing and collect unique recipe URLs in encounter order.
    Stops on a page without recipe links, on a page without a next-page link,
    or on a network error (returned as a partial result).
    """
    print_banner("PHASE 1: Discovering drinks via pagination")

    found: Dict[str, None] = {}  # insertion-ordered set
    page = 1
    pages_with_drinks = 0
    cause = None

    while True:
        page_url = listing_page_url(start_url, page)
        log(f"Fetching page {page}...", end=" ")

        try:
            html = fetch_page(page_url, session)
        except NetworkError as e:
            print(f"error - stopping early: {e.cause}", flush=True)
            cause = e
            break

        urls, has_next = parse_listing_page(html, page_url, page)
        if not urls:
            print("no drinks found - done!", flush=True)
            break

        pages_with_drinks += 1
        new_count = 0
        for url in urls:
            if url not in found:
                found[url] = None
                new_count += 1
        print(f"found {len(urls)} drinks, {new_count} new (total: {len(found)})", flush=True)

        if not has_next:
            print("  No next page link - done!", flush=True)
            break

        page += 1
        time.sleep(delay)

    result = DiscoveryResult(urls=list(found), pages=pages_with_drinks, cause=cause)
    if result.complete:
        print(f"\nDiscovered {len(result.urls)} unique drinks across {result.pages} pages", flush=True)
    else:
        print(f"\nWARNING: Discovery incomplete - {len(result.urls)} drinks found "
              f"before failure on page {page}", flush=True)
    return result


# =============================================================================
# Global Indexes
# =============================================================================

class DrinkIndex:
    """
    In-memory drinks, category index and ingredient vocabulary for one run.
    Owned by the scraper run that builds it.
    """

    def __init__(self):
        self.drinks: List[Record] = []
        self.categories: Dict[str, List[str]] = {}
        self.ingredients: Set[str] = set()

    def absorb(self, record: Record, categories: Optional[List[str]] = None) -> None:
        """
        Add a parsed record. Category membership and vocabulary have set
        semantics; the record itself is always appended.
        """
        if categories is None:
            categories = record.categories

        for category in categories:
            members = self.categories.setdefault(category, [])
            if record.slug not in members:
                members.append(record.slug)

        self.ingredients.update(record.ingredient_names)
        self.drinks.append(record)

    @property
    def category_count(self) -> int:
        return len(self.categories)

    @property
    def ingredient_count(self) -> int:
        return len(self.ingredients)


# =============================================================================
# JSON Storage
# =============================================================================

def current_umask() -> int:
    """Read the process umask (os.umask can only be read by setting it)."""
    mask = os.umask(0)
    os.umask(mask)
    return mask


EMPTY_STORES = {
    'drinks': list,
    'categories': dict,
    'ingredients': set,
}


class DataStore:
    """
    Reads and writes the three JSON stores in data_dir.
    Each save replaces its file completely via a temp file + os.replace.
    """

    def __init__(self, data_dir: str = None):
        self.data_dir = data_dir or DEFAULT_DATA_DIR

    def path_for(self, kind: str) -> str:
        if kind not in STORE_FILES:
            raise ValueError(f"Unknown store: {kind}")
        return os.path.join(self.data_dir, STORE_FILES[kind])

    def ensure_data_dir(self) -> None:
        """Create the data directory if needed."""
        os.makedirs(self.data_dir, exist_ok=True)
        print(f"Data directory: {self.data_dir}", flush=True)

    def _write_json(self, kind: str, data) -> str:
        path = self.path_for(kind)
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f".{STORE_FILES[kind]}.", suffix='.tmp',
                                            dir=self.data_dir)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                # mkstemp creates 0600; give the file the mode a plain open() would
                os.chmod(tmp_path, 0o666 & ~current_umask())
                os.replace(tmp_path, path)
            except Exception:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(path, e) from e
        return path

    def save_ingredients(self, ingredients: Set[str]) -> str:
        names = sorted(ingredients)
        path = self._write_json('ingredients', {
            'ingredients': names,
            'count': len(names),
            'lastUpdated': utc_now(),
        })
        print(f"  Saved {len(names)} unique ingredients to {path}", flush=True)
        return path

    def save_categories(self, categories: Dict[str, List[str]]) -> str:
        path = self._write_json('categories', categories)
        print(f"  Saved {len(categories)} categories to {path}", flush=True)
        return path

    def save_drinks(self, drinks: List[Record]) -> str:
        path = self._write_json('drinks', [drink.to_dict() for drink in drinks])
        print(f"  Saved {len(drinks)} drinks to {path}", flush=True)
        return path

    def save_all(self, index: DrinkIndex) -> None:
        """Write ingredients, then categories, then drinks."""
        self.save_ingredients(index.ingredients)
        self.save_categories(index.categories)
        self.save_drinks(index.drinks)

    def load(self, kind: str):
        """
        Load one store. A missing file gives an empty store;
        unreadable or malformed files raise PersistenceError.
        """
        path = self.path_for(kind)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            print(f"No existing {STORE_FILES[kind]} found, starting fresh", flush=True)
            return EMPTY_STORES[kind]()
        except (OSError, ValueError) as e:
            raise PersistenceError(path, e) from e

        expected = list if kind == 'drinks' else dict
        if not isinstance(data, expected):
            raise PersistenceError(path, ValueError(f"expected a JSON {expected.__name__}"))

        if kind == 'ingredients':
            names = data.get('ingredients', [])
            if not isinstance(names, list):
                raise PersistenceError(path, ValueError("expected 'ingredients' to be a JSON list"))
            return set(names)
        return data

    def load_drinks(self) -> List[Record]:
        return [Record.from_dict(item) for item in self.load('drinks')]


# =============================================================================
# Progress Tracking
# =============================================================================

class ProgressTracker:
    """Track and display progress with ETA and periodic milestones."""

    def __init__(self, total: int, milestone_every: int = PROGRESS_INTERVAL):
        self.total = total
        self.milestone_every = milestone_every
        self.completed = 0
        self.failed = 0
        self.start_time = time.time()

    @property
    def succeeded(self) -> int:
        return self.completed - self.failed

    def update(self, success: bool = True, item_name: str = "", status: str = None):
        """Update progress and print status."""
        self.completed += 1
        if not success:
            self.failed += 1

        elapsed = time.time() - self.start_time
        rate = self.completed / elapsed if elapsed > 0 else 0
        remaining = self.total - self.completed
        eta_seconds = remaining / rate if rate > 0 else 0
        eta = str(timedelta(seconds=int(eta_seconds)))

        pct = (self.completed / self.total) * 100 if self.total else 100.0
        if status is None:
            status = "OK" if success else "ERROR"

        display_name = item_name[:40] if len(item_name) > 40 else item_name

        log(f"[{self.completed}/{self.total}] ({pct:5.1f}%) "
            f"{display_name:<40} [{status}] "
            f"| {rate:.1f}/s | ETA: {eta}")

        if self.completed % self.milestone_every == 0:
            print(f"\n>>> Progress: {self.completed}/{self.total} "
                  f"({self.succeeded} successful, {self.failed} failed) <<<\n", flush=True)

    def summary(self):
        """Print final summary."""
        elapsed = time.time() - self.start_time
        elapsed_str = str(timedelta(seconds=int(elapsed)))
        print(f"\n{'='*60}")
        print(f"Completed: {self.succeeded}/{self.total} "
              f"({self.failed} failed) in {elapsed_str}")
        print(f"{'='*60}", flush=True)


# =============================================================================
# Scrape Orchestration
# =============================================================================

class RunState(Enum):
    INIT = "init"
    DISCOVERING = "discovering"
    FETCHING = "fetching"
    PERSISTING = "persisting"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class RunSummary:
    """Totals reported at the end of a run."""
    state: RunState = RunState.INIT
    discovered: int = 0
    discovery_complete: bool = True
    successes: int = 0
    failures: int = 0
    ingredient_count: int = 0
    category_count: int = 0
    # update mode only
    known: int = 0
    new_urls: List[str] = field(default_factory=list)

    def print_report(self):
        print_banner("SCRAPING COMPLETE" if self.state == RunState.DONE else "SCRAPING ABORTED")
        print(f"Drinks discovered:          {self.discovered}"
              f"{'' if self.discovery_complete else ' (partial)'}")
        print(f"Successfully scraped:       {self.successes}")
        print(f"Failed to scrape:           {self.failures}")
        print(f"Total unique ingredients:   {self.ingredient_count}")
        print(f"Total categories:           {self.category_count}", flush=True)


class DrinkoteketScraper:
    """
    Runs discovery, the fetch/parse loop and persistence in sequence.

    accept_partial controls what happens when discovery is cut short by a
    network error: True keeps the URLs found so far, False aborts the run.
    """

    def __init__(self, store: DataStore = None, session: requests.Session = None,
                 delay: float = REQUEST_DELAY, start_url: str = ALL_DRINKS_URL,
                 accept_partial: bool = True):
        self.store = store or DataStore()
        self.session = session or requests.Session()
        self.delay = delay
        self.start_url = start_url
        self.accept_partial = accept_partial
        self.state = RunState.INIT
        self.index = DrinkIndex()

    def _discover(self, summary: RunSummary) -> List[str]:
        """Run discovery; moves to ABORTED and returns [] when nothing usable was found."""
        self.state = RunState.DISCOVERING
        result = discover_drink_urls(self.session, self.start_url, self.delay)
        summary.discovered = len(result.urls)
        summary.discovery_complete = result.complete

        if not result.complete:
            if not self.accept_partial:
                print("Discovery was partial and --strict-discovery is set. Aborting.", flush=True)
                self.state = RunState.ABORTED
                return []
            print(f"Continuing with {len(result.urls)} drinks from partial discovery", flush=True)

        if not result.urls:
            print("No drink URLs found. Aborting.", flush=True)
            self.state = RunState.ABORTED
            return []

        return result.urls

    def run_all(self, limit: Optional[int] = None) -> RunSummary:
        """
        Full scrape: rebuild all three stores from scratch and write them once.
        limit caps the number of recipe pages processed.
        """
        self.state = RunState.INIT
        self.store.ensure_data_dir()
        self.index = DrinkIndex()
        summary = RunSummary()

        urls = self._discover(summary)
        if self.state == RunState.ABORTED:
            summary.state = self.state
            return summary

        to_scrape = urls[:limit] if limit is not None else urls

        self.state = RunState.FETCHING
        print_banner(f"PHASE 2: Scraping {len(to_scrape)} drink pages")
        progress = ProgressTracker(len(to_scrape))

        for url in to_scrape:
            record = None
            status = None
            try:
                record = scrape_drink(url, self.session)
                if record is None:
                    status = "INCOMPLETE"
            except NetworkError as e:
                print(f"    Error fetching {url}: {e.cause}", flush=True)
            except Exception as e:
                print(f"    Error scraping {url}: {e}", flush=True)

            if record is not None:
                self.index.absorb(record)
                summary.successes += 1
                progress.update(success=True, item_name=record.name)
            else:
                summary.failures += 1
                progress.update(success=False, item_name=extract_slug(url) or url, status=status)

            # Rate limiting
            time.sleep(self.delay)

        progress.summary()

        self.state = RunState.PERSISTING
        print_banner("PHASE 3: Saving results")
        self.store.save_all(self.index)

        self.state = RunState.DONE
        summary.state = self.state
        summary.ingredient_count = self.index.ingredient_count
        summary.category_count = self.index.category_count
        return summary

    def update(self) -> RunSummary:
        """
        Compare the live listing with the persisted stores and report new drinks.

        Does not fetch recipe pages or write anything: how new drinks should be
        merged into existing stores is not decided yet, so this stops at the
        comparison. Use run-all to refresh the stores.
        """
        self.state = RunState.INIT
        summary = RunSummary()

        existing = self.store.load_drinks()
        categories = self.store.load('categories')
        ingredients = self.store.load('ingredients')
        print(f"Existing stores: {len(existing)} drinks, {len(categories)} categories, "
              f"{len(ingredients)} ingredients", flush=True)

        urls = self._discover(summary)
        if self.state == RunState.ABORTED:
            summary.state = self.state
            return summary

        known_slugs = {drink.slug for drink in existing}
        summary.new_urls = [url for url in urls if extract_slug(url) not in known_slugs]
        summary.known = len(urls) - len(summary.new_urls)
        summary.ingredient_count = len(ingredients)
        summary.category_count = len(categories)

        print_banner("UPDATE CHECK")
        print(f"Already stored: {summary.known}", flush=True)
        print(f"New on site:    {len(summary.new_urls)}", flush=True)
        for url in summary.new_urls[:20]:
            print(f"  + {url}", flush=True)
        if len(summary.new_urls) > 20:
            print(f"  ... and {len(summary.new_urls) - 20} more", flush=True)
        print("No stores were modified. Run 'run-all' to rebuild them.", flush=True)

        self.state = RunState.DONE
        summary.state = self.state
        return summary


# =============================================================================
# CSV Export
# =============================================================================

DRINK_CSV_COLUMNS = [
    'name', 'slug', 'rating', 'prepTimeMinutes', 'ingredients', 'ingredientNames',
    'image', 'sourceUrl', 'scrapedAt',
]


def save_to_csv(rows: List[Dict], prefix: str, output_dir: str = OUTPUT_DIR,
                priority_cols: List[str] = None) -> str:
    """Save rows to a timestamped CSV file. Returns the path, or "" for no rows."""
    if not rows:
        print("No data to save", flush=True)
        return ""

    os.makedirs(output_dir, exist_ok=True)
    df = pd.DataFrame(rows)

    priority_cols = priority_cols or []
    other_cols = [c for c in df.columns if c not in priority_cols]
    ordered_cols = [c for c in priority_cols if c in df.columns] + other_cols
    df = df[ordered_cols]

    timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
    filepath = os.path.join(output_dir, f"{prefix}_{timestamp}.csv")

    df.to_csv(filepath, index=False)
    print(f"\nSaved {len(rows)} rows to: {filepath}", flush=True)
    return filepath


def export_drinks(store: DataStore, output_dir: str = OUTPUT_DIR) -> str:
    """Flatten drinks.json into a CSV; list fields are joined with '; '."""
    rows = []
    for drink in store.load_drinks():
        row = drink.to_dict()
        row['ingredients'] = '; '.join(drink.ingredients)
        row['ingredientNames'] = '; '.join(drink.ingredient_names)
        rows.append(row)
    return save_to_csv(rows, 'drinkoteket_drinks', output_dir, DRINK_CSV_COLUMNS)


def export_discovered(result: DiscoveryResult, output_dir: str = OUTPUT_DIR) -> str:
    rows = [{'slug': extract_slug(url), 'url': url} for url in result.urls]
    return save_to_csv(rows, 'drinkoteket_discovered', output_dir, ['slug', 'url'])


# =============================================================================
# Command Line
# =============================================================================

def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"limit must be a number, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError("limit must be at least 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='drinkoteket_scraper',
        description='Drinkoteket.se Recipe Scraper',
        epilog='The scraper waits between requests; a full scrape can take hours.',
    )
    parser.add_argument('--data-dir', default=DEFAULT_DATA_DIR,
                        help=f'Directory for the JSON stores (default: {DEFAULT_DATA_DIR})')
    parser.add_argument('--delay', type=float, default=REQUEST_DELAY,
                        help=f'Seconds to wait after each request (default: {REQUEST_DELAY})')
    parser.add_argument('--strict-discovery', action='store_true',
                        help='Abort instead of continuing when discovery is cut short by a network error')

    commands = parser.add_subparsers(dest='command', metavar='command')
    run_all = commands.add_parser('run-all', help='Scrape all drinks (optionally limit number)')
    run_all.add_argument('limit', nargs='?', type=positive_int, default=None,
                         help='Maximum drink pages to scrape')
    commands.add_parser('update', help='Report drinks on the site that are not stored yet')
    commands.add_parser('test', help=f'Scrape just {TEST_LIMIT} drinks for testing')
    commands.add_parser('discover', help='Only discover drink URLs and save them to CSV')
    commands.add_parser('export', help='Export drinks.json to CSV')
    commands.add_parser('help', help='Show this help message')
    return parser


def main(argv: List[str] = None) -> int:
    """Main entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, 'help'):
        parser.print_help()
        return 0

    store = DataStore(args.data_dir)

    print("=" * 60, flush=True)
    print("Drinkoteket.se Recipe Scraper", flush=True)
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", flush=True)
    print("=" * 60, flush=True)

    try:
        if args.command == 'export':
            return 0 if export_drinks(store) else 1

        # Session for connection pooling
        session = requests.Session()

        if args.command == 'discover':
            result = discover_drink_urls(session, delay=args.delay)
            if not result.urls:
                print("No drinks discovered. Exiting.", flush=True)
                return 1
            export_discovered(result)
            return 0

        scraper = DrinkoteketScraper(store, session, delay=args.delay,
                                     accept_partial=not args.strict_discovery)
        if args.command == 'run-all':
            summary = scraper.run_all(args.limit)
        elif args.command == 'test':
            summary = scraper.run_all(TEST_LIMIT)
        else:
            summary = scraper.update()
    except ScraperError as e:
        print(f"\nOperation failed: {e}", flush=True)
        return 1

    summary.print_report()
    return 0 if summary.state == RunState.DONE else 1


if __name__ == "__main__":
    sys.exit(main())
