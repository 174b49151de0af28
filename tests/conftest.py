"""
Pytest fixtures and test infrastructure for scraper tests.
No test touches the network: pages are served by FakeSession.
"""
import pytest
import os
import sys

import requests

# Add repository root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

LISTING_URL = "https://drinkoteket.se/alla-drinkar/"


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, url, text='', status_code=200):
        self.url = url
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}", response=self)


class FakeSession:
    """
    Serves canned pages by URL.
    A page value may be HTML, an int status code, or an exception to raise.
    Unknown URLs answer 404.
    """

    def __init__(self, pages):
        self.pages = pages
        self.requested = []
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.requested.append(url)
        self.calls.append({'url': url, 'headers': headers, 'timeout': timeout})
        page = self.pages.get(url, 404)
        if isinstance(page, Exception):
            raise page
        if isinstance(page, int):
            return FakeResponse(url, '', page)
        return FakeResponse(url, page)


def build_listing_html(hrefs, next_page=None, next_text='»'):
    """Listing page with one h3 > a per drink and an optional next-page link."""
    cards = ''.join(
        f'<article class="drink"><h3><a href="{href}">{href}</a></h3></article>'
        for href in hrefs
    )
    nav = ''
    if next_page:
        nav = f'<a class="page-numbers" href="{LISTING_URL}page/{next_page}/">{next_text}</a>'
    return f'<html><body><main>{cards}</main><nav>{nav}</nav></body></html>'


def build_drink_html(name='Mojito',
                     ingredients=(('4 cl', 'Ljus rom'), ('2 cl', 'Limejuice')),
                     categories=(),
                     extra_text='',
                     title=None,
                     image_attrs='src="https://drinkoteket.se/img/mojito.jpg"'):
    """Recipe page shaped like a drinkoteket.se detail page."""
    heading = f'<h1>{name}</h1>' if name is not None else ''
    title_tag = f'<title>{title}</title>' if title else ''
    image = f'<img itemprop="image" {image_attrs}>' if image_attrs else ''
    ingredient_list = ''
    if ingredients is not None:
        items = ''.join(
            f'<li><span class="amount">{amount}</span> <span class="name">{ingredient}</span></li>'
            for amount, ingredient in ingredients
        )
        ingredient_list = f'<ul class="ingredients">{items}</ul>'
    terms = ''.join(
        f'<a class="related-terms" href="/kategori/{c.lower()}/">{c}</a>' for c in categories
    )
    return (
        f'<html><head>{title_tag}</head><body>'
        f'{heading}{image}{ingredient_list}'
        f'<div class="display-recipe-terms">{terms}</div>'
        f'<p>{extra_text}</p>'
        f'</body></html>'
    )


@pytest.fixture
def fake_session():
    """Factory: fake_session({url: page, ...}) -> FakeSession."""
    return FakeSession


@pytest.fixture
def listing_html():
    return build_listing_html


@pytest.fixture
def drink_html():
    return build_drink_html


@pytest.fixture
def data_store(tmp_path):
    """DataStore writing into a temporary directory."""
    from drinkoteket_scraper import DataStore

    return DataStore(str(tmp_path / "data"))
