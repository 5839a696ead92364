"""Page builders shared by the unit tests."""

from rulecrawler.models import Page, CrawlerRequest

LIST_URL = "http://example.com/list"


def make_list_html(titles):
    items = "".join(
        f'<li class="item"><span class="title">{t}</span><a href="/item/{i}">more</a></li>'
        for i, t in enumerate(titles)
    )
    return f'<html><body><div class="logged-in">me</div><ul class="list">{items}</ul></body></html>'


def make_page(raw_text, url=LIST_URL, **extras):
    return Page(CrawlerRequest(url, extras=extras), raw_text)
