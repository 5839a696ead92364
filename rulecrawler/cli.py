"""
Command line interface
Run page rules against a saved or freshly fetched page
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import requests

from .config_manager import RuleStore
from .listener import LoggingPageParseListener
from .models import Page, CrawlerRequest, COOKIE_IDS_EXTRA
from .processor import GenericPageProcessor
from .captcha import CaptchaIdentificationProxy
from .cookie_store import CookieStore
from .errors import RuleCrawlerError
from .settings import Settings, SiteConfig
from .utils import URLUtils

logger = logging.getLogger(__name__)


def load_rule_store(rules_path: str) -> RuleStore:
    path = Path(rules_path)
    store = RuleStore(path if path.is_dir() else None)
    if path.is_dir():
        store.load_directory()
    else:
        store.load_config_from_file(path)
    return store


def fetch_page(request: CrawlerRequest, site: SiteConfig) -> Page:
    """Fetch a page with the site's headers"""
    session = requests.Session()
    session.headers.update({'User-Agent': site.user_agent, **site.headers})

    logger.info(f"Fetching page: {request.url}")
    if request.method == 'POST':
        response = session.post(request.url, data=dict(request.params), timeout=site.timeout)
    else:
        response = session.get(request.url, params=dict(request.params), timeout=site.timeout)
    if site.charset:
        response.encoding = site.charset
    return Page(request, response.text, status_code=response.status_code)


def _cmd_parse(args, settings: Settings) -> int:
    processor = GenericPageProcessor(
        rule_store=load_rule_store(args.rules),
        listener=LoggingPageParseListener(),
        captcha_proxy=CaptchaIdentificationProxy(settings.captcha_endpoint,
                                                 timeout=settings.captcha_timeout),
        cookie_store=CookieStore(settings.cookie_file),
    )

    extras = {}
    if args.cookie_ids:
        extras[COOKIE_IDS_EXTRA] = {c.strip() for c in args.cookie_ids.split(',') if c.strip()}
    request = CrawlerRequest(args.url, args.method, extras=extras)

    if args.file:
        page = Page(request, Path(args.file).read_text(encoding=args.encoding))
    else:
        if not URLUtils.is_http_url(args.url):
            print(f"Error: cannot fetch {args.url}, pass --file", file=sys.stderr)
            return 2
        try:
            page = fetch_page(request, processor.site)
        except requests.RequestException as e:
            print(f"Error: failed to fetch {args.url}: {e}", file=sys.stderr)
            return 2

    result = processor.process(page)
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False, default=str))
    return 0 if result.ok else 1


def _cmd_regions(args, settings: Settings) -> int:
    store = load_rule_store(args.rules)
    page_info = store.find_page_info(args.url)
    if page_info is None:
        print(f"No page rules match {args.url}")
        return 1
    print(f"Page pattern: {page_info.url_pattern}")
    for region in store.get_regions(args.url):
        print(f"  {region.name} (dataType={region.data_type}): "
              f"{len(region.field_rules)} field rules, {len(region.url_rules)} url rules")
    return 0


def _cmd_pages(args, settings: Settings) -> int:
    store = load_rule_store(args.rules)
    for page in store.list_pages():
        print(f"{page['url_pattern']}: {', '.join(page['regions']) or '-'}")
    return 0


def main(argv=None) -> int:
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description='Rule-driven page extraction')
    parser.add_argument('--log-level', default=settings.log_level,
                        help=f'Logging level (default: {settings.log_level})')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    parse_parser = subparsers.add_parser('parse', help='Extract a page with its rules')
    parse_parser.add_argument('--rules', default=settings.rules_dir, help='Rule file or directory')
    parse_parser.add_argument('--url', required=True, help='URL of the page')
    parse_parser.add_argument('--file', help='Saved page body; the URL is fetched when omitted')
    parse_parser.add_argument('--method', default='GET', help='Request method (default: GET)')
    parse_parser.add_argument('--encoding', default='utf-8', help='Encoding of --file')
    parse_parser.add_argument('--cookie-ids', help='Comma separated ids of the cookies the page was fetched with')

    regions_parser = subparsers.add_parser('regions', help='Show the regions bound to a URL')
    regions_parser.add_argument('--rules', default=settings.rules_dir, help='Rule file or directory')
    regions_parser.add_argument('--url', required=True, help='URL to look up')

    pages_parser = subparsers.add_parser('pages', help='List loaded page patterns')
    pages_parser.add_argument('--rules', default=settings.rules_dir, help='Rule file or directory')

    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.INFO),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        'parse': _cmd_parse,
        'regions': _cmd_regions,
        'pages': _cmd_pages,
    }
    try:
        return commands[args.command](args, settings)
    except (FileNotFoundError, ValueError, RuleCrawlerError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
