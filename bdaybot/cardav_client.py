"""
CardDAV client for reading contacts with birthdays
"""

import re
import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

import requests
import vobject
from requests.auth import HTTPBasicAuth, HTTPDigestAuth

from bdaybot.dates import is_valid_month_day
from bdaybot.errors import BirthdayBotError, ErrorKind
from bdaybot.models import BirthdayRecord
from bdaybot.parser import sanitize_name, split_name

logger = logging.getLogger(__name__)

RESPONSE_PATTERN = re.compile(r'<d:response[^>]*>(.*?)</d:response>', re.DOTALL | re.IGNORECASE)
HREF_PATTERN = re.compile(r'<d:href[^>]*>([^<]+)</d:href>', re.IGNORECASE)
VCARD_CONTENT_TYPE_PATTERN = re.compile(r'<d:getcontenttype[^>]*>[^<]*vcard[^<]*</d:getcontenttype>', re.IGNORECASE)

PROPFIND_BODY = '''<?xml version="1.0" encoding="utf-8" ?>
<D:propfind xmlns:D="DAV:">
    <D:prop>
        <D:getetag />
        <D:getcontenttype />
        <D:resourcetype />
    </D:prop>
</D:propfind>'''

# Year some clients store when the user left it out
APPLE_OMITTED_YEAR = 1604


def parse_bday(value, omit_year: bool = False) -> Optional[Tuple[int, int, Optional[int]]]:
    """
    Parse a vCard BDAY value into (month, day, year-or-None)

    Accepts YYYY-MM-DD, YYYYMMDD, --MM-DD and --MMDD, with or without a time part.
    """
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        month, day, year = value.month, value.day, value.year
    else:
        text = str(value).strip().split('T')[0]
        if text.startswith('--'):
            digits = text[2:].replace('-', '')
            if len(digits) != 4 or not digits.isdigit():
                return None
            month, day, year = int(digits[:2]), int(digits[2:]), None
        else:
            digits = text.replace('-', '')
            if len(digits) != 8 or not digits.isdigit():
                return None
            year, month, day = int(digits[:4]), int(digits[4:6]), int(digits[6:])

    if omit_year or year == APPLE_OMITTED_YEAR:
        year = None
    if not is_valid_month_day(month, day, year):
        return None
    return month, day, year


def _name_part(value) -> str:
    if isinstance(value, (list, tuple)):
        value = ' '.join(value)
    return sanitize_name(value)


def vcard_to_record(vcard_text: str) -> Optional[BirthdayRecord]:
    """Build a BirthdayRecord from a vCard, or None when it has no usable birthday"""
    vcard_text = vcard_text.strip()
    if not vcard_text.startswith('BEGIN:VCARD'):
        logger.debug("Invalid vCard: doesn't start with BEGIN:VCARD")
        return None

    try:
        vcard = vobject.readOne(vcard_text)
    except Exception as e:
        logger.warning(f"Error parsing vCard: {e}")
        return None

    if not hasattr(vcard, 'bday'):
        return None

    if hasattr(vcard, 'fn') and sanitize_name(vcard.fn.value):
        first_name, last_name = split_name(vcard.fn.value)
    elif hasattr(vcard, 'n'):
        first_name = _name_part(vcard.n.value.given)
        last_name = _name_part(vcard.n.value.family) or None
    else:
        first_name, last_name = '', None

    if not first_name:
        logger.debug("Skipping vCard with a birthday but no name")
        return None

    omit_year = vcard.bday.params.get('X-APPLE-OMIT-YEAR') is not None
    parts = parse_bday(vcard.bday.value, omit_year)
    if parts is None:
        logger.warning(f"Could not parse birthday for {first_name}: {vcard.bday.value}")
        return None

    month, day, year = parts
    return BirthdayRecord(first_name=first_name, last_name=last_name, month=month, day=day, year=year)


class CardDAVClient:
    """Source reader over every address book found at a CardDAV URL"""

    def __init__(self, server_url: str, username: str, password: str, timeout: int = 10):
        self.server_url = server_url.rstrip('/') if server_url else ''
        self.username = username
        self.password = password
        self.timeout = timeout

        self.basic_auth = HTTPBasicAuth(username, password)
        self.digest_auth = HTTPDigestAuth(username, password)
        self.auth = None
        self.addressbook_urls: List[str] = []

    def _propfind(self, url: str, auth, body: Optional[str] = None) -> requests.Response:
        headers = {'Depth': '1'}
        if body:
            headers['Content-Type'] = 'application/xml; charset=utf-8'
        return requests.request('PROPFIND', url, auth=auth, headers=headers, data=body, timeout=self.timeout)

    def discover(self) -> List[str]:
        """Authenticate (Basic, then Digest) and find the address books"""
        logger.info(f"Discovering addressbooks at: {self.server_url}")
        try:
            response = self._propfind(self.server_url, self.basic_auth)
            self.auth = self.basic_auth
            if response.status_code == 401:
                logger.info("Basic auth failed, trying Digest authentication...")
                response = self._propfind(self.server_url, self.digest_auth)
                self.auth = self.digest_auth
        except requests.exceptions.RequestException as e:
            raise BirthdayBotError(ErrorKind.CONFIGURATION_UNAVAILABLE,
                                   f"Error connecting to CardDAV server {self.server_url}", cause=e)

        if response.status_code not in (200, 207):
            self.auth = None
            raise BirthdayBotError(ErrorKind.CONFIGURATION_UNAVAILABLE,
                                   f"CardDAV authentication failed: {response.status_code}")

        self.addressbook_urls = self._extract_addressbooks(response.text)
        if not self.addressbook_urls:
            if not self._is_addressbook(response.text):
                raise BirthdayBotError(ErrorKind.CONFIGURATION_UNAVAILABLE,
                                       "No addressbooks found at the provided URL")
            logger.info("Provided URL appears to be a single addressbook")
            self.addressbook_urls = [self.server_url]

        logger.info(f"Discovered {len(self.addressbook_urls)} addressbooks")
        for url in self.addressbook_urls:
            logger.debug(f"  - {url}")
        return self.addressbook_urls

    def _extract_addressbooks(self, xml_response: str) -> List[str]:
        addressbooks = []
        for block in RESPONSE_PATTERN.findall(xml_response):
            href_match = HREF_PATTERN.search(block)
            if not href_match or not self._is_addressbook(block):
                continue
            url = self._resolve_url(href_match.group(1).strip())
            # The collection itself is listed alongside its children
            if url.rstrip('/') != self.server_url:
                addressbooks.append(url)
        return addressbooks

    @staticmethod
    def _is_addressbook(xml_response: str) -> bool:
        return ('card:addressbook' in xml_response or
                ('addressbook' in xml_response.lower() and '<d:collection' in xml_response.lower()))

    @staticmethod
    def _extract_vcard_urls(xml_response: str) -> List[str]:
        """Hrefs ending in .vcf or typed as text/vcard"""
        urls = []
        for block in RESPONSE_PATTERN.findall(xml_response):
            href_match = HREF_PATTERN.search(block)
            if not href_match:
                continue
            href = href_match.group(1).strip()
            if href.lower().endswith('.vcf') or (not href.endswith('/') and VCARD_CONTENT_TYPE_PATTERN.search(block)):
                urls.append(href)
        return urls

    def _resolve_url(self, url: str) -> str:
        if url.startswith('http'):
            return url
        if url.startswith('/'):
            parsed = urlparse(self.server_url)
            return f"{parsed.scheme}://{parsed.netloc}{url}"
        return f"{self.server_url}/{url.lstrip('/')}"

    def _records_from_addressbook(self, addressbook_url: str) -> List[BirthdayRecord]:
        try:
            response = self._propfind(addressbook_url, self.auth, PROPFIND_BODY)
        except requests.exceptions.RequestException as e:
            raise BirthdayBotError(ErrorKind.READ_FAILURE, f"Error listing {addressbook_url}", cause=e)
        if response.status_code not in (200, 207):
            raise BirthdayBotError(ErrorKind.READ_FAILURE,
                                   f"Failed to list {addressbook_url}: {response.status_code}")

        vcard_urls = self._extract_vcard_urls(response.text)
        logger.info(f"Found {len(vcard_urls)} vCard resources in {addressbook_url}")

        records = []
        for vcard_url in vcard_urls:
            full_url = self._resolve_url(vcard_url)
            try:
                vcard_response = requests.get(full_url, auth=self.auth, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                logger.warning(f"Error fetching vCard {full_url}: {e}")
                continue
            if vcard_response.status_code != 200:
                logger.warning(f"Failed to fetch vCard {full_url}: {vcard_response.status_code}")
                continue

            record = vcard_to_record(vcard_response.text)
            if record is not None:
                logger.debug(f"Parsed contact: {record.full_name} ({record.month:02d}-{record.day:02d})")
                records.append(record)
        return records

    def read(self, start_date: Optional[date] = None, end_date: Optional[date] = None,
             skip_header_row: bool = True) -> List[BirthdayRecord]:
        """Every contact with a birthday; the window and header flag do not apply to contacts"""
        if not self.addressbook_urls:
            self.discover()

        records = []
        for addressbook_url in self.addressbook_urls:
            records.extend(self._records_from_addressbook(addressbook_url))
        logger.info(f"Total contacts with birthdays across all addressbooks: {len(records)}")
        return records

    def is_available(self) -> bool:
        return bool(self.server_url and self.username and self.password)

    def get_metadata(self) -> Dict:
        return {'name': 'cardav', 'type': 'contacts', 'capabilities': ['read']}
