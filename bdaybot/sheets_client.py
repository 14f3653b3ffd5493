"""
Google Sheets source for birthday rows
"""

import logging
from datetime import date
from typing import Dict, List, Optional

import gspread
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials as ServiceCredentials

from bdaybot.errors import BirthdayBotError, ErrorKind

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


class SheetsClient:
    """Reads the raw cells of one worksheet; parsing is left to the caller"""

    def __init__(self, worksheet=None, spreadsheet_id: str = None, worksheet_name: str = None,
                 skip_header_row: bool = True):
        self.worksheet = worksheet
        self.spreadsheet_id = spreadsheet_id
        self.worksheet_name = worksheet_name
        self.skip_header_row = skip_header_row

    @classmethod
    def connect(cls, credentials_file: str, spreadsheet_id: str, worksheet_name: str = None,
                skip_header_row: bool = True) -> 'SheetsClient':
        """Authorize with a service account and open the worksheet (first one by default)"""
        try:
            creds = ServiceCredentials.from_service_account_file(credentials_file, scopes=SCOPES)
            gc = gspread.authorize(creds)
            spreadsheet = gc.open_by_key(spreadsheet_id)
            worksheet = spreadsheet.worksheet(worksheet_name) if worksheet_name else spreadsheet.sheet1
        except (gspread.exceptions.GSpreadException, GoogleAuthError, OSError, ValueError) as e:
            raise BirthdayBotError(ErrorKind.CONFIGURATION_UNAVAILABLE,
                                   f"Error opening spreadsheet {spreadsheet_id}", cause=e)

        logger.info(f"Using worksheet: {worksheet.title}")
        return cls(worksheet, spreadsheet_id, worksheet_name, skip_header_row)

    def read(self, start_date: Optional[date] = None, end_date: Optional[date] = None,
             skip_header_row: bool = True) -> List[List[str]]:
        """All rows of the worksheet; a sheet of birthdays has no date window to apply"""
        try:
            rows = self.worksheet.get_all_values()
        except gspread.exceptions.GSpreadException as e:
            raise BirthdayBotError(ErrorKind.READ_FAILURE, "Error reading worksheet rows", cause=e)

        if skip_header_row and self.skip_header_row and rows:
            rows = rows[1:]
        logger.info(f"Read {len(rows)} rows from the spreadsheet")
        return rows

    def is_available(self) -> bool:
        return self.worksheet is not None

    def get_metadata(self) -> Dict:
        return {
            'name': 'sheets',
            'type': 'spreadsheet',
            'capabilities': ['read'],
            'spreadsheet_id': self.spreadsheet_id,
        }
