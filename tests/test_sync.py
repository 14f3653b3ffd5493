"""
Spreadsheet to calendar sync tests

Dedup against existing entries, in-batch dedup, idempotence and failure isolation.
"""

from datetime import date

import pytest

from bdaybot.dates import LEAP_DAY_RULE
from bdaybot.errors import BirthdayBotError, ErrorKind
from bdaybot.models import BirthdayRecord
from bdaybot.sync import SyncEngine, normalize_records
from fakes import FakeCalendar, FakeSource, yearly_birthday


@pytest.fixture
def engine(clock):
    return SyncEngine(clock)


class TestSync:
    """Adding missing birthdays"""

    @pytest.mark.sync
    def test_adds_missing_entries(self, engine):
        """Every new person gets a yearly all-day entry"""
        calendar = FakeCalendar()
        result = engine.sync(FakeSource(["John Doe 1990-05-15", "Jane 06-01"]), calendar)

        assert result.as_dict() == {'added': 2, 'skipped': 0, 'errors': 0}
        john, jane = calendar.created
        assert john.title == "🎂 John Doe's Birthday"
        assert john.start_date == date(1990, 5, 15)
        assert john.description == "Birthday of John Doe (born 1990)"
        assert jane.start_date == date(2024, 6, 1)
        assert jane.description == "Birthday of Jane"

    @pytest.mark.sync
    def test_second_sync_adds_nothing(self, engine):
        """Unchanged source converges to zero additions"""
        calendar = FakeCalendar()
        source = FakeSource(["John Doe 1990-05-15", "Jane 06-01", ["Roland D", "Dec 2"]])

        first = engine.sync(source, calendar)
        second = engine.sync(source, calendar)

        assert first.added == 3
        assert second.added == 0
        assert second.skipped == 3
        assert len(calendar.events) == 3

    @pytest.mark.sync
    def test_existing_entry_is_skipped(self, engine):
        """A matching calendar entry prevents the write"""
        calendar = FakeCalendar([yearly_birthday('e1', "John Doe's birthday", date(1990, 5, 15))])
        result = engine.sync(FakeSource(["John Doe 1990-05-15"]), calendar)
        assert result.skipped == 1
        assert calendar.created == []

    @pytest.mark.sync
    def test_same_name_on_another_day_is_added(self, engine):
        """Only entries on the record's day take part in dedup"""
        calendar = FakeCalendar([yearly_birthday('e1', "John Smith's birthday", date(1980, 3, 1))])
        result = engine.sync(FakeSource(["John Doe 1990-05-15"]), calendar)
        assert result.added == 1

    @pytest.mark.sync
    def test_leap_day_matches_feb_28_entry(self, engine):
        """Feb 29 birthdays stored on Feb 28 are recognized"""
        calendar = FakeCalendar([yearly_birthday('e1', "🎂 Leo's Birthday", date(2023, 2, 28))])
        result = engine.sync(FakeSource(["Leo 02-29"]), calendar)
        assert result.skipped == 1

    @pytest.mark.sync
    def test_leap_day_entry_recurs_every_year(self, engine):
        """Feb 29 entries start on a real Feb 29 and recur on the last day of February"""
        calendar = FakeCalendar()
        engine.sync(FakeSource(["Leo 1992-02-29", "Lea 02-29"]), calendar)

        assert [e.start_date for e in calendar.created] == [date(1992, 2, 29), date(2024, 2, 29)]
        assert all(e.recurrence_rule == LEAP_DAY_RULE for e in calendar.created)
        for year, day in [(2025, 28), (2026, 28), (2028, 29)]:
            found = calendar.read(start_date=date(year, 2, 1), end_date=date(year, 2, day))
            assert [(e.title, e.start_date.day) for e in found] == [
                ("🎂 Leo's Birthday", day),
                ("🎂 Lea's Birthday", day),
            ]

    @pytest.mark.sync
    def test_bad_record_does_not_abort_batch(self, engine):
        """A record that cannot become a calendar date is counted as an error"""
        calendar = FakeCalendar()
        source = FakeSource([BirthdayRecord('John', None, 5, 15, 0), "Jane 06-01"])
        result = engine.sync(source, calendar)
        assert result.as_dict() == {'added': 1, 'skipped': 0, 'errors': 1}
        assert [e.title for e in calendar.created] == ["🎂 Jane's Birthday"]

    @pytest.mark.sync
    def test_duplicate_rows_in_one_batch(self, engine):
        """The second copy sees the entry created for the first"""
        calendar = FakeCalendar()
        result = engine.sync(FakeSource(["John Doe 1990-05-15", "John Doe 1990-05-15"]), calendar)
        assert (result.added, result.skipped) == (1, 1)

    @pytest.mark.sync
    def test_write_failure_does_not_abort_batch(self, engine):
        """One failing write is counted and the rest continue"""
        calendar = FakeCalendar(fail_titles={"🎂 Jane's Birthday"})
        result = engine.sync(FakeSource(["Jane 06-01", "Bob 07-02"]), calendar)
        assert result.as_dict() == {'added': 1, 'skipped': 0, 'errors': 1}
        assert [e.title for e in calendar.created] == ["🎂 Bob's Birthday"]

    @pytest.mark.sync
    def test_target_read_failure_escalates_before_writing(self, engine):
        """No dedup data means no writes"""
        calendar = FakeCalendar(fail_read=True)
        with pytest.raises(BirthdayBotError) as exc:
            engine.sync(FakeSource(["Jane 06-01"]), calendar)
        assert exc.value.kind == ErrorKind.READ_FAILURE
        assert calendar.created == []

    @pytest.mark.sync
    def test_unavailable_source(self, engine):
        """A source that is not configured escalates"""
        with pytest.raises(BirthdayBotError) as exc:
            engine.sync(FakeSource([], available=False), FakeCalendar())
        assert exc.value.kind == ErrorKind.CONFIGURATION_UNAVAILABLE

    @pytest.mark.sync
    def test_source_exception_is_wrapped(self, engine):
        """Unexpected source errors become READ_FAILURE"""
        class BrokenSource(FakeSource):
            def read(self, **kwargs):
                raise ConnectionError("reset")

        with pytest.raises(BirthdayBotError) as exc:
            engine.sync(BrokenSource([]), FakeCalendar())
        assert exc.value.kind == ErrorKind.READ_FAILURE
        assert isinstance(exc.value.cause, ConnectionError)

    @pytest.mark.sync
    def test_dry_run_writes_nothing(self, clock):
        """Dry runs count additions without creating entries"""
        calendar = FakeCalendar()
        result = SyncEngine(clock, dry_run=True).sync(FakeSource(["Jane 06-01", "Jane 06-01"]), calendar)
        assert (result.added, result.skipped) == (1, 1)
        assert calendar.created == []

    @pytest.mark.sync
    def test_custom_templates(self, clock):
        """Title and description come from configuration"""
        engine = SyncEngine(clock, {'event_title_template': '{name} turns older',
                                    'event_description_template': 'Say hi to {name}'})
        calendar = FakeCalendar()
        engine.sync(FakeSource(["Ann Lee 1980-01-02"]), calendar)
        assert calendar.created[0].title == 'Ann Lee turns older'
        assert calendar.created[0].description == 'Say hi to Ann Lee (born 1980)'

    @pytest.mark.sync
    def test_broken_template_falls_back(self, clock):
        """A template with an unknown field uses the default"""
        engine = SyncEngine(clock, {'event_title_template': '{nom}'})
        assert engine.format_title(BirthdayRecord('Ann', None, 1, 2)) == "🎂 Ann's Birthday"


class TestNormalizeRecords:
    """Mixed source output"""

    @pytest.mark.unit
    def test_mixed_items(self):
        """Records, text cells and rows are all accepted"""
        record = BirthdayRecord('Zed', None, 1, 1)
        items = [record, "Ann 02-03", ["Bob", "Mar 4", "", ""], "garbage", 42]
        assert normalize_records(items) == [
            record,
            BirthdayRecord('Ann', None, 2, 3),
            BirthdayRecord('Bob', None, 3, 4),
        ]
