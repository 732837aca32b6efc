import unittest
from datetime import date
from unittest import mock

from models import ParsedTicket, today_in
from ticket_parser import TicketDate

from stubs import FIXED_DAY


def parse(text):
    return TicketDate.parse(text, FIXED_DAY)


class TestTicketDate(unittest.TestCase):
    def test_day_month_name_year(self) -> None:
        self.assertEqual(parse("DEPARTURE 12 MAR 2026 09:40"), date(2026, 3, 12))
        self.assertEqual(parse("Date: 5 December 2026"), date(2026, 12, 5))
        self.assertEqual(parse("12-Mar-2026"), date(2026, 3, 12))
        self.assertEqual(parse("1st Feb 27"), date(2027, 2, 1))

    def test_glued_gds_style(self) -> None:
        self.assertEqual(parse("AV 611 Y 07NOV26 TGUSAL"), date(2026, 11, 7))

    def test_month_first(self) -> None:
        self.assertEqual(parse("March 12, 2026"), date(2026, 3, 12))

    def test_numeric_day_first_and_iso(self) -> None:
        self.assertEqual(parse("Fecha 24/12/2026"), date(2026, 12, 24))
        self.assertEqual(parse("24.12.26"), date(2026, 12, 24))
        self.assertEqual(parse("issued 2026-11-02"), date(2026, 11, 2))

    def test_no_date_returns_today(self) -> None:
        self.assertEqual(parse("JFK LHR BA 0123 SEAT 14A"), FIXED_DAY)
        self.assertEqual(parse(""), FIXED_DAY)
        self.assertEqual(parse(None), FIXED_DAY)

    def test_old_years_are_rejected(self) -> None:
        self.assertEqual(parse("12 MAR 2019"), FIXED_DAY)
        self.assertEqual(parse("12 MAR 2020"), FIXED_DAY)
        self.assertEqual(parse("3 MAY 0123"), FIXED_DAY)

    def test_impossible_calendar_date_returns_today(self) -> None:
        self.assertEqual(parse("31 FEB 2026"), FIXED_DAY)
        self.assertEqual(parse("45/13/2026"), FIXED_DAY)

    def test_first_match_wins(self) -> None:
        self.assertEqual(parse("OUT 02 APR 2026\nRETURN 20 APR 2026"), date(2026, 4, 2))
        # the first match decides even when it is unusable
        self.assertEqual(parse("31 FEB 2026 then 20 APR 2026"), FIXED_DAY)

    def test_today_in_unknown_timezone_falls_back_to_utc(self) -> None:
        self.assertIsInstance(today_in("Not/AZone"), date)
        self.assertIsInstance(today_in("America/Tegucigalpa"), date)

    def test_empty_ticket_defaults_to_today_in_the_ticket_timezone(self) -> None:
        with mock.patch("models.today_in", return_value=date(2027, 1, 1)) as today:
            self.assertEqual(ParsedTicket().departure_date, "2027-01-01")
        today.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
