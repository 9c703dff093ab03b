"""Tests for storage and reporting on top of the calculation core."""
from datetime import date

import pytest

from sales_tracker.models.sales import SaleEntry
from sales_tracker.schemas import SaleEntryCreate, SaleEntryRead, SaleEntryUpdate
from sales_tracker.services.calculations import InvalidInputError
from sales_tracker.services.sales_service import SalesService, previous_period, resolve_period

ROSTER = ("Ingrid", "Marta")


class TestStorage:
    def test_add_sale_stores_ratios(self, add_sale):
        sale = add_sale()
        assert sale.id is not None
        assert sale.conversion == 50.0
        assert sale.units_per_transaction == 2.0
        assert sale.average_price == 50.0
        assert sale.average_ticket == 100.0
        assert sale.productivity == 125.0

    def test_add_sale_rejects_invalid_input(self, db, add_sale):
        with pytest.raises(InvalidInputError):
            add_sale(visitors=0)
        assert db.query(SaleEntry).count() == 0

    def test_most_recent_first(self, db, add_sale):
        add_sale(day=date(2024, 3, 1), revenue=100)
        add_sale(day=date(2024, 3, 3), revenue=300)
        add_sale(day=date(2024, 3, 2), revenue=200)
        add_sale(day=date(2024, 3, 3), employee_id="Marta", revenue=301)

        sales = SalesService.get_sales(db)
        assert [s.revenue for s in sales] == [301, 300, 200, 100]
        assert len(SalesService.get_sales(db, limit=2)) == 2
        assert SalesService.get_last_sale(db).revenue == 301

    def test_last_sale_empty(self, db):
        assert SalesService.get_last_sale(db) is None

    def test_date_range_and_employee(self, db, add_sale):
        add_sale(day=date(2024, 2, 28))
        add_sale(day=date(2024, 3, 1), employee_id="Marta")
        add_sale(day=date(2024, 3, 2))

        in_march = SalesService.get_sales_by_date_range(db, date(2024, 3, 1), date(2024, 3, 31))
        assert [s.date for s in in_march] == [date(2024, 3, 2), date(2024, 3, 1)]

        ingrid = SalesService.get_sales_by_employee(db, "Ingrid")
        assert {s.employee_id for s in ingrid} == {"Ingrid"}
        assert len(ingrid) == 2

    def test_update_recomputes_ratios(self, db, add_sale):
        sale = add_sale()
        updated = SalesService.update_sale(db, sale.id, SaleEntryUpdate(revenue=1000))
        assert updated.revenue == 1000
        assert updated.average_ticket == 200.0
        assert updated.productivity == 250.0
        assert updated.conversion == 50.0

    def test_update_rejects_invalid_input(self, db, add_sale):
        sale = add_sale()
        with pytest.raises(InvalidInputError):
            SalesService.update_sale(db, sale.id, SaleEntryUpdate(hours_worked=0))

    def test_update_missing(self, db):
        assert SalesService.update_sale(db, 999, SaleEntryUpdate(revenue=1)) is None

    def test_delete_sale(self, db, add_sale):
        sale = add_sale()
        assert SalesService.delete_sale(db, sale.id) is True
        assert SalesService.delete_sale(db, sale.id) is False

    def test_delete_day_removes_duplicates(self, db, add_sale):
        add_sale(day=date(2024, 3, 1))
        add_sale(day=date(2024, 3, 1))
        add_sale(day=date(2024, 3, 1), employee_id="Marta")
        add_sale(day=date(2024, 3, 2))

        assert SalesService.delete_day(db, date(2024, 3, 1)) == 3
        assert db.query(SaleEntry).count() == 1

    def test_delete_day_for_one_employee(self, db, add_sale):
        add_sale(day=date(2024, 3, 1))
        add_sale(day=date(2024, 3, 1), employee_id="Marta")

        assert SalesService.delete_day(db, date(2024, 3, 1), ["Marta"]) == 1
        assert db.query(SaleEntry).one().employee_id == "Ingrid"

    def test_import_skips_stored_copies(self, db, add_sale):
        add_sale(day=date(2024, 3, 1))
        entries = [
            SaleEntryCreate(date=date(2024, 3, 1), employee_id="Ingrid", visitors=10, transactions=5, units=10, revenue=500, hours_worked=4),
            SaleEntryCreate(date=date(2024, 3, 2), employee_id="Ingrid", visitors=10, transactions=5, units=10, revenue=500, hours_worked=4),
            SaleEntryCreate(date=date(2024, 3, 3), employee_id="Marta", visitors=0, transactions=5, units=10, revenue=500, hours_worked=4),
        ]
        result = SalesService.import_sales(db, entries)
        assert result == {"created": 1, "duplicates": 1, "rejected": 1}
        assert db.query(SaleEntry).count() == 2


class TestDailyLedger:
    def test_groups_unifies_and_aggregates(self, db, add_sale):
        add_sale(day=date(2024, 3, 1), employee_id="Ingrid", revenue=400)
        add_sale(day=date(2024, 3, 1), employee_id="Ingrid", revenue=500)
        add_sale(day=date(2024, 3, 1), employee_id="Marta", revenue=300)
        add_sale(day=date(2024, 3, 2), employee_id="Marta", revenue=250)

        records = SalesService.get_daily_records(db, ROSTER)
        assert [r["date"] for r in records] == [date(2024, 3, 2), date(2024, 3, 1)]

        newest, oldest = records
        assert newest["presence"] == {"Ingrid": False, "Marta": True}
        assert newest["duplicates"] == 0

        assert oldest["duplicates"] == 1
        assert oldest["presence"] == {"Ingrid": True, "Marta": True}
        assert [d["employee_id"] for d in oldest["details"]] == ["Ingrid", "Marta"]
        # the latest Ingrid report wins
        assert oldest["details"][0]["revenue"] == 500
        assert oldest["aggregated"]["revenue"] == 800
        assert oldest["aggregated"]["visitors"] == 20
        assert oldest["aggregated"]["conversion"] == 50.0

    def test_limit_counts_whole_days(self, db, add_sale):
        add_sale(day=date(2024, 3, 1), employee_id="Ingrid")
        add_sale(day=date(2024, 3, 2), employee_id="Ingrid", revenue=400)
        add_sale(day=date(2024, 3, 2), employee_id="Marta", revenue=300)
        add_sale(day=date(2024, 3, 3), employee_id="Marta")

        records = SalesService.get_daily_records(db, ROSTER, limit=2)
        assert [r["date"] for r in records] == [date(2024, 3, 3), date(2024, 3, 2)]
        assert records[-1]["presence"] == {"Ingrid": True, "Marta": True}
        assert records[-1]["aggregated"]["revenue"] == 700

    def test_empty(self, db):
        assert SalesService.get_daily_records(db, ROSTER) == []
        assert SalesService.get_daily_records(db, ROSTER, limit=5) == []


class TestPeriods:
    def test_month(self):
        assert resolve_period("month", date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_year(self):
        assert resolve_period("year", date(2024, 2, 10)) == (date(2024, 1, 1), date(2024, 12, 31))

    def test_custom(self):
        bounds = resolve_period("custom", date(2024, 2, 10), date(2024, 1, 5), date(2024, 1, 9))
        assert bounds == (date(2024, 1, 5), date(2024, 1, 9))

    def test_custom_without_dates_is_all_time(self):
        assert resolve_period("custom", date(2024, 2, 10)) == (None, None)

    def test_custom_inverted(self):
        with pytest.raises(ValueError):
            resolve_period("custom", date(2024, 2, 10), date(2024, 1, 9), date(2024, 1, 5))

    def test_unknown(self):
        with pytest.raises(ValueError):
            resolve_period("week", date(2024, 2, 10))

    def test_previous_month_crosses_year(self):
        assert previous_period("month", date(2024, 1, 1), date(2024, 1, 31)) == (date(2023, 12, 1), date(2023, 12, 31))

    def test_previous_custom_same_length(self):
        assert previous_period("custom", date(2024, 3, 1), date(2024, 3, 5)) == (date(2024, 2, 25), date(2024, 2, 29))


class TestPeriodSummary:
    @pytest.fixture
    def march(self, add_sale):
        add_sale(day=date(2024, 2, 20), employee_id="Ingrid", revenue=1000)
        add_sale(day=date(2024, 3, 1), employee_id="Ingrid", revenue=500)
        add_sale(day=date(2024, 3, 1), employee_id="Marta", revenue=300)
        add_sale(day=date(2024, 3, 10), employee_id="Ingrid", revenue=700)

    def test_month(self, db, march):
        summary = SalesService.get_period_summary(db, "month", ROSTER, goal=3000, today=date(2024, 3, 15))

        assert summary["start_date"] == date(2024, 3, 1)
        assert summary["entries"] == 3
        assert summary["days_recorded"] == 2
        assert summary["revenue"] == {"average": 500.0, "minimum": 300.0, "maximum": 700.0, "total": 1500.0}
        assert summary["conversion"]["average"] == 50.0
        assert summary["conversion_status"] == "success"

        totals = summary["totals"]
        assert totals["visitors"] == 30
        assert totals["revenue"] == 1500
        assert totals["hours_worked"] == 12
        assert totals["average_ticket"] == 100.0
        assert totals["productivity"] == 125.0

        assert summary["by_employee"] == [
            {"employee_id": "Ingrid", "revenue": 1200.0, "entries": 2},
            {"employee_id": "Marta", "revenue": 300.0, "entries": 1},
        ]
        assert summary["series"][0]["date"] == date(2024, 3, 1)
        assert summary["series"][-1]["date"] == date(2024, 3, 10)

        assert summary["trend"] == {"percentage": 50.0, "direction": "positive"}
        assert summary["goal"] == {"amount": 3000, "achieved": 1500.0, "percentage": 50}

    def test_year_without_previous_data(self, db, march):
        summary = SalesService.get_period_summary(db, "year", ROSTER, today=date(2024, 3, 15))
        assert summary["revenue"]["total"] == 2500.0
        assert summary["trend"] == {"percentage": 0, "direction": "neutral"}
        assert summary["goal"]["percentage"] == 0

    def test_custom_range(self, db, march):
        summary = SalesService.get_period_summary(
            db, "custom", ROSTER, start=date(2024, 3, 1), end=date(2024, 3, 5), today=date(2024, 3, 15),
        )
        assert summary["entries"] == 2
        assert summary["revenue"]["total"] == 800.0

    def test_custom_all_time(self, db, march):
        summary = SalesService.get_period_summary(db, "custom", ROSTER, today=date(2024, 3, 15))
        assert summary["entries"] == 4

    def test_duplicates_are_not_double_counted(self, db, add_sale):
        add_sale(day=date(2024, 3, 1), revenue=400)
        add_sale(day=date(2024, 3, 1), revenue=500)
        summary = SalesService.get_period_summary(db, "month", ROSTER, today=date(2024, 3, 15))
        assert summary["revenue"]["total"] == 500.0

    def test_empty_period(self, db):
        summary = SalesService.get_period_summary(db, "month", ROSTER, today=date(2024, 3, 15))
        assert summary["entries"] == 0
        assert summary["totals"] is None
        assert summary["revenue"]["total"] == 0
        assert summary["conversion_status"] == "danger"


class TestLastSaleReport:
    def test_formatted_values(self, db, add_sale):
        add_sale(day=date(2024, 3, 5), revenue=12345.6, units=10, transactions=5, visitors=10, hours_worked=7.5)
        report = SalesService.get_last_sale_report(db, "es_ES")
        assert report["sale"]["employee_id"] == "Ingrid"
        assert report["conversion_status"] == "success"
        assert report["formatted"]["date"] == "05/03/2024"
        assert report["formatted"]["revenue"] == "12.345,60 €"
        assert report["formatted"]["hours_worked"] == "7,5"
        assert report["formatted"]["conversion"] == "50,00%"

    def test_no_sales(self, db):
        assert SalesService.get_last_sale_report(db) is None


def test_read_schema_from_row(add_sale):
    sale = add_sale(day=date(2024, 3, 5))
    assert SaleEntryRead.model_config["from_attributes"] is True
    read = SaleEntryRead.model_validate(sale)
    assert read.id == sale.id
    assert read.average_ticket == 100.0
