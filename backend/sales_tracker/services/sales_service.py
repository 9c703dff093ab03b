import calendar
import logging
from collections import OrderedDict
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from sales_tracker.models.sales import SaleEntry
from sales_tracker.schemas import SaleEntryCreate, SaleEntryUpdate
from sales_tracker.services.calculations import (
    DedupeMode,
    INPUT_FIELDS,
    InvalidInputError,
    aggregate_sales,
    calculate_ratios,
    calculate_trend,
    conversion_status,
    get_summary_stats,
    roster_presence,
    round_to,
    unify_daily_sales,
    unify_history_sales,
)
from sales_tracker.utils.formatting import get_formatter

logger = logging.getLogger(__name__)

PERIODS = ("month", "year", "custom")


def _most_recent_first(query):
    # Deduplication keeps the first record it sees, so this ordering decides which report wins
    return query.order_by(SaleEntry.date.desc(), SaleEntry.created_at.desc(), SaleEntry.id.desc())


def _month_bounds(year: int, month: int) -> Tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def resolve_period(period: str, today: date, start: Optional[date] = None, end: Optional[date] = None) -> Tuple[Optional[date], Optional[date]]:
    """Inclusive date bounds of a summary period; (None, None) means all time"""
    if period == "month":
        return _month_bounds(today.year, today.month)
    if period == "year":
        return date(today.year, 1, 1), date(today.year, 12, 31)
    if period == "custom":
        if not start or not end:
            return None, None
        if start > end:
            raise ValueError("La fecha de inicio debe ser anterior a la fecha de fin")
        return start, end
    raise ValueError(f"Periodo desconocido: {period}")


def previous_period(period: str, start: Optional[date], end: Optional[date]) -> Tuple[Optional[date], Optional[date]]:
    """The window of the same shape immediately before [start, end]"""
    if start is None or end is None:
        return None, None
    if period == "month":
        last_month_end = start - timedelta(days=1)
        return _month_bounds(last_month_end.year, last_month_end.month)
    if period == "year":
        return date(start.year - 1, 1, 1), date(start.year - 1, 12, 31)
    length = (end - start).days + 1
    return start - timedelta(days=length), start - timedelta(days=1)


class SalesService:
    """Daily sales storage and reporting"""

    @staticmethod
    def add_sale(db: Session, data: SaleEntryCreate) -> SaleEntry:
        """Store a new entry with its ratios (raises InvalidInputError)"""
        values = data.model_dump()
        ratios = calculate_ratios(values)
        sale = SaleEntry(**values, **ratios)
        db.add(sale)
        db.commit()
        db.refresh(sale)
        logger.info("Sale %s stored: %s %s revenue=%s", sale.id, sale.date, sale.employee_id, sale.revenue)
        return sale

    @staticmethod
    def get_sales(db: Session, limit: Optional[int] = 30) -> List[SaleEntry]:
        query = _most_recent_first(db.query(SaleEntry))
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def get_last_sale(db: Session) -> Optional[SaleEntry]:
        return _most_recent_first(db.query(SaleEntry)).first()

    @staticmethod
    def get_sales_by_date_range(db: Session, from_date: Optional[date] = None, to_date: Optional[date] = None) -> List[SaleEntry]:
        query = db.query(SaleEntry)

        if from_date:
            query = query.filter(SaleEntry.date >= from_date)

        if to_date:
            query = query.filter(SaleEntry.date <= to_date)

        return _most_recent_first(query).all()

    @staticmethod
    def get_sales_by_employee(db: Session, employee_id: str, limit: Optional[int] = 30) -> List[SaleEntry]:
        query = _most_recent_first(db.query(SaleEntry).filter(SaleEntry.employee_id == employee_id))
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def update_sale(db: Session, sale_id: int, data: SaleEntryUpdate) -> Optional[SaleEntry]:
        """Apply changes and recompute ratios; None when the entry does not exist"""
        sale = db.query(SaleEntry).filter(SaleEntry.id == sale_id).first()
        if not sale:
            return None

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        merged = {field: getattr(sale, field) for field in INPUT_FIELDS}
        merged.update({k: v for k, v in changes.items() if k in INPUT_FIELDS})
        ratios = calculate_ratios(merged)

        for field, value in {**changes, **ratios}.items():
            setattr(sale, field, value)
        db.commit()
        db.refresh(sale)
        logger.info("Sale %s updated: %s", sale_id, sorted(changes))
        return sale

    @staticmethod
    def delete_sale(db: Session, sale_id: int) -> bool:
        sale = db.query(SaleEntry).filter(SaleEntry.id == sale_id).first()
        if not sale:
            return False
        db.delete(sale)
        db.commit()
        logger.info("Sale %s deleted", sale_id)
        return True

    @staticmethod
    def delete_day(db: Session, day: date, employee_ids: Optional[Sequence[str]] = None) -> int:
        """Delete every record of a day, stacked duplicates included"""
        query = db.query(SaleEntry).filter(SaleEntry.date == day)
        if employee_ids:
            query = query.filter(SaleEntry.employee_id.in_(list(employee_ids)))
        deleted = query.delete(synchronize_session=False)
        db.commit()
        logger.info("Deleted %d record(s) for %s", deleted, day)
        return deleted

    @staticmethod
    def import_sales(db: Session, entries: Sequence[SaleEntryCreate]) -> dict:
        """Store imported entries, skipping exact copies of stored ones"""
        existing_keys = {
            SalesService._import_key(sale.to_record()) for sale in db.query(SaleEntry).all()
        }

        created = 0
        duplicates = 0
        rejected = 0
        for entry in entries:
            values = entry.model_dump()
            key = SalesService._import_key(values)
            if key in existing_keys:
                duplicates += 1
                continue
            try:
                ratios = calculate_ratios(values)
            except InvalidInputError as e:
                logger.warning("Import row rejected (%s %s): %s", entry.date, entry.employee_id, e)
                rejected += 1
                continue
            db.add(SaleEntry(**values, **ratios))
            existing_keys.add(key)
            created += 1

        db.commit()
        logger.info("Imported %d sale(s), %d duplicate(s), %d rejected", created, duplicates, rejected)
        return {"created": created, "duplicates": duplicates, "rejected": rejected}

    @staticmethod
    def _import_key(values: dict) -> tuple:
        return (
            values["date"],
            values["employee_id"],
            int(values["visitors"]),
            int(values["transactions"]),
            int(values["units"]),
            round_to(values["revenue"], 2),
            round_to(values["hours_worked"], 2),
        )

    @staticmethod
    def get_daily_records(db: Session, roster: Sequence[str], limit: Optional[int] = None) -> List[dict]:
        """Daily ledger: one aggregated row per day, newest first; ``limit`` counts days"""
        query = db.query(SaleEntry)
        if limit:
            days = db.query(SaleEntry.date).distinct().order_by(SaleEntry.date.desc()).limit(limit).all()
            if not days:
                return []
            query = query.filter(SaleEntry.date >= days[-1][0])
        sales = _most_recent_first(query).all()

        grouped = OrderedDict()
        for sale in sales:
            grouped.setdefault(sale.date, []).append(sale.to_record())

        records = []
        for day, day_sales in grouped.items():
            unique_sales = unify_daily_sales(day_sales, roster)
            records.append({
                "date": day,
                "aggregated": aggregate_sales(unique_sales, dedupe=DedupeMode.NONE),
                # Details use the unified list so they add up to the totals
                "details": unique_sales,
                "presence": roster_presence(unique_sales, roster),
                "duplicates": len(day_sales) - len(unique_sales),
            })
        return records

    @staticmethod
    def get_period_summary(
        db: Session,
        period: str,
        roster: Sequence[str],
        goal: float = 0,
        start: Optional[date] = None,
        end: Optional[date] = None,
        today: Optional[date] = None,
    ) -> dict:
        """Dashboard figures for a month, a year or a custom range"""
        today = today or date.today()
        start, end = resolve_period(period, today, start, end)

        records = unify_history_sales(
            [s.to_record() for s in SalesService.get_sales_by_date_range(db, start, end)], roster
        )

        revenue_stats = get_summary_stats(records, "revenue")
        conversion_stats = get_summary_stats(records, "conversion")

        prev_start, prev_end = previous_period(period, start, end)
        if prev_start is not None:
            previous_records = unify_history_sales(
                [s.to_record() for s in SalesService.get_sales_by_date_range(db, prev_start, prev_end)]
            )
            trend = calculate_trend(revenue_stats["total"], get_summary_stats(previous_records, "revenue")["total"])
        else:
            trend = calculate_trend(revenue_stats["total"], 0)

        by_employee = []
        for employee in roster:
            employee_sales = [r for r in records if r["employee_id"] == employee]
            by_employee.append({
                "employee_id": employee,
                "revenue": get_summary_stats(employee_sales, "revenue")["total"],
                "entries": len(employee_sales),
            })

        return {
            "period": period,
            "start_date": start,
            "end_date": end,
            "entries": len(records),
            "days_recorded": len({r["date"] for r in records}),
            "revenue": revenue_stats,
            "conversion": conversion_stats,
            "conversion_status": conversion_status(conversion_stats["average"]),
            "average_ticket": get_summary_stats(records, "average_ticket"),
            "productivity": get_summary_stats(records, "productivity"),
            "totals": aggregate_sales(records, dedupe=DedupeMode.NONE),
            "by_employee": by_employee,
            "series": [
                {
                    "date": r["date"],
                    "employee_id": r["employee_id"],
                    "revenue": r["revenue"],
                    "conversion": r["conversion"],
                }
                for r in reversed(records)
            ],
            "trend": trend,
            "goal": SalesService.get_goal_progress(db, goal, today),
        }

    @staticmethod
    def get_goal_progress(db: Session, goal: float, today: date) -> dict:
        """Current calendar month revenue against the monthly goal"""
        month_start, month_end = _month_bounds(today.year, today.month)
        records = unify_history_sales(
            [s.to_record() for s in SalesService.get_sales_by_date_range(db, month_start, month_end)]
        )
        achieved = get_summary_stats(records, "revenue")["total"]

        percentage = 0
        if goal > 0:
            percentage = int(round_to(achieved / goal * 100, 0))

        return {"amount": goal, "achieved": achieved, "percentage": percentage}

    @staticmethod
    def get_last_sale_report(db: Session, locale: Optional[str] = None) -> Optional[dict]:
        """Most recent entry with display strings"""
        sale = SalesService.get_last_sale(db)
        if sale is None:
            return None

        fmt = get_formatter(locale)
        return {
            "sale": sale.to_record(),
            "conversion_status": conversion_status(sale.conversion),
            "formatted": {
                "date": fmt.date(sale.date),
                "revenue": fmt.currency(sale.revenue),
                "hours_worked": fmt.number(sale.hours_worked, 1),
                "conversion": fmt.percentage(sale.conversion),
                "units_per_transaction": fmt.number(sale.units_per_transaction),
                "average_price": fmt.currency(sale.average_price),
                "average_ticket": fmt.currency(sale.average_ticket),
                "productivity": fmt.currency(sale.productivity),
            },
        }
