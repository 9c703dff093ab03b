import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, UploadFile, File, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session
from sales_tracker.config import EMPLOYEES, EXPORT_FILENAME_PREFIX, MAX_UPLOAD_SIZE_MB, MONTHLY_GOAL
from sales_tracker.database import get_db
from sales_tracker.schemas import SaleEntryCreate, SaleEntryRead, SaleEntryUpdate
from sales_tracker.services.calculations import InvalidInputError
from sales_tracker.services.csv_service import CSVService
from sales_tracker.services.sales_service import PERIODS, SalesService
from sales_tracker.utils.formatting import get_formatter
from sales_tracker.utils.jwt_auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sales"], dependencies=[Depends(get_current_user)])

def _check_employee(employee_id: Optional[str]):
    if employee_id is not None and employee_id not in EMPLOYEES:
        raise HTTPException(status_code=400, detail=f"Empleada desconocida: {employee_id}")

@router.get("/roster")
def get_roster():
    """Employees allowed to log sales, in display order"""
    return list(EMPLOYEES)

@router.post("/sales", response_model=SaleEntryRead, status_code=201)
def create_sale(data: SaleEntryCreate, db: Session = Depends(get_db)):
    """Log one employee's daily figures"""
    _check_employee(data.employee_id)
    try:
        return SalesService.add_sale(db, data)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/sales", response_model=List[SaleEntryRead])
def get_sales(db: Session = Depends(get_db), limit: int = Query(30, ge=1, le=1000)):
    """Most recent entries first"""
    return SalesService.get_sales(db, limit)

@router.get("/sales/last", response_model=Optional[SaleEntryRead])
def get_last_sale(db: Session = Depends(get_db)):
    return SalesService.get_last_sale(db)

@router.get("/sales/last/report")
def get_last_sale_report(db: Session = Depends(get_db), locale: Optional[str] = None):
    """Most recent entry with display strings for the report view"""
    try:
        return SalesService.get_last_sale_report(db, locale)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/sales/range", response_model=List[SaleEntryRead])
def get_sales_by_date_range(
    db: Session = Depends(get_db),
    from_date: Optional[date] = None,
    to_date: Optional[date] = None
):
    return SalesService.get_sales_by_date_range(db, from_date, to_date)

@router.get("/sales/employee/{employee_id}", response_model=List[SaleEntryRead])
def get_sales_by_employee(employee_id: str, db: Session = Depends(get_db), limit: int = Query(30, ge=1, le=1000)):
    return SalesService.get_sales_by_employee(db, employee_id, limit)

@router.put("/sales/{sale_id}", response_model=SaleEntryRead)
def update_sale(sale_id: int, data: SaleEntryUpdate, db: Session = Depends(get_db)):
    _check_employee(data.employee_id)
    try:
        sale = SalesService.update_sale(db, sale_id, data)
    except InvalidInputError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    if sale is None:
        raise HTTPException(status_code=404, detail="Venta no encontrada")
    return sale

@router.delete("/sales/{sale_id}")
def delete_sale(sale_id: int, db: Session = Depends(get_db)):
    if not SalesService.delete_sale(db, sale_id):
        raise HTTPException(status_code=404, detail="Venta no encontrada")
    return {"success": True}

@router.get("/daily")
def get_daily_records(db: Session = Depends(get_db), limit: Optional[int] = Query(None, ge=1)):
    """Daily ledger, one aggregated row per day"""
    return SalesService.get_daily_records(db, EMPLOYEES, limit)

@router.delete("/daily/{day}")
def delete_day(day: date, db: Session = Depends(get_db), employee_id: Optional[List[str]] = Query(None)):
    """Delete every record of a day, hidden duplicates included"""
    deleted = SalesService.delete_day(db, day, employee_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="No hay registros para ese día")
    return {"success": True, "deleted": deleted}

@router.get("/summary")
def get_summary(
    db: Session = Depends(get_db),
    period: str = "month",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    goal: Optional[float] = Query(None, ge=0)
):
    """Dashboard summary for this month, this year or a custom range"""
    if period not in PERIODS:
        raise HTTPException(status_code=400, detail=f"Periodo desconocido: {period}")
    try:
        return SalesService.get_period_summary(
            db,
            period,
            EMPLOYEES,
            goal=MONTHLY_GOAL if goal is None else goal,
            start=start_date,
            end=end_date,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/export")
def export_csv(
    db: Session = Depends(get_db),
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    locale: Optional[str] = None
):
    """Download the entries as CSV"""
    sales = SalesService.get_sales_by_date_range(db, from_date, to_date)
    if not sales:
        raise HTTPException(status_code=404, detail="No hay datos para exportar")

    try:
        formatter = get_formatter(locale)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    content = CSVService.export_sales_csv([s.to_record() for s in sales], formatter)
    filename = f"{EXPORT_FILENAME_PREFIX}_{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@router.post("/import")
async def import_csv(file: UploadFile = File(...), db: Session = Depends(get_db), locale: Optional[str] = None):
    """Load entries from a CSV in the export layout, dates read in the given locale"""
    try:
        formatter = get_formatter(locale)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    content = await file.read()
    if len(content) > MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"El archivo supera {MAX_UPLOAD_SIZE_MB} MB")

    try:
        entries = CSVService.parse_sales_csv(content, formatter)
    except ValueError as e:
        logger.warning("CSV import failed: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    unknown = sorted({e.employee_id for e in entries if e.employee_id not in EMPLOYEES})
    if unknown:
        raise HTTPException(status_code=400, detail=f"Empleadas desconocidas: {', '.join(unknown)}")

    result = SalesService.import_sales(db, entries)
    return {"success": True, "parsed": len(entries), **result}
