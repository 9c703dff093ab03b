import logging
from datetime import datetime
from io import StringIO
from typing import List, Mapping, Optional, Sequence

import chardet
import pandas as pd
from pydantic import ValidationError

from sales_tracker.schemas import SaleEntryCreate
from sales_tracker.utils.formatting import Formatter, get_formatter

logger = logging.getLogger(__name__)

# (record field, header) in export order
EXPORT_COLUMNS = [
    ("date", "Fecha"),
    ("employee_id", "Empleada"),
    ("revenue", "Venta Total (€)"),
    ("units", "Unidades"),
    ("transactions", "Operaciones"),
    ("visitors", "Clientes"),
    ("hours_worked", "Horas Trabajadas"),
    ("conversion", "Conversion (%)"),
    ("average_ticket", "Ticket Medio (€)"),
    ("units_per_transaction", "UPT (Unidades/Ticket)"),
    ("average_price", "PMV (Precio Medio Venta)"),
    ("productivity", "Productividad (€/h)"),
]

# Only the inputs are read back, ratios are always recomputed
IMPORT_FIELDS = ["date", "employee_id", "visitors", "transactions", "units", "revenue", "hours_worked"]

DATE_FORMATS = ["%d/%m/%Y", "%Y-%m-%d", "%d.%m.%Y", "%d-%m-%Y", "%m/%d/%Y"]


class CSVService:
    """Daily sales CSV export and import"""

    @staticmethod
    def export_sales_csv(records: Sequence[Mapping], formatter: Optional[Formatter] = None) -> str:
        """
        Serialize derived records in the fixed export column order.
        A UTF-8 BOM is prepended so spreadsheet apps detect the encoding.
        """
        formatter = formatter or get_formatter()

        rows = []
        for record in records:
            row = []
            for field, _ in EXPORT_COLUMNS:
                value = record.get(field)
                if field == "date" and value is not None:
                    value = formatter.date(value)
                row.append(value)
            rows.append(row)

        df = pd.DataFrame(rows, columns=[header for _, header in EXPORT_COLUMNS])
        content = df.to_csv(index=False, lineterminator="\n", float_format="%.2f", na_rep="")
        return "\ufeff" + content

    @staticmethod
    def detect_encoding(file_bytes: bytes) -> str:
        """Detect the file encoding"""
        result = chardet.detect(file_bytes)
        encoding = result.get("encoding") or "utf-8"

        encoding = encoding.lower()
        if encoding in ("ascii", "utf-8"):
            # ascii is a subset, and utf-8-sig also accepts files without BOM
            return "utf-8-sig"
        return encoding

    @staticmethod
    def _decode(file_bytes: bytes) -> str:
        # Strict UTF-8 first: chardet misreads short files with few non-ASCII characters
        try:
            return file_bytes.decode("utf-8-sig")
        except UnicodeDecodeError:
            pass

        detected_encoding = CSVService.detect_encoding(file_bytes)
        try:
            return file_bytes.decode(detected_encoding)
        except (UnicodeDecodeError, LookupError) as e:
            logger.warning("Decoding with %s failed: %s", detected_encoding, e)

        for enc in ["cp1252", "latin-1"]:
            try:
                return file_bytes.decode(enc)
            except UnicodeDecodeError:
                continue
        raise ValueError("No se puede decodificar el archivo con ninguna codificación soportada")

    @staticmethod
    def _date_formats(formatter: Formatter) -> List[str]:
        # The exporting locale's format wins: 03/05/2024 is ambiguous otherwise
        primary = formatter.conventions.date_format
        return [primary] + [fmt for fmt in DATE_FORMATS if fmt != primary]

    @staticmethod
    def _parse_date(value: str, formats: Sequence[str] = DATE_FORMATS):
        for fmt in formats:
            try:
                return datetime.strptime(value, fmt).date()
            except ValueError:
                continue
        raise ValueError(f"Formato de fecha no reconocido: {value}")

    @staticmethod
    def _parse_number(value: str) -> float:
        text = value.strip()
        if "," in text and "." in text:
            # the right-most separator is the decimal one
            if text.rfind(",") > text.rfind("."):
                text = text.replace(".", "").replace(",", ".")
            else:
                text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
        return float(text)

    @staticmethod
    def _parse_count(value: str) -> int:
        number = CSVService._parse_number(value)
        if not number.is_integer():
            raise ValueError(f"Se esperaba un número entero: {value}")
        return int(number)

    @staticmethod
    def parse_sales_csv(file_bytes: bytes, formatter: Optional[Formatter] = None) -> List[SaleEntryCreate]:
        """
        Parse a file in the export layout into new entries.
        Dates are read with the formatter's locale first (configured LOCALE by
        default). Rows that cannot be read are skipped with a warning.
        """
        date_formats = CSVService._date_formats(formatter or get_formatter())
        content_str = CSVService._decode(file_bytes).lstrip("\ufeff")

        try:
            df = pd.read_csv(StringIO(content_str), dtype=str, keep_default_na=False)
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise ValueError(f"No se pudo leer el CSV: {e}") from e

        header_to_field = {header: field for field, header in EXPORT_COLUMNS}
        df.columns = [header_to_field.get(str(col).strip(), str(col).strip()) for col in df.columns]

        missing = [field for field in IMPORT_FIELDS if field not in df.columns]
        if missing:
            raise ValueError(f"Faltan columnas en el CSV: {', '.join(missing)}")

        logger.info("CSV import: %d row(s) found", len(df))

        entries = []
        for idx, row in df.iterrows():
            try:
                data = {
                    "date": CSVService._parse_date(row["date"].strip(), date_formats),
                    "employee_id": row["employee_id"].strip().strip('"'),
                    "visitors": CSVService._parse_count(row["visitors"]),
                    "transactions": CSVService._parse_count(row["transactions"]),
                    "units": CSVService._parse_count(row["units"]),
                    "revenue": CSVService._parse_number(row["revenue"]),
                    "hours_worked": CSVService._parse_number(row["hours_worked"]),
                }
                entries.append(SaleEntryCreate(**data))
            except (ValueError, ValidationError) as e:
                logger.warning("CSV row %d skipped: %s", idx + 2, e)
                continue

        logger.info("CSV import: %d entr(y/ies) parsed", len(entries))
        return entries
