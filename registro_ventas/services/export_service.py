# ==============================================================================
# SERVICIO DE EXPORTACIÓN - Reportes XLSX (openpyxl)
# ==============================================================================
# El orden y los nombres de las columnas son un contrato con quienes
# abren los reportes; no cambiarlos:
#
#   Ventas: Fecha | Cliente | Producto | Cantidad | Total | Estado
#   Gastos: Fecha | Categoría | Descripción | Monto
#
# Nombre del archivo: Reporte_{sales|expenses}_{dd-mm-YYYY}.xlsx
# ==============================================================================

import io
import logging
from typing import Any, Dict, Iterable, Tuple

import openpyxl
from openpyxl.styles import Font, PatternFill

from registro_ventas.errors import ValidationError
from registro_ventas.services.history_service import HistoryAggregator, is_debt_record

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

SALES_COLUMNS = (
    ('Fecha', 20), ('Cliente', 25), ('Producto', 25),
    ('Cantidad', 10), ('Total', 15), ('Estado', 15),
)
EXPENSES_COLUMNS = (
    ('Fecha', 20), ('Categoría', 20), ('Descripción', 35), ('Monto', 15),
)

SHEET_TITLES = {'sales': 'Ventas', 'expenses': 'Gastos'}

HEADER_FILL = PatternFill(start_color='D9E2F3', end_color='D9E2F3', fill_type='solid')
PAID_FILL = PatternFill(start_color='C6EFCE', end_color='C6EFCE', fill_type='solid')
DEBT_FILL = PatternFill(start_color='FFC7CE', end_color='FFC7CE', fill_type='solid')
PAID_FONT = Font(color='006100', bold=True)
DEBT_FONT = Font(color='9C0006', bold=True)


class ExportService:
    """Genera reportes XLSX a partir de registros ya cargados."""

    def __init__(self, history: HistoryAggregator = None):
        self.history = history or HistoryAggregator()

    def _format_date(self, value: Any) -> str:
        moment = self.history.parse_timestamp(value)
        return moment.strftime('%d/%m/%Y %H:%M:%S') if moment else str(value or '')

    def filename(self, kind: str) -> str:
        return f"Reporte_{kind}_{self.history.now().strftime('%d-%m-%Y')}.xlsx"

    def build_workbook(self, kind: str, records: Iterable[Dict[str, Any]]) -> openpyxl.Workbook:
        """
        Raises:
            ValidationError: Si kind no es 'sales' ni 'expenses'
        """
        if kind not in SHEET_TITLES:
            raise ValidationError(f'Tipo de reporte desconocido: {kind}')

        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = SHEET_TITLES[kind]
        columns = SALES_COLUMNS if kind == 'sales' else EXPENSES_COLUMNS

        for col, (header, width) in enumerate(columns, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = Font(bold=True)
            cell.fill = HEADER_FILL
            ws.column_dimensions[cell.column_letter].width = width

        row_num = 2
        for record in records:
            if kind == 'sales':
                debt = is_debt_record(record)
                row = [
                    self._format_date(record.get('date')),
                    record.get('client', ''),
                    record.get('product', ''),
                    f"{record.get('quantity', '')}{record.get('unit') or ''}",
                    float(record.get('total') or 0),
                    'DEUDA' if debt else 'PAGADO',
                ]
            else:
                row = [
                    self._format_date(record.get('date')),
                    record.get('category', ''),
                    record.get('description', ''),
                    float(record.get('amount') or 0),
                ]

            for col, value in enumerate(row, 1):
                ws.cell(row=row_num, column=col, value=value)

            if kind == 'sales':
                status_cell = ws.cell(row=row_num, column=len(row))
                status_cell.fill = DEBT_FILL if debt else PAID_FILL
                status_cell.font = DEBT_FONT if debt else PAID_FONT
            row_num += 1

        logger.debug('[EXPORTAR] %s: %d filas', kind, row_num - 2)
        return wb

    def export(self, kind: str, records: Iterable[Dict[str, Any]]) -> Tuple[bytes, str]:
        """
        Returns:
            (contenido .xlsx, nombre de archivo)
        """
        wb = self.build_workbook(kind, records)
        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue(), self.filename(kind)
