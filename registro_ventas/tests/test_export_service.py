import io

import openpyxl
import pytest

from registro_ventas.errors import ValidationError
from registro_ventas.services import ExportService


@pytest.fixture
def exporter(history):
    return ExportService(history)


def test_sales_report_columns_and_rows(exporter):
    sales = [
        {'client': 'Juan Perez', 'product': 'Maíz Molido', 'quantity': 10, 'unit': 'TN',
         'total': 1500, 'paymentStatus': 'debt', 'date': '2024-01-02T13:00:00Z'},
        {'client': 'Ana', 'product': 'Cemento', 'quantity': 2, 'unit': 'U',
         'total': 51, 'date': '2024-01-02T08:15:00'},
    ]
    content, filename = exporter.export('sales', sales)

    assert filename == 'Reporte_sales_02-01-2024.xlsx'
    ws = openpyxl.load_workbook(io.BytesIO(content)).active
    assert ws.title == 'Ventas'
    assert [c.value for c in ws[1]] == ['Fecha', 'Cliente', 'Producto', 'Cantidad', 'Total', 'Estado']
    assert [c.value for c in ws[2]] == [
        '02/01/2024 08:00:00', 'Juan Perez', 'Maíz Molido', '10TN', 1500, 'DEUDA',
    ]
    assert ws['F3'].value == 'PAGADO'
    assert ws.max_row == 3


def test_status_cells_are_colored(exporter):
    wb = exporter.build_workbook('sales', [
        {'client': 'A', 'product': 'P', 'quantity': 1, 'total': 1, 'paymentStatus': 'debt'},
        {'client': 'B', 'product': 'P', 'quantity': 1, 'total': 1, 'paymentStatus': 'paid'},
    ])
    ws = wb.active
    assert ws['F2'].fill.start_color.rgb.endswith('FFC7CE')
    assert ws['F3'].fill.start_color.rgb.endswith('C6EFCE')
    assert ws['A1'].font.bold


def test_expenses_report(exporter):
    content, filename = exporter.export('expenses', [
        {'category': 'Servicios', 'description': 'Luz', 'amount': 45.5, 'date': '2024-01-02T10:00:00'},
    ])

    assert filename == 'Reporte_expenses_02-01-2024.xlsx'
    ws = openpyxl.load_workbook(io.BytesIO(content)).active
    assert ws.title == 'Gastos'
    assert [c.value for c in ws[1]] == ['Fecha', 'Categoría', 'Descripción', 'Monto']
    assert [c.value for c in ws[2]] == ['02/01/2024 10:00:00', 'Servicios', 'Luz', 45.5]


def test_empty_report_has_only_headers(exporter):
    ws = exporter.build_workbook('expenses', []).active
    assert ws.max_row == 1


def test_unknown_report_kind(exporter):
    with pytest.raises(ValidationError):
        exporter.build_workbook('clients', [])
