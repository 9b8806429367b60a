# ==============================================================================
# SERVICIO DE HISTORIAL - Agrupación por fecha, filtros y resúmenes
# ==============================================================================
# Trabaja sobre secuencias ya cargadas (snapshots de CollectionSync); no
# accede al almacén.
#
# Fechas:
#   - Cada registro se localiza a la zona horaria configurada (TIMEZONE)
#   - Un timestamp sin zona se interpreta como hora local de esa zona
#   - Un timestamp que no se puede interpretar cae en el día de HOY
# ==============================================================================

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from registro_ventas import config
from registro_ventas.models import PaymentStatus, normalize_payment_status

logger = logging.getLogger(__name__)

DIAS = ('lunes', 'martes', 'miércoles', 'jueves', 'viernes', 'sábado', 'domingo')
DIAS_CORTOS = ('lun', 'mar', 'mié', 'jue', 'vie', 'sáb', 'dom')
MESES = (
    'enero', 'febrero', 'marzo', 'abril', 'mayo', 'junio', 'julio',
    'agosto', 'septiembre', 'octubre', 'noviembre', 'diciembre',
)

DayLike = Union[date, str, None]


def _contains(value: Any, term: str) -> bool:
    return term in str(value or '').lower()


def is_debt_record(record: Dict[str, Any]) -> bool:
    try:
        return normalize_payment_status(record.get('paymentStatus')) == PaymentStatus.DEBT.value
    except ValueError:
        return False


def _amount(record: Dict[str, Any]) -> float:
    """Monto de una venta (total) o de un gasto (amount)."""
    value = record.get('total') or record.get('amount') or 0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class HistoryAggregator:
    """
    Agrupa ventas por día y calcula los resúmenes del panel.

    Uso:
        history = HistoryAggregator()
        buckets = history.history(sales.data, search='juan', only_debts=True)
    """

    def __init__(self, tz_name: str = None, now: Callable[[], datetime] = None):
        """
        Args:
            tz_name: Zona horaria IANA (por defecto config.TIMEZONE)
            now: Reloj inyectable; debe retornar un datetime con zona
        """
        tz_name = tz_name or config.TIMEZONE
        try:
            self.tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning('[HISTORIAL] Zona horaria desconocida %r, usando UTC', tz_name)
            self.tz = timezone.utc
        self._now = now or (lambda: datetime.now(self.tz))

    # =========================================================================
    # FECHAS
    # =========================================================================

    def now(self) -> datetime:
        return self._now().astimezone(self.tz)

    def parse_timestamp(self, value: Any) -> Optional[datetime]:
        """
        Interpreta un timestamp (ISO, datetime, epoch o {'seconds': ...}).

        Returns:
            datetime en la zona configurada, o None si no se puede interpretar
        """
        if value is None or value == '':
            return None
        try:
            if isinstance(value, dict) and 'seconds' in value:
                value = float(value['seconds'])
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return datetime.fromtimestamp(value, tz=timezone.utc).astimezone(self.tz)
            if isinstance(value, datetime):
                parsed = value
            elif isinstance(value, date):
                parsed = datetime(value.year, value.month, value.day)
            else:
                parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
        except (ValueError, TypeError, OverflowError, OSError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=self.tz)
        return parsed.astimezone(self.tz)

    def localize(self, value: Any) -> datetime:
        """Como parse_timestamp, pero un valor inválido se toma como AHORA."""
        parsed = self.parse_timestamp(value)
        return parsed if parsed is not None else self.now()

    def _day(self, day: DayLike) -> date:
        if day is None:
            return self.now().date()
        if isinstance(day, datetime):
            return day.astimezone(self.tz).date()
        if isinstance(day, date):
            return day
        return date.fromisoformat(str(day))

    @staticmethod
    def day_label(day: date) -> str:
        """Ej: 'martes, 2 de enero de 2024'."""
        return f"{DIAS[day.weekday()]}, {day.day} de {MESES[day.month - 1]} de {day.year}"

    # =========================================================================
    # AGRUPACIÓN Y FILTROS
    # =========================================================================

    def group_by_date(self, sales: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Agrupa por día calendario conservando el orden de aparición de los
        grupos y el orden de los registros dentro de cada grupo.

        Returns:
            [{'date': 'YYYY-MM-DD', 'label': str, 'sales': [...]}]
            Cada registro es una copia con 'time' (HH:MM) añadido.
        """
        buckets: Dict[str, Dict[str, Any]] = {}
        for sale in sales:
            moment = self.localize(sale.get('date'))
            key = moment.date().isoformat()
            bucket = buckets.get(key)
            if bucket is None:
                bucket = {'date': key, 'label': self.day_label(moment.date()), 'sales': []}
                buckets[key] = bucket
            record = dict(sale)
            record['time'] = moment.strftime('%H:%M')
            bucket['sales'].append(record)
        return list(buckets.values())

    def filter_sales(
        self,
        sales: Iterable[Dict[str, Any]],
        search: str = '',
        only_debts: bool = False
    ) -> List[Dict[str, Any]]:
        """Coincidencia por cliente O producto, Y (opcional) solo deudas."""
        term = (search or '').strip().lower()
        result = []
        for sale in sales:
            if term and not (_contains(sale.get('client'), term) or _contains(sale.get('product'), term)):
                continue
            if only_debts and not is_debt_record(sale):
                continue
            result.append(sale)
        return result

    def history(
        self,
        sales: Iterable[Dict[str, Any]],
        search: str = '',
        only_debts: bool = False
    ) -> List[Dict[str, Any]]:
        """Grupos por día con los filtros aplicados; sin grupos vacíos."""
        buckets = []
        for bucket in self.group_by_date(sales):
            matching = self.filter_sales(bucket['sales'], search, only_debts)
            if not matching:
                continue
            buckets.append({
                'date': bucket['date'],
                'label': bucket['label'],
                'sales': matching,
                'total': round(sum(_amount(s) for s in matching), 2),
            })
        return buckets

    def sort_buckets(self, buckets: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Ordena grupos del más reciente al más antiguo usando SOLO el primer
        registro de cada grupo. Correcto únicamente si la entrada ya viene
        ordenada por fecha descendente.
        """
        def first_moment(bucket):
            records = bucket.get('sales') or []
            return self.localize(records[0].get('date')) if records else datetime.min.replace(tzinfo=self.tz)

        return sorted(buckets, key=first_moment, reverse=True)

    def filter_expenses(self, expenses: Iterable[Dict[str, Any]], search: str = '') -> List[Dict[str, Any]]:
        term = (search or '').strip().lower()
        return [
            e for e in expenses
            if not term or _contains(e.get('description'), term) or _contains(e.get('category'), term)
        ]

    # =========================================================================
    # RESÚMENES
    # =========================================================================

    def records_for_day(self, records: Iterable[Dict[str, Any]], day: DayLike = None) -> List[Dict[str, Any]]:
        target = self._day(day)
        result = []
        for record in records:
            moment = self.parse_timestamp(record.get('date'))
            if moment is not None and moment.date() == target:
                result.append(record)
        return result

    def totals_for_day(self, records: Iterable[Dict[str, Any]], day: DayLike = None) -> float:
        """Suma de total (ventas) o amount (gastos) del día indicado."""
        return round(sum(_amount(r) for r in self.records_for_day(records, day)), 2)

    def today_summary(self, sales: List[Dict[str, Any]], expenses: List[Dict[str, Any]]) -> Dict[str, Any]:
        today = self.now().date()
        sales_total = self.totals_for_day(sales, today)
        expenses_total = self.totals_for_day(expenses, today)
        return {
            'date': today.isoformat(),
            'sales': sales_total,
            'expenses': expenses_total,
            'balance': round(sales_total - expenses_total, 2),
            'sales_count': len(self.records_for_day(sales, today)),
        }

    def daily_series(
        self,
        sales: List[Dict[str, Any]],
        expenses: List[Dict[str, Any]],
        days: int = 7
    ) -> List[Dict[str, Any]]:
        """Filas del gráfico de los últimos N días, de la más antigua a hoy."""
        today = self.now().date()
        rows = []
        for offset in range(days - 1, -1, -1):
            day = today - timedelta(days=offset)
            rows.append({
                'date': day.isoformat(),
                'label': DIAS_CORTOS[day.weekday()],
                'ventas': self.totals_for_day(sales, day),
                'gastos': self.totals_for_day(expenses, day),
            })
        return rows

    def debt_breakdown(self, sales: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        """Cantidad de ventas pagadas vs. en deuda y monto adeudado."""
        paid = debt = 0
        debt_total = 0.0
        for sale in sales:
            if is_debt_record(sale):
                debt += 1
                debt_total += _amount(sale)
            else:
                paid += 1
        return {'paid': paid, 'debt': debt, 'debt_total': round(debt_total, 2)}
