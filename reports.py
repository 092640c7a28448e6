from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

Row = Dict[str, Any]
Params = Dict[str, Any]


def to_number(value: Any) -> float:
	"""Best-effort numeric value of a view column; anything unusable is 0."""
	if isinstance(value, bool):
		return 0
	if isinstance(value, (int, float, Decimal)):
		parsed = float(value)
	elif isinstance(value, str):
		text = value.strip()
		if not text or "_" in text:
			return 0
		try:
			parsed = float(text)
		except ValueError:
			return 0
	else:
		return 0
	return parsed if math.isfinite(parsed) else 0


def _sum(rows: List[Row], column: str) -> float:
	return sum(to_number(r.get(column)) for r in rows)


def _top(rows: List[Row]) -> Optional[Row]:
	return rows[0] if rows else None


def _product_ranking_kpis(rows: List[Row]) -> Dict[str, Any]:
	return {
		"totalIngresos": _sum(rows, "ingresos_totales"),
		"topProducto": _top(rows),
	}


def _customer_summary_kpis(rows: List[Row]) -> Dict[str, Any]:
	total = _sum(rows, "total_gastado")
	return {
		"totalGastado": total,
		"promedioPorCliente": total / len(rows) if rows else 0,
		"topCliente": _top(rows),
	}


def _popular_products_kpis(rows: List[Row]) -> Dict[str, Any]:
	return {
		"totalUnidades": _sum(rows, "total_vendido"),
		"productoPopular": _top(rows),
	}


def _daily_sales_kpis(rows: List[Row]) -> Dict[str, Any]:
	total = _sum(rows, "total_dia")
	return {
		"totalVentas": total,
		"totalPedidos": _sum(rows, "num_pedidos"),
		"promedioVentas": total / len(rows) if rows else 0,
	}


def _category_value_kpis(rows: List[Row]) -> Dict[str, Any]:
	return {
		"totalCategorias": _sum(rows, "total_categoria"),
		"categoriaTop": _top(rows),
	}


@dataclass(frozen=True)
class Report:
	id: int
	title: str
	description: str
	source: str
	columns: str
	order_by: str
	kpis: Callable[[List[Row]], Dict[str, Any]]
	# (query parameter, column) pairs, each rendered as "column >= value"
	filters: Tuple[Tuple[str, str], ...] = field(default=())
	paginated: bool = True
	limit: Optional[int] = None


REPORTS: Dict[int, Report] = {
	1: Report(
		id=1,
		title="Ranking de Productos",
		description="Productos más vendidos y sus ingresos totales ordenados por ranking de ventas.",
		source="vw_ranking_productos",
		columns="*",
		order_by="ranking_ventas",
		kpis=_product_ranking_kpis,
		filters=(("minIngresos", "ingresos_totales"),),
	),
	2: Report(
		id=2,
		title="Resumen de Clientes",
		description="Análisis de clientes con número de pedidos y total gastado para identificar clientes clave.",
		source="clientes_resumen",
		columns="id_cliente, nombre, num_pedidos, total_gastado",
		order_by="total_gastado DESC",
		kpis=_customer_summary_kpis,
		filters=(("minGastado", "total_gastado"), ("minPedidos", "num_pedidos")),
	),
	3: Report(
		id=3,
		title="Productos Populares",
		description="Productos más populares basado en cantidad total vendida en el período.",
		source="productos_populares",
		columns="id, nombre, total_vendido",
		order_by="total_vendido DESC",
		kpis=_popular_products_kpis,
		filters=(("minTotalVendido", "total_vendido"),),
	),
	4: Report(
		id=4,
		title="Ventas Diarias",
		description="Tendencia de ventas diarias de los últimos 30 días con número de pedidos y totales.",
		source="ventas_diarias",
		columns="dia, num_pedidos, total_dia, ticket_promedio_dia",
		order_by="dia DESC",
		kpis=_daily_sales_kpis,
		paginated=False,
		limit=30,
	),
	5: Report(
		id=5,
		title="Valor por Categoría",
		description="Distribución del valor total de ventas por categoría de productos.",
		source="categoria_valor",
		columns="id_categoria, categoria, total_categoria, porcentaje_total",
		order_by="total_categoria DESC",
		kpis=_category_value_kpis,
		filters=(("minTotalCategoria", "total_categoria"),),
	),
}


def get_report(report_id: int) -> Report:
	return REPORTS[report_id]


def _where(report: Report, params: Params) -> Tuple[str, List[Any]]:
	where = ""
	args: List[Any] = []
	for param, column in report.filters:
		value = params.get(param)
		if value is None:
			continue
		where += f" AND {column} >= %s"
		args.append(value)
	return where, args


def build_page_query(report: Report, params: Params) -> Tuple[str, List[Any]]:
	where, args = _where(report, params)
	sql = f"SELECT {report.columns} FROM {report.source} WHERE 1=1{where}"
	sql += f" ORDER BY {report.order_by}"
	if report.paginated:
		page, page_size = params["page"], params["pageSize"]
		sql += " LIMIT %s OFFSET %s"
		args.extend([page_size, (page - 1) * page_size])
	elif report.limit is not None:
		sql += " LIMIT %s"
		args.append(report.limit)
	return sql, args


def build_count_query(report: Report, params: Params) -> Tuple[str, List[Any]]:
	where, args = _where(report, params)
	return f"SELECT COUNT(*) AS total FROM {report.source} WHERE 1=1{where}", args


def _fetchone_dict(cursor) -> Optional[Row]:
	row = cursor.fetchone()
	if row is None:
		return None
	if isinstance(row, dict):
		return row
	desc = [col[0] for col in cursor.description]
	return dict(zip(desc, row))


def _fetchall_dict(cursor) -> List[Row]:
	rows = cursor.fetchall() or []
	if not rows:
		return []
	if isinstance(rows[0], dict):
		return [dict(r) for r in rows]
	desc = [col[0] for col in cursor.description]
	return [dict(zip(desc, r)) for r in rows]


def _stringify_dates(rows: List[Row]) -> List[Row]:
	for r in rows:
		for key, value in r.items():
			if isinstance(value, (dt.date, dt.datetime)):
				r[key] = value.isoformat()
	return rows


def run_report(cursor, report: Report, params: Params, *, logger=None) -> Dict[str, Any]:
	"""Execute the page (and count) query for ``report`` and reduce the KPIs.

	KPIs cover the returned page only.  Unpaginated reports carry no
	``pagination`` block.
	"""
	sql, args = build_page_query(report, params)
	if logger is not None:
		logger.debug("report %s: %s %r", report.id, sql, args)
	cursor.execute(sql, tuple(args))
	rows = _stringify_dates(_fetchall_dict(cursor))

	if not report.paginated:
		return {"rows": rows, "kpis": report.kpis(rows)}

	count_sql, count_args = build_count_query(report, params)
	cursor.execute(count_sql, tuple(count_args))
	count_row = _fetchone_dict(cursor)
	total_records = int(count_row["total"]) if count_row else 0
	page_size = params["pageSize"]

	return {
		"rows": rows,
		"pagination": {
			"page": params["page"],
			"pageSize": page_size,
			"totalPages": math.ceil(total_records / page_size),
			"totalRecords": total_records,
		},
		"kpis": report.kpis(rows),
	}
