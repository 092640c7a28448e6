import datetime as dt
import unittest
from unittest import mock

from app import create_app, format_currency, format_integer, format_percent
from fakes import FakeCursor


class FormattingTests(unittest.TestCase):
	def test_number_filters(self):
		self.assertEqual(format_integer(1234.5), "1,235")
		self.assertEqual(format_integer("87"), "87")
		self.assertEqual(format_currency("1234.5"), "1,234.50")
		self.assertEqual(format_currency(None), "0.00")
		self.assertEqual(format_percent("12.345"), "12.35")


class ReportPageTests(unittest.TestCase):
	def setUp(self) -> None:
		self.app = create_app({"TESTING": True})
		self.client = self.app.test_client()

	def _use_cursor(self, cursor: FakeCursor) -> FakeCursor:
		patcher = mock.patch("app._db", return_value=(None, cursor))
		patcher.start()
		self.addCleanup(patcher.stop)
		return cursor

	def test_dashboard_lists_every_report(self):
		resp = self.client.get("/")
		self.assertEqual(resp.status_code, 200)
		html = resp.get_data(as_text=True)
		for title in (
			"Ranking de Productos",
			"Resumen de Clientes",
			"Productos Populares",
			"Ventas Diarias",
			"Valor por Categoría",
		):
			self.assertIn(title, html)
		for report_id in range(1, 6):
			self.assertIn(f'href="/reports/{report_id}"', html)

	def test_first_page_renders_table_kpis_and_next_link(self):
		rows = [
			{
				"producto_id": 10,
				"producto_codigo": "LP-01",
				"producto_nombre": "Laptop",
				"categoria_nombre": "Computo",
				"unidades_vendidas": 12,
				"ingresos_totales": "1500.50",
				"num_ordenes": 9,
				"ranking_ventas": 1,
				"porcentaje_ingresos": "42.5",
			},
			{"producto_id": 11, "producto_nombre": "Monitor", "ingresos_totales": "499.50", "ranking_ventas": 2},
		]
		self._use_cursor(FakeCursor(rows, total=45))
		html = self.client.get("/reports/1").get_data(as_text=True)

		self.assertIn("Ranking de Productos Más Vendidos", html)
		self.assertIn("LP-01", html)
		self.assertIn("42.50%", html)
		self.assertIn("$2,000.00", html)
		self.assertIn("Producto Top: Laptop", html)
		self.assertIn("Página 1 de 3", html)
		self.assertIn('href="?page=2&amp;pageSize=20"', html)
		self.assertNotIn("Anterior", html)
		self.assertIn('<option value="20" selected>', html)

	def test_pagination_links_keep_filters(self):
		self._use_cursor(FakeCursor([{"producto_nombre": "Laptop"}], total=30))
		html = self.client.get("/reports/1?minIngresos=100&page=2&pageSize=10").get_data(as_text=True)

		self.assertIn('value="100"', html)
		self.assertIn("Página 2 de 3", html)
		self.assertIn('href="?minIngresos=100&amp;page=1&amp;pageSize=10"', html)
		self.assertIn('href="?minIngresos=100&amp;page=3&amp;pageSize=10"', html)

	def test_smallest_page_size_stays_selected(self):
		self._use_cursor(FakeCursor([{"nombre": "Mouse", "total_vendido": 3}], total=12))
		html = self.client.get("/reports/3?pageSize=5").get_data(as_text=True)
		self.assertIn('<option value="5" selected>', html)
		self.assertNotIn('<option value="10" selected>', html)
		self.assertIn("Página 1 de 3", html)

	def test_last_page_has_no_next_link(self):
		self._use_cursor(FakeCursor([{"nombre": "Ana", "total_gastado": 10}], total=21))
		html = self.client.get("/reports/2?page=2").get_data(as_text=True)
		self.assertIn("Anterior", html)
		self.assertNotIn("Siguiente", html)
		self.assertIn("Cliente Top: Ana", html)

	def test_empty_report(self):
		self._use_cursor(FakeCursor([], total=0))
		html = self.client.get("/reports/5").get_data(as_text=True)
		self.assertIn("Sin resultados", html)
		self.assertIn("Página 1 de 1", html)
		self.assertNotIn("Categoría Top", html)

	def test_daily_sales_page(self):
		rows = [{"dia": dt.date(2024, 5, 2), "num_pedidos": 4, "total_dia": 400, "ticket_promedio_dia": 100}]
		self._use_cursor(FakeCursor(rows))
		html = self.client.get("/reports/4").get_data(as_text=True)
		self.assertIn("2024-05-02", html)
		self.assertIn("$400.00", html)
		self.assertNotIn("Página", html)
		self.assertNotIn("<form", html)

	def test_database_error_renders_error_page(self):
		self._use_cursor(FakeCursor(error=RuntimeError("boom")))
		resp = self.client.get("/reports/2")
		self.assertEqual(resp.status_code, 500)
		self.assertIn("Error al cargar el reporte 2.", resp.get_data(as_text=True))

	def test_unknown_report_page(self):
		resp = self.client.get("/reports/7")
		self.assertEqual(resp.status_code, 404)
		self.assertIn("Página no encontrada.", resp.get_data(as_text=True))


if __name__ == "__main__":
	unittest.main()
