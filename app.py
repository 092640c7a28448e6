from __future__ import annotations

import datetime as dt
import math
import os
from functools import wraps
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import urlencode

import jwt
import dicttoxml
from flask import Flask, Response, current_app, jsonify, make_response, render_template, request
from flask_mysqldb import MySQL
from werkzeug.exceptions import BadRequest, HTTPException, NotFound

from config import Config, env_flag
from report_filters import parse_report_params
from reports import REPORTS, Report, get_report, run_report, to_number


mysql = MySQL()

PAGE_SIZE_OPTIONS = (5, 10, 20, 50, 100)


def _get_format() -> str:
	fmt = (request.args.get("format") or "json").strip().lower()
	if fmt not in {"json", "xml"}:
		raise BadRequest("format must be 'json' or 'xml'")
	return fmt


def _to_xml(payload: Any, root: str = "response") -> bytes:
	return dicttoxml.dicttoxml(payload, custom_root=root, attr_type=False)


def api_response(payload: Any, status: int = 200, *, root: str = "response") -> Response:
	fmt = _get_format()
	if fmt == "xml":
		xml_bytes = _to_xml(payload, root=root)
		resp = make_response(xml_bytes, status)
		resp.headers["Content-Type"] = "application/xml; charset=utf-8"
		return resp
	return make_response(jsonify(payload), status)


def error_response(message: str, status: int) -> Response:
	payload: Dict[str, Any] = {"error": message, "status": status}
	try:
		return api_response(payload, status=status, root="error")
	except BadRequest:
		# the format argument itself was the problem
		return make_response(jsonify(payload), status)


def _is_api_request() -> bool:
	return request.path.startswith(("/api/", "/auth/")) or request.path == "/health"


def _generate_token(username: str, secret: str, *, expires_minutes: int = 60) -> str:
	now = dt.datetime.now(dt.timezone.utc)
	payload = {
		"sub": username,
		"iat": int(now.timestamp()),
		"exp": int((now + dt.timedelta(minutes=expires_minutes)).timestamp()),
	}
	return jwt.encode(payload, secret, algorithm="HS256")


def require_jwt(fn: Callable[..., Response]) -> Callable[..., Response]:
	"""Guard a view with a bearer token when ``REPORTS_API_AUTH`` is on."""

	@wraps(fn)
	def wrapper(*args: Any, **kwargs: Any) -> Response:
		if not current_app.config.get("REPORTS_API_AUTH"):
			return fn(*args, **kwargs)
		header = request.headers.get("Authorization", "")
		if not header.startswith("Bearer "):
			return error_response("Missing or invalid Authorization header", 401)
		token = header.split(" ", 1)[1].strip()
		try:
			jwt.decode(token, current_app.config["JWT_SECRET_KEY"], algorithms=["HS256"])
		except jwt.ExpiredSignatureError:
			return error_response("Token expired", 401)
		except jwt.InvalidTokenError:
			return error_response("Invalid token", 401)
		return fn(*args, **kwargs)

	return wrapper


def _db() -> Tuple[Any, Any]:
	conn = mysql.connection
	cur = conn.cursor()
	return conn, cur


def _lookup_report(report_id: int) -> Report:
	try:
		return get_report(report_id)
	except KeyError:
		raise NotFound(f"Report {report_id} does not exist")


def _load_report(report: Report) -> Dict[str, Any]:
	params = parse_report_params(report.id, request.args)
	_, cur = _db()
	return run_report(cur, report, params, logger=current_app.logger)


def page_url(**overrides: Any) -> str:
	"""Current query string with ``overrides`` applied; ``None``/"" drops a key."""
	args = request.args.to_dict(flat=False)
	for key, value in overrides.items():
		if value is None or value == "":
			args.pop(key, None)
		else:
			args[key] = [str(value)]
	query = urlencode(args, doseq=True)
	return f"?{query}" if query else "?"


def format_integer(value: Any) -> str:
	return f"{math.floor(to_number(value) + 0.5):,}"


def format_currency(value: Any) -> str:
	return f"{to_number(value):,.2f}"


def format_percent(value: Any) -> str:
	return f"{to_number(value):.2f}"


def create_app(test_config: Optional[Mapping[str, Any]] = None) -> Flask:
	app = Flask(__name__)
	app.config.from_object(Config)

	# Env vars set after import still win over the Config class defaults.
	def _env(name: str, default: Any) -> Any:
		value = os.getenv(name)
		if value is None:
			return default
		return value

	app.config["MYSQL_USER"] = _env("MYSQL_USER", app.config.get("MYSQL_USER"))
	app.config["MYSQL_PASSWORD"] = _env("MYSQL_PASSWORD", app.config.get("MYSQL_PASSWORD"))
	app.config["MYSQL_HOST"] = _env("MYSQL_HOST", app.config.get("MYSQL_HOST"))
	app.config["MYSQL_DB"] = _env("MYSQL_DB", app.config.get("MYSQL_DB"))
	app.config["MYSQL_PORT"] = int(_env("MYSQL_PORT", app.config.get("MYSQL_PORT", 3306)))
	app.config["REPORTS_API_AUTH"] = env_flag("REPORTS_API_AUTH", app.config.get("REPORTS_API_AUTH", False))
	app.config["JWT_SECRET_KEY"] = _env("JWT_SECRET_KEY", app.config.get("JWT_SECRET_KEY"))
	app.config["JWT_EXPIRES_MINUTES"] = int(_env("JWT_EXPIRES_MINUTES", app.config.get("JWT_EXPIRES_MINUTES", 60)))
	app.config["API_USERNAME"] = _env("API_USERNAME", app.config.get("API_USERNAME"))
	app.config["API_PASSWORD"] = _env("API_PASSWORD", app.config.get("API_PASSWORD"))
	app.config["LOG_LEVEL"] = _env("LOG_LEVEL", app.config.get("LOG_LEVEL", "INFO"))
	app.config.setdefault("MYSQL_CURSORCLASS", "DictCursor")

	if test_config:
		app.config.update(test_config)

	app.logger.setLevel(str(app.config["LOG_LEVEL"]).upper())

	mysql.init_app(app)

	app.add_template_filter(format_integer, "integer")
	app.add_template_filter(format_currency, "currency")
	app.add_template_filter(format_percent, "percent")
	app.add_template_global(page_url)

	@app.get("/health")
	def health() -> Response:
		return api_response({"status": "ok"})

	@app.post("/auth/login")
	def login() -> Response:
		body = request.get_json(silent=True) or {}
		username = body.get("username")
		password = body.get("password")
		if username != app.config.get("API_USERNAME") or password != app.config.get("API_PASSWORD"):
			return error_response("Invalid credentials", 401)
		expires = app.config["JWT_EXPIRES_MINUTES"]
		token = _generate_token(str(username), app.config["JWT_SECRET_KEY"], expires_minutes=expires)
		return api_response({"access_token": token, "token_type": "Bearer", "expires_in": expires * 60})

	# -------------------------
	# JSON / XML report endpoints
	# -------------------------
	@app.get("/api/reports/<int:report_id>")
	@require_jwt
	def report_api(report_id: int) -> Response:
		report = _lookup_report(report_id)
		_get_format()
		try:
			payload = _load_report(report)
		except Exception:
			app.logger.exception("report %s query failed", report_id)
			return api_response({"error": f"Error al obtener reporte {report_id}."}, status=500, root="error")
		return api_response(payload, root="report")

	# -------------------------
	# Server-rendered pages
	# -------------------------
	@app.get("/")
	def dashboard() -> str:
		return render_template("index.html", reports=list(REPORTS.values()))

	@app.get("/reports/<int:report_id>")
	def report_page(report_id: int):
		report = _lookup_report(report_id)
		try:
			data = _load_report(report)
		except Exception:
			app.logger.exception("report %s page failed", report_id)
			message = f"Error al cargar el reporte {report_id}."
			return render_template("error.html", message=message, status=500), 500
		return render_template(
			f"reports/report_{report_id}.html",
			report=report,
			rows=data["rows"],
			kpis=data["kpis"],
			pagination=data.get("pagination"),
			args=request.args,
			page_size_options=PAGE_SIZE_OPTIONS,
		)

	# -------------------------
	# Consistent error bodies
	# -------------------------
	@app.errorhandler(BadRequest)
	def _bad_request(err: BadRequest):
		message = str(err.description or "Bad request")
		if _is_api_request():
			return error_response(message, 400)
		return render_template("error.html", message=message, status=400), 400

	@app.errorhandler(NotFound)
	def _not_found(err: NotFound):
		if _is_api_request():
			return error_response("Not found", 404)
		return render_template("error.html", message="Página no encontrada.", status=404), 404

	@app.errorhandler(Exception)
	def _unhandled(err: Exception):
		if isinstance(err, HTTPException):
			code = err.code or 500
			if _is_api_request():
				return error_response(err.name, code)
			return render_template("error.html", message=err.name, status=code), code
		app.logger.exception("unhandled error on %s", request.path)
		if _is_api_request():
			return error_response("Internal server error", 500)
		return render_template("error.html", message="Error interno del servidor.", status=500), 500

	return app


app = create_app()


if __name__ == "__main__":
	port = int(os.getenv("PORT", 5000))
	app.run(host="0.0.0.0", port=port, debug=True)
