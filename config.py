import os


def env_flag(name: str, default: bool = False) -> bool:
	value = os.getenv(name)
	if value is None:
		return default
	return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
	MYSQL_USER = os.getenv('MYSQL_USER', 'root')
	MYSQL_PASSWORD = os.getenv('MYSQL_PASSWORD', 'root123')
	MYSQL_HOST = os.getenv('MYSQL_HOST', 'localhost')
	MYSQL_DB = os.getenv('MYSQL_DB', 'sales_reports')
	MYSQL_PORT = int(os.getenv('MYSQL_PORT', 3306))
	MYSQL_CURSORCLASS = 'DictCursor'
	REPORTS_API_AUTH = env_flag('REPORTS_API_AUTH')
	JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'your_jwt_secret_key')
	JWT_EXPIRES_MINUTES = int(os.getenv('JWT_EXPIRES_MINUTES', 60))
	API_USERNAME = os.getenv('API_USERNAME', 'admin')
	API_PASSWORD = os.getenv('API_PASSWORD', 'password')
	LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
