__title__ = "openml-rest"
__package_name__ = "openml_rest"
__version__ = "0.1.0"
__description__ = "Synchronized HTTP/HTTPS client for the OpenML JSON REST API"
