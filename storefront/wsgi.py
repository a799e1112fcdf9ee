"""WSGI entry point: ``gunicorn storefront.wsgi:app``."""
from storefront.startup import create_app

app = create_app()
