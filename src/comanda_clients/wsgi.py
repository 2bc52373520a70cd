"""WSGI entry point for the customer API."""

from comanda_clients.app import create_app

app = create_app()
