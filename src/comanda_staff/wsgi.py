"""WSGI entry point for the staff API."""

from comanda_staff.app import create_app

app = create_app()
