"""Shared core for the comanda services: models, state machines and domain services."""
