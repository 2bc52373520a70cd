"""Staff-facing API (PDV, waiter app, kitchen display)."""
