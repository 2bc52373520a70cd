"""Customer-facing API (delivery menu checkout and order tracking)."""
