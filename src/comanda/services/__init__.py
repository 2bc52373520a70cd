"""Domain services for tables, table orders, delivery orders, kitchen and access."""
