"""Unit economic map: cascading region filters, aggregation queries and map styling."""
