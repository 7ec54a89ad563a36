"""Command-line entry points for sensor record transfer and hourly export."""
