"""labforms - service form generation and document lifecycle for lab bookings."""

__version__ = "0.1.0"
