"""solidview: browse the SOLID principles documentation with rendered diagrams."""

__version__ = "0.1.0"
