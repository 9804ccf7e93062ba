"""Business rule evaluation and action dispatch for CRM entities."""

__version__ = "1.0.0"
