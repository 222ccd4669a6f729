"""VisitorsApp operator — reconciles database, backend and frontend tiers."""

__version__ = "1.0.0"
