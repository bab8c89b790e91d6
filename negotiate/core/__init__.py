"""Core configuration, logging, format table and negotiation algorithm."""
