"""Core domain: ports, services, error taxonomy and observability."""
