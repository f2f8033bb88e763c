"""Infrastructure layer - HTTP, persistence, time and observability adapters."""
