"""Supporting services: money arithmetic and HTTP-backed handlers."""
