"""Infrastructure layer: process supervision, parsing, status, results and configuration."""
