"""Flask HTTP control surface."""
