"""Generate HTML pages for arbitrary URL paths with an LLM and cache them."""
