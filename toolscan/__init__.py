"""
Top-level package for toolscan, a marketplace tool scanner.

This package fetches candidate products from a marketplace (Product
Hunt, the G2 API, or scraped G2 pages), ranks them against free-text
criteria with a weighted keyword heuristic, and serves the top three
with a short justification over a small FastAPI app.  There are no
side-effects on import; configuration is read when the app starts or
the CLI runs.
"""
