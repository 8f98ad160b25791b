"""AtCoder crawling subsystem.

Structure:
- errors.py: typed fetch/parse failures and their retry classification
- client.py: authenticated httpx client and AtCoder URL builders
- base.py: cursor-bounded page crawler with retries and pacing
- spiders/: contest archive and per-contest submission parsers
- runner.py: CLI entrypoint for the two sync jobs

Pages are fetched with httpx and parsed with selectolax.
"""

__all__ = [
    "errors",
    "client",
    "base",
]
