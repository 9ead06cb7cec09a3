"""
Gear shop new-product scraper.

Scrapes the gear shop listing page, works out which products have not been
seen before, stores them and hands each one to a notifier.
"""

__version__ = "1.0.0"
