"""
Add-on download count fetcher.

Scrapes per-add-on download counts from CurseForge and WoWInterface, adds
them up, and logs the totals or posts them to a collection API.
"""

__version__ = "0.1.0"
