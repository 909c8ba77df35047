"""
MarketOps - Marketing operations toolkit

Projects, briefs, buyer avatars, competitor research, narrative strategy and
ad creatives, generated by external AI webhooks and stored in Supabase.
"""

__version__ = "0.1.0"
__author__ = "MarketOps Team"
