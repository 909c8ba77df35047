"""
Core module - Database, configuration, and section manifests
"""

from .database import get_supabase_client
from .config import Config, SectionManifest, load_section_manifests

__all__ = ['get_supabase_client', 'Config', 'SectionManifest', 'load_section_manifests']
