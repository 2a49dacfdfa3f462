"""
Utility modules for the delivery app
"""
from .config_loader import ERPSettings, SettingsStore
