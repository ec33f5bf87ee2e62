"""
GUI components for quick settings
"""
