"""
Firechat Theme - light chat colors
"""

COLORS = {
    "accent": "#3F51B5",          # Indigo
    "message_bg": "#FFFFFF",
    "author": "#757575",          # Gray
    "text_primary": "#000000",
    "bg_primary": "#FFFFFF",
    "bg_secondary": "#F5F5F5",
    "divider": "#E0E0E0",
    "error": "#E53935",
    "camera_bg": "#000000",
}

FONT_SIZES = {
    "sm": 12,
    "base": 14,
    "lg": 16,
    "3xl": 24
}

SPACING = {
    "sm": 4,
    "md": 8,
    "lg": 12,
    "xl": 16,
}

RADIUS = {
    "md": 8,
    "full": 24
}
