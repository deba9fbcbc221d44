"""
Shared helpers: table pipeline, pricing, formatting, translations, logging
"""
