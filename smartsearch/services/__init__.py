"""
Services for smart search
"""
