"""
Services package - document mutations, resolution, patching, history and RTL.
"""
