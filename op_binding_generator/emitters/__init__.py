"""Emitters for generated op classes, declarations and adapter modules."""
