"""
Generate mruby/c (PicoRuby) bindings for C++ libraries such as M5Unified.
"""

__version__ = "0.1.0"
