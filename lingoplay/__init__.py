"""Dual-language (English/Japanese) subtitle backend for language learners."""

__version__ = '0.1.0'
