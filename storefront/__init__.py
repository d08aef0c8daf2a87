# storefront/__init__.py
"""Storefront backend"""
