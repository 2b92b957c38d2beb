"""Storefront user-interaction aggregation service"""
