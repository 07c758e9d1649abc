"""
SitePlan - HTTP API
===================
"""
