"""
SitePlan
========

Website analysis and action-plan lifecycle service.
"""
