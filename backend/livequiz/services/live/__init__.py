"""Live session domain services: lifecycle, timer, scoring, policy, ranking.

This package contains the live quiz mechanics imported by HTTP routes and
the optional expiry sweep. Nothing here knows about request/response
objects; failures are raised as ``LiveQuizError`` subclasses and routes turn
them into JSON errors.
"""
