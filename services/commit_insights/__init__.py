"""
Commit Insights Service for RepoPulse.

This service is responsible for:
- Listing and enriching commits from GitHub repositories
- Classifying changed files and conventional-commit types
- Aggregating per-contributor, weekly and per-directory statistics
- Reporting rate limit and per-repository failure status
"""

__version__ = "1.0.0"
__author__ = "RepoPulse Team"
__description__ = "GitHub commit acquisition and contribution statistics service"
